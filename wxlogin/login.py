"""
Login and per-request authentication.

:meth:`WxLogin.handle_login` exchanges a provider login code for a session
token. :meth:`WxLogin.authenticate` verifies that token, and the request
signature if the application requires one, on each subsequent request.
Nothing is stored on the server between the two.
"""

from base64 import b64encode, b64decode
from datetime import timedelta
from typing import Callable, Optional
import binascii
import logging

from . import tokens
from .authority import Authority, HmacAuthority
from .config import Config
from .domain import (AppInfo, Code2SessionRequest, LoginInfo, LoginOk,
                     Signature)
from .exceptions import AuthenticationFailed, LoginFailed
from .services.jscode2session import (Jscode2SessionSession,
                                      ProviderCallFailed,
                                      ProviderResponseInvalid)

logger = logging.getLogger(__name__)

SESSION_KEY_LENGTH = 16

AuthorityFactory = Callable[[AppInfo], Authority]


class WxLogin(object):
    """Login and authentication for the applications in a :class:`.Config`."""

    def __init__(self, config: Config,
                 authority_factory: Optional[AuthorityFactory] = None) -> None:
        """
        Parameters
        ----------
        config : :class:`.Config`
        authority_factory : callable
            Builds the :class:`.Authority` for an application. Defaults to
            :class:`.HmacAuthority` with the configured session duration.

        """
        self.config = config
        self._authority_factory = authority_factory

    def authority(self, app: AppInfo) -> Authority:
        """Get the authority for ``app``."""
        if self._authority_factory is not None:
            return self._authority_factory(app)
        return HmacAuthority(app, duration=self.config.session_duration)

    def handle_login(self, appid: str, code: str) -> LoginOk:
        """
        Handle a login request.

        Parameters
        ----------
        appid : str
        code : str
            One-time login code obtained by the client from the provider.

        Returns
        -------
        :class:`.LoginOk`

        Raises
        ------
        :class:`.LoginFailed`
            With status 401 if ``appid`` is unknown or the provider response
            is unusable, or 500 if the provider could not be reached or the
            session key is malformed.

        """
        logger.info('start handle_login(%s, %s)', appid, code)
        app = self.config.get_app(appid)
        if app is None:
            raise self._fail(401, 'appid-not-found')

        req = Code2SessionRequest.from_code(app, code)
        with Jscode2SessionSession(self.config.jscode2session_url,
                                   self.config.jscode2session_timeout) as sess:
            try:
                res = sess.exchange(req)
            except ProviderCallFailed as e:
                raise self._fail(500, 'jscode2session-call-fail', e) from e
            except ProviderResponseInvalid as e:
                raise self._fail(401, 'jscode2session-resp-fail', e) from e
        logger.debug('code2session response for openid %s', res.openid)

        session_key = self._decode_session_key(res.session_key)
        client_sess = self.authority(app).make_client_session(res.openid,
                                                              session_key)
        return LoginOk(
            openid=res.openid,
            stoken=tokens.encode_session(appid, res.openid, client_sess.token),
            skey=client_sess.key
        )

    def _decode_session_key(self, encoded: str) -> bytes:
        try:
            session_key = b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise self._fail(500, 'session-key-invalid-base64', e) from e
        if len(session_key) != SESSION_KEY_LENGTH:
            raise self._fail(500, 'session-key-invalid-base64',
                             f'unexpected key len: {len(session_key)}')
        return session_key

    def _fail(self, status: int, code: str, cause: object = '') -> LoginFailed:
        error = LoginFailed(status, code, str(cause))
        logger.warning('handle_login failed: %s %s %s', status, code,
                       error.detail)
        return error

    def authenticate(self, stoken: str, uri: str,
                     sig: Signature) -> LoginInfo:
        """
        Authenticate a request from its session token and signature.

        Parameters
        ----------
        stoken : str
            Session token returned by :meth:`handle_login`.
        uri : str
            The request URI covered by the signature.
        sig : :class:`.Signature`
            The signature token, or why the request did not have one. Only
            consulted if the application requires signatures, in which case
            a missing signature fails authentication.

        Returns
        -------
        :class:`.LoginInfo`

        Raises
        ------
        :class:`.AuthenticationFailed`
            If any check fails.

        """
        appid, openid, token = tokens.decode_session(stoken)
        app = self.config.get_app(appid)
        if app is None:
            raise AuthenticationFailed('appid not found')
        authority = self.authority(app)
        secret = authority.auth_client_session(openid, token)

        sig_authed = False
        if self.config.requires_sig(app):
            ts_ms, nonce, signature = tokens.decode_sig(sig.unwrap())
            window = timedelta(seconds=self.config.sig_valid_secs)
            authority.auth_client_sig(
                b64encode(secret.client_sess_key).decode('ascii'),
                uri, ts_ms, nonce, signature,
                lambda age, _nonce: age <= window
            )
            sig_authed = True
        return LoginInfo(appid=appid, openid=openid, secret=secret,
                         sig_authed=sig_authed)
