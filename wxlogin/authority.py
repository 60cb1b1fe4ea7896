"""
Key derivation and verification for client sessions and request signatures.

:class:`Authority` is the contract used by :class:`wxlogin.login.WxLogin`;
:class:`HmacAuthority` is the default implementation.

The default session token component is an HS256 JWT whose claims bind the
openid (``sub``) and the application (``aud``) to a random session id
(``sid``). The client-session key is derived from ``sid`` with the
application's server key, so it can be recomputed from the token alone and
nothing is stored on the server.

A request signature is the hex HMAC-SHA256, keyed with the ``skey`` text
returned at login, of ``"<uri>\\n<ts_ms>\\n<nonce>"``.
"""

from abc import ABC, abstractmethod
from base64 import b64encode, urlsafe_b64encode
from datetime import datetime, timedelta
from typing import Callable, Optional
import hashlib
import hmac
import secrets
import time

import jwt
from pytz import UTC

from . import tokens
from .domain import AppInfo, ClientSession, ServerSession
from .exceptions import AuthenticationFailed

ALGORITHM = 'HS256'
CLIENT_KEY_LENGTH = 16

FreshnessCheck = Callable[[timedelta, str], bool]
"""Replay predicate; receives the signature age and its nonce."""


def now_ms() -> int:
    """Get the current epoch time in milliseconds."""
    return int(time.time() * 1000)


def _mac(key: bytes, message: str) -> bytes:
    return hmac.new(key, message.encode('utf-8'), hashlib.sha256).digest()


def request_signature(skey: str, uri: str, ts_ms: str, nonce: str) -> str:
    """Compute the signature value for a request."""
    message = '\n'.join([uri, ts_ms, nonce])
    return _mac(skey.encode('utf-8'), message).hex()


def sign_request(skey: str, uri: str, nonce: str,
                 ts_ms: Optional[int] = None) -> str:
    """
    Generate a complete signature token for a request.

    This is what a client does before each request; it's here for
    tooling and tests.
    """
    if ts_ms is None:
        ts_ms = now_ms()
    signature = request_signature(skey, uri, str(ts_ms), nonce)
    return tokens.encode_sig(ts_ms, nonce, signature)


class Authority(ABC):
    """Derives and verifies client sessions for a single application."""

    def __init__(self, app: AppInfo) -> None:
        self.app = app

    @abstractmethod
    def make_client_session(self, openid: str,
                            session_key: bytes) -> ClientSession:
        """Derive a new client session from the provider session key."""

    @abstractmethod
    def auth_client_session(self, openid: str, token: str) -> ServerSession:
        """
        Verify that ``token`` was issued to ``openid`` by this application.

        Raises
        ------
        :class:`AuthenticationFailed`

        """

    @abstractmethod
    def auth_client_sig(self, key: str, uri: str, ts_ms: str, nonce: str,
                        signature: str, is_fresh: FreshnessCheck) -> None:
        """
        Verify a request signature made with the client-session ``key``.

        Raises
        ------
        :class:`AuthenticationFailed`

        """


class HmacAuthority(Authority):
    """Default authority, using HS256 JWTs and HMAC-SHA256."""

    def __init__(self, app: AppInfo, duration: int = 604800) -> None:
        """
        Parameters
        ----------
        app : :class:`.AppInfo`
        duration : int
            Lifetime of issued session tokens, in seconds.

        """
        super(HmacAuthority, self).__init__(app)
        self._duration = duration
        self._server_key = _mac(app.signing_key.encode('utf-8'),
                                f'wxlogin:{app.appid}')

    def _client_key(self, sid: str) -> bytes:
        return _mac(self._server_key, f'csk:{sid}')[:CLIENT_KEY_LENGTH]

    def make_client_session(self, openid: str,
                            session_key: bytes) -> ClientSession:
        seed = hashlib.sha256(session_key + secrets.token_bytes(16)).digest()
        sid = urlsafe_b64encode(seed).decode('ascii')[:22]
        issued_at = int(time.time())
        claims = {
            'sub': openid,
            'aud': self.app.appid,
            'iat': issued_at,
            'exp': issued_at + self._duration,
            'sid': sid
        }
        token = jwt.encode(claims, self._server_key, algorithm=ALGORITHM)
        key = b64encode(self._client_key(sid)).decode('ascii')
        return ClientSession(token=token, key=key)

    def auth_client_session(self, openid: str, token: str) -> ServerSession:
        try:
            claims = jwt.decode(
                token, self._server_key, algorithms=[ALGORITHM],
                audience=self.app.appid,
                options={'require': ['sub', 'aud', 'iat', 'exp', 'sid']}
            )
        except jwt.exceptions.ExpiredSignatureError as e:
            raise AuthenticationFailed('Session has expired') from e
        except jwt.exceptions.InvalidTokenError as e:
            raise AuthenticationFailed(f'Invalid session token: {e}') from e

        if claims['sub'] != openid:
            raise AuthenticationFailed('Session token issued to another user')
        return ServerSession(
            openid=openid,
            client_sess_key=self._client_key(claims['sid']),
            issued_at=datetime.fromtimestamp(claims['iat'], tz=UTC),
            expires_at=datetime.fromtimestamp(claims['exp'], tz=UTC)
        )

    def auth_client_sig(self, key: str, uri: str, ts_ms: str, nonce: str,
                        signature: str, is_fresh: FreshnessCheck) -> None:
        if not (ts_ms.isascii() and ts_ms.isdigit()):
            raise AuthenticationFailed(f'bad sig timestamp:{ts_ms}')
        try:
            age = timedelta(milliseconds=abs(now_ms() - int(ts_ms)))
        except (OverflowError, ValueError) as e:
            raise AuthenticationFailed(f'bad sig timestamp:{ts_ms}') from e
        if not is_fresh(age, nonce):
            raise AuthenticationFailed(f'Signature is stale: {age}')

        expected = request_signature(key, uri, ts_ms, nonce)
        if not hmac.compare_digest(expected.encode('utf-8'),
                                   signature.encode('utf-8')):
            raise AuthenticationFailed('Invalid request signature')
