"""Defines login and session concepts for wxlogin."""

from typing import Mapping, NamedTuple, Optional
from datetime import datetime

from pydantic import BaseModel, Field

from .exceptions import AuthenticationFailed

GRANT_TYPE = 'authorization_code'


class AppInfo(NamedTuple):
    """Configuration for a single application known to the server."""

    appid: str
    """Application identifier issued by the identity provider."""

    secret: str
    """Application secret used for the code exchange."""

    token_key: Optional[str] = None
    """Key for signing session tokens. Defaults to :attr:`.secret`."""

    auth_sig: Optional[bool] = None
    """Per-application override of the request signature policy."""

    @property
    def signing_key(self) -> str:
        """The key material from which session tokens are derived."""
        return self.token_key or self.secret

    def __repr__(self) -> str:
        return f'AppInfo(appid={self.appid!r}, auth_sig={self.auth_sig!r})'


class Code2SessionRequest(NamedTuple):
    """Query parameters for the code exchange call."""

    appid: str
    secret: str
    js_code: str
    grant_type: str = GRANT_TYPE

    @classmethod
    def from_code(cls, app: AppInfo, code: str) -> 'Code2SessionRequest':
        """Build a request for ``app`` from a one-time login code."""
        return cls(appid=app.appid, secret=app.secret, js_code=code)

    def params(self) -> Mapping[str, str]:
        """Query string parameters, in order."""
        return self._asdict()


class Code2SessionResponse(BaseModel):
    """Successful response body of the code exchange call."""

    session_key: str
    """Base64-encoded session secret."""

    openid: str = Field(min_length=1, pattern=r'^[^:]+$')
    """Stable per-application user identifier; may not contain ``:``."""

    unionid: Optional[str] = None
    """Cross-application identifier; not used."""


class ClientSession(NamedTuple):
    """Session material produced at login and handed to the client."""

    token: str
    """Opaque, verifiable session token component."""

    key: str
    """Base64 text of the client-session key; returned as ``skey``."""


class ServerSession(NamedTuple):
    """Secret material re-derived from a presented session token."""

    openid: str
    client_sess_key: bytes
    """Raw client-session key, used to verify request signatures."""

    issued_at: datetime
    expires_at: Optional[datetime] = None

    def __repr__(self) -> str:
        return (f'ServerSession(openid={self.openid!r}, '
                f'issued_at={self.issued_at!r}, '
                f'expires_at={self.expires_at!r})')


class LoginOk(NamedTuple):
    """The result of a successful login."""

    openid: str
    stoken: str
    """Session token (``ST1:<appid>:<openid>:<token>``)."""

    skey: str
    """Client-session key for signing requests."""

    def to_dict(self) -> dict:
        """Wire representation of the login result."""
        return dict(self._asdict())


class LoginInfo(NamedTuple):
    """
    The authenticated identity of a request.

    Immutable, so that a single instance can be passed to any number of
    downstream handlers.
    """

    appid: str
    openid: str
    secret: ServerSession
    sig_authed: bool = False
    """Whether a request signature was also verified."""

    def to_dict(self) -> dict:
        """Public (non-secret) fields of the identity."""
        return {'appid': self.appid, 'openid': self.openid,
                'sig_authed': self.sig_authed}


class Signature(NamedTuple):
    """
    The request signature, or the reason that there isn't one.

    Use :meth:`present` and :meth:`missing` to construct.
    """

    value: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def present(cls, value: str) -> 'Signature':
        """A signature was supplied with the request."""
        return cls(value=value)

    @classmethod
    def missing(cls, reason: str) -> 'Signature':
        """No signature is available, for ``reason``."""
        return cls(reason=reason)

    @property
    def is_present(self) -> bool:
        return self.value is not None

    def unwrap(self) -> str:
        """
        Get the signature value.

        Raises
        ------
        :class:`AuthenticationFailed`
            Raised with the absence reason if there is no signature.

        """
        if self.value is None:
            raise AuthenticationFailed(self.reason or 'signature missing')
        return self.value

