"""Exceptions raised during login and session authentication."""

LOGIN_FAIL_MSG = '登录验证失败'
"""Fixed, client-safe message carried by every :class:`LoginFailed`."""

AUTH_FAIL_MSG = '登录会话验证失败'
"""Fixed, client-safe message for every authentication failure."""


class LoginFailed(RuntimeError):
    """
    The login exchange failed.

    ``status`` and ``code`` let the caller branch programmatically. The
    ``message`` is always :const:`LOGIN_FAIL_MSG`, and ``detail`` is raw
    diagnostic text for server-side logs; it is not a stable contract.
    """

    def __init__(self, status: int, code: str, detail: str = '') -> None:
        super().__init__(f'{code}: {detail}' if detail else code)
        self.status = status
        self.code = code
        self.message = LOGIN_FAIL_MSG
        self.detail = detail

    def to_dict(self) -> dict:
        """Wire representation of the failure."""
        return {'status': self.status, 'code': self.code,
                'message': self.message, 'detail': self.detail}


class AuthenticationFailed(RuntimeError):
    """A session token or request signature could not be authenticated."""


class MalformedToken(AuthenticationFailed):
    """A session or signature token does not have the required shape."""


class ConfigurationError(RuntimeError):
    """The application configuration is missing or malformed."""
