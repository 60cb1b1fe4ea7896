"""FastAPI dependencies for authenticating requests."""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from .domain import LoginInfo, Signature
from .exceptions import AUTH_FAIL_MSG, AuthenticationFailed
from .login import WxLogin

logger = logging.getLogger(__name__)


def get_wxlogin(request: Request) -> WxLogin:
    """Get the :class:`.WxLogin` attached to the application."""
    return request.app.extra['wxlogin']


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Get the token from an ``Authorization: Bearer`` header value."""
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != 'bearer':
        logger.debug('Authorization header is not a bearer token')
        return None
    return parts[1]


def request_uri(request: Request) -> str:
    """The URI covered by a request signature: path and query string."""
    if request.url.query:
        return f'{request.url.path}?{request.url.query}'
    return request.url.path


def get_signature(request: Request,
                  wxlogin: WxLogin = Depends(get_wxlogin)) -> Signature:
    """Get the signature token, or the reason there isn't one."""
    header = wxlogin.config.sig_header
    value = request.headers.get(header)
    if not value:
        return Signature.missing(f'missing {header} header')
    return Signature.present(value)


def get_login_info_or_none(
        request: Request,
        wxlogin: WxLogin = Depends(get_wxlogin),
        sig: Signature = Depends(get_signature)) -> Optional[LoginInfo]:
    """Authenticate the request, or get ``None`` if that fails."""
    stoken = request.headers.get(wxlogin.config.stoken_header) \
        or bearer_token(request.headers.get('Authorization'))
    if not stoken:
        logger.debug('There is no session token')
        return None
    try:
        return wxlogin.authenticate(stoken, request_uri(request), sig)
    except AuthenticationFailed as e:
        logger.warning('Authentication failed: %s', e)
        return None


def get_login_info(
        info: Optional[LoginInfo] = Depends(get_login_info_or_none)
        ) -> LoginInfo:
    """Authenticate the request, or respond 401."""
    if info is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail=AUTH_FAIL_MSG)
    return info
