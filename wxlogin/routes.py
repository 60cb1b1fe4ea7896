"""Provides the login and session check endpoints."""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .auth import get_login_info, get_wxlogin
from .domain import LoginInfo
from .exceptions import LoginFailed
from .login import WxLogin

logger = logging.getLogger(__name__)

router = APIRouter()


class LoginRequest(BaseModel):
    appid: str
    code: str


@router.post('/login')
def login(body: LoginRequest,
          wxlogin: WxLogin = Depends(get_wxlogin)) -> JSONResponse:
    """Exchange a provider login code for a session token."""
    try:
        result = wxlogin.handle_login(body.appid, body.code)
    except LoginFailed as e:
        return JSONResponse(content=e.to_dict(), status_code=e.status)
    return JSONResponse(content=result.to_dict(),
                        status_code=status.HTTP_200_OK)


@router.get('/auth')
def authenticate(info: LoginInfo = Depends(get_login_info)) -> dict:
    """Authenticate the request and describe the session."""
    logger.debug('Authenticated %s for %s', info.openid, info.appid)
    return info.to_dict()
