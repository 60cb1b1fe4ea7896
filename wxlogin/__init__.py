"""
Login and stateless session authentication for mini-program clients.

A client logs in with a one-time code from the identity provider and gets
back a session token (``ST1:...``) and a client-session key. It presents
the token on each request, optionally with a signature token (``SG1:...``)
made with the key, and :meth:`.WxLogin.authenticate` verifies both without
any server-side session state.
"""

from .config import Config
from .domain import AppInfo, LoginInfo, LoginOk, Signature
from .exceptions import AuthenticationFailed, LoginFailed
from .login import WxLogin

__all__ = ('Config', 'AppInfo', 'LoginInfo', 'LoginOk', 'Signature',
           'AuthenticationFailed', 'LoginFailed', 'WxLogin')
