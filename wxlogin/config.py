"""Configuration for login and session authentication."""

import json
import os
from types import MappingProxyType
from typing import Any, Mapping, NamedTuple, Optional

from .domain import AppInfo
from .exceptions import ConfigurationError
from .services.jscode2session import JSCODE2SESSION_URL

TRUTHY = ('1', 'true', 'yes', 'on')


class Config(NamedTuple):
    """
    Read-only settings shared by all requests.

    ``app_map`` is wrapped in a read-only mapping on construction via
    :meth:`create`.
    """

    app_map: Mapping[str, AppInfo]
    """Known applications, by appid."""

    auth_sig: bool = False
    """Whether requests must carry a signature token."""

    sig_valid_secs: int = 300
    """Maximum age of a request signature, in seconds."""

    session_duration: int = 604800
    """Lifetime of a session token, in seconds."""

    jscode2session_url: str = JSCODE2SESSION_URL
    jscode2session_timeout: float = 5.0

    stoken_header: str = 'X-WX-STOKEN'
    """Request header that carries the session token."""

    sig_header: str = 'X-WX-SIG'
    """Request header that carries the signature token."""

    @classmethod
    def create(cls, apps: Any, **settings: Any) -> 'Config':
        """
        Build a config from a collection of :class:`.AppInfo`.

        ``apps`` may be a mapping of appid to :class:`.AppInfo` or an
        iterable of :class:`.AppInfo`.
        """
        if isinstance(apps, Mapping):
            apps = apps.values()
        apps = list(apps)
        for app in apps:
            if not app.appid or ':' in app.appid:
                raise ConfigurationError(f'Bad appid: {app.appid!r}')
        app_map = MappingProxyType({app.appid: app for app in apps})
        return cls(app_map, **settings)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Config':
        """Load the config from environment variables."""
        if environ is None:
            environ = os.environ
        if not environ.get('WXLOGIN_APPS'):
            raise ConfigurationError('WXLOGIN_APPS is not set')
        try:
            return cls.create(
                parse_apps(environ['WXLOGIN_APPS']),
                auth_sig=environ.get('WXLOGIN_AUTH_SIG', '').lower() in TRUTHY,
                sig_valid_secs=int(environ.get('WXLOGIN_SIG_VALID_SECS', '300')),
                session_duration=int(environ.get('SESSION_DURATION', '604800')),
                jscode2session_url=environ.get('JSCODE2SESSION_URL',
                                               JSCODE2SESSION_URL),
                jscode2session_timeout=float(
                    environ.get('JSCODE2SESSION_TIMEOUT', '5')
                ),
                stoken_header=environ.get('STOKEN_HEADER', 'X-WX-STOKEN'),
                sig_header=environ.get('SIG_HEADER', 'X-WX-SIG')
            )
        except ValueError as e:
            raise ConfigurationError(f'Bad configuration value: {e}') from e

    def get_app(self, appid: str) -> Optional[AppInfo]:
        """Look up an application by id."""
        return self.app_map.get(appid)

    def requires_sig(self, app: AppInfo) -> bool:
        """Whether requests for ``app`` must be signed."""
        if app.auth_sig is None:
            return self.auth_sig
        return app.auth_sig


def parse_apps(raw: str) -> list:
    """
    Parse the ``WXLOGIN_APPS`` JSON object.

    Values are either the application secret, or an object with ``secret``
    and optional ``token_key`` and ``auth_sig``.
    """
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise ConfigurationError(f'WXLOGIN_APPS is not JSON: {e}') from e
    if not isinstance(data, dict):
        raise ConfigurationError('WXLOGIN_APPS must be a JSON object')

    apps = []
    for appid, value in data.items():
        if isinstance(value, str):
            apps.append(AppInfo(appid=appid, secret=value))
        elif isinstance(value, dict) and isinstance(value.get('secret'), str):
            auth_sig = value.get('auth_sig')
            apps.append(AppInfo(
                appid=appid,
                secret=value['secret'],
                token_key=value.get('token_key'),
                auth_sig=None if auth_sig is None else bool(auth_sig)
            ))
        else:
            raise ConfigurationError(f'No secret configured for {appid}')
    return apps
