"""
The code exchange service turns a one-time login code into an openid.

See https://developers.weixin.qq.com/miniprogram/dev/OpenApiDoc/user-login/code2Session.html
"""

import json
import logging

import requests
from pydantic import ValidationError

from ..domain import Code2SessionRequest, Code2SessionResponse

logger = logging.getLogger(__name__)

JSCODE2SESSION_URL = 'https://api.weixin.qq.com/sns/jscode2session'


class ProviderCallFailed(IOError):
    """The code exchange endpoint could not be reached."""


class ProviderResponseInvalid(IOError):
    """The code exchange endpoint returned something unusable."""


class Jscode2SessionSession(object):
    """
    An HTTP session with the code exchange endpoint.

    Holds no state beyond the connection pool, so a new session can be
    created for each login.
    """

    def __init__(self, url: str = JSCODE2SESSION_URL,
                 timeout: float = 5.0) -> None:
        """Create a new HTTP session."""
        self.url = url
        self.timeout = timeout
        self._session = requests.Session()

    def __enter__(self) -> 'Jscode2SessionSession':
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Release pooled connections."""
        self._session.close()

    def exchange(self, req: Code2SessionRequest) -> Code2SessionResponse:
        """
        Exchange a login code for the user's openid and session key.

        Parameters
        ----------
        req : :class:`.Code2SessionRequest`

        Returns
        -------
        :class:`.Code2SessionResponse`

        Raises
        ------
        :class:`ProviderCallFailed`
            If the endpoint could not be called (connection, TLS, timeout).
        :class:`ProviderResponseInvalid`
            If the response body is not a valid code exchange result.

        """
        logger.debug('Exchange login code for app %s', req.appid)
        try:
            response = self._session.get(self.url, params=req.params(),
                                         timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.debug('Code exchange call failed: %s', e)
            raise ProviderCallFailed(str(e)) from e
        # The provider reports errors as {errcode, errmsg}, often with a 200,
        # so the body shape decides rather than the status code.
        try:
            data = response.json()
        except (ValueError, json.decoder.JSONDecodeError) as e:
            logger.debug('Code exchange response (%s) is not JSON',
                         response.status_code)
            raise ProviderResponseInvalid(f'not json: {e}') from e
        try:
            return Code2SessionResponse.model_validate(data)
        except ValidationError as e:
            logger.debug('Code exchange response is unusable: %s',
                         _describe_error(data))
            raise ProviderResponseInvalid(str(e)) from e


def _describe_error(data: object) -> str:
    """Pull the provider's error code out of a response, for logging."""
    if isinstance(data, dict) and 'errcode' in data:
        return f"errcode={data.get('errcode')} errmsg={data.get('errmsg')}"
    return 'unexpected response shape'
