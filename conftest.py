import pytest
from base64 import b64encode
from unittest import mock

from fastapi.testclient import TestClient

from wxlogin.config import Config
from wxlogin.domain import AppInfo
from wxlogin.main import create_app


@pytest.fixture()
def config():
    return Config.create([
        AppInfo(appid='wx001', secret='s3cr3t'),
        AppInfo(appid='wx002', secret='other-secret', auth_sig=True),
    ], sig_valid_secs=300)


@pytest.fixture()
def client(config):
    return TestClient(create_app(config))


@pytest.fixture()
def session_key():
    return b64encode(b'0123456789ABCDEF').decode('ascii')


@pytest.fixture()
def provider(session_key):
    """Patch the code exchange endpoint to log in openid ``u1``."""
    with mock.patch('wxlogin.services.jscode2session.requests.Session') \
            as mock_session:
        mock_json = mock.MagicMock(return_value={
            'openid': 'u1',
            'session_key': session_key
        })
        mock_get_response = mock.MagicMock(status_code=200, ok=True,
                                           json=mock_json)
        mock_session_instance = mock.MagicMock()
        type(mock_session_instance).get = \
            mock.MagicMock(return_value=mock_get_response)
        mock_session.return_value = mock_session_instance
        yield mock_session_instance
