"""Tests for :mod:`wxlogin.login`."""

from base64 import b64encode
from unittest import TestCase, mock
from typing import Any

import requests

from wxlogin import authority, tokens
from wxlogin.authority import HmacAuthority, sign_request
from wxlogin.config import Config
from wxlogin.domain import AppInfo, LoginInfo, Signature
from wxlogin.exceptions import (LOGIN_FAIL_MSG, AuthenticationFailed,
                                LoginFailed, MalformedToken)
from wxlogin.login import WxLogin
from wxlogin.services import jscode2session

SESSION_KEY = b64encode(b'0123456789ABCDEF').decode('ascii')
APP = AppInfo(appid='wx001', secret='s3cr3t')
SIGNED_APP = AppInfo(appid='wx002', secret='other', auth_sig=True)
CONFIG = Config.create([APP, SIGNED_APP], sig_valid_secs=300)


def _provider_returns(mock_session: Any, data: Any) -> mock.MagicMock:
    mock_json = mock.MagicMock(return_value=data)
    mock_get_response = mock.MagicMock(status_code=200, ok=True,
                                       json=mock_json)
    mock_get = mock.MagicMock(return_value=mock_get_response)
    mock_session_instance = mock.MagicMock()
    type(mock_session_instance).get = mock_get
    mock_session.return_value = mock_session_instance
    return mock_get


def _session_token(app: AppInfo, openid: str = 'u1') -> tuple:
    session = HmacAuthority(app).make_client_session(openid, b'k' * 16)
    return tokens.encode_session(app.appid, openid, session.token), \
        session.key


class TestHandleLogin(TestCase):
    """:meth:`.WxLogin.handle_login` exchanges a login code for a session."""

    @mock.patch(f'{jscode2session.__name__}.requests.Session')
    def test_login(self, mock_session: Any) -> None:
        """A known app and a good code yields a session token."""
        mock_get = _provider_returns(mock_session, {
            'openid': 'u1', 'session_key': SESSION_KEY
        })
        result = WxLogin(CONFIG).handle_login('wx001', 'code1')

        self.assertEqual(result.openid, 'u1')
        self.assertTrue(result.stoken.startswith('ST1:wx001:u1:'))
        appid, openid, token = tokens.decode_session(result.stoken)
        self.assertEqual((appid, openid), ('wx001', 'u1'))
        self.assertEqual(result.stoken, f'ST1:wx001:u1:{token}')
        self.assertTrue(bool(result.skey))

        _, kwargs = mock_get.call_args
        self.assertEqual(kwargs['params']['js_code'], 'code1')
        self.assertEqual(kwargs['params']['secret'], 's3cr3t')

    @mock.patch(f'{jscode2session.__name__}.requests.Session')
    def test_login_then_authenticate(self, mock_session: Any) -> None:
        """The session token authenticates later requests."""
        _provider_returns(mock_session, {
            'openid': 'u1', 'session_key': SESSION_KEY
        })
        wxlogin = WxLogin(CONFIG)
        result = wxlogin.handle_login('wx001', 'code1')
        info = wxlogin.authenticate(result.stoken, '/any',
                                    Signature.missing('not sent'))
        self.assertEqual((info.appid, info.openid, info.sig_authed),
                         ('wx001', 'u1', False))
        self.assertEqual(
            b64encode(info.secret.client_sess_key).decode('ascii'),
            result.skey
        )

    @mock.patch(f'{jscode2session.__name__}.requests.Session')
    def test_unknown_appid(self, mock_session: Any) -> None:
        """An unknown app fails before the provider is called."""
        with self.assertRaises(LoginFailed) as ctx:
            WxLogin(CONFIG).handle_login('wx999', 'code1')
        self.assertEqual(ctx.exception.status, 401)
        self.assertEqual(ctx.exception.code, 'appid-not-found')
        self.assertEqual(ctx.exception.message, LOGIN_FAIL_MSG)
        self.assertEqual(mock_session.call_count, 0)

    @mock.patch(f'{jscode2session.__name__}.requests.Session')
    def test_call_fails(self, mock_session: Any) -> None:
        """A network failure is a 500."""
        mock_session_instance = mock.MagicMock()
        type(mock_session_instance).get = mock.MagicMock(
            side_effect=requests.exceptions.ConnectionError('refused')
        )
        mock_session.return_value = mock_session_instance

        with self.assertRaises(LoginFailed) as ctx:
            WxLogin(CONFIG).handle_login('wx001', 'code1')
        self.assertEqual(ctx.exception.status, 500)
        self.assertEqual(ctx.exception.code, 'jscode2session-call-fail')
        self.assertIn('refused', ctx.exception.detail)
        self.assertEqual(ctx.exception.message, LOGIN_FAIL_MSG)

    @mock.patch(f'{jscode2session.__name__}.requests.Session')
    def test_provider_rejects_code(self, mock_session: Any) -> None:
        """An unusable provider response is a 401."""
        _provider_returns(mock_session, {
            'errcode': 40163, 'errmsg': 'code been used'
        })
        with self.assertRaises(LoginFailed) as ctx:
            WxLogin(CONFIG).handle_login('wx001', 'code1')
        self.assertEqual(ctx.exception.status, 401)
        self.assertEqual(ctx.exception.code, 'jscode2session-resp-fail')
        self.assertEqual(ctx.exception.message, LOGIN_FAIL_MSG)

    @mock.patch(f'{jscode2session.__name__}.requests.Session')
    def test_unusable_openid(self, mock_session: Any) -> None:
        """An openid that cannot be carried in a session token is a 401."""
        for openid in ['u:1', '']:
            _provider_returns(mock_session, {
                'openid': openid, 'session_key': SESSION_KEY
            })
            with self.assertRaises(LoginFailed) as ctx:
                WxLogin(CONFIG).handle_login('wx001', 'code1')
            self.assertEqual(ctx.exception.status, 401)
            self.assertEqual(ctx.exception.code, 'jscode2session-resp-fail')

    @mock.patch(f'{jscode2session.__name__}.requests.Session')
    def test_session_key_not_base64(self, mock_session: Any) -> None:
        _provider_returns(mock_session, {
            'openid': 'u1', 'session_key': 'not*base64!'
        })
        with self.assertRaises(LoginFailed) as ctx:
            WxLogin(CONFIG).handle_login('wx001', 'code1')
        self.assertEqual(ctx.exception.status, 500)
        self.assertEqual(ctx.exception.code, 'session-key-invalid-base64')

    @mock.patch(f'{jscode2session.__name__}.requests.Session')
    def test_session_key_wrong_length(self, mock_session: Any) -> None:
        """A key that is not 16 bytes gets the same code."""
        _provider_returns(mock_session, {
            'openid': 'u1',
            'session_key': b64encode(b'short').decode('ascii')
        })
        with self.assertRaises(LoginFailed) as ctx:
            WxLogin(CONFIG).handle_login('wx001', 'code1')
        self.assertEqual(ctx.exception.status, 500)
        self.assertEqual(ctx.exception.code, 'session-key-invalid-base64')
        self.assertEqual(ctx.exception.detail, 'unexpected key len: 5')
        self.assertEqual(ctx.exception.to_dict(), {
            'status': 500,
            'code': 'session-key-invalid-base64',
            'message': LOGIN_FAIL_MSG,
            'detail': 'unexpected key len: 5'
        })

    @mock.patch(f'{jscode2session.__name__}.requests.Session')
    def test_custom_authority(self, mock_session: Any) -> None:
        """The authority can be swapped out."""
        _provider_returns(mock_session, {
            'openid': 'u1', 'session_key': SESSION_KEY
        })
        mock_authority = mock.MagicMock()
        mock_authority.make_client_session.return_value = \
            mock.MagicMock(token='tok', key='key')
        factory = mock.MagicMock(return_value=mock_authority)

        result = WxLogin(CONFIG, factory).handle_login('wx001', 'code1')
        self.assertEqual(result.stoken, 'ST1:wx001:u1:tok')
        self.assertEqual(result.skey, 'key')
        factory.assert_called_once_with(APP)
        mock_authority.make_client_session.assert_called_once_with(
            'u1', b'0123456789ABCDEF'
        )


class TestAuthenticate(TestCase):
    """:meth:`.WxLogin.authenticate` verifies a request's session."""

    def setUp(self):
        self.wxlogin = WxLogin(CONFIG)

    def test_no_signature_required(self):
        stoken, _ = _session_token(APP)
        info = self.wxlogin.authenticate(stoken, '/any',
                                         Signature.missing('not sent'))
        self.assertIsInstance(info, LoginInfo)
        self.assertEqual(info.appid, 'wx001')
        self.assertEqual(info.openid, 'u1')
        self.assertFalse(info.sig_authed)

    def test_idempotent(self):
        stoken, _ = _session_token(APP)
        results = [
            self.wxlogin.authenticate(stoken, '/any', Signature.missing('-'))
            for _ in range(3)
        ]
        self.assertEqual(len({(r.appid, r.openid, r.sig_authed)
                              for r in results}), 1)

    def test_tampered_tag(self):
        """A structural failure happens before the authority is used."""
        stoken, _ = _session_token(APP)
        factory = mock.MagicMock()
        with self.assertRaises(MalformedToken):
            WxLogin(CONFIG, factory).authenticate(
                'ST2' + stoken[3:], '/any', Signature.missing('-')
            )
        self.assertEqual(factory.call_count, 0)

    def test_unknown_appid(self):
        stoken, _ = _session_token(AppInfo('wx999', 's3cr3t'))
        with self.assertRaisesRegex(AuthenticationFailed, 'appid not found'):
            self.wxlogin.authenticate(stoken, '/any', Signature.missing('-'))

    def test_substituted_openid(self):
        """The openid in the token cannot be changed."""
        stoken, _ = _session_token(APP)
        forged = stoken.replace(':u1:', ':u2:')
        with self.assertRaises(AuthenticationFailed):
            self.wxlogin.authenticate(forged, '/any', Signature.missing('-'))

    def test_substituted_appid(self):
        """A token from one app is not good for another."""
        stoken, _ = _session_token(APP)
        forged = stoken.replace(':wx001:', ':wx002:')
        with self.assertRaises(AuthenticationFailed):
            self.wxlogin.authenticate(forged, '/any', Signature.missing('-'))

    def test_signature_required(self):
        stoken, skey = _session_token(SIGNED_APP)
        sig = sign_request(skey, '/things', 'n0')
        info = self.wxlogin.authenticate(stoken, '/things',
                                         Signature.present(sig))
        self.assertTrue(info.sig_authed)
        self.assertEqual(info.openid, 'u1')

    def test_signature_missing(self):
        """The reason the signature is missing is reported."""
        stoken, _ = _session_token(SIGNED_APP)
        with self.assertRaisesRegex(AuthenticationFailed,
                                    'missing X-WX-SIG header'):
            self.wxlogin.authenticate(
                stoken, '/things', Signature.missing('missing X-WX-SIG header')
            )

    def test_signature_stale(self):
        """An otherwise good signature outside the window is rejected."""
        stoken, skey = _session_token(SIGNED_APP)
        sig = sign_request(skey, '/things', 'n0',
                           ts_ms=authority.now_ms() - 600 * 1000)
        with self.assertRaises(AuthenticationFailed):
            self.wxlogin.authenticate(stoken, '/things',
                                      Signature.present(sig))

    def test_signature_for_other_uri(self):
        stoken, skey = _session_token(SIGNED_APP)
        sig = sign_request(skey, '/things', 'n0')
        with self.assertRaises(AuthenticationFailed):
            self.wxlogin.authenticate(stoken, '/other',
                                      Signature.present(sig))

    def test_signature_from_other_session(self):
        stoken, _ = _session_token(SIGNED_APP)
        _, other_skey = _session_token(SIGNED_APP)
        sig = sign_request(other_skey, '/things', 'n0')
        with self.assertRaises(AuthenticationFailed):
            self.wxlogin.authenticate(stoken, '/things',
                                      Signature.present(sig))

    def test_signature_malformed(self):
        stoken, _ = _session_token(SIGNED_APP)
        for sig in ['SG1:1:n0', 'ST1:1:n0:abcd']:
            with self.assertRaises(MalformedToken):
                self.wxlogin.authenticate(stoken, '/things',
                                          Signature.present(sig))

    def test_global_signature_policy(self):
        """Apps without an override follow the global policy."""
        wxlogin = WxLogin(CONFIG._replace(auth_sig=True))
        stoken, skey = _session_token(APP)
        with self.assertRaises(AuthenticationFailed):
            wxlogin.authenticate(stoken, '/any', Signature.missing('-'))
        info = wxlogin.authenticate(
            stoken, '/any', Signature.present(sign_request(skey, '/any', 'n'))
        )
        self.assertTrue(info.sig_authed)

    def test_signature_timestamp_out_of_range(self):
        """A huge timestamp fails authentication like any other problem."""
        stoken, skey = _session_token(SIGNED_APP)
        ts_ms = '9' * 25
        signature = authority.request_signature(skey, '/things', ts_ms, 'n0')
        sig = tokens.encode_sig(int(ts_ms), 'n0', signature)
        with self.assertRaises(AuthenticationFailed):
            self.wxlogin.authenticate(stoken, '/things',
                                      Signature.present(sig))

    def test_signature_ignored_when_not_required(self):
        """A signature is not checked unless the policy requires it."""
        stoken, _ = _session_token(APP)
        info = self.wxlogin.authenticate(stoken, '/any',
                                         Signature.present('garbage'))
        self.assertFalse(info.sig_authed)
