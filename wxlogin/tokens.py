"""
Encode and decode the session and signature tokens held by clients.

Both tokens are four parts separated with ``:``.

The session token (``stoken``) parts are:
1. the literal tag ``ST1``
2. the application id
3. the user's openid
4. the opaque session token component issued by the authority

The signature token (``sig``) parts are:
1. the literal tag ``SG1``
2. the request timestamp, in milliseconds since the epoch
3. a client-chosen nonce
4. the signature value

No escaping is performed, so none of the parts may contain ``:``.
"""

from typing import Tuple

from .exceptions import MalformedToken

DELIMITER = ':'
SESSION_TAG = 'ST1'
SIGNATURE_TAG = 'SG1'


def _split(value: str, tag: str, kind: str) -> Tuple[str, str, str]:
    parts = value.split(DELIMITER)
    if len(parts) != 4 or not all(parts):
        raise MalformedToken(f'bad {kind} format')
    if parts[0] != tag:
        raise MalformedToken(f'bad {kind} tag:{parts[0]}')
    return parts[1], parts[2], parts[3]


def encode_session(appid: str, openid: str, token: str) -> str:
    """Generate a session token."""
    return DELIMITER.join([SESSION_TAG, appid, openid, token])


def decode_session(stoken: str) -> Tuple[str, str, str]:
    """
    Unpack a session token.

    Parameters
    ----------
    stoken : str
        The value of the session token.

    Returns
    -------
    str
        The application id.
    str
        The openid of the user.
    str
        The opaque session token component.

    Raises
    ------
    :class:`MalformedToken`
        Raised if the token does not have four non-empty parts, or if the
        tag is not ``ST1``.

    """
    return _split(stoken, SESSION_TAG, 'stoken')


def encode_sig(ts_ms: int, nonce: str, signature: str) -> str:
    """Generate a signature token."""
    return DELIMITER.join([SIGNATURE_TAG, str(ts_ms), nonce, signature])


def decode_sig(sig: str) -> Tuple[str, str, str]:
    """
    Unpack a signature token into timestamp, nonce and signature.

    The timestamp is returned as text; it is interpreted by the authority.

    Raises
    ------
    :class:`MalformedToken`
        Raised if the token does not have four non-empty parts, or if the
        tag is not ``SG1``.

    """
    return _split(sig, SIGNATURE_TAG, 'sig')
