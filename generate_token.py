"""
Helper script for generating a session token without the identity provider.

Be sure that you are using the same ``WXLOGIN_APPS`` when running this script
as when you run the app, so that the token is signed with the same key.

.. code-block:: bash

   $ WXLOGIN_APPS='{"wx001": "s3cr3t"}' python generate_token.py
   Application id: wx001
   User openid: u1
   Signed request URI (blank for none) []: /auth

   stoken: ST1:wx001:u1:eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...
   skey: 0mI3n1H6t0lB7yWq0m3ujA==
   sig: SG1:1760000000000:3f9c...:b1d2...

Set the header ``X-WX-STOKEN: [stoken]`` (and ``X-WX-SIG: [sig]`` if
signatures are required) on requests to authenticated endpoints. The
signature is only good for the configured validity window.
"""

import secrets

import click

from wxlogin import tokens
from wxlogin.authority import sign_request
from wxlogin.config import Config
from wxlogin.login import WxLogin


@click.command()
@click.option('--appid', prompt='Application id')
@click.option('--openid', prompt='User openid')
@click.option('--uri', prompt='Signed request URI (blank for none)',
              default='')
def generate_token(appid: str, openid: str, uri: str) -> None:
    """Generate a session token, and optionally a request signature."""
    wxlogin = WxLogin(Config.from_env())
    app = wxlogin.config.get_app(appid)
    if app is None:
        raise click.BadParameter(f'{appid} is not in WXLOGIN_APPS',
                                 param_hint='appid')
    session = wxlogin.authority(app).make_client_session(
        openid, secrets.token_bytes(16)
    )
    click.echo(f'stoken: {tokens.encode_session(appid, openid, session.token)}')
    click.echo(f'skey: {session.key}')
    if uri:
        click.echo(f'sig: {sign_request(session.key, uri, secrets.token_hex(8))}')


if __name__ == '__main__':
    generate_token()
