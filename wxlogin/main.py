from typing import Optional
import logging
import os

from fastapi import FastAPI

from .app_logging import setup_logger
from .config import Config
from .login import WxLogin
from .routes import router as auth_router


def create_app(config: Optional[Config] = None) -> FastAPI:
    """Create the login service; ``config`` defaults to the environment."""
    setup_logger(os.environ.get('LOGLEVEL', 'INFO').upper())
    logger = logging.getLogger(__name__)
    if config is None:
        config = Config.from_env()

    logger.info('apps: %s', ', '.join(sorted(config.app_map)))
    logger.info('auth_sig: %s, sig_valid_secs: %s', config.auth_sig,
                config.sig_valid_secs)
    logger.info('jscode2session url: %s', config.jscode2session_url)

    app = FastAPI(wxlogin=WxLogin(config))
    app.include_router(auth_router)
    return app
