import logging
from typing import Union

from pythonjsonlogger.json import JsonFormatter


def setup_logger(level: Union[int, str] = logging.INFO) -> None:
    """Send JSON-formatted log records to stderr."""
    logHandler = logging.StreamHandler()
    formatter = JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s',
                              rename_fields={'levelname': 'level',
                                             'asctime': 'timestamp'})
    logHandler.setFormatter(formatter)
    logger = logging.getLogger()
    for handler in list(logger.handlers):
        if isinstance(handler.formatter, JsonFormatter):
            logger.removeHandler(handler)
    logger.addHandler(logHandler)
    logger.setLevel(level)
