"""
Logging setup for tabkeeper, built on loguru.

Modules call ``get_logger(__name__)`` once at import time; the server and CLI
call ``setup_logging`` once at startup.
"""

import sys
from typing import Optional

from loguru import logger as _logger

_CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> - <level>{message}</level>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[name]} - {message}"

_logger.configure(extra={"name": "tabkeeper"})


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Replace loguru's default sink with tabkeeper's console (and file) sinks.

    Args:
        level: Minimum level for the console sink.
        log_file: Optional path for a rotating DEBUG-level file sink.
    """
    _logger.remove()
    _logger.add(sys.stderr, level=level.upper(), format=_CONSOLE_FORMAT)
    if log_file:
        _logger.add(
            log_file,
            level="DEBUG",
            format=_FILE_FORMAT,
            rotation="10 MB",
            retention=2,
        )


def get_logger(name: str):
    """Return a loguru logger bound to the given module name."""
    return _logger.bind(name=name)
