"""
Logging configuration for the command line entry point.

Library modules only create module loggers; handlers are installed here.
"""

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_handler: Optional[logging.Handler] = None


def configure_logging(level: str = "INFO") -> None:
    """Send netusage logs at level and above to the current stderr.

    Calling it again replaces the previous handler instead of adding one.
    """
    global _handler
    logger = logging.getLogger("netusage")
    if _handler is not None:
        logger.removeHandler(_handler)

    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(_handler)
    logger.setLevel(level.upper())
