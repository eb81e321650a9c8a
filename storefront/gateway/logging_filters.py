"""Logging filter and JSON handler setup.

``RequestIdFilter`` injects the current request id into log records using
the ContextVar set by the gateway middleware, so every line logged while
serving a request can be correlated without touching the log calls.
``configure_logging`` installs a JSON handler carrying that filter on the
``storefront`` logger tree.
"""

import logging
from logging import Filter, LogRecord
from typing import Optional

from pythonjsonlogger import jsonlogger

from storefront import settings

from .middleware import REQUEST_ID_CTX

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s"


class RequestIdFilter(Filter):
    """Attach a ``request_id`` attribute to log records.

    Outside a request the ContextVar default ("-") is used so formatters can
    always reference ``%(request_id)s``.
    """

    def filter(self, record: LogRecord) -> bool:
        record.request_id = REQUEST_ID_CTX.get()
        return True


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Install the JSON handler on the ``storefront`` logger once.

    Args:
        level: Log level name; defaults to ``settings.LOG_LEVEL``.

    Returns:
        logging.Logger: The configured ``storefront`` logger.
    """
    logger = logging.getLogger("storefront")
    if not logger.handlers:
        h = logging.StreamHandler()
        h.setFormatter(jsonlogger.JsonFormatter(LOG_FORMAT))
        h.addFilter(RequestIdFilter())
        logger.addHandler(h)
    logger.setLevel(level or settings.LOG_LEVEL)
    return logger
