import json
import logging

from pythonjsonlogger import jsonlogger

from storefront.gateway.logging_filters import LOG_FORMAT, RequestIdFilter, configure_logging
from storefront.gateway.middleware import REQUEST_ID_CTX


def _format(message: str) -> dict:
    record = logging.LogRecord("storefront.test", logging.INFO, __file__, 1, message, None, None)
    RequestIdFilter().filter(record)
    return json.loads(jsonlogger.JsonFormatter(LOG_FORMAT).format(record))


def test_filter_uses_default_outside_requests():
    assert _format("idle")["request_id"] == "-"


def test_filter_picks_up_current_request_id():
    token = REQUEST_ID_CTX.set("req-42")
    try:
        line = _format("inside")
    finally:
        REQUEST_ID_CTX.reset(token)
    assert line["request_id"] == "req-42"
    assert line["message"] == "inside"
    assert line["name"] == "storefront.test"


def test_configure_logging_installs_one_handler():
    logger = configure_logging("DEBUG")
    configure_logging("DEBUG")
    handlers = [h for h in logger.handlers if isinstance(h.formatter, jsonlogger.JsonFormatter)]
    assert len(handlers) == 1
    assert logger.level == logging.DEBUG
