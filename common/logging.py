import logging
import sys
from pythonjsonlogger.json import JsonFormatter

from common.context import RequestContext


HANDLER_NAME = "service-json"
LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s'


class RequestLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that keeps call-site `extra` and adds the request id."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def parse_level(value: str) -> int | None:
    """Map a level name such as 'info' or 'WARN' to a logging constant."""
    name = value.strip().upper()
    if name == "WARN":
        name = "WARNING"
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else None


def configure_logging(level: int = logging.INFO):
    """Configure root logger to output JSON lines to stdout."""
    root = logging.getLogger()
    root.setLevel(level)
    # avoid adding multiple handlers when called again
    if any(h.get_name() == HANDLER_NAME for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(JsonFormatter(LOG_FORMAT))
    root.addHandler(handler)


def get_logger(name: str = 'app', context: RequestContext | None = None) -> RequestLoggerAdapter:
    """Return a LoggerAdapter that injects `request_id` into log records."""
    base = logging.getLogger(name)
    extra = {'request_id': context.request_id if context else None}
    return RequestLoggerAdapter(base, extra)
