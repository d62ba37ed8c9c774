import logging
import sys

from wingside.core.context import request_id_var, user_id_var
from wingside.core.settings import settings

LOG_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | [%(request_id)s] %(message)s'


class ContextInjectingFilter(logging.Filter):
    """
    Injects request_id and user_id from contextvars into the log record.
    """
    def filter(self, record):
        record.request_id = request_id_var.get() or "-"
        record.user_id = user_id_var.get()
        return True


def setup_api_logger():
    """Setup logging for FastAPI application"""

    logger = logging.getLogger()
    logger.setLevel(settings.LOG_LEVEL)

    # Re-running (reload, tests) must not stack handlers
    for handler in list(logger.handlers):
        if getattr(handler, "_wingside", False):
            logger.removeHandler(handler)

    # Console Handler (Standard Output)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(settings.LOG_LEVEL)
    console_handler._wingside = True

    formatter = logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')
    console_handler.setFormatter(formatter)

    # Filter on the handler so records from every named logger get the context
    console_handler.addFilter(ContextInjectingFilter())
    logger.addHandler(console_handler)

    # Provider SDKs are chatty at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("hpack").setLevel(logging.WARNING)

    return logger
