from fastapi import Request
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Any
from rich.logging import RichHandler
from vidproxy.config.settings import LoggingConfig

logger = logging.getLogger(__name__)

LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 5
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s"


class RequestIdDefault(logging.Filter):
    """Supply request_id for records logged outside a request"""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = "-"
        return True


def setup_logging(settings: LoggingConfig) -> None:
    """Console via rich (or plain stream), plus rotated files when a log dir is set"""
    root = logging.getLogger()
    root.setLevel(settings.level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    if settings.enable_rich:
        console: logging.Handler = RichHandler(rich_tracebacks=False, show_path=False)
    else:
        console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(settings.format))
    console.addFilter(RequestIdDefault())
    root.addHandler(console)

    if settings.dir:
        os.makedirs(settings.dir, exist_ok=True)
        for filename, level in (("error.log", logging.ERROR), ("combined.log", logging.NOTSET)):
            handler = RotatingFileHandler(
                os.path.join(settings.dir, filename),
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            )
            handler.setLevel(level)
            handler.setFormatter(logging.Formatter(FILE_FORMAT))
            handler.addFilter(RequestIdDefault())
            root.addHandler(handler)


def log_with_context(
    request: Request,
    level: int,
    message: str,
    **kwargs: Any
) -> None:
    """
    Log with request context.
    Automatically includes request_id and client address for tracing.
    """
    extra = {
        "request_id": getattr(request.state, "request_id", "unknown"),
        "client_ip": request.client.host if request.client else "unknown",
        **kwargs
    }
    logger.log(level, message, extra=extra)


def log_info(request: Request, message: str, **kwargs: Any) -> None:
    log_with_context(request, logging.INFO, message, **kwargs)


def log_error(request: Request, message: str, **kwargs: Any) -> None:
    log_with_context(request, logging.ERROR, message, **kwargs)


def log_warning(request: Request, message: str, **kwargs: Any) -> None:
    log_with_context(request, logging.WARNING, message, **kwargs)
