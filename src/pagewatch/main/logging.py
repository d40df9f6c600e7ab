import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from rich.logging import RichHandler

from pagewatch.main.config import get_loglevel
from pagewatch.main.request_context import get_request_context

JSON_LOGS_ENABLED = os.getenv("JSON_LOGS", "true").lower() in {"1", "true", "yes", "on"}

# Attributes every LogRecord carries; anything else came in through ``extra``
_RECORD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
    "taskName",
}

THIRD_PARTY_LOGGERS = ("aiohttp.access", "arq.worker", "arq.jobs", "uvicorn.access")


class ContextJSONFormatter(logging.Formatter):
    """One JSON object per line.

    Keys, in order of precedence: the fixed record fields, the invocation
    context (``correlation_id``, ``phase``, ``job_id``, ``batch_index``) and
    whatever the call site passed in ``extra``.
    """

    def format(self, record: logging.LogRecord) -> str:
        log: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in get_request_context().items():
            if value is not None:
                log.setdefault(key, value)

        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key.startswith("_") or value is None:
                continue
            log.setdefault(key, value)

        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)

        return json.dumps(log, default=str, ensure_ascii=False)


def _quiet_third_party_loggers(level: int) -> None:
    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO if level <= logging.DEBUG else logging.WARNING)


def _build_handler(level: int) -> logging.Handler:
    if JSON_LOGS_ENABLED:
        handler = logging.StreamHandler(stream=sys.stdout)
        handler.setFormatter(ContextJSONFormatter())
    else:
        handler = RichHandler(rich_tracebacks=True, markup=False, show_path=True)
    handler.setLevel(level)
    return handler


_quiet_third_party_loggers(get_loglevel())


def get_logger(module_name: str) -> logging.Logger:
    logger = logging.getLogger(module_name)
    if not logger.handlers:
        level = get_loglevel()
        logger.setLevel(level)
        logger.addHandler(_build_handler(level))
        # Handled here, keep uvicorn's root config from printing it twice
        logger.propagate = False
    return logger
