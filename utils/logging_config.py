"""
Logging setup for the chat client and server.

Console output is human-readable in debug runs and JSON otherwise; the log
file is always JSON. Chat context passed through ``extra`` (user, message,
connectivity) is lifted into its own ``chat`` object so log lines about one
user or one message can be filtered without parsing free text.
"""

import json
import logging
import logging.handlers
import time
from collections import Counter
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from config.app_config import get_config

# Attributes every LogRecord carries; anything else came in through ``extra``
_RECORD_ATTRS = set(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {"message", "asctime"}

# ``extra`` keys that describe chat state rather than the event itself
CHAT_FIELDS = ("user_id", "message_id", "connectivity", "chat_event_type", "interaction_type")

# Libraries that log every request the poll loop makes
NOISY_LOGGERS = ("urllib3", "httpx", "httpcore", "openai")


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per record, with chat context split out from other extras
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        extras = {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}
        chat = {field: extras.pop(field) for field in CHAT_FIELDS if field in extras}
        if chat:
            entry["chat"] = chat
        if extras:
            entry["extra"] = extras

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging() -> logging.Logger:
    """Configure the root logger from the logging section of the app config"""
    config = get_config()
    level = getattr(logging, config.logging.level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    if config.debug:
        console_handler.setFormatter(logging.Formatter(config.logging.format))
    else:
        console_handler.setFormatter(StructuredFormatter())
    root_logger.addHandler(console_handler)

    if config.logging.enable_file_logging:
        log_file = Path(config.logging.log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


@contextmanager
def log_execution_time(logger: logging.Logger, operation: str, **fields):
    """
    Log how long the wrapped block took, at debug on success and error on failure

    Args:
        logger: Logger instance
        operation: Short name of the timed operation (e.g. "ai_completion")
        **fields: Chat context to attach (user_id, message_id, ...)
    """
    started = time.perf_counter()
    try:
        yield
    except Exception as e:
        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
        logger.error(f"{operation} failed after {elapsed_ms}ms: {e}", exc_info=True, extra={
            "operation": operation, "duration_ms": elapsed_ms, "error_type": type(e).__name__, **fields
        })
        raise

    elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
    logger.debug(f"{operation} took {elapsed_ms}ms", extra={
        "operation": operation, "duration_ms": elapsed_ms, **fields
    })


def log_user_interaction(logger: logging.Logger, interaction_type: str, **details):
    """Record something the user did (send_message, purchase, update_profile, ...)"""
    logger.info(f"User interaction: {interaction_type}",
                extra={"interaction_type": interaction_type, **details})


def log_chat_event(logger: logging.Logger, event_type: str, **details):
    """Record a transcript-level event: connectivity changes, swallowed writes, AI replies"""
    logger.info(f"Chat event: {event_type}",
                extra={"chat_event_type": event_type, **details})


class ErrorTracker:
    """
    Counts errors per (type, operation) and logs each one with its running count
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.error_counts: Counter = Counter()

    def track_error(self, error: Exception, context: str = "", **extra_info):
        key = f"{type(error).__name__}:{context}"
        self.error_counts[key] += 1
        self.logger.error(f"Error in {context}: {error}", exc_info=error, extra={
            "error_type": type(error).__name__,
            "context": context,
            "error_count": self.error_counts[key],
            **extra_info,
        })

    def get_error_summary(self) -> Dict[str, Any]:
        return {
            "total_errors": sum(self.error_counts.values()),
            "unique_errors": len(self.error_counts),
            "error_breakdown": dict(self.error_counts),
        }


_error_tracker: Optional[ErrorTracker] = None


def initialize_logging() -> ErrorTracker:
    """Set up logging once per process and return the shared error tracker"""
    global _error_tracker
    if _error_tracker is None:
        setup_logging()
        _error_tracker = ErrorTracker(logging.getLogger("oceanchat.errors"))
    return _error_tracker
