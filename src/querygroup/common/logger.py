"""Logging setup for query group operations.

Records emitted while a bridge operation runs carry the group id and the
operation name, stamped from context variables by ``GroupContextFilter``.
"""
import contextvars
import json
import logging
from contextlib import contextmanager
from typing import Optional

_group_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("group_id", default=None)
_operation_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("operation", default=None)

TEXT_FORMAT = "%(asctime)s %(levelname)-7s [%(group_id)s/%(operation)s] %(name)s: %(message)s"

# LogRecord attributes that are never copied into JSON output as extras.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message", "asctime", "group_id", "operation",
}


class GroupContextFilter(logging.Filter):
    """Stamps ``group_id`` and ``operation`` on every record ('-' outside a group)."""

    def filter(self, record):
        record.group_id = _group_id_ctx.get() or "-"
        record.operation = _operation_ctx.get() or "-"
        return True


@contextmanager
def group_context(group_id: str, operation: Optional[str] = None):
    """Marks the records logged inside the block as belonging to ``group_id``.

    A nested block without ``operation`` keeps the enclosing operation.
    """
    group_token = _group_id_ctx.set(group_id)
    op_token = _operation_ctx.set(operation) if operation is not None else None
    try:
        yield
    finally:
        if op_token is not None:
            _operation_ctx.reset(op_token)
        _group_id_ctx.reset(group_token)


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with the group context as top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in ("group_id", "operation"):
            value = getattr(record, key, None)
            if value and value != "-":
                entry[key] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        entry.update(
            (k, v) for k, v in record.__dict__.items() if k not in _RECORD_ATTRS and not k.startswith("_")
        )
        return json.dumps(entry, default=str)


def configure_logging(level: str = "INFO", json_format: bool = False):
    """Replaces the root handlers with one stream handler carrying the group context.

    Args:
        level (str): The logging level (default: INFO).
        json_format (bool): Emit JSON lines instead of text (default: False).
    """
    handler = logging.StreamHandler()
    handler.addFilter(GroupContextFilter())
    handler.setFormatter(JsonFormatter() if json_format else logging.Formatter(TEXT_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    # httpx logs every request at INFO.
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
