"""Structured logging configuration for carotate.

Provides JSON and text formatters, a rotation-context filter that
injects the active ``rotation_id`` into every log record, and a
one-call ``configure_logging`` function driven by config settings.
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from carotate.config.settings import LoggingSettings

_rotation_id: contextvars.ContextVar[str] = contextvars.ContextVar(
    "carotate_rotation_id",
    default="-",
)

# Attributes that are part of the standard LogRecord -- everything
# else is considered "extra" and gets included in structured output.
_STANDARD_ATTRS = frozenset(
    {
        "args",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
        # Handled explicitly below
        "rotation_id",
    }
)


@contextlib.contextmanager
def rotation_context(rotation_id: str) -> Iterator[None]:
    """Tag every record logged inside the block with *rotation_id*."""
    token = _rotation_id.set(rotation_id)
    try:
        yield
    finally:
        _rotation_id.reset(token)


def current_rotation_id() -> str:
    return _rotation_id.get()


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class StructuredFormatter(logging.Formatter):
    """JSON-lines formatter for production logging.

    Every record becomes a single JSON object on one line containing
    the standard fields plus any *extra* attributes passed by the
    caller or injected by filters.
    """

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()

        data: dict = {
            "timestamp": datetime.fromtimestamp(
                record.created,
                tz=UTC,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
        }

        rotation_id = getattr(record, "rotation_id", None)
        if rotation_id not in (None, "-"):
            data["rotation_id"] = rotation_id

        # Caller-supplied extra fields
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                data.setdefault(key, value)

        if record.exc_info and record.exc_info[0] is not None:
            data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            data["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for development / console use."""

    _FMT = "%(asctime)s %(levelname)-8s [%(rotation_id)s] %(name)s: %(message)s"

    def __init__(self) -> None:
        super().__init__(fmt=self._FMT, datefmt="%Y-%m-%d %H:%M:%S")


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


class RotationContextFilter(logging.Filter):
    """Inject the active rotation id into every log record.

    Falls back to ``"-"`` outside :func:`rotation_context`.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not hasattr(record, "rotation_id"):
            record.rotation_id = _rotation_id.get()  # type: ignore[attr-defined]
        return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Configure the ``carotate`` logger hierarchy from settings.

    Replaces any bootstrap handlers with properly formatted output.
    Sets up an optional audit file if ``settings.audit.file`` is set.

    Returns the root ``carotate`` logger.
    """
    level = getattr(logging, settings.level.upper(), logging.INFO)

    root = logging.getLogger("carotate")
    root.setLevel(level)
    root.handlers.clear()
    root.propagate = False

    formatter: logging.Formatter
    formatter = StructuredFormatter() if settings.format == "json" else TextFormatter()

    ctx_filter = RotationContextFilter()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.addFilter(ctx_filter)
    root.addHandler(console)

    audit = logging.getLogger("carotate.audit")
    audit.handlers.clear()
    audit.disabled = not settings.audit.enabled
    if settings.audit.enabled:
        audit.setLevel(logging.INFO)

        if settings.audit.file:
            try:
                from logging.handlers import RotatingFileHandler

                fh = RotatingFileHandler(
                    settings.audit.file,
                    maxBytes=settings.audit.max_file_size_bytes,
                    backupCount=settings.audit.backup_count,
                )
                # Audit logs are always structured JSON
                fh.setFormatter(StructuredFormatter())
                fh.addFilter(ctx_filter)
                audit.addHandler(fh)
            except OSError as exc:
                root.warning(
                    "Could not open audit log file %s: %s",
                    settings.audit.file,
                    exc,
                )

    # Quieten noisy third-party loggers
    for lib in ("kubernetes", "urllib3"):
        logging.getLogger(lib).setLevel(logging.WARNING)

    return root
