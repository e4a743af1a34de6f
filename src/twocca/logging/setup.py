"""Structured logging configuration for twocca.

Provides JSON and text formatters, a command-context filter that
stamps every log record with the running CLI verb and target identity,
and a one-call ``configure_logging`` function driven by config settings.
"""

from __future__ import annotations

import contextlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from twocca.config.settings import LoggingSettings

# Attributes that are part of the standard LogRecord; everything
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
        # Our own well-known context attributes (handled explicitly):
        "command",
        "identity",
    }
)

_command: ContextVar[str | None] = ContextVar("twocca_command", default=None)
_identity: ContextVar[str | None] = ContextVar("twocca_identity", default=None)


@contextlib.contextmanager
def command_context(command: str, identity: str | None = None) -> Iterator[None]:
    """Attach *command* and *identity* to every record logged inside the block."""
    command_token = _command.set(command)
    identity_token = _identity.set(identity)
    try:
        yield
    finally:
        _identity.reset(identity_token)
        _command.reset(command_token)


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class StructuredFormatter(logging.Formatter):
    """JSON-lines formatter for machine-readable logging.

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

        # Command context (set by CommandContextFilter)
        command = getattr(record, "command", None)
        if command is not None:
            data["command"] = command

        identity = getattr(record, "identity", None)
        if identity is not None:
            data["identity"] = identity

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
    """Human-readable formatter for console use."""

    _FMT = "%(asctime)s %(levelname)-8s [%(command)s] %(identity)s %(name)s - %(message)s"

    def __init__(self) -> None:
        super().__init__(fmt=self._FMT, datefmt="%Y-%m-%d %H:%M:%S")


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


class CommandContextFilter(logging.Filter):
    """Inject the running command into every log record.

    Adds ``command`` and ``identity`` from :func:`command_context` when
    one is active, otherwise falls back to ``"-"``.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not hasattr(record, "command"):
            record.command = _command.get() or "-"  # type: ignore[attr-defined]
        if not hasattr(record, "identity"):
            record.identity = _identity.get() or "-"  # type: ignore[attr-defined]
        return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Configure the ``twocca`` logger hierarchy from settings.

    Replaces any bootstrap handlers with properly formatted output.
    Sets up an optional audit logger if ``settings.audit.enabled``.

    Returns the root ``twocca`` logger.
    """
    level = getattr(logging, settings.level.upper(), logging.INFO)

    # ── Root twocca logger ──────────────────────────────────────────
    root = logging.getLogger("twocca")
    root.setLevel(level)
    root.handlers.clear()
    root.propagate = False

    formatter: logging.Formatter
    formatter = StructuredFormatter() if settings.format == "json" else TextFormatter()

    ctx_filter = CommandContextFilter()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.addFilter(ctx_filter)
    root.addHandler(console)

    # ── Audit logger ────────────────────────────────────────────────
    audit = logging.getLogger("twocca.audit")
    audit.handlers.clear()
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
    else:
        audit.setLevel(logging.CRITICAL + 1)

    return root
