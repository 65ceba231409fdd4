"""Structured logging for evocore.

All components log through structlog with snake_case event names and
keyword fields. ``configure_logging`` installs the processor chain once;
``get_logger`` hands out lightweight loggers bound to a component name.

While an engine operation runs, its ``OperationContext`` is attached to every
event, so a single ``record_success`` call can be followed across the
recorder, miner and state layers by its ``run_id``.

Example:
    configure_logging(level="DEBUG", format="json")
    log = get_logger("miner")

    with with_context(OperationContext("record_success")):
        log.info("pattern_merged", pattern_id="learn_ab12", count=3)
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]

# Substrings of field names whose values are never written out
SENSITIVE_PATTERNS = frozenset({
    "api_key",
    "apikey",
    "api-key",
    "token",
    "secret",
    "password",
    "credential",
    "bearer",
    "authorization",
})

REDACTED = "[REDACTED]"


# =============================================================================
# Operation context
# =============================================================================


@dataclass(frozen=True)
class OperationContext:
    """Identifies one invocation of a public engine operation."""

    operation: str
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    dry_run: bool = False

    def to_dict(self) -> dict[str, Any]:
        fields: dict[str, Any] = {"operation": self.operation, "run_id": self.run_id}
        if self.dry_run:
            fields["dry_run"] = True
        return fields


_operation: ContextVar[OperationContext | None] = ContextVar(
    "evocore_operation", default=None
)


def get_current_context() -> OperationContext | None:
    return _operation.get()


@contextmanager
def with_context(ctx: OperationContext) -> Iterator[OperationContext]:
    """Make ``ctx`` the current operation until the block exits."""
    token = _operation.set(ctx)
    try:
        yield ctx
    finally:
        _operation.reset(token)


# =============================================================================
# Processors
# =============================================================================


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(pattern in lowered for pattern in SENSITIVE_PATTERNS)


def _sanitize_value(key: str, value: Any) -> Any:
    return REDACTED if _is_sensitive(key) else value


def _sanitize_event_dict(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Redact sensitive fields, looking one level into dict values."""
    cleaned: EventDict = {}
    for key, value in event_dict.items():
        if isinstance(value, dict):
            cleaned[key] = {k: _sanitize_value(k, v) for k, v in value.items()}
        else:
            cleaned[key] = _sanitize_value(key, value)
    return cleaned


def _add_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Copy the current OperationContext into the event.

    Fields passed explicitly to the log call win.
    """
    ctx = _operation.get()
    if ctx is not None:
        for key, value in ctx.to_dict().items():
            event_dict.setdefault(key, value)
    return event_dict


def _build_processors(
    renderer: Processor,
    include_timestamps: bool,
    include_context: bool,
) -> list[Processor]:
    chain: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        _sanitize_event_dict,
    ]
    if include_context:
        chain.append(_add_context)
    if include_timestamps:
        chain.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    chain += [
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer,
    ]
    return chain


def _build_handler(
    file_path: Path | None,
    max_file_size_mb: int,
    backup_count: int,
) -> logging.Handler:
    if file_path is None:
        return logging.StreamHandler(sys.stderr)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        file_path,
        maxBytes=max_file_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8",
    )


# =============================================================================
# Logger
# =============================================================================


class EvoLogger:
    """Component-scoped logger.

    The structlog logger is resolved on every call, so module-level
    instances created before ``configure_logging`` still honour it.
    """

    def __init__(self, component: str, **initial_context: Any) -> None:
        self._context: dict[str, Any] = {"component": component, **initial_context}

    def bind(self, **context: Any) -> EvoLogger:
        bound = EvoLogger.__new__(EvoLogger)
        bound._context = {**self._context, **context}
        return bound

    def _log(self, level: str, event: str, **kw: Any) -> None:
        logger = structlog.get_logger().bind(**self._context)
        getattr(logger, level)(event, **kw)

    def debug(self, event: str, **kw: Any) -> None:
        self._log("debug", event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._log("info", event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._log("warning", event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._log("error", event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log at error level with the active exception's traceback."""
        self._log("exception", event, **kw)


def configure_logging(
    level: LogLevel = "INFO",
    format: LogFormat = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 10,
    backup_count: int = 3,
    include_timestamps: bool = True,
    include_context: bool = True,
) -> None:
    """Route evocore logging to stderr or a rotating file.

    Replaces any handlers already on the root logger.

    Args:
        level: Minimum level written.
        format: ``json`` for one object per line, ``console`` for humans.
        file_path: Rotating log file; stderr when omitted.
        max_file_size_mb: Size at which the file is rotated.
        backup_count: Rotated files kept.
        include_timestamps: Add an ISO-8601 UTC ``timestamp`` field.
        include_context: Add the current OperationContext fields.
    """
    log_level = logging.getLevelName(level)

    handler = _build_handler(file_path, max_file_size_mb, backup_count)
    handler.setLevel(log_level)

    root = logging.getLogger()
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(log_level)

    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if format == "json"
        else structlog.dev.ConsoleRenderer(colors=file_path is None)
    )

    structlog.configure(
        processors=_build_processors(renderer, include_timestamps, include_context),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str, **initial_context: Any) -> EvoLogger:
    """Logger for ``component`` (e.g. "recorder", "state")."""
    return EvoLogger(component, **initial_context)


__all__ = [
    "EvoLogger",
    "OperationContext",
    "SENSITIVE_PATTERNS",
    "configure_logging",
    "get_current_context",
    "get_logger",
    "with_context",
]
