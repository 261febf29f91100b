"""Structured logging utilities for mode-fusion.

Provides a consistent logging setup with:
- Serialized JSON logging for production
- Human-readable format for development
- Context injection for trace, session and mode identifiers
- Log level configuration from environment
"""

from __future__ import annotations

import os
import sys
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger

if TYPE_CHECKING:
    from loguru import Logger, Record

# Context variables for run tracking
_trace_id: ContextVar[str | None] = ContextVar("trace_id", default=None)
_session_id: ContextVar[str | None] = ContextVar("session_id", default=None)
_mode: ContextVar[str | None] = ContextVar("mode", default=None)


class LogFormat(str, Enum):
    """Supported log output formats."""

    JSON = "json"
    TEXT = "text"


class LogLevel(str, Enum):
    """Supported log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{extra[context]}"
    "<level>{message}</level>"
)


def inject_context(record: Record) -> None:
    """Loguru patcher copying context variables into ``record["extra"]``."""
    extra = record["extra"]
    parts = []
    if trace_id := _trace_id.get():
        extra.setdefault("trace_id", trace_id)
        parts.append(f"trace={trace_id[:8]}")
    if session_id := _session_id.get():
        extra.setdefault("session_id", session_id)
        parts.append(f"sess={session_id[:8]}")
    if mode := _mode.get():
        extra.setdefault("mode", mode)
        parts.append(f"mode={mode}")
    extra["context"] = f"[{' '.join(parts)}] " if parts else ""


def configure_logging(
    level: LogLevel | str | None = None,
    log_format: LogFormat | str | None = None,
    log_file: str | Path | None = None,
) -> None:
    """Configure loguru sinks for the library.

    Reads configuration from environment variables if not specified:
    - LOG_LEVEL: Minimum log level (DEBUG, INFO, WARNING, ERROR)
    - LOG_FORMAT: Output format (json, text)
    - LOG_FILE: Optional file path for log output

    Args:
        level: Minimum log level.
        log_format: Output format (json or text).
        log_file: Optional file path for log output.

    """
    resolved_level = LogLevel(str(level or os.getenv("LOG_LEVEL", "INFO")).upper())
    resolved_format = LogFormat(str(log_format or os.getenv("LOG_FORMAT", "text")).lower())
    log_file = log_file or os.getenv("LOG_FILE")

    # Remove default handler
    logger.remove()
    logger.configure(patcher=inject_context)

    if resolved_format == LogFormat.JSON:
        logger.add(
            sys.stderr,
            format="{message}",
            level=resolved_level.value,
            serialize=True,
        )
    else:
        logger.add(
            sys.stderr,
            format=TEXT_FORMAT,
            level=resolved_level.value,
            colorize=True,
        )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_path,
            format="{message}",
            level=resolved_level.value,
            serialize=True,
            rotation="100 MB",
            retention="7 days",
            compression="gz",
        )


@contextmanager
def log_context(
    trace_id: str | None = None,
    session_id: str | None = None,
    mode: str | None = None,
) -> Generator[None, None, None]:
    """Scope logging context for the duration of a block.

    Args:
        trace_id: Trace ID for a single analysis run.
        session_id: Caller session ID for correlation.
        mode: Thinking mode currently executing.

    Example:
        with log_context(session_id="abc123", trace_id=run_id):
            logger.info("Processing")  # Includes session and trace ids

    """
    tokens: list[Any] = []
    if trace_id:
        tokens.append(_trace_id.set(trace_id))
    if session_id:
        tokens.append(_session_id.set(session_id))
    if mode:
        tokens.append(_mode.set(mode))
    try:
        yield
    finally:
        for token in reversed(tokens):
            # Each token knows which ContextVar it came from
            token.var.reset(token)


def get_trace_id() -> str | None:
    """Get the current trace ID from context."""
    return _trace_id.get()


def get_session_id() -> str | None:
    """Get the current session ID from context."""
    return _session_id.get()


def get_mode() -> str | None:
    """Get the currently executing mode from context."""
    return _mode.get()


def get_logger(name: str, **extra: Any) -> Logger:
    """Get a loguru logger bound to a component name.

    Args:
        name: Component name (usually __name__).
        **extra: Additional fields bound to every record.

    Returns:
        Bound loguru logger.

    """
    return logger.bind(component=name, **extra)
