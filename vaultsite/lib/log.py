"""Structured logging for build sessions."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, TextIO

import structlog
from structlog.types import Processor


class _CurrentStderr:
    """Writes to whatever sys.stderr is at call time.

    Loggers are cached on first use; CliRunner and the rich progress
    display both replace sys.stderr after that.
    """

    def write(self, s: str) -> int:
        return sys.stderr.write(s)

    def flush(self) -> None:
        sys.stderr.flush()

    def isatty(self) -> bool:
        return sys.stderr.isatty()


_stderr: TextIO = _CurrentStderr()  # type: ignore[assignment]


def _level(verbose: bool, quiet: bool) -> int:
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def configure_logging(verbose: bool = False, json_logs: bool = False, *, quiet: bool = False) -> None:
    """Route vaultsite logs to stderr, as console lines or JSON lines."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if json_logs:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors += [structlog.dev.set_exc_info, structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(_level(verbose, quiet)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=_stderr),
        cache_logger_on_first_use=True,
    )


@contextmanager
def export_session(**fields: Any) -> Iterator[None]:
    """Attach ``fields`` (destination, mode) to every log line of a session."""
    with structlog.contextvars.bound_contextvars(**fields):
        yield


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)


__all__ = ["configure_logging", "export_session", "get_logger"]
