"""Cooperative cancellation for build sessions."""

from __future__ import annotations

import threading


class CancellationToken:
    """Thread-safe flag polled by the build loop before each unit of work."""

    __slots__ = ("_event", "reason")

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: str | None = None

    def cancel(self, reason: str | None = None) -> None:
        self.reason = reason
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()


class NeverCancelled:
    """Cancellation source for sessions that always run to completion."""

    def is_cancelled(self) -> bool:
        return False


__all__ = ["CancellationToken", "NeverCancelled"]
