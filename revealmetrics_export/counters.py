"""Process-wide failure counter exposed for external monitoring."""

from __future__ import annotations

import threading


class ExceptionCounter:
    """Monotonically increasing count of recoverable failures.

    Safe to share between threads. There is intentionally no reset.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0

    def increment(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def __int__(self) -> int:
        return self.value

    def __repr__(self) -> str:
        return f"ExceptionCounter(value={self.value})"


__all__ = ["ExceptionCounter"]
