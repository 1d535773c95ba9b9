"""Time handles and a thread-local mock clock for reproducible tests."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field

__all__ = ["TimeHandle", "now", "mock_clock_reset", "mock_clock_advance"]

_NANOS_PER_MICRO = 1_000
_NANOS_PER_SECOND = 1_000_000_000

_mock = threading.local()


def now() -> int:
    """Return the current monotonic time in nanoseconds.

    When the mock clock has been reset in the calling thread, the mocked time
    is returned instead and only moves through ``mock_clock_advance``.
    """
    mocked = getattr(_mock, "instant_ns", None)
    if mocked is not None:
        return mocked
    return time.monotonic_ns()


def mock_clock_reset() -> None:
    """Freeze this thread's clock at the current time.

    Should be called at the beginning of a test, before metric scopes are created.
    """
    _mock.instant_ns = time.monotonic_ns()


def mock_clock_advance(seconds: float) -> None:
    """Advance this thread's mock clock by the given number of seconds."""
    if seconds < 0:
        raise ValueError("cannot move the clock backwards")
    current = getattr(_mock, "instant_ns", None)
    if current is None:
        current = time.monotonic_ns()
    _mock.instant_ns = current + round(seconds * _NANOS_PER_SECOND)


@dataclass(frozen=True)
class TimeHandle:
    """An opaque handle on a point in time, used to measure intervals."""

    instant_ns: int = field(default_factory=now)

    @classmethod
    def now(cls) -> "TimeHandle":
        """Get a handle on the current time."""
        return cls(now())

    def elapsed_us(self) -> int:
        """Microseconds elapsed since this handle was obtained."""
        return max(0, now() - self.instant_ns) // _NANOS_PER_MICRO

    def elapsed_ms(self) -> int:
        """Milliseconds elapsed since this handle was obtained."""
        return self.elapsed_us() // 1000