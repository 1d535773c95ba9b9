"""Metric definition scopes and the typed instruments applications record through."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Optional, TypeVar, Union

from .clock import TimeHandle
from .labels import Labels

__all__ = [
    "MetricValue",
    "MetricName",
    "InputKind",
    "MetricId",
    "InputMetric",
    "InputScope",
    "Input",
    "Marker",
    "Counter",
    "Level",
    "Gauge",
    "Timer",
]

MetricValue = int
"""Base type of recorded metric values."""

MetricName = Union[str, Iterable[str]]
"""A metric name: a single part or a sequence of name parts."""

_VALUE_MIN = -(2**63)
_VALUE_MAX = 2**63 - 1
_UNSIGNED_MAX = 2**64 - 1

R = TypeVar("R")


def _name_parts(name: MetricName) -> tuple[str, ...]:
    if isinstance(name, str):
        return (name,)
    return tuple(name)


def _to_metric_value(value: Union[int, float]) -> MetricValue:
    """Truncate a number to a metric value, rejecting what cannot be represented."""
    converted = math.trunc(value)
    if not _VALUE_MIN <= converted <= _VALUE_MAX:
        raise OverflowError(f"value {value!r} does not fit a metric value")
    return converted


class InputKind(Enum):
    """The kinds of metrics, used by backends to tell them apart."""

    MARKER = "Marker"
    """Monotonic counter."""
    COUNTER = "Counter"
    """Accumulation of strictly positive quantities."""
    LEVEL = "Level"
    """Cumulative quantity fluctuation."""
    GAUGE = "Gauge"
    """Instant measurement of a resource at a point in time."""
    TIMER = "Timer"
    """Time interval, measured internally or provided by an external source."""

    @classmethod
    def from_name(cls, name: str) -> "InputKind":
        """Return the kind named by its instrument type name, e.g. ``"Counter"``."""
        try:
            return cls(name)
        except ValueError:
            raise ValueError(f"No InputKind '{name}' defined") from None


@dataclass(frozen=True, order=True)
class MetricId:
    """A metric identifier."""

    value: str

    @classmethod
    def forge(cls, out_type: str, name: MetricName) -> "MetricId":
        """Build an identifier from an output type and a metric name."""
        return cls(f"{out_type}:{'/'.join(_name_parts(name))}")

    def __str__(self) -> str:
        return self.value


class InputMetric:
    """A function that writes values of one metric to an output."""

    __slots__ = ("_identifier", "_write_fn")

    def __init__(
        self,
        identifier: MetricId,
        write_fn: Callable[[MetricValue, Labels], None],
    ) -> None:
        self._identifier = identifier
        self._write_fn = write_fn

    def __repr__(self) -> str:
        return f"InputMetric({self._identifier.value!r})"

    def write(self, value: MetricValue, labels: Optional[Labels] = None) -> None:
        """Collect a new value for this metric."""
        self._write_fn(value, labels if labels is not None else Labels())

    def metric_id(self) -> MetricId:
        """Return the unique identifier of this metric."""
        return self._identifier


class _Instrument:
    """A typed front over an ``InputMetric``."""

    __slots__ = ("metric",)

    def __init__(self, metric: InputMetric) -> None:
        self.metric = metric

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.metric.metric_id().value!r})"

    def write(self, value: MetricValue, labels: Optional[Labels] = None) -> None:
        """Write a raw value to the underlying metric."""
        self.metric.write(value, labels)

    def metric_id(self) -> MetricId:
        """Return the identifier of the underlying metric."""
        return self.metric.metric_id()


class Marker(_Instrument):
    """A monotonic counter that only ever goes up by one."""

    __slots__ = ()

    def mark(self) -> None:
        """Record a single event occurrence."""
        self.metric.write(1, Labels())


class Counter(_Instrument):
    """A counter of non-negative amounts, such as bytes sent or records written.

    When aggregated, minimum and maximum track the collected values, not their sum.
    """

    __slots__ = ()

    def count(self, count: int) -> None:
        """Record a value count."""
        if count < 0:
            raise ValueError(f"counter values must not be negative, got {count!r}")
        if count > _UNSIGNED_MAX:
            raise OverflowError(f"count {count!r} is too large")
        self.metric.write(_to_metric_value(count), Labels())


class Level(_Instrument):
    """A counter of fluctuating resources accepting positive and negative values.

    When aggregated, minimum and maximum track the running sum of values.
    """

    __slots__ = ()

    def adjust(self, count: Union[int, float]) -> None:
        """Record a positive or negative change."""
        self.metric.write(_to_metric_value(count), Labels())


class Gauge(_Instrument):
    """A gauge reporting point-in-time values."""

    __slots__ = ()

    def value(self, value: Union[int, float]) -> None:
        """Record a value point for this gauge."""
        self.metric.write(_to_metric_value(value), Labels())


class Timer(_Instrument):
    """A timer recording microsecond intervals.

    Intervals can be recorded with ``time(operation)``, with ``start()`` and
    ``stop()`` around the operation, or directly with ``interval_us()``.
    """

    __slots__ = ()

    def interval_us(self, interval_us: int) -> int:
        """Record a microsecond interval and return it."""
        if interval_us < 0:
            raise ValueError(f"intervals must not be negative, got {interval_us!r}")
        if interval_us > _UNSIGNED_MAX:
            raise OverflowError(f"interval {interval_us!r} is too large")
        self.metric.write(_to_metric_value(interval_us), Labels())
        return interval_us

    def start(self) -> TimeHandle:
        """Return a handle on the current time, to be passed to ``stop()``."""
        return TimeHandle.now()

    def stop(self, start_time: TimeHandle) -> int:
        """Record the time elapsed since ``start_time`` and return it in microseconds.

        May be called several times with the same handle.
        """
        return self.interval_us(start_time.elapsed_us())

    def time(self, operation: Callable[[], R]) -> R:
        """Run ``operation``, record how long it took and return its result."""
        start_time = self.start()
        result = operation()
        self.stop(start_time)
        return result


class InputScope(ABC):
    """A scope in which metrics are defined, written and flushed."""

    @abstractmethod
    def new_metric(self, name: MetricName, kind: InputKind) -> InputMetric:
        """Define a metric of the given kind.

        The typed ``counter()``, ``marker()``, ``timer()``, ``gauge()`` and
        ``level()`` methods are preferable.
        """

    def counter(self, name: MetricName) -> Counter:
        """Define a counter."""
        return Counter(self.new_metric(name, InputKind.COUNTER))

    def marker(self, name: MetricName) -> Marker:
        """Define a marker."""
        return Marker(self.new_metric(name, InputKind.MARKER))

    def timer(self, name: MetricName) -> Timer:
        """Define a timer."""
        return Timer(self.new_metric(name, InputKind.TIMER))

    def gauge(self, name: MetricName) -> Gauge:
        """Define a gauge."""
        return Gauge(self.new_metric(name, InputKind.GAUGE))

    def level(self, name: MetricName) -> Level:
        """Define a level."""
        return Level(self.new_metric(name, InputKind.LEVEL))

    def flush(self) -> None:
        """Flush recorded data; does nothing unless a scope buffers output.

        Raises ``OSError`` when the output fails.
        """


class Input(ABC):
    """A source of new metric scopes."""

    @abstractmethod
    def metrics(self) -> InputScope:
        """Open a new scope from this input."""