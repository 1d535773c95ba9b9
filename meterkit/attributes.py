"""Attributes shared by metric components: naming, sampling, buffering and flush observers."""

from __future__ import annotations

import copy
import itertools
import threading
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import ClassVar, Generic, Optional, TypeVar, Union

from .clock import TimeHandle
from .input import InputMetric, MetricId, MetricName, MetricValue
from .labels import Labels

__all__ = [
    "Sampling",
    "Buffering",
    "Attributes",
    "WithAttributes",
    "ObserveWhen",
    "OnFlushCancel",
]


def _parts(name: MetricName) -> tuple[str, ...]:
    if isinstance(name, str):
        return (name,)
    return tuple(name)


@dataclass(frozen=True)
class Sampling:
    """How collected values are sampled.

    A ``rate`` of ``None`` records every value. A floating point rate records
    that fraction of values: 1.0 and above records everything, 0.5 one value
    in two, 0.0 nothing.
    """

    rate: Optional[float] = None

    FULL: ClassVar["Sampling"]

    @classmethod
    def random(cls, rate: float) -> "Sampling":
        """Random sampling at the given rate."""
        return cls(float(rate))

    @property
    def is_full(self) -> bool:
        """True when every value is recorded."""
        return self.rate is None


Sampling.FULL = Sampling()


class _BufferMode(Enum):
    UNBUFFERED = "unbuffered"
    SIZED = "sized"
    UNLIMITED = "unlimited"


@dataclass(frozen=True)
class Buffering:
    """An output buffering strategy.

    Strategies other than unbuffered are best effort: the buffer may be
    flushed at any moment before reaching its limit.
    """

    mode: _BufferMode = _BufferMode.UNBUFFERED
    size: Optional[int] = None

    UNBUFFERED: ClassVar["Buffering"]
    UNLIMITED: ClassVar["Buffering"]

    @classmethod
    def buffer_size(cls, size: int) -> "Buffering":
        """A buffer of at most ``size`` bytes."""
        if size < 0:
            raise ValueError(f"buffer size must not be negative, got {size!r}")
        return cls(_BufferMode.SIZED, size)


Buffering.UNBUFFERED = Buffering()
Buffering.UNLIMITED = Buffering(_BufferMode.UNLIMITED)


_ID_GENERATOR = itertools.count()
_id_lock = threading.Lock()


def _next_listener_id() -> int:
    with _id_lock:
        return next(_ID_GENERATOR)


class _FlushListeners:
    """Flush listeners keyed by metric, shared between clones of a component."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[MetricId, tuple[int, Callable[[TimeHandle], None]]] = {}

    def install(
        self, metric_id: MetricId, listener_id: int, listener: Callable[[TimeHandle], None]
    ) -> None:
        with self._lock:
            self._listeners[metric_id] = (listener_id, listener)

    def remove(self, metric_id: MetricId, listener_id: int) -> None:
        with self._lock:
            installed = self._listeners.get(metric_id)
            if installed is not None and installed[0] == listener_id:
                del self._listeners[metric_id]

    def snapshot(self) -> list[Callable[[TimeHandle], None]]:
        with self._lock:
            return [listener for _, listener in self._listeners.values()]


@dataclass
class Attributes:
    """Attributes common to metric components; not every component uses all of them."""

    naming: tuple[str, ...] = ()
    sampling: Sampling = Sampling.FULL
    buffering: Buffering = Buffering.UNBUFFERED
    listeners: _FlushListeners = field(
        default_factory=_FlushListeners, repr=False, compare=False
    )


class OnFlushCancel:
    """A handle that removes a flush observer."""

    def __init__(self, cancel_fn: Callable[[], None]) -> None:
        self._cancel_fn = cancel_fn

    def cancel(self) -> None:
        """Stop observing; has no effect if a newer observer replaced this one."""
        self._cancel_fn()


T = TypeVar("T", bound="WithAttributes")


class ObserveWhen(Generic[T]):
    """A pending observation; says when a metric's value is to be sampled."""

    def __init__(
        self,
        target: T,
        metric: InputMetric,
        operation: Callable[[TimeHandle], MetricValue],
    ) -> None:
        self.target = target
        self.metric = metric
        self.operation = operation

    def on_flush(self) -> OnFlushCancel:
        """Observe the metric's value each time the target scope is flushed."""
        metric = self.metric
        operation = self.operation
        metric_id = metric.metric_id()
        listener_id = _next_listener_id()

        def listener(now: TimeHandle) -> None:
            metric.write(operation(now), Labels())

        listeners = self.target.attributes.listeners
        listeners.install(metric_id, listener_id, listener)
        return OnFlushCancel(lambda: listeners.remove(metric_id, listener_id))


class WithAttributes:
    """Mixin for components carrying ``Attributes``.

    Every modifying operation returns a modified clone; flush listeners stay
    shared between a component and its clones.
    """

    def __init__(self, attributes: Optional[Attributes] = None) -> None:
        self.attributes = attributes if attributes is not None else Attributes()

    def with_attributes(self: T, edit: Callable[[Attributes], None]) -> T:
        """Clone the component and apply ``edit`` to the clone's attributes."""
        cloned = copy.copy(self)
        cloned.attributes = replace(self.attributes)
        edit(cloned.attributes)
        return cloned

    def prefixes(self) -> tuple[str, ...]:
        """Return the component's namespace."""
        return self.attributes.naming

    def add_name(self: T, name: str) -> T:
        """Return a clone with ``name`` appended to the namespace."""

        def edit(attributes: Attributes) -> None:
            attributes.naming = attributes.naming + (name,)

        return self.with_attributes(edit)

    def named(self: T, name: str) -> T:
        """Return a clone whose namespace is replaced by the single ``name``."""

        def edit(attributes: Attributes) -> None:
            attributes.naming = (name,)

        return self.with_attributes(edit)

    def prefix_append(self, name: MetricName) -> tuple[str, ...]:
        """Put the namespace in front of ``name``."""
        return self.attributes.naming + _parts(name)

    def prefix_prepend(self, name: MetricName) -> tuple[str, ...]:
        """Put the namespace after ``name``."""
        return _parts(name) + self.attributes.naming

    def sampled(self: T, sampling: Sampling) -> T:
        """Return a clone using the given sampling."""

        def edit(attributes: Attributes) -> None:
            attributes.sampling = sampling

        return self.with_attributes(edit)

    def buffered(self: T, buffering: Buffering) -> T:
        """Return a clone using the given buffering; affects scopes opened afterwards."""

        def edit(attributes: Attributes) -> None:
            attributes.buffering = buffering

        return self.with_attributes(edit)

    def is_buffered(self) -> bool:
        """False only when buffering is ``Buffering.UNBUFFERED``."""
        return self.attributes.buffering != Buffering.UNBUFFERED

    def observe(
        self: T,
        metric: Union[InputMetric, object],
        operation: Callable[[TimeHandle], MetricValue],
    ) -> ObserveWhen[T]:
        """Provide a source for a metric's values; call ``on_flush()`` on the result."""
        input_metric = metric if isinstance(metric, InputMetric) else getattr(metric, "metric")
        return ObserveWhen(self, input_metric, operation)

    def notify_flush_listeners(self) -> None:
        """Notify registered observers of an impending flush."""
        now = TimeHandle.now()
        for listener in self.attributes.listeners.snapshot():
            listener(now)