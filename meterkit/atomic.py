"""Aggregation of metric values for deferred, periodic publication."""

from __future__ import annotations

import math
import threading
import weakref
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .attributes import WithAttributes
from .clock import TimeHandle
from .input import (
    Input,
    InputKind,
    InputMetric,
    InputScope,
    MetricId,
    MetricName,
    MetricValue,
)
from .labels import Labels

__all__ = [
    "ScoreType",
    "Score",
    "Stat",
    "StatsFn",
    "AtomicBucket",
    "stats_all",
    "stats_summary",
    "stats_average",
    "set_default_stats",
    "unset_default_stats",
    "set_default_drain",
    "unset_default_drain",
]

_VALUE_MIN = -(2**63)
_VALUE_MAX = 2**63 - 1


class ScoreType(Enum):
    """The kinds of aggregated scores a bucket produces."""

    COUNT = "count"
    SUM = "sum"
    MAX = "max"
    MIN = "min"
    MEAN = "mean"
    RATE = "rate"


@dataclass(frozen=True)
class Score:
    """One aggregated score; ``MEAN`` and ``RATE`` values are floats."""

    type: ScoreType
    value: Union[int, float]


Stat = Optional[tuple[InputKind, tuple[str, ...], MetricValue]]
StatsFn = Callable[[InputKind, tuple[str, ...], Score], Stat]


def _to_value(number: Union[int, float]) -> MetricValue:
    """Round half away from zero, saturating to the metric value range."""
    if isinstance(number, int):
        return number
    if math.isnan(number):
        return 0
    if math.isinf(number):
        return _VALUE_MAX if number > 0 else _VALUE_MIN
    rounded = math.floor(abs(number) + 0.5)
    rounded = rounded if number >= 0 else -rounded
    return max(_VALUE_MIN, min(_VALUE_MAX, rounded))


def stats_all(kind: InputKind, name: tuple[str, ...], score: Score) -> Stat:
    """Publish every score, each under the metric name suffixed with the score type."""
    scored_name = tuple(name) + (score.type.value,)
    if score.type is ScoreType.COUNT:
        return InputKind.COUNTER, scored_name, _to_value(score.value)
    if score.type in (ScoreType.SUM, ScoreType.MEAN):
        return kind, scored_name, _to_value(score.value)
    return InputKind.GAUGE, scored_name, _to_value(score.value)


def stats_average(kind: InputKind, name: tuple[str, ...], score: Score) -> Stat:
    """Publish the count of markers and the mean of every other metric."""
    if kind is InputKind.MARKER:
        if score.type is ScoreType.COUNT:
            return InputKind.COUNTER, tuple(name), _to_value(score.value)
        return None
    if score.type is ScoreType.MEAN:
        return InputKind.GAUGE, tuple(name), _to_value(score.value)
    return None


def stats_summary(kind: InputKind, name: tuple[str, ...], score: Score) -> Stat:
    """Publish the most meaningful single score of each metric kind."""
    if kind is InputKind.MARKER:
        if score.type is ScoreType.COUNT:
            return InputKind.COUNTER, tuple(name), _to_value(score.value)
        return None
    if kind in (InputKind.COUNTER, InputKind.TIMER):
        if score.type is ScoreType.SUM:
            return kind, tuple(name), _to_value(score.value)
        return None
    if score.type is ScoreType.MEAN:
        return InputKind.GAUGE, tuple(name), _to_value(score.value)
    return None


class _DiscardScope(InputScope):
    """A scope that drops everything written to it."""

    def new_metric(self, name: MetricName, kind: InputKind) -> InputMetric:
        return InputMetric(MetricId.forge("void", name), lambda value, labels: None)


class _Discard(Input):
    def metrics(self) -> InputScope:
        return _DiscardScope()


_defaults_lock = threading.Lock()
_default_stats: StatsFn = stats_summary
_default_drain: Input = _Discard()


def set_default_stats(func: StatsFn) -> None:
    """Set the statistics generator used by buckets that have none of their own."""
    global _default_stats
    with _defaults_lock:
        _default_stats = func


def unset_default_stats() -> None:
    """Revert the default statistics generator to ``stats_summary``."""
    global _default_stats
    with _defaults_lock:
        _default_stats = stats_summary


def set_default_drain(drain: Input) -> None:
    """Set the output flushed to by buckets that have no drain of their own."""
    global _default_drain
    with _defaults_lock:
        _default_drain = drain


def unset_default_drain() -> None:
    """Revert the default drain to one that discards everything."""
    global _default_drain
    with _defaults_lock:
        _default_drain = _Discard()


def _current_default_stats() -> StatsFn:
    with _defaults_lock:
        return _default_stats


def _current_default_drain() -> Input:
    with _defaults_lock:
        return _default_drain


def _per_second(amount: int, duration_seconds: float) -> float:
    if duration_seconds > 0:
        return amount / duration_seconds
    if amount == 0:
        return math.nan
    return math.inf if amount > 0 else -math.inf


class _AtomicScores:
    """Summary values of one metric, reset at each publication."""

    def __init__(self, kind: InputKind) -> None:
        self.kind = kind
        self._lock = threading.Lock()
        self.writers: "weakref.WeakSet[Callable[..., None]]" = weakref.WeakSet()
        self._clear()

    def _clear(self) -> None:
        self._hit = 0
        self._sum = 0
        self._max = _VALUE_MIN
        self._min = _VALUE_MAX

    def update(self, value: MetricValue) -> None:
        with self._lock:
            self._hit += 1
            if self.kind is InputKind.MARKER:
                return
            if self.kind is InputKind.LEVEL:
                # min and max follow the running sum, trailing by one update;
                # the final sum is compared once more when the scores are taken
                previous = self._sum
                self._sum += value
                self._max = max(self._max, previous)
                self._min = min(self._min, previous)
            else:
                self._sum += value
                self._max = max(self._max, value)
                self._min = min(self._min, value)

    def _snapshot(self) -> Optional[tuple[int, int, int, int]]:
        with self._lock:
            hit, total, high, low = self._hit, self._sum, self._max, self._min
            self._clear()
        if hit == 0:
            return None
        if self.kind is InputKind.LEVEL:
            high = max(high, total)
            low = min(low, total)
        return hit, total, high, low

    def reset(self, duration_seconds: float) -> Optional[list[Score]]:
        """Take and clear the scores, mapping them to the statistics of the kind."""
        taken = self._snapshot()
        if taken is None:
            return None
        hit, total, high, low = taken
        if self.kind is InputKind.MARKER:
            return [
                Score(ScoreType.COUNT, hit),
                Score(ScoreType.RATE, _per_second(hit, duration_seconds)),
            ]
        mean = Score(ScoreType.MEAN, total / hit)
        if self.kind is InputKind.GAUGE:
            return [Score(ScoreType.MAX, high), Score(ScoreType.MIN, low), mean]
        # timers rate the number of calls, counters and levels the summed values
        rated = hit if self.kind is InputKind.TIMER else total
        return [
            Score(ScoreType.COUNT, hit),
            Score(ScoreType.SUM, total),
            Score(ScoreType.MAX, high),
            Score(ScoreType.MIN, low),
            mean,
            Score(ScoreType.RATE, _per_second(rated, duration_seconds)),
        ]


_PERIOD_LENGTH = ("_period_length",)


class _BucketState:
    """State shared by a bucket and all its clones."""

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.metrics: dict[tuple[str, ...], _AtomicScores] = {}
        self.period_start = TimeHandle.now()
        self.stats: Optional[StatsFn] = None
        self.drain: Optional[Input] = None
        self.publish_metadata = False

    def flush_to(self, target: InputScope) -> None:
        now = TimeHandle.now()
        duration_seconds = self.period_start.elapsed_us() / 1_000_000.0
        self.period_start = now

        snapshot: list[tuple[tuple[str, ...], InputKind, list[Score]]] = []
        for name in sorted(self.metrics):
            scores = self.metrics[name]
            values = scores.reset(duration_seconds)
            if values is not None:
                snapshot.append((name, scores.kind, values))

        if not snapshot:
            return

        if self.publish_metadata:
            snapshot.append(
                (
                    _PERIOD_LENGTH,
                    InputKind.TIMER,
                    [Score(ScoreType.SUM, int(duration_seconds * 1000.0))],
                )
            )

        stats_fn = self.stats if self.stats is not None else _current_default_stats()
        for name, kind, values in snapshot:
            for score in values:
                stat = stats_fn(kind, name, score)
                if stat is not None:
                    out_kind, out_name, value = stat
                    target.new_metric(out_name, out_kind).write(value, Labels())
        target.flush()

    def flush(self) -> None:
        drain = self.drain if self.drain is not None else _current_default_drain()
        self.flush_to(drain.metrics())
        # drop metrics that nobody holds a handle on any more
        self.metrics = {
            name: scores for name, scores in self.metrics.items() if len(scores.writers) > 0
        }


class AtomicBucket(WithAttributes, InputScope):
    """Aggregates metric values and publishes their statistics on flush.

    Clones made by ``named()`` and the like share the same aggregated data.
    """

    def __init__(self, name: Optional[str] = None) -> None:
        super().__init__()
        if name is not None:
            self.attributes.naming = (name,)
        self._state = _BucketState()

    def __repr__(self) -> str:
        return f"AtomicBucket(naming={self.attributes.naming!r})"

    def stats(self, func: StatsFn) -> None:
        """Set this bucket's statistics generator."""
        with self._state.lock:
            self._state.stats = func

    def unset_stats(self) -> None:
        """Revert this bucket to the default statistics generator."""
        with self._state.lock:
            self._state.stats = None

    def drain(self, drain: Input) -> None:
        """Set the output this bucket publishes to on flush."""
        with self._state.lock:
            self._state.drain = drain

    def unset_drain(self) -> None:
        """Revert this bucket to the default drain."""
        with self._state.lock:
            self._state.drain = None

    def flush_to(self, target: InputScope) -> None:
        """Publish and reset the aggregated data to ``target`` right away."""
        with self._state.lock:
            self._state.flush_to(target)

    def flush(self) -> None:
        """Notify observers, then publish and reset the aggregated data to the drain.

        Metrics no longer referenced by any handle are forgotten afterwards.
        """
        self.notify_flush_listeners()
        with self._state.lock:
            self._state.flush()

    def new_metric(self, name: MetricName, kind: InputKind) -> InputMetric:
        """Look up or create the scores of the named metric."""
        full_name = self.prefix_append(name)
        with self._state.lock:
            scores = self._state.metrics.get(full_name)
            if scores is None:
                scores = _AtomicScores(kind)
                self._state.metrics[full_name] = scores

        def write(value: MetricValue, labels: Labels) -> None:
            scores.update(value)

        scores.writers.add(write)
        return InputMetric(MetricId.forge("stats", name), write)