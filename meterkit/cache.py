"""Metric definition caching in front of an input."""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Optional

from .attributes import Attributes, WithAttributes
from .input import Input, InputKind, InputMetric, InputScope, MetricName
from .lru_cache import LRUCache

__all__ = ["cached", "InputCache", "InputScopeCache"]


class _SharedCache:
    """An LRU cache of metric definitions guarded by a lock."""

    def __init__(self, max_size: int) -> None:
        self.lock = threading.Lock()
        self.entries: LRUCache[tuple[str, ...], InputMetric] = LRUCache(max_size)


def cached(target: Input, max_size: int) -> "InputCache":
    """Wrap an input with a cache of up to ``max_size`` metric definitions.

    Useful for metrics defined dynamically on each access; useless when
    metrics are defined once and kept.
    """
    return InputCache(target, max_size)


class InputCache(WithAttributes, Input):
    """An input whose scopes share a cache of frequently defined metrics."""

    def __init__(self, target: Input, max_size: int) -> None:
        super().__init__()
        self._target = target
        self._cache = _SharedCache(max_size)

    def metrics(self) -> "InputScopeCache":
        """Open a caching scope over a new scope of the target."""
        return InputScopeCache(replace(self.attributes), self._target.metrics(), self._cache)


class InputScopeCache(WithAttributes, InputScope):
    """A scope looking metric definitions up in a cache before defining them."""

    def __init__(
        self,
        attributes: Optional[Attributes],
        target: InputScope,
        cache: _SharedCache,
    ) -> None:
        super().__init__(attributes)
        self._target = target
        self._cache = cache

    def new_metric(self, name: MetricName, kind: InputKind) -> InputMetric:
        """Return the cached metric for the name, defining it on a miss."""
        full_name = self.prefix_append(name)
        with self._cache.lock:
            found = self._cache.entries.get(full_name)
        if found is not None:
            return found
        metric = self._target.new_metric(full_name, kind)
        with self._cache.lock:
            self._cache.entries.insert(full_name, metric)
        return metric

    def flush(self) -> None:
        """Notify observers, then flush the target scope."""
        self.notify_flush_listeners()
        self._target.flush()