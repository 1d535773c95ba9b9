"""Dispatch metrics to several targets at once."""

from __future__ import annotations

from dataclasses import replace

from .attributes import WithAttributes
from .input import Input, InputKind, InputMetric, InputScope, MetricId, MetricName, MetricValue
from .labels import Labels

__all__ = ["MultiInput", "MultiInputScope"]


class MultiInput(WithAttributes, Input):
    """Opens one scope on each of several inputs at a time."""

    def __init__(self) -> None:
        super().__init__()
        self._inputs: tuple[Input, ...] = ()

    def add_target(self, target: Input) -> "MultiInput":
        """Return a clone with ``target`` added to the inputs."""
        cloned = self.with_attributes(lambda _: None)
        cloned._inputs = self._inputs + (target,)
        return cloned

    def metrics(self) -> "MultiInputScope":
        """Open a scope dispatching to a new scope of every input."""
        scope = MultiInputScope()
        scope.attributes = replace(self.attributes)
        scope._scopes = tuple(target.metrics() for target in self._inputs)
        return scope


class MultiInputScope(WithAttributes, InputScope):
    """Dispatches metric values to a list of scopes."""

    def __init__(self) -> None:
        super().__init__()
        self._scopes: tuple[InputScope, ...] = ()

    def add_target(self, scope: InputScope) -> "MultiInputScope":
        """Return a clone with ``scope`` added to the dispatch list."""
        cloned = self.with_attributes(lambda _: None)
        cloned._scopes = self._scopes + (scope,)
        return cloned

    def new_metric(self, name: MetricName, kind: InputKind) -> InputMetric:
        """Define the metric in every scope; writes go to all of them."""
        full_name = self.prefix_append(name)
        metrics = [scope.new_metric(full_name, kind) for scope in self._scopes]

        def write(value: MetricValue, labels: Labels) -> None:
            for metric in metrics:
                metric.write(value, labels)

        return InputMetric(MetricId.forge("multi", full_name), write)

    def flush(self) -> None:
        """Notify observers, then flush every scope in turn, stopping at the first error."""
        self.notify_flush_listeners()
        for scope in self._scopes:
            scope.flush()