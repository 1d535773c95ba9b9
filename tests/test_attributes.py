import pytest

from meterkit.attributes import Buffering, Sampling, WithAttributes
from meterkit.input import Counter, InputMetric, InputScope, MetricId


class RecordingScope(WithAttributes, InputScope):
    def __init__(self):
        super().__init__()
        self.values = {}

    def new_metric(self, name, kind):
        full = self.prefix_append(name)
        key = ".".join(full)

        def write(value, labels):
            self.values[key] = value

        return InputMetric(MetricId.forge("test", full), write)

    def flush(self):
        self.notify_flush_listeners()


def test_on_flush():
    metrics = RecordingScope()
    gauge = InputScope.gauge(metrics, "my_gauge")
    WithAttributes.observe(metrics, gauge, lambda _: 4).on_flush()
    WithAttributes.notify_flush_listeners(metrics)
    assert metrics.values.get("my_gauge") == 4


def test_observe_accepts_raw_metric():
    metrics = RecordingScope()
    raw = InputScope.gauge(metrics, "raw").metric
    WithAttributes.observe(metrics, raw, lambda _: 9).on_flush()
    WithAttributes.notify_flush_listeners(metrics)
    assert metrics.values == {"raw": 9}


def test_nothing_observed_before_flush():
    metrics = RecordingScope()
    gauge = InputScope.gauge(metrics, "g")
    WithAttributes.observe(metrics, gauge, lambda _: 4).on_flush()
    assert metrics.values == {}


def test_cancel_removes_observer():
    metrics = RecordingScope()
    gauge = InputScope.gauge(metrics, "g")
    handle = WithAttributes.observe(metrics, gauge, lambda _: 4).on_flush()
    handle.cancel()
    WithAttributes.notify_flush_listeners(metrics)
    assert metrics.values == {}


def test_newer_observer_replaces_older_and_survives_old_cancel():
    metrics = RecordingScope()
    gauge = InputScope.gauge(metrics, "g")
    first = WithAttributes.observe(metrics, gauge, lambda _: 1).on_flush()
    WithAttributes.observe(metrics, gauge, lambda _: 2).on_flush()
    first.cancel()
    WithAttributes.notify_flush_listeners(metrics)
    assert metrics.values == {"g": 2}


def test_clones_share_listeners():
    metrics = RecordingScope()
    clone = WithAttributes.named(metrics, "other")
    gauge = InputScope.gauge(metrics, "g")
    WithAttributes.observe(metrics, gauge, lambda _: 5).on_flush()
    WithAttributes.notify_flush_listeners(clone)
    assert metrics.values == {"g": 5}


def test_named_and_add_name():
    scope = RecordingScope()
    chained = WithAttributes.add_name(WithAttributes.named(scope, "a"), "b")
    assert WithAttributes.prefixes(chained) == ("a", "b")
    assert WithAttributes.prefixes(WithAttributes.named(chained, "c")) == ("c",)
    assert WithAttributes.prefixes(scope) == ()


def test_prefix_append_and_prepend():
    scope = WithAttributes.named(RecordingScope(), "a")
    assert WithAttributes.prefix_append(scope, "x") == ("a", "x")
    assert WithAttributes.prefix_prepend(scope, "x") == ("x", "a")
    assert WithAttributes.prefix_append(scope, ("x", "y")) == ("a", "x", "y")


def test_prefixed_metric_names():
    scope = WithAttributes.named(RecordingScope(), "subsystem")
    counter = InputScope.counter(scope, "event")
    Counter.count(counter, 3)
    assert scope.values == {"subsystem.event": 3}


def test_sampled_returns_modified_clone():
    scope = RecordingScope()
    sampled = scope.sampled(Sampling.random(0.1))
    assert sampled.attributes.sampling.rate == 0.1
    assert scope.attributes.sampling.is_full
    assert not sampled.attributes.sampling.is_full


def test_buffering():
    scope = RecordingScope()
    assert not scope.is_buffered()
    assert scope.buffered(Buffering.UNLIMITED).is_buffered()
    assert scope.buffered(Buffering.buffer_size(0)).is_buffered()
    assert not scope.buffered(Buffering.UNBUFFERED).is_buffered()


def test_buffer_size_rejects_negative():
    with pytest.raises(ValueError):
        Buffering.buffer_size(-1)


def test_with_attributes_leaves_original():
    scope = RecordingScope()

    def edit(attributes):
        attributes.naming = ("edited",)

    edited = WithAttributes.with_attributes(scope, edit)
    assert WithAttributes.prefixes(edited) == ("edited",)
    assert WithAttributes.prefixes(scope) == ()