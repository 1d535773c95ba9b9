import pytest

from meterkit.input import Input, InputKind, InputMetric, InputScope, MetricId
from meterkit.multi import MultiInput, MultiInputScope


class Backend(InputScope):
    def __init__(self, fail_flush=False):
        self.written = []
        self.flushes = 0
        self.fail_flush = fail_flush

    def new_metric(self, name, kind):
        parts = tuple(name)

        def write(value, labels):
            self.written.append((parts, value))

        return InputMetric(MetricId.forge("backend", parts), write)

    def flush(self):
        if self.fail_flush:
            raise OSError("backend down")
        self.flushes += 1


class BackendInput(Input):
    def __init__(self):
        self.scope = Backend()

    def metrics(self):
        return self.scope


def test_writes_fan_out_to_all_inputs():
    first, second = BackendInput(), BackendInput()
    scope = MultiInput().add_target(first).add_target(second).metrics()
    scope.counter("counter_a").count(123)
    assert first.scope.written == [(("counter_a",), 123)]
    assert second.scope.written == [(("counter_a",), 123)]


def test_add_target_leaves_original_unchanged():
    source = BackendInput()
    original = MultiInput()
    original.add_target(source)
    original.metrics().counter("x").count(1)
    assert source.scope.written == []


def test_prefix_applies_to_all_targets():
    source = BackendInput()
    scope = MultiInput().add_target(source).named("both").metrics()
    scope.timer("timer_a").interval_us(2000000)
    assert source.scope.written == [(("both", "timer_a"), 2000000)]


def test_metric_id():
    metric = MultiInputScope().named("both").new_metric("a", InputKind.MARKER)
    assert metric.metric_id() == MetricId("multi:both/a")


def test_scope_add_target_and_flush_all():
    first, second = Backend(), Backend()
    scope = MultiInputScope().add_target(first).add_target(second)
    scope.marker("m").mark()
    scope.flush()
    assert first.written == second.written == [(("m",), 1)]
    assert (first.flushes, second.flushes) == (1, 1)


def test_flush_stops_at_first_error():
    failing, healthy = Backend(fail_flush=True), Backend()
    scope = MultiInputScope().add_target(failing).add_target(healthy)
    with pytest.raises(OSError):
        scope.flush()
    assert healthy.flushes == 0


def test_flush_notifies_observers():
    backend = Backend()
    scope = MultiInputScope().add_target(backend)
    scope.observe(scope.gauge("g"), lambda _: 6).on_flush()
    scope.flush()
    assert backend.written == [(("g",), 6)]