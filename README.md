# meterkit

A small toolkit for instrumenting Python applications with metrics.

Metrics are defined on a *scope*, written through typed instruments, and
either handed straight to a target scope, fanned out to several targets, or
aggregated in memory and published as statistics when the aggregator is
flushed.

## Metric kinds

Every scope (`meterkit.input.InputScope`) defines the five kinds below.
Each method takes a name: a single string or a sequence of name parts.

| Kind    | Defined with   | Recorded with                              | Meaning                                         |
|---------|----------------|--------------------------------------------|-------------------------------------------------|
| Marker  | `marker(name)` | `mark()`                                   | A single event occurrence                       |
| Counter | `counter(name)`| `count(n)`                                 | Non-negative amounts (bytes sent, rows written) |
| Level   | `level(name)`  | `adjust(n)`                                | Positive or negative changes to a running total |
| Gauge   | `gauge(name)`  | `value(v)`                                 | A point-in-time measurement                     |
| Timer   | `timer(name)`  | `interval_us(us)`, `time(fn)`, `start()`/`stop(handle)` | Intervals in microseconds          |

- `Counter.count` and `Timer.interval_us` raise `ValueError` for negative
  values.
- `Level.adjust` and `Gauge.value` accept floats and truncate them toward
  zero; values outside the signed 64-bit range raise `OverflowError`.
- `Timer.time(fn)` runs `fn`, records how long it took and returns its
  result. `Timer.stop(handle)` records and returns the microseconds elapsed
  since `handle = timer.start()`, and may be called more than once with the
  same handle.
- `InputKind.from_name("Counter")` maps an instrument type name to its kind
  and raises `ValueError` for an unknown name.

## Writing a target

The package ships no output of its own; a target is any `InputScope`
subclass that implements `new_metric(name, kind)`, and an `Input` is
anything whose `metrics()` opens such a scope:

```python
from meterkit.input import Input, InputMetric, InputScope, MetricId


class PrintScope(InputScope):
    def new_metric(self, name, kind):
        parts = (name,) if isinstance(name, str) else tuple(name)
        label = ".".join(parts)
        return InputMetric(
            MetricId.forge("print", parts),
            lambda value, labels: print(label, value),
        )


class PrintInput(Input):
    def metrics(self):
        return PrintScope()
```

`InputScope.flush()` does nothing by default; override it for a target
that buffers.

## Aggregating with a bucket

`meterkit.atomic.AtomicBucket` is a scope that keeps running scores (count,
sum, minimum, maximum) for each metric, and turns them into statistics when
flushed.

```python
from meterkit.atomic import AtomicBucket, stats_all

bucket = AtomicBucket("app")

requests = bucket.counter("requests")
latency = bucket.timer("latency")

requests.count(3)
latency.time(lambda: sum(range(1000)))

bucket.flush_to(PrintScope())   # prints "app.latency <µs>" and "app.requests 3"
```

`flush_to` publishes and resets the scores to the scope given. `flush()`
does the same to the bucket's drain: set one with `bucket.drain(PrintInput())`
(or for every bucket with `set_default_drain(...)`); by default values are
discarded. After `flush()`, metrics that no instrument refers to any more
are forgotten. Nothing is published for a period in which no value was
recorded.

Clones made with `named()` or `add_name()` share the bucket's scores.

### Statistics functions

A statistics function takes `(kind, name, score)`, where `score` is a
`Score` with a `ScoreType` (`COUNT`, `SUM`, `MAX`, `MIN`, `MEAN`, `RATE`)
and a value, and returns `(kind, name, value)` to publish or `None` to
skip it. Three are provided:

- `stats_summary`, the default: the count of markers, the sum of counters
  and timers, the mean of gauges and levels.
- `stats_average`: the count of markers, the mean of everything else.
- `stats_all`: every score, each under the metric name followed by
  `count`, `sum`, `max`, `min`, `mean` or `rate`.

Scores produced per kind:

- markers: count and rate (events per second);
- gauges: max, min and mean;
- counters and levels: count, sum, max, min, mean and rate of the summed
  values per second;
- timers: the same, with the rate counting calls per second.

For levels, min and max follow the running total rather than the individual
adjustments. Floating values are rounded half away from zero.

Set one bucket's function with `bucket.stats(func)` (undo with
`unset_stats()`), or every bucket's with `set_default_stats(func)` (undo
with `unset_default_stats()`).

## Fanning out

`meterkit.multi.MultiInput` opens a scope on each of its inputs at once;
`MultiInputScope` writes each value to all of its scopes and flushes them
in turn, stopping at the first error.

```python
from meterkit.multi import MultiInput, MultiInputScope

both = MultiInput().add_target(PrintInput()).add_target(PrintInput())
scope = both.metrics()
scope.marker("started").mark()   # printed twice

scopes = MultiInputScope().add_target(PrintScope()).add_target(bucket)
```

`add_target` returns a new object and leaves the original unchanged.

## Caching metric definitions

For metrics defined afresh on every use, `meterkit.cache.cached(input,
max_size)` keeps up to `max_size` definitions, evicting the least recently
used. All scopes opened from the same cached input share the cache.

```python
from meterkit.cache import cached

scope = cached(PrintInput(), 64).metrics()
scope.counter("hits").count(1)
```

The cache itself is available as `meterkit.lru_cache.LRUCache`, with
`insert`, `get` (which promotes the entry), `peek` (which does not),
`len()` and `in`.

## Naming

Buckets, cached inputs and scopes, and multi inputs and scopes carry name
prefixes, put in front of every metric name they define:

```python
worker = bucket.named("service").add_name("worker")
worker.counter("jobs")   # name parts ("service", "worker", "jobs")
```

`named()` replaces the prefixes, `add_name()` appends one; both return a
clone. The same components also carry `sampled(Sampling.random(rate))` and
`buffered(Buffering.UNLIMITED)` / `Buffering.buffer_size(n)` settings, with
`is_buffered()`; no component in this package acts on them.

## Labels

`meterkit.labels` holds context labels. `Labels.lookup(key)` searches the
values given to `Labels` first, then the current thread's labels
(`ThreadLabel`), then application-wide ones (`AppLabel`).

```python
from meterkit.labels import AppLabel, Labels, ThreadLabel

AppLabel.set("host", "alpha")
ThreadLabel.set("job", "import")
Labels({"batch": "7"}).lookup("job")   # "import"
```

`save_context()` freezes the thread and application labels into a
`Labels` object, so later lookups see them as they were; `into_map()`
returns every visible label as a dict.

## Observing values on flush

```python
depth = bucket.gauge("queue_depth")
handle = bucket.observe(depth, lambda now: len(queue)).on_flush()
# ... every bucket.flush() now records the queue length first
handle.cancel()
```

The callable receives a `TimeHandle` for the moment of the flush.

## Time and testing

`meterkit.clock.TimeHandle` measures elapsed time (`elapsed_us()`,
`elapsed_ms()`). In tests, `mock_clock_reset()` freezes the calling
thread's clock and `mock_clock_advance(seconds)` moves it forward, so rates
and timers come out the same on every run.

## What this package does not include

- No outputs: nothing writes to a terminal, file, log or network service;
  targets are written by the user as shown above.
- No background flushing: buckets are flushed only when `flush()` or
  `flush_to()` is called, and observers run only on flush, never on a
  timer.
- No global switchable routing of metrics; scopes are wired together
  explicitly.
- No sampling or buffering is performed; those settings are only carried.