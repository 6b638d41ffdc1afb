"""
Study Registration Metrics

Process-local counters and timing histograms for wizard and estimator
activity. Values live until the process exits; GET /api/v1/metrics serves
the counter totals.
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass, replace
from threading import RLock
from typing import Any, Iterator

LabelSet = tuple[tuple[str, str], ...]


def _label_set(labels: dict[str, str] | None) -> LabelSet:
    return tuple(sorted((labels or {}).items()))


def _label_text(key: LabelSet) -> str:
    return ",".join(f"{k}={v}" for k, v in key)


class Counter:
    """
    Count per label set. Only ever goes up.

    Usage:
        saves = registry.counter("studyreg.sections_saved")
        saves.inc(labels={"section": "sites"})
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._counts: dict[LabelSet, float] = {}
        self._lock = RLock()

    def inc(self, amount: float = 1.0, labels: dict[str, str] | None = None) -> None:
        if amount < 0:
            raise ValueError(f"Counter {self.name} cannot decrease")
        key = _label_set(labels)
        with self._lock:
            self._counts[key] = self._counts.get(key, 0.0) + amount

    def get(self, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            return self._counts.get(_label_set(labels), 0.0)

    def total(self) -> float:
        with self._lock:
            return sum(self._counts.values())

    def by_label(self) -> dict[str, float]:
        with self._lock:
            return {_label_text(key): value for key, value in self._counts.items()}


@dataclass
class _Summary:
    count: int = 0
    total: float = 0.0
    slowest: float = 0.0


class Histogram:
    """Count, sum and maximum of observed values per label set."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._summaries: dict[LabelSet, _Summary] = {}
        self._lock = RLock()

    def observe(self, value: float, labels: dict[str, str] | None = None) -> None:
        with self._lock:
            summary = self._summaries.setdefault(_label_set(labels), _Summary())
            summary.count += 1
            summary.total += value
            summary.slowest = max(summary.slowest, value)

    @contextmanager
    def time(self, labels: dict[str, str] | None = None) -> Iterator[None]:
        """Observe the seconds spent inside the block, even if it raises."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.observe(time.perf_counter() - start, labels)

    def _summary(self, labels: dict[str, str] | None) -> _Summary:
        with self._lock:
            return replace(self._summaries.get(_label_set(labels), _Summary()))

    def get_count(self, labels: dict[str, str] | None = None) -> int:
        return self._summary(labels).count

    def get_sum(self, labels: dict[str, str] | None = None) -> float:
        return self._summary(labels).total

    def get_mean(self, labels: dict[str, str] | None = None) -> float:
        summary = self._summary(labels)
        return summary.total / summary.count if summary.count else 0.0

    def totals(self) -> dict[str, float]:
        """Aggregate over every label set."""
        with self._lock:
            count = sum(s.count for s in self._summaries.values())
            total = sum(s.total for s in self._summaries.values())
            slowest = max((s.slowest for s in self._summaries.values()), default=0.0)
        return {"count": count, "sum": total, "max": slowest}


class MetricsRegistry:
    """Named counters and histograms, created on first use."""

    def __init__(self) -> None:
        self._counters: dict[str, Counter] = {}
        self._histograms: dict[str, Histogram] = {}
        self._lock = RLock()

    def counter(self, name: str) -> Counter:
        with self._lock:
            if name not in self._counters:
                self._counters[name] = Counter(name)
            return self._counters[name]

    def histogram(self, name: str) -> Histogram:
        with self._lock:
            if name not in self._histograms:
                self._histograms[name] = Histogram(name)
            return self._histograms[name]

    def snapshot(self) -> dict[str, Any]:
        """Counters broken down by label; histograms aggregated."""
        with self._lock:
            counters = list(self._counters.values())
            histograms = list(self._histograms.values())
        data: dict[str, Any] = {c.name: c.by_label() for c in counters}
        data.update({h.name: h.totals() for h in histograms})
        return data

    def counter_totals(self) -> dict[str, float]:
        with self._lock:
            return {name: counter.total() for name, counter in self._counters.items()}

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histograms.clear()


_registry = MetricsRegistry()


def get_registry() -> MetricsRegistry:
    return _registry


def reset_metrics() -> None:
    """Forget every recorded value (for testing)."""
    _registry.reset()


class MetricsHelper:
    """
    Metric names used across the package, plus shortcuts to the registry.

    Modules use `from studyreg.observability.metrics import metrics`.
    """

    SESSIONS_CREATED = "studyreg.sessions_created"
    ESTIMATES = "studyreg.estimates"
    SECTIONS_SAVED = "studyreg.sections_saved"
    VALIDATION_FAILURES = "studyreg.validation_failures"
    ESTIMATE_SECONDS = "studyreg.estimate_seconds"

    def counter(self, name: str, amount: float = 1.0, labels: dict[str, str] | None = None) -> None:
        get_registry().counter(name).inc(amount, labels)

    def timer(self, name: str, labels: dict[str, str] | None = None):
        return get_registry().histogram(name).time(labels)

    def get_all(self) -> dict[str, float]:
        """Counter totals across label sets (served at /metrics)."""
        return get_registry().counter_totals()


metrics = MetricsHelper()
