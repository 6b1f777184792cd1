from __future__ import annotations

import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest


DEFAULT_LATENCY_BUCKETS_MS: tuple[float, ...] = (10, 50, 100, 200, 500, 1000)


class MetricKind(str, Enum):
    HISTOGRAM = "histogram"
    COUNTER = "counter"


@dataclass(frozen=True)
class MetricSample:
    """One histogram observation or one counter increment."""

    kind: MetricKind
    labels: dict[str, str]
    value: float = 1.0
    timestamp: float = field(default_factory=time.time)


class MetricSink(Protocol):
    def record(self, sample: MetricSample) -> None:
        ...


def _bucket_label(le: str) -> str:
    if le == "+Inf":
        return le
    bound = float(le)
    return str(int(bound)) if bound.is_integer() else le


class MetricsRecorder:
    """Process-local request metrics (reset on restart).

    Holds one latency histogram and one request counter as ``prometheus_client``
    instruments on a private registry, so ``/metrics`` can expose exactly these two.
    """

    def __init__(
        self,
        histogram_name: str = "http_request_duration_milliseconds",
        histogram_labels: Sequence[str] = ("url",),
        counter_name: str = "http_requests_total",
        counter_labels: Sequence[str] = ("method", "endpoint"),
        buckets: Sequence[float] = DEFAULT_LATENCY_BUCKETS_MS,
    ) -> None:
        bounds = [float(b) for b in buckets]
        if bounds != sorted(set(bounds)):
            raise ValueError("Histogram buckets must be strictly increasing")
        self.histogram_name = histogram_name
        self.counter_name = counter_name
        # prometheus_client exposes counters with a _total suffix whether or not the name has one.
        self._counter_sample = counter_name if counter_name.endswith("_total") else f"{counter_name}_total"
        self.registry = CollectorRegistry()
        self._histogram = Histogram(
            histogram_name,
            "Request latency in milliseconds",
            labelnames=list(histogram_labels),
            buckets=bounds,
            registry=self.registry,
        )
        self._counter = Counter(
            counter_name,
            "Total number of handled requests",
            labelnames=list(counter_labels),
            registry=self.registry,
        )
        self._bounds = bounds

    @property
    def buckets(self) -> tuple[float, ...]:
        return tuple(self._bounds)

    def record(self, sample: MetricSample) -> None:
        # labels() raises ValueError when the label names do not match the instrument.
        if sample.kind is MetricKind.HISTOGRAM:
            value = float(sample.value)
            if value < 0:
                raise ValueError(f"Latency must be non-negative, got {value}")
            self._histogram.labels(**sample.labels).observe(value)
        else:
            self._counter.labels(**sample.labels).inc()

    def observe_latency(self, milliseconds: float, labels: Mapping[str, str]) -> None:
        self.record(MetricSample(kind=MetricKind.HISTOGRAM, labels=dict(labels), value=milliseconds))

    def increment_count(self, labels: Mapping[str, str]) -> None:
        self.record(MetricSample(kind=MetricKind.COUNTER, labels=dict(labels)))

    def count(self, labels: Mapping[str, str]) -> int:
        value = self.registry.get_sample_value(self._counter_sample, dict(labels))
        return int(value or 0)

    def observations(self, labels: Mapping[str, str]) -> int:
        value = self.registry.get_sample_value(f"{self.histogram_name}_count", dict(labels))
        return int(value or 0)

    def snapshot(self) -> dict[str, Any]:
        histograms: dict[tuple[tuple[str, str], ...], dict[str, Any]] = {}
        for metric in self._histogram.collect():
            for sample in metric.samples:
                labels = {k: v for k, v in sample.labels.items() if k != "le"}
                key = tuple(sorted(labels.items()))
                entry = histograms.setdefault(key, {"labels": labels, "count": 0, "sum": 0.0, "buckets": {}})
                suffix = sample.name[len(self.histogram_name):]
                if suffix == "_bucket":
                    entry["buckets"][_bucket_label(sample.labels["le"])] = int(sample.value)
                elif suffix == "_count":
                    entry["count"] = int(sample.value)
                elif suffix == "_sum":
                    entry["sum"] = sample.value

        counters = [
            {"labels": dict(sample.labels), "value": int(sample.value)}
            for metric in self._counter.collect()
            for sample in metric.samples
            if sample.name == self._counter_sample
        ]
        return {
            "histograms": {self.histogram_name: list(histograms.values())},
            "counters": {self.counter_name: counters},
        }

    def reset(self) -> None:
        self._histogram.clear()
        self._counter.clear()

    def render_prometheus(self) -> bytes:
        return generate_latest(self.registry)
