from __future__ import annotations

from pydantic import BaseModel


class HistogramSeries(BaseModel):
    labels: dict[str, str]
    count: int
    sum: float
    buckets: dict[str, int]


class CounterSeries(BaseModel):
    labels: dict[str, str]
    value: int


class MetricsSnapshot(BaseModel):
    histograms: dict[str, list[HistogramSeries]]
    counters: dict[str, list[CounterSeries]]


class HealthResponse(BaseModel):
    status: str = "ok"
