from concurrent.futures import ThreadPoolExecutor

import pytest

from app.observability.metrics import MetricKind, MetricSample, MetricsRecorder


def _histogram_entry(metrics: MetricsRecorder, url: str) -> dict:
    entries = metrics.snapshot()["histograms"]["http_request_duration_milliseconds"]
    return next(e for e in entries if e["labels"] == {"url": url})


def test_bucket_upper_bounds_are_inclusive(metrics) -> None:
    metrics.observe_latency(10, {"url": "/a"})
    metrics.observe_latency(10.5, {"url": "/a"})
    metrics.observe_latency(1000, {"url": "/a"})
    metrics.observe_latency(5000, {"url": "/a"})

    entry = _histogram_entry(metrics, "/a")
    assert entry["buckets"] == {
        "10": 1,
        "50": 2,
        "100": 2,
        "200": 2,
        "500": 2,
        "1000": 3,
        "+Inf": 4,
    }
    assert entry["count"] == 4
    assert entry["sum"] == pytest.approx(6020.5)


def test_histograms_are_keyed_by_label_set(metrics) -> None:
    metrics.observe_latency(1, {"url": "/?name=Al"})
    metrics.observe_latency(2, {"url": "/another?q=x"})

    assert metrics.observations({"url": "/?name=Al"}) == 1
    assert metrics.observations({"url": "/another?q=x"}) == 1
    assert metrics.observations({"url": "/missing"}) == 0


def test_counter_counts_per_label_set(metrics) -> None:
    for _ in range(3):
        metrics.increment_count({"method": "GET", "endpoint": "/another"})
    metrics.increment_count({"endpoint": "/", "method": "GET"})

    assert metrics.count({"method": "GET", "endpoint": "/another"}) == 3
    assert metrics.count({"method": "GET", "endpoint": "/"}) == 1


def test_concurrent_recording_loses_nothing(metrics) -> None:
    labels = {"method": "GET", "endpoint": "/"}

    def work(_: int) -> None:
        for _ in range(250):
            metrics.increment_count(labels)
            metrics.observe_latency(3.0, {"url": "/"})

    with ThreadPoolExecutor(max_workers=16) as pool:
        list(pool.map(work, range(16)))

    assert metrics.count(labels) == 4000
    assert metrics.observations({"url": "/"}) == 4000


def test_negative_latency_is_rejected(metrics) -> None:
    with pytest.raises(ValueError):
        metrics.observe_latency(-1, {"url": "/"})


def test_unexpected_label_names_are_rejected(metrics) -> None:
    with pytest.raises(ValueError):
        metrics.increment_count({"path": "/"})
    with pytest.raises(ValueError):
        metrics.record(MetricSample(kind=MetricKind.HISTOGRAM, labels={"route": "/"}, value=1))


def test_buckets_must_increase() -> None:
    with pytest.raises(ValueError):
        MetricsRecorder(buckets=(50, 10))


def test_prometheus_exposition(metrics) -> None:
    metrics.observe_latency(42, {"url": "/?name=Al"})
    for _ in range(3):
        metrics.increment_count({"method": "GET", "endpoint": "/another"})

    text = metrics.render_prometheus().decode()

    assert "# TYPE http_request_duration_milliseconds histogram" in text
    assert 'http_request_duration_milliseconds_bucket{url="/?name=Al",le="10.0"} 0.0' in text
    assert 'http_request_duration_milliseconds_bucket{url="/?name=Al",le="50.0"} 1.0' in text
    assert 'http_request_duration_milliseconds_bucket{url="/?name=Al",le="+Inf"} 1.0' in text
    assert 'http_request_duration_milliseconds_count{url="/?name=Al"} 1.0' in text
    assert 'http_requests_total{method="GET",endpoint="/another"} 3.0' in text


def test_reset_clears_everything(metrics) -> None:
    metrics.observe_latency(1, {"url": "/"})
    metrics.increment_count({"method": "GET", "endpoint": "/"})

    metrics.reset()

    snapshot = metrics.snapshot()
    assert snapshot["histograms"]["http_request_duration_milliseconds"] == []
    assert snapshot["counters"]["http_requests_total"] == []


def test_duplicate_buckets_are_rejected() -> None:
    with pytest.raises(ValueError):
        MetricsRecorder(buckets=(10, 10, 50))


def test_snapshot_matches_registry_samples(metrics) -> None:
    metrics.observe_latency(7, {"url": "/another?q=x"})
    metrics.increment_count({"method": "GET", "endpoint": "/another"})

    snapshot = metrics.snapshot()

    assert snapshot["counters"]["http_requests_total"] == [
        {"labels": {"method": "GET", "endpoint": "/another"}, "value": 1}
    ]
    assert metrics.registry.get_sample_value(
        "http_request_duration_milliseconds_bucket", {"url": "/another?q=x", "le": "10.0"}
    ) == 1.0
    assert _histogram_entry(metrics, "/another?q=x")["buckets"]["10"] == 1
