from __future__ import annotations

import logging
from collections.abc import AsyncIterator

import pytest
import structlog
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from structlog.testing import LogCapture

from app.config import Settings, get_settings
from app.main import create_app
from app.observability.logging import StructuredLogger
from app.observability.metrics import MetricsRecorder
from app.observability.tracing import SpanTracer
from app.services.request_pipeline import RequestPipeline


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("SPAN_EXPORTER", "memory")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def log_capture() -> LogCapture:
    return LogCapture()


@pytest.fixture
def captured_logger(log_capture: LogCapture) -> StructuredLogger:
    bound = structlog.wrap_logger(
        structlog.ReturnLogger(),
        processors=[structlog.processors.TimeStamper(fmt="iso", utc=True), log_capture],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        context_class=dict,
    )
    return StructuredLogger(bound)


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture
def tracer(span_exporter: InMemorySpanExporter) -> SpanTracer:
    return SpanTracer(exporter=span_exporter, resource={"service.name": "test-service"})


@pytest.fixture
def metrics() -> MetricsRecorder:
    return MetricsRecorder()


@pytest.fixture
def pipeline(tracer: SpanTracer, captured_logger: StructuredLogger, metrics: MetricsRecorder) -> RequestPipeline:
    return RequestPipeline(tracer=tracer, logger=captured_logger, metrics=metrics)


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def app(settings: Settings, pipeline: RequestPipeline) -> FastAPI:
    return create_app(settings=settings, pipeline=pipeline)


@pytest.fixture
async def api_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
