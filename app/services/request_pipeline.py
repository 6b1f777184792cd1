"""Per-request instrumentation pipeline.

One ``handle`` call walks a request through
received -> validating -> executing -> responding -> completed. The root span,
the correlation-bound logger and the metric samples of that request are all
produced here; endpoint code only ever sees the request's ``CorrelationContext``.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from opentelemetry.sdk.trace import Span
from opentelemetry.util.types import AttributeValue

from app.observability.context import CorrelationContext
from app.observability.logging import StructuredLogger
from app.observability.metrics import MetricKind, MetricSample, MetricSink
from app.observability.tracing import SpanTracer


class RequestState(str, Enum):
    RECEIVED = "received"
    VALIDATING = "validating"
    EXECUTING = "executing"
    RESPONDING = "responding"
    COMPLETED = "completed"


class RequestValidationError(ValueError):
    """Recoverable, request-local input problem. Never surfaces as an HTTP error."""


@dataclass(frozen=True)
class InboundRequest:
    method: str
    path: str
    host: str = ""
    query: Mapping[str, str] = field(default_factory=dict)
    query_string: str = ""

    @property
    def url(self) -> str:
        return f"{self.path}?{self.query_string}" if self.query_string else self.path

    def param(self, name: str) -> str:
        return self.query.get(name, "")


@dataclass(frozen=True)
class PipelineResponse:
    body: str
    correlation_id: str
    status_code: int = 200
    media_type: str = "text/plain; charset=utf-8"


@dataclass
class RequestRun:
    request: InboundRequest
    ctx: CorrelationContext
    span: Span
    state: RequestState = RequestState.RECEIVED
    validation_error: RequestValidationError | None = None


class Endpoint:
    """Request-specific logic plugged into the pipeline. Subclasses override the hooks they need."""

    route: str = "/"
    span_name: str = "handler"
    query_param: str = "q"

    def span_attributes(self, request: InboundRequest) -> dict[str, AttributeValue]:
        return {}

    def validate(self, run: RequestRun) -> None:
        return None

    def execute(self, tracer: SpanTracer, run: RequestRun) -> None:
        return None

    def respond(self, run: RequestRun) -> str:
        raise NotImplementedError


class RequestPipeline:
    """Wraps each dispatched request in a root span, correlated logs and metric samples."""

    def __init__(
        self,
        tracer: SpanTracer,
        logger: StructuredLogger,
        metrics: MetricSink | None = None,
    ) -> None:
        self.tracer = tracer
        self.logger = logger
        self.metrics = metrics

    def handle(self, request: InboundRequest, endpoint: Endpoint) -> PipelineResponse:
        started = time.perf_counter_ns()
        ctx = CorrelationContext.create(self.logger)
        attributes: dict[str, AttributeValue] = {
            "http.method": request.method,
            "http.path": request.path,
            "http.host": request.host,
            "request.state": RequestState.RECEIVED.value,
        }
        attributes.update(endpoint.span_attributes(request))
        ctx, root = self.tracer.start_span(ctx, endpoint.span_name, attributes)
        run = RequestRun(request=request, ctx=ctx, span=root)

        try:
            ctx.logger.info(
                "request received",
                method=request.method,
                path=request.path,
                host=request.host,
                query=request.param(endpoint.query_param),
            )

            self._advance(run, RequestState.VALIDATING)
            try:
                endpoint.validate(run)
            except RequestValidationError as exc:
                run.validation_error = exc
                ctx.logger.warn("request validation failed", reason=str(exc))
                self.tracer.record_error(root, exc)

            self._advance(run, RequestState.EXECUTING)
            endpoint.execute(self.tracer, run)

            self._advance(run, RequestState.RESPONDING)
            body = endpoint.respond(run)
        except Exception as exc:
            self.tracer.record_error(root, exc)
            raise
        finally:
            elapsed_ms = (time.perf_counter_ns() - started) / 1_000_000
            self._advance(run, RequestState.COMPLETED)
            ctx.logger.info("request processed", elapsed_ms=elapsed_ms)
            self._record_metrics(run, endpoint, elapsed_ms)
            self.tracer.end_span(root)

        return PipelineResponse(body=body, correlation_id=ctx.correlation_id)

    def _advance(self, run: RequestRun, state: RequestState) -> None:
        run.state = state
        self.tracer.set_attributes(run.span, {"request.state": state.value})

    def _record_metrics(self, run: RequestRun, endpoint: Endpoint, elapsed_ms: float) -> None:
        if self.metrics is None:
            return
        # The url label keeps the raw query string, so every distinct query is a new series.
        self.metrics.record(
            MetricSample(kind=MetricKind.HISTOGRAM, labels={"url": run.request.url}, value=elapsed_ms)
        )
        self.metrics.record(
            MetricSample(
                kind=MetricKind.COUNTER,
                labels={"method": run.request.method, "endpoint": endpoint.route},
            )
        )
