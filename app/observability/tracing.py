"""OpenTelemetry-backed span tracing for a single request's call chain.

Spans are opened against a ``CorrelationContext`` and parented to its active span,
so the spans of one request form one trace rooted at the request span. Finished
spans go through a ``SimpleSpanProcessor`` to the configured exporter in the
order they close.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Generator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, Span, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SimpleSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from opentelemetry.trace import Status, StatusCode
from opentelemetry.util.types import AttributeValue

from app.observability.context import CorrelationContext
from app.observability.logging import StructuredLogger, get_logger

CORRELATION_ID_ATTRIBUTE = "correlation_id"

_EPOCH_OFFSET_NS = time.time_ns() - time.monotonic_ns()


def now_ns() -> int:
    """Epoch nanoseconds from a monotonic source (never runs backwards)."""

    return _EPOCH_OFFSET_NS + time.monotonic_ns()


def span_record(span: ReadableSpan) -> dict[str, Any]:
    """JSON-friendly view of a finished span."""

    duration_ms = None
    if span.start_time is not None and span.end_time is not None:
        duration_ms = (span.end_time - span.start_time) / 1_000_000
    return {
        "trace_id": trace.format_trace_id(span.context.trace_id),
        "span_id": trace.format_span_id(span.context.span_id),
        "parent_id": trace.format_span_id(span.parent.span_id) if span.parent is not None else None,
        "name": span.name,
        "status": span.status.status_code.name.lower(),
        "status_message": span.status.description,
        "start_time": span.start_time,
        "end_time": span.end_time,
        "duration_ms": duration_ms,
        "attributes": dict(span.attributes or {}),
        "events": [
            {"name": e.name, "timestamp": e.timestamp, "attributes": dict(e.attributes or {})}
            for e in span.events
        ],
    }


class LoggingSpanExporter(SpanExporter):
    """Writes each finished span as one structured log line, tagged with its correlation id."""

    def __init__(self, span_logger: StructuredLogger | None = None) -> None:
        self._logger = span_logger or get_logger("tracing")

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        for span in spans:
            self._logger.info(
                "span finished",
                correlation_id=(span.attributes or {}).get(CORRELATION_ID_ATTRIBUTE),
                span=span_record(span),
            )
        return SpanExportResult.SUCCESS

    def shutdown(self) -> None:
        return None


class SpanTracer:
    """Opens, annotates and closes spans for one service; closing is idempotent."""

    def __init__(
        self,
        exporter: SpanExporter | None = None,
        resource: Mapping[str, AttributeValue] | None = None,
        clock: Callable[[], int] = now_ns,
        batch: bool = False,
    ) -> None:
        self.exporter = exporter
        self._clock = clock
        self._provider = TracerProvider(resource=Resource.create(dict(resource or {})))
        if exporter is not None:
            # Simple export runs inline, in close order; batch export is for network collectors.
            processor = BatchSpanProcessor(exporter) if batch else SimpleSpanProcessor(exporter)
            self._provider.add_span_processor(processor)
        self._tracer = self._provider.get_tracer(__name__)

    def start_span(
        self,
        ctx: CorrelationContext,
        name: str,
        attributes: Mapping[str, AttributeValue] | None = None,
    ) -> tuple[CorrelationContext, Span]:
        parent = ctx.active_span
        # An empty Context starts a new trace.
        parent_context = trace.set_span_in_context(parent) if parent is not None else Context()
        span = self._tracer.start_span(
            name,
            context=parent_context,
            attributes={CORRELATION_ID_ATTRIBUTE: ctx.correlation_id, **(attributes or {})},
            start_time=self._clock(),
        )
        return ctx.with_span(span), span

    def end_span(self, span: Span) -> None:
        """End ``span`` once; later calls are no-ops and never re-export it."""

        if span.end_time is not None:
            return
        if span.status.status_code is StatusCode.UNSET:
            span.set_status(Status(StatusCode.OK))
        span.end(end_time=max(self._clock(), span.start_time))

    @contextmanager
    def span(
        self,
        ctx: CorrelationContext,
        name: str,
        attributes: Mapping[str, AttributeValue] | None = None,
    ) -> Generator[CorrelationContext, None, None]:
        """Run a block under a child span that is ended on every exit path."""

        child_ctx, span = self.start_span(ctx, name, attributes)
        try:
            yield child_ctx
        except Exception as exc:
            self.record_error(span, exc)
            raise
        finally:
            self.end_span(span)

    def set_attributes(self, span: Span, attributes: Mapping[str, AttributeValue]) -> None:
        if span.end_time is not None:
            return
        span.set_attributes(attributes)

    def add_event(self, span: Span, name: str, attributes: Mapping[str, AttributeValue] | None = None) -> None:
        if span.end_time is not None:
            return
        span.add_event(name, attributes=dict(attributes or {}), timestamp=self._clock())

    def set_status(self, span: Span, code: StatusCode, message: str | None = None) -> None:
        if span.end_time is not None:
            return
        span.set_status(Status(code, message if code is StatusCode.ERROR else None))

    def record_error(self, span: Span, err: BaseException) -> None:
        if span.end_time is not None:
            return
        span.record_exception(err, timestamp=self._clock())
        self.set_status(span, StatusCode.ERROR, str(err))

    def shutdown(self) -> None:
        self._provider.shutdown()
