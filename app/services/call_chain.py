from __future__ import annotations

from app.observability.context import CorrelationContext
from app.observability.tracing import SpanTracer


def do_first(tracer: SpanTracer, ctx: CorrelationContext) -> None:
    """Outer step of the demo chain. The error record is simulated and does not fail the span."""

    with tracer.span(ctx, "do first function") as child:
        child.logger.info("do first")
        child.logger.error("do second error")
        do_second(tracer, child)


def do_second(tracer: SpanTracer, ctx: CorrelationContext) -> None:
    with tracer.span(ctx, "do second function") as child:
        child.logger.info("do second")
        child.logger.warn("do second warn")
