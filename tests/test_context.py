from app.observability.context import CorrelationContext
from app.observability.tracing import SpanTracer


def test_create_assigns_fresh_correlation_id_and_no_span(captured_logger) -> None:
    a = CorrelationContext.create(captured_logger)
    b = CorrelationContext.create(captured_logger)

    assert a.correlation_id != b.correlation_id
    assert len(a.correlation_id) == 36
    assert a.active_span is None
    assert a.created_at.tzinfo is not None


def test_context_logger_is_bound_to_correlation_id(captured_logger, log_capture) -> None:
    ctx = CorrelationContext.create(captured_logger)
    ctx.logger.info("hello")

    assert log_capture.entries[0]["correlation_id"] == ctx.correlation_id
    assert log_capture.entries[0]["event"] == "hello"


def test_with_span_derives_without_mutating_parent(captured_logger) -> None:
    tracer = SpanTracer()
    ctx = CorrelationContext.create(captured_logger)
    child_ctx, span = tracer.start_span(ctx, "root")

    assert ctx.active_span is None
    assert child_ctx.active_span is span
    assert child_ctx.correlation_id == ctx.correlation_id
    assert child_ctx.logger is ctx.logger
