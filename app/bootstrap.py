from __future__ import annotations

from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SpanExporter
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from app.config import Settings
from app.observability.logging import configure_logging, get_logger
from app.observability.metrics import MetricsRecorder
from app.observability.tracing import LoggingSpanExporter, SpanTracer
from app.services.endpoints import AcknowledgeEndpoint, GreetingEndpoint
from app.services.request_pipeline import Endpoint, RequestPipeline


class StartupError(RuntimeError):
    """A fault that must stop the process before it serves any request."""


def build_span_exporter(settings: Settings) -> SpanExporter | None:
    if not settings.enable_tracing:
        return None
    if settings.span_exporter == "memory":
        return InMemorySpanExporter()
    if settings.span_exporter == "console":
        return ConsoleSpanExporter(service_name=settings.service_name)
    if settings.span_exporter == "otlp":
        return OTLPSpanExporter(endpoint=settings.otlp_endpoint, insecure=True)
    return LoggingSpanExporter()


def build_pipeline(settings: Settings) -> RequestPipeline:
    """Wire logging sinks, span exporter and metrics into one pipeline.

    Raises StartupError if the log destination cannot be opened or an
    instrument cannot be created.
    """

    try:
        configure_logging(settings.log_level, settings.log_path)
    except (OSError, ValueError) as exc:
        raise StartupError(f"unable to open log destination {settings.log_path}: {exc}") from exc

    try:
        metrics = MetricsRecorder() if settings.enable_metrics else None
    except ValueError as exc:
        raise StartupError(f"unable to create metric instruments: {exc}") from exc

    tracer = SpanTracer(
        exporter=build_span_exporter(settings),
        batch=settings.span_exporter == "otlp",
        resource={"service.name": settings.service_name},
    )
    return RequestPipeline(tracer=tracer, logger=get_logger("app.request"), metrics=metrics)


def build_endpoints(settings: Settings) -> dict[str, Endpoint]:
    greeting = GreetingEndpoint(
        min_name_length=settings.min_name_length,
        location=settings.deployment_location,
        environment=settings.deployment_environment,
    )
    acknowledge = AcknowledgeEndpoint()
    return {greeting.route: greeting, acknowledge.route: acknowledge}
