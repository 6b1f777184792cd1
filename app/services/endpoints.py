from __future__ import annotations

import html

from opentelemetry.util.types import AttributeValue

from app.observability.tracing import SpanTracer
from app.services.call_chain import do_first
from app.services.request_pipeline import Endpoint, InboundRequest, RequestRun, RequestValidationError


class NameTooShortError(RequestValidationError):
    def __init__(self, name: str, min_length: int) -> None:
        super().__init__(f"name too short: {len(name)} < {min_length} characters")
        self.name = name
        self.min_length = min_length


class GreetingEndpoint(Endpoint):
    route = "/"
    span_name = "handler function"
    query_param = "name"

    def __init__(self, min_name_length: int = 2, location: str = "", environment: str = "") -> None:
        self.min_name_length = min_name_length
        self.location = location
        self.environment = environment

    def span_attributes(self, request: InboundRequest) -> dict[str, AttributeValue]:
        return {
            "name": request.param(self.query_param),
            "location": self.location,
            "environment": self.environment,
        }

    def validate(self, run: RequestRun) -> None:
        name = run.request.param(self.query_param)
        if len(name) < self.min_name_length:
            raise NameTooShortError(name, self.min_name_length)

    def execute(self, tracer: SpanTracer, run: RequestRun) -> None:
        do_first(tracer, run.ctx)
        tracer.add_event(
            run.span,
            "handler event",
            {"successfully write a logging": True, "host": run.request.host},
        )

    def respond(self, run: RequestRun) -> str:
        escaped = html.escape(run.request.param(self.query_param))
        if run.validation_error is not None:
            return f'Hello, "{escaped}"! your name is too short'
        return f'Hello, "{escaped}"'


class AcknowledgeEndpoint(Endpoint):
    route = "/another"
    span_name = "anotherHandler function"
    query_param = "q"

    def respond(self, run: RequestRun) -> str:
        return "another handler"
