from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from app.observability.logging import StructuredLogger

if TYPE_CHECKING:
    from opentelemetry.trace import Span


@dataclass(frozen=True)
class CorrelationContext:
    """Per-request identity handed explicitly down the call chain.

    The logger is bound to ``correlation_id`` once, at creation. Nesting a scope
    derives a new context via ``with_span``; the parent context stays usable.
    """

    correlation_id: str
    created_at: datetime
    logger: StructuredLogger
    active_span: Span | None = None

    @classmethod
    def create(cls, logger: StructuredLogger) -> CorrelationContext:
        correlation_id = str(uuid.uuid4())
        return cls(
            correlation_id=correlation_id,
            created_at=datetime.now(timezone.utc),
            logger=logger.bind(correlation_id=correlation_id),
        )

    def with_span(self, span: Span) -> CorrelationContext:
        return replace(self, active_span=span)
