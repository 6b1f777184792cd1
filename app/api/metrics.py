from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST

from app.models.schemas import MetricsSnapshot
from app.observability.metrics import MetricsRecorder

router = APIRouter(tags=["metrics"])


def _recorder(request: Request) -> MetricsRecorder:
    # Metrics may be disabled, or routed to a sink that cannot be scraped.
    metrics = request.app.state.pipeline.metrics
    if not isinstance(metrics, MetricsRecorder):
        raise HTTPException(status_code=404, detail="Not found")
    return metrics


@router.get("/metrics")
def prometheus_metrics(request: Request) -> Response:
    return Response(content=_recorder(request).render_prometheus(), media_type=CONTENT_TYPE_LATEST)


@router.get("/api/metrics", response_model=MetricsSnapshot)
def metrics_snapshot(request: Request) -> MetricsSnapshot:
    return MetricsSnapshot(**_recorder(request).snapshot())
