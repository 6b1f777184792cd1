from __future__ import annotations

from fastapi import FastAPI

from app.api.greeting import router as greeting_router
from app.api.metrics import router as metrics_router
from app.bootstrap import build_endpoints, build_pipeline
from app.config import Settings, get_settings
from app.models.schemas import HealthResponse
from app.services.request_pipeline import RequestPipeline


def create_app(settings: Settings | None = None, pipeline: RequestPipeline | None = None) -> FastAPI:
    settings = settings or get_settings()
    if pipeline is None:
        pipeline = build_pipeline(settings)

    app = FastAPI(title="Request Telemetry", version="0.1.0")
    app.state.settings = settings
    app.state.pipeline = pipeline
    app.state.endpoints = build_endpoints(settings)
    app.include_router(greeting_router)
    app.include_router(metrics_router)

    @app.on_event("shutdown")
    def _shutdown() -> None:
        pipeline.tracer.shutdown()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse()

    return app
