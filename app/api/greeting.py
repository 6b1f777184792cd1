from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from app.services.request_pipeline import InboundRequest, PipelineResponse, RequestPipeline

router = APIRouter(tags=["greeting"])


def get_pipeline(request: Request) -> RequestPipeline:
    return request.app.state.pipeline


def _to_inbound(request: Request) -> InboundRequest:
    return InboundRequest(
        method=request.method,
        path=request.url.path,
        host=request.headers.get("host", ""),
        query=dict(request.query_params),
        query_string=request.url.query,
    )


def _to_response(result: PipelineResponse) -> PlainTextResponse:
    return PlainTextResponse(
        result.body,
        status_code=result.status_code,
        media_type=result.media_type,
        headers={"X-Correlation-ID": result.correlation_id},
    )


# Plain `def` handlers: FastAPI runs them in its threadpool, one task per request.
@router.get("/", response_class=PlainTextResponse)
def greet(request: Request, pipeline: RequestPipeline = Depends(get_pipeline)) -> PlainTextResponse:
    result = pipeline.handle(_to_inbound(request), request.app.state.endpoints["/"])
    return _to_response(result)


@router.get("/another", response_class=PlainTextResponse)
def another(request: Request, pipeline: RequestPipeline = Depends(get_pipeline)) -> PlainTextResponse:
    result = pipeline.handle(_to_inbound(request), request.app.state.endpoints["/another"])
    return _to_response(result)


@router.get("/favicon.ico", response_class=PlainTextResponse)
def favicon() -> PlainTextResponse:
    return PlainTextResponse("Not Found", status_code=404)
