"""
Log ingestion API endpoints.

- PUT /log: one record from query parameters
- POST /log: one record from a JSON object body
- POST /multi: one record per element of a JSON array body

All three require the token header. Responses return as soon as the
records are enqueued for delivery.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from ..core.auth import authenticate_token
from ..core.pipeline import IngestPipeline
from ..models.log_record import ErrorResponse

logger = structlog.get_logger(__name__)

router = APIRouter()

AUTH_RESPONSES = {
    401: {"model": ErrorResponse, "description": "Missing or invalid token"},
    503: {"model": ErrorResponse, "description": "Dispatch queue full"},
}

BODY_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Body could not be decoded"},
    413: {"model": ErrorResponse, "description": "Body too large"},
    415: {"model": ErrorResponse, "description": "Unsupported Content-Type"},
    **AUTH_RESPONSES,
}


def get_pipeline(request: Request) -> IngestPipeline:
    """Dependency to get the ingest pipeline from app state."""
    return request.app.state.pipeline


def _content_length(request: Request) -> Optional[int]:
    value = request.headers.get("content-length")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


@router.put(
    "/log",
    response_class=PlainTextResponse,
    responses=AUTH_RESPONSES,
    summary="Log one event from query parameters",
)
async def log_single_put(
    request: Request,
    token: str = Depends(authenticate_token),
    pipeline: IngestPipeline = Depends(get_pipeline),
) -> PlainTextResponse:
    """Every query parameter becomes a string field of the record."""
    await pipeline.ingest_query(request.query_params.multi_items())
    return PlainTextResponse("ok")


@router.post(
    "/log",
    response_class=PlainTextResponse,
    responses=BODY_RESPONSES,
    summary="Log one event from a JSON object",
)
async def log_single_post(
    request: Request,
    token: str = Depends(authenticate_token),
    pipeline: IngestPipeline = Depends(get_pipeline),
) -> PlainTextResponse:
    """The body must hold exactly one JSON object."""
    await pipeline.ingest_single(
        request.stream(),
        request.headers.get("content-type"),
        content_length=_content_length(request),
    )
    return PlainTextResponse("ok\n")


@router.post(
    "/multi",
    response_class=PlainTextResponse,
    responses=BODY_RESPONSES,
    summary="Log several events from a JSON array of objects",
)
async def log_multi(
    request: Request,
    token: str = Depends(authenticate_token),
    pipeline: IngestPipeline = Depends(get_pipeline),
) -> PlainTextResponse:
    """Each element of the array is dispatched as an independent record."""
    result = await pipeline.ingest_batch(
        request.stream(),
        request.headers.get("content-type"),
        content_length=_content_length(request),
    )
    logger.debug("Batch accepted", records=result.records_dispatched)
    return PlainTextResponse("ok")
