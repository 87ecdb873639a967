"""
Health check endpoints.

- /health: Liveness probe (always 200 if service alive)
- /readyz: Readiness probe (200 only while the dispatcher accepts records)
"""

import structlog
from fastapi import APIRouter, Request, status
from fastapi.responses import PlainTextResponse

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get(
    "/health",
    response_class=PlainTextResponse,
    summary="Liveness probe",
    description="""
    Liveness probe endpoint.

    Always returns 200 OK if the service is running. Can be used by a load
    balancer to decide whether the instance is stable.
    """,
)
async def liveness_check() -> PlainTextResponse:
    return PlainTextResponse("ok\n")


@router.get(
    "/readyz",
    response_class=PlainTextResponse,
    summary="Readiness probe",
    description="""
    Readiness probe endpoint.

    Returns 200 only while the dispatcher is running and admitting records,
    503 Service Unavailable otherwise (startup, shutdown).
    """,
)
async def readiness_check(request: Request) -> PlainTextResponse:
    dispatcher = getattr(request.app.state, "dispatcher", None)

    if dispatcher is None or not dispatcher.running:
        logger.warning("Readiness check failed: dispatcher not running")
        return PlainTextResponse(
            "not ready\n",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    return PlainTextResponse("ready\n")
