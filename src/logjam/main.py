"""
Main FastAPI application entry point.

This module sets up the FastAPI app with middleware, routes, exception
handlers and lifecycle events.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Awaitable, Callable, Optional

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from . import __version__
from .api import healthz_router, logs_router, metrics_router, site_router
from .config import Settings, get_settings
from .core.auth import AuthGate, TokenSet
from .core.decoder import BodyDecoder
from .core.dispatcher import Dispatcher
from .core.exceptions import LogjamException
from .core.metrics import MetricsCollector
from .core.normalizer import RecordNormalizer
from .core.pipeline import IngestPipeline
from .core.sinks import Sink, build_sink


def configure_logging(log_level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structured logging for the application."""
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper()),
    )

    renderer: Any = (
        structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def create_lifespan_handler(settings: Settings, sink: Optional[Sink] = None) -> Any:
    """Create a lifespan handler with access to settings."""
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """
        FastAPI lifespan context manager.

        Builds the token set and pipeline once before serving, and drains
        the dispatcher on shutdown.
        """
        logger = structlog.get_logger(__name__)
        logger.info("Starting Logjam service", version=app.version)

        metrics: MetricsCollector = app.state.metrics

        token_set = TokenSet.from_config(settings.tokens, allow_empty=settings.allow_empty_token)
        app.state.auth_gate = AuthGate(token_set, header_name=settings.token_header)

        dispatcher = Dispatcher(
            sink=sink if sink is not None else build_sink(settings.dispatcher.sinks),
            workers=settings.dispatcher.workers,
            queue_size=settings.dispatcher.queue_size,
            policy=settings.dispatcher.backpressure,
            deliver_timeout=settings.dispatcher.deliver_timeout_seconds,
            metrics=metrics,
        )
        app.state.dispatcher = dispatcher

        decoder = BodyDecoder(
            max_bytes=settings.decoder.max_body_bytes,
            accepted_media_types=settings.decoder.accepted_media_types,
            schema=settings.decoder.record_schema,
            max_depth=settings.decoder.max_depth,
        )
        app.state.pipeline = IngestPipeline(
            decoder=decoder,
            normalizer=RecordNormalizer(settings.query_repeat_policy),
            dispatcher=dispatcher,
            multi_strict=settings.decoder.multi_strict,
            metrics=metrics,
        )

        await dispatcher.start()

        try:
            logger.info("Logjam service started successfully", port=settings.port)
            yield
        finally:
            logger.info("Shutting down Logjam service")
            await dispatcher.stop(drain=True, timeout=settings.dispatcher.drain_timeout_seconds)
            logger.info("Logjam service shutdown complete")

    return lifespan


async def logjam_exception_handler(request: Request, exc: LogjamException) -> JSONResponse:
    """Handle custom Logjam exceptions."""
    logger = structlog.get_logger(__name__)
    logger.warning(
        "Request rejected",
        error=str(exc),
        error_code=exc.error_code,
        status_code=exc.status_code,
        path=request.url.path,
        method=request.method,
    )

    metrics = getattr(request.app.state, "metrics", None)
    if metrics:
        metrics.record_rejection(exc.error_code)

    headers = {}

    # Add Retry-After header for backpressure rejections
    if "retry_after" in exc.details:
        headers["Retry-After"] = str(exc.details["retry_after"])

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error_code,
            "message": str(exc),
            "details": exc.details,
        },
        headers=headers,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger = structlog.get_logger(__name__)
    logger.error(
        "Unexpected exception occurred",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        exc_info=exc,
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred",
        },
    )


async def record_request_metrics(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Record per-request count and latency."""
    start = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        metrics = getattr(request.app.state, "metrics", None)
        if metrics:
            # Set by the router once a route matched
            route_obj = request.scope.get("route")
            endpoint = getattr(route_obj, "path", None) if route_obj else None
            metrics.record_request(
                method=request.method,
                endpoint=endpoint or "unmatched",
                status_code=status_code,
                duration_seconds=time.perf_counter() - start,
            )


def create_app(settings: Optional[Settings] = None, sink: Optional[Sink] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    settings defaults to the cached environment settings. sink replaces
    the configured sinks, which is how tests observe deliveries.
    """
    if settings is None:
        settings = get_settings()

    configure_logging(settings.log_level, settings.log_json)

    app = FastAPI(
        title="Logjam",
        description="Log ingestion front end: validate, then fan out to sinks",
        version=__version__,
        docs_url="/docs",
        redoc_url=None,
        openapi_url="/openapi.json",
        lifespan=create_lifespan_handler(settings, sink),
    )
    app.state.settings = settings
    app.state.metrics = MetricsCollector()

    app.middleware("http")(record_request_metrics)
    app.add_exception_handler(LogjamException, logjam_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(site_router, tags=["site"])
    app.include_router(logs_router, tags=["logs"])
    app.include_router(healthz_router, tags=["health"])
    app.include_router(metrics_router, tags=["metrics"])

    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "logjam.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
