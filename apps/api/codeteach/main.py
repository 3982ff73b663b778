import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .cache.result_cache import cache
from .core.config import settings
from .core.logging import configure_logging
from .dependencies import close_clients
from .exceptions import NotesError, ToolExecutionError, UpstreamError
from .middleware.correlation import CorrelationIDMiddleware
from .middleware.error_handler import (
    generic_exception_handler,
    http_exception_handler,
    notes_exception_handler,
    upstream_exception_handler,
    validation_exception_handler,
)
from .middleware.metrics import MetricsMiddleware, get_metrics
from .middleware.rate_limit import rate_limiter
from .routers import explain, generate, notes, playground

logger = logging.getLogger(__name__)


app = FastAPI(
    title="CodeTeach API",
    description="Streaming code generation and explanation for programming learners",
    version=__version__,
    default_response_class=ORJSONResponse,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.middleware("http")(MetricsMiddleware())


@app.middleware("http")
async def rate_limit_middleware(request: Request, call_next):
    try:
        await rate_limiter.check(request)
    except HTTPException as e:
        return ORJSONResponse(status_code=e.status_code, content=e.detail)
    return await call_next(request)


# Added last so it runs first and the ID is in every log line.
app.add_middleware(CorrelationIDMiddleware)

app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(UpstreamError, upstream_exception_handler)
app.add_exception_handler(ToolExecutionError, upstream_exception_handler)
app.add_exception_handler(NotesError, notes_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

app.include_router(generate.router)
app.include_router(explain.router)
app.include_router(playground.router)
app.include_router(notes.router)


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    configure_logging(settings.LOG_LEVEL)
    logger.info(f"Starting CodeTeach API v{__version__} ({settings.APP_ENV})")

    settings.validate_production_config()
    if not settings.ANTHROPIC_API_KEY:
        logger.warning("ANTHROPIC_API_KEY is not set; model-backed endpoints will fail")

    await cache.connect()


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info("Shutting down CodeTeach API...")
    await cache.disconnect()
    await close_clients()


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "version": __version__,
        "model": settings.MODEL_NAME,
        "cache": cache.backend,
        "toolsEnabled": settings.EXPLAIN_USE_TOOLS,
    }


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return get_metrics()
