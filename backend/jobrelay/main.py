"""
Main FastAPI application for the Remote Job Relay backend.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
from contextlib import asynccontextmanager

from .config import get_settings
from .exceptions import (
    InputValidationError,
    JobFailedError,
    JobRelayError,
    JobTimeoutError,
    NoContentError,
    ProviderError,
)
from .routers.health import router as health_router
from .routers.config import router as config_router
from .routers.documents import router as documents_router
from .routers.media import router as media_router
from .routers.ocr import router as ocr_router
from .routers.rerank import router as rerank_router
from .services.container import ServiceContainer


settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    InputValidationError: 400,
    ProviderError: 502,
    JobTimeoutError: 504,
    JobFailedError: 502,
    NoContentError: 422,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    if getattr(app.state, "services", None) is None:
        app.state.services = ServiceContainer.from_settings(settings)
        app.state._owns_services = True
    try:
        yield
    finally:
        # Shutdown
        if getattr(app.state, "_owns_services", False):
            await app.state.services.aclose()
            app.state.services = None


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(JobRelayError)
async def job_relay_error_handler(request: Request, exc: JobRelayError) -> JSONResponse:
    status_code = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 500)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"error": exc.kind, "detail": str(exc)})


# Routers
app.include_router(health_router, prefix=settings.API_PREFIX)
app.include_router(config_router, prefix=settings.API_PREFIX)
app.include_router(documents_router, prefix=settings.API_PREFIX)
app.include_router(media_router, prefix=settings.API_PREFIX)
app.include_router(ocr_router, prefix=settings.API_PREFIX)
app.include_router(rerank_router, prefix=settings.API_PREFIX)


@app.get("/", tags=["root"])
async def root() -> dict:
    """Simple root endpoint."""
    return {"name": app.title, "version": app.version}
