"""FastAPI dependencies: operation services built at startup."""
from __future__ import annotations

from fastapi import HTTPException, Request

from .services.container import ServiceContainer
from .services.orchestration.document_jobs import DocumentJobService
from .services.orchestration.media_jobs import MediaJobService
from .services.orchestration.ocr_jobs import OcrJobService
from .services.orchestration.rerank_jobs import RerankJobService


def get_services(request: Request) -> ServiceContainer:
    """Return the container created by the app lifespan.

    Tests replace the per-operation getters below via `app.dependency_overrides`.
    """
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Services are not initialized")
    return services


def get_document_service(request: Request) -> DocumentJobService:
    return get_services(request).documents


def get_media_service(request: Request) -> MediaJobService:
    return get_services(request).media


def get_ocr_service(request: Request) -> OcrJobService:
    return get_services(request).ocr


def get_rerank_service(request: Request) -> RerankJobService:
    return get_services(request).rerank
