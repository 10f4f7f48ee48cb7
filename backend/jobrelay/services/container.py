"""Builds the shared clients and operation services for one app instance."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..config import Settings
from .downloads import DownloadService
from .gcs import GCSService, GCSUploader
from .orchestration.document_jobs import DocumentJobService
from .orchestration.media_jobs import MediaJobService
from .orchestration.ocr_jobs import OcrJobService
from .orchestration.rerank_jobs import RerankJobService
from .providers.base import RemoteStoreClient
from .providers.documents import DocumentRunsClient
from .providers.media import MediaTasksClient
from .providers.rerank import RerankClient
from .vision import VisionOcrClient

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    documents: DocumentJobService
    media: MediaJobService
    ocr: OcrJobService
    rerank: RerankJobService
    _closers: tuple = ()

    @classmethod
    def from_settings(cls, settings: Settings, *, gcs: Optional[GCSService] = None) -> "ServiceContainer":
        gcs = gcs or GCSService(settings.GCS_BUCKET)
        uploader = GCSUploader(gcs, prefix=settings.OUTPUT_PREFIX)
        downloads = DownloadService(gcs, timeout=settings.HTTP_TIMEOUT_SECONDS)

        document_runs = DocumentRunsClient(
            RemoteStoreClient(
                "documents",
                settings.DOCUMENTS_API_BASE_URL,
                settings.DOCUMENTS_API_KEY,
                headers={"x-extend-api-version": settings.DOCUMENTS_API_VERSION},
                timeout=settings.HTTP_TIMEOUT_SECONDS,
            )
        )
        media_tasks = MediaTasksClient(
            RemoteStoreClient(
                "media",
                settings.MEDIA_API_BASE_URL,
                settings.MEDIA_API_KEY,
                headers={"X-Runway-Version": settings.MEDIA_API_VERSION},
                timeout=settings.HTTP_TIMEOUT_SECONDS,
            )
        )
        reranker = RerankClient(
            RemoteStoreClient(
                "rerank",
                settings.RERANK_API_BASE_URL,
                settings.RERANK_API_KEY,
                timeout=settings.HTTP_TIMEOUT_SECONDS,
            )
        )

        return cls(
            documents=DocumentJobService(document_runs, downloads, uploader),
            media=MediaJobService(
                media_tasks,
                downloads,
                uploader,
                poll_interval=settings.POLL_INTERVAL_SECONDS,
                max_wait=settings.MAX_WAIT_SECONDS,
            ),
            ocr=OcrJobService(
                VisionOcrClient(gcs),
                gcs,
                downloads,
                uploader,
                upload_prefix=settings.UPLOAD_PREFIX,
                max_size_mb=settings.MAX_SIZE_MB,
                max_pages=settings.MAX_PAGES,
                batch_size=min(settings.OCR_BATCH_SIZE, settings.MAX_PAGES),
            ),
            rerank=RerankJobService(
                reranker,
                downloads,
                default_model=settings.RERANK_DEFAULT_MODEL,
                image_models=settings.RERANK_IMAGE_MODELS,
                concurrency=settings.FANOUT_CONCURRENCY,
                max_doc_chars=settings.RERANK_MAX_DOC_CHARS,
            ),
            _closers=(downloads, document_runs, media_tasks, reranker),
        )

    async def aclose(self) -> None:
        for client in self._closers:
            try:
                await client.aclose()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Error closing %s: %s", type(client).__name__, exc)
