from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional

from ...exceptions import InputValidationError, ProviderError
from ...models import ArtifactKind, FileItem, JobResponse, OcrRequest, RemoteArtifactRef
from ...utils.filenames import default_base_name, safe_name
from ...utils.pdf import count_pdf_pages
from ..downloads import DownloadService
from ..gcs import GCSService, GCSUploader
from ..vision import VISION_OCR_ADAPTER, VisionOcrClient, text_from_output
from .job_runner import JobRunner
from .lifecycle import ResourceLifecycle

logger = logging.getLogger(__name__)


@dataclass
class OcrResult:
    text: str
    pages: int
    method: str = "vision_async"


class OcrJobService:
    """PDF OCR through Vision async file annotation.

    The input PDF is staged in the bucket, OCR results land under a temporary
    prefix, and both are removed when the operation ends.
    """

    def __init__(
        self,
        vision: VisionOcrClient,
        gcs: GCSService,
        downloads: DownloadService,
        uploader: GCSUploader,
        *,
        upload_prefix: str = "uploads",
        max_size_mb: int = 20,
        max_pages: int = 100,
        batch_size: int = 20,
        runner: Optional[JobRunner] = None,
    ) -> None:
        self._vision = vision
        self._gcs = gcs
        self._downloads = downloads
        self._uploader = uploader
        self._upload_prefix = upload_prefix.strip("/")
        self._max_size_mb = max_size_mb
        self._max_pages = max_pages
        self._batch_size = batch_size
        self._runner = runner or JobRunner()

    async def validate(self, item: FileItem) -> int:
        """Size and page limits. Returns the page count."""
        if len(item.contents) > self._max_size_mb * 1024 * 1024:
            raise InputValidationError(f"File exceeds {self._max_size_mb} MB limit")
        pages = await asyncio.to_thread(count_pdf_pages, item.contents)
        if pages > self._max_pages:
            raise InputValidationError(f"PDF has {pages} pages; limit is {self._max_pages}")
        if pages == 0:
            raise InputValidationError("PDF has no pages")
        return pages

    async def run(self, req: OcrRequest) -> JobResponse:
        file_url = (req.fileUrl or "").strip()
        if not file_url:
            raise InputValidationError("fileUrl is required.")
        item = await self._downloads.download(file_url)
        page_count = await self.validate(item)

        op_id = uuid.uuid4().hex
        base_name = req.outputFileName or default_base_name("ocr")
        async with ResourceLifecycle("ocr") as scope:
            blob_path = f"{self._upload_prefix}/{op_id}.pdf" if self._upload_prefix else f"{op_id}.pdf"
            gcs_uri = await asyncio.to_thread(self._gcs.upload_bytes, blob_path, item.contents, "application/pdf")
            scope.track(RemoteArtifactRef(gcs_uri, ArtifactKind.INPUT, uri=gcs_uri), self._gcs.delete_artifact)
            logger.info("[%s] staged %s (%d pages) at %s", op_id, item.filename or file_url, page_count, gcs_uri)

            output_prefix = f"gs://{self._gcs.bucket_name}/vision/{op_id}/"

            async def submit():
                handle = await self._vision.start(
                    gcs_uri, output_prefix, batch_size=max(1, min(page_count, self._batch_size))
                )
                scope.track(
                    RemoteArtifactRef(output_prefix, ArtifactKind.OUTPUT, uri=output_prefix),
                    self._gcs.delete_folder,
                )
                return handle

            result = await self._runner.run(
                submit,
                self._vision.poll,
                VISION_OCR_ADAPTER,
                poll_interval=req.pollingIntervalSeconds,
                timeout=req.maxWaitSeconds,
            )
            result.raise_for_status()

            ocr = await self._collect(result.outputs)
            if not ocr.text:
                logger.warning("[%s] OCR returned no text for %s", op_id, file_url)
            name = f"{safe_name(base_name)}.txt"
            link = await self._uploader.for_operation()(
                name, FileItem(contents=ocr.text.encode("utf-8"), filename=name, mime_type="text/plain")
            )
            if link is None:
                raise ProviderError(f"upload of {name} returned no link")

        return JobResponse(
            status="DONE",
            structuredContent={
                "operation": result.job_id,
                "pages": ocr.pages or page_count,
                "method": ocr.method,
                "characters": len(ocr.text),
                "text": ocr.text,
            },
            links=[link],
        )

    async def _collect(self, outputs) -> OcrResult:
        full_text: List[str] = []
        page_total = 0
        for ref in outputs:
            shard = await self._vision.fetch_output(ref)
            texts, pages = text_from_output(shard)
            full_text.extend(texts)
            page_total += pages
        return OcrResult(text="\n".join(full_text).strip(), pages=page_total)
