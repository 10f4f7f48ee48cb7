from __future__ import annotations

import asyncio
import base64
import logging
from typing import Iterable, List, Optional, Sequence, Set

from ...exceptions import InputValidationError, ProviderError
from ...models import RerankFilesRequest, RerankFolderRequest, RerankResponse, RerankResult
from ...pipeline.preprocessing import normalize_document
from ..downloads import DownloadService
from ..providers.rerank import RerankClient
from .fan_out import DEFAULT_CONCURRENCY, aggregate

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 300


class RerankJobService:
    """Scrape many sources with bounded concurrency, then rank them in one call."""

    def __init__(
        self,
        client: RerankClient,
        downloads: DownloadService,
        *,
        default_model: str,
        image_models: Iterable[str] = (),
        concurrency: int = DEFAULT_CONCURRENCY,
        max_doc_chars: int = 20000,
    ) -> None:
        self._client = client
        self._downloads = downloads
        self._default_model = default_model
        self._image_models = {m.strip().lower() for m in image_models if m and m.strip()}
        self._concurrency = concurrency
        self._max_doc_chars = max_doc_chars

    async def rerank_files(self, req: RerankFilesRequest) -> RerankResponse:
        return await self._rerank(req.query, req.fileUrls, req.model, req.topN)

    async def rerank_folder(self, req: RerankFolderRequest) -> RerankResponse:
        folder = (req.folderUrl or "").strip()
        if not folder.startswith("gs://"):
            raise InputValidationError("folderUrl must be a gs:// folder link")
        urls = await self._downloads.list_folder(folder)
        logger.info("[rerank] %d file(s) under %s", len(urls), folder)
        return await self._rerank(req.query, urls, req.model, req.topN)

    async def _rerank(self, query: str, urls: Sequence[str], model: Optional[str], top_n: int) -> RerankResponse:
        query = (query or "").strip()
        if not query:
            raise InputValidationError("query is required.")
        if not any(u and u.strip() for u in urls or ()):
            raise InputValidationError("At least one file url is required.")
        model = (model or self._default_model).strip()
        with_images = model.lower() in self._image_models
        images: Set[str] = set()

        async def fetch(url: str) -> List[str]:
            blobs: List[str] = []
            for item in await self._downloads.scrape(url):
                if item.is_image:
                    if with_images:
                        encoded = base64.b64encode(item.contents).decode("ascii")
                        images.add(encoded)
                        blobs.append(encoded)
                    continue
                text = await asyncio.to_thread(normalize_document, item.text(), self._max_doc_chars)
                if text:
                    blobs.append(text)
            return blobs

        items = await aggregate(urls, fetch, concurrency=self._concurrency)
        documents = [item.extracted_text or "" for item in items]
        data = await self._client.rerank(model, query, documents, min(top_n, len(documents)))

        results: List[RerankResult] = []
        for entry in data.get("results") or []:
            index = entry.get("index")
            if not isinstance(index, int) or not 0 <= index < len(items):
                raise ProviderError("rerank result index out of range", body=str(entry))
            text = documents[index]
            results.append(
                RerankResult(
                    index=index,
                    relevanceScore=float(entry.get("relevance_score", 0.0)),
                    source=items[index].source_ref,
                    document=None if text in images else text[:PREVIEW_CHARS],
                )
            )
        return RerankResponse(model=str(data.get("model") or model), query=query, documents=len(documents), results=results)
