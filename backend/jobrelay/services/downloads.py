"""Download / scrape collaborator: resolves a source URL into byte payloads.

Supported sources:
- `http(s)://` links, fetched with a shared httpx client;
- `gs://bucket/path` links, read through the storage client (protected storage).

`download` returns the raw payload. `scrape` returns text-bearing payloads:
HTML is reduced to visible text, PDFs to their text layer, text/JSON/XML is
kept as-is, and images are passed through for multimodal consumers.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional
from urllib.parse import unquote, urlparse

import httpx
import trafilatura

from ..exceptions import InputValidationError, ProviderError
from ..models import FileItem
from ..utils.pdf import extract_pdf_text
from .gcs import GCSService
from .providers.base import filename_from_disposition

logger = logging.getLogger(__name__)


def html_to_text(html: str) -> str:
    """Main visible text of an HTML page (boilerplate, scripts and navigation removed)."""
    text = trafilatura.extract(html, include_comments=False, include_tables=True, favor_recall=True)
    return text or ""


class DownloadService:
    def __init__(
        self,
        gcs: Optional[GCSService] = None,
        *,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._gcs = gcs
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=5.0),
            follow_redirects=True,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def download(self, url: str) -> FileItem:
        url = (url or "").strip()
        if not url:
            raise InputValidationError("fileUrl is required.")
        scheme = urlparse(url).scheme.lower()
        if scheme == "gs":
            if self._gcs is None:
                raise InputValidationError("gs:// links are not configured")
            try:
                return await asyncio.to_thread(self._gcs.download, url)
            except FileNotFoundError:
                raise InputValidationError(f"Object not found: {url}")
            except ValueError as exc:
                raise InputValidationError(str(exc)) from exc
        if scheme not in ("http", "https"):
            raise InputValidationError(f"Unsupported source url: {url}")

        try:
            resp = await self._client.get(url)
        except httpx.HTTPError as exc:
            raise ProviderError(f"download of {url} failed: {exc}") from exc
        if resp.is_error:
            raise ProviderError(f"download of {url} failed", status_code=resp.status_code, body=resp.text[:500])
        content_type = resp.headers.get("content-type", "application/octet-stream").split(";")[0].strip()
        filename = filename_from_disposition(resp.headers.get("content-disposition"))
        if not filename:
            filename = unquote(urlparse(str(resp.url)).path.rsplit("/", 1)[-1]) or None
        return FileItem(contents=resp.content, uri=url, filename=filename, mime_type=content_type)

    async def list_folder(self, folder_url: str) -> List[str]:
        """Object links under a `gs://bucket/prefix/` folder."""
        if self._gcs is None:
            raise InputValidationError("gs:// links are not configured")
        try:
            return await asyncio.to_thread(self._gcs.list_uris, folder_url)
        except ValueError as exc:
            raise InputValidationError(str(exc)) from exc

    async def scrape(self, url: str) -> List[FileItem]:
        item = await self.download(url)
        mime = (item.mime_type or "").lower()
        name = (item.filename or "").lower()
        if mime == "text/html" or mime == "application/xhtml+xml":
            text = await asyncio.to_thread(html_to_text, item.text())
            if not text:
                logger.info("No extractable text in %s", url)
                return []
            return [FileItem(contents=text.encode("utf-8"), uri=url, filename=item.filename, mime_type="text/plain")]
        if mime == "application/pdf" or name.endswith(".pdf"):
            pages = await asyncio.to_thread(extract_pdf_text, item.contents)
            text = "\n".join(p for p in pages if p.strip())
            return [FileItem(contents=text.encode("utf-8"), uri=url, filename=item.filename, mime_type="text/plain")]
        if item.is_text or item.is_image:
            return [item]
        logger.info("No text-bearing content in %s (%s)", url, mime)
        return []
