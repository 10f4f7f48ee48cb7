"""Authenticated HTTP transport to one external provider.

One instance per provider, shared read-only by concurrent operations.
Every non-2xx response, transport error, or non-JSON body is raised as
ProviderError carrying the status code and raw body.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from ...exceptions import ProviderError
from ...models import FileItem

logger = logging.getLogger(__name__)

_FILENAME_RE = re.compile(r'filename\*?=(?:UTF-8\'\')?"?([^";]+)"?', re.IGNORECASE)


def quote_id(value: str) -> str:
    return quote(value, safe="")


def filename_from_disposition(header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    match = _FILENAME_RE.search(header)
    return match.group(1).strip() if match else None


class RemoteStoreClient:
    """Thin wrapper around httpx.AsyncClient for one provider base address."""

    def __init__(
        self,
        name: str,
        base_url: str,
        api_key: str = "",
        *,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.name = name
        default_headers = {"Accept": "application/json"}
        if api_key:
            default_headers["Authorization"] = f"Bearer {api_key}"
        default_headers.update(headers or {})
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=default_headers,
            timeout=httpx.Timeout(timeout, connect=5.0),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise ProviderError(f"{self.name} {method} {path} failed: {exc}") from exc
        if resp.is_error:
            raise ProviderError(
                f"{self.name} {method} {path} returned an error",
                status_code=resp.status_code,
                body=resp.text,
            )
        return resp

    def _json(self, resp: httpx.Response, method: str, path: str) -> Dict[str, Any]:
        if not resp.content.strip():
            return {}
        try:
            data = resp.json()
        except ValueError:
            raise ProviderError(
                f"{self.name} {method} {path} returned non-JSON",
                status_code=resp.status_code,
                body=resp.text,
            )
        return data if isinstance(data, dict) else {"content": data}

    async def get_json(self, path: str, *, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        resp = await self._send("GET", path, params=params)
        return self._json(resp, "GET", path)

    async def post_json(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        # drop nulls, as the providers reject explicit None for optional fields
        body = {k: v for k, v in payload.items() if v is not None}
        resp = await self._send("POST", path, json=body)
        return self._json(resp, "POST", path)

    async def upload_file(self, path: str, item: FileItem, *, field: str = "file") -> Dict[str, Any]:
        files = {field: (item.filename or "document.bin", item.contents, item.mime_type or "application/octet-stream")}
        resp = await self._send("POST", path, files=files)
        return self._json(resp, "POST", path)

    async def download(self, path: str, *, uri: str = "", fallback_name: Optional[str] = None) -> FileItem:
        resp = await self._send("GET", path)
        content_type = resp.headers.get("content-type", "application/octet-stream").split(";")[0].strip()
        filename = filename_from_disposition(resp.headers.get("content-disposition")) or fallback_name
        return FileItem(contents=resp.content, uri=uri or str(resp.url), filename=filename, mime_type=content_type)

    async def delete(self, path: str) -> None:
        await self._send("DELETE", path)
        logger.debug("%s DELETE %s ok", self.name, path)
