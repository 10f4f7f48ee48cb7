"""Rerank provider: one synchronous call over the merged fan-out documents."""
from __future__ import annotations

from typing import Any, Dict, List

from .base import RemoteStoreClient


class RerankClient:
    def __init__(self, transport: RemoteStoreClient) -> None:
        self._http = transport

    async def aclose(self) -> None:
        await self._http.aclose()

    async def rerank(self, model: str, query: str, documents: List[str], top_n: int) -> Dict[str, Any]:
        payload = {
            "model": model,
            "query": query,
            "top_n": top_n,
            "documents": documents,
            "return_documents": True,
        }
        return await self._http.post_json("rerank", payload)
