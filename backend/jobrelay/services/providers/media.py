"""Generation tasks provider (text/image to video, text to image).

Tasks are created at `v1/<endpoint>` and polled at `v1/tasks/<id>`. Finished
tasks list their outputs as downloadable URLs.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from ...exceptions import ProviderError
from ...models import ArtifactKind, RemoteArtifactRef
from ..orchestration.job_runner import JobAdapter, StatusVocabulary
from .base import RemoteStoreClient, quote_id

MEDIA_ENDPOINTS = {
    "text_to_video": "v1/text_to_video",
    "image_to_video": "v1/image_to_video",
    "text_to_image": "v1/text_to_image",
}

MEDIA_TASK_STATUSES = StatusVocabulary.of(
    succeeded=["SUCCEEDED"],
    failed=["FAILED"],
    cancelled=["CANCELLED"],
    pending=["PENDING", "THROTTLED"],
)


class MediaTasksClient:
    def __init__(self, transport: RemoteStoreClient) -> None:
        self._http = transport

    async def aclose(self) -> None:
        await self._http.aclose()

    async def create_task(self, endpoint: str, payload: Dict[str, Any]) -> str:
        path = MEDIA_ENDPOINTS.get(endpoint)
        if path is None:
            raise ValueError(f"unknown media endpoint: {endpoint}")
        data = await self._http.post_json(path, payload)
        task_id = data.get("id")
        if not task_id:
            raise ProviderError("No task ID returned from media API.", body=str(data))
        return str(task_id)

    async def get_task(self, task_id: str) -> Dict[str, Any]:
        return await self._http.get_json(f"v1/tasks/{quote_id(task_id)}")

    async def delete_task(self, ref: RemoteArtifactRef) -> None:
        await self._http.delete(f"v1/tasks/{quote_id(ref.provider_id)}")


def _raw_status(raw: Dict[str, Any]) -> Optional[str]:
    status = (raw or {}).get("status")
    return str(status) if status is not None else None


def _failure(raw: Dict[str, Any]) -> Optional[str]:
    reason = (raw or {}).get("failure")
    code = (raw or {}).get("failureCode")
    if not reason and not code:
        return None
    return f"{reason or 'Unknown failure.'} ({code})" if code else str(reason)


def _output_urls(raw: Dict[str, Any]) -> List[RemoteArtifactRef]:
    refs: List[RemoteArtifactRef] = []
    for output in (raw or {}).get("output") or []:
        url = str(output or "").strip()
        if url:
            refs.append(RemoteArtifactRef(provider_id=url, kind=ArtifactKind.OUTPUT, uri=url))
    return refs


MEDIA_TASK_ADAPTER = JobAdapter(
    name="media task",
    vocabulary=MEDIA_TASK_STATUSES,
    raw_status=_raw_status,
    outputs_of=_output_urls,
    failure_of=_failure,
)
