"""Document runs provider: parse, edit, split and extract jobs over uploaded files."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from ...exceptions import ProviderError
from ...models import ArtifactKind, FileItem, RemoteArtifactRef
from ..orchestration.job_runner import JobAdapter, StatusVocabulary
from .base import RemoteStoreClient, quote_id

RUN_KINDS = ("parse", "edit", "split", "extract")

DOCUMENT_RUN_STATUSES = StatusVocabulary.of(
    succeeded=["PROCESSED"],
    failed=["FAILED"],
    cancelled=["CANCELLED"],
    pending=["PENDING", "QUEUED"],
)


class DocumentRunsClient:
    """File and run endpoints of the document provider."""

    def __init__(self, transport: RemoteStoreClient) -> None:
        self._http = transport

    async def aclose(self) -> None:
        await self._http.aclose()

    async def upload_file(self, item: FileItem) -> str:
        data = await self._http.upload_file("files/upload", item)
        file_id = data.get("id")
        if not file_id:
            raise ProviderError("document file upload response missing file id", body=str(data))
        return str(file_id)

    async def create_run(self, kind: str, body: Dict[str, Any]) -> Dict[str, Any]:
        data = await self._http.post_json(_runs(kind), body)
        if not data.get("id"):
            raise ProviderError(f"{kind} run response missing id", body=str(data))
        return data

    async def get_run(self, kind: str, run_id: str) -> Dict[str, Any]:
        return await self._http.get_json(f"{_runs(kind)}/{quote_id(run_id)}")

    async def delete_run(self, kind: str, run_id: str) -> None:
        if run_id:
            await self._http.delete(f"{_runs(kind)}/{quote_id(run_id)}")

    async def download_file(self, file_id: str) -> FileItem:
        return await self._http.download(
            f"files/{quote_id(file_id)}/content",
            uri=f"documents://files/{file_id}",
            fallback_name=file_id,
        )

    async def delete_file(self, file_id: str) -> None:
        if file_id:
            await self._http.delete(f"files/{quote_id(file_id)}")

    # lifecycle deleters

    async def delete_artifact(self, ref: RemoteArtifactRef) -> None:
        await self.delete_file(ref.provider_id)

    def run_deleter(self, kind: str):
        async def _delete(ref: RemoteArtifactRef) -> None:
            await self.delete_run(kind, ref.provider_id)

        return _delete


def _runs(kind: str) -> str:
    if kind not in RUN_KINDS:
        raise ValueError(f"unknown document run kind: {kind}")
    return f"{kind}_runs"


# --- status adapters ---


def _raw_status(raw: Dict[str, Any]) -> Optional[str]:
    status = (raw or {}).get("status")
    return str(status) if status is not None else None


def _failure(raw: Dict[str, Any]) -> Optional[str]:
    reason = (raw or {}).get("failureReason")
    message = (raw or {}).get("failureMessage")
    if not reason and not message:
        return None
    if not message:
        return str(reason)
    return f"{reason or 'unknown'}. {message}"


def _inline_output(raw: Dict[str, Any]) -> List[RemoteArtifactRef]:
    # parse/extract results are returned inline; the run itself is the output
    if (raw or {}).get("output") is None:
        return []
    return [RemoteArtifactRef(provider_id=str(raw.get("id", "")), kind=ArtifactKind.OUTPUT)]


def _edited_file(raw: Dict[str, Any]) -> List[RemoteArtifactRef]:
    edited = ((raw or {}).get("output") or {}).get("editedFile") or {}
    file_id = edited.get("id")
    if not file_id:
        return []
    return [RemoteArtifactRef(provider_id=str(file_id), kind=ArtifactKind.OUTPUT, name=edited.get("name"))]


def _split_files(raw: Dict[str, Any]) -> List[RemoteArtifactRef]:
    splits = ((raw or {}).get("output") or {}).get("splits") or []
    refs: List[RemoteArtifactRef] = []
    seen = set()
    for split in splits:
        file_id = (split or {}).get("fileId")
        if not file_id or file_id in seen:
            continue
        seen.add(file_id)
        refs.append(RemoteArtifactRef(provider_id=str(file_id), kind=ArtifactKind.OUTPUT, name=split.get("name")))
    return refs


def document_run_adapter(kind: str) -> JobAdapter:
    outputs = {"parse": _inline_output, "extract": _inline_output, "edit": _edited_file, "split": _split_files}
    if kind not in outputs:
        raise ValueError(f"unknown document run kind: {kind}")
    return JobAdapter(
        name=f"document {kind}",
        vocabulary=DOCUMENT_RUN_STATUSES,
        raw_status=_raw_status,
        outputs_of=outputs[kind],
        failure_of=_failure,
    )
