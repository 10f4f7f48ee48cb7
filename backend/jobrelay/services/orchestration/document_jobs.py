from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ...exceptions import InputValidationError
from ...models import (
    ArtifactKind,
    EditFileRequest,
    ExtractFileRequest,
    FileItem,
    JobRequestBase,
    JobResponse,
    JobResult,
    ParseFileRequest,
    RemoteArtifactRef,
    SplitFileRequest,
)
from ...utils.filenames import default_base_name
from ..downloads import DownloadService
from ..gcs import GCSUploader
from ..providers.documents import DocumentRunsClient, document_run_adapter
from .job_runner import JobRunner
from .lifecycle import ResourceLifecycle
from .materializer import materialize

logger = logging.getLogger(__name__)

PARSE_TARGETS = ("markdown", "spatial")
PARSE_CHUNKING = ("page", "document", "section")
PARSE_ENGINES = ("parse_performance", "parse_light")


def normalize_option(value: Optional[str], allowed: Sequence[str], fallback: str) -> str:
    value = (value or "").strip().lower()
    return value if value in allowed else fallback


def parse_page_ranges(page_ranges: Optional[str]) -> List[Dict[str, int]]:
    """`"1-2,5,9-7"` -> `[{start:1,end:2},{start:5,end:5},{start:7,end:9}]`.

    Malformed segments are skipped.
    """
    ranges: List[Dict[str, int]] = []
    for segment in (page_ranges or "").split(","):
        parts = [p.strip() for p in segment.split("-") if p.strip()]
        try:
            numbers = [int(p) for p in parts]
        except ValueError:
            continue
        if len(numbers) == 1:
            ranges.append({"start": numbers[0], "end": numbers[0]})
        elif len(numbers) == 2:
            start, end = sorted(numbers)
            ranges.append({"start": start, "end": end})
    return ranges


def build_parse_config(req: ParseFileRequest) -> Dict[str, Any]:
    config: Dict[str, Any] = {
        "target": normalize_option(req.target, PARSE_TARGETS, "markdown"),
        "engine": normalize_option(req.engine, PARSE_ENGINES, "parse_performance"),
        "chunkingStrategy": {"type": normalize_option(req.chunkingType, PARSE_CHUNKING, "page")},
    }
    ranges = parse_page_ranges(req.pageRanges)
    if ranges:
        config["advancedOptions"] = {"pageRanges": ranges}
    return config


def _pick(run: Dict[str, Any], *keys: str) -> Dict[str, Any]:
    return {k: run.get(k) for k in keys}


class DocumentJobService:
    """Parse, edit, split and extract operations on the document provider.

    Every operation downloads the source file, uploads it to the provider,
    starts a run, waits for it, and deletes the uploaded file, the run and any
    provider-side output files once it is done.
    """

    def __init__(
        self,
        client: DocumentRunsClient,
        downloads: DownloadService,
        uploader: GCSUploader,
        *,
        runner: Optional[JobRunner] = None,
    ) -> None:
        self._client = client
        self._downloads = downloads
        self._uploader = uploader
        self._runner = runner or JobRunner()

    async def parse(self, req: ParseFileRequest) -> JobResponse:
        body = {"config": build_parse_config(req)}
        async with ResourceLifecycle("document parse") as scope:
            file_id, result = await self._run(scope, "parse", req, body)
        run = result.raw or {}
        content = {"parseRunId": result.job_id, "fileId": file_id}
        content.update(_pick(run, "status", "output", "metrics", "usage", "config"))
        return JobResponse(status=str(run.get("status")), structuredContent=content)

    async def extract(self, req: ExtractFileRequest) -> JobResponse:
        if not (req.extractorId or "").strip():
            raise InputValidationError("extractorId is required.")
        extractor: Dict[str, Any] = {"id": req.extractorId.strip()}
        if req.extractorVersion:
            extractor["version"] = req.extractorVersion
        async with ResourceLifecycle("document extract") as scope:
            file_id, result = await self._run(scope, "extract", req, {"extractor": extractor})
        run = result.raw or {}
        content = {"extractRunId": result.job_id, "fileId": file_id}
        content.update(
            _pick(run, "status", "output", "usage", "config", "extractor", "extractorVersion", "metadata", "dashboardUrl")
        )
        return JobResponse(status=str(run.get("status")), structuredContent=content)

    async def edit(self, req: EditFileRequest) -> JobResponse:
        body = {
            "config": {
                "instructions": req.instructions or "",
                "advancedOptions": {
                    "flattenPdf": bool(req.flattenPdf),
                    "tableParsingEnabled": bool(req.tableParsingEnabled),
                },
            }
        }
        async with ResourceLifecycle("document edit") as scope:
            file_id, result = await self._run(scope, "edit", req, body)
            links = await self._materialize(scope, result, req, "edit")
        run = result.raw or {}
        content = {
            "editRunId": result.job_id,
            "fileId": file_id,
            "editedFileId": result.outputs[0].provider_id,
        }
        content.update(_pick(run, "status", "output", "metrics", "usage", "config"))
        return JobResponse(status=str(run.get("status")), structuredContent=content, links=links)

    async def split(self, req: SplitFileRequest) -> JobResponse:
        if not (req.splitterId or "").strip():
            raise InputValidationError("splitterId is required.")
        async with ResourceLifecycle("document split") as scope:
            file_id, result = await self._run(scope, "split", req, {"splitter": {"id": req.splitterId.strip()}})
            links = await self._materialize(scope, result, req, "split")
        run = result.raw or {}
        content = {"splitRunId": result.job_id, "fileId": file_id}
        content.update(
            _pick(run, "status", "output", "usage", "config", "splitter", "splitterVersion", "metadata", "dashboardUrl")
        )
        return JobResponse(status=str(run.get("status")), structuredContent=content, links=links)

    async def _run(
        self,
        scope: ResourceLifecycle,
        kind: str,
        req: JobRequestBase,
        body: Dict[str, Any],
    ) -> Tuple[str, JobResult]:
        file_url = (getattr(req, "fileUrl", "") or "").strip()
        if not file_url:
            raise InputValidationError("fileUrl is required.")

        item: FileItem = await self._downloads.download(file_url)
        file_id = await self._client.upload_file(item)
        scope.track(RemoteArtifactRef(file_id, ArtifactKind.INPUT), self._client.delete_artifact)
        logger.info("[%s] uploaded %s as file %s", kind, item.filename or file_url, file_id)

        async def submit() -> str:
            run = await self._client.create_run(kind, {"file": {"id": file_id}, **body})
            run_id = str(run["id"])
            scope.track(RemoteArtifactRef(run_id, ArtifactKind.JOB), self._client.run_deleter(kind))
            return run_id

        async def poll(run_id: str) -> Dict[str, Any]:
            return await self._client.get_run(kind, run_id)

        result: JobResult = await self._runner.run(
            submit,
            poll,
            document_run_adapter(kind),
            poll_interval=req.pollingIntervalSeconds,
            timeout=req.maxWaitSeconds,
        )
        return file_id, result.raise_for_status()

    async def _materialize(self, scope: ResourceLifecycle, result: JobResult, req: JobRequestBase, op: str):
        for ref in result.outputs:
            scope.track(ref, self._client.delete_artifact)

        async def fetch(ref: RemoteArtifactRef) -> FileItem:
            return await self._client.download_file(ref.provider_id)

        return await materialize(
            result.outputs,
            fetch,
            self._uploader.for_operation(),
            base_name=req.outputFileName or default_base_name(op),
        )
