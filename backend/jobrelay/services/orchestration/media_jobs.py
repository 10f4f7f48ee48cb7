from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ...exceptions import InputValidationError
from ...models import (
    ArtifactKind,
    DurableLink,
    FileItem,
    JobResponse,
    MediaTaskRequest,
    PendingTask,
    RemoteArtifactRef,
)
from ...utils.filenames import default_base_name
from ..downloads import DownloadService
from ..gcs import GCSUploader
from ..providers.media import MEDIA_TASK_ADAPTER, MediaTasksClient
from .job_runner import JobRunner
from .lifecycle import ResourceLifecycle
from .materializer import materialize

logger = logging.getLogger(__name__)

DEFAULT_RATIO = "1280:720"
# used only when the generated file reports no extension of its own
ENDPOINT_EXTENSIONS = {"text_to_video": "mp4", "image_to_video": "mp4", "text_to_image": "png"}


class MediaJobService:
    """Generation tasks: create (optionally waiting), check or wait on an existing task."""

    def __init__(
        self,
        client: MediaTasksClient,
        downloads: DownloadService,
        uploader: GCSUploader,
        *,
        runner: Optional[JobRunner] = None,
        poll_interval: float = 2,
        max_wait: float = 900,
    ) -> None:
        self._client = client
        self._downloads = downloads
        self._uploader = uploader
        self._runner = runner or JobRunner()
        self._poll_interval = poll_interval
        self._max_wait = max_wait

    async def build_payload(self, req: MediaTaskRequest) -> Dict[str, Any]:
        prompt = (req.promptText or "").strip()
        payload: Dict[str, Any] = {
            "model": req.model,
            "ratio": req.ratio or DEFAULT_RATIO,
            "seed": req.seed,
        }
        if req.endpoint == "image_to_video":
            if not req.promptImages:
                raise InputValidationError("At least one prompt image is required.")
            if req.duration is not None and not 2 <= req.duration <= 10:
                raise InputValidationError("Duration must be between 2 and 10 seconds.")
            images: List[Dict[str, str]] = []
            for position, url in enumerate(req.promptImages):
                item = await self._downloads.download(url)
                images.append({"uri": item.to_data_uri(), "position": "first" if position == 0 else "last"})
            payload["promptImage"] = images
            payload["promptText"] = prompt or None
            payload["duration"] = req.duration or 6
        else:
            if not prompt:
                raise InputValidationError("promptText is required.")
            payload["promptText"] = prompt
            if req.endpoint == "text_to_video":
                payload["duration"] = req.duration or 6
        return payload

    async def create(self, req: MediaTaskRequest):
        """Start a task. Returns a PendingTask unless the caller asked to wait."""
        payload = await self.build_payload(req)
        if not req.waitUntilCompleted:
            task_id = await self._client.create_task(req.endpoint, payload)
            logger.info("[%s] media %s task started, not waiting", task_id, req.endpoint)
            return PendingTask(taskId=task_id)

        async with ResourceLifecycle(f"media {req.endpoint}") as scope:

            async def submit() -> str:
                task_id = await self._client.create_task(req.endpoint, payload)
                scope.track(RemoteArtifactRef(task_id, ArtifactKind.JOB), self._client.delete_task)
                return task_id

            return await self._wait_and_store(
                submit,
                file_extension=req.fileExtension,
                default_extension=ENDPOINT_EXTENSIONS.get(req.endpoint),
                base_name=req.outputFileName or default_base_name(req.endpoint),
                poll_interval=req.pollingIntervalSeconds,
                max_wait=req.maxWaitSeconds,
            )

    async def status(
        self,
        task_id: str,
        *,
        wait: bool = False,
        file_extension: Optional[str] = None,
        output_file_name: Optional[str] = None,
        poll_interval: Optional[float] = None,
        max_wait: Optional[float] = None,
    ):
        """Single status check (raw payload), or wait and store the outputs."""
        task_id = (task_id or "").strip()
        if not task_id:
            raise InputValidationError("taskId is required.")
        if not wait:
            return await self._client.get_task(task_id)

        async def submit() -> str:
            return task_id

        return await self._wait_and_store(
            submit,
            file_extension=file_extension,
            base_name=output_file_name or default_base_name("task"),
            poll_interval=poll_interval or self._poll_interval,
            max_wait=max_wait or self._max_wait,
        )

    async def _wait_and_store(
        self, submit, *, file_extension, base_name, poll_interval, max_wait, default_extension=None
    ) -> JobResponse:
        result = await self._runner.run(
            submit,
            self._client.get_task,
            MEDIA_TASK_ADAPTER,
            poll_interval=poll_interval,
            timeout=max_wait,
        )
        result.raise_for_status()

        async def fetch(ref: RemoteArtifactRef) -> FileItem:
            return await self._downloads.download(ref.uri or ref.provider_id)

        links: List[DurableLink] = await materialize(
            result.outputs,
            fetch,
            self._uploader.for_operation(),
            base_name=base_name,
            extension=file_extension,
            default_extension=default_extension,
        )
        raw = result.raw or {}
        return JobResponse(
            status=str(raw.get("status")),
            structuredContent={"taskId": result.job_id, "status": raw.get("status"), "createdAt": raw.get("createdAt")},
            links=links,
        )
