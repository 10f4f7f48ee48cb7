"""Generation task routes (video and image)."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..deps import get_media_service
from ..models import MediaTaskRequest
from ..services.orchestration.media_jobs import MediaJobService

router = APIRouter(prefix="/media", tags=["media"])


@router.post("/tasks")
async def create_task(req: MediaTaskRequest, service: MediaJobService = Depends(get_media_service)):
    """Start a task. Returns `{taskId, status: PENDING}` unless `waitUntilCompleted` is set."""
    return await service.create(req)


@router.get("/tasks/{task_id}")
async def get_task(
    task_id: str,
    wait: bool = Query(default=False, description="Poll until the task finishes and store its outputs"),
    fileExtension: Optional[str] = Query(default=None),
    outputFileName: Optional[str] = Query(default=None),
    pollingIntervalSeconds: Optional[int] = Query(default=None),
    maxWaitSeconds: Optional[int] = Query(default=None),
    service: MediaJobService = Depends(get_media_service),
):
    return await service.status(
        task_id,
        wait=wait,
        file_extension=fileExtension,
        output_file_name=outputFileName,
        poll_interval=pollingIntervalSeconds,
        max_wait=maxWaitSeconds,
    )
