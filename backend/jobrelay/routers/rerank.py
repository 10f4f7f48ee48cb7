"""Rerank routes over a list of files or a storage folder."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..deps import get_rerank_service
from ..models import RerankFilesRequest, RerankFolderRequest, RerankResponse
from ..services.orchestration.rerank_jobs import RerankJobService

router = APIRouter(prefix="/rerank", tags=["rerank"])


@router.post("/files", response_model=RerankResponse)
async def rerank_files(
    req: RerankFilesRequest, service: RerankJobService = Depends(get_rerank_service)
) -> RerankResponse:
    return await service.rerank_files(req)


@router.post("/folder", response_model=RerankResponse)
async def rerank_folder(
    req: RerankFolderRequest, service: RerankJobService = Depends(get_rerank_service)
) -> RerankResponse:
    """Rerank every object under a `gs://bucket/prefix/` folder."""
    return await service.rerank_folder(req)
