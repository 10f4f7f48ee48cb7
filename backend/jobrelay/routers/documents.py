"""Document routes: parse, edit, split and extract a file by url.

Thin HTTP layer over DocumentJobService. Domain errors are translated to
HTTP responses by the handlers registered in `main.py`.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..deps import get_document_service
from ..models import EditFileRequest, ExtractFileRequest, JobResponse, ParseFileRequest, SplitFileRequest
from ..services.orchestration.document_jobs import DocumentJobService

router = APIRouter(prefix="/documents", tags=["documents"])


@router.post("/parse", response_model=JobResponse)
async def parse_file(req: ParseFileRequest, service: DocumentJobService = Depends(get_document_service)) -> JobResponse:
    """Parse a file and return the structured run output."""
    return await service.parse(req)


@router.post("/edit", response_model=JobResponse)
async def edit_file(req: EditFileRequest, service: DocumentJobService = Depends(get_document_service)) -> JobResponse:
    """Edit a file with instructions and store the edited copy."""
    return await service.edit(req)


@router.post("/split", response_model=JobResponse)
async def split_file(req: SplitFileRequest, service: DocumentJobService = Depends(get_document_service)) -> JobResponse:
    """Split a file and store each part as `<base>-<n>`."""
    return await service.split(req)


@router.post("/extract", response_model=JobResponse)
async def extract_file(
    req: ExtractFileRequest, service: DocumentJobService = Depends(get_document_service)
) -> JobResponse:
    return await service.extract(req)
