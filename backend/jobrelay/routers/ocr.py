"""OCR route: PDF url in, extracted text link out."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..deps import get_ocr_service
from ..models import JobResponse, OcrRequest
from ..services.orchestration.ocr_jobs import OcrJobService

router = APIRouter(tags=["ocr"])


@router.post("/ocr", response_model=JobResponse)
async def ocr_pdf(req: OcrRequest, service: OcrJobService = Depends(get_ocr_service)) -> JobResponse:
    """Run Vision OCR over a PDF and store the text as a `.txt` file."""
    return await service.run(req)
