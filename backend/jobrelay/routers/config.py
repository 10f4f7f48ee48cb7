"""Runtime config endpoint for clients."""
from __future__ import annotations

from fastapi import APIRouter

from ..config import get_settings
from ..services.orchestration.job_runner import MIN_MAX_WAIT_SECONDS, MIN_POLL_INTERVAL_SECONDS

router = APIRouter(tags=["config"])


@router.get("/config")
async def get_config() -> dict:
    """Expose non-sensitive runtime limits and polling defaults."""
    settings = get_settings()
    return {
        "maxSizeMb": settings.MAX_SIZE_MB,
        "maxPages": settings.MAX_PAGES,
        "pollingIntervalSeconds": settings.POLL_INTERVAL_SECONDS,
        "maxWaitSeconds": settings.MAX_WAIT_SECONDS,
        "minPollingIntervalSeconds": MIN_POLL_INTERVAL_SECONDS,
        "minMaxWaitSeconds": MIN_MAX_WAIT_SECONDS,
        "fanOutConcurrency": settings.FANOUT_CONCURRENCY,
        "rerankDefaultModel": settings.RERANK_DEFAULT_MODEL,
        "rerankImageModels": settings.RERANK_IMAGE_MODELS,
    }
