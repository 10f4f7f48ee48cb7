"""Liveness endpoint."""
from __future__ import annotations

from datetime import datetime, timezone
from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz(request: Request) -> dict:
    """Liveness probe; reports whether the operation services are wired."""
    return {
        "status": "ok",
        "services": getattr(request.app.state, "services", None) is not None,
        "time": datetime.now(timezone.utc).isoformat(),
    }
