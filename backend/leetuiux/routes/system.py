from __future__ import annotations
from fastapi import APIRouter, Request
from datetime import datetime, timezone
from leetuiux.config import settings

router = APIRouter()

@router.get("/health")
async def health(request: Request):
    auth = getattr(request.app.state, "auth", None)
    return {
        "status": "ok",
        "env": settings.environment,
        "time": datetime.now(timezone.utc).isoformat(),
        "request_id": request.headers.get("x-request-id") or request.state.request_id,
        "auth_ready": bool(auth is not None and not auth.loading),
    }

@router.get("/version")
async def version():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "git_sha": settings.git_sha,
    }
