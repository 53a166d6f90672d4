from __future__ import annotations
import uuid
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from leetuiux.db import get_session
from leetuiux.auth_deps import get_current_user, get_optional_user
from leetuiux.models.user import User
from leetuiux.schemas.submission import (
    SubmissionPublic, SubmissionFile, UserSummary, ChallengeSummary, RatingCreate,
)
from leetuiux.services import database
from leetuiux.services.assets import resolve_display_url, get_signed_url_cache
from leetuiux.services.figma import extract_figma_url
from leetuiux.services.listing import filter_submissions, time_ago, display_name, avatar_for
from leetuiux.services.storage import ObjectStorage, get_storage

router = APIRouter(tags=["submissions"])

async def to_submission_public(row: dict, storage: ObjectStorage) -> SubmissionPublic:
    """Resolve stored references to displayable URLs and flatten the embeds."""
    cache = get_signed_url_cache()
    files = []
    for f in row.get("files") or []:
        if not isinstance(f, dict) or not f.get("name"):
            continue
        url = f.get("url")
        if url:
            url = await resolve_display_url(url, storage, cache=cache)
        files.append(SubmissionFile(**{**f, "url": url}))

    user = row.get("user")
    ch = row.get("challenge")
    return SubmissionPublic(
        id=row["id"],
        challenge_id=row["challenge_id"],
        user_id=row["user_id"],
        title=row.get("title"),
        description=row.get("description") or "No description provided.",
        tools=row.get("tools"),
        status=row.get("status") or "submitted",
        created_at=row["created_at"],
        date=time_ago(row["created_at"]),
        image=await resolve_display_url(row.get("preview_image"), storage, cache=cache),
        figma_embed=row.get("figma_embed"),
        figma_preview_url=extract_figma_url(row.get("figma_embed") or ""),
        files=files,
        rating=row.get("avg_rating") or 0,
        user=UserSummary(id=user["id"], name=display_name(user), avatar=avatar_for(user)) if user else None,
        challenge=ChallengeSummary(**ch) if ch else None,
    )

@router.get("/challenges/{challenge_id}/submissions", response_model=list[SubmissionPublic])
async def list_challenge_submissions(
    challenge_id: int,
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_storage),
):
    res = await database.get_submissions_by_challenge_id(session, challenge_id)
    if not res.success:
        raise HTTPException(status_code=503, detail=res.error_message)
    return [await to_submission_public(r, storage) for r in res.data if r["status"] != "draft"]

@router.get("/submissions/mine", response_model=list[SubmissionPublic])
async def my_submissions(
    search: str = Query(default=""),
    challenge: str | None = Query(default=None, description="exact challenge title"),
    time: str | None = Query(default=None, pattern="^(all|week|month|year)$"),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_storage),
):
    res = await database.get_submissions_by_user_id(session, user.id)
    if not res.success:
        raise HTTPException(status_code=503, detail=res.error_message)
    items = [
        {
            "challenge": (r.get("challenge") or {}).get("title") or f"Challenge {r['challenge_id']}",
            "created_at": r["created_at"],
            "row": r,
        }
        for r in res.data
    ]
    kept = filter_submissions(items, search=search, challenge=challenge, time_filter=time)
    return [await to_submission_public(i["row"], storage) for i in kept]

@router.get("/submissions/{submission_id}", response_model=SubmissionPublic)
async def get_submission(
    submission_id: uuid.UUID,
    user: User | None = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_storage),
):
    res = await database.get_submission_by_id(session, submission_id)
    if not res.success:
        if res.error == database.SUBMISSION_NOT_FOUND:
            raise HTTPException(status_code=404, detail=res.error)
        raise HTTPException(status_code=503, detail=res.error_message)
    row = res.data
    # drafts are private to their author
    if row["status"] == "draft" and (user is None or user.id != row["user_id"]):
        raise HTTPException(status_code=404, detail=database.SUBMISSION_NOT_FOUND)
    return await to_submission_public(row, storage)

@router.post("/submissions/{submission_id}/rating")
async def rate(
    submission_id: uuid.UUID,
    payload: RatingCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    found = await database.get_submission_by_id(session, submission_id)
    if not found.success:
        code = 404 if found.error == database.SUBMISSION_NOT_FOUND else 503
        raise HTTPException(status_code=code, detail=found.error_message)
    res = await database.rate_submission(session, submission_id, user.id, payload.rating)
    if not res.success:
        raise HTTPException(status_code=500, detail=res.error_message)
    avg = await database.get_submission_rating(session, submission_id)
    return {
        "submission_id": str(submission_id),
        "rating": payload.rating,
        "action": res.action,
        "average": avg.data if avg.success else None,
    }
