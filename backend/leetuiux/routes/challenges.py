from __future__ import annotations
import json
from fastapi import APIRouter, Depends, HTTPException, Query, Request, UploadFile, File, Form
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from leetuiux.db import get_session
from leetuiux.auth_deps import get_current_user, get_optional_user
from leetuiux.models.user import User
from leetuiux.routes.submissions import to_submission_public
from leetuiux.schemas.challenge import ChallengeCreate, ChallengePublic
from leetuiux.schemas.comment import CommentCreate, CommentPublic, CommentUser
from leetuiux.schemas.submission import SubmissionPayload, SubmissionPublic, DraftCreate
from leetuiux.services import database
from leetuiux.services.forms import SubmissionForm, FormError
from leetuiux.services.listing import filter_challenges, display_name, avatar_for
from leetuiux.services.storage import ObjectStorage, get_storage
from leetuiux.services.uploads import SubmissionUploadWorkflow, CancelToken, WorkflowOutcome, WorkflowState

router = APIRouter(prefix="/challenges", tags=["challenges"])

async def _require_challenge(session: AsyncSession, challenge_id: int) -> ChallengePublic:
    res = await database.get_challenge_by_id(session, challenge_id)
    if not res.success:
        if res.error == database.CHALLENGE_NOT_FOUND:
            raise HTTPException(status_code=404, detail=res.error)
        raise HTTPException(status_code=503, detail=res.error_message)
    return res.data

def _raise_for_outcome(outcome: WorkflowOutcome) -> None:
    if outcome.ok:
        return
    if outcome.login_redirect:
        raise HTTPException(status_code=401, detail={"message": outcome.error, "login_redirect": outcome.login_redirect})
    if outcome.state == WorkflowState.CANCELLED:
        raise HTTPException(status_code=409, detail=outcome.error)
    if outcome.failed_at == WorkflowState.VALIDATING:
        raise HTTPException(status_code=422, detail=outcome.error)
    if outcome.failed_at in (WorkflowState.UPLOADING_PREVIEW, WorkflowState.UPLOADING_FILES):
        raise HTTPException(status_code=502, detail=outcome.error)
    raise HTTPException(status_code=500, detail=outcome.error)

# ---------- challenges ----------

@router.get("", response_model=list[ChallengePublic])
async def list_challenges(
    search: str = Query(default=""),
    difficulty: str | None = Query(default=None),
    frequency: str | None = Query(default=None),
    company: str | None = Query(default=None),
    session: AsyncSession = Depends(get_session),
):
    res = await database.get_all_challenges(session)
    if not res.success:
        if res.error == "No challenges found":
            return []
        raise HTTPException(status_code=503, detail=res.error_message)
    return filter_challenges(res.data, search=search, difficulty=difficulty, frequency=frequency, company=company)

@router.post("", status_code=201, response_model=ChallengePublic)
async def create_challenge(
    payload: ChallengeCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    res = await database.create_challenge(session, payload, user_id=user.id)
    if not res.success:
        raise HTTPException(status_code=500, detail=res.error_message)
    return res.data

@router.get("/{challenge_id}", response_model=ChallengePublic)
async def get_challenge(challenge_id: int, session: AsyncSession = Depends(get_session)):
    return await _require_challenge(session, challenge_id)

# ---------- comments ----------

def _comment_public(row: dict) -> CommentPublic:
    user = row.get("user") or {}
    return CommentPublic(
        id=row["id"],
        text=row["text"],
        timestamp=row["created_at"],
        likes=row.get("likes_count", 0),
        user=CommentUser(id=row["user_id"], name=display_name(user), avatar=avatar_for(user)),
    )

@router.get("/{challenge_id}/comments", response_model=list[CommentPublic])
async def list_comments(challenge_id: int, session: AsyncSession = Depends(get_session)):
    res = await database.get_comments_by_challenge_id(session, challenge_id)
    if not res.success:
        raise HTTPException(status_code=503, detail=res.error_message)
    return [_comment_public(r) for r in res.data]

@router.post("/{challenge_id}/comments", status_code=201, response_model=CommentPublic)
async def add_comment(
    challenge_id: int,
    payload: CommentCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await _require_challenge(session, challenge_id)
    res = await database.create_comment(session, challenge_id, user.id, payload.text.strip())
    if not res.success:
        raise HTTPException(status_code=500, detail=res.error_message)
    return _comment_public({**res.data[0], "likes_count": 0, "user": user.identity()})

# ---------- submissions ----------

@router.post("/{challenge_id}/submissions", status_code=201, response_model=SubmissionPublic)
async def submit_solution(
    challenge_id: int,
    request: Request,
    payload: str = Form(default="{}", description="JSON: title, description, tools, figma_embed"),
    preview_image: UploadFile | None = File(default=None, description="Optional preview image"),
    files: list[UploadFile] = File(default=[], description="Project files"),
    user: User | None = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_storage),
):
    try:
        fields = SubmissionPayload.model_validate(json.loads(payload or "{}"))
    except (json.JSONDecodeError, ValidationError) as e:
        raise HTTPException(status_code=422, detail=f"Invalid payload: {e}")

    form = SubmissionForm(challenge_id=challenge_id, **fields.model_dump())
    try:
        if preview_image is not None and preview_image.filename:
            form.set_preview_image(preview_image.filename, preview_image.content_type, await preview_image.read())
        for f in files:
            if f.filename:
                form.add_file(f.filename, f.content_type, await f.read())
        if form.is_complete:
            # incomplete forms fail validation without a database read
            await _require_challenge(session, challenge_id)

        workflow = SubmissionUploadWorkflow(session, storage, cancel=CancelToken(request.is_disconnected))
        outcome = await workflow.submit(form, user)
    except FormError as e:
        raise HTTPException(status_code=422, detail=str(e))
    finally:
        form.release()

    _raise_for_outcome(outcome)
    return await to_submission_public(outcome.submission, storage)

@router.post("/{challenge_id}/drafts", status_code=201, response_model=SubmissionPublic)
async def save_draft(
    challenge_id: int,
    payload: DraftCreate,
    request: Request,
    user: User | None = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_storage),
):
    await _require_challenge(session, challenge_id)
    workflow = SubmissionUploadWorkflow(session, storage, cancel=CancelToken(request.is_disconnected))
    outcome = await workflow.save_draft_fields(
        challenge_id, user,
        title=payload.title,
        description=payload.description,
        tools=payload.tools,
        figma_embed=payload.figma_embed,
        preview_image=payload.preview_image,
        files=[f.model_dump(exclude_none=True) for f in payload.files],
    )
    _raise_for_outcome(outcome)
    return await to_submission_public(outcome.submission, storage)
