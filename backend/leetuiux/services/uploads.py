"""
Submission upload workflow.

One attempt walks IDLE -> VALIDATING -> UPLOADING_PREVIEW -> UPLOADING_FILES
-> PERSISTING -> SUCCEEDED, stopping at FAILED (or CANCELLED) on the first
problem. Steps run strictly in order; nothing is written to the submissions
table unless every upload succeeded. Drafts skip storage entirely.
"""
from __future__ import annotations
import enum
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from leetuiux.config import settings
from leetuiux.services import database
from leetuiux.services.assets import UPLOAD_TTL_SECONDS, sign_or_public
from leetuiux.services.figma import extract_figma_url
from leetuiux.services.forms import SubmissionForm
from leetuiux.services.storage import ObjectStorage, StorageError

log = structlog.get_logger()

MSG_REQUIRED = "Please fill in all fields and upload at least one file or preview image"
MSG_STORAGE_ACCESS = "Failed to access storage. Please try again."
MSG_PREVIEW_FAILED = "Failed to upload preview image. Please try again."
MSG_FILES_FAILED = "Failed to upload project files. Please try again."
MSG_SAVE_FAILED = "Failed to save submission. Please try again."
MSG_DRAFT_FAILED = "Failed to save draft. Please try again."
MSG_FILES_BUCKET_MISSING = (
    'Storage bucket "{bucket}" not found. Create it, or set STORAGE_AUTO_CREATE_BUCKETS=1 '
    "so the API creates it on startup."
)
MSG_FILES_COLUMN_MISSING = (
    "The submissions table is missing the files column. "
    "Run `alembic upgrade head` to apply the submissions migrations."
)


class WorkflowState(str, enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    UPLOADING_PREVIEW = "uploading_preview"
    UPLOADING_FILES = "uploading_files"
    PERSISTING = "persisting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class WorkflowCancelled(Exception):
    pass


class _StepFailed(Exception):
    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class CancelToken:
    """
    Cooperative cancellation. `disconnected` is an optional coroutine function (e.g.
    Starlette's `request.is_disconnected`) consulted on every check.
    """

    def __init__(self, disconnected: Callable[[], Awaitable[bool]] | None = None):
        self._cancelled = False
        self._disconnected = disconnected

    def cancel(self) -> None:
        self._cancelled = True

    async def is_cancelled(self) -> bool:
        if not self._cancelled and self._disconnected is not None:
            try:
                self._cancelled = bool(await self._disconnected())
            except Exception:
                log.warning("disconnect_check_failed", exc_info=True)
        return self._cancelled

    async def check(self) -> None:
        if await self.is_cancelled():
            raise WorkflowCancelled()


@dataclass
class WorkflowOutcome:
    state: WorkflowState
    submission: dict | None = None
    error: str | None = None
    login_redirect: str | None = None
    history: list[WorkflowState] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state == WorkflowState.SUCCEEDED

    @property
    def failed_at(self) -> WorkflowState | None:
        """State the attempt was in when it stopped."""
        if self.ok or len(self.history) < 2:
            return None
        return self.history[-2]


def login_redirect_for(challenge_id: int) -> str:
    return f"/login?from=/challenges/{challenge_id}/submit"


def _stamp(name: str) -> str:
    return f"{int(time.time() * 1000)}-{name}"


def choose_bucket(available: list[str], preferred: str) -> str:
    if preferred in available:
        return preferred
    return available[0] if available else preferred


class SubmissionUploadWorkflow:
    def __init__(self, session: AsyncSession, storage: ObjectStorage, cancel: CancelToken | None = None):
        self.session = session
        self.storage = storage
        self.cancel = cancel or CancelToken()
        self.state = WorkflowState.IDLE
        self.history: list[WorkflowState] = [WorkflowState.IDLE]

    def _enter(self, state: WorkflowState) -> None:
        self.state = state
        self.history.append(state)

    def _finish(self, state: WorkflowState, **kw) -> WorkflowOutcome:
        self._enter(state)
        return WorkflowOutcome(state=state, history=list(self.history), **kw)

    # ---------- submit ----------

    async def submit(self, form: SubmissionForm, user) -> WorkflowOutcome:
        self._enter(WorkflowState.VALIDATING)
        if not form.is_complete:
            return self._finish(WorkflowState.FAILED, error=MSG_REQUIRED)
        if user is None:
            return self._finish(WorkflowState.FAILED, error="Authentication required",
                                login_redirect=login_redirect_for(form.challenge_id))

        bound = log.bind(challenge_id=form.challenge_id, user_id=str(user.id))
        try:
            preview_url = None
            if form.preview_image:
                self._enter(WorkflowState.UPLOADING_PREVIEW)
                preview_url = await self._upload_preview(form, user, bound)

            self._enter(WorkflowState.UPLOADING_FILES)
            uploaded = await self._upload_files(form, user, bound)

            self._enter(WorkflowState.PERSISTING)
            await self.cancel.check()
            res = await database.create_submission(self.session, {
                "challenge_id": form.challenge_id,
                "user_id": user.id,
                "title": form.title,
                "description": form.description,
                "tools": form.tools,
                "figma_embed": form.figma_embed,
                "preview_image": preview_url,
                "files": uploaded or None,
                "status": "submitted",
            })
            if not res.success:
                raise _StepFailed(MSG_SAVE_FAILED, res.error)
        except WorkflowCancelled:
            bound.info("submission_cancelled", at=self.history[-1].value)
            return self._finish(WorkflowState.CANCELLED, error="Submission cancelled")
        except _StepFailed as e:
            bound.warning("submission_failed", at=self.history[-1].value, error=e.message,
                          cause=str(e.cause) if e.cause else None)
            return self._finish(WorkflowState.FAILED, error=e.message)

        bound.info("submission_saved", submission_id=str(res.data[0]["id"]))
        return self._finish(WorkflowState.SUCCEEDED, submission=res.data[0])

    async def _upload_preview(self, form: SubmissionForm, user, bound) -> str:
        img = form.preview_image
        await self.cancel.check()
        try:
            available = self.storage.list_containers()
        except StorageError as e:
            raise _StepFailed(MSG_STORAGE_ACCESS, e)
        bucket = choose_bucket(available, settings.submissions_bucket)
        path = f"preview-images/{user.id}/{_stamp(img.name)}"
        bound.debug("preview_upload", bucket=bucket, path=path, content_type=img.type)

        await self.cancel.check()
        try:
            self.storage.upload(bucket, path, img.data, content_type=img.type,
                                cache_control=settings.upload_cache_control)
        except StorageError as e:
            if e.bucket_not_found:
                raise _StepFailed(
                    f'Storage bucket "{bucket}" not found. Available buckets: {", ".join(available)}', e)
            raise _StepFailed(MSG_PREVIEW_FAILED, e)

        await self.cancel.check()
        try:
            self.storage.make_public(bucket, path)
        except StorageError as e:
            bound.warning("make_public_failed", bucket=bucket, path=path, error=e.message)

        await self.cancel.check()
        return sign_or_public(self.storage, bucket, path, UPLOAD_TTL_SECONDS)

    async def _upload_files(self, form: SubmissionForm, user, bound) -> list[dict]:
        bucket = settings.submissions_bucket
        uploaded: list[dict] = []
        for f in form.files:
            path = f"project-files/{user.id}/{_stamp(f.name)}"
            await self.cancel.check()
            try:
                self.storage.upload(bucket, path, f.data, content_type=f.type)
            except StorageError as e:
                if e.bucket_not_found:
                    raise _StepFailed(MSG_FILES_BUCKET_MISSING.format(bucket=bucket), e)
                raise _StepFailed(MSG_FILES_FAILED, e)
            await self.cancel.check()
            url = sign_or_public(self.storage, bucket, path, UPLOAD_TTL_SECONDS)
            uploaded.append({**f.metadata(), "url": url})
        bound.debug("project_files_uploaded", count=len(uploaded))
        return uploaded

    # ---------- draft ----------

    async def save_draft(self, form: SubmissionForm, user) -> WorkflowOutcome:
        """Persist the form as-is: local preview handles and file metadata, no uploads."""
        preview = form.preview_image.preview if form.preview_image else None
        files = [{**f.metadata(), "preview": f.preview} for f in form.files]
        return await self.save_draft_fields(
            form.challenge_id, user,
            title=form.title, description=form.description, tools=form.tools,
            figma_embed=form.figma_embed, preview_image=preview, files=files,
        )

    async def save_draft_fields(self, challenge_id: int, user, *, title: str = "", description: str = "",
                                tools: str = "", figma_embed: str = "", preview_image: str | None = None,
                                files: list[dict] | None = None) -> WorkflowOutcome:
        self._enter(WorkflowState.VALIDATING)
        if user is None:
            return self._finish(WorkflowState.FAILED, error="Authentication required",
                                login_redirect=login_redirect_for(challenge_id))
        try:
            await self.cancel.check()
        except WorkflowCancelled:
            return self._finish(WorkflowState.CANCELLED, error="Submission cancelled")

        self._enter(WorkflowState.PERSISTING)
        res = await database.create_submission(self.session, {
            "challenge_id": challenge_id,
            "user_id": user.id,
            "title": title or "Untitled Draft",
            "description": description or "",
            "tools": tools or "",
            "preview_image": preview_image or None,
            "figma_embed": figma_embed if extract_figma_url(figma_embed) else None,
            "files": files or [],
            "status": "draft",
        })
        if not res.success:
            message = MSG_FILES_COLUMN_MISSING if _missing_files_column(res.error) else MSG_DRAFT_FAILED
            log.warning("draft_save_failed", challenge_id=challenge_id, error=str(res.error))
            return self._finish(WorkflowState.FAILED, error=message)
        log.info("draft_saved", challenge_id=challenge_id, submission_id=str(res.data[0]["id"]))
        return self._finish(WorkflowState.SUCCEEDED, submission=res.data[0])


def _missing_files_column(error) -> bool:
    text = str(error or "").lower()
    return "files" in text and (
        "could not find the 'files' column" in text
        or "no column named files" in text
        or ('column "files"' in text and "does not exist" in text)
    )
