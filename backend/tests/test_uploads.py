import pytest
import pytest_asyncio
from sqlalchemy import select, func
from leetuiux.models.challenge import Challenge
from leetuiux.models.submission import Submission
from urllib3.exceptions import MaxRetryError
from leetuiux.services import database
from leetuiux.services.forms import SubmissionForm, PreviewHandles
from leetuiux.services.result import Result
from leetuiux.services.storage import ObjectStorage, StorageError
from leetuiux.services.uploads import (
    SubmissionUploadWorkflow, WorkflowState, CancelToken, MSG_REQUIRED, MSG_FILES_FAILED,
    MSG_STORAGE_ACCESS, MSG_FILES_BUCKET_MISSING, MSG_PREVIEW_FAILED, MSG_SAVE_FAILED,
    MSG_FILES_COLUMN_MISSING, choose_bucket,
)

EMBED = '<iframe src="https://www.figma.com/embed?embed_host=share&url=x"></iframe>'

@pytest_asyncio.fixture
async def challenge_id(session):
    ch = Challenge(title="Checkout Flow", description="Design it")
    session.add(ch)
    await session.commit()
    return ch.id

def _form(challenge_id, **kw) -> SubmissionForm:
    form = SubmissionForm(challenge_id=challenge_id, handles=PreviewHandles(),
                          title=kw.pop("title", "My take"), description=kw.pop("description", "Notes"), **kw)
    return form

async def _count(session) -> int:
    return await session.scalar(select(func.count()).select_from(Submission))

def test_choose_bucket():
    assert choose_bucket(["assets", "submissions"], "submissions") == "submissions"
    assert choose_bucket(["assets"], "submissions") == "assets"
    assert choose_bucket([], "submissions") == "submissions"

@pytest.mark.asyncio
async def test_validation_failure_makes_no_calls(session, storage, user, challenge_id):
    wf = SubmissionUploadWorkflow(session, storage)
    outcome = await wf.submit(_form(challenge_id), user)   # no preview, no files
    assert outcome.state == WorkflowState.FAILED
    assert outcome.failed_at == WorkflowState.VALIDATING
    assert outcome.error == MSG_REQUIRED
    assert storage.calls == []
    assert await _count(session) == 0

@pytest.mark.asyncio
async def test_anonymous_submit_redirects_to_login(session, storage, challenge_id):
    form = _form(challenge_id)
    form.add_file("a.fig", None, b"a")
    outcome = await SubmissionUploadWorkflow(session, storage).submit(form, None)
    assert outcome.state == WorkflowState.FAILED
    assert outcome.login_redirect == f"/login?from=/challenges/{challenge_id}/submit"
    assert storage.calls == []

@pytest.mark.asyncio
async def test_successful_submit_uploads_in_order(session, storage, user, challenge_id):
    form = _form(challenge_id, tools="Figma", figma_embed=EMBED)
    form.set_preview_image("hero shot.png", "image/png", b"png")
    form.add_file("flow.fig", None, b"fig")
    form.add_file("notes.pdf", "application/pdf", b"pdf!")
    wf = SubmissionUploadWorkflow(session, storage)
    outcome = await wf.submit(form, user)

    assert outcome.ok, outcome.error
    assert outcome.history == [
        WorkflowState.IDLE, WorkflowState.VALIDATING, WorkflowState.UPLOADING_PREVIEW,
        WorkflowState.UPLOADING_FILES, WorkflowState.PERSISTING, WorkflowState.SUCCEEDED,
    ]
    uploads = [c for c in storage.calls if c[0] == "upload"]
    assert uploads[0][2].startswith(f"preview-images/{user.id}/")
    assert uploads[0][2].endswith("-hero_shot.png")
    assert uploads[0][4] == "3600"
    assert [u[2].rsplit("-", 1)[-1] for u in uploads[1:]] == ["flow.fig", "notes.pdf"]
    assert all(u[2].startswith(f"project-files/{user.id}/") for u in uploads[1:])

    row = outcome.submission
    assert row["status"] == "submitted"
    assert "X-Amz-Expires=604800" in row["preview_image"]
    assert [f["name"] for f in row["files"]] == ["flow.fig", "notes.pdf"]
    assert row["files"][1] | {"url": None} == {"name": "notes.pdf", "type": "application/pdf", "size": 4, "url": None}
    assert await _count(session) == 1

@pytest.mark.asyncio
async def test_files_only_submission_has_no_preview(session, storage, user, challenge_id):
    form = _form(challenge_id)
    form.add_file("flow.fig", None, b"fig")
    outcome = await SubmissionUploadWorkflow(session, storage).submit(form, user)
    assert outcome.ok
    assert WorkflowState.UPLOADING_PREVIEW not in outcome.history
    assert outcome.submission["preview_image"] is None

@pytest.mark.asyncio
async def test_second_of_three_files_failing_persists_nothing(session, storage, user, challenge_id):
    storage.fail_upload_at = 2
    form = _form(challenge_id)
    for name in ("a.fig", "b.fig", "c.fig"):
        form.add_file(name, None, name.encode())
    outcome = await SubmissionUploadWorkflow(session, storage).submit(form, user)
    assert outcome.state == WorkflowState.FAILED
    assert outcome.failed_at == WorkflowState.UPLOADING_FILES
    assert outcome.error == MSG_FILES_FAILED
    assert len([c for c in storage.calls if c[0] == "upload"]) == 2
    assert await _count(session) == 0

@pytest.mark.asyncio
async def test_storage_listing_failure(session, storage, user, challenge_id):
    storage.list_fails = True
    form = _form(challenge_id)
    form.set_preview_image("p.png", "image/png", b"p")
    outcome = await SubmissionUploadWorkflow(session, storage).submit(form, user)
    assert outcome.failed_at == WorkflowState.UPLOADING_PREVIEW
    assert outcome.error == MSG_STORAGE_ACCESS
    assert await _count(session) == 0

@pytest.mark.asyncio
async def test_missing_files_bucket_has_actionable_message(session, storage, user, challenge_id):
    storage.buckets = ["assets"]
    form = _form(challenge_id)
    form.add_file("a.fig", None, b"a")
    outcome = await SubmissionUploadWorkflow(session, storage).submit(form, user)
    assert outcome.error == MSG_FILES_BUCKET_MISSING.format(bucket="submissions")

@pytest.mark.asyncio
async def test_cancel_before_persist_writes_nothing(session, storage, user, challenge_id):
    token = CancelToken()
    form = _form(challenge_id)
    form.add_file("a.fig", None, b"a")
    form.add_file("b.fig", None, b"b")

    original_upload = storage.upload

    def upload_then_cancel(*args, **kw):
        path = original_upload(*args, **kw)
        token.cancel()
        return path

    storage.upload = upload_then_cancel
    outcome = await SubmissionUploadWorkflow(session, storage, cancel=token).submit(form, user)
    assert outcome.state == WorkflowState.CANCELLED
    assert len([c for c in storage.calls if c[0] == "upload"]) == 1
    assert await _count(session) == 0

@pytest.mark.asyncio
async def test_client_disconnect_cancels_before_upload(session, storage, user, challenge_id):
    async def disconnected():
        return True

    form = _form(challenge_id)
    form.add_file("a.fig", None, b"a")
    outcome = await SubmissionUploadWorkflow(session, storage, cancel=CancelToken(disconnected)).submit(form, user)
    assert outcome.state == WorkflowState.CANCELLED
    assert storage.calls == []

@pytest.mark.asyncio
async def test_draft_never_touches_storage(session, storage, user, challenge_id):
    form = _form(challenge_id, title="", figma_embed=EMBED)
    preview = form.set_preview_image("p.png", "image/png", b"p")
    form.add_file("a.fig", None, b"a")
    outcome = await SubmissionUploadWorkflow(session, storage).save_draft(form, user)
    assert outcome.ok
    assert storage.calls == []
    row = outcome.submission
    assert row["status"] == "draft"
    assert row["title"] == "Untitled Draft"
    assert row["preview_image"] == preview.preview
    assert row["figma_embed"] == EMBED
    assert row["files"][0]["preview"].startswith("blob:")

@pytest.mark.asyncio
async def test_draft_drops_embed_without_iframe(session, storage, user, challenge_id):
    outcome = await SubmissionUploadWorkflow(session, storage).save_draft_fields(
        challenge_id, user, title="Sketch", figma_embed="https://www.figma.com/file/abc",
    )
    assert outcome.ok
    assert outcome.submission["figma_embed"] is None
    assert outcome.submission["files"] == []

@pytest.mark.asyncio
async def test_anonymous_draft_redirects(session, storage, challenge_id):
    outcome = await SubmissionUploadWorkflow(session, storage).save_draft_fields(challenge_id, None)
    assert outcome.login_redirect == f"/login?from=/challenges/{challenge_id}/submit"
    assert await _count(session) == 0

class UnreachableClient:
    """minio client whose store cannot be reached."""

    def __init__(self, fail_listing=True):
        self.fail_listing = fail_listing

    def list_buckets(self):
        if self.fail_listing:
            raise MaxRetryError(None, "http://127.0.0.1:9/", reason="Connection refused")
        return []

    def put_object(self, *args, **kw):
        raise ConnectionResetError(104, "Connection reset by peer")

def _unreachable_storage(**kw) -> ObjectStorage:
    s = ObjectStorage("http://127.0.0.1:9", "access", "secret")
    s._client = UnreachableClient(**kw)
    return s

def test_network_errors_become_storage_errors():
    s = _unreachable_storage()
    with pytest.raises(StorageError):
        s.list_containers()
    with pytest.raises(StorageError):
        s.upload("submissions", "a.png", b"a")

@pytest.mark.asyncio
async def test_unreachable_store_fails_listing(session, user, challenge_id):
    form = _form(challenge_id)
    form.set_preview_image("p.png", "image/png", b"p")
    outcome = await SubmissionUploadWorkflow(session, _unreachable_storage()).submit(form, user)
    assert outcome.state == WorkflowState.FAILED
    assert outcome.failed_at == WorkflowState.UPLOADING_PREVIEW
    assert outcome.error == MSG_STORAGE_ACCESS
    assert await _count(session) == 0

@pytest.mark.asyncio
async def test_dropped_connection_fails_preview_upload(session, user, challenge_id):
    form = _form(challenge_id)
    form.set_preview_image("p.png", "image/png", b"p")
    storage = _unreachable_storage(fail_listing=False)
    outcome = await SubmissionUploadWorkflow(session, storage).submit(form, user)
    assert outcome.state == WorkflowState.FAILED
    assert outcome.error == MSG_PREVIEW_FAILED
    assert await _count(session) == 0

@pytest.mark.asyncio
async def test_missing_preview_bucket_lists_available(session, storage, user, challenge_id):
    storage.buckets = []
    form = _form(challenge_id)
    form.set_preview_image("p.png", "image/png", b"p")
    outcome = await SubmissionUploadWorkflow(session, storage).submit(form, user)
    assert outcome.failed_at == WorkflowState.UPLOADING_PREVIEW
    assert outcome.error == 'Storage bucket "submissions" not found. Available buckets: '
    assert await _count(session) == 0

@pytest.mark.asyncio
async def test_make_public_failure_is_ignored(session, storage, user, challenge_id):
    storage.make_public_fails = True
    form = _form(challenge_id)
    form.set_preview_image("p.png", "image/png", b"p")
    outcome = await SubmissionUploadWorkflow(session, storage).submit(form, user)
    assert outcome.ok, outcome.error
    assert [c[0] for c in storage.calls].count("make_public") == 1
    assert "X-Amz-Signature" in outcome.submission["preview_image"]
    assert await _count(session) == 1

@pytest.mark.asyncio
async def test_persist_failure_saves_nothing(session, storage, user, challenge_id, monkeypatch):
    async def failing_create(session, values):
        return Result.fail(Exception("connection to database lost"))

    monkeypatch.setattr(database, "create_submission", failing_create)
    form = _form(challenge_id)
    form.add_file("a.fig", None, b"a")
    outcome = await SubmissionUploadWorkflow(session, storage).submit(form, user)
    assert outcome.state == WorkflowState.FAILED
    assert outcome.failed_at == WorkflowState.PERSISTING
    assert outcome.error == MSG_SAVE_FAILED
    assert outcome.submission is None
    assert await _count(session) == 0

@pytest.mark.asyncio
async def test_draft_reports_missing_files_column(session, storage, user, challenge_id, monkeypatch):
    async def old_schema_create(session, values):
        return Result.fail(Exception("(sqlite3.OperationalError) table submissions has no column named files"))

    monkeypatch.setattr(database, "create_submission", old_schema_create)
    outcome = await SubmissionUploadWorkflow(session, storage).save_draft_fields(challenge_id, user, title="Sketch")
    assert outcome.state == WorkflowState.FAILED
    assert outcome.error == MSG_FILES_COLUMN_MISSING
    assert storage.calls == []
