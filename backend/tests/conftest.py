import os
import tempfile

# must be set before leetuiux is imported anywhere
_DB_DIR = tempfile.mkdtemp(prefix="leetuiux-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["SEED_BATCH_DELAY_SECONDS"] = "0"
os.environ["STORAGE_PUBLIC_URL"] = "http://storage.test"

import uuid
import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient

from leetuiux.db import Base, engine, SessionLocal
from leetuiux.main import app
from leetuiux.models.user import User
from leetuiux.services.assets import get_signed_url_cache
from leetuiux.services.storage import ObjectStorage, StorageError, get_storage
import leetuiux.models.challenge  # noqa: F401
import leetuiux.models.submission  # noqa: F401
import leetuiux.models.comment  # noqa: F401


class FakeStorage(ObjectStorage):
    """In-memory stand-in for the object store; records every call."""

    def __init__(self, buckets=("submissions",)):
        self.public_base_url = "http://storage.test"
        self.buckets = list(buckets)
        self.objects: dict[tuple[str, str], bytes] = {}
        self.calls: list[tuple] = []
        self.fail_upload_at: int | None = None   # 1-based upload call that fails
        self.list_fails = False
        self.make_public_fails = False

    def _count(self, kind: str) -> int:
        return sum(1 for c in self.calls if c[0] == kind)

    def list_containers(self):
        self.calls.append(("list",))
        if self.list_fails:
            raise StorageError("Access Denied", code="AccessDenied")
        return list(self.buckets)

    def ensure_container(self, bucket):
        if bucket not in self.buckets:
            self.buckets.append(bucket)

    def upload(self, bucket, path, data, content_type=None, cache_control=None):
        self.calls.append(("upload", bucket, path, content_type, cache_control))
        if bucket not in self.buckets:
            raise StorageError("The specified bucket does not exist", code="NoSuchBucket")
        if self.fail_upload_at == self._count("upload"):
            raise StorageError("We encountered an internal error", code="InternalError")
        self.objects[(bucket, path)] = data
        return path

    def make_public(self, bucket, path):
        self.calls.append(("make_public", bucket, path))
        if self.make_public_fails:
            raise StorageError("Access Denied", code="AccessDenied")

    def sign_url(self, bucket, path, ttl_seconds):
        self.calls.append(("sign", bucket, path, ttl_seconds))
        if (bucket, path) not in self.objects:
            raise StorageError("Object does not exist", code="NoSuchKey")
        return f"http://storage.test/{bucket}/{path}?X-Amz-Expires={ttl_seconds}&X-Amz-Signature=sig{self._count('sign')}"


@pytest_asyncio.fixture(autouse=True)
async def _tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    get_signed_url_cache().clear()
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest_asyncio.fixture
async def session():
    async with SessionLocal() as s:
        yield s


@pytest_asyncio.fixture
async def user(session):
    u = User(email=f"designer-{uuid.uuid4().hex[:8]}@leetuiux.dev", password_hash="x", full_name="Ada Designer")
    session.add(u)
    await session.commit()
    await session.refresh(u)
    return u


@pytest_asyncio.fixture
async def client(storage):
    app.dependency_overrides[get_storage] = lambda: storage
    try:
        async with app.router.lifespan_context(app):
            async with AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
                yield ac
    finally:
        app.dependency_overrides.clear()


async def register_login(ac: AsyncClient, name: str = "Grace Hopper") -> dict:
    email = f"user-{uuid.uuid4().hex[:8]}@leetuiux.dev"
    r = await ac.post("/auth/register", json={"email": email, "password": "supersecret", "full_name": name})
    assert r.status_code == 201, r.text
    r = await ac.post("/auth/login", json={"email": email, "password": "supersecret"})
    assert r.status_code == 200, r.text
    tokens = r.json()
    return {"email": email, **tokens, "headers": {"Authorization": f"Bearer {tokens['access']}"}}
