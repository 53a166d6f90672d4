import uuid
import pytest
from fastapi import status
from sqlalchemy.exc import OperationalError
from conftest import register_login
from leetuiux.main import app

@pytest.mark.asyncio
async def test_register_login_me(client):
    email = f"test-{uuid.uuid4().hex[:8]}@leetuiux.dev"
    r = await client.post("/auth/register", json={"email": email, "password": "supersecret", "full_name": "Test Person"})
    assert r.status_code == status.HTTP_201_CREATED, r.text
    body = r.json()
    assert body["user_metadata"]["full_name"] == "Test Person"
    assert body["user_metadata"]["avatar_url"].startswith("https://ui-avatars.com/api/?name=Test%20Person")

    r = await client.post("/auth/login", json={"email": email, "password": "supersecret"})
    assert r.status_code == 200
    tokens = r.json()
    assert "access" in tokens and "refresh" in tokens

    me = await client.get("/auth/me", headers={"Authorization": f"Bearer {tokens['access']}"})
    assert me.status_code == 200
    assert me.json()["email"] == email

    r = await client.post("/auth/refresh", json={"refresh": tokens["refresh"]})
    assert r.status_code == 200
    tokens2 = r.json()
    assert tokens2["access"] != tokens["access"]

@pytest.mark.asyncio
async def test_refresh_token_is_single_use(client):
    who = await register_login(client)
    assert (await client.post("/auth/refresh", json={"refresh": who["refresh"]})).status_code == 200
    r = await client.post("/auth/refresh", json={"refresh": who["refresh"]})
    assert r.status_code == 401

@pytest.mark.asyncio
async def test_logout_revokes_refresh_token(client):
    who = await register_login(client)
    r = await client.post("/auth/logout", json={"refresh": who["refresh"]})
    assert r.status_code == 204
    r = await client.post("/auth/refresh", json={"refresh": who["refresh"]})
    assert r.status_code == 401

@pytest.mark.asyncio
async def test_access_token_cannot_refresh(client):
    who = await register_login(client)
    r = await client.post("/auth/refresh", json={"refresh": who["access"]})
    assert r.status_code == 401
    assert r.json()["detail"] == "Wrong token type"

@pytest.mark.asyncio
async def test_login_wrong_password(client):
    who = await register_login(client)
    r = await client.post("/auth/login", json={"email": who["email"], "password": "not-the-password"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid login credentials"

@pytest.mark.asyncio
async def test_database_outage_is_503(client, monkeypatch):
    def unreachable():
        raise OperationalError("SELECT 1", {}, ConnectionRefusedError("connection refused"))

    monkeypatch.setattr(app.state.auth.auth, "_session_factory", unreachable)
    r = await client.post("/auth/login", json={"email": "x@leetuiux.dev", "password": "supersecret"})
    assert r.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert "SELECT" not in r.text
    r = await client.post("/auth/register", json={"email": "y@leetuiux.dev", "password": "supersecret", "full_name": "Y"})
    assert r.status_code == status.HTTP_503_SERVICE_UNAVAILABLE

@pytest.mark.asyncio
async def test_me_requires_token(client):
    assert (await client.get("/auth/me")).status_code == 401
    r = await client.get("/auth/me", headers={"Authorization": "Bearer nonsense"})
    assert r.status_code == 401

@pytest.mark.asyncio
async def test_register_duplicate_email_is_case_insensitive(client):
    email = f"dup-{uuid.uuid4().hex[:8]}@leetuiux.dev"
    r1 = await client.post("/auth/register", json={"email": email, "password": "supersecret", "full_name": "One"})
    assert r1.status_code == 201, r1.text
    r2 = await client.post("/auth/register", json={"email": email.upper(), "password": "supersecret", "full_name": "Two"})
    assert r2.status_code == 409, r2.text

@pytest.mark.asyncio
async def test_register_rejects_short_password(client):
    r = await client.post("/auth/register", json={"email": "short@leetuiux.dev", "password": "short", "full_name": "S"})
    assert r.status_code == 422
