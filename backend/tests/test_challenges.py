import json
import pytest
from fastapi import status
from conftest import register_login
from leetuiux.services import database

EMBED = '<iframe src="https://www.figma.com/embed?embed_host=share&url=abc"></iframe>'

async def _create_challenge(client, headers, **overrides) -> dict:
    payload = {
        "title": "Mobile Banking App Dashboard",
        "description": "Design a dashboard for a banking app",
        "difficulty": "medium",
        "frequency": "high",
        "companies": ["chase", "stripe"],
        "tags": ["Mobile"],
    }
    payload.update(overrides)
    r = await client.post("/challenges", headers=headers, json=payload)
    assert r.status_code == status.HTTP_201_CREATED, r.text
    return r.json()

@pytest.mark.asyncio
async def test_empty_catalogue_lists_nothing(client):
    r = await client.get("/challenges")
    assert r.status_code == 200
    assert r.json() == []

@pytest.mark.asyncio
async def test_create_get_and_filter_challenges(client):
    who = await register_login(client)
    ch = await _create_challenge(client, who["headers"])
    await _create_challenge(client, who["headers"], title="Profile Page", description="Social", difficulty="easy",
                            frequency="medium", companies=["facebook"])
    assert ch["long_description"] == "Design a dashboard for a banking app"
    assert ch["author"] == "Unknown"
    assert ch["insights"]["interview_stage"] == "Take-home"

    r = await client.get(f"/challenges/{ch['id']}")
    assert r.status_code == 200
    assert r.json()["title"] == "Mobile Banking App Dashboard"

    r = await client.get("/challenges", params={"company": "stripe"})
    assert [c["title"] for c in r.json()] == ["Mobile Banking App Dashboard"]
    r = await client.get("/challenges", params={"search": "social", "difficulty": "easy"})
    assert [c["title"] for c in r.json()] == ["Profile Page"]

@pytest.mark.asyncio
async def test_unknown_challenge_is_404(client):
    r = await client.get("/challenges/4242")
    assert r.status_code == 404
    assert r.json()["detail"] == "Challenge not found"

@pytest.mark.asyncio
async def test_creating_challenge_requires_auth(client):
    r = await client.post("/challenges", json={"title": "x", "description": "y"})
    assert r.status_code == 401

@pytest.mark.asyncio
async def test_comments_and_like_toggle(client):
    who = await register_login(client, name="Lin Commenter")
    ch = await _create_challenge(client, who["headers"])

    r = await client.post(f"/challenges/{ch['id']}/comments", headers=who["headers"], json={"text": "  Nice one  "})
    assert r.status_code == 201, r.text
    comment = r.json()
    assert comment["text"] == "Nice one"
    assert comment["user"]["name"] == "Lin Commenter"
    assert comment["likes"] == 0
    assert set(comment) == {"id", "text", "timestamp", "likes", "user"}

    r = await client.post(f"/comments/{comment['id']}/like", headers=who["headers"])
    assert r.json() == {"comment_id": comment["id"], "action": "liked", "likes": 1}
    r = await client.get(f"/challenges/{ch['id']}/comments")
    assert r.json()[0]["likes"] == 1

    r = await client.post(f"/comments/{comment['id']}/like", headers=who["headers"])
    assert r.json()["action"] == "unliked"
    assert r.json()["likes"] == 0

@pytest.mark.asyncio
async def test_comment_requires_auth(client):
    who = await register_login(client)
    ch = await _create_challenge(client, who["headers"])
    r = await client.post(f"/challenges/{ch['id']}/comments", json={"text": "hi"})
    assert r.status_code == 401

@pytest.mark.asyncio
async def test_submit_solution_multipart(client, storage):
    who = await register_login(client, name="Sam Submitter")
    ch = await _create_challenge(client, who["headers"])
    payload = {"title": "My redesign", "description": "Cleaner cards", "tools": "Figma", "figma_embed": EMBED}
    r = await client.post(
        f"/challenges/{ch['id']}/submissions",
        headers=who["headers"],
        data={"payload": json.dumps(payload)},
        files=[
            ("preview_image", ("hero.png", b"\x89PNG", "image/png")),
            ("files", ("flow.fig", b"fig-bytes", "application/octet-stream")),
            ("files", ("notes.pdf", b"pdf-bytes", "application/pdf")),
        ],
    )
    assert r.status_code == status.HTTP_201_CREATED, r.text
    body = r.json()
    assert body["status"] == "submitted"
    assert body["figma_preview_url"] == "https://www.figma.com/embed?embed_host=share&url=abc"
    assert body["image"].startswith("http://storage.test/submissions/preview-images/")
    assert [f["name"] for f in body["files"]] == ["flow.fig", "notes.pdf"]
    assert body["date"] == "Today"
    assert len([c for c in storage.calls if c[0] == "upload"]) == 3

    r = await client.get(f"/challenges/{ch['id']}/submissions")
    assert [s["title"] for s in r.json()] == ["My redesign"]
    assert r.json()[0]["user"]["name"] == "Sam Submitter"

@pytest.mark.asyncio
async def test_submit_without_assets_is_422_and_uploads_nothing(client, storage):
    who = await register_login(client)
    ch = await _create_challenge(client, who["headers"])
    r = await client.post(
        f"/challenges/{ch['id']}/submissions",
        headers=who["headers"],
        data={"payload": json.dumps({"title": "t", "description": "d"})},
    )
    assert r.status_code == 422
    assert r.json()["detail"] == "Please fill in all fields and upload at least one file or preview image"
    assert storage.calls == []

@pytest.mark.asyncio
async def test_non_image_preview_is_rejected(client, storage):
    who = await register_login(client)
    ch = await _create_challenge(client, who["headers"])
    r = await client.post(
        f"/challenges/{ch['id']}/submissions",
        headers=who["headers"],
        data={"payload": json.dumps({"title": "t", "description": "d"})},
        files=[("preview_image", ("notes.txt", b"text", "text/plain"))],
    )
    assert r.status_code == 422
    assert r.json()["detail"] == "Please select an image file for the preview"
    assert storage.calls == []

@pytest.mark.asyncio
async def test_anonymous_submit_gets_login_redirect(client):
    who = await register_login(client)
    ch = await _create_challenge(client, who["headers"])
    r = await client.post(
        f"/challenges/{ch['id']}/submissions",
        data={"payload": json.dumps({"title": "t", "description": "d"})},
        files=[("files", ("a.fig", b"a", "application/octet-stream"))],
    )
    assert r.status_code == 401
    assert r.json()["detail"]["login_redirect"] == f"/login?from=/challenges/{ch['id']}/submit"

@pytest.mark.asyncio
async def test_failed_file_upload_is_502_and_saves_nothing(client, storage):
    who = await register_login(client)
    ch = await _create_challenge(client, who["headers"])
    storage.fail_upload_at = 1
    r = await client.post(
        f"/challenges/{ch['id']}/submissions",
        headers=who["headers"],
        data={"payload": json.dumps({"title": "t", "description": "d"})},
        files=[("files", ("a.fig", b"a", "application/octet-stream"))],
    )
    assert r.status_code == 502
    assert r.json()["detail"] == "Failed to upload project files. Please try again."
    mine = await client.get("/submissions/mine", headers=who["headers"])
    assert mine.json() == []

@pytest.mark.asyncio
async def test_draft_is_saved_without_storage(client, storage):
    who = await register_login(client)
    ch = await _create_challenge(client, who["headers"])
    r = await client.post(
        f"/challenges/{ch['id']}/drafts",
        headers=who["headers"],
        json={"description": "wip", "preview_image": "blob:local-1",
              "files": [{"name": "a.fig", "type": "application/octet-stream", "size": 10, "preview": "blob:local-2"}]},
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["status"] == "draft"
    assert body["title"] == "Untitled Draft"
    assert body["image"] == "blob:local-1"
    assert body["files"][0]["preview"] == "blob:local-2"
    assert storage.calls == []

    # drafts stay out of the public list
    r = await client.get(f"/challenges/{ch['id']}/submissions")
    assert r.json() == []

@pytest.mark.asyncio
async def test_incomplete_submission_skips_challenge_lookup(client, storage, monkeypatch):
    who = await register_login(client)
    lookups = []
    original = database.get_challenge_by_id

    async def counting_lookup(session, challenge_id):
        lookups.append(challenge_id)
        return await original(session, challenge_id)

    monkeypatch.setattr(database, "get_challenge_by_id", counting_lookup)
    r = await client.post(
        "/challenges/4242/submissions",
        headers=who["headers"],
        data={"payload": json.dumps({"title": "t"})},
    )
    assert r.status_code == 422
    assert lookups == []
    assert storage.calls == []

    r = await client.post(
        "/challenges/4242/submissions",
        headers=who["headers"],
        data={"payload": json.dumps({"title": "t", "description": "d"})},
        files=[("files", ("a.fig", b"a", "application/octet-stream"))],
    )
    assert r.status_code == 404
    assert lookups == [4242]
    assert storage.calls == []
