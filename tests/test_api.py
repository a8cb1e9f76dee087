"""HTTP contract for /api/upload, /api/info, /api/unlock and /api/download."""
import httpx

from dropshell.routes.files import _content_disposition


async def _upload(client: httpx.AsyncClient, content: bytes, name: str = "report.txt", **form):
    files = {"file": (name, content, "text/plain")}
    return await client.post("/api/upload", files=files, data=form)


async def test_health(client, lifecycle):
    r = await client.get("/api/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "metadataStore": lifecycle.store.name}


async def test_public_upload_info_download(client):
    content = b"0123456789" * 500
    r = await _upload(client, content, expiration="1")
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    file_id = body["fileId"]
    assert body["downloadUrl"] == f"http://test/?file={file_id}"

    r = await client.get(f"/api/info/{file_id}")
    assert r.status_code == 200
    info = r.json()
    assert info["isProtected"] is False
    assert info["originalName"] == "report.txt"
    assert info["size"] == len(content)
    assert "expiresAt" in info

    r = await client.get(f"/api/download/{file_id}")
    assert r.status_code == 200
    assert r.content == content
    assert r.headers["content-disposition"] == 'attachment; filename="report.txt"'
    assert r.headers["content-length"] == str(len(content))


async def test_protected_flow(client):
    r = await _upload(client, b"classified", name="plan.pdf", password="p1", expiration="24")
    file_id = r.json()["fileId"]

    r = await client.get(f"/api/info/{file_id}")
    assert r.status_code == 200
    assert r.json() == {"isProtected": True, "fileId": file_id}

    r = await client.post(f"/api/unlock/{file_id}", json={"password": "wrong"})
    assert r.status_code == 401
    assert r.json() == {"error": "Incorrect password"}

    r = await client.post(f"/api/unlock/{file_id}", json={"password": "p1"})
    assert r.status_code == 200
    unlocked = r.json()
    assert unlocked["success"] is True
    assert unlocked["originalName"] == "plan.pdf"
    assert unlocked["size"] == len(b"classified")
    token = unlocked["downloadToken"]

    r = await client.get(f"/api/download/{file_id}", params={"token": token})
    assert r.status_code == 200
    assert r.content == b"classified"

    r = await client.get(f"/api/download/{file_id}", params={"token": "p1"})
    assert r.status_code == 403
    assert "error" in r.json()

    r = await client.get(f"/api/download/{file_id}")
    assert r.status_code == 403

    for malformed in ("².x", "9" * 5000 + ".x"):
        r = await client.get(f"/api/download/{file_id}", params={"token": malformed})
        assert r.status_code == 403
        assert "error" in r.json()


async def test_empty_password_means_public(client):
    r = await _upload(client, b"abc", password="")
    file_id = r.json()["fileId"]
    r = await client.get(f"/api/info/{file_id}")
    assert r.json()["isProtected"] is False


async def test_unlock_without_body_on_protected_file(client):
    r = await _upload(client, b"abc", password="p1")
    file_id = r.json()["fileId"]
    r = await client.post(f"/api/unlock/{file_id}")
    assert r.status_code == 401


async def test_unknown_file_is_404(client):
    missing = "f" * 32
    r = await client.get(f"/api/info/{missing}")
    assert r.status_code == 404
    assert r.json() == {"error": "File not found or expired"}

    r = await client.post(f"/api/unlock/{missing}", json={"password": "x"})
    assert r.status_code == 404

    r = await client.get(f"/api/download/{missing}", params={"token": "x"})
    assert r.status_code == 404


async def test_expired_file_is_404_everywhere(client, clock):
    r = await _upload(client, b"short lived", password="p1", expiration="1")
    file_id = r.json()["fileId"]
    token = (await client.post(f"/api/unlock/{file_id}", json={"password": "p1"})).json()["downloadToken"]

    clock.advance(hours=1, minutes=1)
    for _ in range(2):
        r = await client.get(f"/api/download/{file_id}", params={"token": token})
        assert r.status_code == 404
        r = await client.get(f"/api/info/{file_id}")
        assert r.status_code == 404


async def test_upload_without_file_is_400(client):
    r = await client.post("/api/upload", data={"expiration": "5"})
    assert r.status_code == 400
    assert r.json() == {"error": "No file uploaded"}


async def test_upload_with_bad_expiration_is_400(client):
    r = await _upload(client, b"abc", expiration="tomorrow")
    assert r.status_code == 400
    assert "error" in r.json()


async def test_upload_too_large_is_413(client):
    r = await _upload(client, b"x" * (1024 * 1024 + 1))
    assert r.status_code == 413


def test_content_disposition_quotes_non_ascii_names():
    assert _content_disposition("report.txt") == 'attachment; filename="report.txt"'
    assert _content_disposition("résumé final.txt") == "attachment; filename*=utf-8''r%C3%A9sum%C3%A9%20final.txt"
    assert _content_disposition("../../etc/passwd") == "attachment; filename*=utf-8''..%2F..%2Fetc%2Fpasswd"


async def test_public_base_url_overrides_request_host(app, client):
    app.state.settings = app.state.settings.model_copy(update={"PUBLIC_BASE_URL": "https://drop.example/"})
    r = await _upload(client, b"abc")
    file_id = r.json()["fileId"]
    assert r.json()["downloadUrl"] == f"https://drop.example/?file={file_id}"
