from app.core.config import get_settings
from app.core.session import ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE


# -------- auth --------


def test_missing_header_uses_mobile_envelope(client):
    resp = client.get("/api/mobile/projects")

    assert resp.status_code == 401
    assert resp.json() == {
        "success": False,
        "error": "Authorization header required",
        "code": "MISSING_AUTH_HEADER",
    }


def test_cookies_are_ignored_on_mobile_routes(client, member):
    client.cookies.set(ACCESS_TOKEN_COOKIE, member.token)
    client.cookies.set(REFRESH_TOKEN_COOKIE, member.refresh_token)

    resp = client.get("/api/mobile/auth/profile")

    assert resp.status_code == 401
    assert resp.json()["code"] == "MISSING_AUTH_HEADER"


def test_invalid_token(client):
    resp = client.get("/api/mobile/auth/profile", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401
    assert resp.json()["success"] is False
    assert resp.json()["code"] == "INVALID_TOKEN"


def test_login_returns_tokens(client, make_user):
    user = make_user("Archivist", email="field@example.com")

    resp = client.post(
        "/api/mobile/auth/login",
        json={"email": "field@example.com", "password": user.password},
    )

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["user"]["role"] == "Archivist"
    assert body["data"]["session"]["accessToken"]
    assert body["data"]["session"]["refreshToken"]
    assert ACCESS_TOKEN_COOKIE not in resp.cookies


def test_login_rejects_unconfirmed(client, make_user):
    user = make_user("User", email="late@example.com", confirmed=False)

    resp = client.post(
        "/api/mobile/auth/login",
        json={"email": "late@example.com", "password": user.password},
    )

    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert resp.json()["code"] == "EMAIL_NOT_CONFIRMED"


def test_register_envelope(client):
    resp = client.post(
        "/api/mobile/auth/register",
        json={"email": "phone@example.com", "password": "secret123"},
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["user"]["role"] == "User"
    assert body["data"]["requiresEmailConfirmation"] is True


def test_refresh(client, member):
    resp = client.post("/api/mobile/auth/refresh", json={"refreshToken": member.refresh_token})

    assert resp.status_code == 200
    session = resp.json()["data"]["session"]
    assert session["accessToken"] != member.token

    me = client.get(
        "/api/mobile/auth/profile",
        headers={"Authorization": f"Bearer {session['accessToken']}"},
    )
    assert me.status_code == 200


def test_refresh_with_bad_token(client):
    resp = client.post("/api/mobile/auth/refresh", json={"refreshToken": "stale"})
    assert resp.status_code == 401
    assert resp.json()["code"] == "INVALID_REFRESH_TOKEN"


def test_logout_revokes_token(client, provider, member):
    resp = client.post("/api/mobile/auth/logout", headers=member.headers)

    assert resp.status_code == 200
    assert provider.revoked == [member.token]
    after = client.get("/api/mobile/auth/profile", headers=member.headers)
    assert after.status_code == 401


def test_profile(client, member):
    resp = client.get("/api/mobile/auth/profile", headers=member.headers)

    assert resp.status_code == 200
    user = resp.json()["data"]["user"]
    assert user["id"] == member.id
    assert user["email"] == member.email
    assert user["emailConfirmed"] is True


def test_profile_password_update(client, provider, member):
    weak = client.put(
        "/api/mobile/auth/profile", json={"password": "123"}, headers=member.headers
    )
    assert weak.status_code == 400
    assert weak.json()["code"] == "WEAK_PASSWORD"

    ok = client.put(
        "/api/mobile/auth/profile", json={"password": "longer-secret"}, headers=member.headers
    )
    assert ok.status_code == 200
    assert provider.accounts[member.id].password == "longer-secret"


# -------- projects --------


def test_create_assigns_creator(client, admin, member):
    denied = client.post("/api/mobile/projects", json={"name": "Nope"}, headers=member.headers)
    assert denied.status_code == 403
    assert denied.json()["success"] is False

    resp = client.post("/api/mobile/projects", json={"name": "Bridge"}, headers=admin.headers)
    assert resp.status_code == 201
    project = resp.json()["data"]["project"]

    users = client.get(f"/api/mobile/projects/{project['id']}/users", headers=admin.headers)
    data = users.json()["data"]
    assert data["count"] == 1
    assert data["users"][0]["assignedUser"]["id"] == admin.id


def test_listings_envelope(client, member, make_project, assign):
    a = make_project("A")
    make_project("B")
    assign(a["id"], member)

    assigned = client.get("/api/mobile/projects", headers=member.headers).json()["data"]
    assert assigned["count"] == 1
    assert assigned["projects"][0]["id"] == a["id"]

    browse = client.get("/api/mobile/projects/browse", headers=member.headers).json()["data"]
    assert browse["count"] == 2


def test_duplicate_assignment_envelope(client, admin, member, make_project, assign):
    project = make_project()
    assign(project["id"], member)

    resp = client.post(
        f"/api/mobile/projects/{project['id']}/users",
        json={"userId": member.id},
        headers=admin.headers,
    )

    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert resp.json()["code"] == "ALREADY_ASSIGNED"


def test_not_found_uses_mobile_envelope(client, admin):
    resp = client.get(
        "/api/mobile/projects/00000000-0000-0000-0000-000000000000", headers=admin.headers
    )
    assert resp.status_code == 404
    assert resp.json() == {
        "success": False,
        "error": "Project not found",
        "code": "PROJECT_NOT_FOUND",
    }


# -------- files --------


def test_upload_and_stream_download(client, archivist, make_project, assign):
    project = make_project()
    assign(project["id"], archivist)

    up = client.post(
        f"/api/mobile/projects/{project['id']}/files",
        files={"file": ("wall-north.jpg", b"jpeg-bytes", "image/jpeg")},
        data={"latitude": "12.5", "longitude": "99.1"},
        headers=archivist.headers,
    )
    assert up.status_code == 201, up.text
    file_id = up.json()["data"]["file"]["id"]

    resp = client.post(
        f"/api/mobile/projects/{project['id']}/files/{file_id}/download",
        headers=archivist.headers,
    )

    assert resp.status_code == 200
    assert resp.content == b"jpeg-bytes"
    assert resp.headers["content-type"] == "application/octet-stream"
    assert resp.headers["content-disposition"] == (
        "attachment; filename=\"wall-north.jpg\"; filename*=UTF-8''wall-north.jpg"
    )
    assert resp.headers["cache-control"] == "no-cache"


def test_signed_link_envelope(client, admin, make_project):
    project = make_project()
    up = client.post(
        f"/api/mobile/projects/{project['id']}/files",
        files={"file": ("plan.pdf", b"%PDF", "application/pdf")},
        headers=admin.headers,
    )
    file_id = up.json()["data"]["file"]["id"]

    resp = client.get(
        f"/api/mobile/projects/{project['id']}/files/{file_id}/download",
        headers=admin.headers,
    )

    link = resp.json()["data"]["file"]
    assert link["expiresIn"] == 3600
    assert link["downloadUrl"].startswith("http://supabase.test/")


def test_file_listing_requires_assignment(client, admin, member, make_project):
    project = make_project()
    resp = client.get(f"/api/mobile/projects/{project['id']}/files", headers=member.headers)
    assert resp.status_code == 403
    assert resp.json()["code"] == "PROJECT_ACCESS_DENIED"


def test_stream_download_with_non_ascii_name(client, admin, make_project):
    project = make_project()
    up = client.post(
        f"/api/mobile/projects/{project['id']}/files",
        files={"file": ("模型.glb", b"glTF", "model/gltf-binary")},
        headers=admin.headers,
    )
    assert up.status_code == 201, up.text
    file_id = up.json()["data"]["file"]["id"]

    resp = client.post(
        f"/api/mobile/projects/{project['id']}/files/{file_id}/download",
        headers=admin.headers,
    )

    assert resp.status_code == 200
    assert resp.content == b"glTF"
    assert resp.headers["content-disposition"] == (
        "attachment; filename=\"__.glb\"; filename*=UTF-8''%E6%A8%A1%E5%9E%8B.glb"
    )


def test_oversized_upload_is_rejected(client, admin, storage, make_project, monkeypatch):
    monkeypatch.setattr(get_settings(), "MAX_UPLOAD_BYTES", 4)
    project = make_project()

    resp = client.post(
        f"/api/mobile/projects/{project['id']}/files",
        files={"file": ("big.bin", b"0123456789", "application/octet-stream")},
        headers=admin.headers,
    )

    assert resp.status_code == 413
    assert resp.json()["code"] == "FILE_TOO_LARGE"
    assert storage.objects == {}
