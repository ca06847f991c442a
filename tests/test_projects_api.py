import uuid

from sqlalchemy import func
from sqlmodel import Session, select

from app.models.project import ProjectAssignment


def assignment_count(engine, project_id: str) -> int:
    with Session(engine) as s:
        stmt = select(func.count()).select_from(ProjectAssignment).where(
            ProjectAssignment.project_id == uuid.UUID(project_id)
        )
        return s.exec(stmt).one()


# -------- create / read --------


def test_admin_creates_project_with_location(client, admin):
    resp = client.post(
        "/api/projects",
        json={
            "name": "  Old Mill  ",
            "description": "Survey",
            "location": {"latitude": 51.5, "longitude": -0.12, "name": "London"},
        },
        headers=admin.headers,
    )

    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["name"] == "Old Mill"
    assert body["createdBy"] == admin.id
    assert body["createdByEmail"] == admin.email
    assert body["location"]["latitude"] == 51.5


def test_create_project_validation(client, admin):
    missing = client.post("/api/projects", json={"name": "  "}, headers=admin.headers)
    assert missing.status_code == 400

    bad_coords = client.post(
        "/api/projects",
        json={"name": "X", "location": {"latitude": 120}},
        headers=admin.headers,
    )
    assert bad_coords.status_code == 400
    assert bad_coords.json()["code"] == "INVALID_COORDINATES"


def test_only_admin_creates_projects(client, archivist, member):
    for user in (archivist, member):
        resp = client.post("/api/projects", json={"name": "Nope"}, headers=user.headers)
        assert resp.status_code == 403
        assert resp.json()["code"] == "INSUFFICIENT_PERMISSIONS"


def test_project_detail_visibility(client, admin, member, make_project, assign):
    project = make_project()

    outsider = client.get(f"/api/projects/{project['id']}", headers=member.headers)
    assert outsider.status_code == 200
    assert outsider.json()["files"] is None
    assert outsider.json()["users"] is None
    assert outsider.json()["isAssigned"] is False

    assign(project["id"], member)
    insider = client.get(f"/api/projects/{project['id']}", headers=member.headers)
    assert insider.json()["files"] == []
    assert [u["assignedUser"]["id"] for u in insider.json()["users"]] == [member.id]


def test_unknown_project_is_404(client, admin):
    resp = client.get(f"/api/projects/{uuid.uuid4()}", headers=admin.headers)
    assert resp.status_code == 404
    assert resp.json()["code"] == "PROJECT_NOT_FOUND"


# -------- listings --------


def test_assigned_listing(client, admin, archivist, make_project, assign):
    mine = make_project("Mine")
    make_project("Other")
    assign(mine["id"], archivist)

    resp = client.get("/api/projects", headers=archivist.headers)
    assert [p["id"] for p in resp.json()] == [mine["id"]]
    assert resp.json()[0]["assignmentCount"] == 1

    everything = client.get("/api/projects", headers=admin.headers)
    assert len(everything.json()) == 2


def test_browse_flags_assignments_for_users(client, member, make_project, assign):
    a = make_project("A")
    b = make_project("B")
    assign(a["id"], member)

    resp = client.get("/api/projects/browse", headers=member.headers)

    assert resp.status_code == 200
    flags = {p["id"]: p["isAssigned"] for p in resp.json()}
    assert flags == {a["id"]: True, b["id"]: False}


def test_browse_denied_for_archivists(client, archivist):
    resp = client.get("/api/projects/browse", headers=archivist.headers)
    assert resp.status_code == 403
    assert resp.json()["code"] == "USE_ASSIGNED_PROJECTS"


# -------- update --------


def test_archivist_update_follows_live_assignment(client, admin, archivist, make_project, assign):
    project = make_project()
    url = f"/api/projects/{project['id']}"

    denied = client.put(url, json={"name": "Renamed"}, headers=archivist.headers)
    assert denied.status_code == 403

    assign(project["id"], archivist)
    allowed = client.put(url, json={"name": "Renamed"}, headers=archivist.headers)
    assert allowed.status_code == 200
    assert allowed.json()["name"] == "Renamed"

    removed = client.request(
        "DELETE",
        f"{url}/users",
        json={"userId": archivist.id},
        headers=admin.headers,
    )
    assert removed.status_code == 200

    revoked = client.put(url, json={"name": "Again"}, headers=archivist.headers)
    assert revoked.status_code == 403


def test_user_cannot_update_even_when_assigned(client, member, make_project, assign):
    project = make_project()
    assign(project["id"], member)

    resp = client.put(
        f"/api/projects/{project['id']}", json={"name": "Mine now"}, headers=member.headers
    )
    assert resp.status_code == 403


def test_update_clears_location(client, admin, make_project):
    project = make_project(location={"latitude": 10, "longitude": 10})

    resp = client.put(
        f"/api/projects/{project['id']}", json={"location": None}, headers=admin.headers
    )
    assert resp.status_code == 200
    assert resp.json()["location"] is None


# -------- assignments --------


def test_duplicate_assignment_keeps_single_row(client, admin, member, engine, make_project, assign):
    project = make_project()
    assign(project["id"], member)

    resp = client.post(
        f"/api/projects/{project['id']}/users",
        json={"email": member.email},
        headers=admin.headers,
    )

    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert "already assigned" in body["message"]
    assert body["data"]["user"]["id"] == member.id
    assert assignment_count(engine, project["id"]) == 1


def test_assigned_archivist_can_assign_others(client, archivist, member, make_project, assign):
    project = make_project()
    url = f"/api/projects/{project['id']}/users"

    denied = client.post(url, json={"userId": member.id}, headers=archivist.headers)
    assert denied.status_code == 403

    assign(project["id"], archivist)
    resp = client.post(url, json={"userId": member.id}, headers=archivist.headers)
    assert resp.status_code == 201
    assert resp.json()["data"]["role"] == "member"
    assert resp.json()["data"]["assignedBy"] == archivist.id


def test_assign_unknown_user(client, admin, make_project):
    project = make_project()
    url = f"/api/projects/{project['id']}/users"

    resp = client.post(url, json={"email": "nobody@example.com"}, headers=admin.headers)
    assert resp.status_code == 404
    assert resp.json()["code"] == "USER_NOT_FOUND"

    empty = client.post(url, json={}, headers=admin.headers)
    assert empty.status_code == 400


def test_user_can_only_remove_self(client, member, make_user, make_project, assign):
    other = make_user("User")
    project = make_project()
    assign(project["id"], member)
    assign(project["id"], other)
    url = f"/api/projects/{project['id']}/users"

    denied = client.request("DELETE", url, json={"userId": other.id}, headers=member.headers)
    assert denied.status_code == 403

    own = client.request("DELETE", url, json={"userId": member.id}, headers=member.headers)
    assert own.status_code == 200


def test_remove_missing_assignment_is_404(client, admin, member, make_project):
    project = make_project()
    resp = client.request(
        "DELETE",
        f"/api/projects/{project['id']}/users",
        json={"userId": member.id},
        headers=admin.headers,
    )
    assert resp.status_code == 404


def test_project_users_hidden_from_unassigned(client, member, make_project):
    project = make_project()
    resp = client.get(f"/api/projects/{project['id']}/users", headers=member.headers)
    assert resp.status_code == 403
    assert resp.json()["code"] == "PROJECT_ACCESS_DENIED"


# -------- delete --------


def test_delete_project_removes_files_and_objects(client, admin, storage, make_project):
    project = make_project()
    upload = client.post(
        f"/api/projects/{project['id']}/files",
        files={"file": ("scan.glb", b"glTF-binary", "model/gltf-binary")},
        headers=admin.headers,
    )
    assert upload.status_code == 201
    assert len(storage.objects) == 1

    resp = client.delete(f"/api/projects/{project['id']}", headers=admin.headers)

    assert resp.status_code == 200
    assert storage.objects == {}
    assert client.get(f"/api/projects/{project['id']}", headers=admin.headers).status_code == 404


def test_delete_project_survives_storage_failure(client, admin, storage, make_project):
    project = make_project()
    client.post(
        f"/api/projects/{project['id']}/files",
        files={"file": ("a.jpg", b"jpeg", "image/jpeg")},
        headers=admin.headers,
    )
    storage.fail_remove = True

    resp = client.delete(f"/api/projects/{project['id']}", headers=admin.headers)

    assert resp.status_code == 200
    assert len(storage.objects) == 1


def test_bulk_delete(client, admin, archivist, make_project):
    a = make_project("A")
    b = make_project("B")
    keep = make_project("C")

    denied = client.request(
        "DELETE", "/api/projects", json={"projectIds": [a["id"]]}, headers=archivist.headers
    )
    assert denied.status_code == 403

    resp = client.request(
        "DELETE", "/api/projects", json={"projectIds": [a["id"], b["id"]]}, headers=admin.headers
    )
    assert resp.status_code == 200
    assert resp.json()["deletedCount"] == 2

    remaining = client.get("/api/projects", headers=admin.headers).json()
    assert [p["id"] for p in remaining] == [keep["id"]]

    empty = client.request("DELETE", "/api/projects", json={"projectIds": []}, headers=admin.headers)
    assert empty.status_code == 400
