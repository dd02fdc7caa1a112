import pytest
from fastapi.testclient import TestClient

from app.core.dependencies import get_current_user, get_identity_store, get_record_store
from app.database.store import Tables
from app.main import app


@pytest.fixture
def caller():
    return {"id": "manager-1"}


@pytest.fixture
def client(store, identities, catalog, plain_admin, super_admin, caller):
    app.dependency_overrides[get_record_store] = lambda: store
    app.dependency_overrides[get_identity_store] = lambda: identities
    app.dependency_overrides[get_current_user] = lambda: caller
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health():
    response = TestClient(app).get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_missing_token_is_rejected():
    response = TestClient(app).get("/api/v1/admins")
    assert response.status_code in (401, 403)


def test_caller_without_manage_admins_is_forbidden(client, caller, identities):
    identities.add("viewer")
    caller["id"] = "viewer"

    response = client.get("/api/v1/admins")

    assert response.status_code == 403
    assert response.json()["code"] == "NOT_AUTHORIZED"


def test_create_admin(client, catalog):
    response = client.post("/api/v1/admins", json={
        "name": "New Admin",
        "email": "new@example.org",
        "password": "secret123",
        "role_ids": [catalog.role_id("moderator")]
    })

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "active"
    assert [p["name"] for p in body["permissions"]] == ["manage_news", "manage_forum"]


def test_create_admin_without_access_is_a_validation_error(client):
    response = client.post("/api/v1/admins", json={
        "name": "New Admin",
        "email": "new@example.org",
        "password": "secret123"
    })
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_FAILED"


def test_self_deactivation(client):
    response = client.put("/api/v1/admins/manager-1/deactivate")
    assert response.status_code == 409
    assert response.json()["code"] == "SELF_DEACTIVATION_FORBIDDEN"


def test_deactivate_other_admin(client, identities):
    identities.add("other")
    response = client.put("/api/v1/admins/other/deactivate")
    assert response.status_code == 200
    assert response.json()["status"] == "deactivated"


def test_unknown_admin(client):
    response = client.get("/api/v1/admins/ghost")
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


def test_system_role_cannot_be_deleted(client, catalog):
    response = client.delete(f"/api/v1/roles/{catalog.role_id('admin')}")
    assert response.status_code == 409
    assert response.json()["code"] == "CONFLICTING_STATE"


def test_editable_role_is_deleted(client, catalog):
    response = client.delete(f"/api/v1/roles/{catalog.role_id('event_manager')}")
    assert response.status_code == 204


def test_store_outage_is_503(client, store):
    store.fail_on("select", Tables.USER_ROLES)
    response = client.get("/api/v1/admins")
    assert response.status_code == 503
    assert response.json()["code"] == "DEPENDENCY_UNAVAILABLE"


def test_permission_update_requires_super_admin(client, caller, catalog):
    url = f"/api/v1/roles/permissions/{catalog.permission_id('manage_news')}"

    assert client.patch(url, json={"display_name": "News"}).status_code == 403

    caller["id"] = "root"
    response = client.patch(url, json={"display_name": "News"})
    assert response.status_code == 200
    assert response.json()["display_name"] == "News"


def test_effective_permissions_of_a_user(client):
    response = client.get("/api/v1/access/users/root/permissions")
    assert response.status_code == 200
    body = response.json()
    assert body["is_super_admin"] is True
    assert [r["name"] for r in body["roles"]] == ["super_admin"]


def test_check_single_permission(client):
    response = client.get("/api/v1/access/users/manager-1/check", params={"permission": "manage_news"})
    assert response.status_code == 200
    assert response.json()["allowed"] is False


def test_check_unknown_permission_name(client):
    response = client.get("/api/v1/access/users/manager-1/check", params={"permission": "manage_newz"})
    assert response.status_code == 422


def test_me_lists_effective_permissions(client, caller):
    caller["email"] = "manager-1@example.org"
    response = client.get("/api/v1/auth/me")
    assert response.status_code == 200
    body = response.json()
    assert body["is_super_admin"] is False
    assert [p["name"] for p in body["permissions"]] == ["manage_admins"]


def test_system_role_edit_is_reserved_for_super_admin(client, caller, catalog):
    url = f"/api/v1/roles/{catalog.role_id('super_admin')}"

    response = client.put(url, json={"display_name": "Guest"})
    assert response.status_code == 403
    assert response.json()["code"] == "NOT_AUTHORIZED"

    caller["id"] = "root"
    response = client.put(url, json={"display_name": "Root"})
    assert response.status_code == 200
    assert response.json()["display_name"] == "Root"


def test_editable_role_edit_needs_only_manage_admins(client, catalog):
    response = client.put(f"/api/v1/roles/{catalog.role_id('moderator')}", json={"display_name": "Mods"})
    assert response.status_code == 200
    assert response.json()["display_name"] == "Mods"


def test_permission_categories_carry_labels(client):
    response = client.get("/api/v1/roles/permission-categories")
    assert response.status_code == 200
    labels = {c["category"]: c["label"] for c in response.json()}
    assert labels["scores"] == "Score management"
    assert len(labels) == 8
