"""Tests for the /api/users endpoints."""

from medvault.models.user import UserRole


async def test_list_users_admin_only(async_client, admin, patient_user, provider_user):
    resp = await async_client.get("/api/users", headers=admin.headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["count"] == 3
    assert all("password" not in u for u in body["data"])

    resp = await async_client.get("/api/users", headers=provider_user.headers)
    assert resp.status_code == 403


async def test_get_self(async_client, patient_user):
    resp = await async_client.get(f"/api/users/{patient_user.id}", headers=patient_user.headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["email"].startswith("patient")
    assert data["role"] == "patient"
    assert "password" not in data


async def test_get_other_user(async_client, admin, patient_user, provider_user):
    resp = await async_client.get(f"/api/users/{provider_user.id}", headers=patient_user.headers)
    assert resp.status_code == 403

    resp = await async_client.get(f"/api/users/{provider_user.id}", headers=admin.headers)
    assert resp.status_code == 200

    resp = await async_client.get("/api/users/missing", headers=admin.headers)
    assert resp.status_code == 404


async def test_update_self_strips_role_and_password(async_client, store, patient_user):
    resp = await async_client.put(
        f"/api/users/{patient_user.id}",
        json={"firstName": "Janet", "role": "admin", "password": "new-secret"},
        headers=patient_user.headers,
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["firstName"] == "Janet"
    assert data["role"] == "patient"

    stored = await store.users.find_by_id(patient_user.id)
    assert stored["password"] == "hashed-secret"


async def test_admin_changes_role(async_client, admin, patient_user):
    resp = await async_client.put(
        f"/api/users/{patient_user.id}", json={"role": "provider"}, headers=admin.headers
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["role"] == "provider"


async def test_update_other_user_forbidden(async_client, make_actor, patient_user):
    other = await make_actor(UserRole.PATIENT)
    resp = await async_client.put(f"/api/users/{other.id}", json={"firstName": "X"}, headers=patient_user.headers)
    assert resp.status_code == 403


async def test_update_validation(async_client, patient_user):
    resp = await async_client.put(f"/api/users/{patient_user.id}", json={"email": "nope"}, headers=patient_user.headers)
    assert resp.status_code == 400

    resp = await async_client.put(f"/api/users/{patient_user.id}", json={"lastName": ""}, headers=patient_user.headers)
    assert resp.status_code == 400


async def test_update_duplicate_email(async_client, admin, patient_user):
    admin_email = (await async_client.get(f"/api/users/{admin.id}", headers=admin.headers)).json()["data"]["email"]
    resp = await async_client.put(
        f"/api/users/{patient_user.id}", json={"email": admin_email}, headers=patient_user.headers
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "Duplicate value entered for email"


async def test_delete_user(async_client, admin, patient_user):
    resp = await async_client.delete(f"/api/users/{patient_user.id}", headers=patient_user.headers)
    assert resp.status_code == 403

    resp = await async_client.delete(f"/api/users/{patient_user.id}", headers=admin.headers)
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "User deleted successfully"}

    resp = await async_client.get(f"/api/users/{patient_user.id}", headers=admin.headers)
    assert resp.status_code == 404
