"""Tests for the /api/providers endpoints."""

import asyncio

from medvault.models.user import UserRole
from helpers import patient_payload, provider_payload


async def _create(async_client, actor, license_number="MD-1000", specialty="Cardiology", **extra) -> dict:
    resp = await async_client.post(
        "/api/providers", json=provider_payload(license_number, specialty, **extra), headers=actor.headers
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def test_create_provider(async_client, provider_user):
    data = await _create(async_client, provider_user, languages=["English", "Spanish"])
    assert data["user"] == provider_user.id
    assert data["patients"] == []
    assert data["acceptingNewPatients"] is True
    assert data["isLicenseValid"] is True
    assert data["languages"] == ["English", "Spanish"]
    assert data["userInfo"]["lastName"] == "House"


async def test_expired_license_reported(async_client, provider_user):
    data = await _create(async_client, provider_user, licenseExpiration="2001-01-01T00:00:00Z")
    assert data["isLicenseValid"] is False


async def test_patient_cannot_create(async_client, patient_user):
    resp = await async_client.post("/api/providers", json=provider_payload(), headers=patient_user.headers)
    assert resp.status_code == 403


async def test_one_profile_per_user(async_client, provider_user):
    await _create(async_client, provider_user)
    resp = await async_client.post("/api/providers", json=provider_payload("MD-2"), headers=provider_user.headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Provider profile already exists for this user"


async def test_duplicate_license_number(async_client, make_actor):
    first = await make_actor(UserRole.PROVIDER)
    second = await make_actor(UserRole.PROVIDER)
    await _create(async_client, first, "MD-1000")

    resp = await async_client.post("/api/providers", json=provider_payload("MD-1000"), headers=second.headers)
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Duplicate value entered for licenseNumber"}


async def test_missing_license_number(async_client, provider_user):
    body = provider_payload()
    del body["licenseNumber"]
    resp = await async_client.post("/api/providers", json=body, headers=provider_user.headers)
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "licenseNumber"


async def test_public_listing(async_client, make_actor):
    cardio = await make_actor(UserRole.PROVIDER)
    derm = await make_actor(UserRole.PROVIDER)
    peds = await make_actor(UserRole.PROVIDER)
    await _create(async_client, cardio, "MD-1", "Cardiology")
    await _create(async_client, derm, "MD-2", "Dermatology", acceptingNewPatients=False)
    await _create(async_client, peds, "MD-3", "Pediatric Cardiology")

    resp = await async_client.get("/api/providers")
    assert resp.status_code == 200
    assert resp.json()["count"] == 3

    resp = await async_client.get("/api/providers", params={"specialty": "cardio"})
    assert {p["licenseNumber"] for p in resp.json()["data"]} == {"MD-1", "MD-3"}

    resp = await async_client.get("/api/providers", params={"acceptingNewPatients": "false"})
    assert [p["licenseNumber"] for p in resp.json()["data"]] == ["MD-2"]


async def test_public_get(async_client, provider_user):
    created = await _create(async_client, provider_user)
    resp = await async_client.get(f"/api/providers/{created['id']}")
    assert resp.status_code == 200
    assert resp.json()["data"]["licenseNumber"] == "MD-1000"

    resp = await async_client.get("/api/providers/missing")
    assert resp.status_code == 404


async def test_my_profile(async_client, provider_user, patient_user):
    resp = await async_client.get("/api/providers/me", headers=provider_user.headers)
    assert resp.status_code == 404

    created = await _create(async_client, provider_user)
    resp = await async_client.get("/api/providers/me", headers=provider_user.headers)
    assert resp.json()["data"]["id"] == created["id"]

    resp = await async_client.get("/api/providers/me", headers=patient_user.headers)
    assert resp.status_code == 403


async def test_update_provider(async_client, make_actor, admin, provider_user):
    created = await _create(async_client, provider_user)

    resp = await async_client.put(
        f"/api/providers/{created['id']}",
        json={"acceptingNewPatients": False, "practiceAddress": {"facilityName": "Princeton-Plainsboro", "city": "Princeton"}},
        headers=provider_user.headers,
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["acceptingNewPatients"] is False
    assert data["practiceAddress"]["city"] == "Princeton"

    other = await make_actor(UserRole.PROVIDER)
    resp = await async_client.put(f"/api/providers/{created['id']}", json={"npi": "123"}, headers=other.headers)
    assert resp.status_code == 403

    resp = await async_client.put(f"/api/providers/{created['id']}", json={"npi": "123"}, headers=admin.headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["npi"] == "123"


async def test_update_cannot_replace_patient_list(async_client, provider_user):
    created = await _create(async_client, provider_user)
    resp = await async_client.put(
        f"/api/providers/{created['id']}", json={"patients": ["x"]}, headers=provider_user.headers
    )
    assert resp.json()["data"]["patients"] == []


async def test_assign_patient(async_client, provider_user, patient_user):
    provider = await _create(async_client, provider_user)
    resp = await async_client.post("/api/patients", json=patient_payload(), headers=patient_user.headers)
    patient_id = resp.json()["data"]["id"]

    url = f"/api/providers/{provider['id']}/patients"
    resp = await async_client.post(url, json={"patientId": patient_id}, headers=provider_user.headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["patients"] == [patient_id]

    resp = await async_client.post(url, json={"patientId": patient_id}, headers=provider_user.headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Patient already assigned to this provider"

    resp = await async_client.post(url, json={"patientId": "missing"}, headers=provider_user.headers)
    assert resp.status_code == 404

    resp = await async_client.post(url, json={"patientId": patient_id}, headers=patient_user.headers)
    assert resp.status_code == 403


async def test_concurrent_assign_adds_patient_once(async_client, provider_user, patient_user):
    provider = await _create(async_client, provider_user)
    resp = await async_client.post("/api/patients", json=patient_payload(), headers=patient_user.headers)
    patient_id = resp.json()["data"]["id"]

    url = f"/api/providers/{provider['id']}/patients"
    responses = await asyncio.gather(
        *(async_client.post(url, json={"patientId": patient_id}, headers=provider_user.headers) for _ in range(5))
    )
    assert sorted(r.status_code for r in responses) == [200, 400, 400, 400, 400]

    resp = await async_client.get(f"/api/providers/{provider['id']}")
    assert resp.json()["data"]["patients"] == [patient_id]


async def test_my_profile_lists_assigned_patients(async_client, provider_user, patient_user):
    provider = await _create(async_client, provider_user)
    resp = await async_client.post(
        "/api/patients", json=patient_payload(bloodType="A+"), headers=patient_user.headers
    )
    patient_id = resp.json()["data"]["id"]
    await async_client.post(
        f"/api/providers/{provider['id']}/patients", json={"patientId": patient_id}, headers=provider_user.headers
    )

    data = (await async_client.get("/api/providers/me", headers=provider_user.headers)).json()["data"]
    assert [p["id"] for p in data["patientsInfo"]] == [patient_id]
    assert data["patientsInfo"][0]["bloodType"] == "A+"
    assert data["patientsInfo"][0]["userInfo"]["firstName"] == "Jane"

    public = (await async_client.get(f"/api/providers/{provider['id']}")).json()["data"]
    assert public["patientsInfo"] is None


async def test_assign_to_missing_provider(async_client, admin):
    resp = await async_client.post("/api/providers/missing/patients", json={"patientId": "p1"}, headers=admin.headers)
    assert resp.status_code == 404


async def test_delete_provider(async_client, admin, provider_user):
    created = await _create(async_client, provider_user)

    resp = await async_client.delete(f"/api/providers/{created['id']}", headers=provider_user.headers)
    assert resp.status_code == 403

    resp = await async_client.delete(f"/api/providers/{created['id']}", headers=admin.headers)
    assert resp.status_code == 200
    assert resp.json()["message"] == "Provider profile deleted successfully"
    assert (await async_client.get(f"/api/providers/{created['id']}")).status_code == 404
