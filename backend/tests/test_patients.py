"""Patient endpoint tests."""

from __future__ import annotations

from httpx import AsyncClient


async def test_list_patients_empty(client: AsyncClient) -> None:
    response = await client.get("/api/v1/patients")
    assert response.status_code == 200
    assert response.json() == []


async def test_list_patients(client: AsyncClient, seed_patient) -> None:
    response = await client.get("/api/v1/patients")
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["full_name"] == "Test Patient"


async def test_get_patient(client: AsyncClient, seed_patient) -> None:
    response = await client.get(f"/api/v1/patients/{seed_patient.id}")
    assert response.status_code == 200
    data = response.json()
    assert data["full_name"] == "Test Patient"
    assert data["date_of_birth"] == "1950-03-15"
    assert data["known_conditions"] == ["Atrial fibrillation"]


async def test_get_patient_not_found(client: AsyncClient) -> None:
    response = await client.get("/api/v1/patients/missing")
    assert response.status_code == 404
    detail = response.json()["detail"]
    assert detail["code"] == "PATIENT_NOT_FOUND"


async def test_list_active_medications(client: AsyncClient, seed_patient) -> None:
    response = await client.get(f"/api/v1/patients/{seed_patient.id}/medications")
    assert response.status_code == 200
    names = sorted(m["name"] for m in response.json())
    # Digoxin is inactive
    assert names == ["Ibuprofen", "Warfarin"]


async def test_list_alerts_empty(client: AsyncClient, seed_patient) -> None:
    response = await client.get(f"/api/v1/patients/{seed_patient.id}/alerts")
    assert response.status_code == 200
    assert response.json() == []
