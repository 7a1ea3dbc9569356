"""Test fixtures and configuration."""

from __future__ import annotations

import datetime
from collections.abc import AsyncIterator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from regimen_safety.database import get_session
from regimen_safety.main import app
from regimen_safety.models.orm import Base, MedicationRecord, PatientProfileRecord
from regimen_safety.services.validation_service import (
    RegimenValidator,
    get_regimen_validator,
)

test_engine = create_async_engine("sqlite+aiosqlite://", echo=False)
test_session_factory = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)


async def override_get_session() -> AsyncIterator[AsyncSession]:
    async with test_session_factory() as session:
        yield session


app.dependency_overrides[get_session] = override_get_session
# Endpoint tests never reach a real model: rule-based only.
app.dependency_overrides[get_regimen_validator] = lambda: RegimenValidator()


@pytest.fixture(autouse=True)
async def setup_database() -> AsyncIterator[None]:
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client() -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def session() -> AsyncIterator[AsyncSession]:
    async with test_session_factory() as s:
        yield s


async def _seed(
    full_name: str,
    date_of_birth: datetime.date | None,
    medications: list[dict],
) -> PatientProfileRecord:
    async with test_session_factory() as session:
        patient = PatientProfileRecord(
            full_name=full_name,
            date_of_birth=date_of_birth,
            known_conditions=["Atrial fibrillation"],
            allergies=["Penicillin"],
        )
        session.add(patient)
        await session.flush()
        session.add_all(
            MedicationRecord(
                patient_id=patient.id,
                start_date=datetime.date(2024, 1, 15),
                **med,
            )
            for med in medications
        )
        await session.commit()
        await session.refresh(patient)
        return patient


@pytest.fixture
async def seed_patient() -> PatientProfileRecord:
    """Elderly patient on warfarin + ibuprofen (one inactive item)."""
    return await _seed(
        "Test Patient",
        datetime.date(1950, 3, 15),
        [
            {"name": "Warfarin", "strength": "5mg", "dosage": "1 tablet"},
            {"name": "Ibuprofen", "strength": "400mg", "dosage": "1 tablet"},
            {"name": "Digoxin", "strength": "125mcg", "is_active": False},
        ],
    )


@pytest.fixture
async def seed_patient_without_dob() -> PatientProfileRecord:
    return await _seed(
        "No Birthday", None, [{"name": "Atorvastatin", "strength": "40mg"}]
    )


@pytest.fixture
async def seed_patient_without_medications() -> PatientProfileRecord:
    return await _seed("No Meds", datetime.date(1990, 1, 1), [])
