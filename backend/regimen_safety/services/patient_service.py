"""Patient and active-regimen data access service."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from regimen_safety.models.orm import MedicationRecord, PatientProfileRecord
from regimen_safety.models.schemas import MedicationData, PatientProfile


async def get_all_patients(session: AsyncSession) -> Sequence[PatientProfileRecord]:
    result = await session.execute(
        select(PatientProfileRecord).order_by(PatientProfileRecord.full_name)
    )
    return result.scalars().all()


async def get_patient_by_id(
    session: AsyncSession, patient_id: str
) -> PatientProfileRecord | None:
    return await session.get(PatientProfileRecord, patient_id)


async def get_active_medications(
    session: AsyncSession, patient_id: str
) -> Sequence[MedicationRecord]:
    result = await session.execute(
        select(MedicationRecord)
        .where(
            MedicationRecord.patient_id == patient_id,
            MedicationRecord.is_active.is_(True),
        )
        .order_by(MedicationRecord.created_at.desc())
    )
    return result.scalars().all()


def to_patient_profile(record: PatientProfileRecord) -> PatientProfile:
    return PatientProfile(
        id=record.id,
        full_name=record.full_name,
        date_of_birth=record.date_of_birth,
        weight_kg=record.weight_kg,
        height_cm=record.height_cm,
        known_conditions=record.known_conditions or None,
        allergies=record.allergies or None,
        chronic_conditions=record.chronic_conditions or None,
    )


def to_medication_data(record: MedicationRecord) -> MedicationData:
    frequency = record.frequency or ""
    if frequency == "custom" and record.custom_frequency:
        frequency = record.custom_frequency
    return MedicationData(
        id=record.id,
        name=record.name,
        strength=record.strength or "",
        dosage=record.dosage or "",
        frequency=frequency,
        route=record.route,
        duration_days=record.duration_days or None,
        start_date=record.start_date,
        end_date=record.end_date,
        instructions=record.instructions,
    )
