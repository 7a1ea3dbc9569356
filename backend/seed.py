"""Seed database with demo patients and regimens. Drop-and-recreate tables on each run."""

from __future__ import annotations

import asyncio
import datetime

from regimen_safety.database import async_session, engine
from regimen_safety.models.orm import Base, MedicationRecord, PatientProfileRecord


PATIENTS = [
    # Elderly, anticoagulated, self-medicating with an NSAID
    (
        "Maria Garcia",
        datetime.date(1957, 3, 15),
        [
            {"name": "Warfarin", "strength": "5mg", "dosage": "1 tablet", "frequency": "once_daily"},
            {"name": "Ibuprofen", "strength": "400mg", "dosage": "1 tablet", "frequency": "as_needed"},
            {"name": "Metformin", "strength": "1000mg", "dosage": "1 tablet", "frequency": "twice_daily"},
        ],
        {
            "weight_kg": 68.0,
            "known_conditions": ["Atrial fibrillation", "Type 2 Diabetes"],
            "allergies": ["Penicillin"],
        },
    ),
    # Child: every item needs weight-based dosing confirmation
    (
        "Leo Park",
        datetime.date(2017, 5, 2),
        [
            {"name": "Amoxicillin", "strength": "250mg/5mL", "dosage": "5 mL", "frequency": "thrice_daily", "duration_days": 10},
            {"name": "Paracetamol", "strength": "120mg/5mL", "dosage": "5 mL", "frequency": "as_needed"},
        ],
        {"weight_kg": 24.5},
    ),
    # Adult with an ACE inhibitor + potassium and a long antibiotic course
    (
        "James Wilson",
        datetime.date(1980, 11, 8),
        [
            {"name": "Lisinopril", "strength": "20mg", "dosage": "1 tablet", "frequency": "once_daily"},
            {"name": "Potassium Chloride", "strength": "20mEq", "dosage": "1 tablet", "frequency": "once_daily"},
            {"name": "Azithromycin", "strength": "250mg", "dosage": "1 tablet", "frequency": "once_daily", "duration_days": 21},
        ],
        {"chronic_conditions": ["Hypertension"]},
    ),
    # Adult with nothing the rules flag
    (
        "Aisha Khan",
        datetime.date(1992, 7, 21),
        [
            {"name": "Levothyroxine", "strength": "50mcg", "dosage": "1 tablet", "frequency": "once_daily"},
        ],
        {"known_conditions": ["Hypothyroidism"]},
    ),
    # Incomplete profile: validation is refused until a date of birth is added
    (
        "Sam Doe",
        None,
        [
            {"name": "Atorvastatin", "strength": "40mg", "dosage": "1 tablet", "frequency": "once_daily"},
        ],
        {},
    ),
]


async def main() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        for full_name, dob, medications, profile in PATIENTS:
            patient = PatientProfileRecord(
                full_name=full_name, date_of_birth=dob, **profile
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

    print(f"Seeded {len(PATIENTS)} patients.")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
