"""Schema factories shared by the unit tests (no database)."""

from __future__ import annotations

import datetime

from regimen_safety.models.schemas import (
    MedicationData,
    PatientProfile,
    ValidationFlag,
)


def make_medication(
    name: str, med_id: str | None = None, **overrides
) -> MedicationData:
    data = {
        "id": med_id or f"med-{name.lower().replace(' ', '-')}",
        "name": name,
        "strength": "10mg",
        "dosage": "1 tablet",
        "frequency": "once daily",
        "start_date": datetime.date(2024, 1, 15),
    }
    data.update(overrides)
    return MedicationData(**data)


def make_patient(
    date_of_birth: datetime.date | None = datetime.date(1985, 6, 1), **overrides
) -> PatientProfile:
    data = {
        "id": "patient-1",
        "full_name": "Test Patient",
        "date_of_birth": date_of_birth,
    }
    data.update(overrides)
    return PatientProfile(**data)


def make_flag(severity: str, **overrides) -> ValidationFlag:
    data = {
        "severity": severity,
        "category": "dosage",
        "title": f"{severity.title()} concern",
        "description": f"A {severity} severity concern.",
        "recommendation": "Review with prescriber.",
        "medication_id": f"med-{severity}",
        "medication_name": "Testamine",
        "requires_physician_review": severity in ("critical", "high"),
    }
    data.update(overrides)
    return ValidationFlag(**data)


def birth_date_for_age(age: int) -> datetime.date:
    """A January 1st birth date giving exactly `age` completed years today."""
    return datetime.date(datetime.date.today().year - age, 1, 1)
