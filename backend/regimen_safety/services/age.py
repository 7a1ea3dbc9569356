"""Patient age and age-band derivation."""

from __future__ import annotations

import datetime

from regimen_safety.models.schemas import AgeCategory, PatientProfile


def calculate_age(
    date_of_birth: datetime.date, as_of: datetime.date | None = None
) -> int:
    """Completed years between date_of_birth and as_of (default: today)."""
    as_of = as_of or datetime.date.today()
    age = as_of.year - date_of_birth.year
    if (as_of.month, as_of.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def age_category(age: int) -> AgeCategory:
    if age < 2:
        return "infant"
    if age < 12:
        return "child"
    if age < 18:
        return "adolescent"
    if age < 65:
        return "adult"
    return "elderly"


def resolve_age(patient: PatientProfile, as_of: datetime.date | None = None) -> int:
    """Explicit age override if given, otherwise derived from date of birth."""
    if patient.age is not None:
        return patient.age
    if patient.date_of_birth is None:
        raise ValueError(f"Patient {patient.id} has neither age nor date of birth")
    return calculate_age(patient.date_of_birth, as_of)


def with_resolved_age(patient: PatientProfile) -> PatientProfile:
    if patient.age is not None:
        return patient
    return patient.model_copy(update={"age": resolve_age(patient)})
