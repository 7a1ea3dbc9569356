"""SQLAlchemy ORM models."""

from __future__ import annotations

import datetime
import uuid

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class PatientProfileRecord(Base):
    __tablename__ = "patient_profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    full_name: Mapped[str] = mapped_column(String(200))
    date_of_birth: Mapped[datetime.date | None]
    weight_kg: Mapped[float | None]
    height_cm: Mapped[float | None]
    known_conditions: Mapped[list] = mapped_column(JSON, default=list)
    chronic_conditions: Mapped[list] = mapped_column(JSON, default=list)
    allergies: Mapped[list] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime.datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime.datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now()
    )


class MedicationRecord(Base):
    __tablename__ = "medications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    patient_id: Mapped[str] = mapped_column(ForeignKey("patient_profiles.id"))
    name: Mapped[str] = mapped_column(String(200))
    strength: Mapped[str | None] = mapped_column(String(100))
    dosage: Mapped[str | None] = mapped_column(String(100))
    # once_daily | twice_daily | thrice_daily | four_times_daily | as_needed | custom
    frequency: Mapped[str] = mapped_column(String(30), default="once_daily")
    custom_frequency: Mapped[str | None] = mapped_column(String(100))
    route: Mapped[str | None] = mapped_column(String(50))
    duration_days: Mapped[int | None]
    start_date: Mapped[datetime.date]
    end_date: Mapped[datetime.date | None]
    instructions: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime.datetime] = mapped_column(server_default=func.now())


class HealthAlert(Base):
    __tablename__ = "health_alerts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    patient_id: Mapped[str] = mapped_column(ForeignKey("patient_profiles.id"))
    title: Mapped[str] = mapped_column(String(300))
    message: Mapped[str] = mapped_column(Text)
    severity: Mapped[str] = mapped_column(String(10), default="info")
    status: Mapped[str] = mapped_column(String(15), default="pending")
    alert_type: Mapped[str | None] = mapped_column(String(50))
    related_id: Mapped[str | None] = mapped_column(String(36))
    alert_metadata: Mapped[dict | None] = mapped_column("metadata", JSON)
    created_at: Mapped[datetime.datetime] = mapped_column(server_default=func.now())
    acknowledged_at: Mapped[datetime.datetime | None]
    resolved_at: Mapped[datetime.datetime | None]


class SafetyValidationRecord(Base):
    __tablename__ = "medication_safety_validations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    patient_id: Mapped[str] = mapped_column(ForeignKey("patient_profiles.id"))
    is_safe: Mapped[bool] = mapped_column(Boolean)
    overall_risk_level: Mapped[str] = mapped_column(String(10))
    validation_method: Mapped[str] = mapped_column(String(20))
    summary: Mapped[str] = mapped_column(Text)
    validated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime.datetime] = mapped_column(server_default=func.now())

    flags: Mapped[list[ValidationFlagRecord]] = relationship(
        back_populates="validation", cascade="all, delete-orphan"
    )


class ValidationFlagRecord(Base):
    __tablename__ = "validation_flags"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    validation_id: Mapped[str] = mapped_column(
        ForeignKey("medication_safety_validations.id", ondelete="CASCADE")
    )
    position: Mapped[int] = mapped_column(default=0)
    medication_id: Mapped[str | None] = mapped_column(String(36))
    medication_name: Mapped[str] = mapped_column(String(200))
    severity: Mapped[str] = mapped_column(String(10))
    category: Mapped[str] = mapped_column(String(20))
    title: Mapped[str] = mapped_column(String(300))
    description: Mapped[str] = mapped_column(Text)
    recommendation: Mapped[str] = mapped_column(Text)
    requires_physician_review: Mapped[bool] = mapped_column(Boolean, default=False)
    references: Mapped[list | None] = mapped_column(JSON)
    created_at: Mapped[datetime.datetime] = mapped_column(server_default=func.now())

    validation: Mapped[SafetyValidationRecord] = relationship(back_populates="flags")
