"""Validation history: audit trail of results and their flags."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Sequence

from sqlalchemy import case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from regimen_safety.config import settings
from regimen_safety.models.orm import SafetyValidationRecord, ValidationFlagRecord
from regimen_safety.models.schemas import (
    SEVERITY_RANK,
    CriticalFlagCheck,
    ValidationResult,
    ValidationStats,
)

logger = logging.getLogger(__name__)

_severity_order = case(SEVERITY_RANK, value=ValidationFlagRecord.severity, else_=99)


async def save_validation_result(
    session: AsyncSession, patient_id: str, result: ValidationResult
) -> str:
    """Store a result snapshot with its flags. Returns the validation id."""
    record = SafetyValidationRecord(
        patient_id=patient_id,
        is_safe=result.is_safe,
        overall_risk_level=result.overall_risk_level,
        validation_method=result.validation_method,
        summary=result.summary,
        validated_at=result.validated_at or datetime.datetime.now(datetime.UTC),
        flags=[
            ValidationFlagRecord(
                position=idx,
                medication_id=flag.medication_id or None,
                medication_name=flag.medication_name,
                severity=flag.severity,
                category=flag.category,
                title=flag.title,
                description=flag.description,
                recommendation=flag.recommendation,
                requires_physician_review=flag.requires_physician_review,
                references=flag.references,
            )
            for idx, flag in enumerate(result.flags)
        ],
    )
    session.add(record)
    await session.commit()
    logger.info(
        "Saved validation %s for patient %s (%d flags)",
        record.id,
        patient_id,
        len(result.flags),
    )
    return record.id


async def get_validation_history(
    session: AsyncSession, patient_id: str, limit: int = 10
) -> Sequence[SafetyValidationRecord]:
    result = await session.execute(
        select(SafetyValidationRecord)
        .where(SafetyValidationRecord.patient_id == patient_id)
        .order_by(SafetyValidationRecord.validated_at.desc())
        .limit(limit)
    )
    return result.scalars().all()


async def get_flags(
    session: AsyncSession, validation_id: str
) -> Sequence[ValidationFlagRecord]:
    """Flags of one validation, most severe first."""
    result = await session.execute(
        select(ValidationFlagRecord)
        .where(ValidationFlagRecord.validation_id == validation_id)
        .order_by(_severity_order, ValidationFlagRecord.position)
    )
    return result.scalars().all()


async def get_validation_with_flags(
    session: AsyncSession, validation_id: str
) -> tuple[SafetyValidationRecord, Sequence[ValidationFlagRecord]] | None:
    validation = await session.get(SafetyValidationRecord, validation_id)
    if validation is None:
        return None
    return validation, await get_flags(session, validation_id)


async def get_latest_validation(
    session: AsyncSession, patient_id: str
) -> tuple[SafetyValidationRecord, Sequence[ValidationFlagRecord]] | None:
    history = await get_validation_history(session, patient_id, limit=1)
    if not history:
        return None
    return history[0], await get_flags(session, history[0].id)


async def get_validation_stats(
    session: AsyncSession, patient_id: str
) -> ValidationStats:
    risk = SafetyValidationRecord.overall_risk_level
    result = await session.execute(
        select(
            func.count(),
            func.count().filter(risk == "critical"),
            func.count().filter(risk == "warning"),
            func.count().filter(risk == "safe"),
            func.max(SafetyValidationRecord.validated_at),
        ).where(SafetyValidationRecord.patient_id == patient_id)
    )
    total, critical, warning, safe, last_validated = result.one()
    return ValidationStats(
        total_validations=total,
        critical_count=critical,
        warning_count=warning,
        safe_count=safe,
        last_validated=last_validated,
    )


async def cleanup_old_validations(
    session: AsyncSession, patient_id: str, keep_count: int | None = None
) -> int:
    """Delete all but the keep_count most recent validations of a patient.

    keep_count defaults to settings.history_keep_count.
    """
    if keep_count is None:
        keep_count = settings.history_keep_count
    result = await session.execute(
        select(SafetyValidationRecord.id)
        .where(SafetyValidationRecord.patient_id == patient_id)
        .order_by(SafetyValidationRecord.validated_at.desc())
        .offset(keep_count)
    )
    stale_ids = list(result.scalars().all())
    if not stale_ids:
        return 0

    await session.execute(
        delete(ValidationFlagRecord).where(
            ValidationFlagRecord.validation_id.in_(stale_ids)
        )
    )
    await session.execute(
        delete(SafetyValidationRecord).where(SafetyValidationRecord.id.in_(stale_ids))
    )
    await session.commit()
    logger.info(
        "Deleted %d old validation(s) for patient %s (kept %d)",
        len(stale_ids),
        patient_id,
        keep_count,
    )
    return len(stale_ids)


async def get_critical_flags(
    session: AsyncSession, patient_id: str
) -> Sequence[ValidationFlagRecord]:
    result = await session.execute(
        select(ValidationFlagRecord)
        .join(SafetyValidationRecord)
        .where(
            SafetyValidationRecord.patient_id == patient_id,
            ValidationFlagRecord.severity == "critical",
        )
        .order_by(SafetyValidationRecord.validated_at.desc())
    )
    return result.scalars().all()


async def has_critical_flags(
    session: AsyncSession,
    patient_id: str,
    medication_id: str,
    days_back: int = 30,
    as_of: datetime.datetime | None = None,
) -> CriticalFlagCheck:
    """Whether a medication had critical flags in the last days_back days."""
    as_of = as_of or datetime.datetime.now(datetime.UTC)
    threshold = as_of - datetime.timedelta(days=days_back)
    result = await session.execute(
        select(func.count(ValidationFlagRecord.id))
        .select_from(ValidationFlagRecord)
        .join(SafetyValidationRecord)
        .where(
            SafetyValidationRecord.patient_id == patient_id,
            ValidationFlagRecord.medication_id == medication_id,
            ValidationFlagRecord.severity == "critical",
            SafetyValidationRecord.validated_at >= threshold,
        )
    )
    count = result.scalar_one()
    return CriticalFlagCheck(has_critical=count > 0, count=count)
