"""Escalation of severe validation flags into persistent health alerts."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from regimen_safety.models.orm import HealthAlert
from regimen_safety.models.schemas import (
    AlertCreate,
    AlertSeverity,
    Severity,
    ValidationFlag,
    ValidationResult,
)

logger = logging.getLogger(__name__)

ESCALATED_SEVERITIES: frozenset[str] = frozenset({"critical", "high"})

ALERT_TITLE_PREFIX = "Safety Validation: "
ALERT_TYPE = "medication_safety"


class AlertEscalationError(Exception):
    """Raised when some escalated alerts could not be written.

    The validation result that triggered escalation stays valid.
    """

    def __init__(self, code: str, message: str, created: int, failed: int) -> None:
        self.code = code
        self.message = message
        self.created = created
        self.failed = failed
        super().__init__(message)


class AlertStore(Protocol):
    async def insert(self, alert: AlertCreate) -> None: ...


class SqlAlchemyAlertStore:
    """Writes alerts to the health_alerts table, one commit per alert."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        # An AsyncSession does not allow concurrent operations.
        self._lock = asyncio.Lock()

    async def insert(self, alert: AlertCreate) -> None:
        async with self._lock:
            self.session.add(
                HealthAlert(
                    patient_id=alert.patient_id,
                    title=alert.title,
                    message=alert.message,
                    severity=alert.severity,
                    status=alert.status,
                    alert_type=alert.alert_type,
                    related_id=alert.related_id,
                    alert_metadata=alert.metadata,
                )
            )
            try:
                await self.session.commit()
            except Exception:
                await self.session.rollback()
                raise


def to_alert_severity(severity: Severity) -> AlertSeverity:
    # The alert store only knows info | warning | critical.
    return "critical" if severity == "critical" else "warning"


def build_alert(
    patient_id: str, flag: ValidationFlag, result: ValidationResult
) -> AlertCreate:
    return AlertCreate(
        patient_id=patient_id,
        title=f"{ALERT_TITLE_PREFIX}{flag.title}",
        message=f"{flag.description}\n\nRecommendation: {flag.recommendation}",
        severity=to_alert_severity(flag.severity),
        status="pending",
        alert_type=ALERT_TYPE,
        related_id=flag.medication_id or None,
        metadata={
            "category": flag.category,
            "medication_name": flag.medication_name,
            "requires_physician_review": flag.requires_physician_review,
            "validation_method": result.validation_method,
            "validated_at": (
                result.validated_at.isoformat() if result.validated_at else None
            ),
        },
    )


def build_alerts(patient_id: str, result: ValidationResult) -> list[AlertCreate]:
    """One alert per critical or high flag, in flag order."""
    return [
        build_alert(patient_id, flag, result)
        for flag in result.flags
        if flag.severity in ESCALATED_SEVERITIES
    ]


async def escalate(
    patient_id: str, result: ValidationResult, store: AlertStore
) -> list[AlertCreate]:
    """Persist alerts for the severe flags of a result.

    Writes are independent and issued concurrently. Returns the alerts that
    were written; raises AlertEscalationError if any write failed.
    """
    alerts = build_alerts(patient_id, result)
    if not alerts:
        logger.info("No flags to escalate for patient %s", patient_id)
        return []

    logger.info("Escalating %d flag(s) for patient %s", len(alerts), patient_id)
    outcomes = await asyncio.gather(
        *(store.insert(alert) for alert in alerts), return_exceptions=True
    )

    created = [a for a, o in zip(alerts, outcomes, strict=True) if o is None]
    failures = [o for o in outcomes if isinstance(o, BaseException)]
    for err in failures:
        logger.error("Alert write failed for patient %s: %s", patient_id, err)

    if failures:
        raise AlertEscalationError(
            code="ALERT_WRITE_FAILED",
            message=(
                f"{len(failures)} of {len(alerts)} safety alert(s) could not be "
                "saved. Validation completed but alerts were not fully recorded."
            ),
            created=len(created),
            failed=len(failures),
        )

    logger.info("%d safety alert(s) saved for patient %s", len(created), patient_id)
    return created


async def list_alerts(session: AsyncSession, patient_id: str) -> Sequence[HealthAlert]:
    result = await session.execute(
        select(HealthAlert)
        .where(HealthAlert.patient_id == patient_id)
        .order_by(HealthAlert.created_at.desc())
    )
    return result.scalars().all()
