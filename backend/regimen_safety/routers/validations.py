"""Regimen safety validation API endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from regimen_safety.database import get_session
from regimen_safety.models.orm import PatientProfileRecord
from regimen_safety.models.schemas import (
    CleanupResponse,
    CriticalFlagCheck,
    ErrorDetail,
    RegimenValidationRequest,
    SafetyValidationResponse,
    StoredValidation,
    StoredValidationFlag,
    ValidationDetail,
    ValidationResult,
    ValidationStats,
)
from regimen_safety.routers.patients import require_patient
from regimen_safety.services import history_service
from regimen_safety.services.alert_service import (
    AlertEscalationError,
    SqlAlchemyAlertStore,
    escalate,
)
from regimen_safety.services.patient_service import (
    get_active_medications,
    to_medication_data,
    to_patient_profile,
)
from regimen_safety.services.validation_service import (
    RegimenValidationError,
    RegimenValidator,
    get_regimen_validator,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["safety-validations"])


def _detail(validation, flags) -> ValidationDetail:
    return ValidationDetail(
        validation=StoredValidation.model_validate(validation),
        flags=[StoredValidationFlag.model_validate(f) for f in flags],
    )


async def _run_validation(
    validator: RegimenValidator, request: RegimenValidationRequest
) -> ValidationResult:
    try:
        return await validator.validate(request.medications, request.patient)
    except RegimenValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=ErrorDetail(code=e.code, message=e.message).model_dump(),
        )


@router.post("/safety-validations/evaluate", response_model=ValidationResult)
async def evaluate_regimen(
    request: RegimenValidationRequest,
    validator: RegimenValidator = Depends(get_regimen_validator),
) -> ValidationResult:
    """Validate a caller-supplied regimen without touching the database."""
    return await _run_validation(validator, request)


@router.post(
    "/patients/{patient_id}/safety-validations",
    response_model=SafetyValidationResponse,
)
async def create_safety_validation(
    persist: bool = True,
    escalate_alerts: bool = Query(True, alias="escalate"),
    patient: PatientProfileRecord = Depends(require_patient),
    session: AsyncSession = Depends(get_session),
    validator: RegimenValidator = Depends(get_regimen_validator),
) -> SafetyValidationResponse:
    medications = await get_active_medications(session, patient.id)
    request = RegimenValidationRequest(
        medications=[to_medication_data(m) for m in medications],
        patient=to_patient_profile(patient),
    )
    logger.info(
        "Validating %d active medication(s) for patient %s",
        len(request.medications),
        patient.id,
    )
    result = await _run_validation(validator, request)

    response = SafetyValidationResponse(result=result)
    if persist:
        try:
            response.validation_id = await history_service.save_validation_result(
                session, patient.id, result
            )
        except SQLAlchemyError as e:
            logger.exception("Saving validation failed for patient %s", patient.id)
            await session.rollback()
            response.persist_error = ErrorDetail(
                code="VALIDATION_SAVE_FAILED",
                message="Validation result could not be stored",
                details={"error": str(e)},
            )

    if escalate_alerts:
        try:
            created = await escalate(patient.id, result, SqlAlchemyAlertStore(session))
            response.alerts_created = len(created)
        except AlertEscalationError as e:
            logger.exception("Alert escalation failed for patient %s", patient.id)
            response.alerts_created = e.created
            response.escalation_error = ErrorDetail(
                code=e.code,
                message=e.message,
                details={"created": e.created, "failed": e.failed},
            )
    return response


@router.get(
    "/patients/{patient_id}/safety-validations",
    response_model=list[StoredValidation],
)
async def list_validation_history(
    limit: int = Query(10, ge=1, le=100),
    patient: PatientProfileRecord = Depends(require_patient),
    session: AsyncSession = Depends(get_session),
) -> list[StoredValidation]:
    history = await history_service.get_validation_history(session, patient.id, limit)
    return [StoredValidation.model_validate(v) for v in history]


@router.get(
    "/patients/{patient_id}/safety-validations/latest",
    response_model=ValidationDetail,
)
async def get_latest_validation(
    patient: PatientProfileRecord = Depends(require_patient),
    session: AsyncSession = Depends(get_session),
) -> ValidationDetail:
    latest = await history_service.get_latest_validation(session, patient.id)
    if latest is None:
        raise HTTPException(
            status_code=404,
            detail=ErrorDetail(
                code="VALIDATION_NOT_FOUND",
                message=f"No validations recorded for patient {patient.id}",
            ).model_dump(),
        )
    return _detail(*latest)


@router.get(
    "/patients/{patient_id}/safety-validations/stats",
    response_model=ValidationStats,
)
async def get_validation_stats(
    patient: PatientProfileRecord = Depends(require_patient),
    session: AsyncSession = Depends(get_session),
) -> ValidationStats:
    return await history_service.get_validation_stats(session, patient.id)


@router.get(
    "/patients/{patient_id}/safety-validations/critical-flags",
    response_model=list[StoredValidationFlag],
)
async def list_critical_flags(
    patient: PatientProfileRecord = Depends(require_patient),
    session: AsyncSession = Depends(get_session),
) -> list[StoredValidationFlag]:
    flags = await history_service.get_critical_flags(session, patient.id)
    return [StoredValidationFlag.model_validate(f) for f in flags]


@router.delete(
    "/patients/{patient_id}/safety-validations",
    response_model=CleanupResponse,
)
async def cleanup_validation_history(
    keep: int | None = Query(None, ge=0),
    patient: PatientProfileRecord = Depends(require_patient),
    session: AsyncSession = Depends(get_session),
) -> CleanupResponse:
    deleted = await history_service.cleanup_old_validations(session, patient.id, keep)
    return CleanupResponse(deleted=deleted)


@router.get(
    "/patients/{patient_id}/medications/{medication_id}/critical-flags",
    response_model=CriticalFlagCheck,
)
async def check_medication_critical_flags(
    medication_id: str,
    days_back: int = Query(30, ge=1),
    patient: PatientProfileRecord = Depends(require_patient),
    session: AsyncSession = Depends(get_session),
) -> CriticalFlagCheck:
    return await history_service.has_critical_flags(
        session, patient.id, medication_id, days_back
    )


@router.get("/safety-validations/{validation_id}", response_model=ValidationDetail)
async def get_validation(
    validation_id: str,
    session: AsyncSession = Depends(get_session),
) -> ValidationDetail:
    found = await history_service.get_validation_with_flags(session, validation_id)
    if found is None:
        raise HTTPException(
            status_code=404,
            detail=ErrorDetail(
                code="VALIDATION_NOT_FOUND",
                message=f"Validation with ID {validation_id} not found",
            ).model_dump(),
        )
    return _detail(*found)
