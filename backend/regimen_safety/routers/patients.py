"""Patient API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from regimen_safety.database import get_session
from regimen_safety.models.orm import PatientProfileRecord
from regimen_safety.models.schemas import (
    AlertResponse,
    ErrorDetail,
    MedicationResponse,
    PatientResponse,
)
from regimen_safety.services.alert_service import list_alerts
from regimen_safety.services.patient_service import (
    get_active_medications,
    get_all_patients,
    get_patient_by_id,
)

router = APIRouter(prefix="/api/v1/patients", tags=["patients"])


async def require_patient(
    patient_id: str,
    session: AsyncSession = Depends(get_session),
) -> PatientProfileRecord:
    patient = await get_patient_by_id(session, patient_id)
    if patient is None:
        raise HTTPException(
            status_code=404,
            detail=ErrorDetail(
                code="PATIENT_NOT_FOUND",
                message=f"Patient with ID {patient_id} not found",
            ).model_dump(),
        )
    return patient


@router.get("", response_model=list[PatientResponse])
async def list_patients(
    session: AsyncSession = Depends(get_session),
) -> list[PatientResponse]:
    patients = await get_all_patients(session)
    return [PatientResponse.model_validate(p) for p in patients]


@router.get("/{patient_id}", response_model=PatientResponse)
async def get_patient(
    patient: PatientProfileRecord = Depends(require_patient),
) -> PatientResponse:
    return PatientResponse.model_validate(patient)


@router.get("/{patient_id}/medications", response_model=list[MedicationResponse])
async def list_active_medications(
    patient: PatientProfileRecord = Depends(require_patient),
    session: AsyncSession = Depends(get_session),
) -> list[MedicationResponse]:
    medications = await get_active_medications(session, patient.id)
    return [MedicationResponse.model_validate(m) for m in medications]


@router.get("/{patient_id}/alerts", response_model=list[AlertResponse])
async def list_patient_alerts(
    patient: PatientProfileRecord = Depends(require_patient),
    session: AsyncSession = Depends(get_session),
) -> list[AlertResponse]:
    alerts = await list_alerts(session, patient.id)
    return [AlertResponse.model_validate(a) for a in alerts]
