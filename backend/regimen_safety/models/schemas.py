"""Pydantic request/response/error schemas."""

from __future__ import annotations

import datetime
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

Severity = Literal["critical", "high", "medium", "low", "info"]
FlagCategory = Literal[
    "dosage", "age", "interaction", "contraindication", "duration", "frequency"
]
RiskLevel = Literal["safe", "caution", "warning", "critical"]
ValidationMethod = Literal["ai_clinical_nlp", "rule_based", "hybrid"]
AgeCategory = Literal["infant", "child", "adolescent", "adult", "elderly"]
AlertSeverity = Literal["info", "warning", "critical"]
AlertStatus = Literal["pending", "acknowledged", "resolved"]

# Lower rank = more severe
SEVERITY_RANK: dict[str, int] = {
    "critical": 0,
    "high": 1,
    "medium": 2,
    "low": 3,
    "info": 4,
}


# --- Validator input ---


class PatientProfile(BaseModel):
    """Demographic facts needed for safety reasoning."""

    id: str
    full_name: str = ""
    # Optional here so the validator can reject an incomplete profile itself.
    date_of_birth: datetime.date | None = None
    age: int | None = Field(default=None, ge=0)
    weight_kg: float | None = None
    height_cm: float | None = None
    known_conditions: list[str] | None = None
    allergies: list[str] | None = None
    chronic_conditions: list[str] | None = None


class MedicationData(BaseModel):
    """One prescribed item in a regimen."""

    id: str
    name: str
    strength: str = ""
    dosage: str = ""
    frequency: str = ""
    route: str | None = None
    duration_days: int | None = Field(default=None, gt=0)
    start_date: datetime.date
    end_date: datetime.date | None = None
    instructions: str | None = None


# --- Validator output ---


class ValidationFlag(BaseModel):
    severity: Severity
    category: FlagCategory
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    recommendation: str = Field(min_length=1)
    medication_id: str = ""
    medication_name: str
    requires_physician_review: bool
    references: list[str] | None = None

    @field_validator("medication_id", mode="before")
    @classmethod
    def _null_medication_id(cls, value):
        # Generated flags spanning several drugs often carry no single id
        return "" if value is None else value


class ValidationResult(BaseModel):
    is_safe: bool
    overall_risk_level: RiskLevel
    flags: list[ValidationFlag]
    validated_at: datetime.datetime | None = None
    validation_method: ValidationMethod
    summary: str = Field(min_length=1)


class GenerationConfig(BaseModel):
    """Sampling constraints passed to the text generation capability."""

    temperature: float = 0.2
    top_k: int | None = 40
    top_p: float | None = 0.95
    max_output_tokens: int = 4096


# --- Alerts ---


class AlertCreate(BaseModel):
    patient_id: str
    title: str
    message: str
    severity: AlertSeverity
    status: AlertStatus = "pending"
    alert_type: str = "medication_safety"
    related_id: str | None = None
    metadata: dict = {}


class AlertResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_id: str
    title: str
    message: str
    severity: AlertSeverity
    status: AlertStatus
    alert_type: str | None
    related_id: str | None
    metadata: dict | None = Field(
        default=None, validation_alias=AliasChoices("alert_metadata", "metadata")
    )
    created_at: datetime.datetime


# --- Patient API schemas ---


class PatientResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    full_name: str
    date_of_birth: datetime.date | None
    weight_kg: float | None
    height_cm: float | None
    known_conditions: list[str]
    chronic_conditions: list[str]
    allergies: list[str]
    created_at: datetime.datetime
    updated_at: datetime.datetime


class MedicationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_id: str
    name: str
    strength: str | None
    dosage: str | None
    frequency: str
    custom_frequency: str | None
    route: str | None
    duration_days: int | None
    start_date: datetime.date
    end_date: datetime.date | None
    instructions: str | None
    is_active: bool


# --- Validation history schemas ---


class StoredValidation(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_id: str
    is_safe: bool
    overall_risk_level: RiskLevel
    validation_method: ValidationMethod
    summary: str
    validated_at: datetime.datetime
    created_at: datetime.datetime


class StoredValidationFlag(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    validation_id: str
    medication_id: str | None
    medication_name: str
    severity: Severity
    category: FlagCategory
    title: str
    description: str
    recommendation: str
    requires_physician_review: bool
    references: list[str] | None
    created_at: datetime.datetime


class ValidationDetail(BaseModel):
    validation: StoredValidation
    flags: list[StoredValidationFlag]


class ValidationStats(BaseModel):
    total_validations: int
    critical_count: int
    warning_count: int
    safe_count: int
    last_validated: datetime.datetime | None


class CriticalFlagCheck(BaseModel):
    has_critical: bool
    count: int


class CleanupResponse(BaseModel):
    deleted: int


# --- Error schema ---


class ErrorDetail(BaseModel):
    code: str
    message: str
    details: dict = {}


# --- Safety validation API ---


class RegimenValidationRequest(BaseModel):
    medications: list[MedicationData]
    patient: PatientProfile


class SafetyValidationResponse(BaseModel):
    result: ValidationResult
    validation_id: str | None = None
    alerts_created: int = 0
    persist_error: ErrorDetail | None = None
    escalation_error: ErrorDetail | None = None
