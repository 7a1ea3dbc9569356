"""Unit tests for the regimen validator (preconditions, routing, stamping)."""

from __future__ import annotations

import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from helpers import birth_date_for_age, make_medication, make_patient
from regimen_safety.agents.clinical_reasoner import ClinicalReasoner
from regimen_safety.config import Settings
from regimen_safety.models.schemas import ValidationResult
from regimen_safety.services.rule_engine import RuleBasedEvaluator
from regimen_safety.services.validation_service import (
    EmptyRegimenError,
    IncompletePatientProfileError,
    RegimenValidator,
    build_regimen_validator,
)

PATIENT = make_patient(datetime.date(1985, 6, 1))
MEDICATIONS = [make_medication("Levothyroxine")]


def _failing_reasoner() -> ClinicalReasoner:
    generator = AsyncMock()
    generator.generate = AsyncMock(side_effect=ConnectionError("API unreachable"))
    return ClinicalReasoner(generator=generator, fallback=RuleBasedEvaluator())


# --- Preconditions ---


async def test_empty_regimen_rejected() -> None:
    reasoner = MagicMock()
    reasoner.evaluate = AsyncMock()
    validator = RegimenValidator(reasoner=reasoner)

    with pytest.raises(EmptyRegimenError) as exc_info:
        await validator.validate([], PATIENT)

    assert exc_info.value.code == "EMPTY_REGIMEN"
    reasoner.evaluate.assert_not_called()


async def test_missing_date_of_birth_rejected() -> None:
    reasoner = MagicMock()
    reasoner.evaluate = AsyncMock()
    validator = RegimenValidator(reasoner=reasoner)

    with pytest.raises(IncompletePatientProfileError) as exc_info:
        await validator.validate(MEDICATIONS, make_patient(None, age=40))

    assert exc_info.value.code == "INCOMPLETE_PATIENT_PROFILE"
    reasoner.evaluate.assert_not_called()


# --- Routing ---


async def test_without_reasoner_uses_rules() -> None:
    result = await RegimenValidator().validate(MEDICATIONS, PATIENT)

    assert result.validation_method == "rule_based"
    assert result.flags == []
    assert result.overall_risk_level == "safe"


async def test_failing_reasoner_still_returns_rule_result() -> None:
    validator = RegimenValidator(reasoner=_failing_reasoner())
    meds = [make_medication("Warfarin"), make_medication("Ibuprofen")]

    result = await validator.validate(meds, make_patient(datetime.date(1950, 3, 15)))

    assert result.validation_method == "rule_based"
    assert result.overall_risk_level == "critical"
    assert result.is_safe is False


async def test_reasoner_receives_patient_with_resolved_age() -> None:
    reasoner = MagicMock()
    reasoner.evaluate = AsyncMock(
        return_value=ValidationResult(
            is_safe=True,
            overall_risk_level="safe",
            flags=[],
            validation_method="ai_clinical_nlp",
            summary="Nothing found",
        )
    )
    validator = RegimenValidator(reasoner=reasoner)

    result = await validator.validate(MEDICATIONS, make_patient(birth_date_for_age(42)))

    _, patient = reasoner.evaluate.call_args.args
    assert patient.age == 42
    # Stamped by the validator because the reasoner left it empty
    assert result.validated_at is not None
    assert result.validation_method == "ai_clinical_nlp"


async def test_existing_timestamp_is_kept() -> None:
    stamped = datetime.datetime(2025, 1, 1, tzinfo=datetime.UTC)
    reasoner = MagicMock()
    reasoner.evaluate = AsyncMock(
        return_value=ValidationResult(
            is_safe=True,
            overall_risk_level="safe",
            flags=[],
            validated_at=stamped,
            validation_method="ai_clinical_nlp",
            summary="Nothing found",
        )
    )

    result = await RegimenValidator(reasoner=reasoner).validate(MEDICATIONS, PATIENT)

    assert result.validated_at == stamped


# --- Convenience wrappers ---


async def test_validate_single_medication() -> None:
    result = await RegimenValidator().validate_single_medication(
        make_medication("Amoxicillin", duration_days=21), PATIENT
    )
    assert len(result.flags) == 1
    assert result.flags[0].category == "duration"


async def test_quick_safety_check() -> None:
    validator = RegimenValidator()
    elderly = make_patient(datetime.date(1950, 3, 15))

    assert await validator.quick_safety_check(MEDICATIONS, PATIENT) is True
    assert (
        await validator.quick_safety_check(
            [make_medication("Warfarin"), make_medication("Naproxen")], elderly
        )
        is False
    )
    assert await validator.quick_safety_check([], PATIENT) is False


# --- Construction from settings ---


def test_build_without_credential_has_no_reasoner() -> None:
    validator = build_regimen_validator(Settings(_env_file=None, google_api_key=""))
    assert validator.reasoner is None


@patch("regimen_safety.agents.text_generation.get_genai_client")
def test_build_with_credential_wires_reasoner(mock_get_client) -> None:
    validator = build_regimen_validator(
        Settings(
            _env_file=None,
            google_api_key="key",
            generation_temperature=0.1,
            generation_timeout_seconds=12,
        )
    )
    assert validator.reasoner is not None
    assert validator.reasoner.fallback is validator.rule_evaluator
    assert validator.reasoner.config.temperature == 0.1
    assert validator.reasoner.timeout_seconds == 12
