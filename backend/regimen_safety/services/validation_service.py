"""Regimen validation entry point: preconditions, strategy choice, stamping."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Sequence

from regimen_safety.agents.clinical_reasoner import ClinicalReasoner
from regimen_safety.agents.text_generation import build_text_generator
from regimen_safety.config import Settings, settings
from regimen_safety.models.schemas import (
    GenerationConfig,
    MedicationData,
    PatientProfile,
    ValidationResult,
)
from regimen_safety.services.age import with_resolved_age
from regimen_safety.services.rule_engine import RuleBasedEvaluator

logger = logging.getLogger(__name__)


class RegimenValidationError(Exception):
    """Raised when a validation request cannot be evaluated as given."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


class EmptyRegimenError(RegimenValidationError):
    def __init__(self) -> None:
        super().__init__(
            code="EMPTY_REGIMEN",
            message="No medications provided for validation",
        )


class IncompletePatientProfileError(RegimenValidationError):
    def __init__(self, patient_id: str) -> None:
        super().__init__(
            code="INCOMPLETE_PATIENT_PROFILE",
            message=f"Patient profile {patient_id} has no date of birth",
        )


class RegimenValidator:
    """Validates a regimen with the clinical reasoner when one is configured.

    Without a reasoner every call goes straight to the rule-based evaluator.
    """

    def __init__(
        self,
        reasoner: ClinicalReasoner | None = None,
        rule_evaluator: RuleBasedEvaluator | None = None,
    ) -> None:
        self.reasoner = reasoner
        self.rule_evaluator = rule_evaluator or RuleBasedEvaluator()

    async def validate(
        self, medications: Sequence[MedicationData], patient: PatientProfile
    ) -> ValidationResult:
        if not medications:
            raise EmptyRegimenError()
        if patient.date_of_birth is None:
            raise IncompletePatientProfileError(patient.id)

        patient = with_resolved_age(patient)
        logger.info(
            "=== Validation request: patient=%s age=%d medications=%d ===",
            patient.id,
            patient.age,
            len(medications),
        )

        if self.reasoner is None:
            logger.info("Routing -> rule-based evaluator (no generative capability)")
            result = self.rule_evaluator.evaluate(medications, patient)
        else:
            logger.info("Routing -> clinical reasoner")
            result = await self.reasoner.evaluate(medications, patient)

        if result.validated_at is None:
            result = result.model_copy(
                update={"validated_at": datetime.datetime.now(datetime.UTC)}
            )
        logger.info(
            "Validation complete: method=%s risk=%s is_safe=%s flags=%d",
            result.validation_method,
            result.overall_risk_level,
            result.is_safe,
            len(result.flags),
        )
        return result

    async def validate_single_medication(
        self, medication: MedicationData, patient: PatientProfile
    ) -> ValidationResult:
        return await self.validate([medication], patient)

    async def quick_safety_check(
        self, medications: Sequence[MedicationData], patient: PatientProfile
    ) -> bool:
        """True when validation finds nothing critical; False on bad input."""
        try:
            result = await self.validate(medications, patient)
        except RegimenValidationError as e:
            logger.warning("Quick safety check rejected input: %s", e.message)
            return False
        return result.is_safe and result.overall_risk_level != "critical"


def build_regimen_validator(app_settings: Settings) -> RegimenValidator:
    rule_evaluator = RuleBasedEvaluator()
    generator = build_text_generator(app_settings)
    if generator is None:
        logger.warning(
            "No credential for provider %r. Using rule-based validation only.",
            app_settings.ai_provider,
        )
        return RegimenValidator(reasoner=None, rule_evaluator=rule_evaluator)

    reasoner = ClinicalReasoner(
        generator=generator,
        fallback=rule_evaluator,
        config=GenerationConfig(
            temperature=app_settings.generation_temperature,
            top_k=app_settings.generation_top_k,
            top_p=app_settings.generation_top_p,
            max_output_tokens=app_settings.generation_max_output_tokens,
        ),
        timeout_seconds=app_settings.generation_timeout_seconds,
    )
    return RegimenValidator(reasoner=reasoner, rule_evaluator=rule_evaluator)


_validator: RegimenValidator | None = None


def get_regimen_validator() -> RegimenValidator:
    """Dependency for FastAPI routes: the validator built from settings."""
    global _validator
    if _validator is None:
        _validator = build_regimen_validator(settings)
    return _validator
