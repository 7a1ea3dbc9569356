"""Generative clinical reasoner with mandatory rule-based fallback."""

from __future__ import annotations

import asyncio
import datetime
import json
import logging
import re
from collections.abc import Sequence
from typing import Any, get_args

from pydantic import ValidationError

from regimen_safety.agents.prompt_builder import build_clinical_prompt
from regimen_safety.agents.text_generation import TextGenerationError, TextGenerator
from regimen_safety.models.schemas import (
    GenerationConfig,
    MedicationData,
    PatientProfile,
    RiskLevel,
    ValidationFlag,
    ValidationResult,
)
from regimen_safety.services.age import with_resolved_age
from regimen_safety.services.rule_engine import (
    RuleBasedEvaluator,
    derive_risk_level,
    is_safe,
)

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY = "Validation completed successfully"

_CODE_FENCE = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?```$", re.DOTALL)


class ReasonerOutputError(ValueError):
    """Generated text does not match the ValidationResult contract."""


def strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    match = _CODE_FENCE.match(cleaned)
    if match:
        return match.group(1).strip()
    return cleaned


def parse_reasoner_output(text: str) -> tuple[dict[str, Any], list[ValidationFlag]]:
    """Parse generated text and check it against the result contract."""
    try:
        parsed = json.loads(strip_code_fences(text))
    except json.JSONDecodeError as e:
        raise ReasonerOutputError(f"Response is not valid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise ReasonerOutputError("Response is not a JSON object")
    if not isinstance(parsed.get("is_safe"), bool):
        raise ReasonerOutputError("Missing or invalid is_safe field")
    if parsed.get("overall_risk_level") not in get_args(RiskLevel):
        raise ReasonerOutputError("Invalid overall_risk_level")
    if not isinstance(parsed.get("flags"), list):
        raise ReasonerOutputError("Flags must be an array")

    try:
        flags = [ValidationFlag.model_validate(f) for f in parsed["flags"]]
    except ValidationError as e:
        raise ReasonerOutputError(f"Invalid flag: {e}") from e
    return parsed, flags


class ClinicalReasoner:
    """Delegates the safety judgment to a text generation backend.

    Never raises for upstream problems: invocation errors, timeouts and
    malformed output all produce the rule-based result instead.
    """

    def __init__(
        self,
        generator: TextGenerator,
        fallback: RuleBasedEvaluator,
        config: GenerationConfig | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.generator = generator
        self.fallback = fallback
        self.config = config or GenerationConfig()
        self.timeout_seconds = timeout_seconds

    async def evaluate(
        self, medications: Sequence[MedicationData], patient: PatientProfile
    ) -> ValidationResult:
        patient = with_resolved_age(patient)
        prompt = build_clinical_prompt(medications, patient)
        logger.debug("Clinical prompt:\n%s", prompt)

        try:
            text = await asyncio.wait_for(
                self.generator.generate(prompt, self.config),
                timeout=self.timeout_seconds,
            )
            parsed, flags = parse_reasoner_output(text)
        except TimeoutError:
            logger.warning(
                "Clinical reasoner timed out after %.1fs, falling back to rules",
                self.timeout_seconds,
            )
            return self.fallback.evaluate(medications, patient)
        except TextGenerationError as e:
            logger.warning(
                "Clinical reasoner failed (%s: %s), falling back to rules",
                e.code,
                e.message,
            )
            return self.fallback.evaluate(medications, patient)
        except ReasonerOutputError as e:
            logger.warning("Unusable reasoner output (%s), falling back to rules", e)
            return self.fallback.evaluate(medications, patient)
        except Exception:
            logger.exception("Clinical reasoner error, falling back to rules")
            return self.fallback.evaluate(medications, patient)

        risk_level = derive_risk_level(flags)
        safe = is_safe(flags)
        if (parsed["overall_risk_level"], parsed["is_safe"]) != (risk_level, safe):
            logger.warning(
                "Reasoner reported risk=%s is_safe=%s but flags imply risk=%s "
                "is_safe=%s; using values derived from flags",
                parsed["overall_risk_level"],
                parsed["is_safe"],
                risk_level,
                safe,
            )

        summary = parsed.get("summary")
        if not isinstance(summary, str) or not summary.strip():
            summary = DEFAULT_SUMMARY
        result = ValidationResult(
            is_safe=safe,
            overall_risk_level=risk_level,
            flags=flags,
            validated_at=datetime.datetime.now(datetime.UTC),
            validation_method="ai_clinical_nlp",
            summary=summary,
        )
        logger.info(
            "Clinical reasoner result: risk=%s flags=%d",
            result.overall_risk_level,
            len(result.flags),
        )
        return result
