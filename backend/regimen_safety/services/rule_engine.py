"""Deterministic rule-based regimen evaluator.

Runs without any external calls. Used directly when no generative capability
is configured and as the fallback whenever the clinical reasoner fails.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from regimen_safety.models.schemas import (
    MedicationData,
    PatientProfile,
    RiskLevel,
    Severity,
    ValidationFlag,
    ValidationResult,
)
from regimen_safety.services.age import age_category, resolve_age

logger = logging.getLogger(__name__)

# Substance classes needing renal/dosage caution in patients 65 and over
ELDERLY_WATCH_LIST = (
    "metformin",
    "digoxin",
    "warfarin",
    "lithium",
    "benzodiazepine",
    "opioid",
    "nsaid",
)

ANTIBIOTIC_MARKERS = ("antibiotic", "cillin", "mycin")
MAX_ANTIBIOTIC_DAYS = 14


class MedicationNameMatcher(Protocol):
    """Decides whether a free-text medication name refers to a substance."""

    def matches(self, medication_name: str, substance: str) -> bool: ...


class SubstringNameMatcher:
    """Case-insensitive substring match over the free-text name."""

    def matches(self, medication_name: str, substance: str) -> bool:
        return substance.lower() in medication_name.lower()


@dataclass(frozen=True)
class InteractionRule:
    """A known interacting pair: any primary substance with any secondary one."""

    label: str
    primary: tuple[str, ...]
    secondary: tuple[str, ...]
    severity: Severity
    title: str
    description: str
    recommendation: str


INTERACTION_RULES: tuple[InteractionRule, ...] = (
    InteractionRule(
        label="Warfarin + NSAID",
        primary=("warfarin",),
        secondary=("ibuprofen", "naproxen", "diclofenac"),
        severity="critical",
        title="Critical Drug Interaction: Warfarin + NSAID",
        description=(
            "Concurrent use of {primary} and {secondary} significantly "
            "increases bleeding risk."
        ),
        recommendation=(
            "Consider alternative pain management. If combination necessary, "
            "increase INR monitoring frequency."
        ),
    ),
    InteractionRule(
        label="ACE Inhibitor + Potassium",
        primary=("lisinopril", "enalapril", "ramipril"),
        secondary=("potassium",),
        severity="high",
        title="Drug Interaction: ACE Inhibitor + Potassium",
        description=(
            "ACE inhibitors can increase potassium levels. Concurrent use of "
            "{primary} and {secondary} may cause hyperkalemia."
        ),
        recommendation=(
            "Monitor serum potassium levels regularly. Consider discontinuing "
            "potassium supplement if not essential."
        ),
    ),
)


def derive_risk_level(flags: Sequence[ValidationFlag]) -> RiskLevel:
    severities = {f.severity for f in flags}
    if "critical" in severities:
        return "critical"
    if "high" in severities:
        return "warning"
    if "medium" in severities:
        return "caution"
    return "safe"


def is_safe(flags: Sequence[ValidationFlag]) -> bool:
    return not any(f.severity == "critical" for f in flags)


def summarize(flags: Sequence[ValidationFlag], medication_count: int) -> str:
    if not flags:
        return (
            f"No safety concerns identified for {medication_count} medication(s) "
            "in rule-based validation."
        )
    return f"Identified {len(flags)} potential safety concern(s) that require review."


class RuleBasedEvaluator:
    """Pattern-matching evaluator producing the shared ValidationResult shape."""

    def __init__(self, matcher: MedicationNameMatcher | None = None) -> None:
        self.matcher = matcher or SubstringNameMatcher()

    def evaluate(
        self, medications: Sequence[MedicationData], patient: PatientProfile
    ) -> ValidationResult:
        age = resolve_age(patient)
        category = age_category(age)

        flags: list[ValidationFlag] = []
        if category == "elderly":
            flags.extend(self._elderly_flags(medications))
        if category in ("child", "infant"):
            flags.extend(self._pediatric_flags(medications, age, category))
        if len(medications) > 1:
            flags.extend(self._interaction_flags(medications))
        flags.extend(self._duration_flags(medications))

        logger.info(
            "Rule-based evaluation: %d medications, age=%d (%s) -> %d flags",
            len(medications),
            age,
            category,
            len(flags),
        )
        for flag in flags:
            logger.debug(
                "  Flag: [%s/%s] %s", flag.category, flag.severity, flag.title
            )

        return ValidationResult(
            is_safe=is_safe(flags),
            overall_risk_level=derive_risk_level(flags),
            flags=flags,
            validated_at=datetime.datetime.now(datetime.UTC),
            validation_method="rule_based",
            summary=summarize(flags, len(medications)),
        )

    def _matches_any(self, name: str, substances: Sequence[str]) -> bool:
        return any(self.matcher.matches(name, s) for s in substances)

    def _elderly_flags(
        self, medications: Sequence[MedicationData]
    ) -> list[ValidationFlag]:
        return [
            ValidationFlag(
                severity="medium",
                category="age",
                title=f"Geriatric Dosing Consideration for {med.name}",
                description=(
                    f"{med.name} may require dose adjustment in patients over 65 "
                    "years old due to reduced renal clearance and increased "
                    "sensitivity."
                ),
                recommendation=(
                    "Verify dosing is appropriate for elderly patient. Consider "
                    "renal function assessment."
                ),
                medication_id=med.id,
                medication_name=med.name,
                requires_physician_review=True,
            )
            for med in medications
            if self._matches_any(med.name, ELDERLY_WATCH_LIST)
        ]

    def _pediatric_flags(
        self, medications: Sequence[MedicationData], age: int, category: str
    ) -> list[ValidationFlag]:
        return [
            ValidationFlag(
                severity="high",
                category="age",
                title=f"Pediatric Dosing Verification Required for {med.name}",
                description=(
                    f"This medication is prescribed for a {age}-year-old "
                    f"{category}. Pediatric dosing must be weight-based and "
                    "verified against pediatric guidelines."
                ),
                recommendation=(
                    "Verify dosing is weight-appropriate and follows pediatric "
                    "guidelines. Consult pediatric dosing references."
                ),
                medication_id=med.id,
                medication_name=med.name,
                requires_physician_review=True,
            )
            for med in medications
        ]

    def _interaction_flags(
        self, medications: Sequence[MedicationData]
    ) -> list[ValidationFlag]:
        flags = []
        for rule in INTERACTION_RULES:
            primary = [
                m for m in medications if self._matches_any(m.name, rule.primary)
            ]
            secondary = [
                m for m in medications if self._matches_any(m.name, rule.secondary)
            ]
            if not primary or not secondary:
                continue
            flags.append(
                ValidationFlag(
                    severity=rule.severity,
                    category="interaction",
                    title=rule.title,
                    description=rule.description.format(
                        primary=", ".join(m.name for m in primary),
                        secondary=", ".join(m.name for m in secondary),
                    ),
                    recommendation=rule.recommendation,
                    medication_id=primary[0].id,
                    medication_name=rule.label,
                    requires_physician_review=True,
                )
            )
        return flags

    def _duration_flags(
        self, medications: Sequence[MedicationData]
    ) -> list[ValidationFlag]:
        return [
            ValidationFlag(
                severity="medium",
                category="duration",
                title=f"Extended Antibiotic Duration for {med.name}",
                description=(
                    f"Antibiotic prescribed for {med.duration_days} days, which "
                    "exceeds typical treatment duration."
                ),
                recommendation=(
                    "Verify extended duration is clinically indicated. Consider "
                    "resistance risk with prolonged therapy."
                ),
                medication_id=med.id,
                medication_name=med.name,
                requires_physician_review=True,
            )
            for med in medications
            if med.duration_days is not None
            and med.duration_days > MAX_ANTIBIOTIC_DAYS
            and self._matches_any(med.name, ANTIBIOTIC_MARKERS)
        ]
