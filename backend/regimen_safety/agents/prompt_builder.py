"""Clinical case-file prompt for the generative reasoner."""

from __future__ import annotations

from collections.abc import Sequence
from typing import get_args

from regimen_safety.models.schemas import (
    FlagCategory,
    MedicationData,
    PatientProfile,
    RiskLevel,
    Severity,
)
from regimen_safety.services.age import age_category, resolve_age


def _enum_choices(literal_type: object) -> str:
    return " | ".join(f'"{v}"' for v in get_args(literal_type))


OUTPUT_SCHEMA = f"""\
{{
  "is_safe": boolean,
  "overall_risk_level": {_enum_choices(RiskLevel)},
  "flags": [
    {{
      "severity": {_enum_choices(Severity)},
      "category": {_enum_choices(FlagCategory)},
      "title": "Brief title of the concern",
      "description": "Detailed explanation of the safety concern",
      "recommendation": "Specific actionable recommendation",
      "medication_id": "id from the list",
      "medication_name": "name of the medication",
      "requires_physician_review": boolean
    }}
  ],
  "summary": "Overall summary of the safety validation"
}}"""


def _patient_block(patient: PatientProfile, age: int, category: str) -> list[str]:
    lines = [f"- Age: {age} years ({category})"]
    if patient.date_of_birth is not None:
        lines.append(f"- Date of Birth: {patient.date_of_birth.isoformat()}")
    if patient.weight_kg is not None:
        lines.append(f"- Weight: {patient.weight_kg:g} kg")
    if patient.height_cm is not None:
        lines.append(f"- Height: {patient.height_cm:g} cm")
    # Empty lists are left out entirely rather than rendered as "none".
    for label, values in (
        ("Known Conditions", patient.known_conditions),
        ("Allergies", patient.allergies),
        ("Chronic Conditions", patient.chronic_conditions),
    ):
        if values:
            lines.append(f"- {label}: {', '.join(values)}")
    return lines


def _medication_block(index: int, med: MedicationData) -> list[str]:
    duration = med.duration_days if med.duration_days is not None else "not specified"
    return [
        f"{index}. {med.name}",
        f"   - ID: {med.id}",
        f"   - Strength: {med.strength}",
        f"   - Dosage: {med.dosage}",
        f"   - Frequency: {med.frequency}",
        f"   - Route: {med.route or 'oral'}",
        f"   - Duration: {duration} days",
        f"   - Instructions: {med.instructions or 'none'}",
    ]


def build_clinical_prompt(
    medications: Sequence[MedicationData], patient: PatientProfile
) -> str:
    """Assemble the case file (patient, regimen, output schema) as plain text."""
    age = resolve_age(patient)
    category = age_category(age)

    regimen_lines: list[str] = []
    for idx, med in enumerate(medications, start=1):
        if idx > 1:
            regimen_lines.append("")
        regimen_lines.extend(_medication_block(idx, med))

    patient_text = "\n".join(_patient_block(patient, age, category))
    regimen_text = "\n".join(regimen_lines)

    return f"""\
You are a clinical pharmacology AI assistant specializing in medication safety \
validation. Analyze the following medication regimen for potential safety concerns.

## PATIENT PROFILE
{patient_text}

## MEDICATION REGIMEN TO VALIDATE
{regimen_text}

## VALIDATION REQUIREMENTS
Analyze this regimen and identify ALL potential safety concerns in the following \
categories:

1. **DOSAGE VALIDATION**
   - Is the dosage appropriate for the patient's age category ({category})?
   - Does it fall within the therapeutic range for this medication?
   - Is the dose potentially toxic or sub-therapeutic?

2. **AGE-SPECIFIC CONCERNS**
   - Are these medications appropriate for a {age}-year-old {category}?
   - Are there pediatric or geriatric dosing adjustments needed?

3. **DRUG INTERACTIONS**
   - Identify potential interactions between the prescribed medications
   - Explain the mechanism and clinical significance

4. **CONTRAINDICATIONS**
   - Check for contraindications with known conditions
   - Identify allergy concerns

5. **FREQUENCY & DURATION**
   - Is the dosing frequency appropriate?
   - Are there maximum duration limits being exceeded?

## RESPONSE FORMAT
Return a JSON object with this exact structure:
{OUTPUT_SCHEMA}

IMPORTANT:
- Flag only legitimate concerns based on established clinical guidelines
- Use the medication ID from the regimen list for medication_id
- When in doubt, err on the side of caution
- Return ONLY valid JSON, no additional text
"""
