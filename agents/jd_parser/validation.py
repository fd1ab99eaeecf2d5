"""Structural and business checks on a parsed job description."""

import re

from pydantic import BaseModel, Field

from agents.common.validation import ValidationResult
from database.models.jobs import JobFunction, Seniority

MAX_COMPETENCIES = 5
WEIGHT_TOLERANCE = 0.05

VALID_FUNCTIONS = [member.value for member in JobFunction]
VALID_SENIORITY = [member.value for member in Seniority]

# Names that describe a tool rather than an abstract skill
TOOL_LIKE_PATTERN = re.compile(
    r"^(excel|word|figma|slack|jira|asana|notion|python|javascript|sql|react|node)",
    re.IGNORECASE,
)


class Competency(BaseModel):
    name: str
    weight: float


class ParsedJD(BaseModel):
    """The hiring schema as returned by the model. Enum fields stay loose
    so bad values reach the validator instead of failing the parse."""

    function: str = ""
    role_family: str = ""
    seniority: str = ""
    decision_context: str = ""
    core_competencies: list[Competency] = Field(default_factory=list)
    tools: list[str] = Field(default_factory=list)
    constraints: list[str] = Field(default_factory=list)
    confidence_score: float = 0.0


def validate_parsed_jd(data: ParsedJD) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    if data.function not in VALID_FUNCTIONS:
        errors.append(
            f'Invalid function "{data.function}". Must be one of: {", ".join(VALID_FUNCTIONS)}'
        )
    if data.seniority not in VALID_SENIORITY:
        errors.append(
            f'Invalid seniority "{data.seniority}". Must be one of: {", ".join(VALID_SENIORITY)}'
        )

    competencies = data.core_competencies
    if not competencies:
        errors.append("No competencies extracted")
    else:
        if len(competencies) > MAX_COMPETENCIES:
            errors.append(
                f"Too many competencies ({len(competencies)}). Maximum is {MAX_COMPETENCIES}"
            )
        weight_sum = sum(competency.weight for competency in competencies)
        if abs(weight_sum - 1.0) > WEIGHT_TOLERANCE:
            errors.append(f"Competency weights sum to {weight_sum:.2f}, not 1.0")

    for competency in competencies:
        if TOOL_LIKE_PATTERN.match(competency.name):
            warnings.append(f'"{competency.name}" looks like a tool, not a competency')

    if not 0 <= data.confidence_score <= 1:
        warnings.append(f"Confidence score {data.confidence_score} is outside [0, 1]")

    if not data.role_family:
        warnings.append("Missing role_family")
    if not data.decision_context:
        warnings.append("Missing decision_context")

    return ValidationResult.from_messages(errors, warnings)
