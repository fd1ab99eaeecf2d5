"""Structure checks on a generated assessment."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from agents.common.validation import ValidationResult
from core.lifecycle import QUESTIONS_PER_STAGE, REQUIRED_QUESTION_COUNT, SCORED_STAGES
from database.models.assessments import InternalIntent, QuestionType

VALID_QUESTION_TYPES = [member.value for member in QuestionType]
VALID_INTENTS = [member.value for member in InternalIntent]
OPTION_TYPES = {QuestionType.MCQ.value, QuestionType.HYBRID_CHOICE_JUSTIFICATION.value}


class GeneratedOption(BaseModel):
    id: str
    label: str
    is_correct: bool = False


class GeneratedQuestion(BaseModel):
    question_type: str = ""
    prompt_text: str = ""
    options: list[GeneratedOption] = Field(default_factory=list)
    char_limit: Optional[int] = None
    scoring_hint: str = ""
    internal_intent: str = ""

    @field_validator("options", mode="before")
    @classmethod
    def _null_options(cls, value):
        return [] if value is None else value

    @field_validator("scoring_hint", "prompt_text", mode="before")
    @classmethod
    def _null_text(cls, value):
        return "" if value is None else value


class GeneratedStage(BaseModel):
    stage_index: int
    questions: Optional[list[GeneratedQuestion]] = None


class GeneratedAssessment(BaseModel):
    stages: Optional[list[GeneratedStage]] = None
    duration_seconds: Optional[int] = None


def validate_generated_assessment(data: GeneratedAssessment) -> ValidationResult:
    """Every failed check is an error; there are no warnings here."""
    errors: list[str] = []

    if data.stages is None:
        return ValidationResult.from_messages(["Missing or invalid stages array"])

    if len(data.stages) != len(SCORED_STAGES):
        errors.append(f"Expected {len(SCORED_STAGES)} stages, got {len(data.stages)}")
    elif sorted(stage.stage_index for stage in data.stages) != list(SCORED_STAGES):
        errors.append(
            f"Stage indexes must be {', '.join(str(index) for index in SCORED_STAGES)}"
        )

    total_questions = 0
    for stage in data.stages:
        label = f"Stage {stage.stage_index}"
        if stage.questions is None:
            errors.append(f"{label}: missing questions array")
            continue

        if len(stage.questions) != QUESTIONS_PER_STAGE:
            errors.append(
                f"{label}: expected {QUESTIONS_PER_STAGE} questions, got {len(stage.questions)}"
            )
        total_questions += len(stage.questions)

        for number, question in enumerate(stage.questions, start=1):
            where = f"{label} Q{number}"
            if question.question_type not in VALID_QUESTION_TYPES:
                errors.append(f'{where}: invalid question_type "{question.question_type}"')
            if not question.prompt_text.strip():
                errors.append(f"{where}: empty prompt_text")
            if question.question_type in OPTION_TYPES and not question.options:
                errors.append(f"{where}: {question.question_type} requires options")
            if question.question_type == QuestionType.MCQ.value and question.options:
                correct = sum(1 for option in question.options if option.is_correct)
                if correct != 1:
                    errors.append(f"{where}: mcq needs exactly one correct option, has {correct}")
            if question.internal_intent not in VALID_INTENTS:
                errors.append(f'{where}: invalid internal_intent "{question.internal_intent}"')

    if total_questions != REQUIRED_QUESTION_COUNT:
        errors.append(f"Expected {REQUIRED_QUESTION_COUNT} total questions, got {total_questions}")

    return ValidationResult.from_messages(errors)
