"""
Stage access rules for a running test instance.

A candidate may read any stage up to the current one, may only write
answers for the current stage, and moves forward one stage at a time until
the final stage completes the attempt.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from core.exceptions import (
    InstanceSubmittedError,
    InvalidRequestError,
    StageLockedError,
)
from core.lifecycle import ensure_stage_index
from database.models.assessments import Question, QuestionType
from database.models.test_instances import InstanceStatus

FINAL_STAGE = 3


@dataclass
class AnswerInput:
    question_id: str
    answer_text: Optional[str] = None
    selected_option_id: Optional[str] = None


def ensure_in_progress(status: InstanceStatus) -> None:
    if status != InstanceStatus.IN_PROGRESS:
        raise InstanceSubmittedError()


def ensure_stage_readable(status: InstanceStatus, current_stage: int, requested_stage: int) -> None:
    """Reading a stage requires an open attempt that has reached that stage."""
    ensure_stage_index(requested_stage)
    ensure_in_progress(status)
    if requested_stage > current_stage:
        raise StageLockedError(current_stage, requested_stage)


def check_answers(answers: Iterable[AnswerInput], stage_questions: Iterable[Question]) -> None:
    """
    Validate a batch of answers against the current stage's questions.

    Raises:
        InvalidRequestError: for an answer outside the stage, text over the
            question's char limit, or an unknown option id
    """
    by_id = {question.id: question for question in stage_questions}

    for answer in answers:
        question = by_id.get(answer.question_id)
        if question is None:
            raise InvalidRequestError(
                f"Question {answer.question_id} not in current stage",
                details={"question_id": answer.question_id},
            )

        if (
            answer.answer_text
            and question.char_limit
            and len(answer.answer_text) > question.char_limit
        ):
            raise InvalidRequestError(
                f"Answer for question {question.id} exceeds {question.char_limit} character limit",
                details={"question_id": question.id, "char_limit": question.char_limit},
            )

        if answer.selected_option_id is not None:
            if question.question_type == QuestionType.SHORT_STRUCTURED or (
                answer.selected_option_id not in question.option_ids
            ):
                raise InvalidRequestError(
                    f"Option {answer.selected_option_id} is not valid for question {question.id}",
                    details={"question_id": question.id},
                )


def next_stage(current_stage: int) -> Optional[int]:
    """The stage after ``current_stage``, or None when the attempt is complete."""
    if current_stage >= FINAL_STAGE:
        return None
    return current_stage + 1


def elapsed_seconds(started_at: datetime, completed_at: datetime) -> int:
    # Half-up, matching how durations are shown to HR
    return int(math.floor((completed_at - started_at).total_seconds() + 0.5))


def is_time_expired(
    started_at: datetime,
    duration_seconds: int,
    now: datetime,
    grace_seconds: int = 0,
) -> bool:
    """True once the attempt has run past its duration plus grace."""
    return now > started_at + timedelta(seconds=duration_seconds + grace_seconds)


def public_question_view(question: Question) -> dict:
    """Candidate-facing question: no scoring hint, intent or correct flags."""
    return {
        "id": question.id,
        "stage_index": question.stage_index,
        "position": question.position,
        "question_type": QuestionType(question.question_type).value,
        "prompt_text": question.prompt_text,
        "options": [
            {"id": option.get("id"), "label": option.get("label")}
            for option in question.options or []
        ],
        "char_limit": question.char_limit,
    }
