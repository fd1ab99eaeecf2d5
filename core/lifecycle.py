"""
Lifecycle rules for jobs and assessments.

Pure checks over statuses and question layouts. The services in
``api.services`` load the rows, call these before mutating anything, and
persist the result; a raised error means nothing was changed.
"""

from collections import Counter
from typing import Iterable, Sequence

from core.exceptions import (
    InvalidRequestError,
    InvalidTransitionError,
    PreconditionFailedError,
    StateConflictError,
)
from database.models.assessments import AssessmentStatus
from database.models.jobs import JobStatus

SCORED_STAGES = (1, 2, 3)
VALID_STAGE_INDEXES = (1, 2, 3, 4)
QUESTIONS_PER_STAGE = 4
REQUIRED_QUESTION_COUNT = QUESTIONS_PER_STAGE * len(SCORED_STAGES)
MIN_DURATION_SECONDS = 600

JOB_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.DRAFT: {JobStatus.ACTIVE},
    JobStatus.ACTIVE: {JobStatus.CLOSED},
    JobStatus.CLOSED: {JobStatus.ACTIVE},
}


def ensure_job_transition(current: JobStatus, requested: JobStatus) -> None:
    """Raise unless ``current -> requested`` is an allowed job transition."""
    if requested not in JOB_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(JobStatus(current).value, JobStatus(requested).value)


def cascaded_assessment_status(job_status: JobStatus) -> AssessmentStatus:
    """Assessment status that mirrors a job status."""
    return AssessmentStatus(JobStatus(job_status).value)


def ensure_stage_index(stage_index: int) -> None:
    if stage_index not in VALID_STAGE_INDEXES:
        raise InvalidRequestError(
            f"Invalid stage {stage_index}. Stage must be between 1 and 4"
        )


# ==================== Publish / close ===================== #

def check_publish_preconditions(stage_indexes: Sequence[int], duration_seconds: int) -> None:
    """
    Publish preconditions, checked in a fixed order.

    Args:
        stage_indexes: stage index of every question in the assessment
        duration_seconds: the duration the assessment would be published with

    Raises:
        PreconditionFailedError: naming the first violated rule
    """
    total = len(stage_indexes)
    if total != REQUIRED_QUESTION_COUNT:
        raise PreconditionFailedError(
            f"Assessment requires exactly {REQUIRED_QUESTION_COUNT} questions, has {total}",
            details={"rule": "question_count", "count": total},
        )

    per_stage = Counter(stage_indexes)
    for stage in SCORED_STAGES:
        count = per_stage.get(stage, 0)
        if count != QUESTIONS_PER_STAGE:
            raise PreconditionFailedError(
                f"Stage {stage} has {count} questions, needs exactly {QUESTIONS_PER_STAGE}",
                details={"rule": "stage_count", "stage": stage, "count": count},
            )

    if duration_seconds < MIN_DURATION_SECONDS:
        raise PreconditionFailedError(
            f"Assessment duration must be at least {MIN_DURATION_SECONDS} seconds (10 minutes)",
            details={"rule": "duration", "duration_seconds": duration_seconds},
        )


def ensure_publishable(status: AssessmentStatus) -> None:
    if status != AssessmentStatus.DRAFT:
        raise StateConflictError(
            f"Only draft assessments can be published (current status: {AssessmentStatus(status).value})"
        )


def ensure_closable(status: AssessmentStatus) -> None:
    if status == AssessmentStatus.CLOSED:
        raise StateConflictError("Assessment is already closed")


# ==================== Editing ===================== #

def ensure_editable(status: AssessmentStatus) -> None:
    """Questions and settings may change until the assessment is closed."""
    if status == AssessmentStatus.CLOSED:
        raise StateConflictError("Cannot edit a closed assessment")


def ensure_reorderable(
    status: AssessmentStatus,
    stage_question_ids: Iterable[str],
    ordered_ids: Sequence[str],
) -> None:
    """
    A reorder must be a permutation of exactly the stage's question ids, and
    only drafts may be reordered.
    """
    if status != AssessmentStatus.DRAFT:
        raise StateConflictError("Can only reorder questions in draft assessments")

    existing = set(stage_question_ids)
    if len(ordered_ids) != len(existing) or len(set(ordered_ids)) != len(ordered_ids):
        raise InvalidRequestError(
            "Question count mismatch",
            details={"expected": len(existing), "received": len(ordered_ids)},
        )

    foreign = [question_id for question_id in ordered_ids if question_id not in existing]
    if foreign:
        raise InvalidRequestError(
            "Invalid question ids for this stage", details={"question_ids": foreign}
        )
