"""
Assessment services: generation from a parsed schema, publishing, closing,
question edits and reordering.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from agents.assessment.agent import AssessmentAgent
from api.services.audit import record_audit
from api.services.jobs import force_job_active, get_owned_job, serialize_schema
from core.exceptions import (
    InvalidRequestError,
    NotFoundError,
    PreconditionFailedError,
    StateConflictError,
)
from core.lifecycle import (
    MIN_DURATION_SECONDS,
    VALID_STAGE_INDEXES,
    check_publish_preconditions,
    ensure_closable,
    ensure_editable,
    ensure_publishable,
    ensure_reorderable,
    ensure_stage_index,
)
from core.security import AuditAction
from database.models.assessments import (
    Assessment,
    AssessmentStatus,
    InternalIntent,
    Question,
    QuestionType,
)
from database.models.jobs import Job, ParsedSchema
from database.types import utcnow

logger = logging.getLogger(__name__)

EDITABLE_QUESTION_FIELDS = ("prompt_text", "options", "char_limit", "question_type")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_question(question: Question) -> dict[str, Any]:
    """HR view of a question, including grading metadata."""
    return {
        "id": question.id,
        "stage_index": question.stage_index,
        "position": question.position,
        "question_type": QuestionType(question.question_type).value,
        "prompt_text": question.prompt_text,
        "options": question.options,
        "char_limit": question.char_limit,
        "scoring_hint": question.scoring_hint,
        "internal_intent": question.internal_intent.value if question.internal_intent else None,
    }


def serialize_assessment(assessment: Assessment) -> dict[str, Any]:
    return {
        "id": assessment.id,
        "job_id": assessment.job_id,
        "status": AssessmentStatus(assessment.status).value,
        "duration_seconds": assessment.duration_seconds,
        "active_from": _iso(assessment.active_from),
        "active_until": _iso(assessment.active_until),
        "single_use_links": assessment.single_use_links,
        "created_at": _iso(assessment.created_at),
        "published_at": _iso(assessment.published_at),
        "closed_at": _iso(assessment.closed_at),
    }


def group_by_stage(questions: list[Question], stage_indexes=VALID_STAGE_INDEXES) -> list[dict]:
    return [
        {
            "stage_index": stage_index,
            "questions": [
                serialize_question(question)
                for question in questions
                if question.stage_index == stage_index
            ],
        }
        for stage_index in stage_indexes
    ]


async def get_owned_assessment(
    session: AsyncSession,
    assessment_id: str,
    owner_id: str,
) -> Assessment:
    result = await session.execute(
        select(Assessment)
        .join(Job, Job.id == Assessment.job_id)
        .where(Assessment.id == assessment_id, Job.owner_id == owner_id)
    )
    assessment = result.scalar_one_or_none()
    if assessment is None:
        raise NotFoundError("Assessment")
    return assessment


async def list_questions(session: AsyncSession, assessment_id: str) -> list[Question]:
    result = await session.execute(
        select(Question)
        .where(Question.assessment_id == assessment_id)
        .order_by(Question.stage_index, Question.position)
    )
    return list(result.scalars().all())


# ==================== Generation ===================== #

async def generate_assessment(
    session: AsyncSession,
    agent: AssessmentAgent,
    job_id: str,
    owner_id: str,
    duration_seconds: Optional[int] = None,
    active_from: Optional[datetime] = None,
    active_until: Optional[datetime] = None,
    single_use_links: bool = True,
    default_duration_seconds: int = 1800,
) -> dict[str, Any]:
    """
    Generate a draft assessment for a job from its parsed schema.

    A job keeps at most one live assessment: an existing draft is replaced,
    an active one must be closed first.
    """
    job = await get_owned_job(session, job_id, owner_id)
    schema = (
        await session.execute(select(ParsedSchema).where(ParsedSchema.job_id == job.id))
    ).scalar_one_or_none()
    if schema is None:
        raise PreconditionFailedError("Job description has not been parsed yet")
    if not schema.is_valid:
        raise PreconditionFailedError(
            "Parsed schema is invalid; fix or re-parse the job description first",
            details={"errors": schema.validation_errors},
        )

    live = (
        await session.execute(
            select(Assessment).where(
                Assessment.job_id == job.id,
                Assessment.status != AssessmentStatus.CLOSED,
            )
        )
    ).scalars().all()
    if any(assessment.status == AssessmentStatus.ACTIVE for assessment in live):
        raise StateConflictError("Job already has an active assessment; close it first")

    if active_from and active_until and active_from >= active_until:
        raise InvalidRequestError("active_from must be before active_until")

    schema_payload = serialize_schema(schema)
    for key in ("id", "job_id", "is_valid", "validation", "created_at"):
        schema_payload.pop(key)

    result = await agent.generate(schema_payload)
    if not result.validation.valid:
        logger.warning(
            f"Generated assessment for job {job.id} invalid after {result.attempts} attempts",
            extra={"job_id": job.id},
        )
        raise PreconditionFailedError(
            "Generated assessment failed validation",
            details={"errors": result.validation.errors},
        )

    replaced = [assessment.id for assessment in live]
    if replaced:
        await session.execute(delete(Assessment).where(Assessment.id.in_(replaced)))

    assessment = Assessment(
        job_id=job.id,
        status=AssessmentStatus.DRAFT,
        duration_seconds=duration_seconds or default_duration_seconds,
        active_from=active_from,
        active_until=active_until,
        single_use_links=single_use_links,
    )
    session.add(assessment)
    await session.flush()

    questions = []
    for stage in result.parsed.stages:
        for position, generated in enumerate(stage.questions, start=1):
            question_type = QuestionType(generated.question_type)
            question = Question(
                assessment_id=assessment.id,
                stage_index=stage.stage_index,
                position=position,
                question_type=question_type,
                prompt_text=generated.prompt_text.strip(),
                options=[option.model_dump() for option in generated.options],
                char_limit=generated.char_limit if question_type != QuestionType.MCQ else None,
                scoring_hint=generated.scoring_hint,
                internal_intent=InternalIntent(generated.internal_intent),
            )
            session.add(question)
            questions.append(question)

    job.touch()
    await session.commit()

    logger.info(
        f"Generated assessment {assessment.id} for job {job.id} with {len(questions)} questions",
        extra={"assessment_id": assessment.id, "job_id": job.id},
    )
    await record_audit(
        session,
        owner_id,
        AuditAction.ASSESSMENT_GENERATED,
        {"job_id": job.id, "assessment_id": assessment.id, "replaced": replaced},
    )

    return {
        "assessment_id": assessment.id,
        "assessment": serialize_assessment(assessment),
        "stages": group_by_stage(questions, stage_indexes=(1, 2, 3)),
        "validation": result.validation.to_dict(),
    }


async def get_assessment(session: AsyncSession, assessment_id: str, owner_id: str) -> dict[str, Any]:
    assessment = await get_owned_assessment(session, assessment_id, owner_id)
    questions = await list_questions(session, assessment.id)
    return {
        **serialize_assessment(assessment),
        "question_count": len(questions),
        "stages": group_by_stage(questions),
    }


async def update_assessment_settings(
    session: AsyncSession,
    assessment_id: str,
    owner_id: str,
    changes: dict[str, Any],
) -> dict[str, Any]:
    assessment = await get_owned_assessment(session, assessment_id, owner_id)
    ensure_editable(assessment.status)
    if not changes:
        raise InvalidRequestError("No fields to update")

    duration = changes.get("duration_seconds")
    if duration is not None and duration < MIN_DURATION_SECONDS:
        raise InvalidRequestError(
            f"Assessment duration must be at least {MIN_DURATION_SECONDS} seconds (10 minutes)"
        )

    active_from = changes.get("active_from", assessment.active_from)
    active_until = changes.get("active_until", assessment.active_until)
    if active_from and active_until and active_from >= active_until:
        raise InvalidRequestError("active_from must be before active_until")

    for field, value in changes.items():
        setattr(assessment, field, value)
    await session.commit()

    await record_audit(
        session,
        owner_id,
        AuditAction.ASSESSMENT_UPDATED,
        {"assessment_id": assessment.id, "fields": sorted(changes)},
    )
    return serialize_assessment(assessment)


# ==================== Lifecycle ===================== #

async def publish_assessment(
    session: AsyncSession,
    assessment_id: str,
    owner_id: str,
    duration_override: Optional[int] = None,
) -> dict[str, Any]:
    """Draft -> active. Also forces the parent job active."""
    assessment = await get_owned_assessment(session, assessment_id, owner_id)
    ensure_publishable(assessment.status)

    questions = await list_questions(session, assessment.id)
    final_duration = duration_override if duration_override is not None else assessment.duration_seconds
    check_publish_preconditions([question.stage_index for question in questions], final_duration)

    now = utcnow()
    assessment.status = AssessmentStatus.ACTIVE
    assessment.published_at = now
    assessment.duration_seconds = final_duration
    await force_job_active(session, assessment.job_id, now)
    await session.commit()

    logger.info(f"Published assessment {assessment.id}", extra={"assessment_id": assessment.id})
    await record_audit(
        session,
        owner_id,
        AuditAction.ASSESSMENT_PUBLISHED,
        {
            "assessment_id": assessment.id,
            "job_id": assessment.job_id,
            "duration_seconds": final_duration,
            "published_at": now.isoformat(),
        },
    )

    return {
        "id": assessment.id,
        "status": AssessmentStatus.ACTIVE.value,
        "published_at": now.isoformat(),
        "duration_seconds": final_duration,
    }


async def close_assessment(session: AsyncSession, assessment_id: str, owner_id: str) -> dict[str, Any]:
    assessment = await get_owned_assessment(session, assessment_id, owner_id)
    ensure_closable(assessment.status)

    now = utcnow()
    assessment.status = AssessmentStatus.CLOSED
    assessment.closed_at = now
    await session.commit()

    logger.info(f"Closed assessment {assessment.id}", extra={"assessment_id": assessment.id})
    await record_audit(
        session,
        owner_id,
        AuditAction.ASSESSMENT_CLOSED,
        {"assessment_id": assessment.id, "closed_at": now.isoformat()},
    )
    return {"id": assessment.id, "status": AssessmentStatus.CLOSED.value, "closed_at": now.isoformat()}


def check_question_options(question_type: QuestionType, options: list[dict[str, Any]]) -> None:
    """Options must be present for choice types, uniquely identified, and an mcq needs one answer."""
    if question_type != QuestionType.SHORT_STRUCTURED and not options:
        raise InvalidRequestError(f"{question_type.value} requires options")

    option_ids = [option.get("id") for option in options]
    duplicates = sorted({option_id for option_id in option_ids if option_ids.count(option_id) > 1})
    if duplicates:
        raise InvalidRequestError(
            "Option ids must be unique",
            details={"duplicate_ids": duplicates},
        )

    if question_type == QuestionType.MCQ:
        correct = sum(1 for option in options if option.get("is_correct"))
        if correct != 1:
            raise InvalidRequestError(f"mcq needs exactly one correct option, has {correct}")


async def edit_question(
    session: AsyncSession,
    assessment_id: str,
    question_id: str,
    owner_id: str,
    fields: dict[str, Any],
) -> dict[str, Any]:
    assessment = await get_owned_assessment(session, assessment_id, owner_id)
    ensure_editable(assessment.status)

    question = (
        await session.execute(
            select(Question).where(
                Question.id == question_id, Question.assessment_id == assessment.id
            )
        )
    ).scalar_one_or_none()
    if question is None:
        raise NotFoundError("Question")

    updates = {key: value for key, value in fields.items() if key in EDITABLE_QUESTION_FIELDS}
    if not updates:
        raise InvalidRequestError("No fields to update")

    new_type = QuestionType(updates.get("question_type", question.question_type))
    new_options = updates.get("options", question.options) or []
    check_question_options(new_type, new_options)
    if new_type == QuestionType.MCQ:
        # mcq answers carry no text
        updates["char_limit"] = None

    for key, value in updates.items():
        setattr(question, key, value)
    await session.commit()

    await record_audit(
        session,
        owner_id,
        AuditAction.QUESTION_EDITED,
        {"assessment_id": assessment.id, "question_id": question.id, "fields": sorted(updates)},
    )
    return serialize_question(question)


async def reorder_stage(
    session: AsyncSession,
    assessment_id: str,
    owner_id: str,
    stage_index: int,
    ordered_ids: list[str],
) -> dict[str, Any]:
    assessment = await get_owned_assessment(session, assessment_id, owner_id)
    ensure_stage_index(stage_index)

    stage_questions = (
        await session.execute(
            select(Question).where(
                Question.assessment_id == assessment.id,
                Question.stage_index == stage_index,
            )
        )
    ).scalars().all()
    ensure_reorderable(assessment.status, [question.id for question in stage_questions], ordered_ids)

    by_id = {question.id: question for question in stage_questions}
    # Park positions out of range first so the unique (stage, position) index
    # never sees two rows on the same slot mid-flush
    offset = len(ordered_ids) + 1
    for question in stage_questions:
        question.position += offset * 10
    await session.flush()
    for position, question_id in enumerate(ordered_ids, start=1):
        by_id[question_id].position = position
    await session.commit()

    await record_audit(
        session,
        owner_id,
        AuditAction.ASSESSMENT_REORDERED,
        {"assessment_id": assessment.id, "stage_index": stage_index, "question_ids": ordered_ids},
    )
    return {"success": True, "stage_index": stage_index, "question_ids": ordered_ids}
