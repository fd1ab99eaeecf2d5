"""
Job services: creation, dashboard, JD parsing and the job lifecycle.

Every lookup is scoped to the owner; another owner's job is reported as not
found.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from agents.jd_parser.agent import JobDescriptionAgent
from api.services.audit import record_audit
from core.exceptions import NotFoundError, PreconditionFailedError
from core.lifecycle import (
    cascaded_assessment_status,
    check_publish_preconditions,
    ensure_job_transition,
)
from core.security import AuditAction
from database.models.assessments import Assessment, AssessmentStatus, Question
from database.models.jobs import CandidateSubmission, Job, JobStatus, ParsedSchema
from database.models.test_instances import InstanceStatus, TestInstance
from database.types import utcnow

logger = logging.getLogger(__name__)

MAX_DEFAULT_TITLE_LENGTH = 100


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def default_title(description: str) -> str:
    """First non-empty line of the description, shortened."""
    for line in description.splitlines():
        line = line.strip()
        if line:
            return line[:MAX_DEFAULT_TITLE_LENGTH]
    return "Untitled job"


def serialize_job(job: Job) -> dict[str, Any]:
    return {
        "id": job.id,
        "title": job.title,
        "description": job.description,
        "status": JobStatus(job.status).value,
        "created_at": _iso(job.created_at),
        "last_activity_at": _iso(job.last_activity_at),
    }


def serialize_schema(schema: ParsedSchema) -> dict[str, Any]:
    return {
        "id": schema.id,
        "job_id": schema.job_id,
        "function": schema.function,
        "role_family": schema.role_family,
        "seniority": schema.seniority,
        "decision_context": schema.decision_context,
        "core_competencies": schema.core_competencies,
        "tools": schema.tools,
        "constraints": schema.constraints,
        "confidence_score": schema.confidence_score,
        "is_valid": schema.is_valid,
        "validation": {
            "valid": schema.is_valid,
            "errors": schema.validation_errors,
            "warnings": schema.validation_warnings,
        },
        "created_at": _iso(schema.created_at),
    }


async def get_owned_job(session: AsyncSession, job_id: str, owner_id: str) -> Job:
    result = await session.execute(
        select(Job).where(Job.id == job_id, Job.owner_id == owner_id)
    )
    job = result.scalar_one_or_none()
    if job is None:
        raise NotFoundError("Job")
    return job


async def create_job(
    session: AsyncSession,
    owner_id: str,
    description: str,
    title: Optional[str] = None,
) -> Job:
    job = Job(
        owner_id=owner_id,
        title=(title or "").strip() or default_title(description),
        description=description,
        status=JobStatus.DRAFT,
    )
    session.add(job)
    await session.commit()
    logger.info(f"Created job {job.id}", extra={"job_id": job.id})

    await record_audit(session, owner_id, AuditAction.JOB_CREATED, {"job_id": job.id})
    return job


async def list_jobs(session: AsyncSession, owner_id: str) -> dict[str, Any]:
    """Dashboard view: jobs with schema summary, submission count and latest assessment."""
    jobs = (
        await session.execute(
            select(Job).where(Job.owner_id == owner_id).order_by(Job.created_at.desc())
        )
    ).scalars().all()
    job_ids = [job.id for job in jobs]
    if not job_ids:
        return {"jobs": [], "total": 0}

    schemas = {
        schema.job_id: schema
        for schema in (
            await session.execute(select(ParsedSchema).where(ParsedSchema.job_id.in_(job_ids)))
        ).scalars()
    }

    submission_counts = dict(
        (
            await session.execute(
                select(CandidateSubmission.job_id, func.count(CandidateSubmission.id))
                .where(CandidateSubmission.job_id.in_(job_ids))
                .group_by(CandidateSubmission.job_id)
            )
        ).all()
    )

    latest_assessments: dict[str, Assessment] = {}
    assessments = (
        await session.execute(
            select(Assessment)
            .where(Assessment.job_id.in_(job_ids))
            .order_by(Assessment.created_at.asc())
        )
    ).scalars()
    for assessment in assessments:
        latest_assessments[assessment.job_id] = assessment

    items = []
    for job in jobs:
        schema = schemas.get(job.id)
        assessment = latest_assessments.get(job.id)
        item = serialize_job(job)
        item.pop("description")
        item.update({
            "schema": {
                "function": schema.function,
                "seniority": schema.seniority,
                "role_family": schema.role_family,
                "is_valid": schema.is_valid,
            } if schema else None,
            "submission_count": submission_counts.get(job.id, 0),
            "latest_assessment": {
                "id": assessment.id,
                "status": AssessmentStatus(assessment.status).value,
            } if assessment else None,
        })
        items.append(item)

    return {"jobs": items, "total": len(items)}


async def delete_job(session: AsyncSession, job_id: str, owner_id: str) -> None:
    """Delete a job; the database cascades to everything under it."""
    job = await get_owned_job(session, job_id, owner_id)
    await session.execute(delete(Job).where(Job.id == job.id))
    await session.commit()
    logger.info(f"Deleted job {job_id}", extra={"job_id": job_id})

    await record_audit(session, owner_id, AuditAction.JOB_DELETED, {"job_id": job_id})


# ==================== Parsing ===================== #

async def parse_job_description(
    session: AsyncSession,
    agent: JobDescriptionAgent,
    job_id: str,
    owner_id: str,
) -> dict[str, Any]:
    """
    Dissect the job's description and replace any previous schema.

    The schema is stored even when invalid; generation refuses it later.
    """
    job = await get_owned_job(session, job_id, owner_id)
    result = await agent.dissect(job.description)
    parsed = result.parsed

    await session.execute(delete(ParsedSchema).where(ParsedSchema.job_id == job.id))
    schema = ParsedSchema(
        job_id=job.id,
        function=parsed.function,
        role_family=parsed.role_family,
        seniority=parsed.seniority,
        decision_context=parsed.decision_context,
        core_competencies=[competency.model_dump() for competency in parsed.core_competencies],
        tools=parsed.tools,
        constraints=parsed.constraints,
        confidence_score=parsed.confidence_score,
        validation_errors=result.validation.errors,
        validation_warnings=result.validation.warnings,
        is_valid=result.validation.valid,
        raw_response=result.raw_response,
    )
    session.add(schema)
    job.touch()
    await session.commit()

    logger.info(
        f"Parsed job {job.id}: valid={schema.is_valid} after {result.attempts} attempt(s)",
        extra={"job_id": job.id},
    )
    await record_audit(
        session,
        owner_id,
        AuditAction.JOB_PARSED,
        {"job_id": job.id, "schema_id": schema.id, "valid": schema.is_valid},
    )

    return {"schema": serialize_schema(schema), "validation": result.validation.to_dict()}


async def get_parsed_schema(session: AsyncSession, job_id: str, owner_id: str) -> ParsedSchema:
    job = await get_owned_job(session, job_id, owner_id)
    schema = (
        await session.execute(select(ParsedSchema).where(ParsedSchema.job_id == job.id))
    ).scalar_one_or_none()
    if schema is None:
        raise NotFoundError("Parsed schema")
    return schema


# ==================== Lifecycle ===================== #

async def cascade_job_status_to_assessments(
    session: AsyncSession,
    job: Job,
    now: Optional[datetime] = None,
) -> list[str]:
    """
    Give every assessment of ``job`` the job's status.

    Stamps published_at (when unset) or closed_at to match. A draft only
    becomes active if it passes the same checks as publishing; drafts that
    fail them stay draft and the job still moves. Does not commit; runs
    inside the caller's transaction. Returns the ids it changed.
    """
    now = now or utcnow()
    target = cascaded_assessment_status(job.status)

    assessments = (
        await session.execute(
            select(Assessment).where(Assessment.job_id == job.id, Assessment.status != target)
        )
    ).scalars().all()

    changed = []
    for assessment in assessments:
        if target == AssessmentStatus.ACTIVE and assessment.status == AssessmentStatus.DRAFT:
            stage_indexes = (
                await session.execute(
                    select(Question.stage_index).where(Question.assessment_id == assessment.id)
                )
            ).scalars().all()
            try:
                check_publish_preconditions(stage_indexes, assessment.duration_seconds)
            except PreconditionFailedError as e:
                logger.warning(
                    f"Assessment {assessment.id} left in draft: {e.message}",
                    extra={"job_id": job.id, "assessment_id": assessment.id},
                )
                continue

        assessment.status = target
        if target == AssessmentStatus.ACTIVE and assessment.published_at is None:
            assessment.published_at = now
        if target == AssessmentStatus.CLOSED:
            assessment.closed_at = now
        changed.append(assessment.id)

    return changed


async def set_job_status(
    session: AsyncSession,
    job_id: str,
    owner_id: str,
    new_status: JobStatus,
) -> dict[str, Any]:
    job = await get_owned_job(session, job_id, owner_id)
    previous = JobStatus(job.status)
    ensure_job_transition(previous, new_status)

    now = utcnow()
    job.status = new_status
    job.touch(now)
    cascaded = await cascade_job_status_to_assessments(session, job, now)
    await session.commit()

    logger.info(
        f"Job {job.id} {previous.value} -> {new_status.value}, cascaded to {len(cascaded)} assessment(s)",
        extra={"job_id": job.id},
    )
    await record_audit(
        session,
        owner_id,
        AuditAction.JOB_STATUS_CHANGED,
        {"job_id": job.id, "from": previous.value, "to": new_status.value},
    )
    if cascaded:
        await record_audit(
            session,
            owner_id,
            AuditAction.JOB_STATUS_CASCADED,
            {"job_id": job.id, "status": new_status.value, "assessment_ids": cascaded},
        )

    return {
        "id": job.id,
        "status": new_status.value,
        "last_activity_at": _iso(job.last_activity_at),
        "cascaded_assessment_ids": cascaded,
    }


async def force_job_active(session: AsyncSession, job_id: str, now: datetime) -> None:
    """Set a job active as a side effect of publishing. Does not commit."""
    await session.execute(
        update(Job)
        .where(Job.id == job_id)
        .values(status=JobStatus.ACTIVE, last_activity_at=now)
    )


# ==================== Results ===================== #

async def get_job_results(session: AsyncSession, job_id: str, owner_id: str) -> dict[str, Any]:
    job = await get_owned_job(session, job_id, owner_id)
    rows = (
        await session.execute(
            select(TestInstance)
            .join(Assessment, Assessment.id == TestInstance.assessment_id)
            .where(
                Assessment.job_id == job.id,
                TestInstance.status == InstanceStatus.SUBMITTED,
            )
            .order_by(TestInstance.completed_at.desc())
        )
    ).scalars().all()

    submissions = []
    for instance in rows:
        effective = instance.effective_recommendation
        submissions.append({
            "id": instance.id,
            "candidate_name": instance.candidate_name,
            "candidate_email": instance.candidate_email,
            "completed_at": _iso(instance.completed_at),
            "time_taken_seconds": instance.time_taken_seconds,
            "scoring_status": instance.scoring_status.value if instance.scoring_status else None,
            "overall_score": instance.overall_score,
            "recommendation": instance.recommendation.value if instance.recommendation else None,
            "hr_override": instance.hr_override.value if instance.hr_override else None,
            "effective_recommendation": effective.value if effective else None,
        })

    return {"job": {"id": job.id, "title": job.title}, "submissions": submissions}
