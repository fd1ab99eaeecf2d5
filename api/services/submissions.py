"""
HR view of a completed attempt and the recommendation override.
"""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.assessments import serialize_question
from api.services.audit import record_audit
from core.exceptions import NotFoundError, StateConflictError
from core.lifecycle import VALID_STAGE_INDEXES
from core.security import AuditAction
from database.models.assessments import Assessment, Question
from database.models.jobs import Job
from database.models.test_instances import (
    Answer,
    InstanceStatus,
    Recommendation,
    TestInstance,
)

logger = logging.getLogger(__name__)


async def _get_owned_instance(
    session: AsyncSession,
    instance_id: str,
    owner_id: str,
) -> tuple[TestInstance, Assessment, Job]:
    row = (
        await session.execute(
            select(TestInstance, Assessment, Job)
            .join(Assessment, Assessment.id == TestInstance.assessment_id)
            .join(Job, Job.id == Assessment.job_id)
            .where(TestInstance.id == instance_id, Job.owner_id == owner_id)
        )
    ).first()
    if row is None:
        raise NotFoundError("Submission")
    return row[0], row[1], row[2]


def _value(member):
    return member.value if member is not None else None


async def get_submission(session: AsyncSession, instance_id: str, owner_id: str) -> dict[str, Any]:
    instance, assessment, job = await _get_owned_instance(session, instance_id, owner_id)

    questions = (
        await session.execute(
            select(Question)
            .where(Question.assessment_id == assessment.id)
            .order_by(Question.stage_index, Question.position)
        )
    ).scalars().all()
    answers = {
        answer.question_id: answer
        for answer in (
            await session.execute(select(Answer).where(Answer.instance_id == instance.id))
        ).scalars()
    }

    stages = []
    for stage_index in VALID_STAGE_INDEXES:
        items = []
        for question in questions:
            if question.stage_index != stage_index:
                continue
            answer = answers.get(question.id)
            items.append({
                "question": serialize_question(question),
                "answer": {
                    "answer_text": answer.answer_text,
                    "selected_option_id": answer.selected_option_id,
                    "submitted_at": answer.submitted_at.isoformat(),
                } if answer else None,
            })
        if items:
            stages.append({"stage_index": stage_index, "items": items})

    return {
        "id": instance.id,
        "job": {"id": job.id, "title": job.title},
        "assessment_id": assessment.id,
        "candidate_name": instance.candidate_name,
        "candidate_email": instance.candidate_email,
        "status": _value(instance.status),
        "current_stage": instance.current_stage,
        "started_at": instance.started_at.isoformat(),
        "completed_at": instance.completed_at.isoformat() if instance.completed_at else None,
        "time_taken_seconds": instance.time_taken_seconds,
        "scoring_status": _value(instance.scoring_status),
        "overall_score": instance.overall_score,
        "recommendation": _value(instance.recommendation),
        "hr_override": _value(instance.hr_override),
        "effective_recommendation": _value(instance.effective_recommendation),
        "scoring_breakdown": instance.scoring_breakdown,
        "scoring_error": instance.scoring_error,
        "stages": stages,
    }


async def override_recommendation(
    session: AsyncSession,
    instance_id: str,
    owner_id: str,
    recommendation: Recommendation,
) -> dict[str, Any]:
    """Record HR's recommendation. The computed score is left alone."""
    instance, _, _ = await _get_owned_instance(session, instance_id, owner_id)
    if instance.status != InstanceStatus.SUBMITTED:
        raise StateConflictError("Cannot override a test that has not been submitted")

    previous = instance.effective_recommendation
    instance.hr_override = recommendation
    await session.commit()

    logger.info(
        f"Recommendation for instance {instance.id} overridden to {recommendation.value}",
        extra={"instance_id": instance.id},
    )
    await record_audit(
        session,
        owner_id,
        AuditAction.SUBMISSION_OVERRIDE,
        {
            "instance_id": instance.id,
            "from": _value(previous),
            "to": recommendation.value,
            "computed": _value(instance.recommendation),
        },
    )

    return {"success": True, "effective_recommendation": recommendation.value}
