"""
Invite issuance and redemption.

Redeeming a single-use invite claims it with a conditional update in the
same transaction that creates the test instance, so two concurrent
redemptions cannot both create an instance.
"""

import logging
import secrets
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.assessments import get_owned_assessment, list_questions
from api.services.audit import record_audit
from core.exceptions import InviteAlreadyUsedError, StateConflictError
from core.invites import build_invite_url, check_invite_usable
from core.security import AuditAction, generate_invite_token
from core.stage_access import public_question_view
from database.models.assessments import Assessment, AssessmentStatus, Invite
from database.models.jobs import Job
from database.models.test_instances import InstanceStatus, TestInstance
from database.types import utcnow

logger = logging.getLogger(__name__)

DEFAULT_CANDIDATE_NAME = "Anonymous"
MAX_USER_AGENT_LENGTH = 200


async def issue_invite(
    session: AsyncSession,
    assessment_id: str,
    owner_id: str,
    base_url: str,
    expires_in_hours: int = 168,
    single_use: Optional[bool] = None,
) -> dict[str, Any]:
    assessment = await get_owned_assessment(session, assessment_id, owner_id)
    if assessment.status == AssessmentStatus.CLOSED:
        raise StateConflictError("Cannot issue invites for a closed assessment")

    expires_at = utcnow() + timedelta(hours=expires_in_hours)
    invite = Invite(
        assessment_id=assessment.id,
        token=generate_invite_token(),
        expires_at=expires_at,
        single_use=assessment.single_use_links if single_use is None else single_use,
        created_by=owner_id,
    )
    session.add(invite)
    await session.commit()

    await record_audit(
        session,
        owner_id,
        AuditAction.INVITE_GENERATED,
        {
            "assessment_id": assessment.id,
            "invite_id": invite.id,
            "expires_at": expires_at.isoformat(),
            "single_use": invite.single_use,
        },
    )

    return {
        "id": invite.id,
        "token": invite.token,
        "url": build_invite_url(base_url, invite.token),
        "expires_at": expires_at.isoformat(),
        "single_use": invite.single_use,
    }


async def _load_invite(session: AsyncSession, token: str):
    row = (
        await session.execute(
            select(Invite, Assessment, Job)
            .join(Assessment, Assessment.id == Invite.assessment_id)
            .join(Job, Job.id == Assessment.job_id)
            .where(Invite.token == token)
        )
    ).first()
    if row is None:
        return None, None, None
    return row[0], row[1], row[2]


def _assessment_summary(assessment: Assessment, job: Job) -> dict[str, Any]:
    return {
        "id": assessment.id,
        "job_title": job.title,
        "duration_seconds": assessment.duration_seconds,
        "active_from": assessment.active_from.isoformat() if assessment.active_from else None,
        "active_until": assessment.active_until.isoformat() if assessment.active_until else None,
    }


async def verify_invite(session: AsyncSession, token: str) -> dict[str, Any]:
    invite, assessment, job = await _load_invite(session, token)
    check_invite_usable(invite, assessment, utcnow())
    return {"valid": True, "assessment": _assessment_summary(assessment, job)}


async def claim_single_use_invite(session: AsyncSession, invite_id: str) -> bool:
    """Mark an unused invite as used. False when someone else got there first."""
    result = await session.execute(
        update(Invite)
        .where(Invite.id == invite_id, Invite.used_at.is_(None))
        .values(used_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def start_test_instance(
    session: AsyncSession,
    token: str,
    candidate_name: Optional[str] = None,
    candidate_email: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> dict[str, Any]:
    """Redeem an invite and open a test instance at stage 1."""
    invite, assessment, job = await _load_invite(session, token)
    now = utcnow()
    check_invite_usable(invite, assessment, now)

    if invite.single_use and not await claim_single_use_invite(session, invite.id):
        await session.rollback()
        raise InviteAlreadyUsedError()

    instance = TestInstance(
        assessment_id=assessment.id,
        invite_id=invite.id,
        candidate_name=(candidate_name or "").strip() or DEFAULT_CANDIDATE_NAME,
        candidate_email=(candidate_email or "").strip() or f"candidate-{secrets.token_hex(4)}",
        session_meta={"user_agent": (user_agent or "")[:MAX_USER_AGENT_LENGTH]},
        status=InstanceStatus.IN_PROGRESS,
        current_stage=1,
        started_at=now,
    )
    session.add(instance)
    await session.commit()

    logger.info(
        f"Started test instance {instance.id} for assessment {assessment.id}",
        extra={"instance_id": instance.id, "assessment_id": assessment.id},
    )
    await record_audit(
        session,
        None,
        AuditAction.TEST_STARTED,
        {"instance_id": instance.id, "assessment_id": assessment.id, "invite_id": invite.id},
    )

    questions = [q for q in await list_questions(session, assessment.id) if q.stage_index == 1]
    return {
        "instance_id": instance.id,
        "status": InstanceStatus.IN_PROGRESS.value,
        "current_stage": 1,
        "duration_seconds": assessment.duration_seconds,
        "started_at": now.isoformat(),
        "job_title": job.title,
        "questions": [public_question_view(question) for question in questions],
    }
