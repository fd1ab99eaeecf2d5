"""
Scoring orchestration.

``score_test_instance`` moves a submitted instance through
pending -> scoring -> scored | error in its own session. The
``ScoringDispatcher`` decides whether that happens inline (awaited by the
request that completed the test) or on the Celery scoring queue.
"""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.scoring import SubjectiveScorer, score_submission
from database.engine import Database
from database.models.assessments import Question
from database.models.test_instances import (
    Answer,
    InstanceStatus,
    ScoringStatus,
    TestInstance,
)
from database.types import utcnow

logger = logging.getLogger(__name__)


def _failure_context(exc: Exception) -> dict:
    return {
        "type": type(exc).__name__,
        "message": str(exc)[:2000],
        "failed_at": utcnow().isoformat(),
    }


async def score_test_instance(
    database: Database,
    scorer: Optional[SubjectiveScorer],
    instance_id: str,
) -> Optional[TestInstance]:
    """
    Score one submitted instance and persist the outcome.

    Any failure while scoring lands the instance in ``error`` with the raw
    failure context stored; nothing is left at ``scoring``.
    """
    async with database.session() as session:
        instance = await session.get(TestInstance, instance_id)
        if instance is None:
            logger.warning(f"Scoring skipped: instance {instance_id} not found")
            return None
        if instance.status != InstanceStatus.SUBMITTED:
            logger.warning(
                f"Scoring skipped: instance {instance_id} is not submitted",
                extra={"instance_id": instance_id},
            )
            return instance
        if instance.scoring_status == ScoringStatus.SCORED:
            # Redelivered task; keep the stored result
            logger.info(
                f"Scoring skipped: instance {instance_id} is already scored",
                extra={"instance_id": instance_id},
            )
            return instance

        instance.scoring_status = ScoringStatus.SCORING
        instance.scoring_started_at = utcnow()
        instance.scoring_error = None
        await session.commit()

        try:
            questions = (
                await session.execute(
                    select(Question)
                    .where(Question.assessment_id == instance.assessment_id)
                    .order_by(Question.stage_index, Question.position)
                )
            ).scalars().all()
            answers = (
                await session.execute(select(Answer).where(Answer.instance_id == instance.id))
            ).scalars().all()

            outcome = await score_submission(questions, answers, scorer)
        except Exception as exc:
            logger.exception(
                f"Scoring failed for instance {instance_id}",
                extra={"instance_id": instance_id},
            )
            await session.rollback()
            await session.refresh(instance)
            instance.scoring_status = ScoringStatus.ERROR
            instance.scoring_error = _failure_context(exc)
            instance.scoring_result = getattr(exc, "raw_response", None)
            await session.commit()
            return instance

        instance.scoring_status = ScoringStatus.SCORED
        instance.scored_at = utcnow()
        instance.overall_score = outcome.overall_score
        instance.recommendation = outcome.recommendation
        instance.scoring_breakdown = outcome.breakdown()
        instance.scoring_result = outcome.raw_response
        await session.commit()

        logger.info(
            f"Scored instance {instance_id}: {outcome.overall_score} -> {outcome.recommendation.value}",
            extra={"instance_id": instance_id},
        )
        return instance


async def find_stalled_instance_ids(
    session: AsyncSession,
    stalled_after_minutes: int,
) -> list[str]:
    """Submitted instances stuck in pending or scoring for too long."""
    cutoff = utcnow() - timedelta(minutes=stalled_after_minutes)
    result = await session.execute(
        select(TestInstance.id).where(
            TestInstance.status == InstanceStatus.SUBMITTED,
            or_(
                (TestInstance.scoring_status == ScoringStatus.PENDING)
                & (TestInstance.completed_at < cutoff),
                (TestInstance.scoring_status == ScoringStatus.SCORING)
                & (TestInstance.scoring_started_at < cutoff),
            ),
        )
    )
    return list(result.scalars().all())


class ScoringDispatcher:
    """
    Runs or enqueues scoring for a completed instance.

    ``inline`` awaits scoring before returning, for hosts that may suspend
    work after the response is sent. ``queue`` hands the instance id to the
    Celery scoring queue and returns once it is enqueued.
    """

    def __init__(
        self,
        database: Database,
        scorer: Optional[SubjectiveScorer],
        mode: str = "inline",
    ):
        self.database = database
        self.scorer = scorer
        self.mode = mode

    async def dispatch(self, instance_id: str) -> None:
        if self.mode == "queue":
            from workers.tasks.scoring import score_test_instance_task

            try:
                score_test_instance_task.delay(instance_id)
            except Exception:
                # Left at pending; the stalled-scoring sweep will pick it up
                logger.exception(
                    f"Failed to enqueue scoring for instance {instance_id}",
                    extra={"instance_id": instance_id},
                )
                return
            logger.info(f"Queued scoring for instance {instance_id}", extra={"instance_id": instance_id})
            return

        await score_test_instance(self.database, self.scorer, instance_id)
