"""Scoring tasks.

Each worker process owns one event loop plus its own Database and LLM
client, built in ``worker_process_init`` and torn down in
``worker_process_shutdown``.
"""

import asyncio
import logging
from typing import Optional

from celery import Task
from celery.signals import worker_process_init, worker_process_shutdown

from agents import LLMClient, ScoringAgent
from api.services.scoring import find_stalled_instance_ids, score_test_instance
from core.config import settings
from database.engine import Database
from workers.celery_app import celery_app

logger = logging.getLogger(__name__)

_loop: Optional[asyncio.AbstractEventLoop] = None
_database: Optional[Database] = None
_scorer: Optional[ScoringAgent] = None


@worker_process_init.connect
def init_worker_process(**kwargs) -> None:
    global _loop, _database, _scorer
    _loop = asyncio.new_event_loop()
    asyncio.set_event_loop(_loop)
    _database = Database.from_settings(settings)
    _scorer = ScoringAgent(LLMClient.from_settings(settings))
    logger.info("Scoring worker process initialised")


@worker_process_shutdown.connect
def shutdown_worker_process(**kwargs) -> None:
    global _loop, _database
    if _loop is not None and _database is not None:
        _loop.run_until_complete(_database.dispose())
    if _loop is not None:
        _loop.close()
    _loop = None
    _database = None


def _run(coro):
    # Solo pool and eager mode skip worker_process_init
    if _loop is None:
        init_worker_process()
    return _loop.run_until_complete(coro)


@celery_app.task(name="workers.tasks.scoring.score_test_instance", bind=True)
def score_test_instance_task(self: Task, instance_id: str) -> dict:
    """Score one submitted test instance.

    Args:
        instance_id: UUID of the test instance

    Returns:
        Dictionary with the resulting scoring status
    """
    instance = _run(score_test_instance(_database, _scorer, instance_id))
    if instance is None:
        return {"status": "missing", "instance_id": instance_id}

    return {
        "status": instance.scoring_status.value if instance.scoring_status else None,
        "instance_id": instance_id,
        "overall_score": instance.overall_score,
    }


async def _stalled_ids() -> list[str]:
    async with _database.session() as session:
        return await find_stalled_instance_ids(session, settings.scoring_stall_minutes)


@celery_app.task(name="workers.tasks.scoring.rescore_stalled_instances")
def rescore_stalled_instances() -> dict:
    """Re-queue submitted instances whose scoring never finished."""
    instance_ids = _run(_stalled_ids())
    for instance_id in instance_ids:
        score_test_instance_task.delay(instance_id)

    if instance_ids:
        logger.warning(f"Re-queued scoring for {len(instance_ids)} stalled instance(s)")
    return {"status": "queued", "instance_ids": instance_ids, "total": len(instance_ids)}
