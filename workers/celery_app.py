"""Celery app factory."""

from celery import Celery

celery_app = Celery(
    "assessment_engine",
    include=["workers.tasks.scoring"],
)
celery_app.config_from_object("workers.celery_config")
