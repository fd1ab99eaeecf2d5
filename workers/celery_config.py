"""Celery configuration for async task processing."""

from celery.schedules import crontab
from kombu import Exchange, Queue

from core.config import settings

# Broker configuration (Redis)
broker_url = settings.celery_broker_url
result_backend = settings.celery_result_backend

# Task routing and serialization
task_serializer = "json"
accept_content = ["json"]
result_serializer = "json"
timezone = "UTC"
enable_utc = True

# Task execution settings
task_track_started = True
task_acks_late = True
task_reject_on_worker_lost = True
task_time_limit = 10 * 60  # 10 minutes hard limit
task_soft_time_limit = 8 * 60  # 8 minutes soft limit

# Worker settings
worker_prefetch_multiplier = 1
worker_max_tasks_per_child = 1000

# Queue configuration with routing
default_exchange = Exchange("assessment_engine", type="direct")
task_default_queue = "default"
task_default_exchange = "assessment_engine"
task_default_routing_key = "default"
task_queues = (
    Queue("default", exchange=default_exchange, routing_key="default"),
    Queue("scoring", exchange=default_exchange, routing_key="scoring"),
)

# Task routing
task_routes = {
    "workers.tasks.scoring.*": {"queue": "scoring", "routing_key": "scoring"},
}

# Periodic tasks
beat_schedule = {
    "rescore-stalled-instances": {
        "task": "workers.tasks.scoring.rescore_stalled_instances",
        "schedule": crontab(minute="*/5"),
    },
}

# Result backend settings
result_expires = 3600  # Results expire after 1 hour
