"""Celery application configuration."""

from celery import Celery

from analyzers import validate_registry
from config import settings

# Refuse to start a worker with an incomplete analyzer catalog
validate_registry()

# Create Celery app
celery_app = Celery(
    "beacon",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

# Configure Celery
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task routing - all analysis tasks go to the "analysis" queue
    task_routes={
        "worker.tasks.*": {"queue": "analysis"},
    },

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,

    # Hard stop a little after the analysis deadline
    task_time_limit=int(settings.analysis_deadline * 2) + 30,

    # Result expiration (24 hours)
    result_expires=86400,

    # Retry settings for broker connection
    broker_connection_retry_on_startup=True,
)

# Auto-discover tasks from the worker.tasks module
celery_app.autodiscover_tasks(["worker"])
