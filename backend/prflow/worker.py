"""PRFlow — Celery worker configuration."""
from celery import Celery

from prflow.config import get_settings

settings = get_settings()

celery_app = Celery(
    "prflow",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.REDIS_URL,
    include=["prflow.tasks.email_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_default_retry_delay=60,
    task_max_retries=3,
    # Publishing happens inside a web request; fail fast when the broker is down.
    task_publish_retry=False,
    broker_connection_timeout=2,
    task_routes={
        "prflow.tasks.*": {"queue": "default"},
    },
)
