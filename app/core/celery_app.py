from celery import Celery
from celery.schedules import crontab

from app.core.config import settings

celery_app = Celery(
    "fyttsa",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["app.tasks.email_tasks", "app.tasks.security_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # SMTP can hang; workers give up well before the broker visibility timeout.
    task_soft_time_limit=60,
    task_time_limit=90,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    # queue_email runs inside request handlers and must fail fast.
    broker_connection_timeout=3,
    task_publish_retry=False,
    result_expires=3600,
    task_routes={"app.tasks.email_tasks.*": {"queue": "emails"}},
    beat_schedule={
        "purge-expired-tokens": {
            "task": "app.tasks.security_tasks.cleanup_expired_tokens",
            "schedule": crontab(minute=15),
        },
    },
)
