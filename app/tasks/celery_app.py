from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging as celery_setup_logging

from app.core.config import settings
from app.core.logging import setup_logging

celery_app = Celery(
    "payout_engine",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["app.tasks.payout_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)

celery_app.conf.beat_schedule = {
    "process-scheduled-payouts": {
        "task": "app.tasks.payout_tasks.process_scheduled_payouts_task",
        "schedule": crontab(hour=settings.PAYOUT_RUN_HOUR, minute=0),
    },
}


@celery_setup_logging.connect
def configure_worker_logging(**kwargs):
    setup_logging()
