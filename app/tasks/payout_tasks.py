from celery import Task
from sqlalchemy.orm import Session
import logging

from app.tasks.celery_app import celery_app
from app.core.database import SessionLocal
from app.services.payout_service import PayoutService
from app.services.stripe_gateway import get_gateway

logger = logging.getLogger(__name__)


class DatabaseTask(Task):
    """Base task with database session"""
    _db = None

    @property
    def db(self) -> Session:
        if self._db is None:
            self._db = SessionLocal()
        return self._db

    def after_return(self, *args, **kwargs):
        if self._db is not None:
            self._db.close()
            self._db = None


@celery_app.task(base=DatabaseTask, bind=True)
def process_scheduled_payouts_task(self):
    """Daily payout batch"""

    result = PayoutService.process_scheduled_payouts(self.db, get_gateway())
    if result.failed:
        logger.warning(f"Payout batch finished with {result.failed} failures: {result.errors}")

    return {"success": True, "results": result.as_dict()}
