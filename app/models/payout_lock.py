from sqlalchemy import Column, String, DateTime, ForeignKey
from datetime import datetime

from app.core.database import Base


class PayoutLock(Base):
    """Marks an affiliate whose payout is being executed by some batch run."""
    __tablename__ = "payout_locks"

    affiliate_id = Column(String, ForeignKey("affiliates.id"), primary_key=True)
    run_id = Column(String, nullable=False)
    acquired_at = Column(DateTime, nullable=False, default=datetime.utcnow)
