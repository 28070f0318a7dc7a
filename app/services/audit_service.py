from sqlalchemy.orm import Session
from typing import Optional, Dict, Any

from app.models.audit_log import AuditLog


class AuditService:
    @staticmethod
    def log_event(
        db: Session,
        event_type: str,
        entity_type: str,
        entity_id: str,
        event_data: Optional[Dict[str, Any]] = None,
        stripe_event_id: Optional[str] = None
    ) -> AuditLog:
        """Append an audit entry inside the caller's transaction"""
        log = AuditLog(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            event_data=event_data,
            stripe_event_id=stripe_event_id
        )
        db.add(log)
        db.flush()
        return log

    @staticmethod
    def history(db: Session, entity_type: str, entity_id: str):
        return db.query(AuditLog).filter(
            AuditLog.entity_type == entity_type,
            AuditLog.entity_id == entity_id
        ).order_by(AuditLog.created_at.asc()).all()
