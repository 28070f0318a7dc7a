from sqlalchemy.orm import Session
from sqlalchemy import update
from datetime import datetime
from typing import Optional
import logging

from app.core.fee_schedule import calculate_next_payout_date
from app.models.affiliate import AccountStatus, Affiliate
from app.models.commission import Commission, CommissionStatus
from app.models.payout import Payout, PayoutStatus
from app.models.payout_preference import PayoutPreference
from app.services.audit_service import AuditService
from app.services.company_payment_service import CompanyPaymentService
from app.services.stripe_gateway import TransferGateway, account_status_from_stripe

logger = logging.getLogger(__name__)


class PayoutSettlementService:
    """Applies processor outcomes to payouts and the commissions they hold."""

    @staticmethod
    def _get_payout(db: Session, transfer_id: str) -> Optional[Payout]:
        return db.query(Payout).filter(
            Payout.stripe_transfer_id == transfer_id
        ).with_for_update().first()

    @staticmethod
    def mark_transfer_paid(
        db: Session,
        transfer_id: str,
        stripe_event_id: Optional[str] = None
    ) -> Optional[Payout]:
        payout = PayoutSettlementService._get_payout(db, transfer_id)
        if not payout:
            logger.warning(f"transfer.paid for unknown transfer {transfer_id}")
            return None
        if payout.status == PayoutStatus.COMPLETED:
            return payout
        if payout.status == PayoutStatus.FAILED:
            logger.warning(f"transfer.paid for failed payout {payout.id}; ignoring")
            return payout

        now = datetime.utcnow()
        payout.status = PayoutStatus.COMPLETED
        payout.processed_at = now

        # Only flip commissions this payout actually holds
        paid = db.execute(
            update(Commission)
            .where(
                Commission.id.in_(payout.commission_ids),
                Commission.payout_id == payout.id,
                Commission.status == CommissionStatus.APPROVED
            )
            .values(status=CommissionStatus.PAID, paid_at=now)
            .execution_options(synchronize_session=False)
        ).rowcount

        AuditService.log_event(
            db,
            event_type="completed",
            entity_type="payout",
            entity_id=payout.id,
            event_data={
                "transfer_id": transfer_id,
                "amount": str(payout.total_amount),
                "commissions_paid": paid,
            },
            stripe_event_id=stripe_event_id
        )

        preference = db.query(PayoutPreference).filter(
            PayoutPreference.affiliate_id == payout.affiliate_id
        ).first()
        if preference:
            preference.next_scheduled_payout_date = calculate_next_payout_date(
                preference.payout_frequency,
                preference.payout_frequency_days,
                now.date()
            )

        db.commit()
        db.expire_all()
        logger.info(f"Payout {payout.id} completed; {paid} commissions marked paid")
        return payout

    @staticmethod
    def mark_transfer_failed(
        db: Session,
        transfer_id: str,
        failure_code: Optional[str] = None,
        failure_message: Optional[str] = None,
        stripe_event_id: Optional[str] = None
    ) -> Optional[Payout]:
        payout = PayoutSettlementService._get_payout(db, transfer_id)
        if not payout:
            logger.warning(f"transfer failure for unknown transfer {transfer_id}")
            return None
        if payout.status == PayoutStatus.FAILED:
            return payout

        was_completed = payout.status == PayoutStatus.COMPLETED
        payout.status = PayoutStatus.FAILED
        payout.failure_reason = failure_message or "Transfer failed"
        payout.processing_error_code = failure_code or ""

        # Release the claim; commissions stay approved and go into the next run
        released = db.execute(
            update(Commission)
            .where(Commission.payout_id == payout.id)
            .values(payout_id=None, status=CommissionStatus.APPROVED, paid_at=None)
            .execution_options(synchronize_session=False)
        ).rowcount

        AuditService.log_event(
            db,
            event_type="failed",
            entity_type="payout",
            entity_id=payout.id,
            event_data={
                "transfer_id": transfer_id,
                "failure_code": failure_code,
                "failure_message": failure_message,
                "commissions_released": released,
                "was_completed": was_completed,
            },
            stripe_event_id=stripe_event_id
        )
        db.commit()
        db.expire_all()
        logger.warning(f"Payout {payout.id} failed ({failure_code}); released {released} commissions")
        return payout

    @staticmethod
    def sync_account_status(db: Session, account_id: str, status: AccountStatus,
                            onboarding_completed: Optional[bool] = None) -> Optional[Affiliate]:
        affiliate = db.query(Affiliate).filter(
            Affiliate.stripe_connect_account_id == account_id
        ).first()
        if not affiliate:
            logger.warning(f"account update for unknown Stripe account {account_id}")
            return None

        affiliate.stripe_account_status = status
        if onboarding_completed is not None:
            affiliate.stripe_onboarding_completed = onboarding_completed
        db.commit()
        return affiliate

    @staticmethod
    def refresh_account_status(db: Session, gateway: TransferGateway, affiliate_id: str) -> Optional[Affiliate]:
        """Pull the payee's verification status from the processor."""
        affiliate = db.get(Affiliate, affiliate_id)
        if not affiliate or not affiliate.stripe_connect_account_id:
            return affiliate
        info = gateway.get_account_status(affiliate.stripe_connect_account_id)
        return PayoutSettlementService.sync_account_status(db, affiliate.stripe_connect_account_id, info.status)

    @staticmethod
    def handle_stripe_event(db: Session, event) -> bool:
        """Route a verified Stripe event. Returns False for event types we ignore."""
        event_type = event["type"]
        obj = event["data"]["object"]
        event_id = event.get("id")

        if event_type == "transfer.paid":
            PayoutSettlementService.mark_transfer_paid(db, obj["id"], stripe_event_id=event_id)
        elif event_type in ("transfer.failed", "transfer.reversed"):
            PayoutSettlementService.mark_transfer_failed(
                db,
                obj["id"],
                failure_code=obj.get("failure_code") or event_type,
                failure_message=obj.get("failure_message"),
                stripe_event_id=event_id
            )
        elif event_type in ("payment_intent.succeeded", "payment_intent.payment_failed"):
            # Only charges created for company commission payments carry this key
            if not (obj.get("metadata") or {}).get("commission_payment_id"):
                return False
            if event_type == "payment_intent.succeeded":
                CompanyPaymentService.mark_payment_succeeded(db, obj["id"], stripe_event_id=event_id)
            else:
                last_error = obj.get("last_payment_error") or {}
                CompanyPaymentService.mark_payment_failed(
                    db, obj["id"], failure_message=last_error.get("message"), stripe_event_id=event_id
                )
        elif event_type == "account.updated":
            info = account_status_from_stripe(obj)
            PayoutSettlementService.sync_account_status(
                db, obj["id"], info.status, onboarding_completed=bool(obj.get("details_submitted"))
            )
        else:
            logger.debug(f"Ignoring Stripe event {event_type}")
            return False
        return True
