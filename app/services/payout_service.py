from sqlalchemy.orm import Session
from sqlalchemy import delete, insert, update
from sqlalchemy.exc import IntegrityError
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Optional
import hashlib
import logging
import uuid

from app.core.config import settings
from app.core.exceptions import AppException, CommissionConflict, PaymentError, TransferTimeout
from app.core.fee_schedule import calculate_fee, validate_amount
from app.core.money import round_money, to_minor_units
from app.models.audit_log import AuditLog
from app.models.commission import Commission, CommissionStatus
from app.models.payout import Payout, PayoutStatus
from app.models.payout_lock import PayoutLock
from app.services.audit_service import AuditService
from app.services.payout_eligibility_service import (
    EligibilityReport,
    EligiblePayout,
    PayoutEligibilityService,
    SkipReason,
)
from app.services.stripe_gateway import TransferGateway, TransferResult

logger = logging.getLogger(__name__)

TRANSFER_REJECTED_EVENT = "transfer_rejected"


class PayoutInProgress(Exception):
    """Another batch run holds this affiliate's payout lock."""


@dataclass
class BatchResult:
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    payout_ids: List[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "processed": self.processed,
            "skipped": self.skipped,
            "failed": self.failed,
            "errors": list(self.errors),
        }


def transfer_idempotency_key(affiliate_id: str, commission_ids: List[str], attempt: int = 0) -> str:
    """Same affiliate, commission set and attempt always map to the same processor request.

    ``attempt`` counts the affiliate's confirmed transfer failures, so a retry after a
    confirmed failure is a new request while a retry after a timeout is not.
    """
    source = ",".join(sorted(commission_ids)) + f"#{attempt}"
    digest = hashlib.sha256(source.encode()).hexdigest()[:32]
    return f"payout-{affiliate_id}-{digest}"


class PayoutService:
    @staticmethod
    def process_scheduled_payouts(
        db: Session,
        gateway: TransferGateway,
        today: Optional[date] = None
    ) -> BatchResult:
        """Evaluate every due affiliate and pay the eligible ones."""
        today = today or datetime.utcnow().date()
        logger.info(f"Starting scheduled payout processing for {today}")

        report = PayoutEligibilityService.evaluate(db, today)
        result = PayoutService.execute_batch(db, gateway, report, today)

        logger.info(f"Payout processing complete: {result.as_dict()}")
        return result

    @staticmethod
    def execute_batch(
        db: Session,
        gateway: TransferGateway,
        report: EligibilityReport,
        today: date,
        run_id: Optional[str] = None
    ) -> BatchResult:
        run_id = run_id or str(uuid.uuid4())
        result = BatchResult(skipped=len(report.skipped))

        for candidate in report.eligible:
            try:
                payout = PayoutService.execute_one(db, gateway, candidate, today, run_id)
            except PayoutInProgress:
                logger.info(
                    f"Skipping affiliate {candidate.affiliate_id}: {SkipReason.PAYOUT_IN_PROGRESS.value}"
                )
                result.skipped += 1
            except Exception as e:
                message = e.message if isinstance(e, AppException) else str(e)
                logger.error(f"Error processing payout for affiliate {candidate.affiliate_id}: {message}")
                result.failed += 1
                result.errors.append(f"{candidate.affiliate_id}: {message}")
            else:
                result.processed += 1
                result.payout_ids.append(payout.id)

        return result

    @staticmethod
    def execute_one(
        db: Session,
        gateway: TransferGateway,
        candidate: EligiblePayout,
        today: date,
        run_id: str
    ) -> Payout:
        """Transfer and record one affiliate's payout. Raises on any failure.

        The transfer deadline is enforced by the gateway's HTTP client, so a
        hung call surfaces here as ``TransferTimeout`` for this affiliate only.
        """
        validate_amount(candidate.total_amount, candidate.payout_method)

        stripe_fee = calculate_fee(candidate.total_amount, candidate.payout_method)
        net_amount = round_money(candidate.total_amount - stripe_fee)
        commission_ids = candidate.commission_ids

        if not PayoutService._acquire_lock(db, candidate.affiliate_id, run_id):
            raise PayoutInProgress(candidate.affiliate_id)

        try:
            PayoutService._verify_claimable(db, candidate)
            attempt = PayoutService.attempt_number(db, candidate.affiliate_id)
            idempotency_key = transfer_idempotency_key(candidate.affiliate_id, commission_ids, attempt)

            logger.info(
                f"Processing payout for affiliate {candidate.affiliate_id}: "
                f"{candidate.total_amount} ({net_amount} after fees)"
            )
            try:
                transfer = gateway.create_transfer(
                    destination_account_id=candidate.account_id,
                    amount_minor_units=to_minor_units(net_amount),
                    currency=settings.PAYOUT_CURRENCY,
                    description=f"Payout for {len(commission_ids)} commissions",
                    metadata={
                        "affiliate_id": candidate.affiliate_id,
                        "commission_count": str(len(commission_ids)),
                    },
                    idempotency_key=idempotency_key
                )
            except TransferTimeout:
                # outcome unknown; the next run retries under the same key
                raise
            except PaymentError as e:
                PayoutService._record_failed_attempt(db, candidate, idempotency_key, e)
                raise

            try:
                payout = PayoutService._record_payout(
                    db, candidate, transfer, stripe_fee, net_amount, today
                )
            except Exception:
                logger.critical(
                    f"Transfer {transfer.transfer_id} to affiliate {candidate.affiliate_id} succeeded "
                    f"but the payout record could not be saved; reconcile manually",
                    exc_info=True
                )
                raise
        except Exception:
            db.rollback()
            raise
        finally:
            PayoutService._release_lock(db, candidate.affiliate_id, run_id)

        logger.info(f"Successfully created payout {payout.id} for affiliate {candidate.affiliate_id}")
        return payout

    @staticmethod
    def attempt_number(db: Session, affiliate_id: str) -> int:
        """Confirmed transfer failures so far: settled-failed payouts plus rejected transfer calls."""
        failed_payouts = db.query(Payout).filter(
            Payout.affiliate_id == affiliate_id,
            Payout.status == PayoutStatus.FAILED
        ).count()
        rejected_calls = db.query(AuditLog).filter(
            AuditLog.entity_type == "affiliate",
            AuditLog.entity_id == affiliate_id,
            AuditLog.event_type == TRANSFER_REJECTED_EVENT
        ).count()
        return failed_payouts + rejected_calls

    @staticmethod
    def _record_failed_attempt(
        db: Session,
        candidate: EligiblePayout,
        idempotency_key: str,
        error: PaymentError
    ) -> None:
        db.rollback()
        AuditService.log_event(
            db,
            event_type=TRANSFER_REJECTED_EVENT,
            entity_type="affiliate",
            entity_id=candidate.affiliate_id,
            event_data={
                "idempotency_key": idempotency_key,
                "amount": str(candidate.total_amount),
                "error": error.message,
                "details": error.details,
            }
        )
        db.commit()

    @staticmethod
    def _verify_claimable(db: Session, candidate: EligiblePayout) -> None:
        current = {c.id for c in PayoutEligibilityService.claimable_commissions(db, candidate.affiliate_id)}
        missing = set(candidate.commission_ids) - current
        if missing:
            raise CommissionConflict(
                candidate.affiliate_id,
                f"{len(missing)} commissions are no longer approved and unclaimed"
            )

    @staticmethod
    def _record_payout(
        db: Session,
        candidate: EligiblePayout,
        transfer: TransferResult,
        stripe_fee,
        net_amount,
        today: date
    ) -> Payout:
        commission_ids = candidate.commission_ids

        payout = Payout(
            affiliate_id=candidate.affiliate_id,
            total_amount=round_money(candidate.total_amount),
            platform_fee_total=round_money(candidate.platform_fee_total),
            stripe_fee_amount=stripe_fee,
            net_amount=net_amount,
            commission_ids=commission_ids,
            status=PayoutStatus.PROCESSING,
            payout_method=candidate.payout_method,
            stripe_transfer_id=transfer.transfer_id,
            scheduled_date=today,
            notes=f"Automated payout: {candidate.payout_frequency}"
        )
        db.add(payout)
        db.flush()

        # Compare-and-swap on the claim so a commission can back only one live payout
        claimed = db.execute(
            update(Commission)
            .where(
                Commission.id.in_(commission_ids),
                Commission.status == CommissionStatus.APPROVED,
                Commission.payout_id == None
            )
            .values(payout_id=payout.id)
            .execution_options(synchronize_session=False)
        ).rowcount
        if claimed != len(commission_ids):
            raise CommissionConflict(
                candidate.affiliate_id,
                f"Claimed {claimed} of {len(commission_ids)} commissions"
            )

        AuditService.log_event(
            db,
            event_type="created",
            entity_type="payout",
            entity_id=payout.id,
            event_data={
                "transfer_id": transfer.transfer_id,
                "amount": str(payout.total_amount),
                "net_amount": str(net_amount),
                "stripe_fee_amount": str(stripe_fee),
                "commission_count": len(commission_ids),
                "automated": True,
            }
        )
        db.commit()
        return payout

    @staticmethod
    def _acquire_lock(db: Session, affiliate_id: str, run_id: str) -> bool:
        now = datetime.utcnow()
        stale_before = now - timedelta(seconds=settings.PAYOUT_LOCK_TTL_SECONDS)

        stale = db.execute(
            delete(PayoutLock).where(
                PayoutLock.affiliate_id == affiliate_id,
                PayoutLock.acquired_at < stale_before
            )
        ).rowcount
        if stale:
            logger.warning(f"Replacing stale payout lock for affiliate {affiliate_id}")

        # Core insert so a held lock surfaces as a primary key violation
        try:
            db.execute(insert(PayoutLock).values(affiliate_id=affiliate_id, run_id=run_id, acquired_at=now))
            db.commit()
        except IntegrityError:
            db.rollback()
            return False
        return True

    @staticmethod
    def _release_lock(db: Session, affiliate_id: str, run_id: str) -> None:
        db.execute(
            delete(PayoutLock).where(
                PayoutLock.affiliate_id == affiliate_id,
                PayoutLock.run_id == run_id
            )
        )
        db.commit()

    @staticmethod
    def list_payouts(
        db: Session,
        affiliate_id: Optional[str] = None,
        status: Optional[PayoutStatus] = None,
        skip: int = 0,
        limit: int = 20
    ):
        """List payouts"""
        query = db.query(Payout)
        if affiliate_id:
            query = query.filter(Payout.affiliate_id == affiliate_id)
        if status:
            query = query.filter(Payout.status == status)
        return query.order_by(Payout.created_at.desc()).offset(skip).limit(limit).all()
