from sqlalchemy.orm import Session
from sqlalchemy import update
from datetime import datetime
from typing import List, Optional
import logging

from app.core.config import settings
from app.core.exceptions import AuthorizationError, NotFoundError, PaymentError, StateError, ValidationError
from app.core.money import round_money, sum_money, to_decimal, to_minor_units
from app.models.commission import Commission, CommissionStatus, CompanyCommissionStatus
from app.models.company import Company
from app.models.company_payment import CompanyCommissionPayment, CompanyPaymentStatus
from app.services.audit_service import AuditService
from app.services.stripe_gateway import TransferGateway

logger = logging.getLogger(__name__)


class CompanyPaymentService:
    """Charges companies for the approved commissions they owe, platform fees included."""

    @staticmethod
    def payable_commissions(db: Session, commission_ids: List[str]) -> List[Commission]:
        return db.query(Commission).filter(
            Commission.id.in_(commission_ids),
            Commission.status == CommissionStatus.APPROVED,
            Commission.company_payment_status == CompanyCommissionStatus.PENDING
        ).with_for_update().all()

    @staticmethod
    def pay_commissions(
        db: Session,
        gateway: TransferGateway,
        company_id: str,
        commission_ids: List[str],
        payment_method_id: str
    ) -> CompanyCommissionPayment:
        """Charge the company's payment method for the given commissions.

        Only approved commissions the company has not paid yet are charged.
        Every one of them must belong to the paying company. The commissions
        are held by the payment before the processor is called, so a second
        request for the same set finds nothing left to pay.
        """
        if not commission_ids:
            raise ValidationError("No commissions specified", status_code=400)

        company = db.get(Company, company_id)
        if not company:
            raise NotFoundError("Company not found", details={"company_id": company_id})

        commissions = CompanyPaymentService.payable_commissions(db, commission_ids)
        if not commissions:
            raise NotFoundError(
                "No valid commissions found",
                details={"commission_ids": list(commission_ids)},
                error_code="NO_PAYABLE_COMMISSIONS"
            )

        foreign = sorted(c.id for c in commissions if c.company_id != company.id)
        if foreign:
            raise AuthorizationError(
                "You do not have permission to pay these commissions",
                details={"commission_ids": foreign}
            )

        ids = sorted(c.id for c in commissions)
        total = round_money(sum_money(
            to_decimal(c.commission_amount) + to_decimal(c.platform_fee_amount) for c in commissions
        ))

        if not company.stripe_customer_id:
            company.stripe_customer_id = gateway.create_customer(
                name=company.name,
                metadata={"company_id": company.id}
            )

        payment = CompanyCommissionPayment(
            company_id=company.id,
            total_amount=total,
            commission_ids=ids,
            number_of_commissions=len(ids),
            payment_status=CompanyPaymentStatus.PENDING,
            payment_method_id=payment_method_id
        )
        db.add(payment)
        db.flush()

        held = db.execute(
            update(Commission)
            .where(
                Commission.id.in_(ids),
                Commission.company_payment_status == CompanyCommissionStatus.PENDING
            )
            .values(company_payment_status=CompanyCommissionStatus.PROCESSING, company_payment_id=payment.id)
            .execution_options(synchronize_session=False)
        ).rowcount
        if held != len(ids):
            db.rollback()
            raise StateError(
                f"Held {held} of {len(ids)} commissions",
                details={"company_id": company.id},
                error_code="COMMISSION_CONFLICT"
            )
        db.commit()

        logger.info(f"Charging company {company.id} {total} for {len(ids)} commissions")
        try:
            charge = gateway.charge_customer(
                customer_id=company.stripe_customer_id,
                payment_method_id=payment_method_id,
                amount_minor_units=to_minor_units(total),
                currency=settings.PAYOUT_CURRENCY,
                description=f"Payment for {len(ids)} commissions",
                metadata={
                    "commission_payment_id": payment.id,
                    "company_id": company.id,
                    "number_of_commissions": str(len(ids)),
                },
                idempotency_key=f"company-payment-{payment.id}"
            )
        except PaymentError as e:
            CompanyPaymentService._apply_failure(db, payment, e.message)
            AuditService.log_event(
                db,
                event_type="company_payment_failed",
                entity_type="company_payment",
                entity_id=payment.id,
                event_data={"amount": str(total), "error": e.message, "details": e.details}
            )
            db.commit()
            db.expire_all()
            raise

        payment.stripe_payment_intent_id = charge.payment_intent_id
        if charge.status == "succeeded":
            CompanyPaymentService._apply_success(db, payment)
        else:
            payment.payment_status = CompanyPaymentStatus.PROCESSING

        AuditService.log_event(
            db,
            event_type="company_payment_created",
            entity_type="company_payment",
            entity_id=payment.id,
            event_data={
                "company_id": company.id,
                "amount": str(total),
                "number_of_commissions": len(ids),
                "payment_intent_id": charge.payment_intent_id,
                "status": charge.status,
            }
        )
        db.commit()
        db.expire_all()
        logger.info(f"Company payment {payment.id} is {payment.payment_status.value}")
        return payment

    @staticmethod
    def _get_payment(db: Session, payment_intent_id: str) -> Optional[CompanyCommissionPayment]:
        return db.query(CompanyCommissionPayment).filter(
            CompanyCommissionPayment.stripe_payment_intent_id == payment_intent_id
        ).with_for_update().first()

    @staticmethod
    def _apply_success(db: Session, payment: CompanyCommissionPayment) -> None:
        now = datetime.utcnow()
        payment.payment_status = CompanyPaymentStatus.SUCCEEDED
        payment.paid_at = now
        db.execute(
            update(Commission)
            .where(Commission.company_payment_id == payment.id)
            .values(company_payment_status=CompanyCommissionStatus.PAID, company_paid_at=now)
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    def _apply_failure(db: Session, payment: CompanyCommissionPayment, reason: str) -> int:
        payment.payment_status = CompanyPaymentStatus.FAILED
        payment.failure_reason = reason
        # Back to pending so the company can pay them again
        return db.execute(
            update(Commission)
            .where(Commission.company_payment_id == payment.id)
            .values(company_payment_status=CompanyCommissionStatus.PENDING, company_payment_id=None)
            .execution_options(synchronize_session=False)
        ).rowcount

    @staticmethod
    def mark_payment_succeeded(
        db: Session,
        payment_intent_id: str,
        stripe_event_id: Optional[str] = None
    ) -> Optional[CompanyCommissionPayment]:
        payment = CompanyPaymentService._get_payment(db, payment_intent_id)
        if not payment:
            logger.warning(f"payment_intent.succeeded for unknown payment intent {payment_intent_id}")
            return None
        if payment.payment_status in (CompanyPaymentStatus.SUCCEEDED, CompanyPaymentStatus.FAILED):
            return payment

        CompanyPaymentService._apply_success(db, payment)
        AuditService.log_event(
            db,
            event_type="company_payment_succeeded",
            entity_type="company_payment",
            entity_id=payment.id,
            event_data={"payment_intent_id": payment_intent_id, "amount": str(payment.total_amount)},
            stripe_event_id=stripe_event_id
        )
        db.commit()
        db.expire_all()
        return payment

    @staticmethod
    def mark_payment_failed(
        db: Session,
        payment_intent_id: str,
        failure_message: Optional[str] = None,
        stripe_event_id: Optional[str] = None
    ) -> Optional[CompanyCommissionPayment]:
        payment = CompanyPaymentService._get_payment(db, payment_intent_id)
        if not payment:
            logger.warning(f"payment_intent.payment_failed for unknown payment intent {payment_intent_id}")
            return None
        if payment.payment_status in (CompanyPaymentStatus.SUCCEEDED, CompanyPaymentStatus.FAILED):
            return payment

        released = CompanyPaymentService._apply_failure(db, payment, failure_message or "Payment failed")
        AuditService.log_event(
            db,
            event_type="company_payment_failed",
            entity_type="company_payment",
            entity_id=payment.id,
            event_data={
                "payment_intent_id": payment_intent_id,
                "error": failure_message,
                "commissions_released": released,
            },
            stripe_event_id=stripe_event_id
        )
        db.commit()
        db.expire_all()
        logger.warning(f"Company payment {payment.id} failed; released {released} commissions")
        return payment

    @staticmethod
    def list_payments(db: Session, company_id: str, skip: int = 0, limit: int = 20):
        return db.query(CompanyCommissionPayment).filter(
            CompanyCommissionPayment.company_id == company_id
        ).order_by(CompanyCommissionPayment.created_at.desc()).offset(skip).limit(limit).all()
