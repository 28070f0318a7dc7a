from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Optional
from dataclasses import dataclass
from decimal import Decimal
from datetime import datetime
import logging

from app.core.config import settings
from app.core.exceptions import (
    InvalidAmount,
    InvalidQuantity,
    InvalidStatusTransition,
    NotFoundError,
    ProductNotFound,
    UnsupportedCommissionType,
)
from app.core.money import HUNDRED, ZERO, Number, percent_of, round_money, to_decimal
from app.models.commission import Commission, CommissionStatus
from app.models.company import Company
from app.models.product import CommissionType, Product
from app.models.purchase import Purchase
from app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

# Transitions a company may make by hand. approved -> paid only happens on settlement.
ALLOWED_TRANSITIONS = {
    CommissionStatus.PENDING: {CommissionStatus.APPROVED, CommissionStatus.REJECTED},
    CommissionStatus.APPROVED: {CommissionStatus.REJECTED},
}


@dataclass(frozen=True)
class CommissionResult:
    commission_amount: Decimal
    platform_fee: Decimal
    affiliate_payout_amount: Decimal


class CommissionService:
    @staticmethod
    def calculate_commission(
        purchase_amount: Number,
        quantity: int,
        commission_rate: Number,
        commission_type: str,
        platform_fee_rate: Optional[Number] = None
    ) -> CommissionResult:
        """Commission and platform fee for one sale.

        ``purchase_amount`` is what the customer paid after any discount.
        Percentage commissions apply to that amount; flat commissions are per
        unit. The platform fee is a percentage of the commission and is
        reported separately, so the affiliate payout equals the commission.
        """
        if quantity is None or quantity < 1:
            raise InvalidQuantity(quantity)

        amount = to_decimal(purchase_amount)
        if amount < ZERO:
            raise InvalidAmount(details={"purchase_amount": str(amount)})

        rate = to_decimal(commission_rate)
        if rate < ZERO:
            raise InvalidAmount("Commission rate must not be negative", details={"commission_rate": str(rate)})

        try:
            commission_type = CommissionType(commission_type)
        except ValueError:
            raise UnsupportedCommissionType(commission_type)

        if commission_type == CommissionType.PERCENTAGE:
            if rate > HUNDRED:
                raise InvalidAmount("Percentage commission rate must be at most 100", details={"commission_rate": str(rate)})
            commission = percent_of(amount, rate)
        else:
            commission = rate * quantity

        fee_rate = settings.DEFAULT_PLATFORM_FEE_RATE if platform_fee_rate is None else to_decimal(platform_fee_rate)
        platform_fee = percent_of(commission, fee_rate)

        commission_amount = round_money(commission)
        return CommissionResult(
            commission_amount=commission_amount,
            platform_fee=round_money(platform_fee),
            affiliate_payout_amount=commission_amount
        )

    @staticmethod
    def get_platform_fee_rate(db: Session, company_id: str) -> Decimal:
        rate = db.query(Company.platform_fee_rate).filter(Company.id == company_id).scalar()
        if rate is None:
            return settings.DEFAULT_PLATFORM_FEE_RATE
        return to_decimal(rate)

    @staticmethod
    def calculate_for_product(
        db: Session,
        product: Product,
        purchase_amount: Number,
        quantity: int
    ) -> CommissionResult:
        return CommissionService.calculate_commission(
            purchase_amount=purchase_amount,
            quantity=quantity,
            commission_rate=product.commission_rate,
            commission_type=product.commission_type,
            platform_fee_rate=CommissionService.get_platform_fee_rate(db, product.company_id)
        )

    @staticmethod
    def simulate_commission(
        db: Session,
        product_id: str,
        purchase_amount: Decimal,
        quantity: int = 1
    ):
        """Simulate commission calculation"""

        product = db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise ProductNotFound(product_id)

        fee_rate = CommissionService.get_platform_fee_rate(db, product.company_id)
        result = CommissionService.calculate_commission(
            purchase_amount=purchase_amount,
            quantity=quantity,
            commission_rate=product.commission_rate,
            commission_type=product.commission_type,
            platform_fee_rate=fee_rate
        )

        return {
            "product_id": product.id,
            "product_name": product.name,
            "purchase_amount": purchase_amount,
            "quantity": quantity,
            "commission_type": product.commission_type,
            "commission_rate": product.commission_rate,
            "platform_fee_rate": fee_rate,
            "commission_amount": result.commission_amount,
            "platform_fee": result.platform_fee,
            "affiliate_payout_amount": result.affiliate_payout_amount
        }

    @staticmethod
    def create_for_purchase(db: Session, purchase: Purchase) -> Commission:
        """Open a pending commission for a recorded purchase (idempotent)."""
        existing = db.query(Commission).filter(Commission.purchase_id == purchase.id).first()
        if existing:
            return existing

        commission = Commission(
            affiliate_id=purchase.affiliate_id,
            company_id=purchase.company_id,
            purchase_id=purchase.id,
            commission_amount=purchase.commission_amount,
            affiliate_payout_amount=purchase.commission_amount,
            platform_fee_amount=purchase.platform_fee,
            status=CommissionStatus.PENDING
        )
        db.add(commission)
        db.flush()
        return commission

    @staticmethod
    def update_status(db: Session, commission_id: str, new_status: CommissionStatus) -> Commission:
        commission = db.query(Commission).filter(Commission.id == commission_id).with_for_update().first()
        if not commission:
            raise NotFoundError("Commission not found", details={"commission_id": commission_id})

        allowed = ALLOWED_TRANSITIONS.get(commission.status, set())
        if new_status not in allowed:
            raise InvalidStatusTransition(commission.status.value, new_status.value)
        if commission.payout_id is not None:
            # claimed by an in-flight payout
            raise InvalidStatusTransition(commission.status.value, new_status.value)

        previous = commission.status
        commission.status = new_status
        if new_status == CommissionStatus.APPROVED:
            commission.approved_at = datetime.utcnow()

        AuditService.log_event(
            db,
            event_type=f"commission_{new_status.value}",
            entity_type="commission",
            entity_id=commission.id,
            event_data={
                "previous_status": previous.value,
                "commission_amount": str(commission.commission_amount)
            }
        )
        db.commit()
        logger.info(f"Commission {commission.id} moved {previous.value} -> {new_status.value}")
        return commission

    @staticmethod
    def list_commissions(
        db: Session,
        affiliate_id: Optional[str] = None,
        status: Optional[CommissionStatus] = None,
        skip: int = 0,
        limit: int = 20
    ):
        query = db.query(Commission)
        if affiliate_id:
            query = query.filter(Commission.affiliate_id == affiliate_id)
        if status:
            query = query.filter(Commission.status == status)
        return query.order_by(Commission.created_at.desc()).offset(skip).limit(limit).all()

    @staticmethod
    def get_dashboard_data(db: Session, affiliate_id: str):
        """Get dashboard data for affiliate"""

        def total(status: CommissionStatus) -> Decimal:
            value = db.query(func.sum(Commission.affiliate_payout_amount)).filter(
                Commission.affiliate_id == affiliate_id,
                Commission.status == status
            ).scalar()
            return round_money(value or 0)

        recent = db.query(Commission).filter(
            Commission.affiliate_id == affiliate_id
        ).order_by(Commission.created_at.desc()).limit(10).all()

        return {
            "to_receive": total(CommissionStatus.APPROVED),
            "paid": total(CommissionStatus.PAID),
            "pending": total(CommissionStatus.PENDING),
            "recent_commissions": recent
        }
