from sqlalchemy.orm import Session
from sqlalchemy import or_, update
from sqlalchemy.exc import SQLAlchemyError
from typing import Optional
from datetime import datetime
import logging

from app.core.exceptions import (
    ExternalCheckoutRequired,
    InsufficientInventory,
    InvalidQuantity,
    PartnershipNotApproved,
    PartnershipNotFound,
    ProductNotFound,
)
from app.core.money import round_money, to_decimal
from app.models.lead import Lead, LeadType
from app.models.partnership import Partnership, PartnershipStatus
from app.models.product import Product
from app.models.purchase import Purchase, PurchasePaymentMethod, PurchaseStatus
from app.schemas.lead import dump_lead_data
from app.schemas.purchase import CustomerInfo, ExternalPurchasePayload
from app.services.audit_service import AuditService
from app.services.commission_service import CommissionService
from app.services.discount_service import DiscountConfig, DiscountService

logger = logging.getLogger(__name__)


class PurchaseService:
    @staticmethod
    def _get_product(db: Session, product_id: str, lock: bool = False) -> Product:
        query = db.query(Product).filter(Product.id == product_id, Product.is_active == True)
        if lock:
            query = query.with_for_update()
        product = query.first()
        if not product:
            raise ProductNotFound(product_id)
        return product

    @staticmethod
    def _check_inventory(product: Product, quantity: int) -> None:
        if product.inventory_tracking and quantity > product.inventory_quantity:
            raise InsufficientInventory(requested=quantity, available=product.inventory_quantity)

    @staticmethod
    def record_purchase(
        db: Session,
        product_id: str,
        partnership_id: str,
        customer: CustomerInfo,
        quantity: int = 1
    ) -> Purchase:
        """Record an in-app checkout as a completed purchase"""

        if quantity is None or quantity < 1:
            raise InvalidQuantity(quantity)

        # Row lock keeps the inventory check and decrement consistent across concurrent checkouts
        product = PurchaseService._get_product(db, product_id, lock=True)

        if product.external_checkout_url:
            raise ExternalCheckoutRequired(product.id, product.external_checkout_url)

        partnership = db.query(Partnership).filter(Partnership.id == partnership_id).first()
        if not partnership or partnership.company_id != product.company_id:
            raise PartnershipNotFound(details={"partnership_id": partnership_id})
        if partnership.product_id and partnership.product_id != product.id:
            # scoped to a different product of the same company
            raise PartnershipNotFound(details={"partnership_id": partnership_id, "product_id": product.id})
        if partnership.status != PartnershipStatus.APPROVED:
            raise PartnershipNotApproved(partnership.id, partnership.status.value)

        PurchaseService._check_inventory(product, quantity)

        subtotal = to_decimal(product.price) * quantity
        discount = DiscountService.resolve(DiscountConfig.from_product(product), subtotal, quantity)
        purchase_amount = round_money(subtotal - discount.discount_amount)
        commission = CommissionService.calculate_for_product(db, product, purchase_amount, quantity)

        purchase = Purchase(
            product_id=product.id,
            affiliate_id=partnership.affiliate_id,
            company_id=product.company_id,
            partnership_id=partnership.id,
            customer_name=customer.name,
            customer_email=customer.email,
            customer_phone=customer.phone,
            purchase_amount=purchase_amount,
            commission_amount=commission.commission_amount,
            platform_fee=commission.platform_fee,
            quantity=quantity,
            discount_applied=discount.discount_applied,
            discount_amount=discount.discount_amount,
            status=PurchaseStatus.COMPLETED,
            payment_method=PurchasePaymentMethod.PLATFORM,
            product_url=product.product_url,
            purchased_at=datetime.utcnow()
        )
        db.add(purchase)
        db.flush()

        PurchaseService._audit_purchase(db, purchase)
        CommissionService.create_for_purchase(db, purchase)
        PurchaseService.record_conversion_lead(db, purchase, partnership)
        PurchaseService.apply_inventory(db, purchase)
        db.commit()

        logger.info(
            f"Recorded purchase {purchase.id}: product={product.id} qty={quantity} "
            f"amount={purchase_amount} commission={commission.commission_amount}"
        )
        return purchase

    @staticmethod
    def record_external_purchase(db: Session, payload: ExternalPurchasePayload) -> Purchase:
        """Record a sale reported by an external checkout"""

        quantity = payload.quantity or 1
        if quantity < 1:
            raise InvalidQuantity(quantity)

        product = PurchaseService._get_product(db, payload.product_id, lock=True)

        partnership = db.query(Partnership).filter(
            Partnership.affiliate_code == payload.affiliate_code,
            Partnership.company_id == product.company_id,
            Partnership.status == PartnershipStatus.APPROVED,
            or_(Partnership.product_id == None, Partnership.product_id == product.id)
        ).first()
        if not partnership:
            raise PartnershipNotFound(details={"affiliate_code": payload.affiliate_code})

        if payload.external_purchase_id:
            existing = db.query(Purchase).filter(
                Purchase.company_id == product.company_id,
                Purchase.external_purchase_id == payload.external_purchase_id
            ).first()
            if existing:
                logger.info(
                    f"External purchase {payload.external_purchase_id} already recorded as {existing.id}"
                )
                PurchaseService.record_conversion_lead(db, existing, partnership, payload.external_purchase_id)
                db.commit()
                return existing

        purchase_amount = round_money(payload.purchase_amount)
        commission = CommissionService.calculate_for_product(db, product, purchase_amount, quantity)
        discount = DiscountService.recover_from_net(DiscountConfig.from_product(product), purchase_amount, quantity)

        purchase = Purchase(
            product_id=product.id,
            affiliate_id=partnership.affiliate_id,
            company_id=product.company_id,
            partnership_id=partnership.id,
            customer_name=payload.customer_name,
            customer_email=payload.customer_email,
            customer_phone=payload.customer_phone,
            purchase_amount=purchase_amount,
            commission_amount=commission.commission_amount,
            platform_fee=commission.platform_fee,
            quantity=quantity,
            discount_applied=discount.discount_applied,
            discount_amount=discount.discount_amount,
            status=PurchaseStatus.COMPLETED,
            payment_method=PurchasePaymentMethod.EXTERNAL,
            product_url=product.product_url,
            external_purchase_id=payload.external_purchase_id,
            purchased_at=payload.purchased_at or datetime.utcnow()
        )
        db.add(purchase)
        db.flush()

        PurchaseService._audit_purchase(db, purchase)
        CommissionService.create_for_purchase(db, purchase)
        PurchaseService.record_conversion_lead(db, purchase, partnership, payload.external_purchase_id)
        PurchaseService.apply_inventory(db, purchase)
        db.commit()

        logger.info(
            f"Recorded external purchase {purchase.id} for code {payload.affiliate_code}: "
            f"amount={purchase_amount} commission={commission.commission_amount}"
        )
        return purchase

    @staticmethod
    def record_conversion_lead(
        db: Session,
        purchase: Purchase,
        partnership: Partnership,
        external_purchase_id: Optional[str] = None
    ) -> Lead:
        """Conversion lead for a purchase; returns the existing one on retry."""
        existing = db.query(Lead).filter(Lead.purchase_id == purchase.id).first()
        if existing:
            return existing

        if purchase.payment_method == PurchasePaymentMethod.EXTERNAL:
            data = {
                "source": "external_purchase_webhook",
                "external_purchase_id": external_purchase_id,
            }
        else:
            data = {"source": "platform_checkout"}
        data.update(
            product_id=purchase.product_id,
            purchase_id=purchase.id,
            purchase_amount=purchase.purchase_amount,
            commission_amount=purchase.commission_amount,
        )

        lead = Lead(
            partnership_id=partnership.id,
            lead_type=LeadType.CONVERSION,
            purchase_id=purchase.id,
            lead_data=dump_lead_data(data)
        )
        db.add(lead)
        db.flush()
        return lead

    @staticmethod
    def apply_inventory(db: Session, purchase: Purchase) -> bool:
        """Decrement tracked inventory for a recorded purchase.

        Runs in a savepoint: a failure here is logged and never undoes the purchase.
        """
        product = db.get(Product, purchase.product_id)
        if product is None or not product.inventory_tracking:
            return False

        try:
            with db.begin_nested():
                result = db.execute(
                    update(Product)
                    .where(
                        Product.id == purchase.product_id,
                        Product.inventory_quantity >= purchase.quantity
                    )
                    .values(inventory_quantity=Product.inventory_quantity - purchase.quantity)
                    .execution_options(synchronize_session=False)
                )
        except SQLAlchemyError as e:
            logger.error(f"Failed to update inventory for purchase {purchase.id}: {e}")
            return False

        if result.rowcount != 1:
            logger.warning(
                f"Inventory for product {purchase.product_id} could not cover purchase {purchase.id} "
                f"(qty {purchase.quantity}); needs manual correction"
            )
            return False

        db.refresh(product)
        return True

    @staticmethod
    def _audit_purchase(db: Session, purchase: Purchase) -> None:
        AuditService.log_event(
            db,
            event_type="purchase_recorded",
            entity_type="purchase",
            entity_id=purchase.id,
            event_data={
                "purchase_amount": str(purchase.purchase_amount),
                "commission_amount": str(purchase.commission_amount),
                "platform_fee": str(purchase.platform_fee),
                "discount_amount": str(purchase.discount_amount),
                "quantity": purchase.quantity,
                "payment_method": purchase.payment_method.value
            }
        )

    @staticmethod
    def list_purchases(
        db: Session,
        affiliate_id: Optional[str] = None,
        company_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 20
    ):
        query = db.query(Purchase)
        if affiliate_id:
            query = query.filter(Purchase.affiliate_id == affiliate_id)
        if company_id:
            query = query.filter(Purchase.company_id == company_id)
        return query.order_by(Purchase.created_at.desc()).offset(skip).limit(limit).all()
