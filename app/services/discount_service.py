from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from app.core.exceptions import InvalidDiscountConfig, InvalidQuantity, UnsupportedDiscountType
from app.core.money import HUNDRED, ZERO, Number, percent_of, round_money, to_decimal
from app.models.product import DiscountType


@dataclass(frozen=True)
class DiscountConfig:
    enabled: bool
    type: Optional[str]
    value: Optional[Decimal]

    @classmethod
    def from_product(cls, product) -> "DiscountConfig":
        return cls(
            enabled=bool(product.affiliate_discount_enabled),
            type=product.affiliate_discount_type,
            value=product.affiliate_discount_value,
        )

    @property
    def active(self) -> bool:
        return self.enabled and self.value is not None and to_decimal(self.value) > ZERO


@dataclass(frozen=True)
class DiscountResult:
    discount_amount: Decimal
    discount_applied: bool


NO_DISCOUNT = DiscountResult(discount_amount=round_money(ZERO), discount_applied=False)


def _discount_type(config: DiscountConfig) -> DiscountType:
    try:
        return DiscountType(config.type)
    except ValueError:
        raise UnsupportedDiscountType(config.type)


class DiscountService:
    @staticmethod
    def resolve(config: DiscountConfig, subtotal: Number, quantity: int) -> DiscountResult:
        """Discount taken off ``subtotal`` (unit price times quantity)."""
        if quantity < 1:
            raise InvalidQuantity(quantity)
        if not config.active:
            return NO_DISCOUNT

        subtotal = to_decimal(subtotal)
        value = to_decimal(config.value)
        discount_type = _discount_type(config)

        if discount_type == DiscountType.PERCENTAGE:
            if value >= HUNDRED:
                raise InvalidDiscountConfig(
                    "Percentage discount must be below 100",
                    details={"affiliate_discount_value": str(value)}
                )
            discount = percent_of(subtotal, value)
        else:
            # flat discounts are per unit
            discount = min(value * quantity, subtotal)

        return DiscountResult(discount_amount=round_money(discount), discount_applied=True)

    @staticmethod
    def recover_from_net(config: DiscountConfig, purchase_amount: Number, quantity: int) -> DiscountResult:
        """Discount for a sale reported only by its post-discount amount."""
        if quantity < 1:
            raise InvalidQuantity(quantity)
        if not config.active:
            return NO_DISCOUNT

        discount_type = _discount_type(config)
        value = to_decimal(config.value)

        if discount_type == DiscountType.FLAT:
            return DiscountResult(discount_amount=round_money(value * quantity), discount_applied=True)

        original = DiscountService.recover_original_amount(purchase_amount, value)
        return DiscountResult(
            discount_amount=round_money(original - to_decimal(purchase_amount)),
            discount_applied=True
        )

    @staticmethod
    def recover_original_amount(purchase_amount: Number, rate: Number) -> Decimal:
        """Pre-discount amount given the amount paid and a percentage discount rate.

        Unrounded; callers round the value they store.
        """
        rate = to_decimal(rate)
        if rate >= HUNDRED or rate < ZERO:
            raise InvalidDiscountConfig(
                "Percentage discount must be in [0, 100)",
                details={"affiliate_discount_value": str(rate)}
            )
        return to_decimal(purchase_amount) / (1 - rate / HUNDRED)
