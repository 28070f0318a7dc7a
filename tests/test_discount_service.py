from decimal import Decimal

import pytest

from app.core.exceptions import InvalidDiscountConfig, InvalidQuantity, UnsupportedDiscountType
from app.core.money import round_money
from app.services.discount_service import DiscountConfig, DiscountService


def percentage(value):
    return DiscountConfig(enabled=True, type="percentage", value=Decimal(value))


def flat(value):
    return DiscountConfig(enabled=True, type="flat", value=Decimal(value))


def test_percentage_discount():
    result = DiscountService.resolve(percentage("10"), Decimal("50"), 1)
    assert result.discount_amount == Decimal("5.00")
    assert result.discount_applied


def test_flat_discount_is_per_unit_and_capped_at_subtotal():
    assert DiscountService.resolve(flat("3"), Decimal("60"), 3).discount_amount == Decimal("9.00")
    assert DiscountService.resolve(flat("30"), Decimal("50"), 2).discount_amount == Decimal("50.00")


def test_disabled_or_zero_discount_is_not_applied():
    disabled = DiscountConfig(enabled=False, type="percentage", value=Decimal("10"))
    assert not DiscountService.resolve(disabled, Decimal("50"), 1).discount_applied
    assert not DiscountService.resolve(percentage("0"), Decimal("50"), 1).discount_applied


def test_full_percentage_discount_is_rejected():
    with pytest.raises(InvalidDiscountConfig):
        DiscountService.resolve(percentage("100"), Decimal("50"), 1)


def test_unknown_discount_type_fails_closed():
    config = DiscountConfig(enabled=True, type="bogo", value=Decimal("5"))
    with pytest.raises(UnsupportedDiscountType):
        DiscountService.resolve(config, Decimal("50"), 1)


def test_zero_quantity_is_rejected():
    with pytest.raises(InvalidQuantity):
        DiscountService.resolve(percentage("10"), Decimal("50"), 0)


def test_recover_from_net_percentage():
    result = DiscountService.recover_from_net(percentage("10"), Decimal("45"), 1)
    assert result.discount_amount == Decimal("5.00")


def test_recover_from_net_flat():
    result = DiscountService.recover_from_net(flat("2.50"), Decimal("45"), 2)
    assert result.discount_amount == Decimal("5.00")


def test_recover_original_amount_rejects_full_discount():
    assert DiscountService.recover_original_amount(Decimal("80"), Decimal("20")) == Decimal("100")
    with pytest.raises(InvalidDiscountConfig):
        DiscountService.recover_original_amount(Decimal("80"), Decimal("100"))


@pytest.mark.parametrize("subtotal", ["0.01", "9.99", "50.00", "123.45", "1000.00"])
@pytest.mark.parametrize("rate", ["1", "12.5", "20", "33", "50", "90"])
def test_original_amount_is_recovered_from_discounted_price(subtotal, rate):
    subtotal, rate = Decimal(subtotal), Decimal(rate)
    discount = DiscountService.resolve(percentage(rate), subtotal, 1).discount_amount
    paid = subtotal - discount

    recovered = round_money(DiscountService.recover_original_amount(paid, rate))

    # the discount was rounded to a cent before it was taken off
    tolerance = Decimal("0.01") / (1 - rate / 100)
    assert abs(recovered - subtotal) <= tolerance
