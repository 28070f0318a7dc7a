from decimal import Decimal

import pytest

from app.core.exceptions import (
    InvalidAmount,
    InvalidQuantity,
    InvalidStatusTransition,
    ProductNotFound,
    UnsupportedCommissionType,
)
from app.models.audit_log import AuditLog
from app.models.commission import CommissionStatus
from app.services.commission_service import CommissionService


def test_percentage_commission_with_platform_fee():
    result = CommissionService.calculate_commission(Decimal("100"), 1, Decimal("10"), "percentage", Decimal("20"))
    assert result.commission_amount == Decimal("10.00")
    assert result.platform_fee == Decimal("2.00")
    assert result.affiliate_payout_amount == Decimal("10.00")


def test_flat_commission_is_per_unit():
    result = CommissionService.calculate_commission(Decimal("90"), 3, Decimal("5"), "flat", Decimal("20"))
    assert result.commission_amount == Decimal("15.00")
    assert result.platform_fee == Decimal("3.00")


def test_fee_uses_unrounded_commission():
    # 1.99 * 1% = 0.0199; a 25% fee on that is 0.004975, not 25% of 0.02
    result = CommissionService.calculate_commission(Decimal("1.99"), 1, Decimal("1"), "percentage", Decimal("25"))
    assert result.commission_amount == Decimal("0.02")
    assert result.platform_fee == Decimal("0.00")


def test_default_fee_rate_applies_when_unset():
    result = CommissionService.calculate_commission(Decimal("100"), 1, Decimal("10"), "percentage")
    assert result.platform_fee == Decimal("2.00")


def test_zero_purchase_amount():
    result = CommissionService.calculate_commission(Decimal("0"), 1, Decimal("10"), "percentage")
    assert result.commission_amount == Decimal("0.00")


@pytest.mark.parametrize("kwargs, error", [
    ({"quantity": 0}, InvalidQuantity),
    ({"purchase_amount": Decimal("-1")}, InvalidAmount),
    ({"commission_type": "tiered"}, UnsupportedCommissionType),
    ({"commission_rate": Decimal("150")}, InvalidAmount),
])
def test_invalid_inputs(kwargs, error):
    args = {
        "purchase_amount": Decimal("100"),
        "quantity": 1,
        "commission_rate": Decimal("10"),
        "commission_type": "percentage",
    }
    args.update(kwargs)
    with pytest.raises(error):
        CommissionService.calculate_commission(**args)


def test_company_fee_rate_is_used(db, factory):
    company = factory.company(platform_fee_rate=Decimal("25"))
    product = factory.product(company, commission_rate=Decimal("10"))
    result = CommissionService.calculate_for_product(db, product, Decimal("100"), 1)
    assert result.platform_fee == Decimal("2.50")


def test_explicit_zero_fee_rate_is_honored(db, factory):
    company = factory.company(platform_fee_rate=Decimal("0"))
    assert CommissionService.get_platform_fee_rate(db, company.id) == Decimal("0")


def test_simulate_commission(db, factory):
    company = factory.company(platform_fee_rate=Decimal("20"))
    product = factory.product(company, commission_type="flat", commission_rate=Decimal("5"))
    result = CommissionService.simulate_commission(db, product.id, Decimal("90"), 3)
    assert result["commission_amount"] == Decimal("15.00")
    assert result["platform_fee"] == Decimal("3.00")

    with pytest.raises(ProductNotFound):
        CommissionService.simulate_commission(db, "missing", Decimal("90"), 1)


def test_status_transitions(db, factory):
    company = factory.company()
    affiliate = factory.affiliate()
    commission = factory.commission(affiliate, company, "10.00", status=CommissionStatus.PENDING)

    updated = CommissionService.update_status(db, commission.id, CommissionStatus.APPROVED)
    assert updated.status == CommissionStatus.APPROVED
    assert updated.approved_at is not None
    assert db.query(AuditLog).filter(AuditLog.entity_id == commission.id).count() == 1

    with pytest.raises(InvalidStatusTransition):
        CommissionService.update_status(db, commission.id, CommissionStatus.PAID)


def test_dashboard_totals(db, factory):
    company = factory.company()
    affiliate = factory.affiliate()
    factory.commission(affiliate, company, "10.00")
    factory.commission(affiliate, company, "5.50")
    factory.commission(affiliate, company, "7.25", status=CommissionStatus.PENDING)

    data = CommissionService.get_dashboard_data(db, affiliate.id)
    assert data["to_receive"] == Decimal("15.50")
    assert data["pending"] == Decimal("7.25")
    assert data["paid"] == Decimal("0.00")
    assert len(data["recent_commissions"]) == 3


@pytest.mark.parametrize("amount, quantity, rate, commission_type, expected", [
    ("100", 1, "10", "percentage", ("10.00", "2.00")),
    ("33.33", 1, "7.5", "percentage", ("2.50", "0.50")),
    ("90", 3, "5", "flat", ("15.00", "3.00")),
    ("0", 2, "4.99", "flat", ("9.98", "2.00")),
])
def test_same_inputs_give_same_commission(amount, quantity, rate, commission_type, expected):
    results = [
        CommissionService.calculate_commission(purchase_amount, quantity, commission_rate, commission_type, fee_rate)
        for purchase_amount, commission_rate, fee_rate in [
            (Decimal(amount), Decimal(rate), Decimal("20")),
            (amount, rate, "20"),
            (Decimal(amount), rate, 20),
        ]
    ]

    assert results[0] == results[1] == results[2]
    commission_amount, platform_fee = expected
    assert results[0].commission_amount == Decimal(commission_amount)
    assert results[0].platform_fee == Decimal(platform_fee)
