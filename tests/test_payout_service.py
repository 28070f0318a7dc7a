from datetime import datetime, timedelta
from decimal import Decimal

from app.core.config import settings
from app.models.audit_log import AuditLog
from app.models.commission import Commission, CommissionStatus
from app.models.payout import Payout, PayoutStatus
from app.models.payout_lock import PayoutLock
from app.services.payout_service import PayoutService, transfer_idempotency_key

from tests.conftest import TODAY


def test_instant_payout_deducts_processor_fee(db, factory, gateway):
    company = factory.company()
    affiliate = factory.affiliate()
    factory.preference(affiliate, preferred_payout_method="ach_instant")
    factory.commission(affiliate, company, "120.00")
    factory.commission(affiliate, company, "80.00")

    result = PayoutService.process_scheduled_payouts(db, gateway, today=TODAY)

    assert result.as_dict() == {"processed": 1, "skipped": 0, "failed": 0, "errors": []}
    assert len(gateway.transfers) == 1
    transfer = gateway.transfers[0]
    assert transfer["amount"] == 19800
    assert transfer["destination"] == affiliate.stripe_connect_account_id
    assert transfer["currency"] == "usd"

    payout = db.query(Payout).one()
    assert payout.total_amount == Decimal("200.00")
    assert payout.stripe_fee_amount == Decimal("2.00")
    assert payout.net_amount == Decimal("198.00")
    assert payout.status == PayoutStatus.PROCESSING
    assert payout.stripe_transfer_id == transfer["id"]
    assert db.query(AuditLog).filter(AuditLog.entity_id == payout.id, AuditLog.event_type == "created").count() == 1


def test_claimed_commissions_sum_to_payout_total(db, factory, gateway):
    company = factory.company()
    affiliate = factory.affiliate()
    factory.preference(affiliate)
    for amount in ("10.10", "20.20", "30.30"):
        factory.commission(affiliate, company, amount)

    PayoutService.process_scheduled_payouts(db, gateway, today=TODAY)

    payout = db.query(Payout).one()
    claimed = db.query(Commission).filter(Commission.payout_id == payout.id).all()
    assert sorted(c.id for c in claimed) == sorted(payout.commission_ids)
    assert sum(c.affiliate_payout_amount for c in claimed) == payout.total_amount == Decimal("60.60")
    # still approved until the processor confirms
    assert all(c.status == CommissionStatus.APPROVED for c in claimed)


def test_second_run_does_not_pay_again(db, factory, gateway):
    company = factory.company()
    affiliate = factory.affiliate()
    factory.preference(affiliate)
    factory.commission(affiliate, company, "100.00")

    first = PayoutService.process_scheduled_payouts(db, gateway, today=TODAY)
    second = PayoutService.process_scheduled_payouts(db, gateway, today=TODAY)

    assert first.processed == 1
    assert second.processed == 0
    assert second.skipped == 1
    assert len(gateway.transfers) == 1
    assert db.query(Payout).count() == 1


def test_one_failure_does_not_stop_the_batch(db, factory, gateway):
    company = factory.company()
    broken = factory.affiliate()
    healthy = factory.affiliate()
    for affiliate in (broken, healthy):
        factory.preference(affiliate)
        factory.commission(affiliate, company, "100.00")
    gateway.fail_for(broken.stripe_connect_account_id)

    result = PayoutService.process_scheduled_payouts(db, gateway, today=TODAY)

    assert result.processed == 1
    assert result.failed == 1
    assert result.errors == [f"{broken.id}: Insufficient funds in platform balance"]

    payouts = db.query(Payout).all()
    assert [p.affiliate_id for p in payouts] == [healthy.id]

    unclaimed = db.query(Commission).filter(Commission.affiliate_id == broken.id).one()
    assert unclaimed.payout_id is None
    assert unclaimed.status == CommissionStatus.APPROVED
    assert db.query(PayoutLock).count() == 0


def test_transfer_timeout_counts_as_failed(db, factory, gateway):
    company = factory.company()
    affiliate = factory.affiliate()
    factory.preference(affiliate)
    factory.commission(affiliate, company, "100.00")
    gateway.time_out_for(affiliate.stripe_connect_account_id)

    result = PayoutService.process_scheduled_payouts(db, gateway, today=TODAY)

    assert result.failed == 1
    assert "did not complete within" in result.errors[0]
    assert db.query(Payout).count() == 0
    assert db.query(Commission).one().payout_id is None
    assert db.query(PayoutLock).count() == 0


def test_timed_out_affiliate_does_not_hold_up_the_next_one(db, factory, gateway):
    company = factory.company()
    slow = factory.affiliate()
    healthy = factory.affiliate()
    factory.preference(slow, next_scheduled_payout_date=TODAY - timedelta(days=2))
    factory.preference(healthy, next_scheduled_payout_date=TODAY)
    factory.commission(slow, company, "100.00")
    factory.commission(healthy, company, "80.00")
    gateway.time_out_for(slow.stripe_connect_account_id)

    result = PayoutService.process_scheduled_payouts(db, gateway, today=TODAY)

    assert [call["destination"] for call in gateway.calls] == [
        slow.stripe_connect_account_id,
        healthy.stripe_connect_account_id,
    ]
    assert result.processed == 1
    assert result.failed == 1
    assert result.errors[0].startswith(f"{slow.id}:")
    payout = db.query(Payout).one()
    assert payout.affiliate_id == healthy.id


def test_retry_after_rejected_transfer_uses_new_key(db, factory, gateway):
    company = factory.company()
    affiliate = factory.affiliate()
    factory.preference(affiliate)
    factory.commission(affiliate, company, "100.00")
    account_id = affiliate.stripe_connect_account_id
    gateway.fail_for(account_id)

    first = PayoutService.process_scheduled_payouts(db, gateway, today=TODAY)
    assert first.failed == 1
    assert "Insufficient funds" in first.errors[0]
    rejected = db.query(AuditLog).filter(AuditLog.event_type == "transfer_rejected").one()
    assert rejected.entity_id == affiliate.id
    assert PayoutService.attempt_number(db, affiliate.id) == 1

    gateway.failing_accounts.clear()
    second = PayoutService.process_scheduled_payouts(db, gateway, today=TODAY)

    assert second.processed == 1
    first_key, second_key = [call["idempotency_key"] for call in gateway.calls]
    assert first_key != second_key
    assert gateway.transfers[0]["idempotency_key"] == second_key


def test_retry_after_timeout_reuses_key(db, factory, gateway):
    company = factory.company()
    affiliate = factory.affiliate()
    factory.preference(affiliate)
    factory.commission(affiliate, company, "100.00")
    gateway.time_out_for(affiliate.stripe_connect_account_id)

    PayoutService.process_scheduled_payouts(db, gateway, today=TODAY)
    gateway.timing_out_accounts.clear()
    result = PayoutService.process_scheduled_payouts(db, gateway, today=TODAY)

    assert result.processed == 1
    first_key, second_key = [call["idempotency_key"] for call in gateway.calls]
    assert first_key == second_key
    assert PayoutService.attempt_number(db, affiliate.id) == 0


def test_instant_amount_above_limit_fails_before_transfer(db, factory, gateway):
    company = factory.company()
    affiliate = factory.affiliate()
    factory.preference(affiliate, preferred_payout_method="debit_instant")
    factory.commission(affiliate, company, "6000.00")

    result = PayoutService.process_scheduled_payouts(db, gateway, today=TODAY)

    assert result.failed == 1
    assert gateway.transfers == []
    assert db.query(Payout).count() == 0


def test_affiliate_locked_by_another_run_is_skipped(db, factory, gateway):
    company = factory.company()
    affiliate = factory.affiliate()
    factory.preference(affiliate)
    factory.commission(affiliate, company, "100.00")
    db.add(PayoutLock(affiliate_id=affiliate.id, run_id="other-run", acquired_at=datetime.utcnow()))
    db.commit()

    result = PayoutService.process_scheduled_payouts(db, gateway, today=TODAY)

    assert result.as_dict() == {"processed": 0, "skipped": 1, "failed": 0, "errors": []}
    assert gateway.transfers == []
    # the other run's lock is left alone
    assert db.query(PayoutLock).one().run_id == "other-run"


def test_stale_lock_is_replaced(db, factory, gateway):
    company = factory.company()
    affiliate = factory.affiliate()
    factory.preference(affiliate)
    factory.commission(affiliate, company, "100.00")
    stale_at = datetime.utcnow() - timedelta(seconds=settings.PAYOUT_LOCK_TTL_SECONDS + 60)
    db.add(PayoutLock(affiliate_id=affiliate.id, run_id="crashed-run", acquired_at=stale_at))
    db.commit()

    result = PayoutService.process_scheduled_payouts(db, gateway, today=TODAY)

    assert result.processed == 1
    assert db.query(PayoutLock).count() == 0


def test_transfer_idempotency_key():
    assert transfer_idempotency_key("aff", ["b", "a"]) == transfer_idempotency_key("aff", ["a", "b"])
    assert transfer_idempotency_key("aff", ["a"]) != transfer_idempotency_key("aff", ["a", "b"])
    assert transfer_idempotency_key("aff", ["a"], attempt=1) != transfer_idempotency_key("aff", ["a"])
