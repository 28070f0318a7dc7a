from decimal import Decimal

import pytest

from app.models.affiliate import AccountStatus, Affiliate
from app.models.audit_log import AuditLog
from app.models.commission import Commission, CommissionStatus
from app.models.payout import Payout, PayoutStatus
from app.models.payout_preference import PayoutPreference
from app.services.payout_service import PayoutService
from app.services.payout_settlement_service import PayoutSettlementService

from tests.conftest import TODAY


@pytest.fixture
def paid_out(db, factory, gateway):
    """One affiliate with a processing payout covering two commissions."""
    company = factory.company()
    affiliate = factory.affiliate()
    factory.preference(affiliate, payout_frequency="weekly")
    factory.commission(affiliate, company, "60.00")
    factory.commission(affiliate, company, "40.00")
    PayoutService.process_scheduled_payouts(db, gateway, today=TODAY)
    return affiliate, db.query(Payout).one()


def event(event_type, obj, event_id="evt_1"):
    return {"id": event_id, "type": event_type, "data": {"object": obj}}


def test_transfer_paid_settles_commissions(db, paid_out):
    affiliate, payout = paid_out

    handled = PayoutSettlementService.handle_stripe_event(
        db, event("transfer.paid", {"id": payout.stripe_transfer_id})
    )

    assert handled
    payout = db.get(Payout, payout.id)
    assert payout.status == PayoutStatus.COMPLETED
    assert payout.processed_at is not None
    commissions = db.query(Commission).filter(Commission.payout_id == payout.id).all()
    assert len(commissions) == 2
    assert all(c.status == CommissionStatus.PAID and c.paid_at for c in commissions)

    preference = db.query(PayoutPreference).filter(PayoutPreference.affiliate_id == affiliate.id).one()
    assert preference.next_scheduled_payout_date > TODAY

    audit = db.query(AuditLog).filter(AuditLog.entity_id == payout.id, AuditLog.event_type == "completed").one()
    assert audit.stripe_event_id == "evt_1"


def test_transfer_paid_is_idempotent(db, paid_out):
    affiliate, payout = paid_out
    PayoutSettlementService.mark_transfer_paid(db, payout.stripe_transfer_id)
    PayoutSettlementService.mark_transfer_paid(db, payout.stripe_transfer_id)

    assert db.query(AuditLog).filter(AuditLog.event_type == "completed").count() == 1


def test_transfer_failed_releases_commissions(db, factory, gateway, paid_out):
    affiliate, payout = paid_out

    PayoutSettlementService.handle_stripe_event(
        db,
        event("transfer.failed", {
            "id": payout.stripe_transfer_id,
            "failure_code": "account_closed",
            "failure_message": "The bank account has been closed",
        })
    )

    payout = db.get(Payout, payout.id)
    assert payout.status == PayoutStatus.FAILED
    assert payout.processing_error_code == "account_closed"
    commissions = db.query(Commission).filter(Commission.affiliate_id == affiliate.id).all()
    assert all(c.payout_id is None and c.status == CommissionStatus.APPROVED for c in commissions)

    # released commissions go out with the next run
    result = PayoutService.process_scheduled_payouts(db, gateway, today=TODAY)
    assert result.processed == 1
    assert db.query(Payout).filter(Payout.status == PayoutStatus.PROCESSING).one().total_amount == Decimal("100.00")


def test_paid_event_after_failure_is_ignored(db, paid_out):
    affiliate, payout = paid_out
    PayoutSettlementService.mark_transfer_failed(db, payout.stripe_transfer_id, "reversed")
    PayoutSettlementService.mark_transfer_paid(db, payout.stripe_transfer_id)

    assert db.get(Payout, payout.id).status == PayoutStatus.FAILED
    assert db.query(Commission).filter(Commission.status == CommissionStatus.PAID).count() == 0


def test_unknown_transfer_is_ignored(db):
    assert PayoutSettlementService.mark_transfer_paid(db, "tr_unknown") is None


def test_account_updated_event_syncs_status(db, factory):
    affiliate = factory.affiliate(verified=False)

    PayoutSettlementService.handle_stripe_event(db, event("account.updated", {
        "id": affiliate.stripe_connect_account_id,
        "charges_enabled": True,
        "payouts_enabled": True,
        "details_submitted": True,
    }))

    affiliate = db.get(Affiliate, affiliate.id)
    assert affiliate.stripe_account_status == AccountStatus.VERIFIED
    assert affiliate.stripe_onboarding_completed


def test_restricted_account(db, factory):
    affiliate = factory.affiliate()

    PayoutSettlementService.handle_stripe_event(db, event("account.updated", {
        "id": affiliate.stripe_connect_account_id,
        "charges_enabled": False,
        "requirements": {"disabled_reason": "requirements.past_due"},
    }))

    assert db.get(Affiliate, affiliate.id).stripe_account_status == AccountStatus.RESTRICTED


def test_refresh_account_status_uses_gateway(db, factory, gateway):
    affiliate = factory.affiliate(verified=False)
    gateway.account_statuses[affiliate.stripe_connect_account_id] = AccountStatus.VERIFIED

    PayoutSettlementService.refresh_account_status(db, gateway, affiliate.id)

    assert db.get(Affiliate, affiliate.id).stripe_account_status == AccountStatus.VERIFIED


def test_other_events_are_not_handled(db):
    assert not PayoutSettlementService.handle_stripe_event(db, event("charge.succeeded", {"id": "ch_1"}))
