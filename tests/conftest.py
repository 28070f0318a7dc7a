import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")

import uuid
from datetime import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.core.database import Base, get_db
from app.core.config import settings
from app.core.exceptions import PaymentError, TransferTimeout
from app.main import app
from app.models.affiliate import AccountStatus, Affiliate
from app.models.commission import Commission, CommissionStatus
from app.models.company import Company
from app.models.partnership import Partnership, PartnershipStatus
from app.models.payout_preference import PayoutPreference
from app.models.product import Product
from app.services.stripe_gateway import AccountStatusInfo, ChargeResult, TransferResult, get_gateway

TODAY = datetime.utcnow().date()


class FakeGateway:
    """In-memory stand-in for the payment processor."""

    def __init__(self):
        self.transfers = []
        self.calls = []
        self.failing_accounts = {}
        self.timing_out_accounts = set()
        self.account_statuses = {}
        self.customers = []
        self.charges = []
        self.charge_status = "succeeded"
        self.charge_error = None

    def fail_for(self, account_id, message="Insufficient funds in platform balance"):
        self.failing_accounts[account_id] = message

    def time_out_for(self, account_id):
        self.timing_out_accounts.add(account_id)

    def create_transfer(self, destination_account_id, amount_minor_units, currency,
                        description, metadata, idempotency_key=None):
        self.calls.append({"destination": destination_account_id, "idempotency_key": idempotency_key})
        if destination_account_id in self.timing_out_accounts:
            raise TransferTimeout(settings.TRANSFER_TIMEOUT_SECONDS)
        if destination_account_id in self.failing_accounts:
            raise PaymentError(self.failing_accounts[destination_account_id])
        for transfer in self.transfers:
            if idempotency_key and transfer["idempotency_key"] == idempotency_key:
                return TransferResult(transfer_id=transfer["id"])

        transfer = {
            "id": f"tr_test_{len(self.transfers) + 1}",
            "destination": destination_account_id,
            "amount": amount_minor_units,
            "currency": currency,
            "description": description,
            "metadata": metadata,
            "idempotency_key": idempotency_key,
        }
        self.transfers.append(transfer)
        return TransferResult(transfer_id=transfer["id"])

    def get_account_status(self, account_id):
        status = self.account_statuses.get(account_id, AccountStatus.VERIFIED)
        return AccountStatusInfo(
            status=status,
            charges_enabled=status == AccountStatus.VERIFIED,
            payouts_enabled=status == AccountStatus.VERIFIED,
        )

    def create_customer(self, name, metadata):
        customer_id = f"cus_test_{len(self.customers) + 1}"
        self.customers.append({"id": customer_id, "name": name, "metadata": metadata})
        return customer_id

    def charge_customer(self, customer_id, payment_method_id, amount_minor_units, currency,
                        description, metadata, idempotency_key=None):
        if self.charge_error:
            raise PaymentError(self.charge_error)
        charge = {
            "id": f"pi_test_{len(self.charges) + 1}",
            "customer": customer_id,
            "payment_method": payment_method_id,
            "amount": amount_minor_units,
            "currency": currency,
            "metadata": metadata,
            "idempotency_key": idempotency_key,
        }
        self.charges.append(charge)
        return ChargeResult(payment_intent_id=charge["id"], status=self.charge_status)


class Factory:
    """Builds persisted rows with sensible defaults."""

    def __init__(self, db):
        self.db = db

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        return obj

    def company(self, **kwargs):
        kwargs.setdefault("name", "Acme Corp")
        return self._save(Company(**kwargs))

    def affiliate(self, verified=True, with_account=True, **kwargs):
        suffix = uuid.uuid4().hex[:8]
        kwargs.setdefault("email", f"affiliate-{suffix}@example.com")
        kwargs.setdefault("full_name", "Test Affiliate")
        if with_account:
            kwargs.setdefault("stripe_connect_account_id", f"acct_{suffix}")
        kwargs.setdefault(
            "stripe_account_status",
            AccountStatus.VERIFIED if verified else AccountStatus.PENDING
        )
        return self._save(Affiliate(**kwargs))

    def product(self, company, **kwargs):
        kwargs.setdefault("name", "Widget")
        kwargs.setdefault("price", Decimal("50.00"))
        kwargs.setdefault("commission_rate", Decimal("10"))
        kwargs.setdefault("commission_type", "percentage")
        return self._save(Product(company_id=company.id, **kwargs))

    def partnership(self, affiliate, company, status=PartnershipStatus.APPROVED, **kwargs):
        kwargs.setdefault("affiliate_code", f"CODE-{uuid.uuid4().hex[:8].upper()}")
        return self._save(Partnership(
            affiliate_id=affiliate.id,
            company_id=company.id,
            status=status,
            **kwargs
        ))

    def commission(self, affiliate, company, amount, platform_fee=None, status=CommissionStatus.APPROVED):
        amount = Decimal(str(amount))
        fee = Decimal(str(platform_fee)) if platform_fee is not None else (amount * Decimal("0.2")).quantize(Decimal("0.01"))
        return self._save(Commission(
            affiliate_id=affiliate.id,
            company_id=company.id,
            commission_amount=amount,
            affiliate_payout_amount=amount,
            platform_fee_amount=fee,
            status=status,
            approved_at=datetime.utcnow() if status == CommissionStatus.APPROVED else None
        ))

    def preference(self, affiliate, **kwargs):
        kwargs.setdefault("auto_payout_enabled", True)
        kwargs.setdefault("preferred_payout_method", "ach_standard")
        kwargs.setdefault("payout_frequency", "weekly")
        kwargs.setdefault("minimum_payout_threshold", Decimal("50"))
        kwargs.setdefault("next_scheduled_payout_date", TODAY)
        return self._save(PayoutPreference(affiliate_id=affiliate.id, **kwargs))


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(db, gateway):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()
