"""
Payment rail adapter.

The engine needs a few things from the processor: move money to a connected
payee account, report whether that account can receive it, and charge a
company for the commissions it owes. ``TransferGateway`` is that contract;
``StripeGateway`` implements it with the Stripe SDK. Tests substitute an
in-memory implementation.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

import stripe

from app.core.config import settings
from app.core.exceptions import PaymentError, TransferTimeout
from app.models.affiliate import AccountStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferResult:
    transfer_id: str


@dataclass(frozen=True)
class ChargeResult:
    payment_intent_id: str
    status: str


@dataclass(frozen=True)
class AccountStatusInfo:
    status: AccountStatus
    charges_enabled: bool
    payouts_enabled: bool


class TransferGateway(Protocol):
    def create_transfer(
        self,
        destination_account_id: str,
        amount_minor_units: int,
        currency: str,
        description: str,
        metadata: Dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> TransferResult:
        ...

    def get_account_status(self, account_id: str) -> AccountStatusInfo:
        ...

    def create_customer(self, name: str, metadata: Dict[str, str]) -> str:
        ...

    def charge_customer(
        self,
        customer_id: str,
        payment_method_id: str,
        amount_minor_units: int,
        currency: str,
        description: str,
        metadata: Dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> ChargeResult:
        ...


def account_status_from_stripe(account) -> AccountStatusInfo:
    """Map a Stripe Account object to the platform's verification status."""
    requirements = account.get("requirements") or {}
    if account.get("charges_enabled"):
        status = AccountStatus.VERIFIED
    elif requirements.get("disabled_reason"):
        status = AccountStatus.RESTRICTED
    else:
        status = AccountStatus.PENDING
    return AccountStatusInfo(
        status=status,
        charges_enabled=bool(account.get("charges_enabled")),
        payouts_enabled=bool(account.get("payouts_enabled")),
    )


class StripeGateway:
    """Stripe Connect transfers, account lookups and company charges."""

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key or settings.STRIPE_SECRET_KEY
        if not self.api_key:
            raise PaymentError("STRIPE_SECRET_KEY is not configured")
        stripe.max_network_retries = settings.STRIPE_MAX_NETWORK_RETRIES
        # Every request carries its own deadline; a hung call fails only that call
        stripe.default_http_client = stripe.RequestsClient(timeout=settings.TRANSFER_TIMEOUT_SECONDS)

    def create_transfer(
        self,
        destination_account_id: str,
        amount_minor_units: int,
        currency: str,
        description: str,
        metadata: Dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> TransferResult:
        try:
            transfer = stripe.Transfer.create(
                api_key=self.api_key,
                amount=amount_minor_units,
                currency=currency,
                destination=destination_account_id,
                description=description,
                metadata=metadata,
                idempotency_key=idempotency_key,
            )
        except stripe.APIConnectionError as e:
            # Timed out or dropped: the transfer may or may not exist
            logger.error(f"Stripe transfer to {destination_account_id} did not complete: {e}")
            raise TransferTimeout(settings.TRANSFER_TIMEOUT_SECONDS)
        except stripe.StripeError as e:
            logger.error(f"Stripe transfer to {destination_account_id} failed: {e}")
            raise PaymentError(
                message=getattr(e, "user_message", None) or str(e),
                details={"destination": destination_account_id, "code": getattr(e, "code", None)},
            )

        logger.info(
            f"Created Stripe transfer {transfer['id']} to {destination_account_id} "
            f"for {amount_minor_units} {currency}"
        )
        return TransferResult(transfer_id=transfer["id"])

    def get_account_status(self, account_id: str) -> AccountStatusInfo:
        try:
            account = stripe.Account.retrieve(account_id, api_key=self.api_key)
        except stripe.StripeError as e:
            logger.error(f"Failed to fetch Stripe account {account_id}: {e}")
            raise PaymentError(message=str(e), details={"account_id": account_id})
        return account_status_from_stripe(account)

    def create_customer(self, name: str, metadata: Dict[str, str]) -> str:
        try:
            customer = stripe.Customer.create(api_key=self.api_key, name=name, metadata=metadata)
        except stripe.StripeError as e:
            logger.error(f"Failed to create Stripe customer for {name}: {e}")
            raise PaymentError(message=str(e), details=metadata)
        return customer["id"]

    def charge_customer(
        self,
        customer_id: str,
        payment_method_id: str,
        amount_minor_units: int,
        currency: str,
        description: str,
        metadata: Dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> ChargeResult:
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.api_key,
                amount=amount_minor_units,
                currency=currency,
                customer=customer_id,
                payment_method=payment_method_id,
                confirm=True,
                off_session=True,
                description=description,
                metadata=metadata,
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe charge for customer {customer_id} failed: {e}")
            raise PaymentError(
                message=getattr(e, "user_message", None) or str(e),
                details={"customer": customer_id, "code": getattr(e, "code", None)},
            )

        logger.info(f"Created payment intent {intent['id']} ({intent['status']}) for {amount_minor_units} {currency}")
        return ChargeResult(payment_intent_id=intent["id"], status=intent["status"])


def get_gateway() -> TransferGateway:
    """FastAPI dependency / task helper returning the configured gateway."""
    return StripeGateway()
