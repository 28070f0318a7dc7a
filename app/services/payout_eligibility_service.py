from sqlalchemy.orm import Session
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional
import enum
import logging

from app.core.money import sum_money, to_decimal
from app.models.affiliate import AccountStatus, Affiliate
from app.models.commission import Commission, CommissionStatus
from app.models.payout_preference import PayoutPreference

logger = logging.getLogger(__name__)


class SkipReason(str, enum.Enum):
    NO_STRIPE_ACCOUNT = "no_stripe_account"
    ACCOUNT_NOT_VERIFIED = "account_not_verified"
    NO_COMMISSIONS = "no_commissions"
    BELOW_THRESHOLD = "below_threshold"
    PAYOUT_IN_PROGRESS = "payout_in_progress"


@dataclass
class EligiblePayout:
    affiliate_id: str
    account_id: str
    commissions: List[Commission]
    total_amount: Decimal
    platform_fee_total: Decimal
    payout_method: str
    payout_frequency: str

    @property
    def commission_ids(self) -> List[str]:
        return sorted(c.id for c in self.commissions)


@dataclass
class SkippedPayout:
    affiliate_id: str
    reason: SkipReason
    detail: Optional[str] = None


@dataclass
class EligibilityReport:
    eligible: List[EligiblePayout] = field(default_factory=list)
    skipped: List[SkippedPayout] = field(default_factory=list)


class PayoutEligibilityService:
    """Decides which affiliates are due a payout today. Never writes."""

    @staticmethod
    def claimable_commissions(db: Session, affiliate_id: str) -> List[Commission]:
        """Approved commissions not already held by a processing or completed payout."""
        return db.query(Commission).filter(
            Commission.affiliate_id == affiliate_id,
            Commission.status == CommissionStatus.APPROVED,
            Commission.payout_id == None
        ).order_by(Commission.created_at.asc()).all()

    @staticmethod
    def due_preferences(db: Session, today: date) -> List[PayoutPreference]:
        return db.query(PayoutPreference).join(
            Affiliate, PayoutPreference.affiliate_id == Affiliate.id
        ).filter(
            PayoutPreference.auto_payout_enabled == True,
            PayoutPreference.next_scheduled_payout_date != None,
            PayoutPreference.next_scheduled_payout_date <= today
        ).order_by(PayoutPreference.next_scheduled_payout_date.asc()).all()

    @staticmethod
    def evaluate_affiliate(db: Session, preference: PayoutPreference):
        """Return an ``EligiblePayout`` or a ``SkippedPayout`` for one affiliate."""
        affiliate = preference.affiliate

        if not affiliate.stripe_connect_account_id:
            return SkippedPayout(affiliate.id, SkipReason.NO_STRIPE_ACCOUNT)

        if affiliate.stripe_account_status != AccountStatus.VERIFIED:
            return SkippedPayout(
                affiliate.id,
                SkipReason.ACCOUNT_NOT_VERIFIED,
                detail=affiliate.stripe_account_status.value
            )

        commissions = PayoutEligibilityService.claimable_commissions(db, affiliate.id)
        if not commissions:
            return SkippedPayout(affiliate.id, SkipReason.NO_COMMISSIONS)

        total_amount = sum_money(c.affiliate_payout_amount for c in commissions)
        platform_fee_total = sum_money(c.platform_fee_amount for c in commissions)
        threshold = to_decimal(preference.minimum_payout_threshold)

        if total_amount < threshold:
            return SkippedPayout(
                affiliate.id,
                SkipReason.BELOW_THRESHOLD,
                detail=f"{total_amount} < {threshold}"
            )

        return EligiblePayout(
            affiliate_id=affiliate.id,
            account_id=affiliate.stripe_connect_account_id,
            commissions=commissions,
            total_amount=total_amount,
            platform_fee_total=platform_fee_total,
            payout_method=preference.preferred_payout_method,
            payout_frequency=preference.payout_frequency
        )

    @staticmethod
    def evaluate(db: Session, today: date) -> EligibilityReport:
        preferences = PayoutEligibilityService.due_preferences(db, today)
        logger.info(f"Found {len(preferences)} affiliates due for payout on {today}")

        report = EligibilityReport()
        for preference in preferences:
            outcome = PayoutEligibilityService.evaluate_affiliate(db, preference)
            if isinstance(outcome, EligiblePayout):
                report.eligible.append(outcome)
            else:
                logger.info(
                    f"Skipping affiliate {outcome.affiliate_id}: {outcome.reason.value}"
                    + (f" ({outcome.detail})" if outcome.detail else "")
                )
                report.skipped.append(outcome)
        return report
