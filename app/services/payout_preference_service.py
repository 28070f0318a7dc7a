from sqlalchemy.orm import Session
from datetime import date, datetime
from typing import Optional

from app.core.exceptions import NotFoundError
from app.core.fee_schedule import calculate_next_payout_date, get_method_config, validate_frequency
from app.models.affiliate import Affiliate
from app.models.payout_preference import PayoutPreference
from app.schemas.payout import PayoutPreferenceUpdate


class PayoutPreferenceService:
    @staticmethod
    def get(db: Session, affiliate_id: str) -> PayoutPreference:
        preference = db.query(PayoutPreference).filter(
            PayoutPreference.affiliate_id == affiliate_id
        ).first()
        if not preference:
            raise NotFoundError("Payout preference not found", details={"affiliate_id": affiliate_id})
        return preference

    @staticmethod
    def upsert(
        db: Session,
        affiliate_id: str,
        data: PayoutPreferenceUpdate,
        today: Optional[date] = None
    ) -> PayoutPreference:
        if not db.get(Affiliate, affiliate_id):
            raise NotFoundError("Affiliate not found", details={"affiliate_id": affiliate_id})

        method = get_method_config(data.preferred_payout_method).method
        frequency = validate_frequency(data.payout_frequency, data.payout_frequency_days)

        preference = db.query(PayoutPreference).filter(
            PayoutPreference.affiliate_id == affiliate_id
        ).first()
        if not preference:
            preference = PayoutPreference(affiliate_id=affiliate_id)
            db.add(preference)

        schedule_changed = (
            preference.payout_frequency != frequency.value
            or preference.payout_frequency_days != data.payout_frequency_days
        )

        preference.auto_payout_enabled = data.auto_payout_enabled
        preference.preferred_payout_method = method.value
        preference.payout_frequency = frequency.value
        preference.payout_frequency_days = data.payout_frequency_days
        preference.minimum_payout_threshold = data.minimum_payout_threshold

        if data.auto_payout_enabled and (preference.next_scheduled_payout_date is None or schedule_changed):
            today = today or datetime.utcnow().date()
            preference.next_scheduled_payout_date = calculate_next_payout_date(
                frequency, data.payout_frequency_days, today
            )

        db.commit()
        db.refresh(preference)
        return preference
