from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional
import calendar
import enum

from app.core.exceptions import AmountOutOfRange, UnsupportedPayoutMethod, ValidationError
from app.core.money import Number, ZERO, round_money, to_decimal


class PayoutMethod(str, enum.Enum):
    ACH_STANDARD = "ach_standard"
    ACH_INSTANT = "ach_instant"
    DEBIT_INSTANT = "debit_instant"


class PayoutFrequency(str, enum.Enum):
    WEEKLY = "weekly"
    BI_WEEKLY = "bi_weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


@dataclass(frozen=True)
class PayoutMethodConfig:
    method: PayoutMethod
    label: str
    fee_rate: Decimal
    estimated_arrival: str
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None

    @property
    def is_instant(self) -> bool:
        return self.method in (PayoutMethod.ACH_INSTANT, PayoutMethod.DEBIT_INSTANT)


PAYOUT_METHODS: Dict[PayoutMethod, PayoutMethodConfig] = {
    PayoutMethod.ACH_STANDARD: PayoutMethodConfig(
        method=PayoutMethod.ACH_STANDARD,
        label="Bank Transfer (ACH)",
        fee_rate=Decimal("0"),
        estimated_arrival="2-3 business days",
    ),
    PayoutMethod.ACH_INSTANT: PayoutMethodConfig(
        method=PayoutMethod.ACH_INSTANT,
        label="Instant Bank Transfer",
        fee_rate=Decimal("0.01"),
        estimated_arrival="30 minutes",
        min_amount=Decimal("1"),
        max_amount=Decimal("100000"),
    ),
    PayoutMethod.DEBIT_INSTANT: PayoutMethodConfig(
        method=PayoutMethod.DEBIT_INSTANT,
        label="Instant to Debit Card",
        fee_rate=Decimal("0.01"),
        estimated_arrival="30 minutes",
        min_amount=Decimal("1"),
        max_amount=Decimal("5000"),
    ),
}

FREQUENCY_DAYS: Dict[PayoutFrequency, int] = {
    PayoutFrequency.WEEKLY: 7,
    PayoutFrequency.BI_WEEKLY: 14,
    PayoutFrequency.MONTHLY: 30,
    PayoutFrequency.CUSTOM: 30,
}

CUSTOM_FREQUENCY_MIN_DAYS = 7
CUSTOM_FREQUENCY_MAX_DAYS = 90

MINIMUM_PAYOUT_THRESHOLDS: List[Decimal] = [
    Decimal(v) for v in ("10", "25", "50", "100", "250", "500")
]


def get_method_config(method) -> PayoutMethodConfig:
    try:
        return PAYOUT_METHODS[PayoutMethod(method)]
    except ValueError:
        raise UnsupportedPayoutMethod(method)


def is_instant(method) -> bool:
    return get_method_config(method).is_instant


def calculate_fee(amount: Number, method) -> Decimal:
    """Processor fee for paying ``amount`` out through ``method``."""
    config = get_method_config(method)
    if config.fee_rate == ZERO:
        return round_money(ZERO)
    return round_money(to_decimal(amount) * config.fee_rate)


def calculate_net_payout(amount: Number, method) -> Decimal:
    return round_money(to_decimal(amount) - calculate_fee(amount, method))


def validate_amount(amount: Number, method) -> None:
    """Reject amounts outside an instant method's bounds before any transfer."""
    config = get_method_config(method)
    value = to_decimal(amount)
    if config.min_amount is not None and value < config.min_amount:
        raise AmountOutOfRange(value, config.method.value, config.min_amount, config.max_amount)
    if config.max_amount is not None and value > config.max_amount:
        raise AmountOutOfRange(value, config.method.value, config.min_amount, config.max_amount)


def _add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def calculate_next_payout_date(frequency, frequency_days: Optional[int], today: date) -> date:
    try:
        frequency = PayoutFrequency(frequency)
    except ValueError:
        return today + timedelta(days=30)

    if frequency == PayoutFrequency.MONTHLY:
        return _add_months(today, 1)
    if frequency == PayoutFrequency.CUSTOM:
        return today + timedelta(days=frequency_days or FREQUENCY_DAYS[frequency])
    return today + timedelta(days=FREQUENCY_DAYS[frequency])


def validate_frequency(frequency, frequency_days: Optional[int]) -> PayoutFrequency:
    try:
        frequency = PayoutFrequency(frequency)
    except ValueError:
        raise ValidationError(
            message=f"Unsupported payout frequency: {frequency!r}",
            details={"payout_frequency": frequency}
        )
    if frequency == PayoutFrequency.CUSTOM:
        if frequency_days is None or not (
            CUSTOM_FREQUENCY_MIN_DAYS <= frequency_days <= CUSTOM_FREQUENCY_MAX_DAYS
        ):
            raise ValidationError(
                message=f"Custom payout frequency must be between {CUSTOM_FREQUENCY_MIN_DAYS} "
                        f"and {CUSTOM_FREQUENCY_MAX_DAYS} days",
                details={"payout_frequency_days": frequency_days}
            )
    return frequency
