"""Date sequencing for recurring and installment obligations"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List

from dateutil.relativedelta import relativedelta

from obligations_gateway.domain.exceptions import ValidationError
from obligations_gateway.utils.date_utils import add_months


class Periodicity(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    BIMONTHLY = "bimonthly"
    QUARTERLY = "quarterly"
    SEMIANNUAL = "semiannual"
    ANNUAL = "annual"


_STEPS = {
    Periodicity.DAILY: relativedelta(days=1),
    Periodicity.WEEKLY: relativedelta(weeks=1),
    Periodicity.BIWEEKLY: relativedelta(weeks=2),
    Periodicity.MONTHLY: relativedelta(months=1),
    Periodicity.BIMONTHLY: relativedelta(months=2),
    Periodicity.QUARTERLY: relativedelta(months=3),
    Periodicity.SEMIANNUAL: relativedelta(months=6),
    Periodicity.ANNUAL: relativedelta(months=12),
}

# Codes written by the first version of the app
LEGACY_PERIODICITY_CODES = {
    "diario": Periodicity.DAILY,
    "semanal": Periodicity.WEEKLY,
    "quinzenal": Periodicity.BIWEEKLY,
    "mensal": Periodicity.MONTHLY,
    "bimestral": Periodicity.BIMONTHLY,
    "trimestral": Periodicity.QUARTERLY,
    "semestral": Periodicity.SEMIANNUAL,
    "anual": Periodicity.ANNUAL,
}

CENT = Decimal("0.01")


def parse_periodicity(code: str | None) -> Periodicity:
    """Resolve a periodicity code, accepting legacy names"""
    if not code:
        raise ValidationError("periodicity is required for recurring obligations")
    normalized = code.strip().lower()
    if normalized in LEGACY_PERIODICITY_CODES:
        return LEGACY_PERIODICITY_CODES[normalized]
    try:
        return Periodicity(normalized)
    except ValueError:
        raise ValidationError(f"Unknown periodicity: {code!r}") from None


def step(periodicity: Periodicity, times: int = 1) -> relativedelta:
    """Calendar increment covering `times` periods"""
    return _STEPS[periodicity] * times


def generate_recurring_dates(start: date, end: date, periodicity: Periodicity) -> List[date]:
    """
    Generate the dates of a recurring series.

    Each date is the previous one advanced by one period; month steps clamp to
    the end of shorter months. `start` is always emitted, so a start after
    `end` yields `[start]`.

    Example:
        2024-01-31 .. 2024-04-30 monthly → [01-31, 02-29, 03-29, 04-29]
    """
    increment = step(periodicity)
    dates = [start]
    current = start + increment
    while current <= end:
        dates.append(current)
        current = current + increment
    return dates


def generate_installment_dates(start: date, count: int) -> List[date]:
    """`count` monthly due dates, the i-th being `start + i` months"""
    if count < 1:
        raise ValidationError("installment count must be at least 1")
    return [add_months(start, i) for i in range(count)]


def split_installment_amount(total: Decimal, count: int) -> List[Decimal]:
    """
    Split a purchase total into `count` equal parts.

    Last part absorbs the rounding remainder so the parts add up to `total`.

    Example:
        1000.00 / 3 → [333.33, 333.33, 333.34]
    """
    if count < 1:
        raise ValidationError("installment count must be at least 1")

    total_cents = int((Decimal(total) / CENT).to_integral_value())
    base_cents = total_cents // count
    remainder = total_cents % count

    parts = []
    for i in range(count):
        cents = base_cents + (remainder if i == count - 1 else 0)
        parts.append((Decimal(cents) * CENT).quantize(CENT))
    return parts
