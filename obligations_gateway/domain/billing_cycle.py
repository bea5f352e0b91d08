"""Credit-card billing cycle resolution"""

import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List

from obligations_gateway.domain.exceptions import ValidationError
from obligations_gateway.domain.models import PENDING, CreditCard, ObligationInstance
from obligations_gateway.utils.date_utils import month_key, next_month_key

DEFAULT_CLOSING_DAY = 1


@dataclass
class CardCycleTotal:
    """Pending charges of one card in the reference month"""

    card_id: uuid.UUID
    name: str
    total: Decimal = Decimal("0")
    count: int = 0
    percentage: float = 0.0


@dataclass
class CardsSummary:
    """All active cards viewed through one shared reference month"""

    reference_month: str
    total: Decimal
    cards: List[CardCycleTotal] = field(default_factory=list)


def open_cycle_month(today: date, closing_day: int) -> str:
    """
    YYYY-MM of the invoice currently accepting charges.

    Up to and including the closing day, charges land on this month's
    invoice; after it they roll to next month's (December rolls into January).
    """
    if not 1 <= closing_day <= 31:
        raise ValidationError(f"closing day must be between 1 and 31, got {closing_day}")
    if today.day <= closing_day:
        return month_key(today)
    return next_month_key(today)


def reference_cycle_month(today: date, cards: Iterable[CreditCard]) -> str:
    """
    Single open month for a combined multi-card view.

    Approximation: uses the earliest closing day among active cards, so a
    card closing later may be shown one month ahead of its own open invoice.
    """
    closing_days = [card.closing_day or DEFAULT_CLOSING_DAY for card in cards if card.active]
    return open_cycle_month(today, min(closing_days) if closing_days else DEFAULT_CLOSING_DAY)


def summarize_cards(
    today: date,
    cards: Iterable[CreditCard],
    obligations: Iterable[ObligationInstance],
) -> CardsSummary:
    """Per-card pending totals in the shared reference month, largest first"""
    active = [card for card in cards if card.active]
    month = reference_cycle_month(today, active)

    totals = {card.id: CardCycleTotal(card_id=card.id, name=card.name) for card in active}
    for item in obligations:
        if item.card_id is None or item.status != PENDING or item.expected_month != month:
            continue
        entry = totals.get(item.card_id)
        if entry is not None:
            entry.total += item.amount
            entry.count += 1

    ranked = sorted(totals.values(), key=lambda entry: entry.total, reverse=True)
    grand_total = sum((entry.total for entry in ranked), Decimal("0"))
    for entry in ranked:
        entry.percentage = float(entry.total / grand_total * 100) if grand_total > 0 else 0.0

    return CardsSummary(reference_month=month, total=grand_total, cards=ranked)
