"""Credit limit usage and invoice views for a card"""

import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from obligations_gateway.domain.billing_cycle import open_cycle_month
from obligations_gateway.domain.models import PENDING, SETTLED, CreditCard, ObligationInstance
from obligations_gateway.domain.series_identity import installment_flag


@dataclass
class Invoice:
    """One card's invoice for a month, plus its current limit usage"""

    card_id: uuid.UUID
    month: str
    open_cycle_month: str
    total: Decimal
    used_limit: Decimal
    available_limit: Decimal
    is_paid: bool
    total_paid: Decimal
    paid_on: Optional[date]
    pending_count: int
    paid_count: int
    items: List[ObligationInstance] = field(default_factory=list)


def used_limit(card: CreditCard, pending: Iterable[ObligationInstance], cycle_month: str) -> Decimal:
    """
    Portion of the card limit held by pending charges.

    Recurring charges only hold the limit in the open cycle month. One-shot
    and installment charges hold it until paid, whatever month they fall in,
    since a future installment is already committed.
    """
    used = Decimal("0")
    for item in pending:
        if item.card_id != card.id or item.status != PENDING:
            continue
        if installment_flag(item.is_recurring):
            if item.expected_month == cycle_month:
                used += item.amount
        else:
            used += item.amount
    return used


def available_limit(card: CreditCard, used: Decimal) -> Decimal:
    return card.total_limit - used


def build_invoice(
    card: CreditCard,
    month: str,
    items: Iterable[ObligationInstance],
    pending: Iterable[ObligationInstance],
    today: date,
) -> Invoice:
    """
    Assemble the invoice for `month`.

    Args:
        card: The card being viewed
        month: Invoice month (YYYY-MM)
        items: Pending and settled charges of the card in `month`
        pending: Every pending charge of the card, any month
        today: Calendar date used to find the card's open cycle
    """
    month_items = sorted(
        (item for item in items if item.card_id == card.id and item.expected_month == month),
        key=lambda item: (item.created_at is not None, item.created_at or item.expected_date),
        reverse=True,
    )
    pending_items = [item for item in month_items if item.status == PENDING]
    paid_items = [item for item in month_items if item.status == SETTLED]

    cycle = open_cycle_month(today, card.closing_day)
    used = used_limit(card, pending, cycle)

    return Invoice(
        card_id=card.id,
        month=month,
        open_cycle_month=cycle,
        total=sum((item.amount for item in pending_items), Decimal("0")),
        used_limit=used,
        available_limit=available_limit(card, used),
        is_paid=bool(paid_items) and len(paid_items) == len(month_items),
        total_paid=sum((item.amount for item in paid_items), Decimal("0")),
        paid_on=paid_items[0].settled_on if paid_items else None,
        pending_count=len(pending_items),
        paid_count=len(paid_items),
        items=month_items,
    )
