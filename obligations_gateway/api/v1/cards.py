"""/v1/cards - card read models, invoices and the combined card view"""

import uuid
from dataclasses import asdict
from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request

from obligations_gateway.api.dependencies import get_notifier, get_request_id, get_store, get_today
from obligations_gateway.api.errors import to_http_error
from obligations_gateway.api.v1.schemas import CardCreateRequest, CardSchema, CardsSummaryResponse, InvoiceResponse
from obligations_gateway.domain.billing_cycle import open_cycle_month, reference_cycle_month, summarize_cards
from obligations_gateway.domain.credit_limit import build_invoice
from obligations_gateway.domain.models import PENDING, SETTLED
from obligations_gateway.infrastructure.clients.notifier import CARDS_CHANGED, ChangeNotifier
from obligations_gateway.infrastructure.store import ORDER_BY_NEWEST, ObligationQuery, ObligationStore

router = APIRouter()


@router.post("/cards", response_model=CardSchema, status_code=201)
def register_card(
    body: CardCreateRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    store: ObligationStore = Depends(get_store),
    notifier: ChangeNotifier = Depends(get_notifier),
):
    """Register the limit and closing day of a user's card"""
    try:
        card = store.add_card(body.to_domain())
    except Exception as e:
        raise to_http_error(e, get_request_id(request), body.user_id) from e

    background_tasks.add_task(notifier.publish, CARDS_CHANGED, {"user_id": body.user_id, "card_id": str(card.id)})
    return CardSchema(**asdict(card))


@router.get("/cards/summary", response_model=CardsSummaryResponse)
def get_cards_summary(
    request: Request,
    user_id: str = Query(..., min_length=1, description="User identifier"),
    today: date = Depends(get_today),
    store: ObligationStore = Depends(get_store),
):
    """
    Pending charges per active card for one shared reference month.

    The reference month comes from the earliest closing day among the
    user's cards, so cards closing later can appear a month early.
    """
    try:
        cards = store.list_cards(user_id)
        month = reference_cycle_month(today, cards)
        pending = store.find(ObligationQuery(user_id=user_id, has_card=True, expected_month=month))
        summary = summarize_cards(today, cards, pending)
    except Exception as e:
        raise to_http_error(e, get_request_id(request), user_id) from e

    return CardsSummaryResponse.from_domain(user_id, summary)


@router.get("/cards/{card_id}/invoice", response_model=InvoiceResponse)
def get_card_invoice(
    card_id: uuid.UUID,
    request: Request,
    user_id: str = Query(..., min_length=1, description="User identifier"),
    month: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}$", description="Invoice month; defaults to the open one"),
    today: date = Depends(get_today),
    store: ObligationStore = Depends(get_store),
):
    """
    Invoice of a card for a month, with the card's current limit usage.

    Returns:
        Pending total, charges (newest first), paid status and
        used/available limit computed on the card's own open cycle
    """
    try:
        card = store.get_card(card_id)
    except Exception as e:
        raise to_http_error(e, get_request_id(request), user_id) from e
    if card is None or card.user_id != user_id:
        raise HTTPException(status_code=404, detail="Card not found")

    try:
        invoice_month = month or open_cycle_month(today, card.closing_day)
        items = store.find(
            ObligationQuery(
                user_id=user_id,
                statuses=(PENDING, SETTLED),
                card_id=card.id,
                expected_month=invoice_month,
                order_by=ORDER_BY_NEWEST,
            )
        )
        pending = store.find(ObligationQuery(user_id=user_id, card_id=card.id))
        invoice = build_invoice(card, invoice_month, items, pending, today)
    except Exception as e:
        raise to_http_error(e, get_request_id(request), user_id) from e

    return InvoiceResponse.from_domain(invoice)
