"""Pydantic schemas for API request/response validation"""

import uuid
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from obligations_gateway.domain.billing_cycle import CardsSummary
from obligations_gateway.domain.credit_limit import Invoice
from obligations_gateway.domain.models import (
    BatchResult,
    CreditCard,
    ObligationChanges,
    ObligationInstance,
    ObligationRequest,
)
from obligations_gateway.domain.series_identity import (
    installment_flag,
    is_true_series,
    resolve_installment_position,
)


class ObligationCreateRequest(BaseModel):
    """Request body for POST /v1/obligations"""

    user_id: str = Field(..., min_length=1, description="Owning user identifier")
    dependent_id: Optional[str] = None
    description: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, description="Instance amount, or purchase total for installments")
    direction: Literal["inflow", "outflow"]
    expected_date: date
    category_id: str = Field(..., min_length=1)
    account_id: Optional[str] = None
    card_id: Optional[uuid.UUID] = None
    counterparty: Optional[str] = None
    recurring: bool = False
    periodicity: Optional[str] = Field(None, description="daily, weekly, biweekly, monthly, ... annual")
    series_end_date: Optional[date] = None
    installment: bool = False
    installment_count: Optional[int] = None

    def to_domain(self) -> ObligationRequest:
        return ObligationRequest(**self.model_dump())


class ObligationUpdateRequest(BaseModel):
    """Request body for PATCH /v1/obligations/{id}; omitted fields stay unchanged"""

    user_id: str = Field(..., min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    amount: Optional[Decimal] = Field(None, gt=0)
    category_id: Optional[str] = None
    account_id: Optional[str] = None
    card_id: Optional[uuid.UUID] = None
    counterparty: Optional[str] = None
    expected_date: Optional[date] = None

    def to_domain(self) -> ObligationChanges:
        return ObligationChanges(**self.model_dump(exclude={"user_id"}))


class LegacyImportRequest(BaseModel):
    """Request body for POST /v1/obligations/import"""

    user_id: str = Field(..., min_length=1)
    records: List[Dict[str, Any]] = Field(..., min_length=1)


class ObligationSchema(BaseModel):
    """Single obligation instance"""

    id: uuid.UUID
    user_id: str
    dependent_id: Optional[str] = None
    description: str
    amount: Decimal
    direction: str
    expected_date: date
    expected_month: str
    category_id: Optional[str] = None
    account_id: Optional[str] = None
    card_id: Optional[uuid.UUID] = None
    counterparty: Optional[str] = None
    status: str
    settled_on: Optional[date] = None
    is_installment: bool
    installment_index: Optional[int] = None
    installment_count: Optional[int] = None
    installment_info: Optional[Any] = None
    is_recurring: bool
    periodicity: Optional[str] = None
    series_end_date: Optional[date] = None
    series_id: Optional[uuid.UUID] = None
    is_series: bool

    @classmethod
    def from_domain(cls, item: ObligationInstance) -> "ObligationSchema":
        index, count = resolve_installment_position(item)
        return cls(
            id=item.id,
            user_id=item.user_id,
            dependent_id=item.dependent_id,
            description=item.description,
            amount=item.amount,
            direction=item.direction,
            expected_date=item.expected_date,
            expected_month=item.expected_month,
            category_id=item.category_id,
            account_id=item.account_id,
            card_id=item.card_id,
            counterparty=item.counterparty,
            status=item.status,
            settled_on=item.settled_on,
            is_installment=installment_flag(item.is_installment),
            installment_index=index,
            installment_count=count,
            installment_info=item.installment_info,
            is_recurring=installment_flag(item.is_recurring),
            periodicity=item.periodicity,
            series_end_date=item.series_end_date,
            series_id=item.series_id,
            is_series=is_true_series(item),
        )


class BatchResultResponse(BaseModel):
    """Outcome of a create, import, edit or delete"""

    operation: str
    scope: Optional[str] = None
    requested: int
    succeeded: int
    failed: int
    succeeded_ids: List[uuid.UUID]
    failed_ids: List[uuid.UUID]
    obligations: List[ObligationSchema] = []

    @classmethod
    def from_result(cls, result: BatchResult) -> "BatchResultResponse":
        return cls(
            operation=result.operation,
            scope=result.scope,
            requested=result.requested,
            succeeded=len(result.succeeded_ids),
            failed=len(result.failed_ids),
            succeeded_ids=result.succeeded_ids,
            failed_ids=result.failed_ids,
            obligations=[ObligationSchema.from_domain(item) for item in result.obligations],
        )


class CardCreateRequest(BaseModel):
    """Request body for POST /v1/cards"""

    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    total_limit: Decimal = Field(..., ge=0)
    closing_day: int = Field(..., ge=1, le=31)
    active: bool = True

    def to_domain(self) -> CreditCard:
        return CreditCard(id=uuid.uuid4(), **self.model_dump())


class CardSchema(BaseModel):
    """Credit card read model"""

    id: uuid.UUID
    user_id: str
    name: str
    total_limit: Decimal
    closing_day: int
    active: bool


class InvoiceResponse(BaseModel):
    """Response for GET /v1/cards/{card_id}/invoice"""

    card_id: uuid.UUID
    month: str
    open_cycle_month: str
    total: Decimal
    used_limit: Decimal
    available_limit: Decimal
    is_paid: bool
    total_paid: Decimal
    paid_on: Optional[date] = None
    pending_count: int
    paid_count: int
    items: List[ObligationSchema]

    @classmethod
    def from_domain(cls, invoice: Invoice) -> "InvoiceResponse":
        return cls(
            card_id=invoice.card_id,
            month=invoice.month,
            open_cycle_month=invoice.open_cycle_month,
            total=invoice.total,
            used_limit=invoice.used_limit,
            available_limit=invoice.available_limit,
            is_paid=invoice.is_paid,
            total_paid=invoice.total_paid,
            paid_on=invoice.paid_on,
            pending_count=invoice.pending_count,
            paid_count=invoice.paid_count,
            items=[ObligationSchema.from_domain(item) for item in invoice.items],
        )


class CardSummaryItem(BaseModel):
    """One card in the combined view"""

    card_id: uuid.UUID
    name: str
    total: Decimal
    count: int
    percentage: float


class CardsSummaryResponse(BaseModel):
    """Response for GET /v1/cards/summary"""

    user_id: str
    reference_month: str
    total: Decimal
    cards: List[CardSummaryItem]

    @classmethod
    def from_domain(cls, user_id: str, summary: CardsSummary) -> "CardsSummaryResponse":
        return cls(
            user_id=user_id,
            reference_month=summary.reference_month,
            total=summary.total,
            cards=[
                CardSummaryItem(
                    card_id=entry.card_id,
                    name=entry.name,
                    total=entry.total,
                    count=entry.count,
                    percentage=entry.percentage,
                )
                for entry in summary.cards
            ],
        )
