"""Domain models - pure Python dataclasses representing business entities"""

import uuid
from dataclasses import dataclass, field, fields
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from obligations_gateway.utils.date_utils import month_key, parse_iso_date

PENDING = "pending"
SETTLED = "settled"
CANCELLED = "cancelled"

INFLOW = "inflow"
OUTFLOW = "outflow"


@dataclass
class InstallmentInfo:
    """Structured installment marker: position, size and total of the purchase"""

    index: int
    count: int
    original_amount: Optional[Decimal] = None

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"index": self.index, "count": self.count}
        if self.original_amount is not None:
            payload["original_amount"] = str(self.original_amount)
        return payload


@dataclass
class ObligationInstance:
    """One dated expected income or expense.

    Series markers are kept as received: historical writers stored the
    installment flag as a bool, "TRUE" or "sim", and installment_info as a
    dict or an "n/m" string. series_identity resolves them.
    """

    user_id: str
    description: str
    amount: Decimal
    direction: str
    expected_date: date
    category_id: Optional[str] = None
    id: Optional[uuid.UUID] = None
    dependent_id: Optional[str] = None
    account_id: Optional[str] = None
    card_id: Optional[uuid.UUID] = None
    counterparty: Optional[str] = None
    status: str = PENDING
    settled_on: Optional[date] = None
    is_installment: Any = False
    installment_index: Optional[int] = None
    installment_count: Optional[int] = None
    installment_info: Any = None
    is_recurring: Any = False
    periodicity: Optional[str] = None
    series_end_date: Optional[date] = None
    series_id: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None

    @property
    def expected_month(self) -> str:
        return month_key(self.expected_date)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "ObligationInstance":
        """Build an instance from a raw row (remote backend or legacy import)"""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in record.items() if k in known}

        values["amount"] = Decimal(str(values["amount"]))
        values["expected_date"] = parse_iso_date(values["expected_date"])
        for key in ("settled_on", "series_end_date"):
            if values.get(key):
                values[key] = parse_iso_date(values[key])
        for key in ("id", "card_id", "series_id"):
            if values.get(key) and not isinstance(values[key], uuid.UUID):
                values[key] = uuid.UUID(str(values[key]))
        for key in ("installment_index", "installment_count"):
            if values.get(key) not in (None, ""):
                values[key] = int(values[key])
            else:
                values[key] = None
        if isinstance(values.get("created_at"), str):
            values["created_at"] = datetime.fromisoformat(values["created_at"])
        return cls(**values)


@dataclass
class CreditCard:
    """Credit card read model: limit and closing day"""

    id: uuid.UUID
    user_id: str
    name: str
    total_limit: Decimal
    closing_day: int
    active: bool = True


@dataclass
class ObligationRequest:
    """Creation payload for the series builder"""

    user_id: str
    description: str
    amount: Decimal
    direction: str
    expected_date: date
    category_id: str
    dependent_id: Optional[str] = None
    account_id: Optional[str] = None
    card_id: Optional[uuid.UUID] = None
    counterparty: Optional[str] = None
    recurring: bool = False
    periodicity: Optional[str] = None
    series_end_date: Optional[date] = None
    installment: bool = False
    installment_count: Optional[int] = None


@dataclass
class ObligationChanges:
    """New field values for an edit; None means unchanged"""

    description: Optional[str] = None
    amount: Optional[Decimal] = None
    category_id: Optional[str] = None
    account_id: Optional[str] = None
    card_id: Optional[uuid.UUID] = None
    counterparty: Optional[str] = None
    expected_date: Optional[date] = None

    def shared_values(self) -> Dict[str, Any]:
        """Values applied uniformly to every affected instance"""
        values = {
            "description": self.description,
            "amount": self.amount,
            "category_id": self.category_id,
            "account_id": self.account_id,
            "card_id": self.card_id,
            "counterparty": self.counterparty,
        }
        return {k: v for k, v in values.items() if v is not None}


@dataclass
class BatchResult:
    """Outcome of a multi-row write.

    The backend offers no transaction across calls, so a failed batch may
    leave `succeeded_ids` written. Callers decide how to reconcile.
    """

    operation: str
    requested: int
    scope: Optional[str] = None
    succeeded_ids: List[uuid.UUID] = field(default_factory=list)
    failed_ids: List[uuid.UUID] = field(default_factory=list)
    obligations: List[ObligationInstance] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed_ids and len(self.succeeded_ids) == self.requested
