"""
Abstract persistence interface for obligations and card read models.

The backend is a row-level data service: every method is one independent
call. No implementation may assume a transaction spanning several calls, so
multi-row mutations are sequences the domain layer reports on row by row.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

from obligations_gateway.domain.models import CreditCard, ObligationInstance, PENDING

ORDER_BY_DATE = "expected_date"
ORDER_BY_NEWEST = "-created_at"


@dataclass
class ObligationQuery:
    """Filters for ObligationStore.find; None leaves a field unfiltered"""

    user_id: str
    statuses: Tuple[str, ...] = (PENDING,)
    card_id: Optional[uuid.UUID] = None
    has_card: Optional[bool] = None
    description: Optional[str] = None
    is_recurring: Optional[bool] = None
    periodicity: Optional[str] = None
    series_id: Optional[uuid.UUID] = None
    expected_from: Optional[date] = None
    expected_month: Optional[str] = None
    order_by: str = ORDER_BY_DATE


class ObligationStore(ABC):
    """Backend operations the obligation engine relies on"""

    @abstractmethod
    def insert_many(self, obligations: Sequence[ObligationInstance]) -> List[ObligationInstance]:
        """
        Write a batch of new obligations in one call.

        Returns:
            The stored rows with identifiers assigned

        Raises:
            BackendUnavailable: If the backend rejects the batch
        """

    @abstractmethod
    def get(self, obligation_id: uuid.UUID) -> Optional[ObligationInstance]:
        """Fetch one obligation by identifier"""

    @abstractmethod
    def find(self, query: ObligationQuery) -> List[ObligationInstance]:
        """Fetch obligations matching every set filter"""

    @abstractmethod
    def update(self, obligation_id: uuid.UUID, values: Dict[str, Any]) -> ObligationInstance:
        """
        Update one obligation; expected_month is re-derived when the date moves.

        Raises:
            NotFoundError: If the row no longer exists
            BackendUnavailable: On backend failure
        """

    @abstractmethod
    def delete_many(self, obligation_ids: Sequence[uuid.UUID]) -> List[uuid.UUID]:
        """Delete pending rows by identifier; returns the identifiers actually removed"""

    @abstractmethod
    def get_card(self, card_id: uuid.UUID) -> Optional[CreditCard]:
        """Fetch a credit card read model"""

    @abstractmethod
    def list_cards(self, user_id: str, active_only: bool = True) -> List[CreditCard]:
        """Cards owned by a user"""

    @abstractmethod
    def add_card(self, card: CreditCard) -> CreditCard:
        """Register a credit card read model"""
