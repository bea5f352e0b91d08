"""Data access layer: SQL implementation of the obligation store"""

import uuid
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from obligations_gateway.domain.exceptions import BackendUnavailable, NotFoundError
from obligations_gateway.domain.models import PENDING, CreditCard, ObligationInstance
from obligations_gateway.domain.series_identity import installment_flag
from obligations_gateway.infrastructure.database.models import CreditCardRecord, ObligationRecord
from obligations_gateway.infrastructure.observability.metrics import store_backend_failures_counter
from obligations_gateway.infrastructure.store import ORDER_BY_NEWEST, ObligationQuery, ObligationStore
from obligations_gateway.utils.date_utils import month_key

UPDATABLE_FIELDS = {
    "description",
    "amount",
    "category_id",
    "account_id",
    "card_id",
    "counterparty",
    "expected_date",
    "status",
    "settled_on",
}

_RECORD_FIELDS = (
    "id",
    "user_id",
    "dependent_id",
    "description",
    "amount",
    "direction",
    "expected_date",
    "category_id",
    "account_id",
    "card_id",
    "counterparty",
    "status",
    "settled_on",
    "is_installment",
    "installment_index",
    "installment_count",
    "installment_info",
    "is_recurring",
    "periodicity",
    "series_end_date",
    "series_id",
    "created_at",
)


def to_domain(record: ObligationRecord) -> ObligationInstance:
    return ObligationInstance(**{name: getattr(record, name) for name in _RECORD_FIELDS})


def card_to_domain(record: CreditCardRecord) -> CreditCard:
    return CreditCard(
        id=record.id,
        user_id=record.user_id,
        name=record.name,
        total_limit=record.total_limit,
        closing_day=record.closing_day,
        active=record.active,
    )


class SqlObligationStore(ObligationStore):
    """
    Obligation store backed by SQLAlchemy.

    Every method commits on its own: a multi-row mutation is a sequence of
    separate commits, the same guarantee a remote row-level service gives.
    """

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _backend_call(self, action: str):
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            store_backend_failures_counter.inc()
            raise BackendUnavailable(f"Database error during {action}") from e

    def insert_many(self, obligations: Sequence[ObligationInstance]) -> List[ObligationInstance]:
        """Persist a batch in one commit"""
        records = [
            ObligationRecord(
                id=item.id or uuid.uuid4(),
                user_id=item.user_id,
                dependent_id=item.dependent_id,
                description=item.description,
                amount=item.amount,
                direction=item.direction,
                expected_date=item.expected_date,
                expected_month=month_key(item.expected_date),
                category_id=item.category_id,
                account_id=item.account_id,
                card_id=item.card_id,
                counterparty=item.counterparty,
                status=item.status,
                settled_on=item.settled_on,
                is_installment=installment_flag(item.is_installment),
                installment_index=item.installment_index,
                installment_count=item.installment_count,
                installment_info=item.installment_info,
                is_recurring=installment_flag(item.is_recurring),
                periodicity=item.periodicity,
                series_end_date=item.series_end_date,
                series_id=item.series_id,
            )
            for item in obligations
        ]
        with self._backend_call("insert"):
            self.db.add_all(records)
            self.db.commit()
            for record in records:
                self.db.refresh(record)
        return [to_domain(record) for record in records]

    def get(self, obligation_id: uuid.UUID) -> Optional[ObligationInstance]:
        with self._backend_call("get"):
            record = self.db.get(ObligationRecord, obligation_id)
        return to_domain(record) if record else None

    def find(self, query: ObligationQuery) -> List[ObligationInstance]:
        """Fetch obligations matching every set filter"""
        q = self.db.query(ObligationRecord).filter(ObligationRecord.user_id == query.user_id)

        if query.statuses:
            q = q.filter(ObligationRecord.status.in_(query.statuses))
        if query.card_id is not None:
            q = q.filter(ObligationRecord.card_id == query.card_id)
        if query.has_card is True:
            q = q.filter(ObligationRecord.card_id.is_not(None))
        elif query.has_card is False:
            q = q.filter(ObligationRecord.card_id.is_(None))
        if query.description is not None:
            q = q.filter(ObligationRecord.description == query.description)
        if query.is_recurring is not None:
            q = q.filter(ObligationRecord.is_recurring == query.is_recurring)
        if query.periodicity is not None:
            q = q.filter(ObligationRecord.periodicity == query.periodicity)
        if query.series_id is not None:
            q = q.filter(ObligationRecord.series_id == query.series_id)
        if query.expected_from is not None:
            q = q.filter(ObligationRecord.expected_date >= query.expected_from)
        if query.expected_month is not None:
            q = q.filter(ObligationRecord.expected_month == query.expected_month)

        if query.order_by == ORDER_BY_NEWEST:
            q = q.order_by(ObligationRecord.created_at.desc())
        else:
            q = q.order_by(ObligationRecord.expected_date.asc())

        with self._backend_call("find"):
            return [to_domain(record) for record in q.all()]

    def update(self, obligation_id: uuid.UUID, values: Dict[str, Any]) -> ObligationInstance:
        """Update one row and keep expected_month in step with expected_date"""
        unknown = set(values) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")

        with self._backend_call("update"):
            record = self.db.get(ObligationRecord, obligation_id)
            if record is None:
                raise NotFoundError(f"Obligation {obligation_id} not found")
            for name, value in values.items():
                setattr(record, name, value)
            if "expected_date" in values:
                record.expected_month = month_key(values["expected_date"])
            self.db.commit()
            self.db.refresh(record)
        return to_domain(record)

    def delete_many(self, obligation_ids: Sequence[uuid.UUID]) -> List[uuid.UUID]:
        """Delete the pending rows among `obligation_ids` in one statement"""
        if not obligation_ids:
            return []
        with self._backend_call("delete"):
            q = self.db.query(ObligationRecord).filter(
                ObligationRecord.id.in_(list(obligation_ids)),
                ObligationRecord.status == PENDING,
            )
            deleted = [record_id for (record_id,) in q.with_entities(ObligationRecord.id).all()]
            q.delete(synchronize_session=False)
            self.db.commit()
        return deleted

    def get_card(self, card_id: uuid.UUID) -> Optional[CreditCard]:
        with self._backend_call("get card"):
            record = self.db.get(CreditCardRecord, card_id)
        return card_to_domain(record) if record else None

    def list_cards(self, user_id: str, active_only: bool = True) -> List[CreditCard]:
        q = self.db.query(CreditCardRecord).filter(CreditCardRecord.user_id == user_id)
        if active_only:
            q = q.filter(CreditCardRecord.active.is_(True))
        with self._backend_call("list cards"):
            return [card_to_domain(record) for record in q.order_by(CreditCardRecord.name).all()]

    def add_card(self, card: CreditCard) -> CreditCard:
        record = CreditCardRecord(
            id=card.id or uuid.uuid4(),
            user_id=card.user_id,
            name=card.name,
            total_limit=card.total_limit,
            closing_day=card.closing_day,
            active=card.active,
        )
        with self._backend_call("add card"):
            self.db.add(record)
            self.db.commit()
            self.db.refresh(record)
        return card_to_domain(record)
