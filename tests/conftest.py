"""Pytest fixtures for testing"""

import uuid
import pytest
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Generator, List, Optional, Sequence
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from obligations_gateway.api.dependencies import get_store
from obligations_gateway.api.main import create_app
from obligations_gateway.domain.exceptions import BackendUnavailable, NotFoundError
from obligations_gateway.domain.models import PENDING, CreditCard, ObligationInstance
from obligations_gateway.domain.series_identity import installment_flag
from obligations_gateway.infrastructure.database.models import Base
from obligations_gateway.infrastructure.database.repositories import SqlObligationStore
from obligations_gateway.infrastructure.store import ORDER_BY_NEWEST, ObligationQuery, ObligationStore


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class InMemoryStore(ObligationStore):
    """Store fake that keeps rows exactly as given (legacy markers included)"""

    def __init__(self):
        self.rows: Dict[uuid.UUID, ObligationInstance] = {}
        self.cards: Dict[uuid.UUID, CreditCard] = {}
        self.update_calls = 0
        self.fail_update_on_call: Optional[int] = None
        self.fail_inserts = False
        self.max_deletes: Optional[int] = None
        self.max_inserts: Optional[int] = None
        self.fail_reads = False
        self._clock = datetime(2024, 1, 1)

    def _check_reads(self) -> None:
        if self.fail_reads:
            raise BackendUnavailable("data service down")

    def insert_many(self, obligations: Sequence[ObligationInstance]) -> List[ObligationInstance]:
        if self.fail_inserts:
            raise BackendUnavailable("insert rejected")
        stored = []
        for item in obligations:
            if self.max_inserts is not None and len(stored) >= self.max_inserts:
                break
            item.id = item.id or uuid.uuid4()
            self._clock += timedelta(seconds=1)
            item.created_at = item.created_at or self._clock
            self.rows[item.id] = item
            stored.append(item)
        return stored

    def get(self, obligation_id: uuid.UUID) -> Optional[ObligationInstance]:
        self._check_reads()
        return self.rows.get(obligation_id)

    def find(self, query: ObligationQuery) -> List[ObligationInstance]:
        self._check_reads()

        def matches(row: ObligationInstance) -> bool:
            if row.user_id != query.user_id:
                return False
            if query.statuses and row.status not in query.statuses:
                return False
            if query.card_id is not None and row.card_id != query.card_id:
                return False
            if query.has_card is not None and (row.card_id is not None) != query.has_card:
                return False
            if query.description is not None and row.description != query.description:
                return False
            if query.is_recurring is not None and installment_flag(row.is_recurring) != query.is_recurring:
                return False
            if query.periodicity is not None and row.periodicity != query.periodicity:
                return False
            if query.series_id is not None and row.series_id != query.series_id:
                return False
            if query.expected_from is not None and row.expected_date < query.expected_from:
                return False
            if query.expected_month is not None and row.expected_month != query.expected_month:
                return False
            return True

        found = [row for row in self.rows.values() if matches(row)]
        if query.order_by == ORDER_BY_NEWEST:
            return sorted(found, key=lambda row: row.created_at, reverse=True)
        return sorted(found, key=lambda row: row.expected_date)

    def update(self, obligation_id: uuid.UUID, values: Dict[str, Any]) -> ObligationInstance:
        self.update_calls += 1
        if self.fail_update_on_call == self.update_calls:
            raise BackendUnavailable("connection reset")
        row = self.rows.get(obligation_id)
        if row is None:
            raise NotFoundError(f"Obligation {obligation_id} not found")
        for name, value in values.items():
            setattr(row, name, value)
        return row

    def delete_many(self, obligation_ids: Sequence[uuid.UUID]) -> List[uuid.UUID]:
        deleted = []
        for obligation_id in obligation_ids:
            if self.max_deletes is not None and len(deleted) >= self.max_deletes:
                break
            row = self.rows.get(obligation_id)
            if row is not None and row.status == PENDING:
                del self.rows[obligation_id]
                deleted.append(obligation_id)
        return deleted

    def get_card(self, card_id: uuid.UUID) -> Optional[CreditCard]:
        self._check_reads()
        return self.cards.get(card_id)

    def list_cards(self, user_id: str, active_only: bool = True) -> List[CreditCard]:
        self._check_reads()
        return [c for c in self.cards.values() if c.user_id == user_id and (c.active or not active_only)]

    def add_card(self, card: CreditCard) -> CreditCard:
        self.cards[card.id] = card
        return card


def make_obligation(**overrides) -> ObligationInstance:
    """Pending outflow with sensible defaults"""
    values = {
        "user_id": "user_1",
        "description": "Groceries",
        "amount": Decimal("100.00"),
        "direction": "outflow",
        "expected_date": date(2024, 3, 10),
        "category_id": "food",
    }
    values.update(overrides)
    return ObligationInstance(**values)


@pytest.fixture
def new_obligation():
    """Factory for obligation instances"""
    return make_obligation


@pytest.fixture
def memory_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def sql_store(db: Session) -> SqlObligationStore:
    return SqlObligationStore(db)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_store():
        yield SqlObligationStore(db)

    app.dependency_overrides[get_store] = override_get_store
    return TestClient(app)


@pytest.fixture
def memory_client(memory_store: InMemoryStore) -> TestClient:
    """Test client backed by the in-memory store, so backend failures can be staged"""
    app = create_app()

    def override_get_store():
        yield memory_store

    app.dependency_overrides[get_store] = override_get_store
    return TestClient(app)


@pytest.fixture
def card() -> CreditCard:
    return CreditCard(
        id=uuid.uuid4(),
        user_id="user_1",
        name="Gold",
        total_limit=Decimal("5000.00"),
        closing_day=10,
    )
