"""HTTP client for the remote row-level data service (PostgREST dialect)"""

import uuid
from contextlib import contextmanager
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Sequence

import httpx

from obligations_gateway.config import settings
from obligations_gateway.domain.exceptions import BackendUnavailable, NotFoundError
from obligations_gateway.domain.models import PENDING, CreditCard, ObligationInstance
from obligations_gateway.infrastructure.observability.metrics import store_backend_failures_counter
from obligations_gateway.infrastructure.store import ORDER_BY_NEWEST, ObligationQuery, ObligationStore
from obligations_gateway.utils.date_utils import month_key

OBLIGATION_TABLE = "future_obligation"
CARD_TABLE = "credit_card"

RETURN_ROWS = {"Prefer": "return=representation"}


def _encode(value: Any) -> Any:
    """JSON-safe form of a column value"""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _encode(v) for k, v in value.items()}
    return value


def _row(item: ObligationInstance) -> Dict[str, Any]:
    row = {
        "user_id": item.user_id,
        "dependent_id": item.dependent_id,
        "description": item.description,
        "amount": item.amount,
        "direction": item.direction,
        "expected_date": item.expected_date,
        "expected_month": month_key(item.expected_date),
        "category_id": item.category_id,
        "account_id": item.account_id,
        "card_id": item.card_id,
        "counterparty": item.counterparty,
        "status": item.status,
        "settled_on": item.settled_on,
        "is_installment": item.is_installment,
        "installment_index": item.installment_index,
        "installment_count": item.installment_count,
        "installment_info": item.installment_info,
        "is_recurring": item.is_recurring,
        "periodicity": item.periodicity,
        "series_end_date": item.series_end_date,
        "series_id": item.series_id,
    }
    if item.id is not None:
        row["id"] = item.id
    return {k: _encode(v) for k, v in row.items()}


def _card(row: Dict[str, Any]) -> CreditCard:
    return CreditCard(
        id=uuid.UUID(str(row["id"])),
        user_id=row["user_id"],
        name=row["name"],
        total_limit=Decimal(str(row["total_limit"])),
        closing_day=int(row["closing_day"]),
        active=bool(row.get("active", True)),
    )


def query_params(query: ObligationQuery) -> Dict[str, str]:
    """Translate an ObligationQuery into PostgREST filter parameters"""
    params = {"user_id": f"eq.{query.user_id}"}
    if query.statuses:
        params["status"] = f"in.({','.join(query.statuses)})"
    if query.card_id is not None:
        params["card_id"] = f"eq.{query.card_id}"
    elif query.has_card is True:
        params["card_id"] = "not.is.null"
    elif query.has_card is False:
        params["card_id"] = "is.null"
    if query.description is not None:
        params["description"] = f"eq.{query.description}"
    if query.is_recurring is not None:
        params["is_recurring"] = f"is.{str(query.is_recurring).lower()}"
    if query.periodicity is not None:
        params["periodicity"] = f"eq.{query.periodicity}"
    if query.series_id is not None:
        params["series_id"] = f"eq.{query.series_id}"
    if query.expected_from is not None:
        params["expected_date"] = f"gte.{query.expected_from.isoformat()}"
    if query.expected_month is not None:
        params["expected_month"] = f"eq.{query.expected_month}"
    params["order"] = "created_at.desc" if query.order_by == ORDER_BY_NEWEST else "expected_date.asc"
    return params


class RestObligationStore(ObligationStore):
    """
    Obligation store reached over HTTP.

    Rows come back exactly as the historical writers left them, so series
    markers are passed through untouched for series_identity to interpret.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.rest_backend_url).rstrip("/")
        self.timeout = timeout or settings.http_timeout_seconds
        key = api_key or settings.rest_backend_api_key
        headers = {"apikey": key, "Authorization": f"Bearer {key}"} if key else {}
        self.client = httpx.Client(base_url=self.base_url, headers=headers, timeout=self.timeout, transport=transport)

    def close(self) -> None:
        self.client.close()

    @contextmanager
    def _backend_call(self, action: str):
        """
        Map transport and payload errors to BackendUnavailable.

        Raises:
            BackendUnavailable: On timeout, HTTP errors, or invalid response
        """
        try:
            yield
        except httpx.TimeoutException as e:
            store_backend_failures_counter.inc()
            raise BackendUnavailable(f"Data service timeout after {self.timeout}s during {action}") from e
        except httpx.HTTPStatusError as e:
            store_backend_failures_counter.inc()
            raise BackendUnavailable(f"Data service error {e.response.status_code} during {action}") from e
        except httpx.RequestError as e:
            store_backend_failures_counter.inc()
            raise BackendUnavailable(f"Data service unreachable during {action}: {e}") from e
        except (KeyError, ValueError, TypeError, InvalidOperation) as e:
            store_backend_failures_counter.inc()
            raise BackendUnavailable(f"Invalid data from data service during {action}: {e}") from e

    def _rows(self, response: httpx.Response) -> List[Dict[str, Any]]:
        response.raise_for_status()
        return response.json()

    def insert_many(self, obligations: Sequence[ObligationInstance]) -> List[ObligationInstance]:
        with self._backend_call("insert"):
            response = self.client.post(
                f"/{OBLIGATION_TABLE}",
                json=[_row(item) for item in obligations],
                headers=RETURN_ROWS,
            )
            return [ObligationInstance.from_record(row) for row in self._rows(response)]

    def get(self, obligation_id: uuid.UUID) -> Optional[ObligationInstance]:
        with self._backend_call("get"):
            response = self.client.get(f"/{OBLIGATION_TABLE}", params={"id": f"eq.{obligation_id}", "limit": "1"})
            rows = self._rows(response)
            return ObligationInstance.from_record(rows[0]) if rows else None

    def find(self, query: ObligationQuery) -> List[ObligationInstance]:
        with self._backend_call("find"):
            response = self.client.get(f"/{OBLIGATION_TABLE}", params=query_params(query))
            return [ObligationInstance.from_record(row) for row in self._rows(response)]

    def update(self, obligation_id: uuid.UUID, values: Dict[str, Any]) -> ObligationInstance:
        body = {k: _encode(v) for k, v in values.items()}
        if "expected_date" in values:
            body["expected_month"] = month_key(values["expected_date"])
        with self._backend_call("update"):
            response = self.client.patch(
                f"/{OBLIGATION_TABLE}",
                params={"id": f"eq.{obligation_id}"},
                json=body,
                headers=RETURN_ROWS,
            )
            rows = self._rows(response)
        if not rows:
            raise NotFoundError(f"Obligation {obligation_id} not found")
        return ObligationInstance.from_record(rows[0])

    def delete_many(self, obligation_ids: Sequence[uuid.UUID]) -> List[uuid.UUID]:
        if not obligation_ids:
            return []
        with self._backend_call("delete"):
            response = self.client.delete(
                f"/{OBLIGATION_TABLE}",
                params={
                    "id": f"in.({','.join(str(i) for i in obligation_ids)})",
                    "status": f"eq.{PENDING}",
                },
                headers=RETURN_ROWS,
            )
            return [uuid.UUID(str(row["id"])) for row in self._rows(response)]

    def get_card(self, card_id: uuid.UUID) -> Optional[CreditCard]:
        with self._backend_call("get card"):
            response = self.client.get(f"/{CARD_TABLE}", params={"id": f"eq.{card_id}", "limit": "1"})
            rows = self._rows(response)
            return _card(rows[0]) if rows else None

    def list_cards(self, user_id: str, active_only: bool = True) -> List[CreditCard]:
        params = {"user_id": f"eq.{user_id}", "order": "name.asc"}
        if active_only:
            params["active"] = "is.true"
        with self._backend_call("list cards"):
            return [_card(row) for row in self._rows(self.client.get(f"/{CARD_TABLE}", params=params))]

    def add_card(self, card: CreditCard) -> CreditCard:
        body = {
            "id": str(card.id or uuid.uuid4()),
            "user_id": card.user_id,
            "name": card.name,
            "total_limit": str(card.total_limit),
            "closing_day": card.closing_day,
            "active": card.active,
        }
        with self._backend_call("add card"):
            response = self.client.post(f"/{CARD_TABLE}", json=body, headers=RETURN_ROWS)
            return _card(self._rows(response)[0])
