"""Materialize obligation instances from one creation request"""

import logging
import uuid
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Sequence

from obligations_gateway.domain.exceptions import PartialBatchFailure, ValidationError
from obligations_gateway.domain.models import (
    INFLOW,
    OUTFLOW,
    BatchResult,
    InstallmentInfo,
    ObligationInstance,
    ObligationRequest,
)
from obligations_gateway.domain.schedule import (
    generate_installment_dates,
    generate_recurring_dates,
    parse_periodicity,
    split_installment_amount,
)
from obligations_gateway.infrastructure.store import ObligationStore

logger = logging.getLogger(__name__)

KIND_PLAIN = "plain"
KIND_RECURRING = "recurring"
KIND_INSTALLMENT = "installment"


def validate_request(request: ObligationRequest) -> str:
    """Reject incomplete requests before anything is written; returns the kind"""
    if not request.description or not request.description.strip():
        raise ValidationError("description is required")
    if request.amount is None or Decimal(request.amount) <= 0:
        raise ValidationError("amount must be positive")
    if request.direction not in (INFLOW, OUTFLOW):
        raise ValidationError(f"direction must be {INFLOW!r} or {OUTFLOW!r}")
    if not request.category_id:
        raise ValidationError("category is required")
    if request.recurring and request.installment:
        raise ValidationError("an obligation cannot be both recurring and installment")

    if request.recurring:
        parse_periodicity(request.periodicity)
        if request.series_end_date is None:
            raise ValidationError("series end date is required for recurring obligations")
        if request.series_end_date < request.expected_date:
            raise ValidationError("series end date precedes the first expected date")
        return KIND_RECURRING

    if request.installment:
        if request.installment_count is None:
            raise ValidationError("installment count is required for installment obligations")
        if request.installment_count < 1:
            raise ValidationError("installment count must be at least 1")
        return KIND_INSTALLMENT

    return KIND_PLAIN


def _base_instance(request: ObligationRequest) -> dict:
    return {
        "user_id": request.user_id,
        "dependent_id": request.dependent_id,
        "description": request.description.strip(),
        "direction": request.direction,
        "category_id": request.category_id,
        "account_id": request.account_id,
        "card_id": request.card_id,
        "counterparty": request.counterparty,
    }


def build_obligations(request: ObligationRequest) -> List[ObligationInstance]:
    """
    Expand a request into its obligation instances (nothing is persisted).

    - Recurring: one instance per generated date, sharing periodicity/end date
    - Installment: `count` monthly instances with the total split evenly
    - Plain: a single instance
    Multi-instance results share a fresh series_id.
    """
    kind = validate_request(request)
    base = _base_instance(request)
    amount = Decimal(request.amount)

    if kind == KIND_RECURRING:
        periodicity = parse_periodicity(request.periodicity)
        series_id = uuid.uuid4()
        dates = generate_recurring_dates(request.expected_date, request.series_end_date, periodicity)
        return [
            ObligationInstance(
                **base,
                amount=amount,
                expected_date=due,
                is_recurring=True,
                periodicity=periodicity.value,
                series_end_date=request.series_end_date,
                series_id=series_id,
            )
            for due in dates
        ]

    if kind == KIND_INSTALLMENT:
        count = request.installment_count
        series_id = uuid.uuid4() if count > 1 else None
        dates = generate_installment_dates(request.expected_date, count)
        parts = split_installment_amount(amount, count)
        return [
            ObligationInstance(
                **base,
                amount=part,
                expected_date=due,
                is_installment=True,
                installment_index=i + 1,
                installment_count=count,
                installment_info=InstallmentInfo(index=i + 1, count=count, original_amount=amount).as_dict(),
                series_id=series_id,
            )
            for i, (due, part) in enumerate(zip(dates, parts))
        ]

    return [ObligationInstance(**base, amount=amount, expected_date=request.expected_date)]


def create_obligations(store: ObligationStore, request: ObligationRequest) -> BatchResult:
    """
    Build and persist a request's instances with one bulk write.

    Raises:
        ValidationError: Before any write, if the request is incomplete
        BackendUnavailable: If the backend rejected the whole batch
        PartialBatchFailure: If the backend stored only part of the batch
    """
    instances = build_obligations(request)
    result = BatchResult(operation="create", requested=len(instances))

    stored = store.insert_many(instances)
    result.succeeded_ids = [row.id for row in stored]
    result.obligations = stored

    if len(stored) != len(instances):
        logger.error(
            "Bulk create stored %d of %d obligations",
            len(stored),
            len(instances),
            extra={"user_id": request.user_id},
        )
        raise PartialBatchFailure(result, "backend stored a partial batch")

    return result


def import_records(store: ObligationStore, user_id: str, records: Sequence[Dict[str, Any]]) -> BatchResult:
    """
    Persist rows written by earlier clients with their markers kept as-is.

    Source identifiers are not carried over. Imported rows have no series_id,
    so their series are resolved through the canonical description.

    Raises:
        ValidationError: Before any write, if a record cannot be parsed
        BackendUnavailable: If the backend rejected the whole batch
        PartialBatchFailure: If the backend stored only part of the batch
    """
    try:
        instances = [
            ObligationInstance.from_record(
                {**{k: v for k, v in record.items() if k not in ("id", "created_at")}, "user_id": user_id}
            )
            for record in records
        ]
    except (KeyError, ValueError, TypeError, InvalidOperation) as e:
        raise ValidationError(f"Invalid legacy record: {e}") from e

    result = BatchResult(operation="import", requested=len(instances))
    stored = store.insert_many(instances)
    result.succeeded_ids = [row.id for row in stored]
    result.obligations = stored

    if len(stored) != len(instances):
        logger.error(
            "Legacy import stored %d of %d obligations",
            len(stored),
            len(instances),
            extra={"user_id": user_id},
        )
        raise PartialBatchFailure(result, "backend stored a partial batch")

    return result
