"""/v1/obligations - create, list, edit and delete future obligations"""

import time
import uuid
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request

from obligations_gateway.api.dependencies import get_notifier, get_request_id, get_store
from obligations_gateway.api.errors import to_http_error
from obligations_gateway.api.v1.schemas import (
    BatchResultResponse,
    LegacyImportRequest,
    ObligationCreateRequest,
    ObligationSchema,
    ObligationUpdateRequest,
)
from obligations_gateway.domain.models import BatchResult
from obligations_gateway.domain.series_builder import create_obligations, import_records, validate_request
from obligations_gateway.domain.series_mutations import MutationScope, delete_obligation, edit_obligation
from obligations_gateway.infrastructure.clients.notifier import OBLIGATIONS_CHANGED, ChangeNotifier
from obligations_gateway.infrastructure.observability.logging import log_mutation
from obligations_gateway.infrastructure.observability.metrics import record_created, record_mutation
from obligations_gateway.infrastructure.store import ObligationQuery, ObligationStore

router = APIRouter()


def _changed_event(user_id: str, result: BatchResult) -> dict:
    return {
        "user_id": user_id,
        "operation": result.operation,
        "obligation_ids": [str(i) for i in result.succeeded_ids],
    }


@router.post("/obligations", response_model=BatchResultResponse, status_code=201)
def create_obligation(
    body: ObligationCreateRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    store: ObligationStore = Depends(get_store),
    notifier: ChangeNotifier = Depends(get_notifier),
):
    """
    Create a plain, recurring or installment obligation.

    Flow:
    1. Validate the request (nothing is written on failure)
    2. Expand it into instances (one per date / installment)
    3. Persist all instances in one bulk write
    4. Signal dependent views to refresh
    """
    start_time = time.time()
    request_id = get_request_id(request)
    obligation_request = body.to_domain()

    try:
        kind = validate_request(obligation_request)
        result = create_obligations(store, obligation_request)
    except Exception as e:
        raise to_http_error(e, request_id, body.user_id) from e

    record_created(kind, len(result.succeeded_ids))
    background_tasks.add_task(notifier.publish, OBLIGATIONS_CHANGED, _changed_event(body.user_id, result))

    duration_ms = (time.time() - start_time) * 1000
    log_mutation(request_id, body.user_id, "create", kind, len(result.succeeded_ids), duration_ms)
    return BatchResultResponse.from_result(result)


@router.post("/obligations/import", response_model=BatchResultResponse, status_code=201)
def import_obligations(
    body: LegacyImportRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    store: ObligationStore = Depends(get_store),
    notifier: ChangeNotifier = Depends(get_notifier),
):
    """
    Import rows written by earlier clients, markers kept as-is.

    Imported rows carry no series_id; their series are resolved through the
    canonical description.
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        result = import_records(store, body.user_id, body.records)
    except Exception as e:
        raise to_http_error(e, request_id, body.user_id) from e

    record_created("imported", len(result.succeeded_ids))
    background_tasks.add_task(notifier.publish, OBLIGATIONS_CHANGED, _changed_event(body.user_id, result))

    duration_ms = (time.time() - start_time) * 1000
    log_mutation(request_id, body.user_id, "import", "single", len(result.succeeded_ids), duration_ms)
    return BatchResultResponse.from_result(result)


@router.get("/obligations", response_model=List[ObligationSchema])
def list_obligations(
    request: Request,
    user_id: str = Query(..., min_length=1, description="User identifier"),
    status: List[str] = Query(["pending"], description="Statuses to include"),
    card_id: Optional[uuid.UUID] = Query(None),
    month: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}$", description="Expected month (YYYY-MM)"),
    store: ObligationStore = Depends(get_store),
):
    """List a user's obligations in date order"""
    query = ObligationQuery(user_id=user_id, statuses=tuple(status), card_id=card_id, expected_month=month)
    try:
        items = store.find(query)
    except Exception as e:
        raise to_http_error(e, get_request_id(request), user_id) from e
    return [ObligationSchema.from_domain(item) for item in items]


@router.get("/obligations/{obligation_id}", response_model=ObligationSchema)
def get_obligation(
    obligation_id: uuid.UUID,
    request: Request,
    user_id: str = Query(..., min_length=1),
    store: ObligationStore = Depends(get_store),
):
    """Fetch a single obligation"""
    try:
        item = store.get(obligation_id)
    except Exception as e:
        raise to_http_error(e, get_request_id(request), user_id) from e
    if item is None or item.user_id != user_id:
        raise HTTPException(status_code=404, detail="Obligation not found")
    return ObligationSchema.from_domain(item)


@router.patch("/obligations/{obligation_id}", response_model=BatchResultResponse)
def update_obligation(
    obligation_id: uuid.UUID,
    body: ObligationUpdateRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    scope: MutationScope = Query(MutationScope.SINGLE, description="single, or series for this and later instances"),
    store: ObligationStore = Depends(get_store),
    notifier: ChangeNotifier = Depends(get_notifier),
):
    """
    Edit an obligation, or it and the later instances of its series.

    `scope=series` on an obligation that is not part of a true series is
    applied as `single`; the response reports the scope actually used.
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        result = edit_obligation(store, obligation_id, body.user_id, body.to_domain(), scope)
    except Exception as e:
        raise to_http_error(e, request_id, body.user_id) from e

    record_mutation("edit", result.scope)
    background_tasks.add_task(notifier.publish, OBLIGATIONS_CHANGED, _changed_event(body.user_id, result))

    duration_ms = (time.time() - start_time) * 1000
    log_mutation(request_id, body.user_id, "edit", result.scope, len(result.succeeded_ids), duration_ms)
    return BatchResultResponse.from_result(result)


@router.delete("/obligations/{obligation_id}", response_model=BatchResultResponse)
def remove_obligation(
    obligation_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    request: Request,
    user_id: str = Query(..., min_length=1),
    scope: MutationScope = Query(MutationScope.SINGLE, description="single, or series for this and later instances"),
    store: ObligationStore = Depends(get_store),
    notifier: ChangeNotifier = Depends(get_notifier),
):
    """Delete a pending obligation, or it and the later instances of its series"""
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        result = delete_obligation(store, obligation_id, user_id, scope)
    except Exception as e:
        raise to_http_error(e, request_id, user_id) from e

    record_mutation("delete", result.scope)
    background_tasks.add_task(notifier.publish, OBLIGATIONS_CHANGED, _changed_event(user_id, result))

    duration_ms = (time.time() - start_time) * 1000
    log_mutation(request_id, user_id, "delete", result.scope, len(result.succeeded_ids), duration_ms)
    return BatchResultResponse.from_result(result)
