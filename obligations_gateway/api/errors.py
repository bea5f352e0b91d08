"""Translate domain errors into HTTP responses"""

import logging

from fastapi import HTTPException

from obligations_gateway.domain.exceptions import (
    BackendUnavailable,
    NotFoundError,
    PartialBatchFailure,
    ValidationError,
)
from obligations_gateway.infrastructure.observability.logging import log_partial_failure
from obligations_gateway.infrastructure.observability.metrics import record_partial_failure


def to_http_error(e: Exception, request_id: str, user_id: str) -> HTTPException:
    """
    Map an error raised while serving a request to its HTTP form.

    - ValidationError → 422, NotFoundError → 404
    - PartialBatchFailure → 502, naming the rows written before the stop
    - BackendUnavailable → 503
    - anything else → 500 (logged)
    """
    if isinstance(e, ValidationError):
        logging.warning(f"Rejected request: {e}", extra={"request_id": request_id})
        return HTTPException(status_code=422, detail=str(e))

    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))

    if isinstance(e, PartialBatchFailure):
        result = e.result
        record_partial_failure(result.operation)
        log_partial_failure(request_id, user_id, result.operation, len(result.succeeded_ids), result.requested)
        return HTTPException(
            status_code=502,
            detail={
                "message": str(e),
                "operation": result.operation,
                "requested": result.requested,
                "succeeded_ids": [str(i) for i in result.succeeded_ids],
                "failed_ids": [str(i) for i in result.failed_ids],
            },
        )

    if isinstance(e, BackendUnavailable):
        logging.error(f"Backend error: {e}", extra={"request_id": request_id})
        return HTTPException(status_code=503, detail="Data service unavailable")

    logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
    return HTTPException(status_code=500, detail="Internal server error")
