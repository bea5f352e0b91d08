"""Domain-specific exceptions"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from obligations_gateway.domain.models import BatchResult


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Request is incomplete or targets an obligation that cannot change"""

    pass


class NotFoundError(DomainException):
    """Target obligation or card does not exist for this user"""

    pass


class BackendUnavailable(DomainException):
    """Persistence backend failed or could not be reached"""

    pass


class PartialBatchFailure(DomainException):
    """A multi-row write stopped partway; written rows are NOT rolled back"""

    def __init__(self, result: "BatchResult", cause: str = ""):
        self.result = result
        self.cause = cause
        message = (
            f"{result.operation} stopped after {len(result.succeeded_ids)} of "
            f"{result.requested} obligations"
        )
        if cause:
            message = f"{message}: {cause}"
        super().__init__(message)
