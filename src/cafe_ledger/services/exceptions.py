"""Service layer exception classes for Cafe Ledger.

Every business-rule violation surfaces to the immediate caller as one of
these typed errors. Only TransactionFailure is eligible for a retry by the
caller: the multi-row write it reports never partially committed.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    ├── InsufficientStock
    ├── NothingToReturn
    ├── NotFound
    │   ├── ProductNotFound
    │   ├── BatchNotFound
    │   └── ReturnNotFound
    └── TransactionFailure
"""

from decimal import Decimal
from typing import List, Optional


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions inherit from this class.
    """

    retryable = False


class ValidationError(ServiceError):
    """Raised when input validation fails.

    Args:
        errors: List of human-readable validation messages
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        error_msg = "; ".join(self.errors)
        super().__init__(f"Validation failed: {error_msg}")


class InsufficientStock(ServiceError):
    """Raised when FIFO deduction cannot be satisfied by active batches."""

    def __init__(self, product_id: int, required: Decimal, available: Decimal):
        self.product_id = product_id
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"required {required}, available {available}"
        )


class NothingToReturn(ServiceError):
    """Raised when a return selection leaves no batch to return."""

    def __init__(self, candidate_count: int = 0):
        self.candidate_count = candidate_count
        super().__init__(
            f"No batches selected for return ({candidate_count} candidate(s), all kept)"
        )


class NotFound(ServiceError):
    """Base for lookups of unknown ids."""

    entity = "Record"

    def __init__(self, entity_id: int):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} with ID {entity_id} not found")


class ProductNotFound(NotFound):
    """Raised when a product cannot be found by ID."""

    entity = "Product"

    @property
    def product_id(self) -> int:
        return self.entity_id


class BatchNotFound(NotFound):
    """Raised when an inventory batch cannot be found (or is no longer active)."""

    entity = "Inventory batch"

    @property
    def batch_id(self) -> int:
        return self.entity_id


class ReturnNotFound(NotFound):
    """Raised when a return record cannot be found by ID."""

    entity = "Return"

    @property
    def return_id(self) -> int:
        return self.entity_id


class TransactionFailure(ServiceError):
    """Raised when the underlying atomic commit failed.

    Nothing from the attempted transaction was persisted, so the caller may
    retry the whole operation.
    """

    retryable = True

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(f"Transaction failed: {message}")
