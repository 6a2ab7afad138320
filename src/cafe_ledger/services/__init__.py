"""Services package - Business logic layer for Cafe Ledger.

Architecture:
- Services: Stateless functions organized by concern (batches, FIFO, returns, undo, stock)
- Transactions: Managed via session_scope() context manager
- Serialization: Per-product locks (locking.product_lock) around read-modify-write operations
- Exceptions: Consistent error handling via ServiceError hierarchy
- Validation: Input validation before database operations

Service Modules:
- batch_service: Batch Store (create, query, set quantity, delete, daily check-in)
- batch_age_service: Age Classifier (days since date_added, fresh/medium/old)
- fifo_service: FIFO Consumption Engine (deduct sold quantity oldest first)
- return_service: Returns Processor (plan, value and commit returns; return history)
- return_undo_service: Undo Engine (restore a return's batches)
- stock_service: Stock Aggregator (active stock per product)
- product_service: Product reference data (read, bulk import)

Collaborator seams:
- audit_events: AuditEvent and the audit sink hook
- notification_service: Owner return summary and best-effort delivery

Infrastructure:
- exceptions: Custom exception classes for service layer errors
- database: Session management and database utilities
- locking: Product locks, row locking and retry helper
- logging_utils: Structured operation logging
"""

from . import (
    database,
    batch_age_service,
    batch_service,
    fifo_service,
    product_service,
    return_service,
    return_undo_service,
    stock_service,
)

from .exceptions import (
    ServiceError,
    ValidationError,
    InsufficientStock,
    NothingToReturn,
    NotFound,
    ProductNotFound,
    BatchNotFound,
    ReturnNotFound,
    TransactionFailure,
)

__all__ = [
    "database",
    "batch_age_service",
    "batch_service",
    "fifo_service",
    "product_service",
    "return_service",
    "return_undo_service",
    "stock_service",
    "ServiceError",
    "ValidationError",
    "InsufficientStock",
    "NothingToReturn",
    "NotFound",
    "ProductNotFound",
    "BatchNotFound",
    "ReturnNotFound",
    "TransactionFailure",
]
