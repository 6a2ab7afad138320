"""Batch Store - durable records of dated stock lots per product.

This module owns creation, querying, quantity mutation and deletion of
InventoryBatch rows. It holds no business cascades: FIFO consumption and
returns live in their own services and mutate batches through the
functions below (or the same session).

A batch is active while quantity > 0. That predicate is applied uniformly;
rows drained to 0 stay in the table until purge_depleted_batches() or an
explicit delete_batch().

All functions follow the session pattern:
- If session provided: caller owns transaction, don't commit
- If session is None: create own transaction via session_scope()

Example Usage:
    >>> from cafe_ledger.services.batch_service import create_batch, list_batches_for_product
    >>> batch = create_batch(product_id=3, quantity=Decimal("12"))
    >>> [b.quantity for b in list_batches_for_product(3)]
    [Decimal('12.000')]
"""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..models import InventoryBatch, Product
from ..models.enums import AgeCategory
from ..utils.datetime_utils import get_clock, utc_now
from ..utils.validators import (
    quantize_quantity,
    to_decimal,
    validate_non_negative_quantity,
    validate_positive_quantity,
)
from .batch_age_service import classify_batch
from .database import session_scope
from .exceptions import (
    BatchNotFound,
    ProductNotFound,
    ServiceError,
    TransactionFailure,
    ValidationError as ServiceValidationError,
)
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)


def _run(work, session: Optional[Session], failure_message: str):
    """Run work(sess) in the caller's session or a fresh session_scope()."""
    try:
        if session is not None:
            return work(session)
        with session_scope() as sess:
            return work(sess)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise TransactionFailure(failure_message, original_error=e)


def _active_batches_query(sess: Session):
    return sess.query(InventoryBatch).filter(InventoryBatch.quantity > 0)


def _load_batch(sess: Session, batch_id: int) -> InventoryBatch:
    batch = sess.query(InventoryBatch).filter(InventoryBatch.id == batch_id).first()
    if batch is None:
        raise BatchNotFound(batch_id)
    return batch


def create_batch(
    product_id: int,
    quantity: Any,
    date_added: Optional[date] = None,
    session: Optional[Session] = None,
) -> InventoryBatch:
    """
    Create a new batch (daily check-in or replenishment).

    Args:
        product_id: Product the stock belongs to
        quantity: Amount added; must be > 0 (fractional allowed)
        date_added: Check-in date; defaults to today per the active clock
        session: Optional database session for transaction composability

    Returns:
        InventoryBatch: The created batch with its id assigned

    Raises:
        ValidationError: If quantity <= 0 or not a number
        ProductNotFound: If product_id doesn't exist
        TransactionFailure: If the insert fails
    """
    is_valid, error = validate_positive_quantity(quantity)
    if not is_valid:
        raise ServiceValidationError([error])
    amount = quantize_quantity(to_decimal(quantity))
    if amount <= 0:
        raise ServiceValidationError([f"Quantity {quantity} rounds to zero"])

    actual_date = date_added or get_clock().today()

    def _do_create(sess: Session) -> InventoryBatch:
        product = sess.query(Product).filter(Product.id == product_id).first()
        if product is None:
            raise ProductNotFound(product_id)

        batch = InventoryBatch(
            product_id=product_id,
            quantity=amount,
            date_added=actual_date,
        )
        sess.add(batch)
        sess.flush()
        return batch

    batch = _run(_do_create, session, f"Failed to create batch for product {product_id}")
    log_operation(
        logger,
        operation="create_batch",
        outcome="success",
        batch_id=batch.id,
        product_id=product_id,
        quantity=str(amount),
        date_added=actual_date.isoformat(),
    )
    return batch


def get_batch(batch_id: int, session: Optional[Session] = None) -> InventoryBatch:
    """
    Retrieve a batch by id, active or not.

    Raises:
        BatchNotFound: If batch_id doesn't exist
    """

    def _do_get(sess: Session) -> InventoryBatch:
        batch = (
            sess.query(InventoryBatch)
            .options(joinedload(InventoryBatch.product))
            .filter(InventoryBatch.id == batch_id)
            .first()
        )
        if batch is None:
            raise BatchNotFound(batch_id)
        return batch

    return _run(_do_get, session, f"Failed to load batch {batch_id}")


def list_batches_for_product(
    product_id: int, session: Optional[Session] = None
) -> List[InventoryBatch]:
    """
    Active batches (quantity > 0) of one product.

    No ordering is guaranteed; callers that need FIFO order sort with
    batch_age_service.sort_batches_fifo().
    """

    def _do_list(sess: Session) -> List[InventoryBatch]:
        return _active_batches_query(sess).filter(InventoryBatch.product_id == product_id).all()

    return _run(_do_list, session, f"Failed to list batches for product {product_id}")


def list_all_active_batches(session: Optional[Session] = None) -> List[InventoryBatch]:
    """
    Active batches across all products with their product eagerly loaded.

    The product relationship carries the pricing snapshot (original_price,
    sale_price, default_return_percentage, is_weight_based) and stays
    readable after the session closes.
    """

    def _do_list(sess: Session) -> List[InventoryBatch]:
        return (
            _active_batches_query(sess)
            .options(joinedload(InventoryBatch.product))
            .order_by(InventoryBatch.date_added.asc(), InventoryBatch.id.asc())
            .all()
        )

    return _run(_do_list, session, "Failed to list active batches")


def set_quantity(
    batch_id: int, new_quantity: Any, session: Optional[Session] = None
) -> InventoryBatch:
    """
    Overwrite a batch's quantity.

    Args:
        batch_id: Batch to update
        new_quantity: New quantity (>= 0; 0 retires the batch)

    Raises:
        ValidationError: If new_quantity < 0 or not a number
        BatchNotFound: If batch_id doesn't exist
    """
    is_valid, error = validate_non_negative_quantity(new_quantity)
    if not is_valid:
        raise ServiceValidationError([error])
    amount = quantize_quantity(to_decimal(new_quantity))

    def _do_set(sess: Session) -> InventoryBatch:
        batch = _load_batch(sess, batch_id)
        previous = batch.quantity
        batch.quantity = amount
        batch.updated_at = utc_now()
        sess.flush()
        log_operation(
            logger,
            operation="set_quantity",
            outcome="success",
            batch_id=batch_id,
            previous_quantity=str(previous),
            new_quantity=str(amount),
        )
        return batch

    return _run(_do_set, session, f"Failed to update batch {batch_id}")


def delete_batch(batch_id: int, session: Optional[Session] = None) -> bool:
    """
    Remove a batch permanently.

    Raises:
        BatchNotFound: If batch_id doesn't exist
    """

    def _do_delete(sess: Session) -> bool:
        batch = _load_batch(sess, batch_id)
        sess.delete(batch)
        sess.flush()
        return True

    result = _run(_do_delete, session, f"Failed to delete batch {batch_id}")
    log_operation(logger, operation="delete_batch", outcome="success", batch_id=batch_id)
    return result


def purge_depleted_batches(session: Optional[Session] = None) -> int:
    """
    Delete every batch whose quantity reached 0.

    Optional cleanup; depleted batches are already invisible to every
    active-batch query.

    Returns:
        Number of rows deleted
    """

    def _do_purge(sess: Session) -> int:
        return (
            sess.query(InventoryBatch)
            .filter(InventoryBatch.quantity <= 0)
            .delete(synchronize_session=False)
        )

    count = _run(_do_purge, session, "Failed to purge depleted batches")
    log_operation(logger, operation="purge_depleted_batches", outcome="success", deleted=count)
    return count


def check_in_stock(
    quantities: Mapping[int, Any],
    date_added: Optional[date] = None,
    session: Optional[Session] = None,
) -> List[InventoryBatch]:
    """
    Daily stock check-in: one new batch per product with a positive quantity.

    Entries that are zero, negative or blank are skipped (the product simply
    received nothing today). All batches are created in one transaction.

    Args:
        quantities: Mapping of product_id to quantity received
        date_added: Check-in date; defaults to today

    Returns:
        The created batches

    Raises:
        ValidationError: If a quantity is not a number
        ProductNotFound: If a product id doesn't exist (nothing is created)
    """
    errors = []
    to_create: Dict[int, Decimal] = {}
    for product_id, raw in quantities.items():
        if raw is None or (isinstance(raw, str) and raw.strip() == ""):
            continue
        amount = to_decimal(raw)
        if amount is None:
            errors.append(f"Product {product_id}: invalid quantity {raw!r}")
            continue
        if amount > 0:
            to_create[product_id] = amount
    if errors:
        raise ServiceValidationError(errors)

    actual_date = date_added or get_clock().today()

    def _do_check_in(sess: Session) -> List[InventoryBatch]:
        return [
            create_batch(product_id, amount, date_added=actual_date, session=sess)
            for product_id, amount in to_create.items()
        ]

    batches = _run(_do_check_in, session, "Failed to record stock check-in")
    log_operation(
        logger,
        operation="check_in_stock",
        outcome="success",
        batches_created=len(batches),
        date_added=actual_date.isoformat(),
    )
    return batches


def filter_batches(
    batches: Iterable[InventoryBatch],
    search: Optional[str] = None,
    age_category: Optional[Any] = None,
    today: Optional[date] = None,
) -> List[InventoryBatch]:
    """
    Narrow a working set of batches the way the returns screen does.

    Args:
        batches: Batches with product loaded
        search: Case-insensitive substring of the product name
        age_category: AgeCategory (or its value) to keep; None or "all" keeps every age
        today: Reference date for ages

    Raises:
        ValidationError: If age_category is not a known category
    """
    category = None
    if age_category not in (None, "all"):
        try:
            category = AgeCategory(age_category)
        except ValueError:
            raise ServiceValidationError([f"Unknown age category: {age_category}"])

    needle = search.strip().lower() if search else ""
    result = []
    for batch in batches:
        if needle and needle not in (batch.product.name or "").lower():
            continue
        if category is not None and classify_batch(batch, today=today)[1] != category:
            continue
        result.append(batch)
    return result


def batch_to_dict(batch: InventoryBatch, today: Optional[date] = None) -> Dict[str, Any]:
    """
    Persisted batch shape plus the product pricing snapshot and age.

    Requires batch.product to be loaded.
    """
    age, category = classify_batch(batch, today=today)
    product = batch.product
    return {
        "id": batch.id,
        "product_id": batch.product_id,
        "product_name": product.name if product else None,
        "quantity": batch.quantity,
        "date_added": batch.date_added,
        "updated_at": batch.updated_at,
        "original_price": product.original_price if product else None,
        "sale_price": product.sale_price if product else None,
        "default_return_percentage": product.default_return_percentage if product else None,
        "is_weight_based": product.is_weight_based if product else False,
        "age": age,
        "age_category": category.value,
    }
