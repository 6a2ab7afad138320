"""FIFO Consumption Engine - deduct sold quantity from the oldest batches first.

Called by the sales flow once per sold line item. The whole deduction for a
product runs in one transaction while that product's lock is held, so two
concurrent sales of the same product never read the same quantities.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import InventoryBatch, Product
from ..utils.validators import quantize_quantity, to_decimal, validate_positive_quantity
from .database import session_scope
from .exceptions import (
    InsufficientStock,
    ProductNotFound,
    ServiceError,
    TransactionFailure,
    ValidationError as ServiceValidationError,
)
from .locking import hold_product_locks, lock_for_update, product_lock
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)

ZERO = Decimal("0.000")


def _load_active_batches_for_update(sess: Session, product_id: int) -> List[InventoryBatch]:
    query = (
        sess.query(InventoryBatch)
        .filter(InventoryBatch.product_id == product_id, InventoryBatch.quantity > 0)
        .order_by(InventoryBatch.date_added.asc(), InventoryBatch.id.asc())
    )
    return lock_for_update(query).all()


def deduct(
    product_id: int,
    quantity_to_deduct: Any,
    dry_run: bool = False,
    timeout: Optional[float] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """Consume stock of one product using FIFO (oldest batch first).

    Algorithm:
        1. Lock the product and load its active batches ordered by
           (date_added, id)
        2. Compare total availability with the request before touching
           anything; a short request fails with nothing changed
        3. Walk the batches, taking min(remaining, batch.quantity) from each
           until the request is met
        4. Drained batches are left at quantity 0 (no longer active)

    Args:
        product_id: Product being sold
        quantity_to_deduct: Amount sold; must be > 0 (fractional allowed)
        dry_run: If True, compute the same plan without modifying anything
            and report a shortfall instead of raising
        timeout: Seconds to wait for the product lock (None = configured)
        session: Optional database session. If provided, the caller owns the
                 transaction and this function will NOT commit. The product
                 lock is then held until that transaction ends.

    Returns:
        Dict[str, Any]: Deduction result with keys:
            - "product_id" (int)
            - "requested" (Decimal): Normalized requested quantity
            - "consumed" (Decimal): Amount taken from batches
            - "breakdown" (List[Dict]): Per-batch batch_id, date_added,
              quantity_consumed, remaining_in_batch (oldest first)
            - "batches_depleted" (List[int]): Batches drained to 0
            - "satisfied" (bool): True if the request was fully met
            - "shortfall" (Decimal): Unmet amount (0 when satisfied)
            - "dry_run" (bool)

    Raises:
        ValidationError: If quantity_to_deduct <= 0 or not a number
        ProductNotFound: If product_id doesn't exist
        InsufficientStock: If active stock is below the request (not in dry_run)
        TransactionFailure: If the lock times out or the commit fails
    """
    is_valid, error = validate_positive_quantity(quantity_to_deduct, "Quantity to deduct")
    if not is_valid:
        raise ServiceValidationError([error])
    requested = quantize_quantity(to_decimal(quantity_to_deduct))
    if requested <= 0:
        raise ServiceValidationError([f"Quantity to deduct {quantity_to_deduct} rounds to zero"])

    def _do_deduct(sess: Session) -> Dict[str, Any]:
        if sess.query(Product.id).filter(Product.id == product_id).first() is None:
            raise ProductNotFound(product_id)

        batches = _load_active_batches_for_update(sess, product_id)
        available = sum((Decimal(b.quantity) for b in batches), ZERO)

        if available < requested and not dry_run:
            raise InsufficientStock(product_id, requested, available)

        remaining = requested
        breakdown = []
        depleted = []
        for batch in batches:
            if remaining <= 0:
                break
            in_batch = Decimal(batch.quantity)
            take = min(in_batch, remaining)
            left = in_batch - take
            if not dry_run:
                batch.quantity = left
            remaining -= take
            if left == 0:
                depleted.append(batch.id)
            breakdown.append(
                {
                    "batch_id": batch.id,
                    "date_added": batch.date_added,
                    "quantity_consumed": take,
                    "remaining_in_batch": left,
                }
            )

        if not dry_run:
            sess.flush()

        shortfall = max(ZERO, remaining)
        return {
            "product_id": product_id,
            "requested": requested,
            "consumed": requested - shortfall,
            "breakdown": breakdown,
            "batches_depleted": depleted,
            "satisfied": shortfall == 0,
            "shortfall": shortfall,
            "dry_run": dry_run,
        }

    try:
        if session is not None:
            hold_product_locks(session, [product_id], timeout=timeout)
            result = _do_deduct(session)
        else:
            with product_lock([product_id], timeout=timeout):
                with session_scope() as sess:
                    result = _do_deduct(sess)
    except InsufficientStock as e:
        log_operation(
            logger,
            operation="deduct",
            outcome="insufficient_stock",
            product_id=product_id,
            requested=str(e.required),
            available=str(e.available),
        )
        raise
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise TransactionFailure(
            f"Failed to deduct stock for product {product_id}", original_error=e
        )

    log_operation(
        logger,
        operation="deduct",
        outcome="dry_run" if dry_run else "success",
        product_id=product_id,
        requested=str(requested),
        consumed=str(result["consumed"]),
        batches_touched=len(result["breakdown"]),
        batches_depleted=len(result["batches_depleted"]),
    )
    return result
