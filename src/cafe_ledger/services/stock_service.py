"""Stock Aggregator - current stock per product.

Read-only sums over active batches (quantity > 0).
"""

from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import InventoryBatch
from ..utils.validators import quantize_quantity
from .database import session_scope
from .exceptions import TransactionFailure

ZERO = Decimal("0.000")


def _as_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    return quantize_quantity(Decimal(str(value)))


def total_stock(product_id: int, session: Optional[Session] = None) -> Decimal:
    """
    Sum of quantities across a product's active batches.

    Returns:
        Decimal total, Decimal("0.000") when the product has no active batch
        (including unknown product ids)
    """

    def _do_total(sess: Session) -> Decimal:
        value = (
            sess.query(func.sum(InventoryBatch.quantity))
            .filter(InventoryBatch.product_id == product_id, InventoryBatch.quantity > 0)
            .scalar()
        )
        return _as_decimal(value)

    try:
        if session is not None:
            return _do_total(session)
        with session_scope() as sess:
            return _do_total(sess)
    except SQLAlchemyError as e:
        raise TransactionFailure(
            f"Failed to read stock for product {product_id}", original_error=e
        )


def stock_by_product(session: Optional[Session] = None) -> Dict[int, Decimal]:
    """Active stock of every product that has any, keyed by product id."""

    def _do_group(sess: Session) -> Dict[int, Decimal]:
        rows = (
            sess.query(InventoryBatch.product_id, func.sum(InventoryBatch.quantity))
            .filter(InventoryBatch.quantity > 0)
            .group_by(InventoryBatch.product_id)
            .all()
        )
        return {product_id: _as_decimal(total) for product_id, total in rows}

    try:
        if session is not None:
            return _do_group(session)
        with session_scope() as sess:
            return _do_group(sess)
    except SQLAlchemyError as e:
        raise TransactionFailure("Failed to read stock levels", original_error=e)
