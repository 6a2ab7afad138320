"""Undo Engine - reverse a committed return.

Each ReturnItem becomes a fresh batch of the same product and quantity,
dated so that it shows the same age it had when it was returned
(date_added = today - age_at_return). The return record and its items are
then deleted. Either everything is restored or nothing is.

The return_undone audit event is best-effort; a failing sink comes back as
a warning in the result.
"""

from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import InventoryBatch, Product
from ..models.enums import AuditEventName
from ..utils.datetime_utils import get_clock
from .audit_events import AuditSink, emit_audit_event
from .database import session_scope
from .exceptions import (
    ProductNotFound,
    ServiceError,
    TransactionFailure,
)
from .locking import hold_product_locks, product_lock
from .logging_utils import get_service_logger, log_operation
from .return_service import get_return

logger = get_service_logger(__name__)


def _return_product_ids(return_id: int, session: Optional[Session] = None) -> List[int]:
    if session is not None:
        return [item.product_id for item in get_return(return_id, session=session).items]
    with session_scope() as sess:
        return [item.product_id for item in get_return(return_id, session=sess).items]


def undo_return(
    return_id: int,
    audit_sink: Optional[AuditSink] = None,
    timeout: Optional[float] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Restore the batches of a return and delete the return.

    Args:
        return_id: Return to reverse
        audit_sink: Optional audit collaborator (best-effort)
        timeout: Seconds to wait for each product lock
        session: Optional database session. If provided, the caller owns the
                 transaction and this function will NOT commit. The product
                 locks are then held until that transaction ends.

    Returns:
        Dict with return_id, batches_restored, and the undone return's
        processed_by, total_batches, total_quantity and total_value, plus
        warnings (list of audit delivery problems)

    Raises:
        ReturnNotFound: If return_id doesn't exist (including a second undo)
        ProductNotFound: If an item's product was deleted since the return;
            nothing is restored
        TransactionFailure: Lock timeout or failed commit
    """

    def _do_undo(sess: Session) -> Dict[str, Any]:
        record = get_return(return_id, session=sess)
        today = get_clock().today()

        product_ids = {item.product_id for item in record.items if item.product_id is not None}
        existing = {
            pid for (pid,) in sess.query(Product.id).filter(Product.id.in_(product_ids)).all()
        }
        for item in record.items:
            if item.product_id is None or item.product_id not in existing:
                raise ProductNotFound(item.product_id)

        for item in record.items:
            sess.add(
                InventoryBatch(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    date_added=today - timedelta(days=item.age_at_return),
                )
            )
        undone = {
            "return_id": record.id,
            "batches_restored": len(record.items),
            "processed_by": record.processed_by,
            "total_batches": record.total_batches,
            "total_quantity": record.total_quantity,
            "total_value": record.total_value,
        }
        sess.delete(record)
        sess.flush()
        return undone

    try:
        if session is not None:
            hold_product_locks(session, _return_product_ids(return_id, session), timeout=timeout)
            result = _do_undo(session)
        else:
            with product_lock(_return_product_ids(return_id), timeout=timeout):
                with session_scope() as sess:
                    result = _do_undo(sess)
    except ServiceError as e:
        log_operation(
            logger,
            operation="undo_return",
            outcome=type(e).__name__,
            return_id=return_id,
            error=str(e),
        )
        raise
    except SQLAlchemyError as e:
        raise TransactionFailure(f"Failed to undo return {return_id}", original_error=e)

    log_operation(
        logger,
        operation="undo_return",
        outcome="success",
        return_id=return_id,
        batches_restored=result["batches_restored"],
        total_value=str(result["total_value"]),
    )

    warnings: List[str] = []
    audit_warning = emit_audit_event(
        AuditEventName.RETURN_UNDONE,
        {
            "return_id": return_id,
            "processed_by": result["processed_by"],
            "batches_restored": result["batches_restored"],
            "total_batches": result["total_batches"],
            "total_quantity": str(result["total_quantity"]),
            "total_value": str(result["total_value"]),
        },
        sink=audit_sink,
    )
    if audit_warning:
        warnings.append(audit_warning)

    result["warnings"] = warnings
    return result
