"""Owner notification for processed returns.

Delivery itself belongs to the caller: a notifier is any object with a
send_return_summary(summary) method (an email gateway, a chat webhook, a
test double). This module builds the summary from the committed return,
renders a plain-text body for text channels, and makes delivery best-effort.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol, Tuple

from sqlalchemy.orm import Session, selectinload

from ..models import ReturnRecord
from ..utils.constants import DATE_FORMAT
from .database import session_scope
from .exceptions import ReturnNotFound
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)


class ReturnNotifier(Protocol):
    """Receives the summary of each committed return."""

    def send_return_summary(self, summary: Dict[str, Any]) -> Any:
        ...


def build_return_summary(return_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """
    Summary of a committed return: totals, processor and item table.

    Raises:
        ReturnNotFound: If return_id doesn't exist
    """

    def _do_build(sess: Session) -> Dict[str, Any]:
        record = (
            sess.query(ReturnRecord)
            .options(selectinload(ReturnRecord.items))
            .filter(ReturnRecord.id == return_id)
            .first()
        )
        if record is None:
            raise ReturnNotFound(return_id)

        items: List[Dict[str, Any]] = [
            {
                "product_name": item.product_name,
                "quantity": item.quantity,
                "age_at_return": item.age_at_return,
                "return_percentage": item.return_percentage,
                "return_value_per_unit": item.return_value_per_unit,
                "total_return_value": item.total_return_value,
            }
            for item in record.items
        ]
        return {
            "return_id": record.id,
            "return_date": record.return_date,
            "processed_by": record.processed_by,
            "processed_at": record.processed_at,
            "total_batches": record.total_batches,
            "total_quantity": record.total_quantity,
            "total_value": record.total_value,
            "items": items,
        }

    if session is not None:
        return _do_build(session)
    with session_scope() as sess:
        return _do_build(sess)


def render_return_summary_text(summary: Dict[str, Any]) -> str:
    """Plain-text body for a return summary."""
    processed_at = summary["processed_at"]
    when = processed_at.strftime(f"{DATE_FORMAT} %H:%M") if processed_at else ""
    lines = [
        f"Return #{summary['return_id']} processed",
        "",
        f"Date:           {when}",
        f"Processed by:   {summary['processed_by']}",
        f"Total batches:  {summary['total_batches']}",
        f"Total quantity: {summary['total_quantity']}",
        f"Total value:    {summary['total_value']:.2f}",
    ]
    if summary.get("items"):
        lines.extend(["", "Returned items:"])
        lines.append(f"{'Product':<30} {'Qty':>10} {'Age':>5} {'Return %':>9} {'Value':>10}")
        for item in summary["items"]:
            lines.append(
                f"{item['product_name'][:30]:<30} "
                f"{item['quantity']:>10} "
                f"{item['age_at_return']:>5} "
                f"{item['return_percentage']:>8}% "
                f"{item['total_return_value']:>10.2f}"
            )
    return "\n".join(lines)


def send_return_notification(
    notifier: Optional[ReturnNotifier], summary: Dict[str, Any]
) -> Tuple[bool, Optional[str]]:
    """
    Deliver a summary without letting a failure escape.

    Returns:
        (sent, warning) - sent is True only when the notifier returned
        without raising; warning describes why nothing was sent
    """
    if notifier is None:
        return False, None
    try:
        notifier.send_return_summary(summary)
    except Exception as e:
        log_operation(
            logger,
            operation="send_return_notification",
            outcome="failed",
            level=logging.WARNING,
            return_id=summary.get("return_id"),
            error=str(e),
        )
        return False, f"Return notification failed: {e}"

    log_operation(
        logger,
        operation="send_return_notification",
        outcome="success",
        return_id=summary.get("return_id"),
    )
    return True, None
