"""Returns Processor - value and commit end-of-day returns to the supplier.

Staff pick a working set of active batches, mark some to keep for tomorrow,
and optionally override the return percentage per batch. Every other batch
is returned: credited at original_price x percentage / 100 per unit,
recorded as a ReturnRecord with one ReturnItem per batch, and removed from
stock. All of that commits together or not at all.

Valuation:
    effective percentage = override for the batch, else the product's
        default_return_percentage, else DEFAULT_RETURN_PERCENTAGE (20)
    return_value_per_unit = round_half_up(original_price * pct / 100, 0.01)
    total_return_value    = round_half_up(original_price * pct / 100 * quantity, 0.01)

The per-unit figure is rounded for display; the line total is rounded once,
from the unrounded per-unit value times quantity.

Overrides apply to the one return only; products are never updated.
Kept batches are not touched.

After commit the owner notification and the audit event are best-effort:
their failures come back as warnings in the result.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from ..models import InventoryBatch, ReturnItem, ReturnRecord
from ..models.enums import AgeCategory, AuditEventName
from ..utils.constants import DEFAULT_RETURN_PERCENTAGE, MAX_ACTOR_LENGTH
from ..utils.datetime_utils import get_clock
from ..utils.validators import (
    quantize_money,
    quantize_quantity,
    to_decimal,
    validate_required_string,
    validate_return_percentage,
)
from .audit_events import AuditSink, emit_audit_event
from .batch_age_service import classify_batch, sort_batches_fifo
from .database import session_scope
from .exceptions import (
    BatchNotFound,
    NothingToReturn,
    ReturnNotFound,
    ServiceError,
    TransactionFailure,
    ValidationError as ServiceValidationError,
)
from .locking import lock_for_update, product_lock
from .logging_utils import get_service_logger, log_operation
from .notification_service import (
    ReturnNotifier,
    build_return_summary,
    send_return_notification,
)

logger = get_service_logger(__name__)

ZERO_QUANTITY = Decimal("0.000")
ZERO_MONEY = Decimal("0.00")


@dataclass
class ReturnPlanLine:
    """Valuation of one batch selected for return."""

    batch_id: int
    product_id: int
    product_name: str
    quantity: Decimal
    date_added: date
    age: int
    age_category: AgeCategory
    original_price: Decimal
    sale_price: Decimal
    return_percentage: Decimal
    return_value_per_unit: Decimal
    total_return_value: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "date_added": self.date_added,
            "age": self.age,
            "age_category": self.age_category.value,
            "original_price": self.original_price,
            "sale_price": self.sale_price,
            "return_percentage": self.return_percentage,
            "return_value_per_unit": self.return_value_per_unit,
            "total_return_value": self.total_return_value,
        }


@dataclass
class ReturnPlan:
    """A partitioned and valued return selection. Nothing is persisted."""

    to_return: List[ReturnPlanLine] = field(default_factory=list)
    to_keep: List[int] = field(default_factory=list)

    @property
    def total_batches(self) -> int:
        return len(self.to_return)

    @property
    def total_quantity(self) -> Decimal:
        return sum((line.quantity for line in self.to_return), ZERO_QUANTITY)

    @property
    def total_value(self) -> Decimal:
        return sum((line.total_return_value for line in self.to_return), ZERO_MONEY)

    def product_breakdown(self) -> Dict[int, Dict[str, Any]]:
        """Per-product batches, quantity and value of the lines to return."""
        breakdown: Dict[int, Dict[str, Any]] = {}
        for line in self.to_return:
            entry = breakdown.setdefault(
                line.product_id,
                {
                    "product_name": line.product_name,
                    "batches": 0,
                    "quantity": ZERO_QUANTITY,
                    "value": ZERO_MONEY,
                },
            )
            entry["batches"] += 1
            entry["quantity"] += line.quantity
            entry["value"] += line.total_return_value
        return breakdown

    def to_dict(self) -> Dict[str, Any]:
        return {
            "to_return": [line.to_dict() for line in self.to_return],
            "to_keep": list(self.to_keep),
            "total_batches": self.total_batches,
            "total_quantity": self.total_quantity,
            "total_value": self.total_value,
            "product_breakdown": self.product_breakdown(),
        }


def _effective_percentage(batch: InventoryBatch, overrides: Mapping[int, Decimal]) -> Decimal:
    if batch.id in overrides:
        return overrides[batch.id]
    default = batch.product.default_return_percentage
    if default is not None:
        return Decimal(default)
    return DEFAULT_RETURN_PERCENTAGE


def _normalize_overrides(percentage_overrides: Optional[Mapping[int, Any]]) -> Dict[int, Decimal]:
    if not percentage_overrides:
        return {}
    errors = []
    overrides: Dict[int, Decimal] = {}
    for batch_id, value in percentage_overrides.items():
        is_valid, error = validate_return_percentage(
            value, f"Return percentage for batch {batch_id}"
        )
        if not is_valid:
            errors.append(error)
            continue
        overrides[int(batch_id)] = to_decimal(value)
    if errors:
        raise ServiceValidationError(errors)
    return overrides


def build_return_plan(
    batches: Iterable[InventoryBatch],
    keep_batch_ids: Iterable[int] = (),
    percentage_overrides: Optional[Mapping[int, Any]] = None,
    today: Optional[date] = None,
) -> ReturnPlan:
    """
    Partition candidate batches into return and keep, and value the returns.

    Pure: reads batch.product for pricing, writes nothing.

    Args:
        batches: Candidate active batches with product loaded
        keep_batch_ids: Candidates to leave in stock
        percentage_overrides: batch_id -> percentage for this return only
        today: Reference date for age_at_return

    Returns:
        ReturnPlan with lines in FIFO order

    Raises:
        ValidationError: If a percentage is outside [0, 100] or a keep id is
            not among the candidates
    """
    candidates = sort_batches_fifo(batches)
    candidate_ids = {b.id for b in candidates}
    keep = {int(batch_id) for batch_id in keep_batch_ids}

    unknown_keep = sorted(keep - candidate_ids)
    if unknown_keep:
        raise ServiceValidationError(
            [f"Batch {batch_id} marked keep is not a return candidate" for batch_id in unknown_keep]
        )

    overrides = _normalize_overrides(percentage_overrides)
    if today is None:
        today = get_clock().today()

    plan = ReturnPlan()
    for batch in candidates:
        if batch.id in keep:
            plan.to_keep.append(batch.id)
            continue

        product = batch.product
        quantity = quantize_quantity(Decimal(batch.quantity))
        original_price = quantize_money(Decimal(product.original_price))
        percentage = _effective_percentage(batch, overrides)
        unit_value = original_price * percentage / Decimal("100")
        age, category = classify_batch(batch, today=today)

        plan.to_return.append(
            ReturnPlanLine(
                batch_id=batch.id,
                product_id=batch.product_id,
                product_name=product.name,
                quantity=quantity,
                date_added=batch.date_added,
                age=age,
                age_category=category,
                original_price=original_price,
                sale_price=quantize_money(Decimal(product.sale_price)),
                return_percentage=percentage,
                return_value_per_unit=quantize_money(unit_value),
                total_return_value=quantize_money(unit_value * quantity),
            )
        )
    return plan


def _load_candidates(
    sess: Session, candidate_batch_ids: Sequence[int], for_update: bool = False
) -> List[InventoryBatch]:
    """Load candidate batches with product; any missing or inactive id fails."""
    query = (
        sess.query(InventoryBatch)
        .options(joinedload(InventoryBatch.product))
        .filter(InventoryBatch.id.in_(candidate_batch_ids))
    )
    if for_update:
        query = lock_for_update(query)
    found = {b.id: b for b in query.all()}
    for batch_id in candidate_batch_ids:
        batch = found.get(batch_id)
        if batch is None or not batch.is_active:
            raise BatchNotFound(batch_id)
    return [found[batch_id] for batch_id in candidate_batch_ids]


def _unique_ids(ids: Iterable[int]) -> List[int]:
    return list(dict.fromkeys(int(i) for i in ids))


def preview_return(
    candidate_batch_ids: Iterable[int],
    keep_batch_ids: Iterable[int] = (),
    percentage_overrides: Optional[Mapping[int, Any]] = None,
) -> Dict[str, Any]:
    """
    Live summary of a return selection (what the returns screen shows).

    Same valuation as process_return, nothing written. An all-kept selection
    previews as zero totals rather than failing.

    Raises:
        BatchNotFound: If a candidate is missing or no longer active
        ValidationError: As build_return_plan
    """
    ids = _unique_ids(candidate_batch_ids)
    with session_scope() as sess:
        batches = _load_candidates(sess, ids)
        plan = build_return_plan(batches, keep_batch_ids, percentage_overrides)
    return plan.to_dict()


def _delete_returned_batches(sess: Session, batch_ids: Sequence[int]) -> None:
    (
        sess.query(InventoryBatch)
        .filter(InventoryBatch.id.in_(batch_ids))
        .delete(synchronize_session=False)
    )


def _write_return(sess: Session, plan: ReturnPlan, processed_by: str) -> ReturnRecord:
    processed_at = get_clock().now()
    record = ReturnRecord(
        return_date=processed_at.date(),
        processed_by=processed_by,
        processed_at=processed_at,
        total_batches=plan.total_batches,
        total_quantity=plan.total_quantity,
        total_value=plan.total_value,
        notification_sent=False,
    )
    for line in plan.to_return:
        record.items.append(
            ReturnItem(
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=line.quantity,
                age_at_return=line.age,
                date_batch_added=line.date_added,
                original_price=line.original_price,
                sale_price=line.sale_price,
                return_percentage=line.return_percentage,
                return_value_per_unit=line.return_value_per_unit,
                total_return_value=line.total_return_value,
            )
        )
    sess.add(record)
    sess.flush()
    _delete_returned_batches(sess, [line.batch_id for line in plan.to_return])
    sess.flush()
    return record


def _mark_notification_sent(return_id: int) -> Optional[str]:
    try:
        with session_scope() as sess:
            sess.query(ReturnRecord).filter(ReturnRecord.id == return_id).update(
                {ReturnRecord.notification_sent: True}, synchronize_session=False
            )
    except SQLAlchemyError as e:
        log_operation(
            logger,
            operation="mark_notification_sent",
            outcome="failed",
            level=logging.WARNING,
            return_id=return_id,
            error=str(e),
        )
        return f"Notification sent but flag not recorded: {e}"
    return None


def process_return(
    candidate_batch_ids: Iterable[int],
    processed_by: str,
    keep_batch_ids: Iterable[int] = (),
    percentage_overrides: Optional[Mapping[int, Any]] = None,
    notifier: Optional[ReturnNotifier] = None,
    audit_sink: Optional[AuditSink] = None,
    timeout: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Commit a return of every candidate batch not marked keep.

    The candidates are re-read inside the transaction while the locks of all
    their products are held, so the valuation uses current quantities.

    There is no session argument: the return always commits in its own
    transaction before the notification and audit event go out.

    Args:
        candidate_batch_ids: The working set shown to staff
        processed_by: Opaque reference to the acting user
        keep_batch_ids: Candidates to leave in stock
        percentage_overrides: batch_id -> percentage for this return only
        notifier: Optional owner notifier (best-effort, after commit)
        audit_sink: Optional audit collaborator (best-effort, after commit)
        timeout: Seconds to wait for each product lock

    Returns:
        Dict with return_id, return_date, processed_by, processed_at,
        total_batches, total_quantity, total_value, notification_sent and
        warnings (list of post-commit problems)

    Raises:
        ValidationError: Bad actor, percentage or keep id
        BatchNotFound: A candidate is missing or no longer active
        NothingToReturn: Every candidate is kept (nothing is written)
        TransactionFailure: Lock timeout or failed commit (nothing is written)
    """
    is_valid, error = validate_required_string(processed_by, "Processed by")
    if not is_valid:
        raise ServiceValidationError([error])
    processed_by = str(processed_by).strip()
    if len(processed_by) > MAX_ACTOR_LENGTH:
        raise ServiceValidationError(
            [f"Processed by: must be {MAX_ACTOR_LENGTH} characters or less"]
        )

    ids = _unique_ids(candidate_batch_ids)
    keep_ids = _unique_ids(keep_batch_ids)
    if not ids:
        raise NothingToReturn(0)

    try:
        with session_scope() as sess:
            product_ids = [b.product_id for b in _load_candidates(sess, ids)]

        with product_lock(product_ids, timeout=timeout):
            with session_scope() as sess:
                batches = _load_candidates(sess, ids, for_update=True)
                plan = build_return_plan(batches, keep_ids, percentage_overrides)
                if not plan.to_return:
                    raise NothingToReturn(len(ids))
                record = _write_return(sess, plan, processed_by)
                return_id = record.id
                result = {
                    "return_id": return_id,
                    "return_date": record.return_date,
                    "processed_by": record.processed_by,
                    "processed_at": record.processed_at,
                    "total_batches": record.total_batches,
                    "total_quantity": record.total_quantity,
                    "total_value": record.total_value,
                }
    except ServiceError as e:
        log_operation(
            logger,
            operation="process_return",
            outcome=type(e).__name__,
            level=logging.WARNING,
            candidate_count=len(ids),
            error=str(e),
        )
        raise
    except SQLAlchemyError as e:
        raise TransactionFailure("Failed to commit return", original_error=e)

    log_operation(
        logger,
        operation="process_return",
        outcome="success",
        return_id=return_id,
        processed_by=processed_by,
        total_batches=result["total_batches"],
        total_quantity=str(result["total_quantity"]),
        total_value=str(result["total_value"]),
        kept_batches=len(plan.to_keep),
    )

    warnings: List[str] = []
    notification_sent = False
    if notifier is not None:
        summary = build_return_summary(return_id)
        notification_sent, warning = send_return_notification(notifier, summary)
        if warning:
            warnings.append(warning)
        if notification_sent:
            flag_warning = _mark_notification_sent(return_id)
            if flag_warning:
                warnings.append(flag_warning)

    audit_warning = emit_audit_event(
        AuditEventName.RETURN_PROCESSED,
        {
            "return_id": return_id,
            "processed_by": processed_by,
            "total_batches": result["total_batches"],
            "total_quantity": str(result["total_quantity"]),
            "total_value": str(result["total_value"]),
        },
        sink=audit_sink,
    )
    if audit_warning:
        warnings.append(audit_warning)

    result["notification_sent"] = notification_sent
    result["warnings"] = warnings
    return result


def get_return(return_id: int, session: Optional[Session] = None) -> ReturnRecord:
    """
    Retrieve a return record with its items loaded.

    Raises:
        ReturnNotFound: If return_id doesn't exist
    """

    def _do_get(sess: Session) -> ReturnRecord:
        record = (
            sess.query(ReturnRecord)
            .options(selectinload(ReturnRecord.items))
            .filter(ReturnRecord.id == return_id)
            .first()
        )
        if record is None:
            raise ReturnNotFound(return_id)
        return record

    if session is not None:
        return _do_get(session)
    with session_scope() as sess:
        return _do_get(sess)


def get_return_details(return_id: int) -> Dict[str, Any]:
    """Return record and its items as plain dicts (the returned log view)."""
    with session_scope() as sess:
        return get_return(return_id, session=sess).to_dict(include_relationships=True)


def list_returns(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    session: Optional[Session] = None,
) -> List[ReturnRecord]:
    """
    Return records with return_date in [start_date, end_date], newest first.

    Either bound may be omitted.
    """
    if start_date and end_date and start_date > end_date:
        raise ServiceValidationError(["Start date must be on or before end date"])

    def _do_list(sess: Session) -> List[ReturnRecord]:
        query = sess.query(ReturnRecord)
        if start_date is not None:
            query = query.filter(ReturnRecord.return_date >= start_date)
        if end_date is not None:
            query = query.filter(ReturnRecord.return_date <= end_date)
        return query.order_by(ReturnRecord.processed_at.desc(), ReturnRecord.id.desc()).all()

    if session is not None:
        return _do_list(session)
    with session_scope() as sess:
        return _do_list(sess)
