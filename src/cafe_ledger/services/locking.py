"""Per-product serialization for read-modify-write ledger operations.

FIFO deduction, return commit and undo each read a product's active
batches, compute deltas and write them back. Two such operations on the
same product must not interleave, or both could observe the same stale
quantities and together over-deduct.

Two layers:
- product_lock(): an in-process lock per product id, acquired in ascending
  id order so multi-product operations cannot deadlock each other
- lock_for_update(): SELECT ... FOR UPDATE on the batch rows for databases
  that honor it (SQLite ignores it; the file lock serializes writers there)

When a service runs inside a session the caller owns, the product locks
it takes stay held until that session's transaction ends (commit, rollback
or close), not just until the service returns. See hold_product_locks().

run_with_retry() is offered to callers that want to retry a
TransactionFailure; the services never retry on their own.
"""

import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterable, List, Optional, TypeVar

from sqlalchemy import event
from sqlalchemy.orm import Session

from ..utils.config import get_config
from .exceptions import TransactionFailure
from .logging_utils import get_service_logger

logger = get_service_logger(__name__)

T = TypeVar("T")

_registry_guard = threading.Lock()
_product_locks: Dict[int, threading.Lock] = {}

# session.info key for locks that live as long as the session's transaction
SESSION_LOCKS_KEY = "cafe_ledger.product_locks"


def _get_lock(product_id: int) -> threading.Lock:
    with _registry_guard:
        lock = _product_locks.get(product_id)
        if lock is None:
            lock = threading.Lock()
            _product_locks[product_id] = lock
        return lock


def _ordered_ids(product_ids: Iterable[int]) -> List[int]:
    return sorted({int(pid) for pid in product_ids if pid is not None})


def _acquire_all(ordered: List[int], timeout: Optional[float]) -> Dict[int, threading.Lock]:
    """Acquire in order; on timeout release what was taken and raise."""
    if timeout is None:
        timeout = get_config().lock_timeout

    acquired: Dict[int, threading.Lock] = {}
    for pid in ordered:
        lock = _get_lock(pid)
        if not lock.acquire(timeout=timeout):
            _release_all(acquired)
            logger.warning(f"Timed out after {timeout}s waiting for product {pid} lock")
            raise TransactionFailure(f"timed out waiting for lock on product {pid}")
        acquired[pid] = lock
    return acquired


def _release_all(acquired: Dict[int, threading.Lock]) -> None:
    for lock in reversed(list(acquired.values())):
        lock.release()


@contextmanager
def product_lock(product_ids: Iterable[int], timeout: Optional[float] = None):
    """
    Hold the locks of every given product for the duration of the block.

    Args:
        product_ids: Product ids to serialize on (duplicates are ignored)
        timeout: Seconds to wait for each lock; None uses the configured
            lock timeout

    Raises:
        TransactionFailure: If a lock could not be acquired in time. No
            lock is held when this is raised.
    """
    ordered = _ordered_ids(product_ids)
    acquired = _acquire_all(ordered, timeout)
    try:
        yield ordered
    finally:
        _release_all(acquired)


def hold_product_locks(
    session: Session, product_ids: Iterable[int], timeout: Optional[float] = None
) -> List[int]:
    """
    Take product locks that stay held until the session's transaction ends.

    Used when a service runs inside a caller-owned session: the writes are
    not committed when the service returns, so the locks must outlive the
    call. Products the session already holds are not locked again, so one
    transaction may deduct the same product several times.

    Ids are locked in ascending order within one call only. A transaction
    that locks product 5 and later product 3 can wait on another one doing
    the reverse; the timeout turns that into a TransactionFailure.

    Returns:
        Every product id the session now holds, sorted

    Raises:
        TransactionFailure: If a lock could not be acquired in time. Locks
            taken by this call are released; earlier ones stay with the
            session.
    """
    # Begin now so the transaction whose end releases the locks exists
    session.connection()
    held = session.info.setdefault(SESSION_LOCKS_KEY, {})
    wanted = [pid for pid in _ordered_ids(product_ids) if pid not in held]
    held.update(_acquire_all(wanted, timeout))
    return sorted(held)


@event.listens_for(Session, "after_transaction_end")
def _release_session_locks(session, transaction):
    if transaction.parent is not None:
        return
    held = session.info.pop(SESSION_LOCKS_KEY, None)
    if held:
        _release_all(held)


def lock_for_update(query):
    """
    Apply row-level locking to a query.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(
    func: Callable[[], T], *, attempts: int = 3, backoff_base: float = 0.1
) -> T:
    """
    Execute a ledger operation, retrying on TransactionFailure.

    Every other ServiceError propagates immediately; business-rule errors
    are not retryable.

    Args:
        func: Zero-argument callable performing the whole operation
        attempts: Total attempts (>= 1)
        backoff_base: First backoff in seconds, doubled after each failure

    Returns:
        Whatever func returns
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt in range(attempts):
        try:
            return func()
        except TransactionFailure as exc:
            if attempt >= attempts - 1:
                raise
            delay = backoff_base * (2 ** attempt)
            logger.warning(
                f"Transaction failed (attempt {attempt + 1}/{attempts}), "
                f"retrying in {delay:.2f}s: {exc}"
            )
            time.sleep(delay)
    raise AssertionError("unreachable")
