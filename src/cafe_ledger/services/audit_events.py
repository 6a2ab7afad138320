"""Audit events for committed returns and undos.

The ledger does not keep its own audit table. Each committed return or undo
produces one AuditEvent that is always logged and, when a sink is supplied,
handed to it. A sink is any callable taking the event; a sink that raises
is reported as a warning and never affects the committed data.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..models.enums import AuditEventName
from ..utils.datetime_utils import get_clock
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)

AuditSink = Callable[["AuditEvent"], None]


@dataclass(frozen=True)
class AuditEvent:
    """One audit-worthy ledger change."""

    name: AuditEventName
    occurred_at: datetime
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name.value,
            "occurred_at": self.occurred_at.isoformat(),
            "payload": dict(self.payload),
        }


def emit_audit_event(
    name: AuditEventName,
    payload: Dict[str, Any],
    sink: Optional[AuditSink] = None,
) -> Optional[str]:
    """
    Log an audit event and forward it to the sink.

    Args:
        name: Event name
        payload: Return id, totals, actor, batch count
        sink: Optional callable receiving the AuditEvent

    Returns:
        A warning message if the sink failed, else None
    """
    event = AuditEvent(name=AuditEventName(name), occurred_at=get_clock().now(), payload=dict(payload))
    log_operation(
        logger,
        operation="audit",
        outcome=event.name.value,
        audit_event=event.name.value,
        **{f"audit_{key}": value for key, value in event.payload.items()},
    )

    if sink is None:
        return None
    try:
        sink(event)
    except Exception as e:
        warning = f"Audit sink failed for {event.name.value}: {e}"
        log_operation(
            logger,
            operation="audit",
            outcome="sink_failed",
            level=logging.WARNING,
            audit_event=event.name.value,
            error=str(e),
        )
        return warning
    return None
