"""Tests for the return summary and best-effort notification."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from cafe_ledger.services import batch_service, return_service
from cafe_ledger.services.audit_events import AuditEvent, emit_audit_event
from cafe_ledger.models.enums import AuditEventName
from cafe_ledger.services.exceptions import ReturnNotFound
from cafe_ledger.services.notification_service import (
    build_return_summary,
    render_return_summary_text,
    send_return_notification,
)

TODAY = date(2025, 3, 10)


@pytest.fixture
def return_id(test_db, croissant):
    batch = batch_service.create_batch(croissant.id, 4, date_added=TODAY - timedelta(days=9))
    return return_service.process_return([batch.id], "alice")["return_id"]


def test_build_summary(return_id):
    summary = build_return_summary(return_id)

    assert summary["processed_by"] == "alice"
    assert summary["total_batches"] == 1
    assert summary["total_value"] == Decimal("80.00")
    assert summary["items"] == [
        {
            "product_name": "Croissant",
            "quantity": Decimal("4.000"),
            "age_at_return": 9,
            "return_percentage": Decimal("20.00"),
            "return_value_per_unit": Decimal("20.00"),
            "total_return_value": Decimal("80.00"),
        }
    ]


def test_build_summary_unknown_return(test_db):
    with pytest.raises(ReturnNotFound):
        build_return_summary(5)


def test_render_text(return_id):
    text = render_return_summary_text(build_return_summary(return_id))

    assert f"Return #{return_id} processed" in text
    assert "Processed by:   alice" in text
    assert "2025-03-10 09:00" in text
    assert "Croissant" in text
    assert "80.00" in text


def test_send_without_notifier_is_silent():
    assert send_return_notification(None, {"return_id": 1}) == (False, None)


def test_send_swallows_failure():
    class Broken:
        def send_return_summary(self, summary):
            raise TimeoutError("gateway timeout")

    sent, warning = send_return_notification(Broken(), {"return_id": 1})

    assert sent is False
    assert "gateway timeout" in warning


def test_audit_event_is_logged_without_sink(caplog):
    with caplog.at_level("INFO", logger="cafe_ledger.services"):
        warning = emit_audit_event(AuditEventName.RETURN_UNDONE, {"return_id": 3})

    assert warning is None
    record = caplog.records[-1]
    assert record.audit_event == "return_undone"
    assert record.audit_return_id == 3


def test_audit_event_to_dict(frozen_clock):
    captured = []
    emit_audit_event("return_processed", {"return_id": 1}, sink=captured.append)

    event = captured[0]
    assert isinstance(event, AuditEvent)
    assert event.to_dict() == {
        "name": "return_processed",
        "occurred_at": "2025-03-10T09:00:00",
        "payload": {"return_id": 1},
    }
