import pytest
from sqlalchemy import select

from app.labtrack.core.error_catalog import AppError
from app.labtrack.db.enums import RequestStatus
from app.labtrack.db.models import InventoryMovement
from app.labtrack.repos.inventory import InventoryKey, InventoryRepository
from app.labtrack.services.notifications import REQUEST_RECEIVED
from app.labtrack.services.reconciliation import (
    CORRECTION_ABSTAIN_WARNING,
    ReceiptLine,
    ReconciliationService,
)
from tests.labtrack_helpers import REQUESTER_ACTOR, RecordingNotifier, create_ordered_request, line_item


def _on_hand(db_session):
    return InventoryRepository(db_session).get_by_key(InventoryKey.of("Filter pipette tips", "TF-200", "Axygen")).quantity


def _receive(service, request, quantity):
    line_id = str(request.items[0].id)
    outcome = service.receive(request.id, [ReceiptLine(line_item_id=line_id, quantity=quantity)], REQUESTER_ACTOR)
    return outcome, outcome.slip.items[0]


def test_correction_round_trip_restores_inventory(db_session):
    service = ReconciliationService(db_session, RecordingNotifier())
    request = create_ordered_request(db_session, [line_item(quantity=10)])
    _, item = _receive(service, request, 6)
    assert _on_hand(db_session) == 6

    outcome = service.correct_received_item(item.id, 4, REQUESTER_ACTOR)
    assert outcome.totals[str(request.items[0].id)] == 4
    assert _on_hand(db_session) == 4

    service.correct_received_item(item.id, 6, REQUESTER_ACTOR)
    assert _on_hand(db_session) == 6

    reasons = db_session.execute(
        select(InventoryMovement.reason, InventoryMovement.delta_applied).order_by(InventoryMovement.created_at)
    ).all()
    assert [tuple(row) for row in reasons] == [("RECEIVE", 6), ("CORRECT", -2), ("CORRECT", 2)]


def test_same_quantity_is_noop(db_session):
    service = ReconciliationService(db_session, RecordingNotifier())
    request = create_ordered_request(db_session, [line_item(quantity=10)])
    _, item = _receive(service, request, 6)

    outcome = service.correct_received_item(item.id, 6, REQUESTER_ACTOR)

    assert outcome.status_changed is False
    assert len(db_session.execute(select(InventoryMovement)).scalars().all()) == 1


def test_correction_cannot_exceed_ordered(db_session):
    service = ReconciliationService(db_session, RecordingNotifier())
    request = create_ordered_request(db_session, [line_item(quantity=10)])
    _, item = _receive(service, request, 6)

    with pytest.raises(AppError) as exc:
        service.correct_received_item(item.id, 11, REQUESTER_ACTOR)
    assert exc.value.code == "EXCEEDS_ORDERED"
    assert _on_hand(db_session) == 6


def test_negative_quantity_rejected(db_session):
    service = ReconciliationService(db_session, RecordingNotifier())
    request = create_ordered_request(db_session, [line_item(quantity=10)])
    _, item = _receive(service, request, 6)

    with pytest.raises(AppError) as exc:
        service.correct_received_item(item.id, -1, REQUESTER_ACTOR)
    assert exc.value.code == "NEGATIVE_RESULT"


def test_correction_completing_request_promotes_once(db_session):
    notifier = RecordingNotifier()
    service = ReconciliationService(db_session, notifier)
    request = create_ordered_request(db_session, [line_item(quantity=5)])
    _, item = _receive(service, request, 3)

    outcome = service.correct_received_item(item.id, 5, REQUESTER_ACTOR)

    assert outcome.request.status == RequestStatus.RECEIVED
    assert outcome.status_changed is True
    assert len(notifier.named(REQUEST_RECEIVED)) == 1


def test_correction_below_ordered_keeps_received(db_session):
    notifier = RecordingNotifier()
    service = ReconciliationService(db_session, notifier)
    request = create_ordered_request(db_session, [line_item(quantity=5)])
    _, item = _receive(service, request, 5)

    outcome = service.correct_received_item(item.id, 3, REQUESTER_ACTOR)

    assert outcome.request.status == RequestStatus.RECEIVED
    assert outcome.status_changed is False
    assert outcome.warnings == [CORRECTION_ABSTAIN_WARNING]
    assert not outcome.fully_received
    assert _on_hand(db_session) == 3
    assert len(notifier.named(REQUEST_RECEIVED)) == 1


def test_unknown_received_item(db_session):
    with pytest.raises(AppError) as exc:
        ReconciliationService(db_session, RecordingNotifier()).correct_received_item(
            "00000000-0000-0000-0000-000000000000", 1, REQUESTER_ACTOR
        )
    assert exc.value.code == "NOT_FOUND"
