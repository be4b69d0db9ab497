import logging

import pytest
from sqlalchemy import func, select

from app.labtrack.core.error_catalog import AppError
from app.labtrack.db.models import PackingSlip, ReceivedItem
from app.labtrack.repos.inventory import InventoryKey, InventoryRepository
from app.labtrack.services.packing_slips import PackingSlipService, default_slip_number
from app.labtrack.services.reconciliation import ReceiptLine, ReconciliationService
from tests.labtrack_helpers import REQUESTER_ACTOR, RecordingNotifier, create_ordered_request, line_item


def _count(db_session, model) -> int:
    return db_session.execute(select(func.count()).select_from(model)).scalar_one()


def test_default_slip_number_uses_prefix_and_timestamp():
    from datetime import datetime

    assert default_slip_number(datetime(2026, 3, 4, 5, 6, 7, 890)) == "PS-20260304050607000890"


def test_slip_of_completed_reception_cannot_be_deleted(db_session):
    request = create_ordered_request(db_session, [line_item(quantity=2)])
    outcome = ReconciliationService(db_session, RecordingNotifier()).receive(
        request.id, [ReceiptLine(line_item_id=str(request.items[0].id), quantity=2)], REQUESTER_ACTOR
    )

    with pytest.raises(AppError) as exc:
        PackingSlipService(db_session).delete_slip(outcome.slip.id, REQUESTER_ACTOR)

    assert exc.value.code == "SLIP_IN_USE"
    assert _count(db_session, PackingSlip) == 1


def test_slip_delete_before_completion_leaves_inventory(db_session, caplog):
    request = create_ordered_request(db_session, [line_item(quantity=5)])
    outcome = ReconciliationService(db_session, RecordingNotifier()).receive(
        request.id, [ReceiptLine(line_item_id=str(request.items[0].id), quantity=2)], REQUESTER_ACTOR
    )

    with caplog.at_level(logging.WARNING):
        owner = PackingSlipService(db_session).delete_slip(str(outcome.slip.id), REQUESTER_ACTOR)

    assert owner.id == request.id
    assert _count(db_session, PackingSlip) == 0
    assert _count(db_session, ReceivedItem) == 0
    record = InventoryRepository(db_session).get_by_key(InventoryKey.of("Filter pipette tips", "TF-200", "Axygen"))
    assert record.quantity == 2
    assert "packing_slip_deleted_without_reversal" in caplog.text


def test_list_slips_newest_first(db_session):
    request = create_ordered_request(db_session, [line_item(quantity=5)])
    service = ReconciliationService(db_session, RecordingNotifier())
    line_id = str(request.items[0].id)
    service.receive(request.id, [ReceiptLine(line_item_id=line_id, quantity=1)], REQUESTER_ACTOR, slip_number="A")
    service.receive(request.id, [ReceiptLine(line_item_id=line_id, quantity=1)], REQUESTER_ACTOR, slip_number="B")

    slips = PackingSlipService(db_session).list_slips(request.id)

    assert [slip.slip_number for slip in slips] == ["B", "A"]


def test_unknown_slip_is_not_found(db_session):
    with pytest.raises(AppError) as exc:
        PackingSlipService(db_session).delete_slip("not-a-uuid", REQUESTER_ACTOR)
    assert exc.value.code == "NOT_FOUND"
