from app.labtrack.db.models import RequestLineItem
from app.labtrack.services.aggregation import aggregate_by_line_item, is_fully_received, remaining
from app.labtrack.services.reconciliation import ReceiptLine, ReconciliationService
from app.labtrack.services.requests import RequestService
from tests.labtrack_helpers import (
    REQUESTER_ACTOR,
    RecordingNotifier,
    create_ordered_request,
    line_item,
    lines_by_catalog,
)


def test_remaining_floors_at_zero():
    line = RequestLineItem(quantity=5)
    assert remaining(line, 2) == 3
    assert remaining(line, 5) == 0
    assert remaining(line, 7) == 0


def test_request_without_lines_is_never_fully_received():
    assert is_fully_received([], {}) is False


def test_every_line_is_present_with_zero_default(db_session):
    request = create_ordered_request(
        db_session,
        [line_item(quantity=4), line_item(product_name="Nitrile gloves", catalog_number="NG-M", brand=None, quantity=2)],
    )
    lines = lines_by_catalog(request)
    ReconciliationService(db_session, RecordingNotifier()).receive(
        request.id, [ReceiptLine(line_item_id=str(lines["TF-200"].id), quantity=3)], REQUESTER_ACTOR
    )

    totals = aggregate_by_line_item(db_session, request.id, request.items)

    assert totals == {str(lines["TF-200"].id): 3, str(lines["NG-M"].id): 0}
    assert not is_fully_received(request.items, totals)


def test_aggregation_is_repeatable(db_session):
    request = create_ordered_request(db_session, [line_item(quantity=4)])
    service = ReconciliationService(db_session, RecordingNotifier())
    service.receive(request.id, [ReceiptLine(line_item_id=str(request.items[0].id), quantity=3)], REQUESTER_ACTOR)

    first = service.aggregated_received(request.id)
    second = service.aggregated_received(request.id)

    assert first.totals == second.totals
    assert first.fully_received == second.fully_received is False


def test_lowering_ordered_quantity_after_receipt_is_satisfied(db_session):
    request = create_ordered_request(db_session, [line_item(quantity=5)])
    line_id = str(request.items[0].id)
    ReconciliationService(db_session, RecordingNotifier()).receive(
        request.id, [ReceiptLine(line_item_id=line_id, quantity=4)], REQUESTER_ACTOR
    )

    outcome = RequestService(db_session, RecordingNotifier()).update_line_item(
        request.id, line_id, {"quantity": 3}, REQUESTER_ACTOR
    )

    assert outcome.totals[line_id] == 4
    assert remaining(outcome.request.items[0], outcome.totals[line_id]) == 0
    assert outcome.fully_received
