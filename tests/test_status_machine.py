import pytest

from app.labtrack.core.error_catalog import AppError
from app.labtrack.db.enums import RequestStatus
from app.labtrack.db.models import PurchaseRequest
from app.labtrack.services.status_machine import (
    OVERRIDE_INTO_RECEIVED_WARNING,
    TRANSITIONS,
    check_transition,
    ensure_receivable,
    promote_to_received,
)


def _request(status, **kwargs):
    return PurchaseRequest(vendor_id="vendor-1", requester_id="user-1", status=status, **kwargs)


@pytest.mark.parametrize(
    "current,target",
    [
        (RequestStatus.PENDING, RequestStatus.QUOTE_REQUESTED),
        (RequestStatus.PENDING, RequestStatus.DENIED),
        (RequestStatus.QUOTE_REQUESTED, RequestStatus.PO_REQUESTED),
        (RequestStatus.QUOTE_REQUESTED, RequestStatus.DENIED),
        (RequestStatus.PO_REQUESTED, RequestStatus.CANCELLED),
        (RequestStatus.ORDERED, RequestStatus.CANCELLED),
    ],
)
def test_allowed_edges(current, target):
    decision = check_transition(_request(current), target)
    assert decision.changed
    assert decision.previous == current
    assert decision.warnings == []


def test_terminal_statuses_have_no_edges():
    assert TRANSITIONS[RequestStatus.DENIED] == frozenset()
    assert TRANSITIONS[RequestStatus.CANCELLED] == frozenset()
    assert TRANSITIONS[RequestStatus.RECEIVED] == frozenset()


@pytest.mark.parametrize(
    "current,target",
    [
        (RequestStatus.PENDING, RequestStatus.ORDERED),
        (RequestStatus.QUOTE_REQUESTED, RequestStatus.ORDERED),
        (RequestStatus.DENIED, RequestStatus.PENDING),
        (RequestStatus.CANCELLED, RequestStatus.ORDERED),
        (RequestStatus.ORDERED, RequestStatus.PENDING),
    ],
)
def test_disallowed_edges(current, target):
    with pytest.raises(AppError) as exc:
        check_transition(_request(current), target)
    assert exc.value.code == "INVALID_TRANSITION"


def test_received_is_never_requested_directly():
    with pytest.raises(AppError) as exc:
        check_transition(_request(RequestStatus.ORDERED), RequestStatus.RECEIVED)
    assert exc.value.code == "INVALID_TRANSITION"


def test_pending_to_po_requested_needs_quote():
    with pytest.raises(AppError) as exc:
        check_transition(_request(RequestStatus.PENDING), RequestStatus.PO_REQUESTED)
    assert exc.value.code == "INVALID_TRANSITION"
    assert "quote" in exc.value.details["message"]

    decision = check_transition(
        _request(RequestStatus.PENDING, quote_url="quotes/q.pdf"), RequestStatus.PO_REQUESTED
    )
    assert decision.changed


def test_ordered_needs_po_number():
    with pytest.raises(AppError):
        check_transition(_request(RequestStatus.PO_REQUESTED), RequestStatus.ORDERED)
    decision = check_transition(_request(RequestStatus.PO_REQUESTED, po_number="PO-1"), RequestStatus.ORDERED)
    assert decision.changed


def test_same_status_is_noop():
    decision = check_transition(_request(RequestStatus.RECEIVED), RequestStatus.RECEIVED)
    assert not decision.changed


def test_override_requires_capability():
    with pytest.raises(AppError) as exc:
        check_transition(_request(RequestStatus.PENDING), RequestStatus.ORDERED, override=True, role="REQUESTER")
    assert exc.value.code == "PERMISSION_DENIED"

    decision = check_transition(
        _request(RequestStatus.PENDING), RequestStatus.ORDERED, override=True, role="account manager"
    )
    assert decision.changed


def test_override_into_received_warns():
    decision = check_transition(_request(RequestStatus.ORDERED), RequestStatus.RECEIVED, override=True, role="ADMIN")
    assert decision.warnings == [OVERRIDE_INTO_RECEIVED_WARNING]


def test_override_cannot_leave_received():
    with pytest.raises(AppError) as exc:
        check_transition(_request(RequestStatus.RECEIVED), RequestStatus.ORDERED, override=True, role="ADMIN")
    assert exc.value.code == "INVALID_TRANSITION"


def test_promote_to_received_only_once():
    request = _request(RequestStatus.ORDERED)
    assert promote_to_received(request) is True
    assert request.status == RequestStatus.RECEIVED
    assert promote_to_received(request) is False


@pytest.mark.parametrize("status", [RequestStatus.PENDING, RequestStatus.PO_REQUESTED, RequestStatus.CANCELLED])
def test_only_ordered_or_received_requests_are_receivable(status):
    with pytest.raises(AppError) as exc:
        ensure_receivable(_request(status))
    assert exc.value.code == "REQUEST_NOT_RECEIVABLE"
    ensure_receivable(_request(RequestStatus.ORDERED))
    ensure_receivable(_request(RequestStatus.RECEIVED))
