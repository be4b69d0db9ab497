import threading

import pytest
from sqlalchemy.exc import OperationalError

from app.labtrack.core.error_catalog import AppError
from app.labtrack.core.errors import is_lock_timeout
from app.labtrack.services.aggregation import aggregate_by_line_item
from app.labtrack.services.packing_slips import PackingSlipService
from app.labtrack.services.reconciliation import ReceiptLine, ReconciliationService
from app.labtrack.services.unit_of_work import write_transaction
from tests.labtrack_helpers import REQUESTER_ACTOR, RecordingNotifier, create_ordered_request, line_item


def test_racing_receipts_cannot_overrun_ordered_quantity(db_session, monkeypatch):
    if db_session.bind.dialect.name != "sqlite":
        pytest.skip("row locks serialize these writers before validation on this backend")

    from app.labtrack.db.session import SessionLocal

    request = create_ordered_request(db_session, [line_item(quantity=5)])
    request_id = request.id
    line_id = str(request.items[0].id)

    both_validated = threading.Barrier(2, timeout=10)
    original_create_slip = PackingSlipService.create_slip

    def create_slip_after_both_validated(self, *args, **kwargs):
        both_validated.wait()
        return original_create_slip(self, *args, **kwargs)

    monkeypatch.setattr(PackingSlipService, "create_slip", create_slip_after_both_validated)

    results = []

    def receive_four():
        db = SessionLocal()
        try:
            ReconciliationService(db, RecordingNotifier()).receive(
                request_id, [ReceiptLine(line_item_id=line_id, quantity=4)], REQUESTER_ACTOR
            )
            results.append("ok")
        except AppError as exc:
            results.append(exc.code)
        except OperationalError as exc:
            results.append("LOCK_TIMEOUT" if is_lock_timeout(exc) else exc.__class__.__name__)
        finally:
            db.close()

    workers = [threading.Thread(target=receive_four) for _ in range(2)]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join(timeout=60)

    assert len(results) == 2
    assert results.count("ok") == 1
    assert set(results) - {"ok"} <= {"CONCURRENT_MODIFICATION", "LOCK_TIMEOUT"}

    db_session.expire_all()
    fresh = ReconciliationService(db_session, RecordingNotifier()).requests.load(request_id)
    assert aggregate_by_line_item(db_session, fresh.id, fresh.items)[line_id] == 4
    assert len(fresh.slips) == 1


def test_stale_request_write_is_rejected(db_session):
    from app.labtrack.db.session import SessionLocal

    request = create_ordered_request(db_session, [line_item(quantity=5)])
    line_id = str(request.items[0].id)

    other = SessionLocal()
    try:
        stale = ReconciliationService(other, RecordingNotifier()).requests.load(request.id)
        ReconciliationService(db_session, RecordingNotifier()).receive(
            request.id, [ReceiptLine(line_item_id=line_id, quantity=2)], REQUESTER_ACTOR
        )

        stale.notes = "edited from an old read"
        with pytest.raises(AppError) as exc:
            with write_transaction(other, {"request_id": str(request.id)}):
                pass
        assert exc.value.code == "CONCURRENT_MODIFICATION"
    finally:
        other.close()
