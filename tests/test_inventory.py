import logging

from app.labtrack.core.metrics import metrics
from app.labtrack.db.enums import MovementReason
from app.labtrack.repos.inventory import InventoryKey, InventoryRepository
from app.labtrack.services.inventory import InventoryLedger, MovementAttribution


def _attribution(reason=MovementReason.RECEIVE):
    return MovementAttribution(reason=reason, actor_id="user-1")


def test_missing_brand_is_stored_as_empty_key():
    key = InventoryKey.of(" Ethanol 70% ", "ET-70", None)
    assert key == InventoryKey("Ethanol 70%", "ET-70", "")
    assert key.as_dict()["brand"] is None


def test_first_delta_creates_record(db_session):
    ledger = InventoryLedger(db_session)
    key = InventoryKey.of("Ethanol 70%", "ET-70", None)

    movement = ledger.apply_delta(key, 3, _attribution(), unit_price=12, format="1 L")
    db_session.commit()

    record = InventoryRepository(db_session).get_by_key(key)
    assert record.quantity == 3
    assert record.brand == ""
    assert record.format == "1 L"
    assert movement.delta_applied == 3
    assert movement.quantity_after == 3


def test_same_key_accumulates(db_session):
    ledger = InventoryLedger(db_session)
    key = InventoryKey.of("Ethanol 70%", "ET-70", "Sigma")
    ledger.apply_delta(key, 3, _attribution())
    ledger.apply_delta(key, 4, _attribution())
    db_session.commit()

    records = InventoryRepository(db_session).list_records("Ethanol")
    assert len(records) == 1
    assert records[0].quantity == 7


def test_negative_delta_clamps_at_zero(db_session, caplog):
    metrics.reset()
    ledger = InventoryLedger(db_session)
    key = InventoryKey.of("Ethanol 70%", "ET-70", None)
    ledger.apply_delta(key, 2, _attribution())

    with caplog.at_level(logging.WARNING):
        movement = ledger.apply_delta(key, -5, _attribution(MovementReason.REVERT))
    db_session.commit()

    assert movement.delta_requested == -5
    assert movement.delta_applied == -2
    assert movement.quantity_after == 0
    assert InventoryRepository(db_session).get_by_key(key).quantity == 0
    assert "inventory_clamped" in caplog.text
    if metrics.enabled:
        assert 'inventory_clamps_total{reason="REVERT"} 1.0' in metrics.render().content.decode("utf-8")


def test_movements_are_listed_per_record(db_session):
    ledger = InventoryLedger(db_session)
    key = InventoryKey.of("Ethanol 70%", "ET-70", None)
    first = ledger.apply_delta(key, 2, _attribution())
    ledger.apply_delta(key, -1, _attribution(MovementReason.CORRECT))
    db_session.commit()

    movements = InventoryRepository(db_session).list_movements(first.inventory_record_id)
    assert [movement.reason for movement in movements] == ["RECEIVE", "CORRECT"]
