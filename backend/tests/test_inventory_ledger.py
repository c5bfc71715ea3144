"""Tests for the inventory ledger: status derivation, counters, resync."""

import pytest
from sqlalchemy import update

from opsconsole.core.exceptions import ConcurrencyConflict, InsufficientQuantity, NotFound
from opsconsole.models.inventory import InventoryItem, InventoryStatus, derive_status
from opsconsole.resync_inventory_status import main as resync_main
from opsconsole.services.inventory_ledger import InventoryLedger


class TestDeriveStatus:

    @pytest.mark.parametrize(
        "quantity,minimum_stock,in_maintenance,expected",
        [
            (0, 0, 0, InventoryStatus.OUT_OF_STOCK),
            (0, 5, 3, InventoryStatus.OUT_OF_STOCK),
            (5, 2, 5, InventoryStatus.IN_MAINTENANCE),
            (2, 5, 3, InventoryStatus.IN_MAINTENANCE),
            (2, 2, 0, InventoryStatus.LOW_STOCK),
            (3, 2, 1, InventoryStatus.AVAILABLE),
            (10, 2, 0, InventoryStatus.AVAILABLE),
        ],
    )
    def test_precedence(self, quantity, minimum_stock, in_maintenance, expected):
        assert derive_status(quantity, minimum_stock, in_maintenance) == expected

    def test_new_item_gets_derived_status(self, make_item):
        assert make_item(quantity=0).status == InventoryStatus.OUT_OF_STOCK
        assert make_item(quantity=1, minimum_stock=3).status == InventoryStatus.LOW_STOCK


class TestLedgerAdjustments:

    def test_get_missing_item(self, db_session):
        with pytest.raises(NotFound):
            InventoryLedger(db_session).get_item(999)

    def test_deduct_and_restock(self, db_session, test_item):
        ledger = InventoryLedger(db_session)
        item = ledger.get_item(test_item.id, for_update=True)

        assert ledger.deduct(item, 8) == InventoryStatus.LOW_STOCK
        assert item.quantity == 2
        assert ledger.deduct(item, 2) == InventoryStatus.OUT_OF_STOCK
        assert ledger.restock(item, 10) == InventoryStatus.AVAILABLE
        assert item.quantity == 10

    def test_deduct_beyond_stock_leaves_item_untouched(self, db_session, make_item):
        ledger = InventoryLedger(db_session)
        item = make_item(quantity=2)

        with pytest.raises(InsufficientQuantity) as exc_info:
            ledger.deduct(item, 5)

        assert exc_info.value.available == 2
        assert exc_info.value.requested == 5
        assert item.quantity == 2

    def test_hold_and_release(self, db_session, make_item):
        ledger = InventoryLedger(db_session)
        item = make_item(quantity=2, minimum_stock=0)

        assert ledger.hold(item, 2) == InventoryStatus.IN_MAINTENANCE
        assert item.quantity == 2
        assert ledger.release(item, 5) == InventoryStatus.AVAILABLE
        assert item.in_maintenance_quantity == 0

    def test_save_bumps_version(self, db_session, test_item):
        ledger = InventoryLedger(db_session)
        version = test_item.version

        ledger.deduct(test_item, 1)
        ledger.save_item(test_item)
        db_session.commit()

        assert test_item.version == version + 1

    def test_concurrent_write_is_a_conflict(self, db_session, session_factory, test_item):
        ledger = InventoryLedger(db_session)
        item = ledger.get_item(test_item.id)

        other = session_factory()
        try:
            rival = other.query(InventoryItem).filter(InventoryItem.id == test_item.id).one()
            rival.quantity = 4
            other.commit()
        finally:
            other.close()

        ledger.deduct(item, 1)
        with pytest.raises(ConcurrencyConflict):
            ledger.save_item(item)
        db_session.rollback()


class TestStatusResync:

    def _corrupt(self, db_session, item_id, status):
        db_session.execute(
            update(InventoryItem.__table__)
            .where(InventoryItem.__table__.c.id == item_id)
            .values(status=status.name)
        )
        db_session.commit()

    def test_resync_corrects_stale_rows(self, db_session, make_item):
        healthy = make_item(quantity=10)
        stale = make_item(quantity=0)
        self._corrupt(db_session, stale.id, InventoryStatus.AVAILABLE)
        db_session.expire_all()

        assert InventoryLedger(db_session).resync_statuses() == 1

        db_session.refresh(stale)
        db_session.refresh(healthy)
        assert stale.status == InventoryStatus.OUT_OF_STOCK
        assert healthy.status == InventoryStatus.AVAILABLE

    def test_resync_cli_dry_run_writes_nothing(self, db_session, session_factory, make_item, capsys):
        stale = make_item(quantity=0)
        self._corrupt(db_session, stale.id, InventoryStatus.AVAILABLE)

        assert resync_main(["--dry-run"], session_factory=session_factory) == 0
        assert "1 item(s) would be corrected" in capsys.readouterr().out

        db_session.expire_all()
        assert db_session.get(InventoryItem, stale.id).status == InventoryStatus.AVAILABLE

    def test_resync_cli(self, db_session, session_factory, make_item, capsys):
        stale = make_item(quantity=0)
        self._corrupt(db_session, stale.id, InventoryStatus.AVAILABLE)

        assert resync_main([], session_factory=session_factory) == 0
        assert "1 item(s) corrected" in capsys.readouterr().out

        db_session.expire_all()
        assert db_session.get(InventoryItem, stale.id).status == InventoryStatus.OUT_OF_STOCK
