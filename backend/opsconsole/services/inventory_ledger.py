"""Inventory Ledger - owns the stock counters of an inventory item.

Every mutation of ``quantity`` / ``in_maintenance_quantity`` made by the
maintenance engine goes through this class, and every mutation ends with a
status recomputation via ``derive_status``.

Concurrency:
- ``get_item(..., for_update=True)`` issues ``SELECT ... FOR UPDATE`` so two
  promotions against the same item serialize on the row (PostgreSQL/MySQL).
- ``InventoryItem.version`` is the mapper's ``version_id_col``; when a row
  lock is unavailable (SQLite) a lost update surfaces as ``ConcurrencyConflict``
  at flush time instead of silently driving stock negative.
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from opsconsole.core.exceptions import ConcurrencyConflict, InsufficientQuantity, NotFound
from opsconsole.models.inventory import InventoryItem, InventoryStatus, derive_status

logger = logging.getLogger(__name__)

__all__ = ["InventoryLedger", "derive_status"]


class InventoryLedger:
    """Read/adjust operations on inventory items used by the maintenance engine."""

    def __init__(self, db: Session):
        self.db = db

    def find_item(self, item_id: int, for_update: bool = False) -> Optional[InventoryItem]:
        query = self.db.query(InventoryItem).filter(InventoryItem.id == item_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    def get_item(self, item_id: int, for_update: bool = False) -> InventoryItem:
        """Load an item or raise NotFound."""
        item = self.find_item(item_id, for_update=for_update)
        if item is None:
            raise NotFound("Inventory item", item_id)
        return item

    def save_item(self, item: InventoryItem) -> InventoryItem:
        """Flush pending item changes, translating version conflicts."""
        self.db.add(item)
        try:
            self.db.flush()
        except StaleDataError as e:
            logger.warning(f"Concurrent update detected on inventory item {item.id}: {e}")
            raise ConcurrencyConflict(
                f"Inventory item {item.id} was modified concurrently, retry the operation"
            ) from e
        return item

    # ===== STOCK COUNTER ADJUSTMENTS =====

    def deduct(self, item: InventoryItem, quantity: int) -> InventoryStatus:
        """Remove ``quantity`` units from stock. Item is untouched on failure."""
        if item.quantity < quantity:
            raise InsufficientQuantity(item.id, item.quantity, quantity)
        item.quantity -= quantity
        return item.refresh_status()

    def restock(self, item: InventoryItem, quantity: int) -> InventoryStatus:
        item.quantity += quantity
        return item.refresh_status()

    def hold(self, item: InventoryItem, quantity: int) -> InventoryStatus:
        """Mark ``quantity`` units as in maintenance without leaving stock."""
        item.in_maintenance_quantity = (item.in_maintenance_quantity or 0) + quantity
        return item.refresh_status()

    def release(self, item: InventoryItem, quantity: int) -> InventoryStatus:
        item.in_maintenance_quantity = max(0, (item.in_maintenance_quantity or 0) - quantity)
        return item.refresh_status()

    def set_next_maintenance_date(self, item: InventoryItem, value: Optional[date]) -> None:
        if item.next_maintenance_date != value:
            logger.debug(
                f"Item {item.id} next maintenance date {item.next_maintenance_date} -> {value}"
            )
            item.next_maintenance_date = value

    # ===== REPAIR =====

    def resync_statuses(self) -> int:
        """Recompute the status of every item and commit.

        Returns the number of items whose stored status was stale.
        """
        changed = 0
        try:
            for item in self.db.query(InventoryItem).order_by(InventoryItem.id).all():
                expected = derive_status(
                    item.quantity or 0, item.minimum_stock or 0, item.in_maintenance_quantity or 0
                )
                if item.status != expected:
                    logger.info(f"Item {item.id} status {item.status} -> {expected}")
                    item.status = expected
                    changed += 1
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Inventory status resync complete: {changed} item(s) corrected")
        return changed
