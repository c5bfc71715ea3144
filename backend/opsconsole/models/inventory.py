"""Inventory item model and its derived stock status."""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import List, Optional

from sqlalchemy import CheckConstraint, Date, Enum as SQLEnum, Integer, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from opsconsole.db.base import Base, TimestampMixin


class InventoryStatus(str, Enum):
    """Stock status of an inventory item."""

    AVAILABLE = "available"
    LOW_STOCK = "low-stock"
    OUT_OF_STOCK = "out-of-stock"
    IN_MAINTENANCE = "in-maintenance"


def derive_status(quantity: int, minimum_stock: int, in_maintenance_quantity: int) -> InventoryStatus:
    """Status is a pure function of the three stock counters.

    Precedence: out of stock, then in maintenance (everything left is held),
    then low stock, then available.
    """
    if quantity == 0:
        return InventoryStatus.OUT_OF_STOCK
    if in_maintenance_quantity >= quantity:
        return InventoryStatus.IN_MAINTENANCE
    if quantity <= minimum_stock:
        return InventoryStatus.LOW_STOCK
    return InventoryStatus.AVAILABLE


class InventoryItem(TimestampMixin, Base):
    """A stocked item (equipment, consumable) that can be maintained."""

    __tablename__ = "inventory_items"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
        CheckConstraint("minimum_stock >= 0", name="ck_inventory_minimum_stock_non_negative"),
        CheckConstraint(
            "in_maintenance_quantity >= 0", name="ck_inventory_in_maintenance_non_negative"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    sku: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="general")
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    unit_of_measure: Mapped[str] = mapped_column(String(50), nullable=False, default="pcs")
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    minimum_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    in_maintenance_quantity: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    status: Mapped[InventoryStatus] = mapped_column(
        SQLEnum(InventoryStatus), nullable=False, default=InventoryStatus.AVAILABLE
    )
    next_maintenance_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True, index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Bumped by the ORM on every UPDATE; a stale write raises StaleDataError
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    maintenance_schedules: Mapped[List["ScheduledMaintenance"]] = relationship(
        "ScheduledMaintenance",
        back_populates="item",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def refresh_status(self) -> InventoryStatus:
        self.status = derive_status(
            self.quantity or 0, self.minimum_stock or 0, self.in_maintenance_quantity or 0
        )
        return self.status


# Forward references
from opsconsole.models.maintenance import ScheduledMaintenance  # noqa: E402


@event.listens_for(InventoryItem, "before_insert")
@event.listens_for(InventoryItem, "before_update")
def _keep_status_derived(mapper, connection, target: InventoryItem) -> None:
    target.refresh_status()
