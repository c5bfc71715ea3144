"""Maintenance models: ScheduledMaintenance and MaintenanceTicket."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from opsconsole.db.base import Base, TimestampMixin


class MaintenanceType(str, Enum):
    """Kind of planned maintenance."""

    CALIBRATION = "calibration"
    INSPECTION = "inspection"
    SERVICING = "servicing"
    REPLACEMENT = "replacement"
    OTHER = "other"


MAINTENANCE_TYPE_LABELS = {
    MaintenanceType.CALIBRATION: "Calibration",
    MaintenanceType.INSPECTION: "Inspection",
    MaintenanceType.SERVICING: "Servicing",
    MaintenanceType.REPLACEMENT: "Replacement",
    MaintenanceType.OTHER: "Maintenance",
}


def format_maintenance_type(maintenance_type: Optional[MaintenanceType]) -> str:
    """Human label used in ticket titles and reminders."""
    return MAINTENANCE_TYPE_LABELS.get(maintenance_type, "Maintenance")


class InventoryAction(str, Enum):
    """Side effect a maintenance ticket has on stock."""

    DEDUCT = "deduct"  # Remove units from stock for the duration
    STATUS_ONLY = "status-only"  # Keep units in stock but hold them as in-maintenance
    NONE = "none"


class TicketPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TicketStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class ScheduledMaintenance(TimestampMixin, Base):
    """A planned future maintenance event for one inventory item."""

    __tablename__ = "scheduled_maintenance"
    __table_args__ = (
        CheckConstraint("quantity_affected >= 1", name="ck_schedule_quantity_affected_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    item_id: Mapped[int] = mapped_column(
        ForeignKey("inventory_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    maintenance_type: Mapped[MaintenanceType] = mapped_column(
        SQLEnum(MaintenanceType), nullable=False, default=MaintenanceType.OTHER
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    completed_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    completed_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    # Set once by promotion; no FK so ticket and schedule rows don't form a cycle
    ticket_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, unique=True)
    inventory_action: Mapped[InventoryAction] = mapped_column(
        SQLEnum(InventoryAction), nullable=False, default=InventoryAction.NONE
    )
    quantity_affected: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    reminder_14_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reminder_7_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reminder_1_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Relationships
    item: Mapped["InventoryItem"] = relationship("InventoryItem", back_populates="maintenance_schedules")

    def reminder_sent(self, days: int) -> bool:
        return bool(getattr(self, f"reminder_{days}_sent"))

    @property
    def all_reminders_sent(self) -> bool:
        return self.reminder_14_sent and self.reminder_7_sent and self.reminder_1_sent


class MaintenanceTicket(TimestampMixin, Base):
    """An actionable maintenance work ticket."""

    __tablename__ = "maintenance_tickets"
    __table_args__ = (
        CheckConstraint("quantity_deducted >= 0", name="ck_ticket_quantity_deducted_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    item_id: Mapped[int] = mapped_column(
        ForeignKey("inventory_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    reported_by: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    priority: Mapped[TicketPriority] = mapped_column(
        SQLEnum(TicketPriority), nullable=False, default=TicketPriority.MEDIUM
    )
    status: Mapped[TicketStatus] = mapped_column(
        SQLEnum(TicketStatus), nullable=False, default=TicketStatus.OPEN, index=True
    )
    reported_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    resolved_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    assigned_to: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    resolution_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    scheduled_maintenance_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("scheduled_maintenance.id", ondelete="SET NULL"), nullable=True, index=True
    )
    inventory_action: Mapped[Optional[InventoryAction]] = mapped_column(
        SQLEnum(InventoryAction), nullable=True, default=InventoryAction.NONE
    )
    # Amount actually applied (deducted or held), captured at apply time
    quantity_deducted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    inventory_restored: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    inventory_apply_pending: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="0"
    )

    # Relationships
    item: Mapped["InventoryItem"] = relationship("InventoryItem")
    scheduled_maintenance: Mapped[Optional["ScheduledMaintenance"]] = relationship("ScheduledMaintenance")

    @property
    def is_resolved(self) -> bool:
        return self.status in (TicketStatus.RESOLVED, TicketStatus.CLOSED)


# Forward references
from opsconsole.models.inventory import InventoryItem  # noqa: E402
