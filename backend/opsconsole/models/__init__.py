"""SQLAlchemy models."""

from opsconsole.models.inventory import InventoryItem, InventoryStatus, derive_status
from opsconsole.models.maintenance import (
    InventoryAction,
    MaintenanceTicket,
    MaintenanceType,
    ScheduledMaintenance,
    TicketPriority,
    TicketStatus,
    format_maintenance_type,
)

__all__ = [
    "InventoryItem",
    "InventoryStatus",
    "derive_status",
    "InventoryAction",
    "MaintenanceTicket",
    "MaintenanceType",
    "ScheduledMaintenance",
    "TicketPriority",
    "TicketStatus",
    "format_maintenance_type",
]
