"""Scheduled maintenance and ticket schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from opsconsole.models.inventory import InventoryStatus
from opsconsole.models.maintenance import (
    InventoryAction,
    MaintenanceType,
    TicketPriority,
    TicketStatus,
)


class InventoryItemSummary(BaseModel):
    """Item fields embedded in schedule responses."""

    id: int
    title: str
    sku: str
    quantity: int
    minimum_stock: int
    in_maintenance_quantity: int
    status: InventoryStatus
    next_maintenance_date: Optional[date] = None

    model_config = {"from_attributes": True}


class ScheduledMaintenanceCreate(BaseModel):
    item_id: int
    maintenance_type: MaintenanceType
    description: Optional[str] = None
    scheduled_date: date
    inventory_action: InventoryAction = InventoryAction.NONE
    quantity_affected: int = Field(1, ge=1)


class ScheduledMaintenanceUpdate(BaseModel):
    """Partial update; only fields present in the request body are applied."""

    maintenance_type: Optional[MaintenanceType] = None
    description: Optional[str] = None
    scheduled_date: Optional[date] = None
    inventory_action: Optional[InventoryAction] = None
    quantity_affected: Optional[int] = Field(None, ge=1)


class ScheduledMaintenanceResponse(BaseModel):
    id: int
    item_id: int
    maintenance_type: MaintenanceType
    description: Optional[str] = None
    scheduled_date: date
    is_completed: bool
    completed_date: Optional[date] = None
    completed_by: Optional[int] = None
    ticket_id: Optional[int] = None
    inventory_action: InventoryAction
    quantity_affected: int
    reminder_14_sent: bool
    reminder_7_sent: bool
    reminder_1_sent: bool
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    item: Optional[InventoryItemSummary] = None

    model_config = {"from_attributes": True}


class MaintenanceTicketResponse(BaseModel):
    id: int
    item_id: int
    reported_by: int
    title: str
    description: Optional[str] = None
    priority: TicketPriority
    status: TicketStatus
    reported_date: datetime
    resolved_date: Optional[datetime] = None
    assigned_to: Optional[int] = None
    resolution_notes: Optional[str] = None
    category: Optional[str] = None
    scheduled_maintenance_id: Optional[int] = None
    inventory_action: Optional[InventoryAction] = None
    quantity_deducted: int
    inventory_restored: bool
    inventory_apply_pending: bool

    model_config = {"from_attributes": True}


class TicketCompleteRequest(BaseModel):
    resolution_notes: Optional[str] = None
    status: TicketStatus = TicketStatus.RESOLVED


class RestoreInventoryResponse(BaseModel):
    ticket_id: int
    restored: bool


class MaintenanceStats(BaseModel):
    total: int
    upcoming: int
    overdue: int
    completed_this_month: int


class ReminderSweepResult(BaseModel):
    reminders_sent: int
    overdue_alerts_sent: int
    failed: int


class StatusResyncResult(BaseModel):
    corrected: int
