"""Ticket Store - persistence for MaintenanceTicket rows."""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from opsconsole.core.exceptions import NotFound
from opsconsole.models.maintenance import (
    InventoryAction,
    MaintenanceTicket,
    TicketPriority,
    TicketStatus,
)

logger = logging.getLogger(__name__)


class TicketStore:
    """Data access for maintenance tickets. Never commits."""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        item_id: int,
        reported_by: int,
        title: str,
        description: Optional[str] = None,
        priority: TicketPriority = TicketPriority.MEDIUM,
        category: Optional[str] = None,
        scheduled_maintenance_id: Optional[int] = None,
        inventory_action: InventoryAction = InventoryAction.NONE,
        reported_date: Optional[datetime] = None,
    ) -> MaintenanceTicket:
        """Insert an OPEN ticket with no inventory effect applied yet."""
        ticket = MaintenanceTicket(
            item_id=item_id,
            reported_by=reported_by,
            title=title[:255],
            description=description,
            priority=priority,
            status=TicketStatus.OPEN,
            reported_date=reported_date or datetime.now(timezone.utc),
            category=category,
            scheduled_maintenance_id=scheduled_maintenance_id,
            inventory_action=inventory_action,
            quantity_deducted=0,
            inventory_restored=False,
            inventory_apply_pending=False,
        )
        self.db.add(ticket)
        self.db.flush()
        return ticket

    def find(self, ticket_id: int, for_update: bool = False) -> Optional[MaintenanceTicket]:
        query = self.db.query(MaintenanceTicket).filter(MaintenanceTicket.id == ticket_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    def get(self, ticket_id: int, for_update: bool = False) -> MaintenanceTicket:
        ticket = self.find(ticket_id, for_update=for_update)
        if ticket is None:
            raise NotFound("Maintenance ticket", ticket_id)
        return ticket

    def save(self, ticket: MaintenanceTicket) -> MaintenanceTicket:
        self.db.add(ticket)
        self.db.flush()
        return ticket

    def claim_restore(self, ticket_id: int) -> bool:
        """Flip inventory_restored from False to True; False if already flipped."""
        result = self.db.execute(
            update(MaintenanceTicket)
            .where(
                MaintenanceTicket.id == ticket_id,
                MaintenanceTicket.inventory_restored.is_(False),
                MaintenanceTicket.inventory_apply_pending.is_(False),
            )
            .values(inventory_restored=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def claim_pending_apply(self, ticket_id: int) -> bool:
        """Clear inventory_apply_pending; False if nothing was pending."""
        result = self.db.execute(
            update(MaintenanceTicket)
            .where(
                MaintenanceTicket.id == ticket_id,
                MaintenanceTicket.inventory_apply_pending.is_(True),
            )
            .values(inventory_apply_pending=False)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def for_schedule(self, schedule_id: int) -> List[MaintenanceTicket]:
        return (
            self.db.query(MaintenanceTicket)
            .filter(MaintenanceTicket.scheduled_maintenance_id == schedule_id)
            .order_by(MaintenanceTicket.id)
            .all()
        )
