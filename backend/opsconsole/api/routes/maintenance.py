"""Maintenance ticket routes - inventory apply/restore and completion."""

import logging
from typing import Optional

from fastapi import APIRouter, Request

from opsconsole.core.clock import ClockDep
from opsconsole.core.rate_limit import limiter
from opsconsole.core.rbac import CurrentUser
from opsconsole.db.session import DbSession
from opsconsole.schemas.maintenance import (
    MaintenanceTicketResponse,
    RestoreInventoryResponse,
    TicketCompleteRequest,
)
from opsconsole.services.maintenance_scheduler_service import MaintenanceSchedulerService
from opsconsole.services.ticket_store import TicketStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{ticket_id}", response_model=MaintenanceTicketResponse)
def get_ticket(ticket_id: int, db: DbSession, current_user: CurrentUser):
    return TicketStore(db).get(ticket_id)


@router.post("/{ticket_id}/apply-inventory", response_model=MaintenanceTicketResponse)
@limiter.limit("30/minute")
def apply_inventory(
    request: Request, ticket_id: int, db: DbSession, current_user: CurrentUser, clock: ClockDep
):
    """Retry the inventory action of a ticket left pending by a failed promotion."""
    return MaintenanceSchedulerService(db, clock=clock).retry_inventory_apply(ticket_id)


@router.post("/{ticket_id}/restore-inventory", response_model=RestoreInventoryResponse)
@limiter.limit("30/minute")
def restore_inventory(
    request: Request, ticket_id: int, db: DbSession, current_user: CurrentUser, clock: ClockDep
):
    restored = MaintenanceSchedulerService(db, clock=clock).restore_inventory(ticket_id)
    return {"ticket_id": ticket_id, "restored": restored}


@router.post("/{ticket_id}/complete", response_model=MaintenanceTicketResponse)
@limiter.limit("30/minute")
def complete_ticket(
    request: Request,
    ticket_id: int,
    db: DbSession,
    current_user: CurrentUser,
    clock: ClockDep,
    data: Optional[TicketCompleteRequest] = None,
):
    """Resolve or close a ticket; restores inventory and completes its schedule."""
    data = data or TicketCompleteRequest()
    return MaintenanceSchedulerService(db, clock=clock).complete_ticket(
        ticket_id,
        current_user.user_id,
        resolution_notes=data.resolution_notes,
        status=data.status,
    )
