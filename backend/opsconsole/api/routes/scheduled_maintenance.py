"""Scheduled maintenance routes.

Reads go through MaintenanceQueryService, every mutation through
MaintenanceSchedulerService. Domain errors are rendered by the application's
MaintenanceError handler.
"""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Query, Request, Response, status
from fastapi.responses import JSONResponse

from opsconsole.core.clock import ClockDep
from opsconsole.core.rate_limit import limiter
from opsconsole.core.rbac import CurrentUser, RequireManager
from opsconsole.db.session import DbSession
from opsconsole.models.maintenance import MaintenanceType
from opsconsole.schemas.maintenance import (
    MaintenanceStats,
    MaintenanceTicketResponse,
    ReminderSweepResult,
    ScheduledMaintenanceCreate,
    ScheduledMaintenanceResponse,
    ScheduledMaintenanceUpdate,
)
from opsconsole.services.maintenance_query_service import MaintenanceQueryService
from opsconsole.services.maintenance_reminder_service import ReminderSweep
from opsconsole.services.maintenance_scheduler_service import (
    MaintenanceSchedulerService,
    Promoted,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ==================== LISTINGS ====================

@router.get("", response_model=List[ScheduledMaintenanceResponse])
def list_schedules(
    db: DbSession,
    current_user: CurrentUser,
    clock: ClockDep,
    item_id: Optional[int] = None,
    is_completed: Optional[bool] = None,
    maintenance_type: Optional[MaintenanceType] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
):
    """List schedules, earliest first."""
    return MaintenanceQueryService(db, clock=clock).get_schedules(
        item_id=item_id,
        is_completed=is_completed,
        maintenance_type=maintenance_type,
        from_date=from_date,
        to_date=to_date,
    )


@router.get("/upcoming", response_model=List[ScheduledMaintenanceResponse])
def list_upcoming(
    db: DbSession,
    current_user: CurrentUser,
    clock: ClockDep,
    days: Optional[int] = Query(None, ge=0, le=365),
):
    return MaintenanceQueryService(db, clock=clock).get_upcoming(days)


@router.get("/overdue", response_model=List[ScheduledMaintenanceResponse])
def list_overdue(db: DbSession, current_user: CurrentUser, clock: ClockDep):
    return MaintenanceQueryService(db, clock=clock).get_overdue()


@router.get("/reminders", response_model=List[ScheduledMaintenanceResponse])
def list_needing_reminders(db: DbSession, current_user: CurrentUser, clock: ClockDep):
    return MaintenanceQueryService(db, clock=clock).get_schedules_needing_reminders()


@router.get("/stats", response_model=MaintenanceStats)
def get_stats(db: DbSession, current_user: CurrentUser, clock: ClockDep):
    return MaintenanceQueryService(db, clock=clock).get_stats()


@router.get("/item/{item_id}", response_model=List[ScheduledMaintenanceResponse])
def list_for_item(item_id: int, db: DbSession, current_user: CurrentUser, clock: ClockDep):
    return MaintenanceQueryService(db, clock=clock).get_schedules(item_id=item_id)


@router.post("/trigger-reminders", response_model=ReminderSweepResult)
@limiter.limit("5/minute")
def trigger_reminders(
    request: Request, db: DbSession, current_user: RequireManager, clock: ClockDep
):
    """Run one reminder sweep now instead of waiting for the scheduler."""
    logger.info(f"Reminder sweep triggered by user {current_user.user_id}")
    return ReminderSweep(clock=clock).run(db)


@router.get("/{schedule_id}", response_model=ScheduledMaintenanceResponse)
def get_schedule(schedule_id: int, db: DbSession, current_user: CurrentUser, clock: ClockDep):
    return MaintenanceQueryService(db, clock=clock).get_schedule(schedule_id)


# ==================== MUTATIONS ====================

@router.post("", response_model=ScheduledMaintenanceResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_schedule(
    request: Request,
    data: ScheduledMaintenanceCreate,
    db: DbSession,
    current_user: CurrentUser,
    clock: ClockDep,
):
    return MaintenanceSchedulerService(db, clock=clock).create_schedule(
        item_id=data.item_id,
        maintenance_type=data.maintenance_type,
        scheduled_date=data.scheduled_date,
        description=data.description,
        inventory_action=data.inventory_action,
        quantity_affected=data.quantity_affected,
        created_by=current_user.user_id,
    )


@router.put("/{schedule_id}", response_model=ScheduledMaintenanceResponse)
@limiter.limit("30/minute")
def update_schedule(
    request: Request,
    schedule_id: int,
    data: ScheduledMaintenanceUpdate,
    db: DbSession,
    current_user: CurrentUser,
    clock: ClockDep,
):
    return MaintenanceSchedulerService(db, clock=clock).update_schedule(
        schedule_id, **data.model_dump(exclude_unset=True)
    )


@router.delete("/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("30/minute")
def delete_schedule(
    request: Request, schedule_id: int, db: DbSession, current_user: CurrentUser, clock: ClockDep
):
    MaintenanceSchedulerService(db, clock=clock).delete_schedule(schedule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{schedule_id}/complete", response_model=ScheduledMaintenanceResponse)
def complete_schedule(
    schedule_id: int, db: DbSession, current_user: CurrentUser, clock: ClockDep
):
    return MaintenanceSchedulerService(db, clock=clock).mark_completed(
        schedule_id, current_user.user_id
    )


@router.post("/{schedule_id}/reminders/{days}", response_model=ScheduledMaintenanceResponse)
def mark_reminder_sent(
    schedule_id: int, days: int, db: DbSession, current_user: CurrentUser, clock: ClockDep
):
    return MaintenanceSchedulerService(db, clock=clock).mark_reminder_sent(schedule_id, days)


@router.post("/{schedule_id}/create-ticket", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_ticket(
    request: Request, schedule_id: int, db: DbSession, current_user: CurrentUser, clock: ClockDep
):
    """Promote a schedule to a ticket, applying its inventory action.

    201 with the ticket on success. On failure the body carries ``detail`` and
    ``code``; a ticket kept with a pending inventory apply is returned with 202.
    """
    result = MaintenanceSchedulerService(db, clock=clock).create_ticket_from_schedule(
        schedule_id, current_user.user_id
    )
    if isinstance(result, Promoted):
        return MaintenanceTicketResponse.model_validate(result.ticket)

    if result.ticket is not None:
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content={
                "detail": result.message,
                "code": result.reason,
                "ticket": MaintenanceTicketResponse.model_validate(result.ticket).model_dump(
                    mode="json"
                ),
            },
        )
    return JSONResponse(
        status_code=result.status_code,
        content={"detail": result.message, "code": result.reason},
    )
