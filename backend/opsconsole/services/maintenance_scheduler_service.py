"""Maintenance Scheduler Service - schedule lifecycle and inventory reconciliation.

This service is the only place where schedules, tickets and inventory items
are mutated together. Each public method is one unit of work on the session:
it commits when it returns and rolls back when it raises.

Flow:
1. A schedule is created for an item (item.next_maintenance_date recomputed)
2. The schedule may be edited or deleted while it is not completed
3. When due, the schedule is promoted to a ticket; in the same transaction
   the schedule's inventory action is applied:
   - DEDUCT: units leave stock
   - STATUS_ONLY: units stay in stock but are held as in-maintenance
   The applied amount is snapshotted on the ticket (quantity_deducted)
4. When the work is done the ticket is completed: the snapshot is reversed
   exactly once (inventory_restored) and the schedule is marked completed

Promotion failures:
- PromotionFailurePolicy.ROLLBACK: nothing of the promotion persists
- PromotionFailurePolicy.PENDING_APPLY: ticket and schedule link persist with
  inventory_apply_pending=True; retry_inventory_apply() finishes the job
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional, Sequence, Union

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from opsconsole.core.clock import Clock, local_today, utc_now
from opsconsole.core.config import PromotionFailurePolicy, settings
from opsconsole.core.exceptions import (
    AlreadyPromoted,
    InvalidState,
    MaintenanceError,
    ValidationFailed,
)
from opsconsole.models.maintenance import (
    InventoryAction,
    MaintenanceTicket,
    MaintenanceType,
    ScheduledMaintenance,
    TicketPriority,
    TicketStatus,
    format_maintenance_type,
)
from opsconsole.services.inventory_ledger import InventoryLedger
from opsconsole.services.schedule_store import ScheduleStore
from opsconsole.services.ticket_store import TicketStore

logger = logging.getLogger(__name__)

REMINDER_DAYS = (14, 7, 1)


@dataclass
class Promoted:
    """Ticket created and its inventory action (if any) applied."""

    ticket: MaintenanceTicket
    ok = True


@dataclass
class PromotionFailed:
    """Promotion did not complete.

    ``ticket`` is set only under the pending-apply policy, when the ticket was
    kept without its inventory action.
    """

    reason: str
    message: str
    ticket: Optional[MaintenanceTicket] = None
    status_code: int = 422
    ok = False


PromotionResult = Union[Promoted, PromotionFailed]


class MaintenanceSchedulerService:
    """Reconciliation engine for scheduled maintenance."""

    EDITABLE_FIELDS = (
        "maintenance_type",
        "description",
        "scheduled_date",
        "inventory_action",
        "quantity_affected",
    )

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        failure_policy: Optional[PromotionFailurePolicy] = None,
    ):
        self.db = db
        self.clock = clock or utc_now
        self.failure_policy = failure_policy or settings.promotion_failure_policy
        self.schedules = ScheduleStore(db)
        self.tickets = TicketStore(db)
        self.ledger = InventoryLedger(db)

    def today(self) -> date:
        return local_today(self.clock())

    @contextmanager
    def _unit_of_work(self, action: str):
        try:
            yield
            self.db.commit()
        except MaintenanceError as e:
            self.db.rollback()
            logger.info(f"{action} rejected: {e.message}")
            raise
        except Exception:
            self.db.rollback()
            logger.error(f"{action} failed", exc_info=True)
            raise

    # ===== SCHEDULE LIFECYCLE =====

    def create_schedule(
        self,
        item_id: int,
        maintenance_type: MaintenanceType,
        scheduled_date: date,
        description: Optional[str] = None,
        inventory_action: InventoryAction = InventoryAction.NONE,
        quantity_affected: int = 1,
        created_by: Optional[int] = None,
    ) -> ScheduledMaintenance:
        """Plan maintenance for an existing item."""
        if quantity_affected is None or quantity_affected < 1:
            raise ValidationFailed("quantity_affected must be at least 1")

        with self._unit_of_work("Create scheduled maintenance"):
            item = self.ledger.get_item(item_id)
            schedule = self.schedules.add(
                ScheduledMaintenance(
                    item_id=item.id,
                    maintenance_type=maintenance_type,
                    description=description,
                    scheduled_date=scheduled_date,
                    inventory_action=inventory_action or InventoryAction.NONE,
                    quantity_affected=quantity_affected,
                    created_by=created_by,
                    is_completed=False,
                    reminder_14_sent=False,
                    reminder_7_sent=False,
                    reminder_1_sent=False,
                )
            )
            self._update_item_next_maintenance_date(item.id)

        logger.info(f"Created scheduled maintenance {schedule.id} for item {item_id}")
        return schedule

    def update_schedule(self, schedule_id: int, **fields: Any) -> ScheduledMaintenance:
        """Merge the provided fields into an open schedule.

        ``None`` means "not provided" except for ``description``, which may be
        cleared.
        """
        unknown = set(fields) - set(self.EDITABLE_FIELDS)
        if unknown:
            raise ValidationFailed(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        changes = {k: v for k, v in fields.items() if v is not None or k == "description"}
        if "quantity_affected" in changes and changes["quantity_affected"] < 1:
            raise ValidationFailed("quantity_affected must be at least 1")

        with self._unit_of_work("Update scheduled maintenance"):
            schedule = self.schedules.get(schedule_id, for_update=True)
            if schedule.is_completed:
                raise InvalidState("Cannot update completed maintenance schedule")

            previous_date = schedule.scheduled_date
            for key, value in changes.items():
                setattr(schedule, key, value)

            if schedule.scheduled_date != previous_date:
                self._reset_uncrossed_reminders(schedule)

            self._update_item_next_maintenance_date(schedule.item_id)

        logger.info(f"Updated scheduled maintenance {schedule_id}: {sorted(changes)}")
        return schedule

    def delete_schedule(self, schedule_id: int) -> None:
        """Hard-delete an open schedule.

        A ticket promoted from it survives and loses its back-reference.
        """
        with self._unit_of_work("Delete scheduled maintenance"):
            schedule = self.schedules.get(schedule_id, for_update=True)
            if schedule.is_completed:
                raise InvalidState("Cannot delete completed maintenance schedule")

            item_id = schedule.item_id
            for ticket in self.tickets.for_schedule(schedule.id):
                ticket.scheduled_maintenance_id = None
            self.schedules.delete(schedule)
            self._update_item_next_maintenance_date(item_id)

        logger.info(f"Deleted scheduled maintenance {schedule_id}")

    def mark_completed(self, schedule_id: int, user_id: Optional[int]) -> ScheduledMaintenance:
        with self._unit_of_work("Complete scheduled maintenance"):
            schedule = self.schedules.get(schedule_id, for_update=True)
            if schedule.is_completed:
                raise InvalidState(f"Scheduled maintenance {schedule_id} is already completed")
            self._complete_schedule(schedule, user_id)

        logger.info(f"Marked scheduled maintenance {schedule_id} as completed")
        return schedule

    def mark_reminder_sent(self, schedule_id: int, days: int) -> ScheduledMaintenance:
        """Flag the 14/7/1-day reminder as sent. Setting a set flag is a no-op."""
        return self.mark_reminders_sent(schedule_id, [days])

    def mark_reminders_sent(self, schedule_id: int, days_list: Sequence[int]) -> ScheduledMaintenance:
        """Flag several reminders in one transaction; either all are set or none."""
        invalid = [days for days in days_list if days not in REMINDER_DAYS]
        if invalid:
            raise ValidationFailed(
                f"Reminder days must be one of {REMINDER_DAYS}, got {invalid[0]}"
            )

        with self._unit_of_work("Mark reminder sent"):
            schedule = self.schedules.get(schedule_id, for_update=True)
            newly_sent = [days for days in days_list if not schedule.reminder_sent(days)]
            if newly_sent and schedule.is_completed:
                raise InvalidState("Cannot change reminders of completed maintenance schedule")
            for days in newly_sent:
                setattr(schedule, f"reminder_{days}_sent", True)
            self.db.flush()

        if newly_sent:
            logger.info(f"Marked {newly_sent}-day reminder(s) sent for schedule {schedule_id}")
        else:
            logger.debug(f"Reminders {list(days_list)} already marked for schedule {schedule_id}")
        return schedule

    # ===== PROMOTION =====

    def create_ticket_from_schedule(self, schedule_id: int, user_id: int) -> PromotionResult:
        """Promote a schedule to a ticket and apply its inventory action atomically.

        Raises NotFound / InvalidState / AlreadyPromoted when the schedule
        cannot be promoted at all; failures after that point are reported as
        ``PromotionFailed``.
        """
        try:
            schedule = self.schedules.get(schedule_id, for_update=True)
            self._ensure_promotable(schedule)
            ticket = self._open_ticket(schedule, user_id)
            if not self.schedules.link_ticket(schedule.id, ticket.id):
                # Promoted or completed by another transaction since it was read
                self._ensure_promotable(self.schedules.get(schedule_id, for_update=True))
                raise AlreadyPromoted(schedule_id, None)
            set_committed_value(schedule, "ticket_id", ticket.id)
        except MaintenanceError as e:
            self.db.rollback()
            logger.info(f"Promotion of schedule {schedule_id} rejected: {e.message}")
            raise
        except Exception:
            self.db.rollback()
            logger.error(f"Promotion of schedule {schedule_id} failed", exc_info=True)
            raise

        try:
            if schedule.inventory_action != InventoryAction.NONE:
                try:
                    with self.db.begin_nested():
                        self._apply_inventory_action(ticket)
                except MaintenanceError as e:
                    if self.failure_policy != PromotionFailurePolicy.PENDING_APPLY:
                        raise
                    ticket.inventory_apply_pending = True
                    self.db.commit()
                    logger.warning(
                        f"Ticket {ticket.id} from schedule {schedule_id} kept pending "
                        f"inventory apply: {e.message}"
                    )
                    return PromotionFailed(
                        reason=e.code, message=e.message, ticket=ticket, status_code=e.status_code
                    )

            self.db.commit()
        except MaintenanceError as e:
            self.db.rollback()
            logger.warning(f"Promotion of schedule {schedule_id} rolled back: {e.message}")
            return PromotionFailed(reason=e.code, message=e.message, status_code=e.status_code)
        except Exception:
            self.db.rollback()
            logger.error(f"Promotion of schedule {schedule_id} failed", exc_info=True)
            raise

        logger.info(f"Created ticket {ticket.id} from schedule {schedule_id}")
        return Promoted(ticket=ticket)

    def _ensure_promotable(self, schedule: ScheduledMaintenance) -> None:
        if schedule.is_completed:
            raise InvalidState("Cannot create a ticket for completed maintenance schedule")
        if schedule.ticket_id is not None:
            raise AlreadyPromoted(schedule.id, schedule.ticket_id)

    def _open_ticket(self, schedule: ScheduledMaintenance, user_id: int) -> MaintenanceTicket:
        item_title = schedule.item.title if schedule.item else "Unknown Item"
        maintenance_type = schedule.maintenance_type
        return self.tickets.create(
            item_id=schedule.item_id,
            reported_by=user_id,
            title=f"{format_maintenance_type(maintenance_type)} - {item_title}",
            description=schedule.description
            or f"Scheduled {maintenance_type.value} maintenance",
            priority=TicketPriority.MEDIUM,
            category=maintenance_type.value,
            scheduled_maintenance_id=schedule.id,
            inventory_action=schedule.inventory_action,
            reported_date=self.clock(),
        )

    # ===== INVENTORY APPLY / RESTORE =====

    def apply_inventory_action(self, ticket_id: int) -> MaintenanceTicket:
        """Apply a ticket's inventory action. Not idempotent; see retry_inventory_apply."""
        with self._unit_of_work("Apply inventory action"):
            ticket = self.tickets.get(ticket_id, for_update=True)
            self._apply_inventory_action(ticket)
        return ticket

    def retry_inventory_apply(self, ticket_id: int) -> MaintenanceTicket:
        """Apply the inventory action of a ticket left pending by a failed promotion."""
        with self._unit_of_work("Retry inventory apply"):
            ticket = self.tickets.get(ticket_id, for_update=True)
            if not ticket.inventory_apply_pending or not self.tickets.claim_pending_apply(ticket.id):
                raise InvalidState(f"Ticket {ticket_id} has no pending inventory action")
            self._apply_inventory_action(ticket)
        return ticket

    def _apply_inventory_action(self, ticket: MaintenanceTicket) -> int:
        action = ticket.inventory_action
        if not action or action == InventoryAction.NONE:
            return 0

        item = self.ledger.get_item(ticket.item_id, for_update=True)
        schedule = ticket.scheduled_maintenance
        quantity = schedule.quantity_affected if schedule is not None else 1

        if action == InventoryAction.DEDUCT:
            self.ledger.deduct(item, quantity)
        elif action == InventoryAction.STATUS_ONLY:
            self.ledger.hold(item, quantity)

        ticket.quantity_deducted = quantity
        ticket.inventory_apply_pending = False
        self.ledger.save_item(item)
        self.tickets.save(ticket)

        logger.info(
            f"Applied inventory action for ticket {ticket.id}: {action.value}, "
            f"quantity: {quantity}, item {item.id} now {item.status.value}"
        )
        return quantity

    def restore_inventory(self, ticket_id: int) -> bool:
        """Reverse a ticket's applied inventory action. Idempotent.

        Returns True when stock was restored by this call.
        """
        with self._unit_of_work("Restore inventory"):
            ticket = self.tickets.find(ticket_id, for_update=True)
            if ticket is None:
                return False
            restored = self._restore_inventory(ticket)
        return restored

    def _restore_inventory(self, ticket: MaintenanceTicket) -> bool:
        action = ticket.inventory_action
        if ticket.inventory_restored or not action or action == InventoryAction.NONE:
            return False
        if ticket.inventory_apply_pending:
            # Nothing was applied, so there is nothing to reverse
            return False
        if not self.tickets.claim_restore(ticket.id):
            set_committed_value(ticket, "inventory_restored", True)
            logger.info(f"Inventory for ticket {ticket.id} already restored")
            return False
        set_committed_value(ticket, "inventory_restored", True)

        item = self.ledger.get_item(ticket.item_id, for_update=True)
        quantity = ticket.quantity_deducted

        if action == InventoryAction.DEDUCT:
            self.ledger.restock(item, quantity)
        elif action == InventoryAction.STATUS_ONLY:
            self.ledger.release(item, quantity)

        self.ledger.save_item(item)
        self.tickets.save(ticket)

        logger.info(
            f"Restored inventory for ticket {ticket.id}: action was {action.value}, "
            f"quantity: {quantity}, item {item.id} now {item.status.value}"
        )
        return True

    # ===== TICKET COMPLETION =====

    def complete_ticket(
        self,
        ticket_id: int,
        user_id: Optional[int],
        resolution_notes: Optional[str] = None,
        status: TicketStatus = TicketStatus.RESOLVED,
    ) -> MaintenanceTicket:
        """Close out a ticket: resolve it, restore stock, complete its schedule."""
        if status not in (TicketStatus.RESOLVED, TicketStatus.CLOSED):
            raise ValidationFailed("A completed ticket must be resolved or closed")

        with self._unit_of_work("Complete maintenance ticket"):
            ticket = self.tickets.get(ticket_id, for_update=True)
            if not ticket.is_resolved:
                ticket.resolved_date = self.clock()
            ticket.status = status
            if resolution_notes is not None:
                ticket.resolution_notes = resolution_notes
            self._restore_inventory(ticket)

            if ticket.scheduled_maintenance_id is not None:
                schedule = self.schedules.find(ticket.scheduled_maintenance_id, for_update=True)
                if schedule is not None and not schedule.is_completed:
                    self._complete_schedule(schedule, user_id)
            self.tickets.save(ticket)

        logger.info(f"Completed maintenance ticket {ticket_id} ({status.value})")
        return ticket

    # ===== DERIVED STATE =====

    def _complete_schedule(self, schedule: ScheduledMaintenance, user_id: Optional[int]) -> None:
        schedule.is_completed = True
        schedule.completed_date = self.today()
        schedule.completed_by = user_id
        self._update_item_next_maintenance_date(schedule.item_id)

    def _reset_uncrossed_reminders(self, schedule: ScheduledMaintenance) -> None:
        days_until = (schedule.scheduled_date - self.today()).days
        for days in REMINDER_DAYS:
            if days_until > days and schedule.reminder_sent(days):
                setattr(schedule, f"reminder_{days}_sent", False)

    def _update_item_next_maintenance_date(self, item_id: int) -> Optional[date]:
        """Cache the earliest open schedule date (today or later) on the item."""
        self.db.flush()
        item = self.ledger.find_item(item_id)
        if item is None:
            return None
        next_date = self.schedules.earliest_pending_date(item_id, self.today())
        self.ledger.set_next_maintenance_date(item, next_date)
        self.ledger.save_item(item)
        return next_date
