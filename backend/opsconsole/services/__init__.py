# Services module

from opsconsole.services.inventory_ledger import InventoryLedger
from opsconsole.services.maintenance_query_service import MaintenanceQueryService
from opsconsole.services.maintenance_reminder_service import (
    LoggingNotifier,
    MaintenanceReminderScheduler,
    ReminderNotifier,
    ReminderSweep,
    due_reminders,
)
from opsconsole.services.maintenance_scheduler_service import (
    MaintenanceSchedulerService,
    Promoted,
    PromotionFailed,
    PromotionResult,
)
from opsconsole.services.schedule_store import ScheduleStore
from opsconsole.services.ticket_store import TicketStore
