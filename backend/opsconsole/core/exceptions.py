"""Domain errors raised by the maintenance engine.

Every error here is recoverable: the HTTP layer renders it as a JSON body
``{"detail": ..., "code": ...}`` with the class' ``status_code``.
"""

from typing import Any, Optional


class MaintenanceError(Exception):
    """Base class for recoverable maintenance-engine failures."""

    code = "maintenance_error"
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class NotFound(MaintenanceError):
    """Raised when an item, schedule or ticket does not exist."""

    code = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class InvalidState(MaintenanceError):
    """Raised when mutating a record whose lifecycle forbids it."""

    code = "invalid_state"
    status_code = 409


class AlreadyPromoted(MaintenanceError):
    """Raised on a second ticket creation for the same schedule."""

    code = "already_promoted"
    status_code = 409

    def __init__(self, schedule_id: int, ticket_id: Optional[int]):
        self.schedule_id = schedule_id
        self.ticket_id = ticket_id
        super().__init__(
            f"Ticket {ticket_id} already created for scheduled maintenance {schedule_id}"
        )


class InsufficientQuantity(MaintenanceError):
    """Raised when a deduction exceeds the stock on hand."""

    code = "insufficient_quantity"
    status_code = 422

    def __init__(self, item_id: int, available: int, requested: int):
        self.item_id = item_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient quantity for item {item_id}: need {requested}, have {available}"
        )


class ValidationFailed(MaintenanceError):
    """Raised for arguments the engine cannot act on."""

    code = "validation_failed"
    status_code = 422


class ConcurrencyConflict(MaintenanceError):
    """Raised when a row changed underneath the current unit of work."""

    code = "concurrency_conflict"
    status_code = 409
