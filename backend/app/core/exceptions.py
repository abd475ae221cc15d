from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.schemas.daily_timetable import TimetableViolation


class AppError(Exception):
    """Base class for all application exceptions."""
    kind = "AppError"

    def __init__(self, message: str, status_code: int = 500, details: dict | None = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str, kind: str = "ResourceNotFound"):
        self.kind = kind
        super().__init__(
            f"{resource_type} with id {resource_id} not found",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class EntryNotFoundError(ResourceNotFoundError):
    def __init__(self, entry_id: str):
        super().__init__("Timetable entry", entry_id, kind="EntryNotFound")


class TimetableRuleError(AppError):
    """Raised by the HTTP layer when the conflict engine rejects a mutation."""
    def __init__(self, violation: TimetableViolation):
        self.violation = violation
        self.kind = violation.kind
        status_code = 404 if violation.kind == "SlotNotFound" else 400
        super().__init__(violation.message, status_code=status_code, details=violation.details)


class StorageUnavailableError(AppError):
    """Raised when the timetable store cannot be reached."""
    kind = "StorageUnavailable"

    def __init__(self, message: str = "Timetable storage is currently unavailable"):
        super().__init__(message, status_code=503)


class ConcurrentModificationError(AppError):
    """Raised when a write loses a race against another write on the same day."""
    kind = "ConcurrentModification"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=409, details=details)
