# organizer/errors.py
from datetime import date
from typing import Optional


class OrganizerError(Exception):
    """Base class for every error raised by the organizer package."""


class ValidationError(OrganizerError, ValueError):
    """Input rejected before any mutation was attempted."""


class InvalidInstantError(ValidationError):
    pass


class RecurrenceError(ValidationError):
    pass


class PastDateError(ValidationError):
    """Raised when an event would land on a civil date before today."""

    def __init__(self, target: date, today: date, message: Optional[str] = None):
        self.target = target
        self.today = today
        super().__init__(
            message or f"Cannot schedule on {target.isoformat()}: it is before today ({today.isoformat()})"
        )


class RecordNotFoundError(OrganizerError, KeyError):
    def __init__(self, collection: str, record_id):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"{collection}: no record with id {record_id!r}")

    def __str__(self) -> str:
        return self.args[0]
