from __future__ import annotations

from typing import Optional


class ScheduleSyncError(Exception):
    pass


class RegistrationError(ScheduleSyncError):
    """Batch-level failure: nothing is inserted once this is raised."""

    kind = "REGISTRATION_ERROR"

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message, "details": self.details or ""}


class PurgeError(RegistrationError):
    pass


class CalendarNotFoundError(ScheduleSyncError):
    def __init__(self, category: Optional[str]):
        super().__init__(f"No calendar ID is mapped for category '{category}'")
        self.category = category
