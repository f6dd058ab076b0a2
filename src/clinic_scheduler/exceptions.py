"""Custom exceptions used across the clinic scheduler package."""


class DatabaseConnectionError(Exception):
    """Raised when the database connection cannot be established."""


class ResourceNotFoundError(Exception):
    """Raised when an entity lookup returns no result."""


class ValidationError(Exception):
    """Raised when incoming data fails domain or business validation."""


class DoctorBusyError(Exception):
    """Raised when a doctor already has an appointment overlapping the requested interval."""

    def __init__(self, conflicts):
        self.conflicts = list(conflicts)
        times = ", ".join(
            appt.start_time.isoformat() if hasattr(appt.start_time, "isoformat") else str(appt.start_time)
            for appt in self.conflicts
        )
        super().__init__(f"Doctor has conflicting appointments at: {times}")


__all__ = [
    "DatabaseConnectionError",
    "ResourceNotFoundError",
    "ValidationError",
    "DoctorBusyError",
]
