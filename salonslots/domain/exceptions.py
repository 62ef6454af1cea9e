"""
Domain-specific exception hierarchy for the salonslots package.

Rejected bookings are not errors: the domain reports them as ``ReasonCode``
values. These exceptions cover malformed input, unreadable data and the
write path refusing to persist.
"""


class SalonSlotsError(Exception):
    """Base class for all application-level errors."""


class InvalidRuleError(SalonSlotsError):
    """Raised when an hours rule carries a malformed time value."""


class DataSourceError(SalonSlotsError):
    """Raised when schedule data cannot be loaded or parsed."""


class BookingNotFoundError(SalonSlotsError):
    """Raised when a booking referenced by id does not exist."""


class BookingConflictError(SalonSlotsError):
    """Raised by a repository when a write would double-book a staff member."""


class BookingRejectedError(SalonSlotsError):
    """Raised by the write path when validation rejects a proposal."""

    def __init__(self, reason, message: str | None = None):
        self.reason = reason
        super().__init__(message or f"Booking rejected: {reason.value}")
