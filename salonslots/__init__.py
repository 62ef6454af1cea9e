"""
salonslots - appointment availability and booking conflict engine for salons.
"""

__version__ = "0.1.0"

from .domain import (
    BookingMode,
    BookingValidator,
    DayContext,
    ProposedInterval,
    ReasonCode,
    SlotCandidate,
    SlotGenerator,
    ValidationResult,
    validate,
)

__all__ = [
    "__version__",
    "BookingMode",
    "BookingValidator",
    "DayContext",
    "ProposedInterval",
    "ReasonCode",
    "SlotCandidate",
    "SlotGenerator",
    "ValidationResult",
    "validate",
]
