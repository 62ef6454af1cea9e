"""
Domain layer - Pure scheduling logic without external dependencies.
"""

from .booking_validator import BookingValidator, validate
from .conflict_checker import ConflictChecker
from .eligibility import EligibilityIndex
from .models import (
    BookingMode,
    BookingRecord,
    BookingStatus,
    DayContext,
    MinuteRange,
    OperatingHoursRule,
    ProposedInterval,
    ReasonCode,
    SlotCandidate,
    StaffHoursRule,
    StaffServiceAssignment,
    TimeOffRecord,
    ValidationResult,
)
from .rule_resolver import DaySchedule, RuleResolver
from .slot_generator import MIN_LEAD_MINUTES, SlotGenerator, SlotSequence

__all__ = [
    "BookingMode",
    "BookingRecord",
    "BookingStatus",
    "BookingValidator",
    "ConflictChecker",
    "DayContext",
    "DaySchedule",
    "EligibilityIndex",
    "MIN_LEAD_MINUTES",
    "MinuteRange",
    "OperatingHoursRule",
    "ProposedInterval",
    "ReasonCode",
    "RuleResolver",
    "SlotCandidate",
    "SlotGenerator",
    "SlotSequence",
    "StaffHoursRule",
    "StaffServiceAssignment",
    "TimeOffRecord",
    "ValidationResult",
    "validate",
]
