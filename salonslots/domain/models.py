"""
Domain models for salon schedules, bookings and availability decisions.

All models are read-only snapshots. Nothing in the domain layer mutates them;
persistence belongs to the repository adapters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

import pendulum
from pendulum import Date, DateTime

from .exceptions import InvalidRuleError

MINUTES_PER_DAY = 24 * 60
DEFAULT_TIMEZONE = "Asia/Baghdad"


def parse_hhmm(value: str) -> int:
    """
    Convert an ``HH:MM`` time of day into minutes since midnight.

    The ``HH:MM:SS`` form stored by the database is accepted and its seconds
    are ignored. ``24:00`` is allowed as an end-of-day marker.

    Raises:
        InvalidRuleError: If the value is not a valid time of day
    """
    text = str(value or "").strip()
    parts = text.split(":")
    if len(parts) < 2:
        raise InvalidRuleError(f"Invalid time of day: {value!r}")

    try:
        hours = int(parts[0])
        minutes = int(parts[1])
    except ValueError as exc:
        raise InvalidRuleError(f"Invalid time of day: {value!r}") from exc

    if not 0 <= minutes < 60 or not 0 <= hours <= 24 or (hours == 24 and minutes):
        raise InvalidRuleError(f"Time of day out of range: {value!r}")

    return hours * 60 + minutes


def format_minutes(minutes: int) -> str:
    """Format minutes since midnight as ``HH:MM``."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def day_of_week(date: Date) -> int:
    """Weekday index as stored in hours rows: 0 = Sunday ... 6 = Saturday."""
    return date.isoweekday() % 7


def local_minutes(dt: DateTime, day: Date, round_up: bool = False) -> int:
    """
    Wall-clock minutes of ``dt`` counted from midnight of ``day``.

    ``dt`` must already be in the salon timezone. Times on the following day
    count past 1440. With ``round_up`` a partial minute counts as a full one.
    """
    days = dt.date().toordinal() - day.toordinal()
    minutes = days * MINUTES_PER_DAY + dt.hour * 60 + dt.minute
    if round_up and (dt.second or dt.microsecond):
        minutes += 1
    return minutes


def at_minutes(day: Date, minutes: int, timezone: str) -> DateTime:
    """Build the local datetime ``minutes`` after midnight of ``day``."""
    extra_days, minute_of_day = divmod(minutes, MINUTES_PER_DAY)
    target = pendulum.date(day.year, day.month, day.day).add(days=extra_days)
    hour, minute = divmod(minute_of_day, 60)
    return pendulum.datetime(target.year, target.month, target.day, hour, minute, tz=timezone)


@dataclass(frozen=True)
class MinuteRange:
    """
    Half-open range of minutes since local midnight.

    Invariant: start must be before end.
    """
    start: int
    end: int

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start minute {self.start} must be before end minute {self.end}")

    def overlaps(self, other: "MinuteRange") -> bool:
        return self.start < other.end and self.end > other.start

    def contains(self, other: "MinuteRange") -> bool:
        return self.start <= other.start and other.end <= self.end

    def intersect(self, other: "MinuteRange") -> "MinuteRange | None":
        """Return the common part of both ranges, or None."""
        start = max(self.start, other.start)
        end = min(self.end, other.end)
        if end <= start:
            return None
        return MinuteRange(start=start, end=end)

    def subtract(self, other: "MinuteRange") -> List["MinuteRange"]:
        """
        Remove ``other`` from this range.

        Example:
        Window: 10:00 - 18:00
        Break:  13:00 - 14:00
        Result: [10:00-13:00, 14:00-18:00]
        """
        if not self.overlaps(other):
            return [self]

        pieces: List[MinuteRange] = []
        if self.start < other.start:
            pieces.append(MinuteRange(start=self.start, end=other.start))
        if other.end < self.end:
            pieces.append(MinuteRange(start=other.end, end=self.end))
        return pieces

    def __str__(self) -> str:
        return f"{format_minutes(self.start)}-{format_minutes(self.end)}"


@dataclass(frozen=True)
class OperatingHoursRule:
    """Salon opening hours for one weekday (0 = Sunday)."""
    day_of_week: int
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    is_closed: bool = False

    def window(self) -> MinuteRange | None:
        """Opening window in minutes, or None when the salon is closed."""
        if self.is_closed or not self.open_time or not self.close_time:
            return None

        start = parse_hhmm(self.open_time)
        end = parse_hhmm(self.close_time)
        if end <= start:
            return None
        return MinuteRange(start=start, end=end)


@dataclass(frozen=True)
class StaffHoursRule:
    """
    Personal hours of a staff member for one weekday.

    Missing start/end times fall back to the salon's opening hours.
    """
    staff_id: str
    day_of_week: int
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    is_off: bool = False
    break_start: Optional[str] = None
    break_end: Optional[str] = None

    def break_range(self) -> MinuteRange | None:
        """The break as a minute range; an inverted or empty break counts as absent."""
        if not self.break_start or not self.break_end:
            return None

        start = parse_hhmm(self.break_start)
        end = parse_hhmm(self.break_end)
        if end <= start:
            return None
        return MinuteRange(start=start, end=end)


@dataclass(frozen=True)
class TimeOffRecord:
    """An absence of a staff member; blocks every overlapping interval."""
    staff_id: str
    start_at: DateTime
    end_at: DateTime
    id: Optional[str] = None
    reason: Optional[str] = None

    def overlaps(self, start: DateTime, end: DateTime) -> bool:
        if self.end_at <= self.start_at:
            return False
        return self.start_at < end and self.end_at > start


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    NO_SHOW = "no_show"
    CANCELLED = "cancelled"
    BLOCKED = "blocked"

    @classmethod
    def parse(cls, value) -> "BookingStatus":
        """Normalize a stored status; unknown values are treated as pending."""
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        if normalized == "canceled":
            return cls.CANCELLED
        try:
            return cls(normalized)
        except ValueError:
            return cls.PENDING

    @property
    def is_occupying(self) -> bool:
        return self in OCCUPYING_STATUSES


OCCUPYING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.BLOCKED})


@dataclass(frozen=True)
class BookingRecord:
    """An existing booking (or blocked time) of a staff member."""
    id: str
    staff_id: str
    start_at: DateTime
    end_at: DateTime
    status: BookingStatus = BookingStatus.PENDING
    service_id: Optional[str] = None
    customer_name: str = ""
    notes: str = ""

    @property
    def is_occupying(self) -> bool:
        return self.status.is_occupying

    def overlaps(self, start: DateTime, end: DateTime) -> bool:
        if self.end_at <= self.start_at:
            return False
        return self.start_at < end and self.end_at > start


@dataclass(frozen=True)
class ProposedInterval:
    """The interval a create, drag-move or block-time operation wants to occupy."""
    staff_id: str
    start: DateTime
    end: DateTime
    service_id: Optional[str] = None
    exclude_booking_id: Optional[str] = None


@dataclass(frozen=True)
class StaffServiceAssignment:
    staff_id: str
    service_id: str


class ReasonCode(str, Enum):
    """Why a proposal was rejected. Callers map these to localized messages."""
    CLOSED_DAY = "closed_day"
    OUTSIDE_WORKING_HOURS = "outside_working_hours"
    INSIDE_BREAK = "inside_break"
    TIME_OFF = "time_off"
    OVERLAP = "overlap"
    SLOT_UNAVAILABLE = "slot_unavailable"


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    reason: Optional[ReasonCode] = None

    @classmethod
    def accept(cls) -> "ValidationResult":
        return cls(ok=True)

    @classmethod
    def reject(cls, reason: ReasonCode) -> "ValidationResult":
        return cls(ok=False, reason=reason)

    def to_dict(self) -> Dict[str, object]:
        if self.ok:
            return {"ok": True}
        return {"ok": False, "reason": self.reason.value}


class BookingMode(str, Enum):
    CHOOSE_EMPLOYEE = "choose_employee"
    AUTO_ASSIGN = "auto_assign"

    @classmethod
    def parse(cls, value) -> "BookingMode":
        """Anything other than ``auto_assign`` means the customer picks staff."""
        if str(getattr(value, "value", value) or "").strip().lower() == cls.AUTO_ASSIGN.value:
            return cls.AUTO_ASSIGN
        return cls.CHOOSE_EMPLOYEE


@dataclass
class DayContext:
    """
    Everything the engine needs to decide about one local day.

    Bookings and time off are expected to overlap the day; extra rows are
    harmless since every check filters by staff and interval.
    """
    salon_hours: List[OperatingHoursRule] = field(default_factory=list)
    staff_hours: List[StaffHoursRule] = field(default_factory=list)
    bookings: List[BookingRecord] = field(default_factory=list)
    time_off: List[TimeOffRecord] = field(default_factory=list)
    assignments: List[StaffServiceAssignment] = field(default_factory=list)
    timezone: str = DEFAULT_TIMEZONE

    def salon_rule(self, weekday: int) -> OperatingHoursRule | None:
        for rule in self.salon_hours:
            if rule.day_of_week == weekday:
                return rule
        return None

    def staff_rules(self, staff_id: str, weekday: int) -> List[StaffHoursRule]:
        return [
            rule for rule in self.staff_hours
            if rule.staff_id == staff_id and rule.day_of_week == weekday
        ]

    def bookings_for(self, staff_id: str) -> List[BookingRecord]:
        """Occupying bookings of one staff member."""
        return [
            booking for booking in self.bookings
            if booking.staff_id == staff_id and booking.is_occupying
        ]

    def time_off_for(self, staff_id: str) -> List[TimeOffRecord]:
        return [record for record in self.time_off if record.staff_id == staff_id]


@dataclass(frozen=True)
class SlotCandidate:
    """A bookable start time, with the staff member it belongs to."""
    start: DateTime
    end: DateTime
    staff_id: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "start": self.start.to_iso8601_string(),
            "end": self.end.to_iso8601_string(),
            "staff_id": self.staff_id,
        }
