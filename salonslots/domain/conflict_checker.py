"""
Conflict checks for a single staff interval.

The order of ``ConflictChecker.CHECKS`` is the user-visible precedence of
reason codes: closed day, working hours, break, time off, overlap.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from pendulum import Date, DateTime

from .models import DayContext, MinuteRange, ReasonCode, local_minutes
from .rule_resolver import DaySchedule, RuleResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    """An interval under test, already placed on its local day."""
    staff_id: str
    start: DateTime
    end: DateTime
    day: Date
    minutes: MinuteRange
    schedule: DaySchedule
    exclude_booking_id: Optional[str] = None


class ConflictChecker:
    """
    Decides whether a staff member can take an interval.

    Returns None when the interval is free, or the first failing
    ``ReasonCode`` in ``CHECKS`` order.
    """

    def __init__(self, context: DayContext, resolver: RuleResolver | None = None):
        self.context = context
        self.resolver = resolver or RuleResolver(context)

    def check(
        self,
        staff_id: str,
        start: DateTime,
        end: DateTime,
        exclude_booking_id: str | None = None,
    ) -> ReasonCode | None:
        candidate = self._place(staff_id, start, end, exclude_booking_id)

        for reason, is_blocked in self.CHECKS:
            if is_blocked(self, candidate):
                logger.debug("Interval %s - %s for %s blocked: %s", start, end, staff_id, reason.value)
                return reason

        return None

    def _place(
        self,
        staff_id: str,
        start: DateTime,
        end: DateTime,
        exclude_booking_id: str | None,
    ) -> Candidate:
        local_start = start.in_timezone(self.context.timezone)
        local_end = end.in_timezone(self.context.timezone)
        day = local_start.date()

        start_minute = local_minutes(local_start, day)
        end_minute = max(local_minutes(local_end, day, round_up=True), start_minute + 1)

        return Candidate(
            staff_id=staff_id,
            start=start,
            end=end,
            day=day,
            minutes=MinuteRange(start=start_minute, end=end_minute),
            schedule=self.resolver.resolve(staff_id, day),
            exclude_booking_id=exclude_booking_id,
        )

    def _is_closed_day(self, candidate: Candidate) -> bool:
        return not candidate.schedule.is_open

    def _is_outside_working_hours(self, candidate: Candidate) -> bool:
        return not candidate.schedule.window.contains(candidate.minutes)

    def _is_inside_break(self, candidate: Candidate) -> bool:
        break_range = candidate.schedule.break_range
        return break_range is not None and break_range.overlaps(candidate.minutes)

    def _is_time_off(self, candidate: Candidate) -> bool:
        return any(
            record.overlaps(candidate.start, candidate.end)
            for record in self.context.time_off_for(candidate.staff_id)
        )

    def _is_overlapping(self, candidate: Candidate) -> bool:
        for booking in self.context.bookings_for(candidate.staff_id):
            if candidate.exclude_booking_id and booking.id == candidate.exclude_booking_id:
                continue
            if booking.overlaps(candidate.start, candidate.end):
                return True
        return False

    CHECKS: Tuple[Tuple[ReasonCode, Callable[["ConflictChecker", Candidate], bool]], ...] = (
        (ReasonCode.CLOSED_DAY, _is_closed_day),
        (ReasonCode.OUTSIDE_WORKING_HOURS, _is_outside_working_hours),
        (ReasonCode.INSIDE_BREAK, _is_inside_break),
        (ReasonCode.TIME_OFF, _is_time_off),
        (ReasonCode.OVERLAP, _is_overlapping),
    )
