"""
Resolution of the bookable window of a staff member on one local day.

The salon's opening hours are the outer bound. A staff rule for the weekday
narrows them, an off day removes them, and a break cuts a hole in them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from pendulum import Date

from .models import (
    DayContext,
    MinuteRange,
    OperatingHoursRule,
    StaffHoursRule,
    day_of_week,
    parse_hhmm,
)


@dataclass(frozen=True)
class DaySchedule:
    """
    Resolved schedule of one staff member for one day.

    ``window`` is the salon/staff intersection before the break is removed.
    """
    window: Optional[MinuteRange]
    break_range: Optional[MinuteRange] = None

    @property
    def is_open(self) -> bool:
        return self.window is not None

    def windows(self) -> List[MinuteRange]:
        """Disjoint bookable windows with the break subtracted."""
        if self.window is None:
            return []
        if self.break_range is None:
            return [self.window]
        return self.window.subtract(self.break_range)


NO_WINDOW = DaySchedule(window=None)


def merge_staff_rules(rules: Sequence[StaffHoursRule]) -> StaffHoursRule | None:
    """
    Collapse duplicate rows for the same staff member and weekday.

    An off row wins over everything; otherwise the first row is kept.
    """
    if not rules:
        return None
    for rule in rules:
        if rule.is_off:
            return rule
    return rules[0]


class RuleResolver:
    """
    Computes effective windows from a day's hours rules.

    Algorithm:
    1. Salon rule missing or closed -> no window (takes precedence)
    2. Staff rule missing -> salon window as is
    3. Staff off, or empty salon/staff intersection -> no window
    4. A valid break splits the window into at most two pieces
    """

    def __init__(self, context: DayContext):
        self.context = context

    def resolve(self, staff_id: str, date: Date) -> DaySchedule:
        weekday = day_of_week(date)

        salon_window = self._salon_window(self.context.salon_rule(weekday))
        if salon_window is None:
            return NO_WINDOW

        staff_rule = merge_staff_rules(self.context.staff_rules(staff_id, weekday))
        if staff_rule is None:
            return DaySchedule(window=salon_window)

        if staff_rule.is_off:
            return NO_WINDOW

        staff_start = parse_hhmm(staff_rule.start_time) if staff_rule.start_time else salon_window.start
        staff_end = parse_hhmm(staff_rule.end_time) if staff_rule.end_time else salon_window.end
        if staff_end <= staff_start:
            return NO_WINDOW

        window = salon_window.intersect(MinuteRange(start=staff_start, end=staff_end))
        if window is None:
            return NO_WINDOW

        return DaySchedule(window=window, break_range=staff_rule.break_range())

    def resolve_windows(self, staff_id: str, date: Date) -> List[MinuteRange]:
        """Effective bookable windows of ``staff_id`` on ``date``."""
        return self.resolve(staff_id, date).windows()

    @staticmethod
    def _salon_window(rule: OperatingHoursRule | None) -> MinuteRange | None:
        if rule is None:
            return None
        return rule.window()
