"""
Tests for resolving a staff member's effective windows.
"""

import pendulum

from salonslots.domain.models import DayContext, MinuteRange, OperatingHoursRule, StaffHoursRule
from salonslots.domain.rule_resolver import RuleResolver, merge_staff_rules

MONDAY = pendulum.date(2024, 6, 3)
FRIDAY = pendulum.date(2024, 6, 7)


def _resolver(staff_hours=(), salon_hours=None) -> RuleResolver:
    if salon_hours is None:
        salon_hours = [
            OperatingHoursRule(day_of_week=1, open_time="08:00", close_time="20:00"),
            OperatingHoursRule(day_of_week=5, is_closed=True),
        ]
    return RuleResolver(DayContext(salon_hours=list(salon_hours), staff_hours=list(staff_hours)))


class TestRuleResolver:
    """Tests for RuleResolver."""

    def test_salon_window_without_staff_rule(self):
        """Staff without a rule for the weekday work the salon's hours."""
        schedule = _resolver().resolve("st_1", MONDAY)

        assert schedule.is_open
        assert schedule.windows() == [MinuteRange(start=480, end=1200)]

    def test_closed_salon_wins_over_staff_hours(self):
        resolver = _resolver([StaffHoursRule(staff_id="st_1", day_of_week=5, start_time="10:00", end_time="18:00")])
        schedule = resolver.resolve("st_1", FRIDAY)

        assert not schedule.is_open
        assert schedule.windows() == []

    def test_missing_salon_rule_means_closed(self):
        schedule = _resolver(salon_hours=[]).resolve("st_1", MONDAY)
        assert not schedule.is_open

    def test_staff_off_has_no_window(self):
        schedule = _resolver([StaffHoursRule(staff_id="st_1", day_of_week=1, is_off=True)]).resolve("st_1", MONDAY)

        assert not schedule.is_open
        assert schedule.windows() == []

    def test_staff_hours_are_clipped_to_salon_hours(self):
        resolver = _resolver([StaffHoursRule(staff_id="st_1", day_of_week=1, start_time="07:00", end_time="22:00")])
        assert resolver.resolve_windows("st_1", MONDAY) == [MinuteRange(start=480, end=1200)]

    def test_staff_hours_outside_salon_hours_leave_no_window(self):
        resolver = _resolver([StaffHoursRule(staff_id="st_1", day_of_week=1, start_time="20:00", end_time="22:00")])
        assert resolver.resolve_windows("st_1", MONDAY) == []

    def test_missing_staff_times_fall_back_to_salon(self):
        resolver = _resolver([StaffHoursRule(staff_id="st_1", day_of_week=1, start_time="12:00")])
        assert resolver.resolve_windows("st_1", MONDAY) == [MinuteRange(start=720, end=1200)]

    def test_break_splits_window(self):
        resolver = _resolver([
            StaffHoursRule(
                staff_id="st_1",
                day_of_week=1,
                start_time="10:00:00",
                end_time="18:00:00",
                break_start="13:00",
                break_end="14:00",
            )
        ])

        assert resolver.resolve_windows("st_1", MONDAY) == [
            MinuteRange(start=600, end=780),
            MinuteRange(start=840, end=1080),
        ]

    def test_inverted_break_is_ignored(self):
        resolver = _resolver([
            StaffHoursRule(
                staff_id="st_1",
                day_of_week=1,
                start_time="10:00",
                end_time="18:00",
                break_start="14:00",
                break_end="13:00",
            )
        ])
        assert resolver.resolve_windows("st_1", MONDAY) == [MinuteRange(start=600, end=1080)]

    def test_rules_of_other_staff_are_ignored(self):
        resolver = _resolver([StaffHoursRule(staff_id="st_2", day_of_week=1, is_off=True)])
        assert resolver.resolve_windows("st_1", MONDAY) == [MinuteRange(start=480, end=1200)]


class TestMergeStaffRules:
    """Tests for collapsing duplicate rows."""

    def test_off_row_wins(self):
        working = StaffHoursRule(staff_id="st_1", day_of_week=1, start_time="10:00", end_time="18:00")
        off = StaffHoursRule(staff_id="st_1", day_of_week=1, is_off=True)

        assert merge_staff_rules([working, off]) is off

    def test_first_row_is_kept(self):
        first = StaffHoursRule(staff_id="st_1", day_of_week=1, start_time="10:00", end_time="18:00")
        second = StaffHoursRule(staff_id="st_1", day_of_week=1, start_time="12:00", end_time="16:00")

        assert merge_staff_rules([first, second]) is first
        assert merge_staff_rules([]) is None
