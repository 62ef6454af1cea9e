"""
Tests for conflict checks and write-path validation.
"""

import pendulum

from salonslots.domain.booking_validator import BookingValidator, validate
from salonslots.domain.conflict_checker import ConflictChecker
from salonslots.domain.models import (
    BookingRecord,
    BookingStatus,
    DayContext,
    OperatingHoursRule,
    ProposedInterval,
    ReasonCode,
    StaffHoursRule,
    StaffServiceAssignment,
    TimeOffRecord,
    ValidationResult,
)

TZ = "Asia/Baghdad"


def _at(text: str):
    return pendulum.parse(text, tz=TZ)


def _context(bookings=(), time_off=(), assignments=()) -> DayContext:
    return DayContext(
        salon_hours=[
            OperatingHoursRule(day_of_week=1, open_time="08:00", close_time="20:00"),
            OperatingHoursRule(day_of_week=5, is_closed=True),
        ],
        staff_hours=[
            StaffHoursRule(
                staff_id="st_1",
                day_of_week=1,
                start_time="10:00",
                end_time="18:00",
                break_start="13:00",
                break_end="14:00",
            ),
            StaffHoursRule(staff_id="st_2", day_of_week=1, is_off=True),
        ],
        bookings=list(bookings),
        time_off=list(time_off),
        assignments=list(assignments),
        timezone=TZ,
    )


def _proposal(start: str, end: str, staff_id="st_1", **kwargs) -> ProposedInterval:
    return ProposedInterval(staff_id=staff_id, start=_at(start), end=_at(end), **kwargs)


class TestConflictChecker:
    """Tests for ConflictChecker reason codes."""

    def test_free_interval(self):
        checker = ConflictChecker(_context())
        assert checker.check("st_1", _at("2024-06-03 10:00"), _at("2024-06-03 10:30")) is None

    def test_closed_salon_day(self):
        checker = ConflictChecker(_context())
        assert checker.check("st_1", _at("2024-06-07 11:00"), _at("2024-06-07 11:30")) is ReasonCode.CLOSED_DAY

    def test_staff_day_off_counts_as_closed_day(self):
        checker = ConflictChecker(_context())
        assert checker.check("st_2", _at("2024-06-03 11:00"), _at("2024-06-03 11:30")) is ReasonCode.CLOSED_DAY

    def test_interval_ending_at_window_end_is_inside(self):
        checker = ConflictChecker(_context())
        assert checker.check("st_1", _at("2024-06-03 17:30"), _at("2024-06-03 18:00")) is None

    def test_interval_past_window_end(self):
        checker = ConflictChecker(_context())
        reason = checker.check("st_1", _at("2024-06-03 17:45"), _at("2024-06-03 18:15"))
        assert reason is ReasonCode.OUTSIDE_WORKING_HOURS

    def test_interval_crossing_midnight_is_outside_working_hours(self):
        checker = ConflictChecker(_context())
        reason = checker.check("st_1", _at("2024-06-03 17:30"), _at("2024-06-04 09:00"))
        assert reason is ReasonCode.OUTSIDE_WORKING_HOURS

    def test_break_beats_overlap(self):
        """An interval in the break that also overlaps a booking reports the break."""
        booking = BookingRecord(
            id="bk_1",
            staff_id="st_1",
            start_at=_at("2024-06-03 12:30"),
            end_at=_at("2024-06-03 13:30"),
            status=BookingStatus.CONFIRMED,
        )
        checker = ConflictChecker(_context(bookings=[booking]))

        reason = checker.check("st_1", _at("2024-06-03 12:45"), _at("2024-06-03 13:15"))
        assert reason is ReasonCode.INSIDE_BREAK

    def test_touching_booking_is_not_an_overlap(self):
        booking = BookingRecord(
            id="bk_1",
            staff_id="st_1",
            start_at=_at("2024-06-03 15:00"),
            end_at=_at("2024-06-03 16:00"),
            status=BookingStatus.CONFIRMED,
        )
        checker = ConflictChecker(_context(bookings=[booking]))

        assert checker.check("st_1", _at("2024-06-03 14:30"), _at("2024-06-03 15:00")) is None
        assert checker.check("st_1", _at("2024-06-03 16:00"), _at("2024-06-03 16:30")) is None
        assert checker.check("st_1", _at("2024-06-03 15:30"), _at("2024-06-03 16:30")) is ReasonCode.OVERLAP

    def test_excluded_booking_is_ignored(self):
        booking = BookingRecord(
            id="bk_1",
            staff_id="st_1",
            start_at=_at("2024-06-03 15:00"),
            end_at=_at("2024-06-03 16:00"),
        )
        checker = ConflictChecker(_context(bookings=[booking]))

        reason = checker.check("st_1", _at("2024-06-03 15:30"), _at("2024-06-03 16:30"), exclude_booking_id="bk_1")
        assert reason is None

    def test_cancelled_and_completed_bookings_do_not_block(self):
        bookings = [
            BookingRecord(
                id="bk_1",
                staff_id="st_1",
                start_at=_at("2024-06-03 15:00"),
                end_at=_at("2024-06-03 16:00"),
                status=BookingStatus.CANCELLED,
            ),
            BookingRecord(
                id="bk_2",
                staff_id="st_1",
                start_at=_at("2024-06-03 15:00"),
                end_at=_at("2024-06-03 16:00"),
                status=BookingStatus.COMPLETED,
            ),
        ]
        checker = ConflictChecker(_context(bookings=bookings))
        assert checker.check("st_1", _at("2024-06-03 15:00"), _at("2024-06-03 15:30")) is None

    def test_blocked_time_blocks(self):
        blocked = BookingRecord(
            id="blk_1",
            staff_id="st_1",
            start_at=_at("2024-06-03 11:00"),
            end_at=_at("2024-06-03 12:00"),
            status=BookingStatus.BLOCKED,
        )
        checker = ConflictChecker(_context(bookings=[blocked]))
        assert checker.check("st_1", _at("2024-06-03 11:30"), _at("2024-06-03 12:00")) is ReasonCode.OVERLAP

    def test_bookings_of_other_staff_are_ignored(self):
        booking = BookingRecord(
            id="bk_1",
            staff_id="st_9",
            start_at=_at("2024-06-03 15:00"),
            end_at=_at("2024-06-03 16:00"),
        )
        checker = ConflictChecker(_context(bookings=[booking]))
        assert checker.check("st_1", _at("2024-06-03 15:00"), _at("2024-06-03 16:00")) is None

    def test_utc_input_is_read_in_salon_timezone(self):
        """07:00 UTC is 10:00 in Baghdad, the start of the staff window."""
        checker = ConflictChecker(_context())
        start = pendulum.parse("2024-06-03T07:00:00Z")
        end = pendulum.parse("2024-06-03T07:30:00Z")

        assert checker.check("st_1", start, end) is None
        assert checker.check("st_1", start.subtract(minutes=30), end) is ReasonCode.OUTSIDE_WORKING_HOURS


class TestBookingValidator:
    """Tests for BookingValidator."""

    def test_before_staff_start_is_outside_working_hours(self):
        """Salon 08:00-20:00, staff 10:00-18:00, proposal 09:00-10:00."""
        result = validate(_proposal("2024-01-01 09:00", "2024-01-01 10:00"), _context())

        assert result == ValidationResult(ok=False, reason=ReasonCode.OUTSIDE_WORKING_HOURS)

    def test_time_off(self):
        time_off = TimeOffRecord(staff_id="st_1", start_at=_at("2024-06-03 12:00"), end_at=_at("2024-06-03 13:00"))
        result = validate(_proposal("2024-06-03 12:30", "2024-06-03 13:00"), _context(time_off=[time_off]))

        assert result.reason is ReasonCode.TIME_OFF

    def test_outside_hours_beats_time_off(self):
        time_off = TimeOffRecord(staff_id="st_1", start_at=_at("2024-06-03 17:00"), end_at=_at("2024-06-03 19:00"))
        result = validate(_proposal("2024-06-03 17:30", "2024-06-03 18:30"), _context(time_off=[time_off]))

        assert result.reason is ReasonCode.OUTSIDE_WORKING_HOURS

    def test_valid_proposal(self):
        result = validate(_proposal("2024-06-03 10:00", "2024-06-03 10:30"), _context())

        assert result.ok
        assert result.reason is None

    def test_validation_is_idempotent(self):
        validator = BookingValidator(_context())
        proposal = _proposal("2024-06-03 13:30", "2024-06-03 14:30")

        assert validator.validate(proposal) == validator.validate(proposal)
        assert validator.validate(proposal).reason is ReasonCode.INSIDE_BREAK

    def test_inverted_interval_is_slot_unavailable(self):
        result = validate(_proposal("2024-06-03 11:00", "2024-06-03 10:00"), _context())
        assert result.reason is ReasonCode.SLOT_UNAVAILABLE

    def test_empty_interval_is_slot_unavailable(self):
        result = validate(_proposal("2024-06-03 11:00", "2024-06-03 11:00"), _context())
        assert result.reason is ReasonCode.SLOT_UNAVAILABLE

    def test_missing_staff_is_slot_unavailable(self):
        result = validate(_proposal("2024-06-03 11:00", "2024-06-03 11:30", staff_id=""), _context())
        assert result.reason is ReasonCode.SLOT_UNAVAILABLE

    def test_ineligible_staff_is_slot_unavailable(self):
        context = _context(assignments=[StaffServiceAssignment(staff_id="st_9", service_id="sv_cut")])
        result = validate(_proposal("2024-06-03 11:00", "2024-06-03 11:30", service_id="sv_cut"), context)

        assert result.reason is ReasonCode.SLOT_UNAVAILABLE

    def test_without_assignments_everyone_is_eligible(self):
        result = validate(_proposal("2024-06-03 11:00", "2024-06-03 11:30", service_id="sv_cut"), _context())
        assert result.ok

    def test_block_time_without_service_skips_eligibility(self):
        context = _context(assignments=[StaffServiceAssignment(staff_id="st_9", service_id="sv_cut")])
        result = validate(_proposal("2024-06-03 11:00", "2024-06-03 11:30"), context)

        assert result.ok

    def test_reschedule_onto_own_slot(self):
        booking = BookingRecord(
            id="bk_1",
            staff_id="st_1",
            start_at=_at("2024-06-03 15:00"),
            end_at=_at("2024-06-03 16:00"),
            status=BookingStatus.CONFIRMED,
        )
        context = _context(bookings=[booking])

        moved = _proposal("2024-06-03 15:30", "2024-06-03 16:30", exclude_booking_id="bk_1")
        assert validate(moved, context).ok
        assert validate(_proposal("2024-06-03 15:30", "2024-06-03 16:30"), context).reason is ReasonCode.OVERLAP
