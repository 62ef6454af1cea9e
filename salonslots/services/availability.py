"""
Application services for listing slots and writing bookings.

The service loads a day's snapshot through a repository adapter and hands it
to the pure domain engine. Reads for one day are issued concurrently. Writes
go through a per-staff lock so that read, validate and write happen as one
step for that staff member; the repository's own conflict check remains the
final authority.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
import weakref
from typing import List, Optional, Protocol, Sequence

import pendulum
from pendulum import Date, DateTime

from ..domain.booking_validator import BookingValidator
from ..domain.eligibility import EligibilityIndex
from ..domain.exceptions import BookingNotFoundError, BookingRejectedError
from ..domain.models import (
    DEFAULT_TIMEZONE,
    BookingMode,
    BookingRecord,
    BookingStatus,
    DayContext,
    OperatingHoursRule,
    ProposedInterval,
    ReasonCode,
    SlotCandidate,
    StaffHoursRule,
    StaffServiceAssignment,
    TimeOffRecord,
    ValidationResult,
)
from ..domain.slot_generator import DEFAULT_STEP_MINUTES, SlotGenerator

logger = logging.getLogger(__name__)


class ScheduleRepositoryProtocol(Protocol):
    """Protocol describing the data access the service needs."""

    async def get_salon_hours(self) -> List[OperatingHoursRule]:
        """Return the salon's weekly opening hours."""

    async def get_staff_hours(self, staff_ids: Sequence[str]) -> List[StaffHoursRule]:
        """Return weekly hours rules of the given staff."""

    async def get_bookings(self, staff_ids: Sequence[str], start: DateTime, end: DateTime) -> List[BookingRecord]:
        """Return bookings of the given staff overlapping ``[start, end)``."""

    async def get_time_off(self, staff_ids: Sequence[str], start: DateTime, end: DateTime) -> List[TimeOffRecord]:
        """Return time off of the given staff overlapping ``[start, end)``."""

    async def get_assignments(self) -> List[StaffServiceAssignment]:
        """Return the salon's staff/service pairs."""

    async def get_booking(self, booking_id: str) -> Optional[BookingRecord]:
        """Return one booking by id."""

    async def save_booking(self, booking: BookingRecord) -> BookingRecord:
        """Insert or replace a booking."""


class AvailabilityService:
    """
    Orchestrates snapshot retrieval, slot generation and booking writes.

    Dependency inversion toward a protocol makes it easy to plug in a real
    database adapter or the in-memory repository in tests.
    """

    def __init__(
        self,
        repository: ScheduleRepositoryProtocol,
        *,
        timezone: str = DEFAULT_TIMEZONE,
        step_minutes: int = DEFAULT_STEP_MINUTES,
    ) -> None:
        self._repository = repository
        self.timezone = timezone
        self.step_minutes = step_minutes
        # Locks exist only while a write holds or awaits them, so they are
        # bound to the event loop of that write and never accumulate.
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    async def get_day_context(self, staff_ids: Sequence[str], local_date: Date) -> DayContext:
        """Load everything needed to decide about ``local_date`` for ``staff_ids``."""
        staff_list = list(dict.fromkeys(staff_ids))
        day_start = pendulum.datetime(local_date.year, local_date.month, local_date.day, tz=self.timezone)
        day_end = day_start.add(days=1)

        salon_hours, staff_hours, bookings, time_off, assignments = await asyncio.gather(
            self._repository.get_salon_hours(),
            self._repository.get_staff_hours(staff_list),
            self._repository.get_bookings(staff_list, day_start, day_end),
            self._repository.get_time_off(staff_list, day_start, day_end),
            self._repository.get_assignments(),
        )

        return DayContext(
            salon_hours=list(salon_hours),
            staff_hours=list(staff_hours),
            bookings=[booking for booking in bookings if booking.is_occupying],
            time_off=list(time_off),
            assignments=list(assignments),
            timezone=self.timezone,
        )

    async def generate_slots(
        self,
        *,
        date: Date,
        duration_minutes: int,
        staff_id: Optional[str] = None,
        staff_ids: Optional[Sequence[str]] = None,
        service_id: Optional[str] = None,
        mode: BookingMode = BookingMode.CHOOSE_EMPLOYEE,
        now: Optional[DateTime] = None,
    ) -> List[SlotCandidate]:
        """
        List bookable start times for a day.

        In ``choose_employee`` mode only ``staff_id`` is considered. In
        ``auto_assign`` mode every staff member in ``staff_ids`` able to
        perform ``service_id`` is considered and each start time is assigned
        to the first of them that is free.
        """
        mode = BookingMode.parse(mode)
        if mode is BookingMode.AUTO_ASSIGN:
            pool = list(dict.fromkeys(staff_ids or ([staff_id] if staff_id else [])))
        else:
            pool = [staff_id] if staff_id else []

        if not pool:
            return []

        context = await self.get_day_context(pool, date)

        if service_id:
            pool = EligibilityIndex(context.assignments).eligible_staff(service_id, pool)
            if not pool:
                logger.debug("No staff eligible for service %s", service_id)
                return []

        generator = SlotGenerator(context, step_minutes=self.step_minutes, now=now)
        return generator.generate(pool, date, duration_minutes)

    async def validate_booking(
        self,
        *,
        staff_id: str,
        start: DateTime,
        end: DateTime,
        service_id: Optional[str] = None,
        exclude_booking_id: Optional[str] = None,
    ) -> ValidationResult:
        """Check a proposed interval against a freshly loaded snapshot."""
        proposal = ProposedInterval(
            staff_id=staff_id,
            start=start,
            end=end,
            service_id=service_id,
            exclude_booking_id=exclude_booking_id,
        )
        return await self._validate(proposal)

    async def create_booking(
        self,
        *,
        staff_id: str,
        start: DateTime,
        end: DateTime,
        service_id: Optional[str] = None,
        customer_name: str = "",
        notes: str = "",
        status: BookingStatus = BookingStatus.PENDING,
    ) -> BookingRecord:
        """
        Validate and persist a new booking.

        Raises:
            BookingRejectedError: If the interval is not bookable
        """
        proposal = ProposedInterval(staff_id=staff_id, start=start, end=end, service_id=service_id)

        async with self._locked(_staff_key(staff_id)):
            await self._ensure_valid(proposal)
            booking = BookingRecord(
                id=uuid.uuid4().hex,
                staff_id=staff_id,
                start_at=start,
                end_at=end,
                status=status,
                service_id=service_id,
                customer_name=customer_name,
                notes=notes,
            )
            return await self._repository.save_booking(booking)

    async def block_time(
        self,
        *,
        staff_id: str,
        start: DateTime,
        end: DateTime,
        reason: str = "",
    ) -> BookingRecord:
        """Reserve an interval of a staff member's calendar without a service."""
        return await self.create_booking(
            staff_id=staff_id,
            start=start,
            end=end,
            customer_name=reason or "Blocked",
            notes=reason,
            status=BookingStatus.BLOCKED,
        )

    async def reschedule_booking(
        self,
        *,
        booking_id: str,
        start: DateTime,
        end: DateTime,
        staff_id: Optional[str] = None,
    ) -> BookingRecord:
        """
        Move an existing booking, optionally to another staff member.

        Raises:
            BookingNotFoundError: If ``booking_id`` does not exist
            BookingRejectedError: If the new interval is not bookable
        """
        async with self._locked(_booking_key(booking_id)):
            current = await self._repository.get_booking(booking_id)
            if current is None:
                raise BookingNotFoundError(f"Booking not found: {booking_id}")

            target_staff = staff_id or current.staff_id
            proposal = ProposedInterval(
                staff_id=target_staff,
                start=start,
                end=end,
                service_id=current.service_id if current.status is not BookingStatus.BLOCKED else None,
                exclude_booking_id=current.id,
            )

            async with self._locked(_staff_key(current.staff_id), _staff_key(target_staff)):
                await self._ensure_valid(proposal)
                moved = BookingRecord(
                    id=current.id,
                    staff_id=target_staff,
                    start_at=start,
                    end_at=end,
                    status=current.status,
                    service_id=current.service_id,
                    customer_name=current.customer_name,
                    notes=current.notes,
                )
                return await self._repository.save_booking(moved)

    async def _validate(self, proposal: ProposedInterval) -> ValidationResult:
        if not proposal.staff_id or proposal.start is None:
            return ValidationResult.reject(ReasonCode.SLOT_UNAVAILABLE)

        local_day = proposal.start.in_timezone(self.timezone).date()
        context = await self.get_day_context([proposal.staff_id], local_day)
        return BookingValidator(context).validate(proposal)

    async def _ensure_valid(self, proposal: ProposedInterval) -> None:
        result = await self._validate(proposal)
        if not result.ok:
            logger.debug("Write rejected for %s: %s", proposal.staff_id, result.reason.value)
            raise BookingRejectedError(result.reason)

    def _locked(self, *keys: str) -> "_OrderedLocks":
        locks = []
        for key in sorted(set(keys)):
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = asyncio.Lock()
            locks.append(lock)
        return _OrderedLocks(locks)


def _staff_key(staff_id: str) -> str:
    return f"staff:{staff_id}"


def _booking_key(booking_id: str) -> str:
    return f"booking:{booking_id}"


class _OrderedLocks:
    """Acquire several locks in a fixed order and release them in reverse."""

    def __init__(self, locks: List[asyncio.Lock]):
        self._locks = locks

    async def __aenter__(self) -> None:
        acquired: List[asyncio.Lock] = []
        try:
            for lock in self._locks:
                await lock.acquire()
                acquired.append(lock)
        except BaseException:
            for lock in reversed(acquired):
                lock.release()
            raise

    async def __aexit__(self, exc_type, exc, tb) -> None:
        for lock in reversed(self._locks):
            lock.release()
