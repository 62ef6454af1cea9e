"""
In-memory schedule repository seeded from a JSON snapshot.

The snapshot mirrors the database tables (``salon_hours``, ``employee_hours``,
``bookings``, ``employee_time_off``, ``staff_services``) so exported rows can
be loaded as they are. The repository is an explicit object owned by its
caller; tests and the CLI each build their own.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pendulum
from pendulum import DateTime

from ..domain.exceptions import BookingConflictError, DataSourceError, InvalidRuleError
from ..domain.models import (
    DEFAULT_TIMEZONE,
    BookingRecord,
    BookingStatus,
    OperatingHoursRule,
    StaffHoursRule,
    StaffServiceAssignment,
    TimeOffRecord,
)

logger = logging.getLogger(__name__)

# Older app builds stored completed/no-show in the notes column.
_VIRTUAL_STATUS_TAG = re.compile(r"\s*\[cc_status:(completed|no_show|canceled|cancelled)\]\s*", re.IGNORECASE)


def extract_virtual_status(notes: Any) -> BookingStatus | None:
    """Read a legacy ``[cc_status:...]`` tag from a notes value."""
    matched = _VIRTUAL_STATUS_TAG.search(str(notes or ""))
    if not matched:
        return None
    return BookingStatus.parse(matched.group(1))


def strip_virtual_status(notes: Any) -> str:
    text = _VIRTUAL_STATUS_TAG.sub(" ", str(notes or ""))
    return re.sub(r"\s+", " ", text).strip()


def _first(row: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = row.get(key)
        if value not in (None, ""):
            return value
    return None


def _optional_str(value: Any) -> Optional[str]:
    if value in (None, ""):
        return None
    return str(value)


def parse_datetime(value: Any, timezone: str) -> DateTime:
    """
    Parse an ISO 8601 timestamp; naive values are read in ``timezone``.

    Raises:
        ValueError: If the value is not a datetime
    """
    if isinstance(value, DateTime):
        return value

    parsed = pendulum.parse(str(value), tz=timezone)
    if isinstance(parsed, DateTime):
        return parsed

    raise ValueError(f"Could not parse datetime: {value}")


def salon_hours_from_row(row: Dict[str, Any]) -> OperatingHoursRule:
    return OperatingHoursRule(
        day_of_week=int(row["day_of_week"]),
        open_time=_optional_str(_first(row, "open_time", "start_time")),
        close_time=_optional_str(_first(row, "close_time", "end_time")),
        is_closed=bool(row.get("is_closed", False)),
    )


def staff_hours_from_row(row: Dict[str, Any]) -> StaffHoursRule:
    staff_id = _first(row, "staff_id", "employee_id")
    if staff_id is None:
        raise KeyError("staff_id")

    return StaffHoursRule(
        staff_id=str(staff_id),
        day_of_week=int(row["day_of_week"]),
        start_time=_optional_str(_first(row, "start_time", "open_time")),
        end_time=_optional_str(_first(row, "end_time", "close_time")),
        is_off=bool(row.get("is_off") or row.get("is_closed")),
        break_start=_optional_str(row.get("break_start")),
        break_end=_optional_str(row.get("break_end")),
    )


def booking_from_row(row: Dict[str, Any], timezone: str) -> BookingRecord:
    staff_id = _first(row, "staff_id", "employee_id")
    start = _first(row, "appointment_start", "start_time", "start", "start_at")
    end = _first(row, "appointment_end", "end_time", "end", "end_at")
    if staff_id is None or start is None or end is None:
        raise KeyError("staff_id/appointment_start/appointment_end")

    status = extract_virtual_status(row.get("notes")) or BookingStatus.parse(row.get("status"))

    return BookingRecord(
        id=str(row["id"]),
        staff_id=str(staff_id),
        start_at=parse_datetime(start, timezone),
        end_at=parse_datetime(end, timezone),
        status=status,
        service_id=_optional_str(row.get("service_id")),
        customer_name=str(row.get("customer_name") or ""),
        notes=strip_virtual_status(row.get("notes")),
    )


def booking_to_row(booking: BookingRecord) -> Dict[str, Any]:
    return {
        "id": booking.id,
        "staff_id": booking.staff_id,
        "service_id": booking.service_id,
        "customer_name": booking.customer_name,
        "appointment_start": booking.start_at.to_iso8601_string(),
        "appointment_end": booking.end_at.to_iso8601_string(),
        "status": booking.status.value,
        "notes": booking.notes or None,
    }


def time_off_from_row(row: Dict[str, Any], timezone: str) -> TimeOffRecord:
    staff_id = _first(row, "staff_id", "employee_id")
    if staff_id is None:
        raise KeyError("staff_id")

    return TimeOffRecord(
        staff_id=str(staff_id),
        start_at=parse_datetime(row["start_at"], timezone),
        end_at=parse_datetime(row["end_at"], timezone),
        id=_optional_str(row.get("id")),
        reason=_optional_str(row.get("reason")),
    )


def assignment_from_row(row: Dict[str, Any]) -> StaffServiceAssignment:
    return StaffServiceAssignment(staff_id=str(row["staff_id"]), service_id=str(row["service_id"]))


def _map_rows(table: str, rows: Iterable[Dict[str, Any]], mapper) -> List[Any]:
    """Map raw rows, skipping (and logging) rows that cannot be parsed."""
    mapped = []
    for row in rows or []:
        try:
            mapped.append(mapper(row))
        except (KeyError, TypeError, ValueError, InvalidRuleError) as exc:
            logger.warning("Skipping malformed %s row %r: %s", table, row, exc)
    return mapped


class InMemoryScheduleRepository:
    """
    Schedule repository holding one salon's rows in memory.

    Implements the async read/write interface the availability service
    expects. ``save_booking`` refuses overlapping occupying bookings for the
    same staff member, the way a database exclusion constraint would.
    """

    def __init__(
        self,
        *,
        salon_hours: Sequence[OperatingHoursRule] = (),
        staff_hours: Sequence[StaffHoursRule] = (),
        bookings: Sequence[BookingRecord] = (),
        time_off: Sequence[TimeOffRecord] = (),
        assignments: Sequence[StaffServiceAssignment] = (),
        staff: Sequence[Dict[str, Any]] = (),
        services: Sequence[Dict[str, Any]] = (),
        timezone: str = DEFAULT_TIMEZONE,
    ):
        self.timezone = timezone
        self.salon_hours: List[OperatingHoursRule] = list(salon_hours)
        self.staff_hours: List[StaffHoursRule] = list(staff_hours)
        self.bookings: Dict[str, BookingRecord] = {booking.id: booking for booking in bookings}
        self.time_off: List[TimeOffRecord] = list(time_off)
        self.assignments: List[StaffServiceAssignment] = list(assignments)
        self.staff: List[Dict[str, Any]] = [dict(row) for row in staff]
        self.services: List[Dict[str, Any]] = [dict(row) for row in services]
        self._write_lock = asyncio.Lock()

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any], timezone: str | None = None) -> "InMemoryScheduleRepository":
        """Build a repository from a snapshot mapping of table name -> rows."""
        tz = timezone or data.get("timezone") or DEFAULT_TIMEZONE

        return cls(
            salon_hours=_map_rows("salon_hours", data.get("salon_hours"), salon_hours_from_row),
            staff_hours=_map_rows("employee_hours", data.get("employee_hours"), staff_hours_from_row),
            bookings=_map_rows("bookings", data.get("bookings"), lambda row: booking_from_row(row, tz)),
            time_off=_map_rows("employee_time_off", data.get("employee_time_off"), lambda row: time_off_from_row(row, tz)),
            assignments=_map_rows("staff_services", data.get("staff_services"), assignment_from_row),
            staff=data.get("staff") or [],
            services=data.get("services") or [],
            timezone=tz,
        )

    @classmethod
    def load_from_json(cls, path: Path, timezone: str | None = None) -> "InMemoryScheduleRepository":
        """
        Load a snapshot file.

        Raises:
            DataSourceError: If the file is missing or not a JSON object
        """
        if not path.exists():
            raise DataSourceError(f"Snapshot file not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise DataSourceError(f"Could not read snapshot {path}: {exc}") from exc

        if not isinstance(data, dict):
            raise DataSourceError("Snapshot file must contain a JSON object at the root level.")

        return cls.from_snapshot(data, timezone=timezone)

    def to_snapshot(self) -> Dict[str, Any]:
        return {
            "timezone": self.timezone,
            "staff": self.staff,
            "services": self.services,
            "salon_hours": [
                {
                    "day_of_week": rule.day_of_week,
                    "open_time": rule.open_time,
                    "close_time": rule.close_time,
                    "is_closed": rule.is_closed,
                }
                for rule in self.salon_hours
            ],
            "employee_hours": [
                {
                    "staff_id": rule.staff_id,
                    "day_of_week": rule.day_of_week,
                    "start_time": rule.start_time,
                    "end_time": rule.end_time,
                    "is_off": rule.is_off,
                    "break_start": rule.break_start,
                    "break_end": rule.break_end,
                }
                for rule in self.staff_hours
            ],
            "bookings": [booking_to_row(booking) for booking in self.bookings.values()],
            "employee_time_off": [
                {
                    "id": record.id,
                    "staff_id": record.staff_id,
                    "start_at": record.start_at.to_iso8601_string(),
                    "end_at": record.end_at.to_iso8601_string(),
                    "reason": record.reason,
                }
                for record in self.time_off
            ],
            "staff_services": [
                {"staff_id": pair.staff_id, "service_id": pair.service_id}
                for pair in self.assignments
            ],
        }

    def save_to_json(self, path: Path) -> None:
        """
        Write the snapshot file atomically.

        The data goes to a temporary file next to ``path`` which then replaces
        it, so a failed write leaves the previous snapshot untouched.

        Raises:
            DataSourceError: If the file cannot be written
        """
        path = Path(path)
        snapshot = self.to_snapshot()
        temp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=path.parent,
                prefix=f".{path.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                temp_path = Path(f.name)
                json.dump(snapshot, f, indent=2, ensure_ascii=False)
            temp_path.replace(path)
        except OSError as exc:
            raise DataSourceError(f"Could not write snapshot {path}: {exc}") from exc
        finally:
            if temp_path is not None and temp_path.exists():
                temp_path.unlink()

    def staff_ids(self) -> List[str]:
        return [str(row["id"]) for row in self.staff if "id" in row]

    def service_duration(self, service_id: str) -> int | None:
        for row in self.services:
            if str(row.get("id")) == str(service_id):
                duration = row.get("duration_minutes")
                return int(duration) if duration is not None else None
        return None

    async def get_salon_hours(self) -> List[OperatingHoursRule]:
        return list(self.salon_hours)

    async def get_staff_hours(self, staff_ids: Sequence[str]) -> List[StaffHoursRule]:
        wanted = set(staff_ids)
        return [rule for rule in self.staff_hours if rule.staff_id in wanted]

    async def get_bookings(self, staff_ids: Sequence[str], start: DateTime, end: DateTime) -> List[BookingRecord]:
        wanted = set(staff_ids)
        rows = [
            booking for booking in self.bookings.values()
            if booking.staff_id in wanted and booking.overlaps(start, end)
        ]
        return sorted(rows, key=lambda booking: booking.start_at)

    async def get_time_off(self, staff_ids: Sequence[str], start: DateTime, end: DateTime) -> List[TimeOffRecord]:
        wanted = set(staff_ids)
        rows = [
            record for record in self.time_off
            if record.staff_id in wanted and record.overlaps(start, end)
        ]
        return sorted(rows, key=lambda record: record.start_at)

    async def get_assignments(self) -> List[StaffServiceAssignment]:
        return list(self.assignments)

    async def get_booking(self, booking_id: str) -> BookingRecord | None:
        return self.bookings.get(str(booking_id))

    async def save_booking(self, booking: BookingRecord) -> BookingRecord:
        """
        Insert or replace a booking by id.

        Raises:
            BookingConflictError: If an occupying booking of the same staff
                member overlaps the new one
        """
        async with self._write_lock:
            if booking.is_occupying:
                for existing in self.bookings.values():
                    if existing.id == booking.id or existing.staff_id != booking.staff_id:
                        continue
                    if existing.is_occupying and existing.overlaps(booking.start_at, booking.end_at):
                        raise BookingConflictError(
                            f"Booking {booking.id} overlaps booking {existing.id} of staff {booking.staff_id}"
                        )

            self.bookings[booking.id] = booking
            logger.info(
                "Saved booking %s for %s (%s - %s, %s)",
                booking.id,
                booking.staff_id,
                booking.start_at,
                booking.end_at,
                booking.status.value,
            )
            return booking
