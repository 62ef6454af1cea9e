"""
Core business logic for generating bookable start times.

This is pure domain logic without any external dependencies (no database,
no network, no I/O). Sequences are lazy and can be iterated repeatedly.
"""

from __future__ import annotations

import heapq
from itertools import groupby
from typing import Callable, Iterable, Iterator, List, Optional, Sequence, Tuple

import pendulum
from pendulum import Date, DateTime

from .conflict_checker import ConflictChecker
from .models import DayContext, SlotCandidate, at_minutes
from .rule_resolver import RuleResolver

DEFAULT_STEP_MINUTES = 30
MIN_LEAD_MINUTES = 30


class SlotSequence:
    """
    Restartable lazy sequence of slot candidates.

    Every iteration calls the factory again, so generation starts over from
    the first window and reflects the snapshot it was built from.
    """

    def __init__(self, factory: Callable[[], Iterator[SlotCandidate]]):
        self._factory = factory

    def __iter__(self) -> Iterator[SlotCandidate]:
        return self._factory()


def _tagged(index: int, slots: Iterable[SlotCandidate]) -> Iterator[Tuple[DateTime, int, SlotCandidate]]:
    for slot in slots:
        yield slot.start, index, slot


class SlotGenerator:
    """
    Enumerates candidate start times for one day.

    Algorithm:
    1. Resolve the staff member's effective windows (break already removed)
    2. Walk each window in ``step_minutes`` increments from its start
    3. Drop candidates whose end would pass the window end
    4. Drop candidates earlier than ``now`` plus the minimum lead time
    5. Keep only candidates the conflict checker accepts
    """

    def __init__(
        self,
        context: DayContext,
        step_minutes: int = DEFAULT_STEP_MINUTES,
        now: Optional[DateTime] = None,
    ):
        self.context = context
        self.step_minutes = step_minutes
        self.now = now if now is not None else pendulum.now(context.timezone)
        self.resolver = RuleResolver(context)
        self.checker = ConflictChecker(context, resolver=self.resolver)

    @property
    def earliest_start(self) -> DateTime:
        return self.now.add(minutes=MIN_LEAD_MINUTES)

    def slots_for(self, staff_id: str, date: Date, duration_minutes: int) -> SlotSequence:
        """Bookable slots of a single staff member."""
        return SlotSequence(lambda: self._walk(staff_id, date, duration_minutes))

    def merged_slots(self, staff_ids: Sequence[str], date: Date, duration_minutes: int) -> SlotSequence:
        """
        Slots of several staff members merged by start time.

        When more than one staff member is free at the same start, the one
        listed first in ``staff_ids`` is assigned.
        """
        ordered = list(dict.fromkeys(staff_ids))
        return SlotSequence(lambda: self._merge(ordered, date, duration_minutes))

    def generate(self, staff_ids: Sequence[str], date: Date, duration_minutes: int) -> List[SlotCandidate]:
        """Materialize the slots of one or several staff members."""
        if len(staff_ids) == 1:
            return list(self.slots_for(staff_ids[0], date, duration_minutes))
        return list(self.merged_slots(staff_ids, date, duration_minutes))

    def _merge(self, staff_ids: List[str], date: Date, duration_minutes: int) -> Iterator[SlotCandidate]:
        streams = [
            _tagged(index, self._walk(staff_id, date, duration_minutes))
            for index, staff_id in enumerate(staff_ids)
        ]
        merged = heapq.merge(*streams, key=lambda item: (item[0], item[1]))

        for _, group in groupby(merged, key=lambda item: item[0]):
            yield next(group)[2]

    def _walk(self, staff_id: str, date: Date, duration_minutes: int) -> Iterator[SlotCandidate]:
        if duration_minutes <= 0 or self.step_minutes <= 0:
            return

        earliest = self.earliest_start
        timezone = self.context.timezone

        for window in self.resolver.resolve_windows(staff_id, date):
            start_minute = window.start
            while start_minute + duration_minutes <= window.end:
                start = at_minutes(date, start_minute, timezone)
                end = at_minutes(date, start_minute + duration_minutes, timezone)
                start_minute += self.step_minutes

                if start < earliest:
                    continue
                if self.checker.check(staff_id, start, end) is not None:
                    continue

                yield SlotCandidate(start=start, end=end, staff_id=staff_id)
