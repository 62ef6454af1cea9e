"""
Staff/service eligibility.

An empty assignment set means every staff member may perform every service.
As soon as one pair is recorded, only recorded pairs are eligible.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence, Set, Tuple

from .models import StaffServiceAssignment


class EligibilityIndex:
    def __init__(self, assignments: Iterable[StaffServiceAssignment]):
        self._pairs: Set[Tuple[str, str]] = {
            (assignment.staff_id, assignment.service_id) for assignment in assignments
        }

    def is_eligible(self, staff_id: str, service_id: str) -> bool:
        if not self._pairs:
            return True
        return (staff_id, service_id) in self._pairs

    def eligible_staff(self, service_id: str, staff_ids: Sequence[str]) -> List[str]:
        """Staff able to perform ``service_id``, in the given order."""
        return [staff_id for staff_id in staff_ids if self.is_eligible(staff_id, service_id)]
