"""
Write-path validation of a single proposed interval.

Used by create, drag-to-reschedule (with ``exclude_booking_id`` set to the
moved booking) and block-time (no service). Pure and idempotent: the same
proposal and snapshot always give the same result.
"""

from __future__ import annotations

import logging

from .conflict_checker import ConflictChecker
from .eligibility import EligibilityIndex
from .models import DayContext, ProposedInterval, ReasonCode, ValidationResult

logger = logging.getLogger(__name__)


class BookingValidator:
    def __init__(self, context: DayContext):
        self.context = context
        self.checker = ConflictChecker(context)
        self.eligibility = EligibilityIndex(context.assignments)

    def validate(self, proposal: ProposedInterval) -> ValidationResult:
        """
        Accept or reject ``proposal`` against the snapshot.

        Malformed proposals (no staff, empty or inverted interval) and
        staff/service mismatches are rejected as ``slot_unavailable``.
        """
        if not self._is_well_formed(proposal):
            logger.debug("Rejecting malformed proposal %s", proposal)
            return ValidationResult.reject(ReasonCode.SLOT_UNAVAILABLE)

        if proposal.service_id and not self.eligibility.is_eligible(proposal.staff_id, proposal.service_id):
            logger.debug("Staff %s cannot perform service %s", proposal.staff_id, proposal.service_id)
            return ValidationResult.reject(ReasonCode.SLOT_UNAVAILABLE)

        reason = self.checker.check(
            proposal.staff_id,
            proposal.start,
            proposal.end,
            exclude_booking_id=proposal.exclude_booking_id,
        )
        if reason is not None:
            return ValidationResult.reject(reason)

        return ValidationResult.accept()

    @staticmethod
    def _is_well_formed(proposal: ProposedInterval) -> bool:
        if not proposal.staff_id or not str(proposal.staff_id).strip():
            return False
        if proposal.start is None or proposal.end is None:
            return False
        return proposal.end > proposal.start


def validate(proposal: ProposedInterval, context: DayContext) -> ValidationResult:
    """Validate one proposal against one snapshot."""
    return BookingValidator(context).validate(proposal)
