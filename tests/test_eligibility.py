"""
Tests for staff/service eligibility.
"""

from salonslots.domain.eligibility import EligibilityIndex
from salonslots.domain.models import StaffServiceAssignment


class TestEligibilityIndex:
    """Tests for EligibilityIndex."""

    def test_no_assignments_means_everyone_is_eligible(self):
        index = EligibilityIndex([])

        assert index.is_eligible("st_1", "sv_cut")
        assert index.eligible_staff("sv_cut", ["st_2", "st_1"]) == ["st_2", "st_1"]

    def test_recorded_pairs_restrict(self):
        index = EligibilityIndex([
            StaffServiceAssignment(staff_id="st_1", service_id="sv_cut"),
            StaffServiceAssignment(staff_id="st_1", service_id="sv_color"),
            StaffServiceAssignment(staff_id="st_2", service_id="sv_cut"),
        ])

        assert index.is_eligible("st_2", "sv_cut")
        assert not index.is_eligible("st_2", "sv_color")
        assert not index.is_eligible("st_3", "sv_cut")

    def test_eligible_staff_keeps_order(self):
        index = EligibilityIndex([
            StaffServiceAssignment(staff_id="st_1", service_id="sv_cut"),
            StaffServiceAssignment(staff_id="st_3", service_id="sv_cut"),
        ])

        assert index.eligible_staff("sv_cut", ["st_3", "st_2", "st_1"]) == ["st_3", "st_1"]
