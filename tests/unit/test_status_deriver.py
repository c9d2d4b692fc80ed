"""
Unit tests for milestone and phase status derivation.
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.models.enums import MilestoneStatus, PhaseStatus
from app.services.status_deriver import (
    apply_milestone_derivation,
    apply_phase_derivation,
    derive_phase_status,
    derive_status,
)

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)
YESTERDAY = NOW - timedelta(days=1)
TOMORROW = NOW + timedelta(days=1)


class TestDeriveStatus:
    def test_progress_100_completes(self):
        assert derive_status(100, TOMORROW, MilestoneStatus.IN_PROGRESS, NOW) == MilestoneStatus.COMPLETED

    def test_progress_100_completes_even_when_overdue(self):
        assert derive_status(100, YESTERDAY, MilestoneStatus.OVERDUE, NOW) == MilestoneStatus.COMPLETED

    def test_started_pending_becomes_in_progress_before_overdue(self):
        # Rule order: in-progress wins over overdue for a pending milestone.
        assert derive_status(45, YESTERDAY, MilestoneStatus.PENDING, NOW) == MilestoneStatus.IN_PROGRESS

    def test_in_progress_past_due_becomes_overdue(self):
        assert derive_status(45, YESTERDAY, MilestoneStatus.IN_PROGRESS, NOW) == MilestoneStatus.OVERDUE

    def test_untouched_past_due_becomes_overdue(self):
        assert derive_status(0, YESTERDAY, MilestoneStatus.PENDING, NOW) == MilestoneStatus.OVERDUE

    def test_completed_is_never_overdue(self):
        assert derive_status(80, YESTERDAY, MilestoneStatus.COMPLETED, NOW) == MilestoneStatus.COMPLETED

    def test_missing_due_date_is_never_overdue(self):
        assert derive_status(0, None, MilestoneStatus.PENDING, NOW) == MilestoneStatus.PENDING

    def test_unchanged_when_no_rule_applies(self):
        assert derive_status(0, TOMORROW, MilestoneStatus.PENDING, NOW) == MilestoneStatus.PENDING

    def test_naive_due_date_treated_as_utc(self):
        naive = (NOW - timedelta(hours=1)).replace(tzinfo=None)
        assert derive_status(10, naive, MilestoneStatus.IN_PROGRESS, NOW) == MilestoneStatus.OVERDUE

    @pytest.mark.parametrize("status", list(MilestoneStatus))
    def test_pure(self, status):
        first = derive_status(30, YESTERDAY, status, NOW)
        second = derive_status(30, YESTERDAY, status, NOW)
        assert first == second


class TestApplyMilestoneDerivation:
    def test_stamps_completed_date(self):
        fields = {"progress": 100, "due_date": TOMORROW, "status": MilestoneStatus.IN_PROGRESS}
        result = apply_milestone_derivation(fields, NOW)

        assert result["status"] == MilestoneStatus.COMPLETED
        assert result["completed_date"] == NOW

    def test_completed_date_stamped_once(self):
        earlier = NOW - timedelta(days=3)
        fields = {
            "progress": 100,
            "due_date": TOMORROW,
            "status": MilestoneStatus.COMPLETED,
            "completed_date": earlier,
        }
        result = apply_milestone_derivation(fields, NOW)

        assert result["completed_date"] == earlier

    def test_does_not_mutate_input(self):
        fields = {"progress": 100, "due_date": TOMORROW, "status": MilestoneStatus.PENDING}
        apply_milestone_derivation(fields, NOW)

        assert fields["status"] == MilestoneStatus.PENDING
        assert "completed_date" not in fields

    def test_accepts_string_status(self):
        result = apply_milestone_derivation({"progress": 5, "due_date": TOMORROW, "status": "pending"}, NOW)
        assert result["status"] == MilestoneStatus.IN_PROGRESS


class TestPhaseDerivation:
    def test_phase_status_rules(self):
        assert derive_phase_status(100, PhaseStatus.IN_PROGRESS) == PhaseStatus.COMPLETED
        assert derive_phase_status(20, PhaseStatus.PENDING) == PhaseStatus.IN_PROGRESS
        assert derive_phase_status(20, PhaseStatus.ON_HOLD) == PhaseStatus.ON_HOLD
        assert derive_phase_status(0, PhaseStatus.PLANNING) == PhaseStatus.PLANNING

    def test_actual_start_stamped_on_start(self):
        result = apply_phase_derivation({"progress": 10, "status": PhaseStatus.PENDING}, NOW)

        assert result["status"] == PhaseStatus.IN_PROGRESS
        assert result["actual_start_date"] == NOW

    def test_actual_start_not_stamped_when_already_in_progress(self):
        result = apply_phase_derivation({"progress": 10, "status": PhaseStatus.IN_PROGRESS}, NOW)
        assert "actual_start_date" not in result

    def test_actual_end_stamped_on_completion(self):
        result = apply_phase_derivation({"progress": 100, "status": PhaseStatus.IN_PROGRESS}, NOW)

        assert result["status"] == PhaseStatus.COMPLETED
        assert result["actual_end_date"] == NOW
