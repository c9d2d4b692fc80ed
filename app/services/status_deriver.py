"""
Status derivation for milestones and phases.

Status is computed from progress and dates, not set independently. Rules are
evaluated in a fixed order and the first match wins:

1. progress == 100 and not completed  -> completed
2. progress > 0 and pending            -> in-progress
3. not completed and past due          -> overdue (milestones only)
4. otherwise unchanged

Every write path that touches progress, due date or status goes through
``apply_milestone_derivation`` / ``apply_phase_derivation``. Nothing here raises.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from app.models.enums import MilestoneStatus, PhaseStatus
from app.utils.datetime_utils import ensure_utc


def derive_status(
    progress: int,
    due_date: Optional[datetime],
    current_status: MilestoneStatus,
    now: datetime,
) -> MilestoneStatus:
    """
    Return the corrected milestone status.

    Args:
        progress: Completion percentage (0-100)
        due_date: Target due date; None never counts as overdue
        current_status: Status currently stored
        now: Reference time

    Returns:
        MilestoneStatus: The derived status
    """
    if progress == 100 and current_status != MilestoneStatus.COMPLETED:
        return MilestoneStatus.COMPLETED
    if progress > 0 and current_status == MilestoneStatus.PENDING:
        return MilestoneStatus.IN_PROGRESS
    if (
        current_status != MilestoneStatus.COMPLETED
        and due_date is not None
        and ensure_utc(due_date) < ensure_utc(now)
    ):
        return MilestoneStatus.OVERDUE
    return current_status


def derive_phase_status(progress: int, current_status: PhaseStatus) -> PhaseStatus:
    """Return the corrected phase status. Overdue is a read-only flag on phases."""
    if progress == 100 and current_status != PhaseStatus.COMPLETED:
        return PhaseStatus.COMPLETED
    if progress > 0 and current_status == PhaseStatus.PENDING:
        return PhaseStatus.IN_PROGRESS
    return current_status


def apply_milestone_derivation(fields: dict[str, Any], now: datetime) -> dict[str, Any]:
    """
    Apply derivation and date stamping to a full set of milestone fields.

    ``fields`` must hold the merged record (stored values overlaid with the
    update), so a partial update of any single input is still derived
    against the other two. Returns a new dict.
    """
    result = dict(fields)
    current = MilestoneStatus(result.get("status") or MilestoneStatus.PENDING)
    derived = derive_status(
        int(result.get("progress") or 0),
        result.get("due_date"),
        current,
        now,
    )
    result["status"] = derived
    if derived == MilestoneStatus.COMPLETED and not result.get("completed_date"):
        result["completed_date"] = now
    return result


def apply_phase_derivation(fields: dict[str, Any], now: datetime) -> dict[str, Any]:
    """Apply derivation plus actual start/end stamping to merged phase fields."""
    result = dict(fields)
    current = PhaseStatus(result.get("status") or PhaseStatus.PENDING)
    derived = derive_phase_status(int(result.get("progress") or 0), current)
    result["status"] = derived
    if derived == PhaseStatus.COMPLETED and not result.get("actual_end_date"):
        result["actual_end_date"] = now
    if (
        derived == PhaseStatus.IN_PROGRESS
        and current == PhaseStatus.PENDING
        and not result.get("actual_start_date")
    ):
        result["actual_start_date"] = now
    return result
