"""
Enum definitions for the application.

These enums are used across models and provide type-safe status/priority values.
Values match the wire format used by the web client.
"""

from enum import Enum


class Priority(str, Enum):
    """Milestone priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class MilestoneStatus(str, Enum):
    """
    Milestone status.

    Derived from progress and due date on every write; see status_deriver.
    """

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    OVERDUE = "overdue"


class PhaseStatus(str, Enum):
    """Phase status."""

    PENDING = "pending"
    PLANNING = "planning"
    IN_PROGRESS = "in-progress"
    ON_HOLD = "on-hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class VoteStatus(str, Enum):
    """A single approver's decision within a stage."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    DELEGATED = "delegated"


class StageStatus(str, Enum):
    """Rolled-up status of one approval stage."""

    PENDING = "pending"
    IN_REVIEW = "in-review"
    APPROVED = "approved"
    REJECTED = "rejected"


class OverallStatus(str, Enum):
    """Rolled-up status of a whole approval workflow."""

    PENDING = "pending"
    IN_REVIEW = "in-review"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class ApprovalAction(str, Enum):
    """Actions an approver can take on their pending vote."""

    APPROVE = "approve"
    REJECT = "reject"
    DELEGATE = "delegate"


# Allowed vote transitions. Non-pending votes are immutable.
VOTE_TRANSITIONS: dict[VoteStatus, frozenset[VoteStatus]] = {
    VoteStatus.PENDING: frozenset(
        {VoteStatus.APPROVED, VoteStatus.REJECTED, VoteStatus.DELEGATED}
    ),
    VoteStatus.APPROVED: frozenset(),
    VoteStatus.REJECTED: frozenset(),
    VoteStatus.DELEGATED: frozenset(),
}

TERMINAL_OVERALL_STATUSES: frozenset[OverallStatus] = frozenset(
    {OverallStatus.APPROVED, OverallStatus.REJECTED, OverallStatus.CANCELLED}
)
