"""
Milestone approval repository interface.

The approval document is written with optimistic concurrency: every save
names the version it was read at and fails if someone else wrote first.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from app.models.approval import MilestoneApproval
from app.models.enums import OverallStatus


class IApprovalRepository(ABC):
    """Interface for milestone approval persistence."""

    @abstractmethod
    async def create(self, approval: MilestoneApproval) -> MilestoneApproval:
        """
        Insert a new active approval.

        Closed approvals still marked active for the same milestone are
        deactivated first. Raises PreconditionError if an open one exists.
        """
        pass

    @abstractmethod
    async def get(self, approval_id: UUID) -> Optional[MilestoneApproval]:
        """Get an approval by ID."""
        pass

    @abstractmethod
    async def get_active_by_milestone(self, milestone_id: UUID) -> Optional[MilestoneApproval]:
        """Get the active approval for a milestone."""
        pass

    @abstractmethod
    async def save(self, approval: MilestoneApproval, expected_version: int) -> MilestoneApproval:
        """
        Persist the aggregate if the stored version still equals expected_version.

        Returns the stored approval with its new version.
        Raises ConcurrencyConflictError on mismatch, NotFoundError if missing.
        """
        pass

    @abstractmethod
    async def list(
        self,
        status: Optional[OverallStatus] = None,
        project_id: Optional[UUID] = None,
        milestone_id: Optional[UUID] = None,
        assigned_to: Optional[str] = None,
        overdue_only: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[MilestoneApproval], int]:
        """
        List active approvals, newest submission first, with total count.

        ``assigned_to`` keeps approvals where that user still has a pending
        vote in any stage.
        """
        pass

    @abstractmethod
    async def list_pending_for_user(
        self,
        user_id: str,
        roles: Optional[set[str]] = None,
    ) -> list[MilestoneApproval]:
        """Open approvals whose current stage waits on the user, oldest first."""
        pass
