"""
Milestone repository interface.

Defines the contract for milestone data operations. Implementations must run
status derivation on every write.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from app.models.milestone import Milestone, MilestoneCreate, MilestoneInlineUpdate, MilestoneUpdate


class IMilestoneRepository(ABC):
    """Interface for milestone repository operations."""

    @abstractmethod
    async def create(self, user_id: str, milestone: MilestoneCreate) -> Milestone:
        """Create a new milestone."""
        pass

    @abstractmethod
    async def get(self, milestone_id: UUID, include_deleted: bool = False) -> Milestone | None:
        """Get a milestone by ID. Soft-deleted milestones are hidden by default."""
        pass

    @abstractmethod
    async def get_project_id(self, milestone_id: UUID) -> UUID | None:
        """Get project ID for a milestone."""
        pass

    @abstractmethod
    async def list_by_phase(self, phase_id: UUID) -> list[Milestone]:
        """List milestones for a phase, earliest due first."""
        pass

    @abstractmethod
    async def list_by_project(self, project_id: UUID) -> list[Milestone]:
        """List milestones for a project, earliest due first."""
        pass

    @abstractmethod
    async def list_overdue(self, project_id: UUID | None = None) -> list[Milestone]:
        """List milestones past due that are not completed."""
        pass

    @abstractmethod
    async def update(
        self,
        user_id: str,
        milestone_id: UUID,
        update: MilestoneUpdate | MilestoneInlineUpdate,
    ) -> Milestone:
        """Apply the set fields of an update. Raises NotFoundError."""
        pass

    @abstractmethod
    async def soft_delete(self, user_id: str, milestone_id: UUID) -> bool:
        """Mark a milestone deleted. Returns False if not found."""
        pass
