"""
Phase repository interface.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from app.models.phase import Phase, PhaseCreate, PhaseOrder, PhaseUpdate


class IPhaseRepository(ABC):
    """Interface for phase repository operations."""

    @abstractmethod
    async def create(self, user_id: str, phase: PhaseCreate) -> Phase:
        """Create a new phase."""
        pass

    @abstractmethod
    async def get(self, phase_id: UUID, include_deleted: bool = False) -> Phase | None:
        """Get a phase by ID."""
        pass

    @abstractmethod
    async def get_project_id(self, phase_id: UUID) -> UUID | None:
        """Get project ID for a phase."""
        pass

    @abstractmethod
    async def list_by_project(self, project_id: UUID) -> list[Phase]:
        """List phases for a project in order."""
        pass

    @abstractmethod
    async def update(self, user_id: str, phase_id: UUID, update: PhaseUpdate) -> Phase:
        """Apply the set fields of an update. Raises NotFoundError / ValidationError."""
        pass

    @abstractmethod
    async def reorder(self, user_id: str, project_id: UUID, orders: list[PhaseOrder]) -> list[Phase]:
        """
        Set new order values in one transaction and return the project's phases.

        Raises ValidationError if any ID is repeated or not a live phase of
        the project; nothing is written then.
        """
        pass

    @abstractmethod
    async def soft_delete(self, user_id: str, phase_id: UUID) -> bool:
        """Mark a phase deleted. Returns False if not found."""
        pass
