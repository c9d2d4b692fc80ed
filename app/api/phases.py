"""
Phase API endpoints.

Provides CRUD operations for phases.
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from app.api.deps import CurrentUser, MilestoneRepo, PhaseRepo
from app.core.exceptions import NotFoundError
from app.models.phase import Phase, PhaseCreate, PhaseReorderRequest, PhaseUpdate
from app.services.progress_service import recalculate_phase_progress

router = APIRouter(prefix="/phases", tags=["phases"])


@router.post("", response_model=Phase, status_code=status.HTTP_201_CREATED)
async def create_phase(
    phase: PhaseCreate,
    user: CurrentUser,
    repo: PhaseRepo,
) -> Phase:
    """Create a new phase."""
    return await repo.create(user.id, phase)


@router.get("/{phase_id}", response_model=Phase)
async def get_phase(
    phase_id: UUID,
    user: CurrentUser,
    repo: PhaseRepo,
) -> Phase:
    """Get a phase by ID."""
    phase = await repo.get(phase_id)
    if not phase:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Phase {phase_id} not found",
        )
    return phase


@router.get("/project/{project_id}", response_model=list[Phase])
async def list_phases_by_project(
    project_id: UUID,
    user: CurrentUser,
    repo: PhaseRepo,
) -> list[Phase]:
    """List all phases for a project in order."""
    return await repo.list_by_project(project_id)


@router.patch("/project/{project_id}/order", response_model=list[Phase])
async def reorder_phases(
    project_id: UUID,
    data: PhaseReorderRequest,
    user: CurrentUser,
    repo: PhaseRepo,
) -> list[Phase]:
    """Move phases to new positions within a project."""
    return await repo.reorder(user.id, project_id, data.phases)


@router.patch("/{phase_id}", response_model=Phase)
async def update_phase(
    phase_id: UUID,
    phase: PhaseUpdate,
    user: CurrentUser,
    repo: PhaseRepo,
) -> Phase:
    """Update a phase."""
    try:
        return await repo.update(user.id, phase_id, phase)
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e


@router.post("/{phase_id}/recalculate-progress", response_model=Phase)
async def recalculate_progress(
    phase_id: UUID,
    user: CurrentUser,
    repo: PhaseRepo,
    milestone_repo: MilestoneRepo,
) -> Phase:
    """Recompute phase progress from its milestones."""
    try:
        return await recalculate_phase_progress(repo, milestone_repo, user.id, phase_id)
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e


@router.delete("/{phase_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_phase(
    phase_id: UUID,
    user: CurrentUser,
    repo: PhaseRepo,
):
    """Soft-delete a phase."""
    deleted = await repo.soft_delete(user.id, phase_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Phase {phase_id} not found",
        )
