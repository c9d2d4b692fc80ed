"""
Milestone API endpoints.

Provides CRUD operations for milestones. Status is never taken at face
value: every write is re-derived from progress and due date.
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from app.api.deps import CurrentUser, MilestoneRepo, PhaseRepo
from app.core.exceptions import NotFoundError
from app.models.milestone import (
    Milestone,
    MilestoneCreate,
    MilestoneInlineUpdate,
    MilestoneUpdate,
    ProjectProgress,
)
from app.services.progress_service import calculate_project_progress

router = APIRouter(prefix="/milestones", tags=["milestones"])


async def _ensure_phase_in_project(phase_repo, phase_id: UUID | None, project_id: UUID) -> None:
    if phase_id is None:
        return
    phase_project_id = await phase_repo.get_project_id(phase_id)
    if phase_project_id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Phase {phase_id} not found",
        )
    if phase_project_id != project_id:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Phase belongs to a different project",
        )


@router.post("", response_model=Milestone, status_code=status.HTTP_201_CREATED)
async def create_milestone(
    milestone: MilestoneCreate,
    user: CurrentUser,
    repo: MilestoneRepo,
    phase_repo: PhaseRepo,
) -> Milestone:
    """Create a new milestone."""
    await _ensure_phase_in_project(phase_repo, milestone.phase_id, milestone.project_id)
    return await repo.create(user.id, milestone)


@router.get("", response_model=list[Milestone])
async def list_milestones(
    user: CurrentUser,
    repo: MilestoneRepo,
    project_id: UUID | None = Query(None, description="Filter milestones by project ID"),
    phase_id: UUID | None = Query(None, description="Filter milestones by phase ID"),
) -> list[Milestone]:
    """List milestones by project or phase."""
    if project_id:
        return await repo.list_by_project(project_id)
    if phase_id:
        return await repo.list_by_phase(phase_id)
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="project_id or phase_id query parameter is required",
    )


@router.get("/overdue", response_model=list[Milestone])
async def list_overdue_milestones(
    user: CurrentUser,
    repo: MilestoneRepo,
    project_id: UUID | None = Query(None, description="Limit to one project"),
) -> list[Milestone]:
    """List milestones past their due date that are not completed."""
    return await repo.list_overdue(project_id)


@router.get("/project/{project_id}", response_model=list[Milestone])
async def list_milestones_by_project(
    project_id: UUID,
    user: CurrentUser,
    repo: MilestoneRepo,
) -> list[Milestone]:
    """List milestones for a project."""
    return await repo.list_by_project(project_id)


@router.get("/project/{project_id}/progress", response_model=ProjectProgress)
async def get_project_progress(
    project_id: UUID,
    user: CurrentUser,
    repo: MilestoneRepo,
) -> ProjectProgress:
    """Project progress as the rounded mean of its milestones' progress."""
    return await calculate_project_progress(repo, project_id)


@router.get("/phase/{phase_id}", response_model=list[Milestone])
async def list_milestones_by_phase(
    phase_id: UUID,
    user: CurrentUser,
    repo: MilestoneRepo,
    phase_repo: PhaseRepo,
) -> list[Milestone]:
    """List milestones for a phase."""
    if not await phase_repo.get_project_id(phase_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Phase {phase_id} not found",
        )
    return await repo.list_by_phase(phase_id)


@router.get("/{milestone_id}", response_model=Milestone)
async def get_milestone(
    milestone_id: UUID,
    user: CurrentUser,
    repo: MilestoneRepo,
) -> Milestone:
    """Get a milestone by ID."""
    milestone = await repo.get(milestone_id)
    if not milestone:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Milestone {milestone_id} not found",
        )
    return milestone


@router.patch("/{milestone_id}", response_model=Milestone)
async def update_milestone(
    milestone_id: UUID,
    milestone: MilestoneUpdate,
    user: CurrentUser,
    repo: MilestoneRepo,
    phase_repo: PhaseRepo,
) -> Milestone:
    """Update a milestone."""
    if milestone.phase_id is not None:
        project_id = await repo.get_project_id(milestone_id)
        if project_id:
            await _ensure_phase_in_project(phase_repo, milestone.phase_id, project_id)

    try:
        return await repo.update(user.id, milestone_id, milestone)
    except NotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc


@router.patch("/{milestone_id}/inline", response_model=Milestone)
async def inline_update_milestone(
    milestone_id: UUID,
    milestone: MilestoneInlineUpdate,
    user: CurrentUser,
    repo: MilestoneRepo,
) -> Milestone:
    """Quick edit of status, priority or due date from a list view."""
    try:
        return await repo.update(user.id, milestone_id, milestone)
    except NotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc


@router.delete("/{milestone_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_milestone(
    milestone_id: UUID,
    user: CurrentUser,
    repo: MilestoneRepo,
):
    """Soft-delete a milestone."""
    deleted = await repo.soft_delete(user.id, milestone_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Milestone {milestone_id} not found",
        )
