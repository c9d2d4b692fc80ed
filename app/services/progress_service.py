"""
Progress rollups for projects and phases.
"""

from __future__ import annotations

from uuid import UUID

from app.core.exceptions import NotFoundError
from app.core.logger import setup_logger
from app.interfaces.milestone_repository import IMilestoneRepository
from app.interfaces.phase_repository import IPhaseRepository
from app.models.enums import MilestoneStatus
from app.models.milestone import Milestone, ProjectProgress
from app.models.phase import Phase, PhaseUpdate

logger = setup_logger(__name__)


def average_progress(milestones: list[Milestone]) -> int:
    """Rounded mean of milestone progress; 0 when there are none."""
    if not milestones:
        return 0
    return round(sum(m.progress for m in milestones) / len(milestones))


async def calculate_project_progress(
    milestone_repo: IMilestoneRepository,
    project_id: UUID,
) -> ProjectProgress:
    milestones = await milestone_repo.list_by_project(project_id)
    return ProjectProgress(
        project_id=project_id,
        progress=average_progress(milestones),
        total_milestones=len(milestones),
        completed_milestones=sum(1 for m in milestones if m.status == MilestoneStatus.COMPLETED),
        overdue_milestones=sum(1 for m in milestones if m.is_overdue),
    )


async def recalculate_phase_progress(
    phase_repo: IPhaseRepository,
    milestone_repo: IMilestoneRepository,
    user_id: str,
    phase_id: UUID,
) -> Phase:
    """
    Set a phase's progress from its milestones.

    The write goes through the normal phase update, so status derivation
    applies (a phase whose milestones are all done becomes completed).
    """
    phase = await phase_repo.get(phase_id)
    if phase is None:
        raise NotFoundError(f"Phase {phase_id} not found")
    milestones = await milestone_repo.list_by_phase(phase_id)
    progress = average_progress(milestones)
    if progress == phase.progress:
        return phase
    logger.info(f"Phase {phase_id} progress {phase.progress} -> {progress}")
    return await phase_repo.update(user_id, phase_id, PhaseUpdate(progress=progress))
