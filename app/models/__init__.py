"""Pydantic models (schemas) for the application."""

from app.models.enums import (
    ApprovalAction,
    MilestoneStatus,
    OverallStatus,
    PhaseStatus,
    Priority,
    StageStatus,
    VoteStatus,
)
from app.models.milestone import Milestone, MilestoneCreate, MilestoneUpdate
from app.models.phase import Phase, PhaseCreate, PhaseUpdate
from app.models.approval import (
    ApprovalStage,
    ApprovalVote,
    MilestoneApproval,
    StageConfig,
    WorkflowConfig,
)

__all__ = [
    # Enums
    "ApprovalAction",
    "MilestoneStatus",
    "OverallStatus",
    "PhaseStatus",
    "Priority",
    "StageStatus",
    "VoteStatus",
    # Milestone
    "Milestone",
    "MilestoneCreate",
    "MilestoneUpdate",
    # Phase
    "Phase",
    "PhaseCreate",
    "PhaseUpdate",
    # Approval
    "ApprovalStage",
    "ApprovalVote",
    "MilestoneApproval",
    "StageConfig",
    "WorkflowConfig",
]
