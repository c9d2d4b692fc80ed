"""
Milestone approval workflow models.

A MilestoneApproval is the aggregate root: it owns an ordered list of stages,
and each stage owns the votes cast in it. Stages and votes have no lifecycle
of their own and are persisted together with the approval.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, computed_field, model_validator

from app.models.enums import (
    TERMINAL_OVERALL_STATUSES,
    ApprovalAction,
    OverallStatus,
    StageStatus,
    VoteStatus,
)
from app.utils.datetime_utils import ensure_utc, now_utc


# ===========================================
# Embedded documents
# ===========================================


class ApprovalVote(BaseModel):
    """One approver's vote within a stage."""

    user_id: str = Field(..., min_length=1)
    user_role: str = Field(..., min_length=1, description="Role held when the vote was assigned")
    status: VoteStatus = VoteStatus.PENDING
    comments: Optional[str] = Field(None, max_length=1000)
    acted_at: Optional[datetime] = Field(None, description="When the vote left pending")
    delegated_to: Optional[str] = None
    delegated_from: Optional[str] = Field(
        None, description="Set when this vote was created by a delegation"
    )

    @model_validator(mode="after")
    def validate_variant(self):
        if self.status == VoteStatus.PENDING and self.acted_at is not None:
            raise ValueError("A pending vote cannot have acted_at")
        if self.status == VoteStatus.DELEGATED and not self.delegated_to:
            raise ValueError("A delegated vote requires delegated_to")
        if self.status != VoteStatus.DELEGATED and self.delegated_to:
            raise ValueError("Only delegated votes carry delegated_to")
        return self

    @property
    def is_pending(self) -> bool:
        return self.status == VoteStatus.PENDING


class ApprovalStage(BaseModel):
    """One sequential step of an approval workflow."""

    stage_name: str = Field(..., min_length=1, max_length=200)
    required_roles: list[str] = Field(..., min_length=1)
    is_optional: bool = False
    order: int = Field(..., ge=0)
    stage_status: StageStatus = StageStatus.PENDING
    completed_at: Optional[datetime] = None
    votes: list[ApprovalVote] = Field(default_factory=list)

    def find_vote(self, user_id: str, status: Optional[VoteStatus] = None) -> Optional[ApprovalVote]:
        """Return the user's vote in this stage, pending ones first."""
        candidates = [v for v in self.votes if v.user_id == user_id]
        if status is not None:
            candidates = [v for v in candidates if v.status == status]
        candidates.sort(key=lambda v: not v.is_pending)
        return candidates[0] if candidates else None

    def has_pending_vote(self) -> bool:
        return any(v.is_pending for v in self.votes)


# ===========================================
# Workflow configuration (request side)
# ===========================================


class StageConfig(BaseModel):
    """Stage definition supplied when submitting a milestone."""

    stage_name: str = Field(..., min_length=1, max_length=200)
    required_roles: list[str] = Field(..., min_length=1)
    is_optional: bool = False
    order: int = Field(..., ge=0)


class WorkflowConfig(BaseModel):
    """Ordered stage definitions for one submission."""

    requires_approval: bool = True
    approval_stages: list[StageConfig] = Field(..., min_length=1)


class ApprovalCreate(BaseModel):
    """Body of the create-approval request."""

    milestone_id: UUID
    project_id: UUID
    phase_id: Optional[UUID] = None
    workflow_config: WorkflowConfig
    submission_comments: Optional[str] = Field(None, max_length=1000)
    completion_deadline: Optional[datetime] = None


class ApprovalActionRequest(BaseModel):
    """Body of the apply-action request."""

    approval_id: UUID
    action: ApprovalAction
    comments: Optional[str] = Field(None, max_length=1000)
    delegate_to_user_id: Optional[str] = None


class ApprovalCancelRequest(BaseModel):
    """Body of the cancel request."""

    reason: Optional[str] = Field(None, max_length=1000)


# ===========================================
# Aggregate
# ===========================================


class MilestoneApproval(BaseModel):
    """Approval workflow instance for one milestone submission."""

    id: UUID
    milestone_id: UUID
    project_id: UUID
    phase_id: Optional[UUID] = None
    current_stage: str
    stages: list[ApprovalStage] = Field(default_factory=list)
    overall_status: OverallStatus = OverallStatus.PENDING
    final_approved_at: Optional[datetime] = None
    final_approved_by: Optional[str] = None
    submitted_by: str
    submitted_at: datetime
    completion_deadline: Optional[datetime] = None
    submission_comments: Optional[str] = Field(None, max_length=1000)
    rejection_reason: Optional[str] = Field(None, max_length=1000)
    is_active: bool = True
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    version: int = Field(default=1, ge=1, description="Optimistic concurrency token")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.overall_status in TERMINAL_OVERALL_STATUSES

    def get_stage(self, stage_name: str) -> Optional[ApprovalStage]:
        for stage in self.stages:
            if stage.stage_name == stage_name:
                return stage
        return None

    @computed_field
    @property
    def is_overdue(self) -> bool:
        return (
            self.completion_deadline is not None
            and ensure_utc(self.completion_deadline) < now_utc()
            and not self.is_terminal
        )

    @computed_field
    @property
    def total_stages(self) -> int:
        return len(self.stages)

    @computed_field
    @property
    def completed_stages(self) -> int:
        return sum(1 for s in self.stages if s.stage_status == StageStatus.APPROVED)

    class Config:
        from_attributes = True


class ApprovalListResponse(BaseModel):
    """Filtered approval list with paging info."""

    approvals: list[MilestoneApproval]
    total: int
    limit: int
    offset: int
