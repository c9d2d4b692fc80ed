"""
Milestone model definitions.

Milestones belong to projects (and optionally phases) and track key outcomes.
Their status is derived from progress and due date, never set independently.
"""

from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

from pydantic import BaseModel, Field, computed_field

from app.models.enums import MilestoneStatus, Priority
from app.utils.datetime_utils import days_between, ensure_utc, now_utc

ListItem = Annotated[str, Field(max_length=500)]


class MilestoneBase(BaseModel):
    """Base milestone fields."""

    project_id: UUID = Field(..., description="Project ID")
    phase_id: Optional[UUID] = Field(None, description="Phase ID")
    title: str = Field(..., min_length=2, max_length=200, description="Milestone title")
    description: Optional[str] = Field(None, max_length=1000, description="Milestone description")
    due_date: datetime = Field(..., description="Target due date")
    priority: Priority = Field(Priority.MEDIUM)
    progress: int = Field(default=0, ge=0, le=100, description="Completion percentage")
    assignee_id: Optional[str] = Field(None, description="Assigned user ID")
    linked_task_ids: list[UUID] = Field(default_factory=list)
    deliverables: list[ListItem] = Field(default_factory=list)
    success_criteria: list[ListItem] = Field(default_factory=list)
    dependencies: list[UUID] = Field(default_factory=list, description="Other milestone IDs")
    budget_allocation: Optional[float] = Field(None, ge=0)
    actual_cost: Optional[float] = Field(None, ge=0)


class MilestoneCreate(MilestoneBase):
    """Schema for creating a milestone."""

    status: MilestoneStatus = Field(
        MilestoneStatus.PENDING,
        description="Initial status; corrected by status derivation before saving",
    )


class MilestoneUpdate(BaseModel):
    """Schema for updating a milestone. Only set fields are applied."""

    phase_id: Optional[UUID] = None
    title: Optional[str] = Field(None, min_length=2, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    due_date: Optional[datetime] = None
    status: Optional[MilestoneStatus] = None
    priority: Optional[Priority] = None
    progress: Optional[int] = Field(None, ge=0, le=100)
    assignee_id: Optional[str] = None
    linked_task_ids: Optional[list[UUID]] = None
    deliverables: Optional[list[ListItem]] = None
    success_criteria: Optional[list[ListItem]] = None
    dependencies: Optional[list[UUID]] = None
    budget_allocation: Optional[float] = Field(None, ge=0)
    actual_cost: Optional[float] = Field(None, ge=0)


class MilestoneInlineUpdate(BaseModel):
    """Inline edit from list/kanban views: status, priority or due date."""

    status: Optional[MilestoneStatus] = None
    priority: Optional[Priority] = None
    due_date: Optional[datetime] = None


class Milestone(MilestoneBase):
    """Complete milestone model."""

    id: UUID
    status: MilestoneStatus = Field(MilestoneStatus.PENDING)
    completed_date: Optional[datetime] = None
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None
    created_by: str = Field(..., description="Creator user ID")
    updated_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def is_overdue(self) -> bool:
        return self.status != MilestoneStatus.COMPLETED and ensure_utc(self.due_date) < now_utc()

    @computed_field
    @property
    def days_until_due(self) -> int:
        return days_between(now_utc(), self.due_date)

    class Config:
        from_attributes = True


class ProjectProgress(BaseModel):
    """Progress rollup across a project's milestones."""

    project_id: UUID
    progress: int = Field(..., ge=0, le=100)
    total_milestones: int = 0
    completed_milestones: int = 0
    overdue_milestones: int = 0
