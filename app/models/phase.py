"""
Phase model definitions.

Phases are the intermediate grouping between projects and milestones/tasks.
"""

from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

from pydantic import BaseModel, Field, computed_field, model_validator

from app.models.enums import PhaseStatus
from app.utils.datetime_utils import days_between, ensure_utc, now_utc

ListItem = Annotated[str, Field(max_length=500)]


class PhaseBase(BaseModel):
    """Base phase fields."""

    title: str = Field(..., min_length=2, max_length=200, description="Phase title")
    description: Optional[str] = Field(None, max_length=1000, description="Phase description")
    project_id: UUID = Field(..., description="Owning project ID")
    order: int = Field(default=1, ge=1, description="Position within the project (1-based)")
    start_date: datetime = Field(..., description="Planned start")
    end_date: datetime = Field(..., description="Planned end")
    progress: int = Field(default=0, ge=0, le=100)
    budget_allocation: Optional[float] = Field(None, ge=0)
    actual_cost: Optional[float] = Field(None, ge=0)
    objectives: list[ListItem] = Field(default_factory=list)
    deliverables: list[ListItem] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_date_range(self):
        if ensure_utc(self.end_date) <= ensure_utc(self.start_date):
            raise ValueError("End date must be after start date")
        return self


class PhaseCreate(PhaseBase):
    """Schema for creating a new phase."""

    status: PhaseStatus = PhaseStatus.PENDING


class PhaseUpdate(BaseModel):
    """
    Schema for updating an existing phase.

    Date ordering is checked by the repository against the merged record,
    since either bound may be omitted here.
    """

    title: Optional[str] = Field(None, min_length=2, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    status: Optional[PhaseStatus] = None
    order: Optional[int] = Field(None, ge=1)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    progress: Optional[int] = Field(None, ge=0, le=100)
    budget_allocation: Optional[float] = Field(None, ge=0)
    actual_cost: Optional[float] = Field(None, ge=0)
    objectives: Optional[list[ListItem]] = None
    deliverables: Optional[list[ListItem]] = None


class PhaseOrder(BaseModel):
    id: UUID
    order: int = Field(..., ge=1)


class PhaseReorderRequest(BaseModel):
    """New positions for some or all of a project's phases."""

    phases: list[PhaseOrder] = Field(..., min_length=1)


class Phase(PhaseBase):
    """Complete phase model."""

    id: UUID
    status: PhaseStatus = Field(PhaseStatus.PENDING)
    actual_start_date: Optional[datetime] = None
    actual_end_date: Optional[datetime] = None
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
        # Phases never store "overdue"; it is only exposed here.
        return self.status != PhaseStatus.COMPLETED and ensure_utc(self.end_date) < now_utc()

    @computed_field
    @property
    def duration_days(self) -> int:
        return days_between(self.start_date, self.end_date)

    @computed_field
    @property
    def actual_duration_days(self) -> Optional[int]:
        if not self.actual_start_date or not self.actual_end_date:
            return None
        return days_between(self.actual_start_date, self.actual_end_date)

    @computed_field
    @property
    def days_remaining(self) -> int:
        return days_between(now_utc(), self.end_date)

    class Config:
        from_attributes = True
