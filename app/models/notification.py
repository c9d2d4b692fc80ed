"""
Notification model definitions.

Notifications inform users about approval workflow events. Delivery
(email, push) is handled elsewhere; this service only records them.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    """Types of notifications."""

    APPROVAL_REQUESTED = "approval_requested"  # a stage is waiting on the recipient
    APPROVAL_APPROVED = "approval_approved"  # workflow fully approved
    APPROVAL_REJECTED = "approval_rejected"  # workflow rejected
    APPROVAL_CANCELLED = "approval_cancelled"  # workflow withdrawn
    APPROVAL_DELEGATED = "approval_delegated"  # a vote was handed to the recipient


class Notification(BaseModel):
    """User notification model."""

    id: UUID
    user_id: str = Field(..., description="Recipient user ID")
    type: NotificationType = Field(..., description="Notification type")
    title: str = Field(..., max_length=200)
    message: str = Field(..., max_length=500)

    # Navigation
    link_type: Optional[str] = Field(None, description="Target type (milestone_approval, milestone)")
    link_id: Optional[str] = Field(None, description="Target ID")

    # Context
    project_id: Optional[UUID] = None

    # Status
    is_read: bool = False
    read_at: Optional[datetime] = None

    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class NotificationCreate(BaseModel):
    """Schema for creating a notification."""

    user_id: str
    type: NotificationType
    title: str
    message: str
    link_type: Optional[str] = None
    link_id: Optional[str] = None
    project_id: Optional[UUID] = None
