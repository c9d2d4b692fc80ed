"""
User directory models.

Accounts are owned by the identity service; this service only mirrors the
fields it needs to route approvals: who is active and which roles they hold.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class DirectoryUserCreate(BaseModel):
    """Register or refresh a user in the directory."""

    id: str = Field(..., min_length=1, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    display_name: Optional[str] = Field(None, max_length=255)
    roles: list[str] = Field(default_factory=list)
    is_active: bool = True


class DirectoryUser(BaseModel):
    """User as seen by the approval engine."""

    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    roles: list[str] = Field(default_factory=list)
    is_active: bool = True
    created_at: datetime
    updated_at: datetime

    def has_role(self, role: str) -> bool:
        return role in self.roles

    class Config:
        from_attributes = True
