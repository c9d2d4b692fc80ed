"""
User directory interface.

Answers "does user X hold role Y" for the approval engine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from app.models.user import DirectoryUser, DirectoryUserCreate


class IUserDirectory(ABC):
    """Abstract interface for user/role lookups."""

    @abstractmethod
    async def get(self, user_id: str) -> Optional[DirectoryUser]:
        """Get a user by ID."""
        pass

    @abstractmethod
    async def upsert(self, data: DirectoryUserCreate) -> DirectoryUser:
        """Create or replace a user's directory entry."""
        pass

    @abstractmethod
    async def is_active_user(self, user_id: str) -> bool:
        """Whether the user exists and is active."""
        pass

    @abstractmethod
    async def get_roles(self, user_id: str) -> set[str]:
        """Roles held by an active user (empty for unknown or inactive users)."""
        pass

    @abstractmethod
    async def has_role(self, user_id: str, role: str) -> bool:
        """Whether an active user holds the role."""
        pass

    @abstractmethod
    async def list_users_with_roles(self, roles: Iterable[str]) -> dict[str, list[str]]:
        """Map each role to the IDs of active users holding it."""
        pass
