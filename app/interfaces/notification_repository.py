"""
Notification repository interface.

Stores the approval workflow notices fanned out by the notification
service. Delivery is out of scope; recipients poll the list endpoint.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from app.models.notification import Notification, NotificationCreate


class INotificationRepository(ABC):
    """Abstract interface for approval notification storage."""

    @abstractmethod
    async def create(self, notification: NotificationCreate) -> Notification:
        """Store a single notice for one recipient."""
        pass

    @abstractmethod
    async def create_bulk(self, notifications: list[NotificationCreate]) -> list[Notification]:
        """Store one notice per recipient in a single transaction, keeping input order."""
        pass

    @abstractmethod
    async def list(
        self,
        user_id: str,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Notification]:
        """Notices addressed to the user, newest first."""
        pass

    @abstractmethod
    async def mark_as_read(self, user_id: str, notification_id: UUID) -> Optional[Notification]:
        """Stamp read_at once. Returns None when the notice is missing or not the user's."""
        pass
