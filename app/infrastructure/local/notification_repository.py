"""
SQLite implementation of notification repository.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import desc, select

from app.infrastructure.local.database import NotificationORM, get_session_factory
from app.infrastructure.local.orm_utils import orm_to_dict, to_column_value
from app.infrastructure.local.retry import with_persistence_retry
from app.interfaces.notification_repository import INotificationRepository
from app.models.notification import Notification, NotificationCreate
from app.utils.datetime_utils import now_utc


class SqliteNotificationRepository(INotificationRepository):
    """SQLite implementation of notification repository."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: NotificationORM) -> Notification:
        return Notification.model_validate(orm_to_dict(orm))

    @staticmethod
    def _new_orm(notification: NotificationCreate, now) -> NotificationORM:
        return NotificationORM(
            id=str(uuid4()),
            user_id=notification.user_id,
            type=notification.type.value,
            title=notification.title,
            message=notification.message,
            link_type=notification.link_type,
            link_id=notification.link_id,
            project_id=str(notification.project_id) if notification.project_id else None,
            is_read=False,
            read_at=None,
            created_at=now,
            updated_at=now,
        )

    @with_persistence_retry
    async def create(self, notification: NotificationCreate) -> Notification:
        async with self._session_factory() as session:
            orm = self._new_orm(notification, to_column_value(now_utc()))
            session.add(orm)
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    @with_persistence_retry
    async def create_bulk(self, notifications: list[NotificationCreate]) -> list[Notification]:
        if not notifications:
            return []
        async with self._session_factory() as session:
            now = to_column_value(now_utc())
            orms = [self._new_orm(notification, now) for notification in notifications]
            session.add_all(orms)
            await session.commit()
            for orm in orms:
                await session.refresh(orm)
            return [self._orm_to_model(orm) for orm in orms]

    @with_persistence_retry
    async def list(
        self,
        user_id: str,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Notification]:
        async with self._session_factory() as session:
            query = select(NotificationORM).where(NotificationORM.user_id == user_id)

            if unread_only:
                query = query.where(NotificationORM.is_read.is_(False))

            query = query.order_by(desc(NotificationORM.created_at))
            query = query.offset(offset).limit(limit)

            result = await session.execute(query)
            return [self._orm_to_model(orm) for orm in result.scalars().all()]

    @with_persistence_retry
    async def mark_as_read(self, user_id: str, notification_id: UUID) -> Optional[Notification]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(NotificationORM).where(
                    NotificationORM.id == str(notification_id),
                    NotificationORM.user_id == user_id,
                )
            )
            orm = result.scalar_one_or_none()
            if not orm:
                return None

            if not orm.is_read:
                now = to_column_value(now_utc())
                orm.is_read = True
                orm.read_at = now
                orm.updated_at = now
                await session.commit()
                await session.refresh(orm)

            return self._orm_to_model(orm)
