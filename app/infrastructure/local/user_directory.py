"""
SQLite implementation of the user directory.
"""

from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import select

from app.infrastructure.local.database import UserORM, get_session_factory
from app.infrastructure.local.orm_utils import orm_to_dict, to_column_value
from app.infrastructure.local.retry import with_persistence_retry
from app.interfaces.user_directory import IUserDirectory
from app.models.user import DirectoryUser, DirectoryUserCreate
from app.utils.datetime_utils import now_utc


class SqliteUserDirectory(IUserDirectory):
    """SQLite implementation of user directory."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: UserORM) -> DirectoryUser:
        data = orm_to_dict(orm)
        data["roles"] = data.get("roles") or []
        return DirectoryUser.model_validate(data)

    @with_persistence_retry
    async def get(self, user_id: str) -> Optional[DirectoryUser]:
        async with self._session_factory() as session:
            result = await session.execute(select(UserORM).where(UserORM.id == user_id))
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None

    @with_persistence_retry
    async def upsert(self, data: DirectoryUserCreate) -> DirectoryUser:
        now = to_column_value(now_utc())
        # Order is kept, duplicates dropped.
        roles = list(dict.fromkeys(data.roles))
        async with self._session_factory() as session:
            result = await session.execute(select(UserORM).where(UserORM.id == data.id))
            orm = result.scalar_one_or_none()
            if orm is None:
                orm = UserORM(id=data.id, created_at=now)
                session.add(orm)
            orm.email = data.email
            orm.display_name = data.display_name
            orm.roles = roles
            orm.is_active = data.is_active
            orm.updated_at = now
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    async def is_active_user(self, user_id: str) -> bool:
        user = await self.get(user_id)
        return user is not None and user.is_active

    async def get_roles(self, user_id: str) -> set[str]:
        user = await self.get(user_id)
        if user is None or not user.is_active:
            return set()
        return set(user.roles)

    async def has_role(self, user_id: str, role: str) -> bool:
        return role in await self.get_roles(user_id)

    @with_persistence_retry
    async def list_users_with_roles(self, roles: Iterable[str]) -> dict[str, list[str]]:
        wanted = list(dict.fromkeys(roles))
        by_role: dict[str, list[str]] = {role: [] for role in wanted}
        if not wanted:
            return by_role
        async with self._session_factory() as session:
            # Roles are a JSON list, so matching happens here rather than in SQL.
            result = await session.execute(
                select(UserORM).where(UserORM.is_active.is_(True)).order_by(UserORM.id)
            )
            for orm in result.scalars().all():
                held = set(orm.roles or [])
                for role in wanted:
                    if role in held:
                        by_role[role].append(orm.id)
        return by_role
