"""
SQLite implementation of Milestone repository.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import and_, select

from app.core.exceptions import NotFoundError
from app.infrastructure.local.database import MilestoneORM, get_session_factory
from app.infrastructure.local.orm_utils import orm_to_dict, to_column_value
from app.infrastructure.local.retry import with_persistence_retry
from app.interfaces.milestone_repository import IMilestoneRepository
from app.models.enums import MilestoneStatus
from app.models.milestone import Milestone, MilestoneCreate, MilestoneInlineUpdate, MilestoneUpdate
from app.services.status_deriver import apply_milestone_derivation
from app.utils.datetime_utils import now_utc

_LIST_FIELDS = ("linked_task_ids", "deliverables", "success_criteria", "dependencies")

# Written back on every update since derivation may change them.
_DERIVED_FIELDS = ("status", "completed_date")

# Nullable columns an update may clear with an explicit null.
_CLEARABLE_FIELDS = frozenset({"phase_id", "description", "assignee_id", "budget_allocation", "actual_cost"})


class SqliteMilestoneRepository(IMilestoneRepository):
    """SQLite implementation of milestone repository."""

    def __init__(self, session_factory=None):
        """
        Initialize repository.

        Args:
            session_factory: Optional session factory (for testing)
        """
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: MilestoneORM) -> Milestone:
        """Convert ORM object to Pydantic model."""
        data = orm_to_dict(orm)
        for field in _LIST_FIELDS:
            data[field] = data.get(field) or []
        return Milestone.model_validate(data)

    @staticmethod
    def _write_fields(orm: MilestoneORM, fields: dict[str, Any]) -> None:
        for field, value in fields.items():
            setattr(orm, field, to_column_value(value))

    async def _get_orm(self, session, milestone_id: UUID, include_deleted: bool = False) -> MilestoneORM | None:
        conditions = [MilestoneORM.id == str(milestone_id)]
        if not include_deleted:
            conditions.append(MilestoneORM.is_deleted.is_(False))
        result = await session.execute(select(MilestoneORM).where(and_(*conditions)))
        return result.scalar_one_or_none()

    @with_persistence_retry
    async def create(self, user_id: str, milestone: MilestoneCreate) -> Milestone:
        """Create a new milestone with its status derived."""
        now = now_utc()
        fields = apply_milestone_derivation(milestone.model_dump(), now)
        async with self._session_factory() as session:
            orm = MilestoneORM(
                id=str(uuid4()),
                created_by=user_id,
                is_deleted=False,
                created_at=to_column_value(now),
                updated_at=to_column_value(now),
            )
            self._write_fields(orm, fields)
            session.add(orm)
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    @with_persistence_retry
    async def get(self, milestone_id: UUID, include_deleted: bool = False) -> Milestone | None:
        """Get a milestone by ID."""
        async with self._session_factory() as session:
            orm = await self._get_orm(session, milestone_id, include_deleted)
            return self._orm_to_model(orm) if orm else None

    @with_persistence_retry
    async def get_project_id(self, milestone_id: UUID) -> UUID | None:
        """Get project ID for a milestone."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(MilestoneORM.project_id).where(
                    and_(MilestoneORM.id == str(milestone_id), MilestoneORM.is_deleted.is_(False))
                )
            )
            pid = result.scalar_one_or_none()
            return UUID(pid) if pid else None

    @with_persistence_retry
    async def list_by_phase(self, phase_id: UUID) -> list[Milestone]:
        """List milestones for a phase."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(MilestoneORM)
                .where(and_(MilestoneORM.phase_id == str(phase_id), MilestoneORM.is_deleted.is_(False)))
                .order_by(MilestoneORM.due_date)
            )
            return [self._orm_to_model(orm) for orm in result.scalars().all()]

    @with_persistence_retry
    async def list_by_project(self, project_id: UUID) -> list[Milestone]:
        """List milestones for a project."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(MilestoneORM)
                .where(and_(MilestoneORM.project_id == str(project_id), MilestoneORM.is_deleted.is_(False)))
                .order_by(MilestoneORM.due_date)
            )
            return [self._orm_to_model(orm) for orm in result.scalars().all()]

    @with_persistence_retry
    async def list_overdue(self, project_id: UUID | None = None) -> list[Milestone]:
        """List milestones past due that are not completed."""
        conditions = [
            MilestoneORM.is_deleted.is_(False),
            MilestoneORM.status != MilestoneStatus.COMPLETED.value,
            MilestoneORM.due_date < to_column_value(now_utc()),
        ]
        if project_id:
            conditions.append(MilestoneORM.project_id == str(project_id))
        async with self._session_factory() as session:
            result = await session.execute(
                select(MilestoneORM).where(and_(*conditions)).order_by(MilestoneORM.due_date)
            )
            return [self._orm_to_model(orm) for orm in result.scalars().all()]

    @with_persistence_retry
    async def update(
        self,
        user_id: str,
        milestone_id: UUID,
        update: MilestoneUpdate | MilestoneInlineUpdate,
    ) -> Milestone:
        """
        Apply an update and re-derive the status.

        Derivation runs against the merged record, so changing only one of
        progress, due date or status is still checked against the other two.
        """
        async with self._session_factory() as session:
            orm = await self._get_orm(session, milestone_id)
            if not orm:
                raise NotFoundError(f"Milestone {milestone_id} not found")

            update_data = {
                field: value
                for field, value in update.model_dump(exclude_unset=True).items()
                if value is not None or field in _CLEARABLE_FIELDS
            }
            merged = {**self._orm_to_model(orm).model_dump(), **update_data}
            now = now_utc()
            derived = apply_milestone_derivation(merged, now)

            changed = {field: derived[field] for field in update_data}
            for field in _DERIVED_FIELDS:
                changed[field] = derived.get(field)
            self._write_fields(orm, changed)
            orm.updated_by = user_id
            orm.updated_at = to_column_value(now)
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    @with_persistence_retry
    async def soft_delete(self, user_id: str, milestone_id: UUID) -> bool:
        """Mark a milestone deleted. Returns False if not found."""
        async with self._session_factory() as session:
            orm = await self._get_orm(session, milestone_id)
            if not orm:
                return False
            now = to_column_value(now_utc())
            orm.is_deleted = True
            orm.deleted_at = now
            orm.deleted_by = user_id
            orm.updated_by = user_id
            orm.updated_at = now
            await session.commit()
            return True
