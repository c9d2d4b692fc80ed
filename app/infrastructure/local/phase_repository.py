"""
SQLite implementation of Phase repository.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import and_, select

from app.core.exceptions import NotFoundError, ValidationError
from app.infrastructure.local.database import PhaseORM, get_session_factory
from app.infrastructure.local.orm_utils import orm_to_dict, to_column_value
from app.infrastructure.local.retry import with_persistence_retry
from app.interfaces.phase_repository import IPhaseRepository
from app.models.phase import Phase, PhaseCreate, PhaseOrder, PhaseUpdate
from app.services.status_deriver import apply_phase_derivation
from app.utils.datetime_utils import ensure_utc, now_utc

_DERIVED_FIELDS = ("status", "actual_start_date", "actual_end_date")

# Nullable columns an update may clear with an explicit null.
_CLEARABLE_FIELDS = frozenset({"description", "budget_allocation", "actual_cost"})


def _validate_dates(fields: dict[str, Any]) -> None:
    errors = []
    if ensure_utc(fields["end_date"]) <= ensure_utc(fields["start_date"]):
        errors.append({"field": "end_date", "message": "End date must be after start date"})
    actual_start = fields.get("actual_start_date")
    actual_end = fields.get("actual_end_date")
    if actual_start and actual_end and ensure_utc(actual_end) < ensure_utc(actual_start):
        errors.append({"field": "actual_end_date", "message": "Actual end cannot precede actual start"})
    if errors:
        raise ValidationError("Invalid phase dates", details=errors)


class SqlitePhaseRepository(IPhaseRepository):
    """SQLite implementation of phase repository."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: PhaseORM) -> Phase:
        """Convert ORM object to Pydantic model."""
        data = orm_to_dict(orm)
        data["objectives"] = data.get("objectives") or []
        data["deliverables"] = data.get("deliverables") or []
        return Phase.model_validate(data)

    async def _get_orm(self, session, phase_id: UUID, include_deleted: bool = False) -> PhaseORM | None:
        conditions = [PhaseORM.id == str(phase_id)]
        if not include_deleted:
            conditions.append(PhaseORM.is_deleted.is_(False))
        result = await session.execute(select(PhaseORM).where(and_(*conditions)))
        return result.scalar_one_or_none()

    @with_persistence_retry
    async def create(self, user_id: str, phase: PhaseCreate) -> Phase:
        now = now_utc()
        fields = apply_phase_derivation(phase.model_dump(), now)
        async with self._session_factory() as session:
            orm = PhaseORM(
                id=str(uuid4()),
                created_by=user_id,
                is_deleted=False,
                created_at=to_column_value(now),
                updated_at=to_column_value(now),
            )
            for field, value in fields.items():
                setattr(orm, field, to_column_value(value))
            session.add(orm)
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    @with_persistence_retry
    async def get(self, phase_id: UUID, include_deleted: bool = False) -> Phase | None:
        async with self._session_factory() as session:
            orm = await self._get_orm(session, phase_id, include_deleted)
            return self._orm_to_model(orm) if orm else None

    @with_persistence_retry
    async def get_project_id(self, phase_id: UUID) -> UUID | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(PhaseORM.project_id).where(
                    and_(PhaseORM.id == str(phase_id), PhaseORM.is_deleted.is_(False))
                )
            )
            pid = result.scalar_one_or_none()
            return UUID(pid) if pid else None

    @with_persistence_retry
    async def list_by_project(self, project_id: UUID) -> list[Phase]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(PhaseORM)
                .where(and_(PhaseORM.project_id == str(project_id), PhaseORM.is_deleted.is_(False)))
                .order_by(PhaseORM.order, PhaseORM.start_date)
            )
            return [self._orm_to_model(orm) for orm in result.scalars().all()]

    @with_persistence_retry
    async def update(self, user_id: str, phase_id: UUID, update: PhaseUpdate) -> Phase:
        """
        Apply the set fields of an update.

        Dates are validated on the merged record, then status derivation
        runs and may stamp the actual start and end dates.
        """
        async with self._session_factory() as session:
            orm = await self._get_orm(session, phase_id)
            if not orm:
                raise NotFoundError(f"Phase {phase_id} not found")

            update_data = {
                field: value
                for field, value in update.model_dump(exclude_unset=True).items()
                if value is not None or field in _CLEARABLE_FIELDS
            }
            merged = {**orm_to_dict(orm), **update_data}
            now = now_utc()
            derived = apply_phase_derivation(merged, now)
            _validate_dates(derived)

            changed = {field: derived[field] for field in update_data}
            for field in _DERIVED_FIELDS:
                changed[field] = derived.get(field)
            for field, value in changed.items():
                setattr(orm, field, to_column_value(value))
            orm.updated_by = user_id
            orm.updated_at = to_column_value(now)
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    @with_persistence_retry
    async def reorder(self, user_id: str, project_id: UUID, orders: list[PhaseOrder]) -> list[Phase]:
        ids = [str(item.id) for item in orders]
        if len(set(ids)) != len(ids):
            raise ValidationError(
                "Each phase may appear only once",
                details=[{"field": "phases", "message": "duplicate phase id"}],
            )
        async with self._session_factory() as session:
            result = await session.execute(
                select(PhaseORM).where(
                    and_(
                        PhaseORM.project_id == str(project_id),
                        PhaseORM.id.in_(ids),
                        PhaseORM.is_deleted.is_(False),
                    )
                )
            )
            by_id = {orm.id: orm for orm in result.scalars().all()}
            unknown = [phase_id for phase_id in ids if phase_id not in by_id]
            if unknown:
                raise ValidationError(
                    "Phases not found in project",
                    details=[
                        {"field": "phases", "message": f"unknown phase {phase_id}"}
                        for phase_id in unknown
                    ],
                )
            now = to_column_value(now_utc())
            for item in orders:
                orm = by_id[str(item.id)]
                orm.order = item.order
                orm.updated_by = user_id
                orm.updated_at = now
            await session.commit()
        return await self.list_by_project(project_id)

    @with_persistence_retry
    async def soft_delete(self, user_id: str, phase_id: UUID) -> bool:
        async with self._session_factory() as session:
            orm = await self._get_orm(session, phase_id)
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
