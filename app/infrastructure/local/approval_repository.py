"""
SQLite implementation of the milestone approval repository.

The approval is stored as a single row with its stages embedded as JSON.
Writes use compare-and-swap on the ``version`` column.
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ConcurrencyConflictError, NotFoundError, PreconditionError
from app.infrastructure.local.database import MilestoneApprovalORM, get_session_factory
from app.infrastructure.local.orm_utils import orm_to_dict, to_column_value
from app.infrastructure.local.retry import with_persistence_retry
from app.interfaces.approval_repository import IApprovalRepository
from app.models.approval import MilestoneApproval
from app.models.enums import TERMINAL_OVERALL_STATUSES, OverallStatus, VoteStatus
from app.utils.datetime_utils import ensure_utc, now_utc

logger = logging.getLogger(__name__)

_TERMINAL_VALUES = [s.value for s in TERMINAL_OVERALL_STATUSES]

# Columns a save may change; identity and submission fields are fixed at creation.
_MUTABLE_FIELDS = (
    "current_stage",
    "overall_status",
    "final_approved_at",
    "final_approved_by",
    "rejection_reason",
    "is_active",
    "cancelled_at",
    "cancelled_by",
    "cancellation_reason",
)


def _waits_on(approval: MilestoneApproval, user_id: str, roles: Optional[set[str]]) -> bool:
    stage = approval.get_stage(approval.current_stage)
    if stage is None:
        return False
    for vote in stage.votes:
        if vote.user_id != user_id or vote.status != VoteStatus.PENDING:
            continue
        if vote.delegated_from or roles is None or vote.user_role in roles:
            return True
    return False


def _is_assigned(approval: MilestoneApproval, user_id: str) -> bool:
    # A vote the user still has to cast, in any stage.
    return any(
        v.user_id == user_id and v.status == VoteStatus.PENDING
        for stage in approval.stages
        for v in stage.votes
    )


class SqliteApprovalRepository(IApprovalRepository):
    """SQLite implementation of approval repository."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: MilestoneApprovalORM) -> MilestoneApproval:
        """Convert ORM object to Pydantic model."""
        data = orm_to_dict(orm)
        data["stages"] = data.get("stages") or []
        return MilestoneApproval.model_validate(data)

    @staticmethod
    def _stages_json(approval: MilestoneApproval) -> list[dict]:
        return [stage.model_dump(mode="json") for stage in approval.stages]

    @with_persistence_retry
    async def create(self, approval: MilestoneApproval) -> MilestoneApproval:
        milestone_id = str(approval.milestone_id)
        now = to_column_value(now_utc())
        async with self._session_factory() as session:
            # Closed approvals that were never deactivated must not block a resubmission.
            await session.execute(
                update(MilestoneApprovalORM)
                .where(
                    and_(
                        MilestoneApprovalORM.milestone_id == milestone_id,
                        MilestoneApprovalORM.is_active.is_(True),
                        MilestoneApprovalORM.overall_status.in_(_TERMINAL_VALUES),
                    )
                )
                .values(is_active=False, updated_at=now)
            )
            result = await session.execute(
                select(MilestoneApprovalORM.id).where(
                    and_(
                        MilestoneApprovalORM.milestone_id == milestone_id,
                        MilestoneApprovalORM.is_active.is_(True),
                    )
                )
            )
            open_id = result.scalar_one_or_none()
            if open_id:
                await session.rollback()
                raise PreconditionError(
                    f"Milestone {milestone_id} already has an open approval",
                    details={"approval_id": open_id},
                )

            orm = MilestoneApprovalORM(
                id=str(approval.id),
                milestone_id=milestone_id,
                project_id=str(approval.project_id),
                phase_id=str(approval.phase_id) if approval.phase_id else None,
                current_stage=approval.current_stage,
                stages=self._stages_json(approval),
                overall_status=approval.overall_status.value,
                final_approved_at=to_column_value(approval.final_approved_at),
                final_approved_by=approval.final_approved_by,
                submitted_by=approval.submitted_by,
                submitted_at=to_column_value(approval.submitted_at),
                completion_deadline=to_column_value(approval.completion_deadline),
                submission_comments=approval.submission_comments,
                rejection_reason=approval.rejection_reason,
                is_active=True,
                version=1,
                created_at=now,
                updated_at=now,
            )
            session.add(orm)
            try:
                await session.commit()
            except IntegrityError as exc:
                # Lost a race with a concurrent submission for the same milestone.
                await session.rollback()
                raise PreconditionError(
                    f"Milestone {milestone_id} already has an open approval"
                ) from exc
            await session.refresh(orm)
            return self._orm_to_model(orm)

    @with_persistence_retry
    async def get(self, approval_id: UUID) -> Optional[MilestoneApproval]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(MilestoneApprovalORM).where(MilestoneApprovalORM.id == str(approval_id))
            )
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None

    @with_persistence_retry
    async def get_active_by_milestone(self, milestone_id: UUID) -> Optional[MilestoneApproval]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(MilestoneApprovalORM).where(
                    and_(
                        MilestoneApprovalORM.milestone_id == str(milestone_id),
                        MilestoneApprovalORM.is_active.is_(True),
                    )
                )
            )
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None

    @with_persistence_retry
    async def save(self, approval: MilestoneApproval, expected_version: int) -> MilestoneApproval:
        values = {field: to_column_value(getattr(approval, field)) for field in _MUTABLE_FIELDS}
        values["stages"] = self._stages_json(approval)
        values["updated_at"] = to_column_value(now_utc())
        values["version"] = expected_version + 1

        async with self._session_factory() as session:
            result = await session.execute(
                update(MilestoneApprovalORM)
                .where(
                    and_(
                        MilestoneApprovalORM.id == str(approval.id),
                        MilestoneApprovalORM.version == expected_version,
                    )
                )
                .values(**values)
            )
            if result.rowcount == 0:
                await session.rollback()
                exists = await session.execute(
                    select(MilestoneApprovalORM.version).where(
                        MilestoneApprovalORM.id == str(approval.id)
                    )
                )
                stored_version = exists.scalar_one_or_none()
                if stored_version is None:
                    raise NotFoundError(f"Approval {approval.id} not found")
                logger.info(
                    f"Version conflict on approval {approval.id}: "
                    f"expected {expected_version}, stored {stored_version}"
                )
                raise ConcurrencyConflictError(
                    f"Approval {approval.id} was modified concurrently",
                    expected_version=expected_version,
                )
            await session.commit()

            refreshed = await session.execute(
                select(MilestoneApprovalORM).where(MilestoneApprovalORM.id == str(approval.id))
            )
            return self._orm_to_model(refreshed.scalar_one())

    @with_persistence_retry
    async def list(
        self,
        status: Optional[OverallStatus] = None,
        project_id: Optional[UUID] = None,
        milestone_id: Optional[UUID] = None,
        assigned_to: Optional[str] = None,
        overdue_only: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[MilestoneApproval], int]:
        conditions = [MilestoneApprovalORM.is_active.is_(True)]
        if status:
            conditions.append(MilestoneApprovalORM.overall_status == status.value)
        if project_id:
            conditions.append(MilestoneApprovalORM.project_id == str(project_id))
        if milestone_id:
            conditions.append(MilestoneApprovalORM.milestone_id == str(milestone_id))
        if overdue_only:
            conditions.append(MilestoneApprovalORM.completion_deadline.is_not(None))
            conditions.append(MilestoneApprovalORM.completion_deadline < to_column_value(now_utc()))
            conditions.append(MilestoneApprovalORM.overall_status.not_in(_TERMINAL_VALUES))

        query = (
            select(MilestoneApprovalORM)
            .where(and_(*conditions))
            .order_by(MilestoneApprovalORM.submitted_at.desc())
        )

        async with self._session_factory() as session:
            if assigned_to is None:
                total = await session.scalar(
                    select(func.count()).select_from(MilestoneApprovalORM).where(and_(*conditions))
                )
                result = await session.execute(query.limit(limit).offset(offset))
                return [self._orm_to_model(orm) for orm in result.scalars().all()], int(total or 0)

            # Votes live inside the JSON document, so assignment is filtered here.
            result = await session.execute(query)
            approvals = [
                approval
                for approval in (self._orm_to_model(orm) for orm in result.scalars().all())
                if _is_assigned(approval, assigned_to)
            ]
            return approvals[offset:offset + limit], len(approvals)

    @with_persistence_retry
    async def list_pending_for_user(
        self,
        user_id: str,
        roles: Optional[set[str]] = None,
    ) -> list[MilestoneApproval]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(MilestoneApprovalORM).where(
                    and_(
                        MilestoneApprovalORM.is_active.is_(True),
                        MilestoneApprovalORM.overall_status.not_in(_TERMINAL_VALUES),
                    )
                )
            )
            pending = [
                approval
                for approval in (self._orm_to_model(orm) for orm in result.scalars().all())
                if _waits_on(approval, user_id, roles)
            ]
        pending.sort(key=lambda a: ensure_utc(a.submitted_at))
        return pending
