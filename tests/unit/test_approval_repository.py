"""
Tests for the SQLite milestone approval repository.

Covers the version compare-and-swap, one-active-approval-per-milestone and
the pending-for-user query.
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from app.core.exceptions import ConcurrencyConflictError, NotFoundError, PreconditionError
from app.infrastructure.local.approval_repository import SqliteApprovalRepository
from app.models.approval import StageConfig, WorkflowConfig
from app.models.enums import ApprovalAction, OverallStatus
from app.services.approval_processor import apply_action
from app.services.approval_workflow import cancel_workflow, create_from_template, seed_stage_votes
from app.utils.datetime_utils import now_utc

CONFIG = WorkflowConfig(
    approval_stages=[
        StageConfig(stage_name="Manager Review", required_roles=["manager"], order=0),
        StageConfig(stage_name="Final Approval", required_roles=["admin"], order=1),
    ]
)


def _new_workflow(milestone_id=None, project_id=None, submitted_at=None, deadline=None):
    workflow = create_from_template(
        milestone_id or uuid4(),
        project_id or uuid4(),
        CONFIG,
        "submitter",
        submitted_at or now_utc(),
        completion_deadline=deadline,
    )
    return seed_stage_votes(workflow, {"manager": ["m1", "m2"], "admin": ["a1"]})


@pytest.fixture
def repo(session_factory):
    return SqliteApprovalRepository(session_factory=session_factory)


@pytest.mark.asyncio
async def test_create_round_trips_document(repo):
    workflow = _new_workflow()
    created = await repo.create(workflow)

    fetched = await repo.get(created.id)

    assert fetched.version == 1
    assert fetched.current_stage == "Manager Review"
    assert [s.stage_name for s in fetched.stages] == ["Manager Review", "Final Approval"]
    assert {v.user_id for v in fetched.stages[0].votes} == {"m1", "m2"}
    assert fetched.submitted_at.tzinfo is not None
    assert (await repo.get_active_by_milestone(workflow.milestone_id)).id == created.id


@pytest.mark.asyncio
async def test_save_bumps_version(repo):
    created = await repo.create(_new_workflow())
    updated = apply_action(created, "m1", {"manager"}, ApprovalAction.APPROVE, "ok", now=now_utc())

    saved = await repo.save(updated, expected_version=created.version)

    assert saved.version == 2
    assert saved.overall_status == OverallStatus.IN_REVIEW
    vote = saved.stages[0].find_vote("m1")
    assert vote.comments == "ok"
    assert vote.acted_at is not None


@pytest.mark.asyncio
async def test_stale_save_conflicts(repo):
    created = await repo.create(_new_workflow())
    first = apply_action(created, "m1", {"manager"}, ApprovalAction.APPROVE, now=now_utc())
    second = apply_action(created, "m2", {"manager"}, ApprovalAction.APPROVE, now=now_utc())

    await repo.save(first, expected_version=1)
    with pytest.raises(ConcurrencyConflictError) as exc_info:
        await repo.save(second, expected_version=1)

    assert exc_info.value.expected_version == 1
    stored = await repo.get(created.id)
    # The first writer's vote survives; the stale write changed nothing.
    assert stored.stages[0].find_vote("m1").status.value == "approved"
    assert stored.stages[0].find_vote("m2").status.value == "pending"


@pytest.mark.asyncio
async def test_save_missing_approval(repo):
    with pytest.raises(NotFoundError):
        await repo.save(_new_workflow(), expected_version=1)


@pytest.mark.asyncio
async def test_second_open_approval_rejected(repo):
    milestone_id = uuid4()
    await repo.create(_new_workflow(milestone_id=milestone_id))

    with pytest.raises(PreconditionError):
        await repo.create(_new_workflow(milestone_id=milestone_id))


@pytest.mark.asyncio
async def test_resubmission_after_cancellation(repo):
    milestone_id = uuid4()
    first = await repo.create(_new_workflow(milestone_id=milestone_id))
    cancelled = cancel_workflow(first.model_copy(deep=True), "submitter", "redo", now_utc())
    await repo.save(cancelled, expected_version=first.version)

    second = await repo.create(_new_workflow(milestone_id=milestone_id))

    assert (await repo.get_active_by_milestone(milestone_id)).id == second.id
    assert (await repo.get(first.id)).is_active is False


@pytest.mark.asyncio
async def test_resubmission_after_rejection_deactivates_old(repo):
    milestone_id = uuid4()
    first = await repo.create(_new_workflow(milestone_id=milestone_id))
    rejected = apply_action(first, "m1", {"manager"}, ApprovalAction.REJECT, "no", now=now_utc())
    await repo.save(rejected, expected_version=first.version)

    second = await repo.create(_new_workflow(milestone_id=milestone_id))

    old = await repo.get(first.id)
    assert old.is_active is False
    assert old.overall_status == OverallStatus.REJECTED
    assert (await repo.get_active_by_milestone(milestone_id)).id == second.id


@pytest.mark.asyncio
async def test_list_filters(repo):
    project_id = uuid4()
    past = now_utc() - timedelta(days=1)
    overdue = await repo.create(_new_workflow(project_id=project_id, deadline=past))
    await repo.create(_new_workflow(project_id=project_id))
    await repo.create(_new_workflow())

    approvals, total = await repo.list(project_id=project_id)
    assert total == 2
    assert len(approvals) == 2

    approvals, total = await repo.list(overdue_only=True)
    assert [a.id for a in approvals] == [overdue.id]

    approvals, total = await repo.list(project_id=project_id, limit=1, offset=1)
    assert total == 2
    assert len(approvals) == 1

    approvals, total = await repo.list(assigned_to="a1")
    assert total == 3
    approvals, total = await repo.list(assigned_to="nobody")
    assert total == 0


@pytest.mark.asyncio
async def test_list_pending_for_user_follows_current_stage(repo):
    older = await repo.create(
        _new_workflow(submitted_at=datetime(2025, 1, 1, tzinfo=timezone.utc))
    )
    newer = await repo.create(
        _new_workflow(submitted_at=datetime(2025, 2, 1, tzinfo=timezone.utc))
    )

    pending = await repo.list_pending_for_user("m1", {"manager"})
    assert [a.id for a in pending] == [older.id, newer.id]

    # Admin's stage is not current yet.
    assert await repo.list_pending_for_user("a1", {"admin"}) == []
    # Losing the role hides the approval.
    assert await repo.list_pending_for_user("m1", set()) == []

    after_managers = apply_action(older, "m1", {"manager"}, ApprovalAction.APPROVE, now=now_utc())
    after_managers = apply_action(after_managers, "m2", {"manager"}, ApprovalAction.APPROVE, now=now_utc())
    await repo.save(after_managers, expected_version=older.version)

    assert [a.id for a in await repo.list_pending_for_user("a1", {"admin"})] == [older.id]
    assert [a.id for a in await repo.list_pending_for_user("m1", {"manager"})] == [newer.id]


@pytest.mark.asyncio
async def test_list_pending_includes_delegated_vote(repo):
    created = await repo.create(_new_workflow())
    delegated = apply_action(
        created, "m1", {"manager"}, ApprovalAction.DELEGATE, delegate_to_user_id="d1", now=now_utc()
    )
    await repo.save(delegated, expected_version=created.version)

    assert [a.id for a in await repo.list_pending_for_user("d1", set())] == [created.id]


@pytest.mark.asyncio
async def test_assigned_to_needs_a_pending_vote(repo):
    project_id = uuid4()
    acted = await repo.create(_new_workflow(project_id=project_id))
    waiting = await repo.create(_new_workflow(project_id=project_id))
    approved = apply_action(acted, "m1", {"manager"}, ApprovalAction.APPROVE, now=now_utc())
    await repo.save(approved, expected_version=acted.version)

    approvals, total = await repo.list(project_id=project_id, assigned_to="m1")

    assert total == 1
    assert [a.id for a in approvals] == [waiting.id]
