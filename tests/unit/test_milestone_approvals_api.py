"""
Unit tests for milestone approval and milestone route functions.

Routes are called directly with AsyncMock collaborators.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from fastapi import HTTPException

from app.api import milestone_approvals, milestones
from app.core.exceptions import NotFoundError
from app.models.approval import ApprovalActionRequest, ApprovalCancelRequest
from app.models.enums import ApprovalAction, OverallStatus
from app.models.milestone import MilestoneUpdate, ProjectProgress


@pytest.fixture
def user():
    return SimpleNamespace(id="m1", email="m1@example.com", display_name="Manager")


@pytest.mark.asyncio
async def test_apply_action_passes_current_user(user):
    service = AsyncMock()
    request = ApprovalActionRequest(approval_id=uuid4(), action=ApprovalAction.APPROVE, comments="ok")

    await milestone_approvals.apply_approval_action(request, user, service)

    service.apply_action.assert_awaited_once_with("m1", request)


@pytest.mark.asyncio
async def test_list_assigned_to_me_filters_by_user(user):
    service = AsyncMock()
    service.list.return_value = ([], 0)

    response = await milestone_approvals.list_approvals(
        user,
        service,
        status_filter=OverallStatus.IN_REVIEW,
        project_id=None,
        milestone_id=None,
        assigned_to_me=True,
        overdue=False,
        limit=10,
        offset=0,
    )

    assert response.total == 0
    assert response.limit == 10
    kwargs = service.list.await_args.kwargs
    assert kwargs["assigned_to"] == "m1"
    assert kwargs["status"] == OverallStatus.IN_REVIEW


@pytest.mark.asyncio
async def test_active_approval_missing_is_404(user):
    service = AsyncMock()
    service.get_active_by_milestone.return_value = None

    with pytest.raises(HTTPException) as exc_info:
        await milestone_approvals.get_active_approval_for_milestone(uuid4(), user, service)

    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_cancel_without_body(user):
    service = AsyncMock()
    approval_id = uuid4()

    await milestone_approvals.cancel_approval(approval_id, user, service, None)

    service.cancel.assert_awaited_once_with("m1", approval_id, None)


@pytest.mark.asyncio
async def test_cancel_with_reason(user):
    service = AsyncMock()
    approval_id = uuid4()

    await milestone_approvals.cancel_approval(
        approval_id, user, service, ApprovalCancelRequest(reason="Duplicate")
    )

    service.cancel.assert_awaited_once_with("m1", approval_id, "Duplicate")


@pytest.mark.asyncio
async def test_get_milestone_404(user):
    repo = AsyncMock()
    repo.get.return_value = None

    with pytest.raises(HTTPException) as exc_info:
        await milestones.get_milestone(uuid4(), user, repo)

    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_update_milestone_not_found_maps_to_404(user):
    repo = AsyncMock()
    repo.update.side_effect = NotFoundError("Milestone missing")
    phase_repo = AsyncMock()

    with pytest.raises(HTTPException) as exc_info:
        await milestones.update_milestone(uuid4(), MilestoneUpdate(progress=10), user, repo, phase_repo)

    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_list_milestones_requires_filter(user):
    with pytest.raises(HTTPException) as exc_info:
        await milestones.list_milestones(user, AsyncMock(), project_id=None, phase_id=None)

    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_project_progress_rounds_mean(user):
    project_id = uuid4()
    repo = AsyncMock()
    repo.list_by_project.return_value = [
        SimpleNamespace(progress=33, status="in-progress", is_overdue=False),
        SimpleNamespace(progress=34, status="in-progress", is_overdue=True),
        SimpleNamespace(progress=100, status="completed", is_overdue=False),
    ]

    result = await milestones.get_project_progress(project_id, user, repo)

    assert isinstance(result, ProjectProgress)
    assert result.progress == 56
    assert result.total_milestones == 3
    assert result.completed_milestones == 1
    assert result.overdue_milestones == 1
