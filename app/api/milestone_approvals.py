"""
Milestone approval API endpoints.

Submit a milestone into a staged approval workflow, act on it
(approve / reject / delegate), cancel it and query it.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from app.api.deps import ApprovalSvc, CurrentUser
from app.models.approval import (
    ApprovalActionRequest,
    ApprovalCancelRequest,
    ApprovalCreate,
    ApprovalListResponse,
    MilestoneApproval,
)
from app.models.enums import OverallStatus
from app.models.milestone import Milestone

router = APIRouter(prefix="/milestone-approvals", tags=["milestone-approvals"])


@router.post("", response_model=MilestoneApproval, status_code=status.HTTP_201_CREATED)
async def create_approval(
    data: ApprovalCreate,
    user: CurrentUser,
    service: ApprovalSvc,
) -> MilestoneApproval:
    """Submit a milestone for approval."""
    return await service.submit(user.id, data)


@router.put("", response_model=MilestoneApproval)
async def apply_approval_action(
    request: ApprovalActionRequest,
    user: CurrentUser,
    service: ApprovalSvc,
) -> MilestoneApproval:
    """Approve, reject or delegate the current user's pending vote."""
    return await service.apply_action(user.id, request)


@router.get("", response_model=ApprovalListResponse)
async def list_approvals(
    user: CurrentUser,
    service: ApprovalSvc,
    status_filter: Optional[OverallStatus] = Query(None, alias="status"),
    project_id: Optional[UUID] = Query(None),
    milestone_id: Optional[UUID] = Query(None),
    assigned_to_me: bool = Query(False, description="Only approvals with a pending vote for the current user"),
    overdue: bool = Query(False, description="Only open approvals past their completion deadline"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> ApprovalListResponse:
    """List active approvals, newest submission first."""
    approvals, total = await service.list(
        status=status_filter,
        project_id=project_id,
        milestone_id=milestone_id,
        assigned_to=user.id if assigned_to_me else None,
        overdue_only=overdue,
        limit=limit,
        offset=offset,
    )
    return ApprovalListResponse(approvals=approvals, total=total, limit=limit, offset=offset)


@router.get("/pending", response_model=list[MilestoneApproval])
async def list_pending_approvals(
    user: CurrentUser,
    service: ApprovalSvc,
) -> list[MilestoneApproval]:
    """Approvals waiting on the current user, oldest first."""
    return await service.list_pending(user.id)


@router.get("/milestone/{milestone_id}", response_model=MilestoneApproval)
async def get_active_approval_for_milestone(
    milestone_id: UUID,
    user: CurrentUser,
    service: ApprovalSvc,
) -> MilestoneApproval:
    """Get the active approval of a milestone."""
    approval = await service.get_active_by_milestone(milestone_id)
    if not approval:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No active approval for milestone {milestone_id}",
        )
    return approval


@router.get("/{approval_id}", response_model=MilestoneApproval)
async def get_approval(
    approval_id: UUID,
    user: CurrentUser,
    service: ApprovalSvc,
) -> MilestoneApproval:
    """Get an approval by ID."""
    return await service.get(approval_id)


@router.post("/{approval_id}/cancel", response_model=MilestoneApproval)
async def cancel_approval(
    approval_id: UUID,
    user: CurrentUser,
    service: ApprovalSvc,
    data: Optional[ApprovalCancelRequest] = None,
) -> MilestoneApproval:
    """Withdraw an open approval."""
    reason = data.reason if data else None
    return await service.cancel(user.id, approval_id, reason)


@router.post("/{approval_id}/sync", response_model=Milestone)
async def sync_approved_milestone(
    approval_id: UUID,
    user: CurrentUser,
    service: ApprovalSvc,
) -> Milestone:
    """Re-apply a final approval to its milestone."""
    return await service.sync_milestone(approval_id, user.id)
