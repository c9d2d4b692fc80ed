"""
Notification helper functions for approval workflow events.

Each function creates notifications for one event and handles recipient
filtering (the actor is never notified about their own action).
"""

from typing import Iterable

from app.interfaces.notification_repository import INotificationRepository
from app.models.approval import ApprovalStage, MilestoneApproval
from app.models.enums import VoteStatus
from app.models.notification import NotificationCreate, NotificationType

LINK_TYPE = "milestone_approval"


def _pending_voters(stage: ApprovalStage) -> set[str]:
    return {v.user_id for v in stage.votes if v.status == VoteStatus.PENDING}


def _participants(approval: MilestoneApproval) -> set[str]:
    users = {approval.submitted_by}
    for stage in approval.stages:
        users.update(v.user_id for v in stage.votes)
    return users


async def _create_for(
    notification_repo: INotificationRepository,
    recipients: Iterable[str],
    approval: MilestoneApproval,
    notification_type: NotificationType,
    title: str,
    message: str,
):
    notifications = [
        NotificationCreate(
            user_id=uid,
            type=notification_type,
            title=title,
            message=message,
            link_type=LINK_TYPE,
            link_id=str(approval.id),
            project_id=approval.project_id,
        )
        for uid in sorted(recipients)
    ]
    if notifications:
        await notification_repo.create_bulk(notifications)


async def notify_approval_submitted(
    notification_repo: INotificationRepository,
    approval: MilestoneApproval,
    milestone_title: str,
    actor_user_id: str,
):
    """Notify approvers of the first stage that a milestone awaits their review."""
    stage = approval.get_stage(approval.current_stage)
    if stage is None:
        return
    await _create_for(
        notification_repo,
        _pending_voters(stage) - {actor_user_id},
        approval,
        NotificationType.APPROVAL_REQUESTED,
        "Approval requested",
        f"'{milestone_title}' is waiting for your review in stage '{stage.stage_name}'",
    )


async def notify_stage_advanced(
    notification_repo: INotificationRepository,
    approval: MilestoneApproval,
    actor_user_id: str,
):
    """Notify approvers of the stage the workflow just moved into."""
    stage = approval.get_stage(approval.current_stage)
    if stage is None:
        return
    await _create_for(
        notification_repo,
        _pending_voters(stage) - {actor_user_id},
        approval,
        NotificationType.APPROVAL_REQUESTED,
        "Approval requested",
        f"Milestone approval moved to stage '{stage.stage_name}' and needs your review",
    )


async def notify_approval_delegated(
    notification_repo: INotificationRepository,
    approval: MilestoneApproval,
    delegate_user_id: str,
    actor_user_id: str,
):
    """Notify the user a vote was handed to."""
    if delegate_user_id == actor_user_id:
        return
    await _create_for(
        notification_repo,
        {delegate_user_id},
        approval,
        NotificationType.APPROVAL_DELEGATED,
        "Approval delegated to you",
        f"{actor_user_id} delegated their review in stage '{approval.current_stage}' to you",
    )


async def notify_approval_completed(
    notification_repo: INotificationRepository,
    approval: MilestoneApproval,
    actor_user_id: str,
):
    """Notify the submitter and every approver that the milestone was approved."""
    await _create_for(
        notification_repo,
        _participants(approval) - {actor_user_id},
        approval,
        NotificationType.APPROVAL_APPROVED,
        "Milestone approved",
        "All required approval stages are complete",
    )


async def notify_approval_rejected(
    notification_repo: INotificationRepository,
    approval: MilestoneApproval,
    actor_user_id: str,
):
    """Notify the submitter and every approver that the milestone was rejected."""
    reason = approval.rejection_reason or "No reason given"
    await _create_for(
        notification_repo,
        _participants(approval) - {actor_user_id},
        approval,
        NotificationType.APPROVAL_REJECTED,
        "Milestone rejected",
        f"Rejected in stage '{approval.current_stage}': {reason}"[:500],
    )


async def notify_approval_cancelled(
    notification_repo: INotificationRepository,
    approval: MilestoneApproval,
    actor_user_id: str,
):
    """Notify everyone still involved that the submission was withdrawn."""
    await _create_for(
        notification_repo,
        _participants(approval) - {actor_user_id},
        approval,
        NotificationType.APPROVAL_CANCELLED,
        "Approval cancelled",
        (approval.cancellation_reason or "The submission was withdrawn")[:500],
    )
