"""
Approval action processor.

Validates and applies one approve / reject / delegate action to a workflow.
The input workflow is never mutated; a deep copy with the action applied and
all rollups refreshed is returned. Any violated precondition raises, so a
retried request fails with "already acted" instead of counting twice.
"""

from __future__ import annotations

from datetime import datetime
from typing import Collection, Optional

from app.core.exceptions import PreconditionError, ValidationError
from app.models.approval import ApprovalStage, ApprovalVote, MilestoneApproval
from app.models.enums import VOTE_TRANSITIONS, ApprovalAction, VoteStatus
from app.services.approval_workflow import refresh_workflow


def _ensure_open(workflow: MilestoneApproval) -> None:
    if workflow.is_terminal or not workflow.is_active:
        raise PreconditionError(
            f"Approval {workflow.id} is closed ({workflow.overall_status.value})",
            details={"overall_status": workflow.overall_status.value},
        )


def _current_stage(workflow: MilestoneApproval) -> ApprovalStage:
    stage = workflow.get_stage(workflow.current_stage)
    if stage is None:
        raise PreconditionError(f"Current approval stage '{workflow.current_stage}' not found")
    return stage


def _find_actor_vote(
    workflow: MilestoneApproval,
    stage: ApprovalStage,
    acting_user_id: str,
) -> ApprovalVote:
    vote = stage.find_vote(acting_user_id, VoteStatus.PENDING)
    if vote is not None:
        return vote

    if stage.find_vote(acting_user_id) is not None:
        raise PreconditionError(
            f"User {acting_user_id} has already acted in stage '{stage.stage_name}'",
            details={"stage": stage.stage_name, "reason": "already_acted"},
        )
    for other in workflow.stages:
        if other is not stage and other.find_vote(acting_user_id, VoteStatus.PENDING):
            raise PreconditionError(
                f"Stage '{other.stage_name}' is not awaiting action; "
                f"current stage is '{stage.stage_name}'",
                details={"stage": other.stage_name, "reason": "out_of_turn"},
            )
    raise PreconditionError(
        f"No pending approval found for user {acting_user_id} in stage '{stage.stage_name}'",
        details={"stage": stage.stage_name, "reason": "no_pending_vote"},
    )


def _transition(vote: ApprovalVote, target: VoteStatus) -> None:
    if target not in VOTE_TRANSITIONS[vote.status]:
        raise PreconditionError(
            f"Vote cannot move from {vote.status.value} to {target.value}",
            details={"reason": "already_acted"},
        )
    vote.status = target


def apply_action(
    workflow: MilestoneApproval,
    acting_user_id: str,
    acting_user_roles: Collection[str],
    action: ApprovalAction,
    comments: Optional[str] = None,
    delegate_to_user_id: Optional[str] = None,
    *,
    now: datetime,
) -> MilestoneApproval:
    """
    Apply an approver's action and return the updated workflow.

    Args:
        workflow: Current state of the approval
        acting_user_id: User taking the action
        acting_user_roles: Roles the user holds right now
        action: approve, reject or delegate
        comments: Optional comment stored on the vote
        delegate_to_user_id: Target user for delegate
        now: Action timestamp

    Raises:
        ValidationError: delegate without a usable target
        PreconditionError: closed workflow, out of turn, already acted,
            role no longer held
    """
    if action == ApprovalAction.DELEGATE:
        target = (delegate_to_user_id or "").strip()
        if not target:
            raise ValidationError(
                "Delegate user ID is required for delegation",
                details=[{"field": "delegate_to_user_id", "message": "required"}],
            )
        if target == acting_user_id:
            raise ValidationError(
                "Cannot delegate an approval to yourself",
                details=[{"field": "delegate_to_user_id", "message": "must differ from the acting user"}],
            )

    _ensure_open(workflow)

    updated = workflow.model_copy(deep=True)
    stage = _current_stage(updated)
    vote = _find_actor_vote(updated, stage, acting_user_id)

    # Delegates act on the delegator's authority, not their own role.
    if vote.delegated_from is None and vote.user_role not in set(acting_user_roles):
        raise PreconditionError(
            f"User {acting_user_id} no longer holds role '{vote.user_role}'",
            details={"required_role": vote.user_role, "reason": "role_ineligible"},
        )

    if action == ApprovalAction.DELEGATE:
        target = delegate_to_user_id.strip()
        existing = [
            v for v in stage.votes
            if v.user_id == target and v.status != VoteStatus.DELEGATED
        ]
        if existing:
            raise PreconditionError(
                f"User {target} already has a vote in stage '{stage.stage_name}'",
                details={"reason": "delegate_already_assigned"},
            )
        _transition(vote, VoteStatus.DELEGATED)
        vote.delegated_to = target
        vote.comments = comments
        vote.acted_at = now
        stage.votes.append(
            ApprovalVote(
                user_id=target,
                user_role=vote.user_role,
                delegated_from=acting_user_id,
            )
        )
        return updated

    target_status = VoteStatus.APPROVED if action == ApprovalAction.APPROVE else VoteStatus.REJECTED
    _transition(vote, target_status)
    vote.acted_at = now
    vote.comments = comments

    refresh_workflow(updated, now, actor_id=acting_user_id)
    return updated
