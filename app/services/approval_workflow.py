"""
Approval workflow rules.

Pure functions over the MilestoneApproval aggregate:

- rollup of votes into a stage status
- rollup of stages into the overall status
- current-stage advancement
- creation from a workflow configuration, vote seeding and cancellation

Rollups are total and deterministic. The ``apply_*`` / ``refresh_*``
variants write the result back onto the aggregate and stamp timestamps
(completed_at, final_approved_at) the first time a status is reached.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Mapping, Optional
from uuid import UUID, uuid4

from app.core.exceptions import PreconditionError, ValidationError
from app.models.approval import (
    ApprovalStage,
    ApprovalVote,
    MilestoneApproval,
    WorkflowConfig,
)
from app.models.enums import OverallStatus, StageStatus, VoteStatus

DEFAULT_STAGE_NAME = "Initial Review"


# ===========================================
# Stage rollup
# ===========================================


def _counted_votes(stage: ApprovalStage) -> list[ApprovalVote]:
    # A delegated vote is replaced by the delegate's vote.
    return [v for v in stage.votes if v.status != VoteStatus.DELEGATED]


def rollup_stage(stage: ApprovalStage) -> StageStatus:
    """
    Compute a stage's status from its votes.

    Approved needs every counted vote approved and every required role
    covered by at least one of them. A stage with no votes is pending,
    never approved, optional or not.
    """
    votes = _counted_votes(stage)
    if any(v.status == VoteStatus.REJECTED for v in votes):
        return StageStatus.REJECTED
    approved_roles = {v.user_role for v in votes if v.status == VoteStatus.APPROVED}
    if (
        votes
        and all(v.status == VoteStatus.APPROVED for v in votes)
        and set(stage.required_roles) <= approved_roles
    ):
        return StageStatus.APPROVED
    if any(v.status == VoteStatus.APPROVED for v in votes):
        return StageStatus.IN_REVIEW
    return StageStatus.PENDING


def apply_stage_rollup(stage: ApprovalStage, now: datetime) -> StageStatus:
    """Write the rolled-up status onto the stage, stamping completed_at once."""
    status = rollup_stage(stage)
    stage.stage_status = status
    if status == StageStatus.APPROVED and stage.completed_at is None:
        stage.completed_at = now
    return status


# ===========================================
# Workflow rollup
# ===========================================


def required_stages(workflow: MilestoneApproval) -> list[ApprovalStage]:
    return [s for s in workflow.stages if not s.is_optional]


def rollup_workflow(workflow: MilestoneApproval) -> OverallStatus:
    """
    Compute the overall status from stage statuses.

    Rejection anywhere dominates. Optional stages never block approval.
    Cancellation is terminal and is never rolled over.
    """
    if workflow.overall_status == OverallStatus.CANCELLED:
        return OverallStatus.CANCELLED

    stages = workflow.stages
    if any(s.stage_status == StageStatus.REJECTED for s in stages):
        return OverallStatus.REJECTED

    required = required_stages(workflow)
    if required and all(s.stage_status == StageStatus.APPROVED for s in required):
        return OverallStatus.APPROVED

    if any(s.stage_status in (StageStatus.IN_REVIEW, StageStatus.APPROVED) for s in stages):
        return OverallStatus.IN_REVIEW
    return OverallStatus.PENDING


def _rejecting_vote(workflow: MilestoneApproval) -> Optional[ApprovalVote]:
    for stage in workflow.stages:
        for vote in stage.votes:
            if vote.status == VoteStatus.REJECTED:
                return vote
    return None


def _last_approver(workflow: MilestoneApproval) -> Optional[str]:
    approved = [
        v
        for s in workflow.stages
        for v in s.votes
        if v.status == VoteStatus.APPROVED and v.acted_at is not None
    ]
    if not approved:
        return None
    return max(approved, key=lambda v: v.acted_at).user_id


def apply_workflow_rollup(
    workflow: MilestoneApproval,
    now: datetime,
    actor_id: Optional[str] = None,
) -> OverallStatus:
    """Write the overall status onto the workflow with its side fields."""
    status = rollup_workflow(workflow)
    workflow.overall_status = status

    if status == OverallStatus.REJECTED and workflow.rejection_reason is None:
        vote = _rejecting_vote(workflow)
        if vote is not None:
            workflow.rejection_reason = vote.comments
    elif status == OverallStatus.APPROVED and workflow.final_approved_at is None:
        workflow.final_approved_at = now
        workflow.final_approved_by = actor_id or _last_approver(workflow)
    return status


# ===========================================
# Stage advancement
# ===========================================


def _is_bypassed(stage: ApprovalStage) -> bool:
    # Optional stages nobody can act on are skipped.
    return stage.is_optional and not stage.has_pending_vote() and stage.stage_status == StageStatus.PENDING


def next_stage(workflow: MilestoneApproval) -> Optional[ApprovalStage]:
    """Lowest-order stage still awaiting action, or None when nothing is left."""
    for stage in sorted(workflow.stages, key=lambda s: s.order):
        if stage.stage_status == StageStatus.APPROVED or _is_bypassed(stage):
            continue
        return stage
    return None


def advance_current_stage(workflow: MilestoneApproval) -> str:
    """
    Point ``current_stage`` at the stage awaiting action.

    Once every required stage is approved the workflow stays on its last
    stage.
    """
    if not workflow.stages:
        return workflow.current_stage

    required = required_stages(workflow)
    all_required_done = all(s.stage_status == StageStatus.APPROVED for s in required)
    stage = None if all_required_done else next_stage(workflow)
    if stage is None:
        stage = max(workflow.stages, key=lambda s: s.order)
    workflow.current_stage = stage.stage_name
    return workflow.current_stage


def refresh_workflow(
    workflow: MilestoneApproval,
    now: datetime,
    actor_id: Optional[str] = None,
) -> MilestoneApproval:
    """Re-run every rollup and the advancement after any stage mutation."""
    for stage in workflow.stages:
        apply_stage_rollup(stage, now)
    apply_workflow_rollup(workflow, now, actor_id)
    advance_current_stage(workflow)
    return workflow


# ===========================================
# Creation
# ===========================================


def validate_workflow_config(config: WorkflowConfig) -> None:
    """Raise ValidationError with field details for an unusable configuration."""
    errors: list[dict[str, str]] = []
    stages = config.approval_stages

    if not stages:
        errors.append({"field": "approval_stages", "message": "At least one stage is required"})
    if stages and all(s.is_optional for s in stages):
        errors.append({"field": "approval_stages", "message": "At least one stage must be required"})

    seen_orders: set[int] = set()
    seen_names: set[str] = set()
    for index, stage in enumerate(stages):
        if stage.order in seen_orders:
            errors.append({"field": f"approval_stages[{index}].order", "message": f"Duplicate order {stage.order}"})
        if stage.stage_name in seen_names:
            errors.append(
                {"field": f"approval_stages[{index}].stage_name", "message": f"Duplicate stage name '{stage.stage_name}'"}
            )
        if not [r for r in stage.required_roles if r.strip()]:
            errors.append({"field": f"approval_stages[{index}].required_roles", "message": "At least one role is required"})
        seen_orders.add(stage.order)
        seen_names.add(stage.stage_name)

    if errors:
        raise ValidationError("Invalid workflow configuration", details=errors)


def create_from_template(
    milestone_id: UUID,
    project_id: UUID,
    config: WorkflowConfig,
    submitted_by: str,
    now: datetime,
    *,
    phase_id: Optional[UUID] = None,
    submission_comments: Optional[str] = None,
    completion_deadline: Optional[datetime] = None,
    approval_id: Optional[UUID] = None,
) -> MilestoneApproval:
    """
    Build a new workflow: every stage pending with no votes, sorted by order,
    and the first stage current.
    """
    validate_workflow_config(config)

    stages = sorted(
        (
            ApprovalStage(
                stage_name=stage.stage_name,
                required_roles=list(stage.required_roles),
                is_optional=stage.is_optional,
                order=stage.order,
            )
            for stage in config.approval_stages
        ),
        key=lambda s: s.order,
    )

    return MilestoneApproval(
        id=approval_id or uuid4(),
        milestone_id=milestone_id,
        project_id=project_id,
        phase_id=phase_id,
        current_stage=stages[0].stage_name if stages else DEFAULT_STAGE_NAME,
        stages=stages,
        overall_status=OverallStatus.PENDING,
        submitted_by=submitted_by,
        submitted_at=now,
        completion_deadline=completion_deadline,
        submission_comments=submission_comments,
        is_active=True,
        version=1,
    )


def seed_stage_votes(
    workflow: MilestoneApproval,
    approvers_by_role: Mapping[str, Iterable[str]],
) -> MilestoneApproval:
    """
    Assign a pending vote to every user holding one of a stage's roles.

    A user gets one vote per stage, under the first of the stage's roles
    they hold. Every required role needs its own voter: a required stage
    with an uncovered role is rejected up front, as is an optional stage
    that has voters but leaves a role uncovered. An optional stage with no
    voters at all is bypassed.
    """
    errors: list[dict[str, str]] = []
    for stage in workflow.stages:
        assigned = {v.user_id for v in stage.votes}
        for role in stage.required_roles:
            for user_id in approvers_by_role.get(role, ()):
                if user_id in assigned:
                    continue
                stage.votes.append(ApprovalVote(user_id=user_id, user_role=role))
                assigned.add(user_id)
        if stage.is_optional and not stage.votes:
            continue
        covered = {v.user_role for v in stage.votes}
        missing = [role for role in stage.required_roles if role not in covered]
        if missing:
            errors.append(
                {
                    "field": "approval_stages",
                    "message": f"No eligible approvers for stage '{stage.stage_name}' "
                    f"(roles: {', '.join(missing)})",
                }
            )
    if errors:
        raise ValidationError("Workflow has stages without approvers", details=errors)

    advance_current_stage(workflow)
    return workflow


# ===========================================
# Cancellation
# ===========================================


def cancel_workflow(
    workflow: MilestoneApproval,
    actor_id: str,
    reason: Optional[str],
    now: datetime,
) -> MilestoneApproval:
    """Withdraw an open workflow. Closed workflows cannot be cancelled."""
    if workflow.is_terminal:
        raise PreconditionError(
            f"Approval {workflow.id} is already {workflow.overall_status.value}",
            details={"overall_status": workflow.overall_status.value},
        )
    workflow.overall_status = OverallStatus.CANCELLED
    workflow.is_active = False
    workflow.cancelled_at = now
    workflow.cancelled_by = actor_id
    workflow.cancellation_reason = reason
    return workflow
