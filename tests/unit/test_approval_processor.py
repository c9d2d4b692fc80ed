"""
Unit tests for the approval action processor.
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from app.core.exceptions import PreconditionError, ValidationError
from app.models.approval import StageConfig, WorkflowConfig
from app.models.enums import ApprovalAction, OverallStatus, StageStatus, VoteStatus
from app.services.approval_processor import apply_action
from app.services.approval_workflow import create_from_template, seed_stage_votes

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)
LATER = NOW + timedelta(hours=2)


@pytest.fixture
def workflow():
    """Manager Review (manager m1) then Final Approval (admin a1)."""
    config = WorkflowConfig(
        approval_stages=[
            StageConfig(stage_name="Manager Review", required_roles=["manager"], order=0),
            StageConfig(stage_name="Final Approval", required_roles=["admin"], order=1),
        ]
    )
    approval = create_from_template(uuid4(), uuid4(), config, "submitter", NOW)
    return seed_stage_votes(approval, {"manager": ["m1"], "admin": ["a1"]})


def test_manager_then_admin_scenario(workflow):
    after_manager = apply_action(workflow, "m1", {"manager"}, ApprovalAction.APPROVE, "Looks good", now=NOW)

    assert after_manager.stages[0].stage_status == StageStatus.APPROVED
    assert after_manager.stages[0].completed_at == NOW
    assert after_manager.current_stage == "Final Approval"
    assert after_manager.overall_status == OverallStatus.IN_REVIEW

    final = apply_action(after_manager, "a1", {"admin"}, ApprovalAction.APPROVE, now=LATER)

    assert final.overall_status == OverallStatus.APPROVED
    assert final.final_approved_by == "a1"
    assert final.final_approved_at == LATER
    assert final.current_stage == "Final Approval"


def test_joint_stage_waits_for_every_role():
    config = WorkflowConfig(
        approval_stages=[
            StageConfig(stage_name="Joint Review", required_roles=["manager", "admin"], order=0),
        ]
    )
    approval = create_from_template(uuid4(), uuid4(), config, "submitter", NOW)
    approval = seed_stage_votes(approval, {"manager": ["m1"], "admin": ["a1"]})

    after_manager = apply_action(approval, "m1", {"manager"}, ApprovalAction.APPROVE, now=NOW)

    assert after_manager.stages[0].stage_status == StageStatus.IN_REVIEW
    assert after_manager.overall_status == OverallStatus.IN_REVIEW

    final = apply_action(after_manager, "a1", {"admin"}, ApprovalAction.APPROVE, now=LATER)

    assert final.stages[0].stage_status == StageStatus.APPROVED
    assert final.overall_status == OverallStatus.APPROVED


def test_input_is_not_mutated(workflow):
    apply_action(workflow, "m1", {"manager"}, ApprovalAction.APPROVE, now=NOW)

    assert workflow.stages[0].votes[0].status == VoteStatus.PENDING
    assert workflow.current_stage == "Manager Review"


def test_double_approve_rejected(workflow):
    updated = apply_action(workflow, "m1", {"manager"}, ApprovalAction.APPROVE, now=NOW)
    # Point back at the first stage so the retry lands where m1 already voted.
    updated.stages[0].stage_status = StageStatus.IN_REVIEW
    updated.current_stage = "Manager Review"
    vote_count = len(updated.stages[0].votes)

    with pytest.raises(PreconditionError) as exc_info:
        apply_action(updated, "m1", {"manager"}, ApprovalAction.APPROVE, now=LATER)

    assert exc_info.value.details["reason"] == "already_acted"
    assert len(updated.stages[0].votes) == vote_count


def test_reject_closes_workflow(workflow):
    rejected = apply_action(workflow, "m1", {"manager"}, ApprovalAction.REJECT, "Missing evidence", now=NOW)

    assert rejected.overall_status == OverallStatus.REJECTED
    assert rejected.rejection_reason == "Missing evidence"
    assert rejected.stages[0].stage_status == StageStatus.REJECTED

    with pytest.raises(PreconditionError):
        apply_action(rejected, "a1", {"admin"}, ApprovalAction.APPROVE, now=LATER)


def test_acting_out_of_turn(workflow):
    with pytest.raises(PreconditionError) as exc_info:
        apply_action(workflow, "a1", {"admin"}, ApprovalAction.APPROVE, now=NOW)
    assert exc_info.value.details["reason"] == "out_of_turn"


def test_user_without_vote(workflow):
    with pytest.raises(PreconditionError) as exc_info:
        apply_action(workflow, "stranger", {"manager"}, ApprovalAction.APPROVE, now=NOW)
    assert exc_info.value.details["reason"] == "no_pending_vote"


def test_role_no_longer_held(workflow):
    with pytest.raises(PreconditionError) as exc_info:
        apply_action(workflow, "m1", set(), ApprovalAction.APPROVE, now=NOW)
    assert exc_info.value.details["reason"] == "role_ineligible"


class TestDelegation:
    def test_delegate_hands_vote_over(self, workflow):
        delegated = apply_action(
            workflow, "m1", {"manager"}, ApprovalAction.DELEGATE, "On leave", delegate_to_user_id="m2", now=NOW
        )
        votes = delegated.stages[0].votes

        assert votes[0].status == VoteStatus.DELEGATED
        assert votes[0].delegated_to == "m2"
        assert votes[0].acted_at == NOW
        assert votes[1].user_id == "m2"
        assert votes[1].user_role == "manager"
        assert votes[1].delegated_from == "m1"
        assert votes[1].status == VoteStatus.PENDING
        assert delegated.stages[0].stage_status == StageStatus.PENDING
        assert delegated.overall_status == OverallStatus.PENDING

    def test_delegate_can_approve_without_role(self, workflow):
        delegated = apply_action(
            workflow, "m1", {"manager"}, ApprovalAction.DELEGATE, delegate_to_user_id="m2", now=NOW
        )
        approved = apply_action(delegated, "m2", set(), ApprovalAction.APPROVE, now=LATER)

        assert approved.stages[0].stage_status == StageStatus.APPROVED
        assert approved.current_stage == "Final Approval"

    def test_delegate_without_target(self, workflow):
        with pytest.raises(ValidationError):
            apply_action(workflow, "m1", {"manager"}, ApprovalAction.DELEGATE, now=NOW)

    def test_delegate_to_self(self, workflow):
        with pytest.raises(ValidationError):
            apply_action(
                workflow, "m1", {"manager"}, ApprovalAction.DELEGATE, delegate_to_user_id="m1", now=NOW
            )

    def test_delegator_cannot_act_again(self, workflow):
        delegated = apply_action(
            workflow, "m1", {"manager"}, ApprovalAction.DELEGATE, delegate_to_user_id="m2", now=NOW
        )
        with pytest.raises(PreconditionError):
            apply_action(delegated, "m1", {"manager"}, ApprovalAction.APPROVE, now=LATER)
