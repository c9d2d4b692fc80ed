"""
Milestone approval service.

Orchestrates the approval workflow against storage: loads the approval,
runs the pure workflow rules, saves with optimistic concurrency and fans
out notifications. A version conflict re-runs the whole read-modify-write,
so a concurrent writer's votes are never lost.

Side effects after a successful save (notifications, milestone sync) are
best effort: their failures are logged and never undo the approval.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.core.config import get_settings
from app.core.exceptions import (
    ConcurrencyConflictError,
    ForbiddenError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from app.core.logger import setup_logger
from app.interfaces.approval_repository import IApprovalRepository
from app.interfaces.milestone_repository import IMilestoneRepository
from app.interfaces.notification_repository import INotificationRepository
from app.interfaces.user_directory import IUserDirectory
from app.models.approval import ApprovalActionRequest, ApprovalCreate, MilestoneApproval
from app.models.enums import ApprovalAction, MilestoneStatus, OverallStatus
from app.models.milestone import Milestone, MilestoneUpdate
from app.services import notification_service as notify
from app.services.approval_processor import apply_action
from app.services.approval_workflow import (
    cancel_workflow,
    create_from_template,
    seed_stage_votes,
)
from app.utils.datetime_utils import now_utc

logger = setup_logger(__name__)


class ApprovalService:
    """Service for submitting, acting on and querying milestone approvals."""

    def __init__(
        self,
        approval_repo: IApprovalRepository,
        milestone_repo: IMilestoneRepository,
        user_directory: IUserDirectory,
        notification_repo: Optional[INotificationRepository] = None,
        conflict_retries: Optional[int] = None,
        retry_backoff_seconds: Optional[float] = None,
        cancel_roles: Optional[list[str]] = None,
        notifications_enabled: Optional[bool] = None,
    ):
        settings = get_settings()
        self.approval_repo = approval_repo
        self.milestone_repo = milestone_repo
        self.user_directory = user_directory
        self.notification_repo = notification_repo
        self.conflict_retries = (
            conflict_retries if conflict_retries is not None else settings.APPROVAL_CONFLICT_RETRIES
        )
        self.retry_backoff_seconds = (
            retry_backoff_seconds
            if retry_backoff_seconds is not None
            else settings.APPROVAL_RETRY_BACKOFF_SECONDS
        )
        self.cancel_roles = set(cancel_roles if cancel_roles is not None else settings.APPROVAL_CANCEL_ROLES)
        self.notifications_enabled = (
            notifications_enabled if notifications_enabled is not None else settings.NOTIFICATIONS_ENABLED
        )

    # ===========================================
    # Commands
    # ===========================================

    async def submit(self, user_id: str, data: ApprovalCreate) -> MilestoneApproval:
        """
        Submit a milestone for approval.

        Votes are assigned to every active user holding a stage role at
        submission time.
        """
        milestone = await self.milestone_repo.get(data.milestone_id)
        if milestone is None:
            raise NotFoundError(f"Milestone {data.milestone_id} not found")
        if milestone.project_id != data.project_id:
            raise ValidationError(
                "Milestone does not belong to the given project",
                details=[{"field": "project_id", "message": "does not match the milestone"}],
            )

        workflow = create_from_template(
            milestone_id=data.milestone_id,
            project_id=data.project_id,
            config=data.workflow_config,
            submitted_by=user_id,
            now=now_utc(),
            phase_id=data.phase_id or milestone.phase_id,
            submission_comments=data.submission_comments,
            completion_deadline=data.completion_deadline,
        )
        roles = {role for stage in workflow.stages for role in stage.required_roles}
        approvers = await self.user_directory.list_users_with_roles(roles)
        seed_stage_votes(workflow, approvers)

        created = await self.approval_repo.create(workflow)
        logger.info(
            f"Approval {created.id} submitted for milestone {created.milestone_id} "
            f"by {user_id} ({len(created.stages)} stages)"
        )
        await self._notify(
            "approval submitted",
            notify.notify_approval_submitted(
                self.notification_repo, created, milestone.title, user_id
            ),
        )
        return created

    async def apply_action(self, user_id: str, request: ApprovalActionRequest) -> MilestoneApproval:
        """
        Apply approve / reject / delegate for the acting user.

        The read-modify-write is retried on version conflicts. Every retry
        re-reads the approval, so an action that became invalid in between
        (e.g. the stage moved on) fails with PreconditionError.
        """
        if request.action == ApprovalAction.DELEGATE and request.delegate_to_user_id:
            if not await self.user_directory.is_active_user(request.delegate_to_user_id.strip()):
                raise ValidationError(
                    f"Delegate user {request.delegate_to_user_id} not found or inactive",
                    details=[{"field": "delegate_to_user_id", "message": "unknown or inactive user"}],
                )

        before: Optional[MilestoneApproval] = None
        saved: Optional[MilestoneApproval] = None
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.conflict_retries),
            wait=wait_exponential(multiplier=self.retry_backoff_seconds, max=2),
            retry=retry_if_exception_type(ConcurrencyConflictError),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info(
                        f"Retrying action on approval {request.approval_id} "
                        f"(attempt {attempt.retry_state.attempt_number})"
                    )
                before = await self._get_or_raise(request.approval_id)
                roles = await self.user_directory.get_roles(user_id)
                updated = apply_action(
                    before,
                    user_id,
                    roles,
                    request.action,
                    comments=request.comments,
                    delegate_to_user_id=request.delegate_to_user_id,
                    now=now_utc(),
                )
                saved = await self.approval_repo.save(updated, expected_version=before.version)

        logger.info(
            f"User {user_id} applied {request.action.value} to approval {saved.id}: "
            f"{before.overall_status.value} -> {saved.overall_status.value}, "
            f"stage {saved.current_stage}"
        )
        await self._after_action(before, saved, user_id, request)
        return saved

    async def cancel(self, user_id: str, approval_id: UUID, reason: Optional[str] = None) -> MilestoneApproval:
        """Withdraw an open approval. Only the submitter or a cancel-role holder may."""
        saved: Optional[MilestoneApproval] = None
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.conflict_retries),
            wait=wait_exponential(multiplier=self.retry_backoff_seconds, max=2),
            retry=retry_if_exception_type(ConcurrencyConflictError),
            reraise=True,
        ):
            with attempt:
                current = await self._get_or_raise(approval_id)
                if current.submitted_by != user_id:
                    roles = await self.user_directory.get_roles(user_id)
                    if not roles & self.cancel_roles:
                        raise ForbiddenError(
                            "Only the submitter or an administrator can cancel this approval"
                        )
                updated = cancel_workflow(current.model_copy(deep=True), user_id, reason, now_utc())
                saved = await self.approval_repo.save(updated, expected_version=current.version)

        logger.info(f"Approval {approval_id} cancelled by {user_id}")
        await self._notify(
            "approval cancelled",
            notify.notify_approval_cancelled(self.notification_repo, saved, user_id),
        )
        return saved

    async def sync_milestone(self, approval_id: UUID, user_id: str) -> Milestone:
        """
        Bring the milestone in line with a fully approved workflow.

        Idempotent: a milestone already at 100% and completed is returned
        untouched.
        """
        approval = await self._get_or_raise(approval_id)
        if approval.overall_status != OverallStatus.APPROVED:
            raise PreconditionError(
                f"Approval {approval_id} is {approval.overall_status.value}, not approved",
                details={"overall_status": approval.overall_status.value},
            )
        return await self._complete_milestone(approval, user_id)

    # ===========================================
    # Queries
    # ===========================================

    async def get(self, approval_id: UUID) -> MilestoneApproval:
        return await self._get_or_raise(approval_id)

    async def get_active_by_milestone(self, milestone_id: UUID) -> Optional[MilestoneApproval]:
        return await self.approval_repo.get_active_by_milestone(milestone_id)

    async def list(self, **filters) -> tuple[list[MilestoneApproval], int]:
        return await self.approval_repo.list(**filters)

    async def list_pending(self, user_id: str) -> list[MilestoneApproval]:
        """Approvals whose current stage waits on the user, oldest first."""
        roles = await self.user_directory.get_roles(user_id)
        return await self.approval_repo.list_pending_for_user(user_id, roles)

    # ===========================================
    # Helpers
    # ===========================================

    async def _get_or_raise(self, approval_id: UUID) -> MilestoneApproval:
        approval = await self.approval_repo.get(approval_id)
        if approval is None:
            raise NotFoundError(f"Approval {approval_id} not found")
        return approval

    async def _after_action(
        self,
        before: MilestoneApproval,
        saved: MilestoneApproval,
        user_id: str,
        request: ApprovalActionRequest,
    ) -> None:
        if request.action == ApprovalAction.DELEGATE:
            await self._notify(
                "approval delegated",
                notify.notify_approval_delegated(
                    self.notification_repo, saved, request.delegate_to_user_id.strip(), user_id
                ),
            )
            return

        if saved.overall_status == OverallStatus.APPROVED:
            await self._notify(
                "approval completed",
                notify.notify_approval_completed(self.notification_repo, saved, user_id),
            )
            try:
                await self._complete_milestone(saved, user_id)
            except Exception as e:
                # The approval stands; POST .../sync reconciles later.
                logger.error(f"Milestone sync failed for approval {saved.id}: {e}")
        elif saved.overall_status == OverallStatus.REJECTED:
            await self._notify(
                "approval rejected",
                notify.notify_approval_rejected(self.notification_repo, saved, user_id),
            )
        elif saved.current_stage != before.current_stage:
            await self._notify(
                "stage advanced",
                notify.notify_stage_advanced(self.notification_repo, saved, user_id),
            )

    async def _complete_milestone(self, approval: MilestoneApproval, user_id: str) -> Milestone:
        milestone = await self.milestone_repo.get(approval.milestone_id)
        if milestone is None:
            raise NotFoundError(f"Milestone {approval.milestone_id} not found")
        if milestone.progress == 100 and milestone.status == MilestoneStatus.COMPLETED:
            return milestone
        updated = await self.milestone_repo.update(
            user_id,
            approval.milestone_id,
            MilestoneUpdate(progress=100, status=MilestoneStatus.COMPLETED),
        )
        logger.info(f"Milestone {approval.milestone_id} completed by approval {approval.id}")
        return updated

    async def _notify(self, event: str, coro) -> None:
        if not self.notifications_enabled or self.notification_repo is None:
            coro.close()
            return
        try:
            await coro
        except Exception as e:
            logger.warning(f"Failed to send '{event}' notification: {e}")
