"""API routers."""

from app.api import (
    milestone_approvals,
    milestones,
    notifications,
    phases,
    users,
)

__all__ = [
    "milestone_approvals",
    "milestones",
    "notifications",
    "phases",
    "users",
]
