"""
SQLite database configuration and ORM models.

This module defines the SQLAlchemy ORM models and database initialization.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    JSON,
    text,
)
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from app.core.config import get_settings


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


# ===========================================
# ORM Models
# ===========================================


class PhaseORM(Base):
    """Phase ORM model."""

    __tablename__ = "phases"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    project_id = Column(String(36), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    order = Column(Integer, nullable=False, default=1)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    actual_start_date = Column(DateTime, nullable=True)
    actual_end_date = Column(DateTime, nullable=True)
    status = Column(String(20), default="pending", index=True)
    progress = Column(Integer, default=0)
    budget_allocation = Column(Float, nullable=True)
    actual_cost = Column(Float, nullable=True)
    objectives = Column(JSON, nullable=True, default=list)
    deliverables = Column(JSON, nullable=True, default=list)
    is_deleted = Column(Boolean, default=False, index=True)
    deleted_at = Column(DateTime, nullable=True)
    deleted_by = Column(String(255), nullable=True)
    created_by = Column(String(255), nullable=False)
    updated_by = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class MilestoneORM(Base):
    """Milestone ORM model."""

    __tablename__ = "milestones"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    project_id = Column(String(36), nullable=False, index=True)
    phase_id = Column(String(36), nullable=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(DateTime, nullable=False, index=True)
    completed_date = Column(DateTime, nullable=True)
    status = Column(String(20), default="pending", index=True)
    priority = Column(String(10), default="medium")
    progress = Column(Integer, default=0)
    assignee_id = Column(String(255), nullable=True, index=True)
    linked_task_ids = Column(JSON, nullable=True, default=list)
    deliverables = Column(JSON, nullable=True, default=list)
    success_criteria = Column(JSON, nullable=True, default=list)
    dependencies = Column(JSON, nullable=True, default=list)
    budget_allocation = Column(Float, nullable=True)
    actual_cost = Column(Float, nullable=True)
    is_deleted = Column(Boolean, default=False, index=True)
    deleted_at = Column(DateTime, nullable=True)
    deleted_by = Column(String(255), nullable=True)
    created_by = Column(String(255), nullable=False)
    updated_by = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class MilestoneApprovalORM(Base):
    """
    Milestone approval ORM model.

    Stages and their votes are embedded as JSON; the row is the unit of
    concurrency and ``version`` is bumped on every write.
    """

    __tablename__ = "milestone_approvals"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    milestone_id = Column(String(36), nullable=False, index=True)
    project_id = Column(String(36), nullable=False, index=True)
    phase_id = Column(String(36), nullable=True, index=True)
    current_stage = Column(String(200), nullable=False)
    stages = Column(JSON, nullable=False, default=list)
    overall_status = Column(String(20), default="pending", index=True)
    final_approved_at = Column(DateTime, nullable=True)
    final_approved_by = Column(String(255), nullable=True)
    submitted_by = Column(String(255), nullable=False, index=True)
    submitted_at = Column(DateTime, nullable=False)
    completion_deadline = Column(DateTime, nullable=True, index=True)
    submission_comments = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, index=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by = Column(String(255), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        # At most one active approval per milestone
        Index(
            "uq_milestone_approvals_active_milestone",
            "milestone_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
        ),
    )


class UserORM(Base):
    """User directory ORM model."""

    __tablename__ = "users"

    id = Column(String(255), primary_key=True)
    email = Column(String(255), nullable=True, index=True)
    display_name = Column(String(255), nullable=True)
    roles = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class NotificationORM(Base):
    """Notification ORM model."""

    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String(255), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(String(500), nullable=False)
    link_type = Column(String(50), nullable=True)
    link_id = Column(String(36), nullable=True)
    project_id = Column(String(36), nullable=True)
    is_read = Column(Boolean, default=False, index=True)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# ===========================================
# Database Session Management
# ===========================================


def get_engine():
    """Get async engine instance."""
    settings = get_settings()
    return create_async_engine(settings.DATABASE_URL, echo=settings.DEBUG)


def get_session_factory():
    """Get async session factory."""
    engine = get_engine()
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine=None):
    """Initialize database tables."""
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
