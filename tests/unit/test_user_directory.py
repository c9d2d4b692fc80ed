"""
Tests for the SQLite user directory.
"""

import pytest

from app.infrastructure.local.user_directory import SqliteUserDirectory
from app.models.user import DirectoryUserCreate


@pytest.fixture
def directory(session_factory):
    return SqliteUserDirectory(session_factory=session_factory)


@pytest.mark.asyncio
async def test_upsert_replaces_roles(directory):
    await directory.upsert(DirectoryUserCreate(id="m1", roles=["manager", "manager", "reviewer"]))
    assert await directory.get_roles("m1") == {"manager", "reviewer"}

    updated = await directory.upsert(DirectoryUserCreate(id="m1", roles=["admin"]))

    assert updated.roles == ["admin"]
    assert await directory.has_role("m1", "admin") is True
    assert await directory.has_role("m1", "manager") is False


@pytest.mark.asyncio
async def test_inactive_user_has_no_roles(directory):
    await directory.upsert(DirectoryUserCreate(id="gone", roles=["admin"], is_active=False))

    assert await directory.is_active_user("gone") is False
    assert await directory.get_roles("gone") == set()
    assert await directory.is_active_user("nobody") is False


@pytest.mark.asyncio
async def test_list_users_with_roles(directory):
    await directory.upsert(DirectoryUserCreate(id="m2", roles=["manager"]))
    await directory.upsert(DirectoryUserCreate(id="m1", roles=["manager", "admin"]))
    await directory.upsert(DirectoryUserCreate(id="x1", roles=["manager"], is_active=False))

    by_role = await directory.list_users_with_roles(["manager", "admin", "auditor"])

    assert by_role == {"manager": ["m1", "m2"], "admin": ["m1"], "auditor": []}
    assert await directory.list_users_with_roles([]) == {}
