"""
Shared fixtures: an on-disk SQLite database per test.

A file (not ``:memory:``) so that separate sessions see the same data and
can race each other.
"""

from __future__ import annotations

import pytest

from taskpayable.core.database import build_engine, build_session_factory, init_db
from taskpayable.models.organization import Organization
from taskpayable.models.user import User
from taskpayable.services.memberships import add_member, resolve_identity
from taskpayable_shared.schemas.common import Role


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'taskpayable.db'}")
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def make_user(session):
    async def _make(
        username: str,
        role: Role = Role.MEMBER,
        *,
        approved: bool = True,
        owner: bool = False,
    ) -> User:
        user = User(
            username=username,
            email=f"{username}@example.com",
            full_name=username.title(),
            role=role.value,
            is_approved=approved,
            owner_flag=owner,
        )
        session.add(user)
        await session.flush()
        return user

    return _make


@pytest.fixture
def make_org(session):
    async def _make(name: str = "Acme", members: list | None = None) -> Organization:
        """Create an organization with ``(user, role)`` members."""
        org = Organization(name=name)
        session.add(org)
        await session.flush()
        for user, role in members or []:
            await add_member(session, user.id, org.id, role)
        return org

    return _make


@pytest.fixture
def identity_of(session):
    async def _resolve(user: User):
        return await resolve_identity(session, user.id)

    return _resolve


@pytest.fixture
async def owner(make_user):
    return await make_user("owner", Role.OWNER, owner=True)
