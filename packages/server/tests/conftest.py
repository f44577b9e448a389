"""
Shared fixtures: an in-memory SQLite database, the app wired to it, and a
``Seed`` helper that writes state through the same membership write path
the services use.
"""

from __future__ import annotations

import os
import uuid
from typing import Optional
from unittest.mock import AsyncMock, patch

os.environ.setdefault("TH_LOG_FORMAT", "text")
os.environ.setdefault("TH_SECRET_KEY", "test-secret-key-with-at-least-32-bytes")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, select

import app.models  # noqa: F401  (populate metadata)
from app.core.auth import create_jwt
from app.core.database import get_session
from app.main import app
from app.models.membership import OrganizationMember, UserOrganization
from app.models.organization import Organization
from app.models.project import Project, ProjectMember
from app.models.task import Task
from app.models.user import User
from app.services import membership
from taskhive_shared.schemas.common import Role


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def client(session_factory):
    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    with patch("app.core.auth.is_jwt_revoked", AsyncMock(return_value=False)), patch(
        "app.api.v1.auth.revoke_jwt", AsyncMock()
    ):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict[str, str]:
    token, _ = create_jwt(
        user_id=user.id,
        email=user.email,
        role=user.role,
        organization_id=user.active_organization_id,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers():
    """Bearer headers for a user; claims are identity only, so stale ones still work."""
    return auth_headers


class Seed:
    """Creates and reads back rows, one short session per call."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def user(self, name: str, email: Optional[str] = None) -> User:
        async with self.session_factory() as session:
            user = User(
                name=name,
                email=email or f"{name.lower().replace(' ', '.')}@example.com",
            )
            session.add(user)
            await session.commit()
            return user

    async def org(
        self,
        owner: User,
        name: str = "Acme",
        handle: Optional[str] = None,
        invite_code: Optional[str] = None,
    ) -> Organization:
        async with self.session_factory() as session:
            owner = await session.get(User, owner.id)
            org = Organization(
                name=name,
                handle=handle or name.lower().replace(" ", "-"),
                admin_id=owner.id,
                invite_code=invite_code or uuid.uuid4().hex[:8].upper(),
            )
            session.add(org)
            await session.flush()
            await membership.add_member(org, owner, session, Role.ADMIN, make_current=True)
            await session.commit()
            return org

    async def join(
        self, org: Organization, user: User, role: Role = Role.MEMBER, *, make_current: bool = False
    ) -> None:
        async with self.session_factory() as session:
            org = await session.get(Organization, org.id)
            user = await session.get(User, user.id)
            await membership.add_member(org, user, session, role, make_current=make_current)
            await session.commit()

    async def project(
        self, org: Organization, lead: User, name: str = "Apollo", members: tuple[User, ...] = ()
    ) -> Project:
        async with self.session_factory() as session:
            project = Project(organization_id=org.id, name=name, lead_id=lead.id)
            session.add(project)
            await session.flush()
            for u in (lead, *members):
                session.add(ProjectMember(project_id=project.id, user_id=u.id, organization_id=org.id))
            await session.commit()
            return project

    async def task(
        self,
        org: Organization,
        project: Optional[Project],
        assignee: Optional[User],
        title: str = "Task",
        status: str = "Todo",
    ) -> Task:
        async with self.session_factory() as session:
            task = Task(
                organization_id=org.id,
                project_id=project.id if project else None,
                assigned_to_id=assignee.id if assignee else None,
                title=title,
                status=status,
            )
            session.add(task)
            await session.commit()
            return task

    async def get(self, model, key):
        async with self.session_factory() as session:
            return await session.get(model, key)

    async def projection(self, user: User, org: Organization) -> Optional[UserOrganization]:
        return await self.get(UserOrganization, (user.id, org.id))

    async def roster(self, org: Organization, user: User) -> Optional[OrganizationMember]:
        return await self.get(OrganizationMember, (org.id, user.id))

    async def execute(self, stmt) -> None:
        """Run a raw write, bypassing the membership write path."""
        async with self.session_factory() as session:
            await session.execute(stmt)
            await session.commit()

    async def set_roster(self, org: Organization, user: User, **values) -> None:
        await self.execute(
            update(OrganizationMember)
            .where(
                OrganizationMember.organization_id == org.id,
                OrganizationMember.user_id == user.id,
            )
            .values(**values)
        )

    async def all(self, stmt):
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def tasks_of(self, user: User) -> list[Task]:
        return await self.all(select(Task).where(Task.assigned_to_id == user.id))


@pytest.fixture
def seed(session_factory) -> Seed:
    return Seed(session_factory)


@pytest.fixture
async def acme(seed):
    """An organization owned by ``alice`` with invite code ABC123."""
    alice = await seed.user("Alice")
    org = await seed.org(alice, name="Acme", handle="acme", invite_code="ABC123")
    return {"org": org, "alice": await seed.get(User, alice.id)}
