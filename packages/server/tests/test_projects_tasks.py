"""
Tests for projects, tasks and the member directory.
"""

from __future__ import annotations

import pytest

from app.core.errors import Conflict
from app.models.organization import Organization
from app.models.project import Project, ProjectMember
from app.models.user import User
from app.services import membership
from taskhive_shared.schemas.common import Role


class TestProjects:
    @pytest.mark.asyncio
    async def test_create_promotes_lead(self, client, seed, acme, headers):
        org = acme["org"]
        bob = await seed.user("Bob")
        carol = await seed.user("Carol")
        await seed.join(org, bob)
        await seed.join(org, carol)

        resp = await client.post(
            "/api/v1/projects",
            json={"name": "Apollo", "leadId": str(bob.id), "memberIds": [str(carol.id)]},
            headers=headers(acme["alice"]),
        )
        assert resp.status_code == 201
        project = resp.json()["project"]
        assert project["leadId"] == str(bob.id)
        assert project["lead"] == "Bob"
        assert project["status"] == "Planning"
        assert {m["name"] for m in project["members"]} == {"Bob", "Carol"}

        assert (await seed.projection(bob, org)).role == "Lead"
        assert (await seed.roster(org, bob)).role == "Lead"
        assert (await seed.projection(carol, org)).role == "Member"

    @pytest.mark.asyncio
    async def test_create_requires_admin(self, client, seed, acme, headers):
        lena = await seed.user("Lena")
        await seed.join(acme["org"], lena, Role.LEAD)
        resp = await client.post(
            "/api/v1/projects", json={"name": "Apollo", "leadId": str(lena.id)}, headers=headers(lena)
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_create_with_outside_lead(self, client, seed, acme, headers):
        zed = await seed.user("Zed")
        resp = await client.post(
            "/api/v1/projects", json={"name": "Apollo", "leadId": str(zed.id)}, headers=headers(acme["alice"])
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_detail_lists_tasks(self, client, seed, acme, headers):
        org, alice = acme["org"], acme["alice"]
        project = await seed.project(org, alice)
        await seed.task(org, project, alice, title="Write docs")

        resp = await client.get(f"/api/v1/projects/{project.id}", headers=headers(alice))
        assert resp.status_code == 200
        data = resp.json()
        assert data["taskCount"] == 1
        assert data["tasks"][0]["title"] == "Write docs"
        assert data["tasks"][0]["assigneeId"] == str(alice.id)

    @pytest.mark.asyncio
    async def test_add_and_remove_members(self, client, seed, acme, headers):
        org = acme["org"]
        lena = await seed.user("Lena")
        mo = await seed.user("Mo")
        await seed.join(org, lena, Role.LEAD)
        await seed.join(org, mo)
        project = await seed.project(org, lena)

        added = await client.post(
            f"/api/v1/projects/{project.id}/members",
            json={"userIds": [str(mo.id), str(lena.id)]},
            headers=headers(lena),
        )
        assert added.status_code == 200
        assert added.json()["added"] == [str(mo.id)]
        assert await seed.get(ProjectMember, (project.id, mo.id)) is not None

        lead_out = await client.delete(
            f"/api/v1/projects/{project.id}/members/{lena.id}", headers=headers(lena)
        )
        assert lead_out.status_code == 400

        mo_out = await client.delete(f"/api/v1/projects/{project.id}/members/{mo.id}", headers=headers(lena))
        assert mo_out.status_code == 200
        assert await seed.get(ProjectMember, (project.id, mo.id)) is None

    @pytest.mark.asyncio
    async def test_member_cannot_manage_project(self, client, seed, acme, headers):
        org = acme["org"]
        mo = await seed.user("Mo")
        await seed.join(org, mo)
        project = await seed.project(org, acme["alice"])
        resp = await client.post(
            f"/api/v1/projects/{project.id}/members", json={"userIds": [str(mo.id)]}, headers=headers(mo)
        )
        assert resp.status_code == 403


class TestTasks:
    @pytest.mark.asyncio
    async def test_lead_creates_and_lists(self, client, seed, acme, headers):
        org = acme["org"]
        lena = await seed.user("Lena")
        mo = await seed.user("Mo")
        await seed.join(org, lena, Role.LEAD)
        await seed.join(org, mo)
        project = await seed.project(org, lena)

        resp = await client.post(
            "/api/v1/tasks",
            json={"title": "Ship it", "projectId": str(project.id), "assignedToId": str(mo.id), "priority": "High"},
            headers=headers(lena),
        )
        assert resp.status_code == 201
        task = resp.json()["task"]
        assert task["status"] == "Todo"
        assert task["priority"] == "High"
        assert task["assignedToId"] == str(mo.id)

        listed = await client.get(f"/api/v1/tasks?projectId={project.id}", headers=headers(mo))
        assert listed.status_code == 200
        assert listed.json()["count"] == 1

    @pytest.mark.asyncio
    async def test_assignee_must_be_in_org(self, client, seed, acme, headers):
        zed = await seed.user("Zed")
        project = await seed.project(acme["org"], acme["alice"])
        resp = await client.post(
            "/api/v1/tasks",
            json={"title": "Ship it", "projectId": str(project.id), "assignedToId": str(zed.id)},
            headers=headers(acme["alice"]),
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_reassign_requires_project_member(self, client, seed, acme, headers):
        org, alice = acme["org"], acme["alice"]
        mo = await seed.user("Mo")
        await seed.join(org, mo)
        project = await seed.project(org, alice)
        task = await seed.task(org, project, alice)

        resp = await client.patch(
            f"/api/v1/tasks/{task.id}/reassign", json={"newAssigneeId": str(mo.id)}, headers=headers(alice)
        )
        assert resp.status_code == 400

        await client.post(
            f"/api/v1/projects/{project.id}/members", json={"userIds": [str(mo.id)]}, headers=headers(alice)
        )
        resp = await client.patch(
            f"/api/v1/tasks/{task.id}/reassign", json={"newAssigneeId": str(mo.id)}, headers=headers(alice)
        )
        assert resp.status_code == 200
        assert resp.json()["task"]["assignedToId"] == str(mo.id)

    @pytest.mark.asyncio
    async def test_reassign_without_assignee(self, client, seed, acme, headers):
        project = await seed.project(acme["org"], acme["alice"])
        task = await seed.task(acme["org"], project, None)
        resp = await client.patch(f"/api/v1/tasks/{task.id}/reassign", json={}, headers=headers(acme["alice"]))
        assert resp.status_code == 400


class TestInactiveMembers:
    """Pending roster rows do not count as organization members."""

    @pytest.fixture
    async def pat(self, seed, acme):
        pat = await seed.user("Pat")
        await seed.join(acme["org"], pat)
        await seed.set_roster(acme["org"], pat, status="pending")
        return pat

    @pytest.mark.asyncio
    async def test_cannot_become_lead(self, client, seed, acme, headers, pat):
        project = await seed.project(acme["org"], acme["alice"])
        resp = await client.patch(
            f"/api/v1/projects/{project.id}", json={"leadId": str(pat.id)}, headers=headers(acme["alice"])
        )
        assert resp.status_code == 400
        assert resp.json()["details"] == {"userId": str(pat.id)}
        assert (await seed.get(Project, project.id)).lead_id == acme["alice"].id

    @pytest.mark.asyncio
    async def test_cannot_lead_new_project(self, client, acme, headers, pat):
        resp = await client.post(
            "/api/v1/projects", json={"name": "Apollo", "leadId": str(pat.id)}, headers=headers(acme["alice"])
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_cannot_join_project(self, client, seed, acme, headers, pat):
        project = await seed.project(acme["org"], acme["alice"])
        resp = await client.post(
            f"/api/v1/projects/{project.id}/members", json={"userIds": [str(pat.id)]}, headers=headers(acme["alice"])
        )
        assert resp.status_code == 400
        assert await seed.get(ProjectMember, (project.id, pat.id)) is None

    @pytest.mark.asyncio
    async def test_cannot_be_assigned(self, client, seed, acme, headers, pat):
        project = await seed.project(acme["org"], acme["alice"], members=(pat,))
        created = await client.post(
            "/api/v1/tasks",
            json={"title": "Ship it", "projectId": str(project.id), "assignedToId": str(pat.id)},
            headers=headers(acme["alice"]),
        )
        assert created.status_code == 400

        task = await seed.task(acme["org"], project, acme["alice"])
        reassigned = await client.patch(
            f"/api/v1/tasks/{task.id}/reassign", json={"newAssigneeId": str(pat.id)}, headers=headers(acme["alice"])
        )
        assert reassigned.status_code == 400
        assert await seed.tasks_of(pat) == []


class TestOrganizationVersion:
    """Project and task writes claim the organization like roster writes do."""

    @pytest.mark.asyncio
    async def test_task_and_project_writes_bump_version(self, client, seed, acme, headers):
        org, alice = acme["org"], acme["alice"]
        mo = await seed.user("Mo")
        await seed.join(org, mo)
        project = await seed.project(org, alice)

        async def version() -> int:
            return (await seed.get(Organization, org.id)).version

        before = await version()
        created = await client.post(
            "/api/v1/tasks",
            json={"title": "Ship it", "projectId": str(project.id), "assignedToId": str(alice.id)},
            headers=headers(alice),
        )
        assert created.status_code == 201
        assert await version() == before + 1

        await client.post(
            f"/api/v1/projects/{project.id}/members", json={"userIds": [str(mo.id)]}, headers=headers(alice)
        )
        assert await version() == before + 2

        task_id = created.json()["task"]["id"]
        await client.patch(
            f"/api/v1/tasks/{task_id}/reassign", json={"newAssigneeId": str(mo.id)}, headers=headers(alice)
        )
        assert await version() == before + 3

    @pytest.mark.asyncio
    async def test_removal_loses_to_concurrent_assignment(
        self, client, seed, acme, headers, session_factory
    ):
        """A removal that read the organization before a task was assigned must not commit."""
        org, alice = acme["org"], acme["alice"]
        mo = await seed.user("Mo")
        await seed.join(org, mo)
        project = await seed.project(org, alice)

        # The removal read the organization before the assignment landed
        seen = await seed.get(Organization, org.id)

        created = await client.post(
            "/api/v1/tasks",
            json={"title": "Ship it", "projectId": str(project.id), "assignedToId": str(mo.id)},
            headers=headers(alice),
        )
        assert created.status_code == 201

        async with session_factory() as remover:
            stale_org = await remover.merge(seen, load=False)
            target = await remover.get(User, mo.id)
            with pytest.raises(Conflict):
                await membership.drop_member(stale_org, target, remover)
            await remover.rollback()

        assert (await seed.roster(org, mo)).status == "active"
        assert [t.title for t in await seed.tasks_of(mo)] == ["Ship it"]


class TestMemberDirectory:
    @pytest.mark.asyncio
    async def test_lists_roles_and_projects(self, client, seed, acme, headers):
        org = acme["org"]
        bob = await seed.user("Bob")
        pat = await seed.user("Pat")
        await seed.join(org, bob, Role.LEAD)
        await seed.join(org, pat)
        await seed.set_roster(org, pat, status="pending")
        await seed.project(org, bob, name="Apollo")

        resp = await client.get("/api/v1/members", headers=headers(bob))
        assert resp.status_code == 200
        data = resp.json()
        assert data["count"] == 2
        assert [(m["name"], m["role"], m["projects"]) for m in data["members"]] == [
            ("Alice", "Admin", []),
            ("Bob", "Lead", ["Apollo"]),
        ]

    @pytest.mark.asyncio
    async def test_requires_membership(self, client, seed, headers):
        bob = await seed.user("Bob")
        resp = await client.get("/api/v1/members", headers=headers(bob))
        assert resp.status_code == 403
        assert (await seed.get(User, bob.id)).current_organization_id is None
