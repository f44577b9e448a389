"""
Tests for project status and deletion, task status and deletion, and the
lead's own project and team views.
"""

from __future__ import annotations

import pytest

from app.models.project import Project, ProjectMember
from app.models.task import Task
from taskhive_shared.schemas.common import Role


@pytest.fixture
async def crew(seed, acme):
    """bob leads Apollo with member mo; lena (Lead) is on it too; pat is pending."""
    org = acme["org"]
    bob, mo, lena, pat = [await seed.user(n) for n in ("Bob", "Mo", "Lena", "Pat")]
    await seed.join(org, bob, Role.LEAD)
    await seed.join(org, mo)
    await seed.join(org, lena, Role.LEAD)
    await seed.join(org, pat)
    await seed.set_roster(org, pat, status="pending")
    apollo = await seed.project(org, bob, name="Apollo", members=(mo, lena, pat))
    return {"org": org, "alice": acme["alice"], "bob": bob, "mo": mo, "lena": lena, "pat": pat, "apollo": apollo}


class TestProjectStatus:
    @pytest.mark.asyncio
    async def test_lead_closes_project(self, client, seed, crew, headers):
        apollo = crew["apollo"]
        resp = await client.patch(
            f"/api/v1/projects/{apollo.id}/status", json={"status": "Closed"}, headers=headers(crew["bob"])
        )
        assert resp.status_code == 200
        assert resp.json()["project"]["status"] == "Closed"
        assert (await seed.get(Project, apollo.id)).status == "Closed"

    @pytest.mark.asyncio
    async def test_invalid_status(self, client, crew, headers):
        resp = await client.patch(
            f"/api/v1/projects/{crew['apollo'].id}/status", json={"status": "Archived"}, headers=headers(crew["bob"])
        )
        assert resp.status_code == 400
        assert resp.json()["details"]["allowedStatuses"] == ["Planning", "In Progress", "Closed"]

    @pytest.mark.asyncio
    async def test_member_cannot_change_status(self, client, crew, headers):
        resp = await client.patch(
            f"/api/v1/projects/{crew['apollo'].id}/status", json={"status": "Closed"}, headers=headers(crew["mo"])
        )
        assert resp.status_code == 403


class TestProjectDelete:
    async def close(self, client, project, user, headers):
        resp = await client.patch(f"/api/v1/projects/{project.id}/status", json={"status": "Closed"}, headers=headers(user))
        assert resp.status_code == 200

    @pytest.mark.asyncio
    async def test_open_project_is_refused(self, client, seed, crew, headers):
        resp = await client.delete(f"/api/v1/projects/{crew['apollo'].id}", headers=headers(crew["alice"]))
        assert resp.status_code == 400
        assert resp.json()["details"] == {"currentStatus": "Planning"}
        assert await seed.get(Project, crew["apollo"].id) is not None

    @pytest.mark.asyncio
    async def test_unfinished_tasks_are_counted(self, client, seed, crew, headers):
        apollo = crew["apollo"]
        await seed.task(crew["org"], apollo, crew["mo"], status="Done")
        await seed.task(crew["org"], apollo, crew["mo"], status="Blocked")
        await self.close(client, apollo, crew["bob"], headers)

        resp = await client.delete(f"/api/v1/projects/{apollo.id}", headers=headers(crew["alice"]))
        assert resp.status_code == 400
        assert resp.json()["details"] == {"totalTasks": 2, "completedTasks": 1, "pendingTasks": 1}

    @pytest.mark.asyncio
    async def test_deletes_project_and_tasks(self, client, seed, crew, headers):
        apollo = crew["apollo"]
        done = [await seed.task(crew["org"], apollo, crew["mo"], status="Done") for _ in range(2)]
        await self.close(client, apollo, crew["bob"], headers)

        resp = await client.delete(f"/api/v1/projects/{apollo.id}", headers=headers(crew["alice"]))
        assert resp.status_code == 200
        assert resp.json()["deletedTasks"] == 2
        assert await seed.get(Project, apollo.id) is None
        assert await seed.get(ProjectMember, (apollo.id, crew["mo"].id)) is None
        for task in done:
            assert await seed.get(Task, task.id) is None

    @pytest.mark.asyncio
    async def test_deletion_unblocks_member_removal(self, client, seed, crew, headers):
        apollo, alice = crew["apollo"], crew["alice"]
        blocked = await client.delete(f"/api/v1/members/{crew['bob'].id}/remove", headers=headers(alice))
        assert blocked.status_code == 400

        await self.close(client, apollo, crew["bob"], headers)
        await client.delete(f"/api/v1/projects/{apollo.id}", headers=headers(alice))

        removed = await client.delete(f"/api/v1/members/{crew['bob'].id}/remove", headers=headers(alice))
        assert removed.status_code == 200
        assert await seed.roster(crew["org"], crew["bob"]) is None

    @pytest.mark.asyncio
    async def test_lead_cannot_delete(self, client, crew, headers):
        await self.close(client, crew["apollo"], crew["bob"], headers)
        resp = await client.delete(f"/api/v1/projects/{crew['apollo'].id}", headers=headers(crew["bob"]))
        assert resp.status_code == 403


class TestTaskStatus:
    @pytest.mark.asyncio
    async def test_assignee_updates_status(self, client, seed, crew, headers):
        task = await seed.task(crew["org"], crew["apollo"], crew["mo"])
        resp = await client.patch(
            f"/api/v1/tasks/{task.id}/status", json={"status": "Blocked"}, headers=headers(crew["mo"])
        )
        assert resp.status_code == 200
        assert resp.json()["task"]["status"] == "Blocked"
        assert (await seed.get(Task, task.id)).status == "Blocked"

    @pytest.mark.asyncio
    async def test_project_lead_updates_status(self, client, seed, crew, headers):
        task = await seed.task(crew["org"], crew["apollo"], crew["mo"])
        resp = await client.patch(
            f"/api/v1/tasks/{task.id}/status", json={"status": "Done"}, headers=headers(crew["bob"])
        )
        assert resp.status_code == 200

    @pytest.mark.asyncio
    async def test_invalid_status(self, client, seed, crew, headers):
        task = await seed.task(crew["org"], crew["apollo"], crew["mo"])
        for body in ({"status": "Finished"}, {}):
            resp = await client.patch(f"/api/v1/tasks/{task.id}/status", json=body, headers=headers(crew["mo"]))
            assert resp.status_code == 400
            assert resp.json()["error"] == "Invalid status"
        assert (await seed.get(Task, task.id)).status == "Todo"

    @pytest.mark.asyncio
    async def test_other_member_is_forbidden(self, client, seed, crew, headers):
        task = await seed.task(crew["org"], crew["apollo"], crew["mo"])
        resp = await client.patch(
            f"/api/v1/tasks/{task.id}/status", json={"status": "Done"}, headers=headers(crew["lena"])
        )
        assert resp.status_code == 403


class TestTaskDelete:
    @pytest.mark.asyncio
    async def test_lead_deletes_project_task(self, client, seed, crew, headers):
        task = await seed.task(crew["org"], crew["apollo"], crew["mo"])
        resp = await client.delete(f"/api/v1/tasks/{task.id}", headers=headers(crew["lena"]))
        assert resp.status_code == 200
        assert await seed.get(Task, task.id) is None

    @pytest.mark.asyncio
    async def test_member_cannot_delete_project_task(self, client, seed, crew, headers):
        task = await seed.task(crew["org"], crew["apollo"], crew["mo"])
        resp = await client.delete(f"/api/v1/tasks/{task.id}", headers=headers(crew["mo"]))
        assert resp.status_code == 403
        assert await seed.get(Task, task.id) is not None

    @pytest.mark.asyncio
    async def test_member_deletes_own_personal_task(self, client, seed, crew, headers):
        own = await seed.task(crew["org"], None, crew["mo"])
        theirs = await seed.task(crew["org"], None, crew["alice"])

        assert (await client.delete(f"/api/v1/tasks/{own.id}", headers=headers(crew["mo"]))).status_code == 200
        assert (await client.delete(f"/api/v1/tasks/{theirs.id}", headers=headers(crew["mo"]))).status_code == 403

    @pytest.mark.asyncio
    async def test_task_in_another_org(self, client, seed, crew, headers):
        zed = await seed.user("Zed")
        elsewhere = await seed.org(zed, name="Zedcorp", handle="zedcorp")
        task = await seed.task(elsewhere, None, zed)
        resp = await client.delete(f"/api/v1/tasks/{task.id}", headers=headers(crew["alice"]))
        assert resp.status_code == 404


class TestLeadViews:
    @pytest.mark.asyncio
    async def test_lists_led_projects(self, client, seed, crew, headers):
        await seed.project(crew["org"], crew["lena"], name="Gemini")
        await seed.task(crew["org"], crew["apollo"], crew["mo"])

        resp = await client.get("/api/v1/projects/lead", headers=headers(crew["bob"]))
        assert resp.status_code == 200
        data = resp.json()
        assert data["count"] == 1
        project = data["projects"][0]
        assert project["name"] == "Apollo"
        assert project["leadId"] == str(crew["bob"].id)
        assert project["memberCount"] == 4
        assert project["taskCount"] == 1

    @pytest.mark.asyncio
    async def test_team_lists_active_members_only(self, client, seed, crew, headers):
        await seed.project(crew["org"], crew["bob"], name="Borealis", members=(crew["mo"],))

        resp = await client.get("/api/v1/projects/lead/members", headers=headers(crew["bob"]))
        assert resp.status_code == 200
        data = resp.json()
        assert data["count"] == 1
        member = data["members"][0]
        assert member["name"] == "Mo"
        assert member["role"] == "Member"
        assert member["projects"] == ["Apollo", "Borealis"]

    @pytest.mark.asyncio
    async def test_empty_for_non_lead(self, client, crew, headers):
        resp = await client.get("/api/v1/projects/lead/members", headers=headers(crew["mo"]))
        assert resp.status_code == 200
        assert resp.json()["count"] == 0
