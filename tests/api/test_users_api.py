"""HTTP API tests for the current-user and user administration endpoints."""

from __future__ import annotations

from httpx import AsyncClient

from tests.api.conftest import ApiProject


class TestMe:
    async def test_me(self, client: AsyncClient, api_project: ApiProject) -> None:
        resp = await client.get("/api/auth/me", headers=api_project.auth("dev"))
        assert resp.status_code == 200
        data = resp.json()
        assert data["username"] == "dana"
        assert data["role"] == "developer"
        assert "token" not in data

    async def test_update_me(self, client: AsyncClient, api_project: ApiProject) -> None:
        resp = await client.patch("/api/auth/me", json={"first_name": "Danielle", "role": "admin"}, headers=api_project.auth("dev"))
        assert resp.status_code == 200
        assert resp.json()["first_name"] == "Danielle"
        assert resp.json()["role"] == "developer"

    async def test_update_me_bad_email(self, client: AsyncClient, api_project: ApiProject) -> None:
        resp = await client.patch("/api/auth/me", json={"email": "nope"}, headers=api_project.auth("dev"))
        assert resp.status_code == 400
        assert resp.json()["error"]["details"] == {"field": "email"}


class TestUsers:
    async def test_list(self, client: AsyncClient, api_project: ApiProject) -> None:
        resp = await client.get("/api/users", headers=api_project.auth("reporter"))
        assert [u["username"] for u in resp.json()] == ["ada", "dana", "devon", "ray", "rita"]

    async def test_list_by_role(self, client: AsyncClient, api_project: ApiProject) -> None:
        resp = await client.get("/api/users", params={"role": "admin"}, headers=api_project.auth("reporter"))
        assert [u["username"] for u in resp.json()] == ["ada"]

    async def test_list_bad_role(self, client: AsyncClient, api_project: ApiProject) -> None:
        resp = await client.get("/api/users", params={"role": "owner"}, headers=api_project.auth("reporter"))
        assert resp.status_code == 400

    async def test_detail(self, client: AsyncClient, api_project: ApiProject) -> None:
        resp = await client.get(f"/api/users/{api_project.team.admin.id}", headers=api_project.auth("reporter"))
        assert resp.json()["username"] == "ada"

    async def test_detail_missing(self, client: AsyncClient, api_project: ApiProject) -> None:
        resp = await client.get("/api/users/test-u-ghost", headers=api_project.auth("reporter"))
        assert resp.status_code == 404


class TestAdministration:
    async def test_admin_sets_role(self, client: AsyncClient, api_project: ApiProject) -> None:
        resp = await client.patch(
            f"/api/users/{api_project.team.reporter.id}/role", json={"role": "developer"}, headers=api_project.auth("admin")
        )
        assert resp.status_code == 200
        assert resp.json()["role"] == "developer"

    async def test_role_change_applies_to_existing_token(self, client: AsyncClient, api_project: ApiProject) -> None:
        await client.patch(
            f"/api/users/{api_project.team.reporter.id}/role", json={"role": "developer"}, headers=api_project.auth("admin")
        )
        resp = await client.get("/api/auth/me", headers=api_project.auth("reporter"))
        assert resp.json()["role"] == "developer"

    async def test_developer_cannot_set_role(self, client: AsyncClient, api_project: ApiProject) -> None:
        resp = await client.patch(
            f"/api/users/{api_project.team.dev.id}/role", json={"role": "admin"}, headers=api_project.auth("dev")
        )
        assert resp.status_code == 403

    async def test_role_required(self, client: AsyncClient, api_project: ApiProject) -> None:
        resp = await client.patch(f"/api/users/{api_project.team.dev.id}/role", json={}, headers=api_project.auth("admin"))
        assert resp.status_code == 400
        assert resp.json()["error"]["details"] == {"field": "role"}

    async def test_deactivate(self, client: AsyncClient, api_project: ApiProject) -> None:
        resp = await client.post(f"/api/users/{api_project.team.reporter2.id}/deactivate", headers=api_project.auth("admin"))
        assert resp.json()["is_active"] is False
        resp = await client.get("/api/auth/me", headers=api_project.auth("reporter2"))
        assert resp.status_code == 401
        resp = await client.get("/api/users", params={"include_inactive": "true"}, headers=api_project.auth("admin"))
        assert "ray" in [u["username"] for u in resp.json()]

    async def test_non_admin_cannot_deactivate(self, client: AsyncClient, api_project: ApiProject) -> None:
        resp = await client.post(f"/api/users/{api_project.team.reporter2.id}/deactivate", headers=api_project.auth("dev"))
        assert resp.status_code == 403
