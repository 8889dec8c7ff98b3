"""
E2E tests for the settings page: profile edits and password changes for
both partners and admins.
"""

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.e2e


class TestProfile:

    async def test_partner_reads_own_profile(self, client: AsyncClient, partner_account):
        response = await client.get("/api/profile", headers=partner_account.headers)

        data = response.json()["data"]
        assert data["id"] == partner_account.record["id"]
        assert data["account_type"] == "partner"

    async def test_partner_edits_own_row(self, client: AsyncClient, partner_account, seed, db):
        other = await seed.partner(first_name="Olive")

        response = await client.patch("/api/profile", json={
            "first_name": " Patricia ", "last_name": "Partner", "phone": "+1 555 0100",
        }, headers=partner_account.headers)

        assert response.status_code == 200
        assert response.json()["data"]["first_name"] == "Patricia"
        row = await db.fetchrow("SELECT first_name, phone FROM partners WHERE id = $1", partner_account.record["id"])
        assert row == {"first_name": "Patricia", "phone": "+1 555 0100"}
        assert await db.fetchval("SELECT first_name FROM partners WHERE id = $1", other["id"]) == "Olive"

    async def test_admin_edits_admins_row(self, client: AsyncClient, admin_account, db):
        response = await client.patch("/api/profile", json={
            "first_name": "Ada", "last_name": "Lovelace", "phone": "",
        }, headers=admin_account.headers)

        assert response.json()["data"]["account_type"] == "admin"
        row = await db.fetchrow("SELECT last_name, phone FROM admins WHERE id = $1", admin_account.record["id"])
        assert row == {"last_name": "Lovelace", "phone": None}

    async def test_blank_name_is_rejected(self, client: AsyncClient, partner_account):
        response = await client.patch("/api/profile", json={
            "first_name": "  ", "last_name": "Partner",
        }, headers=partner_account.headers)

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "First name is required"

    async def test_user_without_profile_row(self, client: AsyncClient, identity):
        identity.add_user("orphan-token", account_type=None)

        response = await client.patch("/api/profile", json={
            "first_name": "No", "last_name": "Row",
        }, headers={"Authorization": "Bearer orphan-token"})

        assert response.status_code == 403

    async def test_requires_sign_in(self, client: AsyncClient):
        response = await client.patch("/api/profile", json={"first_name": "A", "last_name": "B"})
        assert response.status_code == 401


class TestPasswordChange:

    async def test_change(self, client: AsyncClient, partner_account, identity):
        response = await client.post("/api/profile/password", json={
            "new_password": "correct horse", "confirm_password": "correct horse",
        }, headers=partner_account.headers)

        assert response.status_code == 200
        assert identity.passwords[partner_account.user["id"]] == "correct horse"

    async def test_admin_change(self, client: AsyncClient, admin_account, identity):
        await client.post("/api/profile/password", json={
            "new_password": "Sunrise2026", "confirm_password": "Sunrise2026",
        }, headers=admin_account.headers)

        assert identity.passwords[admin_account.user["id"]] == "Sunrise2026"

    @pytest.mark.parametrize("new,confirm", [
        ("short", "short"),
        ("Sunrise2026", "Sunrise2027"),
    ])
    async def test_rejected(self, client: AsyncClient, partner_account, identity, new, confirm):
        response = await client.post("/api/profile/password", json={
            "new_password": new, "confirm_password": confirm,
        }, headers=partner_account.headers)

        assert response.status_code == 400
        assert partner_account.user["id"] not in identity.passwords
