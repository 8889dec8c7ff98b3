"""
Shared Test Fixtures

SQLite databases built from db/schema.sql, record seeders, and fake HTTP
collaborators (identity provider and provisioning function) served through
httpx.MockTransport.
"""

import json
from typing import Any, AsyncGenerator, Dict, List, Optional, Tuple
from uuid import uuid4

import httpx
import pytest

from db.migrate import apply_schema
from src.core.accounts.provisioning import ProvisioningClient, set_provisioning_client
from src.core.auth.identity import IdentityClient, set_identity_client
from src.core.config import ServiceConfig
from src.core.database.adapter import DatabaseAdapter, DatabaseConfig, set_database

IDENTITY_URL = "http://identity.test"
FUNCTIONS_URL = "http://functions.test"


def service_config() -> ServiceConfig:
    return ServiceConfig(
        identity_url=IDENTITY_URL,
        functions_url=FUNCTIONS_URL,
        api_key="anon-key",
        service_role_key="service-role-key",
        timeout=5,
    )


class Seeder:
    """Inserts fixture rows with strictly increasing created_at stamps."""

    def __init__(self, db: DatabaseAdapter):
        self.db = db
        self._tick = 0

    def stamp(self) -> str:
        self._tick += 1
        return f"2026-01-01T00:{self._tick // 60:02d}:{self._tick % 60:02d}+00:00"

    async def organization(
        self,
        name: str = "Acme Resellers",
        tier: str = "gold",
        type: str = "reseller",
        discount_percentage: int = 15,
        mdf_allocation: float = 25000,
    ) -> Dict[str, Any]:
        row = {
            "id": str(uuid4()),
            "name": name,
            "type": type,
            "tier": tier,
            "discount_percentage": discount_percentage,
            "mdf_allocation": mdf_allocation,
            "created_at": self.stamp(),
        }
        await self.db.execute(
            "INSERT INTO organizations (id, name, type, tier, discount_percentage, mdf_allocation, created_at) "
            "VALUES ($1, $2, $3, $4, $5, $6, $7)",
            *row.values()
        )
        return row

    async def partner(
        self,
        organization_id: Optional[str] = None,
        auth_user_id: Optional[str] = None,
        first_name: str = "Pat",
        last_name: str = "Partner",
        email: Optional[str] = None,
        status: str = "active",
    ) -> Dict[str, Any]:
        row = {
            "id": str(uuid4()),
            "organization_id": organization_id,
            "auth_user_id": auth_user_id,
            "first_name": first_name,
            "last_name": last_name,
            "email": email or f"{uuid4().hex[:8]}@partner.test",
            "status": status,
            "created_at": self.stamp(),
        }
        await self.db.execute(
            "INSERT INTO partners (id, organization_id, auth_user_id, first_name, last_name, email, status, created_at) "
            "VALUES ($1, $2, $3, $4, $5, $6, $7, $8)",
            *row.values()
        )
        return row

    async def admin(
        self,
        auth_user_id: Optional[str] = None,
        first_name: str = "Ada",
        last_name: str = "Admin",
        email: Optional[str] = None,
    ) -> Dict[str, Any]:
        row = {
            "id": str(uuid4()),
            "auth_user_id": auth_user_id,
            "first_name": first_name,
            "last_name": last_name,
            "email": email or f"{uuid4().hex[:8]}@admin.test",
            "created_at": self.stamp(),
        }
        await self.db.execute(
            "INSERT INTO admins (id, auth_user_id, first_name, last_name, email, created_at) "
            "VALUES ($1, $2, $3, $4, $5, $6)",
            *row.values()
        )
        return row

    async def deal(
        self,
        partner_id: str,
        customer_name: str = "Globex",
        stage: str = "new_deal",
        admin_stage: Optional[str] = "urs",
        deal_value: Optional[float] = 1000.0,
    ) -> Dict[str, Any]:
        stamp = self.stamp()
        row = {
            "id": str(uuid4()),
            "partner_id": partner_id,
            "customer_name": customer_name,
            "customer_email": "buyer@customer.test",
            "customer_company": f"{customer_name} Inc",
            "deal_value": deal_value,
            "stage": stage,
            "admin_stage": admin_stage,
            "created_at": stamp,
            "updated_at": stamp,
        }
        await self.db.execute(
            "INSERT INTO deals (id, partner_id, customer_name, customer_email, customer_company, "
            "deal_value, stage, admin_stage, created_at, updated_at) "
            "VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)",
            *row.values()
        )
        return row


class FakeIdentityProvider:
    """In-memory identity provider answering the IdentityClient's REST calls."""

    def __init__(self):
        self.users: Dict[str, Dict[str, Any]] = {}  # access token -> user payload
        self.codes: Dict[str, str] = {}  # auth code -> access token
        self.refresh_tokens: Dict[str, str] = {}  # refresh token -> access token
        self.passwords: Dict[str, str] = {}
        self.deleted_users: List[str] = []
        self.rpc_calls: List[Tuple[str, Dict[str, Any]]] = []
        self.calls: List[Tuple[str, str]] = []
        self.fail_rpc = False
        self.fail_delete = False

    def add_user(
        self, token: str, user_id: Optional[str] = None,
        email: str = "user@example.test", account_type: Optional[str] = "partner",
    ) -> Dict[str, Any]:
        user = {
            "id": user_id or str(uuid4()),
            "email": email,
            "user_metadata": {"account_type": account_type} if account_type else {},
        }
        self.users[token] = user
        self.refresh_tokens[f"refresh-{token}"] = token
        return user

    def _session(self, token: str) -> httpx.Response:
        return httpx.Response(200, json={
            "access_token": token,
            "refresh_token": f"refresh-{token}",
            "user": self.users[token],
        })

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append((request.method, path))
        authorization = request.headers.get("authorization", "")
        token = authorization[7:] if authorization.startswith("Bearer ") else None
        body = json.loads(request.content) if request.content else {}

        if path == "/auth/v1/user":
            user = self.users.get(token)
            if user is None:
                return httpx.Response(401, json={"msg": "invalid JWT"})
            if request.method == "PUT":
                self.passwords[user["id"]] = body["password"]
            return httpx.Response(200, json=user)

        if path == "/auth/v1/token":
            grant = request.url.params.get("grant_type")
            if grant == "refresh_token":
                access = self.refresh_tokens.get(body.get("refresh_token"))
            else:
                access = self.codes.get(body.get("auth_code"))
            if access is None:
                return httpx.Response(400, json={"error_description": "Invalid grant"})
            return self._session(access)

        if path == "/auth/v1/logout":
            return httpx.Response(204)

        if path.startswith("/auth/v1/admin/users/"):
            if self.fail_delete:
                return httpx.Response(500, json={"msg": "delete failed"})
            self.deleted_users.append(path.rsplit("/", 1)[-1])
            return httpx.Response(200, json={})

        if path.startswith("/rest/v1/rpc/"):
            self.rpc_calls.append((path.rsplit("/", 1)[-1], body))
            if self.fail_rpc:
                return httpx.Response(500, json={"message": "procedure failed"})
            return httpx.Response(204)

        return httpx.Response(404, json={"msg": "not found"})

    def client(self) -> IdentityClient:
        return IdentityClient(service_config(), transport=httpx.MockTransport(self.handler))


class FakeProvisioningFunction:
    """Records provisioning calls; answers with a configurable status."""

    def __init__(self):
        self.requests: List[Dict[str, Any]] = []
        self.headers: List[Dict[str, str]] = []
        self.status_code = 200
        self.error: Optional[str] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        self.headers.append(dict(request.headers))
        if self.status_code >= 400:
            return httpx.Response(self.status_code, json={"error": self.error or "failed"})
        return httpx.Response(self.status_code, json={"user_id": str(uuid4()), "invited": True})

    def client(self) -> ProvisioningClient:
        return ProvisioningClient(service_config(), transport=httpx.MockTransport(self.handler))


@pytest.fixture
async def db(tmp_path) -> AsyncGenerator[DatabaseAdapter, None]:
    """Fresh SQLite database with the portal schema, installed as the global adapter."""
    adapter = DatabaseAdapter(DatabaseConfig(backend="sqlite", sqlite_path=str(tmp_path / "portal.db")))
    await adapter.connect()
    await apply_schema(adapter)
    set_database(adapter)
    yield adapter
    set_database(None)
    await adapter.disconnect()


@pytest.fixture
def seed(db) -> Seeder:
    return Seeder(db)


@pytest.fixture
def identity() -> FakeIdentityProvider:
    fake = FakeIdentityProvider()
    set_identity_client(fake.client())
    yield fake
    set_identity_client(None)


@pytest.fixture
def provisioning() -> FakeProvisioningFunction:
    fake = FakeProvisioningFunction()
    set_provisioning_client(fake.client())
    yield fake
    set_provisioning_client(None)
