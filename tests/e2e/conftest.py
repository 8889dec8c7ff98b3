"""
E2E Test Fixtures

The portal app is driven in-process through httpx.ASGITransport with
AUTH_REQUIRED=true. ASGITransport does not run the lifespan, so the app
uses the SQLite database installed by the ``db`` fixture.
"""

from dataclasses import dataclass
from typing import Any, AsyncGenerator, Dict

import pytest
from httpx import ASGITransport, AsyncClient

from src.api.portal.main import app as portal_app


@dataclass
class Account:
    """A seeded user with the bearer token the fake identity provider accepts."""
    token: str
    user: Dict[str, Any]
    record: Dict[str, Any]

    @property
    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture
def app(monkeypatch, db, identity):
    monkeypatch.setenv("AUTH_REQUIRED", "true")
    return portal_app


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
async def partner_account(seed, identity) -> Account:
    user = identity.add_user("partner-token", email="pat@acme.test", account_type="partner")
    org = await seed.organization(name="Acme Resellers", tier="gold", mdf_allocation=25000)
    partner = await seed.partner(
        organization_id=org["id"], auth_user_id=user["id"],
        first_name="Pat", last_name="Partner", email="pat@acme.test",
    )
    return Account(token="partner-token", user=user, record=partner)


@pytest.fixture
async def admin_account(seed, identity) -> Account:
    user = identity.add_user("admin-token", email="ada@vendor.test", account_type="admin")
    admin = await seed.admin(auth_user_id=user["id"], first_name="Ada", last_name="Admin",
                             email="ada@vendor.test")
    return Account(token="admin-token", user=user, record=admin)


@pytest.fixture
def trace_id() -> str:
    """Generate a unique trace ID for tests."""
    import uuid
    return f"test-{uuid.uuid4().hex[:8]}"
