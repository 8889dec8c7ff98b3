"""
Unit tests for password rules, the invite callback and the route guard.

The identity provider is the in-memory fake from conftest, reached through
httpx.MockTransport.
"""

import pytest

from src.core.auth.callback import (
    CallbackParams,
    DEFAULT_NEXT,
    handle_callback,
    safe_next,
)
from src.core.auth.identity import IdentityUser
from src.core.auth.passwords import change_password, password_problem, set_password, validate_password
from src.core.auth.session import (
    SessionContext,
    extract_access_token,
    guard_route,
    SESSION_COOKIE_NAME,
)
from src.core.errors import IdentityError


class TestPasswordRules:
    """Rules are checked in order; the first failure is reported."""

    @pytest.mark.parametrize("password,problem", [
        ("Ab1", "Password must be at least 8 characters long"),
        ("lowercase1", "Password must contain at least one uppercase letter"),
        ("UPPERCASE1", "Password must contain at least one lowercase letter"),
        ("NoDigitsHere", "Password must contain at least one number"),
    ])
    def test_rule_failures(self, password, problem):
        assert password_problem(password) == problem

    def test_length_reported_before_character_classes(self):
        assert "8 characters" in password_problem("abc")

    def test_valid_password(self):
        assert password_problem("Sunrise2026") is None

    def test_mismatch(self):
        with pytest.raises(ValueError, match="Passwords do not match"):
            validate_password("Sunrise2026", "Sunrise2027")


class TestSetPassword:

    async def test_partner_is_activated(self, identity):
        user = identity.add_user("tok-p", account_type="partner")
        client = identity.client()

        result = await set_password(client, "tok-p", "Sunrise2026", "Sunrise2026")

        assert result.id == user["id"]
        assert identity.passwords[user["id"]] == "Sunrise2026"
        assert identity.rpc_calls == [("activate_partner_account", {"user_id": user["id"]})]

    async def test_activation_failure_is_not_raised(self, identity):
        user = identity.add_user("tok-p", account_type="partner")
        identity.fail_rpc = True

        result = await set_password(identity.client(), "tok-p", "Sunrise2026")

        assert result.id == user["id"]
        assert identity.passwords[user["id"]] == "Sunrise2026"

    async def test_admin_is_not_activated(self, identity):
        identity.add_user("tok-a", account_type="admin")
        await set_password(identity.client(), "tok-a", "Sunrise2026")
        assert identity.rpc_calls == []

    async def test_weak_password_never_reaches_provider(self, identity):
        identity.add_user("tok-p")
        with pytest.raises(ValueError):
            await set_password(identity.client(), "tok-p", "weak")
        assert identity.calls == []

    async def test_invalid_session(self, identity):
        with pytest.raises(IdentityError):
            await set_password(identity.client(), "unknown", "Sunrise2026")


class TestChangePassword:
    """Settings page change: length and confirmation only, no activation."""

    async def test_change(self, identity):
        user = identity.add_user("tok-p", account_type="partner")

        result = await change_password(identity.client(), "tok-p", "lowercase only", "lowercase only")

        assert result.id == user["id"]
        assert identity.passwords[user["id"]] == "lowercase only"
        assert identity.rpc_calls == []

    @pytest.mark.parametrize("new,confirm,message", [
        ("short", "short", "at least 8 characters"),
        ("Sunrise2026", "Sunrise2027", "Passwords do not match"),
    ])
    async def test_rejected_before_provider(self, identity, new, confirm, message):
        identity.add_user("tok-p")
        with pytest.raises(ValueError, match=message):
            await change_password(identity.client(), "tok-p", new, confirm)
        assert identity.calls == []

    async def test_expired_session(self, identity):
        with pytest.raises(IdentityError):
            await change_password(identity.client(), "unknown", "Sunrise2026", "Sunrise2026")


class TestCallback:

    async def test_fragment_tokens_establish_session(self, identity):
        user = identity.add_user("tok-1")
        params = CallbackParams.from_strings(fragment="#access_token=tok-1&refresh_token=refresh-tok-1")

        outcome = await handle_callback(params, identity.client())

        assert outcome.ok
        assert outcome.redirect_to == DEFAULT_NEXT
        assert outcome.session.user.id == user["id"]

    async def test_expired_access_token_is_refreshed(self, identity):
        identity.add_user("tok-new")
        identity.refresh_tokens["stale-refresh"] = "tok-new"
        params = CallbackParams.from_strings(fragment="access_token=expired&refresh_token=stale-refresh")

        outcome = await handle_callback(params, identity.client())

        assert outcome.ok
        assert outcome.session.access_token == "tok-new"

    async def test_code_exchange(self, identity):
        identity.add_user("tok-2")
        identity.codes["abc123"] = "tok-2"
        params = CallbackParams.from_url("http://portal.test/auth/callback?code=abc123&next=/dashboard")

        outcome = await handle_callback(params, identity.client())

        assert outcome.ok
        assert outcome.redirect_to == "/dashboard"

    async def test_bad_code_goes_to_login(self, identity):
        params = CallbackParams.from_strings(query="code=wrong")
        outcome = await handle_callback(params, identity.client())
        assert not outcome.ok
        assert outcome.redirect_to.startswith("/auth/login?error=")

    async def test_provider_error_in_fragment(self, identity):
        params = CallbackParams.from_strings(
            fragment="error=access_denied&error_description=Email+link+is+invalid+or+has+expired"
        )
        outcome = await handle_callback(params, identity.client())
        assert outcome.error == "Email link is invalid or has expired"
        assert identity.calls == []

    async def test_no_authentication_data(self, identity):
        outcome = await handle_callback(CallbackParams(), identity.client())
        assert outcome.error == "No authentication data found."
        assert outcome.redirect_to == "/auth/login?error=No%20authentication%20data%20found."

    @pytest.mark.parametrize("target,expected", [
        ("/dashboard/deals", "/dashboard/deals"),
        ("//evil.example", DEFAULT_NEXT),
        ("https://evil.example", DEFAULT_NEXT),
        (None, DEFAULT_NEXT),
    ])
    def test_safe_next(self, target, expected):
        assert safe_next(target) == expected


def session(admin: bool = False, partner: bool = False) -> SessionContext:
    return SessionContext(
        user=IdentityUser(id="u1", email="u1@example.test"),
        admin={"id": "a1", "first_name": "Ada", "last_name": "Admin"} if admin else None,
        partner={"id": "p1", "first_name": "Pat", "last_name": "Partner", "tier": "gold"} if partner else None,
    )


class TestRouteGuard:

    def test_unauthenticated_goes_to_login(self):
        assert guard_route("/dashboard/deals", SessionContext.anonymous()) == "/auth/login"
        assert guard_route("/admin", SessionContext.anonymous()) == "/auth/login"

    def test_admin_on_partner_home_goes_to_admin(self):
        assert guard_route("/dashboard", session(admin=True)) == "/admin"

    def test_admin_may_open_partner_subpages(self):
        assert guard_route("/dashboard/deals", session(admin=True)) is None

    def test_partner_kept_out_of_admin_area(self):
        assert guard_route("/admin/partners", session(partner=True)) == "/dashboard"

    def test_partner_home(self):
        assert guard_route("/dashboard", session(partner=True)) is None

    def test_unguarded_paths(self):
        assert guard_route("/auth/login", SessionContext.anonymous()) is None
        assert guard_route("/administrators", SessionContext.anonymous()) is None


class TestSessionContext:

    def test_partner_tier_defaults_to_bronze(self):
        assert SessionContext.anonymous().partner_tier == "bronze"
        assert session(partner=True).partner_tier == "gold"

    def test_to_dict(self):
        data = session(partner=True).to_dict()
        assert data["is_partner"]
        assert not data["is_admin"]
        assert data["name"] == "Pat Partner"

    def test_bearer_header_wins_over_cookie(self):
        token = extract_access_token({"authorization": "Bearer abc"}, {SESSION_COOKIE_NAME: "cookie"})
        assert token == "abc"
        assert extract_access_token({}, {SESSION_COOKIE_NAME: "cookie"}) == "cookie"
        assert extract_access_token({}, {}) is None
