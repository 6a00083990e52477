"""
Tests for partner request authentication.
"""

import pytest
from fastapi import Depends, FastAPI, Request
from starlette.testclient import TestClient

from conftest import INACTIVE_API_KEY, PARTNER_API_KEY

UNIFORM_401 = {"success": False, "error": "Authentication failed", "code": "AUTH_FAILED"}


@pytest.fixture
def authenticator(codec, principal_store):
    from gateway_core.auth import RequestAuthenticator

    return RequestAuthenticator(codec, principal_store)


class TestRequestAuthenticator:
    """Tests for the authentication state machine."""

    @pytest.mark.asyncio
    async def test_bearer_token(self, authenticator, codec, principal):
        """A valid bearer token with the partner role authenticates."""
        from gateway_core.credentials import AuthDecision, AuthMethod

        token = codec.issue_access(principal).token
        result = await authenticator.authenticate({"Authorization": f"Bearer {token}"})

        assert result.decision == AuthDecision.ALLOW
        assert result.value.partner_code == "FCB"
        assert result.value.auth_method == AuthMethod.TOKEN

    @pytest.mark.asyncio
    async def test_header_names_case_insensitive(self, authenticator, codec, principal):
        """Plain dict headers are matched case-insensitively."""
        token = codec.issue_access(principal).token
        result = await authenticator.authenticate({"authorization": f"bearer {token}"})

        assert result.is_ok

    @pytest.mark.asyncio
    async def test_expired_token(self, authenticator, codec, principal, clock):
        """exp = now - 1s is an expired-credential rejection."""
        from gateway_core.errors import ExpiredCredentialError

        token = codec.issue_access(principal, ttl=1).token
        clock.advance(2)
        _, error = await authenticator.authenticate({"Authorization": f"Bearer {token}"})

        assert isinstance(error, ExpiredCredentialError)
        assert error.status_code == 401

    @pytest.mark.asyncio
    async def test_missing_credentials(self, authenticator):
        """No Authorization and no API key is a missing-credentials rejection."""
        from gateway_core.errors import MissingCredentialsError

        _, error = await authenticator.authenticate({})

        assert isinstance(error, MissingCredentialsError)
        assert error.code == "AUTH_MISSING_CREDENTIALS"

    @pytest.mark.asyncio
    async def test_non_bearer_scheme(self, authenticator):
        """Other Authorization schemes alone count as missing credentials."""
        from gateway_core.errors import MissingCredentialsError

        _, error = await authenticator.authenticate({"Authorization": "Basic dXNlcjpwYXNz"})

        assert isinstance(error, MissingCredentialsError)

    @pytest.mark.asyncio
    async def test_non_bearer_scheme_with_shared_key(self, authenticator):
        """A Basic Authorization header does not block a valid API key."""
        from gateway_core.credentials import AuthMethod

        result = await authenticator.authenticate({
            "Authorization": "Basic dXNlcjpwYXNz",
            "X-API-Key": PARTNER_API_KEY,
        })

        assert result.is_ok
        assert result.value.partner_code == "FCB"
        assert result.value.auth_method == AuthMethod.SHARED_KEY

    @pytest.mark.asyncio
    async def test_empty_bearer_token(self, authenticator):
        """A Bearer scheme without a token is malformed and never falls back."""
        from gateway_core.errors import MalformedCredentialError

        _, error = await authenticator.authenticate({"Authorization": "Bearer", "X-API-Key": PARTNER_API_KEY})

        assert isinstance(error, MalformedCredentialError)

    @pytest.mark.asyncio
    async def test_bearer_failure_does_not_fall_back(self, authenticator):
        """A bad bearer token is rejected even when a valid API key is present."""
        from gateway_core.errors import MalformedCredentialError

        _, error = await authenticator.authenticate({
            "Authorization": "Bearer garbage",
            "X-API-Key": PARTNER_API_KEY,
        })

        assert isinstance(error, MalformedCredentialError)

    @pytest.mark.asyncio
    async def test_role_mismatch(self, authenticator, codec):
        """Tokens without partner or admin roles are rejected."""
        from gateway_core.credentials import AuthMethod, Principal
        from gateway_core.errors import InsufficientRoleError

        viewer = Principal("7", "VIEW", "Viewer", "api", frozenset({"viewer"}), AuthMethod.TOKEN)
        token = codec.issue_access(viewer).token
        _, error = await authenticator.authenticate({"Authorization": f"Bearer {token}"})

        assert isinstance(error, InsufficientRoleError)
        assert error.status_code == 401

    @pytest.mark.asyncio
    async def test_admin_role_accepted(self, authenticator, codec):
        """The admin role is accepted as well."""
        from gateway_core.credentials import AuthMethod, Principal

        admin = Principal("1", "OPS", "Operations", "internal", frozenset({"admin"}), AuthMethod.TOKEN)
        result = await authenticator.authenticate({"Authorization": f"Bearer {codec.issue_access(admin).token}"})

        assert result.is_ok

    @pytest.mark.asyncio
    async def test_shared_key(self, authenticator):
        """A registered active key authenticates as that partner."""
        from gateway_core.credentials import AuthMethod

        result = await authenticator.authenticate({"X-API-Key": PARTNER_API_KEY})

        assert result.is_ok
        assert result.value.partner_code == "FCB"
        assert result.value.partner_id == "42"
        assert result.value.auth_method == AuthMethod.SHARED_KEY

    @pytest.mark.asyncio
    async def test_unknown_shared_key(self, authenticator):
        """Unknown keys are rejected as invalid."""
        from gateway_core.errors import InvalidSharedKeyError

        _, error = await authenticator.authenticate({"X-API-Key": "pk_test_nope"})

        assert isinstance(error, InvalidSharedKeyError)

    @pytest.mark.asyncio
    async def test_inactive_shared_key(self, authenticator):
        """Keys of inactive partners are rejected as invalid."""
        from gateway_core.errors import InvalidSharedKeyError

        _, error = await authenticator.authenticate({"X-API-Key": INACTIVE_API_KEY})

        assert isinstance(error, InvalidSharedKeyError)

    @pytest.mark.asyncio
    async def test_store_outage_fails_closed(self, codec):
        """A failing store rejects instead of raising."""
        from gateway_core.auth import PrincipalStore, RequestAuthenticator
        from gateway_core.errors import AuthError

        class BrokenStore(PrincipalStore):
            async def find_by_api_key(self, api_key):
                raise ConnectionError("db down")

            async def get_signing_secret(self, partner_code):
                return None

        authenticator = RequestAuthenticator(codec, BrokenStore())
        _, error = await authenticator.authenticate({"X-API-Key": PARTNER_API_KEY})

        assert isinstance(error, AuthError)


class TestPrincipalStore:
    """Tests for the in-memory principal store."""

    @pytest.mark.asyncio
    async def test_keys_stored_hashed(self, principal_store):
        """Only SHA-256 hashes are kept."""
        from gateway_core.auth import hash_api_key

        record = await principal_store.find_by_api_key(PARTNER_API_KEY)

        assert record.api_key_hash == hash_api_key(PARTNER_API_KEY)
        assert PARTNER_API_KEY not in repr(record)

    @pytest.mark.asyncio
    async def test_signing_secret(self, principal_store):
        """Should return the partner's signing secret by code."""
        from conftest import PRESHARED_KEY

        assert await principal_store.get_signing_secret("FCB") == PRESHARED_KEY
        assert await principal_store.get_signing_secret("NOPE") is None

    def test_generate_api_key(self):
        """Generated keys hash to the returned digest."""
        from gateway_core.auth import generate_api_key, hash_api_key

        key, key_hash = generate_api_key()

        assert key.startswith("pk_live_")
        assert hash_api_key(key) == key_hash


def _protected_app(authenticator):
    from gateway_core.auth import PartnerAuthMiddleware, get_principal, require_roles
    from gateway_core.errors import install_error_handlers

    app = FastAPI()
    app.add_middleware(PartnerAuthMiddleware, authenticator=authenticator)
    install_error_handlers(app)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/api/v1/me")
    async def me(principal=Depends(get_principal)):
        return {"partner": principal.partner_code, "method": principal.auth_method.value}

    @app.post("/api/v1/admin/partners")
    async def admin_only(principal=Depends(require_roles("admin"))):
        return {"ok": True}

    @app.get("/api/v1/state")
    async def state(request: Request):
        return {"partner": request.state.principal.partner_code}

    return app


class TestPartnerAuthMiddleware:
    """Tests for the HTTP surface of authentication."""

    def test_public_path(self, authenticator):
        """Health checks bypass authentication."""
        client = TestClient(_protected_app(authenticator))

        assert client.get("/health").status_code == 200

    def test_bearer_request(self, authenticator, codec, principal):
        """Valid bearer requests reach the handler with the principal."""
        client = TestClient(_protected_app(authenticator))
        token = codec.issue_access(principal).token

        response = client.get("/api/v1/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json() == {"partner": "FCB", "method": "token"}

    def test_shared_key_request(self, authenticator):
        """Valid shared-key requests set request.state.principal."""
        client = TestClient(_protected_app(authenticator))

        response = client.get("/api/v1/state", headers={"X-API-Key": PARTNER_API_KEY})

        assert response.status_code == 200
        assert response.json() == {"partner": "FCB"}

    def test_rejections_are_uniform(self, authenticator, codec, principal, clock):
        """Every failure branch returns the same 401 body."""
        client = TestClient(_protected_app(authenticator))
        expired = codec.issue_access(principal, ttl=1).token
        clock.advance(5)

        responses = [
            client.get("/api/v1/me"),
            client.get("/api/v1/me", headers={"Authorization": f"Bearer {expired}"}),
            client.get("/api/v1/me", headers={"Authorization": "Bearer nonsense"}),
            client.get("/api/v1/me", headers={"X-API-Key": "pk_test_unknown"}),
            client.get("/api/v1/me", headers={"X-API-Key": INACTIVE_API_KEY}),
        ]

        for response in responses:
            assert response.status_code == 401
            assert response.json() == UNIFORM_401

    def test_require_roles(self, authenticator):
        """Missing roles produce 403 INSUFFICIENT_SCOPE."""
        client = TestClient(_protected_app(authenticator))

        response = client.post("/api/v1/admin/partners", headers={"X-API-Key": PARTNER_API_KEY})

        assert response.status_code == 403
        assert response.json()["code"] == "INSUFFICIENT_SCOPE"


def _token_app(codec, principal_store):
    from gateway_core.auth import create_auth_router

    app = FastAPI()
    app.include_router(create_auth_router(codec, principal_store))
    return app


class TestTokenEndpoints:
    """Tests for login and refresh."""

    def test_login(self, codec, principal_store):
        """Partner code plus API key returns a token pair."""
        client = TestClient(_token_app(codec, principal_store))

        response = client.post("/auth/token", json={"partner_code": "FCB", "api_key": PARTNER_API_KEY})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["token_type"] == "Bearer"
        assert data["partner"]["code"] == "FCB"
        assert codec.verify(data["access_token"]).is_ok
        assert codec.verify_refresh(data["refresh_token"]).is_ok

    def test_login_wrong_partner_code(self, codec, principal_store):
        """A key belonging to another partner is rejected uniformly."""
        client = TestClient(_token_app(codec, principal_store))

        response = client.post("/auth/token", json={"partner_code": "OTHER", "api_key": PARTNER_API_KEY})

        assert response.status_code == 401
        assert response.json() == UNIFORM_401

    def test_login_inactive(self, codec, principal_store):
        """Inactive partners cannot log in."""
        client = TestClient(_token_app(codec, principal_store))

        response = client.post("/auth/token", json={"partner_code": "OLD", "api_key": INACTIVE_API_KEY})

        assert response.status_code == 401

    def test_refresh(self, codec, principal_store, clock):
        """A refresh token mints a new access token."""
        client = TestClient(_token_app(codec, principal_store))
        login = client.post("/auth/token", json={"partner_code": "FCB", "api_key": PARTNER_API_KEY}).json()["data"]
        clock.advance(30)

        response = client.post("/auth/refresh", json={"refresh_token": login["refresh_token"]})

        assert response.status_code == 200
        data = response.json()["data"]
        assert "refresh_token" not in data
        assert data["access_token"] != login["access_token"]
        assert codec.verify(data["access_token"]).is_ok

    def test_refresh_with_access_token(self, codec, principal_store):
        """Access tokens cannot be used to refresh."""
        client = TestClient(_token_app(codec, principal_store))
        login = client.post("/auth/token", json={"partner_code": "FCB", "api_key": PARTNER_API_KEY}).json()["data"]

        response = client.post("/auth/refresh", json={"refresh_token": login["access_token"]})

        assert response.status_code == 401
        assert response.json() == UNIFORM_401
