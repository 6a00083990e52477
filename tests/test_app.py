"""
End-to-end tests for the installed trust layer.
"""

import pytest
from fastapi import Depends, FastAPI, Request
from starlette.testclient import TestClient

from conftest import PARTNER_API_KEY, PRESHARED_KEY


@pytest.fixture
def app(settings, principal_store):
    from gateway_core import setup_trust_layer
    from gateway_core.auth import get_principal

    app = FastAPI()
    setup_trust_layer(app, settings, principal_store, configure_logging=False)
    counter = {"payments": 0}
    app.state.counter = counter

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post("/api/v1/payments")
    async def pay(principal=Depends(get_principal)):
        counter["payments"] += 1
        return {"success": True, "partner": principal.partner_code, "n": counter["payments"]}

    @app.post("/api/icecash/notify")
    async def notify(request: Request):
        return {"success": True, "reference": request.state.settlement_arguments["PartnerReference"]}

    @app.get("/api/v1/boom")
    async def boom():
        raise RuntimeError("database exploded")

    return app


class TestTrustLayer:
    """Tests for the wired middleware stack."""

    def test_request_id_on_rejection(self, app):
        """Rejections carry the request id and the uniform body."""
        client = TestClient(app)

        response = client.post("/api/v1/payments", json={}, headers={"X-Request-ID": "trace-7"})

        assert response.status_code == 401
        assert response.headers["X-Request-ID"] == "trace-7"
        assert response.json() == {
            "success": False,
            "error": "Authentication failed",
            "code": "AUTH_FAILED",
            "request_id": "trace-7",
        }

    def test_login_then_call(self, app):
        """A token from /auth/token opens protected routes."""
        client = TestClient(app)
        login = client.post("/auth/token", json={"partner_code": "FCB", "api_key": PARTNER_API_KEY})
        token = login.json()["data"]["access_token"]

        response = client.post("/api/v1/payments", json={}, headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json()["partner"] == "FCB"

    def test_idempotent_payment(self, app):
        """Retried payments with the same key run once."""
        client = TestClient(app)
        headers = {"X-API-Key": PARTNER_API_KEY, "Idempotency-Key": "pay-001"}

        first = client.post("/api/v1/payments", json={}, headers=headers)
        second = client.post("/api/v1/payments", json={}, headers=headers)

        assert app.state.counter["payments"] == 1
        assert first.json() == second.json()
        assert second.headers["Idempotent-Replayed"] == "true"

    def test_unauthenticated_requests_not_recorded(self, app):
        """Rejected requests never reach the idempotency store."""
        client = TestClient(app)

        client.post("/api/v1/payments", json={}, headers={"Idempotency-Key": "pay-002"})
        response = client.post(
            "/api/v1/payments", json={}, headers={"X-API-Key": PARTNER_API_KEY, "Idempotency-Key": "pay-002"}
        )

        assert response.status_code == 200
        assert "Idempotent-Replayed" not in response.headers

    def test_settlement_path_uses_mac(self, app):
        """Settlement callbacks skip partner auth but need a valid MAC."""
        from gateway_core.settlement import KeyedHashSigner, seal

        client = TestClient(app)
        arguments = {"PartnerReference": "ICE-1", "Result": "1"}

        good = client.post("/api/icecash/notify", json=seal(arguments, KeyedHashSigner(PRESHARED_KEY)).to_wire())
        bad = client.post("/api/icecash/notify", json=seal(arguments, KeyedHashSigner("wrong-key")).to_wire())

        assert good.status_code == 200
        assert good.json() == {"success": True, "reference": "ICE-1"}
        assert bad.status_code == 401

    def test_unexpected_errors_hidden(self, app):
        """Unhandled exceptions become a generic 500."""
        client = TestClient(app, raise_server_exceptions=False)

        response = client.get("/api/v1/boom", headers={"X-API-Key": PARTNER_API_KEY})

        assert response.status_code == 500
        assert response.json()["code"] == "INTERNAL_ERROR"
        assert "database" not in response.text

    def test_public_health(self, app):
        """Health checks need no credentials."""
        assert TestClient(app).get("/health").status_code == 200
