"""Identity HTTP surface: envelope, status mapping and session routes."""

from __future__ import annotations

import httpx
import pytest


@pytest.fixture
async def client(stacks):
    identity, _ = stacks
    transport = httpx.ASGITransport(app=identity.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def _register(client, email="a@x.com", password="secret1", name="A"):
    return await client.post(
        "/auth/register", json={"email": email, "password": password, "name": name},
    )


class TestRegister:
    async def test_register_created(self, client):
        resp = await _register(client)

        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["data"]["user"]["email"] == "a@x.com"
        assert body["data"]["user"]["verified"] is False
        assert body["data"]["accessToken"]
        assert "passwordHash" not in body["data"]["user"]
        assert "password_hash" not in resp.text

    async def test_duplicate_is_conflict(self, client):
        await _register(client)
        resp = await _register(client, email="A@X.com")

        assert resp.status_code == 409
        assert resp.json() == {
            "success": False,
            "message": "User with this email already exists",
        }

    async def test_invalid_email(self, client):
        resp = await _register(client, email="not-an-email")
        assert resp.status_code == 400
        assert resp.json()["message"] == "A valid email is required"

    async def test_missing_field(self, client):
        resp = await client.post("/auth/register", json={"email": "a@x.com"})
        assert resp.status_code == 400
        assert resp.json()["success"] is False


class TestLoginAndVerify:
    async def test_login_before_verify(self, client):
        await _register(client)
        resp = await client.post(
            "/auth/login", json={"email": "a@x.com", "password": "secret1"},
        )
        assert resp.status_code == 401
        assert resp.json()["message"] == "Email not verified"

    async def test_verify_then_login(self, client):
        user_id = (await _register(client)).json()["data"]["user"]["id"]

        verified = await client.post(f"/auth/verify/{user_id}")
        assert verified.status_code == 200
        assert verified.json()["data"]["user"]["verified"] is True

        resp = await client.post(
            "/auth/login", json={"email": "a@x.com", "password": "secret1"},
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["accessToken"]

    async def test_wrong_password(self, client):
        await _register(client)
        resp = await client.post(
            "/auth/login", json={"email": "a@x.com", "password": "wrong-one"},
        )
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid credentials"

    async def test_verify_unknown_user(self, client):
        resp = await client.post("/auth/verify/nope")
        assert resp.status_code == 401
        assert resp.json()["message"] == "User not found"


class TestSessions:
    async def test_me_and_logout(self, client):
        token = (await _register(client)).json()["data"]["accessToken"]
        auth = {"Authorization": f"Bearer {token}"}

        me = await client.get("/auth/me", headers=auth)
        assert me.status_code == 200
        assert me.json()["data"]["user"]["email"] == "a@x.com"

        out = await client.post("/auth/logout", headers=auth)
        assert out.json()["data"] == {"loggedOut": True}

        assert (await client.get("/auth/me", headers=auth)).status_code == 401

    async def test_missing_bearer(self, client):
        resp = await client.get("/auth/me")
        assert resp.status_code == 401
        assert resp.json()["message"] == "Missing bearer token"

    async def test_change_password(self, client):
        token = (await _register(client)).json()["data"]["accessToken"]
        auth = {"Authorization": f"Bearer {token}"}

        resp = await client.put(
            "/auth/password",
            json={"currentPassword": "secret1", "newPassword": "secret2"},
            headers=auth,
        )
        assert resp.status_code == 200
        # Every session ends with the old credential.
        assert (await client.get("/auth/me", headers=auth)).status_code == 401

    async def test_change_password_wrong_current(self, client):
        token = (await _register(client)).json()["data"]["accessToken"]
        resp = await client.put(
            "/auth/password",
            json={"currentPassword": "nope-nope", "newPassword": "secret2"},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 401


class TestCommonRoutes:
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.json() == {
            "success": True,
            "data": {"service": "identity", "status": "ok"},
        }

    async def test_trace_header_echoed(self, client):
        resp = await client.get("/health", headers={"X-Trace-Id": "trace-123"})
        assert resp.headers["X-Trace-Id"] == "trace-123"

    async def test_trace_header_generated(self, client):
        resp = await client.get("/health")
        assert resp.headers["X-Trace-Id"]

    async def test_metrics_exposed(self, client):
        resp = await client.get("/metrics/")
        assert resp.status_code == 200
        assert "usersync_registrations_total" in resp.text

    async def test_unknown_route(self, client):
        resp = await client.get("/nowhere")
        assert resp.status_code == 404
        assert resp.json()["success"] is False
