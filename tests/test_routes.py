"""
End-to-end tests for the /api/v1/users routes.
"""

import time

import httpx
import pytest

from auth.jwt import TokenExpiredError
from utils.schemas import TokenType

BASE = "/api/v1/users"


async def _register(client, email="a@x.com", password="secret1"):
    resp = await client.post(
        f"{BASE}/register",
        json={"email": email, "password": password, "confirm_password": password},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class TestRegisterLogin:
    @pytest.mark.asyncio
    async def test_register_envelope(self, client):
        data = await _register(client)
        assert set(data) == {"access_token", "refresh_token", "user"}
        assert "password_hash" not in data["user"]
        assert data["user"]["email"] == "a@x.com"

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, client):
        await _register(client)
        resp = await client.post(
            f"{BASE}/register",
            json={"email": "a@x.com", "password": "secret1", "confirm_password": "secret1"},
        )
        assert resp.status_code == 409
        assert resp.json()["reason"] == "email_already_exists"

    @pytest.mark.asyncio
    async def test_register_password_mismatch(self, client):
        resp = await client.post(
            f"{BASE}/register",
            json={"email": "a@x.com", "password": "secret1", "confirm_password": "secret2"},
        )
        assert resp.status_code == 422
        assert resp.json()["reason"] == "confirm_password_mismatch"

    @pytest.mark.asyncio
    async def test_login(self, client):
        await _register(client)
        resp = await client.post(f"{BASE}/login", json={"email": "a@x.com", "password": "secret1"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Login success"
        assert body["data"]["user"]["email"] == "a@x.com"

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client):
        await _register(client)
        resp = await client.post(f"{BASE}/login", json={"email": "a@x.com", "password": "nope"})
        assert resp.status_code == 401
        assert resp.json()["reason"] == "invalid_credentials"

    @pytest.mark.asyncio
    async def test_login_unknown_email(self, client):
        resp = await client.post(f"{BASE}/login", json={"email": "b@x.com", "password": "secret1"})
        assert resp.status_code == 401
        assert resp.json()["reason"] == "invalid_credentials"


class TestRefreshLogout:
    @pytest.mark.asyncio
    async def test_refresh_rotates(self, client, codec):
        data = await _register(client)
        old_exp = codec.verify(data["refresh_token"], TokenType.REFRESH).exp

        resp = await client.post(f"{BASE}/refresh-token", json={"refresh_token": data["refresh_token"]})

        assert resp.status_code == 200
        new = resp.json()["data"]
        assert codec.verify(new["refresh_token"], TokenType.REFRESH).exp == old_exp

        again = await client.post(f"{BASE}/refresh-token", json={"refresh_token": data["refresh_token"]})
        assert again.status_code == 401
        assert again.json()["reason"] == "not_found"

    @pytest.mark.asyncio
    async def test_logout_revokes(self, client):
        data = await _register(client)

        resp = await client.post(
            f"{BASE}/logout",
            json={"refresh_token": data["refresh_token"]},
            headers=_bearer(data["access_token"]),
        )
        assert resp.status_code == 200
        assert resp.json() == {"message": "Logout success"}

        again = await client.post(f"{BASE}/refresh-token", json={"refresh_token": data["refresh_token"]})
        assert again.status_code == 401
        assert again.json()["reason"] == "not_found"

    @pytest.mark.asyncio
    async def test_logout_requires_access_token(self, client):
        data = await _register(client)
        resp = await client.post(f"{BASE}/logout", json={"refresh_token": data["refresh_token"]})
        assert resp.status_code == 401
        assert resp.json()["reason"] == "missing"

    @pytest.mark.asyncio
    async def test_refresh_token_missing(self, client):
        resp = await client.post(f"{BASE}/refresh-token", json={})
        assert resp.status_code == 401
        assert resp.json()["reason"] == "missing"

    @pytest.mark.asyncio
    async def test_access_token_rejected_as_refresh_token(self, client):
        data = await _register(client)
        resp = await client.post(f"{BASE}/refresh-token", json={"refresh_token": data["access_token"]})
        assert resp.status_code == 401
        assert resp.json()["reason"] == "invalid_signature"


class TestAccessGuards:
    @pytest.mark.asyncio
    async def test_malformed_access_token(self, client):
        resp = await client.get(f"{BASE}/me", headers=_bearer("garbage"))
        assert resp.status_code == 401
        assert resp.json()["reason"] == "malformed"

    @pytest.mark.asyncio
    async def test_expired_access_token(self, client, codec):
        token = codec.sign(TokenType.ACCESS, user_id="abc", exp=int(time.time()) - 10)
        resp = await client.get(f"{BASE}/me", headers=_bearer(token))
        assert resp.status_code == 401
        assert resp.json()["reason"] == "expired"

    @pytest.mark.asyncio
    async def test_unverified_user_is_forbidden(self, client):
        data = await _register(client)
        resp = await client.get(f"{BASE}/me", headers=_bearer(data["access_token"]))
        assert resp.status_code == 403
        assert resp.json()["reason"] == "user_not_verified"

    @pytest.mark.asyncio
    async def test_non_admin_is_forbidden(self, client):
        data = await _register(client)
        resp = await client.get(f"{BASE}/admin/ping", headers=_bearer(data["access_token"]))
        assert resp.status_code == 403
        assert resp.json()["reason"] == "admin_required"


class TestEmailVerification:
    @pytest.mark.asyncio
    async def test_verify_email_then_me(self, client, mailer):
        await _register(client)
        token = mailer.send_verify_email.await_args.args[1]

        resp = await client.post(f"{BASE}/verify-email", json={"verify_email_token": token})
        assert resp.status_code == 200
        assert resp.json()["message"] == "Email verify success"

        access = resp.json()["data"]["access_token"]
        me = await client.get(f"{BASE}/me", headers=_bearer(access))
        assert me.status_code == 200
        assert me.json()["data"]["email"] == "a@x.com"

        again = await client.post(f"{BASE}/verify-email", json={"verify_email_token": token})
        assert again.status_code == 200
        assert again.json() == {"message": "Email already verified"}

    @pytest.mark.asyncio
    async def test_superseded_token_mints_no_session_after_verification(self, client, mailer):
        data = await _register(client)
        stale = mailer.send_verify_email.await_args.args[1]
        await client.post(f"{BASE}/resend-verify-email", headers=_bearer(data["access_token"]))
        fresh = mailer.send_verify_email.await_args.args[1]

        resp = await client.post(f"{BASE}/verify-email", json={"verify_email_token": fresh})
        assert resp.status_code == 200
        assert "data" in resp.json()

        replay = await client.post(f"{BASE}/verify-email", json={"verify_email_token": stale})
        assert replay.status_code == 200
        assert replay.json() == {"message": "Email already verified"}

    @pytest.mark.asyncio
    async def test_stale_verify_token_is_rejected(self, client, mailer):
        data = await _register(client)
        stale = mailer.send_verify_email.await_args.args[1]

        resp = await client.post(f"{BASE}/resend-verify-email", headers=_bearer(data["access_token"]))
        assert resp.status_code == 200
        fresh = mailer.send_verify_email.await_args.args[1]
        assert fresh != stale

        resp = await client.post(f"{BASE}/verify-email", json={"verify_email_token": stale})
        assert resp.status_code == 401
        assert resp.json()["reason"] == "token_mismatch"


class TestPasswordReset:
    @pytest.mark.asyncio
    async def test_forgot_and_reset(self, client, mailer):
        await _register(client)

        resp = await client.post(f"{BASE}/forgot-password", json={"email": "a@x.com"})
        assert resp.status_code == 200
        token = mailer.send_forgot_password_email.await_args.args[1]

        check = await client.post(f"{BASE}/verify-forgot-password", json={"forgot_password_token": token})
        assert check.status_code == 200

        reset = await client.post(
            f"{BASE}/reset-password",
            json={"forgot_password_token": token, "password": "newpass1", "confirm_password": "newpass1"},
        )
        assert reset.status_code == 200
        assert reset.json()["data"]["access_token"]

        old = await client.post(f"{BASE}/login", json={"email": "a@x.com", "password": "secret1"})
        assert old.status_code == 401
        new = await client.post(f"{BASE}/login", json={"email": "a@x.com", "password": "newpass1"})
        assert new.status_code == 200

        reused = await client.post(
            f"{BASE}/reset-password",
            json={"forgot_password_token": token, "password": "other11", "confirm_password": "other11"},
        )
        assert reused.status_code == 401
        assert reused.json()["reason"] == "token_mismatch"

    @pytest.mark.asyncio
    async def test_forgot_password_unknown_email(self, client):
        resp = await client.post(f"{BASE}/forgot-password", json={"email": "nobody@x.com"})
        assert resp.status_code == 404
        assert resp.json()["reason"] == "user_not_found"


@pytest.mark.asyncio
async def test_unhandled_token_error_renders_401(settings, mailer):
    from main import create_app

    app = create_app(settings, email_sender=mailer)

    @app.get("/boom")
    async def boom():
        raise TokenExpiredError("Signature has expired")

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        resp = await c.get("/boom")

    assert resp.status_code == 401
    assert resp.json() == {"message": "Signature has expired", "reason": "expired"}


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.json() == {"status": "ok"}
    assert "X-Process-Time" in resp.headers
