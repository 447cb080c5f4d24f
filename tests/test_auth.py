from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from app.config.settings import settings
from app.utils import auth


@pytest.fixture
def secured(fake_db, monkeypatch):
    monkeypatch.setattr(settings, "APP_ENV", "production")
    monkeypatch.setattr(settings, "ENABLE_AUTH", True)
    monkeypatch.setattr(settings, "AUTH_SERVICE_URL", "")
    from app.main import app

    return TestClient(app)


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def token_for(**claims):
    return auth.create_access_token({"sub": "user-1", **claims})


def test_local_permission_rules():
    assert auth.check_local_permission({"permissions": ["*"]}, "branch:create")
    assert auth.check_local_permission({"permissions": ["branch:create"]}, "branch:create")
    assert auth.check_local_permission({"permissions": ["branch:*"]}, "branch:delete")
    assert auth.check_local_permission({"role": "admin"}, "leave:approve")
    assert not auth.check_local_permission({"permissions": ["division:*"]}, "branch:read")
    assert not auth.check_local_permission(None, "branch:read")


def test_user_id_from_any_issuer():
    assert auth.get_user_id({"id": "a"}) == "a"
    assert auth.get_user_id({"sub": "b"}) == "b"
    assert auth.get_user_id({"_id": "c"}) == "c"
    assert auth.get_user_id({}) is None


def test_auth_bypass_only_in_development(monkeypatch):
    monkeypatch.setattr(settings, "APP_ENV", "development")
    monkeypatch.setattr(settings, "ENABLE_AUTH", False)
    assert settings.auth_bypass
    monkeypatch.setattr(settings, "ENABLE_AUTH", True)
    assert not settings.auth_bypass
    monkeypatch.setattr(settings, "APP_ENV", "production")
    monkeypatch.setattr(settings, "ENABLE_AUTH", False)
    assert not settings.auth_bypass


def test_missing_token_is_unauthorized(secured):
    r = secured.get("/api/branches/")
    assert r.status_code == 401
    assert r.json()["success"] is False
    assert r.headers["www-authenticate"] == "Bearer"


def test_malformed_token(secured):
    r = secured.get("/api/branches/", headers=bearer("not-a-jwt"))
    assert r.status_code == 401
    assert "Invalid token format" in r.json()["message"]


def test_expired_token(secured):
    token = auth.create_access_token({"sub": "user-1"}, expires_delta=timedelta(minutes=-5))
    r = secured.get("/api/branches/", headers=bearer(token))
    assert r.status_code == 401
    assert "expired" in r.json()["message"]


def test_permission_checks(secured):
    token = token_for(permissions=["branch:read"])
    assert secured.get("/api/branches/", headers=bearer(token)).status_code == 200

    r = secured.post("/api/branches/", headers=bearer(token), json={
        "code": "HQ", "name": "HQ", "address": {"street": "x", "city": "y", "province": "z"},
    })
    assert r.status_code == 403
    assert r.json()["message"] == "You do not have permission to perform this action"


def test_foreign_token_falls_back_to_remote(secured, monkeypatch):
    foreign = jwt.encode({"sub": "remote-user"}, "someone-elses-secret", algorithm="HS256")
    assert secured.get("/api/branches/", headers=bearer(foreign)).status_code == 401

    async def verify(token):
        return {"_id": "remote-user", "permissions": ["branch:*"]}

    monkeypatch.setattr(auth, "verify_remote_token", verify)
    assert secured.get("/api/branches/", headers=bearer(foreign)).status_code == 200


def test_remote_permission_grant(secured, monkeypatch):
    async def grant(current_user, permission):
        return permission == "branch:read"

    monkeypatch.setattr(auth, "check_remote_permission", grant)
    token = token_for(permissions=[])
    assert secured.get("/api/branches/", headers=bearer(token)).status_code == 200
    assert secured.delete("/api/branches/64b000000000000000000000", headers=bearer(token)).status_code == 403


def test_health_is_public(secured):
    assert secured.get("/health").json() == {"status": "healthy"}
