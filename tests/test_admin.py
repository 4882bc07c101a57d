"""
Tests for the SpySystem admin dispatcher: action routing, validation, role gate
and secret-free status.
"""
from datetime import timedelta

import httpx
import pytest

from retail_hub.api.admin import ADMIN_HANDLERS, parse_command
from retail_hub.errors import InputError
from retail_hub.models import Notification
from retail_hub.schema import ADMIN_ACTIONS, ADMIN_COMMANDS, SyncOrdersCommand
from retail_hub.services.credentials import DatabaseCredentialStore
from retail_hub.utils import utcnow

from conftest import SPY_URL


def test_every_command_has_exactly_one_handler():
    assert set(ADMIN_HANDLERS) == set(ADMIN_COMMANDS)
    assert len(ADMIN_ACTIONS) == len(ADMIN_COMMANDS) == 6


def test_parse_command():
    cmd = parse_command({"action": "sync_orders", "days": 3})
    assert isinstance(cmd, SyncOrdersCommand)
    assert cmd.days == 3
    assert parse_command({"action": "sync_orders"}).days == 7
    with pytest.raises(InputError, match="Invalid action"):
        parse_command({"action": "drop_tables"})
    with pytest.raises(InputError):
        parse_command(["get_status"])
    with pytest.raises(InputError):
        parse_command({"action": "sync_orders", "days": 0})


def test_unknown_action_rejected(client, auth_headers):
    r = client.post("/api/spy/admin", json={"action": "explode"}, headers=auth_headers("admin"))
    assert r.status_code == 400
    assert r.json()["error"].startswith("Invalid action. Supported actions:")


def test_non_admin_forbidden(client, auth_headers):
    r = client.post("/api/spy/admin", json={"action": "get_status"}, headers=auth_headers("sales"))
    assert r.status_code == 403
    assert r.json() == {"error": "Admin access required"}


def test_missing_token_unauthorized(client):
    r = client.post("/api/spy/admin", json={"action": "get_status"})
    assert r.status_code == 401


def test_update_credentials_requires_all_fields(client, auth_headers, db):
    r = client.post(
        "/api/spy/admin",
        json={"action": "update_credentials", "username": "shop", "password": ""},
        headers=auth_headers("admin"),
    )
    assert r.status_code == 400
    assert DatabaseCredentialStore(db).get("SPY_USERNAME") is None


def test_update_credentials_then_status(client, auth_headers, db):
    headers = auth_headers("admin")
    r = client.post(
        "/api/spy/admin",
        json={"action": "update_credentials", "username": "shop", "password": "hunter2", "api_url": SPY_URL},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json()["success"] is True

    r = client.post("/api/spy/admin", json={"action": "get_status"}, headers=headers)
    assert r.status_code == 200
    status = r.json()["status"]
    assert status["credentials_configured"] is True
    assert status["token_exists"] is False
    assert [n["title"] for n in status["recent_notifications"]] == ["SPY Credentials Updated"]
    assert "hunter2" not in r.text


def test_status_reports_expired_token_as_missing(client, auth_headers, db):
    DatabaseCredentialStore(db).put("SPY_TOKEN", "secret-token-value", expires_at=utcnow() - timedelta(minutes=1))
    r = client.post("/api/spy/admin", json={"action": "get_status"}, headers=auth_headers("admin"))
    status = r.json()["status"]
    assert status["token_exists"] is False
    assert status["token_expires_at"] is not None
    assert "secret-token-value" not in r.text


def test_sync_orders_action_without_token(client, auth_headers, spy_api):
    r = client.post("/api/spy/admin", json={"action": "sync_orders", "days": 2}, headers=auth_headers("admin"))
    assert r.status_code == 400
    assert "refresh login" in r.json()["error"]
    assert spy_api.requests == []


def test_refresh_then_test_connection(client, auth_headers, db, spy_api):
    headers = auth_headers("admin")
    store = DatabaseCredentialStore(db)
    store.put("SPY_USERNAME", "shop")
    store.put("SPY_PASSWORD", "pw")
    store.put("SPY_API_URL", SPY_URL)
    r = client.post("/api/spy/admin", json={"action": "refresh_token"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["token_refreshed"] is True
    r = client.post("/api/spy/admin", json={"action": "test_connection"}, headers=headers)
    assert r.json() == {"success": True, "status_code": 200, "message": "Connection successful"}


def test_login_refresh_job_with_service_key(client, db, spy_api):
    store = DatabaseCredentialStore(db)
    store.put("SPY_USERNAME", "shop")
    store.put("SPY_PASSWORD", "pw")
    store.put("SPY_API_URL", SPY_URL)
    r = client.post("/api/spy/login-refresh", headers={"X-Service-Key": "test-service-key"})
    assert r.status_code == 200


def test_login_refresh_failure_is_500(client, auth_headers, db, spy_api):
    store = DatabaseCredentialStore(db)
    store.put("SPY_USERNAME", "shop")
    store.put("SPY_PASSWORD", "wrong")
    store.put("SPY_API_URL", SPY_URL)
    spy_api.login_response = httpx.Response(401, json={"detail": "bad credentials"})
    r = client.post("/api/spy/login-refresh", headers=auth_headers("admin"))
    assert r.status_code == 500
    assert r.json() == {"error": "SpySystem login failed: 401"}
    db.expire_all()
    assert db.query(Notification).filter(Notification.type == "error").count() == 1
