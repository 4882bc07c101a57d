"""
Pytest configuration: add backend to path, point the app at a throw-away SQLite
database and test secrets, and provide fakes for SpySystem and the LLM.
"""
import os
import sys
from pathlib import Path
from types import SimpleNamespace

# Project root = parent of tests/
ROOT = Path(__file__).resolve().parent.parent
BACKEND = ROOT / "backend"
sys.path.insert(0, str(BACKEND))
# Use a test DB
os.environ["DATABASE_URL"] = f"sqlite:///{ROOT / 'data' / 'test_retail_hub.db'}"
os.environ["AUTH_JWT_SECRET"] = "test-jwt-secret"
os.environ["SERVICE_ROLE_KEY"] = "test-service-key"
os.environ["SHOPIFY_WEBHOOK_SECRET"] = "test-webhook-secret"
os.environ["OPENAI_API_KEY"] = "test-openai-key"
for _key in ("SPY_USERNAME", "SPY_PASSWORD", "SPY_API_URL", "SPY_TOKEN_TTL_SECONDS"):
    os.environ.pop(_key, None)

import httpx
import pytest
from fastapi.testclient import TestClient
from jose import jwt

from retail_hub.db import Base, SessionLocal, engine, init_db
from retail_hub.main import app
from retail_hub.models import User
from retail_hub.services import llm_client, spy_sync
from retail_hub.services.spy_client import SpyClient

SPY_URL = "https://spy.example.test/api"


@pytest.fixture(autouse=True)
def reset_db(tmp_path, monkeypatch):
    """Fresh schema and a private reports dir for every test."""
    monkeypatch.setenv("REPORTS_DIR", str(tmp_path / "reports"))
    Base.metadata.drop_all(bind=engine)
    init_db()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def make_token(sub: str, email: str | None = None) -> str:
    claims = {"sub": sub, "role": "authenticated"}
    if email:
        claims["email"] = email
    return jwt.encode(claims, os.environ["AUTH_JWT_SECRET"], algorithm="HS256")


@pytest.fixture
def auth_headers(db):
    """auth_headers(role) -> Authorization header for a user holding that role."""
    def _headers(role: str | None, user_id: str | None = None) -> dict:
        user_id = user_id or f"user-{role or 'none'}"
        if role is not None and db.get(User, user_id) is None:
            db.add(User(id=user_id, role=role, email=f"{user_id}@example.com"))
            db.commit()
        return {"Authorization": f"Bearer {make_token(user_id, f'{user_id}@example.com')}"}
    return _headers


class FakeSpyApi:
    """Routes SpySystem requests to canned responses and records them."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.login_response = httpx.Response(200, json={"token": "fresh-token"})
        self.probe_status = 200
        self.orders: list[dict] = []
        self.orders_status = 200
        self.variants: list[dict] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.endswith("/auth/login"):
            return self.login_response
        if path.endswith("/products"):
            return httpx.Response(self.probe_status, json={"products": []})
        if path.endswith("/orders"):
            return httpx.Response(self.orders_status, json={"orders": self.orders})
        if path.endswith("/variants/stock"):
            return httpx.Response(200, json={"variants": self.variants})
        return httpx.Response(404, json={})

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


@pytest.fixture
def spy_api(monkeypatch):
    api = FakeSpyApi()
    transport = httpx.MockTransport(api.handler)
    monkeypatch.setattr(
        spy_sync, "_client", lambda api_url, token=None: SpyClient(api_url, token, transport=transport)
    )
    return api


def tool_call_message(name: str, arguments: str, call_id: str = "call_1"):
    return SimpleNamespace(
        content=None,
        tool_calls=[
            SimpleNamespace(
                id=call_id,
                type="function",
                function=SimpleNamespace(name=name, arguments=arguments),
            )
        ],
    )


def text_message(content: str):
    return SimpleNamespace(content=content, tool_calls=None)


class FakeOpenAI:
    """Stands in for openai.OpenAI: replays scripted messages, records kwargs."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls: list[dict] = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        message = self.replies.pop(0)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def fake_llm(monkeypatch):
    """fake_llm(*messages) installs a FakeOpenAI replaying those messages."""
    def _install(*replies) -> FakeOpenAI:
        fake = FakeOpenAI(replies)
        monkeypatch.setattr(llm_client, "_client", lambda: fake)
        return fake
    return _install
