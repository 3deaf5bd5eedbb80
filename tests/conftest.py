import asyncio
import os
import tempfile

_db_dir = tempfile.mkdtemp(prefix="painel-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_db_dir}/test.db"
os.environ["RATE_LIMIT_PER_MINUTE"] = "0"
os.environ["POLL_INTERVAL_SECONDS"] = "0"
os.environ["HISTORY_ENABLED"] = "true"
os.environ["ADMIN_EMAILS"] = "admin@estudante.com.br"
os.environ["NEWS_API_KEY"] = "test-key"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ.pop("REDIS_URL", None)

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import models  # noqa: E402,F401
from app import app  # noqa: E402
from database import Base, engine  # noqa: E402
from services.cache import cache  # noqa: E402

PASSWORD = "senha-segura-123"
ADMIN_EMAIL = "admin@estudante.com.br"

_RealAsyncClient = httpx.AsyncClient


async def _reset_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture(autouse=True)
def clear_cache():
    asyncio.run(cache.clear())
    yield
    asyncio.run(cache.clear())


@pytest.fixture
def client():
    asyncio.run(_reset_db())
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_quote():
    def _make(symbol: str, bid: float, change_pct: float | None = 0.5, provider: str = "awesomeapi") -> dict:
        base, quote = symbol.split("-")
        return {
            "symbol": symbol,
            "base": base,
            "quote": quote,
            "name": f"{base}/{quote}",
            "bid": bid,
            "ask": bid,
            "high": bid,
            "low": bid,
            "change_pct": change_pct,
            "timestamp": "2026-10-19T12:00:00+00:00",
            "provider": provider,
        }

    return _make


@pytest.fixture
def mock_http(monkeypatch):
    """Route every httpx.AsyncClient created by services through a handler function."""

    def _install(handler):
        transport = httpx.MockTransport(handler)

        def factory(*args, **kwargs):
            kwargs["transport"] = transport
            return _RealAsyncClient(*args, **kwargs)

        monkeypatch.setattr(httpx, "AsyncClient", factory)

    return _install


def register(client: TestClient, email: str, password: str = PASSWORD) -> dict:
    resp = client.post("/auth/register", json={"email": email, "password": password})
    assert resp.status_code == 201, resp.text
    return resp.json()


def login_headers(client: TestClient, email: str, password: str = PASSWORD) -> dict:
    register(client, email, password)
    resp = client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture
def user_headers(client):
    return login_headers(client, "aluno@estudante.com.br")


@pytest.fixture
def admin_headers(client):
    return login_headers(client, ADMIN_EMAIL)
