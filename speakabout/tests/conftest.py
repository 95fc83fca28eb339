"""
Test configuration and fixtures for the Speakabout API tests.

The application runs against an in-memory FakeDatabase injected through
db_manager.set_db(), so no live Postgres is needed. Each test gets a fresh
login rate limiter and a reset route limiter.
"""

import os
from collections import defaultdict, deque
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set test environment before importing application modules
os.environ["PYTEST_RUNNING"] = "1"
os.environ["APP_ENV"] = "test"
os.environ["JWT_SECRET"] = "test-jwt-secret-do-not-use-in-prod"
os.environ["RATE_LIMIT_STORAGE_URI"] = "memory://"
os.environ["LOG_FORMAT"] = "text"

from speakabout.core.db_manager import set_db
from speakabout.core.rate_limit import MemoryRateLimitStore, RateLimiter, limiter
from speakabout.core.security import create_session_token, hash_password
from speakabout.main import app

ADMIN_EMAIL = "ops@speakabout.ai"
ADMIN_PASSWORD = "Sp3akAbout!Pass"
ADMIN_PASSWORD_HASH = hash_password(ADMIN_PASSWORD)


class FakeConnection:
    """Connection handed out by FakeDatabase.transaction()."""

    def __init__(self, db: "FakeDatabase"):
        self.db = db
        self.statements: List[str] = []
        self.recorded_versions: List[str] = []

    async def execute(self, query: str, *args: Any) -> str:
        if self.db.fail_on and self.db.fail_on in query:
            raise RuntimeError(f"statement failed: {self.db.fail_on}")
        self.statements.append(query)
        if "INSERT INTO schema_migrations" in query:
            self.recorded_versions.append(args[0])
        return "OK"


class FakeDatabase:
    """
    Stand-in for PostgresAsyncClient.

    Records every call as (method, query, args). Results are served from
    per-method queues (queue_result); unqueued calls get a neutral default.
    Tracks schema_migrations so the migration runner can be exercised.
    """

    def __init__(self):
        self.calls: List[tuple] = []
        self._results: Dict[str, deque] = defaultdict(deque)
        self._next_id = 1
        self.applied_versions: List[str] = []
        self.committed: List[List[str]] = []
        self.fail_on: Optional[str] = None

    def queue_result(self, method: str, *results: Any) -> None:
        self._results[method].extend(results)

    def _pop(self, method: str, default: Any) -> Any:
        queue = self._results[method]
        result = queue.popleft() if queue else default
        if isinstance(result, Exception):
            raise result
        return result

    def calls_to(self, method: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == method]

    async def read(self, query: str, *args: Any) -> List[Dict[str, Any]]:
        self.calls.append(("read", query, args))
        if "FROM schema_migrations" in query:
            return [{"version": v} for v in sorted(self.applied_versions)]
        return self._pop("read", [])

    async def read_one(self, query: str, *args: Any) -> Optional[Dict[str, Any]]:
        self.calls.append(("read_one", query, args))
        return self._pop("read_one", None)

    async def insert_one(self, table: str, data: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(("insert_one", table, (data,)))
        default = {"id": self._next_id, **data}
        self._next_id += 1
        return self._pop("insert_one", default)

    async def execute(self, query: str, *args: Any) -> str:
        self.calls.append(("execute", query, args))
        return self._pop("execute", "OK")

    async def execute_returning(self, query: str, *args: Any) -> Optional[Dict[str, Any]]:
        self.calls.append(("execute_returning", query, args))
        return self._pop("execute_returning", None)

    @asynccontextmanager
    async def transaction(self):
        conn = FakeConnection(self)
        yield conn
        # Reached only when the block did not raise
        self.committed.append(conn.statements)
        self.applied_versions.extend(conn.recorded_versions)


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture(autouse=True)
def isolated_app(fake_db: FakeDatabase, monkeypatch):
    """Inject the fake database, operator credentials and fresh rate limits."""
    monkeypatch.setenv("ADMIN_EMAIL", ADMIN_EMAIL)
    monkeypatch.setenv("ADMIN_PASSWORD_HASH", ADMIN_PASSWORD_HASH)
    monkeypatch.setenv("LOGIN_DELAY_SECONDS", "0")
    monkeypatch.delenv("CRON_SECRET", raising=False)

    set_db(fake_db)
    app.state.rate_limiter = RateLimiter(MemoryRateLimitStore())
    limiter.reset()
    yield
    set_db(None)


@pytest_asyncio.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """
    Provide async HTTP client for testing API endpoints.

    ASGITransport does not run the lifespan, so the injected fake database
    stays in place.
    """
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client


@pytest.fixture
def admin_credentials() -> Dict[str, str]:
    return {"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}


@pytest.fixture
def admin_token() -> str:
    return create_session_token(ADMIN_EMAIL, role="admin")


@pytest.fixture
def admin_headers(admin_token: str) -> Dict[str, str]:
    """Bearer auth headers for the operator."""
    return {"Authorization": f"Bearer {admin_token}"}


@pytest_asyncio.fixture
async def admin_client(async_client: AsyncClient, admin_token: str) -> AsyncGenerator[AsyncClient, None]:
    """Async client carrying the operator's session cookies."""
    async_client.cookies.set("adminLoggedIn", "true")
    async_client.cookies.set("adminSessionToken", admin_token)
    yield async_client
    async_client.cookies.clear()


@pytest.fixture
def sample_deal() -> Dict[str, Any]:
    """A complete admin-created deal body."""
    return {
        "client_name": "Dana Reyes",
        "client_email": "dana@acme.example",
        "company": "Acme Corp",
        "event_title": "Acme Annual Summit",
        "event_date": "2027-03-14",
        "event_location": "Austin, TX",
        "event_type": "Keynote",
        "attendee_count": 400,
        "budget_range": "$25k-$50k",
        "deal_value": 37500,
        "status": "lead",
        "priority": "high",
        "source": "referral",
        "notes": "Met at SXSW",
        "last_contact": "2026-10-01",
    }
