from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import UUID

import pytest

from offerready.auth.verify import auth_dependency
from offerready.infrastructure.events import mutation_notifier

USER_ID = "6b1f1d6e-3c2a-4f5e-9d7a-0c1b2a3d4e5f"
CONTACT_ID = "0e9d8c7b-6a5f-4e3d-8c2b-1a0f9e8d7c6b"
CALL_EVENT_ID = "5a4b3c2d-1e0f-4a9b-8c7d-6e5f4a3b2c1d"


@pytest.fixture
def auth_override():
    def _override():
        return {"sub": USER_ID, "email": "ava@example.com"}

    return _override


@pytest.fixture
def apply_auth_override(auth_override):
    def _apply(app):
        app.dependency_overrides[auth_dependency] = auth_override

    return _apply


@pytest.fixture
def app():
    from offerready.main import app as application

    yield application
    application.dependency_overrides.clear()


class FakeRedis:
    def __init__(self):
        self.store: dict[str, str] = {}
        self.hashes: dict[str, dict[str, str]] = {}

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def incr(self, *keys: str) -> bool:
        for key in keys:
            self.store[key] = str(int(self.store.get(key, "0")) + 1)
        return True

    async def hget(self, key: str, field: str) -> str | None:
        return self.hashes.get(key, {}).get(field)

    async def hset_if_unchanged(
        self, key, field, value, guard_key, expected, ttl_s=None
    ) -> bool:
        if self.store.get(guard_key) != expected:
            return False
        self.hashes.setdefault(key, {})[field] = value
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            removed += self.store.pop(key, None) is not None
            removed += self.hashes.pop(key, None) is not None
        return removed

    async def ping(self) -> bool:
        return True


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    redis = FakeRedis()
    monkeypatch.setattr("offerready.services.query_cache.fast_redis", redis)
    return redis


def _normalize(query) -> str:
    return " ".join(str(query).split())


@dataclass
class _Rule:
    fragment: str
    rows: list[dict] = field(default_factory=list)
    rowcount: int | None = None
    error: Exception | None = None
    once: bool = False


class FakeCursor:
    def __init__(self, db: "FakeDatabase"):
        self.db = db
        self.rowcount = 0
        self._rows: list[dict] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def execute(self, query, params=()):
        self._rows, self.rowcount = self.db.run(query, params)

    async def fetchone(self):
        return self._rows[0] if self._rows else None

    async def fetchall(self):
        return list(self._rows)


class FakeConnection:
    def __init__(self, db: "FakeDatabase"):
        self.db = db

    def cursor(self):
        return FakeCursor(self.db)

    async def execute(self, query, params=()):
        cursor = FakeCursor(self.db)
        await cursor.execute(query, params)
        return cursor


class FakeDatabase:
    """
    Scripted stand-in for the connection pool.

    Statements are matched against registered fragments (first match wins)
    and recorded with their params; transactions record begin/commit/rollback.
    Unmatched statements return no rows.
    """

    def __init__(self):
        self.rules: list[_Rule] = []
        self.statements: list[tuple[str, tuple]] = []
        self.transactions: list[str] = []

    def respond(self, fragment, rows=None, rowcount=None, error=None, once=False):
        self.rules.append(_Rule(fragment, list(rows or []), rowcount, error, once))

    def run(self, query, params):
        sql = _normalize(query)
        self.statements.append((sql, tuple(params)))
        for rule in self.rules:
            if rule.fragment in sql:
                if rule.once:
                    self.rules.remove(rule)
                if rule.error:
                    raise rule.error
                rowcount = rule.rowcount if rule.rowcount is not None else len(rule.rows)
                return [dict(row) for row in rule.rows], rowcount
        return [], 0

    def executed(self, fragment: str) -> list[tuple[str, tuple]]:
        return [statement for statement in self.statements if fragment in statement[0]]

    @asynccontextmanager
    async def _connection(self):
        yield FakeConnection(self)

    @asynccontextmanager
    async def _transaction(self):
        self.transactions.append("begin")
        try:
            yield FakeConnection(self)
        except BaseException:
            self.transactions.append("rollback")
            raise
        self.transactions.append("commit")

    async def get_db_connection(self):
        return self._connection()

    async def get_db_transaction(self):
        return self._transaction()


@pytest.fixture
def fake_db(monkeypatch):
    db = FakeDatabase()
    monkeypatch.setattr("offerready.db.helpers.get_db_connection", db.get_db_connection)
    for module in ("contact_repository", "call_event_repository"):
        monkeypatch.setattr(
            f"offerready.repositories.{module}.get_db_transaction", db.get_db_transaction
        )
    return db


@pytest.fixture
def published_events():
    events = []

    async def record(event):
        events.append(event)

    mutation_notifier.subscribe(record)
    yield events
    mutation_notifier.unsubscribe(record)


def make_contact_row(**overrides) -> dict:
    now = datetime.now(UTC)
    row = {
        "id": UUID(CONTACT_ID),
        "user_id": UUID(USER_ID),
        "name": "Jordan Lee",
        "firm": "Evercore",
        "group_name": "TMT",
        "position": "Analyst",
        "email": "jordan@evercore.com",
        "phone": None,
        "connection_type": "alumni",
        "relationship_strength": 2,
        "stage": "researching",
        "last_contacted_at": None,
        "next_followup_at": now + timedelta(days=7),
        "notes_summary": None,
        "created_at": now,
        "updated_at": now,
    }
    row.update(overrides)
    return row


def make_call_event_row(**overrides) -> dict:
    now = datetime.now(UTC)
    row = {
        "id": UUID(CALL_EVENT_ID),
        "user_id": UUID(USER_ID),
        "contact_id": UUID(CONTACT_ID),
        "title": "Coffee chat",
        "start_at": now + timedelta(days=1),
        "end_at": now + timedelta(days=1, minutes=30),
        "location": "Zoom",
        "notes": None,
        "status": "scheduled",
        "external_provider": None,
        "external_event_id": None,
        "created_at": now,
        "updated_at": now,
    }
    row.update(overrides)
    return row
