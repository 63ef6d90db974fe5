"""
Shared test fixtures.

Mock Supabase client, reference data and session helpers.
"""

import os
import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings are loaded at import time; tests never talk to a real project
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import pytest
from unittest.mock import patch
from datetime import datetime, timezone
from typing import Callable, Generator, Optional

from models.reference import ReferenceSnapshot
from tests.factories import (
    AccountFactory,
    CategoryFactory,
    GoalFactory,
)

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data=None, count: int = None):
        self.data = data
        self.count = count if count is not None else (len(data) if isinstance(data, list) else 0)


def _literal(value: str):
    return {"true": True, "false": False, "null": None}.get(value, value)


def _matches(row: dict, filters: list) -> bool:
    """Apply recorded eq and or filters the way PostgREST would."""
    for column, value in filters:
        if column == "or":
            clauses = [clause.split(".eq.", 1) for clause in value.split(",")]
            if not any(row.get(col) == _literal(val) for col, val in clauses):
                return False
        elif row.get(column) != value:
            return False
    return True


class MockSupabaseQuery:
    """Mock Supabase query builder with chainable methods."""

    def __init__(self, client: "MockSupabaseClient", table: str, data: list = None):
        self._client = client
        self._table = table
        self._data = data or []
        self._is_single = False
        self._operation = "select"
        self._payload = None
        self._range: Optional[tuple[int, int]] = None
        self.filters: list[tuple[str, object]] = []

    def select(self, *args, **kwargs):
        return self

    def insert(self, data):
        self._operation = "insert"
        self._payload = data
        return self

    def update(self, data):
        self._operation = "update"
        self._payload = data
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def or_(self, filters: str):
        """Record a PostgREST or-filter such as "user_id.eq.u1,is_default.eq.true"."""
        self.filters.append(("or", filters))
        return self

    def range(self, start: int, end: int):
        self._range = (start, end)
        return self

    def single(self):
        self._is_single = True
        return self

    def order(self, column, **kwargs):
        return self

    def limit(self, count):
        return self

    def execute(self) -> MockSupabaseResponse:
        self._client.executed.append((self._table, self._operation, list(self.filters)))
        self._client.raise_if_failing(self._table, self._operation, self._payload)

        if self._operation == "insert":
            rows = self._payload if isinstance(self._payload, list) else [self._payload]
            stored = []
            for row in rows:
                item = dict(row)
                item["id"] = f"{self._table}-{len(self._client.inserted.get(self._table, [])) + 1}"
                item["created_at"] = datetime.now(timezone.utc).isoformat()
                self._client.inserted.setdefault(self._table, []).append(item)
                stored.append(item)
            return MockSupabaseResponse(data=stored)

        if self._operation == "update":
            self._client.updated.append((self._table, dict(self._payload), list(self.filters)))
            return MockSupabaseResponse(data=[{**r, **self._payload} for r in self._data])

        self._data = [row for row in self._data if _matches(row, self.filters)]
        if self._range is not None:
            start, end = self._range
            self._data = self._data[start:end + 1]

        if self._is_single:
            data = self._data[0] if self._data else None
            return MockSupabaseResponse(data=data, count=1 if data else 0)
        return MockSupabaseResponse(data=list(self._data))


class MockRpcCall:
    """Pending RPC call; recorded when executed."""

    def __init__(self, client: "MockSupabaseClient", name: str, params: dict):
        self._client = client
        self._name = name
        self._params = params

    def execute(self) -> MockSupabaseResponse:
        self._client.raise_if_failing("rpc", self._name, self._params)
        self._client.rpc_calls.append((self._name, dict(self._params)))
        return MockSupabaseResponse(data=None)


class MockSupabaseClient:
    """
    Mock Supabase client.

    Records inserts, updates and RPC calls. Failures can be queued per
    operation or triggered by a predicate on the payload.
    """

    def __init__(self):
        self._tables: dict[str, list] = {}
        self.inserted: dict[str, list[dict]] = {}
        self.updated: list[tuple[str, dict, list]] = []
        self.rpc_calls: list[tuple[str, dict]] = []
        self.executed: list[tuple[str, str, list]] = []
        self._queued_errors: dict[tuple[str, str], list[Exception]] = {}
        self._predicates: list[tuple[str, str, Callable[[dict], bool], Exception]] = []

    def set_table_data(self, table_name: str, data: list):
        """Configure mock data for a table."""
        self._tables[table_name] = data

    def table(self, name: str) -> MockSupabaseQuery:
        return MockSupabaseQuery(self, name, list(self._tables.get(name, [])))

    def rpc(self, name: str, params: Optional[dict] = None) -> MockRpcCall:
        return MockRpcCall(self, name, params or {})

    # Failure injection

    def fail_next(self, table: str, operation: str, error: Exception, times: int = 1):
        """Raise `error` on the next `times` executions of table/operation."""
        self._queued_errors.setdefault((table, operation), []).extend([error] * times)

    def fail_when(self, table: str, operation: str, predicate: Callable[[dict], bool], error: Exception):
        """Raise `error` every time the payload matches `predicate`."""
        self._predicates.append((table, operation, predicate, error))

    def raise_if_failing(self, table: str, operation: str, payload):
        queue = self._queued_errors.get((table, operation))
        if queue:
            raise queue.pop(0)
        for p_table, p_operation, predicate, error in self._predicates:
            if p_table == table and p_operation == operation and predicate(payload or {}):
                raise error

    def inserted_rows(self, table: str = "transactions") -> list[dict]:
        return self.inserted.get(table, [])


# ===================
# FIXTURES
# ===================

SERVICE_MODULES = [
    "services.reference_service",
    "services.transaction_service",
]


@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("accounts", [
                {"id": "1", "name": "My Checking", "currency": "USD"}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Any service created inside the test gets the mock from get_supabase_client().
    """
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch(f"{SERVICE_MODULES[0]}.get_supabase_client", return_value=mock_supabase):
            with patch(f"{SERVICE_MODULES[1]}.get_supabase_client", return_value=mock_supabase):
                yield mock_supabase


@pytest.fixture
def accounts() -> list:
    """Accounts newest first; My Checking is the primary account."""
    return [
        AccountFactory.create(id="acc-checking", name="My Checking"),
        AccountFactory.create(id="acc-savings", name="Savings Account"),
        AccountFactory.create(id="acc-001", name="ACC-001"),
        AccountFactory.create(id="acc-002", name="ACC-002"),
    ]


@pytest.fixture
def categories() -> list:
    return [
        CategoryFactory.create(id="cat-groceries", name="groceries", type="expense"),
        CategoryFactory.create(id="cat-transport", name="Transport", type="expense"),
        CategoryFactory.create(id="cat-salary", name="Salary", type="income"),
    ]


@pytest.fixture
def goals() -> list:
    return [
        GoalFactory.create(id="goal-vacation", name="Vacation", current_amount=100),
    ]


@pytest.fixture
def seeded_supabase(mock_supabase, accounts, categories, goals) -> MockSupabaseClient:
    """Mock client with accounts, categories and goals loaded."""
    mock_supabase.set_table_data("accounts", accounts)
    mock_supabase.set_table_data("categories", categories)
    mock_supabase.set_table_data("goals", goals)
    mock_supabase.set_table_data("transactions", [])
    return mock_supabase


@pytest.fixture
def snapshot(accounts, categories, goals) -> ReferenceSnapshot:
    """Reference snapshot matching the seeded tables."""
    return ReferenceSnapshot(
        accounts=tuple(AccountFactory.to_ref(a) for a in accounts),
        categories=tuple(CategoryFactory.to_ref(c) for c in categories),
        goals=tuple(GoalFactory.to_ref(g) for g in goals),
    )


@pytest.fixture
def transaction_service(mock_db):
    """TransactionService on the mock client, no retry delay."""
    from services.transaction_service import TransactionService

    return TransactionService(max_retries=2, backoff_seconds=0, sleep=lambda _: None)


@pytest.fixture(autouse=True)
def clear_import_sessions():
    """Import sessions are module state; start each test empty."""
    from services import import_session_cache

    import_session_cache.clear_sessions()
    yield
    import_session_cache.clear_sessions()


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client_with_mock_db(seeded_supabase):
    """
    FastAPI test client with mocked database.

    Usage:
        def test_endpoint(test_client_with_mock_db, seeded_supabase):
            response = test_client_with_mock_db.post("/api/bulk-import/sessions", ...)
    """
    from fastapi.testclient import TestClient
    from main import app

    with patch("config.database.get_supabase_client", return_value=seeded_supabase):
        with patch(f"{SERVICE_MODULES[0]}.get_supabase_client", return_value=seeded_supabase):
            with patch(f"{SERVICE_MODULES[1]}.get_supabase_client", return_value=seeded_supabase):
                with patch("services.reference_service._reference_service", None), \
                        patch("services.transaction_service._transaction_service", None):
                    yield TestClient(app)
