import re
import sys
from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

import pytest
from werkzeug.security import generate_password_hash

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import app as app_module
from app import create_app
from app.main import routes as main_routes
from config.supabase_schema import table_name


def _as_datetime(value):
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return value
    return value


def _like(pattern: str, value) -> bool:
    regex = "".join(
        ".*" if ch == "%" else "." if ch == "_" else re.escape(ch) for ch in pattern
    )
    return re.fullmatch(regex, str(value or ""), re.IGNORECASE | re.DOTALL) is not None


class FakeQuery:
    def __init__(self, supabase, table_name):
        self.supabase = supabase
        self.table_name = table_name
        self._operation = None
        self._payload = None
        self._filters = []
        self._order = None
        self._limit = None
        self._range = None
        self._select = "*"

    def select(self, columns="*"):
        self._operation = "select"
        self._select = columns
        return self

    def insert(self, rows):
        self._operation = "insert"
        self._payload = rows
        return self

    def update(self, values):
        self._operation = "update"
        self._payload = values
        return self

    def eq(self, column, value):
        self._filters.append(("eq", column, value))
        return self

    def ilike(self, column, pattern):
        self._filters.append(("ilike", column, pattern))
        return self

    def gte(self, column, value):
        self._filters.append(("gte", column, value))
        return self

    def lt(self, column, value):
        self._filters.append(("lt", column, value))
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def limit(self, value):
        self._limit = value
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def _matches(self, row):
        for op, column, value in self._filters:
            actual = row.get(column)
            if op == "eq" and actual != value:
                return False
            if op == "ilike" and not _like(value, actual):
                return False
            if op == "gte" and not _as_datetime(actual) >= _as_datetime(value):
                return False
            if op == "lt" and not _as_datetime(actual) < _as_datetime(value):
                return False
        return True

    def execute(self):
        self.supabase.calls.append((self.table_name, self._operation, list(self._filters)))
        if self.supabase.fail:
            raise RuntimeError("connection refused: SELECT * FROM secret_table")

        table = self.supabase.tables.setdefault(self.table_name, [])
        if self._operation == "select":
            data = [row for row in table if self._matches(row)]
            if self._order:
                column, desc = self._order
                data.sort(key=lambda row: row.get(column), reverse=desc)
            if self._range is not None:
                start, end = self._range
                data = data[start : end + 1]
            if self._limit is not None:
                data = data[: self._limit]
            if self._select != "*":
                columns = [col.strip() for col in self._select.split(",")]
                data = [{col: row.get(col) for col in columns} for row in data]
            return SimpleNamespace(data=data, count=len(data))
        if self._operation == "insert":
            rows = self._payload
            if isinstance(rows, dict):
                rows = [rows]
            inserted = []
            for row in rows:
                new_row = row.copy()
                new_row.setdefault("id", self.supabase.next_id(self.table_name))
                table.append(new_row)
                inserted.append(dict(new_row))
            return SimpleNamespace(data=inserted, count=len(inserted))
        if self._operation == "update":
            updated = []
            for row in table:
                if self._filters and self._matches(row):
                    row.update(self._payload)
                    updated.append(dict(row))
            return SimpleNamespace(data=updated, count=len(updated))
        return SimpleNamespace(data=None, count=None)


class FakeSupabase:
    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.calls: list[tuple] = []
        self.fail = False

    def table(self, name):
        return FakeQuery(self, name)

    def next_id(self, name):
        ids = [row["id"] for row in self.tables.get(name, []) if isinstance(row.get("id"), int)]
        return max(ids, default=0) + 1

    def rows(self, identifier):
        return self.tables.setdefault(table_name(identifier), [])

    def add_user(
        self,
        username,
        password="secret",
        *,
        role="viewer",
        station="S1",
        operator=None,
        is_active=True,
    ):
        users = self.rows("users")
        record = {
            "id": self.next_id(table_name("users")),
            "username": username,
            "password_hash": generate_password_hash(password, method="pbkdf2:sha256:1000"),
            "station": station,
            "operator": operator if operator is not None else username,
            "role": role,
            "is_active": is_active,
        }
        users.append(record)
        return record


@pytest.fixture
def supabase():
    return FakeSupabase()


@pytest.fixture
def app(monkeypatch, supabase):
    monkeypatch.setattr(app_module, "create_client", lambda url, key: supabase)
    monkeypatch.setenv("SECRET_KEY", "test")
    monkeypatch.setenv("SUPABASE_URL", "http://localhost")
    monkeypatch.setenv("SUPABASE_SERVICE_KEY", "service")
    monkeypatch.setenv("LOCAL_TIMEZONE", "Asia/Taipei")
    app = create_app()
    app.testing = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def login(client, username, password="secret"):
    response = client.post("/api/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.get_json()
    return response


def local_now(app):
    with app.test_request_context():
        return main_routes._now()
