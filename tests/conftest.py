"""
tests/conftest.py
-----------------
Shared fixtures: an in-memory connector that implements the driver
primitives of :class:`ThreadedConnector`, so pipeline, analyzer and session tests
exercise the real executor bridging, streaming and error wrapping without a
database server.
"""
from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from connectors.base import ThreadedConnector
from models.migration import DatabaseEndpoint, EngineKind
from models.schema import FieldDescriptor, Row, RowBatch, SemanticType, TableDescriptor


class FakeDriverError(Exception):
    """Plays the role of a vendor driver exception."""


class MemoryConnector(ThreadedConnector):
    """
    Dict-backed connector.

    Args:
        schemas:       table name → ordered field list.
        rows:          table name → rows.
        fail_on:       ``"<phase>:<table>"`` markers (``describe``, ``count``,
                       ``read``, ``create``) or ``"connect"``.  ``"crash:<table>"``
                       raises a non-driver error on read.
        fail_insert_call: table name → 1-based insert call that fails.
        concurrent:    value reported as ``supports_concurrency``.
        read_only:     reject create_table/insert_rows like a migration source.
    """

    engine = EngineKind.SQLITE
    type_map = {t: t.value.upper() for t in SemanticType}
    driver_errors = (FakeDriverError,)

    def __init__(
        self,
        schemas: dict[str, list[FieldDescriptor]] | None = None,
        rows: dict[str, list[Row]] | None = None,
        fail_on: set[str] | None = None,
        fail_insert_call: dict[str, int] | None = None,
        concurrent: bool = True,
        label: str = "memory",
        read_only: bool = False,
    ) -> None:
        self.supports_concurrency = concurrent
        super().__init__(DatabaseEndpoint(engine=EngineKind.SQLITE, file=label), pool_size=4,
                         read_only=read_only)
        self.schemas = {k: list(v) for k, v in (schemas or {}).items()}
        self.rows = {k: [dict(r) for r in v] for k, v in (rows or {}).items()}
        self.fail_on = set(fail_on or ())
        self.fail_insert_call = dict(fail_insert_call or {})
        self.created: list[TableDescriptor] = []
        self.insert_calls: list[tuple[str, list[Row]]] = []
        self.page_requests: list[tuple[str, int, int]] = []
        self.disconnect_calls = 0
        self._ddl: dict[str, TableDescriptor] = {}

    def _check(self, marker: str) -> None:
        if marker in self.fail_on:
            raise FakeDriverError(f"simulated failure: {marker}")

    def build_create_table_sql(self, table: TableDescriptor) -> str:
        sql = super().build_create_table_sql(table)
        self._ddl[sql] = table
        return sql

    def _connect_sync(self) -> None:
        self._check("connect")

    def _disconnect_sync(self) -> None:
        self.disconnect_calls += 1

    def _list_tables_sync(self) -> list[str]:
        return list(self.schemas)

    def _describe_fields_sync(self, table_name: str) -> list[FieldDescriptor]:
        self._check(f"describe:{table_name}")
        return list(self.schemas.get(table_name, []))

    def _count_rows_sync(self, table_name: str) -> int:
        self._check(f"count:{table_name}")
        return len(self.rows.get(table_name, []))

    def _fetch_page_sync(self, table_name: str, limit: int, offset: int) -> RowBatch:
        self._check(f"read:{table_name}")
        if f"crash:{table_name}" in self.fail_on:
            raise RuntimeError(f"unexpected failure reading {table_name}")
        self.page_requests.append((table_name, limit, offset))
        return [dict(r) for r in self.rows.get(table_name, [])[offset:offset + limit]]

    def _insert_sync(self, table_name: str, columns: list[str], values: list[tuple]) -> None:
        calls = sum(1 for name, _ in self.insert_calls if name == table_name) + 1
        if self.fail_insert_call.get(table_name) == calls:
            raise FakeDriverError(f"simulated insert failure on call {calls}")
        batch = [dict(zip(columns, v)) for v in values]
        self.insert_calls.append((table_name, batch))
        self.rows.setdefault(table_name, []).extend(batch)

    def _execute_sync(self, sql: str, params: tuple | None) -> list[Row]:
        table = self._ddl.get(sql)
        if table is None:
            return []
        self._check(f"create:{table.name}")
        self.created.append(table)
        self.schemas.setdefault(table.name, list(table.fields))
        self.rows.setdefault(table.name, [])
        return []


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

USER_FIELDS = [
    FieldDescriptor("id", SemanticType.INTEGER, nullable=False),
    FieldDescriptor("email", SemanticType.STRING),
    FieldDescriptor("full_name", SemanticType.STRING),
    FieldDescriptor("phone", SemanticType.STRING),
    FieldDescriptor("password_hash", SemanticType.STRING),
    FieldDescriptor("age", SemanticType.INTEGER),
    FieldDescriptor("notes", SemanticType.STRING, default="'none'"),
]

ORDER_FIELDS = [
    FieldDescriptor("id", SemanticType.INTEGER, nullable=False),
    FieldDescriptor("total", SemanticType.NUMBER),
    FieldDescriptor("placed_at", SemanticType.DATE),
]


def make_user_rows(count: int) -> list[Row]:
    return [
        {
            "id": i,
            "email": f"user{i}@example.com",
            "full_name": "Alice Smith",
            "phone": f"555-123-{i:04d}",
            "password_hash": f"hash-{i}",
            "age": 30 + i,
            "notes": "some note",
        }
        for i in range(1, count + 1)
    ]


def make_order_rows(count: int) -> list[Row]:
    return [
        {"id": i, "total": 10.5 * i, "placed_at": f"2024-01-{i:02d}"}
        for i in range(1, count + 1)
    ]


@pytest.fixture
def source() -> MemoryConnector:
    return MemoryConnector(
        schemas={"users": USER_FIELDS, "orders": ORDER_FIELDS},
        rows={"users": make_user_rows(5), "orders": make_order_rows(3)},
        label="source",
    )


@pytest.fixture
def destination() -> MemoryConnector:
    return MemoryConnector(label="destination")


# ---------------------------------------------------------------------------
# SQLite files
# ---------------------------------------------------------------------------

SQLITE_USERS_DDL = """
CREATE TABLE users (
    id INTEGER NOT NULL,
    email VARCHAR(255),
    full_name TEXT,
    phone VARCHAR(32),
    password_hash TEXT,
    status TEXT DEFAULT 'active',
    balance NUMERIC,
    created_at DATETIME,
    is_admin BOOLEAN
)
"""


@pytest.fixture
def sqlite_source(tmp_path: Path) -> Path:
    """A SQLite file with a populated ``users`` table (4 rows)."""
    path = tmp_path / "source.db"
    conn = sqlite3.connect(path)
    try:
        conn.execute(SQLITE_USERS_DDL)
        conn.executemany(
            "INSERT INTO users (id, email, full_name, phone, password_hash, status, "
            "balance, created_at, is_admin) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                (1, "john.doe@example.com", "John Doe", "555-123-4567", "s3cret",
                 "active", 12.5, "2024-01-01 10:00:00", 0),
                (2, "jane@example.org", "Jane Roe", "(555) 987-6543", "hunter2",
                 "inactive", 0, "2024-02-01 11:30:00", 1),
                (3, None, "Bo", None, "pw", "active", None, None, 0),
                (4, "x@y.io", "Ann Lee", "555-000-1111", "abc", "active", 3, None, 0),
            ],
        )
        conn.commit()
    finally:
        conn.close()
    return path
