"""
connectors/sqlite.py
--------------------
Embedded single-file engine on ``aiosqlite``.

aiosqlite serialises every statement on one connection thread, so this
connector reports ``supports_concurrency = False`` and the pipeline processes
tables one at a time.

Design Decision:
    Destinations are created on demand (parent directories included).
    Read-only connectors open the file with ``mode=ro`` and refuse a path
    that does not exist, so a mistyped source never leaves an empty database
    behind.
"""
from __future__ import annotations

import json
from datetime import date, datetime, time
from decimal import Decimal
from pathlib import Path
from typing import Any

import aiosqlite

from connectors.base import BaseConnector
from core.type_normalizer import normalize_type
from logger import get_logger
from models.migration import EngineKind
from models.schema import FieldDescriptor, Row, RowBatch, SemanticType

log = get_logger(__name__)

_MEMORY = ":memory:"


class SQLiteConnector(BaseConnector):
    engine = EngineKind.SQLITE
    type_map = {
        SemanticType.INTEGER: "INTEGER",
        SemanticType.STRING: "TEXT",
        SemanticType.NUMBER: "REAL",
        SemanticType.DATE: "TEXT",       # no native temporal type
        SemanticType.BOOLEAN: "INTEGER",  # stored as 0/1
        SemanticType.JSON: "TEXT",
        SemanticType.BINARY: "BLOB",
    }
    driver_errors = (aiosqlite.Error,)
    supports_concurrency = False
    placeholder = "?"

    def __init__(self, endpoint, pool_size=None, connect_timeout=None, read_only=False) -> None:
        super().__init__(endpoint, pool_size=1, connect_timeout=connect_timeout,
                         read_only=read_only)
        self._db: aiosqlite.Connection | None = None

    @property
    def path(self) -> str:
        return self.endpoint.path or _MEMORY

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------

    def _database_target(self) -> tuple[str, bool]:
        """Return ``(database, uri)`` arguments for ``aiosqlite.connect``."""
        if self.path == _MEMORY:
            return _MEMORY, False
        path = Path(self.path)
        if self.read_only:
            if not path.is_file():
                raise FileNotFoundError(f"SQLite database file not found: {self.path}")
            return f"{path.resolve().as_uri()}?mode=ro", True
        path.parent.mkdir(parents=True, exist_ok=True)
        return self.path, False

    async def _open(self) -> None:
        database, uri = self._database_target()
        self._db = await aiosqlite.connect(database, timeout=self._connect_timeout, uri=uri)
        self._db.row_factory = aiosqlite.Row

    async def _close(self) -> None:
        if self._db is not None:
            db, self._db = self._db, None
            await db.close()

    async def _fetchall(self, sql: str, params: tuple = ()) -> list[aiosqlite.Row]:
        assert self._db is not None
        async with self._db.execute(sql, params) as cur:
            return list(await cur.fetchall())

    # ------------------------------------------------------------------
    # Engine primitives
    # ------------------------------------------------------------------

    async def _list_tables(self) -> list[str]:
        rows = await self._fetchall(
            "SELECT name FROM sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%'"
        )
        return [row["name"] for row in rows]

    async def _describe_fields(self, table_name: str) -> list[FieldDescriptor]:
        rows = await self._fetchall(f"PRAGMA table_info({self.quote_identifier(table_name)})")
        return [
            FieldDescriptor(
                name=row["name"],
                type=normalize_type(row["type"]),
                nullable=not row["notnull"],
                default=row["dflt_value"],
            )
            for row in rows  # ordered by cid
        ]

    async def _count_rows(self, table_name: str) -> int:
        rows = await self._fetchall(f"SELECT COUNT(*) FROM {self.quote_identifier(table_name)}")
        return int(rows[0][0])

    async def _fetch_page(self, table_name: str, limit: int, offset: int) -> RowBatch:
        rows = await self._fetchall(self.build_page_sql(table_name), (limit, offset))
        return [dict(row) for row in rows]

    async def _insert(self, table_name: str, columns: list[str], values: list[tuple]) -> None:
        assert self._db is not None
        try:
            await self._db.executemany(self.build_insert_sql(table_name, columns), values)
        except aiosqlite.Error:
            await self._db.rollback()
            raise
        await self._db.commit()

    async def _execute(self, sql: str, params: tuple | None) -> list[Row]:
        assert self._db is not None
        try:
            async with self._db.execute(sql, params or ()) as cur:
                rows = await cur.fetchall() if cur.description is not None else []
        except aiosqlite.Error:
            await self._db.rollback()
            raise
        await self._db.commit()
        return [dict(row) for row in rows]

    # ------------------------------------------------------------------
    # Value adaptation
    # ------------------------------------------------------------------

    def adapt_value(self, value: Any) -> Any:
        if isinstance(value, (dict, list)):
            return json.dumps(value, default=str)
        if isinstance(value, Decimal):
            return float(value)
        if isinstance(value, (datetime, date, time)):
            return value.isoformat()
        if isinstance(value, bytearray):
            return bytes(value)
        return value
