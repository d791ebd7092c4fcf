"""
connectors/postgresql.py
------------------------
PostgreSQL connector built on psycopg2's ``ThreadedConnectionPool``.

Tables are looked up in the ``public`` schema.  Batches are written with
``psycopg2.extras.execute_values`` so one batch is one round trip, and
structured values are bound through ``psycopg2.extras.Json``.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Generator

import psycopg2
from psycopg2.extras import Json, RealDictCursor, execute_values
from psycopg2.pool import ThreadedConnectionPool

from connectors.base import ThreadedConnector
from core.type_normalizer import normalize_type
from logger import get_logger
from models.migration import EngineKind
from models.schema import FieldDescriptor, Row, RowBatch, SemanticType

log = get_logger(__name__)

_SCHEMA = "public"


class PostgreSQLConnector(ThreadedConnector):
    engine = EngineKind.POSTGRESQL
    type_map = {
        SemanticType.INTEGER: "BIGINT",
        SemanticType.STRING: "TEXT",
        SemanticType.NUMBER: "NUMERIC",
        SemanticType.DATE: "TIMESTAMP",
        SemanticType.BOOLEAN: "BOOLEAN",
        SemanticType.JSON: "JSONB",
        SemanticType.BINARY: "BYTEA",
    }
    driver_errors = (psycopg2.Error,)

    def __init__(self, endpoint, pool_size=None, connect_timeout=None, read_only=False) -> None:
        super().__init__(endpoint, pool_size=pool_size, connect_timeout=connect_timeout,
                         read_only=read_only)
        self._pool: ThreadedConnectionPool | None = None

    @property
    def sslmode(self) -> str:
        return "require" if self.endpoint.ssl else "disable"

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------

    def _connect_sync(self) -> None:
        ep = self.endpoint
        options = {}
        if self.read_only:
            options["options"] = "-c default_transaction_read_only=on"
        self._pool = ThreadedConnectionPool(
            minconn=1,
            maxconn=self._pool_size,
            host=ep.host or "localhost",
            port=ep.port or 5432,
            user=ep.username,
            password=ep.password,
            dbname=ep.database,
            sslmode=self.sslmode,
            connect_timeout=self._connect_timeout,
            **options,
        )
        with self._connection():
            pass

    def _disconnect_sync(self) -> None:
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None

    @contextmanager
    def _connection(self) -> Generator[Any, None, None]:
        assert self._pool is not None
        conn = self._pool.getconn()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._pool.putconn(conn)

    # ------------------------------------------------------------------
    # Driver primitives
    # ------------------------------------------------------------------

    def _query(self, sql: str, params: tuple | None = None) -> list[Row]:
        with self._connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(sql, params)
                if cur.description is None:
                    return []
                return [dict(r) for r in cur.fetchall()]

    def _list_tables_sync(self) -> list[str]:
        rows = self._query(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = %s AND table_type = 'BASE TABLE'",
            (_SCHEMA,),
        )
        return [r["table_name"] for r in rows]

    def _describe_fields_sync(self, table_name: str) -> list[FieldDescriptor]:
        rows = self._query(
            "SELECT column_name, data_type, is_nullable, column_default "
            "FROM information_schema.columns "
            "WHERE table_schema = %s AND table_name = %s "
            "ORDER BY ordinal_position",
            (_SCHEMA, table_name),
        )
        return [
            FieldDescriptor(
                name=r["column_name"],
                type=normalize_type(r["data_type"]),
                nullable=r["is_nullable"] == "YES",
                default=r["column_default"],
            )
            for r in rows
        ]

    def _count_rows_sync(self, table_name: str) -> int:
        rows = self._query(f"SELECT COUNT(*) AS count FROM {self.quote_identifier(table_name)}")
        return int(rows[0]["count"])

    def _fetch_page_sync(self, table_name: str, limit: int, offset: int) -> RowBatch:
        return self._query(self.build_page_sql(table_name), (limit, offset))

    def _insert_sync(self, table_name: str, columns: list[str], values: list[tuple]) -> None:
        cols = ", ".join(self.quote_identifier(c) for c in columns)
        sql = f"INSERT INTO {self.quote_identifier(table_name)} ({cols}) VALUES %s"
        with self._connection() as conn:
            with conn.cursor() as cur:
                execute_values(cur, sql, values, page_size=len(values))

    def _execute_sync(self, sql: str, params: tuple | None) -> list[Row]:
        return self._query(sql, params)

    def adapt_value(self, value: Any) -> Any:
        if isinstance(value, (dict, list)):
            return Json(value)
        return value
