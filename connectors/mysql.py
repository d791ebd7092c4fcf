"""
connectors/mysql.py
-------------------
MySQL connector built on mysql-connector-python's ``MySQLConnectionPool``.

Design Decisions:
    * All table/column names use backtick quoting to avoid reserved-word
      collisions.
    * Each primitive borrows a pooled connection for exactly one statement
      (or one batch) and returns it, so concurrent tables never share a
      cursor.
    * Columns are read from INFORMATION_SCHEMA ordered by ORDINAL_POSITION;
      field order is part of the migration contract.
"""
from __future__ import annotations

import json
from contextlib import contextmanager
from typing import Any, Generator

import mysql.connector
from mysql.connector.pooling import MySQLConnectionPool

from connectors.base import ThreadedConnector
from core.type_normalizer import normalize_type
from logger import get_logger
from models.migration import EngineKind
from models.schema import FieldDescriptor, Row, RowBatch, SemanticType

log = get_logger(__name__)

# mysql-connector refuses pools larger than this
_MAX_POOL_SIZE = 32


def _text(value: Any) -> Any:
    """INFORMATION_SCHEMA values may arrive as bytes on some server versions."""
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8")
    return value


class MySQLConnector(ThreadedConnector):
    engine = EngineKind.MYSQL
    type_map = {
        SemanticType.INTEGER: "BIGINT",
        SemanticType.STRING: "TEXT",
        SemanticType.NUMBER: "DECIMAL(65,30)",
        SemanticType.DATE: "DATETIME",
        SemanticType.BOOLEAN: "BOOLEAN",
        SemanticType.JSON: "JSON",
        SemanticType.BINARY: "BLOB",
    }
    driver_errors = (mysql.connector.Error,)

    def __init__(self, endpoint, pool_size=None, connect_timeout=None, read_only=False) -> None:
        super().__init__(endpoint, pool_size=pool_size, connect_timeout=connect_timeout,
                         read_only=read_only)
        self._pool_size = min(self._pool_size, _MAX_POOL_SIZE)
        self._pool: MySQLConnectionPool | None = None

    def quote_identifier(self, name: str) -> str:
        return "`" + name.replace("`", "``") + "`"

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------

    def _connect_sync(self) -> None:
        ep = self.endpoint
        self._pool = MySQLConnectionPool(
            pool_name=f"anonymigrate_{id(self)}",
            pool_size=self._pool_size,
            host=ep.host or "localhost",
            port=ep.port or 3306,
            user=ep.username,
            password=ep.password or "",
            database=ep.database,
            charset="utf8mb4",
            connect_timeout=self._connect_timeout,
            ssl_disabled=not ep.ssl,
        )
        # Verify that a connection can actually be handed out.
        with self._connection():
            pass

    def _disconnect_sync(self) -> None:
        if self._pool is not None:
            # Closes the idle connections held by the pool.
            self._pool._remove_connections()
            self._pool = None

    @contextmanager
    def _connection(self) -> Generator[Any, None, None]:
        assert self._pool is not None
        conn = self._pool.get_connection()
        try:
            yield conn
        except Exception:
            try:
                conn.rollback()
            except mysql.connector.Error as exc:
                log.warning("Rollback failed: %s", exc)
            raise
        finally:
            conn.close()  # returns it to the pool

    # ------------------------------------------------------------------
    # Driver primitives
    # ------------------------------------------------------------------

    def _query(self, sql: str, params: tuple | None = None) -> list[Row]:
        with self._connection() as conn:
            cur = conn.cursor(dictionary=True)
            try:
                cur.execute(sql, params)
                if cur.description is None:
                    conn.commit()
                    return []
                return cur.fetchall()
            finally:
                cur.close()

    def _list_tables_sync(self) -> list[str]:
        rows = self._query(
            "SELECT TABLE_NAME AS name FROM INFORMATION_SCHEMA.TABLES "
            "WHERE TABLE_SCHEMA = %s AND TABLE_TYPE = 'BASE TABLE'",
            (self.endpoint.database,),
        )
        return [_text(r["name"]) for r in rows]

    def _describe_fields_sync(self, table_name: str) -> list[FieldDescriptor]:
        rows = self._query(
            "SELECT COLUMN_NAME AS name, DATA_TYPE AS data_type, "
            "IS_NULLABLE AS is_nullable, COLUMN_DEFAULT AS column_default "
            "FROM INFORMATION_SCHEMA.COLUMNS "
            "WHERE TABLE_SCHEMA = %s AND TABLE_NAME = %s "
            "ORDER BY ORDINAL_POSITION",
            (self.endpoint.database, table_name),
        )
        return [
            FieldDescriptor(
                name=_text(r["name"]),
                type=normalize_type(_text(r["data_type"])),
                nullable=_text(r["is_nullable"]) == "YES",
                default=_text(r["column_default"]),
            )
            for r in rows
        ]

    def _count_rows_sync(self, table_name: str) -> int:
        rows = self._query(f"SELECT COUNT(*) AS count FROM {self.quote_identifier(table_name)}")
        return int(rows[0]["count"])

    def _fetch_page_sync(self, table_name: str, limit: int, offset: int) -> RowBatch:
        return self._query(self.build_page_sql(table_name), (limit, offset))

    def _insert_sync(self, table_name: str, columns: list[str], values: list[tuple]) -> None:
        sql = self.build_insert_sql(table_name, columns)
        with self._connection() as conn:
            cur = conn.cursor()
            try:
                cur.executemany(sql, values)  # rewritten into a multi-row INSERT
                conn.commit()
            finally:
                cur.close()

    def _execute_sync(self, sql: str, params: tuple | None) -> list[Row]:
        return self._query(sql, params)

    def adapt_value(self, value: Any) -> Any:
        if isinstance(value, (dict, list)):
            return json.dumps(value, default=str)
        return value
