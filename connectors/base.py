"""
connectors/base.py
------------------
The capability contract every database connector satisfies, plus the shared
plumbing (DDL generation, LIMIT/OFFSET streaming, error wrapping).

Design Decisions:
    * :class:`BaseConnector` owns the public async API once.  Engines supply
      small async primitives (``_list_tables``, ``_fetch_page``, ...) and
      never re-implement streaming, row counting or DDL assembly.
    * Blocking drivers (mysql-connector, psycopg2) derive from
      :class:`ThreadedConnector`, which runs synchronous ``_*_sync``
      primitives on a thread-pool executor sized to the connection pool, so
      the pipeline never blocks the event loop.
    * Driver exceptions listed in ``driver_errors`` are re-raised as
      :class:`ConnectorError` so callers never depend on a vendor module.
    * A connector opened with ``read_only=True`` must not create or alter
      anything at its endpoint; it is used for migration sources and for
      analysis.
    * Structural identifiers are quoted per engine; data values always go
      through driver parameter binding.
"""
from __future__ import annotations

import asyncio
import functools
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, AsyncIterator, Callable, Sequence

from config import CONFIG
from errors import ConnectorError, DatabaseConnectionError, NotConnectedError
from logger import get_logger
from models.migration import DatabaseEndpoint, EngineKind
from models.schema import FieldDescriptor, Row, RowBatch, SemanticType, TableDescriptor

log = get_logger(__name__)


class BaseConnector(ABC):
    """
    Async connector bound to one :class:`DatabaseEndpoint`.

    Example::

        async with create_connector(endpoint, read_only=True) as db:
            for name in await db.list_tables():
                table = await db.describe_table(name)
                async for batch in db.stream_rows(name, batch_size=500):
                    ...
    """

    engine: EngineKind
    #: Semantic type → column type used in destination DDL.
    type_map: dict[SemanticType, str] = {}
    #: Exceptions raised by the driver, wrapped into ConnectorError.
    driver_errors: tuple[type[BaseException], ...] = ()
    #: Whether several tables may be streamed/written at the same time.
    supports_concurrency: bool = True
    #: Placeholder used in parameterised statements.
    placeholder: str = "%s"

    def __init__(
        self,
        endpoint: DatabaseEndpoint,
        pool_size: int | None = None,
        connect_timeout: int | None = None,
        read_only: bool = False,
    ) -> None:
        self.endpoint = endpoint
        self.read_only = read_only
        self._pool_size = max(1, pool_size or CONFIG.db.pool_size)
        self._connect_timeout = connect_timeout or CONFIG.db.connect_timeout
        self._connected = False

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    async def __aenter__(self) -> "BaseConnector":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.disconnect()
        return False  # Never suppress exceptions

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def max_workers(self) -> int:
        return self._pool_size if self.supports_concurrency else 1

    async def connect(self) -> None:
        """
        Open the endpoint and verify one connection.

        Raises:
            DatabaseConnectionError: If the database cannot be reached (or,
                                     in read-only mode, does not exist).
        """
        if self._connected:
            return
        log.info("Connecting to %s%s", self.endpoint.display_name,
                 " (read-only)" if self.read_only else "")
        try:
            await self._open()
        except Exception as exc:
            raise DatabaseConnectionError(
                f"Could not connect to {self.endpoint.display_name}: {exc}"
            ) from exc
        self._connected = True
        log.info("Connected to %s", self.endpoint.display_name)

    async def disconnect(self) -> None:
        """Release the connection(s). Safe to call repeatedly or before ``connect()``."""
        if not self._connected:
            return
        try:
            await self._close()
            log.info("Disconnected from %s", self.endpoint.display_name)
        except self.driver_errors as exc:
            log.warning("Error while disconnecting from %s: %s",
                        self.endpoint.display_name, exc)
        finally:
            self._connected = False

    async def _call(self, func: Callable[..., Any], *args: Any) -> Any:
        """Await an async primitive, wrapping driver errors."""
        if not self._connected:
            raise NotConnectedError(
                f"Connector for {self.endpoint.display_name} is not connected. "
                "Call connect() first."
            )
        try:
            return await func(*args)
        except self.driver_errors as exc:
            raise ConnectorError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Capability contract
    # ------------------------------------------------------------------

    async def list_tables(self) -> list[str]:
        return await self._call(self._list_tables)

    async def describe_table(self, table_name: str) -> TableDescriptor:
        """Describe *table_name*; the row count is best-effort (None on failure)."""
        fields = await self._call(self._describe_fields, table_name)
        if not fields:
            raise ConnectorError(f"Table '{table_name}' does not exist or has no columns.")
        try:
            row_count = await self._call(self._count_rows, table_name)
        except ConnectorError as exc:
            log.warning("Could not count rows of '%s': %s", table_name, exc)
            row_count = None
        return TableDescriptor(name=table_name, fields=fields, row_count=row_count)

    async def stream_rows(self, table_name: str, batch_size: int) -> AsyncIterator[RowBatch]:
        """
        Yield batches of at most *batch_size* rows until an empty page is read.

        Only one page is held at a time; the next page is not requested until
        the consumer asks for it.
        """
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        offset = 0
        while True:
            batch = await self._call(self._fetch_page, table_name, batch_size, offset)
            if not batch:
                return
            yield batch
            offset += batch_size

    async def create_table(self, table: TableDescriptor) -> None:
        """Create *table* if it does not exist (existing tables are left as is)."""
        self._require_writable()
        sql = self.build_create_table_sql(table)
        log.debug("DDL for '%s': %s", table.name, sql)
        await self._call(self._execute, sql, None)

    async def insert_rows(self, table_name: str, rows: RowBatch) -> None:
        """Append *rows*; an empty batch is a no-op."""
        if not rows:
            return
        self._require_writable()
        columns = list(rows[0].keys())
        values = [
            tuple(self.adapt_value(row.get(col)) for col in columns) for row in rows
        ]
        await self._call(self._insert, table_name, columns, values)

    async def execute_query(self, query: str, params: Sequence[Any] | None = None) -> list[Row]:
        """Escape hatch: run raw SQL and return result rows as dicts."""
        return await self._call(self._execute, query, tuple(params) if params else None)

    def _require_writable(self) -> None:
        if self.read_only:
            raise ConnectorError(f"{self.endpoint.display_name} is opened read-only.")

    # ------------------------------------------------------------------
    # SQL helpers
    # ------------------------------------------------------------------

    def quote_identifier(self, name: str) -> str:
        return '"' + name.replace('"', '""') + '"'

    def column_definition(self, field: FieldDescriptor) -> str:
        parts = [self.quote_identifier(field.name), self.type_map.get(field.type, "TEXT")]
        if not field.nullable:
            parts.append("NOT NULL")
        if field.default is not None:
            # Engine-native literal, passed through as-is.
            parts.append(f"DEFAULT {field.default}")
        return " ".join(parts)

    def build_create_table_sql(self, table: TableDescriptor) -> str:
        columns = ", ".join(self.column_definition(f) for f in table.fields)
        return f"CREATE TABLE IF NOT EXISTS {self.quote_identifier(table.name)} ({columns})"

    def build_insert_sql(self, table_name: str, columns: list[str]) -> str:
        cols = ", ".join(self.quote_identifier(c) for c in columns)
        placeholders = ", ".join([self.placeholder] * len(columns))
        return f"INSERT INTO {self.quote_identifier(table_name)} ({cols}) VALUES ({placeholders})"

    def build_page_sql(self, table_name: str) -> str:
        return (
            f"SELECT * FROM {self.quote_identifier(table_name)} "
            f"LIMIT {self.placeholder} OFFSET {self.placeholder}"
        )

    def adapt_value(self, value: Any) -> Any:
        """Convert a row value to something the driver can bind."""
        return value

    # ------------------------------------------------------------------
    # Engine primitives
    # ------------------------------------------------------------------

    @abstractmethod
    async def _open(self) -> None: ...

    @abstractmethod
    async def _close(self) -> None: ...

    @abstractmethod
    async def _list_tables(self) -> list[str]: ...

    @abstractmethod
    async def _describe_fields(self, table_name: str) -> list[FieldDescriptor]: ...

    @abstractmethod
    async def _count_rows(self, table_name: str) -> int: ...

    @abstractmethod
    async def _fetch_page(self, table_name: str, limit: int, offset: int) -> RowBatch: ...

    @abstractmethod
    async def _insert(self, table_name: str, columns: list[str], values: list[tuple]) -> None: ...

    @abstractmethod
    async def _execute(self, sql: str, params: tuple | None) -> list[Row]: ...


class ThreadedConnector(BaseConnector):
    """
    Connector for a blocking driver.

    Subclasses implement the ``_*_sync`` primitives; each one runs on a
    thread-pool executor owned by the connector and sized to its pool, so a
    worker thread can always obtain a pooled connection.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._executor: ThreadPoolExecutor | None = None

    async def _submit(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(func, *args))

    async def _open(self) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix=f"{self.engine.value}-connector",
        )
        try:
            await self._submit(self._connect_sync)
        except Exception:
            self._executor.shutdown(wait=False)
            self._executor = None
            raise

    async def _close(self) -> None:
        try:
            await self._submit(self._disconnect_sync)
        finally:
            self._executor.shutdown(wait=True)
            self._executor = None

    async def _list_tables(self) -> list[str]:
        return await self._submit(self._list_tables_sync)

    async def _describe_fields(self, table_name: str) -> list[FieldDescriptor]:
        return await self._submit(self._describe_fields_sync, table_name)

    async def _count_rows(self, table_name: str) -> int:
        return await self._submit(self._count_rows_sync, table_name)

    async def _fetch_page(self, table_name: str, limit: int, offset: int) -> RowBatch:
        return await self._submit(self._fetch_page_sync, table_name, limit, offset)

    async def _insert(self, table_name: str, columns: list[str], values: list[tuple]) -> None:
        await self._submit(self._insert_sync, table_name, columns, values)

    async def _execute(self, sql: str, params: tuple | None) -> list[Row]:
        return await self._submit(self._execute_sync, sql, params)

    # ------------------------------------------------------------------
    # Driver primitives (run on the executor)
    # ------------------------------------------------------------------

    @abstractmethod
    def _connect_sync(self) -> None: ...

    @abstractmethod
    def _disconnect_sync(self) -> None: ...

    @abstractmethod
    def _list_tables_sync(self) -> list[str]: ...

    @abstractmethod
    def _describe_fields_sync(self, table_name: str) -> list[FieldDescriptor]: ...

    @abstractmethod
    def _count_rows_sync(self, table_name: str) -> int: ...

    @abstractmethod
    def _fetch_page_sync(self, table_name: str, limit: int, offset: int) -> RowBatch: ...

    @abstractmethod
    def _insert_sync(self, table_name: str, columns: list[str], values: list[tuple]) -> None: ...

    @abstractmethod
    def _execute_sync(self, sql: str, params: tuple | None) -> list[Row]: ...
