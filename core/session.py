"""
core/session.py
---------------
Library entry point: one :class:`MigrationSession` owns the source and
destination connectors of a :class:`MigrationSpec` for the duration of a run.

Design Decisions:
    * Connectors are created through an injectable factory so tests (and
      embedding applications) can supply their own implementations.
    * The source is always opened read-only; analysis needs only the source
      (``connect(source_only=True)``).
    * Connecting is all-or-nothing: if the destination cannot be reached the
      already-open source is closed again and no table is touched.
    * Stop-versus-continue after a failed table is decided here, by the
      caller of :meth:`migrate`, never inside the pipeline.
"""
from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable

from connectors import create_connector
from connectors.base import BaseConnector
from core.analyzer import AnalysisReporter, TableReport
from core.config_parser import load_config_file, parse_database_url
from core.pipeline import MigrationPipeline, ProgressCallback, TableResult
from errors import NotConnectedError
from logger import get_logger
from models.migration import MigrationSpec, TableMigrationSpec
from models.schema import TableDescriptor

log = get_logger(__name__)

ConnectorFactory = Callable[..., BaseConnector]


class MigrationSession:
    """
    Connect, inspect and migrate according to one :class:`MigrationSpec`.

    Example::

        spec = load_config_file("anonymigrate.yaml")
        async with MigrationSession(spec) as session:
            results = await session.migrate()
    """

    def __init__(
        self,
        spec: MigrationSpec,
        progress_cb: ProgressCallback | None = None,
        connector_factory: ConnectorFactory = create_connector,
    ) -> None:
        self.spec = spec
        self._progress_cb = progress_cb
        self._factory = connector_factory
        self._source: BaseConnector | None = None
        self._destination: BaseConnector | None = None

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_config(cls, path: str | Path, **kwargs) -> "MigrationSession":
        return cls(load_config_file(path), **kwargs)

    @classmethod
    def from_urls(
        cls,
        source_url: str,
        destination_url: str,
        tables: Iterable[TableMigrationSpec] = (),
        **kwargs,
    ) -> "MigrationSession":
        spec = MigrationSpec(
            source=parse_database_url(source_url),
            destination=parse_database_url(destination_url),
            tables=list(tables),
        )
        return cls(spec, **kwargs)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> "MigrationSession":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.disconnect()
        return False

    @property
    def is_connected(self) -> bool:
        return self._source is not None and self._destination is not None

    async def connect(self, source_only: bool = False) -> None:
        """
        Open the source (read-only), then the destination.

        Args:
            source_only: Open only the source; enough for listing,
                         describing and analysing tables.

        Raises:
            DatabaseConnectionError: If either endpoint is unreachable.  The
                                     source is closed again when only the
                                     destination fails.
        """
        if self._source is None:
            source = self._factory(self.spec.source, read_only=True)
            await source.connect()
            self._source = source
        if source_only or self._destination is not None:
            return
        destination = self._factory(self.spec.destination)
        try:
            await destination.connect()
        except Exception:
            source, self._source = self._source, None
            await source.disconnect()
            raise
        self._destination = destination

    async def disconnect(self) -> None:
        source, destination = self._source, self._destination
        self._source = self._destination = None
        if source is not None:
            await source.disconnect()
        if destination is not None:
            await destination.disconnect()

    def _require_source(self) -> BaseConnector:
        if self._source is None:
            raise NotConnectedError("Not connected. Call connect() first.")
        return self._source

    def _require_connection(self) -> tuple[BaseConnector, BaseConnector]:
        if self._source is None or self._destination is None:
            raise NotConnectedError("Not connected. Call connect() first.")
        return self._source, self._destination

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def list_source_tables(self) -> list[str]:
        source = self._require_source()
        return await source.list_tables()

    async def describe_source_table(self, table_name: str) -> TableDescriptor:
        source = self._require_source()
        return await source.describe_table(table_name)

    def _pipeline(self) -> MigrationPipeline:
        source, destination = self._require_connection()
        return MigrationPipeline(
            source,
            destination,
            progress_cb=self._progress_cb,
            batch_size=self.spec.batch_size,
            parallel=self.spec.parallel,
        )

    async def resolve_tables(self) -> list[TableMigrationSpec]:
        """Configured tables, or every source table when none are configured."""
        if self.spec.tables:
            return list(self.spec.tables)
        names = await self.list_source_tables()
        log.info("Discovered %d source tables.", len(names))
        return [self.spec.spec_for_discovered(name) for name in names]

    async def migrate(self, stop_on_error: bool = True) -> list[TableResult]:
        """Migrate every configured (or discovered) table."""
        pipeline = self._pipeline()
        tables = await self.resolve_tables()
        results = await pipeline.process_all_tables(tables, stop_on_error=stop_on_error)
        failed = [r for r in results if not r.success]
        log.info(
            "Migration finished: %d succeeded, %d failed.",
            len(results) - len(failed), len(failed),
        )
        return results

    async def migrate_table(
        self,
        table_name: str,
        anonymize_fields: Iterable[str] = (),
        exclude_fields: Iterable[str] = (),
        batch_size: int | None = None,
    ) -> TableResult:
        """
        Migrate a single table.

        Raises:
            SchemaError / DataError: The table failed.
        """
        spec = TableMigrationSpec(
            name=table_name,
            anonymize_fields=frozenset(anonymize_fields),
            exclude_fields=frozenset(exclude_fields),
            batch_size=batch_size,
        )
        return await self._pipeline().process_table(spec)

    async def analyze(self, tables: Iterable[str] | None = None) -> list[TableReport]:
        source = self._require_source()
        return await AnalysisReporter(source).analyze(tables)
