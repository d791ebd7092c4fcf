"""
core/pipeline.py
----------------
Streaming migration pipeline: describe → create → stream/transform/write.

Per table the pipeline moves through::

    DESCRIBING → CREATING_DESTINATION → STREAMING → COMPLETED
                                   ╲          ╲
                                    → FAILED   → FAILED

Design Decisions:
    * The pipeline is a plain class with injected dependencies (source and
      destination connectors, classifier, progress callback).  No global state.
    * Progress is reported via a callback receiving a :class:`ProgressEvent`
      after every written batch, so CLI and library callers can display
      updates without coupling this module to any output format.
    * Reads and writes are strictly request/response: the next batch is not
      requested until the current one has been written.  Memory use is one
      batch regardless of table size.
    * Classification decisions are computed once per table (they depend only
      on field name and type) and applied to every row.
    * Connections are owned by the caller; the pipeline never closes them.
    * Nothing is rolled back: batches written before a failure persist.
"""
from __future__ import annotations

import asyncio
import time
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable

from config import CONFIG
from connectors.base import BaseConnector
from core.anonymizer import HeuristicAnonymizer
from errors import ConnectorError, DataError, MigrationError, SchemaError
from logger import get_logger
from models.migration import ProgressEvent, TableMigrationSpec
from models.schema import FieldDescriptor, Row, TableDescriptor

log = get_logger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]


class TableState(str, Enum):
    DESCRIBING = "describing"
    CREATING_DESTINATION = "creating_destination"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FieldPlan:
    """One retained field and whether its values are masked."""
    field: FieldDescriptor
    anonymize: bool
    forced: bool = False


@dataclass
class TableResult:
    """Outcome of migrating one table."""
    table_name: str
    state: TableState
    rows_processed: int = 0
    total_rows: int = 0
    anonymized_fields: list[str] = field(default_factory=list)
    excluded_fields: list[str] = field(default_factory=list)
    error: MigrationError | None = None
    elapsed_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.state == TableState.COMPLETED

    def __str__(self) -> str:
        status = "OK" if self.success else "FAILED"
        parts = [f"[{status}] {self.table_name}: {self.rows_processed} rows"]
        if self.anonymized_fields:
            parts.append(f"  Anonymized: {', '.join(self.anonymized_fields)}")
        if self.excluded_fields:
            parts.append(f"  Excluded: {', '.join(self.excluded_fields)}")
        if self.error:
            parts.append(f"  Error: {self.error}")
        return "\n".join(parts)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class MigrationPipeline:
    """
    Copies tables from *source* to *destination*, masking sensitive fields.

    Args:
        source:       Connected source connector.
        destination:  Connected destination connector.
        classifier:   Field classifier (defaults to :class:`HeuristicAnonymizer`).
        progress_cb:  Optional callback invoked with a :class:`ProgressEvent`
                      after every written batch.
        batch_size:   Default rows per batch (per-table specs may override).
        parallel:     Maximum tables processed concurrently.  Capped at 1 when
                      either connector cannot be used concurrently.

    Example::

        pipeline = MigrationPipeline(src, dst, batch_size=500)
        result = await pipeline.process_table(TableMigrationSpec("users"))
    """

    def __init__(
        self,
        source: BaseConnector,
        destination: BaseConnector,
        classifier: HeuristicAnonymizer | None = None,
        progress_cb: ProgressCallback | None = None,
        batch_size: int | None = None,
        parallel: int | None = None,
    ) -> None:
        self._source = source
        self._destination = destination
        self._classifier = classifier or HeuristicAnonymizer()
        self._progress_cb = progress_cb or self._default_progress
        self._batch_size = batch_size or CONFIG.migration.batch_size
        self._parallel = max(1, parallel or CONFIG.migration.parallel)
        self._create_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @staticmethod
    def _default_progress(event: ProgressEvent) -> None:
        log.info(
            "%s: %d/%s rows",
            event.table_name, event.rows_processed, event.total_rows or "?",
        )

    @property
    def effective_parallelism(self) -> int:
        if not (self._source.supports_concurrency and self._destination.supports_concurrency):
            return 1
        return self._parallel

    # ------------------------------------------------------------------
    # Planning / row transformation
    # ------------------------------------------------------------------

    def plan_fields(self, table: TableDescriptor, spec: TableMigrationSpec) -> list[FieldPlan]:
        """
        Decide, once per table, which retained fields are masked.

        A field is masked when the user listed it in ``anonymize_fields`` or
        when the classifier's heuristics flag it.  Excluded fields are dropped
        and field order is preserved.
        """
        plans: list[FieldPlan] = []
        for f in table.fields:
            if f.name in spec.exclude_fields:
                continue
            forced = f.name in spec.anonymize_fields
            heuristic = self._classifier.should_anonymize(f.name, f.type)
            plans.append(FieldPlan(field=f, anonymize=forced or heuristic, forced=forced))

        unknown = spec.anonymize_fields - {p.field.name for p in plans}
        if unknown:
            log.warning(
                "Anonymize fields not present in '%s' (or excluded): %s",
                table.name, ", ".join(sorted(unknown)),
            )
        return plans

    def transform_row(self, row: Row, plans: Iterable[FieldPlan]) -> Row:
        """Project *row* onto the planned fields, masking where required."""
        out: Row = {}
        for plan in plans:
            name = plan.field.name
            value = row.get(name)
            if plan.anonymize:
                value = self._classifier.anonymize_field(
                    name, value, plan.field.type, force=plan.forced
                )
            out[name] = value
        return out

    # ------------------------------------------------------------------
    # Per-table state machine
    # ------------------------------------------------------------------

    async def process_table(self, spec: TableMigrationSpec) -> TableResult:
        """
        Migrate one table.

        Returns:
            A COMPLETED :class:`TableResult`.

        Raises:
            SchemaError: Describing the source or creating the destination
                         table failed.
            DataError:   Reading or writing a batch failed.  Rows written
                         before the failure remain in the destination.
        """
        result = TableResult(table_name=spec.name, state=TableState.DESCRIBING)
        await self._execute(spec, result)
        return result

    async def _execute(self, spec: TableMigrationSpec, result: TableResult) -> None:
        """Drive *result* through the table states; raises on the failing phase."""
        start = time.monotonic()
        name = spec.name
        batch_size = spec.resolve_batch_size(self._batch_size)

        # --- DESCRIBING ---
        log.info("Describing source table '%s'...", name)
        try:
            source_table = await self._source.describe_table(name)
        except ConnectorError as exc:
            log.error("Failed to describe '%s': %s", name, exc)
            raise SchemaError(name, "describe", str(exc)) from exc

        plans = self.plan_fields(source_table, spec)
        dest_table = source_table.without_fields(spec.exclude_fields)
        result.total_rows = source_table.row_count or 0
        result.anonymized_fields = [p.field.name for p in plans if p.anonymize]
        result.excluded_fields = [
            f.name for f in source_table.fields if f.name in spec.exclude_fields
        ]

        # --- CREATING_DESTINATION ---
        result.state = TableState.CREATING_DESTINATION
        try:
            async with self._create_locks[name]:
                await self._destination.create_table(dest_table)
            log.info("Destination table '%s' ready (%d fields).", name, len(dest_table.fields))
        except ConnectorError as exc:
            log.error("Failed to create destination table '%s': %s", name, exc)
            raise SchemaError(name, "create", str(exc)) from exc

        # --- STREAMING ---
        result.state = TableState.STREAMING
        await self._stream(name, plans, batch_size, result)

        result.state = TableState.COMPLETED
        result.elapsed_seconds = time.monotonic() - start
        log.info(
            "Migration of '%s' finished: %d rows, %.2fs",
            name, result.rows_processed, result.elapsed_seconds,
        )

    async def _stream(
        self, name: str, plans: list[FieldPlan], batch_size: int, result: TableResult
    ) -> None:
        batches = self._source.stream_rows(name, batch_size)
        try:
            while True:
                try:
                    batch = await anext(batches)
                except StopAsyncIteration:
                    break
                except ConnectorError as exc:
                    raise DataError(
                        name, "read", str(exc), rows_processed=result.rows_processed
                    ) from exc
                if not batch:
                    break

                transformed = [self.transform_row(row, plans) for row in batch]
                try:
                    await self._destination.insert_rows(name, transformed)
                except ConnectorError as exc:
                    log.error(
                        "Batch insert failed for '%s' after %d rows: %s",
                        name, result.rows_processed, exc,
                    )
                    raise DataError(
                        name, "insert", str(exc), rows_processed=result.rows_processed
                    ) from exc

                result.rows_processed += len(batch)
                log.debug("Batch written to '%s': %d rows (total %d).",
                          name, len(batch), result.rows_processed)
                self._progress_cb(ProgressEvent(name, result.rows_processed, result.total_rows))
        finally:
            await batches.aclose()

    # ------------------------------------------------------------------
    # Multi-table orchestration
    # ------------------------------------------------------------------

    async def process_all_tables(
        self,
        specs: Iterable[TableMigrationSpec],
        stop_on_error: bool = False,
    ) -> list[TableResult]:
        """
        Migrate *specs* in order and return one result per attempted table.

        Args:
            specs:          Tables to migrate.
            stop_on_error:  When True, no further table is started after the
                            first failure.  When False every table is attempted.

        Returns:
            Results in input order.  Failed tables have state FAILED and carry
            the error; tables never started because of ``stop_on_error`` are
            omitted.

        Raises:
            Exception: Anything other than a MigrationError escaping a table.
                       In parallel mode no further table is started.
        """
        specs = list(specs)
        limit = self.effective_parallelism
        if limit == 1:
            results: list[TableResult] = []
            for spec in specs:
                result = await self._run_table(spec)
                results.append(result)
                if stop_on_error and not result.success:
                    break
            return results

        log.info("Processing %d tables with up to %d in parallel.", len(specs), limit)
        semaphore = asyncio.Semaphore(limit)
        stop = asyncio.Event()

        async def _guarded(spec: TableMigrationSpec) -> TableResult | None:
            async with semaphore:
                if stop.is_set():
                    return None
                try:
                    result = await self._run_table(spec)
                except Exception:
                    stop.set()  # no new tables after an unexpected error
                    raise
                if stop_on_error and not result.success:
                    stop.set()
                return result

        gathered = await asyncio.gather(
            *(_guarded(s) for s in specs), return_exceptions=True
        )
        for item in gathered:
            if isinstance(item, BaseException):
                raise item
        return [r for r in gathered if r is not None]

    async def _run_table(self, spec: TableMigrationSpec) -> TableResult:
        start = time.monotonic()
        result = TableResult(table_name=spec.name, state=TableState.DESCRIBING)
        try:
            await self._execute(spec, result)
        except MigrationError as exc:
            result.state = TableState.FAILED
            result.error = exc
            result.elapsed_seconds = time.monotonic() - start
            if not result.excluded_fields:
                result.excluded_fields = sorted(spec.exclude_fields)
        return result
