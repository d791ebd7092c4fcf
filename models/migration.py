"""
models/migration.py
-------------------
Typed models describing one migration run: endpoints, per-table options and
progress events.

Design Decision:
    Plain dataclasses keep these models free of any parsing concerns.  File
    and URL parsing (and the pydantic validation that goes with it) lives in
    ``core.config_parser``; the invariants that must hold however a spec is
    built (required table name, non-negative batch size) are enforced here in
    ``__post_init__``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from errors import ConfigurationError


class EngineKind(str, Enum):
    """Closed set of supported database engines."""
    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    SQLITE = "sqlite"

    @property
    def is_embedded(self) -> bool:
        return self is EngineKind.SQLITE

    @property
    def default_port(self) -> int | None:
        return _DEFAULT_PORTS.get(self)


_DEFAULT_PORTS = {
    EngineKind.MYSQL: 3306,
    EngineKind.POSTGRESQL: 5432,
}


@dataclass(frozen=True)
class DatabaseEndpoint:
    """
    Connection descriptor for one database.

    Networked engines use ``host``/``port``/``database``/credentials; the
    embedded engine uses ``file`` (falling back to ``database``).
    """
    engine: EngineKind
    host: str | None = None
    port: int | None = None
    database: str | None = None
    username: str | None = None
    password: str | None = field(default=None, repr=False)
    file: str | None = None
    ssl: bool = False

    @property
    def path(self) -> str | None:
        """File path for embedded engines."""
        return self.file or self.database

    @property
    def display_name(self) -> str:
        """Human-readable location without credentials."""
        if self.engine.is_embedded:
            return f"{self.engine.value}:{self.path}"
        port = f":{self.port}" if self.port else ""
        return f"{self.engine.value}://{self.host}{port}/{self.database}"


@dataclass(frozen=True)
class TableMigrationSpec:
    """
    User-supplied options for migrating one table.

    Attributes:
        name:             Source (and destination) table name.
        anonymize_fields: Fields to mask even if the heuristics would not.
        exclude_fields:   Fields dropped from destination schema and rows.
        batch_size:       Rows per batch; ``None`` or 0 means "use the run's
                          batch size".
    """
    name: str
    anonymize_fields: frozenset[str] = frozenset()
    exclude_fields: frozenset[str] = frozenset()
    batch_size: int | None = None

    def __post_init__(self) -> None:
        if not self.name or not str(self.name).strip():
            raise ConfigurationError("Table name is required.")
        if self.batch_size is not None and self.batch_size < 0:
            raise ConfigurationError(
                f"Batch size for table '{self.name}' must be non-negative, "
                f"got {self.batch_size}."
            )
        # Accept any iterable of names from callers.
        object.__setattr__(self, "anonymize_fields", frozenset(self.anonymize_fields))
        object.__setattr__(self, "exclude_fields", frozenset(self.exclude_fields))

    def resolve_batch_size(self, default: int) -> int:
        return self.batch_size or default


@dataclass
class MigrationSpec:
    """
    Everything needed for one migration run.

    An empty ``tables`` list means "discover all source tables at run time";
    discovered tables receive ``anonymize_fields`` / ``exclude_fields``.
    """
    source: DatabaseEndpoint
    destination: DatabaseEndpoint
    tables: list[TableMigrationSpec] = field(default_factory=list)
    batch_size: int = 1000
    parallel: int = 1
    anonymize_fields: frozenset[str] = frozenset()
    exclude_fields: frozenset[str] = frozenset()

    def spec_for_discovered(self, table_name: str) -> TableMigrationSpec:
        return TableMigrationSpec(
            name=table_name,
            anonymize_fields=self.anonymize_fields,
            exclude_fields=self.exclude_fields,
        )


@dataclass(frozen=True)
class ProgressEvent:
    """Emitted once per written batch. ``total_rows`` is 0 when unknown."""
    table_name: str
    rows_processed: int
    total_rows: int = 0

    @property
    def percentage(self) -> float:
        if self.total_rows <= 0:
            return 0.0
        return round(self.rows_processed / self.total_rows * 100, 2)
