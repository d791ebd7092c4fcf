"""
errors.py
---------
Exception taxonomy shared by the connectors, the pipeline and the CLI.

Hierarchy::

    MigrationError
    ├── ConfigurationError        invalid / missing configuration (pre-connect)
    ├── ConnectorError            driver failure inside a connector
    │   ├── NotConnectedError     operation attempted before connect()
    │   └── DatabaseConnectionError   connect() failed
    └── TableError                failure scoped to one table and phase
        ├── SchemaError           describe / create-table failure
        └── DataError             read / insert failure while streaming

Design Decision:
    Table-level errors carry ``table`` and ``phase`` so a multi-table caller
    can report exactly which step failed.  Nothing here retries; retry policy
    belongs to whoever wraps the pipeline calls.
"""
from __future__ import annotations


class MigrationError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(MigrationError):
    """Raised when a migration config, endpoint URL or CLI input is invalid."""


class ConnectorError(MigrationError):
    """Raised for database-level failures reported by a connector."""


class NotConnectedError(ConnectorError):
    """Raised when a connector is used before ``connect()`` succeeded."""


class DatabaseConnectionError(ConnectorError):
    """Raised when a connector cannot establish its connection pool."""


class TableError(MigrationError):
    """A failure scoped to one table and one pipeline phase."""

    def __init__(self, table: str, phase: str, message: str) -> None:
        super().__init__(f"[{table}] {phase} failed: {message}")
        self.table = table
        self.phase = phase


class SchemaError(TableError):
    """Describing the source table or creating the destination table failed."""


class DataError(TableError):
    """Reading or writing a batch failed; earlier batches are not rolled back."""

    def __init__(
        self, table: str, phase: str, message: str, rows_processed: int = 0
    ) -> None:
        super().__init__(table, phase, message)
        self.rows_processed = rows_processed
