"""models/__init__.py"""
from models.schema import (
    SemanticType,
    RowValue,
    Row,
    RowBatch,
    FieldDescriptor,
    TableDescriptor,
)
from models.migration import (
    EngineKind,
    DatabaseEndpoint,
    TableMigrationSpec,
    MigrationSpec,
    ProgressEvent,
)

__all__ = [
    "SemanticType",
    "RowValue",
    "Row",
    "RowBatch",
    "FieldDescriptor",
    "TableDescriptor",
    "EngineKind",
    "DatabaseEndpoint",
    "TableMigrationSpec",
    "MigrationSpec",
    "ProgressEvent",
]
