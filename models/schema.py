"""
models/schema.py
----------------
Engine-agnostic table and row models.

Design Decision:
    Connectors describe their tables in terms of :class:`SemanticType`, a
    closed seven-member vocabulary, so that DDL for any destination engine can
    be generated from any source engine without pairwise type tables.
    Row values crossing the engine boundary are restricted to the
    :data:`RowValue` union; every consumer (classifier, DDL builder, insert
    path) only has to handle those kinds.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Union


class SemanticType(str, Enum):
    """Shared column type vocabulary used for cross-engine table creation."""
    INTEGER = "integer"
    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    JSON = "json"
    BINARY = "binary"


# Values a connector may hand to (or receive from) the core.
# dict / list carry structured JSON values; date/datetime/time carry temporal ones.
RowValue = Union[
    None, bool, int, float, Decimal, str, bytes, date, datetime, time, dict, list
]
Row = dict[str, RowValue]
RowBatch = list[Row]


@dataclass(frozen=True)
class FieldDescriptor:
    """
    One column of a table, described in engine-agnostic terms.

    Attributes:
        name:      Column name, unique within its table.
        type:      Normalised :class:`SemanticType`.
        nullable:  Whether NULL is allowed.
        default:   Engine-native default literal, passed through verbatim
                   into destination DDL. ``None`` means "no default".
    """
    name: str
    type: SemanticType
    nullable: bool = True
    default: Any = None


@dataclass
class TableDescriptor:
    """
    A table's ordered field list plus an advisory row count.

    Field order is significant and is preserved into destination DDL and
    into every row produced for the table.  ``row_count`` is a best-effort
    snapshot (``None`` when unknown) used only for progress percentages.
    """
    name: str
    fields: list[FieldDescriptor] = field(default_factory=list)
    row_count: int | None = None

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    def get_field(self, name: str) -> FieldDescriptor | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def without_fields(self, names: set[str] | frozenset[str]) -> "TableDescriptor":
        """Return a copy with *names* removed, keeping the original order."""
        return TableDescriptor(
            name=self.name,
            fields=[f for f in self.fields if f.name not in names],
            row_count=self.row_count,
        )
