"""
core/type_normalizer.py
-----------------------
Maps vendor column type strings onto the shared :class:`SemanticType`
vocabulary.

Matching is case-insensitive substring containment against an ordered rule
table; the first rule that matches wins, and anything unmatched is a string.

    "int"/"serial"                          → integer
    "varchar"/"text"/"char"                 → string
    "decimal"/"numeric"/"float"/"double"    → number
    "date"/"time"/"timestamp"               → date
    "bool"                                  → boolean
    "json"                                  → json
    "blob"/"bytea"                          → binary

Design Decision:
    Pure function over data, like the rest of ``core``.  Rule order is part
    of the contract: "timestamptz_int" is an integer because the integer rule
    comes first, and destination DDL for every engine relies on that exact
    mapping.  There is deliberately no "most specific match" logic.
"""
from __future__ import annotations

from models.schema import SemanticType

_TYPE_RULES: tuple[tuple[tuple[str, ...], SemanticType], ...] = (
    (("int", "serial"), SemanticType.INTEGER),
    (("varchar", "text", "char"), SemanticType.STRING),
    (("decimal", "numeric", "float", "double"), SemanticType.NUMBER),
    (("date", "time", "timestamp"), SemanticType.DATE),
    (("bool",), SemanticType.BOOLEAN),
    (("json",), SemanticType.JSON),
    (("blob", "bytea"), SemanticType.BINARY),
)


def normalize_type(native_type: str | None) -> SemanticType:
    """
    Classify a native column type.

    Examples::

        normalize_type("BIGINT UNSIGNED")              →  INTEGER
        normalize_type("character varying")            →  STRING
        normalize_type("timestamp without time zone")  →  DATE
        normalize_type("uuid")                         →  STRING (fallback)

    Never raises; ``None`` and empty strings map to STRING.
    """
    lowered = (native_type or "").lower()
    for fragments, semantic in _TYPE_RULES:
        if any(fragment in lowered for fragment in fragments):
            return semantic
    return SemanticType.STRING
