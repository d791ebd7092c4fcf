"""
core/analyzer.py
----------------
Read-only sensitivity analysis of a source database.

For every requested table the schema is described and the classifier's
``should_anonymize`` decision is evaluated for each field, independent of any
user-supplied anonymize/exclude lists.  The result is an advisory report; it
never touches a destination and never alters pipeline behaviour.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from connectors.base import BaseConnector
from core.anonymizer import HeuristicAnonymizer
from errors import ConnectorError, SchemaError
from logger import get_logger
from models.schema import SemanticType

log = get_logger(__name__)

SENSITIVE_MARKER = "[!]"
SAFE_MARKER = "[ ]"


@dataclass(frozen=True)
class FieldReport:
    name: str
    type: SemanticType
    nullable: bool
    sensitive: bool


@dataclass
class TableReport:
    name: str
    row_count: int | None
    fields: list[FieldReport] = field(default_factory=list)

    @property
    def sensitive_fields(self) -> list[FieldReport]:
        return [f for f in self.fields if f.sensitive]

    @property
    def sensitive_count(self) -> int:
        return len(self.sensitive_fields)


class AnalysisReporter:
    """
    Flags potentially sensitive fields in a connected source database.

    Example::

        reporter = AnalysisReporter(source)
        reports = await reporter.analyze()
        print(format_report(reports))
    """

    def __init__(
        self,
        source: BaseConnector,
        classifier: HeuristicAnonymizer | None = None,
    ) -> None:
        self._source = source
        self._classifier = classifier or HeuristicAnonymizer()

    async def analyze_table(self, table_name: str) -> TableReport:
        try:
            table = await self._source.describe_table(table_name)
        except ConnectorError as exc:
            raise SchemaError(table_name, "describe", str(exc)) from exc

        report = TableReport(
            name=table.name,
            row_count=table.row_count,
            fields=[
                FieldReport(
                    name=f.name,
                    type=f.type,
                    nullable=f.nullable,
                    sensitive=self._classifier.should_anonymize(f.name, f.type),
                )
                for f in table.fields
            ],
        )
        log.info(
            "Analyzed '%s': %d fields, %d flagged",
            table_name, len(report.fields), report.sensitive_count,
        )
        return report

    async def analyze(self, tables: Iterable[str] | None = None) -> list[TableReport]:
        """Analyze *tables* in order, or every source table when omitted."""
        names = list(tables) if tables else await self._source.list_tables()
        return [await self.analyze_table(name) for name in names]


def format_report(reports: Iterable[TableReport]) -> str:
    """Render reports as the plain-text block printed by ``analyze``."""
    lines = ["Database Analysis Report", "=" * 50]
    for report in reports:
        rows = report.row_count if report.row_count is not None else "unknown"
        lines.append("")
        lines.append(f"Table: {report.name}")
        lines.append(f"Rows: {rows}")
        lines.append("Fields:")
        for f in report.fields:
            marker = SENSITIVE_MARKER if f.sensitive else SAFE_MARKER
            lines.append(f"  {marker} {f.name} ({f.type.value})")
        if report.sensitive_count:
            lines.append("")
            lines.append(f"{report.sensitive_count} potentially sensitive fields detected")
            lines.append("Consider anonymizing these fields during migration")
        else:
            lines.append("No sensitive fields detected")
    return "\n".join(lines)
