"""core/__init__.py"""
from core.type_normalizer import normalize_type
from core.anonymizer import HeuristicAnonymizer, select_mask
from core.config_parser import (
    parse_database_url,
    validate_config,
    load_config_file,
    find_default_config,
    build_migration_spec,
)
from core.pipeline import MigrationPipeline, TableResult, TableState, ProgressCallback
from core.analyzer import AnalysisReporter, TableReport, FieldReport, format_report

__all__ = [
    "normalize_type",
    "HeuristicAnonymizer",
    "select_mask",
    "parse_database_url",
    "validate_config",
    "load_config_file",
    "find_default_config",
    "build_migration_spec",
    "MigrationPipeline",
    "TableResult",
    "TableState",
    "ProgressCallback",
    "AnalysisReporter",
    "TableReport",
    "FieldReport",
    "format_report",
]
