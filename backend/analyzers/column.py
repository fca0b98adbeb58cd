"""Column-level notes: nullability, defaults, string limits and type choices."""
from analyzers.base import Analyzer, matches
from core.note_codes import DEFAULT, LIMIT, NOT_NULL, USE_DECIMAL, USE_INTEGER, note
from models.table import ColumnMetadata

TIMESTAMP_COLUMNS = {"created_at", "updated_at", "deleted_at"}
OPTIONAL_PATTERN = r"(optional|nullable|maybe|perhaps)"
OPTIONAL_SUFFIXES = ("_id", "_at", "_on", "_date")
OPTIONAL_PREFIXES = ("last_", "next_", "previous_")
STATUS_PATTERN = r"^(status|state|workflow_state)$"
MONEY_PATTERN = r"(price|cost|amount|fee|rate|salary|budget|revenue|profit|balance)"
COUNTER_SUFFIXES = ("_count", "_counter", "_total")


class ColumnAnalyzer(Analyzer):
    def analyze(self) -> list[str]:
        columns = [c for c in self.columns if not c.generated]
        notes = [note(c.name, NOT_NULL) for c in columns if self.should_be_not_null(c)]
        notes += [note(c.name, DEFAULT) for c in columns if self.needs_default(c)]
        notes += [note(c.name, LIMIT) for c in columns if c.logical_type == "string" and c.limit is None]
        for col in columns:
            if matches(MONEY_PATTERN, col.name) and col.logical_type == "float":
                notes.append(note(col.name, USE_DECIMAL))
            if col.name.endswith(COUNTER_SUFFIXES) and col.logical_type != "integer":
                notes.append(note(col.name, USE_INTEGER))
        return notes

    @staticmethod
    def should_be_not_null(col: ColumnMetadata) -> bool:
        if not col.nullable or col.primary_key:
            return False
        name = col.name.lower()
        if name in TIMESTAMP_COLUMNS:
            return False
        if name.endswith(OPTIONAL_SUFFIXES) or name.startswith(OPTIONAL_PREFIXES):
            return False
        return not matches(OPTIONAL_PATTERN, name)

    @staticmethod
    def needs_default(col: ColumnMetadata) -> bool:
        if col.default is not None:
            return False
        if col.logical_type == "boolean":
            return True
        return matches(STATUS_PATTERN, col.name)
