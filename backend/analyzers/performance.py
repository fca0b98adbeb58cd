"""Performance notes: frequently filtered columns that have no index."""
from analyzers.base import Analyzer, matches
from core.note_codes import INDEX, note
from models.table import ColumnMetadata

QUERIED_PATTERN = r"(email|username|slug|token|code|status|state|type)"
QUERIED_SUFFIXES = ("_type", "_kind", "_category")
SCOPE_PATTERN = r"(scope|tenant|company|organization|account|workspace)"
UUID_NAME_PATTERN = r"(uuid|guid)"
UUID_REFERENCE_PATTERN = r"(identifier|reference|token)"
UUID_SUFFIXES = ("_id", "_uuid", "_guid")


class PerformanceAnalyzer(Analyzer):
    def analyze(self) -> list[str]:
        columns = [c for c in self.columns if not c.primary_key]
        candidates = [c for c in columns if self.commonly_queried(c)]
        candidates += [c for c in columns if self.scope_column(c)]
        candidates += [c for c in columns if self.uuid_reference(c)]
        return [note(c.name, INDEX) for c in candidates if not self.indexed(c.name)]

    @staticmethod
    def commonly_queried(col: ColumnMetadata) -> bool:
        return matches(QUERIED_PATTERN, col.name) or col.name.endswith(QUERIED_SUFFIXES)

    @staticmethod
    def scope_column(col: ColumnMetadata) -> bool:
        return matches(SCOPE_PATTERN, col.name) and col.name.endswith("_id")

    @staticmethod
    def uuid_reference(col: ColumnMetadata) -> bool:
        if col.name == "id":
            return False
        is_uuid = col.logical_type == "uuid" or (
            col.logical_type == "string" and matches(UUID_NAME_PATTERN, col.name)
        )
        if not is_uuid:
            return False
        return col.name.endswith(UUID_SUFFIXES) or matches(UUID_REFERENCE_PATTERN, col.name)
