"""Conventions: timestamps, soft-delete indexes, STI type columns and large text storage."""
from analyzers.base import Analyzer
from core.note_codes import INDEX, NO_TIMESTAMPS, PARTIAL_TS, STI_NOT_NULL, STORAGE, note

SOFT_DELETE_COLUMNS = ("deleted_at", "archived_at", "discarded_at")


class BestPracticesAnalyzer(Analyzer):
    def analyze(self) -> list[str]:
        if not self.table:
            return []
        notes = self.timestamps()
        for name in SOFT_DELETE_COLUMNS:
            if self.has_column(name) and not self.indexed(name):
                notes.append(note(name, INDEX))
        notes += self.sti_type_column()
        notes += [note(c.name, STORAGE) for c in self.columns if c.logical_type == "text"]
        return notes

    def timestamps(self) -> list[str]:
        present = [self.has_column("created_at"), self.has_column("updated_at")]
        if not any(present):
            return [note(None, NO_TIMESTAMPS)]
        if not all(present):
            return [note(None, PARTIAL_TS)]
        return []

    def sti_type_column(self) -> list[str]:
        info = self.model.inheritance
        if not info or info.strategy != "single" or not info.type_column:
            return []
        col = self.table.column(info.type_column)
        if col is None:
            return []
        notes = []
        if not self.indexed(col.name):
            notes.append(note(col.name, INDEX))
        if col.nullable:
            notes.append(note(col.name, STI_NOT_NULL))
        return notes
