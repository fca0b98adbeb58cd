"""Foreign key notes: belongs_to associations with no database-level constraint."""
from analyzers.base import Analyzer
from core.db_connector import split_qualified_name
from core.note_codes import FK_CONSTRAINT, note
from models.descriptor import AssociationDescriptor


class ForeignKeyAnalyzer(Analyzer):
    def analyze(self) -> list[str]:
        if not self.table or not self.supports_foreign_keys:
            return []
        notes = []
        for assoc in self.model.associations_of("belongs_to"):
            if assoc.polymorphic or not assoc.foreign_key or not self.has_column(assoc.foreign_key):
                continue
            if not self.has_constraint(assoc):
                notes.append(note(assoc.foreign_key, FK_CONSTRAINT))
        return notes

    def has_constraint(self, assoc: AssociationDescriptor) -> bool:
        target = split_qualified_name(assoc.target_table)[1] if assoc.target_table else None
        for fk in self.table.foreign_keys:
            if assoc.foreign_key not in fk.columns:
                continue
            if target is None or split_qualified_name(fk.referred_table)[1] == target:
                return True
        return False
