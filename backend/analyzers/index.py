"""
Index notes.

- unindexed foreign key columns
- polymorphic belongs_to without a (type, id) composite index
- indexes that are a prefix of another index with the same uniqueness
- common multi-column query patterns without a composite index
"""
from itertools import combinations

from analyzers.base import Analyzer
from core.note_codes import COMP_INDEX, INDEX, POLY_INDEX, REDUND_IDX, note
from models.descriptor import AssociationDescriptor

COMMON_PAIRS = [("user_id", "created_at"), ("status", "created_at")]


class IndexAnalyzer(Analyzer):
    def analyze(self) -> list[str]:
        if not self.table:
            return []
        notes = self.missing_fk_indexes()
        notes += self.missing_polymorphic_indexes()
        notes += self.redundant_indexes()
        notes += self.missing_composite_indexes()
        return notes

    def missing_fk_indexes(self) -> list[str]:
        candidates = [a.foreign_key for a in self.belongs_to() if a.foreign_key]
        for fk in self.table.foreign_keys:
            if len(fk.columns) == 1:
                candidates.append(fk.columns[0])
        notes = []
        for col in candidates:
            if self.has_column(col) and not self.indexed(col):
                notes.append(note(col, INDEX))
        return notes

    def missing_polymorphic_indexes(self) -> list[str]:
        notes = []
        for assoc in self.model.associations_of("belongs_to"):
            if not assoc.polymorphic:
                continue
            type_col, id_col = f"{assoc.name}_type", f"{assoc.name}_id"
            if not (self.table.has_composite_index([type_col, id_col])
                    or self.table.has_composite_index([id_col, type_col])):
                notes.append(note(assoc.name, POLY_INDEX))
        return notes

    def redundant_indexes(self) -> list[str]:
        notes = []
        indexes = self.table.indexes
        for i, idx in enumerate(indexes):
            for j, other in enumerate(indexes):
                if i == j or idx.unique != other.unique or len(idx.columns) > len(other.columns):
                    continue
                if other.columns[:len(idx.columns)] != idx.columns:
                    continue
                # identical column lists: only the later one is redundant
                if len(idx.columns) == len(other.columns) and i < j:
                    continue
                notes.append(note(idx.name, REDUND_IDX))
                break
        return notes

    def missing_composite_indexes(self) -> list[str]:
        pairs: list[tuple[str, str]] = []
        for a, b in combinations(self.belongs_to(), 2):
            if a.foreign_key and b.foreign_key and self._related(a, b):
                pairs.append(tuple(sorted((a.foreign_key, b.foreign_key))))
        for pair in COMMON_PAIRS:
            if all(self.has_column(c) for c in pair):
                pairs.append(pair)

        notes = []
        for pair in pairs:
            if not all(self.has_column(c) for c in pair):
                continue
            if self.table.has_composite_index(list(pair)) or self.table.has_composite_index(list(reversed(pair))):
                continue
            notes.append(note("+".join(pair), COMP_INDEX))
        return notes

    def belongs_to(self) -> list[AssociationDescriptor]:
        return [a for a in self.model.associations_of("belongs_to") if not a.polymorphic]

    @staticmethod
    def _related(a: AssociationDescriptor, b: AssociationDescriptor) -> bool:
        if a.target_type == b.target_type:
            return True
        return _leading_word(a.target_type) == _leading_word(b.target_type)


def _leading_word(class_name: str) -> str:
    """First capitalized word of a class name ("Order" for both "Order" and "OrderItem")."""
    for i, ch in enumerate(class_name[1:], start=1):
        if ch.isupper():
            return class_name[:i]
    return class_name
