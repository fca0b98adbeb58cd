"""Relationship notes: unlinked inverses, N+1 loading and missing counter caches."""
from analyzers.base import Analyzer
from core.note_codes import COUNTER_CACHE, INVERSE_OF, N_PLUS_ONE, note
from models.descriptor import AssociationDescriptor

LAZY_SELECT = ("select", True)


class AssociationAnalyzer(Analyzer):
    def analyze(self) -> list[str]:
        notes = []
        for assoc in self.model.associations:
            if self.missing_inverse(assoc):
                notes.append(note(assoc.name, INVERSE_OF))
        for assoc in self.model.associations:
            if self.n_plus_one(assoc):
                notes.append(note(assoc.name, N_PLUS_ONE))
        for assoc in self.model.associations_of("belongs_to"):
            if self.missing_counter_cache(assoc):
                notes.append(note(assoc.name, COUNTER_CACHE))
        return notes

    @staticmethod
    def missing_inverse(assoc: AssociationDescriptor) -> bool:
        if assoc.polymorphic or assoc.options.get("viewonly"):
            return False
        return assoc.inverse_of is None and assoc.bidirectional

    @staticmethod
    def n_plus_one(assoc: AssociationDescriptor) -> bool:
        if assoc.kind not in ("has_many", "habtm"):
            return False
        if assoc.options.get("lazy", "select") not in LAZY_SELECT:
            return False
        return not assoc.options.get("order_by") and not assoc.options.get("limit")

    def missing_counter_cache(self, assoc: AssociationDescriptor) -> bool:
        if assoc.polymorphic or assoc.options.get("counter_cache"):
            return False
        if "has_many" not in assoc.reverse_kinds or not assoc.target_columns:
            return False
        expected = f"{self.inflector.tableize(self.model.name)}_count"
        return expected not in assoc.target_columns
