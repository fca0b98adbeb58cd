"""Advisory-notes providers."""
from typing import Optional

from analyzers.association import AssociationAnalyzer
from analyzers.best_practices import BestPracticesAnalyzer
from analyzers.column import ColumnAnalyzer
from analyzers.foreign_key import ForeignKeyAnalyzer
from analyzers.index import IndexAnalyzer
from analyzers.performance import PerformanceAnalyzer
from analyzers.view_notes import ViewNotesAnalyzer
from core.extensions import ExtensionRegistry
from core.session import ReflectionSession
from models.annotation import NotesResult
from models.descriptor import ModelDescriptor
from providers.base import NotesProvider


class IndexNotesProvider(NotesProvider):
    name = "index_notes"
    analyzer_class = IndexAnalyzer


class ForeignKeyNotesProvider(NotesProvider):
    name = "foreign_key_notes"
    analyzer_class = ForeignKeyAnalyzer


class AssociationNotesProvider(NotesProvider):
    name = "association_notes"
    analyzer_class = AssociationAnalyzer


class ColumnNotesProvider(NotesProvider):
    name = "column_notes"
    analyzer_class = ColumnAnalyzer


class PerformanceNotesProvider(NotesProvider):
    name = "performance_notes"
    analyzer_class = PerformanceAnalyzer


class BestPracticesNotesProvider(NotesProvider):
    name = "best_practices_notes"
    analyzer_class = BestPracticesAnalyzer


class ViewNotesProvider(NotesProvider):
    name = "view_notes"
    analyzer_class = ViewNotesAnalyzer

    def applicable(self, model: ModelDescriptor, session: ReflectionSession) -> bool:
        return not model.abstract and session.is_view

    def build_analyzer(self, model: ModelDescriptor, session: ReflectionSession) -> ViewNotesAnalyzer:
        nested = [dep for dep in session.view.dependencies if session.is_view_name(dep)]
        return ViewNotesAnalyzer(
            model, table=session.table, view=session.view, inflector=session.inflector, nested_views=nested,
        )


class ExtensionNotesProvider(NotesProvider):
    name = "extension_notes"

    def __init__(self, extensions: Optional[ExtensionRegistry] = None):
        self.extensions = extensions if extensions is not None else ExtensionRegistry.from_settings()

    def applicable(self, model: ModelDescriptor, session: ReflectionSession) -> bool:
        return bool(self.extensions.extensions) and super().applicable(model, session)

    def process(self, model: ModelDescriptor, session: ReflectionSession) -> Optional[NotesResult]:
        notes = self.extensions.notes(model, session)
        return NotesResult(notes=notes) if notes else None
