"""
Content provider contract.

A provider contributes exactly one kind of content for a model: the schema
dump, one named section, or a list of notes. `process` receives the model and
the run's ReflectionSession and returns a ProviderResult or None.
"""
from typing import ClassVar, Literal, Optional

from analyzers.base import Analyzer
from core.session import ReflectionSession
from models.annotation import NotesResult, ProviderResult, SectionResult
from models.descriptor import ModelDescriptor

ProviderType = Literal["schema", "section", "notes"]


class Provider:
    type: ClassVar[ProviderType] = "section"
    name: ClassVar[str] = "provider"

    def applicable(self, model: ModelDescriptor, session: ReflectionSession) -> bool:
        return True

    def process(self, model: ModelDescriptor, session: ReflectionSession) -> Optional[ProviderResult]:
        raise NotImplementedError


class AnalyzerProvider(Provider):
    """Wraps one Analyzer class; the analyzer only sees reflected metadata."""

    analyzer_class: ClassVar[type[Analyzer]]
    needs_table: ClassVar[bool] = True

    def build_analyzer(self, model: ModelDescriptor, session: ReflectionSession) -> Analyzer:
        if not self.needs_table:
            return self.analyzer_class(model, inflector=session.inflector)
        return self.analyzer_class(
            model,
            table=session.table,
            view=session.view,
            inflector=session.inflector,
            supports_foreign_keys=session.dialect.supports_foreign_keys,
        )


class SectionProvider(AnalyzerProvider):
    type = "section"

    def process(self, model: ModelDescriptor, session: ReflectionSession) -> Optional[SectionResult]:
        analyzer = self.build_analyzer(model, session)
        content = analyzer.analyze()
        if not content:
            return None
        return SectionResult(title=getattr(analyzer, "title", None), content=content)


class NotesProvider(AnalyzerProvider):
    """Notes for real tables; view-backed models get ViewNotesProvider instead."""

    type = "notes"

    def applicable(self, model: ModelDescriptor, session: ReflectionSession) -> bool:
        return session.has_table and not session.is_view

    def process(self, model: ModelDescriptor, session: ReflectionSession) -> Optional[NotesResult]:
        notes = self.build_analyzer(model, session).analyze()
        return NotesResult(notes=notes) if notes else None
