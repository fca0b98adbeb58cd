"""Section providers: one named "== Title" block each."""
from typing import Optional

from analyzers.sections import (
    CallbacksAnalyzer, CheckConstraintAnalyzer, CompositeKeyAnalyzer, DelegatedTypeAnalyzer, EnumAnalyzer,
    GeneratedColumnAnalyzer, InheritanceAnalyzer, ViewInfoAnalyzer,
)
from config import settings
from core.extensions import ExtensionRegistry
from core.session import ReflectionSession
from models.annotation import SectionResult
from models.descriptor import ModelDescriptor
from providers.base import SectionProvider


class ViewInfoProvider(SectionProvider):
    name = "view_info"
    analyzer_class = ViewInfoAnalyzer

    def applicable(self, model: ModelDescriptor, session: ReflectionSession) -> bool:
        return not model.abstract and session.is_view


class InheritanceProvider(SectionProvider):
    name = "inheritance"
    analyzer_class = InheritanceAnalyzer
    needs_table = False


class EnumProvider(SectionProvider):
    name = "enums"
    analyzer_class = EnumAnalyzer
    needs_table = False


class DelegatedTypeProvider(SectionProvider):
    name = "delegated_types"
    analyzer_class = DelegatedTypeAnalyzer
    needs_table = False


class CallbacksProvider(SectionProvider):
    name = "callbacks"
    analyzer_class = CallbacksAnalyzer
    needs_table = False

    def applicable(self, model: ModelDescriptor, session: ReflectionSession) -> bool:
        return not model.abstract and bool(model.callbacks)


class CompositeKeyProvider(SectionProvider):
    name = "composite_keys"
    analyzer_class = CompositeKeyAnalyzer

    def applicable(self, model: ModelDescriptor, session: ReflectionSession) -> bool:
        return session.has_table


class CheckConstraintProvider(SectionProvider):
    name = "check_constraints"
    analyzer_class = CheckConstraintAnalyzer

    def applicable(self, model: ModelDescriptor, session: ReflectionSession) -> bool:
        return (
            settings.SHOW_CHECK_CONSTRAINTS
            and session.has_table
            and session.dialect.supports_check_constraints
        )


class GeneratedColumnProvider(SectionProvider):
    name = "generated_columns"
    analyzer_class = GeneratedColumnAnalyzer

    def applicable(self, model: ModelDescriptor, session: ReflectionSession) -> bool:
        return session.has_table


class DatabaseFunctionsProvider(SectionProvider):
    """Stored functions of the connected database, listed once on abstract base classes."""

    name = "database_functions"
    title = "== Database Functions"

    def applicable(self, model: ModelDescriptor, session: ReflectionSession) -> bool:
        return settings.SHOW_FUNCTIONS and model.abstract

    def process(self, model: ModelDescriptor, session: ReflectionSession) -> Optional[SectionResult]:
        content = session.dialect.render_functions()
        if not content:
            return None
        return SectionResult(title=self.title, content=content)


class ExtensionsProvider(SectionProvider):
    name = "extensions"
    title = "== Extensions"

    def __init__(self, extensions: Optional[ExtensionRegistry] = None):
        self.extensions = extensions if extensions is not None else ExtensionRegistry.from_settings()

    def applicable(self, model: ModelDescriptor, session: ReflectionSession) -> bool:
        return bool(self.extensions.extensions) and session.has_table

    def process(self, model: ModelDescriptor, session: ReflectionSession) -> Optional[SectionResult]:
        annotations = self.extensions.annotations(model, session)
        if not annotations:
            return None
        return SectionResult(title=self.title, content="\n\n".join(annotations))
