"""
Provider registry.

An ordered list of (name, factory) pairs. The pipeline builds fresh provider
instances from it per manager, so factories may close over shared state such
as the extension registry.
"""
import logging
from typing import Callable, Optional

from config import settings
from core.extensions import ExtensionRegistry
from providers.base import Provider
from providers.notes import (
    AssociationNotesProvider, BestPracticesNotesProvider, ColumnNotesProvider, ExtensionNotesProvider,
    ForeignKeyNotesProvider, IndexNotesProvider, PerformanceNotesProvider, ViewNotesProvider,
)
from providers.schema import SchemaProvider
from providers.sections import (
    CallbacksProvider, CheckConstraintProvider, CompositeKeyProvider, DatabaseFunctionsProvider, DelegatedTypeProvider,
    EnumProvider, ExtensionsProvider, GeneratedColumnProvider, InheritanceProvider, ViewInfoProvider,
)

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[], Provider]


class ProviderRegistry:
    def __init__(self):
        self._factories: list[tuple[str, ProviderFactory]] = []

    def register(self, name: str, factory: ProviderFactory, before: Optional[str] = None) -> None:
        """Append a factory, or insert it ahead of `before`; re-registering a name replaces it in place."""
        for i, (existing, _) in enumerate(self._factories):
            if existing == name:
                self._factories[i] = (name, factory)
                return
        if before is not None:
            for i, (existing, _) in enumerate(self._factories):
                if existing == before:
                    self._factories.insert(i, (name, factory))
                    return
            logger.warning("Provider %s not registered; inserting %s at the end", before, name)
        self._factories.append((name, factory))

    def unregister(self, name: str) -> None:
        self._factories = [(n, f) for n, f in self._factories if n != name]

    def names(self) -> list[str]:
        return [n for n, _ in self._factories]

    def build(self) -> list[Provider]:
        return [factory() for _, factory in self._factories]


def default_registry(extensions: Optional[ExtensionRegistry] = None) -> ProviderRegistry:
    """Providers in their canonical order, honouring EXTENSIONS_ENABLED and INCLUDE_NOTES."""
    registry = ProviderRegistry()
    registry.register("schema", SchemaProvider)

    if settings.EXTENSIONS_ENABLED and extensions is None:
        extensions = ExtensionRegistry.from_settings()
    if settings.EXTENSIONS_ENABLED:
        registry.register("extensions", lambda: ExtensionsProvider(extensions))

    registry.register("view_info", ViewInfoProvider)
    registry.register("inheritance", InheritanceProvider)
    registry.register("enums", EnumProvider)
    registry.register("delegated_types", DelegatedTypeProvider)
    registry.register("callbacks", CallbacksProvider)
    registry.register("composite_keys", CompositeKeyProvider)
    registry.register("check_constraints", CheckConstraintProvider)
    registry.register("generated_columns", GeneratedColumnProvider)
    registry.register("database_functions", DatabaseFunctionsProvider)

    if settings.INCLUDE_NOTES:
        registry.register("view_notes", ViewNotesProvider)
        registry.register("index_notes", IndexNotesProvider)
        registry.register("foreign_key_notes", ForeignKeyNotesProvider)
        registry.register("association_notes", AssociationNotesProvider)
        registry.register("column_notes", ColumnNotesProvider)
        registry.register("performance_notes", PerformanceNotesProvider)
        registry.register("best_practices_notes", BestPracticesNotesProvider)
        if settings.EXTENSIONS_ENABLED:
            registry.register("extension_notes", lambda: ExtensionNotesProvider(extensions))
    return registry
