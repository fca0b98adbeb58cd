"""
Annotation extensions.

An extension adds section text and notes for models that follow a particular
modelling pattern or library. Builtins live here; packages can ship more under
the "schema_lens.extensions" entry-point group (loaded when
EXTENSIONS_AUTOLOAD is set). Every extension call is isolated: a raising
extension is reported and skipped.
"""
import logging
from importlib.metadata import entry_points
from typing import Callable, Optional, TypeVar

from config import settings
from core.errors import ErrorReporter, ExtensionConfigError, ExtensionError, ExtensionLoadError
from core.note_codes import COMP_INDEX, COUNTER_CACHE, INDEX, MISSING_TABLE, note
from models.descriptor import AssociationDescriptor, ModelDescriptor

logger = logging.getLogger(__name__)

T = TypeVar("T")

ENTRY_POINT_GROUP = "schema_lens.extensions"
INTERFACE_VERSION = "1"


class Extension:
    """Override `annotate` and/or `notes`; `detect` gates loading entirely."""

    name = "extension"
    interface_version = INTERFACE_VERSION

    @classmethod
    def detect(cls) -> bool:
        return True

    @classmethod
    def compatible(cls) -> bool:
        return str(cls.interface_version).split(".")[0] == INTERFACE_VERSION

    def annotate(self, model: ModelDescriptor, session) -> Optional[str]:
        return None

    def notes(self, model: ModelDescriptor, session) -> list[str]:
        return []


# ── Builtin: self-referential hierarchies ─────────────────────────────────────

class HierarchyExtension(Extension):
    """
    Trees stored as an adjacency list (a self-referential parent column),
    optionally backed by a closure table of (ancestor_id, descendant_id,
    generations) rows. The closure table defaults to "<model>_hierarchies"
    and can be named with Table.info["hierarchy_table"].
    """

    name = "hierarchy"
    CLOSURE_COLUMNS = ["ancestor_id", "descendant_id"]
    CHILD_NAMES = ("child", "children", "descendant")
    COUNTER_COLUMNS = ("children_count", "descendants_count")

    def annotate(self, model: ModelDescriptor, session) -> Optional[str]:
        parent = self.parent_association(model)
        if parent is None:
            return None
        closure = self.closure_table(model, session)
        strategy = "closure table" if closure else "adjacency list"
        lines = [f"Hierarchy ({strategy})", f"Parent Column: {parent.foreign_key}"]
        if closure:
            lines.append(f"Hierarchy Table: {closure}")
        children = self.children_association(model)
        if children:
            lines.append(f"Children: {children.name}")
        return "\n".join(lines)

    def notes(self, model: ModelDescriptor, session) -> list[str]:
        parent = self.parent_association(model)
        if parent is None:
            return []
        notes = []
        table = session.table
        if not table.is_indexed(parent.foreign_key):
            notes.append(note(parent.foreign_key, INDEX))

        name = self.hierarchy_table_name(model, session)
        hierarchy = session.table_for(name)
        if hierarchy.columns:
            if not any(sorted(i.columns) == self.CLOSURE_COLUMNS for i in hierarchy.indexes):
                notes.append(note(f"{name}.{'+'.join(self.CLOSURE_COLUMNS)}", COMP_INDEX))
            if hierarchy.has_column("generations") and not hierarchy.is_indexed("generations"):
                notes.append(note(f"{name}.generations", INDEX))
        elif "hierarchy_table" in model.info:
            notes.append(note(name, MISSING_TABLE))

        children = self.children_association(model)
        if children and children.name.startswith(self.CHILD_NAMES):
            if not any(table.has_column(c) for c in self.COUNTER_COLUMNS):
                notes.append(note(children.name, COUNTER_CACHE))
        return notes

    @staticmethod
    def parent_association(model: ModelDescriptor) -> Optional[AssociationDescriptor]:
        for assoc in model.associations_of("belongs_to"):
            if assoc.target_type == model.name and assoc.foreign_key and not assoc.polymorphic:
                return assoc
        return None

    @staticmethod
    def children_association(model: ModelDescriptor) -> Optional[AssociationDescriptor]:
        for assoc in model.associations_of("has_many"):
            if assoc.target_type == model.name:
                return assoc
        return None

    def hierarchy_table_name(self, model: ModelDescriptor, session) -> str:
        declared = model.info.get("hierarchy_table")
        if declared:
            return declared
        return session.sibling_name(f"{session.inflector.underscore(model.name)}_hierarchies")

    def closure_table(self, model: ModelDescriptor, session) -> Optional[str]:
        name = self.hierarchy_table_name(model, session)
        return name if session.table_for(name).columns else None


BUILTIN_EXTENSIONS: list[type[Extension]] = [HierarchyExtension]


# ── Registry ──────────────────────────────────────────────────────────────────

class ExtensionRegistry:
    def __init__(self, extensions: Optional[list[Extension]] = None, ignore: Optional[list[str]] = None):
        self.ignore = set(ignore or [])
        self.extensions: list[Extension] = []
        for ext in extensions or []:
            self.add(ext)

    @classmethod
    def from_settings(cls) -> "ExtensionRegistry":
        registry = cls(ignore=settings.ignored_extension_list)
        for ext_class in BUILTIN_EXTENSIONS:
            registry.add_class(ext_class)
        if settings.EXTENSIONS_AUTOLOAD:
            registry.load_entry_points()
        return registry

    def add(self, extension: Extension) -> bool:
        if extension.name in self.ignore:
            logger.debug("Extension %s ignored by configuration", extension.name)
            return False
        self.extensions.append(extension)
        return True

    def add_class(self, ext_class) -> bool:
        """Validate, detect and instantiate an extension class."""
        if not (isinstance(ext_class, type) and issubclass(ext_class, Extension)):
            raise ExtensionConfigError(f"{ext_class!r} is not an Extension subclass")
        if not ext_class.compatible():
            raise ExtensionConfigError(
                f"{ext_class.__name__} targets interface {ext_class.interface_version}, "
                f"expected {INTERFACE_VERSION}.x"
            )
        if not ext_class.detect():
            logger.debug("Extension %s not detected; skipping", ext_class.name)
            return False
        return self.add(ext_class())

    def load_entry_points(self) -> int:
        loaded = 0
        for ep in entry_points(group=ENTRY_POINT_GROUP):
            if ep.name in self.ignore:
                continue
            try:
                ext_class = ep.load()
            except Exception as e:
                self._report(ExtensionLoadError(f"Failed to load extension {ep.name}: {e}"), ep.name)
                continue
            try:
                if self.add_class(ext_class):
                    loaded += 1
            except ExtensionError as e:
                self._report(e, ep.name)
        logger.info("Loaded %d extension(s) from entry points", loaded)
        return loaded

    def names(self) -> list[str]:
        return [ext.name for ext in self.extensions]

    def annotations(self, model: ModelDescriptor, session) -> list[str]:
        result = []
        for ext in self.extensions:
            text = self._safe(ext, "annotate", lambda: ext.annotate(model, session), None)
            if text:
                result.append(text)
        return result

    def notes(self, model: ModelDescriptor, session) -> list[str]:
        result = []
        for ext in self.extensions:
            result.extend(self._safe(ext, "notes", lambda: ext.notes(model, session), []) or [])
        return result

    def _safe(self, ext: Extension, method: str, fn: Callable[[], T], default: T) -> T:
        with ErrorReporter.handle(extension=ext.name, method=method):
            return fn()
        logger.warning("Extension %s failed in %s; skipped", ext.name, method)
        return default

    @staticmethod
    def _report(error: Exception, name: str) -> None:
        ErrorReporter.report(error, {"extension": name})
        if settings.RAISE_ON_ERROR:
            raise error
