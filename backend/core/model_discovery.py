"""
SQLAlchemy declarative classes to ModelDescriptors.

Everything analyzers need from the mapper (relationships, enum types,
inheritance, delegated types, persistence callbacks, primary keys) is read here once.
"""
import importlib
import inspect as pyinspect
import logging
from typing import Any, Callable, Optional

from sqlalchemy import Enum as SAEnum
from sqlalchemy import inspect
from sqlalchemy.exc import NoInspectionAvailable

from config import settings
from core.errors import ConfigurationError, ModelDetectionError
from models.descriptor import (
    AssociationDescriptor, CallbackDescriptor, DelegatedTypeInfo, EnumDefinition, InheritanceInfo, ModelDescriptor,
)

logger = logging.getLogger(__name__)

CALLBACK_EVENTS = (
    "before_insert", "after_insert", "before_update", "after_update", "before_delete", "after_delete",
)


def load_declarative_base(path: Optional[str] = None):
    """Import "package.module:Base" (defaults to MODELS_MODULE)."""
    path = path or settings.MODELS_MODULE
    if not path or ":" not in path:
        raise ConfigurationError(f"Expected MODELS_MODULE as 'package.module:Base', got {path!r}")
    module_name, _, attr = path.partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import models module {module_name!r}: {e}") from e
    base = getattr(module, attr, None)
    if base is None:
        raise ConfigurationError(f"Module {module_name!r} has no attribute {attr!r}")
    return base


def discover_models(base) -> list[ModelDescriptor]:
    """Ordered (by name, then module), deduplicated descriptors for every class under `base`."""
    registry = getattr(base, "registry", None)
    if registry is None:
        raise ModelDetectionError(f"{base!r} is not a SQLAlchemy declarative base")

    seen: set[tuple[str, str]] = set()
    descriptors = []
    for mapper in registry.mappers:
        cls = mapper.class_
        key = (cls.__module__, cls.__qualname__)
        if key in seen:
            continue
        seen.add(key)
        try:
            descriptors.append(describe_mapper(mapper))
        except NoInspectionAvailable as e:
            logger.warning("Skipping %s: %s", cls.__name__, e)

    for cls in _abstract_subclasses(base):
        key = (cls.__module__, cls.__qualname__)
        if key not in seen:
            seen.add(key)
            descriptors.append(ModelDescriptor(
                name=cls.__name__, module=cls.__module__, abstract=True, source_file=_source_file(cls),
            ))

    descriptors.sort(key=lambda d: (d.name, d.module))
    logger.info("Discovered %d model(s)", len(descriptors))
    return descriptors


def describe_mapper(mapper) -> ModelDescriptor:
    cls = mapper.class_
    table = mapper.local_table
    columns = _column_names(table)
    return ModelDescriptor(
        name=cls.__name__,
        module=cls.__module__,
        table_name=getattr(table, "fullname", None),
        source_file=_source_file(cls),
        associations=[describe_relationship(mapper, prop, columns) for prop in mapper.relationships],
        enums=_enums(table),
        inheritance=_inheritance(mapper),
        delegated_type=_delegated_type(cls, columns),
        callbacks=_callbacks(mapper),
        primary_keys=[c.name for c in mapper.primary_key],
        readonly=bool(getattr(cls, "__readonly__", False)),
        has_refresh=callable(getattr(cls, "refresh", None)),
        info=dict(getattr(table, "info", None) or {}),
    )


# ── Relationships ─────────────────────────────────────────────────────────────

def relationship_kind(prop) -> str:
    direction = prop.direction.name
    if direction == "MANYTOONE":
        return "belongs_to"
    if direction == "MANYTOMANY":
        return "habtm"
    return "has_many" if prop.uselist else "has_one"


def describe_relationship(mapper, prop, columns: list[str]) -> AssociationDescriptor:
    kind = relationship_kind(prop)
    target = prop.mapper
    foreign_key = None
    if kind == "belongs_to":
        foreign_key = ", ".join(local.name for local, _ in prop.local_remote_pairs) or None
    elif kind in ("has_many", "has_one"):
        foreign_key = ", ".join(remote.name for _, remote in prop.local_remote_pairs) or None

    polymorphic = bool(prop.info.get("polymorphic")) or (
        kind == "belongs_to" and f"{prop.key}_type" in columns and f"{prop.key}_id" in columns
    )
    return AssociationDescriptor(
        name=prop.key,
        kind=kind,
        target_type=target.class_.__name__,
        foreign_key=foreign_key,
        polymorphic=polymorphic,
        options=_relationship_options(prop),
        reverse_kinds=_reverse_kinds(mapper, prop),
        target_table=getattr(target.local_table, "fullname", None),
        target_columns=_column_names(target.local_table),
    )


def _relationship_options(prop) -> dict[str, Any]:
    backref = prop.backref[0] if isinstance(prop.backref, tuple) else prop.backref
    secondary = getattr(prop.secondary, "fullname", None) if prop.secondary is not None else None
    return {
        "inverse_of": prop.back_populates or backref or None,
        "lazy": prop.lazy,
        "order_by": bool(prop.order_by),
        "viewonly": prop.viewonly,
        "secondary": secondary,
        "cascade": str(prop.cascade),
        "counter_cache": prop.info.get("counter_cache"),
        "limit": prop.info.get("limit"),
    }


def _reverse_kinds(mapper, prop) -> list[str]:
    """Kinds of relationships on the target class that point back at this class."""
    kinds: list[str] = []
    for other in prop.mapper.relationships:
        if other is prop:
            continue
        if other.mapper.class_ is not mapper.class_ and not issubclass(mapper.class_, other.mapper.class_):
            continue
        kind = relationship_kind(other)
        if kind not in kinds:
            kinds.append(kind)
    return kinds


# ── Columns, enums, inheritance ───────────────────────────────────────────────

def _column_names(table) -> list[str]:
    return [c.name for c in getattr(table, "columns", [])]


def _enums(table) -> list[EnumDefinition]:
    result = []
    for col in getattr(table, "columns", []):
        type_ = col.type
        if not isinstance(type_, SAEnum):
            continue
        if type_.enum_class is not None:
            values = dict(zip([m.name for m in type_.enum_class], type_.enums))
        else:
            values = {v: v for v in type_.enums}
        result.append(EnumDefinition(
            name=col.name, values=values, column_type="enum" if type_.native_enum else "string",
        ))
    return result


def _inheritance(mapper) -> Optional[InheritanceInfo]:
    descendants = [m for m in mapper.self_and_descendants if m is not mapper]
    if mapper.inherits is None and mapper.polymorphic_on is None and not descendants:
        return None

    base = mapper.base_mapper
    polymorphic_on = base.polymorphic_on
    type_column = getattr(polymorphic_on, "name", None) if polymorphic_on is not None else None
    identity = mapper.polymorphic_identity
    siblings = []
    if mapper.inherits is not None:
        siblings = sorted(
            m.class_.__name__ for m in base.self_and_descendants if m is not mapper and m is not base
        )
    return InheritanceInfo(
        strategy=_strategy(mapper, descendants),
        type_column=type_column,
        base_class=base.class_.__name__,
        is_base=mapper.inherits is None,
        identity=str(identity) if identity is not None else None,
        subclasses=sorted(m.class_.__name__ for m in descendants),
        siblings=siblings,
    )


def _strategy(mapper, descendants) -> str:
    sample = mapper if mapper.inherits is not None else (descendants[0] if descendants else None)
    if sample is None:
        return "single"
    if sample.concrete:
        return "concrete"
    if sample.single or sample.local_table is sample.inherits.local_table:
        return "single"
    return "joined"


def _delegated_type(cls, columns: list[str]) -> Optional[DelegatedTypeInfo]:
    """A "<name>_type"/"<name>_id" column pair plus a "<name>_types" class attribute."""
    for col in columns:
        if not col.endswith("_type"):
            continue
        prefix = col[: -len("_type")]
        types = getattr(cls, f"{prefix}_types", None)
        if f"{prefix}_id" in columns and types:
            return DelegatedTypeInfo(
                name=prefix, type_column=col, id_column=f"{prefix}_id", types=[str(t) for t in types],
            )
    return None


def _abstract_subclasses(base) -> list[type]:
    found = []
    stack = list(base.__subclasses__())
    while stack:
        cls = stack.pop()
        stack.extend(cls.__subclasses__())
        if cls.__dict__.get("__abstract__"):
            try:
                inspect(cls)
            except NoInspectionAvailable:
                found.append(cls)
    return found


def _source_file(cls) -> Optional[str]:
    try:
        return pyinspect.getsourcefile(cls)
    except (TypeError, OSError):
        return None


# ── Callbacks ─────────────────────────────────────────────────────────────────

def _callbacks(mapper) -> list[CallbackDescriptor]:
    """Persistence event listeners in CALLBACK_EVENTS order, then @validates methods."""
    result = []
    for event_name in CALLBACK_EVENTS:
        seen = set()
        for listener in getattr(mapper.dispatch, event_name, ()):
            fn = _listener_target(listener)
            if fn is None or fn in seen:
                continue
            seen.add(fn)
            result.append(CallbackDescriptor(event=event_name, method=fn.__name__))

    by_method: dict[str, CallbackDescriptor] = {}
    for key, (fn, options) in mapper.validators.items():
        name = getattr(fn, "__name__", repr(fn))
        if name not in by_method:
            by_method[name] = CallbackDescriptor(
                event="validates",
                method=name,
                kind="validator",
                options=_validator_options(options),
            )
        by_method[name].columns.append(key)
    result.extend(by_method.values())
    return result


def _listener_target(fn) -> Optional[Callable]:
    """The user function behind a listener; SQLAlchemy stores non-raw listeners in a wrapper closure."""
    for _ in range(3):
        if not _is_internal(fn):
            return fn
        cells = []
        for cell in getattr(fn, "__closure__", None) or ():
            try:
                cells.append(cell.cell_contents)
            except ValueError:
                continue
        inner = [c for c in cells if callable(c)]
        if len(inner) != 1:
            return None
        fn = inner[0]
    return None if _is_internal(fn) else fn


def _is_internal(fn) -> bool:
    return (getattr(fn, "__module__", None) or "").startswith("sqlalchemy")


def _validator_options(options) -> dict[str, Any]:
    """Only the flags that differ from the @validates defaults."""
    result: dict[str, Any] = {}
    if options.get("include_removes"):
        result["include_removes"] = True
    if not options.get("include_backrefs", True):
        result["include_backrefs"] = False
    return result
