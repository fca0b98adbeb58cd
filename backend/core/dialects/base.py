"""
Schema dialect contract and shared reflection / rendering logic.

A dialect instance is bound to one borrowed connection and one (possibly
schema-qualified) table or view name. Every Inspector call is made with both
the schema and the bare name. A failing lookup degrades only its own field
to empty and is forwarded to the ErrorReporter.
"""
import logging
import re
from datetime import datetime
from typing import Any, Callable, Optional, Protocol, TypeVar, runtime_checkable

from sqlalchemy import inspect, text
from sqlalchemy import types as sqltypes
from sqlalchemy.exc import SQLAlchemyError

from config import settings
from core.db_connector import split_qualified_name
from core.errors import ErrorReporter
from models.descriptor import ModelDescriptor
from models.table import (
    CheckConstraint, ColumnMetadata, DatabaseFunction, ForeignKeyMetadata, GeneratedColumn,
    IndexMetadata, TableMetadata, TriggerMetadata,
)
from models.view import ViewDescriptor

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Checked in order; subclasses come before their bases.
LOGICAL_TYPES: list[tuple[type, str]] = [
    (sqltypes.Boolean, "boolean"),
    (sqltypes.Integer, "integer"),
    (sqltypes.Float, "float"),
    (sqltypes.Numeric, "decimal"),
    (sqltypes.DateTime, "datetime"),
    (sqltypes.Date, "date"),
    (sqltypes.Time, "time"),
    (sqltypes.Interval, "interval"),
    (sqltypes.Enum, "enum"),
    (sqltypes.Text, "text"),
    (sqltypes.String, "string"),
    (sqltypes.LargeBinary, "binary"),
    (sqltypes.JSON, "json"),
    (sqltypes.Uuid, "uuid"),
    (sqltypes.ARRAY, "array"),
]


@runtime_checkable
class SchemaDialect(Protocol):
    label: str
    default_schema: Optional[str]
    supports_check_constraints: bool
    supports_foreign_keys: bool

    def generate_annotation(self, model: ModelDescriptor, view: Optional[ViewDescriptor] = None) -> str: ...

    def columns(self) -> list[ColumnMetadata]: ...

    def indexes(self) -> list[IndexMetadata]: ...

    def foreign_keys(self) -> list[ForeignKeyMetadata]: ...

    def check_constraints(self) -> list[CheckConstraint]: ...

    def generated_columns(self) -> list[GeneratedColumn]: ...

    def triggers(self) -> list[TriggerMetadata]: ...

    def functions(self) -> list[DatabaseFunction]: ...

    def primary_key(self) -> list[str]: ...

    def primary_key_name(self) -> Optional[str]: ...

    def table_metadata(self) -> TableMetadata: ...

    def view_info(self) -> ViewDescriptor: ...


class BaseDialect:
    label = "SQL"
    default_schema: Optional[str] = None
    supports_check_constraints = True
    supports_foreign_keys = True
    supports_comments = True
    TYPE_OVERRIDES: dict[str, str] = {}

    def __init__(self, connection, qualified_name: str, view_cache=None):
        self.connection = connection
        self.qualified_name = qualified_name
        self.schema, self.name = split_qualified_name(qualified_name)
        self.view_cache = view_cache
        self._inspector = None
        self._columns_raw: Optional[list[dict]] = None
        self._table: Optional[TableMetadata] = None

    # ── Plumbing ──────────────────────────────────────────────────────────────

    @property
    def inspector(self):
        if self._inspector is None:
            self._inspector = inspect(self.connection)
        return self._inspector

    @inspector.setter
    def inspector(self, value):
        self._inspector = value

    def _fetch(self, field: str, fn: Callable[[], T], default: T) -> T:
        """Run one lookup; on a database error report it and fall back to `default`."""
        try:
            return fn()
        except (SQLAlchemyError, NotImplementedError) as e:
            ErrorReporter.report(e, {"table": self.qualified_name, "field": field})
            if settings.RAISE_ON_ERROR:
                raise
            self.recover()
            return default

    def recover(self) -> None:
        """Roll back the read-only transaction so later lookups are not poisoned by a failed one."""
        rollback = getattr(self.connection, "rollback", None)
        if not callable(rollback):
            return
        try:
            rollback()
        except SQLAlchemyError as e:
            logger.debug("Rollback after failed lookup on %s failed: %s", self.qualified_name, e)

    def _query(self, sql: str, **params: Any) -> list[dict]:
        return [dict(row) for row in self.connection.execute(text(sql), params).mappings().all()]

    def qualify(self, schema: Optional[str], name: str) -> str:
        if schema and schema != self.default_schema:
            return f"{schema}.{name}"
        return name

    # ── Reflection ────────────────────────────────────────────────────────────

    def _raw_columns(self) -> list[dict]:
        if self._columns_raw is None:
            self._columns_raw = self._fetch(
                "columns", lambda: self.inspector.get_columns(self.name, schema=self.schema), [],
            )
        return self._columns_raw

    def columns(self) -> list[ColumnMetadata]:
        pk = set(self.primary_key())
        result = []
        for col in self._raw_columns():
            type_ = col.get("type")
            computed = col.get("computed")
            generated = None
            if computed:
                generated = "virtual" if computed.get("persisted") is False else "stored"
            result.append(ColumnMetadata(
                name=col["name"],
                logical_type=self.logical_type(type_),
                raw_type=self.raw_type(type_),
                nullable=bool(col.get("nullable", True)),
                default=self.normalize_default(col.get("default")),
                limit=self.column_limit(type_),
                primary_key=col["name"] in pk,
                comment=col.get("comment") if self.supports_comments else None,
                generated=generated,
            ))
        return result

    def indexes(self) -> list[IndexMetadata]:
        raw = self._fetch("indexes", lambda: self.inspector.get_indexes(self.name, schema=self.schema), [])
        result = []
        for idx in raw:
            if not idx.get("name") or idx["name"].startswith("sqlite_autoindex"):
                continue
            expressions = idx.get("expressions") or []
            columns = []
            for i, col in enumerate(idx.get("column_names") or []):
                if col is None:
                    col = str(expressions[i]) if i < len(expressions) else "?"
                columns.append(col)
            using, where = self.index_options(idx.get("dialect_options") or {})
            result.append(IndexMetadata(
                name=idx["name"], columns=columns, unique=bool(idx.get("unique")), using=using, where=where,
            ))
        return sorted(result, key=lambda i: i.name)

    def index_options(self, options: dict) -> tuple[Optional[str], Optional[str]]:
        return None, None

    def foreign_keys(self) -> list[ForeignKeyMetadata]:
        if not self.supports_foreign_keys:
            return []
        raw = self._fetch(
            "foreign_keys", lambda: self.inspector.get_foreign_keys(self.name, schema=self.schema), [],
        )
        result = []
        for fk in raw:
            options = fk.get("options") or {}
            result.append(ForeignKeyMetadata(
                name=fk.get("name"),
                columns=list(fk.get("constrained_columns") or []),
                referred_table=self.qualify(fk.get("referred_schema"), fk["referred_table"]),
                referred_columns=list(fk.get("referred_columns") or []),
                on_delete=_upper(options.get("ondelete")),
                on_update=_upper(options.get("onupdate")),
            ))
        return sorted(result, key=lambda f: (f.columns, f.name or ""))

    def check_constraints(self) -> list[CheckConstraint]:
        if not self.supports_check_constraints:
            return []
        raw = self._fetch(
            "check_constraints",
            lambda: self.inspector.get_check_constraints(self.name, schema=self.schema),
            [],
        )
        return sorted(
            (CheckConstraint(name=c.get("name") or "", expression=_squish(str(c.get("sqltext", "")))) for c in raw),
            key=lambda c: c.name,
        )

    def generated_columns(self) -> list[GeneratedColumn]:
        result = []
        for col in self._raw_columns():
            computed = col.get("computed")
            if not computed:
                continue
            result.append(GeneratedColumn(
                name=col["name"],
                expression=_squish(str(computed.get("sqltext", ""))),
                stored=computed.get("persisted") is not False,
            ))
        return result

    def triggers(self) -> list[TriggerMetadata]:
        return []

    def _information_schema_triggers(self, schema_sql: str) -> list[TriggerMetadata]:
        """Triggers from information_schema.triggers; one row per event is folded per trigger."""
        rows = self._query(
            "SELECT trigger_name, event_manipulation, action_timing, action_orientation, "
            "action_condition, action_statement "
            "FROM information_schema.triggers "
            f"WHERE event_object_schema = {schema_sql} AND event_object_table = :name "
            "ORDER BY trigger_name, event_manipulation",
            schema=self.schema, name=self.name,
        )
        grouped: dict[str, dict] = {}
        for row in rows:
            row = {k.lower(): v for k, v in row.items()}
            entry = grouped.setdefault(row["trigger_name"], {
                "events": [],
                "timing": row.get("action_timing") or "",
                "for_each": row.get("action_orientation"),
                "condition": row.get("action_condition"),
                "function": _trigger_function(row.get("action_statement")),
            })
            if row["event_manipulation"] not in entry["events"]:
                entry["events"].append(row["event_manipulation"])
        return [
            TriggerMetadata(
                name=name,
                event=" OR ".join(entry["events"]),
                timing=entry["timing"],
                function=entry["function"],
                for_each=entry["for_each"],
                condition=entry["condition"],
            )
            for name, entry in grouped.items()
        ]

    def primary_key(self) -> list[str]:
        pk = self._fetch(
            "primary_key", lambda: self.inspector.get_pk_constraint(self.name, schema=self.schema), {},
        )
        return list(pk.get("constrained_columns") or [])

    def primary_key_name(self) -> Optional[str]:
        """The primary key column when there is exactly one."""
        pk = self.primary_key()
        return pk[0] if len(pk) == 1 else None

    def table_comment(self) -> Optional[str]:
        if not self.supports_comments:
            return None
        comment = self._fetch(
            "table_comment", lambda: self.inspector.get_table_comment(self.name, schema=self.schema), {},
        )
        return comment.get("text") if comment else None

    def functions(self) -> list[DatabaseFunction]:
        """User-defined stored functions of the connected database; SQLite has none."""
        return []

    def table_extras(self) -> dict[str, Any]:
        return {}

    def table_metadata(self) -> TableMetadata:
        if self._table is None:
            self._table = TableMetadata(
                qualified_name=self.qualified_name,
                name=self.name,
                schema_name=self.schema,
                dialect=self.label,
                columns=self.columns(),
                indexes=self.indexes(),
                foreign_keys=self.foreign_keys(),
                check_constraints=self.check_constraints(),
                generated_columns=self.generated_columns(),
                triggers=self.triggers(),
                primary_key=self.primary_key(),
                comment=self.table_comment(),
                extras=self.table_extras(),
            )
        return self._table

    # ── Types ─────────────────────────────────────────────────────────────────

    def raw_type(self, type_) -> str:
        if type_ is None:
            return ""
        try:
            return str(type_)
        except Exception:  # some reflected types cannot compile without a dialect
            return type(type_).__name__

    def logical_type(self, type_) -> str:
        """Deterministic (dialect, raw type) -> logical type; unknown types keep their raw name."""
        raw = self.raw_type(type_)
        override = self.TYPE_OVERRIDES.get(raw.upper()) or self.TYPE_OVERRIDES.get(raw.split("(")[0].upper())
        if override:
            return override
        for klass, logical in LOGICAL_TYPES:
            if isinstance(type_, klass):
                return logical
        if not raw or isinstance(type_, sqltypes.NullType):
            return "unknown"
        return raw.split("(")[0].lower()

    def column_limit(self, type_) -> Optional[int]:
        if isinstance(type_, sqltypes.String) and not isinstance(type_, (sqltypes.Text, sqltypes.Enum)):
            length = getattr(type_, "length", None)
            return length if isinstance(length, int) else None
        return None

    def normalize_default(self, raw: Optional[str]) -> Optional[str]:
        if raw is None:
            return None
        value = str(raw).strip()
        if value.lower().startswith("nextval("):
            return None
        while value.startswith("(") and value.endswith(")"):
            value = value[1:-1].strip()
        m = re.match(r"^'(.*)'(?:::[\w\s\".\[\]]+)?$", value, re.S)
        if m:
            return m.group(1).replace("''", "'")
        return value

    # ── Views ─────────────────────────────────────────────────────────────────
    # Catalog lookups used by ViewMetadataResolver. They may raise; the resolver
    # turns errors into "not a view" or an empty field.

    def view_kind(self) -> Optional[str]:
        """One of "regular" / "materialized", or None when the name is not a view."""
        return None

    def view_updatable(self) -> bool:
        return False

    def view_dependencies(self) -> list[str]:
        return []

    def view_definition(self) -> Optional[str]:
        return None

    def view_refresh_strategy(self) -> Optional[str]:
        return None

    def view_last_refreshed(self) -> Optional[datetime]:
        return None

    def view_info(self) -> ViewDescriptor:
        from core.view_metadata import ViewMetadataResolver

        return ViewMetadataResolver(self, cache=self.view_cache).describe()

    # ── Rendering ─────────────────────────────────────────────────────────────

    def generate_annotation(self, model: ModelDescriptor, view: Optional[ViewDescriptor] = None) -> str:
        if model.abstract:
            return self.render_connection_info()
        view = view if view is not None else self.view_info()
        return self.render(self.table_metadata(), view)

    def render(self, table: TableMetadata, view: Optional[ViewDescriptor] = None) -> str:
        is_view = bool(view and view.exists)
        lines = [
            f"{'view' if is_view else 'table'} = {toml_string(table.qualified_name)}",
            f"database_dialect = {toml_string(self.label)}",
        ]
        if table.schema_name and table.schema_name != self.default_schema:
            lines.append(f"schema = {toml_string(table.schema_name)}")
        self.render_header_extras(table, lines)
        if is_view:
            lines.append(f"view_type = {toml_string(view.kind)}")
            lines.append(f"updatable = {toml_bool(view.updatable)}")
        lines.append("")

        self.render_columns(table, lines)
        if settings.SHOW_INDEXES:
            self.render_array(lines, "indexes", [self.index_attrs(i) for i in table.indexes])
        if settings.SHOW_FOREIGN_KEYS and self.supports_foreign_keys:
            self.render_array(lines, "foreign_keys", [self.foreign_key_attrs(f) for f in table.foreign_keys])
        if settings.SHOW_TRIGGERS:
            self.render_array(lines, "triggers", [self.trigger_attrs(t) for t in table.triggers])
        if settings.SHOW_COMMENTS and table.comment:
            lines.append("")
            lines.append(f"table_comment = {toml_string(table.comment)}")
        self.render_footer_extras(table, lines)
        return "\n".join(lines)

    def render_connection_info(self) -> str:
        lines = [
            f"connection = {toml_string(self._connection_url())}",
            f"database_dialect = {toml_string(self.label)}",
        ]
        version = getattr(getattr(self.connection, "dialect", None), "server_version_info", None)
        if version:
            lines.append(f"database_version = {toml_string('.'.join(str(v) for v in version))}")
        name = self._database_name()
        if name:
            lines.append(f"database_name = {toml_string(name)}")
        return "\n".join(lines)

    def _connection_url(self) -> str:
        engine = getattr(self.connection, "engine", None)
        url = getattr(engine, "url", None)
        if url is None:
            return "primary"
        return url.render_as_string(hide_password=True)

    def _database_name(self) -> Optional[str]:
        engine = getattr(self.connection, "engine", None)
        url = getattr(engine, "url", None)
        return getattr(url, "database", None)

    def render_header_extras(self, table: TableMetadata, lines: list[str]) -> None:
        pass

    def render_footer_extras(self, table: TableMetadata, lines: list[str]) -> None:
        pass

    def render_columns(self, table: TableMetadata, lines: list[str]) -> None:
        self.render_array(lines, "columns", [self.column_attrs(c) for c in table.columns], always=True, blank=False)

    def column_attrs(self, col: ColumnMetadata) -> list[str]:
        attrs = [f"name = {toml_string(col.name)}", f"type = {toml_string(col.logical_type)}"]
        if col.limit is not None:
            attrs.append(f"limit = {col.limit}")
        if col.primary_key:
            attrs.append("pk = true")
        if not col.nullable:
            attrs.append("null = false")
        if settings.SHOW_DEFAULTS and col.default is not None:
            attrs.append(f"default = {toml_string(col.default)}")
        if col.generated:
            attrs.append(f"generated = {toml_string(col.generated)}")
        if settings.SHOW_COMMENTS and col.comment:
            attrs.append(f"comment = {toml_string(col.comment)}")
        return attrs

    def index_attrs(self, idx: IndexMetadata) -> list[str]:
        attrs = [f"name = {toml_string(idx.name)}", f"columns = {toml_list(idx.columns)}"]
        if idx.unique:
            attrs.append("unique = true")
        if idx.using:
            attrs.append(f"using = {toml_string(idx.using)}")
        if idx.where:
            attrs.append(f"where = {toml_string(idx.where)}")
        return attrs

    def foreign_key_attrs(self, fk: ForeignKeyMetadata) -> list[str]:
        attrs = [
            f"column = {toml_string(fk.column)}",
            f"references_table = {toml_string(fk.referred_table)}",
            f"references_column = {toml_string(', '.join(fk.referred_columns))}",
        ]
        if fk.name:
            attrs.append(f"name = {toml_string(fk.name)}")
        if fk.on_delete:
            attrs.append(f"on_delete = {toml_string(fk.on_delete)}")
        if fk.on_update:
            attrs.append(f"on_update = {toml_string(fk.on_update)}")
        return attrs

    def trigger_attrs(self, trigger: TriggerMetadata) -> list[str]:
        attrs = [
            f"name = {toml_string(trigger.name)}",
            f"event = {toml_string(trigger.event)}",
            f"timing = {toml_string(trigger.timing)}",
        ]
        for key in ("function", "for_each", "condition"):
            value = getattr(trigger, key)
            if value:
                attrs.append(f"{key} = {toml_string(value)}")
        return attrs

    def render_functions(self) -> Optional[str]:
        functions = self.functions()
        if not functions:
            return None
        lines: list[str] = []
        self.render_array(lines, "functions", [self.function_attrs(f) for f in functions], blank=False)
        return "\n".join(lines)

    def function_attrs(self, function: DatabaseFunction) -> list[str]:
        attrs = [
            f"name = {toml_string(function.name)}",
            f"schema = {toml_string(function.schema_name)}",
            f"language = {toml_string(function.language)}",
            f"return_type = {toml_string(function.return_type)}",
        ]
        if function.description:
            attrs.append(f"description = {toml_string(function.description)}")
        return attrs

    @staticmethod
    def render_array(lines: list[str], key: str, rows: list[list[str]], always: bool = False, blank: bool = True) -> None:
        if not rows and not always:
            return
        if blank:
            lines.append("")
        lines.append(f"{key} = [")
        for i, attrs in enumerate(rows):
            comma = "," if i < len(rows) - 1 else ""
            lines.append(f"  {{ {', '.join(attrs)} }}{comma}")
        lines.append("]")


# ── TOML-ish value helpers ────────────────────────────────────────────────────

def toml_string(value: Any) -> str:
    s = _squish(str(value))
    return '"' + s.replace("\\", "\\\\").replace('"', '\\"') + '"'


def toml_bool(value: bool) -> str:
    return "true" if value else "false"


def toml_list(values: list[Any]) -> str:
    return "[" + ", ".join(toml_string(v) for v in values) + "]"


def _squish(value: str) -> str:
    return re.sub(r"\s+", " ", value).strip()


def _upper(value: Optional[str]) -> Optional[str]:
    return value.upper() if value else None


def _trigger_function(statement: Optional[str]) -> Optional[str]:
    if not statement:
        return None
    m = re.search(r"EXECUTE\s+(?:FUNCTION|PROCEDURE)\s+([\w.\"]+)\s*\(", statement, re.I)
    return m.group(1).replace('"', "") if m else None
