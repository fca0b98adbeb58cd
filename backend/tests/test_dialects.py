import pytest
from sqlalchemy import BOOLEAN, INTEGER, NUMERIC, TEXT, VARCHAR, text
from sqlalchemy.exc import OperationalError, ProgrammingError

from core.db_connector import database_dialect, dialect_class_name, resolve_dialect, split_qualified_name
from core.dialects import MySQLDialect, PostgresDialect, SQLiteDialect
from core.errors import UnsupportedAdapterError
from models.descriptor import ModelDescriptor
from fakes import FakeConnection, FakeInspector

AUDIT_COLUMNS = [
    {"name": "id", "type": INTEGER(), "nullable": False, "default": "nextval('audit.audit_logs_id_seq'::regclass)"},
    {"name": "action", "type": VARCHAR(50), "nullable": False, "default": "'created'::character varying"},
    {"name": "payload", "type": TEXT(), "nullable": True, "comment": "raw event"},
    {"name": "total", "type": NUMERIC(10, 2), "nullable": True,
     "computed": {"sqltext": "amount  *  quantity", "persisted": True}},
]


def postgres(qualified_name="audit.audit_logs", responses=None, **inspector):
    conn = FakeConnection("postgresql", responses=responses)
    dialect = PostgresDialect(conn, qualified_name)
    dialect.inspector = FakeInspector(**inspector)
    return dialect, conn


# ── Resolution ────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("adapter, expected", [
    ("postgresql", "PostgresDialect"),
    ("postgis", "PostgresDialect"),
    ("mysql", "MySQLDialect"),
    ("mariadb", "MySQLDialect"),
    ("sqlite", "SQLiteDialect"),
])
def test_dialect_class_name(adapter, expected):
    assert dialect_class_name(FakeConnection(adapter)) == expected


def test_unknown_adapter_names_expected_dialects():
    with pytest.raises(UnsupportedAdapterError) as exc:
        dialect_class_name(FakeConnection("oracle"))
    assert "PostgresDialect" in str(exc.value)


def test_resolve_dialect_and_label():
    conn = FakeConnection("mysql")
    assert isinstance(resolve_dialect(conn, "orders"), MySQLDialect)
    assert database_dialect(conn) == "MySQL"


def test_split_qualified_name():
    assert split_qualified_name("audit.audit_logs") == ("audit", "audit_logs")
    assert split_qualified_name("users") == (None, "users")


# ── PostgreSQL ────────────────────────────────────────────────────────────────

def test_postgres_schema_qualified_lookups_filter_on_schema_and_name():
    dialect, conn = postgres(columns=AUDIT_COLUMNS, pk=["id"])
    table = dialect.table_metadata()
    assert table.schema_name == "audit"
    assert table.name == "audit_logs"
    calls = dialect.inspector.calls
    assert calls and all(name == "audit_logs" and schema == "audit" for _, name, schema in calls)
    trigger_params = conn.params_for("information_schema.triggers")
    assert trigger_params == [{"schema": "audit", "name": "audit_logs"}]


def test_postgres_render_for_schema_qualified_table():
    dialect, _ = postgres(
        columns=AUDIT_COLUMNS,
        pk=["id"],
        indexes=[{"name": "index_audit_logs_on_action", "column_names": ["action"], "unique": False,
                  "dialect_options": {"postgresql_using": "btree"}}],
        comment="Audit trail",
    )
    model = ModelDescriptor(name="AuditLog", table_name="audit.audit_logs")
    rendered = dialect.generate_annotation(model)
    lines = rendered.split("\n")
    assert lines[0] == 'table = "audit.audit_logs"'
    assert lines[1] == 'database_dialect = "PostgreSQL"'
    assert lines[2] == 'schema = "audit"'
    assert '{ name = "id", type = "integer", pk = true, null = false }' in rendered
    assert '{ name = "action", type = "string", limit = 50, null = false, default = "created" }' in rendered
    assert '{ name = "payload", type = "text", comment = "raw event" }' in rendered
    assert 'generated = "stored"' in rendered
    assert '{ name = "index_audit_logs_on_action", columns = ["action"] }' in rendered
    assert lines[-1] == 'table_comment = "Audit trail"'


def test_postgres_default_schema_is_not_rendered():
    dialect, _ = postgres("users", columns=[{"name": "id", "type": INTEGER(), "nullable": False}], pk=["id"])
    rendered = dialect.generate_annotation(ModelDescriptor(name="User", table_name="users"))
    assert "schema =" not in rendered
    assert rendered.startswith('table = "users"\n')


def test_postgres_generated_columns_and_check_constraints():
    dialect, _ = postgres(
        columns=AUDIT_COLUMNS,
        check_constraints=[{"name": "positive_total", "sqltext": "total  >  0"}],
    )
    generated = dialect.generated_columns()
    assert [(g.name, g.expression, g.stored) for g in generated] == [("total", "amount * quantity", True)]
    assert [(c.name, c.expression) for c in dialect.check_constraints()] == [("positive_total", "total > 0")]


def test_postgres_composite_primary_key_keeps_declaration_order():
    dialect, _ = postgres("line_items", pk=["order_id", "line_number"])
    assert dialect.primary_key() == ["order_id", "line_number"]
    assert dialect.primary_key_name() is None


def test_postgres_triggers_fold_events():
    rows = [
        {"trigger_name": "audit_changes", "event_manipulation": "INSERT", "action_timing": "AFTER",
         "action_orientation": "ROW", "action_condition": None,
         "action_statement": "EXECUTE FUNCTION audit.log_change()"},
        {"trigger_name": "audit_changes", "event_manipulation": "UPDATE", "action_timing": "AFTER",
         "action_orientation": "ROW", "action_condition": None,
         "action_statement": "EXECUTE FUNCTION audit.log_change()"},
    ]
    dialect, _ = postgres(responses=[("information_schema.triggers", rows)])
    [trigger] = dialect.triggers()
    assert trigger.event == "INSERT OR UPDATE"
    assert trigger.function == "audit.log_change"
    assert trigger.for_each == "ROW"


def test_failed_lookup_degrades_to_empty_and_rolls_back():
    error = ProgrammingError("SELECT", {}, Exception("permission denied"))
    dialect, conn = postgres(columns=AUDIT_COLUMNS, errors={"get_indexes": error})
    table = dialect.table_metadata()
    assert table.indexes == []
    assert len(table.columns) == 4
    assert conn.rollbacks >= 1


def test_failed_lookup_reraises_when_configured(override_settings):
    override_settings(RAISE_ON_ERROR=True)
    error = OperationalError("SELECT", {}, Exception("gone"))
    dialect, _ = postgres(errors={"get_columns": error})
    with pytest.raises(OperationalError):
        dialect.columns()


def test_postgres_view_render_header():
    dialect, _ = postgres(
        "active_users",
        responses=[
            ("pg_matviews", [{"kind": "regular"}]),
            ("is_updatable", [{"is_updatable": "NO"}]),
        ],
        columns=[{"name": "id", "type": INTEGER(), "nullable": True}],
    )
    rendered = dialect.generate_annotation(ModelDescriptor(name="ActiveUser", table_name="active_users"))
    assert rendered.startswith('view = "active_users"\ndatabase_dialect = "PostgreSQL"\n')
    assert 'view_type = "regular"' in rendered
    assert "updatable = false" in rendered


def test_abstract_model_renders_connection_info():
    dialect, _ = postgres("ApplicationRecord")
    rendered = dialect.generate_annotation(ModelDescriptor(name="ApplicationRecord", abstract=True))
    assert rendered.startswith('connection = "primary"\ndatabase_dialect = "PostgreSQL"')
    assert 'database_version = "15.4"' in rendered


def test_postgres_functions_render():
    rows = [
        {"name": "log_change", "schema_name": "audit", "language": "plpgsql", "return_type": "trigger",
         "description": "writes audit rows"},
        {"name": "slugify", "schema_name": "public", "language": "sql", "return_type": "text", "description": None},
    ]
    dialect, conn = postgres("ApplicationRecord", responses=[("pg_proc", rows)])
    assert dialect.render_functions() == (
        "functions = [\n"
        '  { name = "log_change", schema = "audit", language = "plpgsql", return_type = "trigger", '
        'description = "writes audit rows" },\n'
        '  { name = "slugify", schema = "public", language = "sql", return_type = "text" }\n'
        "]"
    )
    [sql] = [s for s, _ in conn.statements if "pg_proc" in s]
    assert "deptype = 'e'" in sql


def test_functions_lookup_failure_degrades_to_nothing():
    error = ProgrammingError("SELECT", {}, Exception("permission denied for pg_proc"))
    dialect, conn = postgres("ApplicationRecord", responses=[("pg_proc", error)])
    assert dialect.render_functions() is None
    assert conn.rollbacks == 1

def test_unknown_types_keep_their_raw_name():
    from sqlalchemy.dialects.postgresql import TSVECTOR
    from sqlalchemy.types import NullType

    dialect, _ = postgres("docs")
    assert dialect.logical_type(TSVECTOR()) == "tsvector"
    assert dialect.logical_type(NullType()) == "unknown"
    assert dialect.logical_type(BOOLEAN()) == "boolean"


# ── MySQL ─────────────────────────────────────────────────────────────────────

def test_mysql_table_options_and_partitions():
    conn = FakeConnection("mysql", responses=[
        ("information_schema.tables", [{"ENGINE": "InnoDB", "TABLE_COLLATION": "utf8mb4_unicode_ci"}]),
        ("information_schema.partitions", [
            {"PARTITION_NAME": "p2023", "PARTITION_EXPRESSION": "year(created_at)",
             "PARTITION_DESCRIPTION": "2024"},
        ]),
    ])
    dialect = MySQLDialect(conn, "events")
    dialect.inspector = FakeInspector(columns=[{"name": "id", "type": INTEGER(), "nullable": False}], pk=["id"])
    rendered = dialect.generate_annotation(ModelDescriptor(name="Event", table_name="events"))
    assert 'storage_engine = "InnoDB"' in rendered
    assert 'character_set = "utf8mb4"' in rendered
    assert 'collation = "utf8mb4_unicode_ci"' in rendered
    assert 'partitions = [' in rendered
    assert '{ name = "p2023", description = "2024", expression = "year(created_at)" }' in rendered


def test_mysql_view_lookup_scoped_to_database():
    conn = FakeConnection("mysql")
    dialect = MySQLDialect(conn, "reports.triggers")
    assert dialect.view_kind() is None
    [params] = conn.params_for("information_schema.views")
    assert params == {"schema": "reports", "name": "triggers"}



def test_mysql_functions_are_scoped_to_current_database():
    conn = FakeConnection("mysql", responses=[
        ("information_schema.routines", [
            {"ROUTINE_NAME": "order_total", "ROUTINE_SCHEMA": "shop", "ROUTINE_BODY": "SQL",
             "DTD_IDENTIFIER": "decimal(10,2)", "ROUTINE_COMMENT": ""},
        ]),
    ])
    [function] = MySQLDialect(conn, "ApplicationRecord").functions()
    assert function.name == "order_total"
    assert function.schema_name == "shop"
    assert function.return_type == "decimal(10,2)"
    assert function.description is None
    [sql] = [s for s, _ in conn.statements if "routines" in s]
    assert "DATABASE()" in sql and "routine_type = 'FUNCTION'" in sql


# ── SQLite ────────────────────────────────────────────────────────────────────

def test_sqlite_reflection_and_pragma(sqlite_engine):
    with sqlite_engine.begin() as conn:
        conn.execute(text("CREATE TABLE notes (id INTEGER PRIMARY KEY, body VARCHAR(140) NOT NULL DEFAULT 'x')"))
        conn.execute(text(
            "CREATE TRIGGER notes_touch AFTER UPDATE ON notes FOR EACH ROW WHEN new.body <> old.body "
            "BEGIN SELECT 1; END"
        ))
    with sqlite_engine.connect() as conn:
        dialect = SQLiteDialect(conn, "notes")
        table = dialect.table_metadata()
        rendered = dialect.generate_annotation(ModelDescriptor(name="Note", table_name="notes"))
    assert table.extras == {"foreign_keys_enabled": False}
    assert table.check_constraints == []
    [trigger] = table.triggers
    assert (trigger.event, trigger.timing, trigger.condition) == ("UPDATE", "AFTER", "new.body <> old.body")
    assert '{ name = "body", type = "string", limit = 140, null = false, default = "x" }' in rendered
    assert rendered.endswith("foreign_keys_enabled = false")


def test_sqlite_attached_schema(sqlite_engine):
    with sqlite_engine.begin() as conn:
        conn.execute(text("CREATE TABLE audit.audit_logs (id INTEGER PRIMARY KEY, action VARCHAR(50))"))
        conn.execute(text("CREATE TABLE audit_logs (id INTEGER PRIMARY KEY, other TEXT)"))
    with sqlite_engine.connect() as conn:
        table = SQLiteDialect(conn, "audit.audit_logs").table_metadata()
    assert [c.name for c in table.columns] == ["id", "action"]
    assert table.qualified_name == "audit.audit_logs"
