from datetime import datetime

from sqlalchemy import text
from sqlalchemy.exc import ProgrammingError

from core.dialects import PostgresDialect, SQLiteDialect
from core.view_metadata import ViewCache, ViewMetadataResolver
from models.view import NOT_A_VIEW
from fakes import FakeConnection


def resolver_for(conn, name, cache=None):
    return ViewMetadataResolver(PostgresDialect(conn, name), cache=cache)


def test_user_table_named_like_catalog_object_is_not_a_view(sqlite_engine):
    with sqlite_engine.begin() as conn:
        conn.execute(text("CREATE TABLE triggers (id INTEGER PRIMARY KEY, name TEXT)"))
    with sqlite_engine.connect() as conn:
        resolver = ViewMetadataResolver(SQLiteDialect(conn, "triggers"))
        assert resolver.view_exists() is False
        assert resolver.describe() == NOT_A_VIEW


def test_postgres_triggers_table_is_not_a_view():
    conn = FakeConnection("postgresql")
    resolver = resolver_for(conn, "triggers")
    assert resolver.view_exists() is False
    [params] = conn.params_for("information_schema.views")
    assert params == {"schema": None, "name": "triggers"}
    sql = conn.statements[0][0]
    assert "table_schema = COALESCE(CAST(:schema AS text), current_schema())" in sql
    assert "schemaname = COALESCE(CAST(:schema AS text), current_schema())" in sql


def test_sqlite_view_description(sqlite_engine):
    with sqlite_engine.begin() as conn:
        conn.execute(text("CREATE TABLE users (id INTEGER PRIMARY KEY, active BOOLEAN)"))
        conn.execute(text("CREATE VIEW active_users AS SELECT id FROM users WHERE active = 1"))
        conn.execute(text("CREATE VIEW recent_active_users AS SELECT id FROM active_users"))
    with sqlite_engine.connect() as conn:
        view = ViewMetadataResolver(SQLiteDialect(conn, "recent_active_users")).describe()
        base = ViewMetadataResolver(SQLiteDialect(conn, "active_users")).describe()
    assert view.exists and view.kind == "regular"
    assert view.updatable is False
    assert view.dependencies == ["active_users"]
    assert view.definition == "SELECT id FROM active_users"
    assert base.dependencies == ["users"]


def test_sqlite_view_with_instead_of_trigger_is_updatable(sqlite_engine):
    with sqlite_engine.begin() as conn:
        conn.execute(text("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT)"))
        conn.execute(text("CREATE VIEW user_names AS SELECT id, name FROM users"))
        conn.execute(text(
            "CREATE TRIGGER user_names_update INSTEAD OF UPDATE ON user_names "
            "BEGIN UPDATE users SET name = new.name WHERE id = old.id; END"
        ))
    with sqlite_engine.connect() as conn:
        assert ViewMetadataResolver(SQLiteDialect(conn, "user_names")).updatable() is True


def test_postgres_materialized_view():
    refreshed = datetime(2024, 5, 1, 12, 0, 0)
    conn = FakeConnection("postgresql", responses=[
        ("pg_matviews", [{"kind": "materialized"}]),
        ("pg_rewrite", [{"dep_schema": "public", "dep_name": "orders"},
                        {"dep_schema": "sales", "dep_name": "regions"}]),
        ("pg_get_viewdef", [{"definition": " SELECT orders.region,\n    sum(orders.total) AS total\n   FROM orders"}]),
        ("pg_index", [{"found": 1}]),
        ("pg_stat_user_tables", [{"refreshed": refreshed}]),
    ])
    view = resolver_for(conn, "sales_summary").describe()
    assert view.kind == "materialized"
    assert view.updatable is False
    assert view.dependencies == ["orders", "sales.regions"]
    assert view.refresh_strategy == "concurrent"
    assert view.last_refreshed == refreshed
    assert view.definition.startswith(" SELECT orders.region")


def test_view_existence_is_memoized_per_connection_and_name():
    cache = ViewCache()
    conn = FakeConnection("postgresql", responses=[("pg_matviews", [{"kind": "regular"}])])
    assert resolver_for(conn, "active_users", cache).view_exists()
    assert resolver_for(conn, "active_users", cache).view_exists()
    assert len(conn.params_for("pg_matviews")) == 1
    assert len(cache) == 1

    cache.clear()
    assert resolver_for(conn, "active_users", cache).view_exists()
    assert len(conn.params_for("pg_matviews")) == 2


def test_statement_error_means_not_a_view():
    error = ProgrammingError("SELECT", {}, Exception("permission denied for pg_matviews"))
    conn = FakeConnection("postgresql", responses=[("pg_matviews", error)])
    resolver = resolver_for(conn, "active_users")
    assert resolver.view_exists() is False
    assert resolver.dependencies() == []
    assert conn.rollbacks == 1


def test_dependent_lookup_failure_degrades_single_field():
    error = ProgrammingError("SELECT", {}, Exception("boom"))
    conn = FakeConnection("postgresql", responses=[
        ("pg_matviews", [{"kind": "regular"}]),
        ("pg_rewrite", error),
        ("is_updatable", [{"is_updatable": "YES"}]),
    ])
    view = resolver_for(conn, "active_users").describe()
    assert view.exists
    assert view.updatable is True
    assert view.dependencies == []
