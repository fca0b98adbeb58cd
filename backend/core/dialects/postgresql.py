"""PostgreSQL dialect: schemas, views, materialized views, triggers and comments."""
import logging
from datetime import datetime
from typing import Optional

from core.dialects.base import BaseDialect
from models.table import DatabaseFunction, TriggerMetadata

logger = logging.getLogger(__name__)

SCHEMA_SQL = "COALESCE(CAST(:schema AS text), current_schema())"


class PostgresDialect(BaseDialect):
    label = "PostgreSQL"
    default_schema = "public"
    TYPE_OVERRIDES = {
        "JSONB": "jsonb",
        "CITEXT": "text",
        "INET": "inet",
        "CIDR": "cidr",
        "MACADDR": "macaddr",
        "TSVECTOR": "tsvector",
        "MONEY": "decimal",
        "HSTORE": "hstore",
    }

    def index_options(self, options: dict) -> tuple[Optional[str], Optional[str]]:
        using = options.get("postgresql_using")
        if using and using.lower() == "btree":
            using = None
        return using, options.get("postgresql_where")

    def triggers(self) -> list[TriggerMetadata]:
        return self._fetch("triggers", lambda: self._information_schema_triggers(SCHEMA_SQL), [])

    def functions(self) -> list[DatabaseFunction]:
        return self._fetch("functions", self._functions, [])

    def _functions(self) -> list[DatabaseFunction]:
        # skips functions owned by extensions (deptype 'e')
        rows = self._query(
            "SELECT p.proname AS name, n.nspname AS schema_name, l.lanname AS language, "
            "pg_get_function_result(p.oid) AS return_type, obj_description(p.oid, 'pg_proc') AS description "
            "FROM pg_proc p "
            "JOIN pg_namespace n ON n.oid = p.pronamespace "
            "JOIN pg_language l ON l.oid = p.prolang "
            "WHERE n.nspname NOT IN ('pg_catalog', 'information_schema') "
            "AND n.nspname NOT LIKE 'pg_toast%' AND p.prokind = 'f' "
            "AND NOT EXISTS (SELECT 1 FROM pg_depend d WHERE d.objid = p.oid AND d.deptype = 'e') "
            "ORDER BY n.nspname, p.proname"
        )
        return [DatabaseFunction(**row) for row in rows]

    # ── Views ─────────────────────────────────────────────────────────────────

    def view_kind(self) -> Optional[str]:
        rows = self._query(
            "SELECT 'regular' AS kind FROM information_schema.views "
            f"WHERE table_schema = {SCHEMA_SQL} AND table_name = :name "
            "UNION ALL "
            "SELECT 'materialized' AS kind FROM pg_matviews "
            f"WHERE schemaname = {SCHEMA_SQL} AND matviewname = :name "
            "LIMIT 1",
            schema=self.schema, name=self.name,
        )
        return rows[0]["kind"] if rows else None

    def view_updatable(self) -> bool:
        rows = self._query(
            "SELECT is_updatable FROM information_schema.views "
            f"WHERE table_schema = {SCHEMA_SQL} AND table_name = :name",
            schema=self.schema, name=self.name,
        )
        return bool(rows) and str(rows[0]["is_updatable"]).upper() == "YES"

    def view_dependencies(self) -> list[str]:
        rows = self._query(
            "SELECT DISTINCT dn.nspname AS dep_schema, dc.relname AS dep_name "
            "FROM pg_rewrite r "
            "JOIN pg_class v ON v.oid = r.ev_class "
            "JOIN pg_namespace vn ON vn.oid = v.relnamespace "
            "JOIN pg_depend d ON d.objid = r.oid AND d.classid = 'pg_rewrite'::regclass "
            "JOIN pg_class dc ON dc.oid = d.refobjid "
            "JOIN pg_namespace dn ON dn.oid = dc.relnamespace "
            f"WHERE vn.nspname = {SCHEMA_SQL} AND v.relname = :name AND dc.oid <> v.oid "
            "ORDER BY dn.nspname, dc.relname",
            schema=self.schema, name=self.name,
        )
        return [self.qualify(r["dep_schema"], r["dep_name"]) for r in rows]

    def view_definition(self) -> Optional[str]:
        rows = self._query(
            "SELECT pg_get_viewdef(c.oid, true) AS definition "
            "FROM pg_class c JOIN pg_namespace n ON n.oid = c.relnamespace "
            f"WHERE n.nspname = {SCHEMA_SQL} AND c.relname = :name AND c.relkind IN ('v', 'm')",
            schema=self.schema, name=self.name,
        )
        return rows[0]["definition"] if rows else None

    def view_refresh_strategy(self) -> Optional[str]:
        # REFRESH ... CONCURRENTLY needs a unique index on the materialized view
        rows = self._query(
            "SELECT 1 AS found FROM pg_index x "
            "JOIN pg_class c ON c.oid = x.indrelid "
            "JOIN pg_namespace n ON n.oid = c.relnamespace "
            f"WHERE n.nspname = {SCHEMA_SQL} AND c.relname = :name AND x.indisunique "
            "LIMIT 1",
            schema=self.schema, name=self.name,
        )
        return "concurrent" if rows else "manual"

    def view_last_refreshed(self) -> Optional[datetime]:
        # PostgreSQL keeps no refresh timestamp; the latest analyze is the closest proxy
        rows = self._query(
            "SELECT GREATEST(last_analyze, last_autoanalyze) AS refreshed "
            "FROM pg_stat_user_tables "
            f"WHERE schemaname = {SCHEMA_SQL} AND relname = :name",
            schema=self.schema, name=self.name,
        )
        return rows[0]["refreshed"] if rows else None
