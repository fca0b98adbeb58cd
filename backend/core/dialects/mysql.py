"""MySQL / MariaDB dialect: storage engine, charset, collation and partitions."""
import logging
from typing import Any, Optional

from core.dialects.base import BaseDialect, toml_string
from models.table import DatabaseFunction, TableMetadata, TriggerMetadata

logger = logging.getLogger(__name__)

SCHEMA_SQL = "COALESCE(:schema, DATABASE())"


class MySQLDialect(BaseDialect):
    label = "MySQL"
    default_schema = None
    TYPE_OVERRIDES = {
        "TINYINT(1)": "boolean",
        "YEAR": "integer",
        "TINYTEXT": "text",
        "MEDIUMTEXT": "text",
        "LONGTEXT": "text",
    }

    def index_options(self, options: dict) -> tuple[Optional[str], Optional[str]]:
        prefix = options.get("mysql_prefix")
        if prefix:
            return prefix.lower(), None
        using = options.get("mysql_using")
        return (using.lower() if using else None), None

    def triggers(self) -> list[TriggerMetadata]:
        return self._fetch("triggers", lambda: self._information_schema_triggers(SCHEMA_SQL), [])

    def functions(self) -> list[DatabaseFunction]:
        return self._fetch("functions", self._functions, [])

    def _functions(self) -> list[DatabaseFunction]:
        rows = self._query(
            "SELECT routine_name, routine_schema, routine_body, dtd_identifier, routine_comment "
            "FROM information_schema.routines "
            "WHERE routine_schema = DATABASE() AND routine_type = 'FUNCTION' "
            "ORDER BY routine_name"
        )
        result = []
        for row in rows:
            row = {k.lower(): v for k, v in row.items()}
            result.append(DatabaseFunction(
                name=row["routine_name"],
                schema_name=row["routine_schema"],
                language=row.get("routine_body") or "SQL",
                return_type=row.get("dtd_identifier") or "",
                description=row.get("routine_comment") or None,
            ))
        return result

    def table_extras(self) -> dict[str, Any]:
        extras: dict[str, Any] = {}
        status = self._fetch("table_status", self._table_status, {})
        if status.get("engine"):
            extras["storage_engine"] = status["engine"]
        collation = status.get("table_collation")
        if collation:
            extras["character_set"] = collation.split("_")[0]
            extras["collation"] = collation
        partitions = self._fetch("partitions", self._partitions, [])
        if partitions:
            extras["partitions"] = partitions
        return extras

    def _table_status(self) -> dict:
        rows = self._query(
            "SELECT engine, table_collation FROM information_schema.tables "
            f"WHERE table_schema = {SCHEMA_SQL} AND table_name = :name",
            schema=self.schema, name=self.name,
        )
        return {k.lower(): v for k, v in rows[0].items()} if rows else {}

    def _partitions(self) -> list[dict]:
        rows = self._query(
            "SELECT partition_name, partition_expression, partition_description "
            "FROM information_schema.partitions "
            f"WHERE table_schema = {SCHEMA_SQL} AND table_name = :name AND partition_name IS NOT NULL "
            "ORDER BY partition_ordinal_position",
            schema=self.schema, name=self.name,
        )
        return [{k.lower(): v for k, v in row.items()} for row in rows]

    def render_header_extras(self, table: TableMetadata, lines: list[str]) -> None:
        for key in ("storage_engine", "character_set", "collation"):
            if table.extras.get(key):
                lines.append(f"{key} = {toml_string(table.extras[key])}")

    def render_footer_extras(self, table: TableMetadata, lines: list[str]) -> None:
        rows = []
        for p in table.extras.get("partitions", []):
            attrs = [
                f"name = {toml_string(p['partition_name'])}",
                f"description = {toml_string(p.get('partition_description') or '')}",
            ]
            if p.get("partition_expression"):
                attrs.append(f"expression = {toml_string(p['partition_expression'])}")
            rows.append(attrs)
        self.render_array(lines, "partitions", rows)

    # ── Views ─────────────────────────────────────────────────────────────────

    def _view_row(self) -> dict:
        rows = self._query(
            "SELECT is_updatable, view_definition FROM information_schema.views "
            f"WHERE table_schema = {SCHEMA_SQL} AND table_name = :name LIMIT 1",
            schema=self.schema, name=self.name,
        )
        return {k.lower(): v for k, v in rows[0].items()} if rows else {}

    def view_kind(self) -> Optional[str]:
        return "regular" if self._view_row() else None

    def view_updatable(self) -> bool:
        return str(self._view_row().get("is_updatable", "")).upper() == "YES"

    def view_definition(self) -> Optional[str]:
        return self._view_row().get("view_definition")

    def view_dependencies(self) -> list[str]:
        rows = self._query(
            f"SELECT table_schema, table_name, {SCHEMA_SQL} AS view_schema "
            "FROM information_schema.view_table_usage "
            f"WHERE view_schema = {SCHEMA_SQL} AND view_name = :name "
            "ORDER BY table_schema, table_name",
            schema=self.schema, name=self.name,
        )
        result = []
        for row in rows:
            row = {k.lower(): v for k, v in row.items()}
            if row["table_schema"] == row["view_schema"]:
                result.append(row["table_name"])
            else:
                result.append(f"{row['table_schema']}.{row['table_name']}")
        return result
