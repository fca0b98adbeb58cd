"""SQLite dialect. No check-constraint introspection; reports the foreign_keys pragma."""
import logging
import re
from typing import Any, Optional

from sqlalchemy import text

from core.dialects.base import BaseDialect
from models.table import TableMetadata, TriggerMetadata

logger = logging.getLogger(__name__)

TRIGGER_RE = re.compile(
    r"CREATE\s+(?:TEMP(?:ORARY)?\s+)?TRIGGER\s+(?:IF\s+NOT\s+EXISTS\s+)?\S+\s+"
    r"(?P<timing>BEFORE|AFTER|INSTEAD\s+OF)?\s*"
    r"(?P<event>DELETE|INSERT|UPDATE)(?:\s+OF\s+[\w\s,\"]+?)?\s+ON\s+",
    re.I | re.S,
)
WHEN_RE = re.compile(r"\bWHEN\s+(?P<condition>.*?)\s+BEGIN\b", re.I | re.S)
SOURCE_RE = re.compile(r"\b(?:FROM|JOIN)\s+[\"`\[]?(?:\w+[\"`\]]?\.[\"`\[]?)?(?P<name>\w+)", re.I)


class SQLiteDialect(BaseDialect):
    label = "SQLite"
    default_schema = "main"
    supports_check_constraints = False
    supports_comments = False

    @property
    def master(self) -> str:
        if self.schema:
            return '"{}".sqlite_master'.format(self.schema.replace('"', '""'))
        return "sqlite_master"

    def table_extras(self) -> dict[str, Any]:
        enabled = self._fetch(
            "foreign_keys_pragma",
            lambda: self.connection.execute(text("PRAGMA foreign_keys")).scalar(),
            None,
        )
        if enabled is None:
            return {}
        return {"foreign_keys_enabled": bool(enabled)}

    def render_footer_extras(self, table: TableMetadata, lines: list[str]) -> None:
        if table.extras.get("foreign_keys_enabled") is False:
            lines.append("")
            lines.append("foreign_keys_enabled = false")

    def triggers(self) -> list[TriggerMetadata]:
        return self._fetch("triggers", self._triggers, [])

    def _triggers(self) -> list[TriggerMetadata]:
        rows = self._query(
            f"SELECT name, sql FROM {self.master} WHERE type = 'trigger' AND tbl_name = :name ORDER BY name",
            name=self.name,
        )
        result = []
        for row in rows:
            sql = row["sql"] or ""
            m = TRIGGER_RE.search(sql)
            when = WHEN_RE.search(sql)
            timing = re.sub(r"\s+", " ", m.group("timing")).upper() if m and m.group("timing") else "BEFORE"
            result.append(TriggerMetadata(
                name=row["name"],
                event=m.group("event").upper() if m else "",
                timing=timing,
                for_each="ROW",
                condition=re.sub(r"\s+", " ", when.group("condition")).strip() if when else None,
            ))
        return result

    # ── Views ─────────────────────────────────────────────────────────────────

    def _view_sql(self) -> Optional[str]:
        rows = self._query(
            f"SELECT sql FROM {self.master} WHERE type = 'view' AND name = :name",
            name=self.name,
        )
        return rows[0]["sql"] if rows else None

    def view_kind(self) -> Optional[str]:
        return "regular" if self._view_sql() is not None else None

    def view_updatable(self) -> bool:
        # only writable through INSTEAD OF triggers
        return any(t.timing == "INSTEAD OF" for t in self._triggers())

    def view_definition(self) -> Optional[str]:
        sql = self._view_sql()
        if not sql:
            return None
        m = re.search(r"\bAS\s+(SELECT\b.*)$", sql, re.I | re.S)
        return m.group(1).strip() if m else sql

    def view_dependencies(self) -> list[str]:
        sql = self._view_sql() or ""
        known = {
            r["name"]
            for r in self._query(f"SELECT name FROM {self.master} WHERE type IN ('table', 'view')")
        }
        deps: list[str] = []
        for m in SOURCE_RE.finditer(sql):
            name = m.group("name")
            if name in known and name != self.name and name not in deps:
                deps.append(name)
        return deps
