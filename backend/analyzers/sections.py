"""
Structural section builders.

Each analyzer returns the body of one "== Title" section, or None when the
model has nothing to say for it.
"""
from typing import Any, Optional

from analyzers.base import Analyzer
from core.dialects.base import toml_bool, toml_list, toml_string

DEFINITION_LIMIT = 200

STRATEGY_KEYS = {"single": "sti", "joined": "joined_table", "concrete": "concrete_table"}


class ViewInfoAnalyzer(Analyzer):
    title = "== View Information"

    def analyze(self) -> Optional[str]:
        view = self.view
        if not view.exists:
            return None
        lines = [
            f"View Type: {view.kind}",
            f"Updatable: {'Yes' if view.updatable else 'No'}",
        ]
        if view.dependencies:
            lines.append(f"Dependencies: {', '.join(view.dependencies)}")
        if view.materialized:
            lines.append(f"Refresh Strategy: {view.refresh_strategy or 'manual'}")
            if view.last_refreshed:
                lines.append(f"Last Refreshed: {view.last_refreshed.isoformat(sep=' ', timespec='seconds')}")
        if view.definition:
            lines.append(f"Definition: {truncate(' '.join(view.definition.split()), DEFINITION_LIMIT)}")
        return "\n".join(lines)


class InheritanceAnalyzer(Analyzer):
    title = "== Inheritance"

    def analyze(self) -> Optional[str]:
        blocks = []
        info = self.model.inheritance
        if info:
            lines = [f"[{STRATEGY_KEYS[info.strategy]}]"]
            if info.type_column:
                lines.append(f"type_column = {toml_string(info.type_column)}")
            if info.is_base:
                lines.append("base = true")
                if info.subclasses:
                    lines.append(f"subclasses = {toml_list(info.subclasses)}")
            else:
                lines.append(f"base_class = {toml_string(info.base_class)}")
                if info.identity is not None:
                    lines.append(f"type_value = {toml_string(info.identity)}")
                if info.siblings:
                    lines.append(f"siblings = {toml_list(info.siblings)}")
            blocks.append("\n".join(lines))

        polymorphic = [a for a in self.model.associations_of("belongs_to") if a.polymorphic]
        if polymorphic:
            lines = ["[polymorphic]"]
            for assoc in polymorphic:
                lines.append(
                    f"{assoc.name} = {{ type_column = {toml_string(assoc.name + '_type')}, "
                    f"id_column = {toml_string(assoc.foreign_key or assoc.name + '_id')} }}"
                )
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks) or None


class EnumAnalyzer(Analyzer):
    title = "== Enums"

    def analyze(self) -> Optional[str]:
        if not self.model.enums:
            return None
        lines = []
        for enum in self.model.enums:
            values = ", ".join(f"{label}: {enum_value(v)}" for label, v in enum.values.items())
            suffix = f" ({enum.column_type})" if enum.column_type else ""
            lines.append(f"- {enum.name}: {{ {values} }}{suffix}")
        return "\n".join(lines)


class DelegatedTypeAnalyzer(Analyzer):
    title = "== Delegated Type"

    def analyze(self) -> Optional[str]:
        info = self.model.delegated_type
        if not info:
            return None
        lines = [f"Type Column: {info.type_column}", f"ID Column: {info.id_column}"]
        if info.types:
            lines.append(f"Types: {', '.join(info.types)}")
        return "\n".join(lines)


class CallbacksAnalyzer(Analyzer):
    title = "== Callbacks"

    def analyze(self) -> Optional[str]:
        blocks = []
        events: dict[str, list[str]] = {}
        for callback in self.model.callbacks:
            if callback.kind == "event":
                events.setdefault(callback.event, []).append(callback.method)
        if events:
            lines = ["[callbacks]"]
            lines.extend(f"{event} = {toml_list(methods)}" for event, methods in events.items())
            blocks.append("\n".join(lines))

        validators = [c for c in self.model.callbacks if c.kind == "validator"]
        if validators:
            lines = ["[validates]"]
            for v in validators:
                fields = [f"columns = {toml_list(v.columns)}"]
                fields.extend(f"{k} = {enum_value(flag)}" for k, flag in v.options.items())
                lines.append(f"{v.method} = {{ {', '.join(fields)} }}")
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks) or None


class CompositeKeyAnalyzer(Analyzer):
    title = "== Composite Primary Key"

    def analyze(self) -> Optional[str]:
        keys = (self.table.primary_key if self.table else []) or self.model.primary_keys
        if len(keys) < 2:
            return None
        return f"Primary Keys: {', '.join(keys)}"


class CheckConstraintAnalyzer(Analyzer):
    title = "== Check Constraints"

    def analyze(self) -> Optional[str]:
        if not self.table or not self.table.check_constraints:
            return None
        return "\n".join(f"- {c.name}: {c.expression}" for c in self.table.check_constraints)


class GeneratedColumnAnalyzer(Analyzer):
    title = "== Generated Columns"

    def analyze(self) -> Optional[str]:
        if not self.table or not self.table.generated_columns:
            return None
        return "\n".join(
            f"- {g.name}: {g.expression} ({'stored' if g.stored else 'virtual'})"
            for g in self.table.generated_columns
        )


def enum_value(value: Any) -> str:
    if isinstance(value, bool):
        return toml_bool(value)
    if isinstance(value, (int, float)):
        return str(value)
    return toml_string(value)


def truncate(value: str, limit: int) -> str:
    return value if len(value) <= limit else value[:limit - 3] + "..."
