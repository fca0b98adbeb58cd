"""Pydantic schemas for canonical table metadata."""
from typing import Any, Literal, Optional
from pydantic import BaseModel, Field


class ColumnMetadata(BaseModel):
    name: str
    logical_type: str                       # "string", "integer", "boolean", ...
    raw_type: str = ""                      # as reported by the database
    nullable: bool = True
    default: Optional[Any] = None
    limit: Optional[int] = None
    primary_key: bool = False
    comment: Optional[str] = None
    generated: Optional[Literal["stored", "virtual"]] = None


class IndexMetadata(BaseModel):
    name: str
    columns: list[str]
    unique: bool = False
    using: Optional[str] = None
    where: Optional[str] = None


class ForeignKeyMetadata(BaseModel):
    name: Optional[str] = None
    columns: list[str]
    referred_table: str                     # schema-qualified when not in the default schema
    referred_columns: list[str]
    on_delete: Optional[str] = None
    on_update: Optional[str] = None

    @property
    def column(self) -> str:
        return ", ".join(self.columns)


class CheckConstraint(BaseModel):
    name: str
    expression: str


class GeneratedColumn(BaseModel):
    name: str
    expression: str
    stored: bool = True


class TriggerMetadata(BaseModel):
    name: str
    event: str
    timing: str
    function: Optional[str] = None
    for_each: Optional[str] = None
    condition: Optional[str] = None



class DatabaseFunction(BaseModel):
    name: str
    schema_name: str
    language: str
    return_type: str
    description: Optional[str] = None

class TableMetadata(BaseModel):
    qualified_name: str                     # verbatim, e.g. "audit.audit_logs"
    name: str                               # bare name
    schema_name: Optional[str] = None
    dialect: str
    columns: list[ColumnMetadata] = Field(default_factory=list)
    indexes: list[IndexMetadata] = Field(default_factory=list)
    foreign_keys: list[ForeignKeyMetadata] = Field(default_factory=list)
    check_constraints: list[CheckConstraint] = Field(default_factory=list)
    generated_columns: list[GeneratedColumn] = Field(default_factory=list)
    triggers: list[TriggerMetadata] = Field(default_factory=list)
    primary_key: list[str] = Field(default_factory=list)   # declaration order
    comment: Optional[str] = None
    extras: dict[str, Any] = Field(default_factory=dict)

    def column(self, name: str) -> Optional[ColumnMetadata]:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def has_column(self, name: str) -> bool:
        return self.column(name) is not None

    def is_indexed(self, column_name: str) -> bool:
        return any(column_name in idx.columns for idx in self.indexes)

    def has_composite_index(self, column_names: list[str]) -> bool:
        return any(idx.columns == list(column_names) for idx in self.indexes)
