"""
Typed descriptors for mapped model classes.

Built once from SQLAlchemy mappers at ingestion; analyzers only ever see
these records, never the live mapper objects.
"""
from typing import Any, Literal, Optional
from pydantic import BaseModel, Field

AssociationKind = Literal["belongs_to", "has_many", "has_one", "habtm"]


class AssociationDescriptor(BaseModel):
    name: str
    kind: AssociationKind
    target_type: str                        # mapped class name of the other side
    foreign_key: Optional[str] = None       # local column for belongs_to, remote for has_*
    polymorphic: bool = False
    options: dict[str, Any] = Field(default_factory=dict)
    reverse_kinds: list[AssociationKind] = Field(default_factory=list)
    target_table: Optional[str] = None
    target_columns: list[str] = Field(default_factory=list)

    @property
    def inverse_of(self) -> Optional[str]:
        return self.options.get("inverse_of")

    @property
    def bidirectional(self) -> bool:
        return bool(self.reverse_kinds)


class EnumDefinition(BaseModel):
    name: str                               # column name
    values: dict[str, Any]                  # label -> stored value
    column_type: Optional[str] = None


class InheritanceInfo(BaseModel):
    strategy: Literal["single", "joined", "concrete"] = "single"
    type_column: Optional[str] = None
    base_class: str
    is_base: bool = True
    identity: Optional[str] = None
    subclasses: list[str] = Field(default_factory=list)
    siblings: list[str] = Field(default_factory=list)


class DelegatedTypeInfo(BaseModel):
    name: str
    type_column: str
    id_column: str
    types: list[str] = Field(default_factory=list)


CallbackKind = Literal["event", "validator"]


class CallbackDescriptor(BaseModel):
    event: str                              # mapper event name, or "validates"
    method: str
    kind: CallbackKind = "event"
    columns: list[str] = Field(default_factory=list)
    options: dict[str, Any] = Field(default_factory=dict)


class ModelDescriptor(BaseModel):
    name: str
    module: str = ""
    table_name: Optional[str] = None        # may be schema-qualified
    abstract: bool = False
    source_file: Optional[str] = None
    associations: list[AssociationDescriptor] = Field(default_factory=list)
    enums: list[EnumDefinition] = Field(default_factory=list)
    inheritance: Optional[InheritanceInfo] = None
    delegated_type: Optional[DelegatedTypeInfo] = None
    callbacks: list[CallbackDescriptor] = Field(default_factory=list)
    primary_keys: list[str] = Field(default_factory=list)
    readonly: bool = False
    has_refresh: bool = False
    info: dict[str, Any] = Field(default_factory=dict)   # the mapped Table.info

    def associations_of(self, kind: AssociationKind) -> list[AssociationDescriptor]:
        return [a for a in self.associations if a.kind == kind]
