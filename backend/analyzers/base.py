"""
Analyzer base class.

Analyzers are pure rule evaluators: they read a ModelDescriptor plus the
reflected TableMetadata / ViewDescriptor and return notes or section text.
They never touch the connection or the live mapper.
"""
import re
from typing import Optional

from core.inflector import Inflector, default_inflector
from models.descriptor import ModelDescriptor
from models.table import ColumnMetadata, TableMetadata
from models.view import NOT_A_VIEW, ViewDescriptor


class Analyzer:
    def __init__(
        self,
        model: ModelDescriptor,
        table: Optional[TableMetadata] = None,
        view: Optional[ViewDescriptor] = None,
        inflector: Optional[Inflector] = None,
        supports_foreign_keys: bool = True,
    ):
        self.model = model
        self.table = table
        self.view = view if view is not None else NOT_A_VIEW
        self.inflector = inflector or default_inflector
        self.supports_foreign_keys = supports_foreign_keys

    @property
    def columns(self) -> list[ColumnMetadata]:
        return self.table.columns if self.table else []

    def has_column(self, name: str) -> bool:
        return bool(self.table) and self.table.has_column(name)

    def indexed(self, column_name: str) -> bool:
        """Covered by an index, or the leading primary key column."""
        if not self.table:
            return False
        if self.table.primary_key and self.table.primary_key[0] == column_name:
            return True
        return self.table.is_indexed(column_name)

    def analyze(self):
        raise NotImplementedError


def matches(pattern: str, name: str) -> bool:
    return re.search(pattern, name, re.I) is not None
