"""
The one borrowed connection of a pipeline run.

Providers receive the session instead of the bare connection so the table and
view facts are reflected once per run and shared between them.
"""
import logging
from typing import Optional

from core.db_connector import resolve_dialect
from core.inflector import Inflector, default_inflector
from core.view_metadata import ViewCache, ViewMetadataResolver
from models.descriptor import ModelDescriptor
from models.table import TableMetadata
from models.view import NOT_A_VIEW, ViewDescriptor

logger = logging.getLogger(__name__)


class ReflectionSession:
    def __init__(
        self,
        connection,
        model: ModelDescriptor,
        view_cache: Optional[ViewCache] = None,
        inflector: Optional[Inflector] = None,
    ):
        self.connection = connection
        self.model = model
        self.view_cache = view_cache if view_cache is not None else ViewCache()
        self.inflector = inflector or default_inflector
        self._dialect = None
        self._table: Optional[TableMetadata] = None
        self._view: Optional[ViewDescriptor] = None
        self._others: dict[str, TableMetadata] = {}

    @property
    def dialect(self):
        if self._dialect is None:
            self._dialect = resolve_dialect(
                self.connection, self.model.table_name or self.model.name, view_cache=self.view_cache,
            )
        return self._dialect

    @property
    def table(self) -> TableMetadata:
        if self._table is None:
            self._table = self.dialect.table_metadata()
        return self._table

    @property
    def view(self) -> ViewDescriptor:
        if self._view is None:
            if self.model.abstract or not self.model.table_name:
                self._view = NOT_A_VIEW
            else:
                self._view = self.dialect.view_info()
        return self._view

    @property
    def is_view(self) -> bool:
        return self.view.exists

    @property
    def has_table(self) -> bool:
        """A concrete model whose table or view reflected with at least one column."""
        if self.model.abstract or not self.model.table_name:
            return False
        return bool(self.table.columns)

    def table_for(self, qualified_name: str) -> TableMetadata:
        """Reflect another table on the same connection (memoized per session)."""
        if qualified_name not in self._others:
            dialect = resolve_dialect(self.connection, qualified_name, view_cache=self.view_cache)
            self._others[qualified_name] = dialect.table_metadata()
        return self._others[qualified_name]

    def sibling_name(self, name: str) -> str:
        """Qualify `name` with this model's schema, if it has one."""
        schema = (self.model.table_name or "").rpartition(".")[0]
        return f"{schema}.{name}" if schema else name

    def is_view_name(self, qualified_name: str) -> bool:
        dialect = resolve_dialect(self.connection, qualified_name, view_cache=self.view_cache)
        return ViewMetadataResolver(dialect, cache=self.view_cache).view_exists()

    def recover(self) -> None:
        """Reset the connection's transaction after a provider hit a database error."""
        self.dialect.recover()
