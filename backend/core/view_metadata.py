"""
View metadata resolver.

Classifies a table identifier as table / view / materialized view using only
the dialect's view registries, scoped to the user's schema or database. The
classification is memoized in a ViewCache keyed by (connection identity,
qualified name). Any statement or missing-connection error means "not a view".
"""
import logging
import threading
from datetime import datetime
from typing import Callable, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from core.errors import ConnectionNotEstablishedError, ErrorReporter
from models.view import NOT_A_VIEW, ViewDescriptor

logger = logging.getLogger(__name__)

T = TypeVar("T")

NOT_A_VIEW_KIND = "none"


class ViewCache:
    """Lock-guarded map of (connection identity, qualified name) -> view kind."""

    def __init__(self):
        self._data: dict[tuple[int, str], str] = {}
        self._lock = threading.Lock()

    @staticmethod
    def key_for(connection, qualified_name: str) -> tuple[int, str]:
        return id(getattr(connection, "engine", connection)), qualified_name

    def get(self, key: tuple[int, str]) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: tuple[int, str], kind: str) -> None:
        with self._lock:
            self._data[key] = kind

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class ViewMetadataResolver:
    def __init__(self, dialect, cache: Optional[ViewCache] = None):
        self.dialect = dialect
        self.cache = cache if cache is not None else ViewCache()

    @property
    def key(self) -> tuple[int, str]:
        return ViewCache.key_for(self.dialect.connection, self.dialect.qualified_name)

    def _kind(self) -> str:
        cached = self.cache.get(self.key)
        if cached is not None:
            return cached
        try:
            kind = self.dialect.view_kind() or NOT_A_VIEW_KIND
        except (SQLAlchemyError, ConnectionNotEstablishedError) as e:
            ErrorReporter.report(e, {"view": self.dialect.qualified_name})
            self.dialect.recover()
            kind = NOT_A_VIEW_KIND
        self.cache.set(self.key, kind)
        return kind

    def view_exists(self) -> bool:
        return self._kind() != NOT_A_VIEW_KIND

    def view_type(self) -> Optional[str]:
        kind = self._kind()
        return None if kind == NOT_A_VIEW_KIND else kind

    def materialized(self) -> bool:
        return self._kind() == "materialized"

    def updatable(self) -> bool:
        if not self.view_exists() or self.materialized():
            return False
        return self._safe(self.dialect.view_updatable, False)

    def dependencies(self) -> list[str]:
        if not self.view_exists():
            return []
        return self._safe(self.dialect.view_dependencies, [])

    def refresh_strategy(self) -> Optional[str]:
        if not self.materialized():
            return None
        return self._safe(self.dialect.view_refresh_strategy, None)

    def last_refreshed(self) -> Optional[datetime]:
        if not self.materialized():
            return None
        return self._safe(self.dialect.view_last_refreshed, None)

    def view_definition(self) -> Optional[str]:
        if not self.view_exists():
            return None
        return self._safe(self.dialect.view_definition, None)

    def describe(self) -> ViewDescriptor:
        if not self.view_exists():
            return NOT_A_VIEW
        return ViewDescriptor(
            exists=True,
            kind=self.view_type(),
            updatable=self.updatable(),
            dependencies=self.dependencies(),
            refresh_strategy=self.refresh_strategy(),
            last_refreshed=self.last_refreshed(),
            definition=self.view_definition(),
        )

    def _safe(self, fn: Callable[[], T], default: T) -> T:
        try:
            return fn()
        except (SQLAlchemyError, ConnectionNotEstablishedError) as e:
            ErrorReporter.report(e, {"view": self.dialect.qualified_name, "lookup": fn.__name__})
            self.dialect.recover()
            return default
