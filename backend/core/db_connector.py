"""
Database connector — SQLAlchemy engine factory and dialect resolution.
Supports PostgreSQL, MySQL / MariaDB and SQLite.
"""
import logging
from typing import Optional
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

from config import settings
from core.errors import ConnectionNotEstablishedError, UnsupportedAdapterError

logger = logging.getLogger(__name__)

# adapter substring -> dialect class name, checked in order
ADAPTER_TABLE: list[tuple[str, str]] = [
    ("postgresql", "PostgresDialect"),
    ("postgis", "PostgresDialect"),
    ("mysql", "MySQLDialect"),
    ("mariadb", "MySQLDialect"),
    ("sqlite", "SQLiteDialect"),
]

DIALECT_LABELS = {
    "PostgresDialect": "PostgreSQL",
    "MySQLDialect": "MySQL",
    "SQLiteDialect": "SQLite",
}


def create_engine_from_url(url: Optional[str] = None, validate: bool = True) -> Engine:
    """Build and (optionally) test a SQLAlchemy engine for the target database."""
    url = url or settings.DATABASE_URL
    engine = create_engine(url, pool_pre_ping=True)
    if validate:
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except OperationalError as e:
            engine.dispose()
            raise ConnectionNotEstablishedError(f"Could not connect to database: {e}") from e
    return engine


def adapter_name(connection) -> str:
    dialect = getattr(connection, "dialect", None)
    if dialect is None:
        raise ConnectionNotEstablishedError("connection exposes no dialect")
    return str(dialect.name).lower()


def dialect_class_name(connection) -> str:
    """Name of the dialect class for the connection's adapter; fails loudly when unknown."""
    name = adapter_name(connection)
    for needle, class_name in ADAPTER_TABLE:
        if needle in name:
            return class_name
    expected = ", ".join(sorted(set(DIALECT_LABELS)))
    raise UnsupportedAdapterError(
        f"Unsupported database adapter '{name}'; expected one served by {expected}"
    )


def database_dialect(connection) -> str:
    """Human-readable dialect label, e.g. "PostgreSQL"."""
    return DIALECT_LABELS[dialect_class_name(connection)]


def resolve_dialect(connection, qualified_name: str, **options):
    """Single resolution point from a live connection to its SchemaDialect."""
    from core.dialects import DIALECTS

    class_name = dialect_class_name(connection)
    logger.debug("Resolved adapter %s to %s", adapter_name(connection), class_name)
    return DIALECTS[class_name](connection, qualified_name, **options)


def split_qualified_name(qualified_name: str) -> tuple[Optional[str], str]:
    """Split "audit.audit_logs" into ("audit", "audit_logs"); bare names carry no schema."""
    if "." in qualified_name:
        schema, _, name = qualified_name.partition(".")
        return schema, name
    return None, qualified_name
