from core.dialects.base import BaseDialect, SchemaDialect  # noqa: F401
from core.dialects.postgresql import PostgresDialect
from core.dialects.mysql import MySQLDialect
from core.dialects.sqlite import SQLiteDialect

DIALECTS = {
    "PostgresDialect": PostgresDialect,
    "MySQLDialect": MySQLDialect,
    "SQLiteDialect": SQLiteDialect,
}
