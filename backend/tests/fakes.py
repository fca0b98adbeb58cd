"""Stand-ins for a live connection and SQLAlchemy Inspector in dialect tests."""
from types import SimpleNamespace


class FakeResult:
    def __init__(self, rows):
        self.rows = rows

    def mappings(self):
        return self

    def all(self):
        return self.rows

    def scalar(self):
        return next(iter(self.rows[0].values())) if self.rows else None


class FakeConnection:
    """Answers catalog queries from (sql substring, rows | exception) pairs, in order."""

    def __init__(self, adapter="postgresql", responses=None, version=(15, 4)):
        self.dialect = SimpleNamespace(name=adapter, server_version_info=version)
        self.responses = list(responses or [])
        self.statements: list[tuple[str, dict]] = []
        self.rollbacks = 0

    def execute(self, statement, params=None):
        sql = str(statement)
        self.statements.append((sql, dict(params or {})))
        for needle, rows in self.responses:
            if needle in sql:
                if isinstance(rows, Exception):
                    raise rows
                return FakeResult(rows)
        return FakeResult([])

    def rollback(self):
        self.rollbacks += 1

    def params_for(self, needle):
        return [params for sql, params in self.statements if needle in sql]


class FakeInspector:
    """Returns canned reflection data and records the (name, schema) of every call."""

    def __init__(self, columns=None, indexes=None, foreign_keys=None, pk=None,
                 check_constraints=None, comment=None, errors=None):
        self.data = {
            "get_columns": columns or [],
            "get_indexes": indexes or [],
            "get_foreign_keys": foreign_keys or [],
            "get_pk_constraint": {"constrained_columns": pk or []},
            "get_check_constraints": check_constraints or [],
            "get_table_comment": {"text": comment},
        }
        self.errors = errors or {}
        self.calls: list[tuple[str, str, str]] = []

    def __getattr__(self, method):
        if method not in self.data:
            raise AttributeError(method)

        def lookup(name, schema=None):
            self.calls.append((method, name, schema))
            if method in self.errors:
                raise self.errors[method]
            return self.data[method]
        return lookup
