from typing import Any, Iterator

import oracledb
import pytest

from oracledb_pdb.configuration import PdbConfigurationBuilder
from oracledb_pdb.context import PdbNameGenerator, ProcessContext

pytest_plugins = ["pytester"]

SESSION_IDENTIFIER = "TESTID"


class FakeCursor:
    def __init__(self, database: "FakeDatabase", connection: "FakeConnection"):
        self.database = database
        self.connection = connection
        self._last_sql: str | None = None

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return None

    def execute(self, sql: str, parameters=None) -> None:
        self.database.statements.append((self.connection.params["user"], sql))
        self._last_sql = sql
        for fragment in self.database.fail_on:
            if fragment in sql:
                raise oracledb.DatabaseError(f"ORA-65012: failed on {fragment}")

    def fetchone(self):
        if self._last_sql and "service_name" in self._last_sql:
            return self.database.service_row
        return None


class FakeConnection:
    def __init__(self, database: "FakeDatabase", params: dict[str, Any]):
        self.database = database
        self.params = params
        self.client_info: str | None = None
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def cursor(self) -> FakeCursor:
        return FakeCursor(self.database, self)

    def close(self) -> None:
        self.closed = True


class FakeDatabase:
    """
    Records every statement executed through oracledb.connect as
    (connecting user, sql) pairs.
    """

    def __init__(self):
        self.statements: list[tuple[str, str]] = []
        self.connections: list[FakeConnection] = []
        self.fail_on: set[str] = set()
        self.service_row: tuple | None = ("service.example.com",)

    def connect(self, **params) -> FakeConnection:
        conn = FakeConnection(self, params)
        self.connections.append(conn)
        return conn

    @property
    def sql(self) -> list[str]:
        return [sql for _, sql in self.statements]


@pytest.fixture
def fake_db(monkeypatch) -> FakeDatabase:
    database = FakeDatabase()
    monkeypatch.setattr(oracledb, "connect", database.connect)
    return database


@pytest.fixture
def context(fake_db) -> Iterator[ProcessContext]:
    ctx = ProcessContext(name_generator=PdbNameGenerator(SESSION_IDENTIFIER))
    yield ctx
    # Drain while the fake database is still in place so the exit hook has
    # nothing left to do.
    ctx.registry.remove_all()


@pytest.fixture
def builder(context):
    def make(settings: dict[str, str] | None = None) -> PdbConfigurationBuilder:
        return PdbConfigurationBuilder(
            settings={} if settings is None else settings, context=context
        )

    return make
