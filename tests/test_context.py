import atexit
import logging
import threading

import oracledb
import pytest

from oracledb_pdb import context as context_module
from oracledb_pdb.context import (
    PdbRemovalRegistry,
    ProcessContext,
    default_context,
    remove_pdb,
)
from oracledb_pdb.core import DataSource

CDB = DataSource("jdbc:oracle:thin:@localhost:1521/ORCLCDB", "sys as sysdba", "oracle")


def removal_sql(name: str) -> list[str]:
    return [
        "ALTER SESSION SET CONTAINER = CDB$ROOT",
        f"ALTER PLUGGABLE DATABASE {name} CLOSE IMMEDIATE",
        f"DROP PLUGGABLE DATABASE {name} INCLUDING DATAFILES",
    ]


def test_remove_pdb(fake_db):
    remove_pdb("PDB1", CDB)

    assert fake_db.sql == removal_sql("PDB1")
    assert fake_db.connections[0].closed is True


def test_remove_pdb_failure_propagates(fake_db):
    fake_db.fail_on.add("CLOSE IMMEDIATE")

    with pytest.raises(oracledb.DatabaseError) as exc_info:
        remove_pdb("PDB1", CDB)

    assert "ALTER PLUGGABLE DATABASE PDB1 CLOSE IMMEDIATE" in exc_info.value.__notes__


def test_registry_removes_in_registration_order(fake_db):
    registry = PdbRemovalRegistry()
    registry.register("PDB1", CDB)
    registry.register("PDB2", CDB)

    failed = registry.remove_all()

    assert failed == []
    assert fake_db.sql == removal_sql("PDB1") + removal_sql("PDB2")


def test_registry_continues_after_failure(fake_db, caplog):
    fake_db.fail_on.add("DROP PLUGGABLE DATABASE PDB1 ")
    registry = PdbRemovalRegistry()
    for name in ("PDB1", "PDB2", "PDB3"):
        registry.register(name, CDB)

    with caplog.at_level(logging.ERROR):
        failed = registry.remove_all()

    assert failed == ["PDB1"]
    assert fake_db.sql[-6:] == removal_sql("PDB2") + removal_sql("PDB3")
    assert "Could not remove PDB PDB1" in caplog.text


def test_registry_drains_once(fake_db):
    registry = PdbRemovalRegistry()
    registry.register("PDB1", CDB)

    registry.remove_all()
    registry.remove_all()

    assert fake_db.sql == removal_sql("PDB1")


def test_register_after_drain_is_kept(fake_db, caplog):
    registry = PdbRemovalRegistry()
    registry.remove_all()

    with caplog.at_level(logging.WARNING):
        registry.register("LATE1", CDB)

    assert registry.remove_all() == []
    assert fake_db.statements == []
    assert "LATE1 registered after removal already ran" in caplog.text


def test_empty_registry_is_kept_by_context():
    registry = PdbRemovalRegistry()

    assert ProcessContext(registry=registry).registry is registry


def test_exit_hook_is_installed_once(monkeypatch):
    registered = []
    monkeypatch.setattr(atexit, "register", registered.append)
    context = ProcessContext()

    context.install_exit_hook()
    context.install_exit_hook()

    assert registered == [context.registry.remove_all]
    assert context.exit_hook_installed is True


def test_default_context_is_shared():
    assert default_context() is default_context()


def test_default_context_is_created_once_under_contention(monkeypatch):
    monkeypatch.setattr(context_module, "_default_context", None)
    barrier = threading.Barrier(8)
    contexts = []
    lock = threading.Lock()

    def first_use():
        barrier.wait()
        ctx = default_context()
        with lock:
            contexts.append(ctx)

    threads = [threading.Thread(target=first_use) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(contexts) == 8
    assert all(ctx is contexts[0] for ctx in contexts)
