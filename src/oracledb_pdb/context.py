import atexit
import itertools
import logging
import random
import string
import threading
from typing import Protocol

import oracledb
from oracledb.connection import Connection

from oracledb_pdb import constants

logger = logging.getLogger(__name__)


class ConnectionSource(Protocol):
    def connect(self) -> Connection: ...


def random_alphabetic(length: int) -> str:
    return "".join(random.choices(string.ascii_uppercase, k=length))


class PdbNameGenerator:
    """
    Hands out PDB names made of a random session identifier followed by a
    counter starting at 1. Names never repeat for the life of the generator.
    """

    def __init__(self, session_identifier: str | None = None):
        self.session_identifier = session_identifier or random_alphabetic(
            constants.SESSION_IDENTIFIER_LENGTH
        )
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def next_name(self) -> str:
        with self._lock:
            return f"{self.session_identifier}{next(self._counter)}"


def execute(cur, sql: str) -> None:
    logger.debug("executing %s", sql)
    try:
        cur.execute(sql)
    except oracledb.Error as exception:
        exception.add_note(sql)
        raise


def remove_pdb(name: str, data_source: ConnectionSource) -> None:
    """
    Close and drop a PDB including its datafiles through a CDB connection.
    """
    with data_source.connect() as conn:
        with conn.cursor() as cur:
            execute(cur, constants.SQL_SET_CONTAINER_ROOT)
            execute(cur, constants.SQL_CLOSE_PDB.format(name=name))
            execute(cur, constants.SQL_DROP_PDB.format(name=name))
    logger.info("Removed PDB %s", name)


class PdbRemovalRegistry:
    """
    PDBs to drop when the process ends, kept in registration order.
    """

    def __init__(self):
        self._entries: list[tuple[str, ConnectionSource]] = []
        self._lock = threading.Lock()
        self._drained = False

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def names(self) -> list[str]:
        with self._lock:
            return [name for name, _ in self._entries]

    def register(self, name: str, data_source: ConnectionSource) -> None:
        with self._lock:
            if self._drained:
                logger.warning(
                    "PDB %s registered after removal already ran, it will be kept",
                    name,
                )
            self._entries.append((name, data_source))

    def remove_all(self) -> list[str]:
        """
        Drop every registered PDB once. A failing PDB is logged and skipped so
        the remaining ones are still attempted. Returns the names that could
        not be removed.
        """
        with self._lock:
            if self._drained:
                return []
            self._drained = True
            entries = list(self._entries)

        if entries:
            logger.info("Starting to remove %d PDBs that were created...", len(entries))

        failed = []
        for name, data_source in entries:
            try:
                remove_pdb(name, data_source)
            except Exception:
                logger.exception("Could not remove PDB %s", name)
                failed.append(name)
        return failed


class ProcessContext:
    """
    Process scoped state shared by every configuration and PDB: the name
    generator and the removal registry with its exit hook.
    """

    def __init__(
        self,
        name_generator: PdbNameGenerator | None = None,
        registry: PdbRemovalRegistry | None = None,
    ):
        self.name_generator = (
            PdbNameGenerator() if name_generator is None else name_generator
        )
        self.registry = PdbRemovalRegistry() if registry is None else registry
        self._exit_hook_installed = False
        self._lock = threading.Lock()

    def install_exit_hook(self) -> None:
        with self._lock:
            if self._exit_hook_installed:
                return
            atexit.register(self.registry.remove_all)
            self._exit_hook_installed = True
        logger.debug("Remove PDB exit hook is registered.")

    @property
    def exit_hook_installed(self) -> bool:
        return self._exit_hook_installed


_default_context: ProcessContext | None = None
_default_context_lock = threading.Lock()


def default_context() -> ProcessContext:
    global _default_context
    with _default_context_lock:
        if _default_context is None:
            _default_context = ProcessContext()
        return _default_context
