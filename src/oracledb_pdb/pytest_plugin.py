"""
pytest integration, registered through the pytest11 entry point.

Override ``oracle_pdb_configuration`` in a conftest.py to configure the PDB::

    @pytest.fixture(scope="session")
    def oracle_pdb_configuration():
        return PdbConfigurationBuilder().grant_unlimited_tablespace().build()
"""
import logging
from typing import Iterator

import pytest
from oracledb.connection import Connection

from oracledb_pdb.configuration import PdbConfiguration, PdbConfigurationBuilder
from oracledb_pdb.context import default_context
from oracledb_pdb.core import OraclePdb

logger = logging.getLogger(__name__)


@pytest.fixture(scope="session")
def oracle_pdb_configuration() -> PdbConfiguration:
    return PdbConfigurationBuilder().build()


@pytest.fixture(scope="session")
def oracle_pdb(oracle_pdb_configuration: PdbConfiguration) -> OraclePdb:
    pdb = OraclePdb(oracle_pdb_configuration)
    pdb.ensure_created()
    return pdb


@pytest.fixture
def oracle_pdb_connection(oracle_pdb: OraclePdb) -> Iterator[Connection]:
    with oracle_pdb.connect() as conn:
        yield conn


def pytest_unconfigure(config: pytest.Config) -> None:
    # Drop PDBs when the session ends; the exit hook then finds nothing to do.
    failed = default_context().registry.remove_all()
    if failed:
        logger.error("PDBs left behind: %s", ", ".join(failed))
