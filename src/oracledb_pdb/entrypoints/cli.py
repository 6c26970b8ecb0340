import argparse
import logging
import os

from oracledb_pdb.configuration import PdbConfigurationBuilder
from oracledb_pdb.context import ProcessContext
from oracledb_pdb.core import DataSource, OraclePdb

logger = logging.getLogger(__name__)


def create(args: argparse.Namespace) -> int:
    builder = PdbConfigurationBuilder().and_keep_pdb()
    if args.grant_unlimited_tablespace:
        builder.grant_unlimited_tablespace()

    pdb = OraclePdb(builder.build())
    pdb.ensure_created()

    print(f"url={pdb.connection_url}")
    print(f"user={pdb.admin_user}")
    print(f"password={pdb.admin_password}")
    return 0


def drop(args: argparse.Namespace) -> int:
    configuration = PdbConfigurationBuilder().and_do_not_create_pdb().build()
    cdb_data_source = DataSource(
        url=configuration.cdb_jdbc_url,
        user=configuration.cdb_username,
        password=configuration.cdb_password,
    )

    context = ProcessContext()
    for name in args.names:
        context.registry.register(name, cdb_data_source)
    failed = context.registry.remove_all()

    if failed:
        logger.error("%d PDBs could not be dropped: %s", len(failed), ", ".join(failed))
    else:
        logger.info("%d PDBs dropped", len(args.names))
    return len(failed)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO"),
    )

    parser = argparse.ArgumentParser(
        description="Create and drop Oracle pluggable databases for tests. "
        "The CDB connection is read from CDB_* environment variables or .env"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    create_parser = subparsers.add_parser(
        "create", help="Create a PDB that is kept after the command exits"
    )
    create_parser.add_argument(
        "--grant-unlimited-tablespace",
        action="store_true",
        help="Grant unlimited tablespace to the PDB admin user",
    )
    create_parser.set_defaults(func=create)

    drop_parser = subparsers.add_parser("drop", help="Close and drop PDBs")
    drop_parser.add_argument("names", nargs="+", help="Names of the PDBs to drop")
    drop_parser.set_defaults(func=drop)

    args = parser.parse_args(argv)
    return args.func(args)
