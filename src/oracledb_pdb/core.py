import logging
import re
import threading
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Self

import oracledb
from oracledb.connection import Connection
from oracledb.pool import ConnectionPool

from oracledb_pdb import constants
from oracledb_pdb.configuration import PdbConfiguration, PdbConfigurationBuilder
from oracledb_pdb.context import (
    ProcessContext,
    default_context,
    execute,
    remove_pdb,
)

logger = logging.getLogger(__name__)

AUTH_MODES = {
    "sysdba": oracledb.AUTH_MODE_SYSDBA,
    "sysoper": oracledb.AUTH_MODE_SYSOPER,
    "sysasm": oracledb.AUTH_MODE_SYSASM,
    "sysbackup": oracledb.AUTH_MODE_SYSBKP,
    "sysdg": oracledb.AUTH_MODE_SYSDGD,
    "syskm": oracledb.AUTH_MODE_SYSKMT,
}

SID_ADDRESS = re.compile(r"(?P<host>[^/:]+):(?P<port>\d+):(?P<sid>[^/:]+)")


def jdbc_url_to_dsn(url: str) -> str:
    """
    Convert a thin JDBC URL into a DSN python-oracledb understands. Service
    name URLs (@host:port/service) become Easy Connect strings, SID URLs
    (@host:port:SID) become connect descriptors.
    """
    if not url.startswith(constants.JDBC_URL_PREFIX):
        return url
    address = url.removeprefix(constants.JDBC_URL_PREFIX)
    match = SID_ADDRESS.fullmatch(address)
    if match:
        return oracledb.makedsn(match["host"], int(match["port"]), sid=match["sid"])
    return address.removeprefix("//")


def split_auth_mode(user: str) -> tuple[str, int]:
    """
    Split a JDBC style "sys as sysdba" user into the user and its auth mode.
    """
    match user.split():
        case [name, keyword, privilege] if (
            keyword.casefold() == "as" and privilege.casefold() in AUTH_MODES
        ):
            return name, AUTH_MODES[privilege.casefold()]
        case _:
            return user, oracledb.AUTH_MODE_DEFAULT


def init_session(conn: Connection) -> None:
    conn.client_info = constants.SERVICE_NAME


@dataclass(frozen=True)
class DataSource:
    url: str
    user: str
    password: str

    @property
    def dsn(self) -> str:
        return jdbc_url_to_dsn(self.url)

    def connect_params(self) -> dict[str, Any]:
        user, mode = split_auth_mode(self.user)
        return dict(user=user, password=self.password, dsn=self.dsn, mode=mode)

    def connect(self) -> Connection:
        conn = oracledb.connect(**self.connect_params())
        init_session(conn)
        return conn

    def create_pool(self, **kwargs) -> ConnectionPool:
        return oracledb.create_pool(
            **self.connect_params(),
            session_callback=lambda conn, requested_tag: init_session(conn),
            **kwargs,
        )


class OraclePdb:
    """
    Provides a freshly created PDB to tests.

    The PDB is created before the first test that uses it (or on construction
    if eager creation is configured) and dropped when the process ends unless
    it is configured to be kept.
    """

    def __init__(
        self,
        configuration: PdbConfiguration | None = None,
        context: ProcessContext | None = None,
    ):
        self._context = context or default_context()
        self.configuration = configuration or PdbConfigurationBuilder(
            context=self._context
        ).build()
        self._created = False
        self._service_name: str | None = None
        self._data_source: DataSource | None = None
        self._lock = threading.RLock()
        self._cdb_data_source = DataSource(
            url=self.configuration.cdb_jdbc_url,
            user=self.configuration.cdb_username,
            password=self.configuration.cdb_password,
        )
        logger.info(
            "Initialized CDB database connection using %s and username %s",
            self.configuration.cdb_jdbc_url,
            self.configuration.cdb_username,
        )

        if self.configuration.create_pdb_eager:
            self.ensure_created()

    @property
    def created(self) -> bool:
        return self._created

    @property
    def pdb_name(self) -> str:
        return self.configuration.pdb_name

    @property
    def service_name(self) -> str:
        return self._service_name or self.configuration.pdb_name

    @property
    def connection_url(self) -> str:
        """
        JDBC URL of the created PDB, or the CDB URL if no PDB is created.
        """
        return self.configuration.jdbc_url_for(self.service_name)

    @property
    def dsn(self) -> str:
        return jdbc_url_to_dsn(self.connection_url)

    @property
    def admin_user(self) -> str:
        return self.configuration.pdb_admin_user

    @property
    def admin_password(self) -> str:
        return self.configuration.pdb_admin_password

    @property
    def data_source(self) -> DataSource:
        if self._data_source is None:
            self._initialize_data_source()
        return self._data_source

    def _initialize_data_source(self) -> None:
        with self._lock:
            if self._data_source is None:
                self._data_source = DataSource(
                    url=self.connection_url,
                    user=self.admin_user,
                    password=self.admin_password,
                )

    def connect(self) -> Connection:
        return self.data_source.connect()

    def ensure_created(self) -> None:
        """
        Create and open the PDB unless creation is disabled or already done.
        Database errors propagate; a failure part way through can leave a
        partially created PDB behind.
        """
        with self._lock:
            if not self.configuration.create_pdb or self._created:
                return
            self._create()

    def _create(self) -> None:
        config = self.configuration
        with self._cdb_data_source.connect() as conn:
            with conn.cursor() as cur:
                execute(cur, constants.SQL_SET_CONTAINER_ROOT)
                execute(
                    cur,
                    constants.SQL_CREATE_PDB.format(
                        name=config.pdb_name,
                        user=config.pdb_admin_user,
                        password=config.pdb_admin_password,
                        seed_path=config.pdb_seed_path,
                        pdb_path=config.pdb_path,
                    ),
                )
                execute(cur, constants.SQL_OPEN_PDB.format(name=config.pdb_name))
                execute(cur, constants.SQL_SET_CONTAINER.format(name=config.pdb_name))
                execute(cur, constants.SQL_GET_SERVICE_NAME)
                row = cur.fetchone()
                self._service_name = row[0] if row and row[0] else config.pdb_name
            # rebind a data source handed out before the service name was known
            self._data_source = None

        logger.info(
            "Created PDB %s with admin user %s - connect using %s",
            config.pdb_name,
            config.pdb_admin_user,
            self.connection_url,
        )

        if not config.keep_pdb:
            self._context.registry.register(config.pdb_name, self._cdb_data_source)
            self._context.install_exit_hook()

        if config.grant_unlimited_tablespace:
            self._grant_unlimited_tablespace()

        self._created = True

    def _grant_unlimited_tablespace(self) -> None:
        with self.connect() as conn:
            with conn.cursor() as cur:
                execute(
                    cur,
                    constants.SQL_GRANT_UNLIMITED_TABLESPACE.format(
                        user=self.configuration.pdb_admin_user
                    ),
                )

    def remove(self) -> None:
        """
        Close and drop the PDB right away instead of waiting for process exit.
        """
        remove_pdb(self.configuration.pdb_name, self._cdb_data_source)

    def apply(self, test_fn: Callable) -> Callable:
        """
        Decorate a test so the PDB exists before its body runs.
        """

        @wraps(test_fn)
        def wrapper(*args, **kwargs):
            self.ensure_created()
            return test_fn(*args, **kwargs)

        return wrapper

    def __enter__(self) -> Self:
        self.ensure_created()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        return None
