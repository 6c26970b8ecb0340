import logging
import os
import pathlib
import secrets
import string
from dataclasses import dataclass, field
from typing import Mapping, Self

from dotenv import load_dotenv

from oracledb_pdb import constants
from oracledb_pdb.context import ProcessContext, default_context

logger = logging.getLogger(__name__)


def load_settings() -> Mapping[str, str]:
    """
    Named settings come from the environment. A .env file in the working
    directory is loaded first; variables already set in the environment win.
    """
    dotenv_path = pathlib.Path.cwd() / ".env"
    env_loaded = load_dotenv(dotenv_path)
    if not env_loaded:
        logger.debug("environmental file '%s' not found", dotenv_path)
    return os.environ


def parse_bool(value: str) -> bool:
    return value.casefold() == "true"


def _generate_admin_credential() -> str:
    return "".join(
        secrets.choice(string.ascii_uppercase)
        for _ in range(constants.ADMIN_CREDENTIAL_LENGTH)
    )


@dataclass(frozen=True)
class PdbConfiguration:
    cdb_jdbc_url: str
    cdb_username: str
    cdb_password: str
    keep_pdb: bool
    create_pdb: bool
    create_pdb_eager: bool
    grant_unlimited_tablespace: bool
    pdb_seed_path: str
    pdb_base_path: str
    pdb_name: str
    generated_admin_user: str = field(
        default_factory=_generate_admin_credential, repr=False
    )
    generated_admin_password: str = field(
        default_factory=_generate_admin_credential, repr=False
    )

    @property
    def pdb_path(self) -> str:
        return f"{self.pdb_base_path}{self.pdb_name}/"

    @property
    def pdb_admin_user(self) -> str:
        """
        Admin user of the created PDB, or the CDB username if no PDB is created.
        """
        return self.generated_admin_user if self.create_pdb else self.cdb_username

    @property
    def pdb_admin_password(self) -> str:
        """
        Admin password of the created PDB, or the CDB password if no PDB is
        created.
        """
        return (
            self.generated_admin_password if self.create_pdb else self.cdb_password
        )

    @property
    def pdb_jdbc_url(self) -> str:
        return self.jdbc_url_for(self.pdb_name)

    def jdbc_url_for(self, service_name: str) -> str:
        """
        The CDB JDBC URL with its last path segment replaced by service_name.
        Without PDB creation the CDB URL is returned untouched.
        """
        if not self.create_pdb:
            return self.cdb_jdbc_url
        base, _, _ = self.cdb_jdbc_url.rpartition("/")
        return f"{base}/{service_name}" if base else service_name


class PdbConfigurationBuilder:
    """
    Collects PDB settings. A named setting always takes precedence over the
    corresponding builder call, whatever order the calls are made in.
    """

    def __init__(
        self,
        settings: Mapping[str, str] | None = None,
        context: ProcessContext | None = None,
    ):
        self._settings = load_settings() if settings is None else settings
        self._context = context or default_context()

        self._oradata_folder = self._setting(
            constants.ORADATA_FOLDER, constants.DEFAULT_ORADATA_FOLDER
        )
        self._cdb_name = self._setting(constants.CDB_NAME, constants.DEFAULT_CDB_NAME)
        self._cdb_host = self._setting(constants.CDB_HOST, constants.DEFAULT_CDB_HOST)
        self._cdb_port = self._setting(constants.CDB_PORT, constants.DEFAULT_CDB_PORT)
        self._pdb_seed_name = self._setting(
            constants.PDBSEED_NAME, constants.DEFAULT_PDBSEED_NAME
        )
        self._cdb_username = self._setting(
            constants.CDB_USERNAME, constants.DEFAULT_CDB_USERNAME
        )
        self._cdb_password = self._setting(
            constants.CDB_PASSWORD, constants.DEFAULT_CDB_PASSWORD
        )
        self._create_pdb = parse_bool(
            self._setting(constants.CREATE_PDB, constants.DEFAULT_CREATE_PDB)
        )
        self._keep_pdb = parse_bool(
            self._setting(constants.KEEP_PDB, constants.DEFAULT_KEEP_PDB)
        )
        self._create_pdb_eager = parse_bool(
            self._setting(constants.CREATE_PDB_EAGER, constants.DEFAULT_CREATE_PDB_EAGER)
        )
        self._grant_unlimited_tablespace = parse_bool(
            self._setting(
                constants.GRANT_UNLIMITED_TABLESPACE,
                constants.DEFAULT_GRANT_UNLIMITED_TABLESPACE,
            )
        )
        self._custom_cdb_jdbc_url: str | None = None
        self._custom_pdb_base_path: str | None = None
        self._custom_pdb_seed_path: str | None = None

    def _setting(self, key: str, default: str | None = None) -> str | None:
        return self._settings.get(key, default)

    def _apply_if_setting_is_not_set(self, key: str, attribute: str, value) -> Self:
        if key in self._settings:
            logger.debug(
                "Value of setting %s is taking precedence over corresponding "
                "programmatically set value.",
                key,
            )
        else:
            setattr(self, attribute, value)
        return self

    def and_create_pdb_eager(self) -> Self:
        """
        Create the PDB when the OraclePdb is constructed instead of before the
        first test, for collaborators that need the database early.
        """
        return self._apply_if_setting_is_not_set(
            constants.CREATE_PDB_EAGER, "_create_pdb_eager", True
        )

    def and_do_not_create_pdb(self) -> Self:
        """
        Skip PDB creation and hand out the CDB credentials instead.
        """
        return self._apply_if_setting_is_not_set(
            constants.CREATE_PDB, "_create_pdb", False
        )

    def and_keep_pdb(self) -> Self:
        """
        Keep the PDB after the process ends, e.g. to inspect its content.
        """
        return self._apply_if_setting_is_not_set(constants.KEEP_PDB, "_keep_pdb", True)

    def grant_unlimited_tablespace(self) -> Self:
        return self._apply_if_setting_is_not_set(
            constants.GRANT_UNLIMITED_TABLESPACE, "_grant_unlimited_tablespace", True
        )

    def with_cdb_host(self, cdb_host: str) -> Self:
        return self._apply_if_setting_is_not_set(
            constants.CDB_HOST, "_cdb_host", cdb_host
        )

    def with_cdb_port(self, cdb_port: str) -> Self:
        return self._apply_if_setting_is_not_set(
            constants.CDB_PORT, "_cdb_port", str(cdb_port)
        )

    def with_cdb_name(self, cdb_name: str) -> Self:
        return self._apply_if_setting_is_not_set(
            constants.CDB_NAME, "_cdb_name", cdb_name
        )

    def with_cdb_jdbc_url(self, cdb_jdbc_url: str) -> Self:
        """
        Overrides the URL otherwise built from host, port and CDB name.
        """
        return self._apply_if_setting_is_not_set(
            constants.CDB_JDBC_URL, "_custom_cdb_jdbc_url", cdb_jdbc_url
        )

    def with_cdb_username(self, cdb_username: str) -> Self:
        return self._apply_if_setting_is_not_set(
            constants.CDB_USERNAME, "_cdb_username", cdb_username
        )

    def with_cdb_password(self, cdb_password: str) -> Self:
        return self._apply_if_setting_is_not_set(
            constants.CDB_PASSWORD, "_cdb_password", cdb_password
        )

    def with_oradata_folder(self, oradata_folder: str) -> Self:
        return self._apply_if_setting_is_not_set(
            constants.ORADATA_FOLDER, "_oradata_folder", oradata_folder
        )

    def with_pdb_base_path(self, pdb_base_path: str | None) -> Self:
        """
        Folder the PDB folder is created in. Defaults to
        {ORADATA_FOLDER}{CDB_NAME}/.
        """
        return self._apply_if_setting_is_not_set(
            constants.PDB_BASE_PATH, "_custom_pdb_base_path", pdb_base_path
        )

    def with_pdb_seed_name(self, pdb_seed_name: str) -> Self:
        return self._apply_if_setting_is_not_set(
            constants.PDBSEED_NAME, "_pdb_seed_name", pdb_seed_name
        )

    def with_pdb_seed_path(self, pdb_seed_path: str | None) -> Self:
        """
        Folder of the seed PDB. Defaults to
        {ORADATA_FOLDER}{CDB_NAME}/{PDBSEED_NAME}/.
        """
        return self._apply_if_setting_is_not_set(
            constants.PDB_SEED_PATH, "_custom_pdb_seed_path", pdb_seed_path
        )

    def build(self) -> PdbConfiguration:
        cdb_jdbc_url = self._setting(
            constants.CDB_JDBC_URL,
            self._custom_cdb_jdbc_url
            or constants.CDB_JDBC_URL_TEMPLATE.format(
                host=self._cdb_host, port=self._cdb_port, cdb_name=self._cdb_name
            ),
        )
        pdb_seed_path = self._setting(
            constants.PDB_SEED_PATH,
            self._custom_pdb_seed_path
            or f"{self._oradata_folder}{self._cdb_name}/{self._pdb_seed_name}/",
        )
        pdb_base_path = self._setting(
            constants.PDB_BASE_PATH,
            self._custom_pdb_base_path or f"{self._oradata_folder}{self._cdb_name}/",
        )

        return PdbConfiguration(
            cdb_jdbc_url=cdb_jdbc_url,
            cdb_username=self._cdb_username,
            cdb_password=self._cdb_password,
            keep_pdb=self._keep_pdb,
            create_pdb=self._create_pdb,
            create_pdb_eager=self._create_pdb_eager,
            grant_unlimited_tablespace=self._grant_unlimited_tablespace,
            pdb_seed_path=pdb_seed_path,
            pdb_base_path=pdb_base_path,
            pdb_name=self._context.name_generator.next_name(),
        )
