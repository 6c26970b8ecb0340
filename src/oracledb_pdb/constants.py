SERVICE_NAME = "oracledb-pdb"
JDBC_URL_PREFIX = "jdbc:oracle:thin:@"
SESSION_IDENTIFIER_LENGTH = 6
ADMIN_CREDENTIAL_LENGTH = 12

# Named settings, read from the environment (and .env).
ORADATA_FOLDER = "ORADATA_FOLDER"
CDB_NAME = "CDB_NAME"
CDB_HOST = "CDB_HOST"
CDB_PORT = "CDB_PORT"
PDBSEED_NAME = "PDBSEED_NAME"
CDB_USERNAME = "CDB_USERNAME"
CDB_PASSWORD = "CDB_PASSWORD"
CREATE_PDB = "CREATE_PDB"
KEEP_PDB = "KEEP_PDB"
CREATE_PDB_EAGER = "CREATE_PDB_EAGER"
GRANT_UNLIMITED_TABLESPACE = "GRANT_UNLIMITED_TABLESPACE"
CDB_JDBC_URL = "CDB_JDBC_URL"
PDB_BASE_PATH = "PDB_BASE_PATH"
PDB_SEED_PATH = "PDB_SEED_PATH"

SETTING_KEYS = (
    ORADATA_FOLDER,
    CDB_NAME,
    CDB_HOST,
    CDB_PORT,
    PDBSEED_NAME,
    CDB_USERNAME,
    CDB_PASSWORD,
    CREATE_PDB,
    KEEP_PDB,
    CREATE_PDB_EAGER,
    GRANT_UNLIMITED_TABLESPACE,
    CDB_JDBC_URL,
    PDB_BASE_PATH,
    PDB_SEED_PATH,
)

DEFAULT_ORADATA_FOLDER = "/opt/oracle/oradata/"
DEFAULT_CDB_NAME = "ORCLCDB"
DEFAULT_CDB_HOST = "localhost"
DEFAULT_CDB_PORT = "1521"
DEFAULT_PDBSEED_NAME = "pdbseed"
DEFAULT_CDB_USERNAME = "sys as sysdba"
DEFAULT_CDB_PASSWORD = "oracle"
DEFAULT_CREATE_PDB = "true"
DEFAULT_KEEP_PDB = "false"
DEFAULT_CREATE_PDB_EAGER = "false"
DEFAULT_GRANT_UNLIMITED_TABLESPACE = "false"

CDB_JDBC_URL_TEMPLATE = JDBC_URL_PREFIX + "{host}:{port}/{cdb_name}"

SQL_SET_CONTAINER_ROOT = "ALTER SESSION SET CONTAINER = CDB$ROOT"

# DDL cannot take bind parameters, names are formatted in.
SQL_CREATE_PDB = (
    "CREATE PLUGGABLE DATABASE {name} ADMIN USER {user} IDENTIFIED BY {password} "
    "ROLES=(DBA) FILE_NAME_CONVERT=('{seed_path}','{pdb_path}')"
)

SQL_OPEN_PDB = "ALTER PLUGGABLE DATABASE {name} OPEN"

SQL_SET_CONTAINER = "ALTER SESSION SET CONTAINER = {name}"

SQL_GET_SERVICE_NAME = "SELECT sys_context('userenv','service_name') FROM dual"

SQL_GRANT_UNLIMITED_TABLESPACE = "GRANT UNLIMITED TABLESPACE TO {user}"

SQL_CLOSE_PDB = "ALTER PLUGGABLE DATABASE {name} CLOSE IMMEDIATE"

SQL_DROP_PDB = "DROP PLUGGABLE DATABASE {name} INCLUDING DATAFILES"
