"""Fixed locations, keywords and defaults used during detection."""

SERVER_KEYWORDS = ("synapse", "matrix")
DATABASE_KEYWORDS = ("postgres", "postgresql")
MAX_CANDIDATES = 5

HOMESERVER_CONFIG_NAME = "homeserver.yaml"
HOMESERVER_CONFIG_PATHS = (
    "/data/homeserver.yaml",
    "/etc/matrix-synapse/homeserver.yaml",
    "/app/homeserver.yaml",
    "/synapse/config/homeserver.yaml",
    "/config/homeserver.yaml",
)
DEFAULT_CONFIG_PATH = "/data/homeserver.yaml"

DEFAULT_SQLITE_PATH = "/data/homeserver.db"
SQLITE_FALLBACK_PATHS = (
    "/data/homeserver.db",
    "/app/homeserver.db",
    "/synapse/data/homeserver.db",
)
SEARCH_RESULT_LIMIT = 10

SQLITE_DRIVER = "sqlite3"
POSTGRES_DRIVER = "psycopg2"

DEFAULT_DOMAIN = "matrix.example.com"
DEFAULT_PG_USER = "synapse"
DEFAULT_PG_HOST = "localhost"
DEFAULT_PG_PORT = "5432"
DEFAULT_PG_DATABASE = "synapse"

HOMESERVER_URL = "http://localhost:8008"
ERROR_MARKERS = ("error", "no module named")

LOG_FILE_NAME = "matrix_user_manager.log"
CONFIG_FILE_NAME = ".matrixusermanager.yml"
