"""Database dialect detection from homeserver.yaml."""

import re
from typing import Callable, Dict, List, Optional, Sequence

import yaml

from matrixusermanager.constants import (
    DEFAULT_DOMAIN,
    DEFAULT_PG_DATABASE,
    DEFAULT_PG_HOST,
    DEFAULT_PG_PORT,
    DEFAULT_PG_USER,
    DEFAULT_SQLITE_PATH,
    POSTGRES_DRIVER,
    SQLITE_DRIVER,
    SQLITE_FALLBACK_PATHS,
)
from matrixusermanager.errors import DatabaseConnectionError, NoDatabaseContainerError
from matrixusermanager.errors_catalog import actionable_error
from matrixusermanager.models import (
    ConnectionParams,
    DetectedDatabase,
    Dialect,
    DiscoveryResult,
    Environment,
)
from matrixusermanager.services import queries

CONNECTION_DEFAULTS = {
    "user": DEFAULT_PG_USER,
    "host": DEFAULT_PG_HOST,
    "port": DEFAULT_PG_PORT,
    "database_name": DEFAULT_PG_DATABASE,
}

SQLITE_MARKER_WINDOW = 10

_KEY_VALUE = re.compile(r"^\s+(?:-\s+)?([A-Za-z_]\w*)\s*:\s*(.*)$")
_SERVER_NAME = re.compile(r"^server_name\s*:\s*(.*)$", re.MULTILINE)


def _driver_marker(driver: str):
    return re.compile(rf"^\s*name\s*:\s*['\"]?{re.escape(driver)}['\"]?\s*(#.*)?$")


def _clean_value(raw: str) -> str:
    value = raw.strip()
    if value[:1] in ("'", '"'):
        end = value.find(value[0], 1)
        if end > 0:
            value = value[1:end]
    else:
        value = re.split(r"\s+#", value, maxsplit=1)[0]
    return value.strip().strip("'\"").strip()


def _top_level_block(lines: Sequence[str], key: str) -> List[str]:
    block: List[str] = []
    inside = False
    for line in lines:
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        if line[0] not in " \t-":
            if inside:
                break
            inside = line.split(":", 1)[0].strip() == key
            continue
        if inside:
            block.append(line)
    return block


def _values(lines: Sequence[str], keys: Sequence[str]) -> List[str]:
    found = []
    for line in lines:
        match = _KEY_VALUE.match(line)
        if match and match.group(1) in keys:
            value = _clean_value(match.group(2))
            if value:
                found.append(value)
    return found


def _first(values: List[str]) -> Optional[str]:
    return values[0] if values else None


def detect_from_yaml(content: str) -> Optional[DetectedDatabase]:
    """Structured parse; returns None when the text is not a YAML mapping."""
    try:
        parsed = yaml.safe_load(content)
    except yaml.YAMLError:
        return None
    if not isinstance(parsed, dict):
        return None

    domain = str(parsed.get("server_name") or "").strip() or DEFAULT_DOMAIN
    database = parsed.get("database")
    if not isinstance(database, dict):
        return DetectedDatabase(dialect=None, domain=domain)

    args = database.get("args")
    if not isinstance(args, dict):
        args = {}
    driver = str(database.get("name") or "").strip()

    if driver == POSTGRES_DRIVER:
        connection: Dict[str, str] = {}
        for key in ("user", "password", "host", "port"):
            if args.get(key) not in (None, ""):
                connection[key] = str(args[key])
        for key, value in args.items():
            if key in ("dbname", "database") and value not in (None, ""):
                connection["database_name"] = str(value)
        return DetectedDatabase(dialect=Dialect.CLIENT_SERVER, domain=domain, connection=connection)

    if driver == SQLITE_DRIVER:
        path = str(args.get("database") or "").strip() or DEFAULT_SQLITE_PATH
        return DetectedDatabase(dialect=Dialect.EMBEDDED_FILE, domain=domain, sqlite_path=path)

    return DetectedDatabase(dialect=None, domain=domain)


def detect_from_lines(content: str) -> DetectedDatabase:
    """Line-oriented scan for configs PyYAML cannot load."""
    lines = content.splitlines()
    match = _SERVER_NAME.search(content)
    domain = (_clean_value(match.group(1)) if match else "") or DEFAULT_DOMAIN
    block = _top_level_block(lines, "database")

    postgres_marker = _driver_marker(POSTGRES_DRIVER)
    if any(postgres_marker.match(line) for line in lines):
        connection: Dict[str, str] = {}
        for key in ("user", "password", "host", "port"):
            value = _first(_values(block, (key,)))
            if value:
                connection[key] = value
        names = _values(block, ("dbname", "database"))
        if names:
            connection["database_name"] = names[-1]
        return DetectedDatabase(dialect=Dialect.CLIENT_SERVER, domain=domain, connection=connection)

    sqlite_marker = _driver_marker(SQLITE_DRIVER)
    for index, line in enumerate(lines):
        if not sqlite_marker.match(line):
            continue
        path = _first(_values(block, ("database",)))
        if not path:
            window = lines[index + 1 : index + 1 + SQLITE_MARKER_WINDOW]
            path = _first(_values(window, ("database",)))
        return DetectedDatabase(
            dialect=Dialect.EMBEDDED_FILE,
            domain=domain,
            sqlite_path=path or DEFAULT_SQLITE_PATH,
        )

    return DetectedDatabase(dialect=None, domain=domain)


DETECTION_STRATEGIES: Sequence[Callable[[str], Optional[DetectedDatabase]]] = (
    detect_from_yaml,
    detect_from_lines,
)


def detect_database(content: str) -> DetectedDatabase:
    for strategy in DETECTION_STRATEGIES:
        detected = strategy(content)
        if detected is not None:
            return detected
    return DetectedDatabase(dialect=None, domain=DEFAULT_DOMAIN)


class EnvironmentResolver:
    """Turns detected settings into a verified :class:`Environment`."""

    def __init__(self, logger, files, executor):
        self.logger = logger
        self.files = files
        self.executor = executor

    def resolve(
        self, discovery: DiscoveryResult, content: str, config_path: str, prompter
    ) -> Environment:
        detected = detect_database(content)
        self.logger.info("Domain: %s", detected.domain)

        dialect = detected.dialect
        if dialect is None:
            dialect = self._ask_dialect(prompter)
            detected = DetectedDatabase(
                dialect=dialect,
                domain=detected.domain,
                sqlite_path=DEFAULT_SQLITE_PATH if dialect is Dialect.EMBEDDED_FILE else None,
            )

        if dialect is Dialect.CLIENT_SERVER:
            environment = self._resolve_postgres(discovery, detected, config_path, prompter)
        else:
            environment = self._resolve_sqlite(discovery, detected, config_path, prompter)

        self.logger.info("Database config - Type: %s", environment.dialect.value)
        if environment.dialect is Dialect.CLIENT_SERVER:
            self.logger.info("Postgres: %s", environment.connection.describe())
        else:
            self.logger.info("SQLite path: %s", environment.sqlite_path)
        return environment

    def _ask_dialect(self, prompter) -> Dialect:
        choice = prompter.choose(
            "Database Type",
            "Could not automatically determine database type. Choose:",
            [
                (Dialect.EMBEDDED_FILE.value, "SQLite (homeserver.db file)"),
                (Dialect.CLIENT_SERVER.value, "PostgreSQL database"),
            ],
        )
        self.logger.info("User chose database type: %s", choice)
        return Dialect(choice)

    def _resolve_postgres(
        self, discovery: DiscoveryResult, detected: DetectedDatabase, config_path: str, prompter
    ) -> Environment:
        if not discovery.database_container:
            raise NoDatabaseContainerError(actionable_error("no_database_container"))

        fields = dict(CONNECTION_DEFAULTS)
        fields.update(detected.connection)

        password = fields.get("password", "")
        if not password:
            password = prompter.ask_password(
                "Postgres Password",
                f"Enter Postgres password for user '{fields['user']}' "
                f"on database '{fields['database_name']}'",
            )

        environment = Environment(
            server_container=discovery.server_container,
            dialect=Dialect.CLIENT_SERVER,
            domain=detected.domain,
            config_path=config_path,
            database_container=discovery.database_container,
            connection=ConnectionParams(
                user=fields["user"],
                password=password,
                host=fields["host"],
                port=fields["port"],
                database_name=fields["database_name"],
            ),
        )

        probe = self.executor.execute(environment, queries.PROBE)
        if not probe.ok:
            raise DatabaseConnectionError(
                actionable_error(
                    "database_connection",
                    database=fields["database_name"],
                    user=fields["user"],
                )
            )
        return environment

    def _resolve_sqlite(
        self, discovery: DiscoveryResult, detected: DetectedDatabase, config_path: str, prompter
    ) -> Environment:
        configured = detected.sqlite_path or DEFAULT_SQLITE_PATH
        candidates = [configured] + [path for path in SQLITE_FALLBACK_PATHS if path != configured]
        path = self.files.locate(
            discovery.server_container,
            candidates,
            "*.db",
            DEFAULT_SQLITE_PATH,
            prompter,
            title="SQLite Database",
            prompt="Enter SQLite database path",
            found_heading="Found database files in container:",
        )
        return Environment(
            server_container=discovery.server_container,
            dialect=Dialect.EMBEDDED_FILE,
            domain=detected.domain,
            config_path=config_path,
            sqlite_path=path,
        )
