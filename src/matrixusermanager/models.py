"""Shared domain models for matrix-user-manager."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class Dialect(Enum):
    EMBEDDED_FILE = "sqlite"
    CLIENT_SERVER = "postgres"


class MenuAction(Enum):
    EXIT = "0"
    LIST = "1"
    SHOW_INFO = "2"
    CREATE = "3"
    RESET_PASSWORD = "4"
    DEACTIVATE = "5"
    REACTIVATE = "6"
    BACKUP = "7"
    CUSTOM_QUERY = "8"


MENU_LABELS = {
    MenuAction.EXIT: "Exit",
    MenuAction.LIST: "List all users",
    MenuAction.SHOW_INFO: "Show user information",
    MenuAction.CREATE: "Create new user",
    MenuAction.RESET_PASSWORD: "Reset user password",
    MenuAction.DEACTIVATE: "Deactivate (disable) user",
    MenuAction.REACTIVATE: "Reactivate (enable) user",
    MenuAction.BACKUP: "Backup database",
    MenuAction.CUSTOM_QUERY: "Run custom SQL query",
}


@dataclass(frozen=True)
class Container:
    name: str
    image: str = ""

    def describe(self) -> str:
        return f"{self.name} ({self.image})" if self.image else self.name


@dataclass(frozen=True)
class DiscoveryResult:
    server_container: str
    database_container: Optional[str] = None
    database_skipped: bool = False


@dataclass(frozen=True)
class ConnectionParams:
    user: str
    password: str
    host: str
    port: str
    database_name: str

    def describe(self) -> str:
        return f"{self.user}@{self.host}:{self.port}/{self.database_name}"


@dataclass(frozen=True)
class DetectedDatabase:
    """What homeserver.yaml says, before anything is checked against Docker."""

    dialect: Optional[Dialect]
    domain: str
    sqlite_path: Optional[str] = None
    connection: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Environment:
    """Resolved once at startup and handed to every action."""

    server_container: str
    dialect: Dialect
    domain: str
    config_path: str
    database_container: Optional[str] = None
    connection: Optional[ConnectionParams] = None
    sqlite_path: Optional[str] = None

    def __post_init__(self):
        if not self.server_container:
            raise ValueError("server_container must not be empty")
        if self.dialect is Dialect.CLIENT_SERVER:
            if self.connection is None or self.sqlite_path is not None:
                raise ValueError("PostgreSQL environments need connection params and no sqlite path")
        elif self.sqlite_path is None or self.connection is not None:
            raise ValueError("SQLite environments need a sqlite path and no connection params")

    def summary_lines(self):
        lines = [
            f"Synapse container: {self.server_container}",
            f"Database type: {self.dialect.value}",
        ]
        if self.dialect is Dialect.CLIENT_SERVER:
            lines.append(f"Postgres container: {self.database_container}")
            lines.append(f"Database: {self.connection.describe()}")
        else:
            lines.append(f"SQLite path: {self.sqlite_path}")
        lines.append(f"Domain: {self.domain}")
        lines.append(f"Config: {self.config_path}")
        return lines


@dataclass(frozen=True)
class Statement:
    sql: str
    params: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class QueryResult:
    ok: bool
    output: str


@dataclass(frozen=True)
class ActionResult:
    title: str
    body: str
    ok: bool = True
