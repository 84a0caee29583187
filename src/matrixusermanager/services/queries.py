"""SQL statements against the Synapse schema.

Statements use ``:name`` placeholders; values are bound by the query
executor through the client's own variable mechanism.
"""

from typing import Dict

from matrixusermanager.models import Dialect, Statement

_CREATED = {
    Dialect.CLIENT_SERVER: "to_timestamp(creation_ts)",
    Dialect.EMBEDDED_FILE: "datetime(creation_ts, 'unixepoch')",
}

_LAST_SEEN = {
    Dialect.CLIENT_SERVER: "to_timestamp(last_seen/1000)",
    Dialect.EMBEDDED_FILE: "datetime(last_seen/1000, 'unixepoch')",
}

_FLAGS = (
    "CASE WHEN admin = 1 THEN 'YES' ELSE 'NO' END AS admin, "
    "CASE WHEN deactivated = 1 THEN 'YES' ELSE 'NO' END AS deactivated"
)

PROBE = Statement("SELECT 1;")
DEFAULT_CUSTOM_QUERY = "SELECT name, admin, deactivated FROM users LIMIT 10;"


def list_users(dialect: Dialect, limit: int = 100) -> Statement:
    return Statement(
        f"SELECT name AS username, {_FLAGS}, {_CREATED[dialect]} AS created "
        "FROM users ORDER BY creation_ts DESC LIMIT :limit;",
        {"limit": limit},
    )


def user_profile(dialect: Dialect, user_id: str) -> Statement:
    return Statement(
        f"SELECT name, {_FLAGS}, {_CREATED[dialect]} AS created, user_type "
        "FROM users WHERE name = :user_id;",
        {"user_id": user_id},
    )


def user_devices(dialect: Dialect, user_id: str, limit: int = 10) -> Statement:
    return Statement(
        f"SELECT device_id, display_name, {_LAST_SEEN[dialect]} AS last_seen "
        "FROM devices WHERE user_id = :user_id ORDER BY last_seen DESC LIMIT :limit;",
        {"user_id": user_id, "limit": limit},
    )


def user_rooms(user_id: str, limit: int = 20) -> Statement:
    return Statement(
        "SELECT room_id, membership FROM room_memberships "
        "WHERE user_id = :user_id AND membership IN ('join', 'invite') LIMIT :limit;",
        {"user_id": user_id, "limit": limit},
    )


def insert_user(
    dialect: Dialect, user_id: str, password_hash: str, creation_ts: int, admin: bool
) -> Statement:
    params: Dict[str, object] = {
        "user_id": user_id,
        "password_hash": password_hash,
        "creation_ts": creation_ts,
        "admin": int(admin),
    }
    columns = "(name, password_hash, creation_ts, admin, deactivated, is_guest, user_type, approved)"
    values = "(:user_id, :password_hash, :creation_ts, :admin, 0, 0, NULL, {approved})"
    if dialect is Dialect.CLIENT_SERVER:
        sql = (
            f"INSERT INTO users {columns} VALUES {values.format(approved='TRUE')} "
            "ON CONFLICT (name) DO NOTHING;"
        )
    else:
        sql = f"INSERT OR IGNORE INTO users {columns} VALUES {values.format(approved='1')};"
    return Statement(sql, params)


def update_password(user_id: str, password_hash: str) -> Statement:
    return Statement(
        "UPDATE users SET password_hash = :password_hash WHERE name = :user_id;",
        {"user_id": user_id, "password_hash": password_hash},
    )


def set_deactivated(user_id: str, deactivated: bool) -> Statement:
    return Statement(
        "UPDATE users SET deactivated = :deactivated WHERE name = :user_id;",
        {"user_id": user_id, "deactivated": int(deactivated)},
    )
