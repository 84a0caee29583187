"""Actionable error catalog for matrix-user-manager."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "missing_tool": {
        "what": "Required command not found: {command}.",
        "next": "Install it and re-run as root or as a user in the docker group.",
    },
    "server_container_required": {
        "what": "A Synapse container is required.",
        "next": "Start the Synapse container or pass `--server-container`.",
    },
    "container_not_running": {
        "what": "Container '{name}' is not running.",
        "next": "Check `docker ps` and pass the name of a running container.",
    },
    "config_unreadable": {
        "what": "Unable to read homeserver.yaml from {container}:{path}.",
        "next": "Pass the correct location with `--homeserver-config`.",
    },
    "no_database_container": {
        "what": "PostgreSQL is configured but no Postgres container was detected.",
        "next": "Ensure PostgreSQL is running in Docker or pass `--database-container`.",
    },
    "database_connection": {
        "what": "Cannot connect to PostgreSQL database '{database}' as '{user}'.",
        "next": "Check the credentials in homeserver.yaml or the password you entered.",
    },
    "hash_unavailable": {
        "what": "Could not generate a password hash inside {container}.",
        "next": (
            "Install python3-bcrypt in the Synapse container: "
            "docker exec {container} apt-get update && "
            "docker exec {container} apt-get install -y python3-bcrypt"
        ),
    },
    "registration_failed": {
        "what": "Failed to create user {user_id}.",
        "next": "Install python3-bcrypt in the Synapse container or use the Synapse admin API.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
