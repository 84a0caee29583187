"""Domain errors for matrix-user-manager."""


class ManagerError(RuntimeError):
    """Raised when the session cannot continue safely."""


class MissingToolError(ManagerError):
    """A required host command is not installed."""


class NotFoundError(ManagerError):
    """No usable container could be selected."""


class ConfigUnreadableError(ManagerError):
    """homeserver.yaml could not be read from the server container."""


class NoDatabaseContainerError(ManagerError):
    """PostgreSQL is configured but no database container was selected."""


class DatabaseConnectionError(ManagerError):
    """The connectivity probe against PostgreSQL failed."""
