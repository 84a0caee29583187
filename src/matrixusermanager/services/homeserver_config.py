"""Locates and reads homeserver.yaml inside the Synapse container."""

from typing import Optional, Tuple

from matrixusermanager.constants import (
    DEFAULT_CONFIG_PATH,
    HOMESERVER_CONFIG_NAME,
    HOMESERVER_CONFIG_PATHS,
)
from matrixusermanager.errors import ConfigUnreadableError
from matrixusermanager.errors_catalog import actionable_error


class HomeserverConfigFetcher:
    def __init__(self, logger, files):
        self.logger = logger
        self.files = files

    def fetch(
        self, server_container: str, prompter, path_override: Optional[str] = None
    ) -> Tuple[str, str]:
        self.logger.info("Searching for homeserver.yaml in container %s", server_container)

        if path_override:
            path = path_override
        else:
            path = self.files.locate(
                server_container,
                HOMESERVER_CONFIG_PATHS,
                HOMESERVER_CONFIG_NAME,
                DEFAULT_CONFIG_PATH,
                prompter,
                title="Homeserver Config",
                prompt="Enter path to homeserver.yaml inside the container",
                found_heading="Found config files in container:",
            )

        content = self.files.read(server_container, path)
        if not content.strip():
            raise ConfigUnreadableError(
                actionable_error("config_unreadable", container=server_container, path=path)
            )

        self.logger.info("Found homeserver.yaml at: %s", path)
        return content, path
