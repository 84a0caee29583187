"""Tool settings file for matrix-user-manager.

The file mirrors the command-line options. Container names and the
in-container ``homeserver.yaml`` path are taken verbatim; host paths get
``~`` expanded; ``verbose`` must be a real boolean.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from matrixusermanager.errors import ManagerError

CONTAINER_KEYS = ("server_container", "database_container", "homeserver_config")
HOST_PATH_KEYS = ("backup_dir", "log_file")
FLAG_KEYS = ("verbose",)


class ConfigLoader:
    """Reads ``.matrixusermanager.yml`` into option defaults for the CLI."""

    SUPPORTED_KEYS = set(CONTAINER_KEYS + HOST_PATH_KEYS + FLAG_KEYS)

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ManagerError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ManagerError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ManagerError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(str(key) for key in set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            raise ManagerError(f"Unknown configuration keys: {', '.join(unknown)}")

        return self._normalize(parsed)

    def _normalize(self, parsed: Dict[str, Any]) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for key, value in parsed.items():
            # an empty key in YAML means "not set"
            if value is None:
                continue

            if key in FLAG_KEYS:
                if not isinstance(value, bool):
                    raise ManagerError(f"Configuration key '{key}' must be true or false.")
                values[key] = value
                continue

            # numeric container names such as `1234` arrive as int
            if isinstance(value, (bool, list, dict)):
                raise ManagerError(f"Configuration key '{key}' must be a single value.")
            text = str(value).strip()
            if not text:
                continue
            if key in HOST_PATH_KEYS:
                text = os.path.expanduser(text)
            values[key] = text
        return values
