"""Subprocess execution service for matrix-user-manager."""

import subprocess
from typing import List, Mapping, Optional, Sequence

from matrixusermanager.errors import MissingToolError, ManagerError
from matrixusermanager.errors_catalog import actionable_error


class CommandRunner:
    """Runs external commands with consistent error handling.

    No timeout is applied: an unresponsive container blocks the session
    until the external tool gives up on its own.
    """

    def __init__(self, logger):
        self.logger = logger

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        input: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        redact: Sequence[str] = (),
    ) -> subprocess.CompletedProcess:
        cmd_str = " ".join("***" if part in redact else part for part in cmd)
        self.logger.debug("Executing: %s", cmd_str)

        try:
            result = subprocess.run(
                cmd,
                text=True,
                capture_output=capture_output,
                input=input,
                env=dict(env) if env is not None else None,
            )
        except FileNotFoundError as exc:
            raise MissingToolError(actionable_error("missing_tool", command=cmd[0])) from exc
        except OSError as exc:
            raise ManagerError(f"Failed to execute command: {cmd_str}. {exc}") from exc

        if capture_output and result.stdout:
            self.logger.debug("Command output: %s", result.stdout.strip())

        if result.returncode == 0:
            return result

        stderr = (result.stderr or "").strip() if capture_output else ""
        message = f"Command failed ({result.returncode}): {cmd_str}"
        if stderr:
            message = f"{message}\n{stderr}"

        if check:
            raise ManagerError(message)

        self.logger.debug(message)
        return result
