"""Account registration and password hashing inside the Synapse container."""

import time
from enum import Enum
from typing import Callable, List, Optional

from matrixusermanager.constants import ERROR_MARKERS, HOMESERVER_URL
from matrixusermanager.models import Environment, QueryResult
from matrixusermanager.services import queries

HASH_SCRIPT = (
    "import sys, bcrypt; "
    "password = sys.stdin.read(); "
    "print(bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8'))"
)

REGISTER_PROGRAMS = (
    ["register_new_matrix_user"],
    ["python3", "-m", "synapse._scripts.register_new_matrix_user"],
    ["/usr/local/bin/register_new_matrix_user"],
)


def has_error_marker(output: str) -> bool:
    lowered = output.lower()
    return any(marker in lowered for marker in ERROR_MARKERS)


class RegistrationOutcome(Enum):
    REGISTERED = "registered"
    INSERTED = "inserted"
    FAILED = "failed"


class AccountService:
    """Creates accounts and computes bcrypt hashes the way Synapse stores them."""

    def __init__(self, logger, run_cmd: Callable, executor, clock: Callable[[], float] = time.time):
        self.logger = logger
        self.run_cmd = run_cmd
        self.executor = executor
        self.clock = clock

    def registration_commands(
        self, environment: Environment, localpart: str, password: str, admin: bool
    ) -> List[List[str]]:
        commands = []
        for program in REGISTER_PROGRAMS:
            commands.append(
                ["docker", "exec", environment.server_container]
                + program
                + [
                    "-u",
                    localpart,
                    "-p",
                    password,
                    "--admin" if admin else "--no-admin",
                    "-c",
                    environment.config_path,
                    HOMESERVER_URL,
                ]
            )
        return commands

    def register(self, environment: Environment, localpart: str, password: str, admin: bool):
        """Try each registration program in order; returns (succeeded, output)."""
        output = ""
        for cmd in self.registration_commands(environment, localpart, password, admin):
            result = self.run_cmd(cmd, check=False, capture_output=True, redact=(password,))
            output = "\n".join(part for part in (result.stdout, result.stderr) if part).strip()
            if result.returncode == 0 and not has_error_marker(output):
                return True, output
            self.logger.info("Registration attempt with %s failed", cmd[3])
        return False, output

    def hash_password(self, environment: Environment, password: str) -> Optional[str]:
        result = self.run_cmd(
            ["docker", "exec", "-i", environment.server_container, "python3", "-c", HASH_SCRIPT],
            check=False,
            capture_output=True,
            input=password,
        )
        hashed = (result.stdout or "").strip()
        if result.returncode != 0 or not hashed or has_error_marker(hashed):
            self.logger.warning("Password hashing failed in %s", environment.server_container)
            return None
        return hashed

    def insert_directly(
        self, environment: Environment, user_id: str, password: str, admin: bool
    ) -> Optional[QueryResult]:
        """Best-effort row insert; bypasses Synapse's own registration bookkeeping."""
        hashed = self.hash_password(environment, password)
        if hashed is None:
            return None
        statement = queries.insert_user(
            environment.dialect, user_id, hashed, int(self.clock()), admin
        )
        return self.executor.execute(environment, statement)

    def create(self, environment: Environment, localpart: str, password: str, admin: bool):
        """Returns (outcome, output) for the first path that worked."""
        registered, output = self.register(environment, localpart, password, admin)
        if registered:
            return RegistrationOutcome.REGISTERED, output

        user_id = f"@{localpart}:{environment.domain}"
        self.logger.warning("Registration tools unavailable, falling back to direct insert for %s", user_id)
        inserted = self.insert_directly(environment, user_id, password, admin)
        if inserted is not None and inserted.ok and not has_error_marker(inserted.output):
            return RegistrationOutcome.INSERTED, inserted.output
        if inserted is not None:
            output = inserted.output
        return RegistrationOutcome.FAILED, output
