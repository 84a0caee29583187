"""Routes SQL to psql or sqlite3 inside the detected containers."""

import os
import re
from typing import Any, Callable, Dict, List, Mapping, Optional

from matrixusermanager.errors import ManagerError
from matrixusermanager.models import Dialect, Environment, QueryResult, Statement

_PLACEHOLDER = re.compile(r"(?<![:\w]):([A-Za-z_]\w*)")


def _is_number(value: Any) -> bool:
    return isinstance(value, int)


def _psql_set_value(value: Any) -> str:
    if _is_number(value):
        return str(int(value))
    text = str(value)
    text = text.replace("\\", "\\\\").replace("\n", "\\n").replace("\r", "\\r")
    return "'" + text.replace("'", "''") + "'"


def _sqlite_set_value(value: Any) -> str:
    if _is_number(value):
        return str(int(value))
    literal = "'" + str(value).replace("'", "''") + "'"
    escaped = (
        literal.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )
    return f'"{escaped}"'


def render_psql_script(statement: Statement) -> str:
    """Bind parameters with psql variables; ``:'name'`` is quoted by psql itself."""
    params = statement.params

    def substitute(match):
        name = match.group(1)
        if name not in params:
            return match.group(0)
        return f":{name}" if _is_number(params[name]) else f":'{name}'"

    lines = [f"\\set {name} {_psql_set_value(value)}" for name, value in params.items()]
    sql = _PLACEHOLDER.sub(substitute, statement.sql) if params else statement.sql
    lines.append(sql)
    return "\n".join(lines) + "\n"


def render_sqlite_script(statement: Statement) -> str:
    """Bind parameters with the sqlite3 shell's ``.parameter`` table."""
    lines = [
        f".parameter set :{name} {_sqlite_set_value(value)}"
        for name, value in statement.params.items()
    ]
    lines.append(statement.sql)
    return "\n".join(lines) + "\n"


class QueryExecutor:
    """Executes statements against the resolved environment.

    Failures are returned as text, never raised: a broken query should not
    end the session.
    """

    def __init__(self, logger, run_cmd: Callable, base_env: Optional[Mapping[str, str]] = None):
        self.logger = logger
        self.run_cmd = run_cmd
        self.base_env = base_env if base_env is not None else os.environ

    def postgres_env(self, environment: Environment) -> Dict[str, str]:
        env = dict(self.base_env)
        env["PGPASSWORD"] = environment.connection.password
        return env

    def build_command(self, environment: Environment) -> List[str]:
        if environment.dialect is Dialect.CLIENT_SERVER:
            return [
                "docker",
                "exec",
                "-i",
                "-e",
                "PGPASSWORD",
                environment.database_container,
                "psql",
                "-X",
                "-v",
                "ON_ERROR_STOP=1",
                "-U",
                environment.connection.user,
                "-d",
                environment.connection.database_name,
            ]
        return [
            "docker",
            "exec",
            "-i",
            environment.server_container,
            "sqlite3",
            "-bail",
            "-header",
            "-column",
            environment.sqlite_path,
        ]

    def execute(self, environment: Environment, statement: Statement) -> QueryResult:
        cmd = self.build_command(environment)
        if environment.dialect is Dialect.CLIENT_SERVER:
            script = render_psql_script(statement)
            env = self.postgres_env(environment)
        else:
            script = render_sqlite_script(statement)
            env = None

        try:
            result = self.run_cmd(cmd, check=False, capture_output=True, input=script, env=env)
        except ManagerError as exc:
            self.logger.warning("Query could not be started: %s", exc)
            return QueryResult(ok=False, output=f"Error: {exc}")

        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()
            self.logger.warning("Query failed with exit code %s", result.returncode)
            output = f"Error: query failed (exit code {result.returncode})"
            if detail:
                output = f"{output}\n{detail}"
            return QueryResult(ok=False, output=output)

        return QueryResult(ok=True, output=result.stdout or "")
