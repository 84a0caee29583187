"""Database backups to the operator's host."""

import os
import shutil
import subprocess
from datetime import datetime
from typing import Callable, Optional

from matrixusermanager.models import ActionResult, Dialect, Environment


def human_size(num_bytes: int) -> str:
    size = float(num_bytes)
    for unit in ("B", "K", "M", "G"):
        if size < 1024 or unit == "G":
            if unit == "B":
                return f"{int(size)}{unit}"
            return f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}G"


class BackupService:
    """Writes ``synapse_<dialect>_backup_<timestamp>`` files into ``backup_dir``."""

    def __init__(
        self,
        logger,
        run_cmd: Callable,
        executor,
        backup_dir: str,
        work_dir: str,
        subprocess_module=subprocess,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.logger = logger
        self.run_cmd = run_cmd
        self.executor = executor
        self.backup_dir = backup_dir
        self.work_dir = work_dir
        self.subprocess = subprocess_module
        self.now = now

    def backup(self, environment: Environment) -> ActionResult:
        timestamp = self.now().strftime("%Y%m%d_%H%M%S")
        try:
            os.makedirs(self.backup_dir, exist_ok=True)
        except OSError as exc:
            self.logger.warning("Cannot use backup directory %s: %s", self.backup_dir, exc)
            return ActionResult(
                "Backup Failed",
                f"Cannot use backup directory {self.backup_dir}: {exc}",
                ok=False,
            )
        self.logger.info("Starting database backup...")

        if environment.dialect is Dialect.CLIENT_SERVER:
            backup_file = self._backup_postgres(environment, timestamp)
            label = "PostgreSQL"
        else:
            backup_file = self._backup_sqlite(environment, timestamp)
            label = "SQLite"

        if backup_file is None:
            self.logger.warning("Backup failed")
            return ActionResult("Backup Failed", f"Failed to create {label} backup", ok=False)

        try:
            size = human_size(os.path.getsize(backup_file))
        except OSError as exc:
            self.logger.warning("Cannot stat backup %s: %s", backup_file, exc)
            return ActionResult(
                "Backup Failed", f"Cannot read backup file {backup_file}: {exc}", ok=False
            )
        self.logger.info("Backup saved to: %s (%s)", backup_file, size)
        return ActionResult(
            "Backup Complete",
            f"{label} backup saved to:\n{backup_file}\n\nSize: {size}",
        )

    def _backup_postgres(self, environment: Environment, timestamp: str) -> Optional[str]:
        backup_file = os.path.join(self.backup_dir, f"synapse_postgres_backup_{timestamp}.sql")
        cmd = [
            "docker",
            "exec",
            "-e",
            "PGPASSWORD",
            environment.database_container,
            "pg_dump",
            "-U",
            environment.connection.user,
            environment.connection.database_name,
        ]
        self.logger.debug("Executing: %s", " ".join(cmd))

        try:
            with open(backup_file, "w", encoding="utf-8") as file_obj:
                self.subprocess.run(
                    cmd,
                    stdout=file_obj,
                    stderr=subprocess.PIPE,
                    env=self.executor.postgres_env(environment),
                    check=True,
                    text=True,
                )
        except (OSError, subprocess.CalledProcessError) as exc:
            self.logger.warning("pg_dump failed: %s", exc)
            self._discard(backup_file)
            return None

        if os.path.getsize(backup_file) == 0:
            self._discard(backup_file)
            return None
        return backup_file

    def _backup_sqlite(self, environment: Environment, timestamp: str) -> Optional[str]:
        file_name = f"synapse_sqlite_backup_{timestamp}.db"
        backup_file = os.path.join(self.backup_dir, file_name)
        staged_file = os.path.join(self.work_dir, file_name)
        container_copy = f"/tmp/backup_{timestamp}.db"
        container = environment.server_container

        try:
            copied = self.run_cmd(
                ["docker", "exec", container, "cp", environment.sqlite_path, container_copy],
                check=False,
                capture_output=True,
            )
            if copied.returncode != 0:
                return None

            fetched = self.run_cmd(
                ["docker", "cp", f"{container}:{container_copy}", staged_file],
                check=False,
                capture_output=True,
            )
            if fetched.returncode != 0 or not os.path.exists(staged_file):
                return None

            try:
                shutil.move(staged_file, backup_file)
            except OSError as exc:
                self.logger.warning("Cannot move backup into %s: %s", self.backup_dir, exc)
                self._discard(backup_file)
                return None
            return backup_file
        finally:
            self.run_cmd(
                ["docker", "exec", container, "rm", "-f", container_copy],
                check=False,
                capture_output=True,
            )
            self._discard(staged_file)

    def _discard(self, path: str):
        if os.path.exists(path):
            try:
                os.remove(path)
            except OSError as exc:
                self.logger.warning("Could not remove %s: %s", path, exc)
