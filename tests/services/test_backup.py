import os
import subprocess
from datetime import datetime

from matrixusermanager.models import ConnectionParams, Dialect, Environment
from matrixusermanager.services.backup import BackupService, human_size


class FakeExecutor:
    def postgres_env(self, environment):
        return {"PGPASSWORD": environment.connection.password}


def _sqlite_env():
    return Environment(
        server_container="synapse",
        dialect=Dialect.EMBEDDED_FILE,
        domain="chat.example",
        config_path="/data/homeserver.yaml",
        sqlite_path="/data/homeserver.db",
    )


def _postgres_env():
    return Environment(
        server_container="synapse",
        dialect=Dialect.CLIENT_SERVER,
        domain="chat.example",
        config_path="/data/homeserver.yaml",
        database_container="synapse-db",
        connection=ConnectionParams("synapse", "pw", "db", "5432", "synapse"),
    )


def _service(logger, run_cmd, tmp_path, subprocess_module=subprocess):
    work_dir = tmp_path / "work"
    work_dir.mkdir()
    return BackupService(
        logger=logger,
        run_cmd=run_cmd,
        executor=FakeExecutor(),
        backup_dir=str(tmp_path / "backups"),
        work_dir=str(work_dir),
        subprocess_module=subprocess_module,
        now=lambda: datetime(2024, 5, 1, 12, 30, 45),
    )


def test_human_size():
    assert human_size(512) == "512B"
    assert human_size(2048) == "2.0K"
    assert human_size(5 * 1024 * 1024) == "5.0M"


def test_sqlite_backup_copies_file_out_and_reports_size(logger, tmp_path):
    calls = []

    def fake_run_cmd(cmd, check=True, capture_output=False, **kwargs):
        calls.append(cmd)
        if cmd[:2] == ["docker", "cp"]:
            with open(cmd[3], "wb") as file_obj:
                file_obj.write(b"SQLite format 3\x00" + b"\x00" * 4080)
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    result = _service(logger, fake_run_cmd, tmp_path).backup(_sqlite_env())

    expected = tmp_path / "backups" / "synapse_sqlite_backup_20240501_123045.db"
    assert result.ok
    assert str(expected) in result.body
    assert "Size: 4.0K" in result.body
    assert expected.stat().st_size > 0
    assert calls[0] == [
        "docker", "exec", "synapse", "cp", "/data/homeserver.db", "/tmp/backup_20240501_123045.db",
    ]
    assert calls[1][2] == "synapse:/tmp/backup_20240501_123045.db"
    assert calls[-1] == ["docker", "exec", "synapse", "rm", "-f", "/tmp/backup_20240501_123045.db"]
    assert os.listdir(tmp_path / "work") == []


def test_sqlite_backup_failure_leaves_nothing_behind(logger, tmp_path):
    def fake_run_cmd(cmd, check=True, capture_output=False, **kwargs):
        returncode = 1 if cmd[:2] == ["docker", "cp"] else 0
        return subprocess.CompletedProcess(cmd, returncode, stdout="", stderr="")

    result = _service(logger, fake_run_cmd, tmp_path).backup(_sqlite_env())

    assert not result.ok
    assert result.title == "Backup Failed"
    assert os.listdir(tmp_path / "backups") == []


class FakeSubprocess:
    def __init__(self, returncode=0, payload="-- PostgreSQL database dump\n"):
        self.returncode = returncode
        self.payload = payload
        self.calls = []

    def run(self, cmd, stdout=None, env=None, check=False, **kwargs):
        self.calls.append((cmd, env))
        if self.returncode != 0:
            raise subprocess.CalledProcessError(self.returncode, cmd)
        stdout.write(self.payload)
        return subprocess.CompletedProcess(cmd, 0)


def test_postgres_backup_streams_pg_dump(logger, tmp_path):
    fake_subprocess = FakeSubprocess()

    result = _service(logger, None, tmp_path, subprocess_module=fake_subprocess).backup(
        _postgres_env()
    )

    expected = tmp_path / "backups" / "synapse_postgres_backup_20240501_123045.sql"
    assert result.ok
    assert expected.read_text(encoding="utf-8").startswith("-- PostgreSQL database dump")
    cmd, env = fake_subprocess.calls[0]
    assert cmd == [
        "docker", "exec", "-e", "PGPASSWORD", "synapse-db", "pg_dump", "-U", "synapse", "synapse",
    ]
    assert env == {"PGPASSWORD": "pw"}


def test_postgres_backup_failure_removes_partial_file(logger, tmp_path):
    fake_subprocess = FakeSubprocess(returncode=1)

    result = _service(logger, None, tmp_path, subprocess_module=fake_subprocess).backup(
        _postgres_env()
    )

    assert not result.ok
    assert os.listdir(tmp_path / "backups") == []


def test_backup_dir_that_is_a_file_fails_without_raising(logger, tmp_path):
    occupied = tmp_path / "occupied"
    occupied.write_text("not a directory", encoding="utf-8")
    service = _service(logger, None, tmp_path)
    service.backup_dir = str(occupied)

    result = service.backup(_sqlite_env())

    assert not result.ok
    assert result.title == "Backup Failed"
    assert str(occupied) in result.body


def test_sqlite_backup_move_failure_is_reported(logger, tmp_path, monkeypatch):
    def fake_run_cmd(cmd, check=True, capture_output=False, **kwargs):
        if cmd[:2] == ["docker", "cp"]:
            with open(cmd[3], "wb") as file_obj:
                file_obj.write(b"SQLite format 3\x00")
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    def refuse_move(src, dst):
        raise PermissionError(13, "Permission denied", dst)

    monkeypatch.setattr("matrixusermanager.services.backup.shutil.move", refuse_move)

    result = _service(logger, fake_run_cmd, tmp_path).backup(_sqlite_env())

    assert not result.ok
    assert os.listdir(tmp_path / "work") == []
