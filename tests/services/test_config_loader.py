import pytest

from matrixusermanager.errors import ManagerError
from matrixusermanager.services.config_loader import ConfigLoader


def test_config_loader_loads_yaml_mapping(tmp_path):
    config_file = tmp_path / ".matrixusermanager.yml"
    config_file.write_text(
        "server_container: synapse\nbackup_dir: ./backups\nverbose: true\n",
        encoding="utf-8",
    )

    loader = ConfigLoader()
    loaded = loader.load(str(config_file))

    assert loaded["server_container"] == "synapse"
    assert loaded["backup_dir"] == "./backups"
    assert loaded["verbose"] is True


def test_config_loader_rejects_unknown_keys(tmp_path):
    config_file = tmp_path / ".matrixusermanager.yml"
    config_file.write_text("unknown_key: true\n", encoding="utf-8")

    loader = ConfigLoader()

    with pytest.raises(ManagerError, match="Unknown configuration keys"):
        loader.load(str(config_file))


def test_config_loader_rejects_non_mapping_root(tmp_path):
    config_file = tmp_path / ".matrixusermanager.yml"
    config_file.write_text("- synapse\n- postgres\n", encoding="utf-8")

    with pytest.raises(ManagerError, match="YAML mapping"):
        ConfigLoader().load(str(config_file))


def test_config_loader_missing_file(tmp_path):
    with pytest.raises(ManagerError, match="Config file not found"):
        ConfigLoader().load(str(tmp_path / "missing.yml"))


def test_config_loader_rejects_non_boolean_verbose(tmp_path):
    config_file = tmp_path / ".matrixusermanager.yml"
    config_file.write_text("verbose: sometimes\n", encoding="utf-8")

    with pytest.raises(ManagerError, match="'verbose' must be true or false"):
        ConfigLoader().load(str(config_file))


def test_config_loader_rejects_structured_values(tmp_path):
    config_file = tmp_path / ".matrixusermanager.yml"
    config_file.write_text("server_container:\n  - synapse\n  - synapse-2\n", encoding="utf-8")

    with pytest.raises(ManagerError, match="'server_container' must be a single value"):
        ConfigLoader().load(str(config_file))


def test_config_loader_normalizes_values(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    config_file = tmp_path / ".matrixusermanager.yml"
    config_file.write_text(
        "server_container: 1234\n"
        "database_container:\n"
        "homeserver_config: ~/homeserver.yaml\n"
        "backup_dir: ~/backups\n",
        encoding="utf-8",
    )

    loaded = ConfigLoader().load(str(config_file))

    assert loaded["server_container"] == "1234"
    assert "database_container" not in loaded
    assert loaded["backup_dir"] == str(tmp_path / "backups")
    assert loaded["homeserver_config"] == "~/homeserver.yaml"
