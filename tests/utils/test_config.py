import pytest
from pydantic import ValidationError

from regnet.exceptions import ConfigurationError
from regnet.utils.config import DockerPaths, Settings, reload_settings


def test_settings_defaults():
    """Default folders come from platformdirs."""
    settings = Settings()

    assert settings.data_dir.is_absolute()
    assert settings.networks_dir == settings.data_dir / "networks"
    assert settings.is_production
    assert settings.docker_paths() == DockerPaths()


def test_settings_env_override(monkeypatch, tmp_path):
    monkeypatch.setenv("REGNET_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("REGNET_ENVIRONMENT", "development")
    monkeypatch.setenv("REGNET_COMPOSE_FILE_PATH", "/usr/bin/docker-compose")
    monkeypatch.setenv("REGNET_MINE_SETTLE_DELAY_SECONDS", "2")

    settings = reload_settings()

    assert settings.networks_dir == tmp_path / "networks"
    assert not settings.is_production
    assert settings.docker_paths().compose_path == "/usr/bin/docker-compose"
    assert settings.mine_settle_delay_seconds == 2.0

    monkeypatch.undo()
    reload_settings()


def test_invalid_environment_rejected():
    with pytest.raises(ValidationError):
        Settings(environment="staging")


def test_negative_settle_delay_rejected():
    with pytest.raises(ValidationError):
        Settings(mine_settle_delay_seconds=-1)


def test_invalid_environment_variable_raises_configuration_error(monkeypatch):
    monkeypatch.setenv("REGNET_NODE_ONLINE_TIMEOUT_SECONDS", "-5")

    with pytest.raises(ConfigurationError) as exc_info:
        reload_settings()

    assert exc_info.value.setting == "node_online_timeout_seconds"
    assert "REGNET_NODE_ONLINE_TIMEOUT_SECONDS" in exc_info.value.message

    monkeypatch.undo()
    reload_settings()
