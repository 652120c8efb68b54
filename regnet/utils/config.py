"""Application settings.

Pydantic-based configuration, overridable with ``REGNET_*`` environment
variables or a ``.env`` file.

Environment Variables:
- REGNET_DATA_DIR: Root folder for networks and legacy data
- REGNET_DOCKER_SOCKET_PATH: Docker engine socket override (empty = platform default)
- REGNET_COMPOSE_FILE_PATH: Compose executable override (empty = ``docker compose``)
- REGNET_ENVIRONMENT: ``production`` or ``development``
- REGNET_MINE_SETTLE_DELAY_SECONDS: Wait after mining before refreshing chain info
"""

from dataclasses import dataclass
from pathlib import Path

from platformdirs import PlatformDirs
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from regnet.exceptions import ConfigurationError

dirs = PlatformDirs("regnet", "regnet")


@dataclass(frozen=True)
class DockerPaths:
    """Process-wide container runtime locations.

    Built once at startup and handed to ``DockerService``; empty strings mean
    "use the platform default".
    """

    socket_path: str = ""
    compose_path: str = ""


class Settings(BaseSettings):
    """regnet configuration."""

    model_config = SettingsConfigDict(
        env_prefix="REGNET_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    data_dir: Path = Field(
        default=Path(dirs.user_data_dir),
        description="Root folder for networks and their volumes",
    )

    legacy_data_dir: Path = Field(
        default=Path(dirs.user_data_dir).parent / "regnet-legacy",
        description="Data folder used by the 0.x releases",
    )

    docker_socket_path: str = Field(default="", description="Docker engine socket override")

    compose_file_path: str = Field(default="", description="Compose executable override")

    environment: str = Field(
        default="production",
        pattern="^(production|development)$",
        description="Non-production runs always execute migrations on load",
    )

    log_level: str = Field(default="INFO")

    json_logs: bool = Field(default=False)

    dev_mode: bool = Field(default=False, description="Colored console logs")

    mine_settle_delay_seconds: float = Field(
        default=0.5,
        ge=0.0,
        description="Delay after mining before chain info is refreshed; heuristic, may be "
        "too short on slow hosts",
    )

    node_online_timeout_seconds: float = Field(default=120.0, gt=0)

    node_online_interval_seconds: float = Field(default=3.0, gt=0)

    @property
    def networks_dir(self) -> Path:
        return self.data_dir / "networks"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def docker_paths(self) -> DockerPaths:
        return DockerPaths(
            socket_path=self.docker_socket_path,
            compose_path=self.compose_file_path,
        )


_settings: Settings | None = None


def _read_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as e:
        error = e.errors()[0]
        setting = ".".join(str(part) for part in error["loc"])
        raise ConfigurationError(
            f"Invalid setting REGNET_{setting.upper()}: {error['msg']}", setting=setting, original_error=e
        ) from e


def get_settings() -> Settings:
    """Return the cached settings instance.

    Raises:
        ConfigurationError: if an environment variable or ``.env`` entry is invalid
    """
    global _settings
    if _settings is None:
        _settings = _read_settings()
    return _settings


def reload_settings() -> Settings:
    """Re-read settings from the environment."""
    global _settings
    _settings = _read_settings()
    return _settings
