"""Persistence for the networks file.

``NetworksRepository`` reads and writes ``<networks_dir>/networks.json``. On
load the document is migrated to the running version when needed and the
upgraded copy is written back immediately, so later loads skip the
migration.
"""

import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from regnet.exceptions import PersistenceError
from regnet.utils.config import Settings, get_settings
from regnet.utils.logging import get_logger

from ..constants import APP_VERSION
from ..domain.models import NetworksFile
from .migrations import migrate_networks_file, needs_migration

logger = get_logger(__name__)

NETWORKS_FILE_NAME = "networks.json"


class NetworksRepository:
    """Loads and saves the list of networks.

    Args:
        settings: Source of ``networks_dir``, ``legacy_data_dir`` and the
            production flag; defaults to the global settings
        current_version: Schema version written on save
    """

    def __init__(self, settings: Settings | None = None, current_version: str = APP_VERSION):
        self.settings = settings or get_settings()
        self.current_version = current_version

    @property
    def networks_dir(self) -> Path:
        return self.settings.networks_dir

    @property
    def file_path(self) -> Path:
        return self.networks_dir / NETWORKS_FILE_NAME

    @property
    def legacy_dir(self) -> Path:
        return self.settings.legacy_data_dir / "networks"

    def copy_legacy_data(self) -> bool:
        """Copy networks saved by an older install into the data folder.

        Only runs when no networks file exists yet. Failures are logged and
        reported as ``False``; the caller then starts from an empty file.
        """
        if self.file_path.exists() or not (self.legacy_dir / NETWORKS_FILE_NAME).exists():
            return False

        logger.info("copying_legacy_networks", source=str(self.legacy_dir), target=str(self.networks_dir))
        try:
            shutil.copytree(self.legacy_dir, self.networks_dir, dirs_exist_ok=True)
        except OSError as e:
            logger.error("legacy_copy_failed", source=str(self.legacy_dir), error=str(e))
            return False
        return True

    def _read(self) -> dict[str, Any] | None:
        if not self.file_path.exists():
            return None
        try:
            return json.loads(self.file_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(
                f"Could not read {self.file_path}",
                context={"path": str(self.file_path)},
                original_error=e,
            ) from e

    def load(self) -> NetworksFile:
        """Return the saved networks, migrated to the current version.

        Raises:
            MigrationError: if the file was written by a newer version
            PersistenceError: if the file is unreadable or invalid
        """
        self.copy_legacy_data()

        raw = self._read()
        if raw is None:
            logger.debug("networks_file_missing", path=str(self.file_path))
            return NetworksFile(version=self.current_version)

        migrate = needs_migration(raw, self.current_version) or not self.settings.is_production
        if migrate:
            raw = migrate_networks_file(raw, self.current_version)

        try:
            data = NetworksFile.model_validate(raw)
        except PydanticValidationError as e:
            raise PersistenceError(
                f"Invalid networks file {self.file_path}",
                context={"errors": e.error_count()},
                original_error=e,
            ) from e

        if migrate:
            self.save(data)
        logger.info("networks_loaded", count=len(data.networks), version=data.version)
        return data

    def save(self, data: NetworksFile) -> Path:
        """Write ``data`` as indented JSON, replacing the file atomically."""
        content = json.dumps(data.to_json_dict(), indent=2)
        self.networks_dir.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(prefix=".networks-", suffix=".json", dir=self.networks_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_name, self.file_path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise PersistenceError(
                f"Could not write {self.file_path}",
                context={"path": str(self.file_path)},
                original_error=e,
            ) from e

        logger.debug("networks_saved", path=str(self.file_path), count=len(data.networks))
        return self.file_path
