"""Schema migrations for the persisted networks file.

Each step upgrades the raw JSON document to the schema of its target version.
Steps are pure functions over plain dicts, so they run before any pydantic
validation and never see partially-typed data.

Versions are dotted integers (``0.3.0``). A document without a version was
written before the field existed and is treated as ``0.1.0``.
"""

import copy
from collections.abc import Callable
from typing import Any

from regnet.exceptions import MigrationError
from regnet.utils.logging import get_logger

from ..constants import APP_VERSION

logger = get_logger(__name__)

INITIAL_VERSION = "0.1.0"

# persisted numeric status -> name, in the order of the old enum
LEGACY_STATUSES = ["Starting", "Started", "Stopping", "Stopped", "Error"]

Document = dict[str, Any]


def parse_version(version: str) -> tuple[int, ...]:
    """Parse ``"1.2.3"`` into ``(1, 2, 3)``; pre-release suffixes are ignored.

    Raises:
        MigrationError: if the version is not a dotted list of integers
    """
    core = str(version).split("-", 1)[0].split("+", 1)[0]
    try:
        parts = tuple(int(part) for part in core.split("."))
    except ValueError as e:
        raise MigrationError(
            f"Unrecognized networks file version '{version}'", version=str(version), original_error=e
        ) from e
    if not parts or any(part < 0 for part in parts):
        raise MigrationError(f"Unrecognized networks file version '{version}'", version=str(version))
    return parts


def _networks(data: Document) -> list[Document]:
    return data.setdefault("networks", [])


def _add_backend_names(data: Document) -> None:
    """0.2.0: lightning nodes reference their bitcoin backend by name."""
    for network in _networks(data):
        nodes = network.setdefault("nodes", {})
        bitcoin = nodes.setdefault("bitcoin", [])
        lightning = nodes.setdefault("lightning", [])
        names = [node.get("name") for node in bitcoin]
        for index, node in enumerate(bitcoin):
            if "peers" not in node:
                # neighbours, same as newly created nodes
                node["peers"] = [names[i] for i in (index - 1, index + 1) if 0 <= i < len(names)]
        first = names[0] if names else ""
        for node in lightning:
            if not node.get("backendName"):
                node["backendName"] = first


def _add_auto_mine_and_overrides(data: Document) -> None:
    """0.3.0: auto mining per network and custom docker image/command per node."""
    for network in _networks(data):
        network.setdefault("autoMineMode", 0)
        nodes = network.get("nodes", {})
        for node in [*nodes.get("bitcoin", []), *nodes.get("lightning", [])]:
            node.setdefault("docker", {"image": "", "command": ""})


def _status_names(data: Document) -> None:
    """1.0.0: statuses are stored by name instead of by enum index."""

    def convert(item: Document) -> None:
        status = item.get("status")
        if isinstance(status, int) and 0 <= status < len(LEGACY_STATUSES):
            item["status"] = LEGACY_STATUSES[status]

    for network in _networks(data):
        convert(network)
        nodes = network.get("nodes", {})
        for node in [*nodes.get("bitcoin", []), *nodes.get("lightning", [])]:
            convert(node)


MIGRATIONS: list[tuple[str, Callable[[Document], None]]] = [
    ("0.2.0", _add_backend_names),
    ("0.3.0", _add_auto_mine_and_overrides),
    ("1.0.0", _status_names),
]


def needs_migration(data: Document, current: str = APP_VERSION) -> bool:
    return data.get("version") != current


def migrate_networks_file(data: Document, current: str = APP_VERSION) -> Document:
    """Upgrade a raw networks document to ``current``.

    The input is not modified. Steps newer than the document's version and not
    newer than ``current`` are applied in order, then the result is stamped
    with ``current``. Re-running on an up-to-date document is a no-op apart
    from the stamp.

    Raises:
        MigrationError: if the document's version cannot be parsed or is newer
            than ``current``
    """
    stored = data.get("version") or INITIAL_VERSION
    stored_version = parse_version(stored)
    current_version = parse_version(current)

    if stored_version > current_version:
        raise MigrationError(
            f"The networks file was written by a newer version ({stored}) than this one ({current})",
            version=str(stored),
        )

    result = copy.deepcopy(data)
    result.setdefault("networks", [])
    result.setdefault("charts", {})

    applied = []
    for target, step in MIGRATIONS:
        target_version = parse_version(target)
        if stored_version < target_version <= current_version:
            step(result)
            applied.append(target)

    result["version"] = current
    if applied:
        logger.info("networks_file_migrated", from_version=stored, to_version=current, steps=applied)
    return result
