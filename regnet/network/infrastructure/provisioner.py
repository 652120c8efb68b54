"""Host-side data directories for node containers.

If docker creates a bind-mount source on first start, the folder is owned by
the container's user (root on Linux). The host process then cannot write to
it and containers running as ``USERID`` cannot either. Creating the folders
up front as the invoking user avoids both.
"""

import asyncio
from collections.abc import Iterable
from pathlib import Path

from regnet.utils.logging import get_logger

from ..constants import get_docker_config
from ..domain.models import CommonNode, Network
from ..domain.topology import node_path

logger = get_logger(__name__)


def node_dirs(network: Network, node: CommonNode) -> list[Path]:
    """All folders that must exist before ``node`` starts."""
    base = node_path(network, node.implementation, node.name)
    config = get_docker_config(node.implementation)
    dirs = [base]
    for sub_dir in (config.data_dir, config.api_dir):
        if sub_dir:
            dirs.append(base / sub_dir)
    return dirs


def _make_dirs(paths: list[Path]) -> None:
    for path in paths:
        path.mkdir(parents=True, exist_ok=True)


async def ensure_dirs(network: Network, nodes: Iterable[CommonNode]) -> list[Path]:
    """Create the data folders of ``nodes``; existing folders are left alone."""
    paths = [path for node in nodes for path in node_dirs(network, node)]
    await asyncio.to_thread(_make_dirs, paths)
    logger.debug("node_dirs_ensured", network_id=network.id, count=len(paths))
    return paths
