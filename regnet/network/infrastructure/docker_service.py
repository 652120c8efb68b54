"""Container runtime access for regtest networks.

``DockerService`` is the only component that talks to docker. Engine queries
(versions, images, pulls) go through the Docker SDK, run off the event loop
with ``asyncio.to_thread``; lifecycle commands go through the compose CLI in
the network's folder.

Runtime locations are fixed at construction time via ``DockerPaths``; the
network folder is passed on every call.
"""

import asyncio
from collections.abc import Callable
from pathlib import Path

import docker
import docker.errors

from regnet.exceptions import DockerError
from regnet.utils.config import DockerPaths
from regnet.utils.logging import LogPerformance, get_logger

from ..domain.models import CommonNode, DockerVersions, Network
from .compose_file import render_compose
from .compose_runner import ComposeResult, ComposeRunner
from .provisioner import ensure_dirs

logger = get_logger(__name__)

UNTAGGED_IMAGE = "<none>:<none>"


def _write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


class DockerService:
    """Starts, stops and inspects the containers of regtest networks."""

    def __init__(
        self,
        paths: DockerPaths | None = None,
        *,
        runner: ComposeRunner | None = None,
        client_factory: Callable[[], docker.DockerClient] | None = None,
    ):
        self.paths = paths or DockerPaths()
        self.runner = runner or ComposeRunner(self.paths.compose_path)
        self._client_factory = client_factory or self._default_client
        self._client: docker.DockerClient | None = None

    def _default_client(self) -> docker.DockerClient:
        if self.paths.socket_path:
            return docker.DockerClient(base_url=f"unix://{self.paths.socket_path}")
        return docker.from_env()

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    # ------------------------------------------------------------------
    # Engine queries
    # ------------------------------------------------------------------

    async def get_versions(self, throw_on_error: bool = False) -> DockerVersions:
        """Versions of the docker engine and of compose.

        Each probe fails independently and yields an empty string, unless
        ``throw_on_error`` is set.
        """
        versions = DockerVersions()

        try:
            logger.debug("fetching_docker_version")
            info = await asyncio.to_thread(lambda: self.client.version())
            versions.docker = str(info.get("Version", ""))
        except Exception as e:
            logger.debug("docker_version_failed", error=str(e))
            if throw_on_error:
                raise

        try:
            logger.debug("fetching_compose_version")
            result = await self.runner.run("version", "--short")
            versions.compose = result.out.strip()
        except Exception as e:
            logger.debug("compose_version_failed", error=str(e))
            if throw_on_error:
                raise

        return versions

    async def get_images(self) -> list[str]:
        """Tags of the images already pulled; never raises."""
        try:
            images = await asyncio.to_thread(lambda: self.client.images.list())
        except Exception as e:
            logger.debug("docker_images_failed", error=str(e))
            return []

        names: list[str] = []
        for image in images:
            for tag in image.tags or []:
                if tag != UNTAGGED_IMAGE and tag not in names:
                    names.append(tag)
        logger.debug("docker_images", count=len(names))
        return names

    async def pull_image(self, image: str) -> None:
        """Pull ``repository:tag`` from the registry.

        Raises:
            DockerError: if the engine is unreachable or refuses the pull
        """
        repository, _, tag = image.rpartition(":")
        if not repository:
            repository, tag = image, "latest"
        try:
            with LogPerformance("docker_pull", logger, image=image):
                await asyncio.to_thread(lambda: self.client.images.pull(repository, tag=tag))
        except docker.errors.DockerException as e:
            raise DockerError(f"Could not pull {image}: {e}", context={"image": image}, original_error=e) from e

    # ------------------------------------------------------------------
    # Compose lifecycle
    # ------------------------------------------------------------------

    async def save_compose_file(self, network: Network) -> Path:
        """Write the network's compose document to ``<network.path>/docker-compose.yml``."""
        yml = render_compose(network)
        path = network.compose_path
        await asyncio.to_thread(_write_text, path, yml)
        logger.info("compose_file_saved", network=network.name, path=str(path))
        return path

    async def _compose(self, network: Network, *args: str) -> ComposeResult:
        return await self.runner.run(*args, cwd=network.path)

    async def start(self, network: Network) -> None:
        """Create and start every container of ``network``."""
        await ensure_dirs(network, network.all_nodes())

        logger.info("starting_network_containers", network=network.name, path=str(network.path))
        with LogPerformance("compose_up", logger, network=network.name):
            result = await self._compose(network, "up", "-d")
        logger.info("network_started", network=network.name, output=result.output)

    async def stop(self, network: Network) -> None:
        """Stop and remove every container of ``network``."""
        await ensure_dirs(network, network.all_nodes())

        logger.info("stopping_network_containers", network=network.name, path=str(network.path))
        with LogPerformance("compose_down", logger, network=network.name):
            result = await self._compose(network, "down")
        logger.info("network_stopped", network=network.name, output=result.output)

    async def start_node(self, network: Network, node: CommonNode) -> None:
        """Start one node's container.

        The container is stopped first: starting a container that is already
        up in an error state would otherwise have no effect.
        """
        await ensure_dirs(network, [node])
        await self.stop_node(network, node)

        logger.info("starting_node_container", node=node.name, path=str(network.path))
        result = await self._compose(network, "up", "-d", node.name)
        logger.info("node_container_started", node=node.name, output=result.output)

    async def stop_node(self, network: Network, node: CommonNode) -> None:
        logger.info("stopping_node_container", node=node.name, path=str(network.path))
        result = await self._compose(network, "stop", node.name)
        logger.info("node_container_stopped", node=node.name, output=result.output)

    async def remove_node(self, network: Network, node: CommonNode) -> None:
        """Stop and remove one node's container."""
        await self.stop_node(network, node)

        logger.info("removing_node_container", node=node.name, path=str(network.path))
        result = await self._compose(network, "rm", "-f", node.name)
        logger.info("node_container_removed", node=node.name, output=result.output)

    async def get_running_services(self, network: Network) -> list[str]:
        """Names of the services of ``network`` whose containers are running."""
        result = await self._compose(network, "ps", "--services", "--status", "running")
        return [line.strip() for line in result.out.splitlines() if line.strip()]
