"""Image availability checks.

Decides which images a network needs, which are missing locally and whether
a Lightning version works with a given bitcoind version, using the image
catalog (``DockerRepoState``) maintained by the update checker.
"""

from regnet.utils.logging import get_logger

from ...constants import get_docker_config
from ...domain.enums import NodeImplementation
from ...domain.models import DockerRepoState, Network
from ...infrastructure.docker_service import DockerService
from ...infrastructure.migrations import parse_version

logger = get_logger(__name__)


def image_name(implementation: NodeImplementation, version: str) -> str:
    return f"{get_docker_config(implementation).image_name}:{version}"


class ImageService:
    def __init__(self, docker: DockerService):
        self.docker = docker

    def declared_images(self, network: Network) -> list[str]:
        """Images the network's compose file references, in node order.

        Nodes with a custom image are included with that image.
        """
        images: list[str] = []
        for node in network.all_nodes():
            image = node.docker.image or image_name(node.implementation, node.version)
            if image not in images:
                images.append(image)
        return images

    async def missing_images(self, network: Network) -> list[str]:
        local = set(await self.docker.get_images())
        return [image for image in self.declared_images(network) if image not in local]

    async def pull_missing(self, network: Network) -> list[str]:
        """Pull every declared image not present locally; returns the pulled ones."""
        missing = await self.missing_images(network)
        for image in missing:
            logger.info("pulling_image", network_id=network.id, image=image)
            await self.docker.pull_image(image)
        return missing

    async def images_to_pull(self, repo_state: DockerRepoState) -> list[str]:
        """Latest catalog images that are not pulled yet."""
        local = set(await self.docker.get_images())
        latest = [image_name(impl, repo.latest) for impl, repo in repo_state.images.items()]
        return [image for image in latest if image not in local]

    def is_backend_compatible(
        self,
        repo_state: DockerRepoState,
        implementation: NodeImplementation,
        version: str,
        backend_version: str,
    ) -> bool:
        """Whether ``implementation`` at ``version`` can use a bitcoind ``backend_version``.

        Versions without an entry in the catalog's compatibility map are
        assumed compatible.
        """
        repo = repo_state.images.get(NodeImplementation(implementation))
        if repo is None or not repo.compatibility or version not in repo.compatibility:
            return True
        highest = repo.compatibility[version]
        return parse_version(backend_version) <= parse_version(highest)
