"""Tests for image availability and backend compatibility checks."""

import pytest

from regnet.network.application.services import ImageService
from regnet.network.domain.enums import NodeImplementation
from regnet.network.domain.models import DockerOverride, DockerRepoImage, DockerRepoState


@pytest.fixture
def images(docker_service):
    return ImageService(docker_service)


@pytest.fixture
def repo_state():
    return DockerRepoState(
        version=1,
        images={
            NodeImplementation.BITCOIND: DockerRepoImage(latest="27.0", versions=["27.0", "26.0"]),
            NodeImplementation.LND: DockerRepoImage(
                latest="0.18.0-beta",
                versions=["0.18.0-beta", "0.15.0-beta"],
                compatibility={"0.15.0-beta": "24.0"},
            ),
            NodeImplementation.ECLAIR: DockerRepoImage(latest="0.10.0", versions=["0.10.0"]),
        },
    )


def test_declared_images_deduplicated_with_override(images, network):
    network.nodes.lightning[1].docker = DockerOverride(image="me/cln:dev")

    assert images.declared_images(network) == [
        "polarlightning/bitcoind:27.0",
        "polarlightning/lnd:0.18.0-beta",
        "me/cln:dev",
    ]


@pytest.mark.asyncio
async def test_pull_missing_only(images, docker_client, network):
    pulled = await images.pull_missing(network)

    assert pulled == ["polarlightning/clightning:24.05"]
    assert docker_client.images.pulled == [("polarlightning/clightning", "24.05")]
    assert await images.missing_images(network) == []


@pytest.mark.asyncio
async def test_images_to_pull(images, repo_state):
    assert await images.images_to_pull(repo_state) == ["polarlightning/eclair:0.10.0"]


class TestBackendCompatibility:
    def test_older_backend_allowed(self, images, repo_state):
        assert images.is_backend_compatible(repo_state, NodeImplementation.LND, "0.15.0-beta", "23.0")

    def test_newer_backend_rejected(self, images, repo_state):
        assert not images.is_backend_compatible(repo_state, NodeImplementation.LND, "0.15.0-beta", "27.0")

    def test_unknown_versions_assumed_compatible(self, images, repo_state):
        assert images.is_backend_compatible(repo_state, NodeImplementation.LND, "0.18.0-beta", "27.0")
        assert images.is_backend_compatible(repo_state, NodeImplementation.CLIGHTNING, "24.05", "27.0")
