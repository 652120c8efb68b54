"""
Pytest configuration and global fixtures.

Docker, compose and node APIs are replaced with in-process fakes so the suite
runs without a container runtime.
"""

from pathlib import Path
from typing import Any

import pytest
import yaml

from regnet.exceptions import DockerCommandError
from regnet.network.domain.enums import Status
from regnet.network.domain.models import Network
from regnet.network.domain.topology import create_network
from regnet.network.infrastructure.compose_runner import ComposeResult, ComposeRunner
from regnet.network.infrastructure.docker_service import DockerService
from regnet.utils.config import Settings


class FakeComposeRunner(ComposeRunner):
    """Records compose invocations and tracks which services are running.

    ``up`` without service names starts every service of the compose file in
    ``cwd``; ``down`` stops all of them.
    """

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[list[str]] = []
        self.running: set[str] = set()
        self.fail_on: str | None = None
        self.error_message = "compose failed"

    def _services(self, cwd: Path | None) -> list[str]:
        if cwd is None or not (cwd / "docker-compose.yml").exists():
            return []
        content = yaml.safe_load((cwd / "docker-compose.yml").read_text())
        return list(content.get("services", {}))

    async def run(self, *args: str, cwd: Path | None = None) -> ComposeResult:
        self.calls.append(list(args))
        command = args[0]
        if self.fail_on == command:
            raise DockerCommandError(self.error_message, command=list(args), exit_code=1)

        if command == "version":
            return ComposeResult(0, "2.24.6\n", "")
        if command == "up":
            names = [a for a in args[1:] if not a.startswith("-")]
            self.running.update(names or self._services(cwd))
        elif command == "down":
            self.running.clear()
        elif command in ("stop", "rm"):
            names = [a for a in args[1:] if not a.startswith("-")]
            self.running.difference_update(names)
        elif command == "ps":
            return ComposeResult(0, "\n".join(sorted(self.running)) + "\n", "")
        return ComposeResult(0, "", "")


class FakeImage:
    def __init__(self, tags: list[str]):
        self.tags = tags


class FakeImages:
    def __init__(self, tags: list[list[str]]):
        self.items = [FakeImage(t) for t in tags]
        self.pulled: list[tuple[str, str]] = []

    def list(self) -> list[FakeImage]:
        return self.items

    def pull(self, repository: str, tag: str | None = None) -> FakeImage:
        self.pulled.append((repository, tag or "latest"))
        image = FakeImage([f"{repository}:{tag}"])
        self.items.append(image)
        return image


class FakeDockerClient:
    """Stands in for ``docker.DockerClient``."""

    def __init__(self, tags: list[list[str]] | None = None, version: str = "26.1.0"):
        self.images = FakeImages(tags or [])
        self._version = version

    def version(self) -> dict[str, Any]:
        return {"Version": self._version, "ApiVersion": "1.45"}


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings rooted in a temporary folder with no waiting."""
    return Settings(
        data_dir=tmp_path / "data",
        legacy_data_dir=tmp_path / "legacy",
        environment="production",
        mine_settle_delay_seconds=0.0,
        node_online_timeout_seconds=0.05,
        node_online_interval_seconds=0.01,
    )


@pytest.fixture
def compose_runner() -> FakeComposeRunner:
    return FakeComposeRunner()


@pytest.fixture
def docker_client() -> FakeDockerClient:
    return FakeDockerClient(
        tags=[
            ["polarlightning/bitcoind:27.0"],
            ["<none>:<none>"],
            ["polarlightning/lnd:0.18.0-beta", "polarlightning/bitcoind:27.0"],
        ]
    )


@pytest.fixture
def docker_service(compose_runner, docker_client) -> DockerService:
    return DockerService(runner=compose_runner, client_factory=lambda: docker_client)


@pytest.fixture
def network(tmp_path) -> Network:
    """Stopped network with two bitcoind, one LND and one Core Lightning node."""
    return create_network(1, "test", tmp_path / "networks", lnd_nodes=1, cln_nodes=1, bitcoind_nodes=2)


@pytest.fixture
def started_network(network) -> Network:
    network.status = Status.STARTED
    for node in network.all_nodes():
        node.status = Status.STARTED
    return network
