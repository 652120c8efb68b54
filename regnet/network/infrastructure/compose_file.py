"""Compose document builder.

``build_compose`` turns a Network into a docker compose document with one
service per node. It is pure: the same network always produces the same
document, and ``render_compose`` dumps it with a stable key order so the YAML
is byte-identical too. Writing the file is left to the caller.
"""

from typing import Any

import yaml

from regnet.exceptions import UnsupportedImplementationError

from ..constants import (
    BITCOIND_P2P_PORT,
    BITCOIND_RPC_PORT,
    BITCOIND_ZMQ_BLOCK_PORT,
    BITCOIND_ZMQ_TX_PORT,
    LIGHTNING_P2P_PORT,
    LIGHTNING_REST_PORT,
    LND_GRPC_PORT,
    get_docker_config,
)
from ..domain.enums import NodeImplementation
from ..domain.models import (
    BitcoinNode,
    CLightningNode,
    CommonNode,
    EclairNode,
    LightningNode,
    LndNode,
    Network,
)
from ..domain.topology import container_name, resolve_backend


def render_command(template: str, variables: dict[str, str]) -> str:
    """Substitute ``{{key}}`` placeholders and collapse whitespace."""
    command = template
    for key, value in variables.items():
        command = command.replace("{{" + key + "}}", value)
    return " ".join(command.split())


class ComposeFile:
    """Accumulates service definitions for one network."""

    def __init__(self, network_id: int):
        self.network_id = network_id
        self.content: dict[str, Any] = {"services": {}}

    @property
    def services(self) -> dict[str, Any]:
        return self.content["services"]

    def _image(self, node: CommonNode) -> str:
        if node.docker.image:
            return node.docker.image
        return f"{get_docker_config(node.implementation).image_name}:{node.version}"

    def _command(self, node: CommonNode, variables: dict[str, str]) -> str:
        template = node.docker.command or get_docker_config(node.implementation).command
        return render_command(template, variables)

    def _service(
        self,
        node: CommonNode,
        variables: dict[str, str],
        ports: list[str],
        volumes: list[str],
    ) -> dict[str, Any]:
        config = get_docker_config(node.implementation)
        return {
            "image": self._image(node),
            "container_name": container_name(self.network_id, node.name),
            "hostname": node.name,
            "command": self._command(node, variables),
            "environment": {
                "USERID": "${USERID:-1000}",
                "GROUPID": "${GROUPID:-1000}",
            },
            "restart": "always",
            "expose": [str(port) for port in config.expose],
            "ports": ports,
            "volumes": volumes,
        }

    def _volume(self, node: CommonNode, sub_dir: str | None = None, target: str | None = None) -> str:
        config = get_docker_config(node.implementation)
        source = f"./{config.volume_dir_name}/{node.name}"
        if sub_dir:
            source = f"{source}/{sub_dir}"
        return f"{source}:{target or config.container_home}"

    def add_bitcoind(self, node: BitcoinNode) -> None:
        variables = {
            "name": node.name,
            "containerName": container_name(self.network_id, node.name),
            "rpcUser": node.rpc_user,
            "rpcPass": node.rpc_password,
        }
        ports = [
            f"{node.ports.rpc}:{BITCOIND_RPC_PORT}",
            f"{node.ports.p2p}:{BITCOIND_P2P_PORT}",
            f"{node.ports.zmq_block}:{BITCOIND_ZMQ_BLOCK_PORT}",
            f"{node.ports.zmq_tx}:{BITCOIND_ZMQ_TX_PORT}",
        ]
        self.services[node.name] = self._service(node, variables, ports, [self._volume(node)])

    def _lightning_variables(self, node: LightningNode, backend: BitcoinNode) -> dict[str, str]:
        return {
            "name": node.name,
            "containerName": container_name(self.network_id, node.name),
            "backendName": backend.name,
            "rpcUser": backend.rpc_user,
            "rpcPass": backend.rpc_password,
        }

    def add_lnd(self, node: LndNode, backend: BitcoinNode) -> None:
        ports = [
            f"{node.ports.rest}:{LIGHTNING_REST_PORT}",
            f"{node.ports.grpc}:{LND_GRPC_PORT}",
            f"{node.ports.p2p}:{LIGHTNING_P2P_PORT}",
        ]
        self.services[node.name] = self._service(
            node, self._lightning_variables(node, backend), ports, [self._volume(node)]
        )

    def add_clightning(self, node: CLightningNode, backend: BitcoinNode) -> None:
        config = get_docker_config(node.implementation)
        ports = [
            f"{node.ports.rest}:{LIGHTNING_REST_PORT}",
            f"{node.ports.p2p}:{LIGHTNING_P2P_PORT}",
        ]
        volumes = [
            self._volume(node, config.data_dir),
            self._volume(node, config.api_dir, "/opt/c-lightning-rest/certs"),
        ]
        self.services[node.name] = self._service(
            node, self._lightning_variables(node, backend), ports, volumes
        )

    def add_eclair(self, node: EclairNode, backend: BitcoinNode) -> None:
        ports = [
            f"{node.ports.rest}:{LIGHTNING_REST_PORT}",
            f"{node.ports.p2p}:{LIGHTNING_P2P_PORT}",
        ]
        self.services[node.name] = self._service(
            node, self._lightning_variables(node, backend), ports, [self._volume(node)]
        )


def build_compose(network: Network) -> dict[str, Any]:
    """Build the compose document for every node of ``network``.

    Raises:
        UnsupportedImplementationError: for a lightning node of unknown type
    """
    file = ComposeFile(network.id)
    for bitcoin_node in network.nodes.bitcoin:
        file.add_bitcoind(bitcoin_node)

    for node in network.nodes.lightning:
        backend = resolve_backend(network, node)
        if node.implementation is NodeImplementation.LND:
            file.add_lnd(node, backend)  # type: ignore[arg-type]
        elif node.implementation is NodeImplementation.CLIGHTNING:
            file.add_clightning(node, backend)  # type: ignore[arg-type]
        elif node.implementation is NodeImplementation.ECLAIR:
            file.add_eclair(node, backend)  # type: ignore[arg-type]
        else:
            raise UnsupportedImplementationError(node.implementation)

    return file.content


def render_compose(network: Network) -> str:
    """Build and dump the compose document as YAML."""
    return yaml.safe_dump(build_compose(network), sort_keys=False, default_flow_style=False)
