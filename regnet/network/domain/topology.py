"""Topology operations: building networks and adding/removing nodes.

These functions only mutate the in-memory models. Writing compose files,
persisting the networks file and touching containers is done by the
application layer after the topology has changed.
"""

from pathlib import Path

from regnet.exceptions import NodeNotFoundError, UnsupportedImplementationError, ValidationError
from regnet.utils.logging import get_logger

from ..constants import (
    BASE_PORTS,
    CONTAINER_PREFIX,
    DEFAULT_VERSIONS,
    LIGHTNING_NODE_NAMES,
    get_docker_config,
)
from .enums import NodeImplementation
from .models import (
    BitcoinNode,
    BitcoinPorts,
    CLightningNode,
    CLightningPaths,
    CLightningPorts,
    CommonNode,
    DockerOverride,
    EclairNode,
    EclairPorts,
    LightningNode,
    LndNode,
    LndPaths,
    LndPorts,
    Network,
)

logger = get_logger(__name__)


def get_network_backend_id(node: BitcoinNode) -> str:
    """Key that identifies a bitcoin node across all networks."""
    return f"{node.network_id}-{node.name}"


def container_name(network_id: int, node_name: str) -> str:
    return f"{CONTAINER_PREFIX}-n{network_id}-{node_name}"


def node_path(network: Network, implementation: NodeImplementation, name: str) -> Path:
    """Host folder mounted into the node's container."""
    return network.path / get_docker_config(implementation).volume_dir_name / name


def lightning_node_name(node_id: int) -> str:
    names = LIGHTNING_NODE_NAMES
    if node_id < len(names):
        return names[node_id]
    return f"{names[node_id % len(names)]}{node_id // len(names) + 1}"


def find_node(network: Network, name: str) -> CommonNode:
    """Return the node called ``name`` from either sequence.

    Raises:
        NodeNotFoundError: if no node has that name
    """
    for node in network.all_nodes():
        if node.name == name:
            return node
    raise NodeNotFoundError(name, network_id=network.id)


def resolve_backend(network: Network, node: LightningNode) -> BitcoinNode:
    """Return the bitcoin node ``node`` is connected to.

    A dangling ``backend_name`` falls back to the first bitcoin node. This
    keeps older files loadable but hides a broken reference, so it is logged.

    Raises:
        ValidationError: if the network has no bitcoin nodes at all
    """
    bitcoin = network.nodes.bitcoin
    if not bitcoin:
        raise ValidationError(
            f"Network '{network.name}' has no bitcoin node for '{node.name}'",
            field="backend_name",
            value=node.backend_name,
        )
    for candidate in bitcoin:
        if candidate.name == node.backend_name:
            return candidate
    logger.warning(
        "backend_not_found_using_first",
        network_id=network.id,
        node=node.name,
        backend_name=node.backend_name,
        fallback=bitcoin[0].name,
    )
    return bitcoin[0]


def _ensure_unique_name(network: Network, name: str) -> None:
    if any(n.name == name for n in network.all_nodes()):
        raise ValidationError(f"A node named '{name}' already exists", field="name", value=name)


def _ports(implementation: NodeImplementation, node_id: int) -> dict[str, int]:
    return {key: base + node_id for key, base in BASE_PORTS[implementation].items()}


def create_bitcoind_node(
    network: Network,
    version: str | None = None,
    *,
    docker: DockerOverride | None = None,
) -> BitcoinNode:
    """Append a new bitcoind node, peered with the previous one."""
    bitcoin = network.nodes.bitcoin
    node_id = max((n.id for n in bitcoin), default=-1) + 1
    name = f"backend{node_id + 1}"
    _ensure_unique_name(network, name)

    node = BitcoinNode(
        id=node_id,
        network_id=network.id,
        name=name,
        version=version or DEFAULT_VERSIONS[NodeImplementation.BITCOIND],
        peers=[],
        ports=BitcoinPorts(**_ports(NodeImplementation.BITCOIND, node_id)),
        docker=docker or DockerOverride(),
    )
    if bitcoin:
        prev = bitcoin[-1]
        node.peers.append(prev.name)
        prev.peers.append(node.name)
    bitcoin.append(node)
    return node


def create_lightning_node(
    network: Network,
    implementation: NodeImplementation,
    version: str | None = None,
    *,
    backend_name: str | None = None,
    docker: DockerOverride | None = None,
) -> LightningNode:
    """Append a new lightning node of ``implementation``.

    Without an explicit ``backend_name`` nodes are spread across the bitcoin
    nodes round-robin.
    """
    implementation = NodeImplementation(implementation)
    if not network.nodes.bitcoin:
        raise ValidationError("Add a bitcoin node before adding lightning nodes")

    lightning = network.nodes.lightning
    node_id = max((n.id for n in lightning), default=-1) + 1
    name = lightning_node_name(node_id)
    _ensure_unique_name(network, name)

    if backend_name is None:
        bitcoin = network.nodes.bitcoin
        backend_name = bitcoin[node_id % len(bitcoin)].name

    common = {
        "id": node_id,
        "network_id": network.id,
        "name": name,
        "version": version or DEFAULT_VERSIONS[implementation],
        "backend_name": backend_name,
        "docker": docker or DockerOverride(),
    }
    path = node_path(network, implementation, name)
    node: LightningNode
    if implementation is NodeImplementation.LND:
        macaroons = path / "data" / "chain" / "bitcoin" / "regtest"
        node = LndNode(
            **common,
            ports=LndPorts(**_ports(implementation, node_id)),
            paths=LndPaths(
                tls_cert=str(path / "tls.cert"),
                admin_macaroon=str(macaroons / "admin.macaroon"),
                invoice_macaroon=str(macaroons / "invoice.macaroon"),
                readonly_macaroon=str(macaroons / "readonly.macaroon"),
            ),
        )
    elif implementation is NodeImplementation.CLIGHTNING:
        api_dir = get_docker_config(implementation).api_dir or ""
        node = CLightningNode(
            **common,
            ports=CLightningPorts(**_ports(implementation, node_id)),
            paths=CLightningPaths(macaroon=str(path / api_dir / "access.macaroon")),
        )
    elif implementation is NodeImplementation.ECLAIR:
        node = EclairNode(**common, ports=EclairPorts(**_ports(implementation, node_id)))
    else:
        raise UnsupportedImplementationError(implementation)

    lightning.append(node)
    return node


def create_network(
    network_id: int,
    name: str,
    base_path: Path,
    *,
    lnd_nodes: int = 0,
    cln_nodes: int = 0,
    eclair_nodes: int = 0,
    bitcoind_nodes: int = 1,
    versions: dict[NodeImplementation, str] | None = None,
) -> Network:
    """Build a new stopped network rooted at ``base_path / str(network_id)``."""
    if bitcoind_nodes < 1:
        raise ValidationError(
            "A network needs at least one bitcoin node", field="bitcoind_nodes", value=bitcoind_nodes
        )
    if min(lnd_nodes, cln_nodes, eclair_nodes) < 0:
        raise ValidationError("Node counts cannot be negative")

    versions = versions or {}
    network = Network(id=network_id, name=name, path=base_path / str(network_id))

    for _ in range(bitcoind_nodes):
        create_bitcoind_node(network, versions.get(NodeImplementation.BITCOIND))

    counts = [
        (NodeImplementation.LND, lnd_nodes),
        (NodeImplementation.CLIGHTNING, cln_nodes),
        (NodeImplementation.ECLAIR, eclair_nodes),
    ]
    for implementation, count in counts:
        for _ in range(count):
            create_lightning_node(network, implementation, versions.get(implementation))

    logger.debug(
        "network_created",
        network_id=network_id,
        bitcoin=len(network.nodes.bitcoin),
        lightning=len(network.nodes.lightning),
    )
    return network


def remove_node(network: Network, name: str) -> CommonNode:
    """Remove ``name`` from the network and return it.

    Bitcoin nodes can only be removed when another bitcoin node remains and
    no lightning node uses them as a backend.
    """
    node = find_node(network, name)

    if isinstance(node, LightningNode):
        network.nodes.lightning = [n for n in network.nodes.lightning if n.name != name]
        return node

    if len(network.nodes.bitcoin) == 1:
        raise ValidationError("Cannot remove the only bitcoin node", field="name", value=name)
    dependents = [n.name for n in network.nodes.lightning if n.backend_name == name]
    if dependents:
        raise ValidationError(
            f"Cannot remove '{name}' while lightning nodes use it: {', '.join(dependents)}",
            field="name",
            value=name,
        )

    network.nodes.bitcoin = [n for n in network.nodes.bitcoin if n.name != name]
    for other in network.nodes.bitcoin:
        if name in other.peers:
            other.peers = [p for p in other.peers if p != name]
    return node
