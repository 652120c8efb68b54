"""Topology models for regtest networks.

Networks and nodes are pydantic models so the persisted ``networks.json``
round-trips without hand-written (de)serializers. Field names are snake_case
in Python and camelCase on disk (``backendName``, ``autoMineMode``, ...).

Lightning nodes form a closed set of variants discriminated by their
``implementation`` tag.
"""

from pathlib import Path
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag
from pydantic.alias_generators import to_camel

from ..constants import COMPOSE_FILE_NAME, DEFAULT_RPC_PASSWORD, DEFAULT_RPC_USER
from .enums import AutoMineMode, NodeImplementation, NodeType, Status

NODE_NAME_PATTERN = r"^[a-zA-Z0-9][a-zA-Z0-9_.-]*$"


class DomainModel(BaseModel):
    """Base model: camelCase aliases, validated assignment."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize with on-disk field names."""
        return self.model_dump(mode="json", by_alias=True)


class DockerOverride(DomainModel):
    """Custom image/command for a node; empty strings keep the managed defaults."""

    image: str = ""
    command: str = ""


# ============================================================================
# PORTS & PATHS
# ============================================================================


class BitcoinPorts(DomainModel):
    rpc: int
    p2p: int
    zmq_block: int
    zmq_tx: int


class LndPorts(DomainModel):
    rest: int
    grpc: int
    p2p: int


class CLightningPorts(DomainModel):
    rest: int
    p2p: int


class EclairPorts(DomainModel):
    rest: int
    p2p: int


class LndPaths(DomainModel):
    tls_cert: str
    admin_macaroon: str
    invoice_macaroon: str
    readonly_macaroon: str


class CLightningPaths(DomainModel):
    macaroon: str


# ============================================================================
# NODES
# ============================================================================


class CommonNode(DomainModel):
    """Identity shared by every node of a network."""

    id: int = Field(ge=0)
    network_id: int
    name: str = Field(min_length=1, max_length=64, pattern=NODE_NAME_PATTERN)
    type: NodeType
    implementation: NodeImplementation
    version: str
    status: Status = Status.STOPPED
    docker: DockerOverride = Field(default_factory=DockerOverride)


class BitcoinNode(CommonNode):
    """A bitcoind backend node."""

    type: NodeType = NodeType.BITCOIN
    implementation: NodeImplementation = NodeImplementation.BITCOIND
    peers: list[str] = Field(default_factory=list)
    rpc_user: str = DEFAULT_RPC_USER
    rpc_password: str = DEFAULT_RPC_PASSWORD
    ports: BitcoinPorts


class LightningNode(CommonNode):
    """Common fields of every Lightning implementation."""

    type: NodeType = NodeType.LIGHTNING
    backend_name: str


class LndNode(LightningNode):
    implementation: NodeImplementation = NodeImplementation.LND
    ports: LndPorts
    paths: LndPaths


class CLightningNode(LightningNode):
    implementation: NodeImplementation = NodeImplementation.CLIGHTNING
    ports: CLightningPorts
    paths: CLightningPaths


class EclairNode(LightningNode):
    implementation: NodeImplementation = NodeImplementation.ECLAIR
    ports: EclairPorts


def _implementation_tag(value: Any) -> str:
    if isinstance(value, dict):
        return str(value.get("implementation", ""))
    return str(getattr(value, "implementation", ""))


AnyLightningNode = Annotated[
    Annotated[LndNode, Tag(NodeImplementation.LND.value)]
    | Annotated[CLightningNode, Tag(NodeImplementation.CLIGHTNING.value)]
    | Annotated[EclairNode, Tag(NodeImplementation.ECLAIR.value)],
    Discriminator(_implementation_tag),
]


# ============================================================================
# NETWORK
# ============================================================================


class NetworkNodes(DomainModel):
    bitcoin: list[BitcoinNode] = Field(default_factory=list)
    lightning: list[AnyLightningNode] = Field(default_factory=list)


class Network(DomainModel):
    """A named collection of bitcoin and lightning nodes."""

    id: int
    name: str = Field(min_length=1)
    status: Status = Status.STOPPED
    path: Path
    auto_mine_mode: AutoMineMode = AutoMineMode.AUTO_OFF
    nodes: NetworkNodes = Field(default_factory=NetworkNodes)

    @property
    def compose_path(self) -> Path:
        return self.path / COMPOSE_FILE_NAME

    def all_nodes(self) -> list[CommonNode]:
        """Bitcoin nodes first, then lightning nodes, in declaration order."""
        return [*self.nodes.bitcoin, *self.nodes.lightning]


class NetworksFile(DomainModel):
    """Root of the persisted networks file.

    ``charts`` holds the designer layout per network id; it is opaque here and
    passed through unchanged.
    """

    version: str
    networks: list[Network] = Field(default_factory=list)
    charts: dict[int, Any] = Field(default_factory=dict)


# ============================================================================
# DOCKER
# ============================================================================


class DockerVersions(DomainModel):
    docker: str = ""
    compose: str = ""


class DockerRepoImage(DomainModel):
    latest: str
    versions: list[str]
    # image version -> highest compatible bitcoind version
    compatibility: dict[str, str] | None = None


class DockerRepoState(DomainModel):
    """Catalog of managed images, owned by the update checker."""

    version: int
    images: dict[NodeImplementation, DockerRepoImage]
