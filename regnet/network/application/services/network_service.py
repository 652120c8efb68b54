"""Network orchestration.

``NetworkService`` owns the in-memory networks file and is the only writer of
topology and status. Every operation follows the same order: validate the
status transition, apply the topology change, write the compose file, call
docker, record the outcome and persist.

A failed or interrupted lifecycle call moves the affected network and nodes
to ``Error`` and re-raises; the caller decides how to report it.
"""

import asyncio
import shutil
from collections.abc import Iterable

from regnet.exceptions import (
    InvalidStatusTransitionError,
    NetworkNotFoundError,
    PersistenceError,
    RegnetError,
)
from regnet.utils.config import Settings, get_settings
from regnet.utils.logging import LogPerformance, get_logger

from ...constants import INITIAL_BLOCKS
from ...domain.enums import AutoMineMode, NodeImplementation, Status
from ...domain.models import BitcoinNode, CommonNode, DockerOverride, LightningNode, Network, NetworksFile
from ...domain.topology import (
    create_bitcoind_node,
    create_lightning_node,
    create_network,
    find_node,
)
from ...domain.topology import remove_node as remove_from_topology
from ...infrastructure.bitcoind_client import BitcoindService
from ...infrastructure.docker_service import DockerService
from ...infrastructure.lightning import LightningFactory, LightningService
from ...infrastructure.repository import NetworksRepository
from .bitcoind_sync import BitcoindStateSync

logger = get_logger(__name__)

StatusItem = Network | CommonNode


def _move(item: StatusItem, target: Status) -> None:
    """Apply one status transition.

    Raises:
        InvalidStatusTransitionError: if the state machine forbids it
    """
    if not item.status.can_transition_to(target):
        raise InvalidStatusTransitionError(item.name, item.status, target)
    item.status = target


def _move_all(items: Iterable[StatusItem], target: Status) -> list[StatusItem]:
    """Move every item that may reach ``target``; returns the moved ones."""
    moved = []
    for item in items:
        if item.status.can_transition_to(target):
            item.status = target
            moved.append(item)
    return moved


def _recover(item: StatusItem) -> None:
    """Walk an item left in ``Error``, or stuck mid-transition, back to ``Stopped``."""
    if item.status is Status.STARTING:
        _move(item, Status.ERROR)
    if item.status is Status.ERROR:
        _move(item, Status.STOPPING)
    if item.status is Status.STOPPING:
        _move(item, Status.STOPPED)


def _is_interrupted(item: StatusItem) -> bool:
    return item.status in (Status.STARTING, Status.STOPPING)


class NetworkService:
    """Creates, starts, stops and edits networks.

    Args:
        repository: Networks file persistence
        docker: Container lifecycle
        bitcoind: bitcoind JSON-RPC client
        lightning: Lightning API bindings
        settings: Data folder and timing settings
    """

    def __init__(
        self,
        repository: NetworksRepository,
        docker: DockerService,
        bitcoind: BitcoindService | None = None,
        lightning: LightningFactory | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.repository = repository
        self.docker = docker
        self.bitcoind = bitcoind or BitcoindService(self.settings)
        self.lightning = lightning or LightningFactory(self.settings)
        self.sync = BitcoindStateSync(self.bitcoind, self.network_by_id, self.settings)
        self.data = NetworksFile(version=repository.current_version)

    @property
    def networks(self) -> list[Network]:
        return self.data.networks

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def load(self) -> NetworksFile:
        """Read the networks file.

        A status still at ``Starting`` or ``Stopping`` was left by a command that
        never finished; it is moved to ``Error`` so the item can be stopped or
        restarted.
        """
        self.data = await asyncio.to_thread(self.repository.load)
        for network in self.networks:
            for item in (network, *network.all_nodes()):
                if _is_interrupted(item):
                    logger.warning(
                        "interrupted_status_found", network_id=network.id, item=item.name, status=str(item.status)
                    )
                    _move(item, Status.ERROR)
        return self.data

    async def save(self) -> None:
        await asyncio.to_thread(self.repository.save, self.data)

    def network_by_id(self, network_id: int) -> Network:
        """Raises ``NetworkNotFoundError`` for an unknown id."""
        for network in self.networks:
            if network.id == network_id:
                return network
        raise NetworkNotFoundError(network_id)

    def lightning_service(self, node: LightningNode) -> LightningService:
        return self.lightning.get_service(node)

    # ------------------------------------------------------------------
    # Topology
    # ------------------------------------------------------------------

    async def add_network(
        self,
        name: str,
        *,
        lnd_nodes: int = 0,
        cln_nodes: int = 0,
        eclair_nodes: int = 0,
        bitcoind_nodes: int = 1,
        versions: dict[NodeImplementation, str] | None = None,
    ) -> Network:
        """Create a stopped network, write its compose file and persist it."""
        network_id = max((n.id for n in self.networks), default=0) + 1
        network = create_network(
            network_id,
            name,
            self.settings.networks_dir,
            lnd_nodes=lnd_nodes,
            cln_nodes=cln_nodes,
            eclair_nodes=eclair_nodes,
            bitcoind_nodes=bitcoind_nodes,
            versions=versions,
        )
        self.networks.append(network)
        await self.docker.save_compose_file(network)
        await self.save()
        logger.info("network_added", network_id=network.id, name=name, nodes=len(network.all_nodes()))
        return network

    async def delete_network(self, network_id: int) -> None:
        """Stop the network if needed, then remove it and its data folder."""
        network = self.network_by_id(network_id)
        if network.status is not Status.STOPPED:
            await self.stop(network_id)

        await self.sync.stop_auto_mining(network_id)
        for node in network.nodes.bitcoin:
            self.sync.remove_node(node)

        if network.path.exists():
            try:
                await asyncio.to_thread(shutil.rmtree, network.path)
            except OSError as e:
                raise PersistenceError(
                    f"Could not delete {network.path}", context={"path": str(network.path)}, original_error=e
                ) from e

        self.data.networks = [n for n in self.networks if n.id != network_id]
        self.data.charts.pop(network_id, None)
        await self.save()
        logger.info("network_deleted", network_id=network_id)

    async def add_node(
        self,
        network_id: int,
        implementation: NodeImplementation,
        version: str | None = None,
        *,
        backend_name: str | None = None,
        docker: DockerOverride | None = None,
    ) -> CommonNode:
        """Add a node; it is started right away when the network is running."""
        network = self.network_by_id(network_id)
        implementation = NodeImplementation(implementation)

        node: CommonNode
        if implementation is NodeImplementation.BITCOIND:
            node = create_bitcoind_node(network, version, docker=docker)
        else:
            node = create_lightning_node(
                network, implementation, version, backend_name=backend_name, docker=docker
            )

        await self.docker.save_compose_file(network)
        await self.save()
        logger.info("node_added", network_id=network_id, node=node.name, implementation=str(implementation))

        if network.status is Status.STARTED:
            await self.start_node(network_id, node.name)
        return node

    async def remove_node(self, network_id: int, name: str) -> CommonNode:
        """Remove a node from the topology and its container from docker.

        The removal is validated on a copy first, so a refused removal never
        reaches docker.
        """
        network = self.network_by_id(network_id)
        node = find_node(network, name)
        remove_from_topology(network.model_copy(deep=True), name)

        if network.status.is_running or node.status.is_running:
            await self.docker.remove_node(network, node)

        remove_from_topology(network, name)
        if isinstance(node, BitcoinNode):
            self.sync.remove_node(node)

        await self.docker.save_compose_file(network)
        await self.save()
        logger.info("node_removed", network_id=network_id, node=name)
        return node

    async def set_auto_mine_mode(self, network_id: int, mode: AutoMineMode | int) -> Network:
        network = self.network_by_id(network_id)
        network.auto_mine_mode = AutoMineMode(mode)
        await self.save()
        if network.status is Status.STARTED:
            await self.sync.start_auto_mining(network)
        return network

    async def follow_auto_mining(self, network_id: int, duration: float | None = None) -> bool:
        """Keep the mining loop of a started network alive.

        Returns False when there is no loop to follow: the network is not
        started or its mode is off.
        """
        network = self.network_by_id(network_id)
        if not self.sync.is_auto_mining(network.id):
            return False
        await self.sync.follow_auto_mining(network.id, duration)
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _abort(self, items: list[StatusItem], error: BaseException, event: str, **fields) -> None:
        """Record a failed or interrupted lifecycle call as ``Error`` on disk.

        Runs for any exception, cancellation included, so nothing is left at
        ``Starting`` or ``Stopping``. The caller re-raises.
        """
        logger.error(event, error=str(error) or type(error).__name__, error_type=type(error).__name__, **fields)
        _move_all(items, Status.ERROR)
        await self.save()

    async def start(self, network_id: int) -> Network:
        """Start every container of the network.

        Raises:
            InvalidStatusTransitionError: if the network is not stopped
            DockerCommandError: if compose fails; statuses are then ``Error``
        """
        network = self.network_by_id(network_id)
        _recover(network)
        _move(network, Status.STARTING)
        for node in network.all_nodes():
            _recover(node)
        starting = _move_all(network.all_nodes(), Status.STARTING)
        await self.save()

        try:
            with LogPerformance("network_start", logger, network_id=network_id):
                await self.docker.save_compose_file(network)
                await self.docker.start(network)
        except BaseException as e:
            await self._abort([network, *starting], e, "network_start_failed", network_id=network_id)
            raise

        _move(network, Status.STARTED)
        _move_all(starting, Status.STARTED)
        await self.save()
        if network.auto_mine_mode != AutoMineMode.AUTO_OFF:
            await self.sync.start_auto_mining(network)
        return network

    async def stop(self, network_id: int) -> Network:
        """Stop and remove every container of the network.

        Raises:
            InvalidStatusTransitionError: if the network is not started or in error
            DockerCommandError: if compose fails; statuses are then ``Error``
        """
        network = self.network_by_id(network_id)
        _move(network, Status.STOPPING)
        stopping = _move_all(network.all_nodes(), Status.STOPPING)
        await self.save()

        try:
            await self.sync.stop_auto_mining(network_id)
            await self.docker.stop(network)
        except BaseException as e:
            await self._abort([network, *stopping], e, "network_stop_failed", network_id=network_id)
            raise

        _move(network, Status.STOPPED)
        _move_all(stopping, Status.STOPPED)
        for node in network.nodes.bitcoin:
            self.sync.remove_node(node)
        await self.save()
        return network

    async def start_node(self, network_id: int, name: str) -> CommonNode:
        """Start one node; a node in ``Error`` is restarted."""
        network = self.network_by_id(network_id)
        node = find_node(network, name)
        _recover(node)
        _move(node, Status.STARTING)
        await self.save()

        try:
            await self.docker.save_compose_file(network)
            await self.docker.start_node(network, node)
        except BaseException as e:
            await self._abort([node], e, "node_start_failed", network_id=network_id, node=name)
            raise

        _move(node, Status.STARTED)
        await self.save()
        return node

    async def stop_node(self, network_id: int, name: str) -> CommonNode:
        network = self.network_by_id(network_id)
        node = find_node(network, name)
        _move(node, Status.STOPPING)
        await self.save()

        try:
            await self.docker.stop_node(network, node)
        except BaseException as e:
            await self._abort([node], e, "node_stop_failed", network_id=network_id, node=name)
            raise

        _move(node, Status.STOPPED)
        if isinstance(node, BitcoinNode):
            self.sync.remove_node(node)
        await self.save()
        return node

    # ------------------------------------------------------------------
    # Startup monitor
    # ------------------------------------------------------------------

    def _mark_error(self, node: CommonNode, error: Exception) -> None:
        logger.error("node_startup_failed", network_id=node.network_id, node=node.name, error=str(error))
        if node.status.can_transition_to(Status.ERROR):
            node.status = Status.ERROR

    async def _bring_up_bitcoind(self, node: BitcoinNode) -> bool:
        try:
            await self.bitcoind.wait_until_online(node)
            await self.bitcoind.create_default_wallet(node)
            return True
        except RegnetError as e:
            self._mark_error(node, e)
            return False

    async def _bring_up_lightning(self, node: LightningNode) -> str | None:
        try:
            info = await self.lightning_service(node).wait_until_online(node)
            return info.rpc_url
        except RegnetError as e:
            self._mark_error(node, e)
            return None

    async def monitor_startup(self, network_id: int) -> Network:
        """Wait for the started nodes and prepare the network for use.

        Creates bitcoind wallets, peers the bitcoin nodes, mines the initial
        blocks on an empty chain and connects every lightning node to the
        others. A node that does not come online is marked ``Error``; the
        rest continue.
        """
        network = self.network_by_id(network_id)
        bitcoin = [n for n in network.nodes.bitcoin if n.status is Status.STARTED]
        lightning = [n for n in network.nodes.lightning if n.status is Status.STARTED]

        online = await asyncio.gather(*(self._bring_up_bitcoind(n) for n in bitcoin))
        ready = [node for node, ok in zip(bitcoin, online, strict=True) if ok]

        for node in ready:
            await self.bitcoind.connect_peers(node)
        if ready:
            try:
                info = await self.sync.get_info(ready[0])
                if info.chain_info is not None and info.chain_info.blocks == 0:
                    logger.info("mining_initial_blocks", network_id=network_id, blocks=INITIAL_BLOCKS)
                    await self.sync.mine(INITIAL_BLOCKS, ready[0])
            except RegnetError as e:
                self._mark_error(ready[0], e)

        urls = await asyncio.gather(*(self._bring_up_lightning(n) for n in lightning))
        peers = {node.name: url for node, url in zip(lightning, urls, strict=True) if url}
        for node in lightning:
            if node.name not in peers:
                continue
            others = [url for name, url in peers.items() if name != node.name]
            try:
                await self.lightning_service(node).connect_peers(node, others)
            except RegnetError as e:
                self._mark_error(node, e)

        await self.save()
        logger.info("network_startup_complete", network_id=network_id, online=len(ready) + len(peers))
        return network

    async def close(self) -> None:
        await self.sync.close()
        await self.bitcoind.close()
        await self.lightning.close()
