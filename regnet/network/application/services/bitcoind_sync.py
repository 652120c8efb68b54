"""Cached chain and wallet state of bitcoin nodes.

``BitcoindStateSync`` keeps the last known ``ChainInfo``/``WalletInfo`` of each
bitcoin node, keyed by ``"<networkId>-<name>"`` so nodes of different networks
never collide. Mining refreshes every started bitcoin node of the network,
since a new block changes all of them.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

from regnet.exceptions import ValidationError
from regnet.utils.config import Settings, get_settings
from regnet.utils.logging import get_logger

from ...constants import AUTO_MINE_CONFIRMATIONS
from ...domain.enums import AutoMineMode, Status
from ...domain.models import BitcoinNode, Network
from ...domain.topology import get_network_backend_id
from ...domain.value_objects import ChainInfo, WalletInfo
from ...infrastructure.bitcoind_client import BitcoindService

logger = get_logger(__name__)


@dataclass
class BitcoindNodeModel:
    """Last fetched state of one bitcoin node."""

    chain_info: ChainInfo | None = None
    wallet_info: WalletInfo | None = None


class BitcoindStateSync:
    """Reads bitcoind state and mines blocks.

    Args:
        bitcoind: JSON-RPC client
        network_lookup: Returns the network with the given id; used to find
            the sibling nodes to refresh after mining
        settings: Source of the post-mining settle delay
    """

    def __init__(
        self,
        bitcoind: BitcoindService,
        network_lookup: Callable[[int], Network],
        settings: Settings | None = None,
    ):
        self.bitcoind = bitcoind
        self.network_lookup = network_lookup
        self.settings = settings or get_settings()
        self.nodes: dict[str, BitcoindNodeModel] = {}
        self._auto_mine_tasks: dict[int, asyncio.Task] = {}

    def set_info(self, node: BitcoinNode, chain_info: ChainInfo, wallet_info: WalletInfo) -> None:
        model = self.nodes.setdefault(get_network_backend_id(node), BitcoindNodeModel())
        model.chain_info = chain_info
        model.wallet_info = wallet_info

    def info_for(self, node: BitcoinNode) -> BitcoindNodeModel | None:
        return self.nodes.get(get_network_backend_id(node))

    async def get_info(self, node: BitcoinNode) -> BitcoindNodeModel:
        """Fetch and cache chain and wallet info for ``node``."""
        chain_info = await self.bitcoind.get_blockchain_info(node)
        wallet_info = await self.bitcoind.get_wallet_info(node)
        self.set_info(node, chain_info, wallet_info)
        return self.nodes[get_network_backend_id(node)]

    async def mine(self, blocks: int, node: BitcoinNode) -> list[str]:
        """Mine ``blocks`` blocks on ``node`` and refresh every started bitcoin node.

        Raises:
            ValidationError: if ``blocks`` is negative; nothing is called
        """
        if blocks < 0:
            raise ValidationError("The number of blocks to mine cannot be negative", field="blocks", value=blocks)

        hashes = await self.bitcoind.mine(blocks, node)
        # give the new blocks time to reach the other nodes
        await asyncio.sleep(self.settings.mine_settle_delay_seconds)

        network = self.network_lookup(node.network_id)
        started = [n for n in network.nodes.bitcoin if n.status is Status.STARTED]
        await asyncio.gather(*(self.get_info(n) for n in started))
        return hashes

    async def send_funds(
        self,
        node: BitcoinNode,
        to_address: str,
        amount: float,
        auto_mine: bool = False,
    ) -> str:
        """Send ``amount`` BTC to ``to_address``; optionally confirm it by mining."""
        txid = await self.bitcoind.send_funds(node, to_address, amount)
        if auto_mine:
            await self.mine(AUTO_MINE_CONFIRMATIONS, node)
        return txid

    def remove_node(self, node: BitcoinNode) -> None:
        self.nodes.pop(get_network_backend_id(node), None)

    def clear_nodes(self) -> None:
        self.nodes = {}

    # ------------------------------------------------------------------
    # Auto mining
    # ------------------------------------------------------------------

    def is_auto_mining(self, network_id: int) -> bool:
        task = self._auto_mine_tasks.get(network_id)
        return task is not None and not task.done()

    async def start_auto_mining(self, network: Network) -> None:
        """Mine one block every ``network.auto_mine_mode`` seconds.

        Replaces a loop already running for the network; ``AUTO_OFF`` only
        stops it.
        """
        await self.stop_auto_mining(network.id)
        if network.auto_mine_mode == AutoMineMode.AUTO_OFF:
            return

        self._auto_mine_tasks[network.id] = asyncio.create_task(
            self._auto_mine_loop(network.id, int(network.auto_mine_mode))
        )
        logger.info("auto_mining_started", network_id=network.id, interval=int(network.auto_mine_mode))

    async def stop_auto_mining(self, network_id: int) -> None:
        task = self._auto_mine_tasks.pop(network_id, None)
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("auto_mining_stopped", network_id=network_id)

    async def follow_auto_mining(self, network_id: int, duration: float | None = None) -> None:
        """Block while the network's mining loop runs.

        The loop is a task of this process, so a command that returns stops
        it. Returns at once when no loop runs, or after ``duration`` seconds
        when given; the loop keeps running either way.
        """
        task = self._auto_mine_tasks.get(network_id)
        if task is None or task.done():
            return
        logger.info("following_auto_mining", network_id=network_id, duration=duration)
        await asyncio.wait({task}, timeout=duration)

    async def _auto_mine_loop(self, network_id: int, interval: int) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                network = self.network_lookup(network_id)
                if network.nodes.bitcoin and network.status is Status.STARTED:
                    await self.mine(1, network.nodes.bitcoin[0])
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("auto_mine_failed", network_id=network_id, error=str(e))

    async def close(self) -> None:
        for network_id in list(self._auto_mine_tasks):
            await self.stop_auto_mining(network_id)
