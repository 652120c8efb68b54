"""bitcoind JSON-RPC client.

Talks to the RPC port a bitcoin node publishes on the host. Every call takes
the node it targets, so one client serves every node of every network.
"""

from typing import Any

import httpx

from regnet.exceptions import BitcoindServiceError
from regnet.utils.config import Settings, get_settings
from regnet.utils.logging import get_logger
from regnet.utils.wait import wait_for

from ..constants import BITCOIND_P2P_PORT
from ..domain.models import BitcoinNode
from ..domain.value_objects import ChainInfo, WalletInfo

logger = get_logger(__name__)

RPC_HOST = "127.0.0.1"


class BitcoindService:
    """JSON-RPC operations against bitcoin nodes.

    Args:
        settings: Polling interval and timeout for ``wait_until_online``
        transport: Optional httpx transport (tests pass a ``MockTransport``)
    """

    def __init__(self, settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings or get_settings()
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(30.0, connect=5.0),
            headers={"User-Agent": "regnet"},
            transport=transport,
        )

    def _url(self, node: BitcoinNode) -> str:
        return f"http://{RPC_HOST}:{node.ports.rpc}/"

    async def call(self, node: BitcoinNode, method: str, *params: Any) -> Any:
        """Invoke ``method`` on ``node`` and return the ``result`` member.

        Raises:
            BitcoindServiceError: on transport errors and RPC errors
        """
        payload = {"jsonrpc": "1.0", "id": "regnet", "method": method, "params": list(params)}
        logger.debug("bitcoind_rpc", node=node.name, method=method)
        try:
            response = await self.client.post(
                self._url(node),
                json=payload,
                auth=(node.rpc_user, node.rpc_password),
            )
        except httpx.HTTPError as e:
            raise BitcoindServiceError(
                f"Could not reach {node.name}: {e}", method=method, node_name=node.name, original_error=e
            ) from e

        # bitcoind reports RPC errors with a 500 and a JSON body
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and body.get("error"):
            error = body["error"]
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise BitcoindServiceError(message, method=method, node_name=node.name)
        if response.is_error or not isinstance(body, dict):
            raise BitcoindServiceError(
                response.text.strip() or f"HTTP {response.status_code}",
                method=method,
                node_name=node.name,
            )
        return body.get("result")

    async def wait_until_online(self, node: BitcoinNode) -> ChainInfo:
        return await wait_for(
            lambda: self.get_blockchain_info(node),
            interval=self.settings.node_online_interval_seconds,
            timeout=self.settings.node_online_timeout_seconds,
            name=node.name,
        )

    async def create_default_wallet(self, node: BitcoinNode) -> None:
        """Create the unnamed default wallet unless a wallet is already loaded."""
        wallets = await self.call(node, "listwallets")
        if wallets:
            return
        await self.call(node, "createwallet", "")
        logger.info("bitcoind_wallet_created", node=node.name)

    async def get_blockchain_info(self, node: BitcoinNode) -> ChainInfo:
        return ChainInfo.from_rpc(await self.call(node, "getblockchaininfo"))

    async def get_wallet_info(self, node: BitcoinNode) -> WalletInfo:
        return WalletInfo.from_rpc(await self.call(node, "getwalletinfo"))

    async def get_new_address(self, node: BitcoinNode) -> str:
        return await self.call(node, "getnewaddress")

    async def connect_peers(self, node: BitcoinNode) -> None:
        """Add every declared peer as a persistent connection.

        Peers that cannot be added are logged; the remaining ones are still
        tried.
        """
        for peer in node.peers:
            try:
                await self.call(node, "addnode", f"{peer}:{BITCOIND_P2P_PORT}", "add")
            except BitcoindServiceError as e:
                logger.warning("bitcoind_peer_failed", node=node.name, peer=peer, error=e.message)

    async def mine(self, blocks: int, node: BitcoinNode) -> list[str]:
        """Mine ``blocks`` blocks to a fresh wallet address; returns the block hashes."""
        address = await self.get_new_address(node)
        hashes = await self.call(node, "generatetoaddress", blocks, address)
        logger.info("blocks_mined", node=node.name, blocks=blocks)
        return hashes

    async def send_funds(self, node: BitcoinNode, to_address: str, amount: float) -> str:
        """Send ``amount`` BTC from the node's wallet; returns the txid."""
        txid = await self.call(node, "sendtoaddress", to_address, amount)
        logger.info("funds_sent", node=node.name, amount=amount, txid=txid)
        return txid

    async def close(self) -> None:
        await self.client.aclose()
