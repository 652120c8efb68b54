"""Common interface of the Lightning implementations.

Callers get a ``LightningService`` from ``LightningFactory`` and never branch
on the node's implementation. Every binding returns the normalized value
objects from ``regnet.network.domain.value_objects`` and raises
``LightningServiceError`` with the implementation's own error text.
"""

from abc import ABC, abstractmethod
from typing import Any

import httpx

from regnet.exceptions import LightningServiceError
from regnet.utils.config import Settings, get_settings
from regnet.utils.logging import get_logger
from regnet.utils.wait import wait_for

from ...domain.enums import NodeImplementation
from ...domain.models import BitcoinNode, LightningNode
from ...domain.value_objects import (
    LightningNodeAddress,
    LightningNodeBalances,
    LightningNodeChannel,
    LightningNodeChannelPoint,
    LightningNodeInfo,
    LightningNodePayReceipt,
    LightningNodePeer,
    OpenChannelOptions,
)

logger = get_logger(__name__)

API_HOST = "127.0.0.1"


def error_text(response: httpx.Response) -> str:
    """Extract the error message from an API error response.

    The implementations disagree on the shape: ``{"error": "..."}``,
    ``{"error": {"message": "..."}}``, ``{"message": "..."}`` or plain text.
    """
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or f"HTTP {response.status_code}"

    if isinstance(body, dict):
        error = body.get("error", body.get("message"))
        if isinstance(error, dict):
            error = error.get("message", error)
        if error:
            return str(error)
    return response.text.strip() or f"HTTP {response.status_code}"


class LightningService(ABC):
    """REST-backed Lightning node operations.

    Subclasses provide the base URL and credentials for a node; requests,
    error normalization and the online wait are shared.
    """

    implementation: NodeImplementation

    def __init__(self, settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings or get_settings()
        # nodes use self-signed certificates
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(30.0, connect=5.0),
            verify=False,
            transport=transport,
        )

    @abstractmethod
    def base_url(self, node: LightningNode) -> str:
        """Root URL of the node's API on the host."""

    def request_options(self, node: LightningNode) -> dict[str, Any]:
        """Per-request auth options (headers or basic auth)."""
        return {}

    def credentials(self, node: LightningNode) -> dict[str, Any]:
        try:
            return self.request_options(node)
        except OSError as e:
            raise self._error(node, f"Could not read the credentials of {node.name}: {e}", e) from e

    def _error(self, node: LightningNode, message: str, error: Exception | None = None) -> LightningServiceError:
        return LightningServiceError(
            message,
            implementation=str(self.implementation),
            node_name=node.name,
            original_error=error,
        )

    async def request(self, node: LightningNode, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request to ``node`` and return the decoded JSON body.

        Raises:
            LightningServiceError: on transport errors or non-2xx responses
        """
        url = f"{self.base_url(node)}{path}"
        options = {**self.credentials(node), **kwargs}
        logger.debug("lightning_request", implementation=str(self.implementation), node=node.name, path=path)
        try:
            response = await self.client.request(method, url, **options)
        except httpx.HTTPError as e:
            raise self._error(node, f"Could not reach {node.name}: {e}", e) from e

        if response.is_error:
            message = error_text(response)
            logger.debug("lightning_request_failed", node=node.name, path=path, error=message)
            raise self._error(node, message)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def wait_until_online(self, node: LightningNode) -> LightningNodeInfo:
        """Poll ``get_info`` until the node answers."""
        return await wait_for(
            lambda: self.get_info(node),
            interval=self.settings.node_online_interval_seconds,
            timeout=self.settings.node_online_timeout_seconds,
            name=node.name,
        )

    @abstractmethod
    async def get_info(self, node: LightningNode) -> LightningNodeInfo: ...

    @abstractmethod
    async def get_balances(
        self, node: LightningNode, backend: BitcoinNode | None = None
    ) -> LightningNodeBalances: ...

    @abstractmethod
    async def get_new_address(self, node: LightningNode) -> LightningNodeAddress: ...

    @abstractmethod
    async def get_channels(self, node: LightningNode) -> list[LightningNodeChannel]: ...

    @abstractmethod
    async def get_peers(self, node: LightningNode) -> list[LightningNodePeer]: ...

    async def connect_peers(self, node: LightningNode, rpc_urls: list[str]) -> None:
        """Connect to each ``pubkey@host:port`` not already a peer.

        Failed connections are logged and do not stop the others.
        """
        peers = {peer.pubkey for peer in await self.get_peers(node)}
        for url in rpc_urls:
            pubkey = url.split("@", 1)[0]
            if pubkey in peers:
                continue
            try:
                await self.connect_peer(node, url)
            except LightningServiceError as e:
                logger.warning("lightning_peer_failed", node=node.name, peer=url, error=e.message)

    @abstractmethod
    async def connect_peer(self, node: LightningNode, rpc_url: str) -> None: ...

    @abstractmethod
    async def open_channel(self, options: OpenChannelOptions) -> LightningNodeChannelPoint: ...

    @abstractmethod
    async def close_channel(self, node: LightningNode, channel_point: str) -> Any: ...

    @abstractmethod
    async def create_invoice(self, node: LightningNode, amount: int, memo: str = "") -> str: ...

    @abstractmethod
    async def pay_invoice(
        self, node: LightningNode, invoice: str, amount: int | None = None
    ) -> LightningNodePayReceipt: ...

    async def close(self) -> None:
        await self.client.aclose()
