"""Eclair binding over its HTTP API.

Eclair takes form-encoded POST requests for every call and authenticates with
HTTP basic auth (empty user, the API password set in the container command).
"""

import re
from typing import Any

from regnet.utils.logging import get_logger

from ...constants import ECLAIR_API_PASSWORD, LIGHTNING_P2P_PORT
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
from .base import API_HOST, LightningService

logger = get_logger(__name__)

FUNDING_TXID_RE = re.compile(r"fundingTxId=([0-9a-fA-F]{64})")

CHANNEL_STATUS = {
    "WAIT_FOR_INIT_INTERNAL": "Opening",
    "WAIT_FOR_OPEN_CHANNEL": "Opening",
    "WAIT_FOR_ACCEPT_CHANNEL": "Opening",
    "WAIT_FOR_FUNDING_INTERNAL": "Opening",
    "WAIT_FOR_FUNDING_CREATED": "Opening",
    "WAIT_FOR_FUNDING_SIGNED": "Opening",
    "WAIT_FOR_FUNDING_CONFIRMED": "Opening",
    "WAIT_FOR_CHANNEL_READY": "Opening",
    "WAIT_FOR_FUNDING_LOCKED": "Opening",
    "NORMAL": "Open",
    "OFFLINE": "Offline",
    "SYNCING": "Syncing",
    "SHUTDOWN": "Closing",
    "NEGOTIATING": "Closing",
    "CLOSING": "Closing",
    "CLOSED": "Closed",
}


def _commitment(chan: dict[str, Any]) -> tuple[str, int, int, int]:
    """Funding outpoint, capacity, local and remote balance (sat) of a channel.

    Newer releases nest the funding data under ``commitments.active``.
    """
    commitments = chan.get("data", {}).get("commitments", {})
    active = commitments.get("active") or [commitments]
    current = active[0]

    funding = current.get("fundingTx") or current.get("commitInput", {})
    spec = current.get("localCommit", {}).get("spec", {})
    return (
        funding.get("outPoint", ""),
        int(funding.get("amountSatoshis", 0)),
        int(spec.get("toLocal", 0)) // 1000,
        int(spec.get("toRemote", 0)) // 1000,
    )


class EclairService(LightningService):
    implementation = NodeImplementation.ECLAIR

    def base_url(self, node: LightningNode) -> str:
        return f"http://{API_HOST}:{node.ports.rest}"  # type: ignore[attr-defined]

    def request_options(self, node: LightningNode) -> dict[str, Any]:
        return {"auth": ("", ECLAIR_API_PASSWORD)}

    async def post(self, node: LightningNode, path: str, **params: Any) -> Any:
        data = {key: str(value) for key, value in params.items() if value is not None}
        return await self.request(node, "POST", path, data=data)

    async def get_info(self, node: LightningNode) -> LightningNodeInfo:
        info = await self.post(node, "/getinfo")
        pubkey = info.get("nodeId", "")
        channels = await self.get_channels(node)
        return LightningNodeInfo(
            pubkey=pubkey,
            alias=info.get("alias", ""),
            rpc_url=f"{pubkey}@{node.name}:{LIGHTNING_P2P_PORT}",
            synced_to_chain=True,
            block_height=int(info.get("blockHeight", 0)),
            num_active_channels=sum(1 for c in channels if c.status == "Open"),
            num_pending_channels=sum(1 for c in channels if c.pending),
            num_inactive_channels=sum(1 for c in channels if not c.pending and c.status != "Open"),
        )

    async def get_balances(
        self, node: LightningNode, backend: BitcoinNode | None = None
    ) -> LightningNodeBalances:
        balance = await self.post(node, "/onchainbalance")
        confirmed = int(balance.get("confirmed", 0))
        unconfirmed = int(balance.get("unconfirmed", 0))
        return LightningNodeBalances(
            total=confirmed + unconfirmed,
            confirmed=confirmed,
            unconfirmed=unconfirmed,
        )

    async def get_new_address(self, node: LightningNode) -> LightningNodeAddress:
        return LightningNodeAddress(address=str(await self.post(node, "/getnewaddress")))

    async def _list_channels(self, node: LightningNode) -> list[dict[str, Any]]:
        return await self.post(node, "/channels") or []

    async def get_channels(self, node: LightningNode) -> list[LightningNodeChannel]:
        channels = []
        for chan in await self._list_channels(node):
            status = CHANNEL_STATUS.get(chan.get("state", ""), "Unknown")
            if status == "Closed":
                continue
            outpoint, capacity, local, remote = _commitment(chan)
            channels.append(
                LightningNodeChannel(
                    pending=status == "Opening",
                    uniq_id=chan.get("channelId", "")[-12:],
                    channel_point=outpoint,
                    pubkey=chan.get("nodeId", ""),
                    capacity=capacity,
                    local_balance=local,
                    remote_balance=remote,
                    status=status,
                )
            )
        return channels

    async def get_peers(self, node: LightningNode) -> list[LightningNodePeer]:
        peers = await self.post(node, "/peers") or []
        return [
            LightningNodePeer(pubkey=peer.get("nodeId", ""), address=peer.get("address", ""))
            for peer in peers
            if peer.get("state") == "CONNECTED"
        ]

    async def connect_peer(self, node: LightningNode, rpc_url: str) -> None:
        await self.post(node, "/connect", uri=rpc_url)

    async def open_channel(self, options: OpenChannelOptions) -> LightningNodeChannelPoint:
        node = options.from_node
        await self.connect_peers(node, [options.to_rpc_url])

        result = await self.post(
            node,
            "/open",
            nodeId=options.to_pubkey,
            fundingSatoshis=options.amount,
            announceChannel="false" if options.is_private else "true",
        )
        # e.g. "created channel <id> with fundingTxId=<txid> and fees=..."
        match = FUNDING_TXID_RE.search(str(result))
        if match is None:
            raise self._error(node, f"No funding txid in the open channel response: {result}")
        point = LightningNodeChannelPoint(txid=match.group(1), index=0)
        logger.info("channel_opened", node=node.name, channel_point=str(point))
        return point

    async def close_channel(self, node: LightningNode, channel_point: str) -> Any:
        """Close the channel funded by ``channel_point``.

        Raises:
            LightningServiceError: if no channel has that funding txid
        """
        txid = channel_point.split(":", 1)[0]
        for chan in await self._list_channels(node):
            outpoint, *_ = _commitment(chan)
            if outpoint.split(":", 1)[0] == txid:
                return await self.post(node, "/close", channelId=chan.get("channelId"))
        raise self._error(node, f"No channel found with the funding txid {txid}")

    async def create_invoice(self, node: LightningNode, amount: int, memo: str = "") -> str:
        result = await self.post(node, "/createinvoice", amountMsat=amount * 1000, description=memo)
        return result["serialized"]

    async def pay_invoice(
        self, node: LightningNode, invoice: str, amount: int | None = None
    ) -> LightningNodePayReceipt:
        result = await self.post(
            node,
            "/payinvoice",
            invoice=invoice,
            amountMsat=amount * 1000 if amount else None,
            blocking="true",
        )
        if result.get("type") == "payment-failed":
            failures = result.get("failures") or [{}]
            raise self._error(node, str(failures[-1].get("failureMessage", "Payment failed")))
        return LightningNodePayReceipt(
            amount=int(result.get("recipientAmount", 0)) // 1000,
            preimage=result.get("paymentPreimage", ""),
            destination=result.get("recipientNodeId", ""),
        )
