"""Core Lightning binding over c-lightning-REST.

Amounts on the wire are millisatoshis; results are converted to satoshis.
"""

import uuid
from pathlib import Path
from typing import Any

from regnet.utils.logging import get_logger

from ...constants import LIGHTNING_P2P_PORT
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

PENDING_STATES = {"CHANNELD_AWAITING_LOCKIN", "DUALOPEND_AWAITING_LOCKIN", "OPENINGD"}

CHANNEL_STATUS = {
    "CHANNELD_AWAITING_LOCKIN": "Opening",
    "DUALOPEND_AWAITING_LOCKIN": "Opening",
    "CHANNELD_NORMAL": "Open",
    "CHANNELD_SHUTTING_DOWN": "Closing",
    "CLOSINGD_SIGEXCHANGE": "Closing",
    "CLOSINGD_COMPLETE": "Waiting to Close",
    "AWAITING_UNILATERAL": "Force Closing",
    "FUNDING_SPEND_SEEN": "Waiting to Close",
    "ONCHAIN": "Closed",
}


def _msat(value: Any) -> int:
    """Parse ``123``, ``"123"`` or ``"123msat"`` as millisatoshis."""
    if value is None:
        return 0
    return int(str(value).removesuffix("msat") or 0)


class CLightningService(LightningService):
    implementation = NodeImplementation.CLIGHTNING

    def base_url(self, node: LightningNode) -> str:
        return f"http://{API_HOST}:{node.ports.rest}/v1"  # type: ignore[attr-defined]

    def request_options(self, node: LightningNode) -> dict[str, Any]:
        macaroon = Path(node.paths.macaroon).read_bytes().hex()  # type: ignore[attr-defined]
        return {"headers": {"macaroon": macaroon, "encodingtype": "hex"}}

    async def get_info(self, node: LightningNode) -> LightningNodeInfo:
        info = await self.request(node, "GET", "/getinfo")
        pubkey = info.get("id", "")
        synced = "warning_bitcoind_sync" not in info and "warning_lightningd_sync" not in info
        return LightningNodeInfo(
            pubkey=pubkey,
            alias=info.get("alias", ""),
            rpc_url=f"{pubkey}@{node.name}:{LIGHTNING_P2P_PORT}",
            synced_to_chain=synced,
            block_height=int(info.get("blockheight", 0)),
            num_active_channels=int(info.get("num_active_channels", 0)),
            num_pending_channels=int(info.get("num_pending_channels", 0)),
            num_inactive_channels=int(info.get("num_inactive_channels", 0)),
        )

    async def get_balances(
        self, node: LightningNode, backend: BitcoinNode | None = None
    ) -> LightningNodeBalances:
        balance = await self.request(node, "GET", "/getBalance")
        return LightningNodeBalances(
            total=int(balance.get("totalBalance", 0)),
            confirmed=int(balance.get("confBalance", 0)),
            unconfirmed=int(balance.get("unconfBalance", 0)),
        )

    async def get_new_address(self, node: LightningNode) -> LightningNodeAddress:
        result = await self.request(node, "GET", "/newaddr", params={"addrType": "bech32"})
        return LightningNodeAddress(address=result.get("bech32") or result["address"])

    async def _list_channels(self, node: LightningNode) -> list[dict[str, Any]]:
        return await self.request(node, "GET", "/channel/listChannels") or []

    async def get_channels(self, node: LightningNode) -> list[LightningNodeChannel]:
        channels = []
        for chan in await self._list_channels(node):
            state = chan.get("state", "")
            if state not in CHANNEL_STATUS or CHANNEL_STATUS[state] == "Closed":
                continue
            capacity = _msat(chan.get("msatoshi_total", chan.get("total_msat"))) // 1000
            local = _msat(chan.get("msatoshi_to_us", chan.get("to_us_msat"))) // 1000
            channels.append(
                LightningNodeChannel(
                    pending=state in PENDING_STATES,
                    uniq_id=chan.get("short_channel_id") or chan.get("channel_id", "")[-12:],
                    channel_point=chan.get("funding_txid", ""),
                    pubkey=chan.get("id", ""),
                    capacity=capacity,
                    local_balance=local,
                    remote_balance=max(capacity - local, 0),
                    status=CHANNEL_STATUS[state],
                    is_private=bool(chan.get("private", False)),
                )
            )
        return channels

    async def get_peers(self, node: LightningNode) -> list[LightningNodePeer]:
        peers = await self.request(node, "GET", "/peer/listPeers") or []
        return [
            LightningNodePeer(pubkey=peer.get("id", ""), address=(peer.get("netaddr") or [""])[0])
            for peer in peers
            if peer.get("connected")
        ]

    async def connect_peer(self, node: LightningNode, rpc_url: str) -> None:
        await self.request(node, "POST", "/peer/connect", json={"id": rpc_url})

    async def open_channel(self, options: OpenChannelOptions) -> LightningNodeChannelPoint:
        node = options.from_node
        await self.connect_peers(node, [options.to_rpc_url])

        result = await self.request(
            node,
            "POST",
            "/channel/openChannel",
            json={
                "id": options.to_pubkey,
                "satoshis": str(options.amount),
                "feeRate": "normal",
                "announce": "false" if options.is_private else "true",
            },
        )
        point = LightningNodeChannelPoint(txid=result["txid"], index=int(result.get("outnum", 0)))
        logger.info("channel_opened", node=node.name, channel_point=str(point))
        return point

    async def close_channel(self, node: LightningNode, channel_point: str) -> Any:
        """Close the channel funded by ``channel_point``.

        The REST API closes by channel id, so the id is looked up from the
        funding txid first.

        Raises:
            LightningServiceError: if no channel has that funding txid
        """
        txid = channel_point.split(":", 1)[0]
        for chan in await self._list_channels(node):
            if chan.get("funding_txid") == txid:
                channel_id = chan.get("channel_id") or chan.get("short_channel_id")
                return await self.request(node, "DELETE", f"/channel/closeChannel/{channel_id}")
        raise self._error(node, f"No channel found with the funding txid {txid}")

    async def create_invoice(self, node: LightningNode, amount: int, memo: str = "") -> str:
        result = await self.request(
            node,
            "POST",
            "/invoice/genInvoice",
            json={
                "amount": amount * 1000,
                "label": f"regnet-{uuid.uuid4().hex}",
                "description": memo or "",
            },
        )
        return result["bolt11"]

    async def pay_invoice(
        self, node: LightningNode, invoice: str, amount: int | None = None
    ) -> LightningNodePayReceipt:
        body: dict[str, Any] = {"invoice": invoice}
        if amount:
            body["amount"] = amount * 1000
        result = await self.request(node, "POST", "/pay", json=body)
        sent = result.get("msatoshi", result.get("amount_msat"))
        return LightningNodePayReceipt(
            amount=_msat(sent) // 1000,
            preimage=result.get("payment_preimage", ""),
            destination=result.get("destination", ""),
        )
