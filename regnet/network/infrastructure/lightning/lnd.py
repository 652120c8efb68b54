"""LND binding over its REST gateway.

Authenticated with the admin macaroon, sent hex-encoded in the
``Grpc-Metadata-macaroon`` header.
"""

import base64
import json
from pathlib import Path
from typing import Any

import httpx

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
from .base import API_HOST, LightningService, error_text

logger = get_logger(__name__)


def txid_from_bytes(funding_txid_bytes: str) -> str:
    """LND returns the funding txid as base64 in internal (reversed) byte order.

    Raises:
        ValueError: if the value is not valid base64
    """
    return base64.b64decode(funding_txid_bytes, validate=True)[::-1].hex()


class LndService(LightningService):
    implementation = NodeImplementation.LND

    def base_url(self, node: LightningNode) -> str:
        return f"https://{API_HOST}:{node.ports.rest}"  # type: ignore[attr-defined]

    def request_options(self, node: LightningNode) -> dict[str, Any]:
        macaroon = Path(node.paths.admin_macaroon).read_bytes().hex()  # type: ignore[attr-defined]
        return {"headers": {"Grpc-Metadata-macaroon": macaroon}}

    async def get_info(self, node: LightningNode) -> LightningNodeInfo:
        info = await self.request(node, "GET", "/v1/getinfo")
        pubkey = info.get("identity_pubkey", "")
        return LightningNodeInfo(
            pubkey=pubkey,
            alias=info.get("alias", ""),
            rpc_url=f"{pubkey}@{node.name}:{LIGHTNING_P2P_PORT}",
            synced_to_chain=bool(info.get("synced_to_chain", False)),
            block_height=int(info.get("block_height", 0)),
            num_active_channels=int(info.get("num_active_channels", 0)),
            num_pending_channels=int(info.get("num_pending_channels", 0)),
            num_inactive_channels=int(info.get("num_inactive_channels", 0)),
        )

    async def get_balances(
        self, node: LightningNode, backend: BitcoinNode | None = None
    ) -> LightningNodeBalances:
        balance = await self.request(node, "GET", "/v1/balance/blockchain")
        return LightningNodeBalances(
            total=int(balance.get("total_balance", 0)),
            confirmed=int(balance.get("confirmed_balance", 0)),
            unconfirmed=int(balance.get("unconfirmed_balance", 0)),
        )

    async def get_new_address(self, node: LightningNode) -> LightningNodeAddress:
        result = await self.request(node, "GET", "/v1/newaddress", params={"type": "WITNESS_PUBKEY_HASH"})
        return LightningNodeAddress(address=result["address"])

    async def get_channels(self, node: LightningNode) -> list[LightningNodeChannel]:
        opened = await self.request(node, "GET", "/v1/channels")
        pending = await self.request(node, "GET", "/v1/channels/pending")

        channels = [
            LightningNodeChannel(
                pending=False,
                uniq_id=str(chan.get("chan_id", "")),
                channel_point=chan.get("channel_point", ""),
                pubkey=chan.get("remote_pubkey", ""),
                capacity=int(chan.get("capacity", 0)),
                local_balance=int(chan.get("local_balance", 0)),
                remote_balance=int(chan.get("remote_balance", 0)),
                status="Open" if chan.get("active") else "Inactive",
                is_private=bool(chan.get("private", False)),
            )
            for chan in opened.get("channels", [])
        ]
        for item in pending.get("pending_open_channels", []):
            chan = item.get("channel", {})
            point = chan.get("channel_point", "")
            channels.append(
                LightningNodeChannel(
                    pending=True,
                    uniq_id=point[-12:],
                    channel_point=point,
                    pubkey=chan.get("remote_node_pub", ""),
                    capacity=int(chan.get("capacity", 0)),
                    local_balance=int(chan.get("local_balance", 0)),
                    remote_balance=int(chan.get("remote_balance", 0)),
                    status="Opening",
                    is_private=bool(chan.get("private", False)),
                )
            )
        return channels

    async def get_peers(self, node: LightningNode) -> list[LightningNodePeer]:
        result = await self.request(node, "GET", "/v1/peers")
        return [
            LightningNodePeer(pubkey=peer.get("pub_key", ""), address=peer.get("address", ""))
            for peer in result.get("peers", [])
        ]

    async def connect_peer(self, node: LightningNode, rpc_url: str) -> None:
        pubkey, host = rpc_url.split("@", 1)
        await self.request(
            node, "POST", "/v1/peers", json={"addr": {"pubkey": pubkey, "host": host}, "perm": False}
        )

    async def open_channel(self, options: OpenChannelOptions) -> LightningNodeChannelPoint:
        node = options.from_node
        await self.connect_peers(node, [options.to_rpc_url])

        result = await self.request(
            node,
            "POST",
            "/v1/channels",
            json={
                "node_pubkey_string": options.to_pubkey,
                "local_funding_amount": str(options.amount),
                "private": options.is_private,
            },
        )
        txid = result.get("funding_txid_str") or self._funding_txid(node, result)
        point = LightningNodeChannelPoint(txid=txid, index=int(result.get("output_index", 0)))
        logger.info("channel_opened", node=node.name, channel_point=str(point))
        return point

    async def close_channel(self, node: LightningNode, channel_point: str) -> Any:
        """Start a cooperative close and return the first close update."""
        txid, _, index = channel_point.partition(":")
        url = f"{self.base_url(node)}/v1/channels/{txid}/{index or 0}"
        # the endpoint streams updates until the close confirms; only the first one is needed
        try:
            async with self.client.stream("DELETE", url, **self.credentials(node)) as response:
                if response.is_error:
                    await response.aread()
                    raise self._error(node, error_text(response))
                async for line in response.aiter_lines():
                    if line.strip():
                        return self._close_update(node, self._decode_line(node, line))
        except httpx.HTTPError as e:
            raise self._error(node, f"Could not reach {node.name}: {e}", e) from e
        return None

    def _funding_txid(self, node: LightningNode, result: dict[str, Any]) -> str:
        try:
            return txid_from_bytes(result["funding_txid_bytes"])
        except (KeyError, ValueError) as e:
            raise self._error(node, f"Unexpected open channel response from {node.name}: {result}", e) from e

    def _decode_line(self, node: LightningNode, line: str) -> dict[str, Any]:
        try:
            return json.loads(line)
        except ValueError as e:
            raise self._error(node, f"Malformed close update from {node.name}: {line[:200]}", e) from e

    def _close_update(self, node: LightningNode, update: dict[str, Any]) -> Any:
        error = update.get("error")
        if error:
            message = error.get("message", error) if isinstance(error, dict) else error
            raise self._error(node, str(message))
        return update.get("result", update)

    async def create_invoice(self, node: LightningNode, amount: int, memo: str = "") -> str:
        result = await self.request(node, "POST", "/v1/invoices", json={"value": str(amount), "memo": memo})
        return result["payment_request"]

    async def pay_invoice(
        self, node: LightningNode, invoice: str, amount: int | None = None
    ) -> LightningNodePayReceipt:
        body: dict[str, Any] = {"payment_request": invoice}
        if amount:
            body["amt"] = str(amount)
        result = await self.request(node, "POST", "/v1/channels/transactions", json=body)
        if result.get("payment_error"):
            raise self._error(node, result["payment_error"])

        decoded = await self.request(node, "GET", f"/v1/payreq/{invoice}")
        route = result.get("payment_route", {})
        return LightningNodePayReceipt(
            amount=int(route.get("total_amt", amount or decoded.get("num_satoshis", 0))),
            preimage=base64.b64decode(result.get("payment_preimage", "")).hex(),
            destination=decoded.get("destination", ""),
        )
