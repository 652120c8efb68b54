"""Tests for the Core Lightning REST binding."""

import json

import httpx
import pytest

from regnet.exceptions import LightningServiceError
from regnet.network.domain.value_objects import OpenChannelOptions
from regnet.network.infrastructure.lightning.clightning import CLightningService, _msat

PUBKEY = "02" + "cc" * 32
PEER = "03" + "aa" * 32
TXID = "ee" * 32


@pytest.fixture
def cln(settings, transport):
    return CLightningService(settings, transport=transport)


@pytest.fixture
def bob(credentials):
    return credentials.nodes.lightning[1]


def test_msat_parsing():
    assert _msat("2500msat") == 2500
    assert _msat(1000) == 1000
    assert _msat(None) == 0


class TestCLightningService:
    @pytest.mark.asyncio
    async def test_get_info(self, cln, api, bob):
        api.add("GET", "/v1/getinfo", {"id": PUBKEY, "alias": "bob", "blockheight": 120, "num_active_channels": 1})

        info = await cln.get_info(bob)

        assert info.rpc_url == f"{PUBKEY}@bob:9735"
        assert info.block_height == 120
        assert info.synced_to_chain
        request = api.last("GET", "/v1/getinfo")
        assert request.url.scheme == "http"
        assert request.url.port == 8182
        assert request.headers["macaroon"] == b"\x02\x01mac".hex()
        assert request.headers["encodingtype"] == "hex"

    @pytest.mark.asyncio
    async def test_sync_warning_means_not_synced(self, cln, api, bob):
        api.add("GET", "/v1/getinfo", {"id": PUBKEY, "warning_bitcoind_sync": "Bitcoind is not up-to-date"})
        assert not (await cln.get_info(bob)).synced_to_chain

    @pytest.mark.asyncio
    async def test_balances(self, cln, api, bob):
        api.add("GET", "/v1/getBalance", {"totalBalance": 300, "confBalance": 200, "unconfBalance": 100})

        balances = await cln.get_balances(bob)

        assert (balances.total, balances.confirmed, balances.unconfirmed) == (300, 200, 100)

    @pytest.mark.asyncio
    async def test_channels_converted_from_msat(self, cln, api, bob):
        api.add("GET", "/v1/channel/listChannels", [
            {"id": PEER, "state": "CHANNELD_NORMAL", "short_channel_id": "103x1x0", "funding_txid": TXID,
             "msatoshi_total": 250_000_000, "msatoshi_to_us": 240_000_000},
            {"id": PEER, "state": "CHANNELD_AWAITING_LOCKIN", "channel_id": "ab" * 32, "funding_txid": "ff",
             "total_msat": "100000000msat", "to_us_msat": "100000000msat"},
            {"id": PEER, "state": "ONCHAIN", "funding_txid": "dd", "msatoshi_total": 1000},
        ])

        channels = await cln.get_channels(bob)

        assert len(channels) == 2
        assert channels[0].capacity == 250_000
        assert channels[0].remote_balance == 10_000
        assert channels[0].status == "Open"
        assert channels[1].pending
        assert channels[1].uniq_id == ("ab" * 32)[-12:]

    @pytest.mark.asyncio
    async def test_open_channel(self, cln, api, bob):
        api.add("GET", "/v1/peer/listPeers", [{"id": PEER, "connected": True, "netaddr": ["alice:9735"]}])
        api.add("POST", "/v1/channel/openChannel", {"txid": TXID, "channel_id": "x", "outnum": 1})

        point = await cln.open_channel(OpenChannelOptions(bob, f"{PEER}@alice:9735", 100_000, is_private=True))

        assert str(point) == f"{TXID}:1"
        body = json.loads(api.last("POST", "/v1/channel/openChannel").content)
        assert body == {"id": PEER, "satoshis": "100000", "feeRate": "normal", "announce": "false"}

    @pytest.mark.asyncio
    async def test_close_channel_resolves_channel_id(self, cln, api, bob):
        api.add("GET", "/v1/channel/listChannels",
                [{"id": PEER, "state": "CHANNELD_NORMAL", "funding_txid": TXID, "channel_id": "cid1"}])
        api.add("DELETE", "/v1/channel/closeChannel/cid1", {"type": "mutual"})

        result = await cln.close_channel(bob, f"{TXID}:0")

        assert result == {"type": "mutual"}

    @pytest.mark.asyncio
    async def test_close_unknown_channel(self, cln, api, bob):
        api.add("GET", "/v1/channel/listChannels", [])

        with pytest.raises(LightningServiceError, match="No channel found"):
            await cln.close_channel(bob, f"{TXID}:0")

    @pytest.mark.asyncio
    async def test_invoice_amount_in_msat(self, cln, api, bob):
        api.add("POST", "/v1/invoice/genInvoice", {"bolt11": "lnbcrt10u1"})

        invoice = await cln.create_invoice(bob, 1000, "coffee")

        assert invoice == "lnbcrt10u1"
        body = json.loads(api.last("POST", "/v1/invoice/genInvoice").content)
        assert body["amount"] == 1_000_000
        assert body["label"].startswith("regnet-")

    @pytest.mark.asyncio
    async def test_pay_invoice(self, cln, api, bob):
        api.add("POST", "/v1/pay", {"msatoshi": 1_000_000, "payment_preimage": "beef", "destination": PEER})

        receipt = await cln.pay_invoice(bob, "lnbcrt10u1")

        assert (receipt.amount, receipt.preimage, receipt.destination) == (1000, "beef", PEER)

    @pytest.mark.asyncio
    async def test_error_text_from_nested_error(self, cln, api, bob):
        api.add("POST", "/v1/pay", httpx.Response(500, json={"error": {"message": "Invoice expired"}}))

        with pytest.raises(LightningServiceError, match="Invoice expired"):
            await cln.pay_invoice(bob, "lnbcrt10u1")
