"""Tests for the LND REST binding."""

import base64
import json

import httpx
import pytest

from regnet.exceptions import LightningServiceError
from regnet.network.domain.value_objects import OpenChannelOptions
from regnet.network.infrastructure.lightning.lnd import LndService, txid_from_bytes

PUBKEY = "02" + "aa" * 32
PEER = "03" + "bb" * 32


@pytest.fixture
def lnd(settings, transport):
    return LndService(settings, transport=transport)


@pytest.fixture
def alice(credentials):
    return credentials.nodes.lightning[0]


class TestLndService:
    @pytest.mark.asyncio
    async def test_get_info_sends_macaroon(self, lnd, api, alice):
        api.add("GET", "/v1/getinfo", {"identity_pubkey": PUBKEY, "alias": "alice", "synced_to_chain": True,
                                       "block_height": 150, "num_active_channels": 2})

        info = await lnd.get_info(alice)

        assert info.pubkey == PUBKEY
        assert info.rpc_url == f"{PUBKEY}@alice:9735"
        assert info.synced_to_chain
        assert info.num_active_channels == 2
        request = api.last("GET", "/v1/getinfo")
        assert request.url.port == 8081
        assert request.headers["Grpc-Metadata-macaroon"] == b"\x02\x01mac".hex()

    @pytest.mark.asyncio
    async def test_balances(self, lnd, api, alice):
        api.add("GET", "/v1/balance/blockchain",
                {"total_balance": "1500", "confirmed_balance": "1000", "unconfirmed_balance": "500"})

        balances = await lnd.get_balances(alice)

        assert (balances.total, balances.confirmed, balances.unconfirmed) == (1500, 1000, 500)

    @pytest.mark.asyncio
    async def test_channels_include_pending(self, lnd, api, alice):
        api.add("GET", "/v1/channels", {"channels": [{
            "chan_id": "1234", "channel_point": "ab:0", "remote_pubkey": PEER, "capacity": "250000",
            "local_balance": "240000", "remote_balance": "0", "active": True,
        }]})
        api.add("GET", "/v1/channels/pending", {"pending_open_channels": [{"channel": {
            "channel_point": "cdcdcdcdcdcdcd:1", "remote_node_pub": PEER, "capacity": "100000",
            "local_balance": "90000", "remote_balance": "0",
        }}]})

        channels = await lnd.get_channels(alice)

        assert [c.status for c in channels] == ["Open", "Opening"]
        assert channels[0].capacity == 250000
        assert channels[1].pending

    @pytest.mark.asyncio
    async def test_open_channel_connects_then_opens(self, lnd, api, alice):
        api.add("GET", "/v1/peers", {"peers": []})
        api.add("POST", "/v1/peers", {})
        txid_bytes = base64.b64encode(bytes.fromhex("0102")).decode()
        api.add("POST", "/v1/channels", {"funding_txid_bytes": txid_bytes, "output_index": 1})

        point = await lnd.open_channel(OpenChannelOptions(alice, f"{PEER}@bob:9735", 250_000))

        assert str(point) == "0201:1"
        connect = json.loads(api.last("POST", "/v1/peers").content)
        assert connect["addr"] == {"pubkey": PEER, "host": "bob:9735"}
        body = json.loads(api.last("POST", "/v1/channels").content)
        assert body["local_funding_amount"] == "250000"

    @pytest.mark.asyncio
    async def test_existing_peer_not_reconnected(self, lnd, api, alice):
        api.add("GET", "/v1/peers", {"peers": [{"pub_key": PEER, "address": "bob:9735"}]})

        await lnd.connect_peers(alice, [f"{PEER}@bob:9735"])

        assert not [r for r in api.requests if r.method == "POST"]

    @pytest.mark.asyncio
    async def test_error_text_normalized(self, lnd, api, alice):
        api.add("POST", "/v1/invoices", httpx.Response(500, json={"code": 2, "message": "amount too large"}))

        with pytest.raises(LightningServiceError, match="amount too large"):
            await lnd.create_invoice(alice, 10**12)

    @pytest.mark.asyncio
    async def test_close_channel_returns_first_update(self, lnd, api, alice):
        stream = json.dumps({"result": {"close_pending": {"txid": "ff"}}}) + "\n"
        api.add("DELETE", "/v1/channels/abcd/0", httpx.Response(200, content=stream.encode()))

        update = await lnd.close_channel(alice, "abcd:0")

        assert update == {"close_pending": {"txid": "ff"}}

    @pytest.mark.asyncio
    async def test_close_channel_stream_error(self, lnd, api, alice):
        stream = json.dumps({"error": {"message": "channel not found"}}) + "\n"
        api.add("DELETE", "/v1/channels/abcd/1", httpx.Response(200, content=stream.encode()))

        with pytest.raises(LightningServiceError, match="channel not found"):
            await lnd.close_channel(alice, "abcd:1")

    @pytest.mark.asyncio
    async def test_close_channel_malformed_update(self, lnd, api, alice):
        api.add("DELETE", "/v1/channels/abcd/2", httpx.Response(200, content=b"{not json\n"))

        with pytest.raises(LightningServiceError, match="Malformed close update"):
            await lnd.close_channel(alice, "abcd:2")

    @pytest.mark.asyncio
    async def test_open_channel_bad_funding_txid(self, lnd, api, alice):
        api.add("GET", "/v1/peers", {"peers": []})
        api.add("POST", "/v1/peers", {})
        api.add("POST", "/v1/channels", {"funding_txid_bytes": "%%not-base64%%"})

        with pytest.raises(LightningServiceError, match="Unexpected open channel response"):
            await lnd.open_channel(OpenChannelOptions(alice, f"{PEER}@bob:9735", 250_000))

    @pytest.mark.asyncio
    async def test_pay_invoice(self, lnd, api, alice):
        api.add("POST", "/v1/channels/transactions", {
            "payment_error": "", "payment_preimage": base64.b64encode(b"\x01\x02").decode(),
            "payment_route": {"total_amt": "1000"},
        })
        api.add("GET", "/v1/payreq/lnbcrt1", {"destination": PEER, "num_satoshis": "1000"})

        receipt = await lnd.pay_invoice(alice, "lnbcrt1")

        assert receipt.amount == 1000
        assert receipt.preimage == "0102"
        assert receipt.destination == PEER

    @pytest.mark.asyncio
    async def test_missing_macaroon(self, lnd, network):
        with pytest.raises(LightningServiceError, match="credentials"):
            await lnd.get_info(network.nodes.lightning[0])


def test_txid_from_bytes_reverses_byte_order():
    assert txid_from_bytes(base64.b64encode(bytes.fromhex("aabbcc")).decode()) == "ccbbaa"
