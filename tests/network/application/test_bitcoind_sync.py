"""Tests for cached bitcoind state, mining and auto mining."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from regnet.exceptions import ValidationError
from regnet.network.application.services import BitcoindStateSync
from regnet.network.domain.enums import AutoMineMode, Status
from regnet.network.domain.value_objects import ChainInfo, WalletInfo
from regnet.network.infrastructure.bitcoind_client import BitcoindService


@pytest.fixture
def bitcoind():
    client = AsyncMock(spec=BitcoindService)
    client.get_blockchain_info.return_value = ChainInfo("regtest", 107, 107, "00ff")
    client.get_wallet_info.return_value = WalletInfo("", 50.0, 0.0, 0.0)
    client.mine.side_effect = lambda blocks, node: [f"h{i}" for i in range(blocks)]
    client.send_funds.return_value = "txid"
    return client


@pytest.fixture
def sync(bitcoind, started_network, settings):
    return BitcoindStateSync(bitcoind, lambda network_id: started_network, settings)


class TestMine:
    @pytest.mark.asyncio
    async def test_negative_blocks_rejected_before_any_call(self, sync, bitcoind, started_network):
        with pytest.raises(ValidationError):
            await sync.mine(-1, started_network.nodes.bitcoin[0])

        bitcoind.mine.assert_not_called()
        bitcoind.get_blockchain_info.assert_not_called()

    @pytest.mark.asyncio
    async def test_refreshes_every_started_bitcoin_node(self, sync, bitcoind, started_network):
        backend1, backend2 = started_network.nodes.bitcoin

        hashes = await sync.mine(6, backend1)

        assert len(hashes) == 6
        bitcoind.mine.assert_awaited_once_with(6, backend1)
        refreshed = [call.args[0].name for call in bitcoind.get_blockchain_info.await_args_list]
        assert sorted(refreshed) == ["backend1", "backend2"]
        assert set(sync.nodes) == {"1-backend1", "1-backend2"}
        assert sync.info_for(backend2).chain_info.blocks == 107

    @pytest.mark.asyncio
    async def test_stopped_nodes_not_refreshed(self, sync, bitcoind, started_network):
        backend1, backend2 = started_network.nodes.bitcoin
        backend2.status = Status.STOPPED

        await sync.mine(1, backend1)

        assert set(sync.nodes) == {"1-backend1"}

    @pytest.mark.asyncio
    async def test_zero_blocks_still_refreshes(self, sync, bitcoind, started_network):
        assert await sync.mine(0, started_network.nodes.bitcoin[0]) == []
        assert bitcoind.get_wallet_info.await_count == 2


class TestSendFunds:
    @pytest.mark.asyncio
    async def test_without_auto_mine(self, sync, bitcoind, started_network):
        txid = await sync.send_funds(started_network.nodes.bitcoin[0], "bcrt1qx", 1.5)

        assert txid == "txid"
        bitcoind.mine.assert_not_called()

    @pytest.mark.asyncio
    async def test_auto_mine_confirms_with_six_blocks(self, sync, bitcoind, started_network):
        backend1 = started_network.nodes.bitcoin[0]

        await sync.send_funds(backend1, "bcrt1qx", 1.5, auto_mine=True)

        bitcoind.mine.assert_awaited_once_with(6, backend1)


class TestCache:
    @pytest.mark.asyncio
    async def test_remove_and_clear(self, sync, started_network):
        backend1, backend2 = started_network.nodes.bitcoin
        await sync.get_info(backend1)
        await sync.get_info(backend2)

        sync.remove_node(backend1)
        assert sync.info_for(backend1) is None
        assert sync.info_for(backend2) is not None

        sync.clear_nodes()
        assert sync.nodes == {}


class TestAutoMining:
    @pytest.mark.asyncio
    async def test_start_and_stop(self, sync, started_network):
        started_network.auto_mine_mode = AutoMineMode.AUTO_30S

        await sync.start_auto_mining(started_network)
        assert sync.is_auto_mining(1)

        await sync.stop_auto_mining(1)
        assert not sync.is_auto_mining(1)

    @pytest.mark.asyncio
    async def test_off_does_not_start(self, sync, started_network):
        await sync.start_auto_mining(started_network)
        assert not sync.is_auto_mining(1)

    @pytest.mark.asyncio
    async def test_loop_mines_one_block_on_first_node(self, sync, bitcoind, started_network):
        task = asyncio.create_task(sync._auto_mine_loop(1, 0))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert bitcoind.mine.await_count >= 1
        assert bitcoind.mine.await_args.args == (1, started_network.nodes.bitcoin[0])

    @pytest.mark.asyncio
    async def test_loop_survives_mining_errors(self, sync, bitcoind):
        bitcoind.mine.side_effect = RuntimeError("rpc down")

        task = asyncio.create_task(sync._auto_mine_loop(1, 0))
        await asyncio.sleep(0.02)

        assert not task.done()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    @pytest.mark.asyncio
    async def test_close_stops_all_loops(self, sync, started_network):
        started_network.auto_mine_mode = AutoMineMode.AUTO_1M
        await sync.start_auto_mining(started_network)

        await sync.close()

        assert not sync.is_auto_mining(1)
