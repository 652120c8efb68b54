"""Tests for topology models and their persisted shape."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from regnet.network.domain.enums import NodeImplementation, Status
from regnet.network.domain.models import (
    CLightningNode,
    EclairNode,
    LndNode,
    Network,
    NetworksFile,
)
from regnet.network.domain.topology import create_network


class TestNetworkSerialization:
    def test_fields_use_camel_case_on_disk(self, network):
        data = network.to_json_dict()

        assert "autoMineMode" in data
        alice = data["nodes"]["lightning"][0]
        assert alice["backendName"] == "backend1"
        assert alice["networkId"] == 1
        assert "tlsCert" in alice["paths"]
        assert "zmqBlock" in data["nodes"]["bitcoin"][0]["ports"]

    def test_round_trip_keeps_lightning_variants(self, tmp_path):
        network = create_network(
            3, "mixed", tmp_path, lnd_nodes=1, cln_nodes=1, eclair_nodes=1, bitcoind_nodes=1
        )

        restored = Network.model_validate(network.to_json_dict())

        kinds = [type(n) for n in restored.nodes.lightning]
        assert kinds == [LndNode, CLightningNode, EclairNode]
        assert restored == network

    def test_unknown_implementation_is_rejected(self, network):
        data = network.to_json_dict()
        data["nodes"]["lightning"][0]["implementation"] = "ptarmigan"

        with pytest.raises(PydanticValidationError):
            Network.model_validate(data)

    def test_networks_file_charts_pass_through(self, network):
        charts = {1: {"offset": {"x": 0, "y": 0}, "nodes": {}}}
        file = NetworksFile(version="1.0.0", networks=[network], charts=charts)

        restored = NetworksFile.model_validate(file.to_json_dict())

        assert restored.charts == charts
        assert restored.networks[0].name == "test"


class TestNodeValidation:
    def test_invalid_name_rejected_on_assignment(self, network):
        with pytest.raises(PydanticValidationError):
            network.nodes.bitcoin[0].name = "bad name!"

    def test_status_accepts_persisted_string(self, network):
        network.status = "Started"
        assert network.status is Status.STARTED

    def test_all_nodes_orders_bitcoin_first(self, network):
        names = [n.name for n in network.all_nodes()]
        assert names == ["backend1", "backend2", "alice", "bob"]
        assert network.nodes.lightning[1].implementation is NodeImplementation.CLIGHTNING
