"""Tests for building networks and editing their nodes."""

import pytest

from regnet.exceptions import NodeNotFoundError, ValidationError
from regnet.network.domain.enums import NodeImplementation
from regnet.network.domain.models import CLightningNode, LndNode
from regnet.network.domain.topology import (
    container_name,
    create_bitcoind_node,
    create_lightning_node,
    create_network,
    find_node,
    get_network_backend_id,
    lightning_node_name,
    remove_node,
    resolve_backend,
)


class TestCreateNetwork:
    def test_single_backend_and_lnd(self, tmp_path):
        network = create_network(1, "simple", tmp_path, lnd_nodes=1)

        backend, ln1 = network.nodes.bitcoin[0], network.nodes.lightning[0]
        assert backend.name == "backend1"
        assert backend.ports.rpc == 18443
        assert isinstance(ln1, LndNode)
        assert ln1.backend_name == "backend1"
        assert network.path == tmp_path / "1"

    def test_lightning_nodes_spread_over_backends(self, network):
        alice, bob = network.nodes.lightning
        assert alice.backend_name == "backend1"
        assert bob.backend_name == "backend2"
        assert isinstance(bob, CLightningNode)

    def test_bitcoin_nodes_are_peered_with_neighbours(self, network):
        backend1, backend2 = network.nodes.bitcoin
        assert backend1.peers == ["backend2"]
        assert backend2.peers == ["backend1"]

    def test_host_ports_offset_by_node_id(self, network):
        backend1, backend2 = network.nodes.bitcoin
        assert backend2.ports.rpc == backend1.ports.rpc + 1
        assert network.nodes.lightning[0].ports.rest == 8081

    def test_lnd_paths_point_into_volume(self, network):
        alice = network.nodes.lightning[0]
        assert alice.paths.tls_cert == str(network.path / "lnd" / "alice" / "tls.cert")
        assert alice.paths.admin_macaroon.endswith("regtest/admin.macaroon")

    def test_clightning_macaroon_under_api_dir(self, network):
        bob = network.nodes.lightning[1]
        assert bob.paths.macaroon == str(network.path / "c-lightning" / "bob" / "rest-api" / "access.macaroon")

    def test_requires_a_bitcoin_node(self, tmp_path):
        with pytest.raises(ValidationError):
            create_network(1, "empty", tmp_path, bitcoind_nodes=0)

    def test_negative_counts_rejected(self, tmp_path):
        with pytest.raises(ValidationError):
            create_network(1, "neg", tmp_path, lnd_nodes=-1)

    def test_versions_override_defaults(self, tmp_path):
        network = create_network(
            1, "v", tmp_path, lnd_nodes=1, versions={NodeImplementation.LND: "0.17.4-beta"}
        )
        assert network.nodes.lightning[0].version == "0.17.4-beta"


class TestNames:
    def test_lightning_names_wrap_with_suffix(self):
        assert lightning_node_name(0) == "alice"
        assert lightning_node_name(19) == "alice2"

    def test_container_name(self):
        assert container_name(4, "bob") == "regnet-n4-bob"

    def test_network_backend_id(self, network):
        assert get_network_backend_id(network.nodes.bitcoin[1]) == "1-backend2"


class TestResolveBackend:
    def test_returns_named_backend(self, network):
        bob = network.nodes.lightning[1]
        assert resolve_backend(network, bob).name == "backend2"

    def test_dangling_name_falls_back_to_first_and_warns(self, network, caplog):
        bob = network.nodes.lightning[1]
        bob.backend_name = "gone"

        assert resolve_backend(network, bob).name == "backend1"
        assert "backend_not_found_using_first" in caplog.text

    def test_no_bitcoin_nodes(self, network):
        alice = network.nodes.lightning[0]
        network.nodes.bitcoin = []
        with pytest.raises(ValidationError):
            resolve_backend(network, alice)


class TestAddNodes:
    def test_new_bitcoind_peers_with_last(self, network):
        node = create_bitcoind_node(network)

        assert node.name == "backend3"
        assert node.peers == ["backend2"]
        assert "backend3" in network.nodes.bitcoin[1].peers

    def test_explicit_backend(self, network):
        node = create_lightning_node(network, NodeImplementation.ECLAIR, backend_name="backend2")
        assert node.name == "carol"
        assert node.backend_name == "backend2"

    def test_lightning_without_bitcoin(self, network):
        network.nodes.bitcoin = []
        with pytest.raises(ValidationError):
            create_lightning_node(network, NodeImplementation.LND)


class TestRemoveNode:
    def test_remove_lightning(self, network):
        removed = remove_node(network, "alice")
        assert removed.name == "alice"
        assert [n.name for n in network.nodes.lightning] == ["bob"]

    def test_backend_in_use_cannot_be_removed(self, network):
        with pytest.raises(ValidationError, match="bob"):
            remove_node(network, "backend2")

    def test_unused_backend_removed_and_unpeered(self, network):
        remove_node(network, "bob")
        remove_node(network, "backend2")

        assert [n.name for n in network.nodes.bitcoin] == ["backend1"]
        assert network.nodes.bitcoin[0].peers == []

    def test_only_bitcoin_node_cannot_be_removed(self, tmp_path):
        network = create_network(1, "solo", tmp_path)
        with pytest.raises(ValidationError):
            remove_node(network, "backend1")

    def test_unknown_node(self, network):
        with pytest.raises(NodeNotFoundError):
            find_node(network, "zed")
