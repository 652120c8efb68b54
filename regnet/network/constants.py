"""Static configuration for the node implementations regnet can run.

Command templates use ``{{placeholder}}`` markers that are substituted when
the compose document is built: ``name``, ``containerName``, ``backendName``,
``rpcUser`` and ``rpcPass``.
"""

from dataclasses import dataclass

from regnet import __version__
from regnet.exceptions import UnsupportedImplementationError
from regnet.network.domain.enums import NodeImplementation

APP_VERSION = __version__

COMPOSE_FILE_NAME = "docker-compose.yml"
CONTAINER_PREFIX = "regnet"

DEFAULT_RPC_USER = "regnetuser"
DEFAULT_RPC_PASSWORD = "regnetpass"
ECLAIR_API_PASSWORD = "eclairpw"

# ports inside the containers
BITCOIND_RPC_PORT = 18443
BITCOIND_P2P_PORT = 18444
BITCOIND_ZMQ_BLOCK_PORT = 28334
BITCOIND_ZMQ_TX_PORT = 28335
LIGHTNING_P2P_PORT = 9735
LIGHTNING_REST_PORT = 8080
LND_GRPC_PORT = 10009

# host ports are base + node id
BASE_PORTS: dict[NodeImplementation, dict[str, int]] = {
    NodeImplementation.BITCOIND: {"rpc": 18443, "p2p": 19444, "zmq_block": 28334, "zmq_tx": 29335},
    NodeImplementation.LND: {"rest": 8081, "grpc": 10001, "p2p": 9735},
    NodeImplementation.CLIGHTNING: {"rest": 8181, "p2p": 9835},
    NodeImplementation.ECLAIR: {"rest": 8281, "p2p": 9935},
}

DEFAULT_VERSIONS: dict[NodeImplementation, str] = {
    NodeImplementation.BITCOIND: "27.0",
    NodeImplementation.LND: "0.18.0-beta",
    NodeImplementation.CLIGHTNING: "24.05",
    NodeImplementation.ECLAIR: "0.10.0",
}

LIGHTNING_NODE_NAMES = [
    "alice",
    "bob",
    "carol",
    "dave",
    "erin",
    "frank",
    "grace",
    "heidi",
    "ivan",
    "judy",
    "mike",
    "niaj",
    "oscar",
    "peggy",
    "rupert",
    "sybil",
    "trent",
    "victor",
    "walter",
]

# blocks mined when a fresh network's chain is empty, so coinbase outputs mature
INITIAL_BLOCKS = 101
AUTO_MINE_CONFIRMATIONS = 6


@dataclass(frozen=True)
class DockerConfig:
    """How one implementation is packaged and launched."""

    name: str
    image_name: str
    volume_dir_name: str
    container_home: str
    command: str
    expose: tuple[int, ...]
    data_dir: str | None = None
    api_dir: str | None = None


DOCKER_CONFIGS: dict[NodeImplementation, DockerConfig] = {
    NodeImplementation.BITCOIND: DockerConfig(
        name="Bitcoin Core",
        image_name="polarlightning/bitcoind",
        volume_dir_name="bitcoind",
        container_home="/home/bitcoin/.bitcoin",
        command=" ".join(
            [
                "bitcoind",
                "-server=1",
                "-regtest=1",
                "-rpcuser={{rpcUser}}",
                "-rpcpassword={{rpcPass}}",
                "-debug=1",
                f"-zmqpubrawblock=tcp://0.0.0.0:{BITCOIND_ZMQ_BLOCK_PORT}",
                f"-zmqpubrawtx=tcp://0.0.0.0:{BITCOIND_ZMQ_TX_PORT}",
                "-txindex=1",
                "-dnsseed=0",
                "-upnp=0",
                "-rpcbind=0.0.0.0",
                "-rpcallowip=0.0.0.0/0",
                f"-rpcport={BITCOIND_RPC_PORT}",
                "-rest",
                "-listen=1",
                "-listenonion=0",
                "-fallbackfee=0.0002",
            ]
        ),
        expose=(BITCOIND_RPC_PORT, BITCOIND_P2P_PORT, BITCOIND_ZMQ_BLOCK_PORT, BITCOIND_ZMQ_TX_PORT),
    ),
    NodeImplementation.LND: DockerConfig(
        name="LND",
        image_name="polarlightning/lnd",
        volume_dir_name="lnd",
        container_home="/home/lnd/.lnd",
        command=" ".join(
            [
                "lnd",
                "--noseedbackup",
                "--trickledelay=5000",
                "--alias={{name}}",
                "--externalip={{name}}",
                "--tlsextradomain={{name}}",
                "--tlsextradomain={{containerName}}",
                f"--listen=0.0.0.0:{LIGHTNING_P2P_PORT}",
                f"--rpclisten=0.0.0.0:{LND_GRPC_PORT}",
                f"--restlisten=0.0.0.0:{LIGHTNING_REST_PORT}",
                "--bitcoin.active",
                "--bitcoin.regtest",
                "--bitcoin.node=bitcoind",
                f"--bitcoind.rpchost={{{{backendName}}}}:{BITCOIND_RPC_PORT}",
                "--bitcoind.rpcuser={{rpcUser}}",
                "--bitcoind.rpcpass={{rpcPass}}",
                f"--bitcoind.zmqpubrawblock=tcp://{{{{backendName}}}}:{BITCOIND_ZMQ_BLOCK_PORT}",
                f"--bitcoind.zmqpubrawtx=tcp://{{{{backendName}}}}:{BITCOIND_ZMQ_TX_PORT}",
            ]
        ),
        expose=(LIGHTNING_REST_PORT, LND_GRPC_PORT, LIGHTNING_P2P_PORT),
    ),
    NodeImplementation.CLIGHTNING: DockerConfig(
        name="Core Lightning",
        image_name="polarlightning/clightning",
        volume_dir_name="c-lightning",
        container_home="/home/clightning/.lightning",
        command=" ".join(
            [
                "lightningd",
                "--alias={{name}}",
                "--addr={{name}}",
                f"--addr=0.0.0.0:{LIGHTNING_P2P_PORT}",
                "--network=regtest",
                "--bitcoin-rpcuser={{rpcUser}}",
                "--bitcoin-rpcpassword={{rpcPass}}",
                "--bitcoin-rpcconnect={{backendName}}",
                f"--bitcoin-rpcport={BITCOIND_RPC_PORT}",
                "--log-level=debug",
                "--dev-bitcoind-poll=2",
                "--dev-fast-gossip",
                "--plugin=/opt/c-lightning-rest/plugin.js",
                f"--rest-port={LIGHTNING_REST_PORT}",
                "--rest-protocol=http",
            ]
        ),
        expose=(LIGHTNING_REST_PORT, LIGHTNING_P2P_PORT),
        data_dir="lightningd",
        api_dir="rest-api",
    ),
    NodeImplementation.ECLAIR: DockerConfig(
        name="Eclair",
        image_name="polarlightning/eclair",
        volume_dir_name="eclair",
        container_home="/home/eclair/.eclair",
        command=" ".join(
            [
                "polar-eclair",
                "--node-alias={{name}}",
                "--server.public-ips.0={{name}}",
                f"--server.port={LIGHTNING_P2P_PORT}",
                "--api.enabled=true",
                "--api.binding-ip=0.0.0.0",
                f"--api.port={LIGHTNING_REST_PORT}",
                f"--api.password={ECLAIR_API_PASSWORD}",
                "--chain=regtest",
                "--bitcoind.host={{backendName}}",
                f"--bitcoind.rpcport={BITCOIND_RPC_PORT}",
                "--bitcoind.rpcuser={{rpcUser}}",
                "--bitcoind.rpcpassword={{rpcPass}}",
                f"--bitcoind.zmqblock=tcp://{{{{backendName}}}}:{BITCOIND_ZMQ_BLOCK_PORT}",
                f"--bitcoind.zmqtx=tcp://{{{{backendName}}}}:{BITCOIND_ZMQ_TX_PORT}",
                "--datadir=/home/eclair/.eclair",
                "--printToConsole=true",
                "--on-chain-fees.feerate-tolerance.ratio-low=0.00001",
                "--on-chain-fees.feerate-tolerance.ratio-high=10000.0",
            ]
        ),
        expose=(LIGHTNING_REST_PORT, LIGHTNING_P2P_PORT),
    ),
}


def get_docker_config(implementation: NodeImplementation) -> DockerConfig:
    """Return the docker config for ``implementation``.

    Raises:
        UnsupportedImplementationError: for tags without a config
    """
    try:
        return DOCKER_CONFIGS[NodeImplementation(implementation)]
    except (KeyError, ValueError) as e:
        raise UnsupportedImplementationError(implementation) from e
