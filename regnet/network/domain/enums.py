"""Domain enums for regtest networks."""

from enum import Enum, IntEnum


class Status(str, Enum):
    """Network and node status.

    Lifecycle:
        Stopped → Starting → Started (containers up)
        Stopped → Starting → Error (start failed, needs restart)
        Started → Error (came up but never answered, needs restart)
        Started/Error → Stopping → Stopped
    """

    STARTING = "Starting"
    STARTED = "Started"
    STOPPING = "Stopping"
    STOPPED = "Stopped"
    ERROR = "Error"

    def __str__(self) -> str:
        return self.value

    def can_transition_to(self, target: "Status") -> bool:
        """Whether the state machine allows moving from this status to ``target``."""
        return target in _TRANSITIONS[self]

    @property
    def is_running(self) -> bool:
        """Whether containers may exist for a node in this status."""
        return self is not Status.STOPPED


_TRANSITIONS: dict[Status, frozenset[Status]] = {
    Status.STOPPED: frozenset({Status.STARTING}),
    Status.STARTING: frozenset({Status.STARTED, Status.ERROR}),
    Status.STARTED: frozenset({Status.STOPPING, Status.ERROR}),
    Status.STOPPING: frozenset({Status.STOPPED, Status.ERROR}),
    Status.ERROR: frozenset({Status.STOPPING}),
}


class NodeImplementation(str, Enum):
    """Node implementations that regnet knows how to run."""

    BITCOIND = "bitcoind"
    LND = "LND"
    CLIGHTNING = "c-lightning"
    ECLAIR = "eclair"

    def __str__(self) -> str:
        return self.value

    @property
    def is_lightning(self) -> bool:
        return self is not NodeImplementation.BITCOIND


class NodeType(str, Enum):
    """Which sequence of a network a node lives in."""

    BITCOIN = "bitcoin"
    LIGHTNING = "lightning"

    def __str__(self) -> str:
        return self.value


class AutoMineMode(IntEnum):
    """Automatic block mining interval, in seconds."""

    AUTO_OFF = 0
    AUTO_30S = 30
    AUTO_1M = 60
    AUTO_5M = 300
    AUTO_10M = 600
