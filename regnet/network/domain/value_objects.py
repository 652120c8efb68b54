"""Normalized results returned by node APIs.

Every Lightning binding maps its own wire format onto these shapes so callers
never see implementation-specific payloads.

Value Objects:
- Immutable (frozen dataclasses)
- No identity (equality based on attributes)
"""

from dataclasses import dataclass, field
from typing import Any

from .models import LightningNode


@dataclass(frozen=True)
class LightningNodeInfo:
    pubkey: str
    alias: str
    rpc_url: str
    synced_to_chain: bool
    block_height: int
    num_active_channels: int = 0
    num_pending_channels: int = 0
    num_inactive_channels: int = 0


@dataclass(frozen=True)
class LightningNodeBalances:
    """On-chain wallet balances, in satoshis."""

    total: int
    confirmed: int
    unconfirmed: int


@dataclass(frozen=True)
class LightningNodeAddress:
    address: str


@dataclass(frozen=True)
class LightningNodeChannel:
    """A channel as seen from one node; balances in satoshis."""

    pending: bool
    uniq_id: str
    channel_point: str
    pubkey: str
    capacity: int
    local_balance: int
    remote_balance: int
    status: str
    is_private: bool = False

    def __post_init__(self) -> None:
        if self.capacity < 0 or self.local_balance < 0 or self.remote_balance < 0:
            raise ValueError("Channel amounts cannot be negative")


@dataclass(frozen=True)
class LightningNodePeer:
    pubkey: str
    address: str


@dataclass(frozen=True)
class LightningNodeChannelPoint:
    txid: str
    index: int

    def __str__(self) -> str:
        return f"{self.txid}:{self.index}"


@dataclass(frozen=True)
class LightningNodePayReceipt:
    amount: int
    preimage: str
    destination: str


@dataclass(frozen=True)
class OpenChannelOptions:
    """Parameters for opening a channel from ``from_node`` to a peer URI."""

    from_node: LightningNode
    to_rpc_url: str
    amount: int
    is_private: bool = False

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValueError(f"Channel amount must be positive, got {self.amount}")
        if "@" not in self.to_rpc_url:
            raise ValueError(f"Peer URI must look like pubkey@host:port, got {self.to_rpc_url}")

    @property
    def to_pubkey(self) -> str:
        return self.to_rpc_url.split("@", 1)[0]

@dataclass(frozen=True)
class ChainInfo:
    """Subset of bitcoind ``getblockchaininfo``."""

    chain: str
    blocks: int
    headers: int
    best_block_hash: str
    verification_progress: float = 1.0
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> "ChainInfo":
        return cls(
            chain=data.get("chain", "regtest"),
            blocks=int(data.get("blocks", 0)),
            headers=int(data.get("headers", 0)),
            best_block_hash=data.get("bestblockhash", ""),
            verification_progress=float(data.get("verificationprogress", 1.0)),
            raw=data,
        )


@dataclass(frozen=True)
class WalletInfo:
    """Subset of bitcoind ``getwalletinfo``; balances in BTC."""

    wallet_name: str
    balance: float
    unconfirmed_balance: float
    immature_balance: float
    tx_count: int = 0
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> "WalletInfo":
        return cls(
            wallet_name=data.get("walletname", ""),
            balance=float(data.get("balance", 0)),
            unconfirmed_balance=float(data.get("unconfirmed_balance", 0)),
            immature_balance=float(data.get("immature_balance", 0)),
            tx_count=int(data.get("txcount", 0)),
            raw=data,
        )
