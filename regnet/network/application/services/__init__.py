"""Application services for regtest networks."""

from .bitcoind_sync import BitcoindNodeModel, BitcoindStateSync
from .image_service import ImageService
from .network_service import NetworkService

__all__ = [
    "BitcoindNodeModel",
    "BitcoindStateSync",
    "ImageService",
    "NetworkService",
]
