"""Lightning implementation bindings behind one interface."""

from .base import LightningService
from .clightning import CLightningService
from .eclair import EclairService
from .factory import LightningFactory
from .lnd import LndService

__all__ = [
    "LightningService",
    "LightningFactory",
    "LndService",
    "CLightningService",
    "EclairService",
]
