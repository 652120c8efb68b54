"""Selects the Lightning binding for a node."""

import httpx

from regnet.exceptions import UnsupportedImplementationError
from regnet.utils.config import Settings, get_settings

from ...domain.enums import NodeImplementation
from ...domain.models import LightningNode
from .base import LightningService
from .clightning import CLightningService
from .eclair import EclairService
from .lnd import LndService

SERVICE_CLASSES: dict[NodeImplementation, type[LightningService]] = {
    NodeImplementation.LND: LndService,
    NodeImplementation.CLIGHTNING: CLightningService,
    NodeImplementation.ECLAIR: EclairService,
}


class LightningFactory:
    """One service instance per implementation, created on first use."""

    def __init__(self, settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings or get_settings()
        self.transport = transport
        self._services: dict[NodeImplementation, LightningService] = {}

    def get_service(self, node: LightningNode) -> LightningService:
        """Return the service that speaks ``node``'s API.

        Raises:
            UnsupportedImplementationError: for an implementation without a binding
        """
        implementation = node.implementation
        if implementation not in self._services:
            service_class = SERVICE_CLASSES.get(implementation)
            if service_class is None:
                raise UnsupportedImplementationError(implementation)
            self._services[implementation] = service_class(self.settings, transport=self.transport)
        return self._services[implementation]

    async def close(self) -> None:
        for service in self._services.values():
            await service.close()
        self._services.clear()
