"""Service wiring for CLI commands.

Each command opens a ``network_service()`` context: the networks file is
loaded on entry and the HTTP clients and background tasks are closed on exit.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from regnet.network.application.services import NetworkService
from regnet.network.infrastructure.docker_service import DockerService
from regnet.network.infrastructure.repository import NetworksRepository
from regnet.utils.config import Settings, get_settings
from regnet.utils.logging import get_logger

logger = get_logger(__name__)


def build_docker_service(settings: Settings | None = None) -> DockerService:
    settings = settings or get_settings()
    return DockerService(settings.docker_paths())


def build_network_service(settings: Settings | None = None) -> NetworkService:
    settings = settings or get_settings()
    return NetworkService(
        NetworksRepository(settings),
        build_docker_service(settings),
        settings=settings,
    )


@asynccontextmanager
async def network_service() -> AsyncGenerator[NetworkService, None]:
    service = build_network_service()
    await service.load()
    try:
        yield service
    finally:
        await service.close()
        logger.debug("network_service_closed")
