"""
Circulation Service Factory

Factory for creating CirculationService with real dependencies.
This is the ONLY module that imports concrete implementations.
"""

import logging
from typing import Optional

from core.config import LibraryConfig, get_settings
from core.logger import setup_service_logger

from .circulation_service import CirculationService
from .clock import SystemClock
from .events.publishers import ActivityLogPublisher, HistoryPublisher

logger = logging.getLogger(__name__)

SERVICE_NAME = "circulation_service"


async def create_circulation_service(
    config: Optional[LibraryConfig] = None,
    event_bus=None,
    account_client=None,
    catalog_client=None,
    notification_client=None,
    clock=None,
    in_memory: bool = False,
) -> CirculationService:
    """
    Create CirculationService with all real dependencies

    Args:
        config: Optional platform config (global settings if not provided)
        event_bus: Optional event bus for history/activity publishing
        account_client: Optional account client (creates default if not provided)
        catalog_client: Optional catalog client (creates default if not provided)
        notification_client: Optional notification client (creates default if not provided)
        clock: Optional clock (system UTC clock if not provided)
        in_memory: Use the in-memory store instead of PostgreSQL

    Returns:
        Fully initialized CirculationService instance
    """
    if config is None:
        config = get_settings()

    setup_service_logger(SERVICE_NAME, config.logging)
    clock = clock or SystemClock()

    # Create store
    if in_memory:
        from .memory_repository import InMemoryCirculationStore

        store = InMemoryCirculationStore()
        logger.info("Circulation service using in-memory store")
    else:
        from core.postgres_client import get_postgres_client
        from .circulation_repository import CirculationRepository

        db = await get_postgres_client(SERVICE_NAME, config=config.infrastructure)
        store = CirculationRepository(db)
        await store.initialize()

    # Event bus for history + activity log
    if event_bus is None and config.infrastructure.nats_enabled:
        try:
            from core.nats_client import get_event_bus

            event_bus = await get_event_bus(SERVICE_NAME, config=config.infrastructure)
        except Exception as e:
            logger.warning(f"Failed to connect event bus: {e}")
            logger.warning("History and activity events will not be published")

    # Initialize service clients if not provided
    timeout = config.services.request_timeout
    if account_client is None:
        from .clients.account_client import AccountClient

        account_client = AccountClient(base_url=config.services.account_service_url, timeout=timeout)
        logger.info("AccountClient initialized for circulation service")

    if catalog_client is None:
        from .clients.catalog_client import CatalogClient

        catalog_client = CatalogClient(base_url=config.services.catalog_service_url, timeout=timeout)
        logger.info("CatalogClient initialized for circulation service")

    if notification_client is None:
        from .clients.notification_client import NotificationClient

        notification_client = NotificationClient(
            base_url=config.services.notification_service_url, timeout=timeout
        )
        logger.info("NotificationClient initialized for circulation service")

    return CirculationService(
        store=store,
        account_client=account_client,
        catalog_client=catalog_client,
        notification_client=notification_client,
        history_recorder=HistoryPublisher(event_bus, clock),
        activity_log=ActivityLogPublisher(event_bus),
        clock=clock,
        config=config.circulation,
    )


async def shutdown_circulation_service(service: CirculationService) -> None:
    """Close peer clients, the event bus and the store"""
    for client in (service.account_client, service.catalog_client, service.notification_client):
        if hasattr(client, "close"):
            await client.close()

    event_bus = getattr(service.history_recorder, "event_bus", None)
    if event_bus is not None:
        await event_bus.close()

    if hasattr(service.store, "close"):
        await service.store.close()

    logger.info("Circulation service shut down")


__all__ = ["create_circulation_service", "shutdown_circulation_service"]
