"""
Component Tests for the Circulation Service Factory
"""

import pytest

from core.config import InfraConfig, LibraryConfig
from microservices.circulation_service.circulation_service import CirculationService
from microservices.circulation_service.events.publishers import ActivityLogPublisher, HistoryPublisher
from microservices.circulation_service.factory import create_circulation_service, shutdown_circulation_service
from microservices.circulation_service.memory_repository import InMemoryCirculationStore


@pytest.mark.component
@pytest.mark.asyncio
class TestCreateCirculationService:

    async def test_in_memory_service_without_event_bus(
        self, mock_account_client, mock_catalog_client, mock_notification_client, frozen_clock, data_factory
    ):
        config = LibraryConfig(infrastructure=InfraConfig(nats_enabled=False))

        service = await create_circulation_service(
            config=config,
            account_client=mock_account_client,
            catalog_client=mock_catalog_client,
            notification_client=mock_notification_client,
            clock=frozen_clock,
            in_memory=True,
        )

        assert isinstance(service, CirculationService)
        assert isinstance(service.store, InMemoryCirculationStore)
        assert isinstance(service.history_recorder, HistoryPublisher)
        assert isinstance(service.activity_log, ActivityLogPublisher)
        assert service.history_recorder.event_bus is None

        # Publishing sinks without a bus must not break a committed loan
        user_id = data_factory.make_user_id()
        item_id = data_factory.make_item_id()
        mock_account_client.add_user(user_id)
        await service.create_stock(item_id, 1)
        assert (await service.create_loan(user_id, item_id)).success is True

    async def test_builds_http_clients_from_config(self, frozen_clock):
        config = LibraryConfig(infrastructure=InfraConfig(nats_enabled=False))
        config.services.account_service_url = "http://accounts.test"

        service = await create_circulation_service(config=config, clock=frozen_clock, in_memory=True)

        assert service.account_client.base_url == "http://accounts.test"
        assert service.notification_client.base_url == config.services.notification_service_url
        await shutdown_circulation_service(service)
        assert service.account_client.client.is_closed

    async def test_shutdown_closes_event_bus(self, mock_account_client, mock_catalog_client, mock_notification_client):
        class RecordingEventBus:
            def __init__(self):
                self.closed = False

            async def publish_event(self, event):
                return True

            async def close(self):
                self.closed = True

        bus = RecordingEventBus()
        service = await create_circulation_service(
            config=LibraryConfig(infrastructure=InfraConfig(nats_enabled=False)),
            event_bus=bus,
            account_client=mock_account_client,
            catalog_client=mock_catalog_client,
            notification_client=mock_notification_client,
            in_memory=True,
        )

        await shutdown_circulation_service(service)

        assert bus.closed is True
