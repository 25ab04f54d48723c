"""
Event Publisher Unit Tests

History and activity publishing over a mocked event bus.
"""
from datetime import datetime, timezone

import pytest

from core.config import InfraConfig
from core.nats_client import Event, EventType, NATSEventBus, ServiceSource
from microservices.circulation_service.events.publishers import (
    ActivityLogPublisher,
    HistoryPublisher,
    publish_activity_logged,
    publish_history_recorded,
)
from microservices.circulation_service.models import ActivityAction, ActivityLogEntry, HistoryEventType

pytestmark = [pytest.mark.unit]

NOW = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)


class MockEventBus:
    """Mock NATS event bus"""

    def __init__(self, fail: bool = False):
        self.published_events = []
        self.fail = fail

    async def publish_event(self, event):
        if self.fail:
            raise ConnectionError("nats unavailable")
        self.published_events.append(event)
        return True


class FixedClock:
    def now(self):
        return NOW


@pytest.mark.asyncio
class TestPublishHistoryRecorded:

    async def test_publishes_event(self, data_factory):
        bus = MockEventBus()
        user_id, loan_id = data_factory.make_user_id(), data_factory.make_loan_id()

        result = await publish_history_recorded(bus, user_id, HistoryEventType.RETURN, NOW, loan_id=loan_id)

        assert result is True
        event = bus.published_events[0]
        assert event.type == EventType.HISTORY_RECORDED.value
        assert event.source == "circulation_service"
        assert event.data["user_id"] == user_id
        assert event.data["event_type"] == "Return"
        assert event.data["loan_id"] == loan_id
        assert event.data["reservation_id"] is None

    async def test_failure_is_swallowed(self, data_factory):
        result = await publish_history_recorded(
            MockEventBus(fail=True), data_factory.make_user_id(), HistoryEventType.LOAN, NOW
        )

        assert result is False


@pytest.mark.asyncio
class TestPublishActivityLogged:

    async def test_publishes_event(self, data_factory):
        bus = MockEventBus()
        entry = ActivityLogEntry(
            user_id=data_factory.make_user_id(),
            action=ActivityAction.CREATE_LOAN,
            details="LoanId=loan_1, ItemId=book_1",
            timestamp=NOW,
        )

        assert await publish_activity_logged(bus, entry) is True

        event = bus.published_events[0]
        assert event.type == EventType.ACTIVITY_LOGGED.value
        assert event.data["action"] == "CreateLoan"
        assert event.data["details"] == "LoanId=loan_1, ItemId=book_1"

    async def test_failure_is_swallowed(self, data_factory):
        entry = ActivityLogEntry(
            user_id=data_factory.make_user_id(), action=ActivityAction.RETURN_LOAN, timestamp=NOW
        )

        assert await publish_activity_logged(MockEventBus(fail=True), entry) is False


@pytest.mark.asyncio
class TestPublisherSinks:

    async def test_history_publisher_stamps_with_clock(self, data_factory):
        bus = MockEventBus()
        publisher = HistoryPublisher(bus, FixedClock())

        await publisher.log_event(
            data_factory.make_user_id(),
            HistoryEventType.RESERVATION,
            reservation_id=data_factory.make_reservation_id(),
        )

        assert bus.published_events[0].data["event_date"].startswith("2024-03-01T10:00:00")

    async def test_sinks_without_bus_do_nothing(self, data_factory):
        user_id = data_factory.make_user_id()

        await HistoryPublisher(None, FixedClock()).log_event(user_id, HistoryEventType.LOAN)
        await ActivityLogPublisher(None).log(
            ActivityLogEntry(user_id=user_id, action=ActivityAction.CREATE_LOAN, timestamp=NOW)
        )


class TestEventEnvelope:

    def test_to_dict(self):
        event = Event(
            event_type=EventType.ACTIVITY_LOGGED,
            source=ServiceSource.CIRCULATION_SERVICE,
            data={"user_id": "user_1"},
        )

        payload = event.to_dict()

        assert payload["type"] == "circulation.activity.logged"
        assert payload["source"] == "circulation_service"
        assert payload["data"] == {"user_id": "user_1"}
        assert payload["id"] == event.id

    @pytest.mark.asyncio
    async def test_publish_without_connection_returns_false(self):
        bus = NATSEventBus("circulation_service", config=InfraConfig(nats_url="nats://localhost:4222"))

        event = Event(EventType.HISTORY_RECORDED, ServiceSource.CIRCULATION_SERVICE, {})

        assert bus.is_connected is False
        assert await bus.publish_event(event) is False
