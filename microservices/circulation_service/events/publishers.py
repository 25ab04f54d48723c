"""
Circulation Service Event Publishers

Publish borrower-history and activity-log events. Both sinks are
append-only and best effort: a publish failure is logged and never
propagated to the circulation operation.
"""

import logging
from datetime import datetime
from typing import Optional

from core.nats_client import Event, EventType, ServiceSource

from ..models import ActivityLogEntry, HistoryEventType
from ..protocols import ClockProtocol, EventBusProtocol
from .models import ActivityLoggedEventData, HistoryRecordedEventData

logger = logging.getLogger(__name__)


async def publish_history_recorded(
    event_bus,
    user_id: str,
    event_type: HistoryEventType,
    event_date: datetime,
    loan_id: Optional[str] = None,
    reservation_id: Optional[str] = None,
) -> bool:
    """
    Publish circulation.history.recorded event

    Args:
        event_bus: NATS event bus instance
        user_id: Borrower the entry belongs to
        event_type: History event type
        event_date: Time of the entry
        loan_id: Loan concerned (optional)
        reservation_id: Reservation concerned (optional)
    """
    try:
        event_data = HistoryRecordedEventData(
            user_id=user_id,
            event_type=event_type.value,
            loan_id=loan_id,
            reservation_id=reservation_id,
            event_date=event_date,
        )

        event = Event(
            event_type=EventType.HISTORY_RECORDED,
            source=ServiceSource.CIRCULATION_SERVICE,
            data=event_data.model_dump(mode='json'),
        )

        published = await event_bus.publish_event(event)
        logger.info(f"Published circulation.history.recorded for user {user_id}: {event_type.value}")
        return published

    except Exception as e:
        logger.error(f"Failed to publish circulation.history.recorded: {e}")
        return False


async def publish_activity_logged(event_bus, entry: ActivityLogEntry) -> bool:
    """
    Publish circulation.activity.logged event

    Args:
        event_bus: NATS event bus instance
        entry: Activity log entry
    """
    try:
        event_data = ActivityLoggedEventData(
            user_id=entry.user_id,
            action=entry.action.value,
            details=entry.details,
            timestamp=entry.timestamp,
        )

        event = Event(
            event_type=EventType.ACTIVITY_LOGGED,
            source=ServiceSource.CIRCULATION_SERVICE,
            data=event_data.model_dump(mode='json'),
        )

        published = await event_bus.publish_event(event)
        logger.info(f"Published circulation.activity.logged for user {entry.user_id}: {entry.action.value}")
        return published

    except Exception as e:
        logger.error(f"Failed to publish circulation.activity.logged: {e}")
        return False


class HistoryPublisher:
    """HistoryRecorderProtocol over the event bus"""

    def __init__(self, event_bus: Optional[EventBusProtocol], clock: ClockProtocol):
        self.event_bus = event_bus
        self.clock = clock

    async def log_event(
        self,
        user_id: str,
        event_type: HistoryEventType,
        loan_id: Optional[str] = None,
        reservation_id: Optional[str] = None,
    ) -> None:
        if not self.event_bus:
            logger.debug(f"No event bus, history {event_type.value} for {user_id} not published")
            return
        await publish_history_recorded(
            self.event_bus,
            user_id=user_id,
            event_type=event_type,
            event_date=self.clock.now(),
            loan_id=loan_id,
            reservation_id=reservation_id,
        )


class ActivityLogPublisher:
    """ActivityLogCollectorProtocol over the event bus"""

    def __init__(self, event_bus: Optional[EventBusProtocol]):
        self.event_bus = event_bus

    async def log(self, entry: ActivityLogEntry) -> None:
        if not self.event_bus:
            logger.debug(f"No event bus, activity {entry.action.value} for {entry.user_id} not published")
            return
        await publish_activity_logged(self.event_bus, entry)


__all__ = [
    "publish_history_recorded",
    "publish_activity_logged",
    "HistoryPublisher",
    "ActivityLogPublisher",
]
