"""
Circulation Service Events

History and activity-log entries are published as events on NATS.
"""

from .models import (
    ActivityLoggedEventData,
    HistoryRecordedEventData,
)
from .publishers import (
    ActivityLogPublisher,
    HistoryPublisher,
    publish_activity_logged,
    publish_history_recorded,
)

__all__ = [
    "ActivityLoggedEventData",
    "HistoryRecordedEventData",
    "ActivityLogPublisher",
    "HistoryPublisher",
    "publish_activity_logged",
    "publish_history_recorded",
]
