"""
Audit Trail

Queues history and activity-log entries on the unit of work so they are
emitted only after the surrounding transaction commits.
"""

import logging
from typing import Optional

from .models import ActivityAction, ActivityLogEntry, HistoryEventType
from .protocols import (
    ActivityLogCollectorProtocol,
    ClockProtocol,
    HistoryRecorderProtocol,
    UnitOfWorkProtocol,
)

logger = logging.getLogger(__name__)


class AuditTrail:
    """Deferred history + activity emission bound to one unit of work"""

    def __init__(
        self,
        uow: UnitOfWorkProtocol,
        history: HistoryRecorderProtocol,
        activity: ActivityLogCollectorProtocol,
        clock: ClockProtocol,
    ):
        self.uow = uow
        self.history = history
        self.activity = activity
        self.clock = clock

    def record(
        self,
        user_id: str,
        event_type: HistoryEventType,
        loan_id: Optional[str] = None,
        reservation_id: Optional[str] = None,
    ) -> None:
        async def _emit():
            await self.history.log_event(
                user_id, event_type, loan_id=loan_id, reservation_id=reservation_id
            )

        self.uow.after_commit(_emit)

    def log(self, user_id: str, action: ActivityAction, details: Optional[str] = None) -> None:
        entry = ActivityLogEntry(
            user_id=user_id,
            action=action,
            details=details,
            timestamp=self.clock.now(),
        )

        async def _emit():
            await self.activity.log(entry)

        self.uow.after_commit(_emit)


__all__ = ["AuditTrail"]
