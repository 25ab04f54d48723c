"""
Circulation Service Component Test Fixtures

Provides mocks for circulation service component testing:
- FrozenClock: Deterministic, manually advanced clock
- MockAccountClient: Mock account service client (borrower existence)
- MockCatalogClient: Mock catalog service client (item titles)
- MockNotificationClient: Mock notification gateway
- MockHistoryRecorder / MockActivityLog: Captured audit sinks

The store is the real InMemoryCirculationStore.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from core.config import CirculationConfig
from microservices.circulation_service.circulation_service import CirculationService
from microservices.circulation_service.memory_repository import InMemoryCirculationStore
from microservices.circulation_service.models import ActivityLogEntry, HistoryEventType


# =============================================================================
# Mock Clock
# =============================================================================


class FrozenClock:
    """Clock that only moves when told to"""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)

    def set(self, moment: datetime):
        self.current = moment


# =============================================================================
# Mock Service Clients
# =============================================================================


class MockAccountClient:
    """Mock account service client"""

    def __init__(self):
        self.users: Dict[str, Dict] = {}
        self.method_calls = []

    def add_user(self, user_id: str, is_active: bool = True):
        """Add a user to the mock"""
        self.users[user_id] = {"user_id": user_id, "is_active": is_active}

    async def user_exists(self, user_id: str) -> bool:
        self.method_calls.append(("user_exists", user_id))
        user = self.users.get(user_id)
        return user is not None and user["is_active"]


class MockCatalogClient:
    """Mock catalog service client"""

    def __init__(self):
        self.titles: Dict[str, str] = {}

    def add_item(self, item_id: str, title: str):
        self.titles[item_id] = title

    async def get_title(self, item_id: str) -> str:
        return self.titles.get(item_id, item_id)


class MockNotificationClient:
    """Mock notification gateway recording every notification"""

    def __init__(self):
        self.sent: List[Dict[str, str]] = []
        self.accept = True
        self.error: Optional[Exception] = None
        self.delay = 0.0

    async def notify_user(self, user_id: str, message: str) -> bool:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        if self.accept:
            self.sent.append({"user_id": user_id, "message": message})
        return self.accept

    def sent_to(self, user_id: str) -> List[Dict[str, str]]:
        return [n for n in self.sent if n["user_id"] == user_id]


# =============================================================================
# Mock Audit Sinks
# =============================================================================


class MockHistoryRecorder:
    """Captured borrower history"""

    def __init__(self):
        self.events: List[Dict] = []

    async def log_event(self, user_id, event_type, loan_id=None, reservation_id=None):
        self.events.append({
            "user_id": user_id,
            "event_type": event_type,
            "loan_id": loan_id,
            "reservation_id": reservation_id,
        })

    def of_type(self, event_type: HistoryEventType) -> List[Dict]:
        return [e for e in self.events if e["event_type"] == event_type]


class MockActivityLog:
    """Captured activity log"""

    def __init__(self):
        self.entries: List[ActivityLogEntry] = []

    async def log(self, entry: ActivityLogEntry):
        self.entries.append(entry)

    def actions(self) -> List[str]:
        return [e.action.value for e in self.entries]


# =============================================================================
# Pytest Fixtures
# =============================================================================


@pytest.fixture
def frozen_clock():
    return FrozenClock()


@pytest.fixture
def policy():
    return CirculationConfig()


@pytest.fixture
def store():
    return InMemoryCirculationStore()


@pytest.fixture
def mock_account_client():
    return MockAccountClient()


@pytest.fixture
def mock_catalog_client():
    return MockCatalogClient()


@pytest.fixture
def mock_notification_client():
    return MockNotificationClient()


@pytest.fixture
def mock_history():
    return MockHistoryRecorder()


@pytest.fixture
def mock_activity_log():
    return MockActivityLog()


@pytest.fixture
def circulation_service(
    store,
    mock_account_client,
    mock_catalog_client,
    mock_notification_client,
    mock_history,
    mock_activity_log,
    frozen_clock,
    policy,
):
    """Create circulation service with mocked collaborators"""
    return CirculationService(
        store=store,
        account_client=mock_account_client,
        catalog_client=mock_catalog_client,
        notification_client=mock_notification_client,
        history_recorder=mock_history,
        activity_log=mock_activity_log,
        clock=frozen_clock,
        config=policy,
    )


@pytest.fixture
def borrower(mock_account_client, data_factory):
    """A registered borrower id"""
    user_id = data_factory.make_user_id()
    mock_account_client.add_user(user_id)
    return user_id


@pytest.fixture
def make_borrower(mock_account_client, data_factory):
    """Factory registering additional borrowers"""
    def _make():
        user_id = data_factory.make_user_id()
        mock_account_client.add_user(user_id)
        return user_id
    return _make
