"""
Circulation Service Protocols

Defines interfaces for dependency injection and testing.
Following the protocol-based architecture pattern.
"""

from datetime import datetime
from typing import Any, AsyncContextManager, Awaitable, Callable, List, Optional, Protocol, runtime_checkable

from .models import (
    ActivityLogEntry,
    CirculationErrorKind,
    HistoryEventType,
    Loan,
    Reservation,
    ReservationStatus,
    StockRecord,
)


# ====================
# Clock Protocol
# ====================


@runtime_checkable
class ClockProtocol(Protocol):
    """Source of the current time"""

    def now(self) -> datetime:
        """Return the current timezone-aware UTC time"""
        ...


# ====================
# Repository Protocols
# ====================


@runtime_checkable
class StockRepositoryProtocol(Protocol):
    """Repository interface for stock records"""

    async def load(self, item_id: str) -> Optional[StockRecord]:
        """
        Load the stock record of an item.

        Args:
            item_id: Catalog item identifier

        Returns:
            Stock record or None if the item has no inventory row
        """
        ...

    async def save(self, record: StockRecord) -> StockRecord:
        """Insert or replace a stock record"""
        ...

    async def adjust(self, item_id: str, delta: int) -> Optional[StockRecord]:
        """
        Atomically apply quantity = max(0, quantity + delta).

        Returns:
            Updated record or None if the item has no inventory row
        """
        ...

    async def decrement_if_available(self, item_id: str) -> Optional[StockRecord]:
        """
        Atomically decrement quantity only when it is above zero.

        Returns:
            Updated record, or None when there is no record or no copy left
        """
        ...


@runtime_checkable
class LoanRepositoryProtocol(Protocol):
    """Repository interface for loans"""

    async def get(self, loan_id: str) -> Optional[Loan]:
        """Get loan by ID"""
        ...

    async def get_active(self, loan_id: str) -> Optional[Loan]:
        """
        Get an active loan by ID, locking it for the current unit of work.

        Returns:
            Loan or None if unknown or already returned
        """
        ...

    async def add(self, loan: Loan) -> Loan:
        """Insert a new loan"""
        ...

    async def save(self, loan: Loan) -> Loan:
        """Persist changes to an existing loan"""
        ...

    async def delete(self, loan_id: str) -> bool:
        """Delete a loan, returning False if it did not exist"""
        ...

    async def count_active_for_borrower(self, borrower_id: str) -> int:
        """Count loans with no return date for a borrower"""
        ...

    async def list(self, borrower_id: Optional[str] = None, active_only: bool = False) -> List[Loan]:
        """List loans ordered by checkout date"""
        ...

    async def list_overdue(self, now: datetime) -> List[Loan]:
        """List active loans whose due date is before now"""
        ...


@runtime_checkable
class ReservationRepositoryProtocol(Protocol):
    """Repository interface for reservations"""

    async def get(self, reservation_id: str) -> Optional[Reservation]:
        """Get reservation by ID"""
        ...

    async def add(self, reservation: Reservation) -> Reservation:
        """
        Insert a new reservation.

        Raises:
            ConflictError: If the borrower already holds an active reservation for the item
        """
        ...

    async def save(self, reservation: Reservation) -> Reservation:
        """Persist changes to an existing reservation"""
        ...

    async def delete(self, reservation_id: str) -> bool:
        """Delete a reservation, returning False if it did not exist"""
        ...

    async def find_active(self, borrower_id: str, item_id: str) -> Optional[Reservation]:
        """Find the pending or available reservation of a borrower for an item"""
        ...

    async def list_for_borrower(
        self, borrower_id: str, statuses: Optional[List[ReservationStatus]] = None
    ) -> List[Reservation]:
        """List a borrower's reservations, optionally filtered by status"""
        ...

    async def list_pending_for_item(self, item_id: str) -> List[Reservation]:
        """List pending reservations for an item ordered by created_at ascending"""
        ...

    async def list_all(self) -> List[Reservation]:
        """List every reservation ordered by created_at"""
        ...

    async def count_held_for_others(self, item_id: str, borrower_id: str) -> int:
        """Count available reservations for an item held by other borrowers"""
        ...

    async def claim_earliest_pending(
        self, item_id: str, stock_id: str, available_at: datetime
    ) -> Optional[Reservation]:
        """
        Atomically promote the earliest pending reservation for an item.

        Sets status=available, available_at and assigned_stock_id on exactly
        one reservation. Concurrent callers never claim the same row.

        Returns:
            Promoted reservation or None if the queue is empty
        """
        ...


@runtime_checkable
class UnitOfWorkProtocol(Protocol):
    """One request-scoped transaction over all circulation repositories"""

    stock: StockRepositoryProtocol
    loans: LoanRepositoryProtocol
    reservations: ReservationRepositoryProtocol

    async def lock_borrower(self, borrower_id: str) -> None:
        """Serialise concurrent units of work for the same borrower"""
        ...

    def after_commit(self, callback: Callable[[], Awaitable[Any]]) -> None:
        """Register a callback run only once the unit of work has committed"""
        ...


@runtime_checkable
class CirculationStoreProtocol(Protocol):
    """Factory of units of work"""

    def unit_of_work(self) -> AsyncContextManager[UnitOfWorkProtocol]:
        """Open a unit of work; commits on clean exit, rolls back on error"""
        ...


# ====================
# Collaborator Protocols
# ====================


@runtime_checkable
class BorrowerDirectoryProtocol(Protocol):
    """Borrower lookups needed by checkout"""

    async def exists(self, borrower_id: str) -> bool:
        ...

    async def active_loan_count(self, borrower_id: str) -> int:
        ...


@runtime_checkable
class AccountClientProtocol(Protocol):
    """Interface for account_service client"""

    async def user_exists(self, user_id: str) -> bool:
        """
        Check that a user exists.

        Raises:
            httpx.HTTPError: If account_service cannot answer
        """
        ...


@runtime_checkable
class CatalogLookupProtocol(Protocol):
    """Interface for catalog_service client"""

    async def get_title(self, item_id: str) -> str:
        """Get the display title of a catalog item"""
        ...


@runtime_checkable
class NotificationGatewayProtocol(Protocol):
    """Interface for notification_service client"""

    async def notify_user(self, user_id: str, message: str) -> bool:
        """
        Send a notification to a user.

        Returns:
            True if the notification was accepted, False otherwise
        """
        ...


@runtime_checkable
class HistoryRecorderProtocol(Protocol):
    """Append-only borrower history"""

    async def log_event(
        self,
        user_id: str,
        event_type: HistoryEventType,
        loan_id: Optional[str] = None,
        reservation_id: Optional[str] = None,
    ) -> None:
        ...


@runtime_checkable
class ActivityLogCollectorProtocol(Protocol):
    """Append-only activity log"""

    async def log(self, entry: ActivityLogEntry) -> None:
        ...


@runtime_checkable
class EventBusProtocol(Protocol):
    """Event bus interface for publishing events"""

    async def publish_event(self, event: Any) -> bool:
        ...


# ====================
# Custom Exceptions (no I/O operations)
# ====================


class CirculationServiceError(Exception):
    """Base exception for circulation business rule violations"""

    kind: CirculationErrorKind = None


class NotFoundError(CirculationServiceError):
    """Raised when a borrower, loan, reservation or stock record is missing"""

    kind = CirculationErrorKind.NOT_FOUND


class PolicyViolationError(CirculationServiceError):
    """Raised when a borrower reached the active loan limit"""

    kind = CirculationErrorKind.POLICY_VIOLATION

    def __init__(self, message: str, active_loans: Optional[int] = None, limit: Optional[int] = None):
        super().__init__(message)
        self.active_loans = active_loans
        self.limit = limit


class UnavailableError(CirculationServiceError):
    """Raised when no copy of an item can be checked out"""

    kind = CirculationErrorKind.UNAVAILABLE


class UnauthorizedError(CirculationServiceError):
    """Raised when the acting user may not act for the borrower"""

    kind = CirculationErrorKind.UNAUTHORIZED


class ConflictError(CirculationServiceError):
    """Raised on a duplicate active reservation or an invalid status transition"""

    kind = CirculationErrorKind.CONFLICT


class NotificationDeliveryError(Exception):
    """Raised when the notification gateway rejects or fails a delivery"""

    def __init__(self, message: str, user_id: Optional[str] = None):
        super().__init__(message)
        self.user_id = user_id


__all__ = [
    "ClockProtocol",
    "StockRepositoryProtocol",
    "LoanRepositoryProtocol",
    "ReservationRepositoryProtocol",
    "UnitOfWorkProtocol",
    "CirculationStoreProtocol",
    "BorrowerDirectoryProtocol",
    "AccountClientProtocol",
    "CatalogLookupProtocol",
    "NotificationGatewayProtocol",
    "HistoryRecorderProtocol",
    "ActivityLogCollectorProtocol",
    "EventBusProtocol",
    "CirculationServiceError",
    "NotFoundError",
    "PolicyViolationError",
    "UnavailableError",
    "UnauthorizedError",
    "ConflictError",
    "NotificationDeliveryError",
]
