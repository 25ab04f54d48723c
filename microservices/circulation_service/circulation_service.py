"""
Circulation Service - Business Logic Layer

Public entry point of the loan-and-reservation lifecycle. Every operation
runs inside one unit of work and returns a typed response: business rule
violations come back as success=False with an error kind, infrastructure
failures propagate to the caller.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import AsyncIterator, Optional

from core.config import CirculationConfig, get_settings

from .audit_trail import AuditTrail
from .borrower_directory import BorrowerDirectory
from .clock import SystemClock
from .loan_manager import LoanManager
from .models import (
    DeleteResponse,
    LoanListResponse,
    LoanResponse,
    Reservation,
    ReservationListResponse,
    ReservationResponse,
    ReservationUpdateRequest,
    ReturnLoanResponse,
    StockRecord,
    StockResponse,
)
from .protocols import (
    AccountClientProtocol,
    ActivityLogCollectorProtocol,
    CatalogLookupProtocol,
    CirculationServiceError,
    CirculationStoreProtocol,
    ClockProtocol,
    ConflictError,
    HistoryRecorderProtocol,
    NotFoundError,
    NotificationGatewayProtocol,
    UnitOfWorkProtocol,
)
from .reservation_manager import ReservationManager
from .stock_ledger import StockLedger

logger = logging.getLogger(__name__)


class CirculationSession:
    """Managers bound to one unit of work"""

    def __init__(self, uow: UnitOfWorkProtocol, ledger: StockLedger,
                 reservations: ReservationManager, loans: LoanManager):
        self.uow = uow
        self.ledger = ledger
        self.reservations = reservations
        self.loans = loans


class CirculationService:
    """
    Circulation Service - Core business logic

    Checkout, return with late fees, FIFO reservation queue with promotion
    and notification, and stock bookkeeping.
    """

    def __init__(
        self,
        store: CirculationStoreProtocol,
        account_client: AccountClientProtocol,
        catalog_client: CatalogLookupProtocol,
        notification_client: NotificationGatewayProtocol,
        history_recorder: HistoryRecorderProtocol,
        activity_log: ActivityLogCollectorProtocol,
        clock: Optional[ClockProtocol] = None,
        config: Optional[CirculationConfig] = None,
    ):
        """
        Initialize circulation service with dependencies.

        Args:
            store: Unit-of-work factory over the circulation repositories
            account_client: Borrower existence checks
            catalog_client: Item titles for notifications
            notification_client: Notification gateway
            history_recorder: Borrower history sink
            activity_log: Activity log sink
            clock: Time source (system UTC clock if not provided)
            config: Circulation policy (global settings if not provided)
        """
        self.store = store
        self.account_client = account_client
        self.catalog_client = catalog_client
        self.notification_client = notification_client
        self.history_recorder = history_recorder
        self.activity_log = activity_log
        self.clock = clock or SystemClock()
        self.config = config or get_settings().circulation

        logger.info("CirculationService initialized with dependency injection")

    @property
    def pickup_window(self) -> timedelta:
        return timedelta(hours=self.config.reservation_pickup_hours)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[CirculationSession]:
        """Open a unit of work and wire the managers onto it"""
        async with self.store.unit_of_work() as uow:
            audit = AuditTrail(uow, self.history_recorder, self.activity_log, self.clock)
            ledger = StockLedger(uow.stock)
            reservations = ReservationManager(uow.reservations, audit, self.clock)
            loans = LoanManager(
                uow=uow,
                ledger=ledger,
                reservations=reservations,
                borrowers=BorrowerDirectory(self.account_client, uow.loans),
                catalog=self.catalog_client,
                notifier=self.notification_client,
                audit=audit,
                clock=self.clock,
                policy=self.config,
            )
            yield CirculationSession(uow, ledger, reservations, loans)

    def _rejected(self, response_cls, operation: str, error: CirculationServiceError):
        logger.warning(f"{operation} rejected ({error.kind.value}): {error}")
        return response_cls(success=False, message=str(error), error=error.kind)

    def _reservation_response(self, reservation: Reservation, message: str) -> ReservationResponse:
        return ReservationResponse(
            success=True,
            message=message,
            reservation=reservation,
            pickup_deadline=reservation.pickup_deadline(self.pickup_window),
        )

    # ====================
    # Loans
    # ====================

    async def create_loan(self, borrower_id: str, item_id: str) -> LoanResponse:
        """Check a copy of an item out to a borrower"""
        try:
            async with self.session() as s:
                loan = await s.loans.create_loan(borrower_id, item_id)
            return LoanResponse(
                success=True,
                message="Loan created successfully",
                loan=loan,
                due_date=loan.due_date,
            )
        except CirculationServiceError as e:
            return self._rejected(LoanResponse, "create_loan", e)

    async def return_loan(self, loan_id: str) -> ReturnLoanResponse:
        """
        Return a loan, charge the late fee and promote the next reservation.

        Raises:
            NotificationDeliveryError: If the promoted borrower could not be
                notified; the whole return is rolled back
        """
        try:
            async with self.session() as s:
                outcome = await s.loans.return_loan(loan_id)
            return ReturnLoanResponse(
                success=True,
                message="Loan returned successfully",
                loan=outcome.loan,
                fine=outcome.loan.fine,
                reservation_notified=outcome.reservation_notified,
            )
        except CirculationServiceError as e:
            return self._rejected(ReturnLoanResponse, "return_loan", e)

    async def get_loan(self, loan_id: str) -> LoanResponse:
        try:
            async with self.session() as s:
                loan = await s.loans.get_loan(loan_id)
            return LoanResponse(success=True, message="Loan found", loan=loan, due_date=loan.due_date)
        except CirculationServiceError as e:
            return self._rejected(LoanResponse, "get_loan", e)

    async def list_loans(self, borrower_id: Optional[str] = None, active_only: bool = False) -> LoanListResponse:
        async with self.session() as s:
            loans = await s.loans.list_loans(borrower_id=borrower_id, active_only=active_only)
        return LoanListResponse(
            success=True,
            message=f"Found {len(loans)} loans",
            loans=loans,
            total=len(loans),
        )

    async def list_overdue_loans(self) -> LoanListResponse:
        async with self.session() as s:
            loans = await s.loans.list_overdue_loans()
        return LoanListResponse(
            success=True,
            message=f"Found {len(loans)} overdue loans",
            loans=loans,
            total=len(loans),
        )

    async def update_loan_due_date(self, loan_id: str, due_date: datetime) -> LoanResponse:
        try:
            async with self.session() as s:
                loan = await s.loans.update_due_date(loan_id, due_date)
            return LoanResponse(success=True, message="Loan updated successfully", loan=loan, due_date=loan.due_date)
        except CirculationServiceError as e:
            return self._rejected(LoanResponse, "update_loan_due_date", e)

    async def delete_loan(self, loan_id: str) -> DeleteResponse:
        try:
            async with self.session() as s:
                await s.loans.delete_loan(loan_id)
            return DeleteResponse(success=True, message="Loan deleted successfully", deleted_id=loan_id)
        except CirculationServiceError as e:
            return self._rejected(DeleteResponse, "delete_loan", e)

    # ====================
    # Reservations
    # ====================

    async def create_reservation(self, acting_user_id: str, borrower_id: str, item_id: str) -> ReservationResponse:
        """Queue a borrower for an item"""
        try:
            async with self.session() as s:
                reservation = await s.reservations.create_reservation(acting_user_id, borrower_id, item_id)
            return self._reservation_response(reservation, "Reservation created successfully")
        except CirculationServiceError as e:
            return self._rejected(ReservationResponse, "create_reservation", e)

    async def list_reservations_for_user(self, borrower_id: str) -> ReservationListResponse:
        async with self.session() as s:
            reservations = await s.reservations.list_for_user(borrower_id)
        return ReservationListResponse(
            success=True,
            message=f"Found {len(reservations)} reservations",
            reservations=reservations,
            total=len(reservations),
        )

    async def list_pending_reservations_for_item(self, item_id: str) -> ReservationListResponse:
        async with self.session() as s:
            reservations = await s.reservations.list_pending_for_item(item_id)
        return ReservationListResponse(
            success=True,
            message=f"Found {len(reservations)} pending reservations",
            reservations=reservations,
            total=len(reservations),
        )

    async def list_reservations(self) -> ReservationListResponse:
        async with self.session() as s:
            reservations = await s.reservations.list_all()
        return ReservationListResponse(
            success=True,
            message=f"Found {len(reservations)} reservations",
            reservations=reservations,
            total=len(reservations),
        )

    async def get_reservation(self, reservation_id: str) -> ReservationResponse:
        try:
            async with self.session() as s:
                reservation = await s.reservations.get_reservation(reservation_id)
            return self._reservation_response(reservation, "Reservation found")
        except CirculationServiceError as e:
            return self._rejected(ReservationResponse, "get_reservation", e)

    async def update_reservation(
        self, reservation_id: str, request: ReservationUpdateRequest
    ) -> ReservationResponse:
        try:
            async with self.session() as s:
                reservation = await s.reservations.update_reservation(reservation_id, request)
            return self._reservation_response(reservation, "Reservation updated successfully")
        except CirculationServiceError as e:
            return self._rejected(ReservationResponse, "update_reservation", e)

    async def delete_reservation(self, reservation_id: str) -> DeleteResponse:
        try:
            async with self.session() as s:
                await s.reservations.delete_reservation(reservation_id)
            return DeleteResponse(
                success=True,
                message="Reservation deleted successfully",
                deleted_id=reservation_id,
            )
        except CirculationServiceError as e:
            return self._rejected(DeleteResponse, "delete_reservation", e)

    # ====================
    # Stock
    # ====================

    async def create_stock(self, item_id: str, quantity: int = 1) -> StockResponse:
        """Register an item in inventory"""
        try:
            async with self.session() as s:
                if await s.uow.stock.load(item_id):
                    raise ConflictError(f"Item {item_id} already has a stock record")
                record = StockRecord(
                    stock_id=f"stk_{uuid.uuid4().hex[:16]}",
                    item_id=item_id,
                    quantity=max(0, quantity),
                )
                record = await s.uow.stock.save(record)
            logger.info(f"Registered stock for item {item_id}: {record.quantity}")
            return StockResponse(success=True, message="Stock created successfully", stock=record)
        except CirculationServiceError as e:
            return self._rejected(StockResponse, "create_stock", e)

    async def get_stock(self, item_id: str) -> StockResponse:
        try:
            async with self.session() as s:
                record = await s.uow.stock.load(item_id)
                if record is None:
                    raise NotFoundError(f"No stock record for item {item_id}")
            return StockResponse(success=True, message="Stock found", stock=record)
        except CirculationServiceError as e:
            return self._rejected(StockResponse, "get_stock", e)

    async def adjust_stock(self, item_id: str, delta: int) -> StockResponse:
        """Add or remove copies; the quantity is clamped at zero"""
        try:
            async with self.session() as s:
                record = await s.uow.stock.load(item_id)
                if record is None:
                    raise NotFoundError(f"No stock record for item {item_id}")
                record = await s.ledger.adjust_by(record, delta)
                if record is None:
                    raise NotFoundError(f"No stock record for item {item_id}")
            return StockResponse(success=True, message="Stock adjusted successfully", stock=record)
        except CirculationServiceError as e:
            return self._rejected(StockResponse, "adjust_stock", e)


__all__ = ["CirculationService", "CirculationSession"]
