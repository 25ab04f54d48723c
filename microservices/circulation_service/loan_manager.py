"""
Loan Manager

Checkout and return of physical copies: borrowing-limit enforcement,
late-fee computation, stock movement and reservation promotion with
borrower notification.
"""

import logging
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from core.config import CirculationConfig

from .audit_trail import AuditTrail
from .models import ActivityAction, HistoryEventType, Loan, ReturnOutcome, ensure_utc
from .protocols import (
    BorrowerDirectoryProtocol,
    CatalogLookupProtocol,
    ClockProtocol,
    LoanRepositoryProtocol,
    NotFoundError,
    NotificationDeliveryError,
    NotificationGatewayProtocol,
    PolicyViolationError,
    UnavailableError,
    UnitOfWorkProtocol,
)
from .reservation_manager import ReservationManager
from .stock_ledger import StockLedger

logger = logging.getLogger(__name__)


def compute_fine(due_date: datetime, return_date: datetime, late_fee_per_day: Decimal) -> Decimal:
    """
    Late fee for a return.

    Overdue days are counted on calendar dates, so returning any time on
    the due date costs nothing.
    """
    overdue_days = max(0, (return_date.date() - due_date.date()).days)
    return overdue_days * late_fee_per_day


def availability_message(title: str) -> str:
    return f"The book '{title}' is now available."


class LoanManager:
    """
    Loan lifecycle within one unit of work.

    Active -> Returned is the only transition; a returned loan is never
    reopened.
    """

    def __init__(
        self,
        uow: UnitOfWorkProtocol,
        ledger: StockLedger,
        reservations: ReservationManager,
        borrowers: BorrowerDirectoryProtocol,
        catalog: CatalogLookupProtocol,
        notifier: NotificationGatewayProtocol,
        audit: AuditTrail,
        clock: ClockProtocol,
        policy: CirculationConfig,
    ):
        """
        Initialize loan manager with dependencies.

        Args:
            uow: Current unit of work (loan repository, borrower locks)
            ledger: Stock ledger bound to the unit of work
            reservations: Reservation manager bound to the unit of work
            borrowers: Borrower existence and active-loan counts
            catalog: Item title lookup for notifications
            notifier: Notification gateway, awaited inline
            audit: Deferred history/activity emission
            clock: Time source
            policy: Loan limits, loan period and late fee
        """
        self.uow = uow
        self.repository: LoanRepositoryProtocol = uow.loans
        self.ledger = ledger
        self.reservations = reservations
        self.borrowers = borrowers
        self.catalog = catalog
        self.notifier = notifier
        self.audit = audit
        self.clock = clock
        self.policy = policy

    async def create_loan(self, borrower_id: str, item_id: str) -> Loan:
        """
        Check a copy of an item out to a borrower.

        Raises:
            NotFoundError: If the borrower does not exist
            PolicyViolationError: If the borrower reached the active loan limit
            UnavailableError: If the item has no stock record, no copy left, or
                every remaining copy is held for another borrower's reservation
        """
        if not await self.borrowers.exists(borrower_id):
            raise NotFoundError(f"Borrower {borrower_id} not found")

        await self.uow.lock_borrower(borrower_id)

        active_loans = await self.borrowers.active_loan_count(borrower_id)
        limit = self.policy.max_active_loans_per_user
        if active_loans >= limit:
            raise PolicyViolationError(
                f"Borrower {borrower_id} already has {active_loans} active loans (limit {limit})",
                active_loans=active_loans,
                limit=limit,
            )

        stock = await self.ledger.checkout_copy(item_id)

        # Decrement first: it waits out a concurrent return, so the hold count
        # read next already includes any reservation that return promoted
        held = await self.reservations.held_for_others(item_id, borrower_id)
        if stock.quantity < held:
            raise UnavailableError(
                f"Remaining copies of item {item_id} are held for {held} reservation(s)"
            )

        now = self.clock.now()
        loan = Loan(
            loan_id=f"loan_{uuid.uuid4().hex[:16]}",
            borrower_id=borrower_id,
            item_id=item_id,
            stock_id=stock.stock_id,
            checkout_date=now,
            due_date=now + timedelta(days=self.policy.loan_period_days),
            fine=Decimal("0"),
        )
        loan = await self.repository.add(loan)

        await self.reservations.complete_for_checkout(borrower_id, item_id)

        self.audit.record(borrower_id, HistoryEventType.LOAN, loan_id=loan.loan_id)
        self.audit.log(
            borrower_id,
            ActivityAction.CREATE_LOAN,
            f"LoanId={loan.loan_id}, ItemId={item_id}",
        )

        logger.info(f"Created loan {loan.loan_id} for borrower {borrower_id} on item {item_id}, due {loan.due_date}")
        return loan

    async def return_loan(self, loan_id: str) -> ReturnOutcome:
        """
        Return a loaned copy.

        Computes the late fee, puts the copy back, and promotes the oldest
        pending reservation for the item, notifying its borrower.

        Raises:
            NotFoundError: If no active loan has this id
            NotificationDeliveryError: If the promoted borrower could not be notified
        """
        loan = await self.repository.get_active(loan_id)
        if loan is None:
            raise NotFoundError(f"Active loan {loan_id} not found")

        return_date = self.clock.now()
        fine = compute_fine(loan.due_date, return_date, self.policy.late_fee_per_day)
        loan = await self.repository.save(
            loan.model_copy(update={"return_date": return_date, "fine": fine})
        )

        stock = await self.uow.stock.load(loan.item_id)
        if stock is None:
            raise NotFoundError(f"Stock record for item {loan.item_id} not found")
        stock = await self.ledger.increase(stock)

        reservation = await self.reservations.pop_earliest_pending(loan.item_id, stock)
        reservation_notified = False
        if reservation:
            await self._notify_available(reservation.borrower_id, loan.item_id)
            reservation_notified = True

        self.audit.record(loan.borrower_id, HistoryEventType.RETURN, loan_id=loan.loan_id)
        self.audit.log(
            loan.borrower_id,
            ActivityAction.RETURN_LOAN,
            f"LoanId={loan.loan_id}, Fine={fine}",
        )

        logger.info(f"Returned loan {loan.loan_id}, fine {fine}, reservation notified: {reservation_notified}")
        return ReturnOutcome(
            loan=loan,
            reservation_notified=reservation_notified,
            promoted_reservation=reservation,
        )

    async def _notify_available(self, user_id: str, item_id: str) -> None:
        title = await self.catalog.get_title(item_id)
        message = availability_message(title)
        try:
            delivered = await self.notifier.notify_user(user_id, message)
        except Exception as e:
            logger.error(f"Notification to {user_id} failed: {e}")
            raise NotificationDeliveryError(f"Failed to notify user {user_id}: {e}", user_id=user_id) from e

        if not delivered:
            logger.error(f"Notification to {user_id} was rejected")
            raise NotificationDeliveryError(f"Notification to user {user_id} was rejected", user_id=user_id)

    async def get_loan(self, loan_id: str) -> Loan:
        loan = await self.repository.get(loan_id)
        if loan is None:
            raise NotFoundError(f"Loan {loan_id} not found")
        return loan

    async def list_loans(self, borrower_id: Optional[str] = None, active_only: bool = False) -> List[Loan]:
        return await self.repository.list(borrower_id=borrower_id, active_only=active_only)

    async def list_overdue_loans(self) -> List[Loan]:
        return await self.repository.list_overdue(self.clock.now())

    async def update_due_date(self, loan_id: str, due_date: datetime) -> Loan:
        loan = await self.get_loan(loan_id)
        loan = await self.repository.save(loan.model_copy(update={"due_date": ensure_utc(due_date)}))

        self.audit.record(loan.borrower_id, HistoryEventType.UPDATE, loan_id=loan_id)
        self.audit.log(
            loan.borrower_id,
            ActivityAction.UPDATE_LOAN,
            f"LoanId={loan_id}, DueDate={due_date.isoformat()}",
        )
        logger.info(f"Updated due date of loan {loan_id} to {due_date}")
        return loan

    async def delete_loan(self, loan_id: str) -> Loan:
        loan = await self.get_loan(loan_id)
        await self.repository.delete(loan_id)

        self.audit.record(loan.borrower_id, HistoryEventType.DELETE, loan_id=loan_id)
        self.audit.log(loan.borrower_id, ActivityAction.DELETE_LOAN, f"LoanId={loan_id}")
        logger.info(f"Deleted loan {loan_id}")
        return loan


__all__ = ["LoanManager", "compute_fine", "availability_message"]
