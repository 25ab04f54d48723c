"""
In-Memory Circulation Store

Dictionary-backed implementation of the circulation repositories for
local runs and tests. A single asyncio.Lock is held for the whole unit
of work, so every unit of work is serialised; on failure the state taken
at the start of the unit of work is restored.
"""

import asyncio
import itertools
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Dict, List, Optional

from .models import (
    ACTIVE_RESERVATION_STATUSES,
    Loan,
    Reservation,
    ReservationStatus,
    StockRecord,
)
from .protocols import ConflictError
from .stock_ledger import clamp_quantity
from .unit_of_work import BaseUnitOfWork

logger = logging.getLogger(__name__)


class InMemoryStockRepository:
    """Stock records keyed by item_id"""

    def __init__(self, store: "InMemoryCirculationStore"):
        self.store = store

    async def load(self, item_id: str) -> Optional[StockRecord]:
        record = self.store.stock.get(item_id)
        return record.model_copy() if record else None

    async def save(self, record: StockRecord) -> StockRecord:
        self.store.stock[record.item_id] = record.model_copy()
        return record.model_copy()

    async def adjust(self, item_id: str, delta: int) -> Optional[StockRecord]:
        record = self.store.stock.get(item_id)
        if record is None:
            return None
        updated = record.model_copy(update={"quantity": clamp_quantity(record.quantity, delta)})
        self.store.stock[item_id] = updated
        return updated.model_copy()

    async def decrement_if_available(self, item_id: str) -> Optional[StockRecord]:
        record = self.store.stock.get(item_id)
        if record is None or record.quantity <= 0:
            return None
        updated = record.model_copy(update={"quantity": record.quantity - 1})
        self.store.stock[item_id] = updated
        return updated.model_copy()


class InMemoryLoanRepository:
    """Loans keyed by loan_id"""

    def __init__(self, store: "InMemoryCirculationStore"):
        self.store = store

    async def get(self, loan_id: str) -> Optional[Loan]:
        loan = self.store.loans.get(loan_id)
        return loan.model_copy() if loan else None

    async def get_active(self, loan_id: str) -> Optional[Loan]:
        loan = self.store.loans.get(loan_id)
        return loan.model_copy() if loan and loan.active else None

    async def add(self, loan: Loan) -> Loan:
        self.store.loans[loan.loan_id] = loan.model_copy()
        return loan.model_copy()

    async def save(self, loan: Loan) -> Loan:
        self.store.loans[loan.loan_id] = loan.model_copy()
        return loan.model_copy()

    async def delete(self, loan_id: str) -> bool:
        return self.store.loans.pop(loan_id, None) is not None

    async def count_active_for_borrower(self, borrower_id: str) -> int:
        return sum(
            1 for loan in self.store.loans.values()
            if loan.borrower_id == borrower_id and loan.active
        )

    async def list(self, borrower_id: Optional[str] = None, active_only: bool = False) -> List[Loan]:
        loans = [
            loan.model_copy() for loan in self.store.loans.values()
            if (borrower_id is None or loan.borrower_id == borrower_id)
            and (not active_only or loan.active)
        ]
        return sorted(loans, key=lambda loan: loan.checkout_date)

    async def list_overdue(self, now: datetime) -> List[Loan]:
        loans = [
            loan.model_copy() for loan in self.store.loans.values()
            if loan.active and loan.due_date < now
        ]
        return sorted(loans, key=lambda loan: loan.due_date)


class InMemoryReservationRepository:
    """Reservations keyed by reservation_id, ordered by (created_at, insertion)"""

    def __init__(self, store: "InMemoryCirculationStore"):
        self.store = store

    def _sorted(self, reservations) -> List[Reservation]:
        order = self.store.reservation_order
        return [
            r.model_copy() for r in sorted(
                reservations, key=lambda r: (r.created_at, order.get(r.reservation_id, 0))
            )
        ]

    async def get(self, reservation_id: str) -> Optional[Reservation]:
        reservation = self.store.reservations.get(reservation_id)
        return reservation.model_copy() if reservation else None

    async def add(self, reservation: Reservation) -> Reservation:
        if reservation.active and await self.find_active(reservation.borrower_id, reservation.item_id):
            raise ConflictError(
                f"Borrower {reservation.borrower_id} already has an active reservation "
                f"for item {reservation.item_id}"
            )
        self.store.reservations[reservation.reservation_id] = reservation.model_copy()
        self.store.reservation_order[reservation.reservation_id] = next(self.store.sequence)
        return reservation.model_copy()

    async def save(self, reservation: Reservation) -> Reservation:
        self.store.reservations[reservation.reservation_id] = reservation.model_copy()
        return reservation.model_copy()

    async def delete(self, reservation_id: str) -> bool:
        self.store.reservation_order.pop(reservation_id, None)
        return self.store.reservations.pop(reservation_id, None) is not None

    async def find_active(self, borrower_id: str, item_id: str) -> Optional[Reservation]:
        for reservation in self.store.reservations.values():
            if (
                reservation.borrower_id == borrower_id
                and reservation.item_id == item_id
                and reservation.status in ACTIVE_RESERVATION_STATUSES
            ):
                return reservation.model_copy()
        return None

    async def list_for_borrower(
        self, borrower_id: str, statuses: Optional[List[ReservationStatus]] = None
    ) -> List[Reservation]:
        return self._sorted(
            r for r in self.store.reservations.values()
            if r.borrower_id == borrower_id and (statuses is None or r.status in statuses)
        )

    async def list_pending_for_item(self, item_id: str) -> List[Reservation]:
        return self._sorted(
            r for r in self.store.reservations.values()
            if r.item_id == item_id and r.status == ReservationStatus.PENDING
        )

    async def list_all(self) -> List[Reservation]:
        return self._sorted(self.store.reservations.values())

    async def count_held_for_others(self, item_id: str, borrower_id: str) -> int:
        return sum(
            1 for r in self.store.reservations.values()
            if r.item_id == item_id
            and r.borrower_id != borrower_id
            and r.status == ReservationStatus.AVAILABLE
        )

    async def claim_earliest_pending(
        self, item_id: str, stock_id: str, available_at: datetime
    ) -> Optional[Reservation]:
        pending = await self.list_pending_for_item(item_id)
        if not pending:
            return None

        promoted = pending[0].model_copy(update={
            "status": ReservationStatus.AVAILABLE,
            "available_at": available_at,
            "assigned_stock_id": stock_id,
        })
        self.store.reservations[promoted.reservation_id] = promoted
        return promoted.model_copy()


class InMemoryUnitOfWork(BaseUnitOfWork):
    """Unit of work over the in-memory store"""

    def __init__(self, store: "InMemoryCirculationStore"):
        super().__init__()
        self.stock = InMemoryStockRepository(store)
        self.loans = InMemoryLoanRepository(store)
        self.reservations = InMemoryReservationRepository(store)

    async def lock_borrower(self, borrower_id: str) -> None:
        # The store lock already serialises every unit of work
        return None


class InMemoryCirculationStore:
    """CirculationStoreProtocol backed by dictionaries"""

    def __init__(self):
        self.stock: Dict[str, StockRecord] = {}
        self.loans: Dict[str, Loan] = {}
        self.reservations: Dict[str, Reservation] = {}
        self.reservation_order: Dict[str, int] = {}
        self.sequence = itertools.count(1)
        self._lock = asyncio.Lock()

    def _snapshot(self):
        return (
            dict(self.stock),
            dict(self.loans),
            dict(self.reservations),
            dict(self.reservation_order),
        )

    def _restore(self, snapshot) -> None:
        self.stock, self.loans, self.reservations, self.reservation_order = snapshot

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[InMemoryUnitOfWork]:
        uow = InMemoryUnitOfWork(self)
        async with self._lock:
            snapshot = self._snapshot()
            try:
                yield uow
            except BaseException:
                self._restore(snapshot)
                logger.debug("In-memory unit of work rolled back")
                raise
        await uow.run_after_commit()


__all__ = [
    "InMemoryCirculationStore",
    "InMemoryUnitOfWork",
    "InMemoryStockRepository",
    "InMemoryLoanRepository",
    "InMemoryReservationRepository",
]
