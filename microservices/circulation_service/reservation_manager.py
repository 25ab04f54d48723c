"""
Reservation Manager

Owns the FIFO queue of reservations per catalog item: creation,
promotion on return, listing and status maintenance.
"""

import logging
import uuid
from typing import List, Optional

from .audit_trail import AuditTrail
from .models import (
    ACTIVE_RESERVATION_STATUSES,
    RESERVATION_TRANSITIONS,
    ActivityAction,
    HistoryEventType,
    Reservation,
    ReservationStatus,
    ReservationUpdateRequest,
    StockRecord,
)
from .protocols import (
    ClockProtocol,
    ConflictError,
    NotFoundError,
    ReservationRepositoryProtocol,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)


class ReservationManager:
    """Reservation queue operations within one unit of work"""

    def __init__(
        self,
        repository: ReservationRepositoryProtocol,
        audit: AuditTrail,
        clock: ClockProtocol,
    ):
        """
        Initialize reservation manager

        Args:
            repository: Reservation repository bound to the current unit of work
            audit: Deferred history/activity emission
            clock: Time source
        """
        self.repository = repository
        self.audit = audit
        self.clock = clock

    async def create_reservation(self, acting_user_id: str, borrower_id: str, item_id: str) -> Reservation:
        """
        Queue a borrower for an item.

        Current stock is not a precondition; the reservation is a place in
        the future-fulfilment queue.

        Raises:
            UnauthorizedError: If acting_user_id differs from borrower_id
            ConflictError: If the borrower already holds an active reservation for the item
        """
        if acting_user_id != borrower_id:
            raise UnauthorizedError(
                f"User {acting_user_id} may not reserve on behalf of {borrower_id}"
            )

        existing = await self.repository.find_active(borrower_id, item_id)
        if existing:
            raise ConflictError(
                f"Borrower {borrower_id} already has an active reservation "
                f"{existing.reservation_id} for item {item_id}"
            )

        reservation = Reservation(
            reservation_id=f"resv_{uuid.uuid4().hex[:16]}",
            borrower_id=borrower_id,
            item_id=item_id,
            status=ReservationStatus.PENDING,
            created_at=self.clock.now(),
        )
        reservation = await self.repository.add(reservation)

        self.audit.record(borrower_id, HistoryEventType.RESERVATION, reservation_id=reservation.reservation_id)
        self.audit.log(
            borrower_id,
            ActivityAction.CREATE_RESERVATION,
            f"ReservationId={reservation.reservation_id}, ItemId={item_id}",
        )

        logger.info(f"Created reservation {reservation.reservation_id} for borrower {borrower_id} on item {item_id}")
        return reservation

    async def pop_earliest_pending(self, item_id: str, stock: StockRecord) -> Optional[Reservation]:
        """Claim and promote the oldest pending reservation for an item, if any"""
        reservation = await self.repository.claim_earliest_pending(
            item_id, stock.stock_id, self.clock.now()
        )
        if reservation:
            logger.info(
                f"Promoted reservation {reservation.reservation_id} "
                f"for borrower {reservation.borrower_id} on item {item_id}"
            )
        return reservation

    async def held_for_others(self, item_id: str, borrower_id: str) -> int:
        """Copies of an item promised to other borrowers' available reservations"""
        return await self.repository.count_held_for_others(item_id, borrower_id)

    async def complete_for_checkout(self, borrower_id: str, item_id: str) -> Optional[Reservation]:
        """
        Close the borrower's active reservation for an item they just borrowed.

        An available reservation is completed; a pending one is cancelled so
        it is never promoted for a copy the borrower already holds.
        """
        reservation = await self.repository.find_active(borrower_id, item_id)
        if reservation is None:
            return None

        if reservation.status == ReservationStatus.AVAILABLE:
            status = ReservationStatus.COMPLETED
        else:
            status = ReservationStatus.CANCELLED

        reservation = await self.repository.save(reservation.model_copy(update={"status": status}))
        logger.info(f"Reservation {reservation.reservation_id} {status.value} on checkout")
        return reservation

    async def list_for_user(self, borrower_id: str) -> List[Reservation]:
        """Pending and available reservations of a borrower"""
        return await self.repository.list_for_borrower(
            borrower_id, statuses=list(ACTIVE_RESERVATION_STATUSES)
        )

    async def list_pending_for_item(self, item_id: str) -> List[Reservation]:
        return await self.repository.list_pending_for_item(item_id)

    async def list_all(self) -> List[Reservation]:
        return await self.repository.list_all()

    async def get_reservation(self, reservation_id: str) -> Reservation:
        reservation = await self.repository.get(reservation_id)
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        return reservation

    async def update_reservation(self, reservation_id: str, request: ReservationUpdateRequest) -> Reservation:
        """
        Update status and/or item of a reservation.

        The lifecycle is one-way: pending -> available -> completed, and
        pending/available -> cancelled. The item can only change while pending.

        Raises:
            NotFoundError: If the reservation does not exist
            ConflictError: On a backward transition, an item change outside
                pending, or a duplicate active reservation
        """
        reservation = await self.get_reservation(reservation_id)
        changes = {}

        if request.status is not None and request.status != reservation.status:
            if request.status not in RESERVATION_TRANSITIONS[reservation.status]:
                raise ConflictError(
                    f"Reservation {reservation_id} cannot move from "
                    f"{reservation.status.value} to {request.status.value}"
                )
            changes["status"] = request.status
            if request.status == ReservationStatus.AVAILABLE:
                changes["available_at"] = self.clock.now()

        if request.item_id is not None and request.item_id != reservation.item_id:
            if reservation.status != ReservationStatus.PENDING:
                raise ConflictError(f"Reservation {reservation_id} can only change item while pending")
            duplicate = await self.repository.find_active(reservation.borrower_id, request.item_id)
            if duplicate:
                raise ConflictError(
                    f"Borrower {reservation.borrower_id} already has an active reservation "
                    f"for item {request.item_id}"
                )
            changes["item_id"] = request.item_id

        if not changes:
            return reservation

        reservation = await self.repository.save(reservation.model_copy(update=changes))
        self.audit.log(
            reservation.borrower_id,
            ActivityAction.UPDATE_RESERVATION,
            f"ReservationId={reservation.reservation_id}, Status={reservation.status.value}",
        )
        logger.info(f"Updated reservation {reservation_id}: {sorted(changes)}")
        return reservation

    async def delete_reservation(self, reservation_id: str) -> Reservation:
        reservation = await self.get_reservation(reservation_id)
        await self.repository.delete(reservation_id)
        self.audit.log(
            reservation.borrower_id,
            ActivityAction.DELETE_RESERVATION,
            f"ReservationId={reservation_id}",
        )
        logger.info(f"Deleted reservation {reservation_id}")
        return reservation


__all__ = ["ReservationManager"]
