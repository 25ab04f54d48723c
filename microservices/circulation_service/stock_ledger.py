"""
Stock Ledger

Owns every mutation of per-item copy counts. Quantities are clamped at
zero; availability is derived from the quantity.
"""

import logging
from typing import Optional

from .models import StockRecord
from .protocols import StockRepositoryProtocol, UnavailableError

logger = logging.getLogger(__name__)


def clamp_quantity(quantity: int, delta: int) -> int:
    """quantity + delta, never below zero"""
    return max(0, quantity + delta)


class StockLedger:
    """Copy-count mutation over a StockRepository"""

    def __init__(self, repository: StockRepositoryProtocol):
        self.repository = repository

    async def increase(self, record: StockRecord) -> Optional[StockRecord]:
        """Return one copy to the shelf"""
        return await self.adjust_by(record, 1)

    async def decrease(self, record: StockRecord) -> Optional[StockRecord]:
        """Remove one copy, clamping at zero"""
        return await self.adjust_by(record, -1)

    async def adjust_by(self, record: StockRecord, delta: int) -> Optional[StockRecord]:
        """
        Apply quantity = max(0, quantity + delta) and persist it.

        Never raises for a business reason. Returns None when the record
        no longer exists in the repository.
        """
        updated = await self.repository.adjust(record.item_id, delta)
        if updated is None:
            logger.warning(f"Stock record for item {record.item_id} vanished during adjustment")
            return None

        if delta < 0 and updated.quantity == 0:
            logger.warning(f"Stock for item {updated.item_id} at zero after delta {delta}")
        logger.debug(f"Stock for item {updated.item_id} now {updated.quantity}")
        return updated

    async def checkout_copy(self, item_id: str) -> StockRecord:
        """
        Take one copy for a loan, atomically.

        Raises:
            UnavailableError: If the item has no stock record or no copy left
        """
        record = await self.repository.load(item_id)
        if record is None:
            raise UnavailableError(f"No stock record for item {item_id}")

        updated = await self.repository.decrement_if_available(item_id)
        if updated is None:
            raise UnavailableError(f"No copy of item {item_id} is available")

        logger.debug(f"Checked out a copy of item {item_id}, {updated.quantity} left")
        return updated


__all__ = ["StockLedger", "clamp_quantity"]
