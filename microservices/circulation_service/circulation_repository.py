"""
Circulation Service Data Repository

Data access layer - PostgreSQL via asyncpg. Each unit of work runs on one
pooled connection inside one transaction; the race-prone steps (copy
decrement, reservation promotion, borrower loan cap) are single
conditional statements or row/advisory locks.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, List, Optional

import asyncpg

from core.postgres_client import PostgresClientWrapper

from .models import Loan, Reservation, ReservationStatus, StockRecord
from .protocols import ConflictError
from .unit_of_work import BaseUnitOfWork

logger = logging.getLogger(__name__)


class PostgresStockRepository:
    """circulation.stock"""

    def __init__(self, conn: asyncpg.Connection, schema: str):
        self.conn = conn
        self.table = f"{schema}.stock"

    async def load(self, item_id: str) -> Optional[StockRecord]:
        row = await self.conn.fetchrow(f"SELECT * FROM {self.table} WHERE item_id = $1", item_id)
        return StockRecord.model_validate(dict(row)) if row else None

    async def save(self, record: StockRecord) -> StockRecord:
        query = f'''
            INSERT INTO {self.table} (stock_id, item_id, quantity)
            VALUES ($1, $2, $3)
            ON CONFLICT (item_id) DO UPDATE
                SET quantity = EXCLUDED.quantity, updated_at = NOW()
            RETURNING *
        '''
        try:
            row = await self.conn.fetchrow(query, record.stock_id, record.item_id, record.quantity)
            return StockRecord.model_validate(dict(row))
        except Exception as e:
            logger.error(f"Failed to save stock for item {record.item_id}: {e}")
            raise

    async def adjust(self, item_id: str, delta: int) -> Optional[StockRecord]:
        query = f'''
            UPDATE {self.table}
            SET quantity = GREATEST(0, quantity + $2), updated_at = NOW()
            WHERE item_id = $1
            RETURNING *
        '''
        row = await self.conn.fetchrow(query, item_id, delta)
        return StockRecord.model_validate(dict(row)) if row else None

    async def decrement_if_available(self, item_id: str) -> Optional[StockRecord]:
        query = f'''
            UPDATE {self.table}
            SET quantity = quantity - 1, updated_at = NOW()
            WHERE item_id = $1 AND quantity > 0
            RETURNING *
        '''
        row = await self.conn.fetchrow(query, item_id)
        return StockRecord.model_validate(dict(row)) if row else None


class PostgresLoanRepository:
    """circulation.loans"""

    def __init__(self, conn: asyncpg.Connection, schema: str):
        self.conn = conn
        self.table = f"{schema}.loans"

    async def get(self, loan_id: str) -> Optional[Loan]:
        row = await self.conn.fetchrow(f"SELECT * FROM {self.table} WHERE loan_id = $1", loan_id)
        return Loan.model_validate(dict(row)) if row else None

    async def get_active(self, loan_id: str) -> Optional[Loan]:
        # Row lock: a concurrent return of the same loan waits, then sees it returned
        query = f"SELECT * FROM {self.table} WHERE loan_id = $1 AND return_date IS NULL FOR UPDATE"
        row = await self.conn.fetchrow(query, loan_id)
        return Loan.model_validate(dict(row)) if row else None

    async def add(self, loan: Loan) -> Loan:
        query = f'''
            INSERT INTO {self.table} (
                loan_id, borrower_id, item_id, stock_id,
                checkout_date, due_date, return_date, fine
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            RETURNING *
        '''
        try:
            row = await self.conn.fetchrow(
                query,
                loan.loan_id, loan.borrower_id, loan.item_id, loan.stock_id,
                loan.checkout_date, loan.due_date, loan.return_date, loan.fine,
            )
            return Loan.model_validate(dict(row))
        except Exception as e:
            logger.error(f"Failed to create loan {loan.loan_id}: {e}")
            raise

    async def save(self, loan: Loan) -> Loan:
        query = f'''
            UPDATE {self.table}
            SET due_date = $2, return_date = $3, fine = $4, updated_at = NOW()
            WHERE loan_id = $1
            RETURNING *
        '''
        try:
            row = await self.conn.fetchrow(query, loan.loan_id, loan.due_date, loan.return_date, loan.fine)
            return Loan.model_validate(dict(row))
        except Exception as e:
            logger.error(f"Failed to update loan {loan.loan_id}: {e}")
            raise

    async def delete(self, loan_id: str) -> bool:
        result = await self.conn.execute(f"DELETE FROM {self.table} WHERE loan_id = $1", loan_id)
        return result.endswith(" 1")

    async def count_active_for_borrower(self, borrower_id: str) -> int:
        query = f"SELECT COUNT(*) FROM {self.table} WHERE borrower_id = $1 AND return_date IS NULL"
        return await self.conn.fetchval(query, borrower_id)

    async def list(self, borrower_id: Optional[str] = None, active_only: bool = False) -> List[Loan]:
        conditions = []
        params = []

        if borrower_id:
            params.append(borrower_id)
            conditions.append(f"borrower_id = ${len(params)}")

        if active_only:
            conditions.append("return_date IS NULL")

        where_clause = " AND ".join(conditions) if conditions else "TRUE"
        query = f"SELECT * FROM {self.table} WHERE {where_clause} ORDER BY checkout_date"
        rows = await self.conn.fetch(query, *params)
        return [Loan.model_validate(dict(r)) for r in rows]

    async def list_overdue(self, now: datetime) -> List[Loan]:
        query = f"SELECT * FROM {self.table} WHERE return_date IS NULL AND due_date < $1 ORDER BY due_date"
        rows = await self.conn.fetch(query, now)
        return [Loan.model_validate(dict(r)) for r in rows]


class PostgresReservationRepository:
    """circulation.reservations"""

    def __init__(self, conn: asyncpg.Connection, schema: str):
        self.conn = conn
        self.table = f"{schema}.reservations"

    async def get(self, reservation_id: str) -> Optional[Reservation]:
        row = await self.conn.fetchrow(f"SELECT * FROM {self.table} WHERE reservation_id = $1", reservation_id)
        return Reservation.model_validate(dict(row)) if row else None

    async def add(self, reservation: Reservation) -> Reservation:
        query = f'''
            INSERT INTO {self.table} (
                reservation_id, borrower_id, item_id, status,
                created_at, available_at, assigned_stock_id
            ) VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING *
        '''
        try:
            row = await self.conn.fetchrow(
                query,
                reservation.reservation_id, reservation.borrower_id, reservation.item_id,
                reservation.status.value, reservation.created_at,
                reservation.available_at, reservation.assigned_stock_id,
            )
        except asyncpg.UniqueViolationError as e:
            raise ConflictError(
                f"Borrower {reservation.borrower_id} already has an active reservation "
                f"for item {reservation.item_id}"
            ) from e
        return Reservation.model_validate(dict(row))

    async def save(self, reservation: Reservation) -> Reservation:
        query = f'''
            UPDATE {self.table}
            SET item_id = $2, status = $3, available_at = $4, assigned_stock_id = $5, updated_at = NOW()
            WHERE reservation_id = $1
            RETURNING *
        '''
        try:
            row = await self.conn.fetchrow(
                query,
                reservation.reservation_id, reservation.item_id, reservation.status.value,
                reservation.available_at, reservation.assigned_stock_id,
            )
        except asyncpg.UniqueViolationError as e:
            raise ConflictError(
                f"Borrower {reservation.borrower_id} already has an active reservation "
                f"for item {reservation.item_id}"
            ) from e
        return Reservation.model_validate(dict(row))

    async def delete(self, reservation_id: str) -> bool:
        result = await self.conn.execute(f"DELETE FROM {self.table} WHERE reservation_id = $1", reservation_id)
        return result.endswith(" 1")

    async def find_active(self, borrower_id: str, item_id: str) -> Optional[Reservation]:
        query = f'''
            SELECT * FROM {self.table}
            WHERE borrower_id = $1 AND item_id = $2 AND status IN ('pending', 'available')
        '''
        row = await self.conn.fetchrow(query, borrower_id, item_id)
        return Reservation.model_validate(dict(row)) if row else None

    async def list_for_borrower(
        self, borrower_id: str, statuses: Optional[List[ReservationStatus]] = None
    ) -> List[Reservation]:
        if statuses:
            query = f'''
                SELECT * FROM {self.table}
                WHERE borrower_id = $1 AND status = ANY($2::text[])
                ORDER BY created_at, seq
            '''
            rows = await self.conn.fetch(query, borrower_id, [s.value for s in statuses])
        else:
            query = f"SELECT * FROM {self.table} WHERE borrower_id = $1 ORDER BY created_at, seq"
            rows = await self.conn.fetch(query, borrower_id)
        return [Reservation.model_validate(dict(r)) for r in rows]

    async def list_pending_for_item(self, item_id: str) -> List[Reservation]:
        query = f'''
            SELECT * FROM {self.table}
            WHERE item_id = $1 AND status = 'pending'
            ORDER BY created_at, seq
        '''
        rows = await self.conn.fetch(query, item_id)
        return [Reservation.model_validate(dict(r)) for r in rows]

    async def list_all(self) -> List[Reservation]:
        rows = await self.conn.fetch(f"SELECT * FROM {self.table} ORDER BY created_at, seq")
        return [Reservation.model_validate(dict(r)) for r in rows]

    async def count_held_for_others(self, item_id: str, borrower_id: str) -> int:
        query = f'''
            SELECT COUNT(*) FROM {self.table}
            WHERE item_id = $1 AND borrower_id <> $2 AND status = 'available'
        '''
        return await self.conn.fetchval(query, item_id, borrower_id)

    async def claim_earliest_pending(
        self, item_id: str, stock_id: str, available_at: datetime
    ) -> Optional[Reservation]:
        # Returns of the same item are already serialised on the stock row,
        # so the earliest pending row is always visible here and never skipped
        query = f'''
            UPDATE {self.table}
            SET status = 'available', available_at = $3, assigned_stock_id = $2, updated_at = NOW()
            WHERE reservation_id = (
                SELECT reservation_id FROM {self.table}
                WHERE item_id = $1 AND status = 'pending'
                ORDER BY created_at, seq
                LIMIT 1
                FOR UPDATE
            )
            RETURNING *
        '''
        row = await self.conn.fetchrow(query, item_id, stock_id, available_at)
        return Reservation.model_validate(dict(row)) if row else None


class PostgresUnitOfWork(BaseUnitOfWork):
    """Unit of work on one connection inside one transaction"""

    def __init__(self, conn: asyncpg.Connection, schema: str):
        super().__init__()
        self.conn = conn
        self.stock = PostgresStockRepository(conn, schema)
        self.loans = PostgresLoanRepository(conn, schema)
        self.reservations = PostgresReservationRepository(conn, schema)

    async def lock_borrower(self, borrower_id: str) -> None:
        # Released automatically at commit or rollback
        await self.conn.execute("SELECT pg_advisory_xact_lock(hashtext($1))", borrower_id)


class CirculationRepository:
    """Circulation store - PostgreSQL (Async)"""

    def __init__(self, db: PostgresClientWrapper, schema: str = "circulation"):
        self.db = db
        self.schema = schema
        self._tables_initialized = False

    async def initialize(self) -> None:
        """Create schema, tables and indexes if missing"""
        if self._tables_initialized:
            return

        statements = [
            f"CREATE SCHEMA IF NOT EXISTS {self.schema}",
            f'''
            CREATE TABLE IF NOT EXISTS {self.schema}.stock (
                stock_id TEXT PRIMARY KEY,
                item_id TEXT NOT NULL UNIQUE,
                quantity INTEGER NOT NULL DEFAULT 0 CHECK (quantity >= 0),
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            ''',
            f'''
            CREATE TABLE IF NOT EXISTS {self.schema}.loans (
                loan_id TEXT PRIMARY KEY,
                borrower_id TEXT NOT NULL,
                item_id TEXT NOT NULL,
                stock_id TEXT NOT NULL,
                checkout_date TIMESTAMPTZ NOT NULL,
                due_date TIMESTAMPTZ NOT NULL,
                return_date TIMESTAMPTZ,
                fine NUMERIC(10, 2) NOT NULL DEFAULT 0 CHECK (fine >= 0),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            ''',
            f'''
            CREATE TABLE IF NOT EXISTS {self.schema}.reservations (
                seq BIGSERIAL,
                reservation_id TEXT PRIMARY KEY,
                borrower_id TEXT NOT NULL,
                item_id TEXT NOT NULL,
                status TEXT NOT NULL CHECK (status IN ('pending', 'available', 'completed', 'cancelled')),
                created_at TIMESTAMPTZ NOT NULL,
                available_at TIMESTAMPTZ,
                assigned_stock_id TEXT,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            ''',
            f'''
            CREATE UNIQUE INDEX IF NOT EXISTS uq_reservations_active
            ON {self.schema}.reservations (borrower_id, item_id)
            WHERE status IN ('pending', 'available')
            ''',
            f'''
            CREATE INDEX IF NOT EXISTS idx_reservations_pending_queue
            ON {self.schema}.reservations (item_id, created_at, seq)
            WHERE status = 'pending'
            ''',
            f'''
            CREATE INDEX IF NOT EXISTS idx_loans_active_borrower
            ON {self.schema}.loans (borrower_id)
            WHERE return_date IS NULL
            ''',
        ]

        async with self.db.transaction() as conn:
            for statement in statements:
                await conn.execute(statement)

        self._tables_initialized = True
        logger.info(f"Circulation tables ready in schema {self.schema}")

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[PostgresUnitOfWork]:
        async with self.db.transaction() as conn:
            uow = PostgresUnitOfWork(conn, self.schema)
            yield uow
        await uow.run_after_commit()

    async def close(self) -> None:
        await self.db.close()
        logger.info("Circulation repository database connection closed")


__all__ = [
    "CirculationRepository",
    "PostgresUnitOfWork",
    "PostgresStockRepository",
    "PostgresLoanRepository",
    "PostgresReservationRepository",
]
