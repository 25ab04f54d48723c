"""
Component Tests for Concurrent Circulation

Overlapping requests against one store must never oversell a copy,
exceed a borrowing limit or promote a reservation twice.
"""

import asyncio

import pytest

from microservices.circulation_service.models import CirculationErrorKind, ReservationStatus


@pytest.mark.component
@pytest.mark.asyncio
class TestConcurrentCheckout:
    """Concurrent create_loan calls"""

    async def test_last_copy_goes_to_exactly_one_borrower(self, circulation_service, make_borrower, data_factory):
        # Given: One copy and ten borrowers
        item_id = data_factory.make_item_id()
        await circulation_service.create_stock(item_id, 1)
        borrowers = [make_borrower() for _ in range(10)]

        # When: All of them borrow at once
        responses = await asyncio.gather(
            *(circulation_service.create_loan(user, item_id) for user in borrowers)
        )

        # Then: One success, the rest unavailable, quantity zero
        assert sum(1 for r in responses if r.success) == 1
        assert all(r.error == CirculationErrorKind.UNAVAILABLE for r in responses if not r.success)
        assert (await circulation_service.get_stock(item_id)).stock.quantity == 0
        assert (await circulation_service.list_loans(active_only=True)).total == 1

    async def test_borrowing_limit_holds_under_concurrency(
        self, circulation_service, borrower, data_factory, policy
    ):
        """One borrower racing for many items never exceeds the limit"""
        items = [data_factory.make_item_id() for _ in range(policy.max_active_loans_per_user + 4)]
        for item_id in items:
            await circulation_service.create_stock(item_id, 1)

        responses = await asyncio.gather(
            *(circulation_service.create_loan(borrower, item_id) for item_id in items)
        )

        granted = [r for r in responses if r.success]
        refused = [r for r in responses if not r.success]
        assert len(granted) == policy.max_active_loans_per_user
        assert all(r.error == CirculationErrorKind.POLICY_VIOLATION for r in refused)

        remaining = [(await circulation_service.get_stock(i)).stock.quantity for i in items]
        assert sum(remaining) == len(items) - policy.max_active_loans_per_user


@pytest.mark.component
@pytest.mark.asyncio
class TestConcurrentReturn:
    """Concurrent return_loan calls"""

    async def test_concurrent_returns_promote_distinct_reservations(
        self, circulation_service, make_borrower, data_factory, frozen_clock, mock_notification_client
    ):
        # Given: Two copies out on loan and three queued reservations
        item_id = data_factory.make_item_id()
        await circulation_service.create_stock(item_id, 2)
        holders = [make_borrower(), make_borrower()]
        loans = [(await circulation_service.create_loan(user, item_id)).loan for user in holders]

        waiting = [make_borrower() for _ in range(3)]
        for user in waiting:
            frozen_clock.advance(minutes=1)
            await circulation_service.create_reservation(user, user, item_id)

        mock_notification_client.delay = 0.01

        # When: Both copies come back at once
        responses = await asyncio.gather(
            *(circulation_service.return_loan(loan.loan_id) for loan in loans)
        )

        # Then: The two oldest reservations are promoted, each notified once
        assert all(r.success and r.reservation_notified for r in responses)
        notified = sorted(n["user_id"] for n in mock_notification_client.sent)
        assert notified == sorted(waiting[:2])

        pending = await circulation_service.list_pending_reservations_for_item(item_id)
        assert [r.borrower_id for r in pending.reservations] == [waiting[2]]
        assert (await circulation_service.get_stock(item_id)).stock.quantity == 2

    async def test_same_loan_returned_twice_concurrently(self, circulation_service, borrower, data_factory):
        """Only one of two racing returns succeeds"""
        item_id = data_factory.make_item_id()
        await circulation_service.create_stock(item_id, 1)
        loan = (await circulation_service.create_loan(borrower, item_id)).loan

        first, second = await asyncio.gather(
            circulation_service.return_loan(loan.loan_id),
            circulation_service.return_loan(loan.loan_id),
        )

        assert sorted([first.success, second.success]) == [False, True]
        assert (await circulation_service.get_stock(item_id)).stock.quantity == 1

    async def test_checkout_racing_return_keeps_count_consistent(
        self, circulation_service, make_borrower, data_factory
    ):
        item_id = data_factory.make_item_id()
        await circulation_service.create_stock(item_id, 1)
        holder, other = make_borrower(), make_borrower()
        loan = (await circulation_service.create_loan(holder, item_id)).loan

        returned, borrowed = await asyncio.gather(
            circulation_service.return_loan(loan.loan_id),
            circulation_service.create_loan(other, item_id),
        )

        assert returned.success is True
        quantity = (await circulation_service.get_stock(item_id)).stock.quantity
        active = (await circulation_service.list_loans(active_only=True)).total
        assert quantity + active == 1
        assert borrowed.success is (quantity == 0)

    async def test_reservation_statuses_stay_single_valued(
        self, circulation_service, make_borrower, data_factory
    ):
        item_id = data_factory.make_item_id()
        await circulation_service.create_stock(item_id, 1)
        holder, waiting = make_borrower(), make_borrower()
        loan = (await circulation_service.create_loan(holder, item_id)).loan
        reservation = (await circulation_service.create_reservation(waiting, waiting, item_id)).reservation

        await asyncio.gather(
            circulation_service.return_loan(loan.loan_id),
            circulation_service.list_pending_reservations_for_item(item_id),
        )

        current = (await circulation_service.get_reservation(reservation.reservation_id)).reservation
        assert current.status == ReservationStatus.AVAILABLE
