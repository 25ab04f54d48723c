"""
In-Memory Store Unit Tests

Unit-of-work commit, rollback and after-commit behaviour of
InMemoryCirculationStore.
"""
import pytest

from microservices.circulation_service.memory_repository import InMemoryCirculationStore
from microservices.circulation_service.models import ReservationStatus
from microservices.circulation_service.protocols import ConflictError

pytestmark = [pytest.mark.unit]


@pytest.mark.asyncio
class TestInMemoryUnitOfWork:

    async def test_commit_keeps_changes_and_runs_callbacks(self, data_factory):
        store = InMemoryCirculationStore()
        record = data_factory.make_stock(quantity=2)
        ran = []

        async with store.unit_of_work() as uow:
            await uow.stock.save(record)

            async def _callback():
                ran.append("after")

            uow.after_commit(_callback)
            assert ran == []

        assert ran == ["after"]
        assert store.stock[record.item_id].quantity == 2

    async def test_exception_restores_state_and_skips_callbacks(self, data_factory):
        store = InMemoryCirculationStore()
        record = data_factory.make_stock(quantity=1)
        async with store.unit_of_work() as uow:
            await uow.stock.save(record)

        ran = []
        with pytest.raises(RuntimeError):
            async with store.unit_of_work() as uow:
                await uow.stock.decrement_if_available(record.item_id)
                await uow.loans.add(data_factory.make_loan(item_id=record.item_id))

                async def _callback():
                    ran.append("after")

                uow.after_commit(_callback)
                raise RuntimeError("boom")

        assert ran == []
        assert store.stock[record.item_id].quantity == 1
        assert store.loans == {}

    async def test_failing_callback_does_not_block_others(self, data_factory):
        store = InMemoryCirculationStore()
        ran = []

        async with store.unit_of_work() as uow:
            async def _broken():
                raise ValueError("sink down")

            async def _ok():
                ran.append("ok")

            uow.after_commit(_broken)
            uow.after_commit(_ok)

        assert ran == ["ok"]


@pytest.mark.asyncio
class TestInMemoryRepositories:

    async def test_decrement_never_goes_negative(self, data_factory):
        store = InMemoryCirculationStore()
        record = data_factory.make_stock(quantity=1)

        async with store.unit_of_work() as uow:
            await uow.stock.save(record)
            assert (await uow.stock.decrement_if_available(record.item_id)).quantity == 0
            assert await uow.stock.decrement_if_available(record.item_id) is None

        assert store.stock[record.item_id].quantity == 0

    async def test_duplicate_active_reservation_rejected(self, data_factory):
        store = InMemoryCirculationStore()
        user_id, item_id = data_factory.make_user_id(), data_factory.make_item_id()

        async with store.unit_of_work() as uow:
            await uow.reservations.add(data_factory.make_reservation(user_id, item_id))
            with pytest.raises(ConflictError):
                await uow.reservations.add(data_factory.make_reservation(user_id, item_id))

    async def test_claim_earliest_pending_uses_insertion_order_on_ties(self, data_factory):
        store = InMemoryCirculationStore()
        item_id = data_factory.make_item_id()
        first = data_factory.make_reservation(item_id=item_id)
        second = data_factory.make_reservation(item_id=item_id)

        async with store.unit_of_work() as uow:
            await uow.reservations.add(first)
            await uow.reservations.add(second)
            claimed = await uow.reservations.claim_earliest_pending(
                item_id, data_factory.make_stock_id(), data_factory.make_timestamp()
            )

        assert claimed.reservation_id == first.reservation_id
        assert claimed.status == ReservationStatus.AVAILABLE
        assert store.reservations[second.reservation_id].status == ReservationStatus.PENDING


def test_store_and_clock_satisfy_protocols():
    from microservices.circulation_service.clock import SystemClock
    from microservices.circulation_service.protocols import CirculationStoreProtocol, ClockProtocol

    assert isinstance(InMemoryCirculationStore(), CirculationStoreProtocol)
    assert isinstance(SystemClock(), ClockProtocol)
    assert SystemClock().now().tzinfo is not None
