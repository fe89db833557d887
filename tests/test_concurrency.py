"""
Concurrency tests for booking system
Tests race conditions, double booking prevention, and showtime locking
"""

import pytest
import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock

from sqlalchemy import select

from cinebook.core.exceptions import ConflictError, LockAcquisitionError
from cinebook.core.locks import LocalShowtimeLock, RedisShowtimeLock
from cinebook.core.redis import CircuitBreaker, RedisManager
from cinebook.models.booking import Booking, BookingStatus
from cinebook.models.promotion import Promotion
from cinebook.models.showtime import Showtime
from cinebook.services.availability_service import Holder
from cinebook.services.booking_service import BookingEngine
from cinebook.services.hold_service import HoldManager


@pytest.mark.concurrency
@pytest.mark.asyncio
class TestSeatBookingConcurrency:
    """Test concurrent seat booking scenarios"""

    async def test_concurrent_purchase_of_same_seat(self, engine, cinema, factory, session_factory):
        """Only one of several buyers gets the seat"""
        buyers = [cinema.user, cinema.other_user] + [await factory.user(f"Buyer {i}") for i in range(3)]
        successful_bookings = []
        failed_bookings = []

        async def try_book_seat(user):
            async with session_factory() as session:
                try:
                    result = await engine.purchase(session, cinema.showtime.id, ["E5"], Holder(user.id))
                    successful_bookings.append(result.booking.id)
                except ConflictError:
                    failed_bookings.append(user.id)

        await asyncio.gather(*[try_book_seat(user) for user in buyers])

        assert len(successful_bookings) == 1
        assert len(failed_bookings) == len(buyers) - 1

        async with session_factory() as session:
            showtime = await session.get(Showtime, cinema.showtime.id)
            assert showtime.seats_available == cinema.room.capacity - 1

    async def test_last_seat_race(self, engine, cinema, factory, session_factory):
        """Two buyers for different seats when only one seat is left"""
        showtime = await factory.showtime(cinema, seats_available=1)

        async def buy(user, seat):
            async with session_factory() as session:
                return await engine.purchase(session, showtime.id, [seat], Holder(user.id))

        results = await asyncio.gather(
            buy(cinema.user, "A1"),
            buy(cinema.other_user, "A2"),
            return_exceptions=True
        )

        succeeded = [r for r in results if not isinstance(r, Exception)]
        failed = [r for r in results if isinstance(r, Exception)]
        assert len(succeeded) == 1
        assert len(failed) == 1
        assert isinstance(failed[0], ConflictError)

        async with session_factory() as session:
            assert (await session.get(Showtime, showtime.id)).seats_available == 0

    async def test_overlapping_seat_sets(self, engine, cinema, session_factory):
        """Overlapping requests never produce a seat sold twice"""
        requests = [["F1", "F2"], ["F2", "F3"], ["F3", "F4"], ["F5"]]
        holders = [Holder(cinema.user.id, session_id=f"tab-{i}") for i in range(len(requests))]

        async def buy(seats, holder):
            async with session_factory() as session:
                return await engine.purchase(session, cinema.showtime.id, seats, holder)

        await asyncio.gather(
            *[buy(seats, holder) for seats, holder in zip(requests, holders)],
            return_exceptions=True
        )

        async with session_factory() as session:
            result = await session.execute(
                select(Booking.seats).where(
                    Booking.showtime_id == cinema.showtime.id,
                    Booking.status == BookingStatus.CONFIRMED
                )
            )
            sold = [seat for seats in result.scalars() for seat in seats]
            assert len(sold) == len(set(sold))

            showtime = await session.get(Showtime, cinema.showtime.id)
            assert showtime.seats_available == cinema.room.capacity - len(sold)

    async def test_promotion_usage_limit_under_load(self, engine, cinema, factory, session_factory):
        """A single-use code is redeemed exactly once"""
        await factory.promotion("ONCE", usage_limit=1, value=Decimal("5.00"), min_purchase=None)

        async def buy(seat, user):
            async with session_factory() as session:
                return await engine.purchase(
                    session, cinema.showtime.id, [seat], Holder(user.id), promotion_code="ONCE"
                )

        results = await asyncio.gather(
            buy("G1", cinema.user),
            buy("G2", cinema.other_user),
            buy("G3", cinema.user),
        )

        discounted = [r for r in results if r.booking.discount_amount > 0]
        assert len(discounted) == 1
        assert all(r.promotion_error for r in results if r.booking.discount_amount == 0)

        async with session_factory() as session:
            promotion = (await session.execute(select(Promotion))).scalar_one()
            assert promotion.used_count == 1

    async def test_concurrent_reserve_and_purchase(self, engine, holds, cinema, session_factory):
        """A hold and a purchase racing for the same seat cannot both win"""

        async def hold():
            async with session_factory() as session:
                return await holds.reserve(session, cinema.showtime.id, ["H5"], Holder(cinema.other_user.id))

        async def buy():
            async with session_factory() as session:
                return await engine.purchase(session, cinema.showtime.id, ["H5"], Holder(cinema.user.id))

        results = await asyncio.gather(hold(), buy(), return_exceptions=True)

        assert sum(1 for r in results if isinstance(r, Exception)) == 1
        assert all(isinstance(r, ConflictError) for r in results if isinstance(r, Exception))

    async def test_separate_lock_registries_still_sell_a_seat_once(self, cinema, fake_notifier, session_factory):
        """Two engines that do not share a lock rely on the database alone"""
        engines = [
            BookingEngine(notifier=fake_notifier, lock=LocalShowtimeLock(wait_timeout=5))
            for _ in range(2)
        ]
        buyers = [cinema.user, cinema.other_user]

        async def buy(engine, user):
            async with session_factory() as session:
                result = await engine.purchase(session, cinema.showtime.id, ["E5"], Holder(user.id))
                return result.booking.seats

        results = await asyncio.gather(
            *[buy(engine, user) for engine, user in zip(engines, buyers)],
            return_exceptions=True
        )

        assert [r for r in results if not isinstance(r, Exception)] == [["E5"]]
        assert all(isinstance(r, ConflictError) for r in results if isinstance(r, Exception))

        async with session_factory() as session:
            showtime = await session.get(Showtime, cinema.showtime.id)
            assert showtime.seats_available == cinema.room.capacity - 1

    async def test_separate_lock_registries_reserve_and_purchase(self, cinema, fake_notifier, session_factory):
        """A hold and a purchase without a shared lock cannot both take the seat"""
        engine = BookingEngine(notifier=fake_notifier, lock=LocalShowtimeLock(wait_timeout=5))
        holds = HoldManager(lock=LocalShowtimeLock(wait_timeout=5))

        async def hold():
            async with session_factory() as session:
                return await holds.reserve(session, cinema.showtime.id, ["H6"], Holder(cinema.other_user.id))

        async def buy():
            async with session_factory() as session:
                return await engine.purchase(session, cinema.showtime.id, ["H6"], Holder(cinema.user.id))

        results = await asyncio.gather(hold(), buy(), return_exceptions=True)

        assert sum(1 for r in results if isinstance(r, Exception)) == 1
        assert all(isinstance(r, ConflictError) for r in results if isinstance(r, Exception))


@pytest.mark.concurrency
@pytest.mark.asyncio
class TestShowtimeLocks:
    """LocalShowtimeLock / RedisShowtimeLock"""

    async def test_local_lock_serializes_same_showtime(self):
        lock = LocalShowtimeLock(wait_timeout=5)
        active = []
        overlaps = []

        async def critical(name):
            async with lock.hold("showtime-1"):
                if active:
                    overlaps.append(name)
                active.append(name)
                await asyncio.sleep(0.01)
                active.remove(name)

        await asyncio.gather(*[critical(i) for i in range(5)])
        assert overlaps == []

    async def test_local_lock_times_out(self):
        lock = LocalShowtimeLock(wait_timeout=0.05)

        async with lock.hold("showtime-1"):
            with pytest.raises(LockAcquisitionError):
                async with lock.hold("showtime-1"):
                    pass

        # Other showtimes are independent
        async with lock.hold("showtime-1"):
            async with lock.hold("showtime-2"):
                pass

    async def test_redis_lock_retries_until_acquired(self):
        manager = AsyncMock()
        manager.acquire_lock.side_effect = [False, False, True]
        manager.release_lock.return_value = True
        lock = RedisShowtimeLock(manager=manager, ttl=5, wait_timeout=1, retry_interval=0.001)

        async with lock.hold("abc"):
            pass

        assert manager.acquire_lock.await_count == 3
        resource, identifier = manager.release_lock.await_args.args
        assert resource == "showtime:abc"
        assert manager.acquire_lock.await_args.args == (resource, identifier)

    async def test_redis_lock_released_on_error(self):
        manager = AsyncMock()
        manager.acquire_lock.return_value = True
        lock = RedisShowtimeLock(manager=manager, ttl=5, wait_timeout=1)

        with pytest.raises(RuntimeError):
            async with lock.hold("abc"):
                raise RuntimeError("boom")

        manager.release_lock.assert_awaited_once()

    async def test_redis_lock_times_out(self):
        manager = AsyncMock()
        manager.acquire_lock.return_value = False
        lock = RedisShowtimeLock(manager=manager, ttl=5, wait_timeout=0.02, retry_interval=0.005)

        with pytest.raises(LockAcquisitionError):
            async with lock.hold("abc"):
                pass

        manager.release_lock.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.asyncio
class TestRedisManager:
    """Lock primitives on a mocked Redis client"""

    async def test_acquire_uses_set_nx_ex(self):
        client = AsyncMock()
        client.set.return_value = True
        manager = RedisManager(client=client)

        assert await manager.acquire_lock("showtime:1", "owner-a", ttl=7) is True
        client.set.assert_awaited_once_with("lock:showtime:1", "owner-a", nx=True, ex=7)

    async def test_acquire_taken_lock(self):
        client = AsyncMock()
        client.set.return_value = None
        manager = RedisManager(client=client)

        assert await manager.acquire_lock("showtime:1", "owner-b") is False

    async def test_release_checks_owner(self):
        client = AsyncMock()
        client.eval.side_effect = [1, 0]
        manager = RedisManager(client=client)

        assert await manager.release_lock("showtime:1", "owner-a") is True
        assert await manager.release_lock("showtime:1", "owner-b") is False

    async def test_circuit_breaker_opens_after_failures(self):
        client = AsyncMock()
        client.set.side_effect = ConnectionError("redis down")
        manager = RedisManager(client=client)
        manager.circuit_breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60)

        for _ in range(3):
            assert await manager.acquire_lock("showtime:1", "owner-a") is False

        # Third attempt never reached Redis
        assert client.set.await_count == 2
        assert manager.circuit_breaker.is_open
