"""
Test configuration and fixtures
Each test gets its own SQLite database file through aiosqlite
"""

import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, List, Optional
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

# Set test environment before the application reads its settings
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./cinebook_test.db"
os.environ["LOCK_BACKEND"] = "local"
os.environ["SENDGRID_API_KEY"] = ""
os.environ["HOLD_SWEEP_INTERVAL_SECONDS"] = "0"

# Import all models BEFORE creating fixtures (create_all needs them registered)
from cinebook.core.database import Base, configure_sqlite
from cinebook.core.locks import LocalShowtimeLock
from cinebook.core.security import create_access_token
from cinebook.models import (
    Branch,
    DiscountType,
    Movie,
    PricingRule,
    PricingRuleType,
    Promotion,
    Room,
    RoomType,
    SeatReservation,
    SeatType,
    Showtime,
    ShowtimeStatus,
    User,
)
from cinebook.services.booking_service import BookingEngine
from cinebook.services.hold_service import HoldManager

ROWS = "ABCDEFGHIJ"


def build_seat_map(rows: str = ROWS, per_row: int = 10) -> dict:
    """10x10 layout; row J is VIP"""
    return {
        f"{row}{number}": {"type": "vip" if row == "J" else "standard", "price": 50.0}
        for row in rows
        for number in range(1, per_row + 1)
    }


@dataclass
class Cinema:
    room_type: RoomType
    room: Room
    movie: Movie
    branch: Branch
    showtime: Showtime
    user: User
    other_user: User


class CinemaFactory:
    """Creates rows in committed sessions of its own"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def add(self, *rows):
        async with self.session_factory() as session:
            session.add_all(rows)
            await session.commit()
        return rows[0] if len(rows) == 1 else rows

    async def user(self, name: str = "Test User") -> User:
        return await self.add(User(email=f"user_{uuid4().hex[:8]}@example.com", full_name=name))

    async def showtime(
        self,
        cinema: "Cinema",
        starts_in: timedelta = timedelta(days=2),
        status: ShowtimeStatus = ShowtimeStatus.SCHEDULED,
        seats_available: Optional[int] = None,
        starts_at: Optional[datetime] = None
    ) -> Showtime:
        return await self.add(Showtime(
            movie_id=cinema.movie.id,
            room_id=cinema.room.id,
            branch_id=cinema.branch.id,
            starts_at=starts_at or datetime.now(timezone.utc) + starts_in,
            status=status,
            seats_available=cinema.room.capacity if seats_available is None else seats_available,
        ))

    async def promotion(self, code: str = "10OFF", **overrides) -> Promotion:
        values = dict(
            name=f"Promotion {code}",
            code=code,
            discount_type=DiscountType.FIXED,
            value=Decimal("10.00"),
            min_purchase=Decimal("50.00"),
            used_count=0,
            is_active=True,
        )
        values.update(overrides)
        return await self.add(Promotion(**values))

    async def rule(self, room_type: RoomType, **overrides) -> PricingRule:
        values = dict(
            name="Rule",
            rule_type=PricingRuleType.SPECIAL,
            room_type_id=room_type.id,
            multiplier=1.0,
            is_active=True,
        )
        values.update(overrides)
        return await self.add(PricingRule(**values))

    async def expire_holds(self, showtime_id):
        """Move every hold on the showtime into the past"""
        async with self.session_factory() as session:
            await session.execute(
                update(SeatReservation)
                .where(SeatReservation.showtime_id == showtime_id)
                .values(expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))
            )
            await session.commit()


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Async engine on a fresh SQLite file"""
    engine = configure_sqlite(create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'cinebook.db'}",
        echo=False,
        poolclass=NullPool,
        connect_args={"timeout": 30},
    ))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async with session_factory() as session:
        try:
            yield session
        finally:
            if session.in_transaction():
                await session.rollback()


@pytest.fixture
def factory(session_factory) -> CinemaFactory:
    return CinemaFactory(session_factory)


@pytest_asyncio.fixture
async def cinema(factory) -> Cinema:
    """Room of 100 seats at base price 50 with one scheduled showtime"""
    room_type = RoomType(name="Standard", code="STD", base_price=Decimal("50.00"))
    branch = Branch(name="Downtown", address="1 Main St", city="Springfield")
    movie = Movie(title="The Long Night", genre="Drama", duration_minutes=120)
    await factory.add(
        room_type,
        branch,
        movie,
        SeatType(code="standard", name="Standard", price_multiplier=1.0),
        SeatType(code="vip", name="VIP", price_multiplier=1.5),
    )

    seat_map = build_seat_map()
    room = await factory.add(Room(
        name="Room 1",
        capacity=len(seat_map),
        branch_id=branch.id,
        room_type_id=room_type.id,
        seat_map=seat_map,
    ))

    cinema = Cinema(
        room_type=room_type,
        room=room,
        movie=movie,
        branch=branch,
        showtime=None,
        user=await factory.user("Ada Buyer"),
        other_user=await factory.user("Bob Rival"),
    )
    cinema.showtime = await factory.showtime(cinema)
    return cinema


@pytest.fixture
def fake_notifier():
    """Notification collaborator that always succeeds"""
    notifier = AsyncMock()
    notifier.send_invoice_email.return_value = True
    notifier.send_ticket_email.return_value = True
    notifier.send_cancellation_email.return_value = True
    return notifier


@pytest.fixture
def showtime_lock() -> LocalShowtimeLock:
    """One lock registry shared by the booking engine and the hold manager"""
    return LocalShowtimeLock(wait_timeout=5)


@pytest.fixture
def engine(fake_notifier, showtime_lock) -> BookingEngine:
    return BookingEngine(notifier=fake_notifier, lock=showtime_lock)


@pytest.fixture
def holds(showtime_lock) -> HoldManager:
    return HoldManager(lock=showtime_lock)


def _all_seats(count: int) -> List[str]:
    seats = [f"{row}{number}" for row in ROWS for number in range(1, 11)]
    extra = [f"K{number}" for number in range(1, max(0, count - len(seats)) + 1)]
    return (seats + extra)[:count]


@pytest_asyncio.fixture
async def client(session_factory):
    """Create test client with a fresh session per request"""
    from cinebook.main import app
    from cinebook.core.database import get_session

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    try:
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


def _auth_headers(user: User) -> dict:
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def seat_ids():
    """seat_ids(n): the first n seat identifiers of the layout, then unknown ones"""
    return _all_seats


@pytest.fixture
def auth_headers():
    """auth_headers(user): bearer token headers for the user"""
    return _auth_headers
