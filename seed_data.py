#!/usr/bin/env python3
"""
Seed database with demo cinema data
"""
import asyncio
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal

from cinebook.core.database import async_session, init_db
from cinebook.core.security import create_access_token
from cinebook.models import (
    AudioType,
    Branch,
    DiscountType,
    Movie,
    PricingRule,
    PricingRuleType,
    Promotion,
    Room,
    RoomType,
    ScreenFormat,
    SeatType,
    Showtime,
    User,
)

ROWS = "ABCDEFGHIJ"
SEATS_PER_ROW = 12


def build_seat_map(rows: str = ROWS, per_row: int = SEATS_PER_ROW) -> dict:
    """Last row is VIP, the two aisle seats of every other row are premium"""
    seat_map = {}
    for row in rows:
        for number in range(1, per_row + 1):
            if row == rows[-1]:
                seat_type = "vip"
            elif number in (1, per_row):
                seat_type = "premium"
            else:
                seat_type = "standard"
            seat_map[f"{row}{number}"] = {"type": seat_type}
    return seat_map


async def create_reference_data(session):
    """Room types, seat types, branch, rooms and movies"""
    standard = RoomType(name="Standard", code="STD", base_price=Decimal("10.00"))
    imax = RoomType(name="IMAX", code="IMAX", base_price=Decimal("16.00"))
    session.add_all([standard, imax])

    session.add_all([
        SeatType(code="standard", name="Standard", price_multiplier=1.0),
        SeatType(code="premium", name="Premium", price_multiplier=1.25),
        SeatType(code="vip", name="VIP", price_multiplier=1.5),
    ])

    branch = Branch(name="CineBook Downtown", address="1 Main St", city="Springfield")
    session.add(branch)
    await session.flush()

    seat_map = build_seat_map()
    room_1 = Room(name="Room 1", capacity=len(seat_map), branch_id=branch.id,
                  room_type_id=standard.id, seat_map=seat_map)
    room_imax = Room(name="IMAX", capacity=len(seat_map), branch_id=branch.id,
                     room_type_id=imax.id, seat_map=seat_map)
    session.add_all([room_1, room_imax])

    movies = [
        Movie(title="The Long Night", genre="Drama", duration_minutes=128),
        Movie(title="Orbit", genre="Sci-Fi", duration_minutes=141),
    ]
    session.add_all(movies)
    await session.flush()
    print("✅ Created rooms, seat types and movies")
    return branch, [room_1, room_imax], movies, [standard, imax]


async def create_showtimes(session, branch, rooms, movies):
    start = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0) + timedelta(days=1)
    showtimes = []
    for day in range(3):
        for index, (room, movie) in enumerate(zip(rooms, movies)):
            showtimes.append(Showtime(
                movie_id=movie.id,
                room_id=room.id,
                branch_id=branch.id,
                starts_at=start + timedelta(days=day, hours=3 * index),
                audio_type=AudioType.SUBTITLED,
                format=ScreenFormat.IMAX if room.name == "IMAX" else ScreenFormat.TWO_D,
                seats_available=room.capacity,
            ))
    session.add_all(showtimes)
    await session.flush()
    print(f"✅ Created {len(showtimes)} showtimes")
    return showtimes


async def create_pricing(session, room_types):
    standard = room_types[0]
    session.add_all([
        PricingRule(
            name="Matinee",
            rule_type=PricingRuleType.TIME_BASED,
            room_type_id=standard.id,
            start_time=time(10, 0),
            end_time=time(16, 0),
            multiplier=0.8,
        ),
        PricingRule(
            name="Half-price Tuesday",
            rule_type=PricingRuleType.DAY_BASED,
            room_type_id=standard.id,
            day_of_week=2,
            multiplier=0.5,
        ),
    ])
    session.add_all([
        Promotion(name="Ten off", code="10OFF", discount_type=DiscountType.FIXED,
                  value=Decimal("10.00"), min_purchase=Decimal("50.00")),
        Promotion(name="Launch week", code="LAUNCH20", discount_type=DiscountType.PERCENTAGE,
                  value=Decimal("20"), max_discount=Decimal("15.00"), usage_limit=100),
    ])
    print("✅ Created pricing rules and promotions")


async def main():
    """Main seeding function"""
    print("🌱 Starting database seeding...")

    await init_db()

    async with async_session() as session:
        async with session.begin():
            demo_user = User(email="demo@cinebook.com", full_name="Demo User")
            session.add(demo_user)
            branch, rooms, movies, room_types = await create_reference_data(session)
            await create_showtimes(session, branch, rooms, movies)
            await create_pricing(session, room_types)

    print("\n🎉 Database seeding completed successfully!")
    print(f"\n🔑 Demo token for {demo_user.email}:")
    print(create_access_token({"sub": str(demo_user.id)}))


if __name__ == "__main__":
    asyncio.run(main())
