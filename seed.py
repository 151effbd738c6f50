"""
Seed script -- populates the database with the service tiers offered at launch.

Run after migrations:
    python seed.py

Creates:
  - 3 transport tiers (moto, economy, comfort)
  - 2 delivery tiers, 1 errand tier, 2 parcel tiers
"""

import asyncio

from sqlalchemy import text

from src.infrastructure.database import async_session_factory, engine
from src.infrastructure.models import ServiceTierModel
from src.domain.enums import ServiceType, VehicleType


TIERS = [
    # Transport
    {"service": ServiceType.TRANSPORT, "name": "Moto", "vehicle_type": VehicleType.MOTORCYCLE,
     "base_fare": 25.0, "per_km_rate": 8.0, "per_minute_rate": 0.5},
    {"service": ServiceType.TRANSPORT, "name": "Economy", "vehicle_type": VehicleType.CAR,
     "base_fare": 50.0, "per_km_rate": 15.0, "per_minute_rate": 1.0},
    {"service": ServiceType.TRANSPORT, "name": "Comfort", "vehicle_type": VehicleType.CAR,
     "base_fare": 80.0, "per_km_rate": 22.0, "per_minute_rate": 1.5},
    # Delivery
    {"service": ServiceType.DELIVERY, "name": "Standard", "vehicle_type": VehicleType.MOTORCYCLE,
     "base_fare": 30.0, "per_km_rate": 9.0, "per_minute_rate": 0.0},
    {"service": ServiceType.DELIVERY, "name": "Priority", "vehicle_type": VehicleType.MOTORCYCLE,
     "base_fare": 45.0, "per_km_rate": 11.0, "per_minute_rate": 0.0},
    # Errand
    {"service": ServiceType.ERRAND, "name": "Errand", "vehicle_type": VehicleType.MOTORCYCLE,
     "base_fare": 40.0, "per_km_rate": 10.0, "per_minute_rate": 1.2},
    # Parcel
    {"service": ServiceType.PARCEL, "name": "Small parcel", "vehicle_type": VehicleType.MOTORCYCLE,
     "base_fare": 35.0, "per_km_rate": 9.0, "per_minute_rate": 0.0},
    {"service": ServiceType.PARCEL, "name": "Large parcel", "vehicle_type": VehicleType.VAN,
     "base_fare": 90.0, "per_km_rate": 18.0, "per_minute_rate": 0.0},
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM service_tiers"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        for t in TIERS:
            session.add(ServiceTierModel(**t))
        await session.flush()
        print(f"  Created {len(TIERS)} service tiers")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
