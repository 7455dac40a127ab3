# seed_database.py
"""
Seed the database with actors, locations and sample assets.

Usage:
    python seed_database.py            # Create tables (if missing) + seed
    python seed_database.py --reset    # Drop all tables first

Assets are registered through the same code path as the API, so every seeded
asset gets its generated number and creation history entry. Prints a bearer
token for each seeded user.
"""
import argparse
import asyncio

from sqlalchemy import select, func

from config import settings
from core.lifecycle import get_transition_rules
from core.logging_config import configure_logging
from core.security import create_access_token
from db import AsyncSessionLocal, engine as db_engine, init_db
from db_base import Base
from db_models.asset import Asset, AssetType, AssignmentType
from db_models.location import Location
from db_models.user import User, UserRole
from api.assets import db_manager as assets_db
from api.transitions.db_manager import TransitionEngine


USERS = [
    {"email": "admin@example.com", "full_name": "Asset Admin", "role": UserRole.ADMIN.value},
    {"email": "tech@example.com", "full_name": "Build Technician", "role": UserRole.USER.value},
]

LOCATIONS = [
    {"name": "HQ Stockroom", "description": "Main building, ground floor"},
    {"name": "Build Bench", "description": "Imaging and configuration area"},
    {"name": "Branch Office", "description": "Satellite office store"},
]

# (type, serial, description, department)
ASSETS = [
    (AssetType.LAPTOP, "LT-SN-0001", "14in business laptop", "Finance"),
    (AssetType.LAPTOP, "LT-SN-0002", "14in business laptop", "Engineering"),
    (AssetType.DESKTOP, "DT-SN-0001", "Small form factor desktop", "Operations"),
    (AssetType.MONITOR, "MN-SN-0001", "27in monitor", "Engineering"),
    (AssetType.MONITOR, "MN-SN-0002", "24in monitor", None),
    (AssetType.MOBILE_PHONE, "MP-SN-0001", "Company phone", "Sales"),
    (AssetType.TABLET, "TB-SN-0001", "Field tablet", "Operations"),
]


async def reset_tables() -> None:
    import db_models  # noqa: F401

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    print("[OK] Dropped all tables")


async def seed() -> None:
    engine = TransitionEngine(get_transition_rules())

    async with AsyncSessionLocal() as db:
        result = await db.execute(select(func.count(Asset.id)))
        existing = result.scalar() or 0
        if existing:
            print(f"Database already has {existing} assets, skipping seed")
            return

        users = []
        for data in USERS:
            user = User(is_active=True, **data)
            db.add(user)
            users.append(user)
        locations = [Location(is_active=True, **data) for data in LOCATIONS]
        db.add_all(locations)
        await db.commit()
        print(f"[OK] Created {len(users)} users and {len(locations)} locations")

        admin = users[0]
        for asset_type, serial, description, department in ASSETS:
            asset = await assets_db.create_asset(
                db,
                engine,
                serial_number=serial,
                description=description,
                asset_type=asset_type,
                actor_id=admin.id,
                location_id=locations[0].id,
                assignment_type=AssignmentType.INDIVIDUAL if department else AssignmentType.SHARED,
                department=department,
            )
            print(f"  {asset.asset_number}  {asset.type:<13} {asset.state:<10} {serial}")
        print(f"[OK] Registered {len(ASSETS)} assets")

        print("\nBearer tokens:")
        for user in users:
            token = create_access_token({"sub": str(user.id)})
            print(f"  {user.email} ({user.role}): {token}")


async def main(reset: bool) -> None:
    if reset:
        await reset_tables()
    await init_db()
    print("[OK] Tables ready")
    await seed()
    await db_engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the asset lifecycle database")
    parser.add_argument("--reset", action="store_true", help="Drop all tables before seeding")
    args = parser.parse_args()

    configure_logging(settings.LOG_LEVEL)

    print("=" * 60)
    print("DATABASE SEEDING SCRIPT")
    print("=" * 60)
    print(f"Environment: {settings.APP_ENV}")
    print()

    asyncio.run(main(args.reset))
