#!/usr/bin/env python3
"""
Database Seeder for Mehfil

Creates a demo active event and, optionally, a batch of sample
registrations so the scanner and admin pages have something to show.

Usage:
    # From project root with venv activated:
    python scripts/seed_database.py

    # With options:
    python scripts/seed_database.py --registrations 40 --performers 5 --clear
"""
import argparse
import asyncio
import os
import random
import sys
from datetime import datetime, timedelta

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from mehfil.database import async_session_maker, init_db, drop_db, close_db  # noqa: E402
from mehfil.schemas.schemas import EventCreate, Venue, Capacity  # noqa: E402
from mehfil.services.event_service import EventService  # noqa: E402
from mehfil.services.registration_service import RegistrationService  # noqa: E402

# Configuration
DEFAULT_NUM_REGISTRATIONS = 20
DEFAULT_NUM_PERFORMERS = 4

# Data pools
FIRST_NAMES = [
    "Aarav", "Vivaan", "Aditya", "Ishaan", "Kabir", "Rohan", "Arjun", "Kunal",
    "Ananya", "Diya", "Isha", "Meera", "Saanvi", "Zoya", "Nisha", "Riya",
    "Farhan", "Imran", "Sana", "Ayesha", "Harpreet", "Simran", "Tenzin", "Lakshmi"
]

LAST_NAMES = [
    "Sharma", "Verma", "Gupta", "Khan", "Singh", "Iyer", "Nair", "Reddy",
    "Das", "Mehta", "Kapoor", "Qureshi", "Bose", "Joshi", "Pillai", "Ali"
]

PERFORMANCE_TYPES = list(RegistrationService.PERFORMANCE_TYPES)


def random_phone() -> str:
    return f"9{random.randint(100000000, 999999999)}"


def random_name() -> str:
    return f"{random.choice(FIRST_NAMES)} {random.choice(LAST_NAMES)}"


async def seed_database(num_registrations: int, num_performers: int, clear_existing: bool):
    print("=" * 60)
    print("Mehfil Database Seeder")
    print("=" * 60)

    if clear_existing:
        print("\nClearing existing data...")
        await drop_db()
    await init_db()

    async with async_session_maker() as db:
        # =====================================================================
        # 1. Demo event
        # =====================================================================
        print("\n1. Creating demo event...")
        event = await EventService.create_event(db, EventCreate(
            event_name="Mehfil - An Evening of Stories & Song",
            event_date=(datetime.utcnow() + timedelta(days=21)).replace(
                hour=13, minute=30, second=0, microsecond=0
            ),
            event_time="7:00 PM",
            description="Open mic evening of poetry, shayari, stories and music.",
            venue=Venue(
                name="Community Hall",
                address="12 MG Road",
                city="Bengaluru",
                pincode="560001",
            ),
            capacity=Capacity(audience=300, performers=20),
            contact_email="hello@mehfil.local",
            is_active=True,
        ))
        print(f"  Created event {event.id} ({event.event_name})")

        # =====================================================================
        # 2. Sample registrations
        # =====================================================================
        print("\n2. Seeding registrations...")
        created = 0
        for i in range(num_registrations + num_performers):
            is_performer = i < num_performers
            registration, already = await RegistrationService.register(
                db,
                event_id=event.id,
                name=random_name(),
                phone=random_phone(),
                email=None,
                registration_type="performer" if is_performer else "audience",
                performance_type=random.choice(PERFORMANCE_TYPES) if is_performer else None,
            )
            if not already:
                created += 1
        print(f"  Created {created} registrations")

    await close_db()

    print("\n" + "=" * 60)
    print("✅ Database seeding complete!")
    print("=" * 60)
    print(f"""
Summary:
  - 1 active event ({event.id})
  - {created} registrations ({num_performers} performers)
    """)


def main():
    parser = argparse.ArgumentParser(
        description="Seed Mehfil database with a demo event"
    )
    parser.add_argument(
        "--registrations", "-r",
        type=int,
        default=DEFAULT_NUM_REGISTRATIONS,
        help=f"Number of audience registrations (default: {DEFAULT_NUM_REGISTRATIONS})"
    )
    parser.add_argument(
        "--performers", "-p",
        type=int,
        default=DEFAULT_NUM_PERFORMERS,
        help=f"Number of performer registrations (default: {DEFAULT_NUM_PERFORMERS})"
    )
    parser.add_argument(
        "--clear", "-c",
        action="store_true",
        help="Drop and recreate tables before seeding"
    )

    args = parser.parse_args()

    asyncio.run(seed_database(
        num_registrations=args.registrations,
        num_performers=args.performers,
        clear_existing=args.clear
    ))


if __name__ == "__main__":
    main()
