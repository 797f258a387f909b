"""
SwarnaBill - Database Initialization
======================================
Creates all tables if they don't exist, optionally seeding an admin user
and starter metal rates.
Safe to run multiple times (CREATE IF NOT EXISTS).

Usage:
    python scripts/init_db.py
    python scripts/init_db.py --seed   # Also create admin user + starter rates
    python scripts/init_db.py --drop   # Drop and recreate all tables
"""

import sys
import os
import getpass
from decimal import Decimal

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.database import Base, engine, SessionLocal

# Import ALL models so Base.metadata knows about them
from modules.user.models import User, UserRole  # noqa
from modules.rate.models import MetalRate, MetalType, RateUnit, RateMakingType  # noqa
from modules.billing.models import Bill, BillItem, BillPaymentLog  # noqa
from modules.exchange.models import Exchange  # noqa
from modules.auth.service import auth_service
from modules.rate.service import rate_service

# Starter rates: (metal, rate, unit, purity levels, default making, making type)
STARTER_RATES = [
    (MetalType.GOLD, Decimal("6000000"), RateUnit.KG, ["24K", "22K", "18K", "14K"], Decimal("10"), RateMakingType.PERCENTAGE),
    (MetalType.SILVER, Decimal("75000"), RateUnit.KG, ["999", "925"], Decimal("8"), RateMakingType.PERCENTAGE),
    (MetalType.DIAMOND, Decimal("50000"), RateUnit.CARAT, [], Decimal("0"), RateMakingType.FIXED),
    (MetalType.PLATINUM, Decimal("3200000"), RateUnit.KG, ["950"], Decimal("12"), RateMakingType.PERCENTAGE),
]


def init_db(drop_first=False):
    if drop_first:
        print("Dropping all tables...")
        Base.metadata.drop_all(bind=engine)
        print("Done.")

    print("Creating all tables...")
    Base.metadata.create_all(bind=engine)

    # List created tables
    from sqlalchemy import inspect
    inspector = inspect(engine)
    tables = inspector.get_table_names()
    print(f"\nTables in database ({len(tables)}):")
    for t in sorted(tables):
        print(f"  - {t}")
    print("\nDatabase initialized successfully!")


def seed():
    db = SessionLocal()
    try:
        if not db.query(User).filter(User.role == UserRole.ADMIN.value).first():
            password = getpass.getpass("Password for new 'admin' user: ")
            auth_service.create_user(db, "admin", password, role=UserRole.ADMIN, full_name="Administrator")
            print("Created admin user 'admin'")

        for metal, value, unit, purities, making, making_type in STARTER_RATES:
            if db.query(MetalRate).filter(MetalRate.metal_type == metal.value).first():
                continue
            rate_service.set_rate(
                db, metal, value, unit=unit, purity_levels=purities,
                making_charges_default=making, making_charges_type=making_type,
                updated_by="init_db",
            )
            print(f"Seeded rate {metal.value} = {value}/{unit.value}")

        db.commit()
    finally:
        db.close()


if __name__ == "__main__":
    drop = "--drop" in sys.argv
    if drop:
        confirm = input("This will DROP all tables. Type 'yes': ")
        if confirm.strip().lower() != "yes":
            print("Aborted.")
            sys.exit(0)
    init_db(drop_first=drop)
    if "--seed" in sys.argv:
        seed()
