"""
Shared fixtures: in-memory SQLite database, seeded rates, staff users and an
authenticated API client.
"""

import os

# Must be set before config.settings is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ["BILL_NUMBER_PREFIX"] = "SMJ"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from config.database import Base, engine, SessionLocal, get_db
from main import app
from modules.auth.service import auth_service
from modules.rate.models import MetalType, RateUnit, RateMakingType
from modules.rate.resolver import RateSnapshot
from modules.rate.service import rate_service
from modules.user.models import UserRole

TEST_PASSWORD = "Secret123!"


@pytest.fixture
def db():
    """Fresh schema per test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def rates(db):
    """Gold 6,000,000/kg, Silver 75,000/kg, Diamond 50,000/carat."""
    created = {
        MetalType.GOLD: rate_service.set_rate(
            db, MetalType.GOLD, Decimal("6000000"), unit=RateUnit.KG,
            purity_levels=["24K", "22K", "18K", "14K"],
            making_charges_default=Decimal("10"), making_charges_type=RateMakingType.PERCENTAGE,
            gst_rate=Decimal("3"), updated_by="tests",
        ),
        MetalType.SILVER: rate_service.set_rate(
            db, MetalType.SILVER, Decimal("75000"), unit=RateUnit.KG,
            purity_levels=["999", "925"],
            making_charges_default=Decimal("8"), making_charges_type=RateMakingType.PERCENTAGE,
            gst_rate=Decimal("3"), updated_by="tests",
        ),
        MetalType.DIAMOND: rate_service.set_rate(
            db, MetalType.DIAMOND, Decimal("50000"), unit=RateUnit.CARAT,
            making_charges_default=Decimal("0"), making_charges_type=RateMakingType.FIXED,
            gst_rate=Decimal("3"), updated_by="tests",
        ),
    }
    db.commit()
    return created


@pytest.fixture
def rate_map():
    """Rate map for pure engine tests (no database)."""
    return {
        MetalType.GOLD: RateSnapshot(
            metal_type="Gold", rate_value=Decimal("6000000"), unit="kg",
            purity_levels=["24K", "22K", "18K", "14K"],
            making_charges_default=Decimal("10"), making_charges_type="percentage",
            gst_rate=Decimal("3"),
        ),
        MetalType.SILVER: RateSnapshot(
            metal_type="Silver", rate_value=Decimal("75000"), unit="kg",
            purity_levels=["999", "925"],
            making_charges_default=Decimal("8"), making_charges_type="percentage",
            gst_rate=Decimal("3"),
        ),
        MetalType.DIAMOND: RateSnapshot(
            metal_type="Diamond", rate_value=Decimal("50000"), unit="carat",
            making_charges_default=Decimal("0"), making_charges_type="fixed",
            gst_rate=Decimal("3"),
        ),
    }


@pytest.fixture
def admin_user(db):
    user = auth_service.create_user(db, "admin", TEST_PASSWORD, role=UserRole.ADMIN, full_name="Shop Owner")
    db.commit()
    return user


@pytest.fixture
def staff_user(db):
    user = auth_service.create_user(db, "counter1", TEST_PASSWORD, role=UserRole.STAFF, full_name="Counter Staff")
    db.commit()
    return user


@pytest.fixture
def viewer_user(db):
    user = auth_service.create_user(db, "auditor", TEST_PASSWORD, role=UserRole.VIEWER)
    db.commit()
    return user


@pytest.fixture
def client(db):
    """API client sharing the test session."""
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def customer():
    return {"name": "Ramesh Kumar", "mobile": "9876543210", "pan": "ABCDE1234F"}


@pytest.fixture
def gold_item():
    """22K gold, 10 g, 10% making: line total 62427.27 intra-state."""
    return {
        "description": "Gold chain",
        "metal_type": MetalType.GOLD,
        "purity": "22K",
        "weight": Decimal("10"),
        "making_charge_type": "percentage",
        "making_charge_value": Decimal("10"),
    }


@pytest.fixture
def silver_old_item():
    """Silver 999, 20 g at 75/g: exchange value 1375.90."""
    return {
        "description": "Old silver anklet",
        "metal_type": MetalType.SILVER,
        "purity": "999",
        "weight": Decimal("20"),
        "rate": Decimal("75"),
        "wastage_deduction_percent": Decimal("2"),
        "melting_charge": Decimal("50"),
    }
