"""
Rate Module - Service (RateStore)
==================================
Active rate lookup, rate updates with history, and the per-request rate
map consumed by the billing and exchange engines.
"""

import logging
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import desc
from sqlalchemy.orm import Session

from config.settings import DEFAULT_GST_ON_METAL
from common.exceptions import RateNotFoundError, SwarnaBillError
from modules.rate.models import MetalRate, MetalType, RateUnit, RateMakingType
from modules.rate.resolver import RateSnapshot, RateMap, base_unit_rate

logger = logging.getLogger("swarnabill.rates")


class RateService:
    """Stateless service: every method takes the db session."""

    # ------------------------------------------
    # Lookup
    # ------------------------------------------

    def get_active_rate(self, db: Session, metal_type) -> MetalRate:
        """Latest active rate for a metal. Raises RateNotFoundError if none."""
        key = MetalType(metal_type).value
        rate = (
            db.query(MetalRate)
            .filter(MetalRate.metal_type == key, MetalRate.is_active == True)
            .order_by(desc(MetalRate.created_at), desc(MetalRate.id))
            .first()
        )
        if not rate:
            raise RateNotFoundError(key)
        return rate

    def get_rate_map(self, db: Session, metal_types: Iterable) -> RateMap:
        """
        Snapshot the active rate of every requested metal.

        Built once per request. Any missing metal raises RateNotFoundError so
        no partial bill or exchange is ever calculated.
        """
        rate_map: RateMap = {}
        for metal_type in metal_types:
            key = MetalType(metal_type)
            if key not in rate_map:
                rate_map[key] = RateSnapshot.from_model(self.get_active_rate(db, key))
        return rate_map

    def get_current_rates(self, db: Session) -> List[MetalRate]:
        """One active rate per metal (metals without a rate are skipped)."""
        rates = []
        for metal_type in MetalType:
            try:
                rates.append(self.get_active_rate(db, metal_type))
            except RateNotFoundError:
                continue
        return rates

    def get_history(
        self, db: Session, metal_type: Optional[str] = None,
        page: int = 1, per_page: int = 10,
    ) -> Tuple[List[MetalRate], int]:
        q = db.query(MetalRate)
        if metal_type:
            q = q.filter(MetalRate.metal_type == MetalType(metal_type).value)
        total = q.count()
        items = (
            q.order_by(desc(MetalRate.created_at), desc(MetalRate.id))
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return items, total

    # ------------------------------------------
    # Update
    # ------------------------------------------

    def set_rate(
        self, db: Session, metal_type, rate_value: Decimal,
        unit: str = RateUnit.KG, purity_levels: Optional[List[str]] = None,
        making_charges_default: Decimal = Decimal("0"),
        making_charges_type: str = RateMakingType.PERCENTAGE,
        gst_rate: Optional[Decimal] = None, updated_by: str = "",
    ) -> MetalRate:
        """
        Insert a new active rate and retire the previous one. Caller must commit.

        Without an explicit gst_rate the rate carries DEFAULT_GST_ON_METAL, which
        is the metal GST every bill line falls back to.
        """
        key = MetalType(metal_type).value
        if Decimal(str(rate_value)) < 0:
            raise SwarnaBillError("Rate value must be zero or positive")

        previous = (
            db.query(MetalRate)
            .filter(MetalRate.metal_type == key, MetalRate.is_active == True)
            .with_for_update()
            .all()
        )
        for old in previous:
            old.is_active = False

        rate = MetalRate(
            metal_type=key,
            rate_value=rate_value,
            unit=RateUnit(unit).value,
            making_charges_default=making_charges_default,
            making_charges_type=RateMakingType(making_charges_type).value,
            gst_rate=DEFAULT_GST_ON_METAL if gst_rate is None else gst_rate,
            is_active=True,
            updated_by=updated_by or None,
        )
        rate.purity_levels = purity_levels or []
        db.add(rate)
        db.flush()

        logger.info(f"Rate updated: {key} = {rate_value}/{rate.unit} by {updated_by or 'system'}")
        return rate

    # ------------------------------------------
    # Serialization
    # ------------------------------------------

    def to_dict(self, rate: MetalRate) -> dict:
        snapshot = RateSnapshot.from_model(rate)
        return {
            "id": rate.id,
            "metal_type": rate.metal_type,
            "rate_value": float(rate.rate_value),
            "unit": rate.unit,
            "per_base_unit_rate": float(base_unit_rate(snapshot)),
            "purity_levels": rate.purity_levels,
            "making_charges_default": float(rate.making_charges_default),
            "making_charges_type": rate.making_charges_type,
            "gst_rate": float(rate.gst_rate),
            "is_active": rate.is_active,
            "updated_by": rate.updated_by,
            "created_at": rate.created_at.isoformat() if rate.created_at else None,
        }


# Singleton
rate_service = RateService()
