"""
Rate Module - Models
=====================
MetalRate: per-metal rate records. Every update inserts a new row and
deactivates the previous one, so the table doubles as rate history.
"""

import enum
import json

from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, Text, Index, text
from sqlalchemy.sql import func

from config.database import Base
from config.settings import DEFAULT_GST_ON_METAL


class MetalType(str, enum.Enum):
    GOLD = "Gold"
    SILVER = "Silver"
    DIAMOND = "Diamond"
    PLATINUM = "Platinum"
    ANTIQUE_POLKI = "Antique / Polki"
    OTHERS = "Others"


class RateUnit(str, enum.Enum):
    KG = "kg"          # rate quoted per kilogram, priced per gram
    CARAT = "carat"
    PIECE = "piece"


class RateMakingType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class MetalRate(Base):
    __tablename__ = "metal_rates"

    id = Column(Integer, primary_key=True)
    metal_type = Column(String(30), nullable=False)
    rate_value = Column(Numeric(14, 2), nullable=False)
    unit = Column(String(10), nullable=False, default=RateUnit.KG)
    _purity_levels = Column("purity_levels", Text, nullable=True)  # JSON list, ordered
    making_charges_default = Column(Numeric(10, 2), nullable=False, default=0)
    making_charges_type = Column(String(20), nullable=False, default=RateMakingType.PERCENTAGE)
    gst_rate = Column(Numeric(5, 2), nullable=False, default=DEFAULT_GST_ON_METAL)
    is_active = Column(Boolean, default=True, server_default=text("true"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_by = Column(String, nullable=True)

    __table_args__ = (
        Index("ix_metal_rates_active", "metal_type", "is_active"),
    )

    @property
    def purity_levels(self) -> list:
        if not self._purity_levels:
            return []
        try:
            return json.loads(self._purity_levels)
        except (json.JSONDecodeError, TypeError):
            return []

    @purity_levels.setter
    def purity_levels(self, value: list):
        self._purity_levels = json.dumps(list(value)) if value else None

    def __repr__(self):
        return f"<MetalRate {self.metal_type}={self.rate_value}/{self.unit}>"
