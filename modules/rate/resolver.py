"""
Rate Module - Resolver
=======================
Turns a rate record into the price of one base unit (gram, carat or piece)
for a given purity. Pure functions: no database access.

Rates are snapshotted once per request into a {MetalType: RateSnapshot}
map and that map is passed explicitly to the valuation functions.
"""

from dataclasses import dataclass, field, asdict
from decimal import Decimal
from typing import Dict, List, Optional

from config.settings import DEFAULT_GST_ON_METAL
from common.exceptions import InvalidPurityError, RateNotFoundError
from common.helpers import to_decimal
from modules.rate.models import MetalType, RateUnit

GRAMS_PER_KG = Decimal("1000")

# Fineness of gold karat grades relative to 24K
GOLD_PURITY_MULTIPLIERS = {
    "24K": Decimal("1"),
    "22K": Decimal("0.9167"),
    "18K": Decimal("0.75"),
    "14K": Decimal("0.5833"),
}


@dataclass(frozen=True)
class RateSnapshot:
    """Immutable copy of a MetalRate taken at calculation time."""
    metal_type: str
    rate_value: Decimal
    unit: str = RateUnit.KG.value
    purity_levels: List[str] = field(default_factory=list)
    making_charges_default: Decimal = Decimal("0")
    making_charges_type: str = "percentage"
    gst_rate: Decimal = DEFAULT_GST_ON_METAL

    @classmethod
    def from_model(cls, rate) -> "RateSnapshot":
        return cls(
            metal_type=str(rate.metal_type),
            rate_value=to_decimal(rate.rate_value),
            unit=str(rate.unit),
            purity_levels=list(rate.purity_levels),
            making_charges_default=to_decimal(rate.making_charges_default),
            making_charges_type=str(rate.making_charges_type),
            gst_rate=to_decimal(rate.gst_rate),
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        for key in ("rate_value", "making_charges_default", "gst_rate"):
            data[key] = str(data[key])
        return data


RateMap = Dict[MetalType, RateSnapshot]


def normalize_purity(purity: Optional[str]) -> str:
    return (purity or "").strip().upper()


def base_unit_rate(rate: RateSnapshot) -> Decimal:
    """Per-gram for kg rates; carat and piece rates are already per base unit."""
    if rate.unit == RateUnit.KG.value:
        return rate.rate_value / GRAMS_PER_KG
    return rate.rate_value


def purity_multiplier(metal_type: str, purity: Optional[str]) -> Decimal:
    """Karat multiplier for gold; 1 for every other metal and for 24K / unspecified."""
    if metal_type != MetalType.GOLD.value:
        return Decimal("1")
    return GOLD_PURITY_MULTIPLIERS.get(normalize_purity(purity), Decimal("1"))


def validate_purity(rate: RateSnapshot, purity: Optional[str]):
    """
    Raise InvalidPurityError when the purity can't be priced.

    Gold must be one of the known karat grades. Any metal whose rate lists
    purity levels only accepts those levels. A blank purity is priced at the
    base rate.
    """
    value = normalize_purity(purity)
    if not value:
        return
    if rate.metal_type == MetalType.GOLD.value and value not in GOLD_PURITY_MULTIPLIERS:
        raise InvalidPurityError(rate.metal_type, purity)
    levels = [normalize_purity(p) for p in rate.purity_levels]
    if levels and value not in levels:
        raise InvalidPurityError(rate.metal_type, purity)


def resolve_rate(rate: RateSnapshot, purity: Optional[str]) -> Decimal:
    """Effective price of one base unit at this purity."""
    validate_purity(rate, purity)
    return base_unit_rate(rate) * purity_multiplier(rate.metal_type, purity)


def rate_for(rate_map: RateMap, metal_type) -> RateSnapshot:
    """Look up a metal in the request's rate map; a missing metal aborts the operation."""
    key = MetalType(metal_type)
    rate = rate_map.get(key)
    if rate is None:
        raise RateNotFoundError(key.value)
    return rate
