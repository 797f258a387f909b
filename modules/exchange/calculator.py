"""
Exchange Module - Old Item Valuation
=====================================
Payout value of a customer's surrendered jewellery:

    gross  = weight × rate
    shop   = gross × (100 − shop_deduction%) / 100
    wastage= shop × (100 − wastage%) / 100
    value  = max(0, wastage − melting_charge)
"""

from decimal import Decimal
from typing import Optional

from config.settings import EXCHANGE_SHOP_DEDUCTION_PERCENT, DEFAULT_WASTAGE_PERCENT
from common.exceptions import SwarnaBillError
from common.helpers import D, ZERO, HUNDRED
from modules.rate.resolver import RateMap, rate_for, resolve_rate


def calculate_exchange_value(
    weight,
    rate,
    wastage_percent=DEFAULT_WASTAGE_PERCENT,
    melting_charge=0,
    shop_deduction_percent=EXCHANGE_SHOP_DEDUCTION_PERCENT,
) -> dict:
    """
    Value one old item.

    Returns:
        dict with: gross_value, after_shop_deduction, after_wastage,
        exchange_value (never negative)
    """
    d_weight = D(weight)
    d_wastage = D(wastage_percent)
    d_melting = D(melting_charge)
    d_shop = D(shop_deduction_percent)

    if d_weight <= 0:
        raise SwarnaBillError("Old item weight must be greater than zero")
    if not (ZERO <= d_wastage <= HUNDRED):
        raise SwarnaBillError("Wastage deduction must be between 0 and 100")
    if not (ZERO <= d_shop <= HUNDRED):
        raise SwarnaBillError("Shop deduction must be between 0 and 100")
    if d_melting < 0:
        raise SwarnaBillError("Melting charge cannot be negative")

    gross_value = d_weight * D(rate)
    after_shop = gross_value * (HUNDRED - d_shop) / HUNDRED
    after_wastage = after_shop * (HUNDRED - d_wastage) / HUNDRED
    net_value = after_wastage - d_melting

    return {
        "gross_value": gross_value,
        "after_shop_deduction": after_shop,
        "after_wastage": after_wastage,
        "exchange_value": max(ZERO, net_value),
    }


def value_old_item(
    item: dict,
    rate_map: RateMap,
    shop_deduction_percent: Optional[Decimal] = None,
) -> dict:
    """
    Resolve the rate for an old item and value it.

    An explicit per-item rate wins over the live rate. The snapshot keeps the
    rate actually used so the record never depends on later rate changes.
    """
    if item.get("rate") is not None:
        unit_rate = D(item["rate"])
        rate_source = "item"
    else:
        rate = rate_for(rate_map, item["metal_type"])
        unit_rate = resolve_rate(rate, item.get("purity"))
        rate_source = "live"

    wastage = item.get("wastage_deduction_percent")
    if wastage is None:
        wastage = DEFAULT_WASTAGE_PERCENT
    shop = EXCHANGE_SHOP_DEDUCTION_PERCENT if shop_deduction_percent is None else shop_deduction_percent

    valued = calculate_exchange_value(
        weight=item.get("weight"),
        rate=unit_rate,
        wastage_percent=wastage,
        melting_charge=item.get("melting_charge") or 0,
        shop_deduction_percent=shop,
    )
    metal_type = str(getattr(item["metal_type"], "value", item["metal_type"]))
    valued.update({
        "description": item.get("description") or f"Old {metal_type} item",
        "metal_type": metal_type,
        "purity": item.get("purity") or "",
        "weight": D(item.get("weight")),
        "rate": unit_rate,
        "rate_source": rate_source,
        "wastage_deduction_percent": D(wastage),
        "melting_charge": D(item.get("melting_charge")),
        "shop_deduction_percent": D(shop),
    })
    return valued


# Numeric fields of a valued old item, stored as strings in JSON snapshots
_VALUATION_DECIMALS = (
    "gross_value", "after_shop_deduction", "after_wastage", "exchange_value",
    "weight", "rate", "wastage_deduction_percent", "melting_charge", "shop_deduction_percent",
)


def snapshot_valuation(valued: dict) -> dict:
    """JSON-safe copy of a value_old_item() result, full precision kept as strings."""
    return {k: (str(v) if isinstance(v, Decimal) else v) for k, v in valued.items()}


def restore_valuation(snapshot: dict) -> dict:
    """Inverse of snapshot_valuation(): the stored valuation, never re-priced."""
    restored = dict(snapshot)
    for key in _VALUATION_DECIMALS:
        if key in restored:
            restored[key] = D(restored[key])
    return restored
