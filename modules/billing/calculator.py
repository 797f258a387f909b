"""
Billing Module - Item Valuation
================================
Line-item price calculation with a full audit trail.

All arithmetic is Decimal and unrounded; rounding to paise happens only when
values are persisted or rendered.
"""

import enum
from decimal import Decimal
from typing import Optional

from config.settings import DEFAULT_GST_ON_MAKING
from common.exceptions import SwarnaBillError
from common.helpers import D, ZERO, HUNDRED
from modules.rate.resolver import RateMap, rate_for, resolve_rate, base_unit_rate, purity_multiplier


class MakingChargeType(str, enum.Enum):
    PERCENTAGE = "percentage"   # % of metal amount
    FIXED = "fixed"             # flat amount per line
    PER_GRAM = "perGram"        # amount × net weight


# Spellings seen from older frontends
_MAKING_TYPE_ALIASES = {
    "grm": MakingChargeType.PER_GRAM,
    "pergram": MakingChargeType.PER_GRAM,
    "per_gram": MakingChargeType.PER_GRAM,
    "percent": MakingChargeType.PERCENTAGE,
    "percentage": MakingChargeType.PERCENTAGE,
    "fixed": MakingChargeType.FIXED,
}


def parse_making_type(value) -> MakingChargeType:
    if isinstance(value, MakingChargeType):
        return value
    key = str(value or "").strip().lower()
    if key not in _MAKING_TYPE_ALIASES:
        raise SwarnaBillError(f"Unknown making charge type: {value}")
    return _MAKING_TYPE_ALIASES[key]


def resolve_net_weight(weight=None, gross_weight=None, less_weight=None) -> Decimal:
    """
    gross − less when both are given, else the explicit weight.
    A gross weight alone counts as net. The result must be positive.
    """
    if gross_weight is not None and less_weight is not None:
        net = D(gross_weight) - D(less_weight)
    elif weight is not None:
        net = D(weight)
    elif gross_weight is not None:
        net = D(gross_weight)
    else:
        net = ZERO

    if net <= 0:
        raise SwarnaBillError("Net weight must be greater than zero")
    return net


def split_gst(amount: Decimal, is_intra_state: bool) -> dict:
    """Intra-state: half CGST, half SGST. Inter-state: all IGST."""
    if is_intra_state:
        half = amount / 2
        return {"cgst": half, "sgst": half, "igst": ZERO, "total": amount}
    return {"cgst": ZERO, "sgst": ZERO, "igst": amount, "total": amount}


def calculate_item_amount(
    net_weight,
    rate_per_unit,
    making_charge_type=MakingChargeType.PERCENTAGE,
    making_charge_value=0,
    making_charge_discount=0,
    gst_on_metal=3,
    gst_on_making=5,
    is_intra_state=True,
) -> dict:
    """
    Price one line item.

    Args:
        net_weight: Net weight in base units (grams / carats / pieces)
        rate_per_unit: Effective price of one base unit, purity applied
        making_charge_type: percentage / fixed / perGram
        making_charge_value: Percent, flat amount, or amount per gram
        making_charge_discount: Percent off the making charge (0-100)
        gst_on_metal: GST percent on the metal amount
        gst_on_making: GST percent on the making charge
        is_intra_state: CGST+SGST when True, IGST when False

    Returns:
        dict with: metal_amount, making_charge_amount, gst_on_metal,
        gst_on_making (each {cgst, sgst, igst, total}), line_total
    """
    d_weight = D(net_weight)
    d_rate = D(rate_per_unit)
    d_making = D(making_charge_value)
    d_discount = D(making_charge_discount)

    if not (ZERO <= d_discount <= HUNDRED):
        raise SwarnaBillError("Making charge discount must be between 0 and 100")

    metal_amount = d_rate * d_weight

    making_type = parse_making_type(making_charge_type)
    if making_type == MakingChargeType.PERCENTAGE:
        making_amount = metal_amount * d_making / HUNDRED
    elif making_type == MakingChargeType.PER_GRAM:
        making_amount = d_making * d_weight
    else:
        making_amount = d_making

    if d_discount > 0:
        making_amount -= making_amount * d_discount / HUNDRED

    gst_making_amount = making_amount * D(gst_on_making) / HUNDRED
    gst_metal_amount = metal_amount * D(gst_on_metal) / HUNDRED

    return {
        "metal_amount": metal_amount,
        "making_charge_amount": making_amount,
        "gst_on_metal": split_gst(gst_metal_amount, is_intra_state),
        "gst_on_making": split_gst(gst_making_amount, is_intra_state),
        "line_total": metal_amount + making_amount + gst_making_amount + gst_metal_amount,
    }


def value_line_item(
    item: dict,
    rate_map: RateMap,
    gst_on_metal: Optional[Decimal] = None,
    gst_on_making: Optional[Decimal] = None,
    is_intra_state: bool = True,
) -> dict:
    """
    Resolve rate, purity and weight for a request line item and price it.

    Per-item gst_on_metal / gst_on_making override the bill-level values;
    when neither is set, metal GST falls back to the rate's gst_rate (itself
    DEFAULT_GST_ON_METAL unless the rate was saved with its own).
    Making charge type/value fall back to the rate's defaults.

    Returns the priced line merged with the snapshot of its inputs.
    """
    rate = rate_for(rate_map, item["metal_type"])
    purity = item.get("purity") or ""
    unit_rate = resolve_rate(rate, purity)
    net_weight = resolve_net_weight(
        weight=item.get("weight"),
        gross_weight=item.get("gross_weight"),
        less_weight=item.get("less_weight"),
    )

    making_type = item.get("making_charge_type") or rate.making_charges_type
    making_value = item.get("making_charge_value")
    if making_value is None:
        making_value = rate.making_charges_default

    metal_gst = item.get("gst_on_metal")
    if metal_gst is None:
        metal_gst = gst_on_metal if gst_on_metal is not None else rate.gst_rate
    making_gst = item.get("gst_on_making")
    if making_gst is None:
        making_gst = gst_on_making if gst_on_making is not None else DEFAULT_GST_ON_MAKING

    priced = calculate_item_amount(
        net_weight=net_weight,
        rate_per_unit=unit_rate,
        making_charge_type=making_type,
        making_charge_value=making_value,
        making_charge_discount=item.get("making_charge_discount") or 0,
        gst_on_metal=metal_gst,
        gst_on_making=making_gst,
        is_intra_state=is_intra_state,
    )

    huid_charge = D(item.get("huid_charge"))
    if huid_charge < 0:
        raise SwarnaBillError("HUID charge cannot be negative")

    priced.update({
        "description": item.get("description") or f"{rate.metal_type} item",
        "metal_type": rate.metal_type,
        "purity": purity,
        "unit": item.get("unit") or "GM",
        # Informational only: quantity never scales the metal amount
        "quantity": int(item.get("quantity") or 1),
        "gross_weight": D(item["gross_weight"]) if item.get("gross_weight") is not None else None,
        "less_weight": D(item["less_weight"]) if item.get("less_weight") is not None else None,
        "net_weight": net_weight,
        "rate_per_base_unit": base_unit_rate(rate),
        "purity_multiplier": purity_multiplier(rate.metal_type, purity),
        "effective_rate": unit_rate,
        "making_charge_type": parse_making_type(making_type).value,
        "making_charge_value": D(making_value),
        "making_charge_discount": D(item.get("making_charge_discount")),
        "gst_on_metal_percent": D(metal_gst),
        "gst_on_making_percent": D(making_gst),
        "huid_charge": huid_charge,
        "huid": item.get("huid") or "",
        "tunch": item.get("tunch") or "",
        "is_exchange_item": False,
    })
    return priced
