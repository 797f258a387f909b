"""
Billing Module - Persisted Form
================================
Rounds engine output (unrounded Decimals) into the values stored on
Bill / BillItem rows and exchange snapshots.

Money is rounded to paise half-up. Split GST keeps its parts summing to the
rounded total: SGST takes whatever CGST's rounding leaves.
"""

from decimal import Decimal, ROUND_HALF_UP

from common.helpers import D, ZERO, money
from modules.billing.assembler import settle_exchange

RATE_PLACES = Decimal("0.000001")
WEIGHT_PLACES = Decimal("0.001")
MULTIPLIER_PLACES = Decimal("0.0001")


def quantize(value, places: Decimal):
    if value is None:
        return None
    return D(value).quantize(places, rounding=ROUND_HALF_UP)


def rounded_split(split: dict):
    """(cgst, sgst, igst) rounded so that they add up to the rounded total."""
    total = money(split["total"])
    if split["igst"] > 0:
        return ZERO, ZERO, total
    cgst = money(split["cgst"])
    return cgst, total - cgst, ZERO


def line_columns(line: dict) -> dict:
    """BillItem columns for a value_line_item() result."""
    metal_cgst, metal_sgst, metal_igst = rounded_split(line["gst_on_metal"])
    making_cgst, making_sgst, making_igst = rounded_split(line["gst_on_making"])
    return {
        "is_exchange_item": False,
        "description": line["description"],
        "metal_type": line["metal_type"],
        "purity": line["purity"],
        "unit": line["unit"],
        "quantity": line["quantity"],
        "huid": line["huid"],
        "tunch": line["tunch"],
        "gross_weight": quantize(line["gross_weight"], WEIGHT_PLACES),
        "less_weight": quantize(line["less_weight"], WEIGHT_PLACES),
        "net_weight": quantize(line["net_weight"], WEIGHT_PLACES),
        "rate_per_base_unit": quantize(line["rate_per_base_unit"], RATE_PLACES),
        "purity_multiplier": quantize(line["purity_multiplier"], MULTIPLIER_PLACES),
        "effective_rate": quantize(line["effective_rate"], RATE_PLACES),
        "making_charge_type": line["making_charge_type"],
        "making_charge_value": money(line["making_charge_value"]),
        "making_charge_discount": money(line["making_charge_discount"]),
        "metal_amount": money(line["metal_amount"]),
        "making_charge_amount": money(line["making_charge_amount"]),
        "gst_on_metal_percent": money(line["gst_on_metal_percent"]),
        "gst_on_making_percent": money(line["gst_on_making_percent"]),
        "metal_cgst": metal_cgst,
        "metal_sgst": metal_sgst,
        "metal_igst": metal_igst,
        "making_cgst": making_cgst,
        "making_sgst": making_sgst,
        "making_igst": making_igst,
        "huid_charge": money(line["huid_charge"]),
        "line_total": money(line["line_total"]),
    }


def exchange_line_columns(old: dict) -> dict:
    """BillItem columns for a surrendered item. line_total is the negative credit."""
    rate = quantize(old["rate"], RATE_PLACES)
    return {
        "is_exchange_item": True,
        "description": old["description"],
        "metal_type": old["metal_type"],
        "purity": old["purity"],
        "unit": "GM",
        "quantity": 1,
        "net_weight": quantize(old["weight"], WEIGHT_PLACES),
        "rate_per_base_unit": rate,
        "purity_multiplier": Decimal("1.0000"),
        "effective_rate": rate,
        "metal_amount": money(old["gross_value"]),
        "wastage_deduction_percent": money(old["wastage_deduction_percent"]),
        "melting_charge": money(old["melting_charge"]),
        "shop_deduction_percent": money(old["shop_deduction_percent"]),
        "line_total": -money(old["exchange_value"]),
    }


def totals_columns(totals: dict) -> dict:
    """Bill columns for an assemble_bill() result, settlement recomputed on rounded figures."""
    gst_total = money(totals["gst_total"])
    if totals["is_intra_state"]:
        cgst = money(totals["gst_breakdown"]["cgst"])
        sgst, igst = gst_total - cgst, ZERO
    else:
        cgst, sgst, igst = ZERO, ZERO, gst_total

    grand_total = money(totals["grand_total"])
    exchange = totals["exchange_details"]
    settlement = settle_exchange(money(exchange["old_items_total"]), grand_total, exchange["has_exchange"])

    return {
        "total_metal_amount": money(totals["total_metal_amount"]),
        "total_making_charges": money(totals["total_making_charges"]),
        "sub_total": money(totals["sub_total"]),
        "discount": money(totals["discount"]),
        "discount_type": totals["discount_type"],
        "discount_amount": money(totals["discount_amount"]),
        "huid_charges_total": money(totals["huid_charges_total"]),
        "total_before_gst": money(totals["total_before_gst"]),
        "cgst_amount": cgst,
        "sgst_amount": sgst,
        "igst_amount": igst,
        "gst_on_metal_amount": money(totals["gst_breakdown"]["gst_on_metal"]),
        "gst_on_making_amount": money(totals["gst_breakdown"]["gst_on_making"]),
        "gst_on_huid_amount": money(totals["gst_breakdown"]["gst_on_huid"]),
        "gst_total": gst_total,
        "grand_total": grand_total,
        "amount_in_words": totals["amount_in_words"],
        "is_intra_state": totals["is_intra_state"],
        "has_exchange": settlement["has_exchange"],
        "old_items_total": settlement["old_items_total"],
        "new_items_total": settlement["new_items_total"],
        "balance_payable": settlement["balance_payable"],
        "balance_refundable": settlement["balance_refundable"],
        "net_payable": settlement["balance_payable"] if settlement["has_exchange"] else grand_total,
    }
