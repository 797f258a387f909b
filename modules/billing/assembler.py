"""
Billing Module - Bill Assembler
================================
Aggregates priced line items and old-item exchange valuations into bill
totals, exchange settlement and payment amounts.

    subtotal     = metal + making
    discount     = flat, or (metal + making + huid) × discount%
    gst_total    = Σ item GST + huid × making GST%
    grand_total  = metal + making + huid − discount + gst_total
    balance      = old_items_total − grand_total   (≥ 0 refundable, else payable)
"""

import enum
from decimal import Decimal
from typing import List, Optional

from config.settings import DEFAULT_GST_ON_MAKING
from common.amount_words import number_to_words
from common.exceptions import SwarnaBillError
from common.helpers import D, ZERO, HUNDRED, money
from modules.billing.calculator import split_gst


class DiscountType(str, enum.Enum):
    AMOUNT = "amount"
    PERCENTAGE = "percentage"


class PaymentStatus(str, enum.Enum):
    PAID = "paid"
    PENDING = "pending"
    PARTIAL = "partial"


def _sum(rows: List[dict], key: str) -> Decimal:
    return sum((r[key] for r in rows), ZERO)


def _sum_gst(rows: List[dict], part: str) -> Decimal:
    return sum((r["gst_on_metal"][part] + r["gst_on_making"][part] for r in rows), ZERO)


def assemble_bill(
    items: List[dict],
    exchange_items: Optional[List[dict]] = None,
    discount=0,
    discount_type=DiscountType.AMOUNT,
    huid_charges=0,
    gst_on_making=None,
    is_intra_state: bool = True,
) -> dict:
    """
    Build bill-level totals.

    Args:
        items: Output of value_line_item() for each new item
        exchange_items: Output of value_old_item() for each surrendered item
        discount: Flat amount or percent (see discount_type)
        discount_type: "amount" or "percentage"
        huid_charges: Bill-level HUID charge, added to per-item HUID charges
        gst_on_making: GST percent applied to HUID charges
        is_intra_state: CGST+SGST when True, IGST when False

    Returns:
        dict of unrounded Decimal totals plus gst_breakdown and exchange_details.
    """
    if not items:
        raise SwarnaBillError("A bill needs at least one item")
    exchange_items = exchange_items or []

    new_items = [i for i in items if not i.get("is_exchange_item")]

    total_metal = _sum(new_items, "metal_amount")
    total_making = _sum(new_items, "making_charge_amount")
    total_huid = _sum(new_items, "huid_charge") + D(huid_charges)
    if total_huid < 0:
        raise SwarnaBillError("HUID charges cannot be negative")

    d_discount = D(discount)
    if d_discount < 0:
        raise SwarnaBillError("Discount cannot be negative")
    if DiscountType(discount_type) == DiscountType.PERCENTAGE:
        if d_discount > HUNDRED:
            raise SwarnaBillError("Discount percent cannot exceed 100")
        discount_amount = (total_metal + total_making + total_huid) * d_discount / HUNDRED
    else:
        discount_amount = d_discount

    huid_gst_percent = DEFAULT_GST_ON_MAKING if gst_on_making is None else D(gst_on_making)
    huid_gst = split_gst(total_huid * huid_gst_percent / HUNDRED, is_intra_state)

    gst_metal = sum((i["gst_on_metal"]["total"] for i in new_items), ZERO)
    gst_making = sum((i["gst_on_making"]["total"] for i in new_items), ZERO)
    gst_breakdown = {
        "cgst": _sum_gst(new_items, "cgst") + huid_gst["cgst"],
        "sgst": _sum_gst(new_items, "sgst") + huid_gst["sgst"],
        "igst": _sum_gst(new_items, "igst") + huid_gst["igst"],
        "gst_on_metal": gst_metal,
        "gst_on_making": gst_making,
        "gst_on_huid": huid_gst["total"],
    }
    gst_total = gst_metal + gst_making + huid_gst["total"]

    sub_total = total_metal + total_making
    total_before_gst = sub_total + total_huid - discount_amount
    if total_before_gst < 0:
        raise SwarnaBillError("Discount cannot exceed the bill amount")
    grand_total = total_before_gst + gst_total

    totals = {
        "total_metal_amount": total_metal,
        "total_making_charges": total_making,
        "huid_charges_total": total_huid,
        "sub_total": sub_total,
        "discount": d_discount,
        "discount_type": DiscountType(discount_type).value,
        "discount_amount": discount_amount,
        "total_before_gst": total_before_gst,
        "gst_total": gst_total,
        "gst_breakdown": gst_breakdown,
        "grand_total": grand_total,
        "is_intra_state": is_intra_state,
        "exchange_details": settle_exchange(_sum(exchange_items, "exchange_value"), grand_total, bool(exchange_items)),
    }
    totals["net_payable"] = (
        totals["exchange_details"]["balance_payable"] if exchange_items else grand_total
    )
    # Words follow the rounded figure printed on the bill
    totals["amount_in_words"] = number_to_words(money(grand_total))
    return totals


def settle_exchange(old_items_total: Decimal, new_items_total: Decimal, has_exchange: bool = True) -> dict:
    """
    Balance between surrendered and purchased items.

    At most one side is nonzero; an exact match leaves both at zero.
    """
    if not has_exchange:
        return {
            "has_exchange": False,
            "old_items_total": ZERO,
            "new_items_total": new_items_total,
            "balance_payable": ZERO,
            "balance_refundable": ZERO,
        }
    balance = old_items_total - new_items_total
    return {
        "has_exchange": True,
        "old_items_total": old_items_total,
        "new_items_total": new_items_total,
        "balance_payable": -balance if balance < 0 else ZERO,
        "balance_refundable": balance if balance > 0 else ZERO,
    }


def payment_amounts(net_payable, payment_status, paid_amount=None) -> dict:
    """
    Paid / due split for the amount the customer owes.

    paid    → everything paid
    pending → nothing paid
    partial → paid_amount given; must be between 0 and the amount owed
    """
    owed = money(net_payable)
    status = PaymentStatus(payment_status)

    if status == PaymentStatus.PAID:
        paid = owed
    elif status == PaymentStatus.PENDING:
        paid = ZERO
    else:
        paid = money(paid_amount)
        if paid < 0 or paid > owed:
            raise SwarnaBillError("Paid amount must be between 0 and the amount payable")

    return {"paid_amount": paid, "due_amount": owed - paid}
