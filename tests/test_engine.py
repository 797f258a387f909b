"""
Pure engine tests: rate resolution, item valuation, exchange valuation,
bill assembly, payment split and amount in words. No database.
"""

from decimal import Decimal

import pytest

from common.amount_words import number_to_words
from common.exceptions import SwarnaBillError, RateNotFoundError, InvalidPurityError
from common.helpers import money
from modules.billing.assembler import assemble_bill, settle_exchange, payment_amounts, DiscountType
from modules.billing.calculator import (
    calculate_item_amount, value_line_item, resolve_net_weight, split_gst, parse_making_type, MakingChargeType,
)
from modules.exchange.calculator import calculate_exchange_value, value_old_item
from modules.rate.models import MetalType
from modules.rate.resolver import resolve_rate, rate_for, base_unit_rate, purity_multiplier


# ============================================================================
# RATE RESOLVER
# ============================================================================

class TestRateResolver:

    def test_kg_rate_is_priced_per_gram(self, rate_map):
        assert base_unit_rate(rate_map[MetalType.GOLD]) == Decimal("6000")

    def test_carat_rate_is_unchanged(self, rate_map):
        assert base_unit_rate(rate_map[MetalType.DIAMOND]) == Decimal("50000")

    @pytest.mark.parametrize("purity,expected", [
        ("24K", Decimal("6000")),
        ("22K", Decimal("5500.2")),
        ("18K", Decimal("4500")),
        ("14K", Decimal("3499.8")),
        ("", Decimal("6000")),
    ])
    def test_gold_purity_multiplier(self, rate_map, purity, expected):
        assert resolve_rate(rate_map[MetalType.GOLD], purity) == expected

    def test_multiplier_only_applies_to_gold(self):
        assert purity_multiplier("Silver", "22K") == Decimal("1")

    def test_unknown_gold_purity_rejected(self, rate_map):
        with pytest.raises(InvalidPurityError):
            resolve_rate(rate_map[MetalType.GOLD], "23K")

    def test_purity_outside_rate_levels_rejected(self, rate_map):
        with pytest.raises(InvalidPurityError):
            resolve_rate(rate_map[MetalType.SILVER], "800")

    def test_missing_metal_raises(self, rate_map):
        with pytest.raises(RateNotFoundError) as exc:
            rate_for(rate_map, MetalType.PLATINUM)
        assert exc.value.message == "Rate not found for Platinum. Please set rates first."


# ============================================================================
# ITEM VALUATION
# ============================================================================

class TestItemValuation:

    def test_gold_22k_scenario(self):
        """10 g of 22K at 6,000,000/kg with 10% making, 3% / 5% GST intra-state."""
        result = calculate_item_amount(
            net_weight=10,
            rate_per_unit=Decimal("6000") * Decimal("0.9167"),
            making_charge_type="percentage",
            making_charge_value=10,
            gst_on_metal=3,
            gst_on_making=5,
            is_intra_state=True,
        )
        assert result["metal_amount"] == Decimal("55002")
        assert result["making_charge_amount"] == Decimal("5500.2")
        assert result["gst_on_metal"]["total"] == Decimal("1650.06")
        assert result["gst_on_metal"]["cgst"] == Decimal("825.03")
        assert result["gst_on_making"]["total"] == Decimal("275.01")
        assert result["gst_on_making"]["sgst"] == Decimal("137.505")
        assert result["line_total"] == Decimal("62427.27")

    def test_value_line_item_uses_rate_map(self, rate_map, gold_item):
        line = value_line_item(gold_item, rate_map)
        assert line["effective_rate"] == Decimal("5500.2")
        assert line["purity_multiplier"] == Decimal("0.9167")
        assert line["line_total"] == Decimal("62427.27")
        assert line["is_exchange_item"] is False

    def test_inter_state_assigns_igst(self):
        result = calculate_item_amount(10, 100, "fixed", 0, gst_on_metal=3, is_intra_state=False)
        assert result["gst_on_metal"]["igst"] == Decimal("30")
        assert result["gst_on_metal"]["cgst"] == 0

    def test_per_gram_making(self):
        result = calculate_item_amount(4, 1000, "GRM", 500, gst_on_metal=0, gst_on_making=0)
        assert result["making_charge_amount"] == Decimal("2000")

    def test_fixed_making_is_verbatim(self):
        result = calculate_item_amount(4, 1000, "fixed", 750, gst_on_metal=0, gst_on_making=0)
        assert result["making_charge_amount"] == Decimal("750")

    def test_making_discount(self):
        result = calculate_item_amount(10, 1000, "percentage", 10, making_charge_discount=25,
                                       gst_on_metal=0, gst_on_making=0)
        assert result["making_charge_amount"] == Decimal("750")

    def test_making_discount_out_of_range(self):
        with pytest.raises(SwarnaBillError):
            calculate_item_amount(10, 1000, "percentage", 10, making_charge_discount=120)

    def test_quantity_does_not_scale_amount(self, rate_map, gold_item):
        single = value_line_item(gold_item, rate_map)
        triple = value_line_item({**gold_item, "quantity": 3}, rate_map)
        assert triple["metal_amount"] == single["metal_amount"]
        assert triple["quantity"] == 3

    def test_net_weight_from_gross_and_less(self):
        assert resolve_net_weight(gross_weight=Decimal("12.5"), less_weight=Decimal("2.5")) == Decimal("10.0")

    def test_net_weight_must_be_positive(self):
        with pytest.raises(SwarnaBillError):
            resolve_net_weight(gross_weight=5, less_weight=5)

    def test_item_gst_overrides_bill_gst(self, rate_map, gold_item):
        line = value_line_item({**gold_item, "gst_on_metal": Decimal("0")}, rate_map, gst_on_metal=Decimal("3"))
        assert line["gst_on_metal"]["total"] == 0

    def test_making_type_aliases(self):
        assert parse_making_type("perGram") == MakingChargeType.PER_GRAM
        assert parse_making_type("per_gram") == MakingChargeType.PER_GRAM
        with pytest.raises(SwarnaBillError):
            parse_making_type("weekly")

    def test_split_gst_halves(self):
        split = split_gst(Decimal("275.01"), True)
        assert split["cgst"] + split["sgst"] == Decimal("275.01")


# ============================================================================
# EXCHANGE VALUATION
# ============================================================================

class TestExchangeValuation:

    def test_silver_scenario(self):
        result = calculate_exchange_value(
            weight=20, rate=75, wastage_percent=2, melting_charge=50, shop_deduction_percent=3,
        )
        assert result["gross_value"] == Decimal("1500")
        assert result["after_shop_deduction"] == Decimal("1455")
        assert result["after_wastage"] == Decimal("1425.9")
        assert result["exchange_value"] == Decimal("1375.9")

    def test_without_shop_deduction(self):
        result = calculate_exchange_value(20, 75, wastage_percent=2, melting_charge=0, shop_deduction_percent=0)
        assert result["exchange_value"] == Decimal("1470")

    def test_melting_charge_never_makes_value_negative(self):
        result = calculate_exchange_value(1, 10, wastage_percent=0, melting_charge=500)
        assert result["exchange_value"] == 0

    def test_more_wastage_never_increases_value(self):
        values = [
            calculate_exchange_value(10, 6000, wastage_percent=w, melting_charge=100)["exchange_value"]
            for w in (0, 2, 5, 10, 50)
        ]
        assert values == sorted(values, reverse=True)

    def test_item_rate_wins_over_live_rate(self, rate_map, silver_old_item):
        valued = value_old_item(silver_old_item, rate_map)
        assert valued["rate_source"] == "item"
        assert valued["exchange_value"] == Decimal("1375.9")

    def test_live_rate_applies_purity(self, rate_map):
        valued = value_old_item(
            {"metal_type": MetalType.GOLD, "purity": "22K", "weight": 10}, rate_map,
            shop_deduction_percent=Decimal("0"),
        )
        assert valued["rate"] == Decimal("5500.2")
        assert valued["rate_source"] == "live"

    def test_default_description_uses_metal_name(self, rate_map):
        valued = value_old_item({"metal_type": MetalType.SILVER, "weight": 20, "rate": 75}, rate_map)
        assert valued["description"] == "Old Silver item"
        assert valued["metal_type"] == "Silver"

    def test_invalid_weight(self):
        with pytest.raises(SwarnaBillError):
            calculate_exchange_value(0, 75)


# ============================================================================
# BILL ASSEMBLY
# ============================================================================

class TestBillAssembly:

    def test_single_gold_item_totals(self, rate_map, gold_item):
        totals = assemble_bill([value_line_item(gold_item, rate_map)])
        assert totals["sub_total"] == Decimal("60502.2")
        assert totals["gst_total"] == Decimal("1925.07")
        assert money(totals["grand_total"]) == Decimal("62427.27")
        assert totals["net_payable"] == totals["grand_total"]
        assert totals["exchange_details"]["has_exchange"] is False
        assert totals["amount_in_words"] == (
            "Sixty Two Thousand Four Hundred Twenty Seven Rupees and Twenty Seven Paise Only"
        )

    def test_grand_total_identity(self, rate_map, gold_item):
        totals = assemble_bill(
            [value_line_item(gold_item, rate_map)],
            discount=500, huid_charges=45,
        )
        assert totals["grand_total"] == (
            totals["sub_total"] - totals["discount_amount"] + totals["gst_total"] + totals["huid_charges_total"]
        )

    def test_exchange_balance_payable(self, rate_map, gold_item, silver_old_item):
        totals = assemble_bill(
            [value_line_item(gold_item, rate_map)],
            [value_old_item(silver_old_item, rate_map)],
        )
        details = totals["exchange_details"]
        assert details["old_items_total"] == Decimal("1375.9")
        assert money(details["balance_payable"]) == Decimal("61051.37")
        assert details["balance_refundable"] == 0
        assert totals["net_payable"] == details["balance_payable"]

    def test_exchange_balance_refundable(self):
        details = settle_exchange(Decimal("1000"), Decimal("400"))
        assert details["balance_refundable"] == Decimal("600")
        assert details["balance_payable"] == 0

    def test_exact_exchange_leaves_both_sides_zero(self):
        details = settle_exchange(Decimal("500"), Decimal("500"))
        assert details["balance_payable"] == 0
        assert details["balance_refundable"] == 0

    def test_percentage_discount_includes_huid(self, rate_map):
        line = value_line_item(
            {"metal_type": MetalType.DIAMOND, "weight": 1, "making_charge_value": 0,
             "gst_on_metal": 0, "gst_on_making": 0},
            rate_map,
        )
        totals = assemble_bill([line], discount=10, discount_type=DiscountType.PERCENTAGE,
                               huid_charges=1000, gst_on_making=0)
        assert totals["discount_amount"] == Decimal("5100")
        assert totals["grand_total"] == Decimal("45900")

    def test_huid_taxed_at_making_rate(self, rate_map):
        line = value_line_item(
            {"metal_type": MetalType.DIAMOND, "weight": 1, "making_charge_value": 0}, rate_map,
        )
        totals = assemble_bill([line], huid_charges=100, gst_on_making=5)
        assert totals["gst_breakdown"]["gst_on_huid"] == Decimal("5")

    def test_discount_larger_than_bill_rejected(self, rate_map):
        line = value_line_item({"metal_type": MetalType.DIAMOND, "weight": 1}, rate_map)
        with pytest.raises(SwarnaBillError):
            assemble_bill([line], discount=10_000_000)

    def test_bill_needs_items(self):
        with pytest.raises(SwarnaBillError):
            assemble_bill([])


# ============================================================================
# PAYMENT SPLIT
# ============================================================================

class TestPaymentAmounts:

    def test_paid(self):
        assert payment_amounts(Decimal("1000.005"), "paid") == {
            "paid_amount": Decimal("1000.01"), "due_amount": Decimal("0.00"),
        }

    def test_pending(self):
        assert payment_amounts(Decimal("1000"), "pending")["due_amount"] == Decimal("1000.00")

    def test_partial(self):
        result = payment_amounts(Decimal("5000"), "partial", Decimal("1200"))
        assert result["due_amount"] == Decimal("3800.00")

    def test_partial_over_amount_rejected(self):
        with pytest.raises(SwarnaBillError):
            payment_amounts(Decimal("5000"), "partial", Decimal("6000"))


# ============================================================================
# AMOUNT IN WORDS
# ============================================================================

class TestAmountInWords:

    @pytest.mark.parametrize("amount,words", [
        (0, "Zero Rupees Only"),
        (1500000, "Fifteen Lakh Rupees Only"),
        (Decimal("100000.50"), "One Lakh Rupees and Fifty Paise Only"),
        (Decimal("12345678"), "One Crore Twenty Three Lakh Forty Five Thousand Six Hundred Seventy Eight Rupees Only"),
        (Decimal("1375.90"), "One Thousand Three Hundred Seventy Five Rupees and Ninety Paise Only"),
        (Decimal("99.999"), "One Hundred Rupees Only"),
        (Decimal("0.07"), "Zero Rupees and Seven Paise Only"),
    ])
    def test_examples(self, amount, words):
        assert number_to_words(amount) == words

    def test_large_crore_amounts(self):
        assert number_to_words(1_500_000_000) == "One Hundred Fifty Crore Rupees Only"

    def test_no_hyphens_or_inner_and(self):
        assert number_to_words(Decimal("121.21")) == "One Hundred Twenty One Rupees and Twenty One Paise Only"
        assert number_to_words(101) == "One Hundred One Rupees Only"

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            number_to_words(-1)
