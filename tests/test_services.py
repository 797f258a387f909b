"""
Service layer tests against the database:
- Bill creation, read-back and atomic failure
- Number generation (sequence, retry, fallback)
- Exchange save / convert / cancel / archive
- Payment updates and archiving
- Reports
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from common.helpers import today_local
from common.exceptions import (
    DuplicateNumberError, RateNotFoundError, InvalidStateError, NotFoundError, PersistenceError,
    SwarnaBillError,
)
from modules.billing.ledger import Ledger
from modules.billing import numbering
from modules.billing.models import Bill, BillPaymentLog
from modules.billing.numbering import NumberGenerator, bill_prefix
from modules.billing.service import billing_service, bill_to_dict
from modules.exchange.models import ExchangeStatus
from modules.exchange.service import exchange_service
from modules.rate.models import MetalType
from modules.rate.service import rate_service
from modules.report.service import report_service

BILL_DAY = date(2024, 3, 15)


def bill_data(customer, items, **extra) -> dict:
    return {"customer": customer, "items": items, **extra}


# ============================================================================
# BILL CREATION
# ============================================================================

class TestCreateBill:

    def test_totals_are_stored(self, db, rates, staff_user, customer, gold_item):
        bill = billing_service.create_bill(db, bill_data(customer, [gold_item]), user=staff_user)

        assert bill.grand_total == Decimal("62427.27")
        assert bill.gst_total == Decimal("1925.07")
        assert bill.cgst_amount + bill.sgst_amount == bill.gst_total
        assert bill.igst_amount == 0
        assert bill.payment_status == "paid"
        assert bill.paid_amount == Decimal("62427.27")
        assert bill.due_amount == 0
        assert bill.created_by_id == staff_user.id
        assert len(bill.new_items) == 1
        assert bill.new_items[0].effective_rate == Decimal("5500.2")

    def test_read_back_is_identical(self, db, rates, staff_user, customer, gold_item, silver_old_item):
        created = billing_service.create_bill(
            db, bill_data(customer, [gold_item], exchange_items=[silver_old_item], huid_charges=45),
            user=staff_user,
        )
        created_dict = bill_to_dict(created)
        db.expire_all()

        fetched = billing_service.get_bill(db, created.bill_number)
        assert bill_to_dict(fetched) == created_dict

    def test_exchange_items_are_stored_as_credits(self, db, rates, customer, gold_item, silver_old_item):
        bill = billing_service.create_bill(
            db, bill_data(customer, [gold_item], exchange_items=[silver_old_item]),
        )
        assert bill.has_exchange is True
        assert bill.old_items_total == Decimal("1375.90")
        assert bill.balance_payable == Decimal("61051.37")
        assert bill.balance_refundable == 0
        assert bill.net_payable == Decimal("61051.37")
        assert bill.exchange_items[0].line_total == Decimal("-1375.90")

    def test_inter_state_bill_uses_igst(self, db, rates, customer, gold_item):
        bill = billing_service.create_bill(db, bill_data(customer, [gold_item], is_intra_state=False))
        assert bill.igst_amount == bill.gst_total
        assert bill.cgst_amount == 0
        assert bill.gst_type == "IGST"

    def test_metal_gst_default_comes_from_settings(self, db, rates, customer, monkeypatch):
        monkeypatch.setattr("modules.rate.service.DEFAULT_GST_ON_METAL", Decimal("1.5"))
        rate = rate_service.set_rate(db, MetalType.PLATINUM, Decimal("3200000"))
        db.commit()
        assert rate.gst_rate == Decimal("1.5")

        platinum = {"metal_type": MetalType.PLATINUM, "weight": Decimal("10")}
        bill = billing_service.create_bill(db, bill_data(customer, [platinum]))
        assert bill.total_metal_amount == Decimal("32000.00")
        assert bill.gst_on_metal_amount == Decimal("480.00")
        assert bill.new_items[0].gst_on_metal_percent == Decimal("1.5")

    def test_missing_rate_persists_nothing(self, db, rates, customer, gold_item):
        platinum = {"metal_type": MetalType.PLATINUM, "weight": Decimal("5")}
        with pytest.raises(RateNotFoundError):
            billing_service.create_bill(db, bill_data(customer, [gold_item, platinum]))
        assert db.query(Bill).count() == 0

    def test_partial_payment(self, db, rates, customer, gold_item):
        bill = billing_service.create_bill(
            db, bill_data(customer, [gold_item], payment_status="partial", paid_amount=Decimal("20000")),
        )
        assert bill.due_amount == Decimal("42427.27")

    def test_preview_matches_saved_bill(self, db, rates, customer, gold_item):
        preview = billing_service.calculate(db, bill_data(None, [gold_item]))
        bill = billing_service.create_bill(db, bill_data(customer, [gold_item]))
        assert preview["totals"]["grand_total"] == float(bill.grand_total)
        assert preview["totals"]["amount_in_words"] == bill.amount_in_words


# ============================================================================
# NUMBERING
# ============================================================================

class TestBillNumbers:

    def test_third_bill_of_the_day(self, db, rates, customer, gold_item):
        numbers = [
            billing_service.create_bill(db, bill_data(customer, [gold_item]), day=BILL_DAY).bill_number
            for _ in range(3)
        ]
        assert numbers == ["SMJ15032024001", "SMJ15032024002", "SMJ15032024003"]

    def test_sequence_restarts_each_day(self, db, rates, customer, gold_item):
        billing_service.create_bill(db, bill_data(customer, [gold_item]), day=BILL_DAY)
        bill = billing_service.create_bill(db, bill_data(customer, [gold_item]), day=date(2024, 3, 16))
        assert bill.bill_number == "SMJ16032024001"

    def test_conflict_falls_back_to_timestamp_number(self, db, rates, customer, gold_item):
        first = billing_service.create_bill(db, bill_data(customer, [gold_item]), day=BILL_DAY)
        first.bill_number = "SMJ15032024002"
        db.commit()

        bill = billing_service.create_bill(db, bill_data(customer, [gold_item]), day=BILL_DAY)
        assert bill.bill_number.startswith("SMJ15032024T")
        assert bill.is_number_canonical is False

    def test_single_conflict_retries_with_fresh_count(self):
        class MovingCountLedger:
            """Another counter saves a bill between the first count and insert."""
            counts = iter([1, 2])

            def count_by_date_prefix(self, prefix, kind=Ledger.BILL):
                return next(self.counts)

        attempts = []

        def insert(number, canonical):
            attempts.append((number, canonical))
            if len(attempts) == 1:
                raise DuplicateNumberError(number)
            return number

        number = NumberGenerator(MovingCountLedger(), Ledger.BILL).assign(insert, day=BILL_DAY)
        assert attempts == [("SMJ15032024002", True), ("SMJ15032024003", True)]
        assert number == "SMJ15032024003"

    def test_prefix_locks_are_bounded(self):
        prefixes = [bill_prefix(date(2024, 1, 1) + timedelta(days=n)) for n in range(400)]
        locks = {id(numbering._lock_for(p)) for p in prefixes}
        assert len(locks) <= numbering.LOCK_STRIPES
        assert numbering._lock_for(prefixes[0]) is numbering._lock_for(prefixes[0])

    def test_ledger_error_uses_fallback(self, db, rates, customer, gold_item, monkeypatch):
        def broken(self, prefix, kind=Ledger.BILL):
            raise PersistenceError("count_by_date_prefix", "connection lost")

        monkeypatch.setattr(Ledger, "count_by_date_prefix", broken)
        bill = billing_service.create_bill(db, bill_data(customer, [gold_item]), day=BILL_DAY)
        assert bill.bill_number.startswith("SMJ15032024T")
        assert bill.is_number_canonical is False

    def test_exchange_number_format(self, db, rates, customer, silver_old_item):
        first = exchange_service.create_exchange(
            db, {"customer": customer, "old_items": [silver_old_item]}, day=BILL_DAY,
        )
        second = exchange_service.create_exchange(
            db, {"customer": customer, "old_items": [silver_old_item]}, day=BILL_DAY,
        )
        assert first.exchange_number == "EXC-240315-001"
        assert second.exchange_number == "EXC-240315-002"


# ============================================================================
# EXCHANGES
# ============================================================================

class TestExchanges:

    def test_saved_exchange_keeps_snapshots(self, db, rates, customer, gold_item, silver_old_item):
        exchange = exchange_service.create_exchange(
            db, {"customer": customer, "old_items": [silver_old_item], "new_items": [gold_item]},
        )
        assert exchange.status == ExchangeStatus.CALCULATED
        assert exchange.old_items_total == Decimal("1375.90")
        assert exchange.new_items_total == Decimal("62427.27")
        assert exchange.balance_payable == Decimal("61051.37")
        assert exchange.old_items[0]["exchange_value"] == "1375.9"
        assert Decimal(exchange.rates_snapshot["Gold"]["rate_value"]) == Decimal("6000000")

    def test_refund_when_old_items_exceed(self, db, rates, customer, silver_old_item):
        exchange = exchange_service.create_exchange(db, {"customer": customer, "old_items": [silver_old_item]})
        assert exchange.balance_refundable == Decimal("1375.90")
        assert exchange.balance_payable == 0

    def test_bill_from_exchange_uses_stored_valuation(self, db, rates, staff_user, customer, gold_item, silver_old_item):
        exchange = exchange_service.create_exchange(db, {"customer": customer, "old_items": [silver_old_item]})

        # Later rate changes must not touch the saved valuation
        rate_service.set_rate(db, MetalType.SILVER, Decimal("90000"), purity_levels=["999", "925"])
        db.commit()

        bill = billing_service.create_bill(
            db, bill_data(customer, [gold_item], exchange_id=exchange.id), user=staff_user,
        )
        db.refresh(exchange)
        assert bill.old_items_total == Decimal("1375.90")
        assert bill.exchange_id == exchange.id
        assert exchange.status == ExchangeStatus.CONVERTED_TO_BILL
        assert exchange.linked_bill_number == bill.bill_number

    def test_converted_exchange_cannot_be_billed_again(self, db, rates, customer, gold_item, silver_old_item):
        exchange = exchange_service.create_exchange(db, {"customer": customer, "old_items": [silver_old_item]})
        billing_service.create_bill(db, bill_data(customer, [gold_item], exchange_id=exchange.id))

        with pytest.raises(InvalidStateError):
            billing_service.create_bill(db, bill_data(customer, [gold_item], exchange_id=exchange.id))
        assert db.query(Bill).count() == 1

    def test_exchange_id_and_items_are_exclusive(self, db, rates, customer, gold_item, silver_old_item):
        exchange = exchange_service.create_exchange(db, {"customer": customer, "old_items": [silver_old_item]})
        with pytest.raises(SwarnaBillError):
            billing_service.create_bill(
                db, bill_data(customer, [gold_item], exchange_id=exchange.id, exchange_items=[silver_old_item]),
            )

    def test_convert_links_existing_bill(self, db, rates, customer, gold_item, silver_old_item):
        exchange = exchange_service.create_exchange(db, {"customer": customer, "old_items": [silver_old_item]})
        bill = billing_service.create_bill(db, bill_data(customer, [gold_item]))

        converted = exchange_service.convert_to_bill(db, exchange.id, bill.bill_number)
        assert converted.status == ExchangeStatus.CONVERTED_TO_BILL
        assert converted.linked_bill_number == bill.bill_number

    def test_cancel_only_from_calculated(self, db, rates, customer, silver_old_item):
        exchange = exchange_service.create_exchange(db, {"customer": customer, "old_items": [silver_old_item]})
        exchange_service.cancel_exchange(db, exchange.id)
        assert exchange.status == ExchangeStatus.CANCELLED
        with pytest.raises(InvalidStateError):
            exchange_service.cancel_exchange(db, exchange.id)

    def test_archived_exchange_is_hidden(self, db, rates, customer, silver_old_item):
        exchange = exchange_service.create_exchange(db, {"customer": customer, "old_items": [silver_old_item]})
        exchange_service.archive_exchange(db, exchange.id)
        with pytest.raises(NotFoundError):
            exchange_service.get_exchange(db, exchange.exchange_number)
        items, total = exchange_service.list_exchanges(db)
        assert total == 0

    def test_stats(self, db, rates, customer, silver_old_item):
        exchange_service.create_exchange(db, {"customer": customer, "old_items": [silver_old_item]})
        stats = exchange_service.get_stats(db)
        assert stats["total"]["count"] == 1
        assert stats["total"]["old_items_value"] == 1375.9
        assert stats["by_status"]["calculated"] == 1


# ============================================================================
# PAYMENT & LIFECYCLE
# ============================================================================

class TestBillLifecycle:

    def test_payment_update_is_audited(self, db, rates, staff_user, customer, gold_item):
        bill = billing_service.create_bill(db, bill_data(customer, [gold_item], payment_status="pending"))
        assert bill.due_amount == Decimal("62427.27")

        billing_service.update_payment(
            db, bill.bill_number, "partial", paid_amount=Decimal("10000"),
            payment_mode="upi", remarks="advance", user=staff_user,
        )
        assert bill.payment_status == "partial"
        assert bill.due_amount == Decimal("52427.27")

        log = db.query(BillPaymentLog).filter(BillPaymentLog.bill_id == bill.id).one()
        assert log.previous_status == "pending"
        assert log.new_status == "partial"
        assert log.payment_mode == "upi"
        assert log.updated_by == staff_user.username

    def test_payment_update_never_changes_totals(self, db, rates, customer, gold_item):
        bill = billing_service.create_bill(db, bill_data(customer, [gold_item], payment_status="pending"))
        billing_service.update_payment(db, bill.bill_number, "paid")
        assert bill.grand_total == Decimal("62427.27")
        assert bill.paid_amount == Decimal("62427.27")

    def test_archived_bill_is_hidden_and_frozen(self, db, rates, admin_user, customer, gold_item):
        bill = billing_service.create_bill(db, bill_data(customer, [gold_item]))
        billing_service.archive_bill(db, bill.bill_number, user=admin_user)

        with pytest.raises(NotFoundError):
            billing_service.get_bill(db, bill.bill_number)
        assert billing_service.get_bill(db, bill.bill_number, include_archived=True).archived_by == "admin"
        with pytest.raises(InvalidStateError):
            billing_service.update_payment(db, bill.bill_number, "paid")
        bills, total = billing_service.list_bills(db)
        assert total == 0

    def test_list_filters(self, db, rates, customer, gold_item):
        billing_service.create_bill(db, bill_data(customer, [gold_item]))
        billing_service.create_bill(
            db, bill_data({**customer, "name": "Sita Devi", "mobile": "9123456780"}, [gold_item],
                          payment_status="pending"),
        )
        _, total = billing_service.list_bills(db, search="sita")
        assert total == 1
        _, total = billing_service.list_bills(db, payment_status="pending")
        assert total == 1
        _, total = billing_service.list_bills(db, mobile="9876543210")
        assert total == 1


# ============================================================================
# REPORTS
# ============================================================================

class TestReports:

    def test_sales_report_excludes_archived(self, db, rates, customer, gold_item, silver_old_item):
        billing_service.create_bill(db, bill_data(customer, [gold_item]))
        archived = billing_service.create_bill(db, bill_data(customer, [gold_item]))
        billing_service.archive_bill(db, archived.bill_number)

        report = report_service.sales_report(db)
        assert report["summary"]["total_period_bills"] == 1
        assert report["summary"]["total_period_sales"] == Decimal("62427.27")
        assert report["rows"][0]["metal_wise"]["Gold"]["count"] == 1
        assert report["rows"][0]["payment_mode"]["cash"] == Decimal("62427.27")

    def test_sales_report_metal_filter(self, db, rates, customer, gold_item):
        billing_service.create_bill(db, bill_data(customer, [gold_item]))
        report = report_service.sales_report(db, metal_type="Silver")
        assert report["summary"]["total_period_bills"] == 0

    def test_sales_report_rejects_bad_grouping(self, db):
        with pytest.raises(SwarnaBillError):
            report_service.sales_report(db, group_by="week")

    def test_gst_report_uses_stored_split(self, db, rates, customer, gold_item):
        billing_service.create_bill(db, bill_data(customer, [gold_item]))
        billing_service.create_bill(db, bill_data(customer, [gold_item], is_intra_state=False))

        today = today_local()
        report = report_service.gst_report(db, month=today.month, year=today.year)
        assert report["total_bills"] == 2
        assert report["gst_breakdown"]["igst"] == Decimal("1925.07")
        assert report["gst_breakdown"]["cgst"] + report["gst_breakdown"]["sgst"] == Decimal("1925.07")
        assert report["total_taxable_value"] == Decimal("121004.40")

    def test_customer_segments(self, db, rates, customer, gold_item):
        small = {"metal_type": MetalType.SILVER, "purity": "999", "weight": Decimal("10")}
        billing_service.create_bill(db, bill_data(customer, [gold_item]))
        regular = {"name": "Sita Devi", "mobile": "9123456780"}
        billing_service.create_bill(db, bill_data(regular, [small]))
        billing_service.create_bill(db, bill_data(regular, [small]))
        newcomer = {"name": "Amit", "mobile": "9000000001"}
        billing_service.create_bill(db, bill_data(newcomer, [small]))

        report = report_service.customer_report(db)
        by_mobile = {c["mobile"]: c for c in report["customers"]}
        assert by_mobile["9876543210"]["segment"] == "premium"
        assert by_mobile["9123456780"]["segment"] == "regular"
        assert by_mobile["9000000001"]["segment"] == "new"
        assert report["customers"][0]["mobile"] == "9876543210"

    def test_customer_min_purchase(self, db, rates, customer, gold_item):
        billing_service.create_bill(db, bill_data(customer, [gold_item]))
        report = report_service.customer_report(db, min_purchase=Decimal("100000"))
        assert report["total_customers"] == 0
