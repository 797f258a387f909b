"""
Report Module - Service Layer
===============================
Sales, GST and customer reports over active bills.

Archived bills never reach a report: every query starts from _active_bills().
Grouping by day / month uses the shop's local calendar.
"""

import logging
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from config.settings import PREMIUM_AVG_BILL_VALUE
from common.exceptions import SwarnaBillError
from common.helpers import ZERO, money, local_day_bounds, to_local, to_jsonable, today_local
from modules.billing.models import Bill, BillItem, RecordStatus
from modules.rate.models import MetalType

logger = logging.getLogger("swarnabill.reports")

GROUP_BY_FORMATS = {"day": "%Y-%m-%d", "month": "%Y-%m"}


def _active_bills(db: Session, date_from: Optional[date] = None, date_to: Optional[date] = None):
    q = db.query(Bill).filter(Bill.record_status == RecordStatus.ACTIVE.value)
    if date_from or date_to:
        lo, hi = local_day_bounds(date_from or date_to, date_to or date_from)
        if date_from:
            q = q.filter(Bill.bill_date >= lo)
        if date_to:
            q = q.filter(Bill.bill_date < hi)
    return q


class ReportService:

    # ==========================================
    # Sales
    # ==========================================

    def sales_report(
        self,
        db: Session,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        metal_type: Optional[str] = None,
        group_by: str = "day",
    ) -> dict:
        """
        Sales grouped by day or month.

        Per group: bill count, sales (grand totals), new-item count, metal-wise
        count/amount and payment-mode totals. A metal filter keeps bills that
        contain at least one new item of that metal.
        """
        if group_by not in GROUP_BY_FORMATS:
            raise SwarnaBillError("group_by must be 'day' or 'month'")
        fmt = GROUP_BY_FORMATS[group_by]

        q = _active_bills(db, date_from, date_to).options(selectinload(Bill.items))
        if metal_type:
            metal = MetalType(metal_type).value
            q = q.filter(Bill.items.any((BillItem.metal_type == metal) & (BillItem.is_exchange_item == False)))
        bills = q.order_by(Bill.bill_date).all()

        groups = {}
        for bill in bills:
            key = to_local(bill.bill_date).strftime(fmt)
            group = groups.setdefault(key, {
                "date": key,
                "total_bills": 0,
                "total_sales": ZERO,
                "total_items": 0,
                "metal_wise": defaultdict(lambda: {"count": 0, "amount": ZERO}),
                "payment_mode": defaultdict(lambda: ZERO),
            })
            group["total_bills"] += 1
            group["total_sales"] += bill.grand_total
            new_items = bill.new_items
            group["total_items"] += len(new_items)
            for item in new_items:
                group["metal_wise"][item.metal_type]["count"] += 1
                group["metal_wise"][item.metal_type]["amount"] += item.line_total
            group["payment_mode"][bill.payment_mode] += bill.grand_total

        rows = [groups[k] for k in sorted(groups)]
        for row in rows:
            row["metal_wise"] = dict(row["metal_wise"])
            row["payment_mode"] = dict(row["payment_mode"])

        metal_totals = defaultdict(lambda: {"count": 0, "amount": ZERO})
        for row in rows:
            for metal, agg in row["metal_wise"].items():
                metal_totals[metal]["count"] += agg["count"]
                metal_totals[metal]["amount"] += agg["amount"]

        total_sales = sum((r["total_sales"] for r in rows), ZERO)
        summary = {
            "total_period_bills": sum(r["total_bills"] for r in rows),
            "total_period_sales": total_sales,
            "average_sales": money(total_sales / len(rows)) if rows else ZERO,
            "highest_sale": max(rows, key=lambda r: r["total_sales"])["date"] if rows else None,
            "metal_wise_total": dict(metal_totals),
        }
        logger.info(f"Sales report: {len(bills)} bills, {len(rows)} {group_by} groups")
        return {
            "period": {"date_from": date_from, "date_to": date_to, "group_by": group_by},
            "summary": summary,
            "rows": rows,
        }

    # ==========================================
    # GST
    # ==========================================

    def gst_report(self, db: Session, month: Optional[int] = None, year: Optional[int] = None) -> dict:
        """Monthly GST summary from the stored CGST / SGST / IGST split of each bill."""
        today = today_local()
        month = month or today.month
        year = year or today.year
        if not 1 <= month <= 12:
            raise SwarnaBillError("month must be between 1 and 12")

        first = date(year, month, 1)
        last = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
        bills = (
            _active_bills(db, first, last - timedelta(days=1))
            .order_by(Bill.bill_date, Bill.id)
            .all()
        )

        totals = {"taxable_value": ZERO, "cgst": ZERO, "sgst": ZERO, "igst": ZERO, "total": ZERO}
        rows = []
        for bill in bills:
            totals["taxable_value"] += bill.total_before_gst
            totals["cgst"] += bill.cgst_amount
            totals["sgst"] += bill.sgst_amount
            totals["igst"] += bill.igst_amount
            totals["total"] += bill.gst_total
            rows.append({
                "bill_number": bill.bill_number,
                "date": to_local(bill.bill_date),
                "customer_name": bill.customer_name,
                "gst_type": bill.gst_type,
                "taxable_value": bill.total_before_gst,
                "cgst": bill.cgst_amount,
                "sgst": bill.sgst_amount,
                "igst": bill.igst_amount,
                "gst": bill.gst_total,
                "total": bill.grand_total,
            })

        return {
            "period": f"{month:02d}/{year}",
            "total_bills": len(bills),
            "total_taxable_value": totals.pop("taxable_value"),
            "gst_breakdown": totals,
            "bills": rows,
        }

    # ==========================================
    # Customers
    # ==========================================

    def customer_report(
        self,
        db: Session,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        min_purchase: Decimal = ZERO,
        limit: int = 100,
    ) -> dict:
        """Per-customer totals keyed by mobile, with premium / regular / new segments."""
        customers = {}
        for bill in _active_bills(db, date_from, date_to).order_by(Bill.bill_date).all():
            c = customers.setdefault(bill.customer_mobile, {
                "mobile": bill.customer_mobile,
                "name": bill.customer_name,
                "total_bills": 0,
                "total_purchase": ZERO,
                "first_purchase": bill.bill_date,
                "last_purchase": bill.bill_date,
                "exchange_count": 0,
            })
            c["total_bills"] += 1
            c["total_purchase"] += bill.grand_total
            c["last_purchase"] = bill.bill_date
            if bill.has_exchange:
                c["exchange_count"] += 1

        rows: List[dict] = []
        for c in customers.values():
            if c["total_purchase"] < min_purchase:
                continue
            c["average_bill_value"] = money(c["total_purchase"] / c["total_bills"])
            c["first_purchase"] = to_local(c["first_purchase"])
            c["last_purchase"] = to_local(c["last_purchase"])
            rows.append(c)
        rows.sort(key=lambda c: c["total_purchase"], reverse=True)
        rows = rows[:limit]

        segments = {name: {"count": 0, "total": ZERO} for name in ("premium", "regular", "new")}
        for c in rows:
            segment = self.segment_for(c["average_bill_value"], c["total_bills"])
            c["segment"] = segment
            segments[segment]["count"] += 1
            segments[segment]["total"] += c["total_purchase"]

        return {"customers": rows, "segments": segments, "total_customers": len(rows)}

    @staticmethod
    def segment_for(average_bill_value: Decimal, total_bills: int) -> str:
        if average_bill_value > PREMIUM_AVG_BILL_VALUE:
            return "premium"
        if total_bills > 1:
            return "regular"
        return "new"

    def to_json(self, report: dict) -> dict:
        return to_jsonable(report)


report_service = ReportService()
