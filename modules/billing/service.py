"""
Billing Module - Service Layer
================================
Bill preview, creation, lookup, payment updates and archiving.

Creation is one transaction: rate snapshot → item / old-item valuation →
assembly → number assignment + ledger insert → optional exchange conversion
→ commit. Any failure rolls the whole bill back.
"""

import logging
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy import desc, or_
from sqlalchemy.orm import Session

from config.settings import SHOP_NAME, SHOP_ADDRESS, SHOP_PHONE, SHOP_GSTIN
from common.exceptions import SwarnaBillError, NotFoundError, InvalidStateError
from common.helpers import now_utc, local_day_bounds, money, to_jsonable, to_local
from modules.billing.assembler import assemble_bill, payment_amounts, PaymentStatus, DiscountType
from modules.billing.calculator import value_line_item
from modules.billing.ledger import Ledger
from modules.billing.models import Bill, BillItem, BillPaymentLog, RecordStatus
from modules.billing.numbering import NumberGenerator
from modules.billing.snapshot import line_columns, exchange_line_columns, totals_columns
from modules.exchange.calculator import value_old_item, restore_valuation
from modules.rate.models import MetalType
from modules.rate.service import rate_service
from modules.user.models import User

logger = logging.getLogger("swarnabill.billing")

_TOTAL_FIELDS = (
    "total_metal_amount", "total_making_charges", "sub_total", "discount", "discount_type",
    "discount_amount", "huid_charges_total", "total_before_gst", "gst_total", "grand_total",
)
_GST_FIELDS = (
    "cgst_amount", "sgst_amount", "igst_amount",
    "gst_on_metal_amount", "gst_on_making_amount", "gst_on_huid_amount",
)
_EXCHANGE_FIELDS = ("has_exchange", "old_items_total", "new_items_total", "balance_payable", "balance_refundable")


def _item_to_dict(item: BillItem) -> dict:
    data = {c.name: getattr(item, c.name) for c in BillItem.__table__.columns if c.name != "bill_id"}
    return to_jsonable(data)


def bill_to_dict(bill: Bill, include_items: bool = True) -> dict:
    """API representation, built only from stored values."""
    data = {
        "id": bill.id,
        "bill_number": bill.bill_number,
        "bill_date": to_local(bill.bill_date),
        "is_number_canonical": bill.is_number_canonical,
        "shop": {"name": SHOP_NAME, "address": SHOP_ADDRESS, "phone": SHOP_PHONE, "gstin": SHOP_GSTIN},
        "customer": bill.customer,
        "totals": {f: getattr(bill, f) for f in _TOTAL_FIELDS},
        "gst_breakdown": {f: getattr(bill, f) for f in _GST_FIELDS},
        "gst_type": bill.gst_type,
        "is_intra_state": bill.is_intra_state,
        "exchange_details": {f: getattr(bill, f) for f in _EXCHANGE_FIELDS},
        "exchange_number": bill.exchange.exchange_number if bill.exchange else None,
        "amount_in_words": bill.amount_in_words,
        "payment": {
            "net_payable": bill.net_payable,
            "payment_mode": bill.payment_mode,
            "payment_status": bill.payment_status,
            "paid_amount": bill.paid_amount,
            "due_amount": bill.due_amount,
        },
        "notes": bill.notes,
        "record_status": bill.record_status,
        "created_by": bill.created_by.username if bill.created_by else None,
    }
    if include_items:
        data["items"] = [_item_to_dict(i) for i in bill.new_items]
        data["exchange_items"] = [_item_to_dict(i) for i in bill.exchange_items]
        data["payment_history"] = [
            {
                "date": to_local(log.created_at),
                "previous_status": log.previous_status,
                "new_status": log.new_status,
                "payment_mode": log.payment_mode,
                "paid_amount": log.paid_amount,
                "remarks": log.remarks,
                "updated_by": log.updated_by,
            }
            for log in bill.payment_logs
        ]
    return to_jsonable(data)


class BillingService:
    """Stateless service: every method takes the db session."""

    # ==========================================
    # Pricing
    # ==========================================

    def _metals_needed(self, items: List[dict], exchange_items: List[dict]) -> set:
        metals = {MetalType(i["metal_type"]) for i in items}
        metals |= {MetalType(i["metal_type"]) for i in exchange_items if i.get("rate") is None}
        return metals

    def price(self, db: Session, data: dict, old_items: Optional[List[dict]] = None) -> dict:
        """
        Value every line and assemble totals. Nothing is written.

        old_items, when given, are already-valued surrendered items (from a
        saved exchange) and replace data["exchange_items"].
        """
        items = data.get("items") or []
        exchange_items = [] if old_items is not None else (data.get("exchange_items") or [])
        is_intra = data.get("is_intra_state", True)

        rate_map = rate_service.get_rate_map(db, self._metals_needed(items, exchange_items))

        priced = [
            value_line_item(
                item, rate_map,
                gst_on_metal=data.get("gst_on_metal"),
                gst_on_making=data.get("gst_on_making"),
                is_intra_state=is_intra,
            )
            for item in items
        ]
        if old_items is None:
            old_items = [
                value_old_item(item, rate_map, data.get("shop_deduction_percent"))
                for item in exchange_items
            ]

        totals = assemble_bill(
            priced, old_items,
            discount=data.get("discount") or 0,
            discount_type=data.get("discount_type") or DiscountType.AMOUNT,
            huid_charges=data.get("huid_charges") or 0,
            gst_on_making=data.get("gst_on_making"),
            is_intra_state=is_intra,
        )
        return {
            "items": [line_columns(p) for p in priced],
            "exchange_items": [exchange_line_columns(o) for o in old_items],
            "totals": totals_columns(totals),
            "rates": {m.value: r.to_dict() for m, r in rate_map.items()},
        }

    def calculate(self, db: Session, data: dict) -> dict:
        """Preview with the same rounding a saved bill would get."""
        return to_jsonable(self.price(db, data))

    # ==========================================
    # Create
    # ==========================================

    def create_bill(self, db: Session, data: dict, user: Optional[User] = None, day: Optional[date] = None) -> Bill:
        """
        Price, number and persist a bill in one transaction.

        data["exchange_id"] links a saved exchange: its stored old-item
        valuations are used as-is and the exchange is marked converted.
        """
        ledger = Ledger(db)
        try:
            exchange = None
            old_items = None
            if data.get("exchange_id"):
                if data.get("exchange_items"):
                    raise SwarnaBillError("Send either exchange_id or exchange_items, not both")
                exchange = ledger.get_exchange(data["exchange_id"])
                if not exchange:
                    raise NotFoundError(f"Exchange {data['exchange_id']} not found")
                if not exchange.is_convertible:
                    raise InvalidStateError(
                        f"Exchange {exchange.exchange_number} cannot be billed (status: {exchange.status})"
                    )
                old_items = [restore_valuation(o) for o in exchange.old_items]

            priced = self.price(db, data, old_items=old_items)
            totals = priced["totals"]
            status = PaymentStatus(data.get("payment_status") or PaymentStatus.PAID)
            payment = payment_amounts(totals["net_payable"], status, data.get("paid_amount"))
            customer = data["customer"]

            def insert(number: str, canonical: bool) -> Bill:
                bill = Bill(
                    bill_number=number,
                    is_number_canonical=canonical,
                    bill_date=now_utc(),
                    customer_name=customer["name"],
                    customer_mobile=customer["mobile"],
                    customer_address=customer.get("address"),
                    customer_dob=customer.get("dob"),
                    customer_pan=customer.get("pan"),
                    customer_aadhaar=customer.get("aadhaar"),
                    gst_on_metal_percent=data.get("gst_on_metal"),
                    gst_on_making_percent=data.get("gst_on_making"),
                    exchange_id=exchange.id if exchange else None,
                    payment_mode=str(data.get("payment_mode") or "cash"),
                    payment_status=status.value,
                    notes=data.get("notes"),
                    record_status=RecordStatus.ACTIVE.value,
                    created_by_id=user.id if user else None,
                    **totals,
                    **payment,
                )
                lines = priced["items"] + priced["exchange_items"]
                bill.items = [BillItem(line_no=n, **cols) for n, cols in enumerate(lines, start=1)]
                ledger.insert_bill(bill)
                return bill

            bill = NumberGenerator(ledger, Ledger.BILL).assign(insert, day=day)

            if exchange:
                ledger.mark_converted(exchange.id, bill.bill_number)

            ledger.commit("create_bill")
        except SwarnaBillError:
            db.rollback()
            raise

        logger.info(
            f"Bill {bill.bill_number} created: total={bill.grand_total} "
            f"payable={bill.net_payable} by={user.username if user else '-'}"
        )
        return bill

    # ==========================================
    # Lookup
    # ==========================================

    def get_bill(self, db: Session, bill_number: str, include_archived: bool = False) -> Bill:
        bill = Ledger(db).get_bill_by_number(bill_number)
        if not bill or (not include_archived and not bill.is_active):
            raise NotFoundError(f"Bill {bill_number} not found")
        return bill

    def list_bills(
        self,
        db: Session,
        search: Optional[str] = None,
        mobile: Optional[str] = None,
        payment_status: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        include_archived: bool = False,
        page: int = 1,
        per_page: int = 20,
    ) -> Tuple[List[Bill], int]:
        q = db.query(Bill)
        if not include_archived:
            q = q.filter(Bill.record_status == RecordStatus.ACTIVE.value)
        if search:
            term = f"%{search.strip()}%"
            q = q.filter(or_(Bill.bill_number.ilike(term), Bill.customer_name.ilike(term)))
        if mobile:
            q = q.filter(Bill.customer_mobile == mobile)
        if payment_status:
            q = q.filter(Bill.payment_status == PaymentStatus(payment_status).value)
        if date_from or date_to:
            lo, hi = local_day_bounds(date_from or date_to, date_to or date_from)
            if date_from:
                q = q.filter(Bill.bill_date >= lo)
            if date_to:
                q = q.filter(Bill.bill_date < hi)

        total = q.count()
        bills = (
            q.order_by(desc(Bill.bill_date), desc(Bill.id))
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return bills, total

    # ==========================================
    # Payment / lifecycle
    # ==========================================

    def update_payment(
        self,
        db: Session,
        bill_number: str,
        payment_status: str,
        paid_amount=None,
        payment_mode: Optional[str] = None,
        remarks: Optional[str] = None,
        user: Optional[User] = None,
    ) -> Bill:
        """Change payment status and append an audit entry. Totals never change."""
        bill = self.get_bill(db, bill_number, include_archived=True)
        if not bill.is_active:
            raise InvalidStateError(f"Bill {bill_number} is archived")

        status = PaymentStatus(payment_status)
        amounts = payment_amounts(bill.net_payable, status, paid_amount)

        previous = bill.payment_status
        bill.payment_status = status.value
        bill.paid_amount = amounts["paid_amount"]
        bill.due_amount = amounts["due_amount"]
        if payment_mode:
            bill.payment_mode = payment_mode

        bill.payment_logs.append(BillPaymentLog(
            created_at=now_utc(),
            previous_status=previous,
            new_status=status.value,
            payment_mode=payment_mode or bill.payment_mode,
            paid_amount=money(amounts["paid_amount"]),
            remarks=remarks,
            updated_by=user.username if user else None,
        ))
        Ledger(db).commit("update_payment")
        logger.info(f"Bill {bill_number} payment {previous} -> {status.value}")
        return bill

    def archive_bill(self, db: Session, bill_number: str, user: Optional[User] = None) -> Bill:
        """active → archived. Archived bills drop out of lists and reports."""
        bill = self.get_bill(db, bill_number, include_archived=True)
        if not bill.is_active:
            raise InvalidStateError(f"Bill {bill_number} is already archived")
        bill.record_status = RecordStatus.ARCHIVED.value
        bill.archived_at = now_utc()
        bill.archived_by = user.username if user else None
        Ledger(db).commit("archive_bill")
        logger.info(f"Bill {bill_number} archived by {bill.archived_by}")
        return bill


billing_service = BillingService()
