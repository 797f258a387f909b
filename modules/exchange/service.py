"""
Exchange Module - Service Layer
=================================
Standalone exchange records: preview, save, convert to bill, cancel, archive.

An exchange is saved in `calculated` state with full valuation and rate
snapshots. After that only its status and bill link ever change.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import desc, func, or_
from sqlalchemy.orm import Session

from common.exceptions import SwarnaBillError, NotFoundError, InvalidStateError
from common.helpers import ZERO, money, now_utc, today_local, local_day_bounds, to_jsonable, to_local
from modules.billing.assembler import assemble_bill, settle_exchange
from modules.billing.calculator import value_line_item
from modules.billing.ledger import Ledger
from modules.billing.models import RecordStatus
from modules.billing.numbering import NumberGenerator
from modules.billing.snapshot import line_columns
from modules.exchange.calculator import value_old_item, snapshot_valuation
from modules.exchange.models import Exchange, ExchangeStatus
from modules.rate.models import MetalType
from modules.rate.service import rate_service
from modules.user.models import User

logger = logging.getLogger("swarnabill.exchange")


def exchange_to_dict(exchange: Exchange) -> dict:
    return to_jsonable({
        "id": exchange.id,
        "exchange_number": exchange.exchange_number,
        "exchange_date": to_local(exchange.exchange_date),
        "is_number_canonical": exchange.is_number_canonical,
        "customer": exchange.customer,
        "old_items": exchange.old_items,
        "new_items": exchange.new_items,
        "rates": exchange.rates_snapshot,
        "shop_deduction_percent": exchange.shop_deduction_percent,
        "is_intra_state": exchange.is_intra_state,
        "totals": {
            "old_items_total": exchange.old_items_total,
            "new_items_total": exchange.new_items_total,
            "balance_payable": exchange.balance_payable,
            "balance_refundable": exchange.balance_refundable,
        },
        "status": exchange.status,
        "linked_bill_number": exchange.linked_bill_number,
        "notes": exchange.notes,
        "record_status": exchange.record_status,
        "created_by": exchange.created_by.username if exchange.created_by else None,
    })


def _jsonable_line(columns: dict) -> dict:
    return {k: (str(v) if isinstance(v, Decimal) else v) for k, v in columns.items()}


class ExchangeService:
    """Stateless service: every method takes the db session."""

    # ==========================================
    # Valuation
    # ==========================================

    def price(self, db: Session, data: dict) -> dict:
        """
        Value old items and (optionally) the new items they are swapped for.

        new_items_total is the full bill-style total of the new items,
        GST included.
        """
        old_items = data.get("old_items") or []
        new_items = data.get("new_items") or []
        if not old_items:
            raise SwarnaBillError("An exchange needs at least one old item")
        is_intra = data.get("is_intra_state", True)

        metals = {MetalType(i["metal_type"]) for i in new_items}
        metals |= {MetalType(i["metal_type"]) for i in old_items if i.get("rate") is None}
        rate_map = rate_service.get_rate_map(db, metals)

        valued_old = [value_old_item(i, rate_map, data.get("shop_deduction_percent")) for i in old_items]
        priced_new = [value_line_item(i, rate_map, is_intra_state=is_intra) for i in new_items]

        old_total = money(sum((o["exchange_value"] for o in valued_old), ZERO))
        if priced_new:
            new_total = money(assemble_bill(priced_new, valued_old, is_intra_state=is_intra)["grand_total"])
        else:
            new_total = ZERO

        return {
            "old_items": [snapshot_valuation(o) for o in valued_old],
            "new_items": [_jsonable_line(line_columns(p)) for p in priced_new],
            "rates": {m.value: r.to_dict() for m, r in rate_map.items()},
            "shop_deduction_percent": valued_old[0]["shop_deduction_percent"],
            "totals": settle_exchange(old_total, new_total, True),
        }

    def calculate(self, db: Session, data: dict) -> dict:
        return to_jsonable(self.price(db, data))

    # ==========================================
    # Create
    # ==========================================

    def create_exchange(self, db: Session, data: dict, user: Optional[User] = None, day: Optional[date] = None) -> Exchange:
        ledger = Ledger(db)
        try:
            priced = self.price(db, data)
            totals = priced["totals"]
            customer = data["customer"]

            def insert(number: str, canonical: bool) -> Exchange:
                exchange = Exchange(
                    exchange_number=number,
                    is_number_canonical=canonical,
                    exchange_date=now_utc(),
                    customer_name=customer["name"],
                    customer_mobile=customer["mobile"],
                    customer_address=customer.get("address"),
                    customer_dob=customer.get("dob"),
                    customer_pan=customer.get("pan"),
                    customer_aadhaar=customer.get("aadhaar"),
                    old_items=priced["old_items"],
                    new_items=priced["new_items"],
                    rates_snapshot=priced["rates"],
                    shop_deduction_percent=priced["shop_deduction_percent"],
                    is_intra_state=data.get("is_intra_state", True),
                    old_items_total=totals["old_items_total"],
                    new_items_total=totals["new_items_total"],
                    balance_payable=totals["balance_payable"],
                    balance_refundable=totals["balance_refundable"],
                    status=ExchangeStatus.CALCULATED.value,
                    notes=data.get("notes"),
                    record_status=RecordStatus.ACTIVE.value,
                    created_by_id=user.id if user else None,
                )
                ledger.insert_exchange(exchange)
                return exchange

            exchange = NumberGenerator(ledger, Ledger.EXCHANGE).assign(insert, day=day)
            ledger.commit("create_exchange")
        except SwarnaBillError:
            db.rollback()
            raise

        logger.info(
            f"Exchange {exchange.exchange_number} saved: old={exchange.old_items_total} "
            f"new={exchange.new_items_total}"
        )
        return exchange

    # ==========================================
    # Lookup
    # ==========================================

    def get_exchange(self, db: Session, exchange_number: str, include_archived: bool = False) -> Exchange:
        exchange = Ledger(db).get_exchange_by_number(exchange_number)
        if not exchange or (not include_archived and not exchange.is_active):
            raise NotFoundError(f"Exchange {exchange_number} not found")
        return exchange

    def _get_by_id(self, db: Session, exchange_id: int) -> Exchange:
        exchange = Ledger(db).get_exchange(exchange_id)
        if not exchange:
            raise NotFoundError(f"Exchange {exchange_id} not found")
        return exchange

    def list_exchanges(
        self,
        db: Session,
        search: Optional[str] = None,
        status: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> Tuple[List[Exchange], int]:
        q = db.query(Exchange).filter(Exchange.record_status == RecordStatus.ACTIVE.value)
        if search:
            term = f"%{search.strip()}%"
            q = q.filter(or_(
                Exchange.exchange_number.ilike(term),
                Exchange.customer_name.ilike(term),
                Exchange.customer_mobile.ilike(term),
            ))
        if status:
            q = q.filter(Exchange.status == ExchangeStatus(status).value)
        if date_from or date_to:
            lo, hi = local_day_bounds(date_from or date_to, date_to or date_from)
            if date_from:
                q = q.filter(Exchange.exchange_date >= lo)
            if date_to:
                q = q.filter(Exchange.exchange_date < hi)

        total = q.count()
        items = (
            q.order_by(desc(Exchange.exchange_date), desc(Exchange.id))
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return items, total

    # ==========================================
    # Lifecycle
    # ==========================================

    def convert_to_bill(self, db: Session, exchange_id: int, bill_number: str) -> Exchange:
        """Link an existing bill to a calculated exchange."""
        ledger = Ledger(db)
        try:
            bill = ledger.get_bill_by_number(bill_number)
            if not bill or not bill.is_active:
                raise NotFoundError(f"Bill {bill_number} not found")
            if bill.exchange_id and bill.exchange_id != exchange_id:
                raise InvalidStateError(f"Bill {bill_number} is already linked to another exchange")
            exchange = ledger.mark_converted(exchange_id, bill.bill_number)
            bill.exchange_id = exchange.id
            ledger.commit("convert_exchange")
        except SwarnaBillError:
            db.rollback()
            raise
        return exchange

    def cancel_exchange(self, db: Session, exchange_id: int, user: Optional[User] = None) -> Exchange:
        exchange = self._get_by_id(db, exchange_id)
        if not exchange.is_convertible:
            raise InvalidStateError(
                f"Only calculated exchanges can be cancelled (status: {exchange.status})"
            )
        exchange.status = ExchangeStatus.CANCELLED.value
        Ledger(db).commit("cancel_exchange")
        logger.info(f"Exchange {exchange.exchange_number} cancelled by {user.username if user else '-'}")
        return exchange

    def archive_exchange(self, db: Session, exchange_id: int, user: Optional[User] = None) -> Exchange:
        exchange = self._get_by_id(db, exchange_id)
        if not exchange.is_active:
            raise InvalidStateError(f"Exchange {exchange.exchange_number} is already archived")
        exchange.record_status = RecordStatus.ARCHIVED.value
        exchange.archived_at = now_utc()
        Ledger(db).commit("archive_exchange")
        logger.info(f"Exchange {exchange.exchange_number} archived by {user.username if user else '-'}")
        return exchange

    # ==========================================
    # Stats
    # ==========================================

    def get_stats(self, db: Session) -> dict:
        active = db.query(Exchange).filter(Exchange.record_status == RecordStatus.ACTIVE.value)

        def summarize(q) -> dict:
            count, old_value = q.with_entities(func.count(Exchange.id), func.sum(Exchange.old_items_total)).one()
            return {"count": int(count or 0), "old_items_value": money(old_value or 0)}

        today = today_local()
        month_start, _ = local_day_bounds(today.replace(day=1))

        by_status = dict(
            active.with_entities(Exchange.status, func.count(Exchange.id))
            .group_by(Exchange.status)
            .all()
        )
        return to_jsonable({
            "total": summarize(active),
            "this_month": summarize(active.filter(Exchange.exchange_date >= month_start)),
            "by_status": {s.value: int(by_status.get(s.value, 0)) for s in ExchangeStatus},
        })


exchange_service = ExchangeService()
