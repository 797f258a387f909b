"""
Billing Module - Ledger
========================
Durable append / lookup of finalized bills and exchanges.

Uniqueness of bill and exchange numbers is enforced here by the database
unique index; every write runs inside a SAVEPOINT so a failed insert leaves
the caller's transaction usable for a retry.
"""

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from common.exceptions import DuplicateNumberError, InvalidStateError, NotFoundError, PersistenceError
from common.helpers import now_utc
from modules.billing.models import Bill
from modules.exchange.models import Exchange, ExchangeStatus

logger = logging.getLogger("swarnabill.ledger")


class Ledger:
    """Bound to one request's session. Never commits; the caller owns the transaction."""

    BILL = "bill"
    EXCHANGE = "exchange"

    def __init__(self, db: Session):
        self.db = db

    def _number_column(self, kind: str):
        return Bill.bill_number if kind == self.BILL else Exchange.exchange_number

    # ------------------------------------------
    # Numbering support
    # ------------------------------------------

    def count_by_date_prefix(self, prefix: str, kind: str = BILL) -> int:
        column = self._number_column(kind)
        try:
            with self.db.begin_nested():
                count = (
                    self.db.query(func.count())
                    .select_from(column.class_)
                    .filter(column.startswith(prefix, autoescape=True))
                    .scalar()
                )
        except SQLAlchemyError as e:
            raise PersistenceError("count_by_date_prefix", str(e))
        return int(count or 0)

    def number_exists(self, number: str, kind: str = BILL) -> bool:
        column = self._number_column(kind)
        return self.db.query(column).filter(column == number).first() is not None

    # ------------------------------------------
    # Inserts
    # ------------------------------------------

    def _insert(self, record, number: str, kind: str, operation: str) -> int:
        try:
            with self.db.begin_nested():
                self.db.add(record)
                self.db.flush()
        except IntegrityError as e:
            if self.number_exists(number, kind):
                raise DuplicateNumberError(number)
            raise PersistenceError(operation, str(e.orig))
        except SQLAlchemyError as e:
            logger.error(f"{operation} failed for {number}: {e}")
            raise PersistenceError(operation, str(e))
        return record.id

    def insert_bill(self, bill: Bill) -> int:
        return self._insert(bill, bill.bill_number, self.BILL, "insert_bill")

    def insert_exchange(self, exchange: Exchange) -> int:
        return self._insert(exchange, exchange.exchange_number, self.EXCHANGE, "insert_exchange")

    # ------------------------------------------
    # Exchange lifecycle
    # ------------------------------------------

    def mark_converted(self, exchange_id: int, bill_number: str) -> Exchange:
        """calculated → converted_to_bill. Only status and bill link change."""
        exchange = (
            self.db.query(Exchange)
            .filter(Exchange.id == exchange_id)
            .with_for_update()
            .first()
        )
        if not exchange:
            raise NotFoundError(f"Exchange {exchange_id} not found")
        if not exchange.is_convertible:
            raise InvalidStateError(
                f"Exchange {exchange.exchange_number} cannot be converted (status: {exchange.status})"
            )
        exchange.status = ExchangeStatus.CONVERTED_TO_BILL.value
        exchange.linked_bill_number = bill_number
        exchange.converted_at = now_utc()
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            raise PersistenceError("mark_converted", str(e))
        logger.info(f"Exchange {exchange.exchange_number} converted to bill {bill_number}")
        return exchange

    # ------------------------------------------
    # Lookups
    # ------------------------------------------

    def get_bill_by_number(self, bill_number: str) -> Optional[Bill]:
        return self.db.query(Bill).filter(Bill.bill_number == bill_number).first()

    def get_exchange(self, exchange_id: int) -> Optional[Exchange]:
        return self.db.query(Exchange).filter(Exchange.id == exchange_id).first()

    def get_exchange_by_number(self, exchange_number: str) -> Optional[Exchange]:
        return self.db.query(Exchange).filter(Exchange.exchange_number == exchange_number).first()

    # ------------------------------------------
    # Transaction
    # ------------------------------------------

    def commit(self, operation: str):
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"{operation} commit failed: {e}")
            raise PersistenceError(operation, str(e))
