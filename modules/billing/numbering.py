"""
Billing Module - Number Generator
==================================
Human-readable, date-scoped sequential identifiers.

    Bill:     <SHOP_PREFIX><DDMMYYYY><seq>   e.g. SMJ15032024003
    Exchange: EXC-<YYMMDD>-<seq>             e.g. EXC-240315-001

The sequence is (records already carrying today's prefix) + 1. The ledger's
unique index is the final arbiter: on conflict the number is regenerated once
from a fresh count, then a timestamp-suffixed fallback is used. Numbers that
did not come from the sequence are flagged non-canonical.
"""

import logging
import threading
import zlib
from datetime import date
from typing import Callable, Optional, Tuple, TypeVar

from config.settings import (
    BILL_NUMBER_PREFIX, BILL_SEQUENCE_DIGITS,
    EXCHANGE_NUMBER_PREFIX, EXCHANGE_SEQUENCE_DIGITS,
)
from common.exceptions import DuplicateNumberError, PersistenceError
from common.helpers import now_utc, today_local
from modules.billing.ledger import Ledger

logger = logging.getLogger("swarnabill.numbering")

T = TypeVar("T")

NUMBER_RETRIES = 1

# (count, insert) is a critical section per date prefix within this process.
# Prefixes share a fixed stripe of locks so the set never grows with the calendar.
LOCK_STRIPES = 64
_prefix_locks = tuple(threading.Lock() for _ in range(LOCK_STRIPES))


def _lock_for(prefix: str) -> threading.Lock:
    return _prefix_locks[zlib.crc32(prefix.encode()) % LOCK_STRIPES]


def bill_prefix(day: date, shop_prefix: str = BILL_NUMBER_PREFIX) -> str:
    return f"{shop_prefix}{day:%d%m%Y}"


def exchange_prefix(day: date) -> str:
    return f"{EXCHANGE_NUMBER_PREFIX}-{day:%y%m%d}-"


def format_number(prefix: str, sequence: int, digits: int) -> str:
    return f"{prefix}{sequence:0{digits}d}"


def fallback_number(prefix: str) -> str:
    """Timestamp-suffixed number. Never blocks billing, but may collide under concurrent fallback."""
    return f"{prefix}T{now_utc():%H%M%S%f}"


class NumberGenerator:
    """Assigns bill or exchange numbers through a Ledger."""

    def __init__(self, ledger: Ledger, kind: str = Ledger.BILL):
        self.ledger = ledger
        self.kind = kind
        self.digits = BILL_SEQUENCE_DIGITS if kind == Ledger.BILL else EXCHANGE_SEQUENCE_DIGITS

    def prefix(self, day: date) -> str:
        return bill_prefix(day) if self.kind == Ledger.BILL else exchange_prefix(day)

    def candidate(self, day: date) -> Tuple[str, bool]:
        """Next number for the day and whether it is canonical."""
        prefix = self.prefix(day)
        try:
            count = self.ledger.count_by_date_prefix(prefix, kind=self.kind)
        except PersistenceError as e:
            logger.warning(f"Could not count {self.kind} numbers for {prefix}, using fallback: {e.message}")
            return fallback_number(prefix), False
        return format_number(prefix, count + 1, self.digits), True

    def assign(self, insert: Callable[[str, bool], T], day: Optional[date] = None) -> T:
        """
        Generate a number and hand it to insert(number, is_canonical).

        insert must raise DuplicateNumberError on a unique conflict; it is
        called again with a regenerated number, then with the fallback.
        A conflict on the fallback propagates.
        """
        day = day or today_local()
        prefix = self.prefix(day)

        with _lock_for(prefix):
            for attempt in range(1 + NUMBER_RETRIES):
                number, canonical = self.candidate(day)
                try:
                    return insert(number, canonical)
                except DuplicateNumberError:
                    logger.warning(f"{self.kind} number {number} already taken (attempt {attempt + 1})")

            number = fallback_number(prefix)
            logger.warning(f"Assigning non-canonical {self.kind} number {number}")
            return insert(number, False)
