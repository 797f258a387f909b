"""
SwarnaBill - Shared Helpers
============================
Pure utility functions with NO database or module dependencies.
"""

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from config.settings import SHOP_TIMEZONE

ZERO = Decimal("0")
HUNDRED = Decimal("100")
_PAISA = Decimal("0.01")


def now_utc() -> datetime:
    """Returns current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def today_local() -> date:
    """Calendar date at the shop (bill numbers are scoped to it)."""
    return datetime.now(ZoneInfo(SHOP_TIMEZONE)).date()


def to_local(dt: Optional[datetime]) -> Optional[datetime]:
    """Shop-local view of a stored timestamp. Naive values are UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(ZoneInfo(SHOP_TIMEZONE))


def local_day_bounds(start: date, end: Optional[date] = None) -> Tuple[datetime, datetime]:
    """UTC [from, to) covering shop-local days start..end inclusive."""
    tz = ZoneInfo(SHOP_TIMEZONE)
    lo = datetime.combine(start, time.min, tzinfo=tz)
    hi = datetime.combine(end or start, time.min, tzinfo=tz) + timedelta(days=1)
    return lo.astimezone(timezone.utc), hi.astimezone(timezone.utc)


def to_decimal(value, default: Decimal = ZERO) -> Decimal:
    """Convert int/float/str/Decimal to Decimal via str() so floats don't leak binary noise."""
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default


D = to_decimal


def money(value) -> Decimal:
    """Round to paise (2 decimals, half-up). Only used at output / persistence boundaries."""
    return to_decimal(value).quantize(_PAISA, rounding=ROUND_HALF_UP)


def money_float(value) -> float:
    """Rounded money as float for JSON responses."""
    return float(money(value))


def format_inr(value) -> str:
    """Format an amount with Indian digit grouping: 1234567.5 -> '12,34,567.50'."""
    amount = money(value)
    sign = "-" if amount < 0 else ""
    whole, frac = f"{abs(amount):.2f}".split(".")
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    return f"{sign}{whole}.{frac}"


def to_jsonable(value):
    """Decimals to float, dates to ISO strings, recursively."""
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value
