"""
SwarnaBill - Amount in Words
=============================
Renders rupee amounts in the Indian numbering system for legal bill text:

    1500000      -> "Fifteen Lakh Rupees Only"
    100000.50    -> "One Lakh Rupees and Fifty Paise Only"
    0            -> "Zero Rupees Only"

Crore / lakh wording comes from num2words' en_IN locale.
"""

import re
from decimal import Decimal, ROUND_HALF_UP

from num2words import num2words

from common.helpers import to_decimal


def integer_to_words(n: int) -> str:
    """Title-cased words for a non-negative integer, without commas, hyphens or "and"."""
    words = num2words(n, lang="en_IN")
    words = words.replace(",", " ").replace("-", " ")
    words = re.sub(r"\band\b", " ", words)
    return re.sub(r"\s+", " ", words).strip().title()


def number_to_words(amount) -> str:
    """Indian-scale currency words, always ending in "Only"."""
    value = to_decimal(amount)
    if value < 0:
        raise ValueError("amount must be non-negative")

    # Paise are rounded first so 99.999 becomes 100 rupees rather than 100 paise
    value = value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    rupees = int(value)
    paise = int((value - rupees) * 100)

    words = f"{integer_to_words(rupees)} Rupees"
    if paise > 0:
        words += f" and {integer_to_words(paise)} Paise"
    return f"{words} Only"
