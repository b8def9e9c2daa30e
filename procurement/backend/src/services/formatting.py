"""Deterministic number, currency and date formatting for rendered documents.

All helpers go through :class:`~decimal.Decimal` with ``ROUND_HALF_UP`` so
the same numeric input always produces the same text, and therefore the
same PDF bytes and digest.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CURRENCY_PREFIX = "Rs. "

_TWO_PLACES = Decimal("0.01")

_ONES = [
    "",
    "One",
    "Two",
    "Three",
    "Four",
    "Five",
    "Six",
    "Seven",
    "Eight",
    "Nine",
    "Ten",
    "Eleven",
    "Twelve",
    "Thirteen",
    "Fourteen",
    "Fifteen",
    "Sixteen",
    "Seventeen",
    "Eighteen",
    "Nineteen",
]
_TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]


def to_decimal(value: object) -> Decimal:
    """Coerce ``value`` to a two-place Decimal; ``None`` and junk become zero."""

    if value is None:
        return Decimal("0.00")
    if isinstance(value, Decimal):
        candidate = value
    else:
        try:
            # str() keeps floats like 0.1 from expanding to binary noise.
            candidate = Decimal(str(value))
        except (InvalidOperation, ValueError):
            return Decimal("0.00")
    if not candidate.is_finite():
        return Decimal("0.00")
    return candidate.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


def _group_indian(digits: str) -> str:
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups: list[str] = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups) + "," + tail


def format_indian_number(value: object) -> str:
    """Format a number with Indian digit grouping, e.g. ``12,34,567.89``."""

    amount = to_decimal(value)
    sign = "-" if amount < 0 else ""
    integer_part, _, fraction = f"{abs(amount):.2f}".partition(".")
    return f"{sign}{_group_indian(integer_part)}.{fraction}"


def format_currency(value: object, prefix: str = CURRENCY_PREFIX) -> str:
    return f"{prefix}{format_indian_number(value)}"


def _words_below_thousand(number: int) -> str:
    if number == 0:
        return ""
    if number < 20:
        return _ONES[number]
    if number < 100:
        tens, ones = divmod(number, 10)
        return _TENS[tens] + (f" {_ONES[ones]}" if ones else "")
    hundreds, rest = divmod(number, 100)
    words = f"{_ONES[hundreds]} Hundred"
    if rest:
        words += f" {_words_below_thousand(rest)}"
    return words


def amount_in_words(value: object) -> str:
    """Spell an amount in rupees using the crore/lakh/thousand scale.

    >>> amount_in_words(1234567.5)
    'Twelve Lakh Thirty Four Thousand Five Hundred Sixty Seven Rupees and Fifty Paise'
    """

    amount = abs(to_decimal(value))
    rupees = int(amount)
    paise = int((amount - rupees) * 100)

    if rupees == 0 and paise == 0:
        return "Zero Rupees"

    parts: list[str] = []
    crores, remainder = divmod(rupees, 10_000_000)
    lakhs, remainder = divmod(remainder, 100_000)
    thousands, remainder = divmod(remainder, 1_000)

    if crores:
        # Amounts above 99 crore keep counting in crores.
        parts.append(f"{amount_in_words(crores).removesuffix(' Rupees')} Crore")
    if lakhs:
        parts.append(f"{_words_below_thousand(lakhs)} Lakh")
    if thousands:
        parts.append(f"{_words_below_thousand(thousands)} Thousand")
    if remainder:
        parts.append(_words_below_thousand(remainder))

    words = " ".join(parts) if parts else "Zero"
    words += " Rupees"
    if paise:
        words += f" and {_words_below_thousand(paise)} Paise"
    return words


def format_date(value: date | datetime | str | None) -> str:
    """Return ``DD Month YYYY`` for dates, datetimes and ISO strings."""

    if value is None:
        return ""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return value
    return value.strftime("%d %B %Y")


__all__ = [
    "CURRENCY_PREFIX",
    "amount_in_words",
    "format_currency",
    "format_date",
    "format_indian_number",
    "to_decimal",
]
