#!/usr/bin/env python3
"""
Currency Parsing and Formatting Utilities

Amount handling for the settlement reconciler.
All stored and aggregated amounts are integer paise to avoid floating-point errors.

Currency Systems:
- Notification emails quote rupees with locale grouping: "₹1,23,456.78", "INR 12,000"
- Internal calculations use paise: 100 paise = ₹1.00
- Display uses Indian lakh/crore grouping: "₹1,23,456.78"

Key Principles:
- Parse with Decimal, never float
- Convert to paise once, at the extraction boundary
- Never raise on garbage input; return None instead
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

_NON_NUMERIC = re.compile(r"[^0-9.,]")

# Abbreviations such as "Rs." or "No." together with their own period
_ABBREVIATION = re.compile(r"[A-Za-z]+\.")


def parse_amount(text: str | None) -> Decimal | None:
    """
    Normalize a locale-formatted currency string into a decimal value.

    Removes abbreviations ending in a period ("Rs. 500"), keeps only digits,
    commas and periods, drops the commas (grouping separators, including
    lakh/crore grouping) and parses the remainder. A leading period is a
    decimal point: ".5" is half a rupee.

    Args:
        text: Currency string such as "₹1,23,456.78", "Rs. 500" or "INR 12,000"

    Returns:
        Decimal amount, or None for empty or unparsable input

    Examples:
        parse_amount("1,23,456.78") -> Decimal("123456.78")
        parse_amount("Rs. 500") -> Decimal("500")
        parse_amount("abc") -> None
    """
    if text is None:
        return None

    cleaned = _NON_NUMERIC.sub("", _ABBREVIATION.sub("", str(text))).replace(",", "")
    if not cleaned:
        return None

    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None

    if not value.is_finite():
        return None
    return value


def rupees_to_paise(rupees: Decimal | int | str) -> int:
    """
    Convert a rupee amount to integer paise, rounding half-up.

    Args:
        rupees: Amount in rupees

    Returns:
        Amount in paise (100 = ₹1.00)

    Example:
        rupees_to_paise(Decimal("12.345")) -> 1235
    """
    amount = rupees if isinstance(rupees, Decimal) else Decimal(str(rupees))
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def paise_to_rupees_str(paise: int) -> str:
    """
    Convert paise to a plain rupee string using integer arithmetic.

    Example:
        paise_to_rupees_str(123456) -> "1234.56"
    """
    is_negative = paise < 0
    abs_paise = abs(int(paise))
    rupees, remainder = divmod(abs_paise, 100)
    text = f"{rupees}.{remainder:02d}"
    return f"-{text}" if is_negative else text


def group_indian(digits: str) -> str:
    """
    Apply Indian digit grouping (last three digits, then pairs).

    Example:
        group_indian("12345678") -> "1,23,45,678"
    """
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs + [tail])


def format_paise(paise: int) -> str:
    """Format paise as a rupee string with Indian grouping, e.g. "₹1,23,456.78"."""
    is_negative = paise < 0
    rupees, remainder = divmod(abs(int(paise)), 100)
    text = f"₹{group_indian(str(rupees))}.{remainder:02d}"
    return f"-{text}" if is_negative else text
