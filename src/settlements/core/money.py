#!/usr/bin/env python3
"""
Money Primitive Type

Immutable currency value wrapper that uses integer paise internally.
Prevents floating-point errors and provides type-safe currency operations.
"""

from dataclasses import dataclass
from decimal import Decimal

from .currency import format_paise, paise_to_rupees_str, parse_amount, rupees_to_paise


@dataclass(frozen=True)
class Money:
    """
    Immutable money value in paise (INR).

    Examples:
        >>> credit = Money.from_rupees("1,000.50")
        >>> credit.to_paise()
        100050
        >>> str(credit + Money.from_paise(50))
        '₹1,001.00'
        >>> Money.from_paise(30000).to_rupees_str()
        '300.00'
    """

    paise: int

    @classmethod
    def zero(cls) -> "Money":
        """Create a zero amount."""
        return cls(paise=0)

    @classmethod
    def from_paise(cls, paise: int) -> "Money":
        """Create Money from paise."""
        return cls(paise=int(paise))

    @classmethod
    def from_decimal(cls, rupees: Decimal) -> "Money":
        """Create Money from a decimal rupee amount, rounding half-up to paise."""
        return cls(paise=rupees_to_paise(rupees))

    @classmethod
    def from_rupees(cls, rupees: str | int | Decimal) -> "Money":
        """
        Parse from a rupee string like '₹1,23,456.78' or an integer/decimal amount.

        Raises:
            ValueError: If the string holds no parsable amount
        """
        if isinstance(rupees, (int, Decimal)):
            return cls.from_decimal(Decimal(rupees))
        parsed = parse_amount(rupees)
        if parsed is None:
            raise ValueError(f"Not a currency amount: {rupees!r}")
        return cls.from_decimal(parsed)

    def to_paise(self) -> int:
        """Get value in paise."""
        return self.paise

    def to_decimal(self) -> Decimal:
        """Get value in rupees as an exact two-place decimal."""
        return Decimal(self.paise).scaleb(-2)

    def to_float(self) -> float:
        """Get value in rupees as a float, for JSON and tabular output only."""
        return float(self.to_decimal())

    def to_rupees_str(self) -> str:
        """Get plain rupee string without symbol or grouping."""
        return paise_to_rupees_str(self.paise)

    def __add__(self, other: "Money") -> "Money":
        """Add two Money objects."""
        return Money(paise=self.paise + other.paise)

    def __sub__(self, other: "Money") -> "Money":
        """Subtract two Money objects."""
        return Money(paise=self.paise - other.paise)

    def __lt__(self, other: "Money") -> bool:
        return self.paise < other.paise

    def __le__(self, other: "Money") -> bool:
        return self.paise <= other.paise

    def __gt__(self, other: "Money") -> bool:
        return self.paise > other.paise

    def __ge__(self, other: "Money") -> bool:
        return self.paise >= other.paise

    def __str__(self) -> str:
        """Format as an Indian-grouped rupee string."""
        return format_paise(self.paise)

    def __repr__(self) -> str:
        return f"Money(paise={self.paise})"


def sum_money(amounts) -> Money:
    """Sum an iterable of Money values, skipping None entries."""
    total = 0
    for amount in amounts:
        if amount is not None:
            total += amount.paise
    return Money(paise=total)
