# Overview: Helpers for integer-cent money values.

from __future__ import annotations


def cents_to_amount(cents: int | None) -> float:
    """Display amount for an integer cent value (e.g. 15000 -> 150.0)."""
    if cents is None:
        return 0.0
    return round(cents / 100, 2)


def format_cents(cents: int | None, symbol: str = "") -> str:
    """
    Render cents as a fixed two-decimal string.

    Integer arithmetic only, so 1999 -> "19.99" with no float rounding.
    """
    cents = cents or 0
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}{symbol}{whole}.{frac:02d}"
