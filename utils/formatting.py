"""
Formatting utilities.
"""

from typing import Optional


def format_currency(amount: Optional[float], currency: str = "USD") -> str:
    """
    Format an amount as whole currency units.

    Args:
        amount: The amount, or None when unknown.
        currency: Currency code (default USD).

    Returns:
        Formatted currency string, "-" for unknown amounts.
    """
    if amount is None:
        return "-"
    symbols = {
        "USD": "US$",
        "ARS": "$",
        "EUR": "€",
    }
    symbol = symbols.get(currency, currency + " ")
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(round(amount)):,}"


def format_percent(value: float, decimals: int = 1) -> str:
    """
    Format a number as a percentage.

    Args:
        value: The percentage value.
        decimals: Number of decimal places.

    Returns:
        Formatted percentage string.
    """
    return f"{value:.{decimals}f}%"
