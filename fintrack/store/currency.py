"""
Currency display formatting.

Pure functions: the stored amount and the preference go in, a string
comes out. Changing the preference never touches a stored amount.

VND follows vi-VN grouping ("." for thousands, "," for decimals, at most
three fraction digits, trailing zeros dropped) with a " VND" suffix.
USD follows en-US currency style ("$1,234.56", "-$5.00").
"""

from typing import Union

from fintrack.models.finance import Currency


def _format_vnd(amount: float) -> str:
    sign = "-" if amount < 0 else ""
    whole, fraction = f"{abs(amount):,.3f}".split(".")
    fraction = fraction.rstrip("0")
    text = whole.replace(",", ".")
    if fraction:
        text = f"{text},{fraction}"
    if text == "0":
        sign = ""
    return f"{sign}{text} VND"


def _format_usd(amount: float) -> str:
    text = f"{abs(amount):,.2f}"
    if amount < 0 and text != "0.00":
        return f"-${text}"
    return f"${text}"


def format_currency(amount: float, currency: Union[Currency, str]) -> str:
    """Render `amount` in the given display currency."""
    if Currency(currency) == Currency.USD:
        return _format_usd(amount)
    return _format_vnd(amount)
