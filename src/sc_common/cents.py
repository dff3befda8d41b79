"""Integer arithmetic utilities for wallet and bid amounts.

All prices, amounts, and balances use int (cents). No float, no Decimal.
"""

SMALLEST_UNIT = 1  # one cent: the minimum raise over the current bid


def cents_to_display(cents: int) -> str:
    """Convert cents to display string: 6500 -> '$65.00', -1200 -> '-$12.00'."""
    if cents < 0:
        abs_cents = -cents
        return f"-${abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"${cents // 100:,}.{cents % 100:02d}"


def optional_display(cents: int | None) -> str | None:
    return cents_to_display(cents) if cents is not None else None


def next_bid_minimum(initial_price: int, current_price: int | None) -> int:
    """Lowest acceptable bid: the initial price for the first bid, else strictly above current."""
    if current_price is None:
        return initial_price
    return current_price + SMALLEST_UNIT
