"""
Margin / price conversion for admin price entry.

Margin is on sell price, not markup on cost: a 40% margin on a cost of 60
sells at 100.
"""

import math
from typing import Optional, Union

from .errors import InvalidMarginError


def price_from_margin(cost: float, margin_percent: float) -> float:
    """Sell price that yields the given margin. Defined for 0 <= margin < 100."""
    if not (math.isfinite(cost) and cost >= 0):
        raise InvalidMarginError(f"Cost must be a non-negative number, got {cost}")
    if not 0 <= margin_percent < 100:
        raise InvalidMarginError(f"Margin must be in [0, 100), got {margin_percent}")
    return cost / (1 - margin_percent / 100)


def margin_from_price(cost: float, price: float) -> float:
    """Margin percent of a sell price. Can be negative when selling below cost."""
    if not (math.isfinite(price) and price > 0):
        raise InvalidMarginError(f"Price must be positive, got {price}")
    return (price - cost) / price * 100


def resolve_price_entry(raw: Union[str, float, None], cost: float) -> Optional[float]:
    """
    Turn an admin tier-price field into a sell price.

    "150" is a price; "35%" is a margin on cost. Blank input means no price.
    """
    if raw is None:
        return None
    if isinstance(raw, (int, float)):
        price = float(raw)
    else:
        text = raw.strip()
        if not text:
            return None
        is_margin = text.endswith("%")
        try:
            value = float(text[:-1].strip() if is_margin else text)
        except ValueError:
            raise InvalidMarginError(f"Not a price or margin: {raw!r}")
        if is_margin:
            return price_from_margin(cost, value)
        price = value
    if not (math.isfinite(price) and price > 0):
        raise InvalidMarginError(f"Price must be positive, got {price}")
    return price


def discounted_price(retail: float, discount_percentage: float) -> float:
    """Suggested tier price from the retail price and the tier's discount."""
    if not 0 <= discount_percentage < 100:
        raise InvalidMarginError(f"Discount must be in [0, 100), got {discount_percentage}")
    return retail * (1 - discount_percentage / 100)
