"""
Discount Engine

Pure discount arithmetic used by promotions and the pricing endpoint.
Amounts are integer cents, percentages are basis points (2000 = 20%).
Every function returns a non-negative number of cents.
"""

from __future__ import annotations

from ..money import apply_rate_cents
from ..validation import ValidationError


DISCOUNT_PERCENTAGE = "PERCENTAGE"
DISCOUNT_FIXED_AMOUNT = "FIXED_AMOUNT"
DISCOUNT_BUY_X_GET_Y = "BUY_X_GET_Y"


def _cap(amount_cents: int, max_discount_cents: int | None) -> int:
    if max_discount_cents is not None and max_discount_cents >= 0:
        return min(amount_cents, max_discount_cents)
    return amount_cents


def percentage_discount(cart_total_cents: int, percent_bps: int, max_discount_cents: int | None = None) -> int:
    """cart_total x percent, rounded half-up, then capped."""
    if not cart_total_cents or cart_total_cents <= 0 or not percent_bps or percent_bps <= 0:
        return 0
    return _cap(apply_rate_cents(cart_total_cents, percent_bps), max_discount_cents)


def fixed_amount_discount(
    value_cents: int,
    max_discount_cents: int | None = None,
    payable_cents: int | None = None,
) -> int:
    """The fixed value, capped, and never more than what is payable."""
    if not value_cents or value_cents <= 0:
        return 0
    amount = _cap(value_cents, max_discount_cents)
    if payable_cents is not None:
        amount = min(amount, max(payable_cents, 0))
    return amount


def buy_x_get_y_discount(items: list[dict], buy_quantity: int, get_quantity: int) -> int:
    """
    Buy X get Y free across the given items.

    sets = total quantity // buy_quantity, free units = sets * get_quantity.
    Free units are the cheapest ones in the cart. Each item is
    {"price_cents": int, "quantity": int}.
    """
    if not buy_quantity or not get_quantity or buy_quantity <= 0 or get_quantity <= 0:
        return 0

    units = []
    for item in items or []:
        quantity = int(item.get("quantity") or 0)
        price = int(item.get("price_cents") or 0)
        if quantity > 0 and price > 0:
            units.append((price, quantity))

    total_quantity = sum(quantity for _, quantity in units)
    free_units = min((total_quantity // buy_quantity) * get_quantity, total_quantity)

    discount = 0
    for price, quantity in sorted(units):
        if free_units <= 0:
            break
        take = min(quantity, free_units)
        discount += price * take
        free_units -= take
    return discount


def _normalize_type(discount_type: str | None) -> str:
    key = str(discount_type or "").strip().upper().replace("-", "_")
    if key == "FIXED":
        return DISCOUNT_FIXED_AMOUNT
    return key


def compute_discount(discount_type: str, params: dict) -> int:
    """
    Dispatch on discount type.

    PERCENTAGE: cart_total_cents, percent_bps, max_discount_cents
    FIXED_AMOUNT: value_cents, max_discount_cents, payable_cents
    BUY_X_GET_Y: items, buy_quantity, get_quantity
    """
    params = params or {}
    kind = _normalize_type(discount_type)

    if kind == DISCOUNT_PERCENTAGE:
        return percentage_discount(
            params.get("cart_total_cents") or 0,
            params.get("percent_bps") or 0,
            params.get("max_discount_cents"),
        )
    if kind == DISCOUNT_FIXED_AMOUNT:
        return fixed_amount_discount(
            params.get("value_cents") or 0,
            params.get("max_discount_cents"),
            params.get("payable_cents"),
        )
    if kind == DISCOUNT_BUY_X_GET_Y:
        return buy_x_get_y_discount(
            params.get("items") or [],
            params.get("buy_quantity") or 0,
            params.get("get_quantity") or 0,
        )
    raise ValidationError(f"Unknown discount type: {discount_type}")
