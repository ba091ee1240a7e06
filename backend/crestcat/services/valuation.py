"""
Valuation primitives.

Pure functions on Decimal used by every lifecycle and reconciliation step.
Money is kept to cents; prices and quantities to ten decimal places.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import NamedTuple, Union

from crestcat.core.exceptions import ValidationError

Number = Union[Decimal, int, str]

CENT = Decimal("0.01")
QUANTITY_STEP = Decimal("0.0000000001")
PRICE_STEP = Decimal("0.0000000001")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


class Valuation(NamedTuple):
    current_value: Decimal
    profit_loss: Decimal


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValidationError(f"Not a valid amount: {value!r}") from e


def to_money(value: Number) -> Decimal:
    """Quantize to cents, rounding half up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_quantity(value: Number) -> Decimal:
    return to_decimal(value).quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)


def to_price(value: Number) -> Decimal:
    """Quantize a unit price; sub-cent prices keep their precision."""
    return to_decimal(value).quantize(PRICE_STEP, rounding=ROUND_HALF_UP)


def price_text(value: Number) -> str:
    """Render a price with at least two decimals and no trailing zeros beyond them."""
    whole, _, fraction = f"{to_price(value):f}".partition(".")
    return f"{whole}.{fraction.rstrip('0').ljust(2, '0')}"


def quantity(amount: Number, purchase_price: Number) -> Decimal:
    """
    Units bought for ``amount`` at ``purchase_price``.

    Raises:
        ValidationError: If purchase_price is zero or negative
    """
    price = to_decimal(purchase_price)
    if price <= ZERO:
        raise ValidationError(
            "Purchase price must be positive",
            details={"purchase_price": str(price)}
        )
    return to_quantity(to_decimal(amount) / price)


def current_value(quantity: Number, current_price: Number) -> Decimal:
    return to_money(to_decimal(quantity) * to_decimal(current_price))


def profit_loss(current_value: Number, amount: Number) -> Decimal:
    return to_money(to_decimal(current_value) - to_decimal(amount))


def profit_loss_percent(profit_loss: Number, amount: Number) -> Decimal:
    """Percentage gain on the committed amount; 0 when nothing was committed."""
    base = to_decimal(amount)
    if base <= ZERO:
        return ZERO
    return to_money(to_decimal(profit_loss) / base * HUNDRED)


def valuate(quantity: Number, amount: Number, price: Number) -> Valuation:
    """Mark a position to ``price``."""
    value = current_value(quantity, price)
    return Valuation(current_value=value, profit_loss=profit_loss(value, amount))
