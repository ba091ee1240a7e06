"""Receipt references and display formatting for notifications."""

import secrets
import string
import time
from datetime import datetime
from decimal import Decimal
from typing import Optional

_BASE36 = string.digits + string.ascii_uppercase


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_receipt_id(now_ms: Optional[int] = None) -> str:
    """
    Build a receipt reference such as ``RCP-LRX4Z2A1-7QK2M``.

    The middle part is the millisecond timestamp in base 36, the suffix is
    five random base-36 characters.
    """
    timestamp = _to_base36(now_ms if now_ms is not None else int(time.time() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(5))
    return f"RCP-{timestamp}-{suffix}"


def format_currency(amount: Decimal, currency: str = "USD") -> str:
    symbol = "$" if currency == "USD" else f"{currency} "
    return f"{symbol}{Decimal(amount):,.2f}"


def format_datetime(value: datetime) -> str:
    return value.strftime("%b %d, %Y %H:%M UTC")
