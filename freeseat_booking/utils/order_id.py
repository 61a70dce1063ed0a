"""
Order id generation.

Format: ``R`` + commit time in milliseconds as 9 base-36 digits + a random
suffix drawn with ``secrets``. The suffix is what makes ids unguessable; the
public lookup relies on that.
"""

import secrets
import string
import time
from typing import Optional

ORDER_ID_PREFIX = "R"
TIME_WIDTH = 9
RANDOM_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # no 0/O, 1/I
BASE36_DIGITS = string.digits + string.ascii_uppercase


def _to_base36(value: int, width: int) -> str:
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(BASE36_DIGITS[remainder])
    encoded = "".join(reversed(digits)) or "0"
    return encoded.rjust(width, "0")[-width:]


def generate_order_id(random_length: int = 8, now_ms: Optional[int] = None) -> str:
    """
    Build a new order id.

    Args:
        random_length: Number of random characters in the suffix
        now_ms: Timestamp override in milliseconds, mostly for tests

    Returns:
        An id of length ``1 + 9 + random_length``
    """
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    suffix = "".join(secrets.choice(RANDOM_ALPHABET) for _ in range(random_length))
    return f"{ORDER_ID_PREFIX}{_to_base36(now_ms, TIME_WIDTH)}{suffix}"


def order_id_length(random_length: int = 8) -> int:
    return len(ORDER_ID_PREFIX) + TIME_WIDTH + random_length


def looks_like_order_id(value: str, random_length: int = 8) -> bool:
    """Cheap shape check so obviously bogus ids never reach the database."""
    if len(value) != order_id_length(random_length) or not value.startswith(ORDER_ID_PREFIX):
        return False
    time_part = value[1:1 + TIME_WIDTH]
    suffix = value[1 + TIME_WIDTH:]
    return all(c in BASE36_DIGITS for c in time_part) and all(c in RANDOM_ALPHABET for c in suffix)
