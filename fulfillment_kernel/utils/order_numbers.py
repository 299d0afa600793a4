"""
Order number generation.

Format: ``JOO`` + last 8 digits of the epoch milliseconds + 3 random digits,
e.g. ``JOO04512345123``.  Not guaranteed unique on its own; the orders table
has a unique constraint and callers retry on collision.
"""

import random
from datetime import datetime

ORDER_NUMBER_PREFIX = "JOO"


def generate_order_number(
    now: datetime,
    rng: random.Random | None = None,
) -> str:
    """
    Generate a human-readable order number.

    Args:
        now: Timestamp to derive the numeric part from (from a Clock).
        rng: Random source for the suffix.  Defaults to the module RNG.

    Returns:
        A 14-character order number.
    """
    millis = int(now.timestamp() * 1000)
    suffix = (rng or random).randrange(1000)
    return f"{ORDER_NUMBER_PREFIX}{millis % 10**8:08d}{suffix:03d}"
