"""Exponential backoff for delivery retries.

The delay depends only on the attempt number, never on wall-clock
failure time::

    attempt   1  2  3   4   5   6+
    delay     2  4  8  16  32  60   (base=2, cap=60)
"""

from __future__ import annotations

import math

DEFAULT_BASE_SECONDS = 2.0
DEFAULT_MAX_DELAY_SECONDS = 60.0


def retry_delay(
    attempt: int,
    base: float = DEFAULT_BASE_SECONDS,
    max_delay: float = DEFAULT_MAX_DELAY_SECONDS,
) -> float:
    """Return ``min(base ** attempt, max_delay)`` seconds.

    Parameters
    ----------
    attempt:
        1-based retry attempt number (the record's ``retry_count`` after
        it has been incremented for this retry).
    base:
        Exponent base in seconds.
    max_delay:
        Upper bound in seconds.

    """
    if attempt < 0:
        msg = f"attempt must be >= 0 (got {attempt})"
        raise ValueError(msg)
    if max_delay <= 0:
        return 0.0
    if base <= 1:
        return float(min(base**attempt, max_delay))
    # Compare in log space so large attempt numbers cannot overflow.
    if attempt * math.log(base) >= math.log(max_delay):
        return float(max_delay)
    return float(base**attempt)
