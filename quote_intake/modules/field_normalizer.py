"""
Field normalization for monetary quote fields.

Aggregate limit and retention are snapped to the tiers the quoting product
accepts. The two fields follow different policies: an aggregate limit always
resolves to some valid tier (clamped at the product maximum, with a note),
while a retention that is not close to any tier is dropped silently.
"""

import logging
import math
import re
from typing import List, Optional, Sequence, Union

logger = logging.getLogger(__name__)

AGG_LIMIT_OPTIONS = (
    50000,
    100000,
    250000,
    500000,
    750000,
    1000000,
    2000000,
    3000000,
)

RETENTION_OPTIONS = (
    500,
    1000,
    2500,
    5000,
    10000,
    15000,
    25000,
    50000,
    75000,
    100000,
)

MAX_AGG_LIMIT = AGG_LIMIT_OPTIONS[-1]

# Retention matches are accepted within max(10% of the value, $1,000)
RETENTION_TOLERANCE_RATIO = 0.1
RETENTION_TOLERANCE_FLOOR = 1000

_AMOUNT_CLEANUP_PATTERN = re.compile(r"[,$\s]|USD", re.I)

Amount = Union[int, float, str, None]


def parse_amount(value: Amount) -> Optional[float]:
    """
    Coerce a model-supplied amount to a float

    Accepts numbers and strings such as "1,000,000" or "$250000".
    Returns None for None, booleans, blanks and anything unparseable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        cleaned = _AMOUNT_CLEANUP_PATTERN.sub("", str(value))
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def format_currency(value: Union[int, float]) -> str:
    """Format a dollar amount, e.g. 1000000 -> "$1,000,000" """
    if float(value).is_integer():
        return f"${int(value):,}"
    return f"${value:,.2f}"


def nearest_tier(value: float, tiers: Sequence[int]) -> int:
    """
    The tier closest to value by absolute distance

    Tiers are scanned in ascending order and only a strictly smaller distance
    replaces the current best, so ties go to the lower tier.
    """
    closest = tiers[0]
    min_diff = abs(value - closest)
    for option in tiers[1:]:
        diff = abs(value - option)
        if diff < min_diff:
            min_diff = diff
            closest = option
    return closest


def normalize_agg_limit(value: Amount, notes: List[str]) -> int:
    """
    Snap a requested aggregate limit to an allowed tier

    Args:
        value: Raw amount (number, numeric string or None)
        notes: Provenance notes; a note is appended whenever the value changes

    Returns:
        An allowed tier, or 0 when the value is unknown or not positive
    """
    number = parse_amount(value)
    if number is None or number <= 0:
        return 0

    if number > MAX_AGG_LIMIT:
        notes.append(
            f"Aggregate limit requested ({format_currency(number)}) exceeds maximum "
            f"allowed. Set to {format_currency(MAX_AGG_LIMIT)}."
        )
        return MAX_AGG_LIMIT

    closest = nearest_tier(number, AGG_LIMIT_OPTIONS)
    if closest != number:
        notes.append(
            f"Aggregate limit requested ({format_currency(number)}) does not match "
            f"available options. Adjusted to {format_currency(closest)}."
        )
        logger.debug("Aggregate limit %s snapped to %s", number, closest)
    return closest


def normalize_retention(value: Amount) -> Optional[int]:
    """
    Snap a requested retention to an allowed tier

    Returns None (unknown) when the value is unknown, not positive, or
    further from the nearest tier than max(10% of the value, $1,000).
    No provenance note is produced.
    """
    number = parse_amount(value)
    if number is None or number <= 0:
        return None

    closest = nearest_tier(number, RETENTION_OPTIONS)
    threshold = max(number * RETENTION_TOLERANCE_RATIO, RETENTION_TOLERANCE_FLOOR)
    if abs(number - closest) <= threshold:
        return closest

    logger.debug("Retention %s has no tier within %s; discarded", number, threshold)
    return None
