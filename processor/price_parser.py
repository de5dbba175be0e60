"""Parsing and formatting of free-text event prices."""
import logging
import math

from processor.models import (
    COST_MINIMUM,
    COST_RANGE,
    COST_SINGLE,
    Cost,
    Number,
)

logger = logging.getLogger(__name__)


def parse_price_string(price_str: str) -> Cost:
    """
    Parse a free-text price into a tagged Cost.

    Recognized forms, checked in order after lowercasing, trimming and
    removing dollar signs: empty or "free", "15-25" ranges, "25+" minimums
    and single amounts. Anything unparseable, including ranges whose minimum
    exceeds the maximum, falls back to free.

    Args:
        price_str: Price text as scraped or typed (e.g. "$15-$25")

    Returns:
        Cost object; never raises
    """
    try:
        text = (price_str or '').lower().strip()
        text = text.replace('$', '').replace('–', '-').replace('—', '-').strip()

        if text in ('', 'free'):
            return Cost(COST_SINGLE, 0)

        if '-' in text:
            low, high = text.split('-', 1)
            minimum = _parse_amount(low)
            maximum = _parse_amount(high)
            if minimum > maximum:
                raise ValueError(f"inverted price range {minimum} > {maximum}")
            return Cost(COST_RANGE, [minimum, maximum])

        if '+' in text:
            return Cost(COST_MINIMUM, _parse_amount(text.replace('+', '')))

        return Cost(COST_SINGLE, _parse_amount(text))

    except (ValueError, TypeError, AttributeError) as e:
        logger.warning(f"Failed to parse price '{price_str}': {e}")
        return Cost(COST_SINGLE, 0)


def _parse_amount(text: str) -> Number:
    """
    Parse one non-negative amount.

    Args:
        text: Amount text, possibly with thousands separators

    Returns:
        int for whole amounts, float otherwise

    Raises:
        ValueError: If the text is not a finite, non-negative number
    """
    cleaned = text.replace(',', '').strip()
    value = float(cleaned)

    if not math.isfinite(value) or value < 0:
        raise ValueError(f"invalid amount '{text}'")

    if value.is_integer():
        return int(value)
    return value


def format_cost(cost: Cost) -> str:
    """Format a Cost for display, e.g. "$15 - $25" or "$25+"."""
    if cost.type == COST_SINGLE:
        return f"${cost.value}"
    if cost.type == COST_RANGE:
        if isinstance(cost.value, (list, tuple)) and len(cost.value) == 2:
            return f"${cost.value[0]} - ${cost.value[1]}"
        return ''
    if cost.type == COST_MINIMUM:
        return f"${cost.value}+"
    return 'N/A'
