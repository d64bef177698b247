"""Annualized yield (CAGR-style APY) from a NAV series.

Formula:
    years  = (last_ts - first_ts) / 365.25 days
    growth = (last_nav / first_nav) ^ (1 / years) - 1
    apy    = growth * 100, rounded to 2 decimal places

The exponent handles partial and multi-year spans the same way: a vault that
goes 100 -> 121 over two Julian years yields 10.00, not the linear 10.5.

Decimal.__pow__() supports non-integer exponents, so the whole computation
stays in Decimal. Spans so short that the growth overflows are unavailable.
"""

import decimal
from decimal import ROUND_HALF_UP, Decimal

from vaultnav.config import DAYS_PER_YEAR_APY
from vaultnav.logging import get_logger
from vaultnav.models import ValuationPoint

logger = get_logger(__name__)

_SECONDS_PER_DAY = Decimal("86400")
_APY_QUANT = Decimal("0.01")


def annualized_yield(points: list[ValuationPoint]) -> Decimal | None:
    """Compound annual growth of NAV between the first and last point, in percent.

    Points are ordered by timestamp before use.

    Returns:
        APY rounded to 2 decimal places, or None ("unavailable") when there are
        fewer than 2 points, either endpoint NAV is not positive, or the span
        is not positive, or the annualized growth overflows.
    """
    if len(points) < 2:
        logger.debug("apy_unavailable", reason="insufficient_points", points=len(points))
        return None

    ordered = sorted(points, key=lambda p: p.timestamp)
    first, last = ordered[0], ordered[-1]

    if first.nav <= 0 or last.nav <= 0:
        logger.debug(
            "apy_unavailable",
            reason="non_positive_nav",
            first_nav=str(first.nav),
            last_nav=str(last.nav),
        )
        return None

    span_seconds = Decimal(str((last.timestamp - first.timestamp).total_seconds()))
    years = span_seconds / (DAYS_PER_YEAR_APY * _SECONDS_PER_DAY)
    if years <= 0:
        logger.debug("apy_unavailable", reason="non_positive_span")
        return None

    ratio = last.nav / first.nav
    exponent = Decimal("1") / years

    try:
        growth = ratio**exponent - Decimal("1")
        return (growth * Decimal("100")).quantize(_APY_QUANT, rounding=ROUND_HALF_UP)
    except (decimal.Overflow, decimal.InvalidOperation):
        logger.debug(
            "apy_unavailable",
            reason="overflow",
            ratio=str(ratio),
            span_seconds=str(span_seconds),
        )
        return None
