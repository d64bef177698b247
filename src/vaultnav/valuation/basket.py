"""Weighted-basket pricing and NAV derivation.

All arithmetic is Decimal. Rounding happens once, after summation, never
per term:
  - GAV/NAV in USD: 2 decimal places (ROUND_HALF_UP)

Absent assets (no resolved price) contribute nothing to the sum, so a basket
with missing prices is under-weighted rather than rejected. Callers that need
the weights to cover exactly 100% must guarantee price availability.
"""

from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal

from vaultnav.config import BASIS_POINTS
from vaultnav.exceptions import InvalidInputError, PriceUnavailableError
from vaultnav.logging import get_logger
from vaultnav.models import AssetValuation, BasketAsset

logger = get_logger(__name__)

USD_QUANT = Decimal("0.01")
_HUNDRED = Decimal("100")


def round_usd(value: Decimal) -> Decimal:
    """Round a USD amount to cents."""
    return value.quantize(USD_QUANT, rounding=ROUND_HALF_UP)


def basket_value(basket: list[BasketAsset], prices: Mapping[str, Decimal]) -> Decimal:
    """Unrounded weighted sum: sum(weight_bps / 10000 * price) over priced assets.

    Zero-weight assets are skipped. Assets missing from ``prices`` are skipped.

    Raises:
        InvalidInputError: If a weight is outside 0-10000 or a price is negative.
    """
    total = Decimal("0")
    for asset in basket:
        if not 0 <= asset.weight_bps <= BASIS_POINTS:
            raise InvalidInputError(
                f"Weight {asset.weight_bps} bps for {asset.asset_key} is outside 0-{BASIS_POINTS}"
            )
        if asset.weight_bps == 0:
            continue
        price = prices.get(asset.asset_key)
        if price is None:
            continue
        if price < 0:
            raise InvalidInputError(f"Negative price {price} for {asset.asset_key}")
        total += Decimal(asset.weight_bps) / Decimal(BASIS_POINTS) * price
    return total


def compute_basket_price(basket: list[BasketAsset], prices: Mapping[str, Decimal]) -> Decimal:
    """Gross asset value of one basket unit, rounded to cents."""
    return round_usd(basket_value(basket, prices))


def compute_nav(gav: Decimal, fee_percent: Decimal) -> Decimal:
    """Net asset value after a proportional fee charge: gav - gav * fee_percent / 100.

    Args:
        gav: Gross asset value (unrounded values are accepted and rounded once here).
        fee_percent: Fee as a percentage, 0-100 (2 means 2%).

    Returns:
        NAV rounded to cents. Equals round(gav) when fee_percent is 0.
    """
    if gav < 0:
        raise InvalidInputError(f"Negative GAV {gav}")
    if not Decimal("0") <= fee_percent <= _HUNDRED:
        raise InvalidInputError(f"Fee percent {fee_percent} is outside 0-100")
    return round_usd(gav - gav * fee_percent / _HUNDRED)


def value_holdings(
    balances: Mapping[str, Decimal],
    prices: Mapping[str, Decimal],
    required: frozenset[str] = frozenset(),
) -> tuple[Decimal, list[AssetValuation]]:
    """Value token holdings at live prices.

    An asset without a price is excluded from the total and reported with an
    ``excluded`` marker, unless it is in ``required``, in which case the whole
    valuation fails.

    Args:
        balances: Token amounts (already scaled by mint decimals) per asset.
        prices: Live USD prices per asset; missing keys mean "no quote".
        required: Assets whose price must be present.

    Returns:
        Tuple of (unrounded total USD, per-asset breakdown in input order).

    Raises:
        PriceUnavailableError: If a required asset has no price.
    """
    total = Decimal("0")
    breakdown: list[AssetValuation] = []

    for asset_key, balance in balances.items():
        price = prices.get(asset_key)
        if price is None:
            if asset_key in required:
                raise PriceUnavailableError(asset_key)
            logger.warning("asset_price_unavailable", asset_key=asset_key, balance=str(balance))
            breakdown.append(
                AssetValuation(
                    asset_key=asset_key,
                    balance=balance,
                    price=None,
                    value_usd=Decimal("0"),
                    excluded=True,
                    reason="price_unavailable",
                )
            )
            continue

        value = balance * price
        total += value
        breakdown.append(
            AssetValuation(asset_key=asset_key, balance=balance, price=price, value_usd=value)
        )

    return total, breakdown
