"""NAV/GAV series pipeline.

ticks -> TimeBucketAggregator (mean per asset per bucket)
      -> CarryForwardResolver (latest known price per asset at each bucket)
      -> basket_value / compute_nav (weighted GAV, fee-adjusted NAV)
      -> derive_share_price

A bucket is emitted only when at least one weighted basket asset resolves.
"""

from collections.abc import Iterable
from decimal import Decimal

from vaultnav.logging import get_logger
from vaultnav.models import BasketAsset, IntervalUnit, PriceTick, ValuationPoint
from vaultnav.valuation.basket import basket_value, compute_nav, round_usd
from vaultnav.valuation.bucketing import TimeBucketAggregator
from vaultnav.valuation.carry_forward import CarryForwardResolver
from vaultnav.valuation.share_price import derive_share_price

logger = get_logger(__name__)


def build_nav_series(
    ticks: Iterable[PriceTick],
    basket: list[BasketAsset],
    interval: IntervalUnit,
    fee_percent: Decimal = Decimal("0"),
    total_supply: Decimal = Decimal("0"),
) -> list[ValuationPoint]:
    """Turn raw price ticks into an ascending series of ValuationPoints.

    Args:
        ticks: Price ticks in any order. Ticks for assets outside the basket are ignored.
        basket: Basket assets and weights.
        interval: Bucket width.
        fee_percent: Management fee percentage applied to GAV to get NAV.
        total_supply: Outstanding shares used for the share price.

    Returns:
        One ValuationPoint per populated bucket, ascending by timestamp.
    """
    weighted = [a for a in basket if a.weight_bps > 0]
    if not weighted:
        return []

    basket_keys = {a.asset_key for a in weighted}
    means = TimeBucketAggregator(interval).bucket_means(
        t for t in ticks if t.asset_key in basket_keys
    )
    resolver = CarryForwardResolver(means)
    asset_keys = [a.asset_key for a in weighted]

    series: list[ValuationPoint] = []
    for bucket in resolver.bucket_timestamps():
        prices = resolver.resolve_all(asset_keys, bucket)
        if not prices:
            continue

        raw_gav = basket_value(weighted, prices)
        nav = compute_nav(raw_gav, fee_percent)
        series.append(
            ValuationPoint(
                timestamp=bucket,
                gav=round_usd(raw_gav),
                nav=nav,
                share_price=derive_share_price(nav, total_supply),
                total_supply=total_supply,
            )
        )

    logger.debug(
        "nav_series_built",
        interval=IntervalUnit(interval).value,
        assets=len(asset_keys),
        points=len(series),
    )
    return series
