"""Valuation core: bucketing, carry-forward, basket pricing, share price, APY, time ranges."""

from vaultnav.valuation.apy import annualized_yield
from vaultnav.valuation.basket import (
    basket_value,
    compute_basket_price,
    compute_nav,
    value_holdings,
)
from vaultnav.valuation.bucketing import TimeBucketAggregator, floor_to_bucket
from vaultnav.valuation.carry_forward import CarryForwardResolver
from vaultnav.valuation.series import build_nav_series
from vaultnav.valuation.share_price import derive_share_price
from vaultnav.valuation.time_range import parse_timestamp, resolve_time_range

__all__ = [
    "CarryForwardResolver",
    "TimeBucketAggregator",
    "annualized_yield",
    "basket_value",
    "build_nav_series",
    "compute_basket_price",
    "compute_nav",
    "derive_share_price",
    "floor_to_bucket",
    "parse_timestamp",
    "resolve_time_range",
    "value_holdings",
]
