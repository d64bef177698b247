"""Carry-forward of stale prices across buckets.

For a candidate bucket T and an asset, the resolved price is the mean from
the latest bucket <= T that has data for that asset. Buckets after T are
never consulted.
"""

from bisect import bisect_right
from datetime import datetime
from decimal import Decimal


class CarryForwardResolver:
    """Resolves the most recent known price per asset at or before a bucket.

    Args:
        bucket_means: Mapping asset_key -> {bucket_start: mean price}, as
            produced by TimeBucketAggregator.bucket_means().
    """

    def __init__(self, bucket_means: dict[str, dict[datetime, Decimal]]) -> None:
        self._buckets: dict[str, list[datetime]] = {}
        self._prices: dict[str, list[Decimal]] = {}
        for asset_key, by_bucket in bucket_means.items():
            ordered = sorted(by_bucket)
            self._buckets[asset_key] = ordered
            self._prices[asset_key] = [by_bucket[b] for b in ordered]

    def bucket_timestamps(self) -> list[datetime]:
        """Return the ascending union of buckets that hold data for any asset."""
        union: set[datetime] = set()
        for buckets in self._buckets.values():
            union.update(buckets)
        return sorted(union)

    def resolve(self, asset_key: str, bucket: datetime) -> Decimal | None:
        """Return the asset's price as of ``bucket``, or None if nothing is known yet."""
        buckets = self._buckets.get(asset_key)
        if not buckets:
            return None
        idx = bisect_right(buckets, bucket)
        if idx == 0:
            return None
        return self._prices[asset_key][idx - 1]

    def resolve_all(self, asset_keys: list[str], bucket: datetime) -> dict[str, Decimal]:
        """Resolve every asset at ``bucket``; unresolvable assets are absent from the result."""
        resolved: dict[str, Decimal] = {}
        for asset_key in asset_keys:
            price = self.resolve(asset_key, bucket)
            if price is not None:
                resolved[asset_key] = price
        return resolved
