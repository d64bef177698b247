"""Time bucketing of irregularly sampled price ticks.

Every interval unit is aligned in UTC: minute/hour/day buckets start on the
UTC wall-clock boundary and week buckets start on Monday 00:00 UTC. Naive
datetimes are interpreted as UTC.

A bucket's price for an asset is the arithmetic mean of all ticks that fall
into it, not the last tick.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from vaultnav.exceptions import InvalidInputError
from vaultnav.models import IntervalUnit, PriceTick

BucketKey = tuple[str, datetime]


@dataclass
class BucketAccumulator:
    """Running sum/count of the ticks seen for one (asset, bucket)."""

    total: Decimal = Decimal("0")
    count: int = 0

    def add(self, price: Decimal) -> None:
        self.total += price
        self.count += 1

    @property
    def mean(self) -> Decimal:
        return self.total / Decimal(self.count)


def to_utc(ts: datetime) -> datetime:
    """Return ``ts`` as an aware UTC datetime (naive input is taken as UTC)."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def floor_to_bucket(ts: datetime, interval: IntervalUnit) -> datetime:
    """Floor a timestamp to the start of its UTC bucket."""
    ts = to_utc(ts)
    if interval is IntervalUnit.MINUTE:
        return ts.replace(second=0, microsecond=0)
    if interval is IntervalUnit.HOUR:
        return ts.replace(minute=0, second=0, microsecond=0)
    if interval is IntervalUnit.DAY:
        return ts.replace(hour=0, minute=0, second=0, microsecond=0)
    if interval is IntervalUnit.WEEK:
        midnight = ts.replace(hour=0, minute=0, second=0, microsecond=0)
        return midnight - timedelta(days=midnight.weekday())  # Monday == 0
    raise InvalidInputError(f"Unsupported interval: {interval!r}")


class TimeBucketAggregator:
    """Accumulates price ticks into per-asset, per-bucket sum/count pairs.

    Input order does not matter. Empty input yields an empty mapping.

    Args:
        interval: Bucket width.
    """

    def __init__(self, interval: IntervalUnit) -> None:
        self._interval = IntervalUnit(interval)

    @property
    def interval(self) -> IntervalUnit:
        return self._interval

    def aggregate(self, ticks: Iterable[PriceTick]) -> dict[BucketKey, BucketAccumulator]:
        """Group ticks by (asset_key, bucket_start) into running sums.

        Raises:
            InvalidInputError: If a tick carries a negative price.
        """
        buckets: dict[BucketKey, BucketAccumulator] = {}
        for tick in ticks:
            if tick.price < 0:
                raise InvalidInputError(
                    f"Negative price {tick.price} for {tick.asset_key} at {tick.sampled_at}"
                )
            key = (tick.asset_key, floor_to_bucket(tick.sampled_at, self._interval))
            acc = buckets.get(key)
            if acc is None:
                acc = buckets[key] = BucketAccumulator()
            acc.add(tick.price)
        return buckets

    def bucket_means(self, ticks: Iterable[PriceTick]) -> dict[str, dict[datetime, Decimal]]:
        """Aggregate ticks and return the mean price per asset per bucket."""
        means: dict[str, dict[datetime, Decimal]] = {}
        for (asset_key, bucket), acc in self.aggregate(ticks).items():
            means.setdefault(asset_key, {})[bucket] = acc.mean
        return means
