"""Named chart periods to concrete UTC time ranges.

| Period | Start                    | Bucket |
|--------|--------------------------|--------|
| 1D     | today 00:00              | hour   |
| 1W     | today - 6 days 00:00     | day    |
| 1M     | today - 1 month 00:00    | day    |
| 3M     | today - 3 months 00:00   | day    |
| 6M     | today - 6 months 00:00   | week   |
| 1Y     | today - 1 year 00:00     | week   |
| ALL    | caller-supplied anchor   | week   |

The end is always today 23:59:59.999 UTC. Month arithmetic clamps to the last
day of the target month (May 31 - 3 months -> Feb 28/29).
"""

import calendar
from datetime import date, datetime, time, timedelta, timezone

from vaultnav.exceptions import InvalidInputError
from vaultnav.logging import get_logger
from vaultnav.models import ChartPeriod, IntervalUnit, TimeRange
from vaultnav.valuation.bucketing import to_utc

logger = get_logger(__name__)

_END_OF_DAY = time(23, 59, 59, 999_000)

_BUCKETS: dict[ChartPeriod, IntervalUnit] = {
    ChartPeriod.ONE_DAY: IntervalUnit.HOUR,
    ChartPeriod.ONE_WEEK: IntervalUnit.DAY,
    ChartPeriod.ONE_MONTH: IntervalUnit.DAY,
    ChartPeriod.THREE_MONTHS: IntervalUnit.DAY,
    ChartPeriod.SIX_MONTHS: IntervalUnit.WEEK,
    ChartPeriod.ONE_YEAR: IntervalUnit.WEEK,
    ChartPeriod.ALL: IntervalUnit.WEEK,
}


def parse_period(value: str | ChartPeriod) -> ChartPeriod:
    """Validate a period string such as "1W"."""
    try:
        return ChartPeriod(value)
    except ValueError:
        valid = ", ".join(p.value for p in ChartPeriod)
        raise InvalidInputError(f"Invalid interval. Must be one of: {valid}") from None


def _subtract_months(day: date, months: int) -> date:
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def _midnight(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def resolve_time_range(
    period: str | ChartPeriod,
    now: datetime | None = None,
    all_anchor: datetime | None = None,
) -> TimeRange:
    """Map a named period to {start, end, interval}.

    Args:
        period: One of 1D, 1W, 1M, 3M, 6M, 1Y, ALL.
        now: Reference instant (defaults to the current UTC time).
        all_anchor: Start instant for ALL, normally the earliest vault creation
            time computed by the caller. Ignored for other periods.

    Raises:
        InvalidInputError: On an unknown period, or ALL without an anchor.
    """
    period = parse_period(period)
    now = to_utc(now) if now is not None else datetime.now(timezone.utc)
    today = now.date()
    end = datetime.combine(today, _END_OF_DAY, tzinfo=timezone.utc)

    if period is ChartPeriod.ONE_DAY:
        start = _midnight(today)
    elif period is ChartPeriod.ONE_WEEK:
        start = _midnight(today - timedelta(days=6))
    elif period is ChartPeriod.ONE_MONTH:
        start = _midnight(_subtract_months(today, 1))
    elif period is ChartPeriod.THREE_MONTHS:
        start = _midnight(_subtract_months(today, 3))
    elif period is ChartPeriod.SIX_MONTHS:
        start = _midnight(_subtract_months(today, 6))
    elif period is ChartPeriod.ONE_YEAR:
        start = _midnight(_subtract_months(today, 12))
    else:
        if all_anchor is None:
            raise InvalidInputError("Period ALL requires an anchor timestamp")
        start = to_utc(all_anchor)

    return TimeRange(start=start, end=end, interval=_BUCKETS[period])


def parse_timestamp(value: object, field: str = "timestamp") -> datetime:
    """Decode a stored timestamp into an aware UTC datetime.

    Accepts datetimes, unix milliseconds (int/float) and ISO-8601 strings.
    Anything undecodable falls back to the current time with an error log;
    this is a last resort so that an invalid date never reaches financial output.
    """
    try:
        if isinstance(value, datetime):
            return to_utc(value)
        if isinstance(value, bool):
            raise TypeError("bool is not a timestamp")
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        if isinstance(value, str):
            return to_utc(datetime.fromisoformat(value))
        raise TypeError(f"unsupported type {type(value).__name__}")
    except (TypeError, ValueError, OverflowError, OSError) as e:
        logger.error(
            "invalid_timestamp_fallback_now",
            field=field,
            raw=repr(value),
            error=str(e),
        )
        return datetime.now(timezone.utc)
