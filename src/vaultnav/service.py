"""Valuation service: the public operations over stored prices and vault configuration.

Operations:
    get_nav_series         -- one vault, explicit range and bucket width
    get_vaults_nav_series  -- up to MAX_VAULT_IDS vaults over a named chart period
    calculate_annual_apy   -- compound annual NAV growth over the whole history
    get_share_price        -- latest share price point
    get_fee_accrual        -- live management fee accrual for one vault
    get_recorded_fee_accrual -- fee accrual persisted by the daily batch
"""

from collections.abc import Sequence
from datetime import date, datetime, timezone
from decimal import Decimal

from vaultnav.config import MAX_VAULT_IDS
from vaultnav.data.store import VaultDataStore
from vaultnav.exceptions import InvalidInputError, VaultNotFoundError
from vaultnav.fees.calculator import VaultFeeCalculator
from vaultnav.logging import get_logger
from vaultnav.models import (
    ChartPeriod,
    FeeAccrualResult,
    IntervalUnit,
    ValuationPoint,
    VaultConfig,
    VaultNavSeries,
)
from vaultnav.valuation.apy import annualized_yield
from vaultnav.valuation.bucketing import floor_to_bucket, to_utc
from vaultnav.valuation.series import build_nav_series
from vaultnav.valuation.time_range import parse_period, resolve_time_range

logger = get_logger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_vault_ids(vault_ids: str | Sequence[str]) -> list[str]:
    """Normalize a comma-separated string (or sequence) of vault ids.

    Raises:
        InvalidInputError: If no id is given, more than MAX_VAULT_IDS are given,
            or an id is repeated.
    """
    if isinstance(vault_ids, str):
        if not vault_ids.strip():
            raise InvalidInputError("vault_ids parameter is required")
        raw = vault_ids.split(",")
    else:
        raw = list(vault_ids)

    ids = [v.strip() for v in raw if v and v.strip()]
    if not ids:
        raise InvalidInputError("No valid vault IDs provided")
    if len(ids) > MAX_VAULT_IDS:
        raise InvalidInputError(
            f"Too many vault IDs provided. Maximum allowed is {MAX_VAULT_IDS}, received {len(ids)}"
        )

    seen: set[str] = set()
    duplicates: list[str] = []
    for vault_id in ids:
        if vault_id in seen and vault_id not in duplicates:
            duplicates.append(vault_id)
        seen.add(vault_id)
    if duplicates:
        raise InvalidInputError(f"Duplicate vault IDs found: {', '.join(duplicates)}")
    return ids


class VaultValuationService:
    """Entry point for valuation reads and live fee accrual.

    Args:
        store: Price history and vault configuration.
        fee_calculator: Live fee calculator; required only for get_fee_accrual.
    """

    def __init__(
        self,
        store: VaultDataStore,
        fee_calculator: VaultFeeCalculator | None = None,
    ) -> None:
        self._store = store
        self._fee_calculator = fee_calculator

    # ──────────────────────────────────────────────
    # Series
    # ──────────────────────────────────────────────

    async def get_nav_series(
        self,
        vault_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        interval: IntervalUnit = IntervalUnit.DAY,
    ) -> VaultNavSeries:
        """Build a vault's NAV series from stored ticks in ``[start, end]``.

        Raises:
            VaultNotFoundError: If the vault is not configured.
        """
        vault = await self._require_vault(vault_id)
        series = await self._series_for(vault, start, end, IntervalUnit(interval))
        return VaultNavSeries(vault_id=vault_id, vault_name=vault.name, series=series)

    async def get_vaults_nav_series(
        self,
        vault_ids: str | Sequence[str],
        period: str | ChartPeriod,
        now: datetime | None = None,
    ) -> list[VaultNavSeries]:
        """Build NAV series for several vaults over a named chart period.

        Every id must exist; otherwise nothing is computed and the missing ids
        are reported together. A vault whose series fails to build is returned
        with an empty series instead of failing the request.

        Raises:
            InvalidInputError: On malformed ids or an unknown period.
            VaultNotFoundError: If any id is not configured.
        """
        ids = parse_vault_ids(vault_ids)
        chart_period = parse_period(period)

        vaults: list[VaultConfig] = []
        missing: list[str] = []
        for vault_id in ids:
            vault = await self._store.get_vault(vault_id)
            if vault is None:
                missing.append(vault_id)
            else:
                vaults.append(vault)
        if missing:
            raise VaultNotFoundError(missing)

        anchor = None
        if chart_period is ChartPeriod.ALL:
            anchor = await self._all_anchor(vaults)
        time_range = resolve_time_range(chart_period, now=now, all_anchor=anchor)

        results: list[VaultNavSeries] = []
        for vault in vaults:
            try:
                series = await self._series_for(
                    vault, time_range.start, time_range.end, time_range.interval
                )
                results.append(
                    VaultNavSeries(vault_id=vault.vault_id, vault_name=vault.name, series=series)
                )
            except Exception as e:
                logger.error(
                    "vault_series_failed",
                    vault_id=vault.vault_id,
                    error=str(e),
                    exc_info=True,
                )
                results.append(
                    VaultNavSeries(
                        vault_id=vault.vault_id,
                        vault_name=f"{vault.name} (Processing Error)",
                        series=[],
                    )
                )
        return results

    # ──────────────────────────────────────────────
    # Derived metrics
    # ──────────────────────────────────────────────

    async def calculate_annual_apy(self, vault_id: str) -> Decimal | None:
        """Compound annual NAV growth over the vault's full daily history, in percent.

        Returns None when the history is too short or NAV endpoints are not positive.
        """
        nav_series = await self.get_nav_series(vault_id, interval=IntervalUnit.DAY)
        apy = annualized_yield(nav_series.series)
        if apy is None:
            logger.warning("apy_unavailable", vault_id=vault_id, points=len(nav_series.series))
        return apy

    async def get_share_price(self, vault_id: str) -> ValuationPoint | None:
        """Latest daily valuation point (with share price), or None without price history."""
        nav_series = await self.get_nav_series(vault_id, interval=IntervalUnit.DAY)
        if not nav_series.series:
            return None
        return nav_series.series[-1]

    async def get_fee_accrual(self, vault_index: int) -> FeeAccrualResult:
        """Live management fee accrual for the vault at ``vault_index``."""
        if self._fee_calculator is None:
            raise RuntimeError("Fee calculator not configured")
        return await self._fee_calculator.calculate(vault_index)

    async def get_recorded_fee_accrual(
        self, vault_index: int, day: date
    ) -> FeeAccrualResult | None:
        """Fee accrual recorded by the daily batch for ``day``, or None if not yet run."""
        return await self._store.get_fee_snapshot(vault_index, day)

    # ──────────────────────────────────────────────
    # Internal helpers
    # ──────────────────────────────────────────────

    async def _require_vault(self, vault_id: str) -> VaultConfig:
        vault = await self._store.get_vault(vault_id)
        if vault is None:
            raise VaultNotFoundError(vault_id)
        return vault

    async def _series_for(
        self,
        vault: VaultConfig,
        start: datetime | None,
        end: datetime | None,
        interval: IntervalUnit,
    ) -> list[ValuationPoint]:
        if not vault.basket:
            return []
        asset_keys = [a.asset_key for a in vault.basket]
        ticks = await self._store.get_price_ticks(asset_keys, since=start, until=end)
        return build_nav_series(
            ticks,
            vault.basket,
            interval,
            fee_percent=vault.fee_percent,
            total_supply=vault.total_supply,
        )

    async def _all_anchor(self, vaults: list[VaultConfig]) -> datetime:
        """Midnight of the earliest creation date, else of the earliest stored tick."""
        created = [v.created_at for v in vaults if v.created_at is not None]
        if created:
            return floor_to_bucket(min(to_utc(c) for c in created), IntervalUnit.DAY)

        asset_keys = sorted({a.asset_key for v in vaults for a in v.basket})
        earliest_tick = await self._store.get_earliest_tick(asset_keys)
        if earliest_tick is not None:
            logger.info(
                "all_period_anchored_to_first_tick",
                vaults=[v.vault_id for v in vaults],
                anchor=earliest_tick.isoformat(),
            )
            return floor_to_bucket(earliest_tick, IntervalUnit.DAY)

        logger.warning("no_vault_creation_dates", vaults=[v.vault_id for v in vaults])
        return _EPOCH
