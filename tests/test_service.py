"""Tests for VaultValuationService over a temporary SQLite store."""

from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from vaultnav.data.database import VaultDatabase
from vaultnav.data.store import VaultDataStore
from vaultnav.exceptions import InvalidInputError, VaultNotFoundError
from vaultnav.models import BasketAsset, FeeAccrualResult, IntervalUnit, PriceTick, VaultConfig
from vaultnav.service import VaultValuationService, parse_vault_ids


def _utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def _tick(asset: str, price: str, at: datetime) -> PriceTick:
    return PriceTick(asset_key=asset, price=Decimal(price), sampled_at=at)


def _db_path(tmp_path: Path) -> str:
    return str(tmp_path / "service.db")


NOW = _utc(2024, 1, 12, 12)


class TestParseVaultIds:
    def test_comma_string(self) -> None:
        assert parse_vault_ids(" a, b ,,c ") == ["a", "b", "c"]

    def test_sequence(self) -> None:
        assert parse_vault_ids(["a", " b "]) == ["a", "b"]

    @pytest.mark.parametrize("raw", ["", "   ", " , ,", []])
    def test_empty(self, raw: object) -> None:
        with pytest.raises(InvalidInputError):
            parse_vault_ids(raw)  # type: ignore[arg-type]

    def test_fifty_allowed(self) -> None:
        assert len(parse_vault_ids([f"v{i}" for i in range(50)])) == 50

    def test_more_than_fifty(self) -> None:
        with pytest.raises(InvalidInputError, match="Maximum allowed is 50, received 51"):
            parse_vault_ids(",".join(f"v{i}" for i in range(51)))

    def test_duplicates(self) -> None:
        with pytest.raises(InvalidInputError, match="Duplicate vault IDs found: a"):
            parse_vault_ids("a,b,a,a")


class TestGetNavSeries:
    @pytest.mark.asyncio
    async def test_series_with_fee_and_share_price(
        self, tmp_path: Path, sol_usdc_vault: VaultConfig
    ) -> None:
        async with VaultDatabase(_db_path(tmp_path)) as database:
            store = VaultDataStore(database)
            await store.upsert_vault(sol_usdc_vault)
            await store.insert_price_ticks(
                [
                    _tick("SOL", "1000", _utc(2024, 1, 10, 9)),
                    _tick("USDC", "1000", _utc(2024, 1, 10, 9)),
                    _tick("SOL", "1500", _utc(2024, 1, 11, 9)),
                ]
            )
            result = await VaultValuationService(store).get_nav_series("vault-a")

        assert result.vault_name == "Sol Stable"
        assert [p.timestamp for p in result.series] == [_utc(2024, 1, 10), _utc(2024, 1, 11)]
        first, second = result.series
        assert (first.gav, first.nav, first.share_price) == (
            Decimal("1000.00"),
            Decimal("980.00"),
            Decimal("0.98"),
        )
        # 0.4 * 1500 + 0.6 * 1000 (carried) = 1200
        assert second.gav == Decimal("1200.00")

    @pytest.mark.asyncio
    async def test_range_and_interval(self, tmp_path: Path, sol_usdc_vault: VaultConfig) -> None:
        async with VaultDatabase(_db_path(tmp_path)) as database:
            store = VaultDataStore(database)
            await store.upsert_vault(sol_usdc_vault)
            await store.insert_price_ticks(
                [
                    _tick("SOL", "100", _utc(2024, 1, 10, 9)),
                    _tick("SOL", "110", _utc(2024, 1, 10, 10, 30)),
                    _tick("SOL", "120", _utc(2024, 1, 10, 12)),
                ]
            )
            result = await VaultValuationService(store).get_nav_series(
                "vault-a",
                start=_utc(2024, 1, 10, 10),
                end=_utc(2024, 1, 10, 11),
                interval=IntervalUnit.HOUR,
            )

        assert [p.timestamp for p in result.series] == [_utc(2024, 1, 10, 10)]
        assert result.series[0].gav == Decimal("44.00")

    @pytest.mark.asyncio
    async def test_unknown_vault(self, tmp_path: Path) -> None:
        async with VaultDatabase(_db_path(tmp_path)) as database:
            service = VaultValuationService(VaultDataStore(database))
            with pytest.raises(VaultNotFoundError):
                await service.get_nav_series("missing")

    @pytest.mark.asyncio
    async def test_empty_basket(self, tmp_path: Path, sol_usdc_vault: VaultConfig) -> None:
        async with VaultDatabase(_db_path(tmp_path)) as database:
            store = VaultDataStore(database)
            await store.upsert_vault(replace(sol_usdc_vault, basket=[]))
            result = await VaultValuationService(store).get_nav_series("vault-a")

        assert result.series == []


class TestGetVaultsNavSeries:
    @pytest.mark.asyncio
    async def test_one_week_period(self, tmp_path: Path, sol_usdc_vault: VaultConfig) -> None:
        vault_b = replace(
            sol_usdc_vault,
            vault_id="vault-b",
            name="Sol Only",
            vault_index=2,
            basket=[BasketAsset(asset_key="SOL", weight_bps=10_000)],
            management_fee_bps=0,
        )
        async with VaultDatabase(_db_path(tmp_path)) as database:
            store = VaultDataStore(database)
            await store.upsert_vault(sol_usdc_vault)
            await store.upsert_vault(vault_b)
            await store.insert_price_ticks(
                [
                    _tick("SOL", "50", _utc(2023, 12, 1)),  # before the 1W window
                    _tick("SOL", "100", _utc(2024, 1, 10, 9)),
                    _tick("USDC", "1", _utc(2024, 1, 11, 9)),
                ]
            )
            results = await VaultValuationService(store).get_vaults_nav_series(
                "vault-a,vault-b", "1W", now=NOW
            )

        assert [r.vault_id for r in results] == ["vault-a", "vault-b"]
        a, b = results
        assert [p.timestamp for p in a.series] == [_utc(2024, 1, 10), _utc(2024, 1, 11)]
        assert [p.gav for p in b.series] == [Decimal("100.00")]

    @pytest.mark.asyncio
    async def test_missing_ids_reported_together(
        self, tmp_path: Path, sol_usdc_vault: VaultConfig
    ) -> None:
        async with VaultDatabase(_db_path(tmp_path)) as database:
            store = VaultDataStore(database)
            await store.upsert_vault(sol_usdc_vault)
            service = VaultValuationService(store)
            with pytest.raises(VaultNotFoundError, match="do not exist: x, y"):
                await service.get_vaults_nav_series("x,vault-a,y", "1M", now=NOW)

    @pytest.mark.asyncio
    async def test_invalid_period(self, tmp_path: Path) -> None:
        async with VaultDatabase(_db_path(tmp_path)) as database:
            service = VaultValuationService(VaultDataStore(database))
            with pytest.raises(InvalidInputError):
                await service.get_vaults_nav_series("vault-a", "2Y", now=NOW)

    @pytest.mark.asyncio
    async def test_all_anchored_to_creation_midnight(
        self, tmp_path: Path, sol_usdc_vault: VaultConfig
    ) -> None:
        """Vault created 2024-01-10 15:30: ticks from 00:00 that day count, the day before does not."""
        async with VaultDatabase(_db_path(tmp_path)) as database:
            store = VaultDataStore(database)
            await store.upsert_vault(sol_usdc_vault)
            await store.insert_price_ticks(
                [
                    _tick("SOL", "1000", _utc(2024, 1, 9, 12)),
                    _tick("SOL", "2000", _utc(2024, 1, 10, 1)),
                    _tick("USDC", "1000", _utc(2024, 1, 10, 1)),
                ]
            )
            results = await VaultValuationService(store).get_vaults_nav_series(
                ["vault-a"], "ALL", now=NOW
            )

        series = results[0].series
        # One weekly bucket starting Monday 2024-01-08: 0.4 * 2000 + 0.6 * 1000
        assert [p.timestamp for p in series] == [_utc(2024, 1, 8)]
        assert series[0].gav == Decimal("1400.00")

    @pytest.mark.asyncio
    async def test_all_without_creation_dates_uses_stored_history(
        self, tmp_path: Path, sol_usdc_vault: VaultConfig
    ) -> None:
        async with VaultDatabase(_db_path(tmp_path)) as database:
            store = VaultDataStore(database)
            await store.upsert_vault(replace(sol_usdc_vault, created_at=None))
            await store.insert_price_ticks([_tick("SOL", "100", _utc(2001, 1, 1))])
            results = await VaultValuationService(store).get_vaults_nav_series(
                "vault-a", "ALL", now=NOW
            )

        assert len(results[0].series) == 1

    @pytest.mark.asyncio
    async def test_all_anchor_falls_back_to_first_tick_midnight(
        self, sol_usdc_vault: VaultConfig
    ) -> None:
        store = AsyncMock()
        store.get_vault.return_value = replace(sol_usdc_vault, created_at=None)
        store.get_earliest_tick.return_value = _utc(2023, 5, 4, 17, 45)
        store.get_price_ticks.return_value = []

        await VaultValuationService(store).get_vaults_nav_series("vault-a", "ALL", now=NOW)

        store.get_earliest_tick.assert_awaited_once_with(["SOL", "USDC"])
        assert store.get_price_ticks.await_args.kwargs["since"] == _utc(2023, 5, 4)

    @pytest.mark.asyncio
    async def test_all_anchor_epoch_without_any_history(self, sol_usdc_vault: VaultConfig) -> None:
        store = AsyncMock()
        store.get_vault.return_value = replace(sol_usdc_vault, created_at=None)
        store.get_earliest_tick.return_value = None
        store.get_price_ticks.return_value = []

        results = await VaultValuationService(store).get_vaults_nav_series(
            "vault-a", "ALL", now=NOW
        )

        assert results[0].series == []
        assert store.get_price_ticks.await_args.kwargs["since"] == _utc(1970, 1, 1)

    @pytest.mark.asyncio
    async def test_all_anchor_prefers_creation_date(self, sol_usdc_vault: VaultConfig) -> None:
        store = AsyncMock()
        store.get_vault.return_value = sol_usdc_vault
        store.get_price_ticks.return_value = []

        await VaultValuationService(store).get_vaults_nav_series("vault-a", "ALL", now=NOW)

        store.get_earliest_tick.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failing_vault_yields_empty_series(
        self, tmp_path: Path, sol_usdc_vault: VaultConfig
    ) -> None:
        broken = replace(
            sol_usdc_vault,
            vault_id="broken",
            vault_index=2,
            basket=[BasketAsset(asset_key="SOL", weight_bps=20_000)],
        )
        async with VaultDatabase(_db_path(tmp_path)) as database:
            store = VaultDataStore(database)
            await store.upsert_vault(sol_usdc_vault)
            await store.upsert_vault(broken)
            await store.insert_price_ticks([_tick("SOL", "100", _utc(2024, 1, 11))])
            results = await VaultValuationService(store).get_vaults_nav_series(
                "vault-a,broken", "1W", now=NOW
            )

        ok, failed = results
        assert len(ok.series) == 1
        assert failed.series == []
        assert failed.vault_name == "Sol Stable (Processing Error)"


class TestDerivedMetrics:
    @pytest.mark.asyncio
    async def test_annual_apy_over_four_julian_years(
        self, tmp_path: Path, sol_usdc_vault: VaultConfig
    ) -> None:
        # 2020-01-01 -> 2024-01-01 is 1461 days, exactly four 365.25-day years
        vault = replace(
            sol_usdc_vault,
            basket=[BasketAsset(asset_key="SOL", weight_bps=10_000)],
            management_fee_bps=0,
        )
        async with VaultDatabase(_db_path(tmp_path)) as database:
            store = VaultDataStore(database)
            await store.upsert_vault(vault)
            await store.insert_price_ticks(
                [
                    _tick("SOL", "100", _utc(2020, 1, 1, 6)),
                    _tick("SOL", "146.41", _utc(2020, 1, 1, 6) + timedelta(days=1461)),
                ]
            )
            apy = await VaultValuationService(store).calculate_annual_apy("vault-a")

        assert apy == Decimal("10.00")

    @pytest.mark.asyncio
    async def test_annual_apy_unavailable(self, tmp_path: Path, sol_usdc_vault: VaultConfig) -> None:
        async with VaultDatabase(_db_path(tmp_path)) as database:
            store = VaultDataStore(database)
            await store.upsert_vault(sol_usdc_vault)
            await store.insert_price_ticks([_tick("SOL", "100", _utc(2024, 1, 1))])
            apy = await VaultValuationService(store).calculate_annual_apy("vault-a")

        assert apy is None

    @pytest.mark.asyncio
    async def test_share_price_is_latest_point(
        self, tmp_path: Path, sol_usdc_vault: VaultConfig
    ) -> None:
        async with VaultDatabase(_db_path(tmp_path)) as database:
            store = VaultDataStore(database)
            await store.upsert_vault(sol_usdc_vault)
            await store.insert_price_ticks(
                [
                    _tick("SOL", "1000", _utc(2024, 1, 10)),
                    _tick("USDC", "1000", _utc(2024, 1, 10)),
                    _tick("SOL", "2000", _utc(2024, 1, 11)),
                ]
            )
            point = await VaultValuationService(store).get_share_price("vault-a")

        assert point is not None
        assert point.timestamp == _utc(2024, 1, 11)
        # gav 1400, nav 1372, 1000 shares
        assert point.share_price == Decimal("1.372")

    @pytest.mark.asyncio
    async def test_share_price_without_history(
        self, tmp_path: Path, sol_usdc_vault: VaultConfig
    ) -> None:
        async with VaultDatabase(_db_path(tmp_path)) as database:
            store = VaultDataStore(database)
            await store.upsert_vault(sol_usdc_vault)
            assert await VaultValuationService(store).get_share_price("vault-a") is None


class TestGetFeeAccrual:
    @pytest.mark.asyncio
    async def test_delegates_to_calculator(self) -> None:
        expected = FeeAccrualResult(
            gav=Decimal("1000"),
            nav=Decimal("980"),
            newly_accrued_fee_usd=Decimal("20"),
            total_accrued_fee_usd=Decimal("20"),
            creator_share_usd=Decimal("14"),
            platform_share_usd=Decimal("6"),
            vault_index=3,
        )
        calculator = AsyncMock()
        calculator.calculate.return_value = expected
        service = VaultValuationService(AsyncMock(), calculator)

        assert await service.get_fee_accrual(3) is expected
        calculator.calculate.assert_awaited_once_with(3)

    @pytest.mark.asyncio
    async def test_requires_calculator(self) -> None:
        with pytest.raises(RuntimeError):
            await VaultValuationService(AsyncMock()).get_fee_accrual(3)

    @pytest.mark.asyncio
    async def test_recorded_accrual_reads_daily_snapshot(self, tmp_path: Path) -> None:
        recorded = FeeAccrualResult(
            gav=Decimal("1000"),
            nav=Decimal("975.5"),
            newly_accrued_fee_usd=Decimal("20"),
            total_accrued_fee_usd=Decimal("24.5"),
            creator_share_usd=Decimal("17.15"),
            platform_share_usd=Decimal("7.35"),
            previously_accrued_fee_usd=Decimal("4.5"),
            elapsed_seconds=31_536_000,
            management_fee_bps=200,
            vault_index=1,
            calculated_at=1_717_200_000.0,
        )
        async with VaultDatabase(_db_path(tmp_path)) as database:
            store = VaultDataStore(database)
            await store.save_fee_snapshot(recorded, date(2024, 6, 1))
            service = VaultValuationService(store)
            loaded = await service.get_recorded_fee_accrual(1, date(2024, 6, 1))
            not_run = await service.get_recorded_fee_accrual(1, date(2024, 6, 2))

        assert loaded == recorded
        assert not_run is None
