"""Shared test fixtures for the vault valuation engine."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from vaultnav.config import AppSettings, BatchSettings, FeeSettings, OracleSettings
from vaultnav.models import BasketAsset, VaultConfig


def utc(*args: int) -> datetime:
    """Build an aware UTC datetime: utc(2024, 1, 1, 12)."""
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def fee_settings() -> FeeSettings:
    """Default 70/30 creator/platform split."""
    return FeeSettings()


@pytest.fixture
def oracle_settings() -> OracleSettings:
    """Oracle settings with a test endpoint; tests patch asyncio.sleep for delays."""
    return OracleSettings(
        base_url="https://oracle.test/price",
        api_key="test-api-key",  # type: ignore[arg-type]
        batch_size=2,
        max_retries=3,
    )


@pytest.fixture
def batch_settings() -> BatchSettings:
    """Batch settings with no inter-vault delay."""
    return BatchSettings(vault_delay_seconds=0)


@pytest.fixture
def mock_settings(
    fee_settings: FeeSettings,
    oracle_settings: OracleSettings,
    batch_settings: BatchSettings,
) -> AppSettings:
    """Return AppSettings with test defaults."""
    return AppSettings(
        log_level="DEBUG",
        oracle=oracle_settings,
        fees=fee_settings,
        batch=batch_settings,
    )


@pytest.fixture
def sol_usdc_vault() -> VaultConfig:
    """A two-asset 40/60 vault with a 2% management fee and 1000 shares."""
    return VaultConfig(
        vault_id="vault-a",
        name="Sol Stable",
        symbol="SOLS",
        basket=[
            BasketAsset(asset_key="SOL", weight_bps=4000),
            BasketAsset(asset_key="USDC", weight_bps=6000),
        ],
        management_fee_bps=200,
        total_supply=Decimal("1000"),
        vault_index=1,
        created_at=utc(2024, 1, 10, 15, 30),
        reserve_asset_key="USDC",
    )
