"""Shared data models for the vault valuation engine.

CRITICAL: All monetary values use Decimal. Never use float for prices, balances, or fees.
All timestamps are timezone-aware UTC datetimes unless a field says unix seconds.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum


class IntervalUnit(str, Enum):
    """Bucket width for time-series aggregation."""

    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"


class ChartPeriod(str, Enum):
    """Coarse named chart period."""

    ONE_DAY = "1D"
    ONE_WEEK = "1W"
    ONE_MONTH = "1M"
    THREE_MONTHS = "3M"
    SIX_MONTHS = "6M"
    ONE_YEAR = "1Y"
    ALL = "ALL"


@dataclass(frozen=True)
class PriceTick:
    """A single sampled USD price for an asset. Read-only input."""

    asset_key: str
    price: Decimal
    sampled_at: datetime


@dataclass(frozen=True)
class BasketAsset:
    """One underlying asset of a vault and its allocation in basis points (0-10000)."""

    asset_key: str
    weight_bps: int


@dataclass(frozen=True)
class ValuationPoint:
    """One bucket of a vault's valuation series."""

    timestamp: datetime
    gav: Decimal
    nav: Decimal
    share_price: Decimal
    total_supply: Decimal


@dataclass(frozen=True)
class TimeRange:
    """Concrete start/end pair and bucket width resolved from a ChartPeriod."""

    start: datetime
    end: datetime
    interval: IntervalUnit


@dataclass
class OraclePrice:
    """Live quote returned by the price oracle for one asset."""

    usd_price: Decimal
    price_change_24h: Decimal | None = None


@dataclass
class FeeAccrualCheckpoint:
    """Previously accrued fee state as recorded by the on-chain vault program."""

    vault_id: str
    previously_accrued_fee_usd: Decimal
    last_accrual_timestamp: int  # Unix seconds
    management_fee_bps: int


@dataclass
class AssetValuation:
    """Live USD valuation of one held asset.

    ``excluded`` marks an asset left out of GAV (e.g. no oracle price) so a
    missing price is never confused with a real zero price.
    """

    asset_key: str
    balance: Decimal
    price: Decimal | None
    value_usd: Decimal
    excluded: bool = False
    reason: str | None = None


@dataclass
class FeeAccrualResult:
    """Reconciled management fee accrual for a vault at one point in time."""

    gav: Decimal
    nav: Decimal
    newly_accrued_fee_usd: Decimal
    total_accrued_fee_usd: Decimal
    creator_share_usd: Decimal
    platform_share_usd: Decimal
    previously_accrued_fee_usd: Decimal = Decimal("0")
    elapsed_seconds: int = 0
    management_fee_bps: int = 0
    vault_index: int | None = None
    assets: list[AssetValuation] = field(default_factory=list)
    calculated_at: float = field(default_factory=time.time)


@dataclass
class VaultOnChainState:
    """Snapshot of a vault account as read from chain.

    ``token_balances`` holds raw integer amounts; ``decimals`` must carry the
    mint decimals for every held asset (read per mint, never assumed).
    """

    vault_index: int
    underlying_assets: list[BasketAsset]
    total_supply: Decimal
    management_fee_bps: int
    last_accrual_timestamp: int  # Unix seconds
    previously_accrued_fee_usd: Decimal
    token_balances: dict[str, int] = field(default_factory=dict)
    decimals: dict[str, int] = field(default_factory=dict)
    reserve_asset_key: str | None = None

    def checkpoint(self, vault_id: str) -> FeeAccrualCheckpoint:
        """Return the fee accrual checkpoint embedded in this snapshot."""
        return FeeAccrualCheckpoint(
            vault_id=vault_id,
            previously_accrued_fee_usd=self.previously_accrued_fee_usd,
            last_accrual_timestamp=self.last_accrual_timestamp,
            management_fee_bps=self.management_fee_bps,
        )


@dataclass
class VaultConfig:
    """Vault configuration as held by the configuration store."""

    vault_id: str
    name: str
    basket: list[BasketAsset]
    management_fee_bps: int = 0
    total_supply: Decimal = Decimal("0")  # share token units
    vault_index: int | None = None
    symbol: str = ""
    created_at: datetime | None = None
    reserve_asset_key: str | None = None

    @property
    def fee_percent(self) -> Decimal:
        """Management fee as a percentage (200 bps -> 2)."""
        return Decimal(self.management_fee_bps) / Decimal("100")


@dataclass
class VaultNavSeries:
    """A vault's valuation series as returned by the service layer."""

    vault_id: str
    vault_name: str
    series: list[ValuationPoint] = field(default_factory=list)
