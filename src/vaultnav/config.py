"""Configuration system using pydantic-settings with environment variable loading."""

from decimal import Decimal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Fee accrual uses a fixed 365-day year. This is a known approximation (leap
# years are not adjusted) and must stay distinct from the APY year below.
SECONDS_PER_YEAR_FEE = 365 * 86_400

# Compound annual growth uses the Julian year.
DAYS_PER_YEAR_APY = Decimal("365.25")

BASIS_POINTS = 10_000

# Upper bound on vault ids accepted by a single multi-vault series request
MAX_VAULT_IDS = 50


class OracleSettings(BaseSettings):
    """Live price oracle connection and resilience settings."""

    model_config = SettingsConfigDict(env_prefix="ORACLE_")

    base_url: str = "https://lite-api.jup.ag/price/v3"
    api_key: SecretStr = SecretStr("")
    batch_size: int = 50
    max_retries: int = 5
    retry_base_delay: float = 0.5  # seconds, doubled per retry
    initial_delay: float = 0.1  # small pause before the first request
    request_timeout: float = 10.0
    batch_delay: float = 2.0  # seconds between sequential batches


class FeeSettings(BaseSettings):
    """Management fee revenue split between vault creator and platform."""

    model_config = SettingsConfigDict(env_prefix="FEES_")

    creator_share: Decimal = Decimal("0.7")
    platform_share: Decimal = Decimal("0.3")

    @model_validator(mode="after")
    def _shares_sum_to_one(self) -> "FeeSettings":
        if self.creator_share + self.platform_share != Decimal("1"):
            raise ValueError("creator_share and platform_share must sum to 1")
        if self.creator_share < 0 or self.platform_share < 0:
            raise ValueError("fee shares must be non-negative")
        return self


class BatchSettings(BaseSettings):
    """Scheduled fee recalculation over all vaults.

    Controls the run interval and the pause inserted between vaults
    to stay under the price oracle's rate limit.
    All fields configurable via FEE_BATCH_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="FEE_BATCH_")

    enabled: bool = True
    interval_seconds: int = 86_400
    vault_delay_seconds: float = 2.0


class DatabaseSettings(BaseSettings):
    """SQLite store for price history, vault configuration and fee snapshots."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    db_path: str = "data/vaultnav.db"


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    oracle: OracleSettings = OracleSettings()
    fees: FeeSettings = FeeSettings()
    batch: BatchSettings = BatchSettings()
    database: DatabaseSettings = DatabaseSettings()
