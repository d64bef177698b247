"""Live fee accrual for a single vault.

Combines the on-chain vault snapshot with live oracle prices to compute a
fresh GAV, then reconciles it against the vault's accrual checkpoint.

Token amounts are raw integer balances scaled by each mint's own decimals.
Decimals are never assumed: a held asset with unknown decimals aborts the
calculation, since a wrong guess scales its value by a power of ten.
"""

import dataclasses
import time
from decimal import Decimal

from vaultnav.chain.reader import VaultReader
from vaultnav.data.store import VaultDataStore
from vaultnav.exceptions import (
    DecimalsUnavailableError,
    OracleRateLimitedError,
    VaultNotFoundError,
)
from vaultnav.fees.accrual import FeeAccrualEngine
from vaultnav.logging import get_logger
from vaultnav.models import FeeAccrualResult, VaultOnChainState
from vaultnav.oracle.client import PriceOracle
from vaultnav.valuation.basket import value_holdings

logger = get_logger(__name__)


def scale_raw_amount(raw_amount: int, decimals: int) -> Decimal:
    """Convert a raw integer token amount to whole tokens (raw / 10**decimals)."""
    return Decimal(raw_amount).scaleb(-decimals)


class VaultFeeCalculator:
    """Computes a vault's live management fee accrual.

    Args:
        reader: Source of the on-chain vault snapshot.
        oracle: Live USD price oracle.
        store: Configuration store (vault must be configured to be calculated).
        engine: Pure fee accrual math.
    """

    def __init__(
        self,
        reader: VaultReader,
        oracle: PriceOracle,
        store: VaultDataStore,
        engine: FeeAccrualEngine,
    ) -> None:
        self._reader = reader
        self._oracle = oracle
        self._store = store
        self._engine = engine

    async def calculate(self, vault_index: int, now: int | None = None) -> FeeAccrualResult:
        """Compute live GAV, newly accrued fees, NAV and the creator/platform split.

        Args:
            vault_index: On-chain vault index.
            now: Current unix seconds (defaults to wall clock).

        Raises:
            VaultNotFoundError: If the vault is not configured or cannot be read.
            PriceUnavailableError: If the reserve asset has no live price.
            DecimalsUnavailableError: If a held asset's mint decimals are unknown.
            OracleRateLimitedError: If the oracle is still rate limiting after retries.
            OracleError: If the oracle fails after retries.
        """
        config = await self._store.get_vault_by_index(vault_index)
        if config is None:
            raise VaultNotFoundError(vault_index)

        state = await self._reader.read_vault(vault_index)
        reserve = state.reserve_asset_key or config.reserve_asset_key

        asset_keys = [a.asset_key for a in state.underlying_assets]
        if reserve is not None and reserve not in asset_keys:
            asset_keys.append(reserve)

        fetched = await self._oracle.fetch_prices(asset_keys)
        if fetched.rate_limited:
            # Fees are never accrued on a partial price map
            logger.error(
                "fee_calculation_rate_limited",
                vault_index=vault_index,
                missing=fetched.missing_keys,
            )
            raise OracleRateLimitedError(
                f"Max retries exceeded fetching prices for vault {vault_index}"
            )

        balances = self._token_amounts(state, asset_keys)
        required: frozenset[str] = frozenset()
        if reserve is not None and reserve in balances:
            required = frozenset({reserve})
        gav, breakdown = value_holdings(balances, fetched.usd_prices(), required=required)

        now_seconds = int(time.time()) if now is None else now
        result = self._engine.accrue_from_checkpoint(
            gav,
            state.checkpoint(config.vault_id),
            now_seconds,
        )

        logger.info(
            "vault_fees_calculated",
            vault_index=vault_index,
            gav=str(result.gav),
            nav=str(result.nav),
            newly_accrued=str(result.newly_accrued_fee_usd),
            total_accrued=str(result.total_accrued_fee_usd),
            elapsed_seconds=result.elapsed_seconds,
            excluded_assets=sum(1 for a in breakdown if a.excluded),
        )
        return dataclasses.replace(result, vault_index=vault_index, assets=breakdown)

    @staticmethod
    def _token_amounts(state: VaultOnChainState, asset_keys: list[str]) -> dict[str, Decimal]:
        amounts: dict[str, Decimal] = {}
        for asset_key in asset_keys:
            raw = state.token_balances.get(asset_key)
            if raw is None:
                logger.warning(
                    "token_balance_unavailable",
                    vault_index=state.vault_index,
                    asset_key=asset_key,
                )
                continue
            decimals = state.decimals.get(asset_key)
            if decimals is None:
                logger.error(
                    "token_decimals_unavailable",
                    vault_index=state.vault_index,
                    asset_key=asset_key,
                )
                raise DecimalsUnavailableError(asset_key)
            amounts[asset_key] = scale_raw_amount(raw, decimals)
        return amounts
