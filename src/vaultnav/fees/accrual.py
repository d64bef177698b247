"""Management fee accrual and revenue split.

All calculations use Decimal arithmetic exclusively -- no float conversions anywhere.

Formula:
    newly_accrued = gav * fee_bps * elapsed_seconds / (10000 * SECONDS_PER_YEAR_FEE)
    total_accrued = previously_accrued + newly_accrued
    nav           = gav - total_accrued

SECONDS_PER_YEAR_FEE is a fixed 365-day year (known approximation, leap years
are not adjusted). Changing it changes accrued fees, so it is kept as is.

Outputs are rounded to micro-USD (6 places, the precision of the on-chain
USDC checkpoint). The platform share is derived as total - creator share so
the two shares always add up to the total exactly.
"""

from decimal import ROUND_HALF_UP, Decimal

from vaultnav.config import BASIS_POINTS, SECONDS_PER_YEAR_FEE, FeeSettings
from vaultnav.exceptions import InvalidInputError
from vaultnav.models import FeeAccrualCheckpoint, FeeAccrualResult

FEE_QUANT = Decimal("0.000001")


def _round_fee(value: Decimal) -> Decimal:
    return value.quantize(FEE_QUANT, rounding=ROUND_HALF_UP)


class FeeAccrualEngine:
    """Reconciles live GAV against a persisted accrual checkpoint.

    Stateless: every call computes a fresh FeeAccrualResult.

    Args:
        fee_settings: Creator/platform revenue split.
    """

    def __init__(self, fee_settings: FeeSettings) -> None:
        self._fees = fee_settings

    def newly_accrued_fee(
        self,
        gav: Decimal,
        management_fee_bps: int,
        elapsed_seconds: int,
    ) -> Decimal:
        """Fee accrued on ``gav`` over ``elapsed_seconds`` at an annual bps rate (unrounded).

        Raises:
            InvalidInputError: On negative GAV, fee rate, or elapsed time.
        """
        if gav < 0:
            raise InvalidInputError(f"Negative GAV {gav}")
        if management_fee_bps < 0:
            raise InvalidInputError(f"Negative management fee {management_fee_bps} bps")
        if elapsed_seconds < 0:
            raise InvalidInputError(f"Negative elapsed time {elapsed_seconds}s")

        return (gav * Decimal(management_fee_bps) * Decimal(elapsed_seconds)) / (
            Decimal(BASIS_POINTS) * Decimal(SECONDS_PER_YEAR_FEE)
        )

    def split(self, total_accrued_fee: Decimal) -> tuple[Decimal, Decimal]:
        """Split a fee total into (creator_share, platform_share).

        Both shares are rounded to micro-USD and always sum to the rounded total.
        """
        total = _round_fee(total_accrued_fee)
        creator = _round_fee(total * self._fees.creator_share)
        return creator, total - creator

    def accrue(
        self,
        gav: Decimal,
        management_fee_bps: int,
        elapsed_seconds: int,
        previously_accrued_fee_usd: Decimal,
    ) -> FeeAccrualResult:
        """Compute newly accrued fees, the running total, NAV and the revenue split.

        Args:
            gav: Freshly computed live gross asset value in USD.
            management_fee_bps: Annual management fee in basis points.
            elapsed_seconds: Seconds since the last on-chain accrual.
            previously_accrued_fee_usd: Fee already accrued at the checkpoint.

        Returns:
            FeeAccrualResult with amounts rounded to 6 decimal places.
        """
        if previously_accrued_fee_usd < 0:
            raise InvalidInputError(
                f"Negative previously accrued fee {previously_accrued_fee_usd}"
            )

        newly = self.newly_accrued_fee(gav, management_fee_bps, elapsed_seconds)
        total = _round_fee(previously_accrued_fee_usd + newly)
        creator, platform = self.split(total)

        return FeeAccrualResult(
            gav=_round_fee(gav),
            nav=_round_fee(gav - total),
            newly_accrued_fee_usd=_round_fee(newly),
            total_accrued_fee_usd=total,
            creator_share_usd=creator,
            platform_share_usd=platform,
            previously_accrued_fee_usd=previously_accrued_fee_usd,
            elapsed_seconds=elapsed_seconds,
            management_fee_bps=management_fee_bps,
        )

    def accrue_from_checkpoint(
        self,
        gav: Decimal,
        checkpoint: FeeAccrualCheckpoint,
        now_seconds: int,
    ) -> FeeAccrualResult:
        """Accrue against a checkpoint; elapsed time is clamped at zero for clock skew."""
        elapsed = max(0, now_seconds - checkpoint.last_accrual_timestamp)
        return self.accrue(
            gav=gav,
            management_fee_bps=checkpoint.management_fee_bps,
            elapsed_seconds=elapsed,
            previously_accrued_fee_usd=checkpoint.previously_accrued_fee_usd,
        )
