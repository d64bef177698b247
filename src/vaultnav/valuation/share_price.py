"""Per-share price derivation: share_price = nav / total_supply."""

from decimal import ROUND_HALF_UP, Decimal

SHARE_PRICE_QUANT = Decimal("0.000001")


def derive_share_price(nav: Decimal, total_supply: Decimal) -> Decimal:
    """Return nav / total_supply rounded to 6 decimal places.

    Returns 0 when total_supply is not positive; never raises on a zero supply.
    """
    if total_supply <= 0:
        return Decimal("0").quantize(SHARE_PRICE_QUANT)
    return (nav / total_supply).quantize(SHARE_PRICE_QUANT, rounding=ROUND_HALF_UP)
