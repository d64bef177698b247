"""Abstract price oracle interface.

Defines the contract for live price sources. Valuation and fee code depends
only on this interface, keeping HTTP and provider details isolated in the
concrete implementation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal

from vaultnav.models import OraclePrice


@dataclass
class PriceFetchResult:
    """Outcome of a live price fetch.

    ``prices`` only contains assets the oracle quoted; absence is not zero.
    ``rate_limited`` is set when retries were exhausted on a rate limit and
    the map is therefore empty or partial.
    """

    prices: dict[str, OraclePrice] = field(default_factory=dict)
    missing_keys: list[str] = field(default_factory=list)
    rate_limited: bool = False

    def usd_prices(self) -> dict[str, Decimal]:
        """Return asset_key -> USD price for every quoted asset."""
        return {key: quote.usd_price for key, quote in self.prices.items()}

    @property
    def is_complete(self) -> bool:
        return not self.missing_keys and not self.rate_limited


class PriceOracle(ABC):
    """Abstract base class for live price oracles."""

    @abstractmethod
    async def fetch_prices(self, asset_keys: list[str]) -> PriceFetchResult:
        """Fetch current USD prices for a set of asset keys."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release network resources."""
        ...
