"""Live price oracle layer -- batched HTTP price lookups via httpx."""

from vaultnav.oracle.client import PriceFetchResult, PriceOracle
from vaultnav.oracle.http_oracle import HttpPriceOracle
from vaultnav.oracle.rate_limit import ResponseKind, classify_response

__all__ = [
    "HttpPriceOracle",
    "PriceFetchResult",
    "PriceOracle",
    "ResponseKind",
    "classify_response",
]
