"""Custom exceptions for the vault valuation engine.

All engine, oracle and persistence exceptions live here
to avoid circular imports between modules.
"""


class VaultNavError(Exception):
    """Base exception for all engine errors."""


class InvalidInputError(VaultNavError):
    """Raised when a pure calculation receives a malformed or negative input."""


class VaultNotFoundError(VaultNavError):
    """Raised when a vault or its configuration does not exist."""

    def __init__(self, vault_ref: str | int | list[str]) -> None:
        self.vault_ref = vault_ref
        if isinstance(vault_ref, list):
            message = f"The following vault IDs do not exist: {', '.join(vault_ref)}"
        else:
            message = f"Vault {vault_ref} not found"
        super().__init__(message)


class PriceUnavailableError(VaultNavError):
    """Raised when a structurally required asset has no live price."""

    def __init__(self, asset_key: str) -> None:
        self.asset_key = asset_key
        super().__init__(f"No price available for required asset {asset_key}")


class DecimalsUnavailableError(VaultNavError):
    """Raised when a held asset's mint decimals are unknown.

    Never defaulted: a wrong decimals guess scales the valuation by powers of ten.
    """

    def __init__(self, asset_key: str) -> None:
        self.asset_key = asset_key
        super().__init__(f"Cannot determine token decimals for {asset_key}")


class OracleError(VaultNavError):
    """Raised when the price oracle fails for a reason other than rate limiting."""


class OracleRateLimitedError(OracleError):
    """Raised internally when the oracle signals a rate limit (HTTP 429 or text body)."""


class OracleTimeoutError(OracleError):
    """Raised when oracle requests keep timing out after all retries."""
