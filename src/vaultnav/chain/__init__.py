"""On-chain vault state access."""

from vaultnav.chain.reader import StoredVaultReader, VaultReader

__all__ = ["StoredVaultReader", "VaultReader"]
