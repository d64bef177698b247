"""On-chain vault reader interface.

Defines the contract for reading a vault account by its on-chain index.
Fee code depends only on this interface, keeping RPC details isolated in
the concrete implementation.
"""

from abc import ABC, abstractmethod

from vaultnav.data.store import VaultDataStore
from vaultnav.exceptions import VaultNotFoundError
from vaultnav.logging import get_logger
from vaultnav.models import VaultOnChainState

logger = get_logger(__name__)


class VaultReader(ABC):
    """Abstract base class for on-chain vault readers."""

    @abstractmethod
    async def read_vault(self, vault_index: int) -> VaultOnChainState:
        """Read a vault's assets, supply, fee checkpoint, raw balances and mint decimals.

        Raises:
            VaultNotFoundError: If no vault exists at ``vault_index``.
        """
        ...


class StoredVaultReader(VaultReader):
    """Reads the last recorded on-chain snapshot from the configuration store.

    Used when live chain reads are unavailable. A vault that is configured
    but has no recorded snapshot is treated as not found, since balances and
    the accrual checkpoint cannot be inferred from configuration alone.
    """

    def __init__(self, store: VaultDataStore) -> None:
        self._store = store

    async def read_vault(self, vault_index: int) -> VaultOnChainState:
        state = await self._store.get_vault_state(vault_index)
        if state is None:
            logger.warning("vault_state_unavailable", vault_index=vault_index)
            raise VaultNotFoundError(vault_index)

        if state.reserve_asset_key is None:
            config = await self._store.get_vault_by_index(vault_index)
            if config is not None:
                state.reserve_asset_key = config.reserve_asset_key
        return state
