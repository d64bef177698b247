"""Persistence layer.

Provides the SQLite database manager and the typed read/write store for
price history, vault configuration and daily fee snapshots.
"""

from vaultnav.data.database import VaultDatabase
from vaultnav.data.store import VaultDataStore

__all__ = ["VaultDataStore", "VaultDatabase"]
