"""Typed SQLite read/write abstraction for the valuation engine.

Provides VaultDataStore with typed methods for price ticks, vault
configuration (including the last known on-chain snapshot) and daily fee
snapshots. All SQL is isolated behind this interface.

CRITICAL: All monetary values stored as TEXT in SQLite, restored as Decimal on read.
"""

import json
from datetime import date, datetime
from decimal import Decimal

from vaultnav.data.database import VaultDatabase
from vaultnav.exceptions import VaultNotFoundError
from vaultnav.logging import get_logger
from vaultnav.models import (
    BasketAsset,
    FeeAccrualResult,
    PriceTick,
    VaultConfig,
    VaultOnChainState,
)
from vaultnav.valuation.bucketing import to_utc
from vaultnav.valuation.time_range import parse_timestamp

logger = get_logger(__name__)

_VAULT_COLUMNS = (
    "vault_id, vault_index, name, symbol, basket, management_fee_bps, "
    "total_supply, created_at_ms, reserve_asset_key"
)


def _to_ms(ts: datetime) -> int:
    return int(to_utc(ts).timestamp() * 1000)


def _encode_basket(basket: list[BasketAsset]) -> str:
    return json.dumps([{"asset_key": a.asset_key, "weight_bps": a.weight_bps} for a in basket])


def _decode_basket(raw: str) -> list[BasketAsset]:
    return [
        BasketAsset(asset_key=a["asset_key"], weight_bps=int(a["weight_bps"]))
        for a in json.loads(raw)
    ]


def _encode_state(state: VaultOnChainState) -> str:
    return json.dumps(
        {
            "vault_index": state.vault_index,
            "underlying_assets": [
                {"asset_key": a.asset_key, "weight_bps": a.weight_bps}
                for a in state.underlying_assets
            ],
            "total_supply": str(state.total_supply),
            "management_fee_bps": state.management_fee_bps,
            "last_accrual_timestamp": state.last_accrual_timestamp,
            "previously_accrued_fee_usd": str(state.previously_accrued_fee_usd),
            # Raw balances can exceed 2**53, keep them as strings
            "token_balances": {k: str(v) for k, v in state.token_balances.items()},
            "decimals": state.decimals,
            "reserve_asset_key": state.reserve_asset_key,
        }
    )


def _decode_state(raw: str) -> VaultOnChainState:
    data = json.loads(raw)
    return VaultOnChainState(
        vault_index=int(data["vault_index"]),
        underlying_assets=[
            BasketAsset(asset_key=a["asset_key"], weight_bps=int(a["weight_bps"]))
            for a in data["underlying_assets"]
        ],
        total_supply=Decimal(data["total_supply"]),
        management_fee_bps=int(data["management_fee_bps"]),
        last_accrual_timestamp=int(data["last_accrual_timestamp"]),
        previously_accrued_fee_usd=Decimal(data["previously_accrued_fee_usd"]),
        token_balances={k: int(v) for k, v in data.get("token_balances", {}).items()},
        decimals={k: int(v) for k, v in data.get("decimals", {}).items()},
        reserve_asset_key=data.get("reserve_asset_key"),
    )


class VaultDataStore:
    """Async SQLite store for price history, vault configuration and fee snapshots.

    Wraps VaultDatabase with typed read/write methods. All SQL access
    goes through self._database.db (the aiosqlite Connection).

    Usage:
        async with VaultDatabase("data/vaultnav.db") as database:
            store = VaultDataStore(database)
            ticks = await store.get_price_ticks(["SOL"], since, until)
    """

    def __init__(self, database: VaultDatabase) -> None:
        self._database = database

    # ──────────────────────────────────────────────
    # Price ticks
    # ──────────────────────────────────────────────

    async def insert_price_ticks(self, ticks: list[PriceTick]) -> int:
        """Insert price ticks, ignoring duplicates via INSERT OR IGNORE.

        Returns the number of actually inserted rows (excludes ignored duplicates).
        """
        if not ticks:
            return 0

        data = [(t.asset_key, _to_ms(t.sampled_at), str(t.price)) for t in ticks]
        cursor = await self._database.db.executemany(
            "INSERT OR IGNORE INTO price_ticks (asset_key, timestamp_ms, price) "
            "VALUES (?, ?, ?)",
            data,
        )
        await self._database.db.commit()

        inserted = cursor.rowcount
        logger.debug("inserted_price_ticks", total=len(ticks), inserted=inserted)
        return inserted

    async def get_price_ticks(
        self,
        asset_keys: list[str],
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[PriceTick]:
        """Query ticks for a set of assets within an optional inclusive time range.

        Returns list of PriceTick ordered by timestamp ASC, then asset_key.
        """
        if not asset_keys:
            return []

        placeholders = ", ".join("?" for _ in asset_keys)
        conditions = [f"asset_key IN ({placeholders})"]
        params: list = list(asset_keys)

        if since is not None:
            conditions.append("timestamp_ms >= ?")
            params.append(_to_ms(since))
        if until is not None:
            conditions.append("timestamp_ms <= ?")
            params.append(_to_ms(until))

        where = " AND ".join(conditions)
        cursor = await self._database.db.execute(
            f"SELECT asset_key, timestamp_ms, price FROM price_ticks "
            f"WHERE {where} ORDER BY timestamp_ms ASC, asset_key ASC",
            params,
        )
        rows = await cursor.fetchall()
        return [
            PriceTick(
                asset_key=row[0],
                price=Decimal(row[2]),
                sampled_at=parse_timestamp(row[1], field="price_ticks.timestamp_ms"),
            )
            for row in rows
        ]

    async def get_earliest_tick(self, asset_keys: list[str]) -> datetime | None:
        """Timestamp of the oldest stored tick among ``asset_keys``, or None."""
        if not asset_keys:
            return None
        placeholders = ", ".join("?" for _ in asset_keys)
        cursor = await self._database.db.execute(
            f"SELECT MIN(timestamp_ms) FROM price_ticks WHERE asset_key IN ({placeholders})",
            list(asset_keys),
        )
        row = await cursor.fetchone()
        if row is None or row[0] is None:
            return None
        return parse_timestamp(row[0], field="price_ticks.timestamp_ms")

    # ──────────────────────────────────────────────
    # Vault configuration
    # ──────────────────────────────────────────────

    async def upsert_vault(self, config: VaultConfig) -> None:
        """Insert or replace a vault's configuration, preserving any stored on-chain snapshot."""
        await self._database.db.execute(
            f"INSERT OR REPLACE INTO vaults ({_VAULT_COLUMNS}, onchain_state) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, "
            "(SELECT onchain_state FROM vaults WHERE vault_id = ?))",
            (
                config.vault_id,
                config.vault_index,
                config.name,
                config.symbol,
                _encode_basket(config.basket),
                config.management_fee_bps,
                str(config.total_supply),
                _to_ms(config.created_at) if config.created_at is not None else None,
                config.reserve_asset_key,
                config.vault_id,
            ),
        )
        await self._database.db.commit()

    async def get_vault(self, vault_id: str) -> VaultConfig | None:
        """Get a vault's configuration by id, or None if absent."""
        cursor = await self._database.db.execute(
            f"SELECT {_VAULT_COLUMNS} FROM vaults WHERE vault_id = ?",
            (vault_id,),
        )
        row = await cursor.fetchone()
        return self._row_to_vault(row) if row is not None else None

    async def get_vault_by_index(self, vault_index: int) -> VaultConfig | None:
        """Get a vault's configuration by on-chain index, or None if absent."""
        cursor = await self._database.db.execute(
            f"SELECT {_VAULT_COLUMNS} FROM vaults WHERE vault_index = ?",
            (vault_index,),
        )
        row = await cursor.fetchone()
        return self._row_to_vault(row) if row is not None else None

    async def list_vaults(self) -> list[VaultConfig]:
        """List all configured vaults ordered by index (vaults without an index last)."""
        cursor = await self._database.db.execute(
            f"SELECT {_VAULT_COLUMNS} FROM vaults "
            "ORDER BY vault_index IS NULL, vault_index ASC, vault_id ASC"
        )
        rows = await cursor.fetchall()
        return [self._row_to_vault(row) for row in rows]

    async def save_vault_state(self, state: VaultOnChainState) -> None:
        """Record the last known on-chain snapshot for a configured vault.

        Raises:
            VaultNotFoundError: If no vault is configured with ``state.vault_index``.
        """
        cursor = await self._database.db.execute(
            "UPDATE vaults SET onchain_state = ? WHERE vault_index = ?",
            (_encode_state(state), state.vault_index),
        )
        await self._database.db.commit()
        if cursor.rowcount == 0:
            raise VaultNotFoundError(state.vault_index)

    async def get_vault_state(self, vault_index: int) -> VaultOnChainState | None:
        """Get the last recorded on-chain snapshot for a vault, or None."""
        cursor = await self._database.db.execute(
            "SELECT onchain_state FROM vaults WHERE vault_index = ?",
            (vault_index,),
        )
        row = await cursor.fetchone()
        if row is None or row[0] is None:
            return None
        return _decode_state(row[0])

    @staticmethod
    def _row_to_vault(row: tuple) -> VaultConfig:
        return VaultConfig(
            vault_id=row[0],
            vault_index=row[1],
            name=row[2],
            symbol=row[3],
            basket=_decode_basket(row[4]),
            management_fee_bps=row[5],
            total_supply=Decimal(row[6]),
            created_at=parse_timestamp(row[7], field="created_at") if row[7] is not None else None,
            reserve_asset_key=row[8],
        )

    # ──────────────────────────────────────────────
    # Fee snapshots
    # ──────────────────────────────────────────────

    async def save_fee_snapshot(self, result: FeeAccrualResult, day: date) -> None:
        """Record a vault's fee calculation for a UTC day (one row per vault per day)."""
        if result.vault_index is None:
            raise ValueError("Fee snapshot requires a vault_index")

        await self._database.db.execute(
            "INSERT OR REPLACE INTO fee_snapshots "
            "(vault_index, date, gav, nav, newly_accrued_fee_usd, total_accrued_fee_usd, "
            "creator_share_usd, platform_share_usd, elapsed_seconds, management_fee_bps, "
            "calculated_at_ms) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                result.vault_index,
                day.isoformat(),
                str(result.gav),
                str(result.nav),
                str(result.newly_accrued_fee_usd),
                str(result.total_accrued_fee_usd),
                str(result.creator_share_usd),
                str(result.platform_share_usd),
                result.elapsed_seconds,
                result.management_fee_bps,
                int(result.calculated_at * 1000),
            ),
        )
        await self._database.db.commit()
        logger.debug("fee_snapshot_saved", vault_index=result.vault_index, date=day.isoformat())

    async def has_fee_snapshot(self, vault_index: int, day: date) -> bool:
        """True if a fee snapshot already exists for the vault on ``day``."""
        cursor = await self._database.db.execute(
            "SELECT 1 FROM fee_snapshots WHERE vault_index = ? AND date = ? LIMIT 1",
            (vault_index, day.isoformat()),
        )
        return await cursor.fetchone() is not None

    async def get_fee_snapshot(self, vault_index: int, day: date) -> FeeAccrualResult | None:
        """Load the fee snapshot recorded for the vault on ``day``, or None."""
        cursor = await self._database.db.execute(
            "SELECT gav, nav, newly_accrued_fee_usd, total_accrued_fee_usd, "
            "creator_share_usd, platform_share_usd, elapsed_seconds, management_fee_bps, "
            "calculated_at_ms FROM fee_snapshots WHERE vault_index = ? AND date = ?",
            (vault_index, day.isoformat()),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        total = Decimal(row[3])
        newly = Decimal(row[2])
        return FeeAccrualResult(
            gav=Decimal(row[0]),
            nav=Decimal(row[1]),
            newly_accrued_fee_usd=newly,
            total_accrued_fee_usd=total,
            creator_share_usd=Decimal(row[4]),
            platform_share_usd=Decimal(row[5]),
            previously_accrued_fee_usd=total - newly,
            elapsed_seconds=row[6],
            management_fee_bps=row[7],
            vault_index=vault_index,
            calculated_at=row[8] / 1000,
        )
