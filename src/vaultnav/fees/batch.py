"""Scheduled fee recalculation across all configured vaults.

At most one batch runs at a time. A run that finds another run in flight is
skipped with a log line, never queued. Within a run, vaults are processed
sequentially with a pause between them to stay under the oracle's rate
limit, and a failure on one vault is logged without aborting the others.
Each vault is snapshotted at most once per UTC day.
"""

import asyncio
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

import structlog

from vaultnav.config import BatchSettings
from vaultnav.data.store import VaultDataStore
from vaultnav.fees.calculator import VaultFeeCalculator
from vaultnav.logging import get_logger

logger = get_logger(__name__)


@dataclass
class BatchRunSummary:
    """Outcome counts of one batch run."""

    day: date
    calculated: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)


class FeeBatchRunner:
    """Runs VaultFeeCalculator over every configured vault and records daily snapshots.

    Args:
        calculator: Per-vault live fee calculator.
        store: Configuration store and fee snapshot sink.
        settings: Run interval and inter-vault delay.
    """

    def __init__(
        self,
        calculator: VaultFeeCalculator,
        store: VaultDataStore,
        settings: BatchSettings,
    ) -> None:
        self._calculator = calculator
        self._store = store
        self._settings = settings
        self._run_guard = threading.Lock()
        self._running = False
        self._stop_event = asyncio.Event()

    @property
    def is_calculating(self) -> bool:
        """True while a batch run is in flight."""
        return self._run_guard.locked()

    async def run_once(self, today: date | None = None) -> BatchRunSummary | None:
        """Run one batch over all vaults.

        Returns:
            BatchRunSummary, or None if another run was already in progress.
        """
        if not self._run_guard.acquire(blocking=False):
            logger.warning("fee_batch_already_running")
            return None

        try:
            return await self._run(today or datetime.now(timezone.utc).date())
        finally:
            self._run_guard.release()

    async def _run(self, today: date) -> BatchRunSummary:
        summary = BatchRunSummary(day=today)
        vaults = [v for v in await self._store.list_vaults() if v.vault_index is not None]
        logger.info("fee_batch_started", date=today.isoformat(), vaults=len(vaults))

        for i, vault in enumerate(vaults):
            vault_index = vault.vault_index
            assert vault_index is not None

            if await self._store.has_fee_snapshot(vault_index, today):
                logger.info("fee_snapshot_exists_skipping", vault_index=vault_index)
                summary.skipped.append(vault_index)
                continue

            with structlog.contextvars.bound_contextvars(vault_index=vault_index):
                try:
                    result = await self._calculator.calculate(vault_index)
                    await self._store.save_fee_snapshot(result, today)
                    summary.calculated.append(vault_index)
                except Exception as e:
                    logger.error("vault_fee_calculation_failed", error=str(e), exc_info=True)
                    summary.failed[vault_index] = str(e)

            if i < len(vaults) - 1:
                await asyncio.sleep(self._settings.vault_delay_seconds)

        logger.info(
            "fee_batch_completed",
            date=today.isoformat(),
            calculated=len(summary.calculated),
            skipped=len(summary.skipped),
            failed=len(summary.failed),
        )
        return summary

    # ──────────────────────────────────────────────
    # Scheduling loop
    # ──────────────────────────────────────────────

    async def start(self) -> None:
        """Run batches every ``interval_seconds`` until stop() is called."""
        self._running = True
        self._stop_event.clear()
        logger.info("fee_batch_scheduler_started", interval=self._settings.interval_seconds)
        await self._run_loop()

    async def stop(self) -> None:
        """Signal the scheduling loop to exit after the current iteration."""
        self._running = False
        self._stop_event.set()
        logger.info("fee_batch_scheduler_stopping")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.run_once()
                await self._wait(self._settings.interval_seconds)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("fee_batch_cycle_error", error=str(e), exc_info=True)
                await self._wait(10)

    async def _wait(self, seconds: float) -> None:
        """Sleep up to ``seconds``, returning early once stop() is called."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except TimeoutError:
            pass
