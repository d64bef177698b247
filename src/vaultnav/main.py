"""Entry point for the vault valuation engine.

Wires all components together and runs the scheduled fee batch loop.

Handles SIGINT/SIGTERM for graceful shutdown.

Component wiring order (in _build_components):
1. AppSettings (configuration)
2. Logging setup
3. VaultDatabase + VaultDataStore (price history, vault configuration, fee snapshots)
4. HttpPriceOracle (live prices)
5. StoredVaultReader (last recorded on-chain snapshot)
6. FeeAccrualEngine + VaultFeeCalculator
7. FeeBatchRunner (scheduled recalculation)
8. VaultValuationService (series, APY, share price, fee accrual)
"""

import asyncio
import signal
from typing import Any

from vaultnav.chain.reader import StoredVaultReader
from vaultnav.config import AppSettings
from vaultnav.data.database import VaultDatabase
from vaultnav.data.store import VaultDataStore
from vaultnav.fees.accrual import FeeAccrualEngine
from vaultnav.fees.batch import FeeBatchRunner
from vaultnav.fees.calculator import VaultFeeCalculator
from vaultnav.logging import get_logger, setup_logging
from vaultnav.oracle.http_oracle import HttpPriceOracle
from vaultnav.service import VaultValuationService


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all engine components from settings.

    Note: Does NOT connect the database -- that happens in run().

    Args:
        settings: Application-wide settings.

    Returns:
        Dict mapping component names to instances.
    """
    database = VaultDatabase(settings.database.db_path)
    store = VaultDataStore(database)
    oracle = HttpPriceOracle(settings.oracle)
    reader = StoredVaultReader(store)
    engine = FeeAccrualEngine(settings.fees)
    calculator = VaultFeeCalculator(reader, oracle, store, engine)
    batch_runner = FeeBatchRunner(calculator, store, settings.batch)
    service = VaultValuationService(store, calculator)

    return {
        "database": database,
        "store": store,
        "oracle": oracle,
        "reader": reader,
        "engine": engine,
        "calculator": calculator,
        "batch_runner": batch_runner,
        "service": service,
    }


def _setup_signal_handlers(batch_runner: FeeBatchRunner) -> None:
    """Register SIGINT/SIGTERM to stop the batch loop gracefully.

    Must be called after the asyncio event loop is running.
    """
    logger = get_logger("vaultnav.main")
    loop = asyncio.get_running_loop()

    def _graceful_handler() -> None:
        logger.info("graceful_shutdown_signal")
        asyncio.create_task(batch_runner.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler)


async def run() -> None:
    """Run the scheduled fee batch loop until a shutdown signal arrives."""
    # 1. Load settings
    settings = AppSettings()

    # 2. Setup logging
    setup_logging(settings.log_level)
    logger = get_logger("vaultnav.main")

    # 3-8. Build all components
    components = _build_components(settings)

    if not settings.batch.enabled:
        logger.info("fee_batch_disabled")
        await components["oracle"].close()
        return

    _setup_signal_handlers(components["batch_runner"])
    logger.info(
        "starting_fee_batch",
        interval=settings.batch.interval_seconds,
        db_path=settings.database.db_path,
    )

    try:
        await components["database"].connect()
        await components["batch_runner"].start()
    finally:
        await components["oracle"].close()
        await components["database"].close()
        logger.info("vaultnav_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
