"""Management fee accrual: pure math, live per-vault calculation, scheduled batch."""

from vaultnav.fees.accrual import FeeAccrualEngine
from vaultnav.fees.batch import BatchRunSummary, FeeBatchRunner
from vaultnav.fees.calculator import VaultFeeCalculator

__all__ = [
    "BatchRunSummary",
    "FeeAccrualEngine",
    "FeeBatchRunner",
    "VaultFeeCalculator",
]
