"""Vault valuation and management fee accrual engine."""

__version__ = "0.1.0"
