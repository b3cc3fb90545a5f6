"""
Ledgerbook - Services Package

Business logic services.
"""

from ledgerbook.services.ledger_store import LedgerStoragePort, SQLAlchemyLedgerStore
from ledgerbook.services.chart_import_service import ChartImportService
from ledgerbook.services.balance_service import BalanceService, BalanceSnapshot, compute_balances
from ledgerbook.services.account_tree import build_account_tree
from ledgerbook.services.ledger_service import LedgerService

__all__ = [
    "LedgerStoragePort",
    "SQLAlchemyLedgerStore",
    "ChartImportService",
    "BalanceService",
    "BalanceSnapshot",
    "compute_balances",
    "build_account_tree",
    "LedgerService",
]
