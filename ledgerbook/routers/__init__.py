"""
Ledgerbook - Routers Package

FastAPI route handlers.

Routers:
- ledgers: Ledger lifecycle, chart-of-accounts import, account tree and balances
"""

from ledgerbook.routers import ledgers

__all__ = ["ledgers"]
