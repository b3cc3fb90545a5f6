"""
Ledgerbook - SQLAlchemy Models Package

This package contains all database models for the application.
"""

from ledgerbook.models.base import BaseModel, TimestampMixin
from ledgerbook.models.ledger import AccountOwner, Commodity, Ledger, CURRENCY_NAMESPACE
from ledgerbook.models.accounting import (
    Account,
    Transaction,
    Split,
    AccountTypeKind,
    AccountRole,
    SplitSide,
    MAPPING_VERSION,
    ACCOUNT_KIND_CODES_V1,
    ACCOUNT_ROLE_CODES_V1,
    kind_from_code,
    role_from_code,
    normalize_code,
)

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "AccountOwner",
    "Commodity",
    "Ledger",
    "CURRENCY_NAMESPACE",
    "Account",
    "Transaction",
    "Split",
    "AccountTypeKind",
    "AccountRole",
    "SplitSide",
    "MAPPING_VERSION",
    "ACCOUNT_KIND_CODES_V1",
    "ACCOUNT_ROLE_CODES_V1",
    "kind_from_code",
    "role_from_code",
    "normalize_code",
]
