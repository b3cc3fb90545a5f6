"""
Ledgerbook - Chart of Accounts & Posting Models

Double-entry data model:
- Account: a node of the chart-of-accounts tree (postable leaf or placeholder)
- Transaction: a dated group of splits
- Split: one debit or credit line, stored as an exact rational amount

Account kind and role are persisted as small integers. Their meaning is
resolved only through the versioned mapping tables below; stored values
must never be renumbered without a data migration.
"""

import uuid
from datetime import date
from decimal import Decimal
from enum import IntEnum
from typing import TYPE_CHECKING, Dict, Optional

from sqlalchemy import (
    BigInteger, Boolean, Date, ForeignKey, Index, Integer, SmallInteger,
    String, Text, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledgerbook.models.base import BaseModel
from ledgerbook.utils.money import rational_to_decimal

if TYPE_CHECKING:
    from ledgerbook.models.ledger import Commodity, Ledger


# =============================================================================
# ENUMS
# =============================================================================

class AccountTypeKind(IntEnum):
    """Fundamental accounting category. Governs sign conventions."""
    ASSET = 1
    LIABILITY = 2
    EQUITY = 3
    INCOME = 4
    EXPENSE = 5


class AccountRole(IntEnum):
    """Finer classification within a kind. Used for display, not arithmetic."""
    ASSET = 1
    BANK = 2
    CASH = 3
    ACCOUNT_RECEIVABLE = 4
    MUTUAL_FUND = 5
    STOCK = 6
    LIABILITY = 7
    CREDIT_CARD = 8
    ACCOUNT_PAYABLE = 9
    EQUITY = 10
    INCOME = 11
    EXPENSE = 12

    @property
    def label(self) -> str:
        """Short human-readable label."""
        return ROLE_LABELS[self]


class SplitSide(IntEnum):
    """Side of a posting line."""
    DEBIT = 0
    CREDIT = 1


ROLE_LABELS: Dict[AccountRole, str] = {
    AccountRole.ASSET: "Asset",
    AccountRole.BANK: "Bank",
    AccountRole.CASH: "Cash",
    AccountRole.ACCOUNT_RECEIVABLE: "A/Receivable",
    AccountRole.MUTUAL_FUND: "Mutual Fund",
    AccountRole.STOCK: "Stock",
    AccountRole.LIABILITY: "Liability",
    AccountRole.CREDIT_CARD: "Credit Card",
    AccountRole.ACCOUNT_PAYABLE: "A/Payable",
    AccountRole.EQUITY: "Equity",
    AccountRole.INCOME: "Income",
    AccountRole.EXPENSE: "Expense",
}


# =============================================================================
# STORAGE MAPPING (version 1)
# =============================================================================

MAPPING_VERSION = 1

ACCOUNT_KIND_CODES_V1: Dict[int, AccountTypeKind] = {
    1: AccountTypeKind.ASSET,
    2: AccountTypeKind.LIABILITY,
    3: AccountTypeKind.EQUITY,
    4: AccountTypeKind.INCOME,
    5: AccountTypeKind.EXPENSE,
}

ACCOUNT_ROLE_CODES_V1: Dict[int, AccountRole] = {
    1: AccountRole.ASSET,
    2: AccountRole.BANK,
    3: AccountRole.CASH,
    4: AccountRole.ACCOUNT_RECEIVABLE,
    5: AccountRole.MUTUAL_FUND,
    6: AccountRole.STOCK,
    7: AccountRole.LIABILITY,
    8: AccountRole.CREDIT_CARD,
    9: AccountRole.ACCOUNT_PAYABLE,
    10: AccountRole.EQUITY,
    11: AccountRole.INCOME,
    12: AccountRole.EXPENSE,
}

SPLIT_SIDE_CODES_V1: Dict[int, SplitSide] = {
    0: SplitSide.DEBIT,
    1: SplitSide.CREDIT,
}


def kind_from_code(code: Optional[int]) -> Optional[AccountTypeKind]:
    """Resolve a stored kind code; unknown or missing codes give None."""
    if code is None:
        return None
    return ACCOUNT_KIND_CODES_V1.get(int(code))


def role_from_code(code: Optional[int]) -> Optional[AccountRole]:
    """Resolve a stored role code; unknown or missing codes give None."""
    if code is None:
        return None
    return ACCOUNT_ROLE_CODES_V1.get(int(code))


def side_from_code(code: Optional[int]) -> Optional[SplitSide]:
    if code is None:
        return None
    return SPLIT_SIDE_CODES_V1.get(int(code))


def normalize_code(code: Optional[str]) -> str:
    """Import key for an account code: trimmed and case-folded."""
    return (code or "").strip().casefold()


# =============================================================================
# CHART OF ACCOUNTS
# =============================================================================

class Account(BaseModel):
    """
    A node of a ledger's chart-of-accounts tree.

    The code is unique within a ledger and is the import key. Exactly one
    account per ledger has no parent: the ledger's root account.
    """

    __tablename__ = "accounts"

    ledger_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("ledgers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("accounts.id", ondelete="SET NULL"),
        nullable=True,
        comment="Null only for the ledger's root account",
    )

    # Identification
    code: Mapped[str] = mapped_column(String(60), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Classification (see ACCOUNT_KIND_CODES_V1 / ACCOUNT_ROLE_CODES_V1)
    kind: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    role: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)

    # Flags
    is_placeholder: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False,
        comment="Organizes descendants only; must not receive postings",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_hidden: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Commodity
    commodity_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("commodities.id", ondelete="SET NULL"),
        nullable=True,
    )
    commodity_scu: Mapped[int] = mapped_column(
        Integer, default=100, nullable=False,
        comment="Smallest commodity unit",
    )

    # Relationships (many-to-one only; children are resolved by parent_id)
    ledger: Mapped["Ledger"] = relationship("Ledger", foreign_keys=[ledger_id])
    parent: Mapped[Optional["Account"]] = relationship(
        "Account",
        remote_side="Account.id",
        foreign_keys=[parent_id],
    )
    commodity: Mapped[Optional["Commodity"]] = relationship("Commodity")

    __table_args__ = (
        UniqueConstraint('ledger_id', 'code', name='uq_account_ledger_code'),
        Index('ix_account_ledger_parent', 'ledger_id', 'parent_id'),
    )

    @property
    def kind_enum(self) -> Optional[AccountTypeKind]:
        return kind_from_code(self.kind)

    @property
    def role_enum(self) -> Optional[AccountRole]:
        return role_from_code(self.role)

    @property
    def code_key(self) -> str:
        return normalize_code(self.code)

    def __repr__(self) -> str:
        return f"<Account({self.code}: {self.name})>"


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(BaseModel):
    """A dated group of splits. Balanced when its signed splits sum to zero."""

    __tablename__ = "transactions"

    ledger_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("ledgers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    post_date: Mapped[date] = mapped_column(Date, nullable=False)
    num: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    ledger: Mapped["Ledger"] = relationship("Ledger")

    def __repr__(self) -> str:
        return f"<Transaction({self.post_date}: {self.description})>"


class Split(BaseModel):
    """
    One debit or credit line of a transaction.

    The value is an exact rational: value_num / value_denom. A zero
    denominator is read as 1.
    """

    __tablename__ = "splits"

    transaction_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    account_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("accounts.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    side: Mapped[int] = mapped_column(
        SmallInteger, nullable=False,
        comment="0 = debit, 1 = credit",
    )
    value_num: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    value_denom: Mapped[int] = mapped_column(BigInteger, default=100, nullable=False)
    memo: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    reconciled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    transaction: Mapped["Transaction"] = relationship("Transaction")
    account: Mapped[Optional["Account"]] = relationship("Account")

    @property
    def side_enum(self) -> Optional[SplitSide]:
        return side_from_code(self.side)

    @property
    def amount(self) -> Decimal:
        """Unsigned amount as a Decimal."""
        return rational_to_decimal(self.value_num, self.value_denom)

    def __repr__(self) -> str:
        return f"<Split(account={self.account_id}, side={self.side}, {self.value_num}/{self.value_denom})>"
