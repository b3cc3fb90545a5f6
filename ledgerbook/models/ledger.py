"""
Ledgerbook - Ledger, Owner & Commodity Models

A Ledger is one complete accounting book owned by one AccountOwner.
Ledgers are archived (is_active = False) rather than deleted while in use.
"""

import uuid
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, ForeignKey, Integer, SmallInteger, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledgerbook.models.base import BaseModel

if TYPE_CHECKING:
    from ledgerbook.models.accounting import Account


CURRENCY_NAMESPACE = "CURRENCY"


class AccountOwner(BaseModel):
    """The party that owns one or more ledgers."""

    __tablename__ = "account_owners"

    display_name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<AccountOwner({self.display_name})>"


class Commodity(BaseModel):
    """A currency or other commodity that amounts are denominated in."""

    __tablename__ = "commodities"

    namespace: Mapped[str] = mapped_column(String(40), default=CURRENCY_NAMESPACE, nullable=False)
    mnemonic: Mapped[str] = mapped_column(String(20), nullable=False)
    full_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    fraction: Mapped[int] = mapped_column(
        Integer, default=100, nullable=False,
        comment="Smallest currency unit per whole unit (100 for cents)",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    @property
    def is_currency(self) -> bool:
        return self.namespace == CURRENCY_NAMESPACE

    def __repr__(self) -> str:
        return f"<Commodity({self.namespace}:{self.mnemonic})>"


class Ledger(BaseModel):
    """
    One accounting book.

    `root_account_id` is null only until the first chart import or bootstrap.
    It is written through the `root_account` relationship with post_update,
    because the root account itself references the ledger.
    """

    __tablename__ = "ledgers"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    currency_code: Mapped[str] = mapped_column(String(10), default="USD", nullable=False)
    precision: Mapped[int] = mapped_column(
        SmallInteger, default=2, nullable=False,
        comment="Display decimal places",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False,
        comment="False once archived (read-only)",
    )

    owner_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("account_owners.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    currency_commodity_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("commodities.id", ondelete="SET NULL"),
        nullable=True,
    )
    root_account_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("accounts.id", ondelete="SET NULL", use_alter=True),
        nullable=True,
    )

    # Relationships
    owner: Mapped[Optional["AccountOwner"]] = relationship("AccountOwner")
    currency_commodity: Mapped[Optional["Commodity"]] = relationship("Commodity")
    root_account: Mapped[Optional["Account"]] = relationship(
        "Account",
        foreign_keys=[root_account_id],
        post_update=True,
    )

    def __repr__(self) -> str:
        return f"<Ledger({self.name}, {self.currency_code})>"
