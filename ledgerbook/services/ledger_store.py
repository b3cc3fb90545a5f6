"""
Ledgerbook - Ledger Storage Port

The persistence interface consumed by the chart importer and the balance
service, and its SQLAlchemy implementation.

Under READ COMMITTED each statement sees its own snapshot, so two separate
SELECTs can disagree when another session commits between them. Balance
computations therefore read accounts and splits with the single statement
of `find_ledger_snapshot`.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from ledgerbook.models.accounting import Account, Split, Transaction
from ledgerbook.models.ledger import Ledger
from ledgerbook.utils.error_handling import StorageError

logger = logging.getLogger(__name__)


class LedgerStoragePort(ABC):
    """Storage operations the ledger core depends on."""

    @abstractmethod
    async def get_ledger(self, ledger_id: uuid.UUID) -> Optional[Ledger]:
        ...

    @abstractmethod
    async def find_accounts_by_ledger(self, ledger_id: uuid.UUID) -> List[Account]:
        ...

    @abstractmethod
    async def find_splits_by_ledger(self, ledger_id: uuid.UUID) -> List[Split]:
        ...

    async def find_ledger_snapshot(self, ledger_id: uuid.UUID) -> Tuple[List[Account], List[Split]]:
        """
        Accounts and splits of a ledger as one consistent view.

        The default runs the two finders; adapters whose reads are not
        serialized should override it with a single read.
        """
        accounts = await self.find_accounts_by_ledger(ledger_id)
        splits = await self.find_splits_by_ledger(ledger_id)
        return accounts, splits

    @abstractmethod
    async def upsert_account(self, account: Account) -> None:
        ...

    @abstractmethod
    async def save_all(self) -> None:
        """Atomically commit every pending upsert."""

    @abstractmethod
    async def rollback(self) -> None:
        """Discard every pending upsert."""


class SQLAlchemyLedgerStore(LedgerStoragePort):
    """LedgerStoragePort backed by an AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_ledger(self, ledger_id: uuid.UUID) -> Optional[Ledger]:
        try:
            result = await self.db.execute(
                select(Ledger).where(Ledger.id == ledger_id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to fetch ledger {ledger_id}", original_error=e) from e

    async def find_accounts_by_ledger(self, ledger_id: uuid.UUID) -> List[Account]:
        try:
            result = await self.db.execute(
                select(Account)
                .where(Account.ledger_id == ledger_id)
                .order_by(Account.code)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to fetch accounts for ledger {ledger_id}", original_error=e) from e

    async def find_splits_by_ledger(self, ledger_id: uuid.UUID) -> List[Split]:
        try:
            result = await self.db.execute(
                select(Split)
                .join(Transaction, Split.transaction_id == Transaction.id)
                .where(Transaction.ledger_id == ledger_id)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to fetch splits for ledger {ledger_id}", original_error=e) from e

    async def find_ledger_snapshot(self, ledger_id: uuid.UUID) -> Tuple[List[Account], List[Split]]:
        """
        Read accounts and their splits with one outer-joined SELECT.

        Splits posted to accounts of another ledger are not returned.
        """
        ledger_splits = (
            select(Split)
            .join(Transaction, Split.transaction_id == Transaction.id)
            .where(Transaction.ledger_id == ledger_id)
            .subquery()
        )
        split_row = aliased(Split, ledger_splits)
        try:
            result = await self.db.execute(
                select(Account, split_row)
                .outerjoin(split_row, split_row.account_id == Account.id)
                .where(Account.ledger_id == ledger_id)
                .order_by(Account.code)
            )
            rows = result.all()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to fetch balances snapshot for ledger {ledger_id}", original_error=e) from e

        accounts = {}
        splits = []
        for account, split in rows:
            accounts.setdefault(account.id, account)
            if split is not None:
                splits.append(split)
        return list(accounts.values()), splits

    async def upsert_account(self, account: Account) -> None:
        # Persistent instances are already tracked; add() is a no-op for them
        self.db.add(account)

    async def save_all(self) -> None:
        try:
            await self.db.flush()
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError("Failed to save ledger changes", original_error=e) from e

    async def rollback(self) -> None:
        await self.db.rollback()
