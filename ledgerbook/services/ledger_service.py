"""
Ledgerbook - Ledger Service

Ledger lifecycle operations:
- Creating a ledger with its owner, currency commodity and root account
- Seeding the chart of accounts on creation
- Archiving (read-only) and deleting ledgers
- Recording simple balanced transactions
- Verifying the account tree shape
"""

import logging
import uuid
from datetime import date
from typing import Dict, List, Optional, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerbook.config import settings
from ledgerbook.models.accounting import Account, AccountTypeKind, Split, SplitSide, Transaction
from ledgerbook.models.ledger import CURRENCY_NAMESPACE, AccountOwner, Commodity, Ledger
from ledgerbook.schemas.ledger import SplitLine
from ledgerbook.services.chart_import_service import ChartImportService
from ledgerbook.services.ledger_store import SQLAlchemyLedgerStore
from ledgerbook.utils.error_handling import (
    AccountNotFoundError,
    CyclicHierarchyError,
    ErrorCode,
    LedgerArchivedError,
    LedgerInUseError,
    LedgerNotFoundError,
    ValidationException,
)
from ledgerbook.utils.money import (
    decimal_to_rational, quantize_amount, rational_to_decimal, scu_for_precision,
)

logger = logging.getLogger(__name__)

ROOT_ACCOUNT_CODE = "ROOT"
ROOT_ACCOUNT_NAME = "Root"


def ascend_to_root(
    account_id: uuid.UUID,
    parents: Dict[uuid.UUID, Optional[uuid.UUID]],
    max_depth: Optional[int] = None,
) -> List[uuid.UUID]:
    """
    Follow parent links from account_id to the top of its tree.

    Returns the path, ending at the account with no parent.

    Raises:
        CyclicHierarchyError: the ascent revisits an account or exceeds max_depth
    """
    limit = max_depth if max_depth is not None else settings.balance_max_depth
    path = [account_id]
    seen = {account_id}
    current = account_id
    while parents.get(current) is not None:
        current = parents[current]
        if current in seen or len(path) > limit:
            raise CyclicHierarchyError([str(a) for a in path + [current]])
        seen.add(current)
        path.append(current)
    return path


class LedgerService:
    """Service for ledger lifecycle operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = SQLAlchemyLedgerStore(db)

    # =========================================================================
    # LEDGERS
    # =========================================================================

    async def create_ledger(
        self,
        owner_name: str,
        ledger_name: str,
        currency_code: Optional[str] = None,
        precision: Optional[int] = None,
        import_chart: bool = True,
    ) -> Ledger:
        """
        Create a ledger with its owner, currency commodity and root account.

        With import_chart, the configured (or bundled) chart of accounts is
        imported right after the ledger is committed.
        """
        currency_code = (currency_code or settings.default_currency_code).strip().upper()
        precision = settings.default_precision if precision is None else precision
        scu = scu_for_precision(precision)

        owner = AccountOwner(id=uuid.uuid4(), display_name=owner_name.strip(), is_active=True)
        commodity = await self._get_or_create_currency(currency_code, scu)
        ledger = Ledger(
            id=uuid.uuid4(),
            name=ledger_name.strip(),
            currency_code=currency_code,
            precision=precision,
            is_active=True,
            owner=owner,
            currency_commodity=commodity,
        )
        self.db.add_all([owner, ledger])
        await self.db.flush()

        root = Account(
            id=uuid.uuid4(),
            ledger_id=ledger.id,
            code=ROOT_ACCOUNT_CODE,
            name=ROOT_ACCOUNT_NAME,
            kind=int(AccountTypeKind.ASSET),
            is_placeholder=True,
            is_active=True,
            is_hidden=False,
            commodity_id=commodity.id,
            commodity_scu=scu,
        )
        self.db.add(root)
        ledger.root_account = root
        await self.db.flush()
        await self.db.commit()
        logger.info(f"Created ledger {ledger.id} ({ledger.name}, {currency_code}) for {owner.display_name}")

        if import_chart:
            await ChartImportService(self.store).import_from_file(ledger, settings.chart_of_accounts_path)

        return ledger

    async def _get_or_create_currency(self, mnemonic: str, fraction: int) -> Commodity:
        result = await self.db.execute(
            select(Commodity).where(
                Commodity.namespace == CURRENCY_NAMESPACE,
                Commodity.mnemonic == mnemonic,
            )
        )
        commodity = result.scalars().first()
        if commodity is None:
            commodity = Commodity(
                id=uuid.uuid4(),
                namespace=CURRENCY_NAMESPACE,
                mnemonic=mnemonic,
                full_name=mnemonic,
                fraction=fraction,
                is_active=True,
            )
            self.db.add(commodity)
        return commodity

    async def get_ledger(self, ledger_id: uuid.UUID) -> Ledger:
        """Get a ledger or raise LedgerNotFoundError."""
        ledger = await self.store.get_ledger(ledger_id)
        if ledger is None:
            raise LedgerNotFoundError(ledger_id)
        return ledger

    async def list_ledgers(self, include_archived: bool = False) -> List[Ledger]:
        query = select(Ledger)
        if not include_archived:
            query = query.where(Ledger.is_active == True)
        query = query.order_by(Ledger.name)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def archive_ledger(self, ledger_id: uuid.UUID) -> Ledger:
        """Mark a ledger read-only. Archiving twice is a no-op."""
        ledger = await self.get_ledger(ledger_id)
        if ledger.is_active:
            ledger.is_active = False
            await self.db.commit()
            logger.info(f"Archived ledger {ledger_id}")
        return ledger

    async def delete_ledger(
        self,
        ledger_id: uuid.UUID,
        active_ledger_id: Optional[uuid.UUID] = None,
    ) -> None:
        """
        Delete a ledger with its accounts, transactions and splits.

        Raises:
            LedgerInUseError: ledger_id is the currently active ledger
            LedgerNotFoundError: no such ledger
        """
        if active_ledger_id is not None and active_ledger_id == ledger_id:
            raise LedgerInUseError(ledger_id)
        await self.get_ledger(ledger_id)

        transaction_ids = select(Transaction.id).where(Transaction.ledger_id == ledger_id)
        await self.db.execute(
            delete(Split).where(Split.transaction_id.in_(transaction_ids)).execution_options(synchronize_session=False)
        )
        await self.db.execute(
            delete(Transaction).where(Transaction.ledger_id == ledger_id).execution_options(synchronize_session=False)
        )
        # Break the ledger <-> root account reference before removing accounts
        await self.db.execute(
            update(Ledger).where(Ledger.id == ledger_id).values(root_account_id=None)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            update(Account).where(Account.ledger_id == ledger_id).values(parent_id=None)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            delete(Account).where(Account.ledger_id == ledger_id).execution_options(synchronize_session=False)
        )
        await self.db.execute(
            delete(Ledger).where(Ledger.id == ledger_id).execution_options(synchronize_session=False)
        )
        await self.db.commit()
        self.db.expunge_all()
        logger.info(f"Deleted ledger {ledger_id}")

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    async def record_transaction(
        self,
        ledger: Ledger,
        lines: Sequence[SplitLine],
        post_date: Optional[date] = None,
        description: Optional[str] = None,
        num: Optional[str] = None,
    ) -> Transaction:
        """
        Record a transaction whose debit and credit lines balance.

        Amounts are rounded to the ledger precision first; the rounded debit
        and credit totals must be equal.

        Raises:
            LedgerArchivedError: the ledger is archived
            AccountNotFoundError: a line names an account outside the ledger
            ValidationException: a line posts to a placeholder, or lines do not balance
        """
        if not ledger.is_active:
            raise LedgerArchivedError(ledger.id)
        if len(lines) < 2:
            raise ValidationException(
                "A transaction needs at least two lines",
                field="lines",
                code=ErrorCode.UNBALANCED_TRANSACTION,
            )

        accounts = {a.id: a for a in await self.store.find_accounts_by_ledger(ledger.id)}
        scu = scu_for_precision(ledger.precision)
        values = []
        debits = 0
        credits = 0
        for line in lines:
            account = accounts.get(line.account_id)
            if account is None:
                raise AccountNotFoundError(line.account_id)
            if account.is_placeholder:
                raise ValidationException(
                    f"Account {account.code} is a placeholder and cannot receive postings",
                    field="account_id",
                    code=ErrorCode.PLACEHOLDER_POSTING,
                    details={"account_id": str(account.id), "code": account.code},
                )
            # Balance is checked on the stored (quantized) values
            value_num, value_denom = decimal_to_rational(quantize_amount(line.amount, ledger.precision), scu)
            values.append((value_num, value_denom))
            if line.side == SplitSide.DEBIT:
                debits += value_num
            else:
                credits += value_num

        if debits != credits:
            debit_total = rational_to_decimal(debits, scu)
            credit_total = rational_to_decimal(credits, scu)
            raise ValidationException(
                f"Transaction must be balanced at {ledger.precision} decimal places. "
                f"Debit: {debit_total}, Credit: {credit_total}",
                field="lines",
                code=ErrorCode.UNBALANCED_TRANSACTION,
                details={"debit": str(debit_total), "credit": str(credit_total)},
            )

        transaction = Transaction(
            id=uuid.uuid4(),
            ledger_id=ledger.id,
            post_date=post_date or date.today(),
            description=description,
            num=num,
        )
        self.db.add(transaction)
        for line, (value_num, value_denom) in zip(lines, values):
            self.db.add(Split(
                id=uuid.uuid4(),
                transaction=transaction,
                account_id=line.account_id,
                side=int(line.side),
                value_num=value_num,
                value_denom=value_denom,
                memo=line.memo,
            ))
        await self.db.flush()
        await self.db.commit()
        logger.debug(f"Recorded transaction {transaction.id} in ledger {ledger.id}: {rational_to_decimal(debits, scu)}")
        return transaction

    # =========================================================================
    # TREE CHECKS
    # =========================================================================

    async def verify_tree(self, ledger: Ledger) -> None:
        """
        Check that the ledger has exactly one parentless account, that it is
        the ledger's root, and that every account ascends to it.
        """
        accounts = await self.store.find_accounts_by_ledger(ledger.id)
        parents = {a.id: a.parent_id for a in accounts}
        tops = [a for a in accounts if a.parent_id is None]
        if len(tops) != 1 or tops[0].id != ledger.root_account_id:
            raise ValidationException(
                f"Ledger {ledger.id} has {len(tops)} parentless accounts",
                details={
                    "root_account_id": str(ledger.root_account_id) if ledger.root_account_id else None,
                    "parentless": sorted(a.code for a in tops),
                },
            )
        for account in accounts:
            path = ascend_to_root(account.id, parents)
            if path[-1] != ledger.root_account_id:
                raise ValidationException(
                    f"Account {account.code} does not reach the ledger root",
                    details={"account_id": str(account.id)},
                )
