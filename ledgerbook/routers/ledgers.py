"""
Ledgerbook - Ledgers Router

API endpoints for ledger lifecycle, chart-of-accounts import, the
materialized account tree and balances.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerbook.database import get_db
from ledgerbook.schemas.balances import AccountBalanceItem, AccountTreeNode, BalanceReport
from ledgerbook.schemas.chart_of_accounts import ChartAccountRow, DuplicateCodePolicy, ImportSummary
from ledgerbook.schemas.ledger import (
    LedgerCreate, LedgerResponse, TransactionCreate, TransactionResponse,
)
from ledgerbook.services.account_tree import build_account_tree
from ledgerbook.services.balance_service import BalanceService, display_balance
from ledgerbook.services.chart_import_service import ChartImportService
from ledgerbook.services.ledger_service import LedgerService
from ledgerbook.utils.error_handling import AccountNotFoundError


router = APIRouter(prefix="/api/v1/ledgers", tags=["Ledgers"])


# ============================================================================
# LEDGER ENDPOINTS
# ============================================================================

@router.post("", response_model=LedgerResponse, status_code=status.HTTP_201_CREATED)
async def create_ledger(
    data: LedgerCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a ledger, optionally seeding the default chart of accounts."""
    service = LedgerService(db)
    return await service.create_ledger(
        owner_name=data.owner_name,
        ledger_name=data.name,
        currency_code=data.currency_code,
        precision=data.precision,
        import_chart=data.import_chart,
    )


@router.get("", response_model=List[LedgerResponse])
async def list_ledgers(
    include_archived: bool = Query(False, description="Include archived ledgers"),
    db: AsyncSession = Depends(get_db),
):
    """List ledgers."""
    service = LedgerService(db)
    return await service.list_ledgers(include_archived=include_archived)


@router.get("/{ledger_id}", response_model=LedgerResponse)
async def get_ledger(
    ledger_id: uuid.UUID = Path(..., description="Ledger ID"),
    db: AsyncSession = Depends(get_db),
):
    """Get ledger by ID."""
    service = LedgerService(db)
    return await service.get_ledger(ledger_id)


@router.post("/{ledger_id}/archive", response_model=LedgerResponse)
async def archive_ledger(
    ledger_id: uuid.UUID = Path(..., description="Ledger ID"),
    db: AsyncSession = Depends(get_db),
):
    """Archive a ledger. Archived ledgers are read-only."""
    service = LedgerService(db)
    return await service.archive_ledger(ledger_id)


@router.delete("/{ledger_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_ledger(
    ledger_id: uuid.UUID = Path(..., description="Ledger ID"),
    active_ledger_id: Optional[uuid.UUID] = Query(None, description="Ledger currently open in the caller"),
    db: AsyncSession = Depends(get_db),
):
    """Delete a ledger. Refused while it is the caller's active ledger."""
    service = LedgerService(db)
    await service.delete_ledger(ledger_id, active_ledger_id=active_ledger_id)


# ============================================================================
# CHART OF ACCOUNTS ENDPOINTS
# ============================================================================

@router.post("/{ledger_id}/chart-of-accounts/import", response_model=ImportSummary)
async def import_chart_of_accounts(
    ledger_id: uuid.UUID = Path(..., description="Ledger ID"),
    rows: List[ChartAccountRow] = Body(..., description="Chart-of-accounts rows"),
    duplicate_policy: Optional[DuplicateCodePolicy] = Query(
        None, description="How to treat rows sharing a code (default from settings)"
    ),
    db: AsyncSession = Depends(get_db),
):
    """Import chart-of-accounts rows into a ledger. Re-importing is idempotent."""
    service = LedgerService(db)
    ledger = await service.get_ledger(ledger_id)
    importer = ChartImportService(service.store)
    return await importer.import_rows(ledger, rows, duplicate_policy=duplicate_policy)


@router.get("/{ledger_id}/accounts/tree", response_model=AccountTreeNode)
async def get_account_tree(
    ledger_id: uuid.UUID = Path(..., description="Ledger ID"),
    with_balances: bool = Query(False, description="Attach own/total balances to every node"),
    db: AsyncSession = Depends(get_db),
):
    """Get the ledger's chart of accounts as a tree below its root account."""
    service = LedgerService(db)
    ledger = await service.get_ledger(ledger_id)
    if ledger.root_account_id is None:
        raise AccountNotFoundError("root")

    if with_balances:
        accounts, snapshot = await BalanceService(service.store).compute_with_accounts(ledger)
    else:
        accounts, snapshot = await service.store.find_accounts_by_ledger(ledger.id), None
    return build_account_tree(accounts, ledger.root_account_id, snapshot=snapshot)


# ============================================================================
# BALANCE ENDPOINTS
# ============================================================================

@router.get("/{ledger_id}/balances", response_model=BalanceReport)
async def get_balances(
    ledger_id: uuid.UUID = Path(..., description="Ledger ID"),
    include_descendants: bool = Query(True, description="Roll child totals up into parents"),
    db: AsyncSession = Depends(get_db),
):
    """Get own and total balances for every account of a ledger."""
    service = LedgerService(db)
    ledger = await service.get_ledger(ledger_id)
    accounts, snapshot = await BalanceService(service.store).compute_with_accounts(
        ledger, include_descendants=include_descendants
    )

    balances = {}
    for account in accounts:
        balance = snapshot.get(account.id)
        balances[account.id] = AccountBalanceItem(
            account_id=account.id,
            code=account.code,
            name=account.name,
            kind=account.kind,
            own=balance.own,
            total=balance.total,
            display_total=display_balance(account.kind, balance.total),
        )

    return BalanceReport(
        ledger_id=ledger.id,
        include_descendants=snapshot.include_descendants,
        computed_at=snapshot.computed_at,
        balances=balances,
    )


# ============================================================================
# TRANSACTION ENDPOINTS
# ============================================================================

@router.post(
    "/{ledger_id}/transactions",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_transaction(
    ledger_id: uuid.UUID = Path(..., description="Ledger ID"),
    data: TransactionCreate = ...,
    db: AsyncSession = Depends(get_db),
):
    """Record a balanced transaction. Placeholder accounts cannot receive postings."""
    service = LedgerService(db)
    ledger = await service.get_ledger(ledger_id)
    return await service.record_transaction(
        ledger,
        data.lines,
        post_date=data.post_date,
        description=data.description,
        num=data.num,
    )
