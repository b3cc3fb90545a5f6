"""
Ledgerbook - Balance Aggregation Service

Computes per-account (own) and subtree (total) balances from a ledger's
splits.

Sign rule per split:
- Debit: Asset and Expense accounts increase, Liability, Equity and
  Income accounts decrease.
- Credit: the inverse.
- Accounts with an unknown kind follow the Asset/Expense rule.

Totals are accumulated post-order over the account tree with an explicit
stack, visiting children in ascending code order. The engine works on
plain snapshots (AccountNode / SplitRecord) indexed by account id, never
on live ORM objects.
"""

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from ledgerbook.models.accounting import (
    Account, AccountTypeKind, Split, SplitSide, kind_from_code, side_from_code,
)
from ledgerbook.models.ledger import Ledger
from ledgerbook.services.ledger_store import LedgerStoragePort
from ledgerbook.utils.error_handling import AppException
from ledgerbook.utils.money import ZERO, rational_to_decimal

logger = logging.getLogger(__name__)

CREDIT_NORMAL_KINDS = frozenset({
    AccountTypeKind.LIABILITY,
    AccountTypeKind.EQUITY,
    AccountTypeKind.INCOME,
})


# =============================================================================
# SNAPSHOT TYPES
# =============================================================================

@dataclass(frozen=True)
class AccountNode:
    """Account fields the engine needs."""
    id: uuid.UUID
    code: Optional[str]
    parent_id: Optional[uuid.UUID]
    kind: Optional[int]

    @classmethod
    def from_account(cls, account: Account) -> "AccountNode":
        return cls(id=account.id, code=account.code, parent_id=account.parent_id, kind=account.kind)


@dataclass(frozen=True)
class SplitRecord:
    """Split fields the engine needs."""
    account_id: Optional[uuid.UUID]
    side: int
    value_num: int
    value_denom: int

    @classmethod
    def from_split(cls, split: Split) -> "SplitRecord":
        return cls(
            account_id=split.account_id,
            side=split.side,
            value_num=split.value_num,
            value_denom=split.value_denom,
        )


@dataclass(frozen=True)
class AccountBalance:
    own: Decimal
    total: Decimal


@dataclass(frozen=True)
class BalanceSnapshot:
    """Immutable result of one balance computation."""
    ledger_id: Optional[uuid.UUID]
    include_descendants: bool
    balances: Mapping[uuid.UUID, AccountBalance]
    computed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def get(self, account_id: uuid.UUID) -> AccountBalance:
        return self.balances.get(account_id, AccountBalance(ZERO, ZERO))

    def own(self, account_id: uuid.UUID) -> Decimal:
        return self.get(account_id).own

    def total(self, account_id: uuid.UUID) -> Decimal:
        return self.get(account_id).total

    def __contains__(self, account_id: object) -> bool:
        return account_id in self.balances

    def __len__(self) -> int:
        return len(self.balances)


# =============================================================================
# SIGN CONVENTIONS
# =============================================================================

def signed_amount(kind: Optional[int], side: int, amount: Decimal) -> Decimal:
    """Apply the double-entry sign rule for an account kind."""
    credit_normal = kind_from_code(kind) in CREDIT_NORMAL_KINDS
    is_debit = side_from_code(side) != SplitSide.CREDIT
    return amount if is_debit != credit_normal else -amount


def display_balance(kind: Optional[int], raw_balance: Decimal) -> Decimal:
    """
    Presentation-only sign flip for Liability, Equity and Income accounts.
    Unknown kinds are returned unchanged. Never feed the result back into
    stored or aggregated values.
    """
    if kind_from_code(kind) in CREDIT_NORMAL_KINDS:
        return -raw_balance
    return raw_balance


# =============================================================================
# ENGINE
# =============================================================================

def _code_key(node: AccountNode) -> str:
    return node.code or ""


def compute_balances(
    accounts: Iterable[AccountNode],
    splits: Iterable[SplitRecord],
    root_account_id: Optional[uuid.UUID] = None,
    include_descendants: bool = True,
    ledger_id: Optional[uuid.UUID] = None,
) -> BalanceSnapshot:
    """
    Compute own and total balances for every account.

    Traversal starts at root_account_id when it is one of the accounts,
    otherwise at every account without a parent. Accounts not reached from
    there are totalled as their own subtrees, so every account appears in
    the result. With include_descendants False, total equals own.
    """
    nodes: Dict[uuid.UUID, AccountNode] = {a.id: a for a in accounts}
    own: Dict[uuid.UUID, Decimal] = {account_id: ZERO for account_id in nodes}

    for split in splits:
        if split.account_id is None:
            continue
        node = nodes.get(split.account_id)
        if node is None:
            logger.warning(f"Split references account {split.account_id} outside the ledger snapshot")
            continue
        amount = rational_to_decimal(split.value_num, split.value_denom)
        own[node.id] += signed_amount(node.kind, split.side, amount)

    if not include_descendants:
        totals = dict(own)
    else:
        totals = _subtree_totals(nodes, own, root_account_id)

    balances = {
        account_id: AccountBalance(own=own[account_id], total=totals[account_id])
        for account_id in nodes
    }
    return BalanceSnapshot(
        ledger_id=ledger_id,
        include_descendants=include_descendants,
        balances=MappingProxyType(balances),
    )


def _subtree_totals(
    nodes: Dict[uuid.UUID, AccountNode],
    own: Dict[uuid.UUID, Decimal],
    root_account_id: Optional[uuid.UUID],
) -> Dict[uuid.UUID, Decimal]:
    children: Dict[uuid.UUID, List[AccountNode]] = defaultdict(list)
    for node in nodes.values():
        if node.parent_id is not None and node.parent_id in nodes and node.parent_id != node.id:
            children[node.parent_id].append(node)
    for siblings in children.values():
        siblings.sort(key=_code_key)

    if root_account_id is not None and root_account_id in nodes:
        starts = [nodes[root_account_id]]
    else:
        starts = sorted((n for n in nodes.values() if n.parent_id is None), key=_code_key)
    starts.extend(sorted(nodes.values(), key=_code_key))

    totals: Dict[uuid.UUID, Decimal] = {}
    for start in starts:
        if start.id in totals:
            continue
        on_path = set()
        stack = [(start.id, False)]
        while stack:
            node_id, expanded = stack.pop()
            if expanded:
                on_path.discard(node_id)
                total = own[node_id]
                for child in children.get(node_id, ()):
                    # Children on the current path close a cycle and are skipped
                    total += totals.get(child.id, ZERO)
                totals[node_id] = total
                continue
            if node_id in totals or node_id in on_path:
                continue
            on_path.add(node_id)
            stack.append((node_id, True))
            for child in reversed(children.get(node_id, ())):
                if child.id not in totals and child.id not in on_path:
                    stack.append((child.id, False))
    return totals


# =============================================================================
# SERVICE
# =============================================================================

class BalanceService:
    """
    Computes balance snapshots for a ledger through the storage port.

    `recompute` keeps the last good snapshot and the last error message, so a
    failed computation leaves the previous balances available to callers.
    """

    def __init__(self, storage: LedgerStoragePort):
        self.storage = storage
        self.last_snapshot: Optional[BalanceSnapshot] = None
        self.last_error: Optional[str] = None

    async def compute(self, ledger: Ledger, include_descendants: bool = True) -> BalanceSnapshot:
        """
        Read one accounts-and-splits snapshot and compute balances.

        Raises:
            StorageError: the read failed; no partial snapshot is returned
        """
        _, snapshot = await self.compute_with_accounts(ledger, include_descendants)
        return snapshot

    async def compute_with_accounts(
        self,
        ledger: Ledger,
        include_descendants: bool = True,
    ) -> Tuple[List[Account], BalanceSnapshot]:
        """Like compute, also returning the accounts the snapshot was built from."""
        accounts, splits = await self.storage.find_ledger_snapshot(ledger.id)

        snapshot = compute_balances(
            accounts=[AccountNode.from_account(a) for a in accounts],
            splits=[SplitRecord.from_split(s) for s in splits],
            root_account_id=ledger.root_account_id,
            include_descendants=include_descendants,
            ledger_id=ledger.id,
        )
        logger.debug(
            f"Computed balances for ledger {ledger.id}: "
            f"{len(accounts)} accounts, {len(splits)} splits"
        )
        return accounts, snapshot

    async def recompute(self, ledger: Ledger, include_descendants: bool = True) -> Optional[BalanceSnapshot]:
        """Compute and remember the snapshot; on failure keep the previous one."""
        try:
            snapshot = await self.compute(ledger, include_descendants=include_descendants)
        except AppException as e:
            self.last_error = e.message
            logger.error(f"Balance computation failed for ledger {ledger.id}: {e.message}")
            return None
        self.last_snapshot = snapshot
        self.last_error = None
        return snapshot
