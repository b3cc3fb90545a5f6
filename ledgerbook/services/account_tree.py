"""
Ledgerbook - Account Tree Builder

Materializes the stored parent links into a nested AccountTreeNode for
presentation. Built bottom-up with an explicit stack so deep charts do not
hit the recursion limit.
"""

import logging
import uuid
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from ledgerbook.models.accounting import Account, role_from_code
from ledgerbook.schemas.balances import AccountTreeNode
from ledgerbook.services.balance_service import BalanceSnapshot, display_balance
from ledgerbook.utils.error_handling import AccountNotFoundError

logger = logging.getLogger(__name__)


def _tree_node(
    account: Account,
    children: List[AccountTreeNode],
    snapshot: Optional[BalanceSnapshot],
) -> AccountTreeNode:
    role = role_from_code(account.role)
    node = AccountTreeNode(
        id=account.id,
        code=account.code,
        name=account.name,
        kind=account.kind,
        role=account.role,
        role_label=role.label if role is not None else None,
        is_placeholder=account.is_placeholder,
        children=children,
    )
    if snapshot is not None:
        balance = snapshot.get(account.id)
        node.own = balance.own
        node.total = balance.total
        node.display_total = display_balance(account.kind, balance.total)
    return node


def build_account_tree(
    accounts: Sequence[Account],
    root_account_id: uuid.UUID,
    snapshot: Optional[BalanceSnapshot] = None,
) -> AccountTreeNode:
    """
    Build the tree below root_account_id, children ordered by code.

    Accounts not reachable from the root are left out.
    """
    by_id: Dict[uuid.UUID, Account] = {a.id: a for a in accounts}
    if root_account_id not in by_id:
        raise AccountNotFoundError(root_account_id)

    children_of: Dict[uuid.UUID, List[Account]] = defaultdict(list)
    for account in accounts:
        if account.parent_id is not None and account.parent_id != account.id:
            children_of[account.parent_id].append(account)
    for siblings in children_of.values():
        siblings.sort(key=lambda a: a.code or "")

    built: Dict[uuid.UUID, AccountTreeNode] = {}
    expanding = set()
    stack = [(root_account_id, False)]
    while stack:
        account_id, expanded = stack.pop()
        if expanded:
            kids = [built[c.id] for c in children_of.get(account_id, ()) if c.id in built]
            built[account_id] = _tree_node(by_id[account_id], kids, snapshot)
            continue
        if account_id in built or account_id in expanding:
            continue
        expanding.add(account_id)
        stack.append((account_id, True))
        for child in children_of.get(account_id, ()):
            if child.id not in built:
                stack.append((child.id, False))

    skipped = len(by_id) - len(built)
    if skipped:
        logger.debug(f"{skipped} accounts are not reachable from root {root_account_id}")
    return built[root_account_id]
