"""
Tests for the materialized account tree.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from ledgerbook.models.accounting import Account, AccountRole, AccountTypeKind
from ledgerbook.services.account_tree import build_account_tree
from ledgerbook.services.balance_service import AccountNode, SplitRecord, compute_balances
from ledgerbook.utils.error_handling import AccountNotFoundError


def account(code, parent=None, kind=AccountTypeKind.ASSET, role=AccountRole.ASSET, placeholder=False):
    return Account(
        id=uuid4(),
        code=code,
        name=f"Account {code}",
        parent_id=parent.id if parent is not None else None,
        kind=int(kind),
        role=int(role),
        is_placeholder=placeholder,
    )


class TestBuildAccountTree:
    """Tree materialization from parent links."""

    def test_children_sorted_by_code(self):
        root = account("ROOT", placeholder=True)
        b = account("2000", parent=root)
        a = account("1000", parent=root, placeholder=True)
        a1 = account("1100", parent=a, role=AccountRole.BANK)

        tree = build_account_tree([b, a1, root, a], root.id)

        assert tree.id == root.id
        assert [c.code for c in tree.children] == ["1000", "2000"]
        assert [c.code for c in tree.children[0].children] == ["1100"]
        assert tree.children[0].children[0].role_label == "Bank"

    def test_unreachable_accounts_left_out(self):
        root = account("ROOT")
        orphan = account("9999")

        tree = build_account_tree([root, orphan], root.id)

        assert tree.children == []

    def test_missing_root(self):
        with pytest.raises(AccountNotFoundError):
            build_account_tree([account("1000")], uuid4())

    def test_cycle_below_root_terminates(self):
        root = account("ROOT")
        a = account("1000", parent=root)
        b = account("1100", parent=a)
        a.parent_id = b.id

        tree = build_account_tree([root, a, b], root.id)

        assert tree.children == []

    def test_balances_attached(self):
        root = account("ROOT")
        income = account("4000", parent=root, kind=AccountTypeKind.INCOME, role=AccountRole.INCOME)
        snapshot = compute_balances(
            [AccountNode.from_account(a) for a in (root, income)],
            [SplitRecord(account_id=income.id, side=1, value_num=5000, value_denom=100)],
            root_account_id=root.id,
        )

        tree = build_account_tree([root, income], root.id, snapshot=snapshot)

        node = tree.children[0]
        assert node.own == Decimal("50")
        assert node.display_total == Decimal("-50")
        assert tree.total == Decimal("50")
        assert tree.own == Decimal("0")

    def test_deep_chain(self):
        root = account("ROOT")
        chain = [root]
        for i in range(3000):
            chain.append(account(f"{i:05d}", parent=chain[-1]))

        tree = build_account_tree(chain, root.id)

        depth = 0
        node = tree
        while node.children:
            node = node.children[0]
            depth += 1
        assert depth == 3000
