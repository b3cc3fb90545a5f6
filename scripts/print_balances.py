"""
Print Ledger Balances
=====================
Prints a ledger's account tree with own and total balances.

Usage:
    python scripts/print_balances.py LEDGER_ID [--own-only] [--display-signs]

Options:
    --own-only          Do not roll child totals up into parents
    --display-signs     Show Liability, Equity and Income totals as positive
"""

import argparse
import asyncio
import sys
import uuid

# Add project root to path
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from ledgerbook.database import async_session_maker, close_db
from ledgerbook.services.account_tree import build_account_tree
from ledgerbook.services.balance_service import BalanceService
from ledgerbook.services.ledger_service import LedgerService
from ledgerbook.utils.error_handling import AppException
from ledgerbook.utils.money import quantize_amount


def print_tree(tree, precision: int, display_signs: bool) -> None:
    stack = [(tree, 0)]
    while stack:
        node, depth = stack.pop()
        total = node.display_total if display_signs else node.total
        marker = "+" if node.is_placeholder else "-"
        label = f"{'  ' * depth}{marker} {node.code}  {node.name}"
        print(
            f"{label:<60} own {quantize_amount(node.own, precision):>14}"
            f"  total {quantize_amount(total, precision):>14}"
        )
        for child in reversed(node.children):
            stack.append((child, depth + 1))


async def main() -> int:
    parser = argparse.ArgumentParser(description="Print a ledger's balances")
    parser.add_argument("ledger_id", type=uuid.UUID, help="Ledger ID")
    parser.add_argument("--own-only", action="store_true", help="Do not roll totals up")
    parser.add_argument("--display-signs", action="store_true", help="Normal balances as positive")
    args = parser.parse_args()

    try:
        async with async_session_maker() as session:
            service = LedgerService(session)
            try:
                ledger = await service.get_ledger(args.ledger_id)
                accounts, snapshot = await BalanceService(service.store).compute_with_accounts(
                    ledger, include_descendants=not args.own_only
                )
                tree = build_account_tree(accounts, ledger.root_account_id, snapshot=snapshot)
            except AppException as e:
                print(f"Balance computation failed [{e.code.value}]: {e.message}")
                return 1

        print(f"{ledger.name} ({ledger.currency_code})")
        print('=' * 100)
        print_tree(tree, ledger.precision, args.display_signs)
        return 0
    finally:
        await close_db()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
