"""
Import a Chart of Accounts into a Ledger
========================================
Loads chart-of-accounts rows from a JSON file and imports them into an
existing ledger. Re-running with the same file is idempotent.

Usage:
    python scripts/import_chart.py LEDGER_ID [--file PATH] [--duplicate-policy fail|overwrite]

Options:
    --file PATH             Chart JSON file (default: configured or bundled chart)
    --duplicate-policy      How rows sharing a code are treated (default from settings)
    --init-db               Create missing tables before importing
"""

import argparse
import asyncio
import logging
import sys
import uuid

# Add project root to path
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from ledgerbook.config import settings
from ledgerbook.database import async_session_maker, close_db, init_db
from ledgerbook.schemas.chart_of_accounts import DuplicateCodePolicy
from ledgerbook.services.chart_import_service import ChartImportService
from ledgerbook.services.ledger_service import LedgerService
from ledgerbook.utils.error_handling import AppException

logger = logging.getLogger(__name__)


async def run(ledger_id: uuid.UUID, path, policy) -> int:
    async with async_session_maker() as session:
        service = LedgerService(session)
        try:
            ledger = await service.get_ledger(ledger_id)
            summary = await ChartImportService(service.store).import_from_file(
                ledger, path, duplicate_policy=policy
            )
        except AppException as e:
            print(f"Import failed [{e.code.value}]: {e.message}")
            return 1

    print(f"Ledger:          {summary.ledger_id}")
    print(f"Root:            {summary.root_code} ({summary.root_account_id})")
    print(f"Rows received:   {summary.rows_received} (skipped {summary.rows_skipped})")
    print(f"Created:         {summary.created}")
    print(f"Updated:         {summary.updated}")
    print(f"Placeholders:    {summary.placeholders}")
    print(f"Total accounts:  {summary.total_accounts}")
    return 0


async def main() -> int:
    parser = argparse.ArgumentParser(description="Import a chart of accounts into a ledger")
    parser.add_argument("ledger_id", type=uuid.UUID, help="Target ledger ID")
    parser.add_argument("--file", dest="path", default=None, help="Chart JSON file")
    parser.add_argument(
        "--duplicate-policy",
        choices=[p.value for p in DuplicateCodePolicy],
        default=None,
        help="How rows sharing a code are treated",
    )
    parser.add_argument("--init-db", action="store_true", help="Create missing tables first")
    args = parser.parse_args()

    logging.basicConfig(
        level=settings.effective_log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    policy = DuplicateCodePolicy(args.duplicate_policy) if args.duplicate_policy else None
    try:
        if args.init_db:
            await init_db()
        return await run(args.ledger_id, args.path, policy)
    finally:
        await close_db()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
