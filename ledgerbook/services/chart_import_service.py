"""
Ledgerbook - Chart of Accounts Import Service

Idempotently materializes a ledger's account tree from a flat list of
chart rows. Re-importing the same rows produces the same tree; accounts
are matched by their trimmed, case-folded code and updated in place, so
their identifiers survive re-imports.

The import runs in two passes so that a row may reference a parent that
appears later in the input:
1. Find-or-create every account and overwrite its attributes. An account
   is a placeholder when at least one row names it as parent.
2. Link every account to its parent, or to the root when the row has no
   parent code.

Every structural check (duplicates, unresolved parents, cycles) runs before
the first write, and all writes are committed with a single save.
"""

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

from pydantic import TypeAdapter, ValidationError

from ledgerbook.config import settings
from ledgerbook.models.accounting import Account, AccountTypeKind, normalize_code
from ledgerbook.models.ledger import Ledger
from ledgerbook.schemas.chart_of_accounts import (
    ChartAccountRow, DuplicateCodePolicy, ImportSummary,
)
from ledgerbook.services.ledger_store import LedgerStoragePort
from ledgerbook.utils.error_handling import (
    CyclicHierarchyError,
    DecodeFailedError,
    DuplicateCodeError,
    LedgerArchivedError,
    MissingParentError,
    ResourceNotFoundError,
    RootConflictError,
)
from ledgerbook.utils.money import scu_for_precision

logger = logging.getLogger(__name__)

DEFAULT_CHART_PATH = Path(__file__).resolve().parent.parent / "resources" / "chart_of_accounts.json"

_rows_adapter = TypeAdapter(List[ChartAccountRow])


# =============================================================================
# LOADING
# =============================================================================

def default_chart_path() -> Path:
    """The configured chart file, or the bundled one."""
    if settings.chart_of_accounts_path:
        return Path(settings.chart_of_accounts_path)
    return DEFAULT_CHART_PATH


def decode_chart_rows(payload: Union[str, bytes]) -> List[ChartAccountRow]:
    """Decode a JSON array of chart rows. Empty arrays are rejected."""
    try:
        rows = _rows_adapter.validate_json(payload)
    except ValidationError as e:
        errors = e.errors(include_url=False, include_context=False, include_input=False)
        raise DecodeFailedError("invalid chart rows", errors=errors[:20]) from e
    if not rows:
        raise DecodeFailedError("no rows")
    return rows


def load_chart_rows(path: Optional[Union[str, Path]] = None) -> List[ChartAccountRow]:
    """Read and decode chart rows from a JSON file."""
    chart_path = Path(path) if path else default_chart_path()
    try:
        payload = chart_path.read_bytes()
    except FileNotFoundError as e:
        raise ResourceNotFoundError(str(chart_path)) from e
    return decode_chart_rows(payload)


# =============================================================================
# ROW PREPARATION
# =============================================================================

@dataclass
class PreparedRow:
    """A chart row after trimming, with its normalized keys."""
    code: str
    key: str
    parent_code: Optional[str]
    parent_key: Optional[str]
    name: str
    level: int
    kind: int
    role: int
    notes: Optional[str]
    placeholder_hint: Optional[bool]

    @property
    def is_root(self) -> bool:
        return self.level == 0 and self.parent_key is None


def prepare_rows(
    rows: Sequence[ChartAccountRow],
    duplicate_policy: DuplicateCodePolicy,
) -> List[PreparedRow]:
    """
    Trim codes and names, drop rows with an empty code and resolve
    duplicate codes according to the policy.

    Raises:
        DecodeFailedError: no usable rows
        DuplicateCodeError: duplicates under DuplicateCodePolicy.FAIL
    """
    if not rows:
        raise DecodeFailedError("no rows")

    by_key: Dict[str, PreparedRow] = {}
    duplicates: List[str] = []

    for row in rows:
        code = row.code.strip()
        if not code:
            logger.debug(f"Skipping chart row with empty code: {row.name!r}")
            continue

        parent_code = (row.parent_code or "").strip() or None
        prepared = PreparedRow(
            code=code,
            key=normalize_code(code),
            parent_code=parent_code,
            parent_key=normalize_code(parent_code) if parent_code else None,
            name=row.name.strip() or code,
            level=row.level,
            kind=row.kind,
            role=row.role,
            notes=row.notes,
            placeholder_hint=row.is_placeholder,
        )

        if prepared.key in by_key:
            if duplicate_policy == DuplicateCodePolicy.FAIL:
                duplicates.append(code)
                continue
            logger.debug(f"Duplicate chart code {code!r}: later row overwrites earlier one")
        by_key[prepared.key] = prepared

    if duplicates:
        raise DuplicateCodeError(sorted(set(duplicates)))
    if not by_key:
        raise DecodeFailedError("no rows with a non-empty code")

    return list(by_key.values())


def find_cycle(parent_of: Dict[str, Optional[str]]) -> Optional[List[str]]:
    """
    Return the keys of a cycle in a child -> parent map, or None.

    Parents missing from the map are treated as terminal.
    """
    settled: set = set()
    for start in parent_of:
        path: List[str] = []
        on_path: Dict[str, int] = {}
        node: Optional[str] = start
        while node is not None and node not in settled:
            if node in on_path:
                return path[on_path[node]:] + [node]
            on_path[node] = len(path)
            path.append(node)
            node = parent_of.get(node)
        settled.update(path)
    return None


# =============================================================================
# IMPORT SERVICE
# =============================================================================

@dataclass
class ImportPlan:
    """Validated inputs for the write phase of an import."""
    resolve: Dict[str, Account]
    root: Account
    root_created: bool
    body: List[PreparedRow]
    parent_keys: set
    scu: int


class ChartImportService:
    """Imports chart-of-accounts rows into a ledger."""

    def __init__(self, storage: LedgerStoragePort):
        self.storage = storage

    async def import_rows(
        self,
        ledger: Ledger,
        rows: Sequence[ChartAccountRow],
        duplicate_policy: Optional[DuplicateCodePolicy] = None,
    ) -> ImportSummary:
        """
        Import rows into the ledger as one atomic unit.

        Unresolved parent codes fail the whole import with MissingParentError.
        Rows without a parent code are attached to the root account.

        Raises:
            LedgerArchivedError: the ledger is archived
            DecodeFailedError: no usable rows
            DuplicateCodeError: duplicate codes under the FAIL policy
            MissingParentError: a parent code does not resolve
            CyclicHierarchyError: the parent links would form a cycle
            StorageError: fetch or save failure
        """
        if not ledger.is_active:
            raise LedgerArchivedError(ledger.id)

        policy = duplicate_policy or settings.coa_duplicate_code_policy
        prepared = prepare_rows(rows, policy)
        plan = await self.plan_import(ledger, prepared)

        try:
            summary = await self._apply(ledger, plan)
            summary.rows_received = len(rows)
            summary.rows_skipped = sum(1 for r in rows if not r.code.strip())
            await self.storage.save_all()
        except Exception:
            await self.storage.rollback()
            raise

        logger.info(
            f"COA import into ledger {ledger.id}: created={summary.created} "
            f"updated={summary.updated} placeholders={summary.placeholders} orphans={summary.orphans} "
            f"total={summary.total_accounts} root={summary.root_code}"
        )
        return summary

    async def import_from_file(
        self,
        ledger: Ledger,
        path: Optional[Union[str, Path]] = None,
        duplicate_policy: Optional[DuplicateCodePolicy] = None,
    ) -> ImportSummary:
        """Load rows from a JSON file (default: configured or bundled chart) and import them."""
        rows = load_chart_rows(path)
        return await self.import_rows(ledger, rows, duplicate_policy=duplicate_policy)

    async def plan_import(self, ledger: Ledger, prepared: List[PreparedRow]) -> ImportPlan:
        """Resolve the root and validate parent links without writing anything."""
        existing = await self.storage.find_accounts_by_ledger(ledger.id)
        by_id: Dict[uuid.UUID, Account] = {a.id: a for a in existing}
        resolve: Dict[str, Account] = {}
        for account in existing:
            resolve.setdefault(account.code_key, account)

        scu = scu_for_precision(ledger.precision)
        root_row = next((r for r in prepared if r.is_root), None)
        root, root_created = self._resolve_root(ledger, root_row, resolve, by_id, scu)

        # The declared root code always resolves to the root in use
        resolve[root.code_key] = root
        if root_row is not None:
            resolve[root_row.key] = root

        body = []
        for r in prepared:
            if r is root_row:
                continue
            if resolve.get(r.key) is root:
                logger.debug(f"Row {r.code!r} names the root account; keeping it as root")
                continue
            body.append(r)

        row_keys = {r.key for r in body}
        self._validate_parents(body, resolve, row_keys)
        self._validate_tree(body, existing, resolve, by_id, root, row_keys)

        return ImportPlan(
            resolve=resolve,
            root=root,
            root_created=root_created,
            body=body,
            parent_keys={r.parent_key for r in body if r.parent_key},
            scu=scu,
        )

    async def _apply(self, ledger: Ledger, plan: ImportPlan) -> ImportSummary:
        resolve, root = plan.resolve, plan.root
        if plan.root_created:
            await self.storage.upsert_account(root)

        summary = ImportSummary(
            ledger_id=ledger.id,
            root_account_id=root.id,
            root_code=root.code,
            created=int(plan.root_created),
            orphans=sum(1 for r in plan.body if r.parent_key is None),
        )

        # Pass 1: materialize
        for r in plan.body:
            account = resolve.get(r.key)
            if account is None:
                account = Account(id=uuid.uuid4(), ledger_id=ledger.id, code=r.code, name=r.name)
                await self.storage.upsert_account(account)
                summary.created += 1
            else:
                summary.updated += 1

            account.code = r.code
            account.name = r.name
            account.kind = r.kind
            account.role = r.role
            if r.notes is not None:
                account.notes = r.notes
            account.is_placeholder = r.key in plan.parent_keys
            account.is_active = True
            account.is_hidden = False
            account.ledger_id = ledger.id
            account.commodity_id = ledger.currency_commodity_id
            account.commodity_scu = plan.scu

            if r.placeholder_hint is not None and r.placeholder_hint != account.is_placeholder:
                logger.debug(
                    f"Placeholder hint for {r.code!r} ({r.placeholder_hint}) "
                    f"overridden by children ({account.is_placeholder})"
                )
            resolve[r.key] = account

        # Pass 2: link
        for r in plan.body:
            account = resolve[r.key]
            account.parent = resolve[r.parent_key] if r.parent_key else root

        # Root linkage, both directions
        root.parent = None
        root.ledger_id = ledger.id
        root.is_placeholder = True
        ledger.root_account = root

        accounts = list({id(a): a for a in resolve.values()}.values())
        summary.total_accounts = len(accounts)
        summary.placeholders = sum(1 for a in accounts if a.is_placeholder)
        return summary

    def _resolve_root(
        self,
        ledger: Ledger,
        root_row: Optional[PreparedRow],
        resolve: Dict[str, Account],
        by_id: Dict[uuid.UUID, Account],
        scu: int,
    ):
        """Pick the root account: declared root row, then ledger root, then a new one."""
        if root_row is not None and root_row.key in resolve:
            return resolve[root_row.key], False

        if ledger.root_account_id is not None and ledger.root_account_id in by_id:
            return by_id[ledger.root_account_id], False

        code = root_row.code if root_row else settings.coa_root_fallback_code
        existing = resolve.get(normalize_code(code))
        if existing is not None:
            return existing, False

        root = Account(
            id=uuid.uuid4(),
            ledger_id=ledger.id,
            code=code,
            name=root_row.name if root_row else settings.coa_root_fallback_name,
            kind=root_row.kind if root_row else int(AccountTypeKind.ASSET),
            role=root_row.role if root_row else None,
            is_placeholder=True,
            is_active=True,
            is_hidden=False,
            commodity_id=ledger.currency_commodity_id,
            commodity_scu=scu,
        )
        logger.debug(f"Creating root account {code!r} for ledger {ledger.id}")
        return root, True

    @staticmethod
    def _validate_parents(
        body: Iterable[PreparedRow],
        resolve: Dict[str, Account],
        row_keys: set,
    ) -> None:
        for r in body:
            if r.parent_key is None:
                continue
            if r.parent_key == r.key:
                raise CyclicHierarchyError([r.code, r.code])
            if r.parent_key not in resolve and r.parent_key not in row_keys:
                raise MissingParentError(r.code, r.parent_code)

    @staticmethod
    def _validate_tree(
        body: List[PreparedRow],
        existing: List[Account],
        resolve: Dict[str, Account],
        by_id: Dict[uuid.UUID, Account],
        root: Account,
        row_keys: set,
    ) -> None:
        """
        Check the parent links the import would leave behind: no cycles, and
        the root as the only account without a parent.
        """

        def canonical(key: str) -> str:
            account = resolve.get(key)
            return account.code_key if account is not None else key

        parent_of: Dict[str, Optional[str]] = {root.code_key: None}
        for account in existing:
            if account is root or account.code_key in row_keys:
                continue
            parent = by_id.get(account.parent_id) if account.parent_id else None
            parent_of[account.code_key] = parent.code_key if parent is not None else None
        for r in body:
            parent_of[r.key] = canonical(r.parent_key) if r.parent_key else root.code_key

        cycle = find_cycle(parent_of)
        if cycle:
            raise CyclicHierarchyError(cycle)

        parentless = sorted(
            resolve[key].code if key in resolve else key
            for key, parent in parent_of.items()
            if parent is None and key != root.code_key
        )
        if parentless:
            raise RootConflictError(root.code, parentless)
