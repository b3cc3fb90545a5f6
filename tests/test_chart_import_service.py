"""
Ledgerbook - Chart of Accounts Import Tests

Tests for the two-pass chart-of-accounts importer: tree materialization,
idempotent re-imports, placeholder derivation and structural validation.
"""

import json
from uuid import uuid4

import pytest

from ledgerbook.config import settings
from ledgerbook.models.accounting import Account
from ledgerbook.models.ledger import Ledger
from ledgerbook.schemas.chart_of_accounts import DuplicateCodePolicy
from ledgerbook.services.chart_import_service import (
    ChartImportService,
    decode_chart_rows,
    find_cycle,
    load_chart_rows,
    prepare_rows,
)
from ledgerbook.services.ledger_service import LedgerService
from ledgerbook.services.ledger_store import LedgerStoragePort
from ledgerbook.utils.error_handling import (
    CyclicHierarchyError,
    DecodeFailedError,
    DuplicateCodeError,
    LedgerArchivedError,
    MissingParentError,
    ResourceNotFoundError,
    RootConflictError,
    StorageError,
)
from tests.fixtures.chart_rows import make_row


def tree_signature(accounts):
    """Comparable view of a tree: code -> (name, kind, role, placeholder, parent code)."""
    by_id = {a.id: a for a in accounts}
    return {
        a.code: (
            a.name,
            a.kind,
            a.role,
            a.is_placeholder,
            by_id[a.parent_id].code if a.parent_id else None,
        )
        for a in accounts
    }


class TestScenarioA:
    """Root "1" -> "1000" -> "1100"."""

    @pytest.mark.asyncio
    async def test_builds_three_level_tree(self, importer, store, by_code, test_ledger, scenario_a_rows):
        """The declared root row becomes the ledger root."""
        summary = await importer.import_rows(test_ledger, scenario_a_rows)

        accounts = await by_code(store, test_ledger)
        assert set(accounts) == {"1", "1000", "1100"}
        root = accounts["1"]
        assert root.parent_id is None
        assert accounts["1000"].parent_id == root.id
        assert accounts["1100"].parent_id == accounts["1000"].id
        assert test_ledger.root_account_id == root.id

        assert summary.root_code == "1"
        assert summary.created == 3
        assert summary.updated == 0
        assert summary.total_accounts == 3

    @pytest.mark.asyncio
    async def test_placeholders_derived_from_children(self, imported_ledger, store, by_code):
        """Accounts named as a parent become placeholders; leaves do not."""
        accounts = await by_code(store, imported_ledger)

        assert accounts["1"].is_placeholder is True
        assert accounts["1000"].is_placeholder is True
        assert accounts["1100"].is_placeholder is False

    @pytest.mark.asyncio
    async def test_accounts_carry_ledger_commodity(self, imported_ledger, store, test_commodity):
        """Every account is denominated in the ledger currency."""
        for account in await store.find_accounts_by_ledger(imported_ledger.id):
            assert account.ledger_id == imported_ledger.id
            assert account.commodity_id == test_commodity.id
            assert account.commodity_scu == 100


class TestIdempotence:
    """Re-importing the same rows leaves the tree unchanged."""

    @pytest.mark.asyncio
    async def test_reimport_same_rows(self, importer, store, test_ledger, scenario_a_rows):
        await importer.import_rows(test_ledger, scenario_a_rows)
        first = await store.find_accounts_by_ledger(test_ledger.id)
        first_ids = {a.code: a.id for a in first}
        first_tree = tree_signature(first)

        summary = await importer.import_rows(test_ledger, scenario_a_rows)
        second = await store.find_accounts_by_ledger(test_ledger.id)

        assert len(second) == 3
        assert tree_signature(second) == first_tree
        assert {a.code: a.id for a in second} == first_ids
        assert summary.created == 0
        assert summary.updated == 2

    @pytest.mark.asyncio
    async def test_scenario_c_leaf_becomes_placeholder(self, importer, store, by_code, imported_ledger, scenario_a_rows):
        """Adding a child to "1100" flips it to a placeholder without touching its id or name."""
        before = (await by_code(store, imported_ledger))["1100"]
        before_id, before_name = before.id, before.name

        rows = scenario_a_rows + [make_row("1101", parent="1100", level=3)]
        await importer.import_rows(imported_ledger, rows)

        accounts = await by_code(store, imported_ledger)
        assert accounts["1100"].is_placeholder is True
        assert accounts["1100"].id == before_id
        assert accounts["1100"].name == before_name
        assert accounts["1101"].parent_id == before_id
        assert accounts["1101"].is_placeholder is False

    @pytest.mark.asyncio
    async def test_reimport_overwrites_attributes(self, importer, store, by_code, imported_ledger):
        """A re-imported code takes the new name, kind and role."""
        rows = [
            make_row("1", level=0),
            make_row("1000", parent="1", name="Everything", kind=2, role=7),
            make_row("1100", parent="1000", name="Card", kind=2, role=8),
        ]
        await importer.import_rows(imported_ledger, rows)

        account = (await by_code(store, imported_ledger))["1100"]
        assert account.name == "Card"
        assert account.kind == 2
        assert account.role == 8

    @pytest.mark.asyncio
    async def test_codes_match_case_insensitively(self, importer, store, test_ledger):
        """Codes are trimmed and case-folded before matching."""
        await importer.import_rows(test_ledger, [make_row("R", level=0), make_row("ab-1", parent="R")])
        await importer.import_rows(test_ledger, [make_row(" r ", level=0), make_row("  AB-1 ", parent="r")])

        accounts = await store.find_accounts_by_ledger(test_ledger.id)
        assert len(accounts) == 2


class TestRootResolution:
    """Choosing the root account."""

    @pytest.mark.asyncio
    async def test_fallback_root_without_root_row(self, importer, store, by_code, test_ledger):
        """With no root row and no ledger root, a fallback root is synthesized."""
        summary = await importer.import_rows(test_ledger, [make_row("1000", parent=None, level=1)])

        accounts = await by_code(store, test_ledger)
        root = accounts[settings.coa_root_fallback_code]
        assert summary.root_code == settings.coa_root_fallback_code
        assert root.name == settings.coa_root_fallback_name
        assert root.is_placeholder is True
        assert accounts["1000"].parent_id == root.id

    @pytest.mark.asyncio
    async def test_existing_ledger_root_is_reused(self, importer, store, imported_ledger):
        """A different root row code does not replace an existing ledger root."""
        root_id = imported_ledger.root_account_id
        summary = await importer.import_rows(
            imported_ledger,
            [make_row("ROOT-2", level=0), make_row("2000", parent="ROOT-2", kind=2, role=7)],
        )

        accounts = await store.find_accounts_by_ledger(imported_ledger.id)
        assert summary.root_account_id == root_id
        assert [a.code for a in accounts if a.parent_id is None] == ["1"]
        assert {a.code: a.parent_id for a in accounts}["2000"] == root_id

    @pytest.mark.asyncio
    async def test_root_row_naming_existing_child_rejected(self, importer, store, db_session, imported_ledger):
        """Promoting an existing child to root would orphan the current root."""
        root_id = imported_ledger.root_account_id
        before = tree_signature(await store.find_accounts_by_ledger(imported_ledger.id))

        with pytest.raises(RootConflictError) as exc_info:
            await importer.import_rows(
                imported_ledger,
                [make_row("1000", level=0), make_row("1100", parent="1000", level=1)],
            )

        assert exc_info.value.details["root_code"] == "1000"
        assert exc_info.value.details["parentless"] == ["1"]
        assert imported_ledger.root_account_id == root_id
        assert tree_signature(await store.find_accounts_by_ledger(imported_ledger.id)) == before
        await LedgerService(db_session).verify_tree(imported_ledger)

    @pytest.mark.asyncio
    async def test_stray_parentless_account_blocks_import(self, importer, db_session, imported_ledger, scenario_a_rows):
        db_session.add(Account(
            id=uuid4(),
            ledger_id=imported_ledger.id,
            code="LOOSE",
            name="Loose",
            is_placeholder=False,
            is_active=True,
            is_hidden=False,
            commodity_scu=100,
        ))
        await db_session.commit()

        with pytest.raises(RootConflictError) as exc_info:
            await importer.import_rows(imported_ledger, scenario_a_rows)

        assert exc_info.value.details["parentless"] == ["LOOSE"]

    @pytest.mark.asyncio
    async def test_rows_without_parent_attach_to_root(self, importer, store, by_code, test_ledger):
        rows = [make_row("0", level=0), make_row("A", level=1), make_row("B", level=1)]
        summary = await importer.import_rows(test_ledger, rows)

        accounts = await by_code(store, test_ledger)
        assert accounts["A"].parent_id == accounts["0"].id
        assert accounts["B"].parent_id == accounts["0"].id
        assert summary.orphans == 2


class TestOrdering:
    """Rows may reference parents that appear later."""

    @pytest.mark.asyncio
    async def test_child_before_parent(self, importer, store, by_code, test_ledger):
        rows = [
            make_row("1110", parent="1100", level=3),
            make_row("1100", parent="1000", level=2),
            make_row("1000", parent="1", level=1),
            make_row("1", level=0),
        ]
        await importer.import_rows(test_ledger, rows)

        accounts = await by_code(store, test_ledger)
        assert accounts["1110"].parent_id == accounts["1100"].id
        assert accounts["1100"].parent_id == accounts["1000"].id
        assert accounts["1000"].parent_id == accounts["1"].id
        assert accounts["1100"].is_placeholder is True


class TestValidation:
    """Structural failures abort the import before any write."""

    @pytest.mark.asyncio
    async def test_scenario_d_missing_parent_fails(self, importer, store, test_ledger):
        """An unresolved parentCode raises MissingParentError and writes nothing."""
        rows = [make_row("1", level=0), make_row("1000", parent="9999")]

        with pytest.raises(MissingParentError) as exc_info:
            await importer.import_rows(test_ledger, rows)

        assert exc_info.value.details["parent_code"] == "9999"
        assert await store.find_accounts_by_ledger(test_ledger.id) == []

    @pytest.mark.asyncio
    async def test_failed_import_keeps_previous_tree(self, importer, store, imported_ledger):
        before = tree_signature(await store.find_accounts_by_ledger(imported_ledger.id))

        with pytest.raises(MissingParentError):
            await importer.import_rows(imported_ledger, [make_row("1", level=0), make_row("X", parent="nope")])

        after = tree_signature(await store.find_accounts_by_ledger(imported_ledger.id))
        assert after == before

    @pytest.mark.asyncio
    async def test_duplicate_codes_fail_by_default(self, importer, test_ledger):
        rows = [make_row("1", level=0), make_row("A"), make_row(" a ")]

        with pytest.raises(DuplicateCodeError) as exc_info:
            await importer.import_rows(test_ledger, rows)

        assert exc_info.value.details["codes"] == ["a"]

    @pytest.mark.asyncio
    async def test_duplicate_codes_overwrite_policy(self, importer, store, by_code, test_ledger):
        """With OVERWRITE the last row for a code wins."""
        rows = [make_row("1", level=0), make_row("A", name="First"), make_row("A", name="Second")]

        await importer.import_rows(test_ledger, rows, duplicate_policy=DuplicateCodePolicy.OVERWRITE)

        accounts = await by_code(store, test_ledger)
        assert accounts["A"].name == "Second"
        assert len(accounts) == 2

    @pytest.mark.asyncio
    async def test_cycle_rejected(self, importer, store, test_ledger):
        rows = [make_row("1", level=0), make_row("A", parent="B"), make_row("B", parent="A")]

        with pytest.raises(CyclicHierarchyError):
            await importer.import_rows(test_ledger, rows)

        assert await store.find_accounts_by_ledger(test_ledger.id) == []

    @pytest.mark.asyncio
    async def test_self_parent_rejected(self, importer, test_ledger):
        with pytest.raises(CyclicHierarchyError):
            await importer.import_rows(test_ledger, [make_row("1", level=0), make_row("A", parent="a")])

    @pytest.mark.asyncio
    async def test_empty_rows_rejected(self, importer, test_ledger):
        with pytest.raises(DecodeFailedError):
            await importer.import_rows(test_ledger, [])

    @pytest.mark.asyncio
    async def test_blank_codes_only_rejected(self, importer, test_ledger):
        with pytest.raises(DecodeFailedError):
            await importer.import_rows(test_ledger, [make_row("   ", level=0)])

    @pytest.mark.asyncio
    async def test_blank_codes_are_skipped(self, importer, test_ledger):
        rows = [make_row("1", level=0), make_row(" ", parent="1"), make_row("A", parent="1")]

        summary = await importer.import_rows(test_ledger, rows)

        assert summary.rows_received == 3
        assert summary.rows_skipped == 1
        assert summary.total_accounts == 2

    @pytest.mark.asyncio
    async def test_archived_ledger_rejected(self, importer, db_session, test_ledger, scenario_a_rows):
        test_ledger.is_active = False
        await db_session.commit()

        with pytest.raises(LedgerArchivedError):
            await importer.import_rows(test_ledger, scenario_a_rows)


class FailingSaveStore(LedgerStoragePort):
    """In-memory port whose save always fails."""

    def __init__(self):
        self.upserted = []
        self.rolled_back = False

    async def get_ledger(self, ledger_id):
        return None

    async def find_accounts_by_ledger(self, ledger_id):
        return []

    async def find_splits_by_ledger(self, ledger_id):
        return []

    async def upsert_account(self, account):
        self.upserted.append(account)

    async def save_all(self):
        raise StorageError("disk full")

    async def rollback(self):
        self.rolled_back = True


class TestAtomicity:
    """Storage failures roll back the whole import."""

    @pytest.mark.asyncio
    async def test_save_failure_rolls_back(self, scenario_a_rows):
        storage = FailingSaveStore()
        ledger = Ledger(id=uuid4(), name="Transient", currency_code="USD", precision=2, is_active=True)

        with pytest.raises(StorageError):
            await ChartImportService(storage).import_rows(ledger, scenario_a_rows)

        assert storage.rolled_back is True
        assert len(storage.upserted) == 3


class TestBundledChart:
    """The chart shipped with the package."""

    @pytest.mark.asyncio
    async def test_placeholder_iff_named_as_parent(self, importer, store, test_ledger):
        rows = load_chart_rows()
        await importer.import_from_file(test_ledger)

        parent_codes = {r.parent_code for r in rows if r.parent_code}
        accounts = {a.code: a for a in await store.find_accounts_by_ledger(test_ledger.id)}
        for row in rows:
            if row.is_root_row:
                continue
            assert accounts[row.code].is_placeholder == (row.code in parent_codes), row.code

    @pytest.mark.asyncio
    async def test_tree_shape(self, db_session, importer, store, test_ledger):
        """Exactly one parentless account, equal to the ledger root, and no cycles."""
        await importer.import_from_file(test_ledger)

        accounts = await store.find_accounts_by_ledger(test_ledger.id)
        tops = [a for a in accounts if a.parent_id is None]
        assert len(tops) == 1
        assert tops[0].id == test_ledger.root_account_id
        await LedgerService(db_session).verify_tree(test_ledger)


class TestLoader:
    """Decoding chart rows from JSON."""

    def test_bundled_chart_loads(self):
        rows = load_chart_rows()
        assert len(rows) == 31
        assert sum(1 for r in rows if r.is_root_row) == 1

    def test_missing_file(self, tmp_path):
        with pytest.raises(ResourceNotFoundError):
            load_chart_rows(tmp_path / "missing.json")

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "chart.json"
        path.write_text("{not json")
        with pytest.raises(DecodeFailedError):
            load_chart_rows(path)

    def test_empty_array(self):
        with pytest.raises(DecodeFailedError) as exc_info:
            decode_chart_rows("[]")
        assert exc_info.value.details["reason"] == "no rows"

    def test_kind_out_of_range(self):
        payload = json.dumps([{"code": "1", "parentCode": None, "name": "Root", "level": 0, "kind": 9, "role": 1}])
        with pytest.raises(DecodeFailedError):
            decode_chart_rows(payload)

    def test_camel_case_fields(self):
        payload = json.dumps([
            {"code": "1", "parentCode": None, "name": "Root", "level": 0, "kind": 1, "role": 1},
            {"code": "2", "parentCode": "1", "name": "Child", "level": 1, "kind": 1, "role": 2, "isPlaceholder": False},
        ])
        rows = decode_chart_rows(payload)
        assert rows[1].parent_code == "1"
        assert rows[1].is_placeholder is False


class TestHelpers:
    """Row preparation and cycle detection."""

    def test_prepare_rows_trims(self):
        prepared = prepare_rows([make_row("  A1 ", parent=" P ", name=" Cash ")], DuplicateCodePolicy.FAIL)
        assert prepared[0].code == "A1"
        assert prepared[0].key == "a1"
        assert prepared[0].parent_key == "p"
        assert prepared[0].name == "Cash"

    def test_find_cycle(self):
        assert find_cycle({"a": "b", "b": "c", "c": None}) is None
        cycle = find_cycle({"a": "b", "b": "c", "c": "a"})
        assert cycle is not None
        assert cycle[0] == cycle[-1]
