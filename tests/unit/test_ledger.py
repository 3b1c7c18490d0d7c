"""
Unit Tests - Ledger
"""
import asyncio
import csv
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Dict, Optional

import pytest

from resalebooks.errors import InvalidInput, NotFound, StoreUnavailable
from resalebooks.ledger import (
    LedgerFilters,
    LedgerRow,
    LedgerSession,
    SortSpec,
    SourceType,
    ViewConsistency,
    apply_filters,
    export_filename,
    fetch_ledger_rows,
    load_ledger,
    normalize_row,
    paginate,
    rows_to_csv,
    scope_to_tab,
    sort_rows,
    to_source_patch,
)
from resalebooks.reconciliation import (
    ExpenseEntry,
    InventoryEntry,
    RebateEntry,
    ReconciliationService,
    RefundEntry,
    SaleEntry,
)
from resalebooks.store import DateRange, Query, RecordStore

MARCH = DateRange(date(2025, 3, 1), date(2025, 3, 31))
APRIL = DateRange(date(2025, 4, 1), date(2025, 4, 30))


def row(n: int, source=SourceType.SALE, **values) -> LedgerRow:
    return LedgerRow(id=f"{source.value}:{n:03d}", source_type=source, source_id=f"{n:03d}", **values)


class GatedStore(RecordStore):
    """Wraps a store; selects for a blocked date range wait on an event"""

    def __init__(self, inner: RecordStore):
        super().__init__(inner.actor_id)
        self.inner = inner
        self.blocked: Dict[DateRange, asyncio.Event] = {}

    async def select(self, table, query: Optional[Query] = None):
        gate = self.blocked.get(query.date_range) if query else None
        if gate is not None:
            await gate.wait()
        return await self.inner.select(table, query)

    async def insert(self, table, row):
        return await self.inner.insert(table, row)

    async def update(self, table, row_id, patch):
        return await self.inner.update(table, row_id, patch)

    async def delete(self, table, row_id):
        return await self.inner.delete(table, row_id)


class FailingStore(RecordStore):
    async def select(self, table, query=None):
        raise StoreUnavailable("connection refused", operation=f"select {table}")

    async def insert(self, table, row):
        raise NotImplementedError

    async def update(self, table, row_id, patch):
        raise NotImplementedError

    async def delete(self, table, row_id):
        raise NotImplementedError


class BrokenStore(FailingStore):
    async def select(self, table, query=None):
        raise RuntimeError("driver crashed")


async def seed_march(store):
    """One record of every type in March, plus a sale in April"""
    service = ReconciliationService(store)
    await service.record_inventory(
        InventoryEntry(title="Lamp", vendor="Flea Market", purchase_date="2025-03-02", purchase_price=5)
    )
    await service.record_sale(SaleEntry(item="Lamp", sale_price=40, platform="ebay", sale_date="2025-03-10"))
    await service.record_refund(RefundEntry(item="Mug", amount=6, refund_date="2025-03-12"))
    await service.record_expense(
        ExpenseEntry(gl_account="Postage", vendor="Post Office", description="Stamps", amount=3, date="2025-03-15")
    )
    await service.record_rebate(RebateEntry(vendor="Supplier", amount=2, date="2025-03-20"))
    await service.record_sale(SaleEntry(item="Chair", sale_price=25, platform="etsy", sale_date="2025-04-02"))


class TestNormalizeRow:
    """Tests for normalize_row"""

    def test_sale(self):
        result = normalize_row(
            SourceType.SALE,
            {"id": "s1", "sale_date": date(2025, 3, 10), "sale_price": "40.00", "item_sold": "Lamp",
             "platform": "ebay", "inventory_id": None},
        )

        assert result.id == "sale:s1"
        assert result.date == "2025-03-10"
        assert result.amount == 40.0
        assert result.description == "Lamp"
        assert result.related_id == ""
        assert result.vendor == ""

    def test_missing_values(self):
        result = normalize_row(SourceType.EXPENSE, {"id": "e1", "amount": None, "date": None})

        assert result.amount is None
        assert result.date is None
        assert result.ledger_account == ""

    def test_patch_rejects_fields_not_on_source(self):
        with pytest.raises(InvalidInput):
            to_source_patch(SourceType.REFUND, {"vendor": "Acme"})
        with pytest.raises(InvalidInput):
            to_source_patch(SourceType.SALE, {"related_id": "x"})

    def test_patch_maps_to_source_columns(self):
        patch = to_source_patch(SourceType.EXPENSE, {"ledger_account": "Office Supplies", "amount": "4.50"})

        assert patch == {"gl_account": "Supplies", "amount": Decimal("4.50")}

    def test_patch_rejects_missing_required_amount(self):
        for source in (SourceType.SALE, SourceType.REFUND, SourceType.REBATE):
            with pytest.raises(InvalidInput):
                to_source_patch(source, {"amount": None})

        assert to_source_patch(SourceType.EXPENSE, {"amount": None}) == {"amount": None}

    def test_patch_rejects_non_finite_amount(self):
        with pytest.raises(InvalidInput):
            to_source_patch(SourceType.EXPENSE, {"amount": "NaN"})


class TestViewPipeline:
    """Tests for tab scope, filters, sort and pagination"""

    def test_tab_scope(self):
        rows = [row(1), row(2, SourceType.EXPENSE), row(3, SourceType.REBATE)]

        assert [r.id for r in scope_to_tab(rows, "expense")] == ["expense:002"]
        assert len(scope_to_tab(rows, "all")) == 3
        with pytest.raises(InvalidInput):
            scope_to_tab(rows, "rebates")

    def test_search_is_case_insensitive_across_fields(self):
        rows = [
            row(1, description="Brass lamp"),
            row(2, SourceType.EXPENSE, vendor="Post Office"),
            row(3, SourceType.EXPENSE, bank_account="Lamplighter Bank"),
            row(4, description="Chair"),
        ]

        assert [r.id for r in apply_filters(rows, LedgerFilters(search=" LAMP"))] == ["sale:001", "expense:003"]
        assert len(apply_filters(rows, LedgerFilters(search="expense"))) == 2

    def test_amount_bounds_exclude_missing_amounts(self):
        rows = [row(1, amount=5.0), row(2, amount=50.0), row(3)]

        assert [r.id for r in apply_filters(rows, LedgerFilters(min_amount=10))] == ["sale:002"]
        assert [r.id for r in apply_filters(rows, LedgerFilters(max_amount=10))] == ["sale:001"]

    def test_platform_is_exact(self):
        rows = [row(1, platform="ebay"), row(2, platform="ebay-uk")]

        assert [r.id for r in apply_filters(rows, LedgerFilters(platform="ebay"))] == ["sale:001"]

    def test_missing_values_sort_last_both_directions(self):
        rows = [row(1, amount=10.0), row(2), row(3, amount=9.0), row(4, amount=100.0)]

        ascending = sort_rows(rows, SortSpec("amount", descending=False))
        descending = sort_rows(rows, SortSpec("amount", descending=True))

        assert [r.id for r in ascending] == ["sale:003", "sale:001", "sale:004", "sale:002"]
        assert [r.id for r in descending] == ["sale:004", "sale:001", "sale:003", "sale:002"]

    def test_descending_reverses_ascending_with_ties(self):
        rows = [row(i, vendor=v) for i, v in enumerate(["b", "a", "b", "", "a", "c"])]

        ascending = [r.id for r in sort_rows(rows, SortSpec("vendor", descending=False)) if r.vendor]
        descending = [r.id for r in sort_rows(rows, SortSpec("vendor", descending=True)) if r.vendor]

        assert descending == list(reversed(ascending))

    def test_text_sort_is_case_sensitive(self):
        rows = [row(1, description="apple"), row(2, description="Banana")]

        assert [r.description for r in sort_rows(rows, SortSpec("description", False))] == ["Banana", "apple"]

    def test_unknown_sort_key_rejected(self):
        with pytest.raises(InvalidInput):
            SortSpec("customer")

    def test_paginate(self):
        rows = [row(i) for i in range(23)]

        page = paginate(rows, 3, 10)

        assert page.total_pages == 3
        assert page.total_after_filter == 23
        assert len(page.rows) == 3
        assert paginate(rows, 9, 10).page == 3
        assert paginate([], 1, 10).total_pages == 1


class TestLoadLedger:
    """Tests for the store-backed ledger load"""

    async def test_merges_all_streams_in_range(self, store):
        await seed_march(store)

        page = await load_ledger(store, MARCH, page_size=25)

        assert page.total_after_filter == 5
        assert {r.source_type for r in page.rows} == set(SourceType)
        assert page.rows[0].date == "2025-03-20"

    async def test_row_limit_applies_per_stream(self, store):
        service = ReconciliationService(store)
        for day in range(1, 6):
            await service.record_sale(SaleEntry(item=f"Item {day}", sale_date=f"2025-03-{day:02d}"))

        rows = await fetch_ledger_rows(store, MARCH, row_limit=3)

        assert [r.date for r in rows] == ["2025-03-05", "2025-03-04", "2025-03-03"]

    async def test_other_actor_rows_excluded(self, store, other_store):
        await seed_march(other_store)

        page = await load_ledger(store, MARCH)

        assert page.rows == []


class TestLedgerSession:
    """Tests for LedgerSession"""

    async def test_refresh_and_sort_resets_page(self, store):
        await seed_march(store)
        session = LedgerSession(store, MARCH, page_size=2)
        await session.refresh()
        session.set_page(2)
        assert session.page == 2

        session.set_sort("amount")

        assert session.page == 1
        assert session.sort == SortSpec("amount", True)
        assert session.view.rows[0].amount == 40.0
        session.set_sort("amount")
        assert session.sort.descending is False

    async def test_page_size_change_resets_page(self, store):
        service = ReconciliationService(store)
        for day in range(1, 31):
            await service.record_rebate(RebateEntry(amount=day, date=f"2025-03-{day:02d}"))
        session = LedgerSession(store, MARCH, page_size=10)
        await session.refresh()
        session.set_page(3)
        assert session.page == 3

        session.set_page_size(25)

        assert session.page == 1
        assert session.view.total_pages == 2
        with pytest.raises(InvalidInput):
            session.set_page_size(7)

    async def test_filter_and_tab_changes_reset_page(self, store):
        service = ReconciliationService(store)
        for day in range(1, 31):
            await service.record_expense(ExpenseEntry(vendor="Acme", amount=day, date=f"2025-03-{day:02d}"))
        session = LedgerSession(store, MARCH, page_size=10)
        await session.refresh()

        session.set_page(3)
        await session.set_filters(LedgerFilters(search="acme"))
        assert session.page == 1
        assert session.view.total_after_filter == 30

        session.set_page(3)
        await session.set_tab("expense")
        assert session.page == 1
        assert session.view.total_pages == 3

        session.set_page(2)
        await session.set_filters(LedgerFilters(min_amount=5))
        assert session.page == 1
        assert session.view.total_after_filter == 26

    async def test_stale_load_is_discarded(self, store):
        await seed_march(store)
        gated = GatedStore(store)
        gate = asyncio.Event()
        gated.blocked[MARCH] = gate
        session = LedgerSession(gated, MARCH)

        slow = asyncio.create_task(session.refresh())
        await asyncio.sleep(0)
        assert await session.set_date_range(APRIL) is True
        gate.set()

        assert await slow is False
        assert [r.description for r in session.view.rows] == ["Chair"]
        assert session.date_range == APRIL

    async def test_fetch_failure_yields_zero_rows_and_error(self):
        session = LedgerSession(FailingStore("actor-1"), MARCH)

        await session.refresh()

        assert session.view.rows == []
        assert session.view.total_after_filter == 0
        assert "select" in session.error
        assert session.loading is False

    async def test_unexpected_failure_clears_loading(self):
        session = LedgerSession(BrokenStore("actor-1"), MARCH)

        with pytest.raises(RuntimeError):
            await session.refresh()

        assert session.loading is False

    async def test_patch_inline_keeps_position(self, store):
        await seed_march(store)
        session = LedgerSession(store, MARCH)
        await session.set_filters(LedgerFilters(search="office"))
        target = session.view.rows[0]

        patched = await session.patch_inline(target.id, {"vendor": "Courier", "description": "Labels"})

        assert session.consistency is ViewConsistency.PATCHED
        assert session.view.rows == [patched]
        assert patched.vendor == "Courier"
        await session.refresh()
        assert session.consistency is ViewConsistency.FRESH
        assert session.view.rows == []

    async def test_edit_reruns_pipeline(self, store):
        await seed_march(store)
        session = LedgerSession(store, MARCH)
        await session.set_tab("sale")
        sale = session.view.rows[0]

        await session.edit(sale.id, {"date": "2025-04-15"})

        assert session.view.rows == []
        assert session.consistency is ViewConsistency.FRESH

    async def test_failed_edit_leaves_view_untouched(self, store):
        await seed_march(store)
        session = LedgerSession(store, MARCH)
        await session.refresh()
        before = list(session.view.rows)
        target = next(r for r in before if r.source_type is SourceType.REFUND)
        await store.delete("refunds", target.source_id)

        with pytest.raises(NotFound):
            await session.patch_inline(target.id, {"description": "Gone"})

        assert session.view.rows == before
        assert session.consistency is ViewConsistency.FRESH

    async def test_delete_removes_source_record(self, store):
        await seed_march(store)
        session = LedgerSession(store, MARCH)
        await session.set_tab("expense")

        await session.delete(session.view.rows[0].id)

        assert session.view.rows == []
        assert await store.select("expenses") == []

    async def test_export_uses_filtered_rows_and_visible_columns(self, store):
        await seed_march(store)
        session = LedgerSession(store, MARCH, page_size=10)
        await session.set_filters(LedgerFilters(platform="ebay"))
        for key in ("ledger_account", "bank_account", "related_id", "vendor", "source_type"):
            session.set_column_visible(key, False)

        export = session.export_csv()

        assert export.filename == "transactions_2025-03-01_to_2025-03-31_platform_ebay.csv"
        assert list(csv.reader(StringIO(export.content))) == [
            ["Date", "Description", "Platform", "Amount"],
            ["2025-03-10", "Lamp", "ebay", "40.00"],
        ]


class TestExport:
    """Tests for CSV rendering"""

    def test_filename_parts(self):
        assert export_filename(MARCH) == "transactions_2025-03-01_to_2025-03-31.csv"
        assert export_filename(MARCH, "refund") == "transactions_2025-03-01_to_2025-03-31_refund.csv"
        assert (
            export_filename(MARCH, "sale", "Facebook Market")
            == "transactions_2025-03-01_to_2025-03-31_sale_platform_Facebook-Market.csv"
        )

    def test_quotes_only_where_needed(self):
        rows = [row(1, description='Box, "large"', amount=3.5, date="2025-03-01")]

        content = rows_to_csv(rows, ["date", "description", "amount"])

        assert content.splitlines() == ["Date,Description,Amount", '2025-03-01,"Box, ""large""",3.50']

    def test_header_only_when_empty(self):
        assert rows_to_csv([], ["date", "amount"]).strip() == "Date,Amount"
