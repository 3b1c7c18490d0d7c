"""
Unit Tests - Record Store
"""
from datetime import date
import uuid

import pytest

from resalebooks.database.models import Department, OwnerScope
from resalebooks.errors import Conflict, InvalidInput, NotFound
from resalebooks.store import DateRange, Query, coerce_date


class TestDateRange:
    """Tests for DateRange"""

    def test_parse_strings(self):
        window = DateRange.parse("2025-03-01", "2025-03-31")
        assert window.start == date(2025, 3, 1)
        assert date(2025, 3, 31) in window
        assert date(2025, 4, 1) not in window

    def test_start_after_end_rejected(self):
        with pytest.raises(InvalidInput):
            DateRange(date(2025, 4, 1), date(2025, 3, 1))

    def test_coerce_date_rejects_garbage(self):
        with pytest.raises(InvalidInput):
            coerce_date("next tuesday")

class TestSqlRecordStore:
    """Tests for SqlRecordStore"""

    async def test_insert_forces_owner_and_personal_scope(self, store):
        row = await store.insert("departments", {"name": "Toys", "owner_id": "someone-else", "scope": "shared"})

        assert row["owner_id"] == store.actor_id
        assert row["scope"] == OwnerScope.PERSONAL

    async def test_shared_rows_visible_personal_rows_private(self, store, other_store, seed_shared):
        await seed_shared(Department, name="Clothing")
        await other_store.insert("departments", {"name": "Secret"})

        names = {r["name"] for r in await store.select("departments")}

        assert names == {"Clothing"}

    async def test_transaction_rows_are_owner_only(self, store, other_store):
        await other_store.insert("sales", {"item_sold": "Lamp", "sale_date": "2025-03-02"})

        assert await store.select("sales") == []

    async def test_date_range_is_inclusive(self, store):
        for day in ("2025-02-28", "2025-03-01", "2025-03-31", "2025-04-01"):
            await store.insert("expenses", {"amount": 1, "date": day})

        rows = await store.select(
            "expenses",
            Query(date_range=DateRange.parse("2025-03-01", "2025-03-31"), order=[("date", True)]),
        )

        assert [r["date"] for r in rows] == [date(2025, 3, 1), date(2025, 3, 31)]

    async def test_ilike_matches_case_insensitively(self, store):
        await store.insert("departments", {"name": "Electronics"})

        rows = await store.select("departments", Query(ilike={"name": "ELECTRONICS"}))

        assert len(rows) == 1

    async def test_duplicate_name_raises_conflict(self, store):
        await store.insert("departments", {"name": "Books"})

        with pytest.raises(Conflict) as exc:
            await store.insert("departments", {"name": "books"})
        assert exc.value.operation == "insert departments"

    async def test_update_foreign_row_is_not_found(self, store, other_store):
        row = await other_store.insert("sales", {"item_sold": "Lamp"})

        with pytest.raises(NotFound):
            await store.update("sales", row["id"], {"item_sold": "Mine now"})

    async def test_delete_missing_row_is_not_found(self, store):
        with pytest.raises(NotFound):
            await store.delete("sales", uuid.uuid4())

    async def test_unknown_table_rejected(self, store):
        with pytest.raises(InvalidInput):
            await store.select("customers")

    async def test_require_names_operation(self, store):
        with pytest.raises(NotFound) as exc:
            await store.require("inventory", uuid.uuid4(), "decrement inventory")
        assert str(exc.value).startswith("decrement inventory:")
