"""
Unit Tests - Taxonomy
"""
import uuid

import pytest

from resalebooks.database.models import Category, Department, SalePlatformOption
from resalebooks.errors import Conflict, InvalidHierarchy, InvalidInput
from resalebooks.store import SqlRecordStore
from resalebooks.taxonomy import (
    GroupingService,
    PlatformCatalog,
    TaxonomyLevel,
    TaxonomyResolver,
    TaxonomySelection,
    TaxonomyTriple,
    quick_find,
)


class RacingStore(SqlRecordStore):
    """Another writer creates the same row just before our insert lands"""

    async def insert(self, table, row):
        await super().insert(table, row)
        return await super().insert(table, row)


class TestEnsure:
    """Tests for TaxonomyResolver.ensure"""

    async def test_creates_then_reuses_case_insensitively(self, store):
        resolver = TaxonomyResolver(store)

        first = await resolver.ensure(TaxonomyLevel.DEPARTMENT, "  Electronics ")
        second = await resolver.ensure(TaxonomyLevel.DEPARTMENT, "electronics")

        assert first.name == "Electronics"
        assert second.id == first.id
        assert len(await store.select("departments")) == 1

    async def test_empty_name_rejected(self, store):
        resolver = TaxonomyResolver(store)

        with pytest.raises(InvalidInput):
            await resolver.ensure(TaxonomyLevel.DEPARTMENT, "   ")

    async def test_category_needs_parent(self, store):
        resolver = TaxonomyResolver(store)

        with pytest.raises(InvalidHierarchy):
            await resolver.ensure(TaxonomyLevel.CATEGORY, "Phones")

    async def test_unknown_parent_rejected(self, store):
        resolver = TaxonomyResolver(store)

        with pytest.raises(InvalidHierarchy):
            await resolver.ensure(TaxonomyLevel.SUBCATEGORY, "Android", parent_id=str(uuid.uuid4()))

    async def test_same_name_under_different_parents(self, store):
        resolver = TaxonomyResolver(store)
        home = await resolver.ensure_department("Home")
        garden = await resolver.ensure_department("Garden")

        a = await resolver.ensure_category(home.id, "Tools")
        b = await resolver.ensure_category(garden.id, "tools")

        assert a.id != b.id
        assert b.parent_id == garden.id

    async def test_reuses_shared_row(self, store, seed_shared):
        shared_id = await seed_shared(Department, name="Clothing")
        resolver = TaxonomyResolver(store)

        node = await resolver.ensure(TaxonomyLevel.DEPARTMENT, "CLOTHING")

        assert node.id == str(shared_id)
        assert len(await store.select("departments")) == 1

    async def test_non_ascii_name_reused(self, store):
        resolver = TaxonomyResolver(store)

        first = await resolver.ensure_department("Électronique")
        second = await resolver.ensure_department("Électronique")

        assert second.id == first.id
        assert len(await store.select("departments")) == 1

    async def test_other_actors_rows_do_not_dedup(self, store, other_store):
        theirs = await TaxonomyResolver(other_store).ensure_department("Toys")

        mine = await TaxonomyResolver(store).ensure_department("toys")

        assert mine.id != theirs.id

    async def test_conflict_on_insert_returns_existing_row(self, session_factory, store):
        racing = RacingStore(session_factory, store.actor_id)

        node = await TaxonomyResolver(racing).ensure_department("Music")

        rows = await store.select("departments")
        assert len(rows) == 1
        assert node.id == str(rows[0]["id"])


class TestListing:
    """Tests for taxonomy lists and quick find"""

    async def test_lists_are_ordered_and_parent_scoped(self, store, seed_shared):
        shared_dep = await seed_shared(Department, name="Books")
        await seed_shared(Category, name="Fiction", department_id=shared_dep)
        resolver = TaxonomyResolver(store)
        await resolver.ensure_category(str(shared_dep), "Comics")
        other = await resolver.ensure_department("Art")
        await resolver.ensure_category(other.id, "Prints")

        departments = await resolver.list_departments()
        categories = await resolver.list_categories(str(shared_dep))

        assert [d.name for d in departments] == ["Art", "Books"]
        assert [c.name for c in categories] == ["Comics", "Fiction"]
        assert await resolver.list_categories(None) == []

    async def test_list_all_triples_includes_categories_without_subcategories(self, store):
        resolver = TaxonomyResolver(store)
        dep = await resolver.ensure_department("Electronics")
        phones = await resolver.ensure_category(dep.id, "Phones")
        await resolver.ensure_subcategory(phones.id, "Android")
        await resolver.ensure_category(dep.id, "Cameras")

        triples = await resolver.list_all_triples()

        assert [(t.category, t.subcategory) for t in triples] == [("Cameras", ""), ("Phones", "Android")]

    def test_quick_find_ranks_subcategory_matches_first(self):
        triples = [
            TaxonomyTriple("d1", "Electronics", "c1", "Phones", "s1", "Android"),
            TaxonomyTriple("d1", "Electronics", "c2", "Cameras", "s2", "Lenses"),
            TaxonomyTriple("d2", "Home", "c3", "Kitchen", "s3", "Phone Stands"),
        ]

        results = quick_find(triples, "phone")

        assert [t.subcategory for t in results] == ["Phone Stands", "Android"]

    def test_quick_find_requires_positive_score_and_limits(self):
        triples = [TaxonomyTriple("d", "Dept", f"c{i}", f"Cat {i}") for i in range(20)]

        assert quick_find(triples, "zzz") == []
        assert quick_find(triples, "") == []
        assert len(quick_find(triples, "cat")) == 12


class TestSelection:
    """Tests for the cascading picker state"""

    async def test_changing_department_clears_lower_levels(self, store):
        resolver = TaxonomyResolver(store)
        dep = await resolver.ensure_department("Electronics")
        cat = await resolver.ensure_category(dep.id, "Phones")
        selection = TaxonomySelection(resolver)
        await selection.load()

        await selection.pick_department(selection.department.options[0])
        await selection.pick_category(cat)
        selection.type_subcategory("Android")
        selection.type_department("Electronic")

        assert selection.department.id is None
        assert selection.category.text == ""
        assert selection.category.id is None
        assert selection.category.options == []
        assert selection.subcategory.text == ""

    async def test_changing_category_clears_subcategory_only(self, store):
        resolver = TaxonomyResolver(store)
        dep = await resolver.ensure_department("Electronics")
        selection = TaxonomySelection(resolver)
        await selection.load()
        await selection.pick_department(selection.department.options[0])

        selection.type_category("Phones")
        selection.type_subcategory("Android")
        selection.type_category("Tablets")

        assert selection.department.id == dep.id
        assert selection.subcategory.text == ""

    async def test_resolve_creates_typed_levels(self, store):
        resolver = TaxonomyResolver(store)
        selection = TaxonomySelection(resolver)
        selection.type_department("Garden")
        selection.type_category("Tools")
        selection.type_subcategory("Shears")

        ids = await selection.resolve()

        subs = await resolver.list_subcategories(ids.category_id)
        assert [s.id for s in subs] == [ids.subcategory_id]

    async def test_resolve_requires_all_levels(self, store):
        selection = TaxonomySelection(TaxonomyResolver(store))
        selection.type_department("Garden")

        assert not selection.can_save
        with pytest.raises(InvalidInput):
            await selection.resolve()


class TestGroupings:
    """Tests for GroupingService"""

    async def _triple(self, store):
        resolver = TaxonomyResolver(store)
        dep = await resolver.ensure_department("Electronics")
        cat = await resolver.ensure_category(dep.id, "Phones")
        sub = await resolver.ensure_subcategory(cat.id, "Android")
        return dep, cat, sub

    async def test_add_and_list_with_names(self, store):
        dep, cat, sub = await self._triple(store)
        service = GroupingService(store)

        await service.add_grouping(dep.id, cat.id, sub.id)
        groupings = await service.list_groupings()

        assert [(g.department, g.category, g.subcategory) for g in groupings] == [
            ("Electronics", "Phones", "Android")
        ]

    async def test_inconsistent_triple_rejected(self, store):
        dep, cat, sub = await self._triple(store)
        other = await TaxonomyResolver(store).ensure_department("Garden")

        with pytest.raises(InvalidHierarchy):
            await GroupingService(store).add_grouping(other.id, cat.id, sub.id)

    async def test_save_selection_then_delete(self, store):
        selection = TaxonomySelection(TaxonomyResolver(store))
        selection.type_department("Garden")
        selection.type_category("Tools")
        selection.type_subcategory("Shears")
        service = GroupingService(store)

        saved = await service.save_selection(selection)
        await service.delete_grouping(saved["id"])

        assert await service.list_groupings() == []


class TestPlatforms:
    """Tests for PlatformCatalog"""

    async def test_duplicate_rejected_case_insensitively(self, store, seed_shared):
        await seed_shared(SalePlatformOption, name="eBay", is_default=True)
        catalog = PlatformCatalog(store)

        with pytest.raises(Conflict) as exc:
            await catalog.add_platform("EBAY")
        assert '"eBay"' in exc.value.message

    async def test_non_ascii_duplicate_names_existing_platform(self, store):
        catalog = PlatformCatalog(store)
        await catalog.add_platform("Leboncoin Été")

        with pytest.raises(Conflict) as exc:
            await catalog.add_platform("Leboncoin Été")
        assert '"Leboncoin Été"' in exc.value.message

    async def test_own_platforms_listed_first(self, store, seed_shared):
        await seed_shared(SalePlatformOption, name="Etsy", is_default=True)
        catalog = PlatformCatalog(store)
        await catalog.add_platform("Vinted")
        await catalog.add_platform("Depop")

        names = [p["name"] for p in await catalog.list_platforms()]

        assert names == ["Depop", "Vinted", "Etsy"]

    async def test_rename_to_same_name_allowed(self, store):
        catalog = PlatformCatalog(store)
        row = await catalog.add_platform("Depop")

        renamed = await catalog.rename_platform(row["id"], "depop")

        assert renamed["name"] == "depop"

    async def test_empty_name_rejected(self, store):
        with pytest.raises(InvalidInput):
            await PlatformCatalog(store).add_platform("  ")
