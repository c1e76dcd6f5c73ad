"""Tests for memo list filtering, sorting and pagination."""

import pytest

from conftest import ALICE, BOB, add_memo, add_profile
from errors import ValidationError
from listing import (
    OWNER_LIST,
    PUBLIC_LIST,
    ListConfig,
    MemoLister,
    MemoQuery,
    Pagination,
    Scope,
    Strategy,
    count_by_category,
    filter_memos,
    get_page_links,
    matches_tags,
    matches_text,
)
from models import Memo, MemoForm
from viewer import MemoViewer


def memo(title="t", tags="", created_at="2024-01-01T00:00:00", **fields) -> Memo:
    values = {"id": title, "owner_id": ALICE, "category": "algorithm", "published": True, **fields}
    return Memo(title=title, tags=tags, created_at=created_at, updated_at=created_at, **values)


# =============================================================================
# Pure predicates
# =============================================================================


class TestMatchesTags:
    def test_case_insensitive_substring(self):
        assert matches_tags(memo(tags="dp graph"), "DP")
        assert matches_tags(memo(tags="segment-tree"), "seg")

    def test_any_token_matches(self):
        assert matches_tags(memo(tags="dp"), "graph dp")

    def test_no_token_matches(self):
        assert not matches_tags(memo(tags="dp"), "graph flow")

    def test_untagged_never_matches(self):
        assert not matches_tags(memo(tags=""), "dp")
        assert not matches_tags(memo(tags="   "), "dp")

    def test_empty_query_matches_all(self):
        assert matches_tags(memo(tags=""), "  ")


class TestMatchesText:
    def test_title_or_subtitle(self):
        assert matches_text(memo(title="Dijkstra"), "dijk")
        assert matches_text(memo(title="x", subtitle="Shortest paths"), "SHORTEST")
        assert not matches_text(memo(title="x", content="dijkstra"), "dijkstra")


class TestFilterMemos:
    def test_combined_filters(self):
        memos = [
            memo("a", tags="dp", category="math", favorite=True, created_at="2024-01-01"),
            memo("b", tags="dp", category="math", created_at="2024-01-02"),
            memo("c", tags="dp", category="algorithm", favorite=True, created_at="2024-01-03"),
        ]
        query = MemoQuery(scope=Scope.OWN, owner_id=ALICE, category="math", favorite_only=True, tags="dp")
        assert [m.title for m in filter_memos(memos, query)] == ["a"]

    def test_sort_direction(self):
        memos = [memo("old", created_at="2024-01-01"), memo("new", created_at="2024-02-01")]
        query = MemoQuery()
        assert [m.title for m in filter_memos(memos, query)] == ["new", "old"]
        assert [m.title for m in filter_memos(memos, query.toggled())] == ["old", "new"]

    def test_public_scope_hides_unpublished(self):
        memos = [memo("pub"), memo("priv", published=False)]
        assert [m.title for m in filter_memos(memos, MemoQuery())] == ["pub"]

    def test_counts(self):
        counts = count_by_category([memo("a", category="math"), memo("b", category="math"), memo("c")])
        assert counts["all"] == 3
        assert counts["math"] == 2
        assert counts["algorithm"] == 1
        assert counts["others"] == 0


class TestMemoQuery:
    def test_invalid_category(self):
        with pytest.raises(ValidationError):
            MemoQuery(category="graphs")

    def test_own_scope_needs_owner(self):
        with pytest.raises(ValidationError):
            MemoQuery(scope=Scope.OWN)

    def test_empty_category_means_all(self):
        assert MemoQuery(category="").category == "all"


class TestPageLinks:
    def test_small_total(self):
        assert get_page_links(1, 5) == [1, 2, 3, 4, 5]

    def test_ellipsis(self):
        assert get_page_links(10, 20) == [1, 2, 3, "...", 9, 10, 11, "...", 18, 19, 20]


# =============================================================================
# Lister against the datastore
# =============================================================================


def seed_public(store, count=5):
    for day in range(1, count + 1):
        add_memo(store, ALICE if day % 2 else BOB, f"pub{day}", f"2024-01-0{day}T00:00:00")
    add_memo(store, ALICE, "private", "2024-01-09T00:00:00", published=False)


class TestPublicCursorPaging:
    def lister(self, store):
        return MemoLister(store, ListConfig(Strategy.SERVER, Pagination.CURSOR, page_size=2))

    def test_pages_never_overlap(self, store):
        seed_public(store)
        lister = self.lister(store)
        query = MemoQuery()

        first = lister.first_page(query)
        second = lister.next_page(query, first)
        third = lister.next_page(query, second)

        assert [m.title for m in first.items] == ["pub5", "pub4"]
        assert [m.title for m in second.items] == ["pub3", "pub2"]
        assert [m.title for m in third.items] == ["pub1"]
        assert (first.has_more, second.has_more, third.has_more) == (True, True, False)
        stamps = [m.created_at for p in (first, second, third) for m in p.items]
        assert all(a > b for a, b in zip(stamps, stamps[1:]))

    def test_toggle_restarts_from_oldest(self, store):
        seed_public(store)
        lister = self.lister(store)
        query = MemoQuery()
        lister.first_page(query)

        ascending = lister.first_page(query.toggled())
        assert [m.title for m in ascending.items] == ["pub1", "pub2"]
        assert [m.title for m in lister.next_page(query.toggled(), ascending).items] == ["pub3", "pub4"]

    def test_substring_filter_fills_page(self, store):
        seed_public(store)
        add_memo(store, BOB, "graph memo", "2024-01-01T12:00:00", tags="graph")
        page = self.lister(store).first_page(MemoQuery(tags="GRA"))
        assert [m.title for m in page.items] == ["graph memo"]
        assert page.has_more is False

    def test_author_filter(self, store):
        seed_public(store)
        add_profile(store, BOB, "bob_ac")
        page = MemoLister(store, PUBLIC_LIST).first_page(MemoQuery(author="BOB"))
        assert {m.owner_id for m in page.items} == {BOB}
        assert [m.title for m in page.items] == ["pub4", "pub2"]

    def test_author_filter_without_match(self, store):
        seed_public(store)
        assert MemoLister(store, PUBLIC_LIST).first_page(MemoQuery(author="nobody")).items == []

    def test_category_pushdown(self, store):
        seed_public(store)
        add_memo(store, BOB, "math memo", "2024-01-08T00:00:00", category="math")
        page = MemoLister(store, PUBLIC_LIST).first_page(MemoQuery(category="math"))
        assert [m.title for m in page.items] == ["math memo"]


class TestOwnerOffsetPaging:
    def test_only_own_memos_including_private(self, store):
        seed_public(store)
        page = MemoLister(store, OWNER_LIST).fetch(MemoQuery(scope=Scope.OWN, owner_id=ALICE))
        assert [m.title for m in page.items] == ["private", "pub5", "pub3", "pub1"]
        assert page.total == 4
        assert page.total_pages == 1

    def test_pages(self, store):
        for day in range(1, 6):
            add_memo(store, ALICE, f"m{day}", f"2024-01-0{day}T00:00:00")
        lister = MemoLister(store, ListConfig(Strategy.CLIENT, Pagination.OFFSET, page_size=2))
        query = MemoQuery(scope=Scope.OWN, owner_id=ALICE)

        first = lister.fetch(query)
        last = lister.fetch(query, page=3)

        assert [m.title for m in first.items] == ["m5", "m4"]
        assert first.total_pages == 3
        assert [m.title for m in lister.next_page(query, first).items] == ["m3", "m2"]
        assert [m.title for m in last.items] == ["m1"]
        assert last.has_more is False

    def test_out_of_range_page_clamped(self, store):
        add_memo(store, ALICE, "only", "2024-01-01T00:00:00")
        page = MemoLister(store, OWNER_LIST).fetch(MemoQuery(scope=Scope.OWN, owner_id=ALICE), page=99)
        assert page.page == 1
        assert [m.title for m in page.items] == ["only"]

    def test_favorite_filter(self, store):
        add_memo(store, ALICE, "fav", "2024-01-01T00:00:00", favorite=True, published=False)
        add_memo(store, ALICE, "plain", "2024-01-02T00:00:00")
        query = MemoQuery(scope=Scope.OWN, owner_id=ALICE, favorite_only=True)
        assert [m.title for m in MemoLister(store, OWNER_LIST).fetch(query).items] == ["fav"]


# =============================================================================
# Publish scenario
# =============================================================================


class TestPublishScenario:
    def test_private_then_published(self, store, anonymous):
        dp = store.create_memo(ALICE, MemoForm(title="DP intro", tags="dp algorithm", category="algorithm"))
        own = MemoQuery(scope=Scope.OWN, owner_id=ALICE, category="algorithm")

        assert [m.title for m in MemoLister(store, OWNER_LIST).fetch(own).items] == ["DP intro"]
        assert store.category_counts(ALICE)["algorithm"] == 1
        assert MemoLister(store, PUBLIC_LIST).first_page(MemoQuery()).items == []

        store.update_memo(ALICE, dp.id, MemoForm(title="DP intro", tags="dp algorithm", category="algorithm", publish=True))

        assert [m.title for m in MemoLister(store, PUBLIC_LIST).first_page(MemoQuery()).items] == ["DP intro"]
        view = MemoViewer(anonymous, store).load_public(dp.id)
        assert view.memo.title == "DP intro"
        assert view.can_modify is False
