"""
Memo list filtering and pagination.

Two strategies, chosen per dataset by ``ListConfig``:

- CLIENT: fetch the owner's whole collection once, then filter, sort and
  page in memory. Meant for small owner-scoped sets.
- SERVER: push ownership/published/category/cursor predicates into the
  datastore query. Meant for the unbounded public list.

Substring predicates (title/subtitle, tags) are the same pure ``matches``
function in both strategies.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from enum import Enum

from config import ALL_CATEGORIES, CONFIG, VALID_CATEGORIES
from errors import ValidationError
from models import Memo
from store import Datastore
from utils import normalize_category, split_query


class Scope(str, Enum):
    OWN = "own"
    PUBLIC = "public"


class Strategy(str, Enum):
    CLIENT = "client"
    SERVER = "server"


class Pagination(str, Enum):
    OFFSET = "offset"
    CURSOR = "cursor"


@dataclass(frozen=True)
class ListConfig:
    strategy: Strategy
    pagination: Pagination
    page_size: int = field(default_factory=lambda: CONFIG.page_size)


OWNER_LIST = ListConfig(Strategy.CLIENT, Pagination.OFFSET)
PUBLIC_LIST = ListConfig(Strategy.SERVER, Pagination.CURSOR)


@dataclass(frozen=True)
class MemoQuery:
    """Combinable predicates plus sort direction for a memo list."""

    scope: Scope = Scope.PUBLIC
    owner_id: str | None = None
    category: str = ALL_CATEGORIES
    favorite_only: bool = False
    search: str = ""
    tags: str = ""
    author: str = ""  # AtCoder username substring, public scope only
    descending: bool = True

    def __post_init__(self) -> None:
        category, error = normalize_category(self.category or ALL_CATEGORIES, allow_all=True)
        if error:
            raise ValidationError(error)
        object.__setattr__(self, "category", category)
        if self.scope is Scope.OWN and not self.owner_id:
            raise ValidationError("An owner is required for the own-memo list")

    def toggled(self) -> MemoQuery:
        """Same filters, opposite sort direction."""
        return replace(self, descending=not self.descending)


@dataclass
class Page:
    items: list[Memo]
    has_more: bool
    cursor: str | None = None  # created_at of the last item
    page: int = 1
    total_pages: int | None = None
    total: int | None = None


# =============================================================================
# Pure predicates
# =============================================================================


def matches_text(memo: Memo, search: str) -> bool:
    """Case-insensitive substring over title and subtitle."""
    needle = search.strip().lower()
    if not needle:
        return True
    return needle in (memo.title or "").lower() or needle in (memo.subtitle or "").lower()


def matches_tags(memo: Memo, tag_query: str) -> bool:
    """Any query token is a case-insensitive substring of the memo's tags."""
    tokens = split_query(tag_query)
    if not tokens:
        return True
    if not memo.tags or not memo.tags.strip():
        return False
    haystack = memo.tags.lower()
    return any(token in haystack for token in tokens)


def matches(memo: Memo, query: MemoQuery) -> bool:
    if query.scope is Scope.OWN and memo.owner_id != query.owner_id:
        return False
    if query.scope is Scope.PUBLIC and not memo.published:
        return False
    if query.favorite_only and not memo.favorite:
        return False
    if query.category != ALL_CATEGORIES and memo.category != query.category:
        return False
    return matches_text(memo, query.search) and matches_tags(memo, query.tags)


def filter_memos(memos: Iterable[Memo], query: MemoQuery) -> list[Memo]:
    """Filter and sort by creation time; deterministic for a given snapshot."""
    selected = [m for m in memos if matches(m, query)]
    return sorted(selected, key=lambda m: (m.created_at, m.id), reverse=query.descending)


def count_by_category(memos: Iterable[Memo]) -> dict[str, int]:
    counts = {ALL_CATEGORIES: 0, **{c: 0 for c in VALID_CATEGORIES}}
    for memo in memos:
        counts[ALL_CATEGORIES] += 1
        if memo.category in counts:
            counts[memo.category] += 1
    return counts


def get_page_links(current: int, total: int) -> list:
    """Generate smart pagination links with ellipsis for gaps."""
    if total <= 7:
        return list(range(1, total + 1))

    links = []
    for p in range(1, total + 1):
        show_page = (
            p <= 3  # First 3 pages
            or p >= total - 2  # Last 3 pages
            or abs(p - current) <= 1  # Pages around current
        )
        if show_page:
            links.append(p)
        elif links[-1] != "...":
            links.append("...")
    return links


def _offset_page(memos: list[Memo], page: int, page_size: int) -> Page:
    total = len(memos)
    total_pages = max(1, (total + page_size - 1) // page_size)
    page = min(max(page, 1), total_pages)
    start = (page - 1) * page_size
    items = memos[start : start + page_size]
    return Page(
        items=items,
        has_more=page < total_pages,
        cursor=items[-1].created_at if items else None,
        page=page,
        total_pages=total_pages,
        total=total,
    )


# =============================================================================
# Lister
# =============================================================================


class MemoLister:
    """Produces pages of memos for a query under a fixed ``ListConfig``."""

    def __init__(self, store: Datastore, config: ListConfig) -> None:
        self.store = store
        self.config = config

    def first_page(self, query: MemoQuery) -> Page:
        return self.fetch(query)

    def fetch(self, query: MemoQuery, page: int = 1, cursor: str | None = None) -> Page:
        """One page. ``cursor`` is honoured by CURSOR pagination, ``page`` by OFFSET."""
        if self.config.strategy is Strategy.CLIENT:
            return self._fetch_client(query, page, cursor)
        return self._fetch_server(query, page, cursor)

    def next_page(self, query: MemoQuery, previous: Page) -> Page:
        if self.config.pagination is Pagination.CURSOR:
            return self.fetch(query, cursor=previous.cursor)
        return self.fetch(query, page=previous.page + 1)

    def _owner_scope(self, query: MemoQuery) -> tuple[str | None, list[str] | None]:
        """Resolve (owner_id, owner_ids) pushdown; author filter is an inner join."""
        if query.scope is Scope.OWN:
            return query.owner_id, None
        if query.author.strip():
            return None, self.store.user_ids_matching_name(query.author)
        return None, None

    def _fetch_client(self, query: MemoQuery, page: int, cursor: str | None) -> Page:
        owner_id, owner_ids = self._owner_scope(query)
        snapshot = self.store.find_memos(
            owner_id=owner_id,
            owner_ids=owner_ids,
            published=True if query.scope is Scope.PUBLIC else None,
        )
        memos = filter_memos(snapshot, query)
        if self.config.pagination is Pagination.OFFSET:
            return _offset_page(memos, page, self.config.page_size)
        if cursor:
            memos = [
                m
                for m in memos
                if (m.created_at < cursor if query.descending else m.created_at > cursor)
            ]
        return self._cursor_page(memos[: self.config.page_size + 1])

    def _fetch_server(self, query: MemoQuery, page: int, cursor: str | None) -> Page:
        owner_id, owner_ids = self._owner_scope(query)
        use_cursor = self.config.pagination is Pagination.CURSOR and cursor
        size = self.config.page_size
        kwargs = dict(
            owner_id=owner_id,
            owner_ids=owner_ids,
            published=True if query.scope is Scope.PUBLIC else None,
            category=None if query.category == ALL_CATEGORIES else query.category,
            created_before=cursor if use_cursor and query.descending else None,
            created_after=cursor if use_cursor and not query.descending else None,
            predicate=lambda m: matches(m, query),
            descending=query.descending,
        )
        if self.config.pagination is Pagination.OFFSET:
            return _offset_page(self.store.find_memos(**kwargs), page, size)
        # One extra row tells whether another page exists.
        return self._cursor_page(self.store.find_memos(limit=size + 1, **kwargs))

    def _cursor_page(self, rows: list[Memo]) -> Page:
        size = self.config.page_size
        items = rows[:size]
        return Page(
            items=items,
            has_more=len(rows) > size,
            cursor=items[-1].created_at if items else None,
        )
