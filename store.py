"""
Remote data client for memo-app, backed by LanceDB.

Tables:
- memos     one row per memo, owned by ``owner_id``
- comments  thread entries on published memos
- profiles  identity-provider mirror, one row per ``user_id``
- session_storage  per-browser-session drafts and cached views

LanceDB has no ORDER BY, so sorting happens after the ``where`` pushdown.
Ownership and authorship are checked here as well as in the UI.
"""

from __future__ import annotations

import sys
import threading
import uuid
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any, TypeVar

import lancedb
import pyarrow as pa
import pyarrow.compute as pc
from lancedb.index import BTree

from config import COMMENTS_TABLE, CONFIG, MEMOS_TABLE, PROFILES_TABLE, SESSION_STORAGE_TABLE, VALID_CATEGORIES
from errors import NotFound, PermissionDenied, StoreError, ValidationError
from models import Comment, Memo, MemoForm, Profile, SessionEntry
from session import SessionContext
from utils import escape_filter_value, normalize_category, normalize_tags, now_iso

M = TypeVar("M", Memo, Comment, Profile, SessionEntry)

_SCHEMAS: dict[str, type] = {
    MEMOS_TABLE: Memo,
    COMMENTS_TABLE: Comment,
    PROFILES_TABLE: Profile,
    SESSION_STORAGE_TABLE: SessionEntry,
}

# Everything a list filter or sort reads; excludes the large text columns.
_LISTING_COLUMNS = (
    "id", "owner_id", "title", "subtitle", "published", "tags", "category", "favorite", "created_at", "updated_at",
)

_INDEXES = {
    MEMOS_TABLE: ("owner_id", "created_at"),
    SESSION_STORAGE_TABLE: ("session_id",),
}


def _eq(column: str, value: str) -> str:
    return f"{column} = '{escape_filter_value(value)}'"


def _in(column: str, values: Iterable[str]) -> str:
    quoted = ", ".join(f"'{escape_filter_value(v)}'" for v in values)
    return f"{column} IN ({quoted})"


class Datastore:
    """Lazily connected LanceDB datastore (thread-safe initialization)."""

    def __init__(self, db_path: Path | str | None = None) -> None:
        self.db_path = Path(db_path) if db_path is not None else CONFIG.db_path
        self._lock = threading.RLock()  # RLock allows reentrant calls (table -> db)
        self._db: lancedb.DBConnection | None = None
        self._tables: dict[str, Any] = {}

    # =========================================================================
    # Connection
    # =========================================================================

    @property
    def db(self) -> lancedb.DBConnection:
        if self._db is None:
            with self._lock:
                if self._db is None:  # Double-check after acquiring lock
                    self.db_path.mkdir(parents=True, exist_ok=True)
                    self._db = lancedb.connect(str(self.db_path))
        return self._db

    def table(self, name: str):
        """Open or create a table by name (thread-safe)."""
        table = self._tables.get(name)
        if table is None:
            with self._lock:
                table = self._tables.get(name)
                if table is None:
                    try:
                        table = self.db.open_table(name)
                    except Exception:
                        table = self.db.create_table(name, schema=_SCHEMAS[name])
                    self._tables[name] = table
        return table

    def init_database(self) -> None:
        """Create all tables and the scalar indexes used by list queries."""
        for name in _SCHEMAS:
            self.table(name)
        for name, columns in _INDEXES.items():
            table = self.table(name)
            for column in columns:
                try:
                    table.create_index(column, config=BTree(), replace=True)
                except Exception as e:
                    # Index creation fails on empty tables; flat scans still work.
                    print(f"[memo-app] Scalar index warning ({name}.{column}): {e}", file=sys.stderr)
        print(f"[memo-app] Datastore ready at {self.db_path}", file=sys.stderr)

    # =========================================================================
    # Low-level helpers
    # =========================================================================

    def _count(self, name: str, where: str | None = None) -> int:
        table = self.table(name)
        try:
            return table.count_rows(where) if where else table.count_rows()
        except Exception as e:
            print(f"[memo-app] Count error on {name}: {e}", file=sys.stderr)
            raise StoreError(f"Failed to count {name}") from e

    def _select(
        self,
        name: str,
        model: type[M],
        where: str | None = None,
        columns: list[str] | None = None,
    ) -> list[M]:
        """All rows matching ``where``; ``columns`` limits the read to a projection."""
        table = self.table(name)
        try:
            total = table.count_rows(where) if where else table.count_rows()
            if total == 0:
                return []
            query = table.search()
            if where:
                query = query.where(where)
            if columns:
                query = query.select(columns)
            rows = query.limit(total).to_list()
        except Exception as e:
            print(f"[memo-app] Read error on {name}: {e}", file=sys.stderr)
            raise StoreError(f"Failed to load {name}") from e
        return [model.model_validate(row) for row in rows]

    def _first(self, name: str, model: type[M], where: str) -> M | None:
        rows = self._select(name, model, where)
        return rows[0] if rows else None

    def _add(self, name: str, record: M) -> M:
        table = self.table(name)
        data = pa.Table.from_pylist([record.model_dump()], schema=_SCHEMAS[name].to_arrow_schema())
        try:
            table.add(data)
        except Exception as e:
            print(f"[memo-app] Write error on {name}: {e}", file=sys.stderr)
            raise StoreError(f"Failed to save to {name}") from e
        return record

    def _update(self, name: str, where: str, values: dict[str, Any]) -> None:
        try:
            self.table(name).update(where=where, values=values)
        except Exception as e:
            print(f"[memo-app] Update error on {name}: {e}", file=sys.stderr)
            raise StoreError(f"Failed to update {name}") from e

    def _delete(self, name: str, where: str) -> None:
        try:
            self.table(name).delete(where)
        except Exception as e:
            print(f"[memo-app] Delete error on {name}: {e}", file=sys.stderr)
            raise StoreError(f"Failed to delete from {name}") from e

    # =========================================================================
    # Memos
    # =========================================================================

    @staticmethod
    def _memo_values(form: MemoForm, dedupe_tags: bool) -> dict[str, Any]:
        if not form.title.strip():
            raise ValidationError("Title is required")
        category, error = normalize_category(form.category)
        if error:
            raise ValidationError(error)
        if category is None:
            raise ValidationError(f"Please select a category: {list(VALID_CATEGORIES)}")
        return {
            "title": form.title,
            "subtitle": form.subtitle,
            "url": form.url,
            "content": form.content,
            "published": bool(form.publish),
            "tags": normalize_tags(form.tags, dedupe=dedupe_tags),
            "category": category,
            "favorite": bool(form.favorite),
        }

    def create_memo(self, owner_id: str, form: MemoForm, dedupe_tags: bool = True) -> Memo:
        values = self._memo_values(form, dedupe_tags)
        timestamp = now_iso()
        memo = Memo(
            id=uuid.uuid4().hex,
            owner_id=owner_id,
            created_at=timestamp,
            updated_at=timestamp,
            **values,
        )
        return self._add(MEMOS_TABLE, memo)

    def get_memo(self, memo_id: str) -> Memo | None:
        return self._first(MEMOS_TABLE, Memo, _eq("id", memo_id))

    def get_visible_memo(self, session: SessionContext, memo_id: str, owner_only: bool = False) -> Memo:
        """Fetch a memo the session may read: its own, or a published one."""
        memo = self.get_memo(memo_id)
        if memo is None:
            raise NotFound(f"Memo {memo_id} not found")
        if session.owns(memo.owner_id):
            return memo
        if owner_only or not memo.published:
            raise NotFound(f"Memo {memo_id} not found")
        return memo

    def _owned_memo(self, owner_id: str, memo_id: str) -> Memo:
        memo = self.get_memo(memo_id)
        if memo is None:
            raise NotFound(f"Memo {memo_id} not found")
        if memo.owner_id != owner_id:
            raise PermissionDenied("Only the owner can modify this memo")
        return memo

    def update_memo(self, owner_id: str, memo_id: str, form: MemoForm, dedupe_tags: bool = True) -> Memo:
        """Overwrite the editable fields. Last write wins (no version token)."""
        existing = self._owned_memo(owner_id, memo_id)
        values = self._memo_values(form, dedupe_tags)
        values["updated_at"] = now_iso()
        self._update(MEMOS_TABLE, _eq("id", memo_id), values)
        return existing.model_copy(update=values)

    def delete_memo(self, owner_id: str, memo_id: str) -> None:
        """Delete a memo and its comment thread."""
        self._owned_memo(owner_id, memo_id)
        self._delete(MEMOS_TABLE, _eq("id", memo_id))
        self._delete(COMMENTS_TABLE, _eq("memo_id", memo_id))

    def find_memos(
        self,
        *,
        owner_id: str | None = None,
        owner_ids: Iterable[str] | None = None,
        published: bool | None = None,
        category: str | None = None,
        created_before: str | None = None,
        created_after: str | None = None,
        predicate: Callable[[Memo], bool] | None = None,
        descending: bool = True,
        limit: int | None = None,
    ) -> list[Memo]:
        """Query memos with equality/range predicates pushed into the ``where``.

        ``predicate`` runs in-process before the limit, so substring filters
        never shorten a page. It only sees the listing columns (no ``url`` or
        ``content``) when ``limit`` is set.

        With a ``limit``, the scan reads only ``_LISTING_COLUMNS`` and full
        rows are fetched for the page ids alone. The scan itself is still
        proportional to the rows matching ``where``; LanceDB cannot sort.
        """
        filters = []
        if owner_id is not None:
            filters.append(_eq("owner_id", owner_id))
        if owner_ids is not None:
            owner_ids = list(owner_ids)
            if not owner_ids:
                return []
            filters.append(_in("owner_id", owner_ids))
        if published is not None:
            filters.append(f"published = {'true' if published else 'false'}")
        if category:
            filters.append(_eq("category", category))
        if created_before:
            filters.append(f"created_at < '{escape_filter_value(created_before)}'")
        if created_after:
            filters.append(f"created_at > '{escape_filter_value(created_after)}'")
        filter_expr = " AND ".join(filters) if filters else None

        columns = list(_LISTING_COLUMNS) if limit is not None else None
        memos = self._select(MEMOS_TABLE, Memo, filter_expr, columns=columns)
        if predicate is not None:
            memos = [m for m in memos if predicate(m)]
        memos.sort(key=lambda m: m.created_at, reverse=descending)
        if limit is None:
            return memos
        page_ids = [m.id for m in memos[:limit]]
        if not page_ids:
            return []
        full = {m.id: m for m in self._select(MEMOS_TABLE, Memo, _in("id", page_ids))}
        return [full[memo_id] for memo_id in page_ids if memo_id in full]

    def category_counts(self, owner_id: str) -> dict[str, int]:
        """Per-category memo counts for an owner, plus ``all``."""
        counts = {"all": 0, **{c: 0 for c in VALID_CATEGORIES}}
        table = self.table(MEMOS_TABLE)
        where = _eq("owner_id", owner_id)
        try:
            total = table.count_rows(where)
            if total == 0:
                return counts
            arrow_table = table.search().where(where).select(["category"]).limit(total).to_arrow()
        except Exception as e:
            print(f"[memo-app] Category count error: {e}", file=sys.stderr)
            raise StoreError("Failed to count memos") from e
        for entry in pc.value_counts(arrow_table["category"]).to_pylist():
            if entry["values"] in counts:
                counts[entry["values"]] = entry["counts"]
        counts["all"] = total
        return counts

    # =========================================================================
    # Comments
    # =========================================================================

    def add_comment(self, memo_id: str, author_id: str, content: str) -> Comment:
        if not content.strip():
            raise ValidationError("Comment cannot be empty")
        memo = self.get_memo(memo_id)
        if memo is None or (not memo.published and memo.owner_id != author_id):
            raise NotFound(f"Memo {memo_id} not found")
        comment = Comment(
            unique_id=uuid.uuid4().hex,
            memo_id=memo_id,
            author_id=author_id,
            content=content,
            created_at=now_iso(),
        )
        return self._add(COMMENTS_TABLE, comment)

    def get_comment(self, unique_id: str) -> Comment | None:
        return self._first(COMMENTS_TABLE, Comment, _eq("unique_id", unique_id))

    def list_comments(self, memo_id: str) -> list[Comment]:
        comments = self._select(COMMENTS_TABLE, Comment, _eq("memo_id", memo_id))
        return sorted(comments, key=lambda c: c.created_at)

    def _authored_comment(self, author_id: str, unique_id: str) -> Comment:
        comment = self.get_comment(unique_id)
        if comment is None:
            raise NotFound(f"Comment {unique_id} not found")
        if comment.author_id != author_id:
            raise PermissionDenied("Only the author can modify this comment")
        return comment

    def update_comment(self, author_id: str, unique_id: str, content: str) -> Comment:
        if not content.strip():
            raise ValidationError("Comment cannot be empty")
        existing = self._authored_comment(author_id, unique_id)
        values = {"content": content, "updated_at": now_iso()}
        self._update(COMMENTS_TABLE, _eq("unique_id", unique_id), values)
        return existing.model_copy(update=values)

    def delete_comment(self, author_id: str, unique_id: str) -> Comment:
        existing = self._authored_comment(author_id, unique_id)
        self._delete(COMMENTS_TABLE, _eq("unique_id", unique_id))
        return existing

    # =========================================================================
    # Profiles
    # =========================================================================

    def upsert_profile(self, profile: Profile) -> Profile:
        """Insert or replace the row for ``profile.user_id``."""
        data = pa.Table.from_pylist([profile.model_dump()], schema=Profile.to_arrow_schema())
        try:
            (
                self.table(PROFILES_TABLE)
                .merge_insert("user_id")
                .when_matched_update_all()
                .when_not_matched_insert_all()
                .execute(data)
            )
        except Exception as e:
            print(f"[memo-app] Profile upsert error: {e}", file=sys.stderr)
            raise StoreError("Failed to update profile in database") from e
        return profile

    def get_profile(self, user_id: str) -> Profile | None:
        return self._first(PROFILES_TABLE, Profile, _eq("user_id", user_id))

    def profiles_by_user_ids(self, user_ids: Iterable[str]) -> dict[str, Profile]:
        ids = sorted({uid for uid in user_ids if uid})
        if not ids:
            return {}
        profiles = self._select(PROFILES_TABLE, Profile, _in("user_id", ids))
        return {p.user_id: p for p in profiles}

    def user_ids_matching_name(self, name: str) -> list[str]:
        """User ids whose AtCoder username contains ``name`` (case-insensitive)."""
        needle = name.strip().lower()
        return [
            p.user_id
            for p in self._select(PROFILES_TABLE, Profile)
            if p.atcoder_username and needle in p.atcoder_username.lower()
        ]

    def update_profile_fields(self, user_id: str, values: dict[str, Any]) -> bool:
        """Patch an existing profile. Returns False when no row exists."""
        if not values:
            return False
        where = _eq("user_id", user_id)
        if self._count(PROFILES_TABLE, where) == 0:
            return False
        self._update(PROFILES_TABLE, where, values)
        return True

    def delete_profile(self, user_id: str) -> None:
        self._delete(PROFILES_TABLE, _eq("user_id", user_id))

    # =========================================================================
    # Browser-session storage
    # =========================================================================

    @staticmethod
    def _session_where(session_id: str, key: str | None = None) -> str:
        where = _eq("session_id", session_id)
        return where if key is None else f"{where} AND {_eq('key', key)}"

    def session_get(self, session_id: str, key: str) -> str | None:
        entry = self._first(SESSION_STORAGE_TABLE, SessionEntry, self._session_where(session_id, key))
        return entry.value if entry else None

    def session_put(self, session_id: str, key: str, value: str) -> None:
        """Insert or replace one value for (session_id, key)."""
        entry = SessionEntry(session_id=session_id, key=key, value=value, updated_at=now_iso())
        data = pa.Table.from_pylist([entry.model_dump()], schema=SessionEntry.to_arrow_schema())
        try:
            (
                self.table(SESSION_STORAGE_TABLE)
                .merge_insert(["session_id", "key"])
                .when_matched_update_all()
                .when_not_matched_insert_all()
                .execute(data)
            )
        except Exception as e:
            print(f"[memo-app] Session storage write error: {e}", file=sys.stderr)
            raise StoreError("Failed to save to session storage") from e

    def session_delete(self, session_id: str, key: str) -> None:
        self._delete(SESSION_STORAGE_TABLE, self._session_where(session_id, key))

    def session_keys(self, session_id: str) -> list[str]:
        entries = self._select(SESSION_STORAGE_TABLE, SessionEntry, self._session_where(session_id))
        return sorted(e.key for e in entries)


# =============================================================================
# Module singleton
# =============================================================================

_datastore: Datastore | None = None
_lock = threading.Lock()


def get_datastore() -> Datastore:
    """Get or create the process-wide datastore (thread-safe)."""
    global _datastore
    if _datastore is None:
        with _lock:
            if _datastore is None:
                _datastore = Datastore(CONFIG.db_path)
    return _datastore
