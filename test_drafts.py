"""Tests for draft storage, reconciliation and the view cache."""

import json

import pytest

from drafts import (
    DraftRepository,
    ReconcileAction,
    SessionDraftRepository,
    SessionStorage,
    ViewCache,
    close_editor,
    draft_key,
    editor_closed,
    reconcile,
    view_key,
)
from models import MemoForm


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestKeys:
    def test_draft_keys(self):
        assert draft_key(None) == "memo-draft-new"
        assert draft_key("abc") == "memo-draft-abc"

    def test_view_key(self):
        assert view_key("abc") == "individual-memo-abc"


class TestSessionDraftRepository:
    def test_is_a_draft_repository(self):
        assert isinstance(SessionDraftRepository({}), DraftRepository)

    def test_save_load_clear(self):
        storage = {}
        repo = SessionDraftRepository(storage)
        snapshot = MemoForm(title="BFS", tags="graph", publish=True)

        repo.save("m1", snapshot)
        assert "memo-draft-m1" in storage
        assert repo.load("m1") == snapshot

        repo.clear("m1")
        assert repo.load("m1") is None
        assert storage == {}

    def test_drafts_are_per_memo(self):
        repo = SessionDraftRepository({})
        repo.save("new", MemoForm(title="new one"))
        repo.save("m1", MemoForm(title="existing"))
        assert repo.load("new").title == "new one"
        assert repo.load("m1").title == "existing"

    def test_unreadable_draft_dropped(self):
        storage = {"memo-draft-m1": "{not json"}
        repo = SessionDraftRepository(storage)
        assert repo.load("m1") is None
        assert storage == {}

    def test_missing_fields_tolerated(self):
        storage = {"memo-draft-m1": json.dumps({"title": "partial", "subtitle": None})}
        draft = SessionDraftRepository(storage).load("m1")
        assert draft == MemoForm(title="partial")


class TestReconcile:
    def test_no_draft(self):
        assert reconcile(MemoForm(title="x"), None).action is ReconcileAction.NONE

    def test_empty_draft_discarded(self):
        result = reconcile(MemoForm(title="x"), MemoForm())
        assert result.action is ReconcileAction.USE_SERVER

    def test_empty_draft_for_new_memo_discarded(self):
        assert reconcile(None, MemoForm()).action is ReconcileAction.USE_SERVER

    def test_draft_equal_to_server_discarded(self):
        server = MemoForm(title="x", category="math")
        assert reconcile(server, MemoForm(title="x", category="math")).action is ReconcileAction.USE_SERVER

    def test_meaningful_draft_offered(self):
        draft = MemoForm(title="x", content="more")
        result = reconcile(MemoForm(title="x"), draft)
        assert result.action is ReconcileAction.USE_DRAFT
        assert result.draft == draft

    def test_favorite_alone_is_meaningful(self):
        assert reconcile(None, MemoForm(favorite=True)).action is ReconcileAction.USE_DRAFT


class TestViewCache:
    def test_put_get(self):
        cache = ViewCache({}, ttl_seconds=300, clock=FakeClock())
        cache.put("m1", {"title": "cached"})
        assert cache.get("m1") == {"title": "cached"}

    def test_expires_after_ttl(self):
        clock = FakeClock()
        storage = {}
        cache = ViewCache(storage, ttl_seconds=300, clock=clock)
        cache.put("m1", {"title": "cached"})
        clock.now += 301
        assert cache.get("m1") is None
        assert storage == {}

    def test_fresh_within_ttl(self):
        clock = FakeClock()
        cache = ViewCache({}, ttl_seconds=300, clock=clock)
        cache.put("m1", {"title": "cached"})
        clock.now += 299
        assert cache.get("m1") is not None

    def test_invalidate(self):
        cache = ViewCache({}, ttl_seconds=300, clock=FakeClock())
        cache.put("m1", {"title": "cached"})
        cache.invalidate("m1")
        assert cache.get("m1") is None

    def test_corrupt_entry_dropped(self):
        storage = {"individual-memo-m1": json.dumps({"data": {}})}
        assert ViewCache(storage, ttl_seconds=300).get("m1") is None
        assert storage == {}


# =============================================================================
# Datastore-backed session storage
# =============================================================================


class TestSessionStorage:
    def test_mapping_protocol(self, store):
        storage = SessionStorage(store, "sid-1")
        storage["a"] = "1"
        storage["a"] = "2"
        storage["b"] = "3"
        assert storage["a"] == "2"
        assert list(storage) == ["a", "b"]
        assert len(storage) == 2
        del storage["a"]
        assert storage.get("a") is None
        with pytest.raises(KeyError):
            del storage["a"]

    def test_sessions_are_isolated(self, store):
        SessionStorage(store, "sid-1")["memo-draft-new"] = "{}"
        assert "memo-draft-new" not in SessionStorage(store, "sid-2")

    def test_large_draft_and_cached_view_together(self, store):
        storage = SessionStorage(store, "sid-1")
        drafts = SessionDraftRepository(storage)
        cache = ViewCache(storage, ttl_seconds=300, clock=FakeClock())
        snapshot = MemoForm(title="Segment tree", content="int seg[1 << 20];\n" * 2000, category="dataStructure")

        drafts.save("m1", snapshot)
        cache.put("m1", {"id": "m1", "content": snapshot.content})

        assert drafts.load("m1") == snapshot
        assert cache.get("m1")["content"] == snapshot.content
        drafts.clear("m1")
        assert list(storage) == [view_key("m1")]


class TestEditorTokens:
    def test_close_marks_token(self):
        storage = {}
        assert editor_closed(storage, "tok") is False
        close_editor(storage, "tok")
        assert editor_closed(storage, "tok") is True
        assert editor_closed(storage, "other") is False

    def test_missing_token_never_closed(self):
        storage = {}
        close_editor(storage, None)
        assert storage == {}
        assert editor_closed(storage, None) is False
