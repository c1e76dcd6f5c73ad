"""
Browser-session persistence: memo drafts and the short-lived view cache.

Both live in a ``MutableMapping[str, str]`` of JSON strings. In the web app
that mapping is ``SessionStorage``: rows in the datastore keyed by an opaque
browser-session id, so the cookie itself only carries the id. Tests use a
plain dict.
"""

from __future__ import annotations

import json
import sys
import time
from collections.abc import Callable, Iterator, MutableMapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from config import CONFIG
from models import MemoForm

if TYPE_CHECKING:
    from store import Datastore

NEW_MEMO_KEY = "new"


def draft_key(memo_id: str | None) -> str:
    """Storage key for the draft of ``memo_id`` (``None`` means a new memo)."""
    return f"memo-draft-{memo_id or NEW_MEMO_KEY}"


def view_key(memo_id: str) -> str:
    return f"individual-memo-{memo_id}"


def closed_key(editor_token: str) -> str:
    return f"editor-closed-{editor_token}"


class SessionStorage(MutableMapping[str, str]):
    """String mapping for one browser session, persisted in the datastore."""

    def __init__(self, store: Datastore, session_id: str) -> None:
        self.store = store
        self.session_id = session_id

    def __getitem__(self, key: str) -> str:
        value = self.store.session_get(self.session_id, key)
        if value is None:
            raise KeyError(key)
        return value

    def __setitem__(self, key: str, value: str) -> None:
        self.store.session_put(self.session_id, key, value)

    def __delitem__(self, key: str) -> None:
        if self.store.session_get(self.session_id, key) is None:
            raise KeyError(key)
        self.store.session_delete(self.session_id, key)

    def __iter__(self) -> Iterator[str]:
        return iter(self.store.session_keys(self.session_id))

    def __len__(self) -> int:
        return len(self.store.session_keys(self.session_id))


def close_editor(storage: MutableMapping[str, str], editor_token: str | None) -> None:
    """Mark an editor page as finished; later autosaves from it are refused."""
    if editor_token:
        storage[closed_key(editor_token)] = json.dumps(time.time())


def editor_closed(storage: MutableMapping[str, str], editor_token: str | None) -> bool:
    return bool(editor_token) and closed_key(editor_token) in storage


@runtime_checkable
class DraftRepository(Protocol):
    """Per-session draft storage keyed by memo id."""

    def load(self, key: str) -> MemoForm | None: ...

    def save(self, key: str, snapshot: MemoForm) -> None: ...

    def clear(self, key: str) -> None: ...


class SessionDraftRepository:
    """DraftRepository over a session-scoped string mapping."""

    def __init__(self, storage: MutableMapping[str, Any]) -> None:
        self.storage = storage

    def load(self, key: str) -> MemoForm | None:
        raw = self.storage.get(draft_key(key))
        if raw is None:
            return None
        try:
            return MemoForm.from_dict(json.loads(raw))
        except (TypeError, ValueError, AttributeError) as e:
            print(f"[memo-app] Dropping unreadable draft {key}: {e}", file=sys.stderr)
            self.clear(key)
            return None

    def save(self, key: str, snapshot: MemoForm) -> None:
        self.storage[draft_key(key)] = json.dumps(snapshot.to_dict())

    def clear(self, key: str) -> None:
        self.storage.pop(draft_key(key), None)


# =============================================================================
# Reconciliation
# =============================================================================


class ReconcileAction(str, Enum):
    USE_DRAFT = "useDraft"  # meaningful draft: ask the user before restoring
    USE_SERVER = "useServer"  # draft carries nothing: drop it silently
    NONE = "none"  # no draft stored


@dataclass(frozen=True)
class Reconciliation:
    action: ReconcileAction
    draft: MemoForm | None = None


def reconcile(server_doc: MemoForm | None, draft: MemoForm | None) -> Reconciliation:
    """Decide what to do with a stored draft. Pure; the caller owns the prompt.

    ``server_doc`` is the persisted snapshot, or None for a new memo.
    """
    if draft is None:
        return Reconciliation(ReconcileAction.NONE)
    if draft.is_empty():
        return Reconciliation(ReconcileAction.USE_SERVER)
    if server_doc is not None and draft == server_doc:
        return Reconciliation(ReconcileAction.USE_SERVER)
    return Reconciliation(ReconcileAction.USE_DRAFT, draft)


# =============================================================================
# View cache
# =============================================================================


class ViewCache:
    """TTL cache of rendered-memo data keyed by memo id (default 5 minutes)."""

    def __init__(
        self,
        storage: MutableMapping[str, Any],
        ttl_seconds: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.storage = storage
        self.ttl_seconds = CONFIG.view_cache_ttl if ttl_seconds is None else ttl_seconds
        self.clock = clock

    def get(self, memo_id: str) -> dict[str, Any] | None:
        raw = self.storage.get(view_key(memo_id))
        if raw is None:
            return None
        try:
            entry = json.loads(raw)
            stored_at = float(entry["stored_at"])
            data = entry["data"]
        except (TypeError, ValueError, KeyError) as e:
            print(f"[memo-app] Failed to restore cached view {memo_id}: {e}", file=sys.stderr)
            self.invalidate(memo_id)
            return None
        if self.clock() - stored_at > self.ttl_seconds:
            self.invalidate(memo_id)
            return None
        return data

    def put(self, memo_id: str, data: dict[str, Any]) -> None:
        self.storage[view_key(memo_id)] = json.dumps({"data": data, "stored_at": self.clock()})

    def invalidate(self, memo_id: str) -> None:
        self.storage.pop(view_key(memo_id), None)
