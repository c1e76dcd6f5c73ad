"""
Memo editor state machine.

    Idle -> Loading -> {Clean, Dirty} -> Saving -> {Saved, SaveFailed -> Dirty}

The editor buffers every change into the session draft store so an accidental
reload loses nothing, and never overwrites the persisted memo with a draft
unless the user agrees to restore it. Prompts are injected as callbacks; the
decision logic lives in ``drafts.reconcile``.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Callable
from dataclasses import replace
from enum import Enum

from config import CONFIG
from drafts import NEW_MEMO_KEY, DraftRepository, ReconcileAction, Reconciliation, reconcile
from errors import MemoAppError
from models import Memo, MemoForm
from session import SessionContext
from store import Datastore
from utils import normalize_tags

RESTORE_PROMPT = "An unsaved draft has been found. Would you like to restore the draft?"
DISCARD_PROMPT = "You have unsaved changes. Discard them and leave this page?"

OWNER_LIST_URL = "/individual"


def viewer_url(memo_id: str) -> str:
    return f"/individual/display/{memo_id}"


class EditorState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    CLEAN = "clean"
    DIRTY = "dirty"
    SAVING = "saving"
    SAVED = "saved"


class SaveGuard:
    """Dirty/saving flags read synchronously by the unload handler and submit.

    ``begin_save`` flips ``saving`` before the first await, so an unload
    firing while the write is in flight is never blocked.
    """

    def __init__(self) -> None:
        self.dirty = False
        self.saving = False

    @property
    def should_warn(self) -> bool:
        return self.dirty and not self.saving

    def mark_dirty(self) -> None:
        self.dirty = True

    def begin_save(self) -> None:
        self.saving = True

    def save_failed(self) -> None:
        self.saving = False
        self.dirty = True

    def save_succeeded(self) -> None:
        self.saving = False
        self.dirty = False

    def reset(self) -> None:
        self.dirty = False
        self.saving = False


class MemoEditor:
    """Create (``memo_id=None``) or edit one memo on behalf of ``session``."""

    def __init__(
        self,
        session: SessionContext,
        store: Datastore,
        drafts: DraftRepository,
        memo_id: str | None = None,
        dedupe_tags: bool | None = None,
    ) -> None:
        self.session = session
        self.store = store
        self.drafts = drafts
        self.memo_id = memo_id
        self.dedupe_tags = CONFIG.dedupe_tags if dedupe_tags is None else dedupe_tags
        self.state = EditorState.IDLE
        self.guard = SaveGuard()
        self.form = MemoForm()
        self.persisted = MemoForm()
        self.pending_draft: MemoForm | None = None
        self.error: str | None = None
        self._is_new = memo_id is None

    @property
    def is_new(self) -> bool:
        return self._is_new

    @property
    def key(self) -> str:
        return NEW_MEMO_KEY if self._is_new else self.memo_id

    @property
    def should_warn_on_unload(self) -> bool:
        return self.guard.should_warn

    # =========================================================================
    # Loading
    # =========================================================================

    async def _fetch_persisted(self) -> MemoForm:
        if self._is_new:
            return MemoForm()
        memo: Memo = await asyncio.to_thread(
            self.store.get_visible_memo, self.session, self.memo_id, True
        )
        return MemoForm.from_memo(memo)

    async def load(self) -> Reconciliation:
        """Fetch the persisted memo and check for a pending draft.

        On ``USE_DRAFT`` the editor stays in LOADING until ``resolve_draft``.
        """
        self.session.require_user()
        self.state = EditorState.LOADING
        try:
            self.persisted, draft = await asyncio.gather(
                self._fetch_persisted(), asyncio.to_thread(self.drafts.load, self.key)
            )
        except BaseException:
            self.state = EditorState.IDLE
            raise

        result = reconcile(None if self._is_new else self.persisted, draft)
        if result.action is ReconcileAction.USE_DRAFT:
            self.pending_draft = result.draft
            return result
        if result.action is ReconcileAction.USE_SERVER:
            self.drafts.clear(self.key)
        self._enter(self.persisted, EditorState.CLEAN)
        return result

    def resolve_draft(self, restore: bool) -> EditorState:
        """Apply the user's answer to the restore prompt."""
        if self.state is not EditorState.LOADING or self.pending_draft is None:
            raise RuntimeError("No draft is waiting for a decision")
        draft, self.pending_draft = self.pending_draft, None
        if restore:
            self._enter(draft, EditorState.DIRTY)
        else:
            self.drafts.clear(self.key)
            self._enter(self.persisted, EditorState.CLEAN)
        return self.state

    async def open(self, confirm: Callable[[str], bool]) -> EditorState:
        """``load`` followed by the restore prompt when one is needed."""
        result = await self.load()
        if result.action is ReconcileAction.USE_DRAFT:
            return self.resolve_draft(confirm(RESTORE_PROMPT))
        return self.state

    async def attach(self) -> EditorState:
        """Load the persisted baseline only, for a page whose draft is resolved."""
        self.session.require_user()
        self.state = EditorState.LOADING
        try:
            self.persisted = await self._fetch_persisted()
        except BaseException:
            self.state = EditorState.IDLE
            raise
        current = self.drafts.load(self.key)
        if current is not None and current != self.persisted:
            self._enter(current, EditorState.DIRTY)
        else:
            self._enter(self.persisted, EditorState.CLEAN)
        return self.state

    def _enter(self, form: MemoForm, state: EditorState) -> None:
        self.form = replace(form)
        self.state = state
        if state is EditorState.DIRTY:
            self.guard.mark_dirty()
        else:
            self.guard.reset()

    # =========================================================================
    # Editing
    # =========================================================================

    def update(self, **changes) -> MemoForm:
        """Change form fields; writes the whole snapshot through to the draft."""
        if self.state not in (EditorState.CLEAN, EditorState.DIRTY):
            raise RuntimeError(f"Cannot edit while {self.state.value}")
        unknown = set(changes) - set(MemoForm.field_names())
        if unknown:
            raise ValueError(f"Unknown memo fields: {sorted(unknown)}")
        self.form = replace(self.form, **changes)
        self.drafts.save(self.key, self.form)
        self.state = EditorState.DIRTY
        self.guard.mark_dirty()
        return self.form

    def is_modified(self) -> bool:
        return self.form != self.persisted

    # =========================================================================
    # Saving / leaving
    # =========================================================================

    async def submit(self) -> str | None:
        """Persist the form. Returns the viewer URL, or None with ``error`` set."""
        user_id = self.session.require_user()
        if self.state not in (EditorState.CLEAN, EditorState.DIRTY):
            raise RuntimeError(f"Cannot save while {self.state.value}")

        self.guard.begin_save()
        self.state = EditorState.SAVING
        self.error = None
        form = replace(self.form, tags=normalize_tags(self.form.tags, dedupe=self.dedupe_tags))

        try:
            if self._is_new:
                memo = await asyncio.to_thread(
                    self.store.create_memo, user_id, form, self.dedupe_tags
                )
            else:
                memo = await asyncio.to_thread(
                    self.store.update_memo, user_id, self.memo_id, form, self.dedupe_tags
                )
        except MemoAppError as e:
            print(f"[memo-app] Save failed for memo {self.key}: {e.message}", file=sys.stderr)
            self.error = e.message
            self.guard.save_failed()
            self.state = EditorState.DIRTY
            return None
        except BaseException:
            self.guard.save_failed()
            self.state = EditorState.DIRTY
            raise

        self.drafts.clear(self.key)
        self.memo_id = memo.id
        self.persisted = MemoForm.from_memo(memo)
        self.form = replace(self.persisted)
        self.guard.save_succeeded()
        self.state = EditorState.SAVED
        return viewer_url(memo.id)

    def cancel(self, confirm: Callable[[str], bool]) -> str | None:
        """Leave without saving. Returns where to go, or None if the user stays."""
        if self.is_modified() and not confirm(DISCARD_PROMPT):
            return None
        self.drafts.clear(self.key)
        self.guard.reset()
        self.state = EditorState.IDLE
        return OWNER_LIST_URL if self._is_new else viewer_url(self.memo_id)
