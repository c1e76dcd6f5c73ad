"""
Read-only memo views and the comment thread.

Edit/delete controls are shown only to the comment author or memo owner; the
datastore re-checks the same rule on every mutation.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field

from drafts import DraftRepository, ViewCache
from editor import OWNER_LIST_URL
from errors import AuthenticationRequired
from models import Comment, Memo, Profile
from rendering import render_markdown
from session import SessionContext
from store import Datastore


@dataclass
class CommentView:
    comment: Comment
    author_name: str
    author_icon: str | None
    can_edit: bool

    @property
    def html(self) -> str:
        return render_markdown(self.comment.content)


@dataclass
class MemoView:
    memo: Memo
    author_name: str
    author_icon: str | None
    can_modify: bool
    comments: list[CommentView] = field(default_factory=list)
    from_cache: bool = False

    @property
    def html(self) -> str:
        return render_markdown(self.memo.content)


class MemoViewer:
    def __init__(self, session: SessionContext, store: Datastore, cache: ViewCache | None = None) -> None:
        self.session = session
        self.store = store
        self.cache = cache

    def _author(self, profile: Profile | None) -> tuple[str, str | None]:
        if profile is None:
            return "Unknown", None
        return profile.display_name, profile.icon_url

    def load_public(self, memo_id: str) -> MemoView:
        """A published memo with its comment thread. Anyone may read it."""
        memo = self.store.get_visible_memo(SessionContext.anonymous(), memo_id)
        name, icon = self._author(self.store.get_profile(memo.owner_id))
        return MemoView(
            memo=memo,
            author_name=name,
            author_icon=icon,
            can_modify=self.session.owns(memo.owner_id),
            comments=self.comments_for(memo_id),
        )

    def load_own(self, memo_id: str) -> MemoView:
        """The owner's view of their memo, served from the view cache when fresh."""
        self.session.require_user()
        cached = self.cache.get(memo_id) if self.cache else None
        if cached is not None:
            memo = Memo.model_validate(cached)
            if self.session.owns(memo.owner_id):
                return MemoView(memo, "", None, can_modify=True, from_cache=True)
        memo = self.store.get_visible_memo(self.session, memo_id, owner_only=True)
        if self.cache:
            self.cache.put(memo_id, memo.model_dump())
        return MemoView(memo, "", None, can_modify=True)

    def comments_for(self, memo_id: str) -> list[CommentView]:
        comments = self.store.list_comments(memo_id)
        profiles = self.store.profiles_by_user_ids(c.author_id for c in comments)
        views = []
        for comment in comments:
            name, icon = self._author(profiles.get(comment.author_id))
            views.append(CommentView(comment, name, icon, can_edit=self.session.owns(comment.author_id)))
        return views

    def can_edit_comment(self, comment: Comment) -> bool:
        return self.session.owns(comment.author_id)

    # =========================================================================
    # Mutations
    # =========================================================================

    def add_comment(self, memo_id: str, content: str) -> Comment:
        if not self.session.is_authenticated:
            raise AuthenticationRequired("You must be logged in to comment.")
        return self.store.add_comment(memo_id, self.session.user_id, content)

    def edit_comment(self, unique_id: str, content: str) -> Comment:
        user_id = self.session.require_user()
        return self.store.update_comment(user_id, unique_id, content)

    def delete_comment(self, unique_id: str) -> Comment:
        user_id = self.session.require_user()
        return self.store.delete_comment(user_id, unique_id)

    def delete_memo(self, memo_id: str, drafts: DraftRepository | None = None) -> str:
        """Delete an owned memo; returns where to navigate afterwards."""
        user_id = self.session.require_user()
        try:
            self.store.delete_memo(user_id, memo_id)
        finally:
            if self.cache:
                self.cache.invalidate(memo_id)
        if drafts is not None:
            drafts.clear(memo_id)
        print(f"[memo-app] Memo {memo_id} deleted by {user_id}", file=sys.stderr)
        return OWNER_LIST_URL
