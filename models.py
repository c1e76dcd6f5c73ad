"""Shared data models for memo-app."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any

from lancedb.pydantic import LanceModel


class Memo(LanceModel):
    """Memo table schema for LanceDB.

    IMPORTANT: Any changes to this schema require migration of existing data.
    """

    id: str  # UUID hex
    owner_id: str
    title: str
    subtitle: str | None = None
    url: str | None = None
    content: str | None = None
    published: bool = False
    tags: str = ""  # space-delimited, normalized at save time
    category: str
    favorite: bool = False
    created_at: str
    updated_at: str

    @property
    def tag_list(self) -> list[str]:
        return self.tags.split()


class Comment(LanceModel):
    """Comment table schema. ``memo_id`` points at ``Memo.id``."""

    unique_id: str
    memo_id: str
    author_id: str
    content: str
    created_at: str
    updated_at: str | None = None


class Profile(LanceModel):
    """Subset of identity-provider user attributes, one row per user_id."""

    user_id: str
    email: str
    atcoder_username: str | None = None
    favorite_language: str | None = None
    atcoder_rate: int | None = None
    icon_url: str | None = None

    @property
    def display_name(self) -> str:
        return self.atcoder_username or "Unknown"


class SessionEntry(LanceModel):
    """One browser-session storage value (draft or cached view), keyed by (session_id, key)."""

    session_id: str
    key: str
    value: str  # JSON text
    updated_at: str


@dataclass
class MemoForm:
    """Editable fields of a memo; also the shape of a stored draft."""

    title: str = ""
    subtitle: str = ""
    url: str = ""
    content: str = ""
    publish: bool = False
    tags: str = ""
    category: str = ""
    favorite: bool = False

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    @classmethod
    def from_memo(cls, memo: Memo) -> MemoForm:
        return cls(
            title=memo.title or "",
            subtitle=memo.subtitle or "",
            url=memo.url or "",
            content=memo.content or "",
            publish=bool(memo.published),
            tags=memo.tags or "",
            category=memo.category or "",
            favorite=bool(memo.favorite),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MemoForm:
        """Build from a stored snapshot, tolerating missing or null fields."""
        return cls(
            title=data.get("title") or "",
            subtitle=data.get("subtitle") or "",
            url=data.get("url") or "",
            content=data.get("content") or "",
            publish=bool(data.get("publish")),
            tags=data.get("tags") or "",
            category=data.get("category") or "",
            favorite=bool(data.get("favorite")),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def is_empty(self) -> bool:
        """True when every tracked field is blank or false."""
        return not any(getattr(self, name) for name in self.field_names())
