"""Runtime configuration for memo-app, read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class Config:
    """Application configuration with sensible defaults."""

    db_path: Path = Path(os.environ.get("MEMO_DB_PATH", Path.home() / ".memo-app" / "lancedb"))
    secret_key: str = os.environ.get("MEMO_SECRET_KEY", "dev-only-secret")
    identity_api_url: str = os.environ.get("IDENTITY_API_URL", "https://api.clerk.com/v1")
    identity_secret_key: str = os.environ.get("IDENTITY_SECRET_KEY", "")
    webhook_secret: str = os.environ.get("IDENTITY_WEBHOOK_SECRET", "")
    auth_header: str = os.environ.get("MEMO_AUTH_HEADER", "X-User-Id")
    page_size: int = int(os.environ.get("MEMO_PAGE_SIZE", "9"))
    view_cache_ttl: int = int(os.environ.get("MEMO_VIEW_CACHE_TTL", "300"))  # seconds
    dedupe_tags: bool = _env_bool("MEMO_DEDUPE_TAGS", True)
    request_timeout: int = 10


CONFIG = Config()

MEMOS_TABLE = "memos"
COMMENTS_TABLE = "comments"
PROFILES_TABLE = "profiles"
SESSION_STORAGE_TABLE = "session_storage"

VALID_CATEGORIES = ("algorithm", "dataStructure", "math", "others")
ALL_CATEGORIES = "all"

LANGUAGES = ("None", "Python", "C++", "Java", "JavaScript", "TypeScript", "Rust", "Go", "Others")
