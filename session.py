"""Explicit session context passed to every service that needs the current user."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from errors import AuthenticationRequired


def _no_token() -> str | None:
    return None


@dataclass(frozen=True)
class SessionContext:
    """Who is making the request, and how to fetch their session token.

    ``user_id`` is None for anonymous visitors.
    """

    user_id: str | None = None
    token_getter: Callable[[], str | None] = field(default=_no_token, repr=False, compare=False)

    @classmethod
    def anonymous(cls) -> SessionContext:
        return cls()

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    def require_user(self) -> str:
        """Return the user id or abort before any mutation happens."""
        if not self.user_id:
            raise AuthenticationRequired()
        return self.user_id

    def get_token(self) -> str | None:
        return self.token_getter()

    def owns(self, owner_id: str | None) -> bool:
        return self.is_authenticated and owner_id == self.user_id
