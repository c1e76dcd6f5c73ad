"""Error types surfaced to users as a single message string."""

from __future__ import annotations


class MemoAppError(Exception):
    """Base error. ``message`` is what the UI shows."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthenticationRequired(MemoAppError):
    status_code = 401

    def __init__(self, message: str = "No Logged In User") -> None:
        super().__init__(message)


class NotFound(MemoAppError):
    status_code = 404


class PermissionDenied(MemoAppError):
    status_code = 403


class ValidationError(MemoAppError):
    status_code = 400


class StoreError(MemoAppError):
    """Datastore read or write failed (network, constraint, schema)."""


class IdentityError(MemoAppError):
    """Identity provider API call failed."""

    status_code = 502
