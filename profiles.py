"""Profile actions: onboarding and profile updates.

The identity provider update and the profile upsert are two independent calls;
a failed upsert does not roll back the metadata change.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Any

from errors import IdentityError, StoreError, ValidationError
from identity import IdentityClient, primary_email
from models import Profile
from session import SessionContext
from store import Datastore
from utils import parse_rate


@dataclass
class ProfileResult:
    """Outcome as shown to the user: either ``message`` or ``error``."""

    success: bool
    message: str | None = None
    error: str | None = None
    metadata: dict[str, Any] | None = None


class ProfileService:
    def __init__(self, identity: IdentityClient, store: Datastore) -> None:
        self.identity = identity
        self.store = store

    @staticmethod
    def _metadata(atcoder_username: str | None, favorite_language: str | None, atcoder_rate) -> dict[str, Any]:
        rate, error = parse_rate(atcoder_rate)
        if error:
            raise ValidationError(error)
        return {
            "atcoderUsername": atcoder_username or None,
            "favoriteLanguage": favorite_language or None,
            "atcoderRate": rate,
        }

    def _mirror(self, user_id: str, metadata: dict[str, Any]) -> ProfileResult | None:
        """Copy the identity user into ``profiles``. Returns an error result on failure."""
        user = self.identity.get_user(user_id)
        email = primary_email(user)
        if not email:
            return ProfileResult(False, error="User Email not found")
        try:
            self.store.upsert_profile(
                Profile(
                    user_id=user_id,
                    email=email,
                    atcoder_username=metadata["atcoderUsername"],
                    favorite_language=metadata["favoriteLanguage"],
                    atcoder_rate=metadata["atcoderRate"],
                    icon_url=user.get("image_url") or None,
                )
            )
        except StoreError:
            return ProfileResult(False, error="Failed to update profile in database")
        return None

    def update_profile(
        self,
        session: SessionContext,
        atcoder_username: str | None = None,
        favorite_language: str | None = None,
        atcoder_rate: str | int | None = None,
    ) -> ProfileResult:
        if not session.is_authenticated:
            return ProfileResult(False, error="No Logged In User")
        try:
            metadata = self._metadata(atcoder_username, favorite_language, atcoder_rate)
        except ValidationError as e:
            return ProfileResult(False, error=e.message)

        try:
            self.identity.update_user(session.user_id, unsafe_metadata=metadata)
            failure = self._mirror(session.user_id, metadata)
        except IdentityError as e:
            print(f"[memo-app] Update profile error: {e.message}", file=sys.stderr)
            return ProfileResult(False, error="There was an error updating the profile.")
        if failure:
            return failure
        return ProfileResult(True, message="Profile updated successfully", metadata=metadata)

    def complete_onboarding(
        self,
        session: SessionContext,
        atcoder_username: str | None = None,
        favorite_language: str | None = None,
        atcoder_rate: str | int | None = None,
    ) -> ProfileResult:
        if not session.is_authenticated:
            return ProfileResult(False, error="No Logged In User")
        if not (atcoder_username or "").strip():
            return ProfileResult(False, error="AtCoder username is required")
        try:
            metadata = self._metadata(atcoder_username.strip(), favorite_language, atcoder_rate)
        except ValidationError as e:
            return ProfileResult(False, error=e.message)

        try:
            user = self.identity.update_user(
                session.user_id,
                public_metadata={"onboardingComplete": True},
                unsafe_metadata=metadata,
            )
            failure = self._mirror(session.user_id, metadata)
        except IdentityError as e:
            print(f"[memo-app] Onboarding error: {e.message}", file=sys.stderr)
            return ProfileResult(False, error="There was an error updating the user metadata.")
        if failure:
            return failure
        return ProfileResult(
            True,
            message="Onboarding complete",
            metadata=user.get("public_metadata") or {"onboardingComplete": True},
        )
