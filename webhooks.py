"""Identity-provider webhook: mirror user updates and deletions into ``profiles``."""

from __future__ import annotations

import sys
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from svix.webhooks import Webhook, WebhookVerificationError

from config import CONFIG
from errors import StoreError
from identity import primary_email
from store import Datastore

SVIX_HEADERS = ("svix-id", "svix-timestamp", "svix-signature")


@dataclass
class WebhookResult:
    status: int
    message: str


def handle_identity_webhook(
    store: Datastore,
    body: str | bytes,
    headers: Mapping[str, str],
    secret: str | None = None,
) -> WebhookResult:
    """Verify and apply one event. Nothing is written unless verification passes."""
    secret = CONFIG.webhook_secret if secret is None else secret
    if not secret:
        print("[memo-app] IDENTITY_WEBHOOK_SECRET is not defined", file=sys.stderr)
        return WebhookResult(500, "Server configuration error")

    svix_headers = {name: headers.get(name) for name in SVIX_HEADERS}
    if not all(svix_headers.values()):
        print("[memo-app] Webhook rejected: missing svix headers", file=sys.stderr)
        return WebhookResult(400, "Error: Missing svix headers")

    try:
        event: dict[str, Any] = Webhook(secret).verify(body, svix_headers)
    except WebhookVerificationError as e:
        print(f"[memo-app] Webhook verification failed: {e}", file=sys.stderr)
        return WebhookResult(400, "Error: Webhook verification failed")

    event_type = event.get("type")
    data = event.get("data") or {}
    user_id = data.get("id")

    if event_type == "user.deleted":
        return _user_deleted(store, user_id)
    if event_type == "user.updated":
        return _user_updated(store, user_id, data)
    print(f"[memo-app] Unhandled webhook event type: {event_type}", file=sys.stderr)
    return WebhookResult(200, "Webhook processed successfully")


def _user_deleted(store: Datastore, user_id: str | None) -> WebhookResult:
    if not user_id:
        return WebhookResult(400, "Error: Missing user id")
    try:
        store.delete_profile(user_id)
    except StoreError:
        return WebhookResult(500, "Error: Failed to delete profile")
    print(f"[memo-app] Deleted profile for user {user_id}", file=sys.stderr)
    return WebhookResult(200, "Webhook processed successfully")


def _user_updated(store: Datastore, user_id: str | None, data: dict[str, Any]) -> WebhookResult:
    if not user_id:
        return WebhookResult(400, "Error: Missing user id")
    values = {}
    email = primary_email(data) if data.get("primary_email_address_id") else None
    if email:
        values["email"] = email
    if data.get("image_url"):
        values["icon_url"] = data["image_url"]
    if not values:
        print(f"[memo-app] No primary email or image for user {user_id}", file=sys.stderr)
        return WebhookResult(200, "Webhook processed successfully")

    try:
        updated = store.update_profile_fields(user_id, values)
    except StoreError:
        return WebhookResult(500, "Error: Failed to update profile")
    if updated:
        print(f"[memo-app] Updated profile for user {user_id}", file=sys.stderr)
    else:
        print(f"[memo-app] No profile row for user {user_id}; nothing to update", file=sys.stderr)
    return WebhookResult(200, "Webhook processed successfully")
