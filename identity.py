"""Identity provider backend API client (Clerk-compatible REST API)."""

from __future__ import annotations

import sys
from typing import Any

import requests

from config import CONFIG
from errors import IdentityError


def _compact(metadata: dict[str, Any] | None) -> dict[str, Any] | None:
    """Drop unset keys so they are not written as nulls."""
    if metadata is None:
        return None
    return {k: v for k, v in metadata.items() if v is not None}


def primary_email(user: dict[str, Any]) -> str | None:
    """Email flagged as primary, else the first listed one."""
    addresses = user.get("email_addresses") or []
    primary_id = user.get("primary_email_address_id")
    for address in addresses:
        if primary_id and address.get("id") == primary_id:
            return address.get("email_address")
    return addresses[0].get("email_address") if addresses else None


class IdentityClient:
    """Thin wrapper over the provider's user endpoints.

    Every call is authenticated with the backend secret key.
    """

    def __init__(
        self,
        base_url: str | None = None,
        secret_key: str | None = None,
        timeout: int | None = None,
        http: requests.Session | None = None,
    ) -> None:
        self.base_url = (base_url or CONFIG.identity_api_url).rstrip("/")
        self.secret_key = CONFIG.identity_secret_key if secret_key is None else secret_key
        self.timeout = timeout or CONFIG.request_timeout
        self.http = http or requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        if not self.secret_key:
            raise IdentityError("Identity provider secret key is not configured")
        try:
            response = self.http.request(
                method,
                f"{self.base_url}{path}",
                headers={"Authorization": f"Bearer {self.secret_key}"},
                timeout=self.timeout,
                **kwargs,
            )
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            print(f"[memo-app] Identity API error ({method} {path}): {e}", file=sys.stderr)
            raise IdentityError("Identity provider request failed") from e

    def get_user(self, user_id: str) -> dict[str, Any]:
        return self._request("GET", f"/users/{user_id}")

    def update_user(
        self,
        user_id: str,
        public_metadata: dict[str, Any] | None = None,
        unsafe_metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        payload = {}
        if public_metadata is not None:
            payload["public_metadata"] = _compact(public_metadata)
        if unsafe_metadata is not None:
            payload["unsafe_metadata"] = _compact(unsafe_metadata)
        return self._request("PATCH", f"/users/{user_id}", json=payload)
