"""Shared pytest fixtures and fakes: an isolated LanceDB datastore per test."""

from __future__ import annotations

import uuid

import pytest

from config import MEMOS_TABLE
from errors import IdentityError
from models import Memo, Profile
from session import SessionContext
from store import Datastore

ALICE = "user_alice"
BOB = "user_bob"


@pytest.fixture
def store(tmp_path) -> Datastore:
    """Fresh database directory for every test."""
    datastore = Datastore(tmp_path / "lancedb-memo-test")
    datastore.init_database()
    return datastore


@pytest.fixture
def alice() -> SessionContext:
    return SessionContext(user_id=ALICE, token_getter=lambda: "token-alice")


@pytest.fixture
def bob() -> SessionContext:
    return SessionContext(user_id=BOB)


@pytest.fixture
def anonymous() -> SessionContext:
    return SessionContext.anonymous()


def add_memo(store: Datastore, owner_id: str, title: str, created_at: str, **fields) -> Memo:
    """Insert a memo with an explicit creation time so ordering is deterministic."""
    values = {
        "category": "algorithm",
        "published": True,
        "tags": "",
        **fields,
    }
    memo = Memo(
        id=uuid.uuid4().hex,
        owner_id=owner_id,
        title=title,
        created_at=created_at,
        updated_at=created_at,
        **values,
    )
    return store._add(MEMOS_TABLE, memo)


def add_profile(store: Datastore, user_id: str, username: str | None, **fields) -> Profile:
    return store.upsert_profile(
        Profile(user_id=user_id, email=f"{user_id}@example.com", atcoder_username=username, **fields)
    )


class FakeIdentity:
    """In-memory stand-in for the identity provider API."""

    def __init__(self, users=None, fail=False) -> None:
        self.users = users or {}
        self.fail = fail
        self.updates = []

    def get_user(self, user_id):
        if self.fail:
            raise IdentityError("Identity provider request failed")
        return self.users[user_id]

    def update_user(self, user_id, public_metadata=None, unsafe_metadata=None):
        if self.fail:
            raise IdentityError("Identity provider request failed")
        self.updates.append((user_id, public_metadata, unsafe_metadata))
        user = self.users[user_id]
        if public_metadata:
            user.setdefault("public_metadata", {}).update(public_metadata)
        return user


def identity_user(email="alice@example.com"):
    addresses = [{"id": "idn_1", "email_address": email}] if email else []
    return {
        "id": ALICE,
        "primary_email_address_id": "idn_1" if email else None,
        "email_addresses": addresses,
        "image_url": "https://img.example.com/alice.png",
    }
