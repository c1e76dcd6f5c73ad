"""Tests for onboarding, profile updates and the identity API client."""

import pytest
import requests

from conftest import ALICE, FakeIdentity, add_profile, identity_user
from errors import IdentityError
from identity import IdentityClient, primary_email
from profiles import ProfileService


class TestUpdateProfile:
    def test_success_mirrors_profile(self, store, alice):
        identity = FakeIdentity({ALICE: identity_user()})
        result = ProfileService(identity, store).update_profile(alice, "alice_ac", "Python", "1234")

        assert result.success is True
        assert result.message == "Profile updated successfully"
        assert identity.updates == [
            (ALICE, None, {"atcoderUsername": "alice_ac", "favoriteLanguage": "Python", "atcoderRate": 1234})
        ]
        profile = store.get_profile(ALICE)
        assert profile.email == "alice@example.com"
        assert profile.atcoder_rate == 1234
        assert profile.icon_url == "https://img.example.com/alice.png"

    def test_requires_login(self, store, anonymous):
        result = ProfileService(FakeIdentity(), store).update_profile(anonymous, "x")
        assert (result.success, result.error) == (False, "No Logged In User")

    def test_identity_failure(self, store, alice):
        result = ProfileService(FakeIdentity(fail=True), store).update_profile(alice, "alice_ac")
        assert result.error == "There was an error updating the profile."
        assert store.get_profile(ALICE) is None

    def test_missing_email(self, store, alice):
        identity = FakeIdentity({ALICE: identity_user(email=None)})
        result = ProfileService(identity, store).update_profile(alice, "alice_ac")
        assert result.error == "User Email not found"

    def test_invalid_rate(self, store, alice):
        identity = FakeIdentity({ALICE: identity_user()})
        result = ProfileService(identity, store).update_profile(alice, "alice_ac", atcoder_rate="high")
        assert result.success is False
        assert "number" in result.error
        assert identity.updates == []

    def test_second_update_replaces_row(self, store, alice):
        add_profile(store, ALICE, "old_name")
        identity = FakeIdentity({ALICE: identity_user()})
        ProfileService(identity, store).update_profile(alice, "new_name")
        assert store.get_profile(ALICE).atcoder_username == "new_name"


class TestOnboarding:
    def test_complete(self, store, alice):
        identity = FakeIdentity({ALICE: identity_user()})
        result = ProfileService(identity, store).complete_onboarding(alice, "alice_ac", "C++")
        assert result.success is True
        assert result.metadata == {"onboardingComplete": True}
        assert identity.updates[0][1] == {"onboardingComplete": True}
        assert store.get_profile(ALICE).favorite_language == "C++"

    def test_username_required(self, store, alice):
        result = ProfileService(FakeIdentity(), store).complete_onboarding(alice, "  ")
        assert result.success is False

    def test_identity_failure(self, store, alice):
        result = ProfileService(FakeIdentity(fail=True), store).complete_onboarding(alice, "alice_ac")
        assert result.error == "There was an error updating the user metadata."


# =============================================================================
# Identity API client
# =============================================================================


class FakeResponse:
    def __init__(self, payload, status=200) -> None:
        self.payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


class FakeHttp:
    def __init__(self, response) -> None:
        self.response = response
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        return self.response


class TestIdentityClient:
    def test_update_drops_unset_metadata(self):
        http = FakeHttp(FakeResponse({"id": ALICE}))
        client = IdentityClient("https://identity.example.com/v1/", "sk_test", http=http)
        client.update_user(ALICE, unsafe_metadata={"atcoderUsername": "a", "atcoderRate": None})

        method, url, kwargs = http.calls[0]
        assert method == "PATCH"
        assert url == f"https://identity.example.com/v1/users/{ALICE}"
        assert kwargs["json"] == {"unsafe_metadata": {"atcoderUsername": "a"}}
        assert kwargs["headers"]["Authorization"] == "Bearer sk_test"

    def test_http_error_raises(self):
        client = IdentityClient("https://identity.example.com", "sk_test", http=FakeHttp(FakeResponse({}, 404)))
        with pytest.raises(IdentityError):
            client.get_user(ALICE)

    def test_missing_secret_key(self):
        client = IdentityClient("https://identity.example.com", "", http=FakeHttp(FakeResponse({})))
        with pytest.raises(IdentityError):
            client.get_user(ALICE)

    def test_primary_email(self):
        user = {
            "primary_email_address_id": "b",
            "email_addresses": [{"id": "a", "email_address": "a@x"}, {"id": "b", "email_address": "b@x"}],
        }
        assert primary_email(user) == "b@x"
        assert primary_email({"email_addresses": [{"id": "a", "email_address": "a@x"}]}) == "a@x"
        assert primary_email({}) is None
