"""Tests for the Wix OAuth token exchange."""

from typing import Any, Optional
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import pytest
import requests

from ordersync.core.credentials import CredentialStore, InstallStateStore
from ordersync.core.errors import InvalidState, NetworkError, NoCredential, ProviderRejected
from ordersync.core.oauth import (
    TokenRefresher,
    build_install_url,
    complete_grant,
    notify_install_complete,
    start_install,
)
from conftest import make_response


class FakeWixOAuth:
    """Wix OAuth endpoint that rotates refresh tokens on every exchange."""

    def __init__(self) -> None:
        self.valid_refresh_tokens: set[str] = set()
        self.valid_codes: set[str] = set()
        self.issued = 0
        self.requests: list[dict] = []

    def _issue(self) -> requests.Response:
        self.issued += 1
        refresh_token = f"refresh-{self.issued}"
        self.valid_refresh_tokens.add(refresh_token)
        return make_response(
            200, {"access_token": f"access-{self.issued}", "refresh_token": refresh_token}
        )

    def post(self, url: str, json: Optional[dict] = None, **kwargs: Any) -> requests.Response:
        self.requests.append({"url": url, "json": json, **kwargs})
        if json is None or json.get("client_secret") != "test_app_secret":
            return make_response(401, {"error": "invalid_client"})
        if json["grant_type"] == "authorization_code":
            if json["code"] not in self.valid_codes:
                return make_response(400, {"error": "invalid_grant"})
            self.valid_codes.discard(json["code"])
            return self._issue()
        if json["grant_type"] == "refresh_token":
            if json["refresh_token"] not in self.valid_refresh_tokens:
                return make_response(400, {"error": "invalid_grant"})
            self.valid_refresh_tokens.discard(json["refresh_token"])
            return self._issue()
        return make_response(400, {"error": "unsupported_grant_type"})


@pytest.fixture(name="provider")
def provider_fixture() -> FakeWixOAuth:
    return FakeWixOAuth()


@pytest.fixture(name="store")
def store_fixture(session_factory) -> CredentialStore:
    return CredentialStore(session_factory)


@pytest.fixture(name="refresher")
def refresher_fixture(store, provider, settings) -> TokenRefresher:
    return TokenRefresher(store, provider, settings)


def test_refresh_rotates_refresh_token(refresher, store, provider) -> None:
    provider.valid_refresh_tokens.add("refresh-0")
    store.put("instance-1", "refresh-0", "access-0")

    access_token = refresher.refresh("instance-1")

    credential = store.get("instance-1")
    assert access_token == "access-1"
    assert credential.access_token == "access-1"
    assert credential.refresh_token == "refresh-1"
    assert credential.refresh_token != "refresh-0"


def test_previous_refresh_token_is_no_longer_accepted(refresher, store, provider) -> None:
    provider.valid_refresh_tokens.add("refresh-0")
    store.put("instance-1", "refresh-0", "access-0")
    refresher.refresh("instance-1")

    # A concurrent refresher still holding the stale token
    store.put("instance-1", "refresh-0", "access-0")
    with pytest.raises(ProviderRejected) as exc_info:
        refresher.refresh("instance-1")
    assert exc_info.value.status_code == 400


def test_refresh_request_payload(refresher, store, provider, settings) -> None:
    provider.valid_refresh_tokens.add("refresh-0")
    store.put("instance-1", "refresh-0", "access-0")

    refresher.refresh("instance-1")

    request = provider.requests[0]
    assert request["url"] == settings.token_uri
    assert request["json"] == {
        "grant_type": "refresh_token",
        "client_id": "test_app_id",
        "client_secret": "test_app_secret",
        "refresh_token": "refresh-0",
    }
    assert request["timeout"] == (settings.connect_timeout, settings.read_timeout)


def test_refresh_without_credential(refresher) -> None:
    with pytest.raises(NoCredential):
        refresher.refresh("unknown-instance")


def test_refresh_with_empty_refresh_token(refresher, store) -> None:
    store.put("instance-1", "", "access-0")

    with pytest.raises(NoCredential):
        refresher.refresh("instance-1")


def test_refresh_network_error(store, settings) -> None:
    store.put("instance-1", "refresh-0", "access-0")
    http = MagicMock()
    http.post.side_effect = requests.ConnectTimeout("timed out")

    with pytest.raises(NetworkError):
        TokenRefresher(store, http, settings).refresh("instance-1")
    assert store.get("instance-1").refresh_token == "refresh-0"


def test_refresh_unparsable_body(store, settings) -> None:
    store.put("instance-1", "refresh-0", "access-0")
    http = MagicMock()
    http.post.return_value = make_response(200, text="<html>oops</html>")

    with pytest.raises(ProviderRejected):
        TokenRefresher(store, http, settings).refresh("instance-1")


def test_refresh_body_missing_tokens(store, settings) -> None:
    store.put("instance-1", "refresh-0", "access-0")
    http = MagicMock()
    http.post.return_value = make_response(200, {"access_token": "only-access"})

    with pytest.raises(ProviderRejected):
        TokenRefresher(store, http, settings).refresh("instance-1")
    assert store.get("instance-1").access_token == "access-0"


def test_complete_grant_stores_credentials(session_factory, refresher, store, provider) -> None:
    states = InstallStateStore(session_factory)
    state = start_install(states, "install-token")
    provider.valid_codes.add("code-1")

    credential = complete_grant(refresher, states, "code-1", state, "instance-1")

    assert credential.instance_id == "instance-1"
    assert store.get("instance-1").refresh_token == credential.refresh_token
    assert provider.requests[0]["json"]["grant_type"] == "authorization_code"
    assert provider.requests[0]["json"]["code"] == "code-1"


def test_reinstall_overwrites_credentials(session_factory, refresher, store, provider) -> None:
    states = InstallStateStore(session_factory)
    provider.valid_codes.update({"code-1", "code-2"})

    complete_grant(refresher, states, "code-1", start_install(states, "t"), "instance-1")
    second = complete_grant(refresher, states, "code-2", start_install(states, "t"), "instance-1")

    assert store.get("instance-1").refresh_token == second.refresh_token == "refresh-2"


def test_complete_grant_rejects_unknown_state(session_factory, refresher, provider) -> None:
    states = InstallStateStore(session_factory)
    provider.valid_codes.add("code-1")

    with pytest.raises(InvalidState):
        complete_grant(refresher, states, "code-1", "forged-state", "instance-1")
    assert provider.requests == []


def test_complete_grant_rejects_replayed_state(session_factory, refresher, provider) -> None:
    states = InstallStateStore(session_factory)
    state = start_install(states, "install-token")
    provider.valid_codes.update({"code-1", "code-2"})
    complete_grant(refresher, states, "code-1", state, "instance-1")

    with pytest.raises(InvalidState):
        complete_grant(refresher, states, "code-2", state, "instance-1")


def test_start_install_requires_token(session_factory) -> None:
    with pytest.raises(ValueError):
        start_install(InstallStateStore(session_factory), "")


def test_build_install_url(settings) -> None:
    url = build_install_url(settings, "install-token", "abc123")

    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == settings.installer_uri
    assert query["token"] == ["install-token"]
    assert query["appId"] == ["test_app_id"]
    assert query["redirectUrl"] == ["https://api.example.com/wix/grant"]
    assert query["state"] == ["abc123"]


def test_notify_install_complete_never_raises(settings) -> None:
    http = MagicMock()
    http.post.side_effect = requests.ConnectionError("down")
    assert notify_install_complete(http, settings, "access-1") is False

    http.post.side_effect = None
    http.post.return_value = make_response(200, {})
    assert notify_install_complete(http, settings, "access-1") is True
    assert http.post.call_args.kwargs["headers"] == {"Authorization": "access-1"}
