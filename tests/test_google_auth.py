"""Tests for Gmail OAuth credential handling."""

import json
from types import SimpleNamespace

import pytest

from contractflow.config import Settings
from contractflow.errors import IntegrationError
from contractflow.integrations import google_auth
from contractflow.integrations.google_auth import GMAIL_SCOPES, get_credentials


@pytest.fixture
def settings(tmp_path):
    return Settings(
        google_token_file=str(tmp_path / "token.json"),
        google_credentials_file=str(tmp_path / "credentials.json"),
        _env_file=None,
    )


class FakeCredentials:
    def __init__(self, valid=True, expired=False, refresh_token=None):
        self.valid = valid
        self.expired = expired
        self.refresh_token = refresh_token
        self.refreshed = False

    def refresh(self, request):
        self.refreshed = True
        self.valid = True

    def to_json(self):
        return json.dumps({"token": "fresh"})


def use_token(monkeypatch, creds):
    calls = []

    def load(path, scopes):
        calls.append(scopes)
        return creds

    monkeypatch.setattr(google_auth.Credentials, "from_authorized_user_file", load)
    return calls


def test_missing_token_and_client_file(settings):
    with pytest.raises(IntegrationError, match="credentials.json"):
        get_credentials(settings)


def test_cached_token_only_asks_for_send_scope(monkeypatch, settings, tmp_path):
    (tmp_path / "token.json").write_text("{}")
    creds = FakeCredentials()
    calls = use_token(monkeypatch, creds)
    assert get_credentials(settings) is creds
    assert calls == [GMAIL_SCOPES]
    assert GMAIL_SCOPES == ["https://www.googleapis.com/auth/gmail.send"]


def test_expired_token_is_refreshed_and_saved(monkeypatch, settings, tmp_path):
    token = tmp_path / "token.json"
    token.write_text("{}")
    creds = FakeCredentials(valid=False, expired=True, refresh_token="r")
    use_token(monkeypatch, creds)
    monkeypatch.setattr(google_auth, "Request", lambda: SimpleNamespace())
    assert get_credentials(settings) is creds
    assert creds.refreshed
    assert json.loads(token.read_text()) == {"token": "fresh"}
