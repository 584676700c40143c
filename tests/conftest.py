import json
import os

import pytest
import requests

from fit2bsky.config import ClientCredentials, Config
from fit2bsky.token_store import CredentialRecord, TokenStore


def _response(status_code=200, payload=None, text=None):
    response = requests.Response()
    response.status_code = status_code
    response.reason = "OK" if status_code < 400 else "Error"
    if text is None:
        text = json.dumps({} if payload is None else payload)
    response._content = text.encode("utf-8")
    response._content_consumed = True
    response.encoding = "utf-8"
    response.headers["Content-Type"] = "application/json"
    return response


@pytest.fixture
def make_response():
    return _response


@pytest.fixture
def credentials():
    return ClientCredentials("client-123", "secret-456")


@pytest.fixture
def config(credentials):
    return Config(
        credentials=credentials,
        bsky_handle="me.bsky.social",
        bsky_password="app-password",
        sheet_id="sheet-1",
        sheet_name="Weight",
    )


@pytest.fixture
def token_path(tmp_path):
    return tmp_path / ".token"


@pytest.fixture
def warm_store(token_path):
    store = TokenStore(token_path)
    store.save(CredentialRecord(access_token="A1", refresh_token="R1", expires_in=28800,
                                token_type="Bearer", user_id="ABC123"))
    return store


@pytest.fixture
def f2b_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith("F2B_"):
            monkeypatch.delenv(name)
    monkeypatch.setenv("F2B_CLIENT_ID", "client-123")
    monkeypatch.setenv("F2B_CLIENT_SECRET", "secret-456")
    monkeypatch.setenv("F2B_BSKY_HANDLE", "me.bsky.social")
    monkeypatch.setenv("F2B_BSKY_PASSWORD", "app-password")
    monkeypatch.setenv("F2B_SHEET_ID", "sheet-1")
    monkeypatch.setenv("F2B_SHEET_NAME", "Weight")
    return monkeypatch


class FakeConsent:
    """Stands in for the browser consent: saves a fixed record and returns its token."""

    def __init__(self, store, access_token="C1", refresh_token="CR1"):
        self.store = store
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.calls = 0

    def run(self):
        self.calls += 1
        if self.access_token:
            self.store.save(CredentialRecord(access_token=self.access_token, refresh_token=self.refresh_token))
        return self.access_token


@pytest.fixture
def make_consent():
    return FakeConsent
