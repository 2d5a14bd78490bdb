"""Shared fixtures: a scripted HTTP session and on-disk settings stores."""

import json
from typing import Any, Dict, List, Optional

import pytest

from printauth.config import SETTINGS_KEY, EmailDeliveryMethod, EmailSettings, TenantSettings


class FakeResponse:
    """Minimal stand-in for ``requests.Response``."""

    def __init__(self, status_code: int = 200, payload: Any = None, text: Optional[str] = None,
                 reason: str = "OK"):
        self.status_code = status_code
        self.reason = reason
        if text is None:
            text = "" if payload is None else json.dumps(payload)
        self.text = text

    def json(self) -> Any:
        return json.loads(self.text)


class FakeSession:
    """Replays queued responses (or raises queued exceptions) in order."""

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []
        self.headers: Dict[str, str] = {}
        self.closed = False

    def queue(self, response: Any) -> None:
        self.responses.append(response)

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        if not self.responses:
            raise AssertionError(f"Unexpected request: {method} {url}")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self.request("POST", url, **kwargs)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def tenant_settings():
    return TenantSettings(tenant_url="https://tenant.example.com", api_key="secret-key")


@pytest.fixture
def graph_settings():
    return EmailSettings(
        method=EmailDeliveryMethod.GRAPH,
        graph_tenant_id="tenant-guid",
        graph_client_id="client-guid",
        graph_client_secret="client-secret",
        graph_sender_address="printing@example.com",
    )


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "PRINTAUTH_SETTINGS",
        "PRINTAUTH_TENANT_URL",
        "PRINTAUTH_API_KEY",
        "PRINTAUTH_PIN_LENGTH",
        "PRINTAUTH_SHORT_ID_LENGTH",
        "PRINTAUTH_EMAIL_METHOD",
        "PRINTAUTH_GRAPH_TENANT_ID",
        "PRINTAUTH_GRAPH_CLIENT_ID",
        "PRINTAUTH_GRAPH_CLIENT_SECRET",
        "PRINTAUTH_GRAPH_SENDER_ADDRESS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings_file(tmp_path, clean_env):
    """Write a settings store and return its path."""

    def _write(settings: Optional[Dict[str, Any]] = None, **extra: Any):
        path = tmp_path / "safeq-settings.json"
        store: Dict[str, Any] = dict(extra)
        if settings is not None:
            store[SETTINGS_KEY] = settings
        path.write_text(json.dumps(store), encoding="utf-8")
        return path

    return _write
