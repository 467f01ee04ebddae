from __future__ import annotations

import os
from typing import Any

import pytest
import requests

# the dashboard refuses to import without a session secret
os.environ.setdefault("TOOLDECK_SESSION_SECRET", "test_session_secret_key_for_testing_only")


def _env_url() -> str:
    return os.getenv("TOOLDECK_BASE_URL", "http://127.0.0.1:8780").rstrip("/")


@pytest.fixture(scope="session")
def base_url() -> str:
    return _env_url()


@pytest.fixture(scope="session")
def http():
    """Simple requests wrapper with a short timeout."""

    class _HTTP:
        def get(self, url: str, **kw):
            kw.setdefault("timeout", 5)
            return requests.get(url, **kw)

        def post(self, url: str, json: dict[str, Any] | None = None, **kw):
            kw.setdefault("timeout", 8)
            return requests.post(url, json=json, **kw)

    return _HTTP()


@pytest.fixture(scope="session")
def server_up(base_url: str, http):
    """Skip live-server tests unless a ToolDeck instance answers /api/ping."""
    try:
        r = http.get(f"{base_url}/api/ping")
    except requests.RequestException as exc:
        pytest.skip(f"ToolDeck not reachable at {base_url} ({exc})")
    if r.status_code != 200:
        pytest.skip(f"/api/ping answered {r.status_code}")
    if not r.headers.get("content-type", "").startswith("application/json") or not r.json().get("ok"):
        pytest.skip("Something else is listening on the ToolDeck port")


@pytest.fixture
def fast_kdf(monkeypatch):
    """Cut PBKDF2 iterations so crypto tests stay quick. Envelopes stay format-compatible."""
    from security import symmetric_crypto

    monkeypatch.setattr(symmetric_crypto, "PBKDF2_ITERATIONS", 1000)
    return 1000


def assert_has_keys(obj: dict[str, Any], required: tuple[str, ...]) -> None:
    missing = [k for k in required if k not in obj]
    assert not missing, f"Missing keys: {missing} in {obj}"
