import time
from datetime import datetime, timezone
from unittest.mock import MagicMock

import platformdirs
import pytest
import requests

_NETWORK_BLOCK_MSG = (
    "Network access is blocked during tests. Mock requests.* or Session.request."
)


def _block_network(*_args, **_kwargs):
    """
    Prevent network calls in tests by raising a RuntimeError.

    Raises:
        RuntimeError: with `_NETWORK_BLOCK_MSG` indicating that network access is blocked during tests.
    """
    raise RuntimeError(_NETWORK_BLOCK_MSG)


def pytest_configure(config):
    """Register the markers used across the suite."""
    for marker in (
        "unit: fast isolated tests",
        "integration: tests exercising several components together",
        "core_downloads: tests of the listing, storage, and reconciliation core",
    ):
        config.addinivalue_line("markers", marker)


@pytest.fixture(autouse=True)
def _isolate_test_environment(tmp_path_factory, monkeypatch):
    """
    Point platformdirs and the XDG variables at a temporary tree and clear GITHUB_TOKEN.
    """
    base = tmp_path_factory.mktemp("releasemirror")
    config_dir = base / "config"
    state_dir = base / "state"
    for path in (config_dir, state_dir):
        path.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_dir))
    monkeypatch.setenv("XDG_STATE_HOME", str(state_dir))
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.setattr(
        platformdirs, "user_config_dir", lambda *_args, **_kwargs: str(config_dir)
    )


def pytest_runtest_setup():
    """
    Prevent real network requests during tests by replacing HTTP entry points with blocking callables.
    """
    requests.get = _block_network
    requests.post = _block_network
    requests.head = _block_network
    requests.Session.request = _block_network


@pytest.fixture(autouse=True)
def _mock_time_sleep(monkeypatch):
    """
    Make time.sleep instant for all tests so the inter-page delay doesn't slow the suite.

    Tests that assert on the delay patch sleep again themselves.
    """
    monkeypatch.setattr(time, "sleep", lambda *_args, **_kwargs: None)


def make_release_payload(tag, published="2024-01-01T00:00:00Z", assets=("app.bin",)):
    """Build a releases-endpoint entry the way the GitHub API returns it."""
    return {
        "tag_name": tag,
        "published_at": published,
        "tarball_url": f"https://api.github.com/repos/o/r/tarball/{tag}",
        "zipball_url": f"https://api.github.com/repos/o/r/zipball/{tag}",
        "assets": [
            {
                "name": name,
                "browser_download_url": f"https://github.com/o/r/releases/download/{tag}/{name}",
            }
            for name in assets
        ],
    }


def make_json_response(payload, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.headers = {}
    return response


@pytest.fixture
def release_payload():
    return make_release_payload


@pytest.fixture
def fixed_now():
    return datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def json_response():
    return make_json_response
