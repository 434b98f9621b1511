"""Shared pytest fixtures for leavesync tests."""

import pytest
from fakes import FIXED_NOW, KEY, FlakyStore

from leavesync.config import Config
from leavesync.prefs import DevicePreferences
from leavesync.session import SchedulingSession
from leavesync.sync import SyncClient


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live document store endpoint",
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture
def mock_config(tmp_path):
    """Config pointing at a temporary file store."""
    return Config(
        store_path=str(tmp_path / "store"),
        prefs_path=str(tmp_path / "device.json"),
    )


@pytest.fixture
def store():
    return FlakyStore()


@pytest.fixture
async def client(store):
    """SyncClient loaded from an empty store (seed defaults)."""
    sync_client = SyncClient(store, key=KEY)
    await sync_client.load()
    return sync_client


@pytest.fixture
def prefs(tmp_path):
    return DevicePreferences(tmp_path / "device.json")


@pytest.fixture
def session(client, prefs):
    """Session acting as a staff member (Alice Tan, id 1)."""
    scheduling = SchedulingSession(client, prefs=prefs, now=lambda: FIXED_NOW)
    scheduling.select_user(1)
    return scheduling


@pytest.fixture
def admin_session(client, prefs):
    """Session acting as the admin (Eve Lim, id 5)."""
    scheduling = SchedulingSession(client, prefs=prefs, now=lambda: FIXED_NOW)
    scheduling.select_user(5)
    return scheduling
