from __future__ import annotations

import os
import tempfile

import pytest

# Keep per-module log files out of the project tree. Must run before any
# project module calls get_logger().
os.environ.setdefault("STEAM_CATALOG_LOG_DIR", tempfile.mkdtemp(prefix="steam_catalog_logs_"))

from pytests.common import make_config  # noqa: E402


@pytest.fixture()
def config(tmp_path):
    """A `SyncConfig` whose files live in `tmp_path` and never sleeps between pages."""

    return make_config(tmp_path)


@pytest.fixture()
def no_sleep(monkeypatch):
    """Record sleeps instead of performing them."""

    import utils.steam_store_api as api

    sleeps: list[float] = []
    monkeypatch.setattr(api.time, "sleep", lambda s: sleeps.append(s))
    return sleeps
