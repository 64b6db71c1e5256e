"""Shared helpers for tests.

Intended usage:
- build a `SyncConfig` pointed at a temp directory
- fake `requests` sessions/responses that replay canned GetAppList pages

These utilities keep tests small and consistent.
"""

from __future__ import annotations

import io
import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from config import SyncConfig, load_config

__all__ = [
    "FakeResponse",
    "FakeSession",
    "page",
    "page_response",
    "make_config",
    "captured_logs",
]

TEST_API_KEY = "TESTKEY1234567890"


class FakeResponse:
    def __init__(
        self, *, status_code: int = 200, content: bytes = b"{}", headers: dict | None = None
    ):
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}


class FakeSession:
    """Stand-in for `requests.Session` that pops one canned response per GET."""

    def __init__(self, responses):
        self._responses = list(responses)
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append(
            {
                "url": url,
                "params": dict(params or {}),
                "headers": headers or {},
                "timeout": timeout,
            }
        )
        if not self._responses:
            raise RuntimeError("No more fake responses")
        r = self._responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


def page(
    appids: list[int], *, more: bool | None = None, last_appid: int | None = None
) -> dict[str, Any]:
    """Build a decoded GetAppList body."""

    body: dict[str, Any] = {}
    if appids:
        body["apps"] = [
            {
                "appid": a,
                "name": f"App {a}",
                "last_modified": 1700000000,
                "price_change_number": 1,
            }
            for a in appids
        ]
    if more is not None:
        body["have_more_results"] = more
    if last_appid is not None:
        body["last_appid"] = last_appid
    return {"response": body}


def page_response(appids: list[int], **kwargs) -> FakeResponse:
    return FakeResponse(
        status_code=200,
        content=json.dumps(page(appids, **kwargs)).encode("utf-8"),
        headers={"Content-Type": "application/json"},
    )


def make_config(tmp_path: Path, **env_overrides: str) -> SyncConfig:
    env = {
        "STEAM_API_KEY": TEST_API_KEY,
        "STEAM_GAMES_FILE": str(tmp_path / "games.json"),
        "STEAM_METADATA_FILE": str(tmp_path / "metadata.json"),
        "STEAM_PAGE_DELAY_SECONDS": "0",
    }
    env.update(env_overrides)
    return load_config(env)


@contextmanager
def captured_logs(*loggers: logging.Logger, level: int = logging.DEBUG):
    """Collect everything the app logger tree emits into a string buffer.

    The app logger does not propagate to the root logger, so pytest's `caplog`
    never sees these records. Any `loggers` passed in are lowered to `level`
    for the duration.
    """

    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setLevel(level)
    app_logger = logging.getLogger("steam_catalog")
    app_logger.addHandler(handler)
    previous = [(lg, lg.level) for lg in loggers]
    for lg in loggers:
        lg.setLevel(level)
    try:
        yield stream
    finally:
        app_logger.removeHandler(handler)
        for lg, lvl in previous:
            lg.setLevel(lvl)
