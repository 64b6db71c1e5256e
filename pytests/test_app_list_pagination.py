from __future__ import annotations

import pytest

import utils.steam_store_api as api
from pytests.common import FakeResponse, FakeSession, make_config, page_response


def test_single_page_without_more_flag(config, no_sleep):
    s = FakeSession([page_response([10, 20])])

    apps = api.fetch_all_apps(config, 0, session=s)

    assert [a.appid for a in apps] == [10, 20]
    assert len(s.calls) == 1
    assert no_sleep == []


def test_follows_cursor_until_no_more_results(tmp_path, no_sleep):
    config = make_config(tmp_path, STEAM_PAGE_DELAY_SECONDS="1.0")
    s = FakeSession(
        [
            page_response([1, 2, 3], more=True, last_appid=3),
            page_response([4, 5], more=True, last_appid=5),
            page_response([6], more=False, last_appid=6),
        ]
    )

    apps = api.fetch_all_apps(config, 0, session=s)

    assert [a.appid for a in apps] == [1, 2, 3, 4, 5, 6]
    assert "last_appid" not in s.calls[0]["params"]
    assert s.calls[1]["params"]["last_appid"] == 3
    assert s.calls[2]["params"]["last_appid"] == 5
    # Cooldown between pages only, not after the last.
    assert no_sleep == [1.0, 1.0]


def test_watermark_sent_on_every_page(config, no_sleep):
    s = FakeSession(
        [
            page_response([1], more=True, last_appid=1),
            page_response([2], more=False),
        ]
    )

    api.fetch_all_apps(config, 1700000000, session=s)

    assert [c["params"]["if_modified_since"] for c in s.calls] == [
        1700000000,
        1700000000,
    ]


def test_full_fetch_sends_no_watermark(config, no_sleep):
    s = FakeSession([page_response([1])])

    api.fetch_all_apps(config, 0, session=s)

    assert "if_modified_since" not in s.calls[0]["params"]


def test_duplicates_across_pages_are_preserved(config, no_sleep):
    s = FakeSession(
        [
            page_response([10, 5], more=True, last_appid=10),
            page_response([10], more=False),
        ]
    )

    apps = api.fetch_all_apps(config, 0, session=s)

    assert [a.appid for a in apps] == [10, 5, 10]


def test_empty_response_returns_nothing(config, no_sleep):
    s = FakeSession([FakeResponse(status_code=200, content=b'{"response": {}}')])

    assert api.fetch_all_apps(config, 1700000000, session=s) == []


def test_page_with_more_but_no_apps_keeps_going(config, no_sleep):
    s = FakeSession(
        [
            page_response([], more=True, last_appid=100),
            page_response([101], more=False),
        ]
    )

    apps = api.fetch_all_apps(config, 0, session=s)

    assert [a.appid for a in apps] == [101]
    assert s.calls[1]["params"]["last_appid"] == 100


@pytest.mark.parametrize("stuck_cursor", [None, 0, 3])
def test_non_advancing_cursor_aborts(config, no_sleep, stuck_cursor):
    s = FakeSession(
        [
            page_response([1, 2, 3], more=True, last_appid=3),
            page_response([], more=True, last_appid=stuck_cursor),
        ]
    )

    with pytest.raises(api.SteamApiError, match="did not advance"):
        api.fetch_all_apps(config, 0, session=s)


def test_error_on_later_page_propagates(config, no_sleep):
    s = FakeSession(
        [
            page_response([1], more=True, last_appid=1),
            FakeResponse(status_code=401, content=b"bad key"),
        ]
    )

    with pytest.raises(api.SteamApiError, match="status=401"):
        api.fetch_all_apps(config, 0, session=s)


def test_fetch_without_session_closes_the_one_it_opens(config, monkeypatch, no_sleep):
    s = FakeSession(
        [
            page_response([1], more=True, last_appid=1),
            page_response([2], more=False),
        ]
    )
    monkeypatch.setattr(api.requests, "Session", lambda: s)

    apps = api.fetch_all_apps(config, 0)

    assert [a.appid for a in apps] == [1, 2]
    assert len(s.calls) == 2
    assert s.closed
