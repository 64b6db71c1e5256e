from __future__ import annotations

import json
from pathlib import Path

import pytest

from utils.catalog import Catalog
from utils.catalog_store import (
    CatalogStoreError,
    RunMetadata,
    RunStats,
    backup_path_for,
    load_catalog,
    load_metadata,
    save_catalog,
    save_metadata,
)


def _backups(directory: Path, stem: str) -> list[Path]:
    return sorted(directory.glob(f"{stem}.backup.*.json"))


def test_missing_catalog_is_empty(tmp_path):
    catalog = load_catalog(tmp_path / "games.json")

    assert len(catalog) == 0
    assert not (tmp_path / "games.json").exists()


@pytest.mark.parametrize("content", ["", "   \n", "\ufeff", "\ufeff  \n"])
def test_empty_catalog_file_is_empty(tmp_path, content):
    path = tmp_path / "games.json"
    path.write_text(content, encoding="utf-8")

    assert len(load_catalog(path)) == 0
    assert _backups(tmp_path, "games") == []


def test_bom_prefix_is_stripped(tmp_path):
    path = tmp_path / "games.json"
    path.write_text("\ufeff[30, 10, 20]", encoding="utf-8")

    assert load_catalog(path).to_sorted_list() == [10, 20, 30]


def test_non_array_json_starts_fresh_without_backup(tmp_path):
    path = tmp_path / "games.json"
    path.write_text('{"games": [1, 2]}', encoding="utf-8")

    assert len(load_catalog(path)) == 0
    assert _backups(tmp_path, "games") == []


@pytest.mark.parametrize("content", ["[1, 2,", "not json", '[1, "two", 3]', "[1, null]"])
def test_corrupt_catalog_is_backed_up(tmp_path, content):
    path = tmp_path / "games.json"
    path.write_text(content, encoding="utf-8")

    catalog = load_catalog(path)

    assert len(catalog) == 0
    backups = _backups(tmp_path, "games")
    assert len(backups) == 1
    assert backups[0].read_text(encoding="utf-8") == content
    # Original is left in place; the next save overwrites it.
    assert path.read_text(encoding="utf-8") == content


def test_backup_name_keeps_suffix():
    assert backup_path_for(Path("/data/games.json"), millis=1700000000123) == Path(
        "/data/games.backup.1700000000123.json"
    )


def test_missing_metadata_uses_defaults(tmp_path):
    md = load_metadata(tmp_path / "metadata.json")

    assert md.to_json() == {
        "lastFetchTimestamp": 0,
        "lastUpdateDate": None,
        "totalGames": 0,
    }


def test_metadata_round_trip_preserves_unknown_keys(tmp_path):
    path = tmp_path / "metadata.json"
    path.write_text(
        json.dumps(
            {
                "lastFetchTimestamp": 1700000000,
                "lastUpdateDate": "2023-11-14T22:13:20.000Z",
                "totalGames": 2,
                "lastRunStats": {"appsReceived": 3, "gamesAdded": 2},
                "note": "kept",
            }
        ),
        encoding="utf-8",
    )

    md = load_metadata(path)

    assert md.last_fetch_timestamp == 1700000000
    assert md.last_update_date == "2023-11-14T22:13:20.000Z"
    assert md.total_games == 2
    assert md.last_run_stats == RunStats(apps_received=3, games_added=2)
    assert md.to_json()["note"] == "kept"


def test_corrupt_metadata_falls_back_to_defaults(tmp_path):
    path = tmp_path / "metadata.json"
    path.write_text("{oops", encoding="utf-8")

    md = load_metadata(path)

    assert md.last_fetch_timestamp == 0
    assert len(_backups(tmp_path, "metadata")) == 1


def test_save_catalog_writes_sorted_indented_json(tmp_path):
    path = tmp_path / "out" / "games.json"

    save_catalog(path, Catalog([20, 10]))

    assert path.read_text(encoding="utf-8") == "[\n  10,\n  20\n]"
    assert not (tmp_path / "out" / "games.json.tmp").exists()


def test_save_metadata_writes_camel_case_fields(tmp_path):
    path = tmp_path / "metadata.json"
    md = RunMetadata(
        last_fetch_timestamp=1704164645,
        last_update_date="2024-01-02T03:04:05.678Z",
        total_games=5,
        last_run_stats=RunStats(apps_received=7, games_added=5),
    )

    save_metadata(path, md)

    assert json.loads(path.read_text(encoding="utf-8")) == {
        "lastFetchTimestamp": 1704164645,
        "lastUpdateDate": "2024-01-02T03:04:05.678Z",
        "totalGames": 5,
        "lastRunStats": {"appsReceived": 7, "gamesAdded": 5},
    }


def test_save_into_unwritable_location_raises(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory", encoding="utf-8")

    with pytest.raises(CatalogStoreError):
        save_catalog(blocker / "games.json", Catalog([1]))


def test_failed_backup_aborts_instead_of_continuing(tmp_path, monkeypatch):
    import utils.catalog_store as store

    path = tmp_path / "games.json"
    path.write_text("[1, 2, 3,", encoding="utf-8")

    def _deny(*_a, **_kw):
        raise PermissionError("read-only directory")

    monkeypatch.setattr(store.shutil, "copy2", _deny)

    with pytest.raises(CatalogStoreError, match="back up"):
        load_catalog(path)

    assert path.read_text(encoding="utf-8") == "[1, 2, 3,"
    assert _backups(tmp_path, "games") == []


def test_failed_metadata_backup_aborts(tmp_path, monkeypatch):
    import utils.catalog_store as store

    path = tmp_path / "metadata.json"
    path.write_text("{oops", encoding="utf-8")

    def _deny(*_a, **_kw):
        raise PermissionError("read-only directory")

    monkeypatch.setattr(store.shutil, "copy2", _deny)

    with pytest.raises(CatalogStoreError):
        load_metadata(path)
