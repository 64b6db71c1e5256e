"""Load and save the catalog (`games.json`) and run metadata (`metadata.json`).

Loading is forgiving: a missing or empty catalog starts fresh, and a corrupt
file is copied aside as ``<stem>.backup.<epoch-millis><suffix>`` before
continuing with defaults. If that copy cannot be made the load raises
`CatalogStoreError` instead. Saving is strict: any OS error becomes a
`CatalogStoreError` and aborts the run.
"""

from __future__ import annotations

import json
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from logging_utils import get_logger
from utils.catalog import Catalog
from utils.time_utils import to_epoch_millis, utcnow

logger = get_logger(__name__)

_BOM = "\ufeff"


class CatalogStoreError(RuntimeError):
    pass


@dataclass(frozen=True)
class RunStats:
    apps_received: int
    games_added: int

    def to_json(self) -> dict[str, int]:
        return {"appsReceived": self.apps_received, "gamesAdded": self.games_added}


@dataclass
class RunMetadata:
    last_fetch_timestamp: int = 0
    last_update_date: str | None = None
    total_games: int = 0
    last_run_stats: RunStats | None = None
    # Keys we don't model are written back untouched.
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> RunMetadata:
        known = {"lastFetchTimestamp", "lastUpdateDate", "totalGames", "lastRunStats"}

        stats = None
        raw_stats = data.get("lastRunStats")
        if isinstance(raw_stats, dict):
            stats = RunStats(
                apps_received=int(raw_stats.get("appsReceived") or 0),
                games_added=int(raw_stats.get("gamesAdded") or 0),
            )

        last_update = data.get("lastUpdateDate")
        return cls(
            last_fetch_timestamp=int(data.get("lastFetchTimestamp") or 0),
            last_update_date=str(last_update) if last_update is not None else None,
            total_games=int(data.get("totalGames") or 0),
            last_run_stats=stats,
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = dict(self.extra)
        out["lastFetchTimestamp"] = self.last_fetch_timestamp
        out["lastUpdateDate"] = self.last_update_date
        out["totalGames"] = self.total_games
        if self.last_run_stats is not None:
            out["lastRunStats"] = self.last_run_stats.to_json()
        return out


def backup_path_for(path: Path, *, millis: int | None = None) -> Path:
    """``games.json`` -> ``games.backup.<millis>.json`` in the same directory."""

    stamp = to_epoch_millis(utcnow()) if millis is None else millis
    return path.with_name(f"{path.stem}.backup.{stamp}{path.suffix}")


def _backup_corrupt_file(path: Path) -> Path | None:
    """Copy a corrupt file aside.

    Raises:
        CatalogStoreError: if the copy fails. The caller must not continue,
            since the next save would replace the only copy of the data.
    """

    if not path.exists():
        return None
    backup = backup_path_for(path)
    try:
        shutil.copy2(path, backup)
    except OSError as e:
        logger.error("Could not back up corrupt file | path=%s err=%s", path, e)
        raise CatalogStoreError(f"Cannot back up corrupt file {path}: {e}") from e
    logger.warning("Backup created: %s", backup)
    return backup


def _read_json_text(path: Path) -> str:
    return path.read_text(encoding="utf-8").lstrip(_BOM)


def load_catalog(path: Path) -> Catalog:
    """Load the persisted catalog, recovering from absent/empty/corrupt files.

    Raises:
        CatalogStoreError: if a corrupt or unreadable file cannot be backed up.
    """

    path = Path(path)
    if not path.exists():
        logger.info("No existing games data found at %s. Starting fresh.", path)
        return Catalog()

    try:
        text = _read_json_text(path)
        if not text.strip():
            logger.info("Games file is empty. Starting fresh.")
            return Catalog()

        parsed = json.loads(text)
        if not isinstance(parsed, list):
            logger.warning("Games data is not an array. Starting fresh.")
            return Catalog()

        bad = [v for v in parsed if isinstance(v, bool) or not isinstance(v, int)]
        if bad:
            raise ValueError(f"{len(bad)} non-integer entries, first={bad[0]!r}")

        return Catalog(parsed)
    except (OSError, UnicodeDecodeError, ValueError) as e:
        logger.error("Error loading games data | path=%s err=%s", path, e)
        logger.info("Creating backup of corrupted file...")
        _backup_corrupt_file(path)
        logger.info("Starting with empty database.")
        return Catalog()


def load_metadata(path: Path) -> RunMetadata:
    """Load run metadata; absent file means defaults ``{0, null, 0}``."""

    path = Path(path)
    if not path.exists():
        return RunMetadata()

    try:
        text = _read_json_text(path)
        if not text.strip():
            return RunMetadata()
        parsed = json.loads(text)
        if not isinstance(parsed, dict):
            raise ValueError("metadata is not a JSON object")
        return RunMetadata.from_json(parsed)
    except (OSError, UnicodeDecodeError, ValueError, TypeError) as e:
        logger.error(
            "Error loading metadata | path=%s err=%s (falling back to a full fetch)",
            path,
            e,
        )
        _backup_corrupt_file(path)
        return RunMetadata()


def _write_json(path: Path, data: Any) -> None:
    """Write `data` as indented JSON via a temp file + atomic rename."""

    path = Path(path)
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, path)
    except OSError as e:
        try:
            tmp_path.unlink(missing_ok=True)
        except OSError:
            logger.debug("Could not remove temp file %s", tmp_path, exc_info=True)
        raise CatalogStoreError(f"Cannot write {path}: {e}") from e


def save_catalog(path: Path, catalog: Catalog) -> None:
    _write_json(path, catalog.to_sorted_list())
    logger.info("Saved %s games to %s", len(catalog), path)


def save_metadata(path: Path, metadata: RunMetadata) -> None:
    data = metadata.to_json()
    _write_json(path, data)
    logger.info("Updated metadata: %s", json.dumps(data))
