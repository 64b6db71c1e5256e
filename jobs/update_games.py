from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

# Allow running this file directly (e.g. `python jobs/update_games.py`) by
# ensuring the project root is importable.
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

import requests

from config import ConfigError, SyncConfig, load_config
from logging_utils import get_logger, logs_dir, set_log_level
from utils.catalog import merge_apps
from utils.catalog_store import (
    CatalogStoreError,
    RunStats,
    load_catalog,
    load_metadata,
    save_catalog,
    save_metadata,
)
from utils.steam_store_api import SteamApiError, fetch_all_apps
from utils.time_utils import to_epoch_seconds, to_iso_z, utcnow

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Fetch new/updated Steam apps and merge their ids into games.json"
    )
    p.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL for this run (e.g. DEBUG, INFO, WARNING)",
    )
    p.add_argument(
        "--games-file",
        default=None,
        help="Catalog file to update (default: STEAM_GAMES_FILE or ./games.json)",
    )
    p.add_argument(
        "--metadata-file",
        default=None,
        help="Metadata file to update (default: STEAM_METADATA_FILE or ./metadata.json)",
    )
    p.add_argument(
        "--full-refresh",
        action="store_true",
        help="Ignore lastFetchTimestamp and fetch the full app list",
    )
    return p.parse_args(argv)


def run_update(
    config: SyncConfig,
    *,
    session: requests.Session | None = None,
    full_refresh: bool = False,
) -> dict[str, object]:
    """Run one sync pass.

    Nothing is written unless the fetch returned at least one app. The catalog
    is saved first, then metadata with the new watermark.

    Returns summary counts.
    """

    catalog = load_catalog(config.games_file)
    metadata = load_metadata(config.metadata_file)

    logger.info("Existing games count: %s", len(catalog))
    logger.info("Last fetch timestamp: %s", metadata.last_fetch_timestamp)

    since = 0 if full_refresh else metadata.last_fetch_timestamp
    if full_refresh and metadata.last_fetch_timestamp:
        logger.info(
            "Full refresh requested; ignoring lastFetchTimestamp=%s",
            metadata.last_fetch_timestamp,
        )

    apps = fetch_all_apps(config, since, session=session)

    if not apps:
        logger.info("No new or updated apps found.")
        return {"status": "noop", "received": 0, "added": 0, "total": len(catalog)}

    result = merge_apps(catalog, apps)
    save_catalog(config.games_file, catalog)

    now = utcnow()
    metadata.last_fetch_timestamp = to_epoch_seconds(now)
    metadata.last_update_date = to_iso_z(now)
    metadata.total_games = len(catalog)
    metadata.last_run_stats = RunStats(
        apps_received=len(apps), games_added=result.added
    )
    save_metadata(config.metadata_file, metadata)

    return {
        "status": "updated",
        "received": len(apps),
        "added": result.added,
        "total": len(catalog),
    }


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    # Allow per-run log override without needing env vars.
    if args.log_level:
        os.environ["LOG_LEVEL"] = str(args.log_level)
        set_log_level(str(args.log_level))

    # Credential check comes first; nothing else runs without a key.
    try:
        config = load_config().with_overrides(
            games_file=args.games_file, metadata_file=args.metadata_file
        )
    except ConfigError as e:
        logger.error("ERROR: %s", e)
        return EXIT_FAILURE

    logger.info("=== Steam Games Database Update ===")
    logger.info("Start time: %s | logs_dir=%s", to_iso_z(utcnow()), logs_dir())

    logger.debug(
        "Resolved config | games_file=%s metadata_file=%s url=%s max_results=%s page_delay=%s max_attempts=%s",
        config.games_file,
        config.metadata_file,
        config.app_list_url,
        config.max_results,
        config.page_delay_seconds,
        config.max_attempts,
    )

    try:
        with requests.Session() as s:
            summary = run_update(config, session=s, full_refresh=args.full_refresh)
    except (SteamApiError, CatalogStoreError) as e:
        logger.error("=== Update Failed ===")
        logger.error("%s: %s", type(e).__name__, e)
        return EXIT_FAILURE
    except Exception:
        # Always emit a traceback to both console and file.
        logger.exception("=== Update Failed ===")
        return EXIT_FAILURE

    logger.info(
        "=== Update Complete === | status=%s received=%s added=%s total=%s",
        summary["status"],
        summary["received"],
        summary["added"],
        summary["total"],
    )
    logger.info("End time: %s", to_iso_z(utcnow()))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
