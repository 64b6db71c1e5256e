"""Default settings for the games catalog sync.

``config.load_config()`` reads these as fallbacks for the matching environment
variables. Nothing in here is secret; the API key only ever comes from the
environment.
"""

from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent

# Single source of truth for default configuration.
SETTINGS: dict[str, object] = {
    # Steam Store API
    "STEAM_API_BASE_URL": "https://api.steampowered.com",
    "STEAM_APP_LIST_PATH": "/IStoreService/GetAppList/v1/",
    "STEAM_MAX_RESULTS": 50000,
    # Only games are tracked; everything else stays out of the catalog.
    "STEAM_INCLUDE_DLC": False,
    "STEAM_INCLUDE_SOFTWARE": False,
    "STEAM_INCLUDE_VIDEOS": False,
    "STEAM_INCLUDE_HARDWARE": False,
    # Request pacing
    "STEAM_PAGE_DELAY_SECONDS": 1.0,
    "STEAM_REQUEST_TIMEOUT_SECONDS": 30.0,
    "STEAM_MAX_ATTEMPTS": 3,
    # Output files
    "STEAM_GAMES_FILE": str(PROJECT_ROOT / "games.json"),
    "STEAM_METADATA_FILE": str(PROJECT_ROOT / "metadata.json"),
    # Logging
    "LOG_LEVEL": "INFO",
}

LOG_LEVEL = SETTINGS["LOG_LEVEL"]
