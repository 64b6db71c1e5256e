from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path

from settings import SETTINGS


class ConfigError(RuntimeError):
    pass


_TRUE_VALUES = {"1", "true", "yes", "y", "on"}


def _env_str(env: Mapping[str, str], name: str) -> str:
    v = env.get(name)
    if v is None or not v.strip():
        return str(SETTINGS[name])
    return v.strip()


def _env_bool(env: Mapping[str, str], name: str) -> bool:
    v = env.get(name)
    if v is None:
        return bool(SETTINGS[name])
    return v.strip().lower() in _TRUE_VALUES


def _env_int(env: Mapping[str, str], name: str, *, minimum: int) -> int:
    raw = _env_str(env, name)
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _env_float(env: Mapping[str, str], name: str, *, minimum: float) -> float:
    raw = _env_str(env, name)
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


@dataclass(frozen=True)
class SyncConfig:
    """Everything one sync run needs, resolved once at startup."""

    api_key: str
    api_base_url: str
    app_list_path: str

    games_file: Path
    metadata_file: Path

    max_results: int
    include_dlc: bool
    include_software: bool
    include_videos: bool
    include_hardware: bool

    page_delay_seconds: float
    timeout_seconds: float
    max_attempts: int

    @property
    def app_list_url(self) -> str:
        return self.api_base_url.rstrip("/") + "/" + self.app_list_path.lstrip("/")

    def with_overrides(
        self,
        *,
        games_file: Path | str | None = None,
        metadata_file: Path | str | None = None,
    ) -> SyncConfig:
        """Return a copy with CLI-provided file paths applied."""

        changes: dict[str, Path] = {}
        if games_file:
            changes["games_file"] = Path(games_file)
        if metadata_file:
            changes["metadata_file"] = Path(metadata_file)
        return replace(self, **changes) if changes else self


def load_config(env: Mapping[str, str] | None = None) -> SyncConfig:
    """Build a `SyncConfig` from environment variables and `settings.SETTINGS`.

    Raises:
        ConfigError: if STEAM_API_KEY is missing or a numeric value is invalid.
    """

    env = os.environ if env is None else env

    api_key = (env.get("STEAM_API_KEY") or "").strip()
    if not api_key:
        raise ConfigError("STEAM_API_KEY environment variable is not set")

    return SyncConfig(
        api_key=api_key,
        api_base_url=_env_str(env, "STEAM_API_BASE_URL"),
        app_list_path=str(SETTINGS["STEAM_APP_LIST_PATH"]),
        games_file=Path(_env_str(env, "STEAM_GAMES_FILE")),
        metadata_file=Path(_env_str(env, "STEAM_METADATA_FILE")),
        max_results=_env_int(env, "STEAM_MAX_RESULTS", minimum=1),
        include_dlc=_env_bool(env, "STEAM_INCLUDE_DLC"),
        include_software=_env_bool(env, "STEAM_INCLUDE_SOFTWARE"),
        include_videos=_env_bool(env, "STEAM_INCLUDE_VIDEOS"),
        include_hardware=_env_bool(env, "STEAM_INCLUDE_HARDWARE"),
        page_delay_seconds=_env_float(env, "STEAM_PAGE_DELAY_SECONDS", minimum=0.0),
        timeout_seconds=_env_float(env, "STEAM_REQUEST_TIMEOUT_SECONDS", minimum=0.1),
        max_attempts=_env_int(env, "STEAM_MAX_ATTEMPTS", minimum=1),
    )
