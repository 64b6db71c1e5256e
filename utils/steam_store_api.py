from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any

import requests

from config import SyncConfig
from logging_utils import get_logger
from utils.catalog import AppRecord

logger = get_logger(__name__)


RETRYABLE_STATUSES = (429, 500, 502, 503, 504)


class SteamApiError(RuntimeError):
    pass


@dataclass(frozen=True)
class SteamResponse:
    url: str
    status_code: int
    content: bytes
    content_type: str | None

    def json(self) -> Any:
        return json.loads(self.content.decode("utf-8"))


@dataclass(frozen=True)
class AppListPage:
    apps: list[AppRecord]
    have_more_results: bool
    last_appid: int


def _safe_preview_bytes(data: bytes | None, *, limit: int = 500) -> str:
    """Log-safe preview of a response body, truncated to `limit` bytes."""

    if not data:
        return ""
    return data[:limit].decode("utf-8", errors="replace")


def _params_for_log(params: dict[str, Any]) -> dict[str, str]:
    """Return a redacted copy of query params for logging."""

    redacted: dict[str, str] = {}
    for k, v in (params or {}).items():
        lk = str(k).lower()
        if lk in {"key", "api_key", "access_token"} or "token" in lk or "secret" in lk:
            redacted[str(k)] = "<redacted>"
        else:
            redacted[str(k)] = str(v)
    return redacted


def _scrub_secrets(text: str, params: dict[str, Any]) -> str:
    """Mask secret param values inside free text (urllib3 errors embed the URL)."""

    for k, v in (params or {}).items():
        if _params_for_log({k: v})[str(k)] == "<redacted>" and str(v):
            text = text.replace(str(v), "<redacted>")
    return text


def _parse_retry_after_seconds(value: str | None) -> float | None:
    if not value:
        return None
    v = value.strip()
    if not v:
        return None

    # Retry-After can also be an HTTP date; only integer seconds are honoured.
    try:
        return float(int(v))
    except ValueError:
        return None


def _sleep_backoff(
    attempt_index: int, *, base_seconds: float = 1.0, cap_seconds: float = 30.0
) -> None:
    # Exponential backoff: 1, 2, 4 ... capped
    delay = min(base_seconds * (2**attempt_index), cap_seconds)
    time.sleep(delay)


def _request(
    *,
    url: str,
    params: dict[str, Any],
    session: requests.Session | None = None,
    timeout_seconds: float = 30.0,
    max_attempts: int = 3,
) -> SteamResponse:
    """HTTP GET with bounded retry/backoff for transient failures."""

    if max_attempts <= 0:
        raise ValueError("max_attempts must be >= 1")

    if session is None:
        with requests.Session() as own:
            return _request(
                url=url,
                params=params,
                session=own,
                timeout_seconds=timeout_seconds,
                max_attempts=max_attempts,
            )

    s = session
    headers = {"Accept": "application/json", "Accept-Encoding": "gzip"}

    for attempt in range(max_attempts):
        try:
            resp = s.get(url, params=params, headers=headers, timeout=timeout_seconds)
        except requests.RequestException as e:
            err = _scrub_secrets(str(e), params)
            logger.warning(
                "Steam request failed | url=%s params=%s attempt=%s/%s err=%s",
                url,
                _params_for_log(params),
                attempt + 1,
                max_attempts,
                err,
            )
            if attempt < max_attempts - 1:
                _sleep_backoff(attempt)
                continue
            raise SteamApiError(f"Steam request failed url={url}: {err}") from None

        if 200 <= resp.status_code < 300:
            return SteamResponse(
                url=url,
                status_code=resp.status_code,
                content=resp.content,
                content_type=resp.headers.get("Content-Type"),
            )

        retry_after_raw = resp.headers.get("Retry-After")
        retry_after = _parse_retry_after_seconds(retry_after_raw)

        logger.warning(
            "Steam non-2xx response | status=%s url=%s params=%s attempt=%s/%s retry_after=%s body_preview=%s",
            resp.status_code,
            url,
            _params_for_log(params),
            attempt + 1,
            max_attempts,
            retry_after_raw,
            _safe_preview_bytes(resp.content),
        )

        if resp.status_code in RETRYABLE_STATUSES and attempt < max_attempts - 1:
            if retry_after is not None:
                time.sleep(retry_after)
            else:
                _sleep_backoff(attempt)
            continue

        raise SteamApiError(f"Steam request failed status={resp.status_code} url={url}")

    # Loop always returns or raises; kept for type checkers.
    raise SteamApiError(f"Steam request failed url={url}")


def build_app_list_params(
    config: SyncConfig, *, last_appid: int, if_modified_since: int
) -> dict[str, Any]:
    """Query parameters for one GetAppList page.

    Booleans are sent as lowercase strings, the form the Steam Web API expects.
    """

    params: dict[str, Any] = {
        "key": config.api_key,
        "max_results": config.max_results,
        "include_games": "true",
        "include_dlc": str(config.include_dlc).lower(),
        "include_software": str(config.include_software).lower(),
        "include_videos": str(config.include_videos).lower(),
        "include_hardware": str(config.include_hardware).lower(),
    }
    if last_appid > 0:
        params["last_appid"] = last_appid
    if if_modified_since > 0:
        params["if_modified_since"] = if_modified_since
    return params


def parse_app_list_page(payload: Any) -> AppListPage:
    """Validate a decoded GetAppList body.

    Expected shape:
      {"response": {"apps": [...], "have_more_results": true, "last_appid": 123}}

    Every key under ``response`` is optional; ``{"response": {}}`` is what the
    API sends when nothing changed since `if_modified_since`.

    Raises:
        SteamApiError: if the body does not have that shape.
    """

    if not isinstance(payload, dict) or not isinstance(payload.get("response"), dict):
        raise SteamApiError("Malformed GetAppList body: missing 'response' object")
    body = payload["response"]

    raw_apps = body.get("apps") or []
    if not isinstance(raw_apps, list):
        raise SteamApiError("Malformed GetAppList body: 'apps' is not a list")
    try:
        apps = [AppRecord.from_api(a) for a in raw_apps]
    except ValueError as e:
        raise SteamApiError(f"Malformed GetAppList body: {e}") from e

    last_appid = body.get("last_appid") or 0
    if isinstance(last_appid, bool) or not isinstance(last_appid, int):
        raise SteamApiError(
            f"Malformed GetAppList body: last_appid={last_appid!r} is not an integer"
        )

    return AppListPage(
        apps=apps,
        have_more_results=bool(body.get("have_more_results", False)),
        last_appid=last_appid,
    )


def fetch_app_list_page(
    config: SyncConfig,
    *,
    last_appid: int = 0,
    if_modified_since: int = 0,
    session: requests.Session | None = None,
) -> AppListPage:
    """Fetch and parse a single GetAppList page.

    Endpoint:
      https://api.steampowered.com/IStoreService/GetAppList/v1/
    """

    r = _request(
        url=config.app_list_url,
        params=build_app_list_params(
            config, last_appid=last_appid, if_modified_since=if_modified_since
        ),
        session=session,
        timeout_seconds=config.timeout_seconds,
        max_attempts=config.max_attempts,
    )
    try:
        payload = r.json()
    except ValueError as e:
        logger.warning(
            "GetAppList body is not JSON | content_type=%s body_preview=%s",
            r.content_type,
            _safe_preview_bytes(r.content),
        )
        raise SteamApiError(f"Malformed GetAppList body: {e}") from e
    return parse_app_list_page(payload)


def fetch_all_apps(
    config: SyncConfig,
    if_modified_since: int = 0,
    *,
    session: requests.Session | None = None,
) -> list[AppRecord]:
    """Walk every GetAppList page and return all records in received order.

    `if_modified_since` of 0 fetches the full listing. The loop follows
    `last_appid` until `have_more_results` is false or absent, sleeping
    `config.page_delay_seconds` between pages (not after the last one).

    Raises:
        SteamApiError: on any failed or malformed page, or a cursor that
            does not advance while more results are reported.
    """

    if session is None:
        with requests.Session() as own:
            return fetch_all_apps(config, if_modified_since, session=own)

    s = session
    all_apps: list[AppRecord] = []
    last_appid = 0
    page_count = 0

    if if_modified_since > 0:
        logger.info("Starting fetch | if_modified_since=%s", if_modified_since)
    else:
        logger.info("Starting full fetch")

    while True:
        page_count += 1
        logger.info("Fetching page %s | last_appid=%s", page_count, last_appid)

        try:
            page = fetch_app_list_page(
                config,
                last_appid=last_appid,
                if_modified_since=if_modified_since,
                session=s,
            )
        except SteamApiError as e:
            logger.error("Error fetching page %s | err=%s", page_count, e)
            raise

        if page.apps:
            all_apps.extend(page.apps)
            logger.info("  Received %s apps", len(page.apps))

        if not page.have_more_results:
            break

        if page.last_appid <= last_appid:
            raise SteamApiError(
                f"GetAppList cursor did not advance on page {page_count} "
                f"(last_appid {last_appid} -> {page.last_appid})"
            )
        last_appid = page.last_appid

        if config.page_delay_seconds > 0:
            time.sleep(config.page_delay_seconds)

    logger.info(
        "Fetch complete | pages=%s total_apps=%s", page_count, len(all_apps)
    )
    return all_apps
