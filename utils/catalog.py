from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any

from logging_utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AppRecord:
    """One entry of a GetAppList page.

    Only `appid` is kept in the catalog; the rest only shows up in the DEBUG
    line `merge_apps` writes for each newly added app.
    """

    appid: int
    name: str | None = None
    last_modified: int | None = None
    price_change_number: int | None = None

    @classmethod
    def from_api(cls, raw: Any) -> AppRecord:
        """Build a record from one element of ``response.apps``.

        Raises:
            ValueError: if `raw` is not an object with an integer `appid`.
        """

        if not isinstance(raw, dict):
            raise ValueError(f"app entry is not an object: {raw!r}")
        appid = raw.get("appid")
        if isinstance(appid, bool) or not isinstance(appid, int):
            raise ValueError(f"app entry has no integer appid: {raw!r}")

        name = raw.get("name")
        last_modified = raw.get("last_modified")
        price_change_number = raw.get("price_change_number")
        return cls(
            appid=appid,
            name=str(name) if name is not None else None,
            last_modified=last_modified if isinstance(last_modified, int) else None,
            price_change_number=(
                price_change_number if isinstance(price_change_number, int) else None
            ),
        )


class Catalog:
    """Set-backed collection of unique app ids with a sorted view."""

    def __init__(self, appids: Iterable[int] = ()) -> None:
        self._ids: set[int] = set()
        for appid in appids:
            self._ids.add(int(appid))

    def contains(self, appid: int) -> bool:
        return appid in self._ids

    def insert(self, appid: int) -> bool:
        """Add `appid`; return False if it was already present."""

        if appid in self._ids:
            return False
        self._ids.add(appid)
        return True

    def to_sorted_list(self) -> list[int]:
        return sorted(self._ids)

    def __contains__(self, appid: object) -> bool:
        return appid in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[int]:
        return iter(self.to_sorted_list())

    def __repr__(self) -> str:
        return f"Catalog(size={len(self._ids)})"


@dataclass(frozen=True)
class MergeResult:
    added: int


def merge_apps(catalog: Catalog, apps: Iterable[AppRecord]) -> MergeResult:
    """Insert every unseen app id into `catalog`.

    Ids already present are skipped. Returns how many ids were new.
    """

    added = 0
    for app in apps:
        if catalog.insert(app.appid):
            added += 1
            logger.debug(
                "New app | appid=%s name=%r last_modified=%s price_change_number=%s",
                app.appid,
                app.name,
                app.last_modified,
                app.price_change_number,
            )

    logger.info("Merge complete | added=%s total=%s", added, len(catalog))
    return MergeResult(added=added)
