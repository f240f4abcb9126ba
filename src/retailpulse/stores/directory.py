"""Read-only store master lookups used while processing jobs."""

from __future__ import annotations

import csv
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Mapping

import structlog

from retailpulse.errors import StoreMasterError

log = structlog.get_logger(__name__)

_COLUMN_ALIASES: Mapping[str, tuple[str, ...]] = {
    "store_id": ("storeid", "store_id"),
    "store_name": ("storename", "store_name"),
    "area_code": ("areacode", "area_code"),
}


@dataclass(frozen=True, slots=True)
class Store:
    """A single entry of the store master."""

    store_id: str
    store_name: str
    area_code: str


DEFAULT_STORES: tuple[Store, ...] = (
    Store(store_id="S00339218", store_name="Store A", area_code="NYC"),
    Store(store_id="S01408764", store_name="Store B", area_code="LA"),
)


class StoreDirectory:
    """Immutable mapping from store identifiers to :class:`Store` records."""

    def __init__(self, stores: Iterable[Store]) -> None:
        self._stores: dict[str, Store] = {store.store_id: store for store in stores}

    @classmethod
    def default(cls) -> "StoreDirectory":
        """Return the built-in store master."""

        return cls(DEFAULT_STORES)

    @classmethod
    def from_csv(cls, path: os.PathLike[str] | str) -> "StoreDirectory":
        """Load a store master CSV with ``AreaCode,StoreName,StoreID`` columns."""

        csv_path = Path(path)
        try:
            handle = csv_path.open(newline="", encoding="utf-8")
        except OSError as exc:
            raise StoreMasterError(
                f"Unable to read store master '{csv_path}': {exc}"
            ) from exc

        stores: list[Store] = []
        with handle:
            reader = csv.DictReader(handle)
            columns = _resolve_columns(reader.fieldnames or [])
            missing = sorted(set(_COLUMN_ALIASES) - set(columns))
            if missing:
                raise StoreMasterError(
                    f"Store master '{csv_path}' is missing columns: {', '.join(missing)}."
                )
            for line_num, row in enumerate(reader, start=2):
                store_id = (row.get(columns["store_id"]) or "").strip()
                if not store_id:
                    log.warning(
                        "stores.directory.row_skipped",
                        path=str(csv_path),
                        line=line_num,
                    )
                    continue
                stores.append(
                    Store(
                        store_id=store_id,
                        store_name=(row.get(columns["store_name"]) or "").strip(),
                        area_code=(row.get(columns["area_code"]) or "").strip(),
                    )
                )

        log.info("stores.directory.loaded", path=str(csv_path), count=len(stores))
        return cls(stores)

    def lookup(self, store_id: str) -> Store | None:
        """Return the store registered under ``store_id`` or ``None``."""

        return self._stores.get(store_id)

    def __contains__(self, store_id: object) -> bool:
        return store_id in self._stores

    def __len__(self) -> int:
        return len(self._stores)

    def __iter__(self) -> Iterator[Store]:
        return iter(self._stores.values())


def _resolve_columns(fieldnames: Iterable[str]) -> dict[str, str]:
    resolved: dict[str, str] = {}
    for name in fieldnames:
        key = name.strip().lower()
        for field_name, aliases in _COLUMN_ALIASES.items():
            if key in aliases and field_name not in resolved:
                resolved[field_name] = name
    return resolved
