from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .models import CacheEntry, CanonicalRecord, IdentityMapping
from .schema import IDENTITY_NOT_FOUND
from .utils.utilities import CacheIOTracker

COUNTER_FIELDS = ("views", "upvotes", "downvotes")


def _parse_ts(value: Any) -> datetime | None:
    try:
        ts = datetime.fromisoformat(str(value or ""))
    except ValueError:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class GameStore:
    """
    JSON-file persistence for the unification cache.

    Three independent sections live in one file:
    - `entries`: key -> serialized canonical record + `last_refreshed_at`
    - `identity`: key -> primary id + secondary id (or the explicit not-found marker)
    - `counters`: key -> views / upvotes / downvotes, kept outside the immutable record

    Reads always deserialize a new object, so callers never hold references into the store.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.stats: dict[str, Any] = {}
        self._io = CacheIOTracker(self.stats, prefix="store")
        self._lock = threading.Lock()
        raw = self._io.load_json(self.path)
        self._data: dict[str, dict[str, Any]] = {
            section: dict(raw.get(section) or {}) for section in ("entries", "identity", "counters")
        }
        if self._data["entries"]:
            logging.info(f"[CACHE] Loaded {len(self._data['entries'])} cached game(s) from '{self.path.name}'")

    def _save(self) -> None:
        self._io.save_json(self._data, self.path)

    def format_stats(self) -> str:
        return CacheIOTracker.format_io(self.stats, prefix="store")

    # ----------------------------
    # Entries
    # ----------------------------
    def get_entry(self, key: str) -> CacheEntry | None:
        with self._lock:
            raw = self._data["entries"].get(key)
        if not isinstance(raw, dict):
            return None
        ts = _parse_ts(raw.get("last_refreshed_at"))
        record = raw.get("record")
        if ts is None or not isinstance(record, dict):
            logging.warning(f"[CACHE] Ignoring malformed entry for '{key}'")
            return None
        try:
            return CacheEntry(record=CanonicalRecord.from_dict(record), last_refreshed_at=ts)
        except (KeyError, TypeError, ValueError) as e:
            logging.warning(f"[CACHE] Ignoring unreadable entry for '{key}': {e}")
            return None

    def put_entry(self, key: str, record: CanonicalRecord, refreshed_at: datetime) -> None:
        with self._lock:
            self._data["entries"][key] = {
                "record": record.to_dict(),
                "last_refreshed_at": refreshed_at.isoformat(),
            }
            self._save()

    def delete(self, key: str) -> bool:
        """Hard-delete the entry and identity mapping. Counters are kept."""
        with self._lock:
            had_entry = self._data["entries"].pop(key, None) is not None
            had_mapping = self._data["identity"].pop(key, None) is not None
            if had_entry or had_mapping:
                self._save()
        return had_entry or had_mapping

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data["entries"])

    # ----------------------------
    # Identity map
    # ----------------------------
    def get_mapping(self, key: str) -> IdentityMapping | None:
        with self._lock:
            raw = self._data["identity"].get(key)
        if not isinstance(raw, dict):
            return None
        try:
            primary_id = int(raw["primary_id"])
        except (KeyError, TypeError, ValueError):
            return None
        secondary = raw.get("secondary_id")
        if secondary == IDENTITY_NOT_FOUND:
            return IdentityMapping(key=key, primary_id=primary_id, secondary_id=None)
        try:
            return IdentityMapping(key=key, primary_id=primary_id, secondary_id=int(secondary))
        except (TypeError, ValueError):
            return None

    def put_mapping(self, mapping: IdentityMapping) -> None:
        secondary: int | str = (
            mapping.secondary_id if mapping.secondary_id is not None else IDENTITY_NOT_FOUND
        )
        with self._lock:
            self._data["identity"][mapping.key] = {
                "primary_id": mapping.primary_id,
                "secondary_id": secondary,
            }
            self._save()

    # ----------------------------
    # Counters
    # ----------------------------
    def get_counters(self, key: str) -> dict[str, int]:
        with self._lock:
            raw = dict(self._data["counters"].get(key) or {})
        return {f: int(raw.get(f, 0) or 0) for f in COUNTER_FIELDS}

    def bump_counter(self, key: str, field: str, amount: int = 1) -> int:
        if field not in COUNTER_FIELDS:
            raise ValueError(f"Unknown counter: {field}")
        with self._lock:
            counters = self._data["counters"].setdefault(key, {})
            counters[field] = int(counters.get(field, 0) or 0) + int(amount)
            self._save()
            return counters[field]
