from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def as_str(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def as_int(value: object) -> int | None:
    """
    Strict numeric conversion.

    - Accepts: int, integral float
    - Rejects: bool, strings (even if numeric)
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    return None


def as_float(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def as_id(value: object) -> int | None:
    """
    Reference id as found in provider payloads: a bare int, or an expanded object with "id".
    """
    if isinstance(value, dict):
        value = value.get("id")
    n = as_int(value)
    if n is None or n <= 0:
        return None
    return n


def year_from_epoch_seconds(value: object) -> int | None:
    ts = as_int(value)
    if ts is None or ts <= 0:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).year


def iso_date_from_epoch_seconds(value: object) -> str | None:
    ts = as_int(value)
    if ts is None or ts <= 0:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d")


def get_list_of_dicts(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]


def names_of(items: Any, key: str = "name") -> tuple[str, ...]:
    """
    Names from a list of expanded objects (`[{"name": ...}, ...]`), in order, non-empty.
    """
    out: list[str] = []
    for it in get_list_of_dicts(items):
        s = as_str(it.get(key))
        if s:
            out.append(s)
    return tuple(out)


def ids_of(items: Any) -> tuple[int, ...]:
    """
    Reference ids from a list of bare ids or expanded objects; invalid entries dropped.
    """
    if not isinstance(items, list):
        return ()
    out: list[int] = []
    for it in items:
        n = as_id(it)
        if n is not None:
            out.append(n)
    return tuple(out)
