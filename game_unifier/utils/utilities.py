from __future__ import annotations

import json
import logging
import os
import random
import re
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable

import pandas as pd
import requests
import yaml
from rapidfuzz import fuzz

from ..config import CACHE, RETRY
from ..errors import UpstreamUnavailableError

# ----------------------------
# Paths / Folder structure
# ----------------------------


@dataclass(frozen=True)
class ProjectPaths:
    root: Path
    data_cache: Path
    data_output: Path
    data_logs: Path

    @staticmethod
    def from_root(root: str | Path) -> ProjectPaths:
        rootp = Path(root).resolve()
        return ProjectPaths(
            root=rootp,
            data_cache=rootp / "data" / "cache",
            data_output=rootp / "data" / "output",
            data_logs=rootp / "data" / "logs",
        )

    @property
    def store_path(self) -> Path:
        return self.data_cache / "game_store.json"

    @property
    def credentials_path(self) -> Path:
        return self.root / "data" / "credentials.yaml"

    def ensure(self) -> None:
        self.data_cache.mkdir(parents=True, exist_ok=True)
        self.data_output.mkdir(parents=True, exist_ok=True)
        self.data_logs.mkdir(parents=True, exist_ok=True)


# ----------------------------
# CSV Helpers
# ----------------------------


def write_csv(df: pd.DataFrame, path: str | Path) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)


def read_csv(path: str | Path) -> pd.DataFrame:
    """Read CSV preserving strings and avoiding problematic type inference."""
    return pd.read_csv(path, dtype=str, keep_default_na=False)


# ----------------------------
# Name normalization
# ----------------------------

_ROMAN_MAP = {
    " i ": " 1 ",
    " ii ": " 2 ",
    " iii ": " 3 ",
    " iv ": " 4 ",
    " v ": " 5 ",
    " vi ": " 6 ",
    " vii ": " 7 ",
    " viii ": " 8 ",
    " ix ": " 9 ",
    " x ": " 10 ",
}


def normalize_game_name(name: str) -> str:
    """
    Normalize titles before fuzzy comparison: lowercase, drop trademark symbols and
    punctuation, collapse whitespace, and turn standalone roman numerals into digits.
    """
    s = (name or "").strip().lower()
    s = s.replace("™", "").replace("®", "").replace("©", "")
    s = re.sub(r"[\(\)\[\]\{\}]", " ", s)
    s = re.sub(r"[’'`]", "", s)
    s = re.sub(r"[:\-–—_/\\|]", " ", s)
    s = re.sub(r"[.,!?+*&%$#@~]", " ", s)

    s = f" {s} "
    for k, v in _ROMAN_MAP.items():
        s = s.replace(k, v)

    return re.sub(r"\s+", " ", s).strip()


def casefold_unique(values: Iterable[str]) -> list[str]:
    """
    De-duplicate names case-insensitively, keeping the first spelling and first position.
    """
    out: list[str] = []
    seen: set[str] = set()
    for v in values:
        s = str(v or "").strip()
        if not s:
            continue
        k = s.casefold()
        if k in seen:
            continue
        seen.add(k)
        out.append(s)
    return out


def strip_query_string(url: str) -> str:
    return str(url or "").split("?", 1)[0]


# ----------------------------
# Fuzzy matching
# ----------------------------

_EDITION_TOKENS = {
    "remake",
    "hd",
    "classic",
    "definitive",
    "remastered",
    "ultimate",
    "goty",
    "anniversary",
    "complete",
    "collection",
    "edition",
    "enhanced",
    "redux",
    "directors",
    "director",
    "cut",
    "game",
    "of",
    "the",
    "year",
}


def _is_year_token(t: str) -> bool:
    return t.isdigit() and len(t) == 4 and 1900 <= int(t) <= 2100


def fuzzy_score(a: str, b: str) -> int:
    """
    Similarity between two titles on a 0..100 scale.

    token_sort_ratio is the default; partial_ratio is only allowed when one side adds
    nothing but a year or edition tokens ("Doom" vs "Doom (2016)"), so substrings such as
    "60 Seconds!" vs "60 Seconds Santa Run" do not score as perfect matches.
    """
    na = normalize_game_name(a)
    nb = normalize_game_name(b)
    if not na or not nb:
        return 0
    score_sort = float(fuzz.token_sort_ratio(na, nb))

    extra_a = set(na.split()) - set(nb.split())
    extra_b = set(nb.split()) - set(na.split())
    if extra_a and extra_b:
        return int(score_sort)

    extra = extra_a or extra_b
    allow_partial = bool(extra) and (
        all(_is_year_token(t) for t in extra) or all(t in _EDITION_TOKENS for t in extra)
    )
    if not allow_partial:
        return int(score_sort)
    return int(max(score_sort, float(fuzz.partial_ratio(na, nb))))


# ----------------------------
# JSON files
# ----------------------------


def load_json_cache(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logging.warning(f"[CACHE] Ignoring unreadable file '{p.name}': {e}")
        return {}
    return raw if isinstance(raw, dict) else {}


def save_json_cache(cache: dict[str, Any], path: str | Path) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    # Write-then-rename so a crash mid-write never leaves a truncated store behind.
    tmp = p.with_name(p.name + ".tmp")
    tmp.write_text(json.dumps(cache, ensure_ascii=False, indent=2), encoding="utf-8")
    os.replace(tmp, p)


@dataclass
class CacheIOTracker:
    """
    Track JSON load/save counts and time in milliseconds.
    """

    stats: dict[str, Any]
    prefix: str = "cache"

    def __post_init__(self) -> None:
        for suffix in ("load_count", "load_ms", "save_count", "save_ms"):
            self.stats.setdefault(f"{self.prefix}_{suffix}", 0)

    def _add(self, suffix: str, amount: int) -> None:
        key = f"{self.prefix}_{suffix}"
        self.stats[key] = int(self.stats.get(key, 0) or 0) + int(amount)

    def load_json(self, path: str | Path) -> dict[str, Any]:
        t0 = time.perf_counter()
        raw = load_json_cache(path)
        self._add("load_count", 1)
        self._add("load_ms", int(round((time.perf_counter() - t0) * 1000.0)))
        return raw

    def save_json(self, cache: dict[str, Any], path: str | Path) -> None:
        path = Path(path)
        t0 = time.perf_counter()
        save_json_cache(cache, path)
        dur_ms = int(round((time.perf_counter() - t0) * 1000.0))
        self._add("save_count", 1)
        self._add("save_ms", dur_ms)
        if CACHE.slow_save_log_ms > 0 and dur_ms >= CACHE.slow_save_log_ms:
            logging.info(f"[CACHE] Wrote '{path.name}' in {dur_ms}ms")

    @staticmethod
    def format_io(stats: dict[str, Any] | None, *, prefix: str = "cache") -> str:
        s = stats or {}
        return (
            f"{prefix} load_ms={int(s.get(f'{prefix}_load_ms', 0) or 0)} "
            f"saves={int(s.get(f'{prefix}_save_count', 0) or 0)} "
            f"save_ms={int(s.get(f'{prefix}_save_ms', 0) or 0)}"
        )


# ----------------------------
# Rate limiting + retries
# ----------------------------


class RateLimiter:
    """
    Enforces a minimum interval between requests. Safe to share between the threads of
    one enrichment fan-out.
    """

    def __init__(self, min_interval_s: float = 1.0):
        self.min_interval_s = float(min_interval_s)
        self._last = 0.0
        self._lock = threading.Lock()

    def wait(self) -> None:
        with self._lock:
            delta = time.monotonic() - self._last
            if delta < self.min_interval_s:
                time.sleep(self.min_interval_s - delta)
            self._last = time.monotonic()


_NETWORK_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    requests.exceptions.SSLError,
)


def _bump(stats: dict[str, Any] | None, key: str, amount: int = 1) -> None:
    if stats is not None:
        stats[key] = int(stats.get(key, 0) or 0) + amount


def _retry_after_s(exc: BaseException) -> float | None:
    resp = getattr(exc, "response", None)
    if getattr(resp, "status_code", None) != 429:
        return None
    headers = getattr(resp, "headers", {}) or {}
    try:
        return float(str(headers.get("Retry-After", "") or "").strip())
    except ValueError:
        return RETRY.http_429_default_retry_after_s


def with_retries(
    fn: Callable[[], Any],
    *,
    retries: int = RETRY.retries,
    base_sleep_s: float = RETRY.base_sleep_s,
    jitter_s: float = RETRY.jitter_s,
    retry_on: tuple[type, ...] = (Exception,),
    on_fail_return: Any = None,
    context: str | None = None,
    retry_stats: dict[str, Any] | None = None,
) -> Any:
    """
    Execute fn with retries and exponential backoff; honors Retry-After on HTTP 429.

    Returns `on_fail_return` once every attempt failed. Network failures are counted in
    `retry_stats["network_failures"]` so callers can tell "offline" from "not found".
    """
    for attempt in range(retries):
        try:
            return fn()
        except retry_on as e:
            is_http = isinstance(e, requests.exceptions.HTTPError)
            is_network = isinstance(e, _NETWORK_ERRORS)
            retry_after = _retry_after_s(e) if is_http else None
            if retry_after is not None:
                _bump(retry_stats, "http_429")
            if is_http:
                _bump(retry_stats, "http_errors")
            if is_network:
                _bump(retry_stats, "network_errors")

            if attempt == retries - 1:
                tag = "NETWORK" if is_network else "HTTP" if is_http else "REQUEST"
                if context:
                    logging.error(f"[{tag}] {context}: {type(e).__name__}: {e}")
                if is_network:
                    _bump(retry_stats, "network_failures")
                if is_http:
                    _bump(retry_stats, "http_failures")
                return on_fail_return

            sleep = base_sleep_s * (2**attempt) + random.uniform(0, jitter_s)
            if retry_after is not None and retry_after > 0:
                sleep = max(sleep, retry_after)
            _bump(retry_stats, "retry_attempts")
            time.sleep(sleep)
    return on_fail_return


def network_failures_count(stats: dict[str, Any] | None) -> int:
    if not stats:
        return 0
    return int(stats.get("network_failures", 0) or 0)


def raise_on_new_network_failure(
    stats: dict[str, Any] | None, *, before: int, context: str
) -> None:
    """
    Raise when a request ended in a network failure, so an offline provider never reads
    as "not found".
    """
    if network_failures_count(stats) > before:
        raise UpstreamUnavailableError(context)


def iter_chunks(items: list[Any], chunk_size: int) -> list[list[Any]]:
    if chunk_size <= 0:
        raise ValueError("chunk_size must be > 0")
    return [items[i : i + chunk_size] for i in range(0, len(items), chunk_size)]


# ----------------------------
# Credentials loading
# ----------------------------


def load_credentials(credentials_path: str | Path) -> dict[str, Any]:
    """
    Load provider credentials from a YAML file:

        rawg:
          api_key: ...
        igdb:
          client_id: ...
          client_secret: ...
    """
    path = Path(credentials_path)
    if not path.exists():
        raise FileNotFoundError(
            f"Credentials file not found: {path}\n"
            "Please create data/credentials.yaml with your API keys."
        )
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}
