from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

from ..schema import EXPORT_COLUMNS
from ..utils import write_csv
from .unification_cache import UnificationCache


def _join(values: tuple[str, ...]) -> str:
    return ", ".join(values)


def build_export_frame(cache: UnificationCache) -> pd.DataFrame:
    """
    One row per cached game, most viewed first. Uses stored records only; nothing is
    regenerated, so stale rows are exported as they are.
    """
    rows: list[dict[str, object]] = []
    for key in cache.keys():
        entry = cache.peek_entry(key)
        if entry is None:
            continue
        counters = cache.counters(key)
        rec = entry.record
        rows.append(
            {
                "Key": key,
                "Title": rec.title,
                "ReleaseDate": rec.release_date or "",
                "Platforms": _join(rec.platforms),
                "Genres": _join(rec.genres),
                "Developers": _join(rec.developers),
                "PrimaryId": str(rec.primary_id),
                "SecondaryId": str(rec.secondary_id) if rec.secondary_id is not None else "",
                "BackgroundImage": rec.background_image,
                "Views": counters["views"],
                "Upvotes": counters["upvotes"],
                "Downvotes": counters["downvotes"],
                "LastRefreshedAt": entry.last_refreshed_at.isoformat(),
            }
        )
    df = pd.DataFrame(rows, columns=list(EXPORT_COLUMNS))
    if not df.empty:
        df = df.sort_values(by=["Views", "Key"], ascending=[False, True])
    return df.reset_index(drop=True)


def export_cached_games(cache: UnificationCache, output: Path) -> pd.DataFrame:
    df = build_export_frame(cache)
    write_csv(df, output)
    logging.info(f"✔ Exported {len(df)} cached game(s): {output}")
    return df
