from __future__ import annotations

import logging
import re
from typing import Any

import requests

from ..config import RAWG, RETRY
from ..errors import UpstreamUnavailableError
from ..models import PrimaryAgeRating, PrimaryClip, PrimaryGame, RelatedGame, Screenshot, StoreLink
from ..utils.utilities import RateLimiter
from .http_client import ConfiguredHTTPJSONClient, HTTPJSONClient, HTTPRequestDefaults
from .parse import as_float, as_int, as_str, get_list_of_dicts, names_of

RAWG_API_URL = "https://api.rawg.io/api/games"
_RAWG_NOT_FOUND = object()

# Relation endpoint path segment per related-game list.
_RELATED_PATHS = {
    "additions": "additions",
    "series": "game-series",
    "parents": "parent-games",
}


class RAWGClient:
    """
    Primary catalog client. Every call goes to the network; caching is the job of the
    unification store, which owns freshness.
    """

    def __init__(
        self,
        api_key: str,
        language: str = "en",
        min_interval_s: float = RAWG.min_interval_s,
    ):
        self._session = requests.Session()
        self.api_key = api_key
        self.language = (language or "en").strip() or "en"
        self.stats: dict[str, int] = {
            "by_slug_fetch": 0,
            "by_slug_negative_fetch": 0,
            "search_fetch": 0,
            "related_fetch": 0,
            # HTTP request counters (attempts, including retries).
            "http_get": 0,
        }
        self.ratelimiter = RateLimiter(min_interval_s=min_interval_s)
        self._http = ConfiguredHTTPJSONClient(
            HTTPJSONClient(self._session, stats=self.stats),
            HTTPRequestDefaults(
                ratelimiter=self.ratelimiter,
                retries=RETRY.retries,
                status_handlers={404: _RAWG_NOT_FOUND},
                counter_key="http_get",
                context_prefix="RAWG",
            ),
        )

    def _get(self, url: str, *, params: dict[str, Any] | None = None, context: str) -> Any:
        data = self._http.get_json(
            url,
            params={"key": self.api_key, "lang": self.language, **(params or {})},
            context=context,
            on_fail_return=None,
        )
        if data is None:
            raise UpstreamUnavailableError(f"RAWG: {context}")
        return data

    # ----------------------------
    # Primary record
    # ----------------------------
    def get_by_slug(self, slug: str) -> dict[str, Any] | None:
        """
        Fetch the full game payload by slug (or numeric id). Returns None on 404.
        """
        slug = str(slug or "").strip()
        if not slug:
            return None
        data = self._get(f"{RAWG_API_URL}/{slug}", context=f"get_by_slug slug={slug}")
        if data is _RAWG_NOT_FOUND or not isinstance(data, dict) or data.get("id") is None:
            self.stats["by_slug_negative_fetch"] += 1
            return None
        self.stats["by_slug_fetch"] += 1
        return data

    def search(self, query: str, page_size: int = RAWG.search_page_size) -> list[dict[str, Any]]:
        """
        Free-text search; results are in provider ranking order.
        """
        query = str(query or "").strip()
        if not query:
            return []
        data = self._get(
            RAWG_API_URL,
            params={"search": query, "page_size": int(page_size)},
            context=f"search term={query!r}",
        )
        self.stats["search_fetch"] += 1
        if not isinstance(data, dict):
            return []
        return get_list_of_dicts(data.get("results"))

    # ----------------------------
    # Best-effort lists
    # ----------------------------
    def _get_pages(self, url: str, *, page_size: int, max_pages: int, context: str) -> list[dict[str, Any]]:
        results: list[dict[str, Any]] = []
        page = 1
        while page <= max_pages:
            data = self._get(
                url,
                params={"page": page, "page_size": page_size},
                context=f"{context} page={page}",
            )
            if not isinstance(data, dict):
                break
            results.extend(get_list_of_dicts(data.get("results")))
            if not data.get("next"):
                break
            page += 1
        return results

    def get_screenshots(self, rawg_id: int) -> list[Screenshot]:
        raw = self._get_pages(
            f"{RAWG_API_URL}/{int(rawg_id)}/screenshots",
            page_size=RAWG.screenshots_page_size,
            max_pages=1,
            context=f"screenshots id={rawg_id}",
        )
        return self.extract_screenshots(raw)

    def get_related(self, rawg_id: int, kind: str) -> list[RelatedGame]:
        """
        One related-game list: "additions", "series" or "parents".
        """
        path = _RELATED_PATHS[kind]
        raw = self._get_pages(
            f"{RAWG_API_URL}/{int(rawg_id)}/{path}",
            page_size=RAWG.related_page_size,
            max_pages=RAWG.related_max_pages,
            context=f"{path} id={rawg_id}",
        )
        self.stats["related_fetch"] += 1
        return self.extract_related(raw)

    def format_stats(self) -> str:
        s = self.stats
        return (
            f"by_slug fetch={s['by_slug_fetch']} (neg={s['by_slug_negative_fetch']}), "
            f"search={s['search_fetch']} related={s['related_fetch']}, "
            f"{HTTPJSONClient.format_timing(s, key='http_get')}"
        )

    # ----------------------------
    # Extraction
    # ----------------------------
    @staticmethod
    def extract_game(raw: dict[str, Any]) -> PrimaryGame:
        platforms = [
            as_str((p.get("platform") or {}).get("name")) for p in get_list_of_dicts(raw.get("platforms"))
        ]
        stores: list[StoreLink] = []
        for s in get_list_of_dicts(raw.get("stores")):
            name = as_str((s.get("store") or {}).get("name"))
            if name:
                stores.append(StoreLink(name=name, url=as_str(s.get("url"))))

        clip_raw = raw.get("clip")
        clip: PrimaryClip | None = None
        if isinstance(clip_raw, dict) and as_str(clip_raw.get("clip")):
            clip = PrimaryClip(clip=as_str(clip_raw.get("clip")), preview=as_str(clip_raw.get("preview")))

        ratings: list[PrimaryAgeRating] = []
        for ar in get_list_of_dicts(raw.get("age_ratings")):
            label = as_str(ar.get("title")) or as_str(ar.get("description")) or as_str(ar.get("rating"))
            if label:
                ratings.append(PrimaryAgeRating(category=as_int(ar.get("category")), label=label))

        # Tags can contain mixed-language duplicates; drop Cyrillic tags.
        tags = [t for t in names_of(raw.get("tags")) if not re.search(r"[А-Яа-яЁё]", t)]

        return PrimaryGame(
            id=int(raw["id"]),
            slug=as_str(raw.get("slug")),
            title=as_str(raw.get("name")),
            released=as_str(raw.get("released")),
            description=as_str(raw.get("description_raw")),
            website=as_str(raw.get("website")),
            background_image=as_str(raw.get("background_image")),
            platforms=tuple(p for p in platforms if p),
            developers=names_of(raw.get("developers")),
            publishers=names_of(raw.get("publishers")),
            genres=names_of(raw.get("genres")),
            stores=tuple(stores),
            clip=clip,
            esrb_rating=as_str((raw.get("esrb_rating") or {}).get("name")),
            age_ratings=tuple(ratings),
            tags=tuple(tags),
        )

    @staticmethod
    def extract_screenshots(results: list[dict[str, Any]]) -> list[Screenshot]:
        out: list[Screenshot] = []
        for it in results:
            url = as_str(it.get("image"))
            if url:
                out.append(Screenshot(id=as_str(it.get("id")), url=url))
        return out

    @staticmethod
    def extract_related(results: list[dict[str, Any]]) -> list[RelatedGame]:
        out: list[RelatedGame] = []
        for it in results:
            gid = as_int(it.get("id"))
            if gid is None:
                logging.debug(f"RAWG related entry without id skipped: {it.get('name')!r}")
                continue
            out.append(
                RelatedGame(
                    id=gid,
                    name=as_str(it.get("name")),
                    slug=as_str(it.get("slug")),
                    background_image=as_str(it.get("background_image")),
                    released=as_str(it.get("released")),
                    rating=as_float(it.get("rating")),
                    metacritic=as_int(it.get("metacritic")),
                )
            )
        return out
