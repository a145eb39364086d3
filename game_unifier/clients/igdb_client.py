from __future__ import annotations

import logging
import re
import threading
import time
import unicodedata
from typing import Any, Callable

import requests

from ..config import IGDB, REQUEST, RETRY
from ..errors import UpstreamUnavailableError
from ..models import (
    AgeRatingRef,
    InvolvedCompany,
    NamedVideo,
    RawDuration,
    SecondaryCandidate,
    SecondaryGame,
)
from ..schema import COMPLETION_FIELDS
from ..utils.utilities import RateLimiter, iter_chunks
from .http_client import ConfiguredHTTPJSONClient, HTTPJSONClient, HTTPRequestDefaults
from .parse import (
    as_float,
    as_id,
    as_int,
    as_str,
    get_list_of_dicts,
    ids_of,
    names_of,
    year_from_epoch_seconds,
)

TWITCH_TOKEN_URL = "https://id.twitch.tv/oauth2/token"
IGDB_API_URL = "https://api.igdb.com/v4"
_IGDB_BAD_REQUEST = object()

_CANDIDATE_FIELDS = (
    "fields id,name,slug,first_release_date,"
    "platforms.name,involved_companies.company.name,alternative_names.name;"
)

_GAME_FIELDS = """
fields id,name,summary,first_release_date,
       platforms.name,
       involved_companies.company,
       involved_companies.developer,
       involved_companies.publisher,
       game_modes.name,
       game_engines.name,
       player_perspectives.name,
       themes.name,
       franchises.name,
       genres.name,
       videos.name,videos.video_id,
       screenshots.url,
       language_supports.language,
       language_supports.language_support_type,
       age_ratings,
       alternative_names.name,
       keywords;
"""


def _escape(text: str) -> str:
    """
    Make a title safe inside an IGDB query string literal.
    """
    s = unicodedata.normalize("NFKC", str(text or ""))
    s = "".join((" " if unicodedata.category(ch).startswith("C") else ch) for ch in s)
    s = s.replace("\\", "\\\\").replace('"', '\\"')
    return re.sub(r"\s+", " ", s).strip()


class IGDBClient:
    """
    Secondary catalog client.

    The OAuth token is client state with an expiry timestamp: acquired lazily on the first
    request and refreshed once it is about to expire.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        language: str = "en",
        min_interval_s: float = IGDB.min_interval_s,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._session = requests.Session()
        self.client_id = client_id
        self.client_secret = client_secret
        self.language = (language or "en").strip() or "en"
        self._clock = clock
        self.stats: dict[str, int] = {
            "candidates_fetch": 0,
            "candidates_negative_fetch": 0,
            "game_fetch": 0,
            "lookup_fetch": 0,
            # HTTP request counters (attempts, including retries).
            "http_oauth_token": 0,
            "http_post": 0,
        }
        self.ratelimiter = RateLimiter(min_interval_s=min_interval_s)
        self._post_http = ConfiguredHTTPJSONClient(
            HTTPJSONClient(self._session, stats=self.stats),
            HTTPRequestDefaults(
                ratelimiter=self.ratelimiter,
                retries=RETRY.retries,
                status_handlers={400: _IGDB_BAD_REQUEST},
                counter_key="http_post",
                context_prefix="IGDB POST",
            ),
        )
        self._token: str | None = None
        self._token_expires_at = 0.0
        self._token_lock = threading.Lock()

    # -------------------------------------------------
    # OAuth
    # -------------------------------------------------
    def _ensure_token(self) -> str:
        with self._token_lock:
            if self._token and self._clock() < self._token_expires_at:
                return self._token

            self.stats["http_oauth_token"] += 1
            try:
                # Form-encoded body (not URL params) keeps secrets out of tracebacks/logs.
                r = self._session.post(
                    TWITCH_TOKEN_URL,
                    data={
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "grant_type": "client_credentials",
                    },
                    timeout=REQUEST.timeout_s,
                )
                r.raise_for_status()
                payload = r.json()
            except requests.exceptions.RequestException as e:
                logging.error(f"[HTTP] IGDB OAuth token: {type(e).__name__}: {e}")
                raise UpstreamUnavailableError("IGDB OAuth token") from e

            expires_in = as_int(payload.get("expires_in")) or 0
            self._token = str(payload["access_token"])
            self._token_expires_at = self._clock() + max(0, expires_in - IGDB.token_expiry_margin_s)
            return self._token

    def _headers(self, token: str) -> dict[str, str]:
        headers = {
            "Client-ID": self.client_id,
            "Authorization": f"Bearer {token}",
            "Content-Type": "text/plain",
        }
        if self.language:
            headers["Accept-Language"] = self.language
        return headers

    def _post(self, endpoint: str, query: str) -> list[dict[str, Any]]:
        """
        POST an IGDB query. Raises UpstreamUnavailableError when the request fails, so a
        failed call is never mistaken for an empty result.
        """
        token = self._ensure_token()
        resp = self._post_http.post_json(
            f"{IGDB_API_URL}/{endpoint}",
            headers=self._headers(token),
            data=query,
            context=f"/{endpoint}",
            on_fail_return=None,
        )
        if resp is _IGDB_BAD_REQUEST:
            logging.error(f"[HTTP] IGDB POST: /{endpoint}: 400 Bad Request (query rejected)")
            raise UpstreamUnavailableError(f"IGDB /{endpoint}", f"IGDB rejected query on /{endpoint}")
        if resp is None:
            raise UpstreamUnavailableError(f"IGDB /{endpoint}")
        return get_list_of_dicts(resp)

    # -------------------------------------------------
    # Candidate search (identity resolution input)
    # -------------------------------------------------
    def _candidates(self, query: str, context: str) -> list[SecondaryCandidate] | None:
        try:
            data = self._post("games", query)
        except UpstreamUnavailableError:
            logging.warning(f"IGDB candidate search failed for {context}; not treating as not-found.")
            return None
        self.stats["candidates_fetch"] += 1
        if not data:
            self.stats["candidates_negative_fetch"] += 1
        return [self.extract_candidate(it) for it in data if as_id(it.get("id")) is not None]

    def find_by_slug(self, slug: str) -> list[SecondaryCandidate] | None:
        """
        Exact slug lookup. Returns [] when nothing matches, None when the request failed.
        """
        slug = _escape(slug)
        if not slug:
            return []
        query = f'{_CANDIDATE_FIELDS} where slug = "{slug}"; limit 3;'
        return self._candidates(query, f"slug={slug!r}")

    def search_candidates(
        self, name: str, slug: str = "", year: int | None = None
    ) -> list[SecondaryCandidate] | None:
        """
        Candidate search by name (or slug) narrowed to the release year when one is known,
        falling back to a free-text search. Returns [] when nothing matches, None when a
        request failed.
        """
        term = _escape(name)
        if not term:
            return []
        limit = IGDB.candidate_limit
        if year is not None:
            slug_expr = _escape(slug) or term
            query = (
                f"{_CANDIDATE_FIELDS} "
                f'where (name ~ "{term}" | slug = "{slug_expr}") & release_dates.y = {int(year)}; '
                f"limit {limit};"
            )
            found = self._candidates(query, f"name={term!r} year={year}")
            if found is None or found:
                return found
        query = f'search "{term}"; {_CANDIDATE_FIELDS} limit {limit};'
        return self._candidates(query, f"name={term!r}")

    # -------------------------------------------------
    # Full record + batch lookups
    # -------------------------------------------------
    def get_game(self, igdb_id: int) -> SecondaryGame | None:
        data = self._post("games", f"{_GAME_FIELDS} where id = {int(igdb_id)}; limit 1;")
        self.stats["game_fetch"] += 1
        if not data:
            logging.warning(f"IGDB game id={igdb_id} returned no payload.")
            return None
        return self.extract_game(data[0])

    def _lookup(self, endpoint: str, fields: str, ids: list[int]) -> list[dict[str, Any]]:
        wanted = sorted({int(i) for i in ids if as_id(i) is not None})
        out: list[dict[str, Any]] = []
        for chunk in iter_chunks(wanted, IGDB.get_by_ids_batch_size):
            ids_expr = ",".join(str(i) for i in chunk)
            out.extend(self._post(endpoint, f"fields id,{fields}; where id = ({ids_expr}); limit {len(chunk)};"))
            self.stats["lookup_fetch"] += 1
        return out

    def _names_by_id(self, endpoint: str, field: str, ids: list[int]) -> dict[int, str]:
        out: dict[int, str] = {}
        for it in self._lookup(endpoint, field, ids):
            gid = as_id(it.get("id"))
            value = as_str(it.get(field))
            if gid is not None and value:
                out[gid] = value
        return out

    def get_company_names(self, ids: list[int]) -> dict[int, str]:
        return self._names_by_id("companies", "name", ids)

    def get_age_rating_refs(self, ids: list[int]) -> list[AgeRatingRef]:
        refs: list[AgeRatingRef] = []
        for it in self._lookup("age_ratings", "organization,rating_category,rating_content_descriptions", ids):
            rid = as_id(it.get("id"))
            if rid is None:
                continue
            refs.append(
                AgeRatingRef(
                    id=rid,
                    organization_id=as_id(it.get("organization")),
                    category_id=as_id(it.get("rating_category")),
                    descriptor_ids=ids_of(it.get("rating_content_descriptions")),
                )
            )
        # Keep the game's own ordering rather than the lookup response order.
        order = {rid: i for i, rid in enumerate(ids)}
        return sorted(refs, key=lambda r: order.get(r.id, len(order)))

    def get_age_rating_organizations(self, ids: list[int]) -> dict[int, str]:
        return self._names_by_id("age_rating_organizations", "name", ids)

    def get_age_rating_categories(self, ids: list[int]) -> dict[int, str]:
        return self._names_by_id("age_rating_categories", "rating", ids)

    def get_age_rating_descriptions(self, ids: list[int]) -> dict[int, str]:
        return self._names_by_id("age_rating_content_descriptions", "description", ids)

    def get_language_names(self, ids: list[int]) -> dict[int, str]:
        return self._names_by_id("languages", "name", ids)

    def get_language_support_types(self, ids: list[int]) -> dict[int, str]:
        return self._names_by_id("language_support_types", "name", ids)

    def get_keyword_names(self, ids: list[int]) -> dict[int, str]:
        return self._names_by_id("keywords", "name", ids)

    def get_completion_times(self, igdb_id: int) -> dict[str, RawDuration] | None:
        data = self._post("game_time_to_beats", f"fields *; where game_id = {int(igdb_id)}; limit 1;")
        if not data:
            return None
        out: dict[str, RawDuration] = {}
        for name in COMPLETION_FIELDS:
            parsed = self._parse_time_field(data[0].get(name))
            if parsed is not None:
                out[name] = parsed
        return out or None

    @staticmethod
    def _parse_time_field(value: Any) -> RawDuration | None:
        if isinstance(value, dict):
            amount = as_float(value.get("amount"))
            unit = as_str(value.get("unit"))
            if amount is None or not amount or not unit:
                return None
            return RawDuration(value=amount, unit=unit)
        number = as_float(value)
        if number is None or number <= 0:
            return None
        # Bare numbers are seconds for real payloads; tiny values only make sense as hours.
        if number > IGDB.seconds_threshold:
            return RawDuration(value=number, unit="s")
        return RawDuration(value=number, unit="h")

    def format_stats(self) -> str:
        s = self.stats
        return (
            f"candidates fetch={s['candidates_fetch']} (neg={s['candidates_negative_fetch']}), "
            f"game={s['game_fetch']} lookups={s['lookup_fetch']}, "
            f"http oauth={s['http_oauth_token']} {HTTPJSONClient.format_timing(s, key='http_post')}"
        )

    # -------------------------------------------------
    # Extraction
    # -------------------------------------------------
    @staticmethod
    def extract_candidate(raw: dict[str, Any]) -> SecondaryCandidate:
        companies = [
            as_str((ic.get("company") or {}).get("name"))
            for ic in get_list_of_dicts(raw.get("involved_companies"))
            if isinstance(ic.get("company"), dict)
        ]
        return SecondaryCandidate(
            id=int(raw["id"]),
            name=as_str(raw.get("name")),
            alternate_names=names_of(raw.get("alternative_names")),
            release_year=year_from_epoch_seconds(raw.get("first_release_date")),
            platforms=names_of(raw.get("platforms")),
            companies=tuple(c for c in companies if c),
        )

    @staticmethod
    def extract_game(raw: dict[str, Any]) -> SecondaryGame:
        involved: list[InvolvedCompany] = []
        for ic in get_list_of_dicts(raw.get("involved_companies")):
            cid = as_id(ic.get("company"))
            if cid is None:
                continue
            involved.append(
                InvolvedCompany(
                    company_id=cid,
                    developer=ic.get("developer") is True,
                    publisher=ic.get("publisher") is True,
                )
            )

        videos: list[NamedVideo] = []
        for v in get_list_of_dicts(raw.get("videos")):
            video_id = as_str(v.get("video_id"))
            if video_id:
                videos.append(NamedVideo(name=as_str(v.get("name")), video_id=video_id))

        supports: list[tuple[int, int]] = []
        for ls in get_list_of_dicts(raw.get("language_supports")):
            lang = as_id(ls.get("language"))
            kind = as_id(ls.get("language_support_type"))
            if lang is not None and kind is not None:
                supports.append((lang, kind))

        return SecondaryGame(
            id=int(raw["id"]),
            name=as_str(raw.get("name")),
            summary=as_str(raw.get("summary")),
            first_release_date=as_int(raw.get("first_release_date")),
            platforms=names_of(raw.get("platforms")),
            involved_companies=tuple(involved),
            game_modes=names_of(raw.get("game_modes")),
            game_engines=names_of(raw.get("game_engines")),
            player_perspectives=names_of(raw.get("player_perspectives")),
            themes=names_of(raw.get("themes")),
            franchises=names_of(raw.get("franchises")),
            genres=names_of(raw.get("genres")),
            videos=tuple(videos),
            screenshot_urls=names_of(raw.get("screenshots"), key="url"),
            language_supports=tuple(supports),
            age_rating_ids=ids_of(raw.get("age_ratings")),
            alternative_names=names_of(raw.get("alternative_names")),
            keyword_ids=ids_of(raw.get("keywords")),
        )
