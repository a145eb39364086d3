from __future__ import annotations

import copy
import threading
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from game_unifier.errors import UpstreamUnavailableError
from game_unifier.models import (
    AgeRatingRef,
    InvolvedCompany,
    NamedVideo,
    RawDuration,
    RelatedGame,
    Screenshot,
    SecondaryCandidate,
    SecondaryGame,
)
from game_unifier.pipelines.provider_clients import ProviderClients

GTA_SLUG = "grand-theft-auto-v"


def gta_payload(**overrides: Any) -> dict[str, Any]:
    raw: dict[str, Any] = {
        "id": 3498,
        "slug": GTA_SLUG,
        "name": "Grand Theft Auto V",
        "released": "2013-09-17",
        "description_raw": "Rockstar's open world crime epic.",
        "website": "http://www.rockstargames.com/V/",
        "background_image": "https://media.rawg.io/media/games/gta5.jpg",
        "platforms": [
            {"platform": {"id": 4, "name": "PC"}},
            {"platform": {"id": 18, "name": "PlayStation 4"}},
        ],
        "developers": [{"name": "Rockstar North"}],
        "publishers": [{"name": "Rockstar Games"}],
        "genres": [{"name": "Action"}, {"name": "Adventure"}],
        "stores": [{"url": "https://store.steampowered.com/app/271590/", "store": {"name": "Steam"}}],
        "clip": None,
        "esrb_rating": {"id": 4, "name": "Mature"},
        "tags": [{"name": "Open World"}, {"name": "open world"}, {"name": "Multiplayer"}],
    }
    raw.update(overrides)
    return raw


def gta_secondary() -> SecondaryGame:
    return SecondaryGame(
        id=1020,
        name="Grand Theft Auto V",
        summary="IGDB summary.",
        first_release_date=1379376000,
        platforms=("PC (Microsoft Windows)", "PlayStation 4"),
        involved_companies=(
            InvolvedCompany(company_id=1, developer=True),
            InvolvedCompany(company_id=2, publisher=True),
        ),
        game_modes=("Single player", "Multiplayer"),
        game_engines=("RAGE",),
        player_perspectives=("Third person",),
        themes=("Action", "Sandbox"),
        franchises=("Grand Theft Auto",),
        genres=("Shooter", "action"),
        videos=(NamedVideo(name="Trailer", video_id="QkkoHAzjnUs"),),
        screenshot_urls=("//images.igdb.com/igdb/image/upload/t_thumb/sc1.jpg",),
        language_supports=((7, 1), (7, 2), (12, 2)),
        age_rating_ids=(10,),
        alternative_names=("GTA 5", "GTA V"),
        keyword_ids=(100, 101),
    )


class FakeRAWG:
    def __init__(self, games: dict[str, dict[str, Any]] | None = None):
        self.games = games if games is not None else {GTA_SLUG: gta_payload()}
        self.search_hits: list[dict[str, Any]] = []
        self.fail = False
        self.fail_on: set[str] = set()
        # When set, get_by_slug blocks until the gate opens (concurrency tests).
        self.gate: threading.Event | None = None
        self.entered = threading.Event()
        self.calls: Counter[str] = Counter()
        self._lock = threading.Lock()

    def _hit(self, name: str) -> None:
        with self._lock:
            self.calls[name] += 1
        if self.fail or name in self.fail_on:
            raise UpstreamUnavailableError(f"RAWG: {name}")

    def get_by_slug(self, slug: str) -> dict[str, Any] | None:
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        self._hit("get_by_slug")
        raw = self.games.get(slug)
        return copy.deepcopy(raw) if raw is not None else None

    def search(self, query: str, page_size: int = 1) -> list[dict[str, Any]]:
        self._hit("search")
        return list(self.search_hits)

    def get_screenshots(self, rawg_id: int) -> list[Screenshot]:
        self._hit("get_screenshots")
        return [
            Screenshot(id="1", url="https://media.rawg.io/media/screenshots/a.jpg"),
            Screenshot(id="2", url="https://media.rawg.io/media/screenshots/a.jpg?w=600"),
        ]

    def get_related(self, rawg_id: int, kind: str) -> list[RelatedGame]:
        self._hit(f"get_related:{kind}")
        if kind == "series":
            return [RelatedGame(id=3070, name="Grand Theft Auto IV", slug="grand-theft-auto-iv")]
        return []

    def format_stats(self) -> str:
        return "fake"


class FakeIGDB:
    def __init__(self) -> None:
        self.slug_hits: list[SecondaryCandidate] | None = [
            SecondaryCandidate(id=1020, name="Grand Theft Auto V", release_year=2013)
        ]
        self.candidates: list[SecondaryCandidate] | None = []
        self.game: SecondaryGame | None = gta_secondary()
        self.times: dict[str, RawDuration] | None = {
            "hastily": RawDuration(value=90, unit="m"),
            "normally": RawDuration(value=7200, unit="s"),
        }
        self.companies = {1: "Rockstar North", 2: "Take-Two Interactive"}
        self.refs = [AgeRatingRef(id=10, organization_id=1, category_id=5, descriptor_ids=(31, 32))]
        self.organizations = {1: "ESRB"}
        self.categories = {5: "M"}
        self.descriptions = {31: "Blood", 32: "Violence"}
        self.languages = {7: "English", 12: "French"}
        self.support_types = {1: "Audio", 2: "Subtitles"}
        self.keywords = {100: "open world", 101: "heist"}
        self.fail_on: set[str] = set()
        self.calls: Counter[str] = Counter()
        self._lock = threading.Lock()

    def _hit(self, name: str) -> None:
        with self._lock:
            self.calls[name] += 1
        if name in self.fail_on:
            raise UpstreamUnavailableError(f"IGDB /{name}")

    def find_by_slug(self, slug: str) -> list[SecondaryCandidate] | None:
        self._hit("find_by_slug")
        return None if self.slug_hits is None else list(self.slug_hits)

    def search_candidates(self, name: str, slug: str = "", year: int | None = None):
        self._hit("search_candidates")
        return None if self.candidates is None else list(self.candidates)

    def get_game(self, igdb_id: int) -> SecondaryGame | None:
        self._hit("get_game")
        return self.game

    def get_completion_times(self, igdb_id: int):
        self._hit("get_completion_times")
        return self.times

    def get_company_names(self, ids):
        self._hit("get_company_names")
        return {i: self.companies[i] for i in ids if i in self.companies}

    def get_age_rating_refs(self, ids):
        self._hit("get_age_rating_refs")
        return [r for r in self.refs if r.id in ids]

    def get_age_rating_organizations(self, ids):
        self._hit("get_age_rating_organizations")
        return {i: self.organizations[i] for i in ids if i in self.organizations}

    def get_age_rating_categories(self, ids):
        self._hit("get_age_rating_categories")
        return {i: self.categories[i] for i in ids if i in self.categories}

    def get_age_rating_descriptions(self, ids):
        self._hit("get_age_rating_descriptions")
        return {i: self.descriptions[i] for i in ids if i in self.descriptions}

    def get_language_names(self, ids):
        self._hit("get_language_names")
        return {i: self.languages[i] for i in ids if i in self.languages}

    def get_language_support_types(self, ids):
        self._hit("get_language_support_types")
        return {i: self.support_types[i] for i in ids if i in self.support_types}

    def get_keyword_names(self, ids):
        self._hit("get_keyword_names")
        return {i: self.keywords[i] for i in ids if i in self.keywords}

    def format_stats(self) -> str:
        return "fake"


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def providers() -> ProviderClients:
    return ProviderClients(primary=FakeRAWG(), secondary=FakeIGDB())  # type: ignore[arg-type]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def no_sleep(monkeypatch):
    monkeypatch.setattr("time.sleep", lambda _s: None)


@pytest.fixture
def gta_primary():
    from game_unifier.clients.rawg_client import RAWGClient

    return RAWGClient.extract_game(gta_payload())


@pytest.fixture
def gta_raw():
    return gta_payload


@pytest.fixture
def gta_bundle():
    from game_unifier.models import EnrichmentBundle, SecondaryLookups

    igdb = FakeIGDB()
    return EnrichmentBundle(
        secondary=gta_secondary(),
        lookups=SecondaryLookups(
            companies=dict(igdb.companies),
            age_rating_refs=list(igdb.refs),
            age_rating_organizations=dict(igdb.organizations),
            age_rating_categories=dict(igdb.categories),
            age_rating_descriptions=dict(igdb.descriptions),
            languages=dict(igdb.languages),
            language_support_types=dict(igdb.support_types),
            keywords=dict(igdb.keywords),
        ),
        completion_times=dict(igdb.times or {}),
        primary_screenshots=[Screenshot(id="1", url="https://media.rawg.io/media/screenshots/a.jpg")],
        additions=[],
        series=[RelatedGame(id=3070, name="Grand Theft Auto IV")],
        parents=[],
    )
