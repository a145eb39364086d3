"""
Typed data model.

Canonical types are frozen dataclasses with tuple collections, so a record cannot be
changed once the merger has built it. Provider inputs (`PrimaryGame`, `SecondaryGame`, ...)
are the already-extracted shapes the clients hand to the core; raw JSON never leaves the
client modules.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, is_dataclass
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Union

from .schema import ORIGIN_PRIMARY, ORIGIN_SECONDARY

# ----------------------------
# Canonical record parts
# ----------------------------


@dataclass(frozen=True)
class StoreLink:
    name: str
    url: str = ""


@dataclass(frozen=True)
class Screenshot:
    id: str
    url: str


@dataclass(frozen=True)
class NamedVideo:
    name: str
    video_id: str


@dataclass(frozen=True)
class SecondaryClips:
    videos: tuple[NamedVideo, ...]


@dataclass(frozen=True)
class PrimaryClip:
    clip: str
    preview: str = ""


Video = Union[SecondaryClips, PrimaryClip, None]


@dataclass(frozen=True)
class LanguageSupport:
    audio: bool = False
    subtitles: bool = False
    interface: bool = False


@dataclass(frozen=True)
class AgeRating:
    organization: str
    category: str
    content_descriptors: tuple[str, ...] = ()


@dataclass(frozen=True)
class Duration:
    value: int
    unit: str = "h"


@dataclass(frozen=True)
class CompletionTimes:
    hastily: Duration | None = None
    normally: Duration | None = None
    completely: Duration | None = None


@dataclass(frozen=True)
class Tag:
    name: str
    origin: str


@dataclass(frozen=True)
class RelatedGame:
    id: int
    name: str
    slug: str = ""
    background_image: str = ""
    released: str = ""
    rating: float | None = None
    metacritic: int | None = None


@dataclass(frozen=True)
class RelatedGames:
    additions: tuple[RelatedGame, ...] = ()
    series: tuple[RelatedGame, ...] = ()
    parents: tuple[RelatedGame, ...] = ()


@dataclass(frozen=True)
class CanonicalRecord:
    key: str
    primary_id: int
    secondary_id: int | None
    title: str
    release_date: str | None = None
    summary: str = ""
    website: str = ""
    background_image: str = ""
    platforms: tuple[str, ...] = ()
    stores: tuple[StoreLink, ...] = ()
    screenshots: tuple[Screenshot, ...] = ()
    video: Video = None
    genres: tuple[str, ...] = ()
    themes: tuple[str, ...] = ()
    game_modes: tuple[str, ...] = ()
    player_perspectives: tuple[str, ...] = ()
    game_engines: tuple[str, ...] = ()
    franchises: tuple[str, ...] = ()
    developers: tuple[str, ...] = ()
    publishers: tuple[str, ...] = ()
    alternative_names: tuple[str, ...] = ()
    language_support: Mapping[str, LanguageSupport] = field(default_factory=dict)
    age_ratings: tuple[AgeRating, ...] = ()
    completion_times: CompletionTimes | None = None
    tags: tuple[Tag, ...] = ()
    related: RelatedGames = field(default_factory=RelatedGames)

    def __post_init__(self) -> None:
        # Read-only view; records are shared between concurrent readers.
        object.__setattr__(self, "language_support", MappingProxyType(dict(self.language_support)))

    def to_dict(self) -> dict[str, Any]:
        out = {f.name: _plain(getattr(self, f.name)) for f in fields(self)}
        # The video union needs its source tag.
        out["video"] = _video_to_dict(self.video)
        return out

    @staticmethod
    def from_dict(raw: dict[str, Any]) -> CanonicalRecord:
        def strs(name: str) -> tuple[str, ...]:
            return tuple(str(x) for x in (raw.get(name) or []))

        def related(items: Any) -> tuple[RelatedGame, ...]:
            return tuple(RelatedGame(**it) for it in (items or []) if isinstance(it, dict))

        times_raw = raw.get("completion_times")
        times: CompletionTimes | None = None
        if isinstance(times_raw, dict):
            times = CompletionTimes(
                **{
                    k: (Duration(**v) if isinstance(v, dict) else None)
                    for k, v in times_raw.items()
                }
            )
        rel = raw.get("related") or {}
        secondary_id = raw.get("secondary_id")
        return CanonicalRecord(
            key=str(raw["key"]),
            primary_id=int(raw["primary_id"]),
            secondary_id=int(secondary_id) if secondary_id is not None else None,
            title=str(raw.get("title") or ""),
            release_date=raw.get("release_date"),
            summary=str(raw.get("summary") or ""),
            website=str(raw.get("website") or ""),
            background_image=str(raw.get("background_image") or ""),
            platforms=strs("platforms"),
            stores=tuple(StoreLink(**s) for s in (raw.get("stores") or [])),
            screenshots=tuple(Screenshot(**s) for s in (raw.get("screenshots") or [])),
            video=_video_from_dict(raw.get("video")),
            genres=strs("genres"),
            themes=strs("themes"),
            game_modes=strs("game_modes"),
            player_perspectives=strs("player_perspectives"),
            game_engines=strs("game_engines"),
            franchises=strs("franchises"),
            developers=strs("developers"),
            publishers=strs("publishers"),
            alternative_names=strs("alternative_names"),
            language_support={
                str(lang): LanguageSupport(**flags)
                for lang, flags in (raw.get("language_support") or {}).items()
            },
            age_ratings=tuple(
                AgeRating(
                    organization=str(ar.get("organization") or ""),
                    category=str(ar.get("category") or ""),
                    content_descriptors=tuple(ar.get("content_descriptors") or ()),
                )
                for ar in (raw.get("age_ratings") or [])
            ),
            completion_times=times,
            tags=tuple(Tag(**t) for t in (raw.get("tags") or [])),
            related=RelatedGames(
                additions=related(rel.get("additions")),
                series=related(rel.get("series")),
                parents=related(rel.get("parents")),
            ),
        )


def _plain(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Mapping):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def _video_to_dict(video: Video) -> dict[str, Any] | None:
    if isinstance(video, SecondaryClips):
        return {"source": ORIGIN_SECONDARY, "videos": [asdict(v) for v in video.videos]}
    if isinstance(video, PrimaryClip):
        return {"source": ORIGIN_PRIMARY, "clip": video.clip, "preview": video.preview}
    return None


def _video_from_dict(raw: Any) -> Video:
    if not isinstance(raw, dict):
        return None
    source = raw.get("source")
    if source == ORIGIN_SECONDARY:
        return SecondaryClips(videos=tuple(NamedVideo(**v) for v in (raw.get("videos") or [])))
    if source == ORIGIN_PRIMARY:
        return PrimaryClip(clip=str(raw.get("clip") or ""), preview=str(raw.get("preview") or ""))
    return None


# ----------------------------
# Cache-side types
# ----------------------------


class Freshness(Enum):
    FRESH = "fresh"
    STALE = "stale"
    MISSING = "missing"


@dataclass(frozen=True)
class IdentityMapping:
    key: str
    primary_id: int
    # None is the explicit "no secondary match" marker, not "unknown".
    secondary_id: int | None


@dataclass(frozen=True)
class CacheEntry:
    record: CanonicalRecord
    last_refreshed_at: datetime


@dataclass(frozen=True)
class GameView:
    """A cached record plus the live counters that are not part of the immutable blob."""

    record: CanonicalRecord
    views: int = 0
    upvotes: int = 0
    downvotes: int = 0


# ----------------------------
# Provider inputs
# ----------------------------


@dataclass(frozen=True)
class PrimaryAgeRating:
    category: int | None
    label: str


@dataclass(frozen=True)
class PrimaryGame:
    id: int
    slug: str
    title: str
    released: str = ""
    description: str = ""
    website: str = ""
    background_image: str = ""
    platforms: tuple[str, ...] = ()
    developers: tuple[str, ...] = ()
    publishers: tuple[str, ...] = ()
    genres: tuple[str, ...] = ()
    stores: tuple[StoreLink, ...] = ()
    clip: PrimaryClip | None = None
    esrb_rating: str = ""
    age_ratings: tuple[PrimaryAgeRating, ...] = ()
    tags: tuple[str, ...] = ()

    @property
    def release_year(self) -> int | None:
        s = self.released.strip()
        if len(s) >= 4 and s[:4].isdigit():
            return int(s[:4])
        return None


@dataclass(frozen=True)
class SecondaryCandidate:
    id: int
    name: str
    alternate_names: tuple[str, ...] = ()
    release_year: int | None = None
    platforms: tuple[str, ...] = ()
    companies: tuple[str, ...] = ()


@dataclass(frozen=True)
class InvolvedCompany:
    company_id: int
    developer: bool = False
    publisher: bool = False


@dataclass(frozen=True)
class SecondaryGame:
    id: int
    name: str
    summary: str = ""
    first_release_date: int | None = None
    platforms: tuple[str, ...] = ()
    involved_companies: tuple[InvolvedCompany, ...] = ()
    game_modes: tuple[str, ...] = ()
    game_engines: tuple[str, ...] = ()
    player_perspectives: tuple[str, ...] = ()
    themes: tuple[str, ...] = ()
    franchises: tuple[str, ...] = ()
    genres: tuple[str, ...] = ()
    videos: tuple[NamedVideo, ...] = ()
    screenshot_urls: tuple[str, ...] = ()
    # (language id, support type id) pairs.
    language_supports: tuple[tuple[int, int], ...] = ()
    age_rating_ids: tuple[int, ...] = ()
    alternative_names: tuple[str, ...] = ()
    keyword_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class AgeRatingRef:
    id: int
    organization_id: int | None
    category_id: int | None
    descriptor_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class RawDuration:
    value: float
    unit: str


@dataclass
class SecondaryLookups:
    """
    Batch lookup results keyed by secondary id. A `None` table means the lookup failed
    (or was never attempted) and the dependent field degrades to empty.
    """

    companies: dict[int, str] | None = None
    age_rating_refs: list[AgeRatingRef] | None = None
    age_rating_organizations: dict[int, str] | None = None
    age_rating_categories: dict[int, str] | None = None
    age_rating_descriptions: dict[int, str] | None = None
    languages: dict[int, str] | None = None
    language_support_types: dict[int, str] | None = None
    keywords: dict[int, str] | None = None


@dataclass
class EnrichmentBundle:
    secondary: SecondaryGame | None = None
    lookups: SecondaryLookups = field(default_factory=SecondaryLookups)
    completion_times: dict[str, RawDuration] | None = None
    primary_screenshots: list[Screenshot] | None = None
    additions: list[RelatedGame] | None = None
    series: list[RelatedGame] | None = None
    parents: list[RelatedGame] | None = None
    failed: list[str] = field(default_factory=list)
