"""
Field-level merge of one primary record and its (optional) secondary enrichment.

Everything here is a pure function of its inputs: the enrichment bundle already carries the
secondary record and every lookup table, so the reference joins (age ratings, language
support, companies, keywords) happen without I/O.
"""

from __future__ import annotations

import logging
import math

from ..clients.parse import iso_date_from_epoch_seconds
from ..models import (
    AgeRating,
    CanonicalRecord,
    CompletionTimes,
    Duration,
    EnrichmentBundle,
    LanguageSupport,
    NamedVideo,
    PrimaryClip,
    PrimaryGame,
    RawDuration,
    RelatedGames,
    Screenshot,
    SecondaryClips,
    SecondaryGame,
    SecondaryLookups,
    Tag,
    Video,
)
from ..schema import (
    AGE_RATING_ORGANIZATIONS,
    COMPLETION_FIELDS,
    COMPLETION_UNIT,
    COMPLETION_UNIT_DIVISORS,
    LANGUAGE_SUPPORT_FLAGS,
    ORIGIN_PRIMARY,
    ORIGIN_SECONDARY,
    UNKNOWN_ORGANIZATION,
    UNRESOLVED_CATEGORY,
    UNRESOLVED_ORGANIZATION,
)
from .utilities import casefold_unique, strip_query_string


def union_names(*groups: tuple[str, ...] | list[str]) -> tuple[str, ...]:
    """Concatenate name groups and drop case-insensitive duplicates (first spelling wins)."""
    return tuple(casefold_unique(n for g in groups for n in g))


def secondary_screenshot_url(url: str) -> str:
    """Upgrade a secondary thumbnail to full size and give protocol-relative URLs a scheme."""
    s = str(url or "").strip().replace("t_thumb", "t_1080p")
    if s.startswith("//"):
        s = "https:" + s
    return s


def merge_screenshots(
    primary: list[Screenshot] | None, secondary_urls: tuple[str, ...] | None
) -> tuple[Screenshot, ...]:
    shots = list(primary or [])
    for url in secondary_urls or ():
        full = secondary_screenshot_url(url)
        if full:
            shots.append(Screenshot(id=f"igdb-{strip_query_string(full).rsplit('/', 1)[-1]}", url=full))
    out: list[Screenshot] = []
    seen: set[str] = set()
    for shot in shots:
        k = strip_query_string(shot.url)
        if not k or k in seen:
            continue
        seen.add(k)
        out.append(shot)
    return tuple(out)


def merge_video(primary_clip: PrimaryClip | None, secondary_videos: tuple[NamedVideo, ...] | None) -> Video:
    """Secondary clip list wins in full when non-empty; otherwise the primary clip. Never mixed."""
    videos: list[NamedVideo] = []
    seen: set[str] = set()
    for v in secondary_videos or ():
        if not v.video_id or v.video_id in seen:
            continue
        seen.add(v.video_id)
        videos.append(v)
    if videos:
        return SecondaryClips(videos=tuple(videos))
    return primary_clip


def merge_tags(primary_tags: tuple[str, ...], secondary_keywords: list[str]) -> tuple[Tag, ...]:
    tags = [Tag(name=n, origin=ORIGIN_PRIMARY) for n in casefold_unique(primary_tags)]
    seen = {t.name.casefold() for t in tags}
    for name in casefold_unique(secondary_keywords):
        if name.casefold() in seen:
            continue
        seen.add(name.casefold())
        tags.append(Tag(name=name, origin=ORIGIN_SECONDARY))
    return tuple(tags)


def secondary_age_ratings(lookups: SecondaryLookups) -> tuple[AgeRating, ...]:
    refs = lookups.age_rating_refs
    orgs = lookups.age_rating_organizations
    cats = lookups.age_rating_categories
    descs = lookups.age_rating_descriptions
    # A failed hop invalidates the whole join; the caller falls back to primary ratings.
    if not refs or orgs is None or cats is None or descs is None:
        return ()
    out: list[AgeRating] = []
    for ref in refs:
        org = orgs.get(ref.organization_id) if ref.organization_id is not None else None
        cat = cats.get(ref.category_id) if ref.category_id is not None else None
        out.append(
            AgeRating(
                organization=org or UNRESOLVED_ORGANIZATION,
                category=cat or UNRESOLVED_CATEGORY,
                # Unresolved descriptors are dropped, not shown as placeholders.
                content_descriptors=tuple(descs[d] for d in ref.descriptor_ids if descs.get(d)),
            )
        )
    return tuple(out)


def primary_age_ratings(primary: PrimaryGame) -> tuple[AgeRating, ...]:
    out: list[AgeRating] = []
    if primary.esrb_rating:
        out.append(AgeRating(organization="ESRB", category=primary.esrb_rating))
    for ar in primary.age_ratings:
        org = AGE_RATING_ORGANIZATIONS.get(ar.category or 0, UNKNOWN_ORGANIZATION)
        out.append(AgeRating(organization=org, category=ar.label))
    return tuple(out)


def merge_language_support(
    secondary: SecondaryGame | None, lookups: SecondaryLookups
) -> dict[str, LanguageSupport]:
    if secondary is None or not secondary.language_supports:
        return {}
    languages = lookups.languages or {}
    types = {k: v.lower() for k, v in (lookups.language_support_types or {}).items()}
    flags: dict[str, dict[str, bool]] = {}
    for lang_id, type_id in secondary.language_supports:
        lang = languages.get(lang_id)
        kind = types.get(type_id)
        if not lang or not kind:
            continue
        entry = flags.setdefault(lang, dict.fromkeys(LANGUAGE_SUPPORT_FLAGS, False))
        for flag in LANGUAGE_SUPPORT_FLAGS:
            if flag in kind:
                entry[flag] = True
    return {lang: LanguageSupport(**f) for lang, f in flags.items()}


def to_hours(raw: RawDuration) -> int:
    # Unknown units are taken as hours.
    divisor = COMPLETION_UNIT_DIVISORS.get(raw.unit.strip().lower(), 1.0)
    # Half-up rounding; Python's round() would bank 2.5 down to 2.
    return int(math.floor(raw.value / divisor + 0.5))


def normalize_completion_times(raw: dict[str, RawDuration] | None) -> CompletionTimes | None:
    if not raw:
        return None
    values: dict[str, Duration | None] = {}
    for name in COMPLETION_FIELDS:
        item = raw.get(name)
        values[name] = Duration(value=to_hours(item), unit=COMPLETION_UNIT) if item is not None else None
    if all(v is None for v in values.values()):
        return None
    return CompletionTimes(**values)


def _release_date(primary: PrimaryGame, secondary: SecondaryGame | None) -> str | None:
    if primary.released:
        return primary.released
    if secondary is not None:
        return iso_date_from_epoch_seconds(secondary.first_release_date)
    return None


class FieldMerger:
    """
    Build a CanonicalRecord from a primary record and an enrichment bundle.

    Primary wins for scalars; sets are unions de-duplicated case-insensitively with primary
    entries first; secondary-only sets are taken as-is. A missing secondary record (no match,
    or its fetch failed) leaves the secondary-only fields empty.
    """

    def merge(self, key: str, primary: PrimaryGame, bundle: EnrichmentBundle | None = None) -> CanonicalRecord:
        bundle = bundle or EnrichmentBundle()
        sec = bundle.secondary
        lookups = bundle.lookups

        sec_developers: list[str] = []
        sec_publishers: list[str] = []
        if sec is not None and lookups.companies:
            for ic in sec.involved_companies:
                name = lookups.companies.get(ic.company_id)
                if not name:
                    continue
                if ic.developer:
                    sec_developers.append(name)
                if ic.publisher:
                    sec_publishers.append(name)

        keywords: list[str] = []
        if sec is not None and lookups.keywords:
            keywords = [lookups.keywords[k] for k in sec.keyword_ids if lookups.keywords.get(k)]

        age_ratings = secondary_age_ratings(lookups)
        if not age_ratings:
            age_ratings = primary_age_ratings(primary)

        if bundle.failed:
            logging.debug(f"[ENRICH] '{key}' merged without: {', '.join(bundle.failed)}")

        return CanonicalRecord(
            key=key,
            primary_id=primary.id,
            secondary_id=sec.id if sec is not None else None,
            title=primary.title or (sec.name if sec is not None else ""),
            release_date=_release_date(primary, sec),
            summary=primary.description or (sec.summary if sec is not None else ""),
            website=primary.website,
            background_image=primary.background_image,
            platforms=union_names(primary.platforms or (sec.platforms if sec is not None else ())),
            stores=primary.stores,
            screenshots=merge_screenshots(
                bundle.primary_screenshots, sec.screenshot_urls if sec is not None else None
            ),
            video=merge_video(primary.clip, sec.videos if sec is not None else None),
            genres=union_names(primary.genres, sec.genres if sec is not None else ()),
            themes=union_names(sec.themes) if sec is not None else (),
            game_modes=union_names(sec.game_modes) if sec is not None else (),
            player_perspectives=union_names(sec.player_perspectives) if sec is not None else (),
            game_engines=union_names(sec.game_engines) if sec is not None else (),
            franchises=union_names(sec.franchises) if sec is not None else (),
            developers=union_names(primary.developers, sec_developers),
            publishers=union_names(primary.publishers, sec_publishers),
            alternative_names=union_names(sec.alternative_names) if sec is not None else (),
            language_support=merge_language_support(sec, lookups),
            age_ratings=age_ratings,
            completion_times=normalize_completion_times(bundle.completion_times),
            tags=merge_tags(primary.tags, keywords),
            related=RelatedGames(
                additions=tuple(bundle.additions or ()),
                series=tuple(bundle.series or ()),
                parents=tuple(bundle.parents or ()),
            ),
        )
