from __future__ import annotations


def test_merge_combines_primary_and_secondary(gta_primary, gta_bundle):
    from game_unifier.models import AgeRating, LanguageSupport, SecondaryClips
    from game_unifier.utils.merger import FieldMerger

    rec = FieldMerger().merge("grand-theft-auto-v", gta_primary, gta_bundle)

    assert rec.key == "grand-theft-auto-v"
    assert rec.primary_id == 3498
    assert rec.secondary_id == 1020
    assert rec.title == "Grand Theft Auto V"
    assert rec.release_date == "2013-09-17"
    assert rec.summary == "Rockstar's open world crime epic."
    # Primary platforms win; secondary does not add its spellings.
    assert rec.platforms == ("PC", "PlayStation 4")
    assert rec.genres == ("Action", "Adventure", "Shooter")
    assert rec.developers == ("Rockstar North",)
    assert rec.publishers == ("Rockstar Games", "Take-Two Interactive")
    assert rec.themes == ("Action", "Sandbox")
    assert rec.game_engines == ("RAGE",)
    assert rec.alternative_names == ("GTA 5", "GTA V")
    assert isinstance(rec.video, SecondaryClips)
    assert rec.age_ratings == (AgeRating("ESRB", "M", ("Blood", "Violence")),)
    assert rec.language_support == {
        "English": LanguageSupport(audio=True, subtitles=True, interface=False),
        "French": LanguageSupport(audio=False, subtitles=True, interface=False),
    }
    assert [g.name for g in rec.related.series] == ["Grand Theft Auto IV"]


def test_merge_is_idempotent(gta_primary, gta_bundle):
    from game_unifier.utils.merger import FieldMerger

    merger = FieldMerger()
    a = merger.merge("k", gta_primary, gta_bundle)
    b = merger.merge("k", gta_primary, gta_bundle)
    assert a == b
    assert a.to_dict() == b.to_dict()


def test_set_fields_have_no_case_insensitive_duplicates(gta_primary, gta_bundle):
    from game_unifier.utils.merger import FieldMerger

    rec = FieldMerger().merge("k", gta_primary, gta_bundle)
    for values in (rec.genres, rec.developers, rec.publishers, rec.platforms, rec.themes):
        folded = [v.casefold() for v in values]
        assert len(folded) == len(set(folded))


def test_tags_primary_wins_on_collision(gta_primary, gta_bundle):
    from game_unifier.models import Tag
    from game_unifier.utils.merger import FieldMerger

    rec = FieldMerger().merge("k", gta_primary, gta_bundle)
    # "open world" keyword collides with the primary "Open World" tag.
    assert rec.tags == (
        Tag("Open World", "primary"),
        Tag("Multiplayer", "primary"),
        Tag("heist", "secondary"),
    )


def test_screenshots_dedupe_by_url_without_query_string():
    from game_unifier.models import Screenshot
    from game_unifier.utils.merger import merge_screenshots

    shots = merge_screenshots(
        [
            Screenshot(id="1", url="https://media.rawg.io/a.jpg"),
            Screenshot(id="2", url="https://media.rawg.io/a.jpg?w=600"),
        ],
        (
            "//images.igdb.com/igdb/image/upload/t_thumb/sc1.jpg",
            "https://images.igdb.com/igdb/image/upload/t_1080p/sc1.jpg?x=1",
        ),
    )
    assert [s.url for s in shots] == [
        "https://media.rawg.io/a.jpg",
        "https://images.igdb.com/igdb/image/upload/t_1080p/sc1.jpg",
    ]
    assert shots[0].id == "1"
    assert shots[1].id == "igdb-sc1.jpg"


def test_video_secondary_list_wins_and_is_never_mixed():
    from game_unifier.models import NamedVideo, PrimaryClip, SecondaryClips
    from game_unifier.utils.merger import merge_video

    clip = PrimaryClip(clip="https://media.rawg.io/clip.mp4")
    videos = (
        NamedVideo(name="Trailer", video_id="abc"),
        NamedVideo(name="Trailer (dup)", video_id="abc"),
        NamedVideo(name="Gameplay", video_id="def"),
    )

    out = merge_video(clip, videos)
    assert isinstance(out, SecondaryClips)
    assert [v.video_id for v in out.videos] == ["abc", "def"]

    assert merge_video(clip, ()) == clip
    assert merge_video(None, None) is None


def test_video_round_trips_with_source_tag(gta_primary, gta_bundle):
    from game_unifier.models import CanonicalRecord
    from game_unifier.utils.merger import FieldMerger

    rec = FieldMerger().merge("k", gta_primary, gta_bundle)
    raw = rec.to_dict()
    assert raw["video"]["source"] == "secondary"
    assert CanonicalRecord.from_dict(raw) == rec


def test_unresolved_age_rating_references_use_placeholders():
    from game_unifier.models import AgeRating, AgeRatingRef, SecondaryLookups
    from game_unifier.utils.merger import secondary_age_ratings

    lookups = SecondaryLookups(
        age_rating_refs=[AgeRatingRef(id=11, organization_id=9, category_id=8, descriptor_ids=(31, 77))],
        age_rating_organizations={},
        age_rating_categories={},
        age_rating_descriptions={31: "Blood"},
    )
    assert secondary_age_ratings(lookups) == (AgeRating("Unknown Org", "Not Rated", ("Blood",)),)


def test_age_ratings_fall_back_to_primary_when_join_failed(gta_primary, gta_bundle):
    from game_unifier.models import AgeRating
    from game_unifier.utils.merger import FieldMerger

    gta_bundle.lookups.age_rating_organizations = None
    rec = FieldMerger().merge("k", gta_primary, gta_bundle)
    assert rec.age_ratings == (AgeRating("ESRB", "Mature"),)


def test_primary_coded_age_ratings_map_organization_codes():
    from game_unifier.models import AgeRating, PrimaryAgeRating, PrimaryGame
    from game_unifier.utils.merger import primary_age_ratings

    primary = PrimaryGame(
        id=1,
        slug="x",
        title="X",
        age_ratings=(PrimaryAgeRating(category=2, label="PEGI 18"), PrimaryAgeRating(category=99, label="R")),
    )
    assert primary_age_ratings(primary) == (
        AgeRating("PEGI", "PEGI 18"),
        AgeRating("Unknown", "R"),
    )


def test_language_support_skips_unresolved_pairs(gta_bundle):
    from game_unifier.utils.merger import merge_language_support

    gta_bundle.lookups.languages = {7: "English"}
    out = merge_language_support(gta_bundle.secondary, gta_bundle.lookups)
    assert list(out) == ["English"]

    gta_bundle.lookups.language_support_types = None
    assert merge_language_support(gta_bundle.secondary, gta_bundle.lookups) == {}


def test_completion_times_normalize_to_whole_hours():
    from game_unifier.models import CompletionTimes, Duration, RawDuration
    from game_unifier.utils.merger import normalize_completion_times, to_hours

    out = normalize_completion_times(
        {"hastily": RawDuration(90, "m"), "normally": RawDuration(7200, "s")}
    )
    assert out == CompletionTimes(hastily=Duration(2, "h"), normally=Duration(2, "h"), completely=None)

    # Half-up, not banker's rounding.
    assert to_hours(RawDuration(2.5, "h")) == 3
    assert to_hours(RawDuration(150, "min")) == 3
    assert to_hours(RawDuration(5400, "seconds")) == 2
    # Unknown units are taken as hours.
    assert to_hours(RawDuration(4, "fortnights")) == 4

    assert normalize_completion_times({}) is None
    assert normalize_completion_times(None) is None


def test_missing_secondary_degrades_to_primary_only(gta_primary):
    from game_unifier.models import AgeRating, EnrichmentBundle
    from game_unifier.utils.merger import FieldMerger

    rec = FieldMerger().merge("k", gta_primary, EnrichmentBundle())
    assert rec.secondary_id is None
    assert rec.themes == ()
    assert rec.language_support == {}
    assert rec.completion_times is None
    assert rec.video is None
    assert rec.genres == ("Action", "Adventure")
    assert rec.age_ratings == (AgeRating("ESRB", "Mature"),)
    assert all(t.origin == "primary" for t in rec.tags)


def test_platforms_filled_from_secondary_only_when_primary_has_none(gta_raw, gta_bundle):
    from game_unifier.clients.rawg_client import RAWGClient
    from game_unifier.utils.merger import FieldMerger

    primary = RAWGClient.extract_game(gta_raw(platforms=[], description_raw=""))
    rec = FieldMerger().merge("k", primary, gta_bundle)
    assert rec.platforms == ("PC (Microsoft Windows)", "PlayStation 4")
    assert rec.summary == "IGDB summary."


def test_language_support_matches_every_flag_by_substring(gta_bundle):
    from game_unifier.models import LanguageSupport
    from game_unifier.utils.merger import merge_language_support

    gta_bundle.lookups.language_support_types = {1: "Interface", 2: "Subtitles & Audio"}
    out = merge_language_support(gta_bundle.secondary, gta_bundle.lookups)
    assert out == {
        "English": LanguageSupport(audio=True, subtitles=True, interface=True),
        "French": LanguageSupport(audio=True, subtitles=True, interface=False),
    }


def test_record_language_support_is_read_only(gta_primary, gta_bundle):
    import json

    import pytest

    from game_unifier.models import CanonicalRecord, LanguageSupport
    from game_unifier.utils.merger import FieldMerger

    rec = FieldMerger().merge("k", gta_primary, gta_bundle)
    with pytest.raises(TypeError):
        rec.language_support["German"] = LanguageSupport(audio=True)
    assert "German" not in rec.language_support

    raw = json.loads(json.dumps(rec.to_dict()))
    assert raw["language_support"]["English"] == {"audio": True, "subtitles": True, "interface": False}
    assert CanonicalRecord.from_dict(raw) == rec
