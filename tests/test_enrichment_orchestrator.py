from __future__ import annotations


def test_enrichment_collects_every_field(providers, gta_primary):
    from game_unifier.pipelines.enrich_pipeline import EnrichmentOrchestrator

    bundle = EnrichmentOrchestrator(providers, max_workers=4).enrich(gta_primary, 1020)

    assert bundle.failed == []
    assert bundle.secondary is not None and bundle.secondary.id == 1020
    assert bundle.lookups.companies == {1: "Rockstar North", 2: "Take-Two Interactive"}
    assert bundle.lookups.age_rating_organizations == {1: "ESRB"}
    assert bundle.lookups.languages == {7: "English", 12: "French"}
    assert bundle.lookups.keywords == {100: "open world", 101: "heist"}
    assert bundle.completion_times is not None
    assert [g.name for g in bundle.series or []] == ["Grand Theft Auto IV"]
    assert len(bundle.primary_screenshots or []) == 2


def test_one_failed_call_only_degrades_its_field(providers, gta_primary):
    from game_unifier.pipelines.enrich_pipeline import EnrichmentOrchestrator

    providers.secondary.fail_on = {"get_keyword_names", "get_completion_times"}
    providers.primary.fail_on = {"get_related:additions"}

    bundle = EnrichmentOrchestrator(providers, max_workers=4).enrich(gta_primary, 1020)

    assert sorted(bundle.failed) == ["additions", "completion_times", "keywords"]
    assert bundle.lookups.keywords is None
    assert bundle.completion_times is None
    assert bundle.additions is None
    # Everything else still arrived.
    assert bundle.lookups.companies is not None
    assert bundle.series is not None


def test_failed_age_rating_hop_fails_the_whole_join(providers, gta_primary):
    from game_unifier.pipelines.enrich_pipeline import EnrichmentOrchestrator

    providers.secondary.fail_on = {"get_age_rating_organizations"}

    bundle = EnrichmentOrchestrator(providers, max_workers=4).enrich(gta_primary, 1020)

    assert bundle.failed == ["age_ratings"]
    assert bundle.lookups.age_rating_refs is None
    assert bundle.lookups.age_rating_organizations is None
    assert bundle.lookups.languages == {7: "English", 12: "French"}


def test_no_secondary_id_skips_secondary_calls(providers, gta_primary):
    from game_unifier.pipelines.enrich_pipeline import EnrichmentOrchestrator

    bundle = EnrichmentOrchestrator(providers, max_workers=4).enrich(gta_primary, None)

    assert bundle.secondary is None
    assert bundle.failed == []
    assert sum(providers.secondary.calls.values()) == 0
    assert providers.primary.calls["get_screenshots"] == 1


def test_failed_secondary_record_skips_reference_lookups(providers, gta_primary):
    from game_unifier.pipelines.enrich_pipeline import EnrichmentOrchestrator

    providers.secondary.fail_on = {"get_game"}

    bundle = EnrichmentOrchestrator(providers, max_workers=4).enrich(gta_primary, 1020)

    assert bundle.failed == ["secondary"]
    assert bundle.secondary is None
    assert providers.secondary.calls["get_company_names"] == 0
