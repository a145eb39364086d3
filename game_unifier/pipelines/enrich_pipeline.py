from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable

from ..config import ENRICH
from ..models import AgeRatingRef, EnrichmentBundle, PrimaryGame, SecondaryGame
from ..schema import RELATED_KINDS
from .provider_clients import ProviderClients

Task = Callable[[], Any]


class EnrichmentOrchestrator:
    """
    Fan out the independent enrichment calls for one game and collect what succeeds.

    Stage 1 needs only the ids: the secondary record, completion times, primary screenshots
    and the three related-game lists. Stage 2 needs the secondary record's reference ids:
    companies, the age-rating join, languages and keywords. A failed call (exception or
    per-request timeout) leaves its field as None and is listed in `bundle.failed`; it never
    aborts the run.
    """

    def __init__(self, clients: ProviderClients, max_workers: int = ENRICH.max_workers):
        self.clients = clients
        self.max_workers = max(1, int(max_workers))

    def _run(self, label: str, tasks: dict[str, Task], failed: list[str]) -> dict[str, Any]:
        if not tasks:
            return {}
        out: dict[str, Any] = {}
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(tasks))) as executor:
            futures = {executor.submit(fn): name for name, fn in tasks.items()}
            for future in as_completed(futures):
                name = futures[future]
                try:
                    out[name] = future.result()
                except Exception as e:
                    failed.append(name)
                    logging.warning(f"[ENRICH] {label}: '{name}' failed ({type(e).__name__}: {e})")
        return out

    def enrich(self, primary: PrimaryGame, secondary_id: int | None) -> EnrichmentBundle:
        bundle = EnrichmentBundle()
        rawg = self.clients.primary
        igdb = self.clients.secondary
        label = primary.slug or str(primary.id)

        stage1: dict[str, Task] = {"screenshots": lambda: rawg.get_screenshots(primary.id)}
        for kind in RELATED_KINDS:
            stage1[kind] = lambda kind=kind: rawg.get_related(primary.id, kind)
        if igdb is not None and secondary_id is not None:
            stage1["secondary"] = lambda: igdb.get_game(secondary_id)
            stage1["completion_times"] = lambda: igdb.get_completion_times(secondary_id)

        res = self._run(label, stage1, bundle.failed)
        bundle.primary_screenshots = res.get("screenshots")
        bundle.additions = res.get("additions")
        bundle.series = res.get("series")
        bundle.parents = res.get("parents")
        bundle.completion_times = res.get("completion_times")
        bundle.secondary = res.get("secondary")

        sec = bundle.secondary
        if igdb is not None and sec is not None:
            self._enrich_references(label, sec, bundle)

        if bundle.failed:
            # Partial enrichment: the record is still produced without these fields.
            logging.warning(f"[ENRICH] '{label}' partially enriched; missing: {', '.join(sorted(bundle.failed))}")
        return bundle

    def _enrich_references(self, label: str, sec: SecondaryGame, bundle: EnrichmentBundle) -> None:
        igdb = self.clients.secondary
        assert igdb is not None

        stage2: dict[str, Task] = {}
        company_ids = [ic.company_id for ic in sec.involved_companies]
        if company_ids:
            stage2["companies"] = lambda: igdb.get_company_names(company_ids)
        if sec.age_rating_ids:
            stage2["age_ratings"] = lambda: self._age_rating_tables(list(sec.age_rating_ids))
        if sec.language_supports:
            stage2["languages"] = lambda: self._language_tables(sec)
        if sec.keyword_ids:
            stage2["keywords"] = lambda: igdb.get_keyword_names(list(sec.keyword_ids))

        res = self._run(label, stage2, bundle.failed)
        lookups = bundle.lookups
        lookups.companies = res.get("companies")
        lookups.keywords = res.get("keywords")
        if "age_ratings" in res:
            (
                lookups.age_rating_refs,
                lookups.age_rating_organizations,
                lookups.age_rating_categories,
                lookups.age_rating_descriptions,
            ) = res["age_ratings"]
        if "languages" in res:
            lookups.languages, lookups.language_support_types = res["languages"]

    def _age_rating_tables(
        self, rating_ids: list[int]
    ) -> tuple[list[AgeRatingRef], dict[int, str], dict[int, str], dict[int, str]]:
        """
        Two-hop join: rating references first, then the three name tables they point at.
        Any failed hop fails the whole field.
        """
        igdb = self.clients.secondary
        assert igdb is not None
        refs = igdb.get_age_rating_refs(rating_ids)
        org_ids = sorted({r.organization_id for r in refs if r.organization_id is not None})
        cat_ids = sorted({r.category_id for r in refs if r.category_id is not None})
        desc_ids = sorted({d for r in refs for d in r.descriptor_ids})
        orgs = igdb.get_age_rating_organizations(org_ids) if org_ids else {}
        cats = igdb.get_age_rating_categories(cat_ids) if cat_ids else {}
        descs = igdb.get_age_rating_descriptions(desc_ids) if desc_ids else {}
        return refs, orgs, cats, descs

    def _language_tables(self, sec: SecondaryGame) -> tuple[dict[int, str], dict[int, str]]:
        igdb = self.clients.secondary
        assert igdb is not None
        lang_ids = sorted({lang for lang, _ in sec.language_supports})
        type_ids = sorted({kind for _, kind in sec.language_supports})
        return igdb.get_language_names(lang_ids), igdb.get_language_support_types(type_ids)
