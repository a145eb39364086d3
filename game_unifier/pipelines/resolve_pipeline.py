"""
One regeneration run for a game key: fetch the primary record (with a search fallback),
resolve the secondary identity, enrich, merge.
"""

from __future__ import annotations

import logging
from typing import Callable

from ..clients import RAWGClient
from ..errors import GameNotFoundError
from ..models import CanonicalRecord, PrimaryGame
from ..utils.identity import IdentityResolver
from ..utils.merger import FieldMerger
from .enrich_pipeline import EnrichmentOrchestrator
from .provider_clients import ProviderClients

IdentityLookup = Callable[[str, PrimaryGame], "int | None"]


def fetch_primary(clients: ProviderClients, key: str) -> PrimaryGame:
    """
    Direct lookup by key, then the top free-text search hit. Raises GameNotFoundError when
    both come back empty; transport failures propagate as UpstreamUnavailableError.
    """
    raw = clients.primary.get_by_slug(key)
    if raw is None:
        query = key.replace("-", " ").strip()
        hits = clients.primary.search(query)
        slug = str((hits[0].get("slug") or hits[0].get("id") or "") if hits else "").strip()
        if slug:
            logging.info(f"Primary lookup for '{key}' missed; using search hit '{slug}'")
            raw = clients.primary.get_by_slug(slug)
    if raw is None:
        raise GameNotFoundError(key)
    return RAWGClient.extract_game(raw)


def find_secondary_id(
    clients: ProviderClients, resolver: IdentityResolver, primary: PrimaryGame
) -> tuple[int | None, bool]:
    """
    Returns (secondary id or None, complete). `complete` is False when a candidate search
    failed upstream, in which case a None result must not be remembered as "no match".
    """
    igdb = clients.secondary
    if igdb is None:
        return None, False

    by_slug = igdb.find_by_slug(primary.slug) if primary.slug else []
    if by_slug:
        # An exact slug hit is taken as-is.
        logging.debug(f"[IDENTITY] '{primary.slug}' matched by slug -> {by_slug[0].id}")
        return by_slug[0].id, True

    candidates = igdb.search_candidates(primary.title, primary.slug, primary.release_year)
    if candidates is None:
        return None, False
    match = resolver.match(primary, candidates)
    if match is not None:
        return match.id, True
    # "No match" only counts when the slug lookup did not fail either.
    return None, by_slug is not None


def regenerate(
    key: str,
    *,
    clients: ProviderClients,
    identity: IdentityLookup,
    orchestrator: EnrichmentOrchestrator,
    merger: FieldMerger,
) -> CanonicalRecord:
    primary = fetch_primary(clients, key)
    secondary_id = identity(key, primary)
    bundle = orchestrator.enrich(primary, secondary_id)
    record = merger.merge(key, primary, bundle)
    logging.info(
        f"Regenerated '{key}': primary={record.primary_id} secondary={record.secondary_id}"
        + (f" (missing: {', '.join(sorted(bundle.failed))})" if bundle.failed else "")
    )
    return record
