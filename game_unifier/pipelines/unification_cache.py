from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from datetime import datetime, timedelta, timezone
from typing import Callable

from ..config import CACHE
from ..errors import GameNotFoundError, UpstreamUnavailableError
from ..models import CacheEntry, CanonicalRecord, Freshness, GameView, IdentityMapping, PrimaryGame
from ..store import GameStore
from ..utils.identity import IdentityResolver
from ..utils.merger import FieldMerger
from .enrich_pipeline import EnrichmentOrchestrator
from .provider_clients import ProviderClients
from .resolve_pipeline import find_secondary_id, regenerate


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UnificationCache:
    """
    Serve canonical records per game key under a freshness policy.

    An entry is Fresh while its age is below the TTL and Stale afterwards; a key with no entry
    is Missing. Fresh reads never touch the network. Stale and Missing reads regenerate the
    record, with at most one regeneration in flight per key: the first caller runs it and
    later callers for the same key wait on the same future (or, for a stale key, get the
    stale record right away). Different keys never block each other.
    """

    def __init__(
        self,
        store: GameStore,
        clients: ProviderClients | None,
        *,
        resolver: IdentityResolver | None = None,
        orchestrator: EnrichmentOrchestrator | None = None,
        merger: FieldMerger | None = None,
        clock: Callable[[], datetime] = _utc_now,
        ttl: timedelta = timedelta(days=CACHE.ttl_days),
        serve_stale_while_refreshing: bool = CACHE.serve_stale_while_refreshing,
    ):
        self._store = store
        self.clients = clients
        self.resolver = resolver or IdentityResolver()
        self.orchestrator = orchestrator or (EnrichmentOrchestrator(clients) if clients is not None else None)
        self.merger = merger or FieldMerger()
        self.clock = clock
        self.ttl = ttl
        self.serve_stale_while_refreshing = serve_stale_while_refreshing
        self._inflight: dict[str, Future[CanonicalRecord]] = {}
        self._inflight_lock = threading.Lock()

    # ----------------------------
    # Freshness
    # ----------------------------
    def _is_fresh(self, entry: CacheEntry) -> bool:
        return (self.clock() - entry.last_refreshed_at) < self.ttl

    def state(self, key: str) -> Freshness:
        entry = self._store.get_entry(key)
        if entry is None:
            return Freshness.MISSING
        return Freshness.FRESH if self._is_fresh(entry) else Freshness.STALE

    # ----------------------------
    # Reads
    # ----------------------------
    def get(self, key: str) -> GameView:
        entry = self._store.get_entry(key)
        if entry is not None and self._is_fresh(entry):
            logging.debug(f"[CACHE] Fresh hit for '{key}'")
            return self._view(key, entry.record)
        return self._view(key, self._regenerate_coalesced(key, entry))

    def resolve(self, key: str) -> CanonicalRecord:
        return self.get(key).record

    def peek(self, key: str) -> CanonicalRecord | None:
        """Stored record regardless of freshness; never regenerates."""
        entry = self._store.get_entry(key)
        return entry.record if entry is not None else None

    def peek_entry(self, key: str) -> CacheEntry | None:
        return self._store.get_entry(key)

    def keys(self) -> list[str]:
        return self._store.keys()

    def counters(self, key: str) -> dict[str, int]:
        return self._store.get_counters(key)

    def store_stats(self) -> str:
        return self._store.format_stats()

    def _view(self, key: str, record: CanonicalRecord) -> GameView:
        return GameView(record=record, **self.counters(key))

    # ----------------------------
    # Writes
    # ----------------------------
    def store(self, key: str, record: CanonicalRecord) -> None:
        self._store.put_entry(key, record, self.clock())

    def invalidate(self, key: str) -> None:
        if self._store.delete(key):
            logging.info(f"[CACHE] Invalidated '{key}'")

    def record_view(self, key: str) -> int:
        return self._store.bump_counter(key, "views")

    def vote(self, key: str, up: bool) -> int:
        return self._store.bump_counter(key, "upvotes" if up else "downvotes")

    # ----------------------------
    # Identity
    # ----------------------------
    def resolve_identity(self, key: str, primary: PrimaryGame) -> int | None:
        """
        Secondary id for a key. A stored mapping, including an explicit "no match", is reused
        without calling the resolver. Fresh results are persisted unless a search failed.
        """
        mapping = self._store.get_mapping(key)
        if mapping is not None and mapping.primary_id == primary.id:
            return mapping.secondary_id
        if self.clients is None:
            return None

        secondary_id, complete = find_secondary_id(self.clients, self.resolver, primary)
        if complete:
            self._store.put_mapping(IdentityMapping(key=key, primary_id=primary.id, secondary_id=secondary_id))
            if secondary_id is None:
                logging.info(f"[IDENTITY] No secondary match for '{key}'; remembered")
        elif self.clients.secondary is not None:
            logging.warning(f"[IDENTITY] Secondary search for '{key}' failed; mapping not stored")
        return secondary_id

    # ----------------------------
    # Regeneration
    # ----------------------------
    def _regenerate_coalesced(self, key: str, stale: CacheEntry | None) -> CanonicalRecord:
        with self._inflight_lock:
            future = self._inflight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._inflight[key] = future
        assert future is not None

        if not owner:
            if stale is not None and self.serve_stale_while_refreshing:
                logging.debug(f"[CACHE] '{key}' is refreshing; serving stale record")
                return stale.record
            logging.debug(f"[CACHE] '{key}' is refreshing; waiting for it")
            return future.result()

        try:
            # Another owner may have finished between the caller's read and taking the slot.
            current = self._store.get_entry(key)
            if current is not None and self._is_fresh(current):
                logging.debug(f"[CACHE] '{key}' was refreshed concurrently; reusing it")
                record = current.record
            else:
                record = self._regenerate(key, current if current is not None else stale)
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(record)
            return record
        finally:
            with self._inflight_lock:
                self._inflight.pop(key, None)

    def _regenerate(self, key: str, stale: CacheEntry | None) -> CanonicalRecord:
        logging.info(f"[CACHE] {'Stale' if stale is not None else 'Missing'} '{key}'; regenerating")
        try:
            if self.clients is None or self.orchestrator is None:
                raise UpstreamUnavailableError(key, f"No provider clients configured to regenerate {key!r}")
            record = regenerate(
                key,
                clients=self.clients,
                identity=self.resolve_identity,
                orchestrator=self.orchestrator,
                merger=self.merger,
            )
        except GameNotFoundError:
            logging.warning(f"Not found in primary catalog: '{key}'")
            raise
        except UpstreamUnavailableError as e:
            if stale is None:
                raise
            logging.warning(f"[CACHE] Upstream unavailable for '{key}' ({e}); serving stale record")
            return stale.record
        self.store(key, record)
        return record
