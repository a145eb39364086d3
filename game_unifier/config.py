from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RetryConfig:
    retries: int = 3
    base_sleep_s: float = 1.0
    jitter_s: float = 0.3
    http_429_default_retry_after_s: float = 5.0


@dataclass(frozen=True)
class RequestConfig:
    # Applies per upstream call, never to a whole regeneration.
    timeout_s: int = 10


@dataclass(frozen=True)
class MatchingConfig:
    """
    Identity resolution policy (primary title -> secondary candidate).

    Name scores are `fuzzy_score` values (0..100). `accept_score` plays the role of a 0.4
    distance floor and `strong_score` of a 0.3 distance threshold.
    """

    accept_score: int = 60
    strong_score: int = 70

    w_name_strong: int = 2
    w_name_accepted: int = 1
    w_exact_name: int = 2
    w_year: int = 2
    w_platform: int = 1
    w_company: int = 1

    # Name + year, or name + platform + company, clears this; name alone does not.
    min_total_score: int = 5


@dataclass(frozen=True)
class CacheConfig:
    ttl_days: int = 7
    # Latecomers for a stale key get the stale record while another caller regenerates.
    serve_stale_while_refreshing: bool = True
    # Log store writes that take longer than this threshold (milliseconds).
    slow_save_log_ms: int = 2000


@dataclass(frozen=True)
class IGDBConfig:
    min_interval_s: float = 0.3
    candidate_limit: int = 10
    get_by_ids_batch_size: int = 50
    # Refresh the OAuth token this long before it actually expires.
    token_expiry_margin_s: int = 60
    # Bare completion-time numbers above this are seconds; below, hours.
    seconds_threshold: int = 10000


@dataclass(frozen=True)
class RAWGConfig:
    min_interval_s: float = 0.5
    search_page_size: int = 1
    screenshots_page_size: int = 20
    related_page_size: int = 20
    related_max_pages: int = 1


@dataclass(frozen=True)
class EnrichConfig:
    max_workers: int = 8


RETRY = RetryConfig()
REQUEST = RequestConfig()
MATCHING = MatchingConfig()
CACHE = CacheConfig()
IGDB = IGDBConfig()
RAWG = RAWGConfig()
ENRICH = EnrichConfig()
