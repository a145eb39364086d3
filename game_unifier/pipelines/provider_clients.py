from __future__ import annotations

import logging
from dataclasses import dataclass

from ..clients import IGDBClient, RAWGClient
from ..config import IGDB, RAWG


@dataclass
class ProviderClients:
    """
    The two catalogs the engine talks to. `secondary` is None when no secondary credentials
    are configured; every record then degrades to primary-only fields.
    """

    primary: RAWGClient
    secondary: IGDBClient | None = None

    def format_stats(self) -> str:
        parts = [f"RAWG: {self.primary.format_stats()}"]
        if self.secondary is not None:
            parts.append(f"IGDB: {self.secondary.format_stats()}")
        return " | ".join(parts)


def build_provider_clients(*, credentials: dict[str, object], language: str = "en") -> ProviderClients:
    """
    Instantiate provider clients from credentials.
    """
    rawg = credentials.get("rawg", {}) or {}
    igdb = credentials.get("igdb", {}) or {}

    api_key = str((rawg if isinstance(rawg, dict) else {}).get("api_key", "") or "").strip()
    if not api_key:
        raise ValueError("Missing rawg.api_key in credentials")
    primary = RAWGClient(api_key=api_key, language=language, min_interval_s=RAWG.min_interval_s)

    secondary: IGDBClient | None = None
    igdb = igdb if isinstance(igdb, dict) else {}
    client_id = str(igdb.get("client_id", "") or "").strip()
    secret = str(igdb.get("client_secret", "") or "").strip()
    if client_id and secret:
        secondary = IGDBClient(
            client_id=client_id,
            client_secret=secret,
            language=language,
            min_interval_s=IGDB.min_interval_s,
        )
    else:
        logging.warning("IGDB credentials missing; records will carry primary fields only.")

    return ProviderClients(primary=primary, secondary=secondary)
