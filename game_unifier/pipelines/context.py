from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..store import GameStore
from ..utils import ProjectPaths, load_credentials
from .provider_clients import ProviderClients, build_provider_clients
from .unification_cache import UnificationCache


@dataclass(frozen=True)
class PipelineContext:
    paths: ProjectPaths
    credentials_path: Path
    language: str = "en"

    def credentials(self) -> dict[str, Any]:
        return load_credentials(self.credentials_path)

    def build_clients(self) -> ProviderClients:
        return build_provider_clients(credentials=self.credentials(), language=self.language)

    def open_store(self) -> GameStore:
        self.paths.ensure()
        return GameStore(self.paths.store_path)

    def build_cache(self, *, offline: bool = False) -> UnificationCache:
        """
        Offline caches read and edit stored entries only; a regeneration attempt surfaces as
        UpstreamUnavailableError (or the stale record, when one exists).
        """
        clients = None if offline else self.build_clients()
        return UnificationCache(self.open_store(), clients)
