"""API clients for the primary and secondary game catalogs."""

from .igdb_client import IGDBClient
from .rawg_client import RAWGClient

__all__ = [
    "IGDBClient",
    "RAWGClient",
]
