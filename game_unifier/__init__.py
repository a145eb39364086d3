"""Game Data Unifier - Merge video game metadata from two catalogs into one cached record."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("game-data-unifier")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.1.0"
