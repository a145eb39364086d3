"""
Utility functions and helpers.

This module intentionally uses lazy attribute loading to avoid importing heavier
submodules (e.g., pandas, rapidfuzz) unless they are needed.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "FieldMerger",
    "IdentityResolver",
    "ProjectPaths",
    "casefold_unique",
    "fuzzy_score",
    "load_credentials",
    "normalize_game_name",
    "read_csv",
    "write_csv",
]


def __getattr__(name: str) -> Any:  # pragma: no cover
    if name in {
        "ProjectPaths",
        "casefold_unique",
        "fuzzy_score",
        "load_credentials",
        "normalize_game_name",
        "read_csv",
        "write_csv",
    }:
        from . import utilities as _u

        return getattr(_u, name)

    if name == "IdentityResolver":
        from .identity import IdentityResolver

        return IdentityResolver

    if name == "FieldMerger":
        from .merger import FieldMerger

        return FieldMerger

    raise AttributeError(name)
