"""Regeneration pipeline and the unification cache built on top of it."""
