from __future__ import annotations


class GameUnavailableError(RuntimeError):
    """A canonical record could not be produced (or served) for a key."""

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message or f"Game unavailable: {key!r}")


class GameNotFoundError(GameUnavailableError):
    """The primary provider has no record for the key, and the search fallback found none."""

    def __init__(self, key: str, message: str | None = None):
        super().__init__(key, message or f"Game not found: {key!r}")


class UpstreamUnavailableError(GameUnavailableError):
    """
    A provider call failed at the transport level (network error, 5xx after retries).

    `key` carries the request context when no game key is known at the HTTP layer.
    """

    def __init__(self, key: str, message: str | None = None):
        super().__init__(key, message or f"Upstream unavailable while calling {key}")
