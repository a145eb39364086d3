from __future__ import annotations

# -----------------------------------------------------------------------------
# Fixed tables / markers shared by the clients, the merger and the store
# -----------------------------------------------------------------------------

# Persisted in place of a secondary id when identity resolution concluded "no match".
IDENTITY_NOT_FOUND = "__NOT_FOUND__"

# Origins recorded on merged tags (and on the video union when serialized).
ORIGIN_PRIMARY = "primary"
ORIGIN_SECONDARY = "secondary"

# Primary-source age ratings carry a numeric organization code.
AGE_RATING_ORGANIZATIONS: dict[int, str] = {
    1: "ESRB",
    2: "PEGI",
    3: "CERO",
    4: "USK",
    5: "GRAC",
    6: "CLASSIND",
    7: "ACB",
}
UNKNOWN_ORGANIZATION = "Unknown"

# Placeholders when a secondary age-rating reference cannot be resolved.
UNRESOLVED_ORGANIZATION = "Unknown Org"
UNRESOLVED_CATEGORY = "Not Rated"

# Language support type names are matched by substring.
LANGUAGE_SUPPORT_FLAGS = ("audio", "subtitles", "interface")

# Completion-time unit aliases -> divisor to hours.
COMPLETION_UNIT_DIVISORS: dict[str, float] = {
    "s": 3600.0,
    "sec": 3600.0,
    "secs": 3600.0,
    "second": 3600.0,
    "seconds": 3600.0,
    "m": 60.0,
    "min": 60.0,
    "mins": 60.0,
    "minute": 60.0,
    "minutes": 60.0,
    "h": 1.0,
    "hr": 1.0,
    "hrs": 1.0,
    "hour": 1.0,
    "hours": 1.0,
}
COMPLETION_UNIT = "h"
COMPLETION_FIELDS = ("hastily", "normally", "completely")

# Related-game lists served next to the descriptive data.
RELATED_KINDS = ("additions", "series", "parents")

# Columns written by the CSV export (list pages).
EXPORT_COLUMNS = (
    "Key",
    "Title",
    "ReleaseDate",
    "Platforms",
    "Genres",
    "Developers",
    "PrimaryId",
    "SecondaryId",
    "BackgroundImage",
    "Views",
    "Upvotes",
    "Downvotes",
    "LastRefreshedAt",
)
