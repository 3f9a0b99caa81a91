"""TTL policy: maps a cache key to how long its response stays fresh."""
from __future__ import annotations

HOUR = 60 * 60

CATEGORIES_TTL = 24 * HOUR
SERIES_INFO_TTL = 6 * HOUR
SERIES_TTL = 12 * HOUR
STREAMS_TTL = 12 * HOUR

CATEGORY_MARKERS = ("get_vod_categories", "get_series_categories", "get_live_categories")
SERIES_INFO_MARKER = "get_series_info"
SERIES_MARKER = "get_series"


def get_ttl(key: str) -> int:
    """Return the TTL in seconds for *key*.

    Rules are checked in order and the first match wins, so a key that
    names a categories action is always long-lived whatever else it holds.
    ``get_series_info`` must be tested before its prefix ``get_series``.
    """
    if any(marker in key for marker in CATEGORY_MARKERS):
        return CATEGORIES_TTL
    if SERIES_INFO_MARKER in key:
        return SERIES_INFO_TTL
    if SERIES_MARKER in key:
        return SERIES_TTL
    return STREAMS_TTL
