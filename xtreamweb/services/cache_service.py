"""Cache service: SQLite-backed upstream response cache with per-endpoint TTLs."""
from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Optional
from urllib.parse import parse_qsl, quote, unquote, urlencode, urlsplit, urlunsplit

from xtreamweb.models.cache import CacheEntry, CacheStats
from xtreamweb.services.ttl_policy import get_ttl

if TYPE_CHECKING:
    from xtreamweb.database import Database

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {"http": 80, "https": 443}


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_cache_key(url: str) -> str:
    """Normalise *url* into a cache key.

    Scheme and host are lower-cased, default ports and fragments dropped,
    path and query re-encoded and query parameters ordered by name, so
    that spellings of the same request collapse onto one key.
    Raises ``ValueError`` for anything that is not an absolute URL.
    """
    if not isinstance(url, str) or not url.strip():
        raise ValueError("URL must be a non-empty string")
    try:
        parts = urlsplit(url.strip())
        port = parts.port
    except ValueError as e:
        raise ValueError(f"Invalid URL {url!r}: {e}") from None

    scheme = parts.scheme.lower()
    host = parts.hostname
    if not scheme or not host:
        raise ValueError(f"Invalid URL {url!r}: scheme and host are required")

    if ":" in host:
        host = f"[{host}]"
    netloc = host
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        netloc = f"{host}:{port}"
    if parts.username is not None:
        userinfo = quote(unquote(parts.username), safe="")
        if parts.password is not None:
            userinfo += ":" + quote(unquote(parts.password), safe="")
        netloc = f"{userinfo}@{netloc}"

    path = quote(unquote(parts.path), safe="/") or "/"
    params = sorted(parse_qsl(parts.query, keep_blank_values=True), key=lambda kv: kv[0])
    query = urlencode(params, quote_via=quote)
    return urlunsplit((scheme, netloc, path, query, ""))


class CacheService:
    """Key/value cache of upstream JSON responses.

    Every operation is fault-isolated: storage errors are logged and turn
    into a cache miss or a no-op, the cache is never required for a
    request to succeed.
    """

    def __init__(self, db: "Database", clock: Optional[Callable[[], int]] = None):
        self.db = db
        self._clock = clock or now_ms

    def now(self) -> int:
        return self._clock()

    # ------------------------------------------------------------------
    # Read / write
    # ------------------------------------------------------------------

    def get(self, key: str) -> Any:
        """Return the cached value for *key*, or None when absent or expired.

        An expired row is deleted on the way out; a live hit bumps
        ``hit_count`` and ``last_accessed``.
        """
        try:
            now = self.now()
            row = self.db.conn.execute(
                "SELECT value, expires_at FROM cache WHERE key = ?", (key,)
            ).fetchone()
            if row is None:
                return None

            if now > row["expires_at"]:
                with self.db.transaction() as conn:
                    conn.execute("DELETE FROM cache WHERE key = ?", (key,))
                logger.debug(f"Cache expired: {key}")
                return None

            with self.db.transaction() as conn:
                conn.execute(
                    "UPDATE cache SET hit_count = hit_count + 1, last_accessed = ? WHERE key = ?",
                    (now, key),
                )
            return json.loads(row["value"])
        except Exception as e:
            logger.error(f"Cache get error for {key}: {e}")
            return None

    def set(self, key: str, value: Any) -> None:
        """Store *value* under *key* with the TTL its endpoint calls for.

        Overwrites any previous entry and resets its hit count. ``None``
        is not cached since it is indistinguishable from a miss.
        """
        if value is None:
            logger.debug(f"Not caching empty value for {key}")
            return
        try:
            now = self.now()
            expires_at = now + get_ttl(key) * 1000
            payload = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
            with self.db.transaction() as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO cache "
                    "(key, value, expires_at, created_at, hit_count, last_accessed) "
                    "VALUES (?, ?, ?, ?, 0, ?)",
                    (key, payload, expires_at, now, now),
                )
        except Exception as e:
            logger.error(f"Cache set error for {key}: {e}")

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        """Return the raw entry for *key* without touching its statistics."""
        try:
            row = self.db.conn.execute(
                "SELECT key, value, created_at, expires_at, hit_count, last_accessed "
                "FROM cache WHERE key = ?",
                (key,),
            ).fetchone()
            if row is None:
                return None
            return CacheEntry(
                key=row["key"],
                value=json.loads(row["value"]),
                created_at=row["created_at"],
                expires_at=row["expires_at"],
                hit_count=row["hit_count"],
                last_accessed_at=row["last_accessed"],
            )
        except Exception as e:
            logger.error(f"Cache entry lookup error for {key}: {e}")
            return None

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def clear(self) -> int:
        """Delete every entry. Returns the number of rows removed."""
        try:
            with self.db.transaction() as conn:
                removed = conn.execute("DELETE FROM cache").rowcount
            logger.info(f"Cache cleared ({removed} entries)")
            return removed
        except Exception as e:
            logger.error(f"Cache clear error: {e}")
            return 0

    def clear_expired(self) -> int:
        """Delete entries whose ``expires_at`` lies in the past."""
        try:
            with self.db.transaction() as conn:
                removed = conn.execute(
                    "DELETE FROM cache WHERE expires_at < ?", (self.now(),)
                ).rowcount
            if removed:
                logger.info(f"Removed {removed} expired cache entries")
            return removed
        except Exception as e:
            logger.error(f"Cache cleanup error: {e}")
            return 0

    def invalidate_pattern(self, pattern: str) -> int:
        """Delete entries whose key contains *pattern* (case-sensitive)."""
        if not pattern:
            raise ValueError("Pattern must be a non-empty string")
        try:
            with self.db.transaction() as conn:
                removed = conn.execute(
                    "DELETE FROM cache WHERE instr(key, ?) > 0", (pattern,)
                ).rowcount
            logger.info(f"Invalidated {removed} cache entries matching {pattern!r}")
            return removed
        except Exception as e:
            logger.error(f"Cache invalidation error: {e}")
            return 0

    def stats(self) -> CacheStats:
        try:
            row = self.db.conn.execute(
                """SELECT COUNT(*) AS total,
                          COALESCE(SUM(CASE WHEN expires_at < ? THEN 1 ELSE 0 END), 0) AS expired,
                          COALESCE(SUM(hit_count), 0) AS hits,
                          COALESCE(SUM(LENGTH(CAST(value AS BLOB))), 0) AS size
                   FROM cache""",
                (self.now(),),
            ).fetchone()
            return CacheStats(
                total_entries=row["total"],
                expired_entries=row["expired"],
                total_hits=row["hits"],
                total_size_bytes=row["size"],
            )
        except Exception as e:
            logger.error(f"Cache stats error: {e}")
            return CacheStats()
