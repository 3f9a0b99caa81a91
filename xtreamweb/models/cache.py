"""Pydantic models for the response cache."""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CacheEntry(BaseModel):
    """A stored upstream response. Timestamps are epoch milliseconds."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    key: str
    value: Any = None
    created_at: int
    expires_at: int
    hit_count: int = 0
    last_accessed_at: Optional[int] = None

    def is_expired(self, now_ms: int) -> bool:
        return now_ms > self.expires_at


class CacheStats(BaseModel):
    """Aggregate, read-only report over the cache table."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_entries: int = 0
    expired_entries: int = 0
    total_hits: int = 0
    total_size_bytes: int = 0
